"""
nexus-scaffold — fenced code block strategy

File: src/nexus_scaffold/parsing/strategies/fenced.py
Last updated: 2026-10-18

Purpose
- Extract files from Markdown code fences whose opening line names a file
  (```` ```kotlin src/App.kt ```` or ```` ```src/App.kt ````), or whose filename is
  given by a label line directly above a bare fence.

Functional requirements
- Fences open with three or more backticks or tildes; the closing fence uses the same
  character and is at least as long. An unterminated fence runs to end of input.
- Region content drops at most one leading and one trailing blank line; interior
  whitespace is preserved.
- Supported labels: ``# path``, ``**path**``, ``// File: path``, ``# File: path``,
  ``<!-- File: path -->``, ``--- path ---``, `` `path` ``, ``File: path`` and a bare
  ``path`` or ``path:`` line. At most one blank line may separate label and fence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from nexus_scaffold.constants import STRATEGY_FENCED
from nexus_scaffold.domain.paths import has_extension
from nexus_scaffold.parsing.strategies.base import Candidate, keep_valid, normalize_newlines

if TYPE_CHECKING:
    from collections.abc import Iterator

_OPEN_FENCE_RE: Final[re.Pattern[str]] = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_INFO_KEY_RE: Final[re.Pattern[str]] = re.compile(r"^(?:title|file|filename|path)=", re.IGNORECASE)

_LABEL_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"^<!--\s*File:\s*(?P<path>\S+)\s*-->\s*$", re.IGNORECASE),
    re.compile(r"^//\s*File:\s*(?P<path>\S+)\s*$", re.IGNORECASE),
    re.compile(r"^#{1,6}\s+(?:File:\s*)?`?(?P<path>[^\s`]+?)`?:?\s*$", re.IGNORECASE),
    re.compile(r"^\*\*(?:File:\s*)?`?(?P<path>[^*`\s]+?)`?:?\*\*:?\s*$", re.IGNORECASE),
    re.compile(r"^-{3,}\s*(?P<path>\S+)\s*-{3,}\s*$"),
    re.compile(r"^`(?P<path>[^`\s]+)`:?\s*$"),
    re.compile(r"^(?:File|Filename|Path):\s*`?(?P<path>[^\s`]+?)`?\s*$", re.IGNORECASE),
    re.compile(r"^(?P<path>[\w\-./]+\.\w+):?\s*$"),
)


@dataclass(frozen=True, slots=True)
class FencedRegion:
    """One fenced block: its info string, optional label path, and trimmed body."""

    info: str
    label: str | None
    content: str
    terminated: bool

    @property
    def language(self) -> str | None:
        tokens = self.info.split()
        return tokens[0] if tokens else None

    @property
    def declared_path(self) -> str | None:
        """Filename from the opening fence line, falling back to the label line."""

        return path_from_info(self.info) or self.label


def path_from_info(info: str) -> str | None:
    tokens = [_INFO_KEY_RE.sub("", token).strip("\"'") for token in info.split()]
    for token in reversed(tokens):
        if "/" in token or "\\" in token or has_extension(token):
            final = re.split(r"[/\\]", token)[-1]
            if has_extension(final):
                return token
    return None


def path_from_label(line: str) -> str | None:
    stripped = line.strip()
    for pattern in _LABEL_PATTERNS:
        match = pattern.match(stripped)
        if match is None:
            continue
        candidate = match.group("path").strip()
        final = re.split(r"[/\\]", candidate)[-1]
        if has_extension(final):
            return candidate
    return None


def iter_fenced_regions(raw_text: str) -> Iterator[FencedRegion]:
    """Yield fenced regions in input order."""

    lines = normalize_newlines(raw_text).split("\n")
    index = 0
    while index < len(lines):
        opening = _OPEN_FENCE_RE.match(lines[index])
        if opening is None:
            index += 1
            continue

        fence = opening.group("fence")
        info = opening.group("info").strip()
        if fence[0] == "`" and "`" in info:
            index += 1
            continue
        label = _label_above(lines, index)

        body: list[str] = []
        cursor = index + 1
        terminated = False
        while cursor < len(lines):
            if _closes(lines[cursor], fence):
                terminated = True
                break
            body.append(lines[cursor])
            cursor += 1

        yield FencedRegion(
            info=info,
            label=label,
            content=trim_single_blank_lines(body),
            terminated=terminated,
        )
        index = cursor + 1


def trim_single_blank_lines(body: list[str]) -> str:
    trimmed = list(body)
    if trimmed and not trimmed[0].strip():
        trimmed.pop(0)
    if trimmed and not trimmed[-1].strip():
        trimmed.pop()
    return "\n".join(trimmed)


def _closes(line: str, fence: str) -> bool:
    stripped = line.strip()
    if len(stripped) < len(fence):
        return False
    return set(stripped) == {fence[0]}


def _label_above(lines: list[str], fence_index: int) -> str | None:
    cursor = fence_index - 1
    if cursor >= 0 and not lines[cursor].strip():
        cursor -= 1
    if cursor < 0:
        return None
    return path_from_label(lines[cursor])


class FencedBlockStrategy:
    name = STRATEGY_FENCED

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def attempt(self, raw_text: str) -> tuple[Candidate, ...]:
        found: list[Candidate] = []
        for region in iter_fenced_regions(raw_text):
            path = region.declared_path
            if path is None or not region.content.strip():
                continue
            if not region.terminated:
                self._logger.debug("parser_unterminated_fence", strategy=self.name, path=path)
            found.append(Candidate(path, region.content))
        return keep_valid(
            found,
            strategy=self.name,
            logger=self._logger,
            allow_root_relative=True,
        )


__all__ = [
    "FencedBlockStrategy",
    "FencedRegion",
    "iter_fenced_regions",
    "path_from_info",
    "path_from_label",
    "trim_single_blank_lines",
]
