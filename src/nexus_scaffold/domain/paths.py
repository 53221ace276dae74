"""
nexus-scaffold — path validation and root-name sanitizing

File: src/nexus_scaffold/domain/paths.py
Last updated: 2026-10-18

Purpose
- Decide whether a candidate relative path taken from untrusted text is safe and
  well-formed, and return its normalized ``/``-separated form.

Functional requirements
- Rules apply in a fixed order and the first failing rule decides the issue code:
  blank, traversal, absolute, missing extension, illegal character, not a file.
- Normalization converts backslashes, collapses repeated slashes, and drops ``.``
  segments (including a leading ``./``).
- Pure functions; called by every strategy, the engine, archive naming, and the
  materializer before a path is accepted.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Final

from nexus_scaffold.constants import DEFAULT_ROOT_NAME, MAX_ROOT_NAME_LENGTH
from nexus_scaffold.domain.results import ErrorKind, Outcome, Success, failure

_SEGMENT_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"[/\\]")
_DRIVE_LETTER_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z]:")
_REPEATED_SLASH_RE: Final[re.Pattern[str]] = re.compile(r"/{2,}")
_ROOT_INVALID_RE: Final[re.Pattern[str]] = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s+")

_ILLEGAL_CHARACTERS: Final[frozenset[str]] = frozenset(':*?"<>|')


class PathIssue(StrEnum):
    BLANK = "blank"
    TRAVERSAL = "traversal"
    ABSOLUTE = "absolute"
    MISSING_EXTENSION = "missing_extension"
    ILLEGAL_CHARACTER = "illegal_character"
    NOT_A_FILE = "not_a_file"


def validate_path(
    raw: str,
    *,
    require_extension: bool = False,
    allow_root_relative: bool = False,
) -> Outcome[str]:
    """
    Validate ``raw`` and return its normalized relative form.

    On rejection the ``Failure`` is ``ErrorKind.INVALID_PATH`` with
    ``detail == (issue_code, raw)``.
    """

    if not isinstance(raw, str) or not raw.strip():
        return _reject(PathIssue.BLANK, raw if isinstance(raw, str) else "")

    candidate = raw.strip()
    segments = _SEGMENT_SPLIT_RE.split(candidate)

    if any(segment == ".." for segment in segments):
        return _reject(PathIssue.TRAVERSAL, raw)

    if _DRIVE_LETTER_RE.match(candidate):
        return _reject(PathIssue.ABSOLUTE, raw)
    if candidate[0] in "/\\":
        single_leading = len(candidate) == 1 or candidate[1] not in "/\\"
        if not (allow_root_relative and single_leading):
            return _reject(PathIssue.ABSOLUTE, raw)

    final_segment = segments[-1]
    if require_extension and final_segment and not has_extension(final_segment):
        return _reject(PathIssue.MISSING_EXTENSION, raw)

    if any(_is_illegal_character(char) for char in candidate):
        return _reject(PathIssue.ILLEGAL_CHARACTER, raw)

    normalized = _REPEATED_SLASH_RE.sub("/", candidate.replace("\\", "/"))
    if normalized.startswith("/"):
        normalized = normalized[1:]
    parts = normalized.split("/")
    if parts[-1] in {"", "."}:
        return _reject(PathIssue.NOT_A_FILE, raw)
    kept = [part for part in parts if part != "."]
    if not kept:
        return _reject(PathIssue.NOT_A_FILE, raw)
    return Success("/".join(kept))


def is_safe_path(
    raw: str,
    *,
    require_extension: bool = False,
    allow_root_relative: bool = False,
) -> bool:
    """Return ``True`` when ``raw`` passes ``validate_path``."""

    outcome = validate_path(
        raw,
        require_extension=require_extension,
        allow_root_relative=allow_root_relative,
    )
    return outcome.ok


def has_extension(filename: str) -> bool:
    """Return ``True`` for ``name.ext`` style names; dot-leading names do not count."""

    dot = filename.rfind(".")
    return 0 < dot < len(filename) - 1


def parent_directories(path: str) -> tuple[str, ...]:
    """Return ancestor directories of a normalized path, root to leaf."""

    parts = path.split("/")[:-1]
    return tuple("/".join(parts[: index + 1]) for index in range(len(parts)))


def sanitize_root_name(name: str | None, *, default: str = DEFAULT_ROOT_NAME) -> str:
    """
    Turn a caller-supplied project name into a single safe path segment.

    Invalid characters become ``_``, whitespace runs collapse to ``_``, leading and
    trailing dots are removed, and an empty result falls back to ``default``.
    """

    if name is None:
        return default
    cleaned = _ROOT_INVALID_RE.sub("_", name.strip())
    cleaned = _WHITESPACE_RE.sub("_", cleaned).strip(".")
    cleaned = cleaned[:MAX_ROOT_NAME_LENGTH].rstrip(".")
    return cleaned or default


def _is_illegal_character(char: str) -> bool:
    return ord(char) < 0x20 or char in _ILLEGAL_CHARACTERS


def _reject(issue: PathIssue, raw: str) -> Outcome[str]:
    return failure(ErrorKind.INVALID_PATH, f"path rejected: {issue}", str(issue), raw)


__all__ = [
    "PathIssue",
    "has_extension",
    "is_safe_path",
    "parent_directories",
    "sanitize_root_name",
    "validate_path",
]
