"""
nexus-scaffold — indented-block strategy

File: src/nexus_scaffold/parsing/strategies/indented.py
Last updated: 2026-10-18

Purpose
- Recover files from the "directory declaration / file header / indented body" layout:

      /src/
      App.kt:
          class App

Functional requirements
- Scanning is an explicit state machine over classified lines; every
  (state, line kind) pair has one entry in the transition table.
- A directory declaration replaces the folder context, which then persists across
  file headers until the next declaration.
- The indentation prefix of the first non-blank body line is stripped from each
  line that starts with it; other lines are only left-trimmed. Leading blank body
  lines are skipped and the body is right-trimmed when the file closes.
- Bodies containing a column-0 code fence belong to the fenced strategy and are
  not emitted here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Final

import structlog

from nexus_scaffold.constants import STRATEGY_INDENTED
from nexus_scaffold.parsing.strategies.base import Candidate, keep_valid, normalize_newlines

_DIRECTORY_RE: Final[re.Pattern[str]] = re.compile(r"^/([\w\-.]+(?:/[\w\-.]+)*)/\s*$")
_FILE_HEADER_RE: Final[re.Pattern[str]] = re.compile(r"^(?![/\s])([\w\-./]+\.\w+):?\s*$")
_FENCE_RE: Final[re.Pattern[str]] = re.compile(r"^(```|~~~)")
_LEADING_WS_RE: Final[re.Pattern[str]] = re.compile(r"^[ \t]*")


class ScanState(StrEnum):
    IDLE = "idle"
    IN_DIRECTORY = "in_directory"
    IN_FILE_CONTENT = "in_file_content"


class LineKind(StrEnum):
    DIRECTORY = "directory"
    FILE_HEADER = "file_header"
    CONTENT = "content"
    BLANK = "blank"


class Action(StrEnum):
    SKIP = "skip"
    SET_DIRECTORY = "set_directory"
    OPEN_FILE = "open_file"
    APPEND = "append"
    CLOSE_SET_DIRECTORY = "close_set_directory"
    CLOSE_OPEN_FILE = "close_open_file"


TRANSITIONS: Final = MappingProxyType(
    {
        (ScanState.IDLE, LineKind.DIRECTORY): (ScanState.IN_DIRECTORY, Action.SET_DIRECTORY),
        (ScanState.IDLE, LineKind.FILE_HEADER): (ScanState.IN_FILE_CONTENT, Action.OPEN_FILE),
        (ScanState.IDLE, LineKind.CONTENT): (ScanState.IDLE, Action.SKIP),
        (ScanState.IDLE, LineKind.BLANK): (ScanState.IDLE, Action.SKIP),
        (ScanState.IN_DIRECTORY, LineKind.DIRECTORY): (
            ScanState.IN_DIRECTORY,
            Action.SET_DIRECTORY,
        ),
        (ScanState.IN_DIRECTORY, LineKind.FILE_HEADER): (
            ScanState.IN_FILE_CONTENT,
            Action.OPEN_FILE,
        ),
        (ScanState.IN_DIRECTORY, LineKind.CONTENT): (ScanState.IN_DIRECTORY, Action.SKIP),
        (ScanState.IN_DIRECTORY, LineKind.BLANK): (ScanState.IN_DIRECTORY, Action.SKIP),
        (ScanState.IN_FILE_CONTENT, LineKind.DIRECTORY): (
            ScanState.IN_DIRECTORY,
            Action.CLOSE_SET_DIRECTORY,
        ),
        (ScanState.IN_FILE_CONTENT, LineKind.FILE_HEADER): (
            ScanState.IN_FILE_CONTENT,
            Action.CLOSE_OPEN_FILE,
        ),
        (ScanState.IN_FILE_CONTENT, LineKind.CONTENT): (
            ScanState.IN_FILE_CONTENT,
            Action.APPEND,
        ),
        (ScanState.IN_FILE_CONTENT, LineKind.BLANK): (
            ScanState.IN_FILE_CONTENT,
            Action.APPEND,
        ),
    }
)


def classify_line(line: str) -> tuple[LineKind, str]:
    """Return the line kind and, for headers and declarations, the captured name."""

    if not line.strip():
        return LineKind.BLANK, ""
    directory = _DIRECTORY_RE.match(line)
    if directory is not None:
        return LineKind.DIRECTORY, directory.group(1).strip()
    header = _FILE_HEADER_RE.match(line)
    if header is not None:
        return LineKind.FILE_HEADER, header.group(1)
    return LineKind.CONTENT, ""


def outdent(lines: list[str]) -> str:
    """Strip the first body line's indentation prefix and right-trim the result."""

    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    body = lines[start:]
    if not body:
        return ""

    prefix_match = _LEADING_WS_RE.match(body[0])
    prefix = prefix_match.group(0) if prefix_match is not None else ""
    out: list[str] = []
    for line in body:
        if prefix and line.startswith(prefix):
            out.append(line[len(prefix) :])
        elif prefix:
            out.append(line.lstrip())
        else:
            out.append(line)
    return "\n".join(out).rstrip()


@dataclass(slots=True)
class _Scan:
    state: ScanState = ScanState.IDLE
    directory: str = ""
    file_name: str | None = None
    body: list[str] = field(default_factory=list)
    found: list[Candidate] = field(default_factory=list)
    fenced_bodies: list[str] = field(default_factory=list)

    def close(self) -> None:
        if self.file_name is None:
            return
        path = f"{self.directory}/{self.file_name}" if self.directory else self.file_name
        if any(_FENCE_RE.match(line) for line in self.body):
            self.fenced_bodies.append(path)
        else:
            content = outdent(self.body)
            if content.strip():
                self.found.append(Candidate(path, content))
        self.file_name = None
        self.body = []


class IndentedBlockStrategy:
    name = STRATEGY_INDENTED

    def __init__(self, *, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def attempt(self, raw_text: str) -> tuple[Candidate, ...]:
        scan = _Scan()
        for line in normalize_newlines(raw_text).split("\n"):
            kind, captured = classify_line(line)
            next_state, action = TRANSITIONS[(scan.state, kind)]
            if action in {Action.CLOSE_SET_DIRECTORY, Action.CLOSE_OPEN_FILE}:
                scan.close()
            if action in {Action.SET_DIRECTORY, Action.CLOSE_SET_DIRECTORY}:
                scan.directory = captured
            elif action in {Action.OPEN_FILE, Action.CLOSE_OPEN_FILE}:
                scan.file_name = captured
                scan.body = []
            elif action is Action.APPEND:
                scan.body.append(line)
            scan.state = next_state
        scan.close()

        for path in scan.fenced_bodies:
            self._logger.debug(
                "parser_candidate_dropped",
                strategy=self.name,
                path=path,
                issue="fenced_body",
            )
        return keep_valid(scan.found, strategy=self.name, logger=self._logger)


__all__ = [
    "TRANSITIONS",
    "Action",
    "IndentedBlockStrategy",
    "LineKind",
    "ScanState",
    "classify_line",
    "outdent",
]
