"""Marker-prefixed strategy: ``>>> FILE: path`` lines delimit files."""

from __future__ import annotations

from typing import Any

import structlog

from nexus_scaffold.constants import FILE_MARKER, STRATEGY_MARKER
from nexus_scaffold.parsing.strategies.base import Candidate, keep_valid, normalize_newlines


class MarkerStrategy:
    """
    Highest-precedence strategy.

    A line starting at column 0 with the marker opens a file; content is every
    following line up to the next marker or end of input. Leading newlines are
    removed and trailing whitespace is trimmed. Paths must carry an extension and
    blank files are dropped.
    """

    name = STRATEGY_MARKER

    def __init__(self, *, marker: str = FILE_MARKER, logger: Any | None = None) -> None:
        if not marker.strip():
            raise ValueError("marker must not be empty")
        self._marker = marker
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def attempt(self, raw_text: str) -> tuple[Candidate, ...]:
        found: list[Candidate] = []
        current_path: str | None = None
        buffer: list[str] = []

        for line in normalize_newlines(raw_text).split("\n"):
            if line.startswith(self._marker):
                if current_path is not None:
                    found.append(Candidate(current_path, _finish(buffer)))
                current_path = line[len(self._marker) :].strip()
                buffer = []
                continue
            if current_path is not None:
                buffer.append(line)

        if current_path is not None:
            found.append(Candidate(current_path, _finish(buffer)))

        non_blank = []
        for candidate in found:
            if candidate.content.strip():
                non_blank.append(candidate)
            else:
                self._logger.debug(
                    "parser_candidate_dropped",
                    strategy=self.name,
                    path=candidate.path,
                    issue="blank_content",
                )
        return keep_valid(
            non_blank,
            strategy=self.name,
            logger=self._logger,
            require_extension=True,
        )


def _finish(lines: list[str]) -> str:
    return "\n".join(lines).lstrip("\n").rstrip()


__all__ = ["MarkerStrategy"]
