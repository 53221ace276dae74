"""Last-resort strategy: name every fenced block by index, or keep the whole text."""

from __future__ import annotations

from typing import Any

import structlog

from nexus_scaffold.constants import (
    DEFAULT_MIN_FALLBACK_CHARS,
    FALLBACK_FILE_NAME,
    STRATEGY_HEURISTIC,
)
from nexus_scaffold.parsing.strategies.base import Candidate, keep_valid, normalize_newlines
from nexus_scaffold.parsing.strategies.fenced import iter_fenced_regions
from nexus_scaffold.parsing.strategies.languages import extension_for_language


class HeuristicFallbackStrategy:
    """
    Every non-blank fenced region becomes ``file_<n>.<ext>`` with the extension
    looked up from the fence language tag. Without any fenced region, input longer
    than ``min_chars`` (after stripping) becomes a single ``output.txt``.
    """

    name = STRATEGY_HEURISTIC

    def __init__(
        self,
        *,
        min_chars: int = DEFAULT_MIN_FALLBACK_CHARS,
        logger: Any | None = None,
    ) -> None:
        if min_chars < 0:
            raise ValueError("min_chars must be >= 0")
        self._min_chars = min_chars
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def attempt(self, raw_text: str) -> tuple[Candidate, ...]:
        found: list[Candidate] = []
        saw_region = False
        for region in iter_fenced_regions(raw_text):
            saw_region = True
            if not region.content.strip():
                continue
            extension = extension_for_language(region.language)
            found.append(Candidate(f"file_{len(found) + 1}.{extension}", region.content))

        if not saw_region:
            whole = normalize_newlines(raw_text).strip()
            if len(whole) > self._min_chars:
                found.append(Candidate(FALLBACK_FILE_NAME, whole))

        return keep_valid(found, strategy=self.name, logger=self._logger)


__all__ = ["HeuristicFallbackStrategy"]
