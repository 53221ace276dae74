"""Extraction strategies and the default precedence-ordered strategy set."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from nexus_scaffold.constants import (
    DEFAULT_MIN_FALLBACK_CHARS,
    STRATEGY_FENCED,
    STRATEGY_HEURISTIC,
    STRATEGY_INDENTED,
    STRATEGY_MARKER,
    STRATEGY_ORDER,
)
from nexus_scaffold.parsing.strategies.base import Candidate, ParsingStrategy
from nexus_scaffold.parsing.strategies.fenced import FencedBlockStrategy
from nexus_scaffold.parsing.strategies.heuristic import HeuristicFallbackStrategy
from nexus_scaffold.parsing.strategies.indented import IndentedBlockStrategy
from nexus_scaffold.parsing.strategies.marker import MarkerStrategy


def build_strategies(
    names: Sequence[str] = STRATEGY_ORDER,
    *,
    min_fallback_chars: int = DEFAULT_MIN_FALLBACK_CHARS,
    logger: Any | None = None,
) -> tuple[ParsingStrategy, ...]:
    """Instantiate strategies by name, in the order given."""

    factories = {
        STRATEGY_MARKER: lambda: MarkerStrategy(logger=logger),
        STRATEGY_INDENTED: lambda: IndentedBlockStrategy(logger=logger),
        STRATEGY_FENCED: lambda: FencedBlockStrategy(logger=logger),
        STRATEGY_HEURISTIC: lambda: HeuristicFallbackStrategy(
            min_chars=min_fallback_chars, logger=logger
        ),
    }
    built: list[ParsingStrategy] = []
    seen: set[str] = set()
    for name in names:
        if name not in factories:
            valid = ", ".join(STRATEGY_ORDER)
            raise ValueError(f"unknown parsing strategy {name!r}; expected one of: {valid}")
        if name in seen:
            raise ValueError(f"parsing strategy listed more than once: {name!r}")
        seen.add(name)
        built.append(factories[name]())
    if not built:
        raise ValueError("at least one parsing strategy is required")
    return tuple(built)


__all__ = [
    "Candidate",
    "FencedBlockStrategy",
    "HeuristicFallbackStrategy",
    "IndentedBlockStrategy",
    "MarkerStrategy",
    "ParsingStrategy",
    "build_strategies",
]
