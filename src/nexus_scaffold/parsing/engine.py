"""
nexus-scaffold — parser engine

File: src/nexus_scaffold/parsing/engine.py
Last updated: 2026-10-18

Purpose
- Run extraction strategies in precedence order and turn the first non-empty result
  into a ``ProjectStructure``, or into a typed ``Failure``.

Functional requirements
- Blank input fails fast with ``empty_input``; oversized input with ``input_too_large``.
- The first strategy returning any valid candidate wins; lower-ranked strategies are
  never consulted or merged once a winner exists.
- Winning candidates are re-validated; duplicate normalized paths are a hard
  ``duplicate_paths`` failure listing the offending paths.
- Heuristic-fallback wins are logged at warning level and recorded in metadata.

Non-functional requirements
- Pure and thread-safe: no I/O and no shared mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from nexus_scaffold.constants import (
    DEFAULT_MAX_FILES,
    DEFAULT_MAX_INPUT_BYTES,
    DEFAULT_MIN_FALLBACK_CHARS,
    DEFAULT_ROOT_NAME,
    EXCERPT_CHARS,
    STRATEGY_HEURISTIC,
    STRATEGY_ORDER,
)
from nexus_scaffold.domain.models import ProjectFile, ProjectStructure, conflicting_paths
from nexus_scaffold.domain.paths import sanitize_root_name, validate_path
from nexus_scaffold.domain.results import ErrorKind, Failure, Outcome, Success, failure, unwrap
from nexus_scaffold.parsing.strategies import build_strategies

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from nexus_scaffold.parsing.strategies import Candidate, ParsingStrategy


@dataclass(frozen=True, slots=True)
class ParserLimits:
    max_input_bytes: int = DEFAULT_MAX_INPUT_BYTES
    max_files: int = DEFAULT_MAX_FILES

    def __post_init__(self) -> None:
        if self.max_input_bytes <= 0:
            raise ValueError("max_input_bytes must be > 0")
        if self.max_files <= 0:
            raise ValueError("max_files must be > 0")


class ParserEngine:
    """Strategy-ordered parser producing ``Outcome[ProjectStructure]``."""

    def __init__(
        self,
        strategies: Sequence[ParsingStrategy] | None = None,
        *,
        limits: ParserLimits | None = None,
        default_root: str = DEFAULT_ROOT_NAME,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._strategies = (
            tuple(strategies) if strategies is not None else build_strategies(logger=self._logger)
        )
        if not self._strategies:
            raise ValueError("at least one parsing strategy is required")
        self._limits = limits or ParserLimits()
        self._default_root = sanitize_root_name(default_root)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, logger: Any | None = None) -> ParserEngine:
        """Build an engine from the ``[parser]`` config section."""

        parser_cfg = config.get("parser", {})
        bound = logger if logger is not None else structlog.get_logger(__name__)
        strategies = build_strategies(
            tuple(parser_cfg.get("strategies", STRATEGY_ORDER)),
            min_fallback_chars=int(
                parser_cfg.get("min_fallback_chars", DEFAULT_MIN_FALLBACK_CHARS)
            ),
            logger=bound,
        )
        limits = ParserLimits(
            max_input_bytes=int(parser_cfg.get("max_input_bytes", DEFAULT_MAX_INPUT_BYTES)),
            max_files=int(parser_cfg.get("max_files", DEFAULT_MAX_FILES)),
        )
        return cls(
            strategies,
            limits=limits,
            default_root=str(parser_cfg.get("default_root", DEFAULT_ROOT_NAME)),
            logger=bound,
        )

    @property
    def strategy_names(self) -> tuple[str, ...]:
        return tuple(strategy.name for strategy in self._strategies)

    @property
    def limits(self) -> ParserLimits:
        return self._limits

    def parse(self, raw_text: str, root_name: str | None = None) -> Outcome[ProjectStructure]:
        if not isinstance(raw_text, str) or not raw_text.strip():
            self._logger.info("parser_rejected_input", reason=str(ErrorKind.EMPTY_INPUT))
            return failure(ErrorKind.EMPTY_INPUT, "input text is blank")

        input_bytes = len(raw_text.encode("utf-8"))
        if input_bytes > self._limits.max_input_bytes:
            self._logger.warning(
                "parser_rejected_input",
                reason=str(ErrorKind.INPUT_TOO_LARGE),
                input_bytes=input_bytes,
                max_input_bytes=self._limits.max_input_bytes,
            )
            return failure(
                ErrorKind.INPUT_TOO_LARGE,
                "input text exceeds the configured size limit",
                str(input_bytes),
                str(self._limits.max_input_bytes),
            )

        root = sanitize_root_name(root_name, default=self._default_root)
        selected = self._select(raw_text)
        if selected is None:
            self._logger.info("parser_no_files", root=root, input_bytes=input_bytes)
            return failure(
                ErrorKind.NO_FILES_EXTRACTED,
                "no strategy extracted any file",
                excerpt=raw_text[:EXCERPT_CHARS],
            )
        strategy_name, candidates = selected

        normalized: list[ProjectFile] = []
        for candidate in candidates:
            outcome = validate_path(candidate.path)
            if isinstance(outcome, Failure):
                self._logger.debug(
                    "parser_candidate_dropped",
                    strategy=strategy_name,
                    path=candidate.path,
                    issue=outcome.detail[0],
                )
                continue
            normalized.append(ProjectFile(path=outcome.value, content=candidate.content))

        conflicts = conflicting_paths(item.path for item in normalized)
        if conflicts:
            self._logger.warning(
                "parser_duplicate_paths", strategy=strategy_name, paths=list(conflicts)
            )
            return failure(ErrorKind.DUPLICATE_PATHS, "conflicting file paths", *conflicts)

        if not normalized:
            return failure(
                ErrorKind.NO_FILES_EXTRACTED,
                "no valid file remained after validation",
                excerpt=raw_text[:EXCERPT_CHARS],
            )

        if len(normalized) > self._limits.max_files:
            self._logger.warning(
                "parser_rejected_input",
                reason=str(ErrorKind.INPUT_TOO_LARGE),
                file_count=len(normalized),
                max_files=self._limits.max_files,
            )
            return failure(
                ErrorKind.INPUT_TOO_LARGE,
                "extracted file count exceeds the configured limit",
                str(len(normalized)),
                str(self._limits.max_files),
            )

        structure = ProjectStructure.build(root, normalized, strategy=strategy_name)
        self._logger.info(
            "parser_completed",
            root=structure.root,
            strategy=strategy_name,
            file_count=structure.metadata.file_count,
            total_bytes=structure.metadata.total_bytes,
        )
        return Success(structure)

    def parse_or_raise(self, raw_text: str, root_name: str | None = None) -> ProjectStructure:
        """Like ``parse`` but raises ``ScaffoldError`` on failure."""

        return unwrap(self.parse(raw_text, root_name))

    def _select(self, raw_text: str) -> tuple[str, tuple[Candidate, ...]] | None:
        for strategy in self._strategies:
            candidates = strategy.attempt(raw_text)
            if not candidates:
                self._logger.debug("parser_strategy_empty", strategy=strategy.name)
                continue
            if strategy.name == STRATEGY_HEURISTIC:
                self._logger.warning(
                    "parser_heuristic_fallback",
                    strategy=strategy.name,
                    candidate_count=len(candidates),
                )
            else:
                self._logger.info(
                    "parser_strategy_selected",
                    strategy=strategy.name,
                    candidate_count=len(candidates),
                )
            return strategy.name, candidates
        return None


__all__ = ["ParserEngine", "ParserLimits"]
