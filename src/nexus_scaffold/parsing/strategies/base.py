"""Common contract for text-to-file extraction strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple, Protocol, runtime_checkable

from nexus_scaffold.domain.paths import validate_path
from nexus_scaffold.domain.results import Failure

if TYPE_CHECKING:
    from collections.abc import Iterable


class Candidate(NamedTuple):
    path: str
    content: str


@runtime_checkable
class ParsingStrategy(Protocol):
    """
    One extraction algorithm.

    ``attempt`` returns the valid candidates it found, in input order; an empty tuple
    means the strategy found no structure. It never raises for malformed input.
    """

    name: str

    def attempt(self, raw_text: str) -> tuple[Candidate, ...]: ...


def keep_valid(
    candidates: Iterable[Candidate],
    *,
    strategy: str,
    logger: Any,
    require_extension: bool = False,
    allow_root_relative: bool = False,
) -> tuple[Candidate, ...]:
    """Normalize candidate paths, dropping rejected ones with a debug event."""

    kept: list[Candidate] = []
    for candidate in candidates:
        outcome = validate_path(
            candidate.path,
            require_extension=require_extension,
            allow_root_relative=allow_root_relative,
        )
        if isinstance(outcome, Failure):
            logger.debug(
                "parser_candidate_dropped",
                strategy=strategy,
                path=candidate.path,
                issue=outcome.detail[0],
            )
            continue
        kept.append(Candidate(outcome.unwrap(), candidate.content))
    return tuple(kept)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = ["Candidate", "ParsingStrategy", "keep_valid", "normalize_newlines"]
