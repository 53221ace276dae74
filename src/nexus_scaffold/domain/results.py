"""
nexus-scaffold — shared outcome types

File: src/nexus_scaffold/domain/results.py
Last updated: 2026-10-18

Purpose
- One tagged-union result shared by path validation, parsing, archiving, and
  materialization: ``Success[T]`` or ``Failure`` carrying an ``ErrorKind``.

Functional requirements
- Core operations return outcomes; exceptions appear only at explicit unwrap points.
- ``Failure.detail`` is machine-readable (paths, issue codes), never presentation text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, NoReturn, TypeAlias, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    EMPTY_INPUT = "empty_input"
    INPUT_TOO_LARGE = "input_too_large"
    NO_FILES_EXTRACTED = "no_files_extracted"
    DUPLICATE_PATHS = "duplicate_paths"
    INVALID_PATH = "invalid_path"
    ARCHIVE_WRITE_FAILURE = "archive_write_failure"
    MATERIALIZE_WRITE_FAILURE = "materialize_write_failure"
    SANDBOX_ESCAPE = "sandbox_escape"
    CANCELLED = "cancelled"
    PROVIDER_FAILURE = "provider_failure"


class ScaffoldError(RuntimeError):
    """Raised when a ``Failure`` is unwrapped at an API edge."""

    def __init__(self, failure: Failure) -> None:
        self.failure = failure
        super().__init__(failure.describe())

    @property
    def kind(self) -> ErrorKind:
        return self.failure.kind


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Failure:
    kind: ErrorKind
    message: str
    detail: tuple[str, ...] = field(default=())
    excerpt: str | None = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise ScaffoldError(self)

    def describe(self) -> str:
        if not self.detail:
            return f"{self.kind}: {self.message}"
        return f"{self.kind}: {self.message} ({', '.join(self.detail)})"

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "kind": str(self.kind),
            "message": self.message,
            "detail": list(self.detail),
        }
        if self.excerpt is not None:
            payload["excerpt"] = self.excerpt
        return payload


Outcome: TypeAlias = Success[T] | Failure


def failure(
    kind: ErrorKind,
    message: str,
    *detail: str,
    excerpt: str | None = None,
) -> Failure:
    """Build a ``Failure`` with positional detail items."""

    return Failure(kind=kind, message=message, detail=tuple(detail), excerpt=excerpt)


def unwrap(outcome: Outcome[T]) -> T:
    """Return the success value or raise ``ScaffoldError``."""

    if isinstance(outcome, Failure):
        outcome.unwrap()
    return outcome.value


__all__ = [
    "ErrorKind",
    "Failure",
    "Outcome",
    "ScaffoldError",
    "Success",
    "failure",
    "unwrap",
]
