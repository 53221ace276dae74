"""
nexus-scaffold — generation pipeline

File: src/nexus_scaffold/pipeline.py
Last updated: 2026-10-18

Purpose
- Glue the parser, archive builder, and materializer into one request flow:
  raw text (or a text provider's answer) in, a ZIP archive out.

Functional requirements
- Packaging runs either directly from the parsed structure or via disk (materialize,
  then archive the materialized directory).
- Every stage transition is reported through an optional state callback.
- Provider failures, timeouts, and cancellation become typed ``Failure`` outcomes.
- Blocking I/O runs in worker threads for async callers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from nexus_scaffold.archive.builder import ArchiveBuilder
from nexus_scaffold.domain.results import ErrorKind, Failure, Outcome, Success, failure
from nexus_scaffold.materialize.materializer import FileMaterializer
from nexus_scaffold.parsing.engine import ParserEngine
from nexus_scaffold.parsing.render import InjectedPrompt, build_generation_prompt
from nexus_scaffold.utils.concurrency import OperationCancelledError, run_with_timeout
from nexus_scaffold.utils.fs import temp_directory

if TYPE_CHECKING:
    import os
    from collections.abc import Callable, Mapping

    from nexus_scaffold.archive.builder import Destination
    from nexus_scaffold.domain.models import (
        ArchiveSummary,
        MaterializeSummary,
        ProjectStructure,
    )
    from nexus_scaffold.utils.concurrency import CancellationToken

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 120.0


class ProviderErrorKind(StrEnum):
    TRANSPORT = "transport"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


class ProviderError(RuntimeError):
    """Raised by a ``TextProvider`` when it cannot produce an answer."""

    def __init__(self, kind: ProviderErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


@runtime_checkable
class TextProvider(Protocol):
    async def execute(self, prompt: str) -> str: ...


class GenerationState(StrEnum):
    IDLE = "idle"
    PREPARING = "preparing"
    CALLING_PROVIDER = "calling_provider"
    PARSING = "parsing"
    WRITING_FILES = "writing_files"
    CREATING_ARCHIVE = "creating_archive"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class StateUpdate:
    state: GenerationState
    message: str = ""
    current: int = 0
    total: int = 0


@dataclass(frozen=True, slots=True)
class GenerationResult:
    structure: ProjectStructure
    archive: ArchiveSummary
    materialized: MaterializeSummary | None = None
    prompt: InjectedPrompt | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "root": self.structure.root,
            "strategy": self.structure.metadata.strategy,
            "files": list(self.structure.paths()),
            "archive": self.archive.to_dict(),
        }
        if self.materialized is not None:
            payload["materialized"] = self.materialized.to_dict()
        if self.prompt is not None:
            payload["prompt_hash"] = self.prompt.prompt_hash
        return payload


class GenerationPipeline:
    """Parse text and package the result as a ZIP archive."""

    def __init__(
        self,
        *,
        parser: ParserEngine | None = None,
        archive_builder: ArchiveBuilder | None = None,
        materializer: FileMaterializer | None = None,
        logger: Any | None = None,
    ) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._parser = parser or ParserEngine(logger=self._logger)
        self._archive_builder = archive_builder or ArchiveBuilder(logger=self._logger)
        self._materializer = materializer or FileMaterializer(logger=self._logger)

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any], *, logger: Any | None = None
    ) -> GenerationPipeline:
        bound = logger if logger is not None else structlog.get_logger(__name__)
        return cls(
            parser=ParserEngine.from_config(config, logger=bound),
            archive_builder=ArchiveBuilder.from_config(config, logger=bound),
            materializer=FileMaterializer.from_config(config, logger=bound),
            logger=bound,
        )

    @property
    def parser(self) -> ParserEngine:
        return self._parser

    def package(
        self,
        raw_text: str,
        destination: Destination,
        *,
        root_name: str | None = None,
        via_disk: bool = False,
        sandbox_root: str | os.PathLike[str] | None = None,
        cancel_token: CancellationToken | None = None,
        on_state: Callable[[StateUpdate], None] | None = None,
    ) -> Outcome[GenerationResult]:
        """Parse ``raw_text`` and write the archive to ``destination``.

        With ``via_disk`` the structure is materialized first (under ``sandbox_root``,
        or a temporary directory removed afterwards) and the archive is built from disk.
        """

        notify = _notifier(on_state)
        notify(StateUpdate(GenerationState.PARSING, "parsing input"))
        parsed = self._parser.parse(raw_text, root_name)
        if isinstance(parsed, Failure):
            return self._fail(parsed, notify)
        structure = parsed.value

        if not via_disk:
            notify(StateUpdate(GenerationState.CREATING_ARCHIVE, "creating archive"))
            archived = self._archive_builder.build_from_structure(
                structure,
                destination,
                cancel_token=cancel_token,
                progress=_archive_progress(notify),
            )
            if isinstance(archived, Failure):
                return self._fail(archived, notify)
            return self._complete(GenerationResult(structure, archived.value), notify)

        if sandbox_root is not None:
            return self._package_via_disk(
                structure,
                destination,
                sandbox_root,
                cancel_token=cancel_token,
                notify=notify,
            )
        with temp_directory() as scratch:
            return self._package_via_disk(
                structure,
                destination,
                scratch,
                cancel_token=cancel_token,
                notify=notify,
            )

    async def package_async(
        self,
        raw_text: str,
        destination: Destination,
        *,
        root_name: str | None = None,
        via_disk: bool = False,
        sandbox_root: str | os.PathLike[str] | None = None,
        cancel_token: CancellationToken | None = None,
        on_state: Callable[[StateUpdate], None] | None = None,
    ) -> Outcome[GenerationResult]:
        return await asyncio.to_thread(
            self.package,
            raw_text,
            destination,
            root_name=root_name,
            via_disk=via_disk,
            sandbox_root=sandbox_root,
            cancel_token=cancel_token,
            on_state=on_state,
        )

    async def generate(
        self,
        provider: TextProvider,
        user_request: str,
        destination: Destination,
        *,
        project_name: str | None = None,
        via_disk: bool = False,
        sandbox_root: str | os.PathLike[str] | None = None,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
        cancel_token: CancellationToken | None = None,
        on_state: Callable[[StateUpdate], None] | None = None,
    ) -> Outcome[GenerationResult]:
        """Ask ``provider`` for a project and package its answer."""

        notify = _notifier(on_state)
        notify(StateUpdate(GenerationState.PREPARING, "preparing prompt"))
        prompt = build_generation_prompt(user_request, project_name=project_name)
        self._logger.info(
            "pipeline_prompt_prepared",
            was_injected=prompt.was_injected,
            prompt_hash=prompt.prompt_hash,
        )

        notify(StateUpdate(GenerationState.CALLING_PROVIDER, "waiting for provider"))
        try:
            answer = await run_with_timeout(
                provider.execute(prompt.combined_prompt),
                timeout_seconds,
                cancel_token,
            )
        except ProviderError as exc:
            return self._fail(
                failure(ErrorKind.PROVIDER_FAILURE, str(exc), str(exc.kind)),
                notify,
            )
        except TimeoutError:
            return self._fail(
                failure(
                    ErrorKind.PROVIDER_FAILURE,
                    f"provider did not answer within {timeout_seconds} seconds",
                    str(ProviderErrorKind.TIMEOUT),
                ),
                notify,
            )
        except OperationCancelledError:
            return self._fail(failure(ErrorKind.CANCELLED, "generation cancelled"), notify)

        if not isinstance(answer, str) or not answer.strip():
            return self._fail(
                failure(
                    ErrorKind.PROVIDER_FAILURE,
                    "provider returned an empty answer",
                    str(ProviderErrorKind.EMPTY_RESPONSE),
                ),
                notify,
            )

        packaged = await self.package_async(
            answer,
            destination,
            root_name=project_name,
            via_disk=via_disk,
            sandbox_root=sandbox_root,
            cancel_token=cancel_token,
            on_state=on_state,
        )
        if isinstance(packaged, Failure):
            return packaged
        result = packaged.value
        return Success(
            GenerationResult(
                structure=result.structure,
                archive=result.archive,
                materialized=result.materialized,
                prompt=prompt,
            )
        )

    def _package_via_disk(
        self,
        structure: ProjectStructure,
        destination: Destination,
        sandbox_root: str | os.PathLike[str],
        *,
        cancel_token: CancellationToken | None,
        notify: Callable[[StateUpdate], None],
    ) -> Outcome[GenerationResult]:
        total = structure.metadata.file_count
        notify(StateUpdate(GenerationState.WRITING_FILES, "writing files", 0, total))
        materialized = self._materializer.materialize(
            structure,
            sandbox_root,
            cancel_token=cancel_token,
            progress=lambda current, count, _path: notify(
                StateUpdate(GenerationState.WRITING_FILES, "writing files", current, count)
            ),
        )
        if isinstance(materialized, Failure):
            return self._fail(materialized, notify)

        notify(StateUpdate(GenerationState.CREATING_ARCHIVE, "creating archive"))
        archived = self._archive_builder.build_from_directory(
            materialized.value.output_dir,
            destination,
            archive_root=structure.root,
            cancel_token=cancel_token,
            progress=_archive_progress(notify),
        )
        if isinstance(archived, Failure):
            return self._fail(archived, notify)
        return self._complete(
            GenerationResult(structure, archived.value, materialized=materialized.value),
            notify,
        )

    def _complete(
        self, result: GenerationResult, notify: Callable[[StateUpdate], None]
    ) -> Outcome[GenerationResult]:
        self._logger.info(
            "pipeline_completed",
            root=result.structure.root,
            file_count=result.structure.metadata.file_count,
            via_disk=result.materialized is not None,
        )
        notify(StateUpdate(GenerationState.COMPLETED, "completed"))
        return Success(result)

    def _fail(self, outcome: Failure, notify: Callable[[StateUpdate], None]) -> Failure:
        self._logger.warning(
            "pipeline_failed", kind=str(outcome.kind), detail=list(outcome.detail)
        )
        notify(StateUpdate(GenerationState.FAILED, outcome.message))
        return outcome


def _notifier(on_state: Callable[[StateUpdate], None] | None) -> Callable[[StateUpdate], None]:
    if on_state is None:
        return lambda _update: None
    return on_state


def _archive_progress(
    notify: Callable[[StateUpdate], None],
) -> Callable[[int, int, str], None]:
    def report(current: int, total: int, _name: str) -> None:
        notify(StateUpdate(GenerationState.CREATING_ARCHIVE, "creating archive", current, total))

    return report


__all__ = [
    "DEFAULT_PROVIDER_TIMEOUT_SECONDS",
    "GenerationPipeline",
    "GenerationResult",
    "GenerationState",
    "ProviderError",
    "ProviderErrorKind",
    "StateUpdate",
    "TextProvider",
]
