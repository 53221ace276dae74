"""
nexus-scaffold — sandboxed file materializer

File: src/nexus_scaffold/materialize/materializer.py
Last updated: 2026-10-18

Purpose
- Write a parsed ``ProjectStructure`` to ``<sandbox_root>/<root>/`` on disk.

Functional requirements
- Validation happens before any mutation: every path is re-validated and its canonical
  target must stay inside the project directory.
- Files are written as UTF-8 through atomic temp-file replacement.
- A failed or cancelled run removes the files and directories it created.
- A write failure names the file being written first in the error detail.
- Writes to one project directory are serialized through the destination lock.
"""

from __future__ import annotations

import contextlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from nexus_scaffold.domain.models import MaterializeSummary
from nexus_scaffold.domain.paths import validate_path
from nexus_scaffold.domain.results import ErrorKind, Failure, Outcome, Success, failure
from nexus_scaffold.utils.concurrency import (
    DESTINATION_LOCKS,
    KeyedLock,
    OperationCancelledError,
    destination_key,
)
from nexus_scaffold.utils.fs import atomic_write, resolves_within, safe_delete

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from nexus_scaffold.domain.models import ProjectStructure
    from nexus_scaffold.utils.concurrency import CancellationToken


@dataclass(slots=True)
class _Journal:
    """Everything this run created, in creation order."""

    directories: list[Path] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    bytes_written: int = 0


class FileMaterializer:
    """Materialize project structures under a sandbox root."""

    def __init__(
        self,
        *,
        clean_existing: bool = False,
        locks: KeyedLock = DESTINATION_LOCKS,
        logger: Any | None = None,
    ) -> None:
        self._clean_existing = clean_existing
        self._locks = locks
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_config(
        cls, config: Mapping[str, Any], *, logger: Any | None = None
    ) -> FileMaterializer:
        materializer_cfg = config.get("materializer", {})
        return cls(
            clean_existing=bool(materializer_cfg.get("clean_existing", False)),
            logger=logger,
        )

    def materialize(
        self,
        structure: ProjectStructure,
        sandbox_root: str | os.PathLike[str],
        *,
        cancel_token: CancellationToken | None = None,
        progress: Callable[[int, int, str], None] | None = None,
    ) -> Outcome[MaterializeSummary]:
        sandbox = Path(sandbox_root)
        try:
            sandbox.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return failure(
                ErrorKind.MATERIALIZE_WRITE_FAILURE,
                "sandbox root cannot be created",
                str(sandbox),
                str(exc),
            )

        project_dir = sandbox / structure.root
        if not resolves_within(project_dir, sandbox):
            self._logger.warning(
                "materialize_sandbox_escape", path=structure.root, sandbox=str(sandbox)
            )
            return failure(
                ErrorKind.SANDBOX_ESCAPE,
                "project directory escapes the sandbox root",
                structure.root,
            )

        with self._locks.hold(destination_key(project_dir)):
            checked = self._check(structure, project_dir)
            if isinstance(checked, Failure):
                return checked
            return self._write(
                structure,
                sandbox,
                project_dir,
                cancel_token=cancel_token,
                progress=progress,
            )

    def _check(self, structure: ProjectStructure, project_dir: Path) -> Outcome[None]:
        for item in structure.files:
            outcome = validate_path(item.path)
            if isinstance(outcome, Failure) or outcome.value != item.path:
                issue = outcome.detail[0] if isinstance(outcome, Failure) else "not_normalized"
                self._logger.warning("materialize_invalid_path", path=item.path, issue=issue)
                return failure(ErrorKind.INVALID_PATH, "invalid file path", item.path, issue)
            if not resolves_within(project_dir / item.path, project_dir):
                self._logger.warning(
                    "materialize_sandbox_escape", path=item.path, project_dir=str(project_dir)
                )
                return failure(
                    ErrorKind.SANDBOX_ESCAPE,
                    "file path resolves outside the project directory",
                    item.path,
                )
        return Success(None)

    def _write(
        self,
        structure: ProjectStructure,
        sandbox: Path,
        project_dir: Path,
        *,
        cancel_token: CancellationToken | None,
        progress: Callable[[int, int, str], None] | None,
    ) -> Outcome[MaterializeSummary]:
        journal = _Journal()
        total = len(structure.files)
        current: str | None = None
        self._logger.info(
            "materialize_started",
            root=structure.root,
            output_dir=str(project_dir),
            file_count=total,
        )
        try:
            if self._clean_existing and project_dir.exists():
                safe_delete(project_dir, sandbox)
                self._logger.info("materialize_cleaned_existing", output_dir=str(project_dir))
            _make_directories(project_dir, journal)

            for index, item in enumerate(structure.files, start=1):
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                current = item.path
                target = project_dir / item.path
                _make_directories(target.parent, journal)
                if not resolves_within(target.parent, project_dir):
                    self._rollback(journal)
                    self._logger.warning(
                        "materialize_sandbox_escape",
                        path=item.path,
                        project_dir=str(project_dir),
                    )
                    return failure(
                        ErrorKind.SANDBOX_ESCAPE,
                        "file path resolves outside the project directory",
                        item.path,
                    )
                existed = target.exists()
                payload = item.content.encode("utf-8")
                atomic_write(target, payload)
                if not existed:
                    journal.files.append(target)
                journal.written.append(item.path)
                journal.bytes_written += len(payload)
                if progress is not None:
                    progress(index, total, item.path)
        except OperationCancelledError:
            self._rollback(journal)
            self._logger.info(
                "materialize_cancelled", root=structure.root, files_written=len(journal.written)
            )
            return failure(ErrorKind.CANCELLED, "materialization cancelled", structure.root)
        except (OSError, ValueError) as exc:
            self._rollback(journal)
            self._logger.error(
                "materialize_failed",
                root=structure.root,
                path=current,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return failure(
                ErrorKind.MATERIALIZE_WRITE_FAILURE,
                "project files could not be written",
                current if current is not None else str(project_dir),
                str(exc),
            )

        summary = MaterializeSummary(
            output_dir=project_dir,
            files_written=len(journal.written),
            bytes_written=journal.bytes_written,
            written=tuple(journal.written),
        )
        self._logger.info(
            "materialize_completed",
            output_dir=str(project_dir),
            files_written=summary.files_written,
            bytes_written=summary.bytes_written,
        )
        return Success(summary)

    def _rollback(self, journal: _Journal) -> None:
        for path in reversed(journal.files):
            with contextlib.suppress(FileNotFoundError):
                path.unlink()
        for directory in reversed(journal.directories):
            try:
                directory.rmdir()
            except OSError as exc:
                self._logger.warning(
                    "materialize_rollback_incomplete", path=str(directory), error=str(exc)
                )
        self._logger.info(
            "materialize_rolled_back",
            files_removed=len(journal.files),
            directories_removed=len(journal.directories),
        )


def _make_directories(directory: Path, journal: _Journal) -> None:
    missing: list[Path] = []
    cursor = directory
    while not cursor.exists():
        missing.append(cursor)
        if cursor.parent == cursor:
            break
        cursor = cursor.parent
    for path in reversed(missing):
        path.mkdir()
        journal.directories.append(path)


__all__ = ["FileMaterializer"]
