"""
nexus-scaffold — streaming ZIP archive builder

File: src/nexus_scaffold/archive/builder.py
Last updated: 2026-10-18

Purpose
- Stream a deflate ZIP archive from a parsed ``ProjectStructure`` or from a directory
  tree on disk, using the same entry naming for both.

Functional requirements
- Every entry name is ``<root>/<relative path>``; directory entries end in ``/``.
- The root directory entry comes first, and each file entry is preceded by entries
  for all of its not-yet-emitted ancestor directories, root to leaf.
- Invalid or duplicate entry names and unreadable source files are logged and
  skipped; the build fails only when no file entry was written or the sink cannot
  be opened, written or finalized. Source files are staged before their entry is
  opened, so a skipped file leaves no partial entry behind.
- Path destinations are written to a sibling temp file and atomically replaced,
  serialized per destination. Stream destinations are written in place.
- Cancellation is checked between entries, never mid-entry.

Non-functional requirements
- File data is copied in bounded chunks; source files are never read whole.
"""

from __future__ import annotations

import contextlib
import os
import stat
import sys
import tempfile
import time
import zipfile
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Final

import structlog

from nexus_scaffold.constants import DEFAULT_BUFFER_SIZE, DEFAULT_COMPRESS_LEVEL
from nexus_scaffold.domain.models import ArchiveEntry, ArchiveSummary
from nexus_scaffold.domain.paths import parent_directories, sanitize_root_name, validate_path
from nexus_scaffold.domain.results import ErrorKind, Outcome, Success, failure
from nexus_scaffold.utils.concurrency import (
    DESTINATION_LOCKS,
    KeyedLock,
    OperationCancelledError,
    destination_key,
)
from nexus_scaffold.utils.fs import temp_sibling

if TYPE_CHECKING:
    from collections.abc import Mapping

    from nexus_scaffold.domain.models import ProjectStructure
    from nexus_scaffold.utils.concurrency import CancellationToken

DateTime = tuple[int, int, int, int, int, int]
ProgressCallback = Callable[[int, int, str], None]
Destination = str | os.PathLike[str] | IO[bytes]

FIXED_TIMESTAMP: Final[DateTime] = (1980, 1, 1, 0, 0, 0)
_MIN_ZIP_YEAR: Final[int] = 1980
_FILE_MODE: Final[int] = 0o100644
_DIR_MODE: Final[int] = 0o40755
_MSDOS_DIRECTORY_FLAG: Final[int] = 0x10
_SPOOL_MAX_SIZE: Final[int] = 8 * 1024 * 1024


class _SourceReadError(OSError):
    """Raised when a source file cannot be read while copying into the archive."""


class _CountingWriter:
    """Write-only wrapper that counts bytes; deliberately not seekable."""

    def __init__(self, raw: IO[bytes]) -> None:
        self._raw = raw
        self.count = 0

    def write(self, data: bytes) -> int:
        written = self._raw.write(data)
        size = len(data) if written is None else written
        self.count += size
        return size

    def flush(self) -> None:
        self._raw.flush()


@dataclass(slots=True)
class _BuildState:
    names: set[str] = field(default_factory=set)
    skipped: list[str] = field(default_factory=list)
    files: int = 0
    directories: int = 0
    uncompressed: int = 0


class ArchiveBuilder:
    """Build ZIP archives from structures or directories."""

    def __init__(
        self,
        *,
        compress_level: int = DEFAULT_COMPRESS_LEVEL,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        reproducible: bool = False,
        locks: KeyedLock = DESTINATION_LOCKS,
        clock: Callable[[], DateTime] | None = None,
        logger: Any | None = None,
    ) -> None:
        if not 0 <= compress_level <= 9:
            raise ValueError("compress_level must be between 0 and 9")
        if buffer_size <= 0:
            raise ValueError("buffer_size must be > 0")
        self._compress_level = compress_level
        self._buffer_size = buffer_size
        self._reproducible = reproducible
        self._locks = locks
        self._clock = clock or _local_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, logger: Any | None = None) -> ArchiveBuilder:
        """Build from the ``[archive]`` config section."""

        archive_cfg = config.get("archive", {})
        return cls(
            compress_level=int(archive_cfg.get("compress_level", DEFAULT_COMPRESS_LEVEL)),
            buffer_size=int(archive_cfg.get("buffer_size", DEFAULT_BUFFER_SIZE)),
            reproducible=bool(archive_cfg.get("reproducible", False)),
            logger=logger,
        )

    def build_from_structure(
        self,
        structure: ProjectStructure,
        destination: Destination,
        *,
        cancel_token: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> Outcome[ArchiveSummary]:
        timestamp = FIXED_TIMESTAMP if self._reproducible else _clamp(self._clock())
        entries = list(_structure_entries(structure, timestamp))
        self._logger.info(
            "archive_build_started",
            source="structure",
            root=structure.root,
            file_count=structure.metadata.file_count,
        )
        return self._build(entries, destination, cancel_token=cancel_token, progress=progress)

    def build_from_directory(
        self,
        root_dir: str | os.PathLike[str],
        destination: Destination,
        *,
        archive_root: str | None = None,
        cancel_token: CancellationToken | None = None,
        progress: ProgressCallback | None = None,
    ) -> Outcome[ArchiveSummary]:
        source_root = Path(root_dir)
        if not source_root.is_dir():
            return failure(
                ErrorKind.ARCHIVE_WRITE_FAILURE,
                "source directory does not exist",
                str(source_root),
            )
        root_name = sanitize_root_name(archive_root or source_root.resolve().name)
        entries = list(self._directory_entries(source_root, root_name))
        self._logger.info(
            "archive_build_started",
            source="directory",
            root=root_name,
            source_dir=str(source_root),
        )
        return self._build(entries, destination, cancel_token=cancel_token, progress=progress)

    def _directory_entries(self, source_root: Path, root_name: str) -> Iterator[ArchiveEntry]:
        for current_dir, dir_names, file_names in os.walk(
            source_root, topdown=True, followlinks=False
        ):
            dir_names.sort()
            current = Path(current_dir)
            relative = current.relative_to(source_root).as_posix()
            prefix = root_name if relative == "." else f"{root_name}/{relative}"
            yield ArchiveEntry(name=f"{prefix}/", date_time=self._mtime(current))
            for file_name in sorted(file_names):
                file_path = current / file_name
                try:
                    mode = file_path.lstat().st_mode
                except FileNotFoundError:
                    continue
                if not stat.S_ISREG(mode):
                    self._logger.info(
                        "archive_entry_skipped", name=f"{prefix}/{file_name}", reason="not_regular"
                    )
                    continue
                yield ArchiveEntry(
                    name=f"{prefix}/{file_name}",
                    source=file_path,
                    date_time=self._mtime(file_path),
                )

    def _mtime(self, path: Path) -> DateTime:
        if self._reproducible:
            return FIXED_TIMESTAMP
        return _clamp(time.localtime(path.stat().st_mtime)[:6])

    def _build(
        self,
        entries: list[ArchiveEntry],
        destination: Destination,
        *,
        cancel_token: CancellationToken | None,
        progress: ProgressCallback | None,
    ) -> Outcome[ArchiveSummary]:
        if isinstance(destination, (str, os.PathLike)):
            return self._build_to_path(
                entries, Path(destination), cancel_token=cancel_token, progress=progress
            )
        writer = _CountingWriter(destination)
        outcome = self._write_archive(
            entries, writer, cancel_token=cancel_token, progress=progress
        )
        if not isinstance(outcome, Success):
            return outcome
        return Success(_summary(outcome.value, compressed=writer.count, destination=None))

    def _build_to_path(
        self,
        entries: list[ArchiveEntry],
        target: Path,
        *,
        cancel_token: CancellationToken | None,
        progress: ProgressCallback | None,
    ) -> Outcome[ArchiveSummary]:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._logger.error("archive_sink_failed", destination=str(target), error=str(exc))
            return failure(ErrorKind.ARCHIVE_WRITE_FAILURE, str(exc), str(target))

        with self._locks.hold(destination_key(target)):
            temp_path = temp_sibling(target)
            try:
                with temp_path.open("wb") as handle:
                    outcome = self._write_archive(
                        entries, handle, cancel_token=cancel_token, progress=progress
                    )
                if not isinstance(outcome, Success):
                    return outcome
                os.replace(temp_path, target)
            except OSError as exc:
                self._logger.error("archive_sink_failed", destination=str(target), error=str(exc))
                return failure(ErrorKind.ARCHIVE_WRITE_FAILURE, str(exc), str(target))
            finally:
                with contextlib.suppress(OSError):
                    temp_path.unlink(missing_ok=True)

        summary = _summary(
            outcome.value, compressed=target.stat().st_size, destination=target.as_posix()
        )
        self._logger.info(
            "archive_build_completed",
            destination=summary.destination,
            entry_count=summary.entry_count,
            file_count=summary.file_count,
            uncompressed_bytes=summary.uncompressed_bytes,
            compressed_bytes=summary.compressed_bytes,
        )
        return Success(summary)

    def _write_archive(
        self,
        entries: list[ArchiveEntry],
        sink: IO[bytes] | _CountingWriter,
        *,
        cancel_token: CancellationToken | None,
        progress: ProgressCallback | None,
    ) -> Outcome[_BuildState]:
        state = _BuildState()
        total_files = sum(1 for entry in entries if not entry.is_directory)
        try:
            with zipfile.ZipFile(
                sink,  # type: ignore[arg-type]
                mode="w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self._compress_level,
                allowZip64=True,
            ) as archive:
                for entry in entries:
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    if not self._accept_name(entry.name, state):
                        continue
                    try:
                        self._write_entry(archive, entry, state)
                    except _SourceReadError as exc:
                        state.skipped.append(entry.name)
                        self._logger.warning(
                            "archive_entry_failed", name=entry.name, error=str(exc)
                        )
                        continue
                    if not entry.is_directory and progress is not None:
                        progress(state.files, total_files, entry.name)
        except OperationCancelledError:
            self._logger.info("archive_build_cancelled", files_written=state.files)
            return failure(ErrorKind.CANCELLED, "archive build cancelled")
        except OSError as exc:
            self._logger.error("archive_sink_failed", error=str(exc))
            return failure(ErrorKind.ARCHIVE_WRITE_FAILURE, str(exc))

        if state.files == 0:
            return failure(
                ErrorKind.ARCHIVE_WRITE_FAILURE,
                "no file entry was written",
                *state.skipped,
            )
        return Success(state)

    def _accept_name(self, name: str, state: _BuildState) -> bool:
        is_directory = name.endswith("/")
        outcome = validate_path(name[:-1] if is_directory else name)
        if not outcome.ok or outcome.unwrap() + ("/" if is_directory else "") != name:
            state.skipped.append(name)
            self._logger.warning("archive_entry_skipped", name=name, reason="invalid_name")
            return False
        if name in state.names:
            state.skipped.append(name)
            self._logger.warning("archive_entry_skipped", name=name, reason="duplicate_name")
            return False
        state.names.add(name)
        return True

    def _write_entry(
        self, archive: zipfile.ZipFile, entry: ArchiveEntry, state: _BuildState
    ) -> None:
        date_time = entry.date_time or FIXED_TIMESTAMP
        info = zipfile.ZipInfo(filename=entry.name, date_time=date_time)
        info.create_system = 3

        if entry.is_directory:
            info.CRC = 0
            info.compress_size = 0
            info.file_size = 0
            info.external_attr = ((_DIR_MODE & 0xFFFF) << 16) | _MSDOS_DIRECTORY_FLAG
            archive.mkdir(info)
            state.directories += 1
            return

        info.compress_type = zipfile.ZIP_DEFLATED
        # ZipFile.open() takes the level from the ZipInfo, not from the archive.
        if sys.version_info >= (3, 13):
            info.compress_level = self._compress_level
        else:
            info._compresslevel = self._compress_level
        info.external_attr = (_FILE_MODE & 0xFFFF) << 16
        if entry.source is not None:
            # A source that fails to read is never written as an entry.
            with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_SIZE) as staged:
                size = self._stage(entry.source, staged)
                staged.seek(0)
                with archive.open(info, mode="w", force_zip64=True) as target:
                    self._copy(staged, target)
            state.uncompressed += size
        else:
            data = entry.data or b""
            with archive.open(info, mode="w") as target:
                view = memoryview(data)
                for offset in range(0, len(view), self._buffer_size):
                    target.write(view[offset : offset + self._buffer_size])
            state.uncompressed += len(data)
        state.files += 1

    def _stage(self, source: Path, staged: IO[bytes]) -> int:
        try:
            with source.open("rb") as handle:
                return self._copy(handle, staged)
        except OSError as exc:
            raise _SourceReadError(f"cannot read {source}: {exc}") from exc

    def _copy(self, source: IO[bytes], target: IO[bytes]) -> int:
        copied = 0
        while True:
            chunk = source.read(self._buffer_size)
            if not chunk:
                return copied
            target.write(chunk)
            copied += len(chunk)


def _structure_entries(structure: ProjectStructure, timestamp: DateTime) -> Iterator[ArchiveEntry]:
    root = structure.root
    emitted: set[str] = set()
    yield ArchiveEntry(name=f"{root}/", date_time=timestamp)
    for item in structure.files:
        for directory in parent_directories(item.path):
            if directory in emitted:
                continue
            emitted.add(directory)
            yield ArchiveEntry(name=f"{root}/{directory}/", date_time=timestamp)
        yield ArchiveEntry(
            name=f"{root}/{item.path}",
            data=item.content.encode("utf-8"),
            date_time=timestamp,
        )


def _summary(state: _BuildState, *, compressed: int, destination: str | None) -> ArchiveSummary:
    return ArchiveSummary(
        entry_count=state.files + state.directories,
        file_count=state.files,
        directory_count=state.directories,
        uncompressed_bytes=state.uncompressed,
        compressed_bytes=compressed,
        destination=destination,
        skipped=tuple(state.skipped),
    )


def _local_now() -> DateTime:
    return time.localtime()[:6]


def _clamp(date_time: tuple[int, ...]) -> DateTime:
    year, month, day, hour, minute, second = date_time[:6]
    if year < _MIN_ZIP_YEAR:
        return FIXED_TIMESTAMP
    return (year, month, day, hour, minute, min(second, 59))


def list_entry_names(archive_path: str | os.PathLike[str]) -> tuple[str, ...]:
    """Return entry names of an existing archive in stored order."""

    with zipfile.ZipFile(archive_path) as archive:
        return tuple(archive.namelist())


__all__ = [
    "FIXED_TIMESTAMP",
    "ArchiveBuilder",
    "ProgressCallback",
    "list_entry_names",
]
