"""Immutable value types produced by the parser and consumed by packaging."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from nexus_scaffold.constants import STRATEGY_MARKER
from nexus_scaffold.domain.paths import parent_directories, sanitize_root_name, validate_path
from nexus_scaffold.utils.hashing import sha256_text

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True)
class ProjectFile:
    """One parsed file: a normalized relative path and its text content."""

    path: str
    content: str

    def __post_init__(self) -> None:
        if not isinstance(self.content, str):
            raise TypeError(f"content must be str, got {type(self.content).__name__}")
        outcome = validate_path(self.path)
        if not outcome.ok:
            raise ValueError(f"invalid project file path: {self.path!r}")
        if outcome.unwrap() != self.path:
            raise ValueError(f"project file path is not normalized: {self.path!r}")

    @property
    def directory(self) -> str:
        head, _, _ = self.path.rpartition("/")
        return head

    @property
    def filename(self) -> str:
        return self.path.rpartition("/")[2]

    @property
    def extension(self) -> str:
        name = self.filename
        dot = name.rfind(".")
        return name[dot + 1 :] if dot > 0 else ""

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass(frozen=True, slots=True)
class ProjectMetadata:
    file_count: int
    total_bytes: int
    strategy: str


@dataclass(frozen=True, slots=True)
class ProjectStructure:
    """Root-named, ordered, duplicate-free collection of parsed files."""

    root: str
    files: tuple[ProjectFile, ...]
    metadata: ProjectMetadata

    @classmethod
    def build(
        cls,
        root: str,
        files: Iterable[ProjectFile],
        *,
        strategy: str = STRATEGY_MARKER,
    ) -> ProjectStructure:
        ordered = tuple(files)
        conflicts = conflicting_paths(item.path for item in ordered)
        if conflicts:
            raise ValueError("conflicting project file paths: " + ", ".join(conflicts))

        metadata = ProjectMetadata(
            file_count=len(ordered),
            total_bytes=sum(item.size_bytes for item in ordered),
            strategy=strategy,
        )
        return cls(root=sanitize_root_name(root), files=ordered, metadata=metadata)

    def paths(self) -> tuple[str, ...]:
        return tuple(item.path for item in self.files)

    def pairs(self) -> tuple[tuple[str, str], ...]:
        return tuple((item.path, item.content) for item in self.files)

    def fingerprint(self) -> str:
        """SHA-256 over ordered paths and contents."""

        parts: list[str] = []
        for item in self.files:
            parts.append(f"{item.path}\x00{sha256_text(item.content)}")
        return sha256_text("\n".join(parts))

    def to_manifest(self) -> dict[str, object]:
        return {
            "root": self.root,
            "strategy": self.metadata.strategy,
            "file_count": self.metadata.file_count,
            "total_bytes": self.metadata.total_bytes,
            "fingerprint": self.fingerprint(),
            "files": [
                {"path": item.path, "size_bytes": item.size_bytes} for item in self.files
            ],
        }


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One unit inside the archive: a directory marker or a file."""

    name: str
    data: bytes | None = None
    source: Path | None = None
    date_time: tuple[int, int, int, int, int, int] | None = None

    @property
    def is_directory(self) -> bool:
        return self.name.endswith("/")


@dataclass(frozen=True, slots=True)
class ArchiveSummary:
    entry_count: int
    file_count: int
    directory_count: int
    uncompressed_bytes: int
    compressed_bytes: int
    destination: str | None = None
    skipped: tuple[str, ...] = field(default=())

    @property
    def compression_ratio(self) -> float:
        """Fraction of bytes saved, ``0.0`` when nothing was compressed."""

        if self.uncompressed_bytes <= 0:
            return 0.0
        return 1.0 - (self.compressed_bytes / self.uncompressed_bytes)

    def to_dict(self) -> dict[str, object]:
        return {
            "entry_count": self.entry_count,
            "file_count": self.file_count,
            "directory_count": self.directory_count,
            "uncompressed_bytes": self.uncompressed_bytes,
            "compressed_bytes": self.compressed_bytes,
            "compression_ratio": round(self.compression_ratio, 4),
            "destination": self.destination,
            "skipped": list(self.skipped),
        }


@dataclass(frozen=True, slots=True)
class MaterializeSummary:
    output_dir: Path
    files_written: int
    bytes_written: int
    written: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, object]:
        return {
            "output_dir": self.output_dir.as_posix(),
            "files_written": self.files_written,
            "bytes_written": self.bytes_written,
            "written": list(self.written),
        }


def conflicting_paths(paths: Iterable[str]) -> tuple[str, ...]:
    """
    Return the paths that cannot coexist in one file tree, in input order.

    A path conflicts when it repeats an earlier path, when another file lives under
    it as a directory, or when one of its ancestors is itself a file.
    """

    ordered = list(paths)
    files = set(ordered)
    directories = {directory for path in ordered for directory in parent_directories(path)}
    seen: set[str] = set()
    conflicts: list[str] = []
    for path in ordered:
        clashes = (
            path in seen
            or path in directories
            or any(parent in files for parent in parent_directories(path))
        )
        if clashes and path not in conflicts:
            conflicts.append(path)
        seen.add(path)
    return tuple(conflicts)


__all__ = [
    "ArchiveEntry",
    "ArchiveSummary",
    "MaterializeSummary",
    "ProjectFile",
    "ProjectMetadata",
    "ProjectStructure",
    "conflicting_paths",
]
