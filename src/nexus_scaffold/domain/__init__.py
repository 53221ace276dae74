"""Domain layer: outcome types, path validation, and immutable project models."""

from __future__ import annotations

from nexus_scaffold.domain.models import (
    ArchiveEntry,
    ArchiveSummary,
    MaterializeSummary,
    ProjectFile,
    ProjectMetadata,
    ProjectStructure,
    conflicting_paths,
)
from nexus_scaffold.domain.paths import (
    PathIssue,
    is_safe_path,
    sanitize_root_name,
    validate_path,
)
from nexus_scaffold.domain.results import (
    ErrorKind,
    Failure,
    Outcome,
    ScaffoldError,
    Success,
    unwrap,
)

__all__ = [
    "ArchiveEntry",
    "ArchiveSummary",
    "ErrorKind",
    "Failure",
    "MaterializeSummary",
    "Outcome",
    "PathIssue",
    "ProjectFile",
    "ProjectMetadata",
    "ProjectStructure",
    "ScaffoldError",
    "Success",
    "conflicting_paths",
    "is_safe_path",
    "sanitize_root_name",
    "unwrap",
    "validate_path",
]
