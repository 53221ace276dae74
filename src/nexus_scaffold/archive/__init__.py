"""ZIP packaging for parsed structures and materialized directories."""

from __future__ import annotations

from nexus_scaffold.archive.builder import (
    FIXED_TIMESTAMP,
    ArchiveBuilder,
    ProgressCallback,
    list_entry_names,
)

__all__ = ["FIXED_TIMESTAMP", "ArchiveBuilder", "ProgressCallback", "list_entry_names"]
