"""Utility exports for filesystem, hashing, and concurrency helpers."""

from nexus_scaffold.utils.concurrency import (
    DESTINATION_LOCKS,
    CancellationToken,
    KeyedLock,
    OperationCancelledError,
    destination_key,
    run_with_timeout,
)
from nexus_scaffold.utils.fs import (
    atomic_write,
    resolves_within,
    safe_delete,
    temp_directory,
    temp_sibling,
)
from nexus_scaffold.utils.hashing import create_manifest, sha256_bytes, sha256_file, sha256_text

__all__ = [
    "DESTINATION_LOCKS",
    "CancellationToken",
    "KeyedLock",
    "OperationCancelledError",
    "atomic_write",
    "create_manifest",
    "destination_key",
    "resolves_within",
    "run_with_timeout",
    "safe_delete",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
    "temp_directory",
    "temp_sibling",
]
