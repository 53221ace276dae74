"""
nexus-scaffold — hashing utilities

File: src/nexus_scaffold/utils/hashing.py
Last updated: 2026-10-18

Purpose
- Deterministic SHA-256 helpers for text, bytes, and files.
- Build tree manifests so a materialized project can be compared with its source
  structure or with an archive's contents.

Functional requirements
- Manifest paths are relative POSIX strings in sorted order.
- Symlinks and other non-regular files are left out of manifests.
"""

from __future__ import annotations

import hashlib
import os
import stat
from pathlib import Path

PathLike = str | os.PathLike[str]

_FILE_READ_CHUNK_BYTES = 1024 * 1024

__all__ = [
    "create_manifest",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def sha256_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-256 hex digest for a file read in chunks."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = hashlib.sha256()
    with Path(path).open("rb") as file_handle:
        while chunk := file_handle.read(chunk_size):
            digest.update(chunk)
    return digest.hexdigest()


def create_manifest(directory: PathLike) -> dict[str, str]:
    """
    Build a deterministic file manifest for ``directory``.

    The returned mapping contains:
    - key: relative POSIX path (``src/App.kt``)
    - value: lowercase SHA-256 hex digest
    """

    root = Path(directory).resolve(strict=True)
    if not root.is_dir():
        raise NotADirectoryError(f"{root!s} is not a directory")

    manifest: dict[str, str] = {}
    for current_dir, dir_names, file_names in os.walk(root, topdown=True, followlinks=False):
        dir_names.sort()
        current = Path(current_dir)
        for file_name in sorted(file_names):
            file_path = current / file_name
            try:
                mode = file_path.lstat().st_mode
            except FileNotFoundError:
                continue
            if not stat.S_ISREG(mode):
                continue
            manifest[file_path.relative_to(root).as_posix()] = sha256_file(file_path)

    return dict(sorted(manifest.items()))
