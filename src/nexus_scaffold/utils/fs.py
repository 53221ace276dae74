"""
nexus-scaffold — filesystem utilities

File: src/nexus_scaffold/utils/fs.py
Last updated: 2026-10-18

Purpose
- Safe filesystem helpers for atomic writes, canonical containment checks, and
  guarded deletion under a sandbox root.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Containment checks resolve symlinks before comparing against the resolved root.
- Deletion refuses paths outside the given sandbox root.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "resolves_within",
    "safe_delete",
    "temp_directory",
    "temp_sibling",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        payload = data if isinstance(data, bytes) else data.encode(encoding)
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
        _fsync_directory(target_parent)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def resolves_within(candidate: PathLike, root: PathLike) -> bool:
    """
    Return ``True`` if ``candidate`` canonically resolves inside ``root``.

    The candidate need not exist yet; symlinks on any existing prefix are followed.
    """

    resolved_root = Path(root).resolve()
    resolved_candidate = Path(candidate).resolve()
    return _is_relative_to(resolved_candidate, resolved_root)


def safe_delete(path: PathLike, sandbox_root: PathLike) -> None:
    """
    Delete ``path`` only if it is contained within ``sandbox_root``.

    Symlinks are unlinked without traversing into their targets.
    """

    sandbox = Path(sandbox_root).resolve(strict=True)
    if not sandbox.is_dir():
        raise NotADirectoryError(f"{sandbox!s} is not a directory")

    target = Path(path)
    parent_resolved = target.parent.resolve(strict=True)
    candidate = parent_resolved / target.name
    if not _is_relative_to(candidate, sandbox) or candidate == sandbox:
        raise ValueError(f"refusing to delete path outside sandbox root: {target!s}")

    if target.is_symlink():
        target.unlink()
        return

    resolved_target = target.resolve(strict=True)
    if not _is_relative_to(resolved_target, sandbox):
        raise ValueError(f"refusing to delete path outside sandbox root: {target!s}")

    if target.is_dir():
        shutil.rmtree(target)
        return

    target.unlink()


@contextmanager
def temp_directory(prefix: str = "nexus-scaffold-") -> Iterator[Path]:
    """Yield a temporary directory path and clean it up on exit."""

    with tempfile.TemporaryDirectory(prefix=prefix) as tmp:
        yield Path(tmp)


def temp_sibling(path: PathLike) -> Path:
    """Create an empty temp file next to ``path`` and return its location."""

    target = Path(path)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target.parent),
    )
    os.close(fd)
    return Path(temp_name)


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True


def _fsync_directory(path: Path) -> None:
    """
    Best-effort directory fsync for metadata durability after ``os.replace``.

    Some platforms/filesystems do not support fsync on directories.
    """

    if os.name == "nt":
        return

    flags = os.O_RDONLY
    if hasattr(os, "O_DIRECTORY"):
        flags |= os.O_DIRECTORY

    try:
        dir_fd = os.open(path, flags)
    except OSError:
        return

    try:
        os.fsync(dir_fd)
    except OSError:
        return
    finally:
        os.close(dir_fd)
