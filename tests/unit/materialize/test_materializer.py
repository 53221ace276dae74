"""
nexus-scaffold — unit tests for the sandboxed file materializer

File: tests/unit/materialize/test_materializer.py
Last updated: 2026-10-18

Purpose
- Validate sandbox containment, atomic UTF-8 writes, rollback, and clean-existing mode.

Functional requirements
- Nothing is written when any path fails validation or containment.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from nexus_scaffold.domain.models import ProjectFile, ProjectMetadata, ProjectStructure
from nexus_scaffold.domain.results import ErrorKind, Failure
from nexus_scaffold.materialize import FileMaterializer
from nexus_scaffold.utils.concurrency import CancellationToken


def _demo(root: str = "Demo") -> ProjectStructure:
    return ProjectStructure.build(
        root,
        [ProjectFile("a.txt", "alpha"), ProjectFile("src/b.txt", "héllo")],
    )


def _files_under(root: Path) -> list[str]:
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*"))


def test_writes_files_under_sandbox_root(tmp_path: Path) -> None:
    sandbox = tmp_path / "generated"

    summary = FileMaterializer().materialize(_demo(), sandbox).unwrap()

    assert summary.output_dir == sandbox / "Demo"
    assert (sandbox / "Demo" / "a.txt").read_text(encoding="utf-8") == "alpha"
    assert (sandbox / "Demo" / "src" / "b.txt").read_bytes() == "héllo".encode()
    assert summary.files_written == 2
    assert summary.bytes_written == 5 + len("héllo".encode())
    assert summary.written == ("a.txt", "src/b.txt")
    assert _files_under(sandbox) == ["Demo", "Demo/a.txt", "Demo/src", "Demo/src/b.txt"]


def test_progress_is_reported_per_file(tmp_path: Path) -> None:
    calls: list[tuple[int, int, str]] = []

    FileMaterializer().materialize(
        _demo(), tmp_path, progress=lambda done, total, path: calls.append((done, total, path))
    ).unwrap()

    assert calls == [(1, 2, "a.txt"), (2, 2, "src/b.txt")]


def test_existing_files_are_overwritten(tmp_path: Path) -> None:
    target = tmp_path / "Demo" / "a.txt"
    target.parent.mkdir(parents=True)
    target.write_text("old", encoding="utf-8")

    FileMaterializer().materialize(_demo(), tmp_path).unwrap()

    assert target.read_text(encoding="utf-8") == "alpha"


def test_unvalidated_structure_paths_are_rejected_before_writing(tmp_path: Path) -> None:
    # Bypass ProjectFile validation to simulate a structure built elsewhere.
    evil = object.__new__(ProjectFile)
    object.__setattr__(evil, "path", "../escape.txt")
    object.__setattr__(evil, "content", "boom")
    structure = ProjectStructure(
        root="Demo",
        files=(ProjectFile("ok.txt", "fine"), evil),
        metadata=ProjectMetadata(file_count=2, total_bytes=8, strategy="marker"),
    )

    outcome = FileMaterializer().materialize(structure, tmp_path / "sandbox")

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.INVALID_PATH
    assert outcome.detail == ("../escape.txt", "traversal")
    assert not (tmp_path / "escape.txt").exists()
    assert _files_under(tmp_path / "sandbox") == []


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinked_directory_escape_is_refused(tmp_path: Path) -> None:
    sandbox = tmp_path / "sandbox"
    outside = tmp_path / "outside"
    (sandbox / "Demo").mkdir(parents=True)
    outside.mkdir()
    try:
        (sandbox / "Demo" / "src").symlink_to(outside, target_is_directory=True)
    except OSError:
        pytest.skip("symlink creation not permitted")

    outcome = FileMaterializer().materialize(_demo(), sandbox)

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.SANDBOX_ESCAPE
    assert outcome.detail == ("src/b.txt",)
    assert list(outside.iterdir()) == []
    assert not (sandbox / "Demo" / "a.txt").exists()


def test_cancellation_rolls_back_created_files(tmp_path: Path) -> None:
    token = CancellationToken()

    outcome = FileMaterializer().materialize(
        _demo(), tmp_path, cancel_token=token, progress=lambda *_: token.cancel()
    )

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.CANCELLED
    assert _files_under(tmp_path) == []


def test_write_failure_rolls_back_and_reports(tmp_path: Path) -> None:
    structure = ProjectStructure.build(
        "Demo",
        [ProjectFile("first.txt", "1"), ProjectFile("blocked/inner.txt", "2")],
    )
    calls: list[str] = []

    def block_next(_done: int, _total: int, path: str) -> None:
        calls.append(path)
        (tmp_path / "Demo" / "blocked").write_text("file in the way", encoding="utf-8")

    outcome = FileMaterializer().materialize(structure, tmp_path, progress=block_next)

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.MATERIALIZE_WRITE_FAILURE
    assert outcome.detail[0] == "blocked/inner.txt"
    assert calls == ["first.txt"]
    assert not (tmp_path / "Demo" / "first.txt").exists()


def test_rollback_keeps_preexisting_directories(tmp_path: Path) -> None:
    keep = tmp_path / "Demo" / "keep.txt"
    keep.parent.mkdir(parents=True)
    keep.write_text("mine", encoding="utf-8")
    token = CancellationToken()
    token.cancel()

    outcome = FileMaterializer().materialize(_demo(), tmp_path, cancel_token=token)

    assert isinstance(outcome, Failure)
    assert keep.read_text(encoding="utf-8") == "mine"
    assert _files_under(tmp_path) == ["Demo", "Demo/keep.txt"]


def test_clean_existing_replaces_previous_output(tmp_path: Path) -> None:
    stale = tmp_path / "Demo" / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")

    FileMaterializer(clean_existing=True).materialize(_demo(), tmp_path).unwrap()

    assert not stale.exists()
    assert _files_under(tmp_path / "Demo") == ["a.txt", "src", "src/b.txt"]


def test_from_config_reads_clean_existing(tmp_path: Path) -> None:
    stale = tmp_path / "Demo" / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")

    FileMaterializer.from_config({"materializer": {"clean_existing": True}}).materialize(
        _demo(), tmp_path
    ).unwrap()

    assert not stale.exists()


def test_sandbox_that_cannot_be_created_fails(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    outcome = FileMaterializer().materialize(_demo(), blocker / "sandbox")

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.MATERIALIZE_WRITE_FAILURE
