"""
nexus-scaffold — unit tests for the ZIP archive builder

File: tests/unit/archive/test_builder.py
Last updated: 2026-10-18

Purpose
- Validate entry naming and ordering, stream and path sinks, cancellation, and
  directory sources.

Non-functional requirements
- Deterministic: reproducible builds are compared byte for byte.
"""

from __future__ import annotations

import io
import os
import zipfile
from pathlib import Path
from typing import Any

import pytest

from nexus_scaffold.archive import FIXED_TIMESTAMP, ArchiveBuilder, list_entry_names
from nexus_scaffold.domain.models import ProjectFile, ProjectStructure
from nexus_scaffold.domain.results import ErrorKind, Failure
from nexus_scaffold.utils.concurrency import CancellationToken


def _demo() -> ProjectStructure:
    return ProjectStructure.build(
        "Demo",
        [ProjectFile("a.txt", "alpha"), ProjectFile("src/b.txt", "bravo")],
    )


def test_structure_archive_entry_order_and_content(tmp_path: Path) -> None:
    target = tmp_path / "out" / "demo.zip"

    summary = ArchiveBuilder().build_from_structure(_demo(), target).unwrap()

    assert list_entry_names(target) == ("Demo/", "Demo/a.txt", "Demo/src/", "Demo/src/b.txt")
    with zipfile.ZipFile(target) as archive:
        assert archive.read("Demo/src/b.txt") == b"bravo"
        assert archive.getinfo("Demo/src/").is_dir()
        assert archive.getinfo("Demo/a.txt").compress_type == zipfile.ZIP_DEFLATED
        assert archive.testzip() is None
    assert summary.entry_count == 4
    assert summary.file_count == 2
    assert summary.directory_count == 2
    assert summary.uncompressed_bytes == 10
    assert summary.compressed_bytes == target.stat().st_size
    assert summary.destination == target.as_posix()
    assert summary.skipped == ()


def test_ancestors_are_emitted_once_root_to_leaf(tmp_path: Path) -> None:
    structure = ProjectStructure.build(
        "R",
        [
            ProjectFile("x/y/z/deep.txt", "1"),
            ProjectFile("x/y/other.txt", "2"),
            ProjectFile("x/top.txt", "3"),
        ],
    )
    target = tmp_path / "r.zip"

    ArchiveBuilder().build_from_structure(structure, target).unwrap()

    assert list_entry_names(target) == (
        "R/",
        "R/x/",
        "R/x/y/",
        "R/x/y/z/",
        "R/x/y/z/deep.txt",
        "R/x/y/other.txt",
        "R/x/top.txt",
    )


def test_stream_destination_is_written_in_place() -> None:
    sink = io.BytesIO()

    summary = ArchiveBuilder().build_from_structure(_demo(), sink).unwrap()

    assert summary.destination is None
    assert summary.compressed_bytes == len(sink.getvalue())
    with zipfile.ZipFile(io.BytesIO(sink.getvalue())) as archive:
        assert archive.read("Demo/a.txt") == b"alpha"


class _WriteOnlySink:
    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    def write(self, data: bytes) -> int:
        self.chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        return None


def test_non_seekable_stream_produces_a_valid_archive() -> None:
    sink = _WriteOnlySink()

    ArchiveBuilder().build_from_structure(_demo(), sink).unwrap()  # type: ignore[arg-type]

    with zipfile.ZipFile(io.BytesIO(b"".join(sink.chunks))) as archive:
        assert archive.namelist() == ["Demo/", "Demo/a.txt", "Demo/src/", "Demo/src/b.txt"]
        assert archive.read("Demo/src/b.txt") == b"bravo"


def test_reproducible_builds_are_byte_identical(tmp_path: Path) -> None:
    builder = ArchiveBuilder(reproducible=True)
    first = tmp_path / "one.zip"
    second = tmp_path / "two.zip"

    builder.build_from_structure(_demo(), first).unwrap()
    builder.build_from_structure(_demo(), second).unwrap()

    assert first.read_bytes() == second.read_bytes()
    with zipfile.ZipFile(first) as archive:
        assert archive.getinfo("Demo/a.txt").date_time == FIXED_TIMESTAMP


def test_clock_is_used_for_entry_timestamps(tmp_path: Path) -> None:
    target = tmp_path / "clock.zip"
    builder = ArchiveBuilder(clock=lambda: (2024, 5, 6, 7, 8, 10))

    builder.build_from_structure(_demo(), target).unwrap()

    with zipfile.ZipFile(target) as archive:
        assert archive.getinfo("Demo/a.txt").date_time == (2024, 5, 6, 7, 8, 10)


def test_unix_modes_are_recorded(tmp_path: Path) -> None:
    target = tmp_path / "modes.zip"

    ArchiveBuilder().build_from_structure(_demo(), target).unwrap()

    with zipfile.ZipFile(target) as archive:
        assert archive.getinfo("Demo/a.txt").external_attr >> 16 == 0o100644
        assert (archive.getinfo("Demo/").external_attr >> 16) & 0o777 == 0o755


def test_progress_reports_each_file(tmp_path: Path) -> None:
    calls: list[tuple[int, int, str]] = []

    ArchiveBuilder().build_from_structure(
        _demo(), tmp_path / "p.zip", progress=lambda done, total, name: calls.append(
            (done, total, name)
        )
    ).unwrap()

    assert calls == [(1, 2, "Demo/a.txt"), (2, 2, "Demo/src/b.txt")]


def test_cancelled_build_leaves_no_archive(tmp_path: Path) -> None:
    token = CancellationToken()
    token.cancel()
    target = tmp_path / "cancelled.zip"

    outcome = ArchiveBuilder().build_from_structure(_demo(), target, cancel_token=token)

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.CANCELLED
    assert not target.exists()
    assert list(tmp_path.iterdir()) == []


def test_cancel_between_entries(tmp_path: Path) -> None:
    token = CancellationToken()
    target = tmp_path / "partial.zip"

    outcome = ArchiveBuilder().build_from_structure(
        _demo(), target, cancel_token=token, progress=lambda *_: token.cancel()
    )

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.CANCELLED
    assert not target.exists()


def test_failed_rebuild_keeps_previous_archive(tmp_path: Path) -> None:
    target = tmp_path / "keep.zip"
    ArchiveBuilder().build_from_structure(_demo(), target).unwrap()
    before = target.read_bytes()
    token = CancellationToken()
    token.cancel()

    ArchiveBuilder().build_from_structure(_demo(), target, cancel_token=token)

    assert target.read_bytes() == before


def test_unwritable_destination_is_archive_write_failure(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    outcome = ArchiveBuilder().build_from_structure(_demo(), blocker / "demo.zip")

    assert isinstance(outcome, Failure)
    assert outcome.kind is ErrorKind.ARCHIVE_WRITE_FAILURE


def test_directory_source_matches_structure_layout(tmp_path: Path) -> None:
    source = tmp_path / "generated" / "Demo"
    (source / "src").mkdir(parents=True)
    (source / "a.txt").write_text("alpha", encoding="utf-8")
    (source / "src" / "b.txt").write_text("bravo", encoding="utf-8")
    (source / "empty").mkdir()
    target = tmp_path / "dir.zip"

    summary = ArchiveBuilder().build_from_directory(source, target).unwrap()

    assert list_entry_names(target) == (
        "Demo/",
        "Demo/a.txt",
        "Demo/empty/",
        "Demo/src/",
        "Demo/src/b.txt",
    )
    assert summary.file_count == 2
    assert summary.directory_count == 3


def test_directory_source_with_custom_root(tmp_path: Path) -> None:
    source = tmp_path / "scratch"
    source.mkdir()
    (source / "main.py").write_text("print(1)\n", encoding="utf-8")
    target = tmp_path / "custom.zip"

    ArchiveBuilder().build_from_directory(source, target, archive_root="My App").unwrap()

    assert list_entry_names(target) == ("My_App/", "My_App/main.py")


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_directory_source_skips_symlinks(tmp_path: Path) -> None:
    outside = tmp_path / "secret.txt"
    outside.write_text("secret", encoding="utf-8")
    source = tmp_path / "Proj"
    source.mkdir()
    (source / "keep.txt").write_text("keep", encoding="utf-8")
    try:
        (source / "link.txt").symlink_to(outside)
    except OSError:
        pytest.skip("symlink creation not permitted")
    target = tmp_path / "links.zip"

    ArchiveBuilder().build_from_directory(source, target).unwrap()

    assert list_entry_names(target) == ("Proj/", "Proj/keep.txt")


class _FailingReader(io.BytesIO):
    def __init__(self, data: bytes, *, fail_after: int) -> None:
        super().__init__(data)
        self._fail_after = fail_after

    def read(self, size: int | None = -1) -> bytes:
        if self.tell() >= self._fail_after:
            raise OSError("device read error")
        return super().read(size)


def test_unreadable_source_is_skipped_without_partial_entry(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    source = tmp_path / "Demo"
    source.mkdir()
    bad = source / "bad.txt"
    bad.write_bytes(b"x" * 10_240)
    (source / "good.txt").write_text("good", encoding="utf-8")
    original_open = Path.open

    def flaky_open(self: Path, mode: str = "r", *args: Any, **kwargs: Any) -> Any:
        if self == bad and "b" in mode and "r" in mode:
            return _FailingReader(b"x" * 10_240, fail_after=4096)
        return original_open(self, mode, *args, **kwargs)

    monkeypatch.setattr(Path, "open", flaky_open)
    target = tmp_path / "out.zip"

    summary = ArchiveBuilder(buffer_size=1024).build_from_directory(source, target).unwrap()

    assert summary.skipped == ("Demo/bad.txt",)
    assert summary.file_count == 1
    assert summary.uncompressed_bytes == 4
    assert list_entry_names(target) == ("Demo/", "Demo/good.txt")
    with zipfile.ZipFile(target) as archive:
        assert archive.testzip() is None
        assert archive.read("Demo/good.txt") == b"good"


def test_compress_level_reaches_file_entries() -> None:
    structure = ProjectStructure.build("Demo", [ProjectFile("big.txt", "abc" * 20_000)])
    sizes = {}
    for level in (0, 9):
        sink = io.BytesIO()
        ArchiveBuilder(compress_level=level, reproducible=True).build_from_structure(
            structure, sink
        ).unwrap()
        with zipfile.ZipFile(io.BytesIO(sink.getvalue())) as archive:
            sizes[level] = archive.getinfo("Demo/big.txt").compress_size

    assert sizes[0] > 60_000
    assert sizes[9] < sizes[0] // 10


def test_missing_or_empty_directory_fails(tmp_path: Path) -> None:
    missing = ArchiveBuilder().build_from_directory(tmp_path / "nope", tmp_path / "a.zip")
    (tmp_path / "hollow").mkdir()
    empty = ArchiveBuilder().build_from_directory(tmp_path / "hollow", tmp_path / "b.zip")

    assert isinstance(missing, Failure)
    assert missing.kind is ErrorKind.ARCHIVE_WRITE_FAILURE
    assert isinstance(empty, Failure)
    assert empty.kind is ErrorKind.ARCHIVE_WRITE_FAILURE
    assert not (tmp_path / "b.zip").exists()


def test_from_config_and_argument_validation() -> None:
    builder = ArchiveBuilder.from_config(
        {"archive": {"compress_level": 0, "buffer_size": 1024, "reproducible": True}}
    )
    sink = io.BytesIO()
    builder.build_from_structure(_demo(), sink).unwrap()
    with zipfile.ZipFile(io.BytesIO(sink.getvalue())) as archive:
        assert archive.getinfo("Demo/a.txt").date_time == FIXED_TIMESTAMP

    with pytest.raises(ValueError):
        ArchiveBuilder(compress_level=10)
    with pytest.raises(ValueError):
        ArchiveBuilder(buffer_size=0)
