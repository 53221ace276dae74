"""Regression tests for cancellation, timeout, and per-destination locking helpers."""

from __future__ import annotations

import asyncio
import gc
import sys
import threading
import time
import warnings
from contextlib import contextmanager
from types import SimpleNamespace
from typing import TYPE_CHECKING

import pytest

from nexus_scaffold.utils.concurrency import (
    CancellationToken,
    KeyedLock,
    OperationCancelledError,
    destination_key,
    run_with_timeout,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@contextmanager
def _capture_unraisable() -> Iterator[list[SimpleNamespace]]:
    captured: list[SimpleNamespace] = []
    original = sys.unraisablehook

    def hook(unraisable: object) -> None:
        captured.append(
            SimpleNamespace(
                exc_type=getattr(unraisable, "exc_type", None),
                err_msg=getattr(unraisable, "err_msg", None),
            )
        )

    sys.unraisablehook = hook
    try:
        yield captured
    finally:
        sys.unraisablehook = original


async def _slow() -> int:
    await asyncio.sleep(0.01)
    return 1


async def _slower() -> int:
    await asyncio.sleep(0.05)
    return 1


async def _forever() -> int:
    await asyncio.sleep(30)
    return 1


async def test_run_with_timeout_returns_value() -> None:
    assert await run_with_timeout(_slow(), 1.0) == 1


async def test_run_with_timeout_does_not_leak_coroutine_on_early_cancel() -> None:
    token = CancellationToken()
    token.cancel()

    with _capture_unraisable() as leaked, warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        coro = _slow()
        with pytest.raises(OperationCancelledError):
            await run_with_timeout(coro, 1.0, token)
        del coro
        gc.collect()

    assert leaked == []


async def test_run_with_timeout_timeout_path_does_not_leak_coroutine() -> None:
    with _capture_unraisable() as leaked, warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        with pytest.raises(TimeoutError):
            await run_with_timeout(_slower(), 0.001, None)
        gc.collect()

    assert leaked == []


async def test_run_with_timeout_observes_cancel_while_waiting() -> None:
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    loop.call_later(0.02, token.cancel)

    with pytest.raises(OperationCancelledError):
        await run_with_timeout(_forever(), 5.0, token)


async def test_run_with_timeout_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError, match="timeout_seconds"):
        await run_with_timeout(_slow(), 0, None)


def test_cancellation_token_raise_if_cancelled() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()
    assert not token.is_cancelled

    token.cancel()

    assert token.is_cancelled
    with pytest.raises(OperationCancelledError):
        token.raise_if_cancelled()


def test_keyed_lock_serializes_same_key_and_releases_entries() -> None:
    locks = KeyedLock()
    order: list[str] = []
    first_inside = threading.Event()

    def first() -> None:
        with locks.hold("out.zip"):
            order.append("first-start")
            first_inside.set()
            time.sleep(0.05)
            order.append("first-end")

    def second() -> None:
        first_inside.wait()
        with locks.hold("out.zip"):
            order.append("second")

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert order == ["first-start", "first-end", "second"]
    assert locks.active_keys() == ()


def test_keyed_lock_does_not_block_distinct_keys() -> None:
    locks = KeyedLock()
    with locks.hold("a.zip"), locks.hold("b.zip"):
        assert locks.active_keys() == ("a.zip", "b.zip")
    assert locks.active_keys() == ()


def test_destination_key_is_canonical(tmp_path: Path) -> None:
    direct = tmp_path / "out.zip"
    indirect = tmp_path / "nested" / ".." / "out.zip"

    assert destination_key(direct) == destination_key(indirect)
    assert destination_key(str(direct)) == direct.resolve().as_posix()
