"""Cancellation, per-destination locking, and timeout helpers for blocking I/O work."""

from __future__ import annotations

import asyncio
import inspect
import threading
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Iterator

T = TypeVar("T")

_CANCEL_POLL_SECONDS = 0.01


class OperationCancelledError(RuntimeError):
    """Raised when a cooperative cancellation token is observed as cancelled."""


class CancellationToken:
    """
    Cooperative cancellation token backed by ``threading.Event``.

    Archive builds and materialization run on worker threads and check the token
    between entries; async callers can await ``wait``.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        while not self._event.is_set():
            await asyncio.sleep(_CANCEL_POLL_SECONDS)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("operation cancelled")


class KeyedLock:
    """Registry of per-key locks; entries are dropped once no holder remains."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, holders = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, holders + 1)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                current_lock, current_holders = self._locks[key]
                if current_holders <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (current_lock, current_holders - 1)

    def active_keys(self) -> tuple[str, ...]:
        with self._guard:
            return tuple(sorted(self._locks))


DESTINATION_LOCKS = KeyedLock()


def destination_key(path: str | Path) -> str:
    """Canonical lock key for a destination path."""

    return Path(path).expanduser().resolve().as_posix()


async def run_with_timeout(
    coroutine: Awaitable[T],
    timeout_seconds: float,
    cancel_token: CancellationToken | None = None,
) -> T:
    """Run ``coroutine`` with timeout and cooperative cancellation support."""
    if timeout_seconds <= 0:
        _close_unscheduled_coroutine(coroutine)
        raise ValueError("timeout_seconds must be > 0")

    token = cancel_token or CancellationToken()
    if token.is_cancelled:
        _close_unscheduled_coroutine(coroutine)
        raise OperationCancelledError("operation cancelled")

    task: asyncio.Task[T] = asyncio.create_task(_await_value(coroutine))
    cancel_wait_task = asyncio.create_task(token.wait())

    try:
        done, _ = await asyncio.wait(
            {task, cancel_wait_task},
            timeout=timeout_seconds,
            return_when=asyncio.FIRST_COMPLETED,
        )

        if task in done:
            return await task

        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        if cancel_wait_task in done and token.is_cancelled:
            raise OperationCancelledError("operation cancelled")
        raise TimeoutError(f"operation timed out after {timeout_seconds} seconds")
    finally:
        cancel_wait_task.cancel()
        with suppress(asyncio.CancelledError):
            await cancel_wait_task


async def _await_value(awaitable: Awaitable[T]) -> T:
    return await awaitable


def _close_unscheduled_coroutine(awaitable: Awaitable[object]) -> None:
    # Raw coroutine objects that were never scheduled must be closed explicitly.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = [
    "DESTINATION_LOCKS",
    "CancellationToken",
    "KeyedLock",
    "OperationCancelledError",
    "destination_key",
    "run_with_timeout",
]
