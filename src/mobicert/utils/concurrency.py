"""Async concurrency primitives: cancellation, bounded fan-out, deadlines, per-project locks."""

from __future__ import annotations

import asyncio
import inspect
import os
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable

T = TypeVar("T")


class CancellationToken:
    """Cooperative cancellation token backed by ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError("operation cancelled")


@dataclass(slots=True)
class WorkerPool(Generic[T]):
    """Run coroutines with bounded concurrency and yield results as they finish.

    The first coroutine to raise cancels every task still pending and the exception propagates
    to the consumer. Closing the consumer early (or cancelling it) cancels in-flight tasks too.
    """

    max_concurrency: int
    cancel_token: CancellationToken | None = None
    _token: CancellationToken = field(init=False, repr=False)
    _semaphore: asyncio.Semaphore = field(init=False, repr=False)
    _in_flight: int = field(init=False, default=0)
    _peak: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._token = self.cancel_token or CancellationToken()
        self._semaphore = asyncio.Semaphore(self.max_concurrency)

    @property
    def peak_concurrency(self) -> int:
        return self._peak

    async def run(self, coroutines: Iterable[Awaitable[T]]) -> AsyncIterator[T]:
        tasks: set[asyncio.Task[T]] = set()

        for coroutine in coroutines:
            if self._token.is_cancelled:
                _close_unscheduled_coroutine(coroutine)
                continue
            tasks.add(asyncio.create_task(self._run_one(coroutine)))

        try:
            self._token.raise_if_cancelled()
            while tasks:
                done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                tasks = set(pending)

                for task in done:
                    if task.cancelled():
                        raise asyncio.CancelledError("worker task cancelled")
                    exc = task.exception()
                    if exc is not None:
                        raise exc
                    yield task.result()
                self._token.raise_if_cancelled()
        finally:
            await _cancel_all(tasks)

    async def _run_one(self, coroutine: Awaitable[T]) -> T:
        async with self._semaphore:
            self._token.raise_if_cancelled()
            self._in_flight += 1
            self._peak = max(self._peak, self._in_flight)
            try:
                return await coroutine
            finally:
                self._in_flight -= 1


async def run_with_timeout(
    coroutine: Awaitable[T],
    timeout_seconds: float,
    cancel_token: CancellationToken | None = None,
) -> T:
    """Run ``coroutine`` under a deadline; exceeding it cancels only that coroutine."""
    if timeout_seconds <= 0:
        _close_unscheduled_coroutine(coroutine)
        raise ValueError("timeout_seconds must be > 0")

    token = cancel_token or CancellationToken()
    if token.is_cancelled:
        _close_unscheduled_coroutine(coroutine)
        raise asyncio.CancelledError("operation cancelled")

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
        if cancel_wait_task in done:
            raise asyncio.CancelledError("operation cancelled")
        raise TimeoutError(f"operation timed out after {timeout_seconds} seconds")
    finally:
        cancel_wait_task.cancel()
        with suppress(asyncio.CancelledError):
            await cancel_wait_task


class ProjectLockRegistry:
    """Hand out one ``asyncio.Lock`` per resolved project path.

    Two certifications of the same directory (including via symlinks or relative spellings)
    serialize on the same lock; different directories proceed independently.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @staticmethod
    def key_for(project_path: str | os.PathLike[str]) -> str:
        return Path(project_path).expanduser().resolve().as_posix()

    def is_locked(self, project_path: str | os.PathLike[str]) -> bool:
        lock = self._locks.get(self.key_for(project_path))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, project_path: str | os.PathLike[str]) -> AsyncIterator[str]:
        key = self.key_for(project_path)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield key
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]


async def _await_value(awaitable: Awaitable[T]) -> T:
    return await awaitable


async def _cancel_all(tasks: set[asyncio.Task[T]]) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


def _close_unscheduled_coroutine(awaitable: Awaitable[object]) -> None:
    # Close raw coroutine objects that were never scheduled so CPython does not warn at GC.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = [
    "CancellationToken",
    "ProjectLockRegistry",
    "WorkerPool",
    "run_with_timeout",
]
