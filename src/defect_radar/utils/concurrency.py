"""Async concurrency primitives for bounded project scans and analyzer timeouts."""

from __future__ import annotations

import asyncio
import inspect
import os
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable

T = TypeVar("T")


def default_concurrency(configured: int = 0) -> int:
    """Return ``configured`` when positive, otherwise the number of available cores."""

    if configured > 0:
        return configured
    if hasattr(os, "sched_getaffinity"):
        available = len(os.sched_getaffinity(0))
    else:  # pragma: no cover - platform dependent.
        available = os.cpu_count() or 1
    return max(1, available)


class BoundedSemaphore:
    """``asyncio.Semaphore`` that tracks permits in use."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._in_use += 1

    def release(self) -> None:
        if self._in_use <= 0:
            raise RuntimeError("release called more times than acquire")
        self._in_use -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()


@dataclass(slots=True)
class WorkerPool(Generic[T]):
    """Run coroutines with bounded concurrency and yield results in completion order.

    The first failing coroutine cancels the rest and its exception propagates. Callers
    that need a deterministic order sort the collected results themselves.
    """

    max_concurrency: int
    peak_in_use: int = field(init=False, default=0)
    _semaphore: BoundedSemaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._semaphore = BoundedSemaphore(self.max_concurrency)

    async def run(self, coroutines: Iterable[Awaitable[T]]) -> AsyncIterator[T]:
        tasks = {asyncio.create_task(self._run_one(coroutine)) for coroutine in coroutines}

        try:
            while tasks:
                done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                tasks = set(pending)

                for task in done:
                    if task.cancelled():
                        raise asyncio.CancelledError("worker task cancelled")
                    exc = task.exception()
                    if exc is not None:
                        await self._cancel_all(tasks)
                        raise exc
                    yield task.result()
        except BaseException:
            await self._cancel_all(tasks)
            raise

    async def collect(self, coroutines: Iterable[Awaitable[T]]) -> list[T]:
        """Run ``coroutines`` and return all results in completion order."""

        return [item async for item in self.run(coroutines)]

    async def _run_one(self, coroutine: Awaitable[T]) -> T:
        async with self._semaphore.permit():
            self.peak_in_use = max(self.peak_in_use, self._semaphore.in_use)
            return await coroutine

    async def _cancel_all(self, tasks: set[asyncio.Task[T]]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


async def run_with_timeout(coroutine: Awaitable[T], timeout_seconds: float) -> T:
    """Await ``coroutine`` for at most ``timeout_seconds``.

    Raises ``TimeoutError`` on expiry. The inner task is cancelled and awaited on expiry
    and when the caller itself is cancelled.
    """

    if timeout_seconds <= 0:
        _close_unscheduled_coroutine(coroutine)
        raise ValueError("timeout_seconds must be > 0")

    task: asyncio.Task[T] = asyncio.ensure_future(coroutine)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    except asyncio.CancelledError:
        await _cancel_and_wait(task)
        raise
    if task in done:
        return task.result()
    await _cancel_and_wait(task)
    raise TimeoutError(f"operation timed out after {timeout_seconds} seconds")


async def _cancel_and_wait(task: asyncio.Task[T]) -> None:
    task.cancel()
    with suppress(asyncio.CancelledError):
        await task


def _close_unscheduled_coroutine(awaitable: Awaitable[object]) -> None:
    # Raw coroutine objects that never get scheduled would warn at GC time.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = [
    "BoundedSemaphore",
    "WorkerPool",
    "default_concurrency",
    "run_with_timeout",
]
