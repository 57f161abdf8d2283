"""Bounded worker pool, timeouts, and cancellation edge cases."""

from __future__ import annotations

import asyncio
import gc
import sys
import warnings
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import pytest

from defect_radar.utils.concurrency import (
    BoundedSemaphore,
    WorkerPool,
    default_concurrency,
    run_with_timeout,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@contextmanager
def _capture_unraisable() -> Iterator[list[Any]]:
    captured: list[Any] = []
    original = sys.unraisablehook
    sys.unraisablehook = captured.append
    try:
        yield captured
    finally:
        sys.unraisablehook = original


async def _value_after(value: int, delay: float) -> int:
    await asyncio.sleep(delay)
    return value


async def _fail_after(delay: float) -> int:
    await asyncio.sleep(delay)
    raise OSError("disk vanished")


def test_default_concurrency_prefers_configured_value() -> None:
    assert default_concurrency(3) == 3
    assert default_concurrency(0) >= 1
    assert default_concurrency(-2) >= 1


async def test_worker_pool_bounds_concurrency_and_collects_everything() -> None:
    pool: WorkerPool[int] = WorkerPool(max_concurrency=2)

    results = await pool.collect(_value_after(index, 0.01) for index in range(6))

    assert sorted(results) == list(range(6))
    assert pool.peak_in_use == 2


async def test_worker_pool_propagates_first_failure_and_cancels_rest() -> None:
    pool: WorkerPool[int] = WorkerPool(max_concurrency=4)
    slow = asyncio.Event()

    async def never_finishes() -> int:
        await slow.wait()
        return 0

    with pytest.raises(OSError, match="disk vanished"):
        await pool.collect([_fail_after(0.0), never_finishes()])


def test_invalid_limits_are_rejected() -> None:
    with pytest.raises(ValueError, match="max_concurrency"):
        WorkerPool(max_concurrency=0)
    with pytest.raises(ValueError, match="limit"):
        BoundedSemaphore(0)


async def test_bounded_semaphore_tracks_permits() -> None:
    semaphore = BoundedSemaphore(2)

    async with semaphore.permit():
        assert semaphore.in_use == 1
    assert semaphore.in_use == 0
    with pytest.raises(RuntimeError, match="more times than acquire"):
        semaphore.release()


async def test_run_with_timeout_returns_result_in_time() -> None:
    assert await run_with_timeout(_value_after(7, 0.0), 1.0) == 7
    with pytest.raises(ValueError, match="timeout_seconds"):
        await run_with_timeout(_value_after(7, 0.0), 0)


async def test_run_with_timeout_cancels_inner_task_when_caller_is_cancelled() -> None:
    started = asyncio.Event()
    inner_cancelled = asyncio.Event()

    async def slow() -> int:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            inner_cancelled.set()
            raise
        return 1

    outer = asyncio.create_task(run_with_timeout(slow(), 5.0))
    await started.wait()
    outer.cancel()

    with pytest.raises(asyncio.CancelledError):
        await outer
    assert inner_cancelled.is_set()


async def test_run_with_timeout_rejects_bad_timeout_without_leaking_coroutine() -> None:
    with _capture_unraisable() as leaked, warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        with pytest.raises(ValueError, match="timeout_seconds"):
            await run_with_timeout(_value_after(1, 0.0), -1.0)
        gc.collect()

    assert leaked == []


async def test_run_with_timeout_timeout_path_does_not_leak_coroutine() -> None:
    with _capture_unraisable() as leaked, warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        with pytest.raises(TimeoutError, match="timed out"):
            await run_with_timeout(_value_after(1, 0.05), 0.001)
        gc.collect()

    assert leaked == []
