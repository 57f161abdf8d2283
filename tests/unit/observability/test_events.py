"""
defect-radar - unit tests for the monitor event bus

File: tests/unit/observability/test_events.py

Purpose
- Validate event bus fanout resilience, filtering, and replay semantics.

What this test file should cover
- Sync+async subscriber support with in-order delivery.
- Subscriber exception isolation.
- Type-filtered subscriptions and unsubscribe by token.
- Ring-buffer replay ordering and filters.

Functional requirements
- Offline and deterministic.

Non-functional requirements
- No sleep-based synchronization.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, timedelta

import pytest

import defect_radar.observability as observability_pkg
from defect_radar.domain.events import MonitorEvent, MonitorEventType
from defect_radar.observability.events import EventBus


def _event(event_type: MonitorEventType | str, **payload: object) -> MonitorEvent:
    return MonitorEvent(event_type=event_type, payload=payload)  # type: ignore[arg-type]


async def test_subscribers_receive_events_in_publish_order() -> None:
    bus = EventBus(buffer_size=10)
    sub_a: list[str] = []
    sub_b: list[str] = []

    bus.subscribe(None, lambda event: sub_a.append(event.event_type.value))
    bus.subscribe(None, lambda event: sub_b.append(event.event_type.value))

    assert await bus.publish(_event("scan:started", project_path="/p")) == ()
    assert await bus.publish(_event("scan:completed", project_path="/p")) == ()

    assert sub_a == ["scan:started", "scan:completed"]
    assert sub_b == ["scan:started", "scan:completed"]


async def test_async_subscriber_is_awaited_before_next_subscriber() -> None:
    bus = EventBus(buffer_size=10)
    order: list[str] = []

    async def slow_sub(event: MonitorEvent) -> None:
        await asyncio.sleep(0)
        order.append(f"async:{event.event_type.value}")

    bus.subscribe(None, slow_sub)
    bus.subscribe(None, lambda event: order.append(f"sync:{event.event_type.value}"))

    event, errors = await bus.emit("file:changed", {"file_path": "/p/a.js"}, monitor_id="mon-1")
    await bus.emit(MonitorEventType.ERROR_FIXED, {})

    assert errors == ()
    assert event.payload == {"file_path": "/p/a.js"}
    assert event.monitor_id == "mon-1"
    assert order == [
        "async:file:changed",
        "sync:file:changed",
        "async:error:fixed",
        "sync:error:fixed",
    ]


async def test_subscriber_exception_does_not_break_other_subscribers() -> None:
    bus = EventBus(buffer_size=10)
    received: list[str] = []

    def broken(_event: MonitorEvent) -> None:
        raise RuntimeError("boom")

    async def broken_async(_event: MonitorEvent) -> None:
        raise OSError("pager offline")

    bus.subscribe(None, broken)
    bus.subscribe(None, broken_async)
    bus.subscribe(None, lambda event: received.append(event.event_type.value))

    errors = await bus.publish(_event("error", type="scan"))

    assert received == ["error"]
    assert [error.error_type for error in errors] == ["RuntimeError", "OSError"]
    assert errors[0].target.endswith("broken")
    assert bus.dispatch_errors(limit=1) == errors[1:]
    assert bus.dispatch_errors(limit=0) == ()


async def test_type_filter_and_unsubscribe() -> None:
    bus = EventBus(buffer_size=10)
    detected: list[str] = []
    token = bus.subscribe(MonitorEventType.ERROR_DETECTED, lambda event: detected.append(event.event_id))

    first = _event("error:detected")
    await bus.publish(first)
    await bus.publish(_event("error:fixed"))

    assert detected == [first.event_id]
    assert bus.subscriber_count("error:detected") == 1
    assert bus.subscriber_count("error:fixed") == 0
    assert bus.unsubscribe(token) is True
    assert bus.unsubscribe(token) is False
    await bus.publish(_event("error:detected"))
    assert detected == [first.event_id]


async def test_replay_ring_buffer_is_deterministic() -> None:
    bus = EventBus(buffer_size=2)
    await bus.publish(_event("scan:started"))
    await bus.publish(_event("scan:completed"))
    await bus.publish(_event("status:update"))

    replay = bus.replay()

    assert [event.event_type.value for event in replay] == ["scan:completed", "status:update"]
    assert [event.event_type.value for event in bus.replay(event_type="status:update")] == ["status:update"]
    assert bus.replay(limit=0) == ()
    assert len(bus.replay(limit=1)) == 1


async def test_replay_since_filter() -> None:
    bus = EventBus(buffer_size=5)
    first = _event("scan:started")
    await bus.publish(first)
    await bus.publish(_event("scan:completed"))

    replay = bus.replay(since=first.timestamp)

    assert [event.event_type.value for event in replay] == ["scan:completed"]


async def test_replay_accepts_iso_since_strings() -> None:
    bus = EventBus(buffer_size=10)
    event = _event("status:update")
    await bus.publish(event)
    future = (event.timestamp + timedelta(seconds=1)).astimezone(UTC)

    assert bus.replay(since=future.isoformat().replace("+00:00", "Z")) == ()
    with pytest.raises(ValueError, match="timezone"):
        bus.replay(since="2026-01-01T00:00:00")


async def test_failed_delivery_still_buffers_event_for_replay() -> None:
    bus = EventBus(buffer_size=10)
    bus.subscribe("error:critical", lambda _event: 1 / 0)

    event = _event("error:critical", count=1)
    [error] = await bus.publish(event)

    assert error.error_type == "ZeroDivisionError"
    assert bus.replay()[-1].event_id == event.event_id


async def test_bus_rejects_invalid_arguments() -> None:
    with pytest.raises(ValueError, match="buffer_size"):
        EventBus(buffer_size=0)
    bus = EventBus()
    with pytest.raises(ValueError, match="callable"):
        bus.subscribe(None, "not callable")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="MonitorEvent"):
        await bus.publish({"event_type": "error"})  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="unsupported event type"):
        _event("scan:paused")


async def test_observability_package_exports_event_bus() -> None:
    bus = observability_pkg.EventBus(buffer_size=2)
    event = _event("status:update", status="started")
    assert await bus.publish(event) == ()
    assert bus.replay()[-1].event_id == event.event_id
