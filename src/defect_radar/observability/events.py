"""In-process publish/subscribe bus for monitor lifecycle events, with bounded replay."""

from __future__ import annotations

import inspect
import threading
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Final

import structlog

from defect_radar.domain.events import MonitorEvent, MonitorEventType

Subscriber = Callable[[MonitorEvent], object]

_DEFAULT_ERROR_BUFFER: Final[int] = 1024


@dataclass(frozen=True, slots=True)
class DispatchError:
    """Subscriber failure captured without interrupting the publisher."""

    event_id: str
    target: str
    error_type: str
    message: str


@dataclass(frozen=True, slots=True)
class _Subscription:
    token: int
    event_type: str | None
    callback: Subscriber


class EventBus:
    """Delivers events to sync and async subscribers in subscription order.

    Async subscribers are awaited before the next subscriber runs. A failing subscriber
    is recorded as a ``DispatchError`` and never prevents delivery to the remaining
    subscribers. The last ``buffer_size`` events are kept for replay.
    """

    def __init__(self, *, buffer_size: int = 512, logger: Any | None = None) -> None:
        if not isinstance(buffer_size, int) or isinstance(buffer_size, bool):
            raise ValueError(f"buffer_size must be an integer, got {type(buffer_size).__name__}")
        if buffer_size <= 0:
            raise ValueError("buffer_size must be > 0")

        self._buffer = deque[MonitorEvent](maxlen=buffer_size)
        self._subscriptions: dict[int, _Subscription] = {}
        self._dispatch_errors = deque[DispatchError](maxlen=_DEFAULT_ERROR_BUFFER)
        self._next_token = 1
        self._lock = threading.RLock()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def subscribe(self, event_type: str | MonitorEventType | None, callback: Subscriber) -> int:
        """Subscribe to one event type, or to every event when ``event_type`` is ``None``."""

        if not callable(callback):
            raise ValueError("callback must be callable")
        normalized = _normalize_event_type_filter(event_type)
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscriptions[token] = _Subscription(
                token=token, event_type=normalized, callback=callback
            )
        return token

    def unsubscribe(self, token: int) -> bool:
        """Remove a subscription. Returns ``True`` when the token existed."""

        if not isinstance(token, int):
            raise ValueError(f"token must be an integer, got {type(token).__name__}")
        with self._lock:
            return self._subscriptions.pop(token, None) is not None

    def subscriber_count(self, event_type: str | MonitorEventType | None = None) -> int:
        normalized = _normalize_event_type_filter(event_type)
        with self._lock:
            if normalized is None:
                return len(self._subscriptions)
            return sum(
                1
                for item in self._subscriptions.values()
                if item.event_type is None or item.event_type == normalized
            )

    async def publish(self, event: MonitorEvent) -> tuple[DispatchError, ...]:
        """Buffer ``event`` and deliver it to every matching subscriber in order."""

        if not isinstance(event, MonitorEvent):
            raise ValueError(f"event must be MonitorEvent, got {type(event).__name__}")
        with self._lock:
            self._buffer.append(event)
            subscriptions = tuple(self._subscriptions.values())

        errors: list[DispatchError] = []
        for item in subscriptions:
            if item.event_type is not None and item.event_type != event.event_type.value:
                continue
            try:
                result = item.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # subscriber isolation boundary
                errors.append(
                    DispatchError(
                        event_id=event.event_id,
                        target=_callback_name(item.callback),
                        error_type=exc.__class__.__name__,
                        message=str(exc),
                    )
                )
        self._remember(errors)
        return tuple(errors)

    async def emit(
        self,
        event_type: str | MonitorEventType,
        payload: Mapping[str, object],
        *,
        monitor_id: str | None = None,
    ) -> tuple[MonitorEvent, tuple[DispatchError, ...]]:
        """Create and publish an event."""

        event = MonitorEvent(
            event_type=MonitorEventType(event_type), payload=payload, monitor_id=monitor_id
        )
        return event, await self.publish(event)

    def replay(
        self,
        *,
        since: datetime | str | None = None,
        event_type: str | MonitorEventType | None = None,
        limit: int | None = None,
    ) -> tuple[MonitorEvent, ...]:
        """Return buffered events in publish order."""

        since_dt = _normalize_since(since)
        type_filter = _normalize_event_type_filter(event_type)
        with self._lock:
            events = tuple(self._buffer)
        filtered = [
            event
            for event in events
            if not (
                (since_dt is not None and event.timestamp <= since_dt)
                or (type_filter is not None and event.event_type.value != type_filter)
            )
        ]
        if limit is not None:
            if not isinstance(limit, int):
                raise ValueError(f"limit must be an integer, got {type(limit).__name__}")
            if limit <= 0:
                return ()
            filtered = filtered[-limit:]
        return tuple(filtered)

    def dispatch_errors(self, *, limit: int | None = None) -> tuple[DispatchError, ...]:
        with self._lock:
            errors = tuple(self._dispatch_errors)
        if limit is None:
            return errors
        if limit <= 0:
            return ()
        return errors[-limit:]

    def _remember(self, errors: list[DispatchError]) -> None:
        if not errors:
            return
        with self._lock:
            self._dispatch_errors.extend(errors)
        for error in errors:
            self._logger.warning(
                "event_dispatch_failed",
                event_id=error.event_id,
                target=error.target,
                error_type=error.error_type,
                error=error.message,
            )


def _normalize_event_type(value: str | MonitorEventType) -> str:
    if isinstance(value, MonitorEventType):
        return value.value
    if not isinstance(value, str):
        raise ValueError(f"event type must be string/MonitorEventType, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError("event type must not be empty")
    return normalized


def _normalize_event_type_filter(value: str | MonitorEventType | None) -> str | None:
    if value is None:
        return None
    return _normalize_event_type(value)


def _normalize_since(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("since datetime must be timezone-aware")
        return value.astimezone(UTC)
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"invalid since datetime string: {value!r}") from exc
        if parsed.tzinfo is None or parsed.utcoffset() is None:
            raise ValueError("since datetime string must include timezone")
        return parsed.astimezone(UTC)
    raise ValueError(f"since must be datetime/str/None, got {type(value).__name__}")


def _callback_name(callback: object) -> str:
    name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", None)
    if isinstance(name, str) and name:
        return name
    return callback.__class__.__name__


__all__ = [
    "DispatchError",
    "EventBus",
    "Subscriber",
]
