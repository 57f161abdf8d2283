"""Monitor lifecycle event definitions and JSON export helpers."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from defect_radar.domain import ids

if TYPE_CHECKING:
    from collections.abc import Mapping

    from defect_radar.domain.models import JSONValue

_MAX_DEPTH = 16


class MonitorEventType(StrEnum):
    """Lifecycle events published by the real-time monitor."""

    ERROR_DETECTED = "error:detected"
    ERROR_FIXED = "error:fixed"
    FILE_CHANGED = "file:changed"
    SCAN_STARTED = "scan:started"
    SCAN_COMPLETED = "scan:completed"
    CRITICAL_ERROR = "error:critical"
    STATUS_UPDATE = "status:update"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MonitorEvent:
    """Event envelope delivered to bus subscribers.

    ``payload`` keeps live domain objects (findings, scan results) so in-process handlers
    can use them directly; ``to_dict`` converts them through their own ``to_dict``.
    """

    event_type: MonitorEventType
    payload: Mapping[str, object]
    monitor_id: str | None = None
    event_id: str = field(default_factory=ids.generate_event_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        ids.validate_event_id(self.event_id)
        if not isinstance(self.event_type, MonitorEventType):
            try:
                object.__setattr__(self, "event_type", MonitorEventType(self.event_type))
            except ValueError as exc:
                allowed = ", ".join(member.value for member in MonitorEventType)
                raise ValueError(
                    f"MonitorEvent.event_type: unsupported event type {self.event_type!r}; "
                    f"allowed: {allowed}"
                ) from exc
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError("MonitorEvent.timestamp: datetime must be timezone-aware UTC")
        object.__setattr__(self, "payload", dict(self.payload))

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": datetime_to_iso8601z(self.timestamp),
            "monitor_id": self.monitor_id,
            "payload": jsonify(dict(self.payload), "MonitorEvent.payload"),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def datetime_to_iso8601z(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def jsonify(value: object, path: str = "$", *, depth: int = 0) -> JSONValue:
    """Convert ``value`` into JSON-safe data, delegating to ``to_dict`` where available."""

    if depth > _MAX_DEPTH:
        raise ValueError(f"{path}: JSON nesting too deep")
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{path}: float value must be finite")
        return value
    if isinstance(value, StrEnum):
        return value.value
    if isinstance(value, datetime):
        return datetime_to_iso8601z(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return jsonify(to_dict(), path, depth=depth + 1)
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return [jsonify(item, f"{path}[{idx}]", depth=depth + 1) for idx, item in enumerate(items)]
    if isinstance(value, dict):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path}: object keys must be strings")
            out[key] = jsonify(item, f"{path}.{key}", depth=depth + 1)
        return out
    raise ValueError(f"{path}: value is not JSON-serializable ({type(value).__name__})")


__all__ = ["MonitorEvent", "MonitorEventType", "datetime_to_iso8601z", "jsonify"]
