"""
defect-radar - unit tests for monitor event envelopes

File: tests/unit/domain/test_events.py

Purpose
- Validate event type coercion, timestamp rules, and JSON conversion of live payloads.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from defect_radar.domain.events import MonitorEvent, MonitorEventType, jsonify
from defect_radar.domain.models import Finding, FindingType, Location, Severity


def _finding() -> Finding:
    return Finding(
        type=FindingType.RUNTIME,
        severity=Severity.CRITICAL,
        message="Potential infinite loop",
        location=Location(file_path="/p/a.js", line=4, column=2),
        rule="infinite_loop_risk",
    )


def test_event_type_values_are_stable() -> None:
    assert [member.value for member in MonitorEventType] == [
        "error:detected",
        "error:fixed",
        "file:changed",
        "scan:started",
        "scan:completed",
        "error:critical",
        "status:update",
        "error",
    ]


def test_event_accepts_string_type_and_copies_payload() -> None:
    payload = {"file_path": "/p/a.js"}
    event = MonitorEvent(event_type="file:changed", payload=payload)  # type: ignore[arg-type]
    payload["file_path"] = "mutated"

    assert event.event_type is MonitorEventType.FILE_CHANGED
    assert event.payload["file_path"] == "/p/a.js"
    assert event.event_id.startswith("evt-")


def test_unknown_event_type_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported event type"):
        MonitorEvent(event_type="error:exploded", payload={})  # type: ignore[arg-type]


def test_naive_timestamp_is_rejected() -> None:
    with pytest.raises(ValueError, match="timezone-aware"):
        MonitorEvent(
            event_type=MonitorEventType.STATUS_UPDATE,
            payload={},
            timestamp=datetime(2026, 1, 1),  # noqa: DTZ001
        )


def test_to_json_converts_findings_and_enums() -> None:
    finding = _finding()
    event = MonitorEvent(
        event_type=MonitorEventType.ERROR_DETECTED,
        payload={"error": finding, "file_path": "/p/a.js", "kinds": (FindingType.RUNTIME,)},
        monitor_id="mon-01HZZZZZZZZZZZZZZZZZZZZZZZ",
        timestamp=datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC),
    )

    decoded = json.loads(event.to_json())

    assert decoded["event_type"] == "error:detected"
    assert decoded["timestamp"] == "2026-01-02T03:04:05.000000Z"
    assert decoded["payload"]["error"]["id"] == finding.id
    assert decoded["payload"]["error"]["category"] == "critical"
    assert decoded["payload"]["kinds"] == ["runtime"]


def test_jsonify_rejects_unserializable_values() -> None:
    with pytest.raises(ValueError, match="not JSON-serializable"):
        jsonify({"x": object()})
    with pytest.raises(ValueError, match="finite"):
        jsonify(float("nan"))
    with pytest.raises(ValueError, match="keys must be strings"):
        jsonify({1: "a"})
