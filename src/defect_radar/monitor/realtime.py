"""
defect-radar - real-time monitor

File: src/defect_radar/monitor/realtime.py

Purpose
- Keep a live set of active findings for watched project roots as files change.

What should be included in this file
- ``RealTimeMonitor`` with ``start``/``stop``/``stop_all``, status and dashboard views, history
  queries, and forced rescans.
- Per-path debounce: every change re-arms the path's timer and cancels any pending or
  in-flight rescan of that path.
- Fingerprint diffing between the previous and current findings of a rescanned file.

Functional requirements
- ``start`` on an already watched root returns the existing handle; a missing root raises
  ``ProjectNotFoundError``.
- Watched roots never nest; ``start`` on a root inside or around a watched one raises
  ``MonitorError``.
- A rescan that reports diagnostics leaves the file's previous findings untouched.
- A deleted file loses all its active findings, each reported as fixed with reason
  ``file_deleted``.
- Watch and rescan failures are published as ``error`` events; the monitor keeps running.
- ``stop`` cancels the root's timers and subscription and forgets its findings silently.

Non-functional requirements
- No two rescans of the same path run concurrently; rescans of different paths may.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog

from defect_radar.constants import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MONITOR_IGNORE_PATTERNS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RECENT_ACTIVITY_LIMIT,
)
from defect_radar.domain.events import MonitorEventType, datetime_to_iso8601z
from defect_radar.domain.ids import generate_monitor_id
from defect_radar.domain.models import (
    DiagnosticKind,
    Finding,
    JSONValue,
    count_by_category,
    count_by_severity,
    count_by_type,
)
from defect_radar.engine.finding_engine import FindingEngine
from defect_radar.errors import MonitorError, ProjectNotFoundError
from defect_radar.monitor.active_set import (
    ActiveFindingSet,
    FindingDiff,
    HistoryAction,
    HistoryEntry,
)
from defect_radar.monitor.notifier import (
    ChangeEvent,
    ChangeKind,
    ChangeNotifier,
    PollingChangeNotifier,
)
from defect_radar.observability.events import EventBus
from defect_radar.observability.logging import correlation_scope
from defect_radar.utils.fs import file_extension, is_within, matches_ignore, relative_posix

FILE_DELETED_REASON = "file_deleted"


class MonitorPhase(StrEnum):
    SCANNING = "scanning"
    WATCHING = "watching"
    RESCANNING = "rescanning"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class MonitorOptions:
    """Per-root watch options; ``start`` falls back to the monitor's settings."""

    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    ignore_patterns: tuple[str, ...] = DEFAULT_MONITOR_IGNORE_PATTERNS
    notify_on_critical: bool = True
    auto_rescan: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "ignore_patterns", tuple(self.ignore_patterns))
        if self.debounce_ms < 0:
            raise ValueError("MonitorOptions.debounce_ms must be >= 0")

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "debounce_ms": self.debounce_ms,
            "ignore_patterns": list(self.ignore_patterns),
            "notify_on_critical": self.notify_on_critical,
            "auto_rescan": self.auto_rescan,
        }


@dataclass(frozen=True, slots=True)
class MonitorSettings:
    options: MonitorOptions = field(default_factory=MonitorOptions)
    history_limit: int = DEFAULT_HISTORY_LIMIT
    recent_activity_limit: int = DEFAULT_RECENT_ACTIVITY_LIMIT
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    event_buffer_size: int = 512

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> MonitorSettings:
        """Build settings from a validated configuration mapping (``monitor`` section)."""
        section = config.get("monitor", {})
        observability = config.get("observability", {})
        if not isinstance(section, Mapping) or not isinstance(observability, Mapping):
            raise ValueError("monitor/observability: expected mapping")
        defaults = cls()
        base = defaults.options
        return cls(
            options=MonitorOptions(
                debounce_ms=int(section.get("debounce_ms", base.debounce_ms)),
                ignore_patterns=tuple(section.get("ignore_patterns", base.ignore_patterns)),
                notify_on_critical=bool(section.get("notify_on_critical", base.notify_on_critical)),
                auto_rescan=bool(section.get("auto_rescan", base.auto_rescan)),
            ),
            history_limit=int(section.get("history_limit", defaults.history_limit)),
            recent_activity_limit=int(
                section.get("recent_activity_limit", defaults.recent_activity_limit)
            ),
            poll_interval_seconds=float(
                section.get("poll_interval_seconds", defaults.poll_interval_seconds)
            ),
            event_buffer_size=int(
                observability.get("event_buffer_size", defaults.event_buffer_size)
            ),
        )


@dataclass(frozen=True, slots=True)
class MonitorHandle:
    id: str
    project_path: str
    started_at: datetime
    options: MonitorOptions

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "project_path": self.project_path,
            "started_at": datetime_to_iso8601z(self.started_at),
            "options": self.options.to_dict(),
        }


@dataclass(slots=True)
class MonitorStats:
    files_scanned: int = 0
    errors_detected: int = 0
    errors_fixed: int = 0
    scan_count: int = 0
    last_scan_time: datetime | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "files_scanned": self.files_scanned,
            "errors_detected": self.errors_detected,
            "errors_fixed": self.errors_fixed,
            "scan_count": self.scan_count,
            "last_scan_time": None
            if self.last_scan_time is None
            else datetime_to_iso8601z(self.last_scan_time),
        }


@dataclass(frozen=True, slots=True)
class MonitorStatus:
    is_monitoring: bool
    errors: tuple[Finding, ...]
    by_severity: dict[str, int]
    by_category: dict[str, int]
    by_type: dict[str, int]
    stats: MonitorStats
    phases: dict[str, MonitorPhase]

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    @property
    def critical_count(self) -> int:
        return sum(1 for finding in self.errors if finding.is_critical)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "is_monitoring": self.is_monitoring,
            "total_errors": self.total_errors,
            "critical_count": self.critical_count,
            "errors": [item.to_dict() for item in self.errors],
            "by_severity": dict(self.by_severity),
            "by_category": dict(self.by_category),
            "by_type": dict(self.by_type),
            "stats": self.stats.to_dict(),
            "phases": {key: value.value for key, value in self.phases.items()},
        }


@dataclass(frozen=True, slots=True)
class DashboardData:
    status: MonitorStatus
    recent_activity: tuple[HistoryEntry, ...]
    monitored_roots: tuple[str, ...]
    uptime_seconds: float

    def to_dict(self) -> dict[str, JSONValue]:
        payload = self.status.to_dict()
        payload["recent_activity"] = [entry.to_dict() for entry in self.recent_activity]
        payload["monitored_roots"] = list(self.monitored_roots)
        payload["uptime_seconds"] = self.uptime_seconds
        return payload


@dataclass(slots=True)
class _RootState:
    handle: MonitorHandle
    started_monotonic: float
    phase: MonitorPhase = MonitorPhase.SCANNING
    consumer: asyncio.Task[None] | None = None
    pending: dict[str, asyncio.Task[None]] = field(default_factory=dict)
    rescanning: int = 0

    @property
    def root(self) -> str:
        return self.handle.project_path


class RealTimeMonitor:
    """Watches project roots and publishes finding lifecycle events on an ``EventBus``.

    One monitor serves any number of roots; the bus may be shared with other monitors.
    """

    def __init__(
        self,
        engine: FindingEngine,
        *,
        bus: EventBus | None = None,
        notifier: ChangeNotifier | None = None,
        settings: MonitorSettings | None = None,
        logger: Any | None = None,
    ) -> None:
        self._engine = engine
        self._settings = settings if settings is not None else MonitorSettings()
        self._bus = bus if bus is not None else EventBus(buffer_size=self._settings.event_buffer_size)
        self._notifier: ChangeNotifier = (
            notifier
            if notifier is not None
            else PollingChangeNotifier(
                interval_seconds=self._settings.poll_interval_seconds,
                ignore_patterns=self._settings.options.ignore_patterns,
            )
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._active = ActiveFindingSet(history_limit=self._settings.history_limit)
        self._roots: dict[str, _RootState] = {}
        self._commits: set[asyncio.Task[None]] = set()
        self._stats = MonitorStats()

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def is_monitoring(self) -> bool:
        return bool(self._roots)

    def handles(self) -> tuple[MonitorHandle, ...]:
        return tuple(state.handle for state in self._roots.values())

    # ---------------------------------------------------------------- lifecycle

    async def start(
        self, root: str | os.PathLike[str], *, options: MonitorOptions | None = None
    ) -> MonitorHandle:
        """Scan ``root`` once, seed the active set, and begin watching for changes."""

        root_path = Path(os.path.abspath(root))
        key = os.fspath(root_path)
        existing = self._roots.get(key)
        if existing is not None:
            return existing.handle
        if not root_path.is_dir():
            raise ProjectNotFoundError(f"project root does not exist or is not a directory: {root}")
        # Roots share one active set, so a file must belong to exactly one watched root.
        for other in self._roots:
            if is_within(key, other) or is_within(other, key):
                raise MonitorError(f"root {key} overlaps already watched root {other}")

        handle = MonitorHandle(
            id=generate_monitor_id(),
            project_path=key,
            started_at=datetime.now(tz=UTC),
            options=options if options is not None else self._settings.options,
        )
        state = _RootState(handle=handle, started_monotonic=time.monotonic())
        self._roots[key] = state

        with correlation_scope(monitor_id=handle.id, root=key):
            self._logger.info("monitor_starting", debounce_ms=handle.options.debounce_ms)
            await self._full_scan(state, initial=True)
            if state.phase is MonitorPhase.STOPPED:
                return handle
            state.consumer = asyncio.create_task(
                self._consume(state), name=f"defect-radar-watch-{handle.id}"
            )
            # Let the consumer open its subscription before callers push changes.
            await asyncio.sleep(0)
            if state.phase is MonitorPhase.STOPPED:
                return handle
            state.phase = MonitorPhase.WATCHING
            await self._emit(
                MonitorEventType.STATUS_UPDATE,
                {"status": "started", "project_path": key},
                state,
            )
        return handle

    async def stop(self, handle: MonitorHandle) -> bool:
        """Stop watching ``handle``'s root. Returns ``False`` if it was not being watched."""

        state = self._roots.get(handle.project_path)
        if state is None or state.handle.id != handle.id:
            return False
        del self._roots[handle.project_path]
        state.phase = MonitorPhase.STOPPED

        tasks = [task for task in state.pending.values()]
        if state.consumer is not None:
            tasks.append(state.consumer)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        state.pending.clear()

        dropped = self._active.drop_root(state.root)
        self._logger.info(
            "monitor_stopped", monitor_id=handle.id, root=state.root, dropped_findings=dropped
        )
        await self._emit(
            MonitorEventType.STATUS_UPDATE,
            {"status": "stopped", "project_path": state.root},
            state,
        )
        return True

    async def stop_all(self) -> int:
        handles = self.handles()
        for handle in handles:
            await self.stop(handle)
        return len(handles)

    async def force_rescan(self) -> None:
        """Rescan every watched root and publish the resulting differences."""
        for state in list(self._roots.values()):
            with correlation_scope(monitor_id=state.handle.id, root=state.root):
                await self._full_scan(state, initial=False)

    async def wait_idle(self) -> None:
        """Wait until no debounce timer, rescan, or event commit is outstanding."""
        while True:
            pending = [task for state in self._roots.values() for task in state.pending.values()]
            pending.extend(self._commits)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ---------------------------------------------------------------- watching

    async def _consume(self, state: _RootState) -> None:
        try:
            async for change in self._notifier.subscribe(state.root):
                self._handle_change(state, change)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # watch isolation boundary
            self._logger.error("watch_failed", error_type=type(exc).__name__, error=str(exc))
            await self._emit_failure("scan", None, exc, state)

    def _handle_change(self, state: _RootState, change: ChangeEvent) -> None:
        path = Path(change.path)
        if not path.is_absolute():
            path = Path(state.root) / path
        path_text = os.fspath(path)
        relative = relative_posix(path_text, state.root)
        if relative is None or matches_ignore(relative, state.handle.options.ignore_patterns):
            return
        # Only files the project scan would visit may contribute active findings.
        if (
            self._engine.is_ignored(path_text, state.root)
            or file_extension(path_text) not in self._engine.supported_extensions()
        ):
            return

        previous = state.pending.get(path_text)
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.create_task(
            self._debounced_rescan(state, path_text, change.kind),
            name=f"defect-radar-rescan-{relative}",
        )
        state.pending[path_text] = task
        task.add_done_callback(lambda done: self._forget(state, path_text, done))

    def _forget(self, state: _RootState, path: str, task: asyncio.Task[None]) -> None:
        if state.pending.get(path) is task:
            del state.pending[path]

    async def _debounced_rescan(self, state: _RootState, path: str, kind: ChangeKind) -> None:
        await asyncio.sleep(state.handle.options.debounce_ms / 1000.0)
        await self._emit(
            MonitorEventType.FILE_CHANGED, {"file_path": path, "event_type": kind.value}, state
        )
        if state.handle.options.auto_rescan:
            await self._rescan_file(state, path)

    async def _rescan_file(self, state: _RootState, path: str) -> None:
        state.rescanning += 1
        state.phase = MonitorPhase.RESCANNING
        try:
            if not await asyncio.to_thread(os.path.exists, path):
                removed = self._active.remove_file(path)
                self._stats.errors_fixed += len(removed)
                self._commit(state, path, FindingDiff(added=(), removed=removed), deleted=True)
                return

            result = await self._engine.scan_file(path)
            if result.diagnostics:
                # An incomplete scan says nothing about which findings were fixed.
                diagnostic = result.diagnostics[0]
                self._logger.warning(
                    "rescan_incomplete", file_path=path, diagnostic=diagnostic.kind.value
                )
                await self._emit_failure(
                    "rescan", path, diagnostic.message, state, reason=diagnostic.kind
                )
                return

            diff = self._active.replace_file(path, result.errors)
            self._stats.files_scanned += 1
            self._stats.scan_count += 1
            self._stats.errors_detected += len(diff.added)
            self._stats.errors_fixed += len(diff.removed)
            self._stats.last_scan_time = datetime.now(tz=UTC)
            self._logger.debug(
                "file_rescanned", file_path=path, added=len(diff.added), removed=len(diff.removed)
            )
            self._commit(state, path, diff, deleted=False)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # rescan isolation boundary
            self._logger.error(
                "rescan_failed", file_path=path, error_type=type(exc).__name__, error=str(exc)
            )
            await self._emit_failure("rescan", path, exc, state)
        finally:
            state.rescanning -= 1
            if state.rescanning == 0 and state.phase is MonitorPhase.RESCANNING:
                state.phase = MonitorPhase.WATCHING

    def _commit(self, state: _RootState, path: str, diff: FindingDiff, *, deleted: bool) -> None:
        # State is already updated; publishing runs to completion even if this rescan is superseded.
        task = asyncio.create_task(self._publish_diff(state, path, diff, deleted=deleted))
        self._commits.add(task)
        task.add_done_callback(self._commits.discard)

    async def _publish_diff(
        self, state: _RootState, path: str, diff: FindingDiff, *, deleted: bool
    ) -> None:
        for finding in diff.removed:
            payload: dict[str, object] = {"error": finding, "file_path": path}
            if deleted:
                payload["reason"] = FILE_DELETED_REASON
            await self._emit(MonitorEventType.ERROR_FIXED, payload, state)
        for finding in diff.added:
            await self._emit(
                MonitorEventType.ERROR_DETECTED, {"error": finding, "file_path": path}, state
            )
            if finding.is_critical and state.handle.options.notify_on_critical:
                await self._emit(
                    MonitorEventType.CRITICAL_ERROR, {"errors": (finding,), "count": 1}, state
                )

    # ------------------------------------------------------------------ scans

    async def _full_scan(self, state: _RootState, *, initial: bool) -> None:
        root = state.root
        state.phase = MonitorPhase.SCANNING
        await self._emit(MonitorEventType.SCAN_STARTED, {"project_path": root}, state)
        try:
            result = await self._engine.scan_project(root)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # scan isolation boundary
            self._logger.error("project_scan_failed", error_type=type(exc).__name__, error=str(exc))
            await self._emit_failure("scan", None, exc, state)
            return
        finally:
            if state.phase is MonitorPhase.SCANNING and not initial:
                state.phase = MonitorPhase.WATCHING
        if state.phase is MonitorPhase.STOPPED:
            return

        incomplete = {diagnostic.file_path: diagnostic for diagnostic in result.diagnostics}
        diff = self._active.replace_root(root, result.errors, keep=incomplete)
        self._stats.files_scanned += result.metrics.total_files
        self._stats.scan_count += 1
        self._stats.errors_detected += len(diff.added)
        self._stats.errors_fixed += len(diff.removed)
        self._stats.last_scan_time = datetime.now(tz=UTC)

        await self._emit(
            MonitorEventType.SCAN_COMPLETED,
            {"project_path": root, "errors": result.errors, "metrics": result.metrics},
            state,
        )
        if initial:
            critical = tuple(finding for finding in result.errors if finding.is_critical)
            if critical and state.handle.options.notify_on_critical:
                await self._emit(
                    MonitorEventType.CRITICAL_ERROR,
                    {"errors": critical, "count": len(critical)},
                    state,
                )
            return
        for path, diagnostic in sorted(incomplete.items()):
            await self._emit_failure(
                "rescan", path, diagnostic.message, state, reason=diagnostic.kind
            )
        for path in sorted({finding.file_path for finding in (*diff.added, *diff.removed)}):
            await self._publish_diff(
                state,
                path,
                FindingDiff(
                    added=tuple(item for item in diff.added if item.file_path == path),
                    removed=tuple(item for item in diff.removed if item.file_path == path),
                ),
                deleted=False,
            )

    # ------------------------------------------------------------------ views

    def get_status(self) -> MonitorStatus:
        errors = self._active.findings()
        return MonitorStatus(
            is_monitoring=self.is_monitoring,
            errors=errors,
            by_severity=count_by_severity(errors),
            by_category=count_by_category(errors),
            by_type=count_by_type(errors),
            stats=replace(self._stats),
            phases={key: state.phase for key, state in sorted(self._roots.items())},
        )

    def get_dashboard_data(self) -> DashboardData:
        return DashboardData(
            status=self.get_status(),
            recent_activity=self._active.history(limit=self._settings.recent_activity_limit),
            monitored_roots=tuple(sorted(self._roots)),
            uptime_seconds=self.uptime_seconds(),
        )

    def uptime_seconds(self) -> float:
        if not self._roots:
            return 0.0
        earliest = min(state.started_monotonic for state in self._roots.values())
        return time.monotonic() - earliest

    def get_history(
        self,
        *,
        since: datetime | None = None,
        action: HistoryAction | str | None = None,
        limit: int | None = None,
    ) -> tuple[HistoryEntry, ...]:
        return self._active.history(since=since, action=action, limit=limit)

    def clear_history(self) -> None:
        self._active.clear_history()

    def active_findings(self, path: str | None = None) -> tuple[Finding, ...]:
        if path is None:
            return self._active.findings()
        return self._active.for_file(os.fspath(path))

    def handle_for(self, root: str | os.PathLike[str]) -> MonitorHandle:
        state = self._roots.get(os.path.abspath(root))
        if state is None:
            raise MonitorError(f"root is not being monitored: {root}")
        return state.handle

    # ---------------------------------------------------------------- events

    async def _emit(
        self, event_type: MonitorEventType, payload: Mapping[str, object], state: _RootState
    ) -> None:
        await self._bus.emit(event_type, payload, monitor_id=state.handle.id)

    async def _emit_failure(
        self,
        failure_type: str,
        path: str | None,
        error: BaseException | str,
        state: _RootState,
        *,
        reason: DiagnosticKind | None = None,
    ) -> None:
        payload: dict[str, object] = {"type": failure_type, "file_path": path, "message": str(error)}
        if reason is not None:
            payload["reason"] = reason.value
        await self._emit(MonitorEventType.ERROR, payload, state)


def create_monitor(
    engine: FindingEngine,
    config: Mapping[str, object] | None = None,
    *,
    bus: EventBus | None = None,
    notifier: ChangeNotifier | None = None,
) -> RealTimeMonitor:
    settings = MonitorSettings.from_config(config) if config is not None else MonitorSettings()
    return RealTimeMonitor(engine, bus=bus, notifier=notifier, settings=settings)


__all__ = [
    "FILE_DELETED_REASON",
    "DashboardData",
    "MonitorHandle",
    "MonitorOptions",
    "MonitorPhase",
    "MonitorSettings",
    "MonitorStats",
    "MonitorStatus",
    "RealTimeMonitor",
    "create_monitor",
]
