"""
defect-radar - filesystem change notifiers

File: src/defect_radar/monitor/notifier.py

Purpose
- Turn filesystem activity under a watched root into a stream of ``ChangeEvent`` values.

What should be included in this file
- ``ChangeNotifier`` protocol consumed by the real-time monitor.
- ``PollingChangeNotifier``: periodic mtime/size snapshots diffed into created/modified/deleted.
- ``QueueChangeNotifier``: events pushed by an external watcher (editor hooks, tests).

Functional requirements
- Event paths are absolute and lie under the subscribed root.
- A subscription ends when its consumer stops iterating or the notifier is closed.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from defect_radar.constants import DEFAULT_MONITOR_IGNORE_PATTERNS, DEFAULT_POLL_INTERVAL_SECONDS
from defect_radar.utils.fs import is_within, iter_project_files

_Snapshot = dict[str, tuple[int, int]]


class ChangeKind(StrEnum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    path: str
    kind: ChangeKind = ChangeKind.MODIFIED

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", os.fspath(self.path))
        object.__setattr__(self, "kind", ChangeKind(self.kind))


@runtime_checkable
class ChangeNotifier(Protocol):
    def subscribe(self, root: str) -> AsyncIterator[ChangeEvent]:
        """Return an async iterator of changes under ``root``."""
        ...


class PollingChangeNotifier:
    """Detects changes by diffing periodic (mtime_ns, size) snapshots of the tree."""

    def __init__(
        self,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        ignore_patterns: Sequence[str] = DEFAULT_MONITOR_IGNORE_PATTERNS,
        logger: Any | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._interval = interval_seconds
        self._ignore_patterns = tuple(ignore_patterns)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def subscribe(self, root: str) -> AsyncIterator[ChangeEvent]:
        previous = await asyncio.to_thread(self._snapshot, Path(root))
        self._logger.debug("polling_started", root=root, files=len(previous))
        while True:
            await asyncio.sleep(self._interval)
            current = await asyncio.to_thread(self._snapshot, Path(root))
            for event in diff_snapshots(previous, current):
                yield event
            previous = current

    def _snapshot(self, root: Path) -> _Snapshot:
        snapshot: _Snapshot = {}
        for path in iter_project_files(root, self._ignore_patterns):
            try:
                stat = path.stat()
            except OSError:
                continue
            snapshot[os.fspath(path)] = (stat.st_mtime_ns, stat.st_size)
        return snapshot


def diff_snapshots(previous: _Snapshot, current: _Snapshot) -> list[ChangeEvent]:
    """Changes between two snapshots in path order."""
    events: list[ChangeEvent] = []
    for path in sorted(previous.keys() | current.keys()):
        before = previous.get(path)
        after = current.get(path)
        if before is None:
            events.append(ChangeEvent(path, ChangeKind.CREATED))
        elif after is None:
            events.append(ChangeEvent(path, ChangeKind.DELETED))
        elif before != after:
            events.append(ChangeEvent(path, ChangeKind.MODIFIED))
    return events


class QueueChangeNotifier:
    """Fan-out of pushed events to every live subscription whose root contains the path."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[str, asyncio.Queue[ChangeEvent | None]]] = []
        self._closed = False

    def push(self, path: str | os.PathLike[str], kind: ChangeKind | str = ChangeKind.MODIFIED) -> int:
        """Deliver a change; returns the number of subscriptions that received it."""
        if self._closed:
            raise RuntimeError("notifier is closed")
        event = ChangeEvent(os.fspath(path), ChangeKind(kind))
        delivered = 0
        for root, queue in self._subscribers:
            if is_within(event.path, root):
                queue.put_nowait(event)
                delivered += 1
        return delivered

    def close(self) -> None:
        self._closed = True
        for _, queue in self._subscribers:
            queue.put_nowait(None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self, root: str) -> AsyncIterator[ChangeEvent]:
        if self._closed:
            return
        queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        entry = (root, queue)
        self._subscribers.append(entry)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self._subscribers.remove(entry)


__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ChangeNotifier",
    "PollingChangeNotifier",
    "QueueChangeNotifier",
    "diff_snapshots",
]
