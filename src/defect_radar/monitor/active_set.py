"""Active-finding set: the monitor's current belief of which findings are present."""

from __future__ import annotations

from collections import deque
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from defect_radar.domain.events import datetime_to_iso8601z
from defect_radar.domain.models import Finding, JSONValue
from defect_radar.utils.fs import is_within


class HistoryAction(StrEnum):
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    action: HistoryAction
    finding: Finding
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "action": self.action.value,
            "finding": self.finding.to_dict(),
            "timestamp": datetime_to_iso8601z(self.timestamp),
        }


@dataclass(frozen=True, slots=True)
class FindingDiff:
    added: tuple[Finding, ...]
    removed: tuple[Finding, ...]

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


class ActiveFindingSet:
    """Findings keyed by fingerprint, indexed by file, with a bounded history log."""

    def __init__(self, *, history_limit: int) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        self._by_file: dict[str, dict[str, Finding]] = {}
        self._history: deque[HistoryEntry] = deque(maxlen=history_limit)

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_file.values())

    def findings(self) -> tuple[Finding, ...]:
        return tuple(
            finding for path in sorted(self._by_file) for finding in self._by_file[path].values()
        )

    def for_file(self, path: str) -> tuple[Finding, ...]:
        return tuple(self._by_file.get(path, {}).values())

    def files(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_file))

    def replace_file(self, path: str, findings: Iterable[Finding]) -> FindingDiff:
        """Make ``findings`` the slice for ``path`` and return what changed."""
        previous = self._by_file.get(path, {})
        current: dict[str, Finding] = {}
        for finding in findings:
            current.setdefault(finding.fingerprint, finding)

        removed = tuple(item for key, item in previous.items() if key not in current)
        added = tuple(item for key, item in current.items() if key not in previous)
        if current:
            self._by_file[path] = current
        else:
            self._by_file.pop(path, None)
        self._record(HistoryAction.REMOVED, removed)
        self._record(HistoryAction.ADDED, added)
        return FindingDiff(added=added, removed=removed)

    def remove_file(self, path: str) -> tuple[Finding, ...]:
        removed = tuple(self._by_file.pop(path, {}).values())
        self._record(HistoryAction.REMOVED, removed)
        return removed

    def replace_root(
        self, root: str, findings: Iterable[Finding], *, keep: Collection[str] = ()
    ) -> FindingDiff:
        """Replace every slice under ``root`` with ``findings`` grouped by file.

        Slices for paths in ``keep`` are left exactly as they are.
        """
        grouped: dict[str, list[Finding]] = {}
        for finding in findings:
            if finding.file_path not in keep:
                grouped.setdefault(finding.file_path, []).append(finding)
        stale = [
            path
            for path in self._by_file
            if is_within(path, root) and path not in grouped and path not in keep
        ]

        added: list[Finding] = []
        removed: list[Finding] = []
        for path in sorted(stale):
            removed.extend(self.remove_file(path))
        for path in sorted(grouped):
            diff = self.replace_file(path, grouped[path])
            added.extend(diff.added)
            removed.extend(diff.removed)
        return FindingDiff(added=tuple(added), removed=tuple(removed))

    def drop_root(self, root: str) -> int:
        """Forget every finding under ``root`` without recording history."""
        paths = [path for path in self._by_file if is_within(path, root)]
        dropped = 0
        for path in paths:
            dropped += len(self._by_file.pop(path))
        return dropped

    def history(
        self,
        *,
        since: datetime | None = None,
        action: HistoryAction | str | None = None,
        limit: int | None = None,
    ) -> tuple[HistoryEntry, ...]:
        entries = list(self._history)
        if since is not None:
            entries = [entry for entry in entries if entry.timestamp >= since]
        if action is not None:
            wanted = HistoryAction(action)
            entries = [entry for entry in entries if entry.action is wanted]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return tuple(entries)

    def clear_history(self) -> None:
        self._history.clear()

    def _record(self, action: HistoryAction, findings: Iterable[Finding]) -> None:
        now = datetime.now(tz=UTC)
        self._history.extend(HistoryEntry(action, finding, now) for finding in findings)


__all__ = [
    "ActiveFindingSet",
    "FindingDiff",
    "HistoryAction",
    "HistoryEntry",
]
