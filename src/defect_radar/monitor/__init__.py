"""Real-time monitoring of project roots."""

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
    QueueChangeNotifier,
    diff_snapshots,
)
from defect_radar.monitor.realtime import (
    FILE_DELETED_REASON,
    DashboardData,
    MonitorHandle,
    MonitorOptions,
    MonitorPhase,
    MonitorSettings,
    MonitorStats,
    MonitorStatus,
    RealTimeMonitor,
    create_monitor,
)

__all__ = [
    "FILE_DELETED_REASON",
    "ActiveFindingSet",
    "ChangeEvent",
    "ChangeKind",
    "ChangeNotifier",
    "DashboardData",
    "FindingDiff",
    "HistoryAction",
    "HistoryEntry",
    "MonitorHandle",
    "MonitorOptions",
    "MonitorPhase",
    "MonitorSettings",
    "MonitorStats",
    "MonitorStatus",
    "PollingChangeNotifier",
    "QueueChangeNotifier",
    "RealTimeMonitor",
    "create_monitor",
    "diff_snapshots",
]
