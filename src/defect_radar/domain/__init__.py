"""Domain layer: findings, resolutions, scan results, events, and ids."""

from defect_radar.domain import ids
from defect_radar.domain.events import MonitorEvent, MonitorEventType
from defect_radar.domain.models import (
    AnalyzerResult,
    Category,
    CodeExample,
    DiagnosticKind,
    DiagnosticLevel,
    Difficulty,
    FileScanMetrics,
    FileScanResult,
    Finding,
    FindingType,
    Location,
    ProjectScanMetrics,
    ProjectScanResult,
    Resolution,
    ResolutionStep,
    ScanDiagnostic,
    Severity,
    ValidationStep,
    category_for,
)

__all__ = [
    "AnalyzerResult",
    "Category",
    "CodeExample",
    "DiagnosticKind",
    "DiagnosticLevel",
    "Difficulty",
    "FileScanMetrics",
    "FileScanResult",
    "Finding",
    "FindingType",
    "Location",
    "MonitorEvent",
    "MonitorEventType",
    "ProjectScanMetrics",
    "ProjectScanResult",
    "Resolution",
    "ResolutionStep",
    "ScanDiagnostic",
    "Severity",
    "ValidationStep",
    "category_for",
    "ids",
]
