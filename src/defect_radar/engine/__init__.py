"""Finding engine, resolution ranking, explanations, and prevention planning."""

from defect_radar.engine.explanation import FindingExplanation, explain_finding
from defect_radar.engine.finding_engine import (
    ContentReader,
    EngineSettings,
    FileSystemReader,
    FindingEngine,
    create_default_engine,
    detect_language,
)
from defect_radar.engine.prevention import PreventionPlan, PreventionPlanner, Rating
from defect_radar.engine.resolution import (
    CompleteResolution,
    FindingGuidance,
    ResolutionEngine,
    rank_resolutions,
    recommended_approach,
)

__all__ = [
    "CompleteResolution",
    "ContentReader",
    "EngineSettings",
    "FileSystemReader",
    "FindingEngine",
    "FindingExplanation",
    "FindingGuidance",
    "PreventionPlan",
    "PreventionPlanner",
    "Rating",
    "ResolutionEngine",
    "create_default_engine",
    "detect_language",
    "explain_finding",
    "rank_resolutions",
    "recommended_approach",
]
