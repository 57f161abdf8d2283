"""Pattern catalog: rule tables and remediation knowledge shared by analyzers and engines."""

from defect_radar.knowledge.catalog import (
    BestPractice,
    ConfigSchema,
    DiagnosticStep,
    Guidance,
    PatternCatalog,
    PatternRule,
    PreventionStrategy,
    RelatedPattern,
    ResolutionTemplate,
    RuleGroup,
    TypeDescription,
    default_catalog,
    load_catalog,
)

__all__ = [
    "BestPractice",
    "ConfigSchema",
    "DiagnosticStep",
    "Guidance",
    "PatternCatalog",
    "PatternRule",
    "PreventionStrategy",
    "RelatedPattern",
    "ResolutionTemplate",
    "RuleGroup",
    "TypeDescription",
    "default_catalog",
    "load_catalog",
]
