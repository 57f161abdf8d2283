"""
defect-radar - finding explanations

File: src/defect_radar/engine/explanation.py

Purpose
- Describe a finding for a reader from the catalog's guidance tables: type summary, location,
  likely causes, impact, urgency, diagnostic questions, and related patterns.

Functional requirements
- The finding's own description and causes win over the type's defaults.
- Impact follows severity; urgency follows category, except security findings which are always
  immediate when the catalog says so.
- Diagnostic steps prefer the finding's pattern key, then the finding type's fallback list,
  then the catalog default.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from defect_radar.domain.models import (
    CodeExample,
    Finding,
    FindingType,
    JSONValue,
    Location,
)
from defect_radar.knowledge.catalog import DiagnosticStep, PatternCatalog, RelatedPattern

DEFAULT_IMPACT: Final[str] = "Minimal: Cosmetic or informational"
DEFAULT_URGENCY: Final[str] = "Optional: Consider for future improvement"


@dataclass(frozen=True, slots=True)
class FindingExplanation:
    title: str
    summary: str
    description: str
    location: str
    causes: tuple[str, ...]
    impact: str
    urgency: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "title": self.title,
            "summary": self.summary,
            "description": self.description,
            "location": self.location,
            "causes": list(self.causes),
            "impact": self.impact,
            "urgency": self.urgency,
        }


def format_location(location: Location) -> str:
    formatted = f"{location.file_path}:{location.line}:{location.column}"
    context = location.context.strip()
    if context:
        formatted += f"\n  > {context}"
    return formatted


def assess_impact(catalog: PatternCatalog, finding: Finding) -> str:
    return catalog.guidance.impact.get(finding.severity, DEFAULT_IMPACT)


def assess_urgency(catalog: PatternCatalog, finding: Finding) -> str:
    guidance = catalog.guidance
    if finding.type is FindingType.SECURITY and guidance.security_urgency is not None:
        return guidance.security_urgency
    return guidance.urgency.get(finding.category, DEFAULT_URGENCY)


def explain_finding(catalog: PatternCatalog, finding: Finding) -> FindingExplanation:
    described = catalog.guidance.describe(finding.type)
    return FindingExplanation(
        title=described.title,
        summary=finding.message,
        description=finding.description or described.description,
        location=format_location(finding.location),
        causes=finding.causes or described.common_causes,
        impact=assess_impact(catalog, finding),
        urgency=assess_urgency(catalog, finding),
    )


def diagnostic_steps(
    catalog: PatternCatalog, finding: Finding, pattern_key: str | None
) -> tuple[DiagnosticStep, ...]:
    return catalog.guidance.diagnostic_steps_for(pattern_key, finding.type)


def related_patterns(catalog: PatternCatalog, finding: Finding) -> tuple[RelatedPattern, ...]:
    return catalog.guidance.related_for(finding.type)


def collect_examples(
    catalog: PatternCatalog, finding: Finding, pattern_key: str | None
) -> tuple[CodeExample, ...]:
    """The finding's own examples followed by the pattern's catalog examples, deduplicated."""
    merged = dict.fromkeys(finding.examples)
    merged.update(dict.fromkeys(catalog.examples_for(pattern_key)))
    return tuple(merged)


__all__ = [
    "DEFAULT_IMPACT",
    "DEFAULT_URGENCY",
    "FindingExplanation",
    "assess_impact",
    "assess_urgency",
    "collect_examples",
    "diagnostic_steps",
    "explain_finding",
    "format_location",
    "related_patterns",
]
