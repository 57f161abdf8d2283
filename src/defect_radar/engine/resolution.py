"""
defect-radar - resolution ranking

File: src/defect_radar/engine/resolution.py

Purpose
- Turn a finding into an ordered list of remediations, a validation checklist, and a short
  recommended-approach sentence.
- Bundle those with the finding's explanation, diagnostic steps, and prevention strategies.

Functional requirements
- Pattern key: the finding's rule when it names a template, else the key embedded in the
  finding id, else the first keyword-table entry contained in the message (case-insensitive).
- Candidate order before ranking: template, generic resolutions for the finding type, then
  resolutions already attached to the finding. Titles are deduplicated case-insensitively,
  keeping the first occurrence.
- Ranking is a stable sort by effectiveness descending, difficulty ascending, estimated
  time ascending. Unknown effectiveness ranks as 50 and unknown time as 10 minutes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import structlog

from defect_radar.domain.ids import finding_id_rule
from defect_radar.domain.models import (
    CodeExample,
    Difficulty,
    Finding,
    FindingType,
    JSONValue,
    Resolution,
    ValidationStep,
)
from defect_radar.engine.explanation import (
    FindingExplanation,
    collect_examples,
    diagnostic_steps,
    explain_finding,
    related_patterns,
)
from defect_radar.engine.prevention import PreventionPlan, PreventionPlanner
from defect_radar.knowledge.catalog import (
    DiagnosticStep,
    PatternCatalog,
    PreventionStrategy,
    RelatedPattern,
    default_catalog,
)

MANUAL_INVESTIGATION = (
    "Manual investigation required. Review the finding details and consult documentation."
)


@dataclass(frozen=True, slots=True)
class CompleteResolution:
    primary: Resolution | None
    alternatives: tuple[Resolution, ...]
    validation_steps: tuple[ValidationStep, ...]
    estimated_total_minutes: int
    recommended_approach: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "primary": None if self.primary is None else self.primary.to_dict(),
            "alternatives": [item.to_dict() for item in self.alternatives],
            "validation_steps": [item.to_dict() for item in self.validation_steps],
            "estimated_total_minutes": self.estimated_total_minutes,
            "recommended_approach": self.recommended_approach,
        }


@dataclass(frozen=True, slots=True)
class FindingGuidance:
    """Everything a reader needs to understand, fix, and avoid repeating one finding."""

    explanation: FindingExplanation
    examples: tuple[CodeExample, ...]
    diagnostic_steps: tuple[DiagnosticStep, ...]
    resolution: CompleteResolution
    prevention: tuple[PreventionStrategy, ...]
    related: tuple[RelatedPattern, ...]

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "explanation": self.explanation.to_dict(),
            "examples": [item.to_dict() for item in self.examples],
            "diagnostic_steps": [item.to_dict() for item in self.diagnostic_steps],
            "resolution": self.resolution.to_dict(),
            "prevention": [item.to_dict() for item in self.prevention],
            "related": [item.to_dict() for item in self.related],
        }



def rank_resolutions(resolutions: list[Resolution] | tuple[Resolution, ...]) -> tuple[Resolution, ...]:
    """Stable sort by effectiveness (desc), difficulty (asc), estimated time (asc)."""
    return tuple(sorted(resolutions, key=Resolution.rank_key))


def dedupe_by_title(resolutions: list[Resolution] | tuple[Resolution, ...]) -> tuple[Resolution, ...]:
    seen: set[str] = set()
    kept: list[Resolution] = []
    for resolution in resolutions:
        title = resolution.title.strip().casefold()
        if title in seen:
            continue
        seen.add(title)
        kept.append(resolution)
    return tuple(kept)


class ResolutionEngine:
    def __init__(self, catalog: PatternCatalog | None = None, *, logger: Any | None = None) -> None:
        self._catalog = catalog if catalog is not None else default_catalog()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._planner = PreventionPlanner(self._catalog)

    @property
    def catalog(self) -> PatternCatalog:
        return self._catalog

    @property
    def planner(self) -> PreventionPlanner:
        return self._planner

    def extract_pattern_key(self, finding: Finding) -> str | None:
        if self._catalog.has_template(finding.rule):
            return finding.rule
        embedded = finding_id_rule(finding.id)
        if self._catalog.has_template(embedded):
            return embedded
        return self._catalog.match_keyword(finding.message)

    def generate_resolutions(self, finding: Finding) -> tuple[Resolution, ...]:
        candidates: list[Resolution] = []
        key = self.extract_pattern_key(finding)
        template = self._catalog.resolution_for(key)
        if template is not None:
            candidates.append(template)
        candidates.extend(self._catalog.generic_resolutions_for(finding.type))
        candidates.extend(finding.resolutions)
        ranked = rank_resolutions(dedupe_by_title(candidates))
        self._logger.debug(
            "resolutions_generated",
            finding_id=finding.id,
            pattern_key=key,
            candidates=len(candidates),
            ranked=len(ranked),
        )
        return ranked

    def generate_validation_steps(
        self, resolution: Resolution | None, finding_type: FindingType | str
    ) -> tuple[ValidationStep, ...]:
        """Per-type checklist followed by the fixed closing pair.

        ``resolution`` is accepted for callers that tailor checklists per remediation; the
        bundled catalog keys checklists by finding type only.
        """
        return self._catalog.validation_checklist(finding_type) + self._catalog.validation_closing

    def generate_complete_resolution(self, finding: Finding) -> CompleteResolution:
        ranked = self.generate_resolutions(finding)
        primary = ranked[0] if ranked else None
        return CompleteResolution(
            primary=primary,
            alternatives=ranked[1:],
            validation_steps=self.generate_validation_steps(primary, finding.type),
            estimated_total_minutes=sum(item.estimated_time_minutes or 0 for item in ranked),
            recommended_approach=recommended_approach(finding, ranked),
        )

    def explain(self, finding: Finding) -> FindingExplanation:
        return explain_finding(self._catalog, finding)

    def diagnostic_steps(self, finding: Finding) -> tuple[DiagnosticStep, ...]:
        return diagnostic_steps(self._catalog, finding, self.extract_pattern_key(finding))

    def related_patterns(self, finding: Finding) -> tuple[RelatedPattern, ...]:
        return related_patterns(self._catalog, finding)

    def prevention_plan(self, findings: Iterable[Finding]) -> PreventionPlan:
        plan = self._planner.prevention_plan(findings)
        self._logger.debug(
            "prevention_plan_generated",
            finding_types=len(plan.strategies),
            actions=len(plan.prioritized_actions),
            effort=plan.estimated_effort.value,
        )
        return plan

    def generate_guidance(self, finding: Finding) -> FindingGuidance:
        key = self.extract_pattern_key(finding)
        return FindingGuidance(
            explanation=self.explain(finding),
            examples=collect_examples(self._catalog, finding, key),
            diagnostic_steps=diagnostic_steps(self._catalog, finding, key),
            resolution=self.generate_complete_resolution(finding),
            prevention=self._planner.strategies_for(finding.type),
            related=self.related_patterns(finding),
        )



def recommended_approach(finding: Finding, ranked: tuple[Resolution, ...]) -> str:
    if not ranked:
        return MANUAL_INVESTIGATION
    primary = ranked[0]
    if finding.severity.is_critical:
        return f'Urgent: Apply "{primary.title}" immediately. This is a critical issue.'
    if primary.difficulty is Difficulty.EASY:
        return f'Quick fix available: "{primary.title}" ({primary.ranking_minutes} min)'
    return f'Recommended: "{primary.title}". Consider {len(ranked) - 1} alternative approaches.'


__all__ = [
    "MANUAL_INVESTIGATION",
    "CompleteResolution",
    "FindingGuidance",
    "ResolutionEngine",
    "dedupe_by_title",
    "rank_resolutions",
    "recommended_approach",
]
