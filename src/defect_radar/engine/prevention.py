"""
defect-radar - prevention planning

File: src/defect_radar/engine/prevention.py

Purpose
- Recommend catalog prevention strategies for finding types and fold them into a prioritized
  plan for a batch of findings.

Functional requirements
- Effort is rated from a strategy's step count (<= 3 low, <= 5 medium, else high); impact from
  its benefit count (>= 3 high, >= 2 medium, else low).
- Priority is impact score (high 3, medium 2, low 1) times effort score (low 3, medium 2,
  high 1); actions sort by priority descending and keep catalog order on ties.
- Overall plan effort is high when more than half the strategies are high effort, medium above
  one fifth, else low. A plan with no strategies is low.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from defect_radar.domain.models import Finding, FindingType, JSONValue
from defect_radar.knowledge.catalog import PatternCatalog, PreventionStrategy

COMPLEX_STEP_LENGTH: Final[int] = 50


class Rating(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_IMPACT_SCORE: Final[dict[Rating, int]] = {Rating.HIGH: 3, Rating.MEDIUM: 2, Rating.LOW: 1}
_EFFORT_SCORE: Final[dict[Rating, int]] = {Rating.LOW: 3, Rating.MEDIUM: 2, Rating.HIGH: 1}


@dataclass(frozen=True, slots=True)
class TradeoffAnalysis:
    strategy: str
    tradeoffs: str
    benefits: tuple[str, ...]
    effort: Rating
    impact: Rating

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "strategy": self.strategy,
            "tradeoffs": self.tradeoffs,
            "benefits": list(self.benefits),
            "effort": self.effort.value,
            "impact": self.impact.value,
        }


@dataclass(frozen=True, slots=True)
class ImplementationStep:
    order: int
    description: str
    is_complex: bool

    def to_dict(self) -> dict[str, JSONValue]:
        return {"order": self.order, "description": self.description, "is_complex": self.is_complex}


@dataclass(frozen=True, slots=True)
class PrioritizedAction:
    action: str
    strategy_id: str
    finding_type: FindingType
    effort: Rating
    impact: Rating
    priority: int

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "action": self.action,
            "strategy_id": self.strategy_id,
            "finding_type": self.finding_type.value,
            "effort": self.effort.value,
            "impact": self.impact.value,
            "priority": self.priority,
        }


@dataclass(frozen=True, slots=True)
class PreventionPlan:
    summary: str
    strategies: tuple[tuple[FindingType, tuple[PreventionStrategy, ...]], ...]
    prioritized_actions: tuple[PrioritizedAction, ...]
    estimated_effort: Rating

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "summary": self.summary,
            "strategies": [
                {
                    "finding_type": finding_type.value,
                    "strategies": [strategy.to_dict() for strategy in strategies],
                }
                for finding_type, strategies in self.strategies
            ],
            "prioritized_actions": [action.to_dict() for action in self.prioritized_actions],
            "estimated_effort": self.estimated_effort.value,
        }


def estimate_effort(strategy: PreventionStrategy) -> Rating:
    count = len(strategy.steps)
    if count <= 3:
        return Rating.LOW
    if count <= 5:
        return Rating.MEDIUM
    return Rating.HIGH


def estimate_impact(strategy: PreventionStrategy) -> Rating:
    count = len(strategy.benefits)
    if count >= 3:
        return Rating.HIGH
    if count >= 2:
        return Rating.MEDIUM
    return Rating.LOW


def priority_score(strategy: PreventionStrategy) -> int:
    return _IMPACT_SCORE[estimate_impact(strategy)] * _EFFORT_SCORE[estimate_effort(strategy)]


def overall_effort(strategies: Iterable[PreventionStrategy]) -> Rating:
    ratings = [estimate_effort(strategy) for strategy in strategies]
    if not ratings:
        return Rating.LOW
    ratio = sum(1 for rating in ratings if rating is Rating.HIGH) / len(ratings)
    if ratio > 0.5:
        return Rating.HIGH
    if ratio > 0.2:
        return Rating.MEDIUM
    return Rating.LOW


class PreventionPlanner:
    """Catalog-backed prevention strategies, tool lists, and plans."""

    def __init__(self, catalog: PatternCatalog) -> None:
        self._catalog = catalog

    def strategies_for(self, finding_type: FindingType | str) -> tuple[PreventionStrategy, ...]:
        return self._catalog.prevention_for(FindingType(finding_type))

    def strategy(self, strategy_id: str) -> PreventionStrategy | None:
        return self._catalog.prevention_strategy(strategy_id)

    def config_example(self, strategy_id: str) -> str | None:
        strategy = self.strategy(strategy_id)
        return None if strategy is None else strategy.config_example

    def tool_recommendations(self, finding_type: FindingType | str) -> tuple[str, ...]:
        """Unique tools across the type's strategies, first mention first."""
        tools: dict[str, None] = {}
        for strategy in self.strategies_for(finding_type):
            tools.update(dict.fromkeys(strategy.tools))
        return tuple(tools)

    def tradeoff_analysis(self, finding_type: FindingType | str) -> tuple[TradeoffAnalysis, ...]:
        return tuple(
            TradeoffAnalysis(
                strategy=strategy.title,
                tradeoffs=strategy.tradeoffs,
                benefits=strategy.benefits,
                effort=estimate_effort(strategy),
                impact=estimate_impact(strategy),
            )
            for strategy in self.strategies_for(finding_type)
        )

    def implementation_steps(self, strategy_id: str) -> tuple[ImplementationStep, ...]:
        strategy = self.strategy(strategy_id)
        if strategy is None:
            return ()
        return tuple(
            ImplementationStep(
                order=index, description=step, is_complex=len(step) > COMPLEX_STEP_LENGTH
            )
            for index, step in enumerate(strategy.steps, start=1)
        )

    def prevention_plan(self, findings: Iterable[Finding]) -> PreventionPlan:
        batch = list(findings)
        finding_types = list(dict.fromkeys(finding.type for finding in batch))
        grouped = tuple(
            (finding_type, self._catalog.prevention_for(finding_type))
            for finding_type in finding_types
        )
        actions = [
            PrioritizedAction(
                action=strategy.title,
                strategy_id=strategy.id,
                finding_type=finding_type,
                effort=estimate_effort(strategy),
                impact=estimate_impact(strategy),
                priority=priority_score(strategy),
            )
            for finding_type, strategies in grouped
            for strategy in strategies
        ]
        actions.sort(key=lambda action: -action.priority)
        return PreventionPlan(
            summary=(
                f"Prevention plan for {len(batch)} findings across {len(finding_types)} finding types"
            ),
            strategies=grouped,
            prioritized_actions=tuple(actions),
            estimated_effort=overall_effort(
                strategy for _, strategies in grouped for strategy in strategies
            ),
        )


__all__ = [
    "COMPLEX_STEP_LENGTH",
    "ImplementationStep",
    "PreventionPlan",
    "PreventionPlanner",
    "PrioritizedAction",
    "Rating",
    "TradeoffAnalysis",
    "estimate_effort",
    "estimate_impact",
    "overall_effort",
    "priority_score",
]
