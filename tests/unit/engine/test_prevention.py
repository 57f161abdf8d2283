"""
defect-radar - unit tests for prevention planning

File: tests/unit/engine/test_prevention.py

Purpose
- Validate strategy lookup, tool recommendations, effort and impact ratings, and prevention plans.

What this test file should cover
- Ratings follow step and benefit counts; priority is their score product.
- Plans group strategies by finding type in first-seen order and keep benefits.
- An empty batch yields an empty, low-effort plan.
"""

from __future__ import annotations

import pytest
import yaml

from defect_radar.domain.models import Finding, FindingType, Location, Severity
from defect_radar.engine.prevention import (
    PreventionPlanner,
    Rating,
    estimate_effort,
    estimate_impact,
    overall_effort,
    priority_score,
)
from defect_radar.engine.resolution import ResolutionEngine
from defect_radar.knowledge.catalog import (
    PatternCatalog,
    PreventionStrategy,
    bundled_catalog_path,
    default_catalog,
)


def _finding(finding_type: FindingType, message: str = "Something is off") -> Finding:
    return Finding(
        type=finding_type,
        severity=Severity.MAJOR,
        message=message,
        location=Location(file_path="/p/a.js"),
    )


def _strategy(strategy_id: str, *, steps: int, benefits: int) -> PreventionStrategy:
    return PreventionStrategy(
        id=strategy_id,
        title=strategy_id.title(),
        description="",
        tools=(),
        steps=tuple(f"step {index}" for index in range(steps)),
        tradeoffs="",
        config_example=None,
        benefits=tuple(f"benefit {index}" for index in range(benefits)),
    )


@pytest.fixture
def planner_with_custom_strategies() -> PreventionPlanner:
    payload = yaml.safe_load(bundled_catalog_path().read_text(encoding="utf-8"))
    payload["prevention"] = {
        "logical": [
            {
                "id": "slow_win",
                "title": "Slow win",
                "steps": [
                    "Write a property-based test for every branch of the pricing engine",
                    "b",
                    "c",
                    "d",
                    "e",
                    "f",
                ],
                "benefits": ["x"],
            },
            {"id": "quick_win", "title": "Quick win", "steps": ["a"], "benefits": ["x", "y", "z"]},
            {
                "id": "middle",
                "title": "Middle",
                "tools": ["pytest", "hypothesis"],
                "steps": ["a", "b", "c", "d"],
                "benefits": ["x", "y"],
            },
        ],
        "runtime": [
            {"id": "guard", "title": "Guard", "tools": ["pytest"], "steps": ["a"], "benefits": []},
        ],
    }
    return PreventionPlanner(PatternCatalog.from_mapping(payload))


@pytest.mark.parametrize(
    ("steps", "benefits", "effort", "impact"),
    [
        (3, 1, Rating.LOW, Rating.LOW),
        (4, 2, Rating.MEDIUM, Rating.MEDIUM),
        (5, 3, Rating.MEDIUM, Rating.HIGH),
        (6, 0, Rating.HIGH, Rating.LOW),
    ],
)
def test_effort_and_impact_ratings(steps: int, benefits: int, effort: Rating, impact: Rating) -> None:
    strategy = _strategy("s", steps=steps, benefits=benefits)

    assert estimate_effort(strategy) is effort
    assert estimate_impact(strategy) is impact


def test_priority_prefers_high_impact_low_effort() -> None:
    assert priority_score(_strategy("best", steps=1, benefits=3)) == 9
    assert priority_score(_strategy("worst", steps=9, benefits=0)) == 1


def test_overall_effort_thresholds() -> None:
    high = _strategy("h", steps=9, benefits=1)
    low = _strategy("l", steps=1, benefits=1)

    assert overall_effort([]) is Rating.LOW
    assert overall_effort([high, high, low]) is Rating.HIGH
    assert overall_effort([high, low, low]) is Rating.MEDIUM
    assert overall_effort([high, low, low, low, low, low]) is Rating.LOW


def test_bundled_strategies_tools_and_tradeoffs() -> None:
    planner = PreventionPlanner(default_catalog())

    assert planner.tool_recommendations(FindingType.RUNTIME) == (
        "TypeScript",
        "ESLint",
        "React",
        "eslint-plugin-promise",
    )
    analysis = planner.tradeoff_analysis("syntax")
    assert [item.strategy for item in analysis] == [
        "Set up ESLint for syntax checking",
        "Use Prettier for code formatting",
        "Enable TypeScript strict mode",
    ]
    assert analysis[0].effort is Rating.MEDIUM
    assert analysis[0].impact is Rating.HIGH
    assert analysis[0].benefits[0] == "Catches errors before runtime"
    assert planner.strategies_for(FindingType.LOGICAL) == ()


def test_config_example_and_unknown_strategy() -> None:
    planner = PreventionPlanner(default_catalog())

    example = planner.config_example("typescript_strict")

    assert example is not None
    assert '"strict": true' in example
    assert planner.config_example("missing") is None
    assert planner.implementation_steps("missing") == ()


def test_implementation_steps_flag_long_steps(
    planner_with_custom_strategies: PreventionPlanner,
) -> None:
    steps = planner_with_custom_strategies.implementation_steps("slow_win")

    assert [step.order for step in steps] == [1, 2, 3, 4, 5, 6]
    assert steps[0].is_complex is True
    assert steps[1].is_complex is False


def test_prevention_plan_orders_actions_by_priority(
    planner_with_custom_strategies: PreventionPlanner,
) -> None:
    findings = [
        _finding(FindingType.LOGICAL),
        _finding(FindingType.RUNTIME),
        _finding(FindingType.LOGICAL, "Another"),
    ]

    plan = planner_with_custom_strategies.prevention_plan(findings)

    assert plan.summary == "Prevention plan for 3 findings across 2 finding types"
    assert [finding_type for finding_type, _ in plan.strategies] == [
        FindingType.LOGICAL,
        FindingType.RUNTIME,
    ]
    assert [action.strategy_id for action in plan.prioritized_actions] == [
        "quick_win",
        "middle",
        "guard",
        "slow_win",
    ]
    assert [action.priority for action in plan.prioritized_actions] == [9, 4, 3, 1]
    assert plan.estimated_effort is Rating.MEDIUM


def test_prevention_plan_serializes_benefits() -> None:
    plan = ResolutionEngine().prevention_plan([_finding(FindingType.SECURITY)])

    payload = plan.to_dict()

    strategies = payload["strategies"][0]["strategies"]  # type: ignore[index]
    assert strategies[0]["id"] == "security_audit"
    assert strategies[0]["benefits"] == [
        "Early vulnerability detection",
        "Automated monitoring",
        "Compliance support",
    ]
    assert payload["estimated_effort"] == "low"


def test_empty_batch_yields_low_effort_plan() -> None:
    plan = ResolutionEngine().prevention_plan([])

    assert plan.summary == "Prevention plan for 0 findings across 0 finding types"
    assert plan.strategies == ()
    assert plan.prioritized_actions == ()
    assert plan.estimated_effort is Rating.LOW
