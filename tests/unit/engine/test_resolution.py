"""
defect-radar - unit tests for resolution ranking

File: tests/unit/engine/test_resolution.py

Purpose
- Validate pattern-key extraction, candidate assembly, deduplication, ranking, validation
  steps, and recommended-approach text.

What this test file should cover
- Ranking is a stable total order (effectiveness desc, difficulty asc, time asc).
- Title deduplication keeps the first occurrence, case-insensitively.
- Recommended approach branches on severity before difficulty.
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from defect_radar.domain.models import (
    Difficulty,
    Finding,
    FindingType,
    Location,
    Resolution,
    Severity,
)
from defect_radar.engine.resolution import (
    MANUAL_INVESTIGATION,
    ResolutionEngine,
    dedupe_by_title,
    rank_resolutions,
    recommended_approach,
)


def _finding(
    *,
    message: str = "Possible missing semicolon",
    rule: str | None = None,
    finding_type: FindingType = FindingType.SYNTAX,
    severity: Severity = Severity.MINOR,
    resolutions: tuple[Resolution, ...] = (),
) -> Finding:
    return Finding(
        type=finding_type,
        severity=severity,
        message=message,
        location=Location(file_path="/p/a.js", line=3),
        rule=rule,
        resolutions=resolutions,
    )


_resolutions = st.builds(
    Resolution,
    id=st.text(alphabet="abc", min_size=1, max_size=3),
    title=st.text(alphabet="xyz", min_size=1, max_size=4),
    difficulty=st.sampled_from(list(Difficulty)),
    estimated_time_minutes=st.one_of(st.none(), st.integers(min_value=0, max_value=60)),
    effectiveness=st.one_of(st.none(), st.integers(min_value=0, max_value=100)),
)


@settings(max_examples=200, derandomize=True, deadline=None)
@given(st.lists(_resolutions, max_size=12))
def test_ranking_is_a_stable_total_order(items: list[Resolution]) -> None:
    ranked = rank_resolutions(items)

    assert sorted(ranked, key=id) == sorted(items, key=id)
    for before, after in zip(ranked, ranked[1:]):
        assert before.ranking_effectiveness >= after.ranking_effectiveness
        if before.ranking_effectiveness == after.ranking_effectiveness:
            assert before.difficulty.rank <= after.difficulty.rank
            if before.difficulty is after.difficulty:
                assert before.ranking_minutes <= after.ranking_minutes
                if before.ranking_minutes == after.ranking_minutes:
                    assert items.index(before) <= items.index(after)


def test_unknown_effectiveness_ranks_as_fifty() -> None:
    known = Resolution(id="a", title="A", effectiveness=60)
    unknown = Resolution(id="b", title="B")
    low = Resolution(id="c", title="C", effectiveness=40)

    assert rank_resolutions([low, unknown, known]) == (known, unknown, low)


def test_dedupe_by_title_keeps_first_case_insensitively() -> None:
    first = Resolution(id="a", title="Add null check")
    duplicate = Resolution(id="b", title="ADD NULL CHECK ")
    other = Resolution(id="c", title="Something else")

    assert dedupe_by_title([first, duplicate, other]) == (first, other)


def test_pattern_key_prefers_rule_then_id_then_keywords() -> None:
    engine = ResolutionEngine()

    assert engine.extract_pattern_key(_finding(rule="null_reference")) == "null_reference"
    keyed_id = _finding(rule="eval_usage", message="whatever")
    assert engine.extract_pattern_key(keyed_id) == "eval_usage"
    assert engine.extract_pattern_key(_finding(rule="unknown_rule")) == "missing_semicolon"
    assert engine.extract_pattern_key(_finding(message="no keywords here")) is None


def test_generate_resolutions_assembles_and_ranks() -> None:
    attached = Resolution(
        id="custom",
        title="Reformat with prettier",
        difficulty=Difficulty.EASY,
        estimated_time_minutes=2,
        effectiveness=90,
    )
    duplicate_of_template = Resolution(id="dup", title="add missing semicolon", effectiveness=100)
    finding = _finding(rule="missing_semicolon", resolutions=(attached, duplicate_of_template))

    ranked = ResolutionEngine().generate_resolutions(finding)

    assert [item.title for item in ranked] == [
        "Add missing semicolon",
        "Reformat with prettier",
        "Run linter to identify issues",
    ]


def test_generate_resolutions_without_knowledge_is_empty() -> None:
    finding = _finding(
        message="odd thing", finding_type=FindingType.ACCESSIBILITY, severity=Severity.MAJOR
    )

    complete = ResolutionEngine().generate_complete_resolution(finding)

    assert complete.primary is None
    assert complete.alternatives == ()
    assert complete.estimated_total_minutes == 0
    assert complete.recommended_approach == MANUAL_INVESTIGATION


def test_validation_steps_append_fixed_closing_pair() -> None:
    engine = ResolutionEngine()

    steps = engine.generate_validation_steps(None, FindingType.SECURITY)

    descriptions = [step.description for step in steps]
    assert descriptions[0] == "Run security audit"
    assert descriptions[-2:] == [
        "Verify the original error no longer appears",
        "Run full test suite to check for regressions",
    ]
    logical = engine.generate_validation_steps(None, "logical")
    assert logical == engine.generate_validation_steps(None, FindingType.RUNTIME)


def test_complete_resolution_for_critical_finding() -> None:
    finding = _finding(
        message="Usage of eval() is dangerous",
        rule="eval_usage",
        finding_type=FindingType.SECURITY,
        severity=Severity.CRITICAL,
    )

    complete = ResolutionEngine().generate_complete_resolution(finding)

    assert complete.primary is not None
    assert complete.primary.title == "Replace eval with safer alternative"
    assert complete.alternatives == ()
    assert complete.estimated_total_minutes == 30
    assert complete.recommended_approach == (
        'Urgent: Apply "Replace eval with safer alternative" immediately. This is a critical issue.'
    )
    assert complete.to_dict()["primary"]["id"] == "res_eval_usage"  # type: ignore[index]


def test_recommended_approach_branches() -> None:
    easy = Resolution(id="a", title="Quick", difficulty=Difficulty.EASY, estimated_time_minutes=3)
    hard = Resolution(id="b", title="Deep", difficulty=Difficulty.HARD)
    other = Resolution(id="c", title="Other", difficulty=Difficulty.MEDIUM)
    minor = _finding(severity=Severity.MINOR)

    assert recommended_approach(minor, ()) == MANUAL_INVESTIGATION
    assert recommended_approach(minor, (easy,)) == 'Quick fix available: "Quick" (3 min)'
    assert recommended_approach(minor, (hard, other)) == (
        'Recommended: "Deep". Consider 1 alternative approaches.'
    )
    blocker = _finding(severity=Severity.BLOCKER)
    assert recommended_approach(blocker, (easy,)).startswith('Urgent: Apply "Quick"')
