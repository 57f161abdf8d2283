"""
defect-radar - unit tests for finding explanations

File: tests/unit/engine/test_explanation.py

Purpose
- Validate explanations, impact and urgency text, diagnostic steps, related patterns, and the
  combined guidance bundle produced by the resolution engine.

What this test file should cover
- The finding's own description and causes override the type defaults.
- Security findings are always immediate; other urgency follows the category.
- Diagnostic steps come from the pattern key before the finding type.
"""

from __future__ import annotations

from defect_radar.domain.models import (
    CodeExample,
    Finding,
    FindingType,
    Location,
    Severity,
)
from defect_radar.engine.explanation import (
    DEFAULT_IMPACT,
    explain_finding,
    format_location,
)
from defect_radar.engine.resolution import ResolutionEngine
from defect_radar.knowledge.catalog import default_catalog


def _finding(
    *,
    message: str = "Cannot read property of undefined",
    finding_type: FindingType = FindingType.RUNTIME,
    severity: Severity = Severity.MAJOR,
    rule: str | None = None,
    description: str = "",
    causes: tuple[str, ...] = (),
    examples: tuple[CodeExample, ...] = (),
    context: str = "",
) -> Finding:
    return Finding(
        type=finding_type,
        severity=severity,
        message=message,
        location=Location(file_path="/p/app.js", line=12, column=4, context=context),
        rule=rule,
        description=description,
        causes=causes,
        examples=examples,
    )


def test_format_location_appends_trimmed_context() -> None:
    bare = Location(file_path="/p/a.py", line=3, column=7)
    with_context = Location(file_path="/p/a.py", line=3, column=7, context="   x = y.z  ")

    assert format_location(bare) == "/p/a.py:3:7"
    assert format_location(with_context) == "/p/a.py:3:7\n  > x = y.z"


def test_explanation_uses_type_defaults_when_finding_is_sparse() -> None:
    explanation = explain_finding(default_catalog(), _finding())

    assert explanation.title == "Runtime Error"
    assert explanation.summary == "Cannot read property of undefined"
    assert explanation.description.startswith("A runtime error occurs")
    assert explanation.causes[0] == "Null or undefined reference access"
    assert explanation.impact == "Medium: Some functionality affected"
    assert explanation.urgency == "Medium: Plan for upcoming sprint"


def test_explanation_prefers_the_findings_own_details() -> None:
    finding = _finding(description="Value may be undefined here", causes=("Late init",))

    explanation = explain_finding(default_catalog(), finding)

    assert explanation.description == "Value may be undefined here"
    assert explanation.causes == ("Late init",)


def test_security_findings_are_always_immediate() -> None:
    finding = _finding(
        message="Use of eval() is dangerous",
        finding_type=FindingType.SECURITY,
        severity=Severity.MINOR,
    )

    explanation = explain_finding(default_catalog(), finding)

    assert explanation.title == "Security Vulnerability"
    assert explanation.urgency.startswith("Immediate: Security vulnerabilities")
    assert explanation.impact == "Low: Minor inconvenience"


def test_type_without_description_reads_as_unknown() -> None:
    finding = _finding(finding_type=FindingType.ACCESSIBILITY, severity=Severity.TRIVIAL)

    explanation = explain_finding(default_catalog(), finding)

    assert explanation.title == "Unknown Error"
    assert explanation.causes == ("Unknown cause",)
    assert explanation.impact == DEFAULT_IMPACT
    assert explanation.urgency == "Optional: Consider for future improvement"


def test_diagnostic_steps_follow_pattern_key_then_type() -> None:
    engine = ResolutionEngine()

    promise = engine.diagnostic_steps(_finding(message="Unhandled promise rejection"))
    runtime = engine.diagnostic_steps(_finding(message="Division result unused"))
    syntax = engine.diagnostic_steps(
        _finding(message="Stray token", finding_type=FindingType.SYNTAX, severity=Severity.MINOR)
    )

    assert promise[0].action == "Identify the promise source"
    assert runtime[0].action == "Check if the variable is being initialized"
    assert syntax[0].action == "Reproduce the error"
    assert [step.order for step in syntax] == [1, 2, 3, 4, 5]


def test_related_patterns_by_type() -> None:
    engine = ResolutionEngine()

    related = engine.related_patterns(_finding())
    unrelated = engine.related_patterns(_finding(finding_type=FindingType.PERFORMANCE))

    assert [item.pattern for item in related] == ["null_reference", "unhandled_promise"]
    assert unrelated == ()


def test_generate_guidance_bundles_every_section() -> None:
    own = CodeExample(incorrect="a.b", correct="a?.b")
    finding = _finding(rule="null_reference", examples=(own,))

    guidance = ResolutionEngine().generate_guidance(finding)

    assert guidance.explanation.title == "Runtime Error"
    assert guidance.examples[0] == own
    assert len(guidance.examples) == 2
    assert guidance.diagnostic_steps[0].action == "Check if the variable is being initialized"
    assert guidance.resolution.primary is not None
    assert [item.id for item in guidance.prevention] == [
        "null_checks",
        "error_boundaries",
        "promise_handling",
    ]
    payload = guidance.to_dict()
    assert payload["prevention"][0]["benefits"]  # type: ignore[index]
    assert payload["related"][0] == {  # type: ignore[index]
        "pattern": "null_reference",
        "description": "Null/undefined reference errors",
    }


def test_catalog_examples_are_not_duplicated_in_guidance() -> None:
    catalog_example = default_catalog().examples_for("null_reference")[0]
    finding = _finding(rule="null_reference", examples=(catalog_example,))

    guidance = ResolutionEngine().generate_guidance(finding)

    assert guidance.examples == (catalog_example,)
