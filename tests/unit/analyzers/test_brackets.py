"""
defect-radar - unit tests for the bracket scanner

File: tests/unit/analyzers/test_brackets.py

Purpose
- Validate the single-pass bracket matcher and its string/comment awareness.

What this test file should cover
- Unexpected, mismatched, and unclosed reporting with positions.
- Brackets inside strings and comments are ignored.
- Counting invariants over generated bracket sequences.

Functional requirements
- Offline and deterministic.
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from defect_radar.analyzers.brackets import (
    BracketIssueKind,
    comment_syntax,
    scan_brackets,
)

_BRACKETS = "()[]{}"


def _balanced() -> st.SearchStrategy[str]:
    leaf = st.sampled_from(["", "a", "x = 1", " "])
    return st.recursive(
        leaf,
        lambda inner: st.one_of(
            st.tuples(st.sampled_from(["()", "[]", "{}"]), inner).map(
                lambda pair: pair[0][0] + pair[1] + pair[0][1]
            ),
            st.tuples(inner, inner).map(lambda pair: pair[0] + pair[1]),
        ),
        max_leaves=20,
    )


def test_mismatch_and_unclosed_scenario() -> None:
    report = scan_brackets("{ (]")

    messages = [issue.message for issue in report.issues]
    assert messages == [
        "mismatched brackets: expected ')' but found ']'",
        "unclosed bracket '{'",
    ]
    mismatched, unclosed = report.issues
    assert (mismatched.line, mismatched.column, mismatched.offset) == (1, 4, 3)
    assert (unclosed.line, unclosed.column, unclosed.offset) == (1, 1, 0)
    assert report.max_depth == 2


def test_unexpected_closer_reports_position() -> None:
    report = scan_brackets("a\n  )")

    assert len(report.issues) == 1
    issue = report.issues[0]
    assert issue.kind is BracketIssueKind.UNEXPECTED
    assert issue.message == "unexpected closing bracket ')'"
    assert issue.expected is None
    assert (issue.line, issue.column) == (2, 3)


def test_mismatched_opener_is_not_pushed_back() -> None:
    report = scan_brackets("(]")

    assert [issue.kind for issue in report.issues] == [BracketIssueKind.MISMATCHED]


def test_brackets_inside_strings_are_ignored() -> None:
    content = "const a = '(' + \"[\" + `{`;\nconst b = 'it\\'s (';\n"

    assert scan_brackets(content).ok


def test_brackets_inside_comments_are_ignored() -> None:
    content = "// ( [ {\n/* ) ] }\n */ call();\n"

    assert scan_brackets(content).ok


def test_python_comment_syntax_uses_hash() -> None:
    line_comment, block_comment = comment_syntax("python")
    report = scan_brackets("x = 1  # (\n", line_comment=line_comment, block_comment=block_comment)

    assert report.ok
    assert not scan_brackets("x = 1  # (\n").ok


def test_unclosed_openers_are_reported_at_their_origin() -> None:
    report = scan_brackets("f(\n  [\n")

    assert [(issue.char, issue.line, issue.column) for issue in report.issues] == [
        ("(", 1, 2),
        ("[", 2, 3),
    ]
    assert report.count(BracketIssueKind.UNCLOSED) == 2


@settings(max_examples=200, derandomize=True, deadline=None)
@given(_balanced())
def test_balanced_input_has_no_issues(content: str) -> None:
    assert scan_brackets(content).ok


@settings(max_examples=300, derandomize=True, deadline=None)
@given(st.text(alphabet=_BRACKETS + "ab \n", max_size=60))
def test_issue_counts_balance_openers_and_closers(content: str) -> None:
    report = scan_brackets(content)
    openers = sum(content.count(char) for char in "([{")
    closers = sum(content.count(char) for char in ")]}")

    unclosed = report.count(BracketIssueKind.UNCLOSED)
    unexpected = report.count(BracketIssueKind.UNEXPECTED)
    mismatched = report.count(BracketIssueKind.MISMATCHED)

    assert unclosed + unexpected + mismatched == len(report.issues)
    assert unclosed - unexpected == openers - closers
    assert mismatched <= closers - unexpected
    assert 0 <= report.max_depth <= openers


@settings(max_examples=100, derandomize=True, deadline=None)
@given(st.text(alphabet=_BRACKETS + "ab ", max_size=40))
def test_line_comment_hides_everything_until_newline(content: str) -> None:
    assert scan_brackets(f"// {content}\n").ok
