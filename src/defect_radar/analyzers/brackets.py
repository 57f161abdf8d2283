"""Single-pass bracket matcher aware of strings and comments.

The scanner walks the text once with four states: normal, inside a string, inside a line
comment, inside a block comment. Brackets count only in the normal state. Every issue is
positional; unclosed openers are reported where they were opened.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

OPENERS: Final[dict[str, str]] = {"(": ")", "[": "]", "{": "}"}
CLOSERS: Final[dict[str, str]] = {closer: opener for opener, closer in OPENERS.items()}
QUOTES: Final[frozenset[str]] = frozenset({"'", '"', "`"})

C_STYLE_BLOCK_COMMENT: Final[tuple[str, str]] = ("/*", "*/")


class BracketIssueKind(StrEnum):
    UNEXPECTED = "unexpected"
    MISMATCHED = "mismatched"
    UNCLOSED = "unclosed"


class _State(StrEnum):
    NORMAL = "normal"
    STRING = "string"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"


@dataclass(frozen=True, slots=True)
class BracketIssue:
    """One bracket problem.

    ``char`` is the offending character: the stray or mismatched closer, or the unclosed
    opener. ``expected`` is the closer that would have been correct, when one exists.
    """

    kind: BracketIssueKind
    char: str
    expected: str | None
    offset: int
    line: int
    column: int

    @property
    def message(self) -> str:
        if self.kind is BracketIssueKind.UNEXPECTED:
            return f"unexpected closing bracket '{self.char}'"
        if self.kind is BracketIssueKind.MISMATCHED:
            return f"mismatched brackets: expected '{self.expected}' but found '{self.char}'"
        return f"unclosed bracket '{self.char}'"


@dataclass(frozen=True, slots=True)
class BracketReport:
    issues: tuple[BracketIssue, ...]
    max_depth: int

    def count(self, kind: BracketIssueKind) -> int:
        return sum(1 for issue in self.issues if issue.kind is kind)

    @property
    def ok(self) -> bool:
        return not self.issues


@dataclass(frozen=True, slots=True)
class _Open:
    char: str
    offset: int
    line: int
    column: int


def scan_brackets(
    content: str,
    *,
    line_comment: str | None = "//",
    block_comment: tuple[str, str] | None = C_STYLE_BLOCK_COMMENT,
) -> BracketReport:
    """Match brackets in ``content``, skipping string literals and comments."""

    issues: list[BracketIssue] = []
    stack: list[_Open] = []
    max_depth = 0
    state = _State.NORMAL
    quote = ""
    line = 1
    column = 1
    index = 0
    length = len(content)
    block_open, block_close = block_comment or ("", "")

    def advance(count: int) -> None:
        nonlocal index, line, column
        for _ in range(count):
            if index >= length:
                return
            if content[index] == "\n":
                line += 1
                column = 1
            else:
                column += 1
            index += 1

    while index < length:
        char = content[index]

        if state is _State.STRING:
            if char == "\\":
                advance(2)
                continue
            if char == quote:
                state = _State.NORMAL
            advance(1)
            continue

        if state is _State.LINE_COMMENT:
            if char == "\n":
                state = _State.NORMAL
            advance(1)
            continue

        if state is _State.BLOCK_COMMENT:
            if content.startswith(block_close, index):
                state = _State.NORMAL
                advance(len(block_close))
            else:
                advance(1)
            continue

        if line_comment and content.startswith(line_comment, index):
            state = _State.LINE_COMMENT
            advance(len(line_comment))
            continue
        if block_open and content.startswith(block_open, index):
            state = _State.BLOCK_COMMENT
            advance(len(block_open))
            continue
        if char == "\\":
            advance(2)
            continue
        if char in QUOTES:
            state = _State.STRING
            quote = char
            advance(1)
            continue

        if char in OPENERS:
            stack.append(_Open(char=char, offset=index, line=line, column=column))
            max_depth = max(max_depth, len(stack))
        elif char in CLOSERS:
            if not stack:
                issues.append(
                    BracketIssue(BracketIssueKind.UNEXPECTED, char, None, index, line, column)
                )
            else:
                opened = stack.pop()
                expected = OPENERS[opened.char]
                if expected != char:
                    issues.append(
                        BracketIssue(
                            BracketIssueKind.MISMATCHED, char, expected, index, line, column
                        )
                    )
        advance(1)

    for opened in stack:
        issues.append(
            BracketIssue(
                BracketIssueKind.UNCLOSED,
                opened.char,
                OPENERS[opened.char],
                opened.offset,
                opened.line,
                opened.column,
            )
        )

    return BracketReport(issues=tuple(issues), max_depth=max_depth)


def comment_syntax(language: str | None) -> tuple[str | None, tuple[str, str] | None]:
    """Return ``(line_comment, block_comment)`` markers for ``language``."""
    if language == "python":
        return "#", None
    if language == "json":
        return None, None
    return "//", C_STYLE_BLOCK_COMMENT


__all__ = [
    "C_STYLE_BLOCK_COMMENT",
    "CLOSERS",
    "OPENERS",
    "QUOTES",
    "BracketIssue",
    "BracketIssueKind",
    "BracketReport",
    "comment_syntax",
    "scan_brackets",
]
