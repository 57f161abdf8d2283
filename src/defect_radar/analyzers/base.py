"""
defect-radar - analyzer capability

File: src/defect_radar/analyzers/base.py

Purpose
- Defines the analyzer interface: inputs (content, path, language) and output (``AnalyzerResult``).

What should be included in this file
- The ``Analyzer`` protocol implemented by built-ins and third-party analyzers.
- Offset to (line, column) conversion and context line extraction.
- Finding construction that attaches catalog causes, code examples, and the resolution template.

Functional requirements
- Analyzers are pure: no IO, no shared mutable state, deterministic output ordering.
- ``analyze`` may be a plain function or a coroutine function; the engine supports both.

Non-functional requirements
- Must not depend on engine or monitor internals.
"""

from __future__ import annotations

import bisect
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from defect_radar.domain.models import (
    AnalyzerResult,
    Category,
    Finding,
    FindingType,
    Location,
    Severity,
)

if TYPE_CHECKING:
    from defect_radar.knowledge.catalog import PatternCatalog

_SNIPPET_LIMIT = 50


@runtime_checkable
class Analyzer(Protocol):
    """Analyzer protocol implemented by built-ins and external plugins."""

    name: str

    def supported_extensions(self) -> frozenset[str]: ...

    def finding_categories(self) -> frozenset[Category]: ...

    def analyze(
        self, content: str, path: str, language: str | None
    ) -> AnalyzerResult | Awaitable[AnalyzerResult]: ...


class LineIndex:
    """Maps character offsets in ``content`` to 1-based line and column numbers."""

    __slots__ = ("_content", "_line_starts")

    def __init__(self, content: str) -> None:
        self._content = content
        starts = [0]
        index = content.find("\n")
        while index != -1:
            starts.append(index + 1)
            index = content.find("\n", index + 1)
        self._line_starts = starts

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def position(self, offset: int) -> tuple[int, int]:
        if offset < 0 or offset > len(self._content):
            raise ValueError(f"offset {offset} outside content of length {len(self._content)}")
        line_index = bisect.bisect_right(self._line_starts, offset) - 1
        return line_index + 1, offset - self._line_starts[line_index] + 1

    def line_text(self, line: int) -> str:
        if line < 1 or line > len(self._line_starts):
            return ""
        start = self._line_starts[line - 1]
        end = self._content.find("\n", start)
        text = self._content[start:] if end == -1 else self._content[start:end]
        return text.rstrip("\r")


def snippet(text: str, limit: int = _SNIPPET_LIMIT) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


@dataclass(frozen=True, slots=True)
class FindingBuilder:
    """Builds findings for one file with catalog knowledge attached by pattern key."""

    catalog: PatternCatalog
    path: str
    lines: LineIndex

    def build(
        self,
        *,
        finding_type: FindingType,
        severity: Severity,
        message: str,
        rule: str | None,
        offset: int | None = None,
        end_offset: int | None = None,
        line: int | None = None,
        column: int | None = None,
        description: str = "",
        context: str | None = None,
        default_causes: Iterable[str] = ("Unknown cause",),
    ) -> Finding:
        if offset is not None:
            line, column = self.lines.position(offset)
        resolved_line = line if line is not None else 1
        resolved_column = column if column is not None else 1
        resolution = self.catalog.resolution_for(rule)
        return Finding(
            type=finding_type,
            severity=severity,
            message=message,
            location=Location(
                file_path=self.path,
                line=resolved_line,
                column=resolved_column,
                start_offset=offset,
                end_offset=end_offset,
                context=self.lines.line_text(resolved_line) if context is None else context,
            ),
            rule=rule,
            description=description,
            causes=self.catalog.causes_for(rule, tuple(default_causes)),
            resolutions=() if resolution is None else (resolution,),
            examples=self.catalog.examples_for(rule),
        )


def empty_result() -> AnalyzerResult:
    return AnalyzerResult.empty()


__all__ = ["Analyzer", "FindingBuilder", "LineIndex", "empty_result", "snippet"]
