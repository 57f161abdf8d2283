"""Syntax analyzer: catalog syntax rules plus the bracket scanner."""

from __future__ import annotations

import re
from collections.abc import Iterable

from defect_radar.analyzers.base import FindingBuilder, snippet
from defect_radar.analyzers.brackets import comment_syntax, scan_brackets
from defect_radar.analyzers.patterns import PatternRuleAnalyzer
from defect_radar.domain.models import Category, Finding, FindingType, Severity
from defect_radar.knowledge.catalog import PatternRule

BRACKET_RULE = "unclosed_bracket"
_BRACKET_LANGUAGES = frozenset({"javascript", "typescript", "python", "java", "json"})


class SyntaxAnalyzer(PatternRuleAnalyzer):
    """Minor and trivial syntax findings are warnings; bracket problems are always errors."""

    name = "syntax"
    extensions = frozenset({".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".json"})
    group_names = ("syntax",)

    def finding_categories(self) -> frozenset[Category]:
        return super().finding_categories() | {Category.MEDIUM}

    def describe(self, rule: PatternRule, match: re.Match[str]) -> str:
        return f'Syntax error detected: {rule.message}. Found "{snippet(match.group(0))}"'

    def extra_findings(
        self, content: str, language: str | None, builder: FindingBuilder
    ) -> Iterable[Finding]:
        if language not in _BRACKET_LANGUAGES:
            return ()
        line_comment, block_comment = comment_syntax(language)
        report = scan_brackets(content, line_comment=line_comment, block_comment=block_comment)
        return tuple(
            builder.build(
                finding_type=FindingType.SYNTAX,
                severity=Severity.MAJOR,
                message=issue.message,
                rule=BRACKET_RULE,
                line=issue.line,
                column=issue.column,
                offset=issue.offset,
                end_offset=issue.offset + 1,
                description=f"Bracket matching error: {issue.message}",
                default_causes=("Mismatched or missing brackets", "Incomplete code block"),
            )
            for issue in report.issues
        )


__all__ = ["BRACKET_RULE", "SyntaxAnalyzer"]
