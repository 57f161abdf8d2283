"""Catalog-driven regex rule analyzer shared by the syntax and runtime analyzers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from defect_radar.analyzers.base import FindingBuilder, LineIndex
from defect_radar.domain.models import AnalyzerResult, Category, Finding, category_for
from defect_radar.knowledge.catalog import PatternCatalog, PatternRule, RuleGroup, default_catalog


class PatternRuleAnalyzer:
    """Runs the rules of one or more catalog rule groups over a file.

    Each group decides its own error/warning split. Subclasses may override ``describe``
    and ``extra_findings`` to contribute text or non-regex findings.
    """

    name = "patterns"
    extensions: frozenset[str] = frozenset()
    group_names: tuple[str, ...] = ()

    def __init__(
        self,
        catalog: PatternCatalog | None = None,
        *,
        extensions: Iterable[str] | None = None,
        group_names: Sequence[str] | None = None,
    ) -> None:
        self._catalog = catalog if catalog is not None else default_catalog()
        if extensions is not None:
            self.extensions = frozenset(ext.lower() for ext in extensions)
        if group_names is not None:
            self.group_names = tuple(group_names)
        self._groups: tuple[RuleGroup, ...] = tuple(
            self._catalog.group(name) for name in self.group_names
        )

    @property
    def catalog(self) -> PatternCatalog:
        return self._catalog

    def supported_extensions(self) -> frozenset[str]:
        return self.extensions

    def finding_categories(self) -> frozenset[Category]:
        categories: set[Category] = set()
        for group in self._groups:
            for rules in group.rules_by_language.values():
                categories.update(
                    category_for(group.type_for(rule), rule.severity) for rule in rules
                )
        return frozenset(categories)

    def analyze(self, content: str, path: str, language: str | None) -> AnalyzerResult:
        builder = FindingBuilder(self._catalog, path, LineIndex(content))
        errors: list[Finding] = []
        warnings: list[Finding] = []
        for group in self._groups:
            for rule in group.rules_for(language):
                for match in rule.pattern.finditer(content):
                    finding = builder.build(
                        finding_type=group.type_for(rule),
                        severity=rule.severity,
                        message=rule.message,
                        rule=rule.name,
                        offset=match.start(),
                        end_offset=match.end(),
                        description=self.describe(rule, match),
                        default_causes=group.default_causes,
                    )
                    (warnings if group.is_warning(rule.severity) else errors).append(finding)
        errors.extend(self.extra_findings(content, language, builder))
        return AnalyzerResult(errors=tuple(errors), warnings=tuple(warnings))

    def describe(self, rule: PatternRule, match: re.Match[str]) -> str:
        return rule.description or rule.message

    def extra_findings(
        self, content: str, language: str | None, builder: FindingBuilder
    ) -> Iterable[Finding]:
        return ()


__all__ = ["PatternRuleAnalyzer"]
