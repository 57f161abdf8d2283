"""Runtime-risk analyzer covering runtime, memory-leak, and performance rule groups.

Runtime rules are errors unless trivial, memory-leak rules are always errors, and
performance rules are always warnings. ``eval_usage`` is typed as a security finding.
"""

from __future__ import annotations

from defect_radar.analyzers.patterns import PatternRuleAnalyzer


class RuntimeAnalyzer(PatternRuleAnalyzer):
    name = "runtime"
    extensions = frozenset({".js", ".jsx", ".ts", ".tsx", ".py"})
    group_names = ("runtime", "memory", "performance")


__all__ = ["RuntimeAnalyzer"]
