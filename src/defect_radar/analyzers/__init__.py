"""Built-in analyzers and the analyzer capability protocol."""

from defect_radar.analyzers.base import Analyzer, FindingBuilder, LineIndex
from defect_radar.analyzers.brackets import (
    BracketIssue,
    BracketIssueKind,
    BracketReport,
    scan_brackets,
)
from defect_radar.analyzers.configuration import ConfigurationAnalyzer
from defect_radar.analyzers.patterns import PatternRuleAnalyzer
from defect_radar.analyzers.runtime import RuntimeAnalyzer
from defect_radar.analyzers.syntax import SyntaxAnalyzer

__all__ = [
    "Analyzer",
    "BracketIssue",
    "BracketIssueKind",
    "BracketReport",
    "ConfigurationAnalyzer",
    "FindingBuilder",
    "LineIndex",
    "PatternRuleAnalyzer",
    "RuntimeAnalyzer",
    "SyntaxAnalyzer",
    "scan_brackets",
]
