"""
defect-radar - finding domain model

File: src/defect_radar/domain/models.py

Purpose
- Frozen value objects for findings, locations, resolutions, analyzer output, and scan results.

Functional requirements
- ``Finding.category`` is a pure function of ``(type, severity)`` and is never passed in.
- ``Finding.fingerprint`` is stable for identical (type, rule, file, line, column, message),
  and ``Finding.id`` is derived from it so rescans of unchanged content keep their ids.
- Every model exposes ``to_dict()`` returning JSON-safe data with deterministic key order.

Non-functional requirements
- No IO in this module; validation failures raise ``ValueError`` with a field path.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Final, NoReturn, TypeVar

from defect_radar.domain.ids import finding_id
from defect_radar.errors import SystemErrorType
from defect_radar.utils.hashing import fingerprint as _fingerprint

if TYPE_CHECKING:
    from collections.abc import Iterable

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=StrEnum)

_MAX_CONTEXT = 4096
DEFAULT_EFFECTIVENESS: Final[int] = 50
DEFAULT_ESTIMATED_MINUTES: Final[int] = 10


class FindingType(StrEnum):
    SYNTAX = "syntax"
    RUNTIME = "runtime"
    LOGICAL = "logical"
    CONFIGURATION = "configuration"
    SECURITY = "security"
    PERFORMANCE = "performance"
    ACCESSIBILITY = "accessibility"


class Severity(StrEnum):
    """Finding severity; ``rank`` 0 is the worst."""

    BLOCKER = "blocker"
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    TRIVIAL = "trivial"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @property
    def is_critical(self) -> bool:
        return self in (Severity.BLOCKER, Severity.CRITICAL)

    def at_or_below(self, threshold: Severity) -> bool:
        """Return ``True`` when this severity is no worse than ``threshold``."""
        return self.rank >= threshold.rank


class Category(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Difficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_ORDER.index(self)


class DiagnosticKind(StrEnum):
    INPUT_ERROR = "input_error"
    ANALYZER_FAULT = "analyzer_fault"
    ANALYZER_TIMEOUT = "analyzer_timeout"
    RESOURCE_LIMIT = "resource_limit"


class DiagnosticLevel(StrEnum):
    WARNING = "warning"
    ERROR = "error"


_SEVERITY_ORDER: Final[tuple[Severity, ...]] = (
    Severity.BLOCKER,
    Severity.CRITICAL,
    Severity.MAJOR,
    Severity.MINOR,
    Severity.TRIVIAL,
)
_DIFFICULTY_ORDER: Final[tuple[Difficulty, ...]] = (
    Difficulty.EASY,
    Difficulty.MEDIUM,
    Difficulty.HARD,
)
_CATEGORY_BY_SEVERITY: Final[dict[Severity, Category]] = {
    Severity.BLOCKER: Category.CRITICAL,
    Severity.CRITICAL: Category.HIGH,
    Severity.MAJOR: Category.MEDIUM,
    Severity.MINOR: Category.LOW,
    Severity.TRIVIAL: Category.INFO,
}


def category_for(finding_type: FindingType | str, severity: Severity | str) -> Category:
    """Derive the category of a finding; security findings are always critical."""

    parsed_type = _as_enum(FindingType, finding_type, "finding_type")
    parsed_severity = _as_enum(Severity, severity, "severity")
    if parsed_type is FindingType.SECURITY:
        return Category.CRITICAL
    return _CATEGORY_BY_SEVERITY[parsed_severity]


@dataclass(frozen=True, slots=True)
class Location:
    """Position of a finding; ``line`` and ``column`` are 1-based."""

    file_path: str
    line: int = 1
    column: int = 1
    start_offset: int | None = None
    end_offset: int | None = None
    context: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.file_path, str) or not self.file_path:
            _fail("Location.file_path", "must be a non-empty string")
        _require_int(self.line, "Location.line", minimum=1)
        _require_int(self.column, "Location.column", minimum=1)
        if self.start_offset is not None:
            _require_int(self.start_offset, "Location.start_offset", minimum=0)
        if self.end_offset is not None:
            _require_int(self.end_offset, "Location.end_offset", minimum=0)
            if self.start_offset is not None and self.end_offset < self.start_offset:
                _fail("Location.end_offset", "must be >= start_offset")
        if len(self.context) > _MAX_CONTEXT:
            object.__setattr__(self, "context", self.context[:_MAX_CONTEXT])

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "file_path": self.file_path,
            "line": self.line,
            "column": self.column,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "context": self.context,
        }


@dataclass(frozen=True, slots=True)
class CodeExample:
    incorrect: str
    correct: str
    explanation: str = ""

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "incorrect": self.incorrect,
            "correct": self.correct,
            "explanation": self.explanation,
        }


@dataclass(frozen=True, slots=True)
class ResolutionStep:
    order: int
    description: str
    command: str | None = None

    def __post_init__(self) -> None:
        _require_int(self.order, "ResolutionStep.order", minimum=1)

    def to_dict(self) -> dict[str, JSONValue]:
        return {"order": self.order, "description": self.description, "command": self.command}


@dataclass(frozen=True, slots=True)
class ValidationStep:
    description: str
    command: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {"description": self.description, "command": self.command}


@dataclass(frozen=True, slots=True)
class Resolution:
    """A remediation; ``effectiveness`` is a 0-100 score, ``None`` when unknown."""

    id: str
    title: str
    description: str = ""
    steps: tuple[ResolutionStep, ...] = ()
    difficulty: Difficulty = Difficulty.MEDIUM
    estimated_time_minutes: int | None = None
    effectiveness: int | None = None
    requirements: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.title.strip():
            _fail("Resolution.title", "must not be empty")
        object.__setattr__(
            self, "difficulty", _as_enum(Difficulty, self.difficulty, "Resolution.difficulty")
        )
        if self.estimated_time_minutes is not None:
            _require_int(self.estimated_time_minutes, "Resolution.estimated_time_minutes", minimum=0)
        if self.effectiveness is not None:
            _require_int(self.effectiveness, "Resolution.effectiveness", minimum=0)
            if self.effectiveness > 100:
                _fail("Resolution.effectiveness", "must be <= 100")
        object.__setattr__(self, "steps", tuple(sorted(self.steps, key=lambda step: step.order)))
        object.__setattr__(self, "requirements", tuple(self.requirements))

    @property
    def ranking_effectiveness(self) -> int:
        return DEFAULT_EFFECTIVENESS if self.effectiveness is None else self.effectiveness

    @property
    def ranking_minutes(self) -> int:
        if self.estimated_time_minutes is None:
            return DEFAULT_ESTIMATED_MINUTES
        return self.estimated_time_minutes

    def rank_key(self) -> tuple[int, int, int]:
        """Sort key: effectiveness descending, then difficulty, then estimated time."""
        return (-self.ranking_effectiveness, self.difficulty.rank, self.ranking_minutes)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "steps": [step.to_dict() for step in self.steps],
            "difficulty": self.difficulty.value,
            "estimated_time_minutes": self.estimated_time_minutes,
            "effectiveness": self.effectiveness,
            "requirements": list(self.requirements),
        }


@dataclass(frozen=True, slots=True)
class Finding:
    """One detected issue.

    ``category``, ``fingerprint`` and ``id`` are derived; callers pass the observable
    facts only. ``rule`` is the pattern key of the rule that produced the finding.
    """

    type: FindingType
    severity: Severity
    message: str
    location: Location
    rule: str | None = None
    description: str = ""
    causes: tuple[str, ...] = ()
    resolutions: tuple[Resolution, ...] = ()
    examples: tuple[CodeExample, ...] = ()
    category: Category = field(init=False)
    fingerprint: str = field(init=False, repr=False)
    id: str = field(init=False)

    def __post_init__(self) -> None:
        finding_type = _as_enum(FindingType, self.type, "Finding.type")
        severity = _as_enum(Severity, self.severity, "Finding.severity")
        if not isinstance(self.message, str) or not self.message.strip():
            _fail("Finding.message", "must be a non-empty string")
        if not isinstance(self.location, Location):
            _fail("Finding.location", f"expected Location, got {type(self.location).__name__}")

        object.__setattr__(self, "type", finding_type)
        object.__setattr__(self, "severity", severity)
        object.__setattr__(self, "causes", tuple(self.causes))
        object.__setattr__(self, "resolutions", tuple(self.resolutions))
        object.__setattr__(self, "examples", tuple(self.examples))
        object.__setattr__(self, "category", category_for(finding_type, severity))
        digest = _fingerprint(
            finding_type.value,
            self.rule,
            self.location.file_path,
            self.location.line,
            self.location.column,
            self.message,
        )
        object.__setattr__(self, "fingerprint", digest)
        object.__setattr__(self, "id", finding_id(self.rule, digest))

    @property
    def file_path(self) -> str:
        return self.location.file_path

    @property
    def is_critical(self) -> bool:
        return self.severity.is_critical

    def sort_key(self) -> tuple[str, int, int, int, str, str]:
        return (
            self.location.file_path,
            self.location.line,
            self.location.column,
            self.severity.rank,
            self.rule or "",
            self.message,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "fingerprint": self.fingerprint,
            "type": self.type.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "rule": self.rule,
            "message": self.message,
            "description": self.description,
            "location": self.location.to_dict(),
            "causes": list(self.causes),
            "resolutions": [item.to_dict() for item in self.resolutions],
            "examples": [item.to_dict() for item in self.examples],
        }


@dataclass(frozen=True, slots=True)
class AnalyzerResult:
    """Output of one analyzer for one file; the error/warning split is analyzer policy."""

    errors: tuple[Finding, ...] = ()
    warnings: tuple[Finding, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @classmethod
    def empty(cls) -> AnalyzerResult:
        return cls()

    @property
    def total(self) -> int:
        return len(self.errors) + len(self.warnings)


@dataclass(frozen=True, slots=True)
class ScanDiagnostic:
    """Engine-level note about a file that could not be (fully) analyzed."""

    kind: DiagnosticKind
    level: DiagnosticLevel
    file_path: str
    message: str
    error_type: SystemErrorType = SystemErrorType.UNKNOWN
    analyzer: str | None = None

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "kind": self.kind.value,
            "level": self.level.value,
            "file_path": self.file_path,
            "message": self.message,
            "error_type": self.error_type.value,
            "analyzer": self.analyzer,
        }


@dataclass(frozen=True, slots=True)
class FileScanMetrics:
    duration_ms: float
    errors_by_type: dict[str, int]
    errors_by_severity: dict[str, int]
    from_cache: bool = False

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "duration_ms": self.duration_ms,
            "errors_by_type": dict(self.errors_by_type),
            "errors_by_severity": dict(self.errors_by_severity),
            "from_cache": self.from_cache,
        }


@dataclass(frozen=True, slots=True)
class FileScanResult:
    file_path: str
    language: str | None
    errors: tuple[Finding, ...]
    warnings: tuple[Finding, ...]
    diagnostics: tuple[ScanDiagnostic, ...]
    metrics: FileScanMetrics

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def findings(self) -> tuple[Finding, ...]:
        return self.errors + self.warnings

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "file_path": self.file_path,
            "language": self.language,
            "errors": [item.to_dict() for item in self.errors],
            "warnings": [item.to_dict() for item in self.warnings],
            "diagnostics": [item.to_dict() for item in self.diagnostics],
            "metrics": self.metrics.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class ProjectScanMetrics:
    total_files: int
    files_with_errors: int
    total_errors: int
    total_warnings: int
    scan_duration_ms: float
    errors_by_type: dict[str, int]
    errors_by_severity: dict[str, int]

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "total_files": self.total_files,
            "files_with_errors": self.files_with_errors,
            "total_errors": self.total_errors,
            "total_warnings": self.total_warnings,
            "scan_duration_ms": self.scan_duration_ms,
            "errors_by_type": dict(self.errors_by_type),
            "errors_by_severity": dict(self.errors_by_severity),
        }


@dataclass(frozen=True, slots=True)
class ProjectScanResult:
    root: str
    errors: tuple[Finding, ...]
    warnings: tuple[Finding, ...]
    diagnostics: tuple[ScanDiagnostic, ...]
    file_results: tuple[FileScanResult, ...]
    metrics: ProjectScanMetrics

    def group_by_type(self) -> dict[str, tuple[Finding, ...]]:
        """Group errors by finding type, preserving scan order within each group."""
        grouped: dict[str, list[Finding]] = {}
        for finding in self.errors:
            grouped.setdefault(finding.type.value, []).append(finding)
        return {key: tuple(value) for key, value in sorted(grouped.items())}

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "root": self.root,
            "errors": [item.to_dict() for item in self.errors],
            "warnings": [item.to_dict() for item in self.warnings],
            "diagnostics": [item.to_dict() for item in self.diagnostics],
            "metrics": self.metrics.to_dict(),
        }


def count_by_type(findings: Iterable[Finding]) -> dict[str, int]:
    return dict(sorted(Counter(item.type.value for item in findings).items()))


def count_by_severity(findings: Iterable[Finding]) -> dict[str, int]:
    return dict(sorted(Counter(item.severity.value for item in findings).items()))


def count_by_category(findings: Iterable[Finding]) -> dict[str, int]:
    return dict(sorted(Counter(item.category.value for item in findings).items()))


def sorted_findings(findings: Iterable[Finding]) -> tuple[Finding, ...]:
    return tuple(sorted(findings, key=Finding.sort_key))


def _as_enum(enum_type: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected string enum value, got {type(value).__name__}")
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(sorted(item.value for item in enum_type))
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _require_int(value: object, path: str, *, minimum: int | None = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "DEFAULT_EFFECTIVENESS",
    "DEFAULT_ESTIMATED_MINUTES",
    "AnalyzerResult",
    "Category",
    "CodeExample",
    "DiagnosticKind",
    "DiagnosticLevel",
    "Difficulty",
    "FileScanMetrics",
    "FileScanResult",
    "Finding",
    "FindingType",
    "JSONValue",
    "Location",
    "ProjectScanMetrics",
    "ProjectScanResult",
    "Resolution",
    "ResolutionStep",
    "ScanDiagnostic",
    "Severity",
    "ValidationStep",
    "category_for",
    "count_by_category",
    "count_by_severity",
    "count_by_type",
    "sorted_findings",
]
