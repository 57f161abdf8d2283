"""
defect-radar - unit tests for the finding engine

File: tests/unit/engine/test_finding_engine.py

Purpose
- Validate single-file and project scans, failure isolation, caching, and diagnostics.

What this test file should cover
- Analyzer selection by extension and registration order.
- Input errors, resource limits, analyzer faults, and analyzer timeouts as diagnostics.
- Project scans: ignore patterns, deterministic ordering, unreadable files.
- Cache hits, expiry, and invalidation on content change.

Functional requirements
- Offline; files live under ``tmp_path`` or in an in-memory reader.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from defect_radar.domain.models import (
    AnalyzerResult,
    Category,
    DiagnosticKind,
    DiagnosticLevel,
    Finding,
    FindingType,
    Location,
    Severity,
)
from defect_radar.engine.finding_engine import (
    EngineSettings,
    FileSystemReader,
    FindingEngine,
    create_default_engine,
    detect_language,
)
from defect_radar.errors import AnalyzerContractError, ProjectNotFoundError, SystemErrorType


class _StaticAnalyzer:
    """Reports one error per line containing ``marker``."""

    def __init__(self, name: str, marker: str = "BUG", extensions: frozenset[str] = frozenset({".js"})) -> None:
        self.name = name
        self._marker = marker
        self._extensions = extensions

    def supported_extensions(self) -> frozenset[str]:
        return self._extensions

    def finding_categories(self) -> frozenset[Category]:
        return frozenset({Category.MEDIUM})

    def analyze(self, content: str, path: str, language: str | None) -> AnalyzerResult:
        errors = tuple(
            Finding(
                type=FindingType.RUNTIME,
                severity=Severity.MAJOR,
                message=f"{self.name} marker",
                location=Location(file_path=path, line=number),
                rule=self.name,
            )
            for number, line in enumerate(content.splitlines(), start=1)
            if self._marker in line
        )
        return AnalyzerResult(errors=errors)


class _FailingAnalyzer(_StaticAnalyzer):
    def analyze(self, content: str, path: str, language: str | None) -> AnalyzerResult:
        raise RuntimeError("analyzer exploded")


class _WrongResultAnalyzer(_StaticAnalyzer):
    def analyze(self, content: str, path: str, language: str | None) -> AnalyzerResult:
        return {"errors": []}  # type: ignore[return-value]


class _SlowAnalyzer(_StaticAnalyzer):
    async def analyze(self, content: str, path: str, language: str | None) -> AnalyzerResult:  # type: ignore[override]
        await asyncio.sleep(5)
        return AnalyzerResult()


class _CountingReader(FileSystemReader):
    def __init__(self, unreadable: frozenset[str] = frozenset()) -> None:
        self.reads = 0
        self._unreadable = unreadable

    def read(self, path: Path) -> bytes:
        self.reads += 1
        if path.name in self._unreadable:
            raise PermissionError(f"permission denied: {path.name}")
        return super().read(path)


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_detect_language_from_extension() -> None:
    assert detect_language("/p/a.tsx") == "typescript"
    assert detect_language("/p/mod.py") == "python"
    assert detect_language("/p/.env.local") == "env"
    assert detect_language("/p/notes.txt") is None


def test_register_analyzer_rejects_non_analyzers() -> None:
    engine = FindingEngine()

    with pytest.raises(AnalyzerContractError):
        engine.register_analyzer(object())  # type: ignore[arg-type]
    assert engine.analyzers == ()


async def test_scan_file_runs_matching_analyzers_in_registration_order(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "ok\nBUG here\n")
    engine = FindingEngine(
        [
            _StaticAnalyzer("first"),
            _StaticAnalyzer("python_only", extensions=frozenset({".py"})),
            _StaticAnalyzer("second"),
        ]
    )

    result = await engine.scan_file(target)

    assert [finding.rule for finding in result.errors] == ["first", "second"]
    assert result.language == "javascript"
    assert result.metrics.errors_by_type == {"runtime": 2}
    assert result.metrics.errors_by_severity == {"major": 2}
    assert result.diagnostics == ()


async def test_unreadable_file_yields_single_input_diagnostic(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n")
    engine = FindingEngine([_StaticAnalyzer("a")], reader=_CountingReader(frozenset({"a.js"})))

    result = await engine.scan_file(target)

    assert result.findings == ()
    assert len(result.diagnostics) == 1
    diagnostic = result.diagnostics[0]
    assert diagnostic.kind is DiagnosticKind.INPUT_ERROR
    assert diagnostic.level is DiagnosticLevel.ERROR
    assert diagnostic.error_type is SystemErrorType.FILE_ACCESS


async def test_missing_file_is_an_input_error(tmp_path: Path) -> None:
    engine = FindingEngine([_StaticAnalyzer("a")])

    result = await engine.scan_file(tmp_path / "gone.js")

    assert [d.kind for d in result.diagnostics] == [DiagnosticKind.INPUT_ERROR]


async def test_undecodable_content_is_a_parser_input_error(tmp_path: Path) -> None:
    target = tmp_path / "a.js"
    target.write_bytes(b"\xff\xfe\x00BUG")
    engine = FindingEngine([_StaticAnalyzer("a")])

    result = await engine.scan_file(target)

    assert result.errors == ()
    assert result.diagnostics[0].kind is DiagnosticKind.INPUT_ERROR
    assert result.diagnostics[0].error_type is SystemErrorType.PARSER


async def test_oversized_file_is_skipped_with_warning(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n" * 10)
    engine = FindingEngine([_StaticAnalyzer("a")], settings=EngineSettings(max_file_size_bytes=8))

    result = await engine.scan_file(target)

    assert result.errors == ()
    diagnostic = result.diagnostics[0]
    assert diagnostic.kind is DiagnosticKind.RESOURCE_LIMIT
    assert diagnostic.level is DiagnosticLevel.WARNING
    assert diagnostic.error_type is SystemErrorType.MEMORY


async def test_failing_analyzer_does_not_block_others(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n")
    engine = FindingEngine(
        [_FailingAnalyzer("broken"), _WrongResultAnalyzer("sloppy"), _StaticAnalyzer("good")]
    )

    result = await engine.scan_file(target)

    assert [finding.rule for finding in result.errors] == ["good"]
    assert [(d.kind, d.analyzer) for d in result.diagnostics] == [
        (DiagnosticKind.ANALYZER_FAULT, "broken"),
        (DiagnosticKind.ANALYZER_FAULT, "sloppy"),
    ]
    assert "analyzer exploded" in result.diagnostics[0].message


async def test_slow_analyzer_times_out(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n")
    engine = FindingEngine(
        [_SlowAnalyzer("slow"), _StaticAnalyzer("good")],
        settings=EngineSettings(analyzer_timeout_seconds=0.05),
    )

    result = await engine.scan_file(target)

    assert [finding.rule for finding in result.errors] == ["good"]
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].kind is DiagnosticKind.ANALYZER_TIMEOUT
    assert result.diagnostics[0].error_type is SystemErrorType.TIMEOUT
    assert engine.cache_size == 0


async def test_cache_hits_expire_and_invalidate(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n")
    clock = _FakeClock()
    engine = FindingEngine(
        [_StaticAnalyzer("a")],
        settings=EngineSettings(cache_max_age_seconds=60.0),
        clock=clock,
    )

    first = await engine.scan_file(target)
    second = await engine.scan_file(target)
    assert not first.metrics.from_cache
    assert second.metrics.from_cache
    assert second.errors == first.errors
    assert engine.get_cached_findings(target) == first.findings

    _write(target, "BUG\nBUG\n")
    changed = await engine.scan_file(target)
    assert not changed.metrics.from_cache
    assert len(changed.errors) == 2
    assert engine.cache_size == 1

    clock.now += 61.0
    expired = await engine.scan_file(target)
    assert not expired.metrics.from_cache

    engine.clear_cache()
    assert engine.get_cached_findings(target) is None


async def test_cache_can_be_disabled(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n")
    engine = FindingEngine([_StaticAnalyzer("a")], settings=EngineSettings(cache_enabled=False))

    await engine.scan_file(target)
    again = await engine.scan_file(target)

    assert not again.metrics.from_cache
    assert engine.cache_size == 0


async def test_scan_project_with_unreadable_files_continues(tmp_path: Path) -> None:
    for index in range(10):
        _write(tmp_path / "src" / f"f{index}.js", "BUG\n" if index % 2 == 0 else "fine\n")
    reader = _CountingReader(frozenset({"f0.js", "f3.js"}))
    engine = FindingEngine([_StaticAnalyzer("a")], reader=reader)

    result = await engine.scan_project(tmp_path)

    assert result.metrics.total_files == 10
    input_errors = [d for d in result.diagnostics if d.kind is DiagnosticKind.INPUT_ERROR]
    assert sorted(Path(d.file_path).name for d in input_errors) == ["f0.js", "f3.js"]
    assert reader.reads == 10
    assert result.metrics.files_with_errors == 4
    assert result.metrics.total_errors == 4
    assert [item.file_path for item in result.file_results] == sorted(
        item.file_path for item in result.file_results
    )


async def test_scan_project_skips_ignored_and_unsupported_files(tmp_path: Path) -> None:
    _write(tmp_path / "app.js", "BUG\n")
    _write(tmp_path / "node_modules" / "lib" / "index.js", "BUG\n")
    _write(tmp_path / "build" / "out.js", "BUG\n")
    _write(tmp_path / "README.md", "BUG\n")
    engine = FindingEngine([_StaticAnalyzer("a")], settings=EngineSettings(max_concurrency=2))

    result = await engine.scan_project(tmp_path)

    assert [Path(item.file_path).name for item in result.file_results] == ["app.js"]
    assert result.group_by_type() == {"runtime": result.errors}
    assert engine.is_ignored(tmp_path / "node_modules" / "x.js", tmp_path)
    assert not engine.is_ignored(tmp_path / "src" / "x.js", tmp_path)


async def test_scan_project_rejects_missing_root(tmp_path: Path) -> None:
    engine = FindingEngine([_StaticAnalyzer("a")])

    with pytest.raises(ProjectNotFoundError):
        await engine.scan_project(tmp_path / "missing")
    with pytest.raises(FileNotFoundError):
        await engine.scan_project(tmp_path / "missing")


async def test_diagnostic_log_statistics(tmp_path: Path) -> None:
    target = _write(tmp_path / "a.js", "BUG\n")
    engine = FindingEngine([_FailingAnalyzer("broken")], settings=EngineSettings(diagnostic_log_size=2))

    await engine.scan_file(target)
    await engine.scan_file(tmp_path / "missing.js")
    await engine.scan_file(tmp_path / "missing2.js")

    assert len(engine.diagnostics()) == 2
    stats = engine.diagnostic_statistics()
    assert stats["total"] == 2
    assert stats["by_kind"] == {"input_error": 2}
    engine.clear_diagnostics()
    assert engine.diagnostic_statistics()["total"] == 0


async def test_default_engine_finds_real_defects(tmp_path: Path) -> None:
    _write(tmp_path / "app.js", "eval(userInput);\n")
    _write(tmp_path / "mod.py", "items = [1, 2\n")
    _write(tmp_path / "package.json", '{"name": "demo", "version": "1.0.0", "license": "MIT"}')
    engine = create_default_engine({"engine": {"max_concurrency": 2}})

    result = await engine.scan_project(tmp_path)

    rules = sorted(finding.rule or "" for finding in result.errors)
    assert rules == ["eval_usage", "unclosed_bracket"]
    assert engine.settings.max_concurrency == 2
    assert result.metrics.total_files == 3


def test_engine_settings_validation() -> None:
    with pytest.raises(ValueError, match="analyzer_timeout_seconds"):
        EngineSettings(analyzer_timeout_seconds=0)
    with pytest.raises(ValueError, match="max_concurrency"):
        EngineSettings(max_concurrency=-1)
    settings = EngineSettings.from_config({"engine": {"ignore_patterns": ["vendor"], "cache_enabled": False}})
    assert settings.ignore_patterns == ("vendor",)
    assert settings.cache_enabled is False
