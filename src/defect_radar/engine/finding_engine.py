"""
defect-radar - finding engine

File: src/defect_radar/engine/finding_engine.py

Purpose
- Own the analyzer registry and run it over one file or a whole project tree.

What should be included in this file
- ``FindingEngine`` with ``register_analyzer``, ``scan_file``, and ``scan_project``.
- Injectable content reader and language resolver.
- Bounded analysis cache keyed by (path, content hash) and a bounded diagnostic log.

Functional requirements
- A file that cannot be read or decoded yields zero findings plus one diagnostic; project scans
  never abort because of a single file.
- Every analyzer call is bounded by a timeout; an expired or failing analyzer contributes nothing
  for that file and is recorded as a diagnostic while the other analyzers still contribute.
- Project results are merged in file-path order regardless of completion order.

Non-functional requirements
- Parallelism is bounded by ``max_concurrency`` (0 means the number of available cores).
"""

from __future__ import annotations

import asyncio
import inspect
import os
import time
from collections import Counter, OrderedDict, deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Protocol

import structlog

from defect_radar.analyzers.base import Analyzer
from defect_radar.constants import (
    DEFAULT_ANALYZER_TIMEOUT_SECONDS,
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_DIAGNOSTIC_LOG_SIZE,
    DEFAULT_ENGINE_IGNORE_PATTERNS,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    EXTENSION_TO_LANGUAGE,
)
from defect_radar.domain.models import (
    AnalyzerResult,
    DiagnosticKind,
    DiagnosticLevel,
    FileScanMetrics,
    FileScanResult,
    Finding,
    ProjectScanMetrics,
    ProjectScanResult,
    ScanDiagnostic,
    count_by_severity,
    count_by_type,
)
from defect_radar.errors import (
    AnalyzerContractError,
    ProjectNotFoundError,
    SystemErrorType,
    classify_error,
)
from defect_radar.utils.concurrency import WorkerPool, default_concurrency, run_with_timeout
from defect_radar.utils.fs import (
    file_extension,
    iter_project_files,
    matches_ignore,
    relative_posix,
)
from defect_radar.utils.hashing import sha256_bytes

LanguageResolver = Callable[[str], str | None]


class ContentReader(Protocol):
    """Source of file bytes; failures raise ``OSError`` subclasses."""

    def size(self, path: Path) -> int: ...

    def read(self, path: Path) -> bytes: ...


class FileSystemReader:
    """Reads files from local disk."""

    def size(self, path: Path) -> int:
        return path.stat().st_size

    def read(self, path: Path) -> bytes:
        return path.read_bytes()


def detect_language(path: str) -> str | None:
    """Infer the language of ``path`` from its extension."""
    return EXTENSION_TO_LANGUAGE.get(file_extension(path))


@dataclass(frozen=True, slots=True)
class EngineSettings:
    ignore_patterns: tuple[str, ...] = DEFAULT_ENGINE_IGNORE_PATTERNS
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    max_concurrency: int = 0
    analyzer_timeout_seconds: float = DEFAULT_ANALYZER_TIMEOUT_SECONDS
    cache_enabled: bool = True
    cache_max_age_seconds: float = DEFAULT_CACHE_MAX_AGE_SECONDS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    diagnostic_log_size: int = DEFAULT_DIAGNOSTIC_LOG_SIZE

    def __post_init__(self) -> None:
        object.__setattr__(self, "ignore_patterns", tuple(self.ignore_patterns))
        if self.max_file_size_bytes <= 0:
            raise ValueError("EngineSettings.max_file_size_bytes must be > 0")
        if self.max_concurrency < 0:
            raise ValueError("EngineSettings.max_concurrency must be >= 0")
        if self.analyzer_timeout_seconds <= 0:
            raise ValueError("EngineSettings.analyzer_timeout_seconds must be > 0")
        if self.cache_max_entries <= 0:
            raise ValueError("EngineSettings.cache_max_entries must be > 0")
        if self.diagnostic_log_size <= 0:
            raise ValueError("EngineSettings.diagnostic_log_size must be > 0")

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> EngineSettings:
        """Build settings from a validated configuration mapping (``engine`` section)."""
        section = config.get("engine", {})
        if not isinstance(section, Mapping):
            raise ValueError("engine: expected mapping")
        defaults = cls()
        return cls(
            ignore_patterns=tuple(section.get("ignore_patterns", defaults.ignore_patterns)),
            max_file_size_bytes=int(section.get("max_file_size_bytes", defaults.max_file_size_bytes)),
            max_concurrency=int(section.get("max_concurrency", defaults.max_concurrency)),
            analyzer_timeout_seconds=float(
                section.get("analyzer_timeout_seconds", defaults.analyzer_timeout_seconds)
            ),
            cache_enabled=bool(section.get("cache_enabled", defaults.cache_enabled)),
            cache_max_age_seconds=float(
                section.get("cache_max_age_seconds", defaults.cache_max_age_seconds)
            ),
            cache_max_entries=int(section.get("cache_max_entries", defaults.cache_max_entries)),
            diagnostic_log_size=int(
                section.get("diagnostic_log_size", defaults.diagnostic_log_size)
            ),
        )


@dataclass(frozen=True, slots=True)
class _CacheEntry:
    stored_at: float
    result: FileScanResult


class FindingEngine:
    """Runs registered analyzers over files and folds their output into scan results."""

    def __init__(
        self,
        analyzers: Iterable[Analyzer] | None = None,
        *,
        settings: EngineSettings | None = None,
        reader: ContentReader | None = None,
        language_resolver: LanguageResolver | None = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Any | None = None,
    ) -> None:
        self._settings = settings if settings is not None else EngineSettings()
        self._reader: ContentReader = reader if reader is not None else FileSystemReader()
        self._language_resolver = language_resolver or detect_language
        self._clock = clock
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._analyzers: list[Analyzer] = []
        self._cache: OrderedDict[tuple[str, str], _CacheEntry] = OrderedDict()
        self._latest_key: dict[str, tuple[str, str]] = {}
        self._diagnostics: deque[ScanDiagnostic] = deque(maxlen=self._settings.diagnostic_log_size)
        for analyzer in analyzers or ():
            self.register_analyzer(analyzer)

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def analyzers(self) -> tuple[Analyzer, ...]:
        return tuple(self._analyzers)

    # ----------------------------------------------------------------- registry

    def register_analyzer(self, analyzer: Analyzer) -> None:
        """Append ``analyzer``; registration order fixes finding order within a file."""
        if not isinstance(analyzer, Analyzer):
            raise AnalyzerContractError(
                f"{type(analyzer).__name__} does not implement the Analyzer protocol"
            )
        self._analyzers.append(analyzer)
        self.clear_cache()
        self._logger.debug(
            "analyzer_registered",
            analyzer=analyzer.name,
            extensions=sorted(analyzer.supported_extensions()),
        )

    def supported_extensions(self) -> frozenset[str]:
        found: set[str] = set()
        for analyzer in self._analyzers:
            found.update(analyzer.supported_extensions())
        return frozenset(found)

    def detect_language(self, path: str | os.PathLike[str]) -> str | None:
        return self._language_resolver(os.fspath(path))

    def is_ignored(
        self,
        path: str | os.PathLike[str],
        root: str | os.PathLike[str] | None = None,
        patterns: Sequence[str] | None = None,
    ) -> bool:
        active = self._settings.ignore_patterns if patterns is None else tuple(patterns)
        relative = relative_posix(path, root) if root is not None else None
        if relative is None:
            relative = Path(path).as_posix()
        return matches_ignore(relative, active)

    # -------------------------------------------------------------------- scans

    async def scan_file(self, path: str | os.PathLike[str]) -> FileScanResult:
        """Scan one file with every analyzer that supports its extension."""

        started = time.perf_counter()
        file_path = Path(path)
        path_text = os.fspath(path)
        language = self._language_resolver(path_text)
        extension = file_extension(file_path)
        applicable = [a for a in self._analyzers if extension in a.supported_extensions()]

        try:
            size = await asyncio.to_thread(self._reader.size, file_path)
            if size > self._settings.max_file_size_bytes:
                diagnostic = self._record(
                    DiagnosticKind.RESOURCE_LIMIT,
                    DiagnosticLevel.WARNING,
                    path_text,
                    f"file size {size} exceeds limit of {self._settings.max_file_size_bytes} bytes",
                    error_type=SystemErrorType.MEMORY,
                )
                return self._empty_result(path_text, language, started, (diagnostic,))
            raw = await asyncio.to_thread(self._reader.read, file_path)
            content = raw.decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            diagnostic = self._record(
                DiagnosticKind.INPUT_ERROR,
                DiagnosticLevel.ERROR,
                path_text,
                f"unable to read file: {exc}",
                error_type=classify_error(exc),
            )
            return self._empty_result(path_text, language, started, (diagnostic,))

        cache_key = (path_text, sha256_bytes(raw))
        cached = self._cache_lookup(cache_key)
        if cached is not None:
            return replace(cached, metrics=replace(cached.metrics, from_cache=True))

        outcomes = await asyncio.gather(
            *(self._run_analyzer(analyzer, content, path_text, language) for analyzer in applicable)
        )
        errors: list[Finding] = []
        warnings: list[Finding] = []
        diagnostics: list[ScanDiagnostic] = []
        for result, diagnostic in outcomes:
            if diagnostic is not None:
                diagnostics.append(diagnostic)
            if result is not None:
                errors.extend(result.errors)
                warnings.extend(result.warnings)

        result = FileScanResult(
            file_path=path_text,
            language=language,
            errors=tuple(errors),
            warnings=tuple(warnings),
            diagnostics=tuple(diagnostics),
            metrics=FileScanMetrics(
                duration_ms=_elapsed_ms(started),
                errors_by_type=count_by_type(errors),
                errors_by_severity=count_by_severity(errors),
            ),
        )
        if not diagnostics:
            self._cache_store(cache_key, result)
        return result

    async def scan_project(self, root: str | os.PathLike[str]) -> ProjectScanResult:
        """Scan every supported, non-ignored file under ``root``."""

        root_path = Path(root)
        if not root_path.is_dir():
            raise ProjectNotFoundError(f"project root does not exist or is not a directory: {root}")

        started = time.perf_counter()
        supported = self.supported_extensions()
        files = await asyncio.to_thread(
            lambda: [
                candidate
                for candidate in iter_project_files(root_path, self._settings.ignore_patterns)
                if file_extension(candidate) in supported
            ]
        )
        concurrency = default_concurrency(self._settings.max_concurrency)
        self._logger.info(
            "project_scan_started",
            root=os.fspath(root_path),
            files=len(files),
            max_concurrency=concurrency,
        )

        pool: WorkerPool[FileScanResult] = WorkerPool(max_concurrency=concurrency)
        results = await pool.collect(self.scan_file(candidate) for candidate in files)
        results.sort(key=lambda item: item.file_path)

        errors = tuple(finding for item in results for finding in item.errors)
        warnings = tuple(finding for item in results for finding in item.warnings)
        diagnostics = tuple(diag for item in results for diag in item.diagnostics)
        metrics = ProjectScanMetrics(
            total_files=len(files),
            files_with_errors=sum(1 for item in results if item.has_errors),
            total_errors=len(errors),
            total_warnings=len(warnings),
            scan_duration_ms=_elapsed_ms(started),
            errors_by_type=count_by_type(errors),
            errors_by_severity=count_by_severity(errors),
        )
        self._logger.info(
            "project_scan_completed",
            root=os.fspath(root_path),
            total_files=metrics.total_files,
            files_with_errors=metrics.files_with_errors,
            total_errors=metrics.total_errors,
            total_warnings=metrics.total_warnings,
            diagnostics=len(diagnostics),
            duration_ms=round(metrics.scan_duration_ms, 3),
        )
        return ProjectScanResult(
            root=os.fspath(root_path),
            errors=errors,
            warnings=warnings,
            diagnostics=diagnostics,
            file_results=tuple(results),
            metrics=metrics,
        )

    async def _run_analyzer(
        self,
        analyzer: Analyzer,
        content: str,
        path: str,
        language: str | None,
    ) -> tuple[AnalyzerResult | None, ScanDiagnostic | None]:
        timeout = self._settings.analyzer_timeout_seconds
        try:
            if inspect.iscoroutinefunction(analyzer.analyze):
                pending = analyzer.analyze(content, path, language)
            else:
                # A timed-out worker thread runs to completion; its result is discarded.
                pending = asyncio.to_thread(analyzer.analyze, content, path, language)
            result = await run_with_timeout(pending, timeout)
            if not isinstance(result, AnalyzerResult):
                raise AnalyzerContractError(
                    f"analyzer {analyzer.name!r} returned {type(result).__name__}, "
                    "expected AnalyzerResult"
                )
            for finding in (*result.errors, *result.warnings):
                if not isinstance(finding, Finding):
                    raise AnalyzerContractError(
                        f"analyzer {analyzer.name!r} produced {type(finding).__name__}, "
                        "expected Finding"
                    )
            return result, None
        except TimeoutError as exc:
            self._logger.warning(
                "analyzer_timeout", analyzer=analyzer.name, file_path=path, timeout_seconds=timeout
            )
            return None, self._record(
                DiagnosticKind.ANALYZER_TIMEOUT,
                DiagnosticLevel.ERROR,
                path,
                f"analyzer {analyzer.name!r} timed out after {timeout} seconds",
                error_type=classify_error(exc),
                analyzer=analyzer.name,
            )
        except Exception as exc:  # analyzer isolation boundary
            self._logger.warning(
                "analyzer_failed",
                analyzer=analyzer.name,
                file_path=path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None, self._record(
                DiagnosticKind.ANALYZER_FAULT,
                DiagnosticLevel.ERROR,
                path,
                f"analyzer {analyzer.name!r} failed: {exc}",
                error_type=classify_error(exc, default=SystemErrorType.ANALYZER),
                analyzer=analyzer.name,
            )

    # ------------------------------------------------------------------- cache

    def get_cached_findings(self, path: str | os.PathLike[str]) -> tuple[Finding, ...] | None:
        """Return the findings of the latest fresh cached scan of ``path``, if any."""
        key = self._latest_key.get(os.fspath(path))
        if key is None:
            return None
        cached = self._cache_lookup(key)
        return None if cached is None else cached.findings

    def clear_cache(self) -> None:
        self._cache.clear()
        self._latest_key.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def _cache_lookup(self, key: tuple[str, str]) -> FileScanResult | None:
        if not self._settings.cache_enabled:
            return None
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at > self._settings.cache_max_age_seconds:
            del self._cache[key]
            return None
        return entry.result

    def _cache_store(self, key: tuple[str, str], result: FileScanResult) -> None:
        if not self._settings.cache_enabled:
            return
        previous = self._latest_key.get(key[0])
        if previous is not None and previous != key:
            self._cache.pop(previous, None)
        self._cache[key] = _CacheEntry(stored_at=self._clock(), result=result)
        self._cache.move_to_end(key)
        self._latest_key[key[0]] = key
        while len(self._cache) > self._settings.cache_max_entries:
            evicted, _ = self._cache.popitem(last=False)
            if self._latest_key.get(evicted[0]) == evicted:
                del self._latest_key[evicted[0]]

    # ------------------------------------------------------------- diagnostics

    def diagnostics(self) -> tuple[ScanDiagnostic, ...]:
        return tuple(self._diagnostics)

    def diagnostic_statistics(self) -> dict[str, object]:
        return {
            "total": len(self._diagnostics),
            "by_kind": dict(sorted(Counter(d.kind.value for d in self._diagnostics).items())),
            "by_error_type": dict(
                sorted(Counter(d.error_type.value for d in self._diagnostics).items())
            ),
        }

    def clear_diagnostics(self) -> None:
        self._diagnostics.clear()

    def _record(
        self,
        kind: DiagnosticKind,
        level: DiagnosticLevel,
        path: str,
        message: str,
        *,
        error_type: SystemErrorType,
        analyzer: str | None = None,
    ) -> ScanDiagnostic:
        diagnostic = ScanDiagnostic(
            kind=kind,
            level=level,
            file_path=path,
            message=message,
            error_type=error_type,
            analyzer=analyzer,
        )
        self._diagnostics.append(diagnostic)
        if kind in (DiagnosticKind.INPUT_ERROR, DiagnosticKind.RESOURCE_LIMIT):
            self._logger.warning(
                "file_skipped", file_path=path, kind=kind.value, error_type=error_type.value
            )
        return diagnostic

    def _empty_result(
        self,
        path: str,
        language: str | None,
        started: float,
        diagnostics: tuple[ScanDiagnostic, ...],
    ) -> FileScanResult:
        return FileScanResult(
            file_path=path,
            language=language,
            errors=(),
            warnings=(),
            diagnostics=diagnostics,
            metrics=FileScanMetrics(duration_ms=_elapsed_ms(started), errors_by_type={}, errors_by_severity={}),
        )


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


def create_default_engine(
    config: Mapping[str, object] | None = None,
    *,
    catalog: Any | None = None,
    reader: ContentReader | None = None,
    logger: Any | None = None,
) -> FindingEngine:
    """Build an engine with the syntax, runtime, and configuration analyzers."""

    from defect_radar.analyzers import ConfigurationAnalyzer, RuntimeAnalyzer, SyntaxAnalyzer
    from defect_radar.knowledge.catalog import default_catalog

    shared = catalog if catalog is not None else default_catalog()
    settings = EngineSettings.from_config(config) if config is not None else EngineSettings()
    return FindingEngine(
        [SyntaxAnalyzer(shared), RuntimeAnalyzer(shared), ConfigurationAnalyzer(shared)],
        settings=settings,
        reader=reader,
        logger=logger,
    )


__all__ = [
    "ContentReader",
    "EngineSettings",
    "FileSystemReader",
    "FindingEngine",
    "LanguageResolver",
    "create_default_engine",
    "detect_language",
]
