"""
defect-radar - exception types and system-error classification

File: src/defect_radar/errors.py

Purpose
- Define the package exception hierarchy raised to callers.
- Classify arbitrary exceptions into a small, stable taxonomy recorded on scan diagnostics.

Functional requirements
- Only unrecoverable conditions (missing scan/watch root, malformed catalog) are raised;
  per-file and per-analyzer failures are recovered and surfaced as diagnostics.
"""

from __future__ import annotations

import asyncio
import json
import tomllib
from enum import StrEnum

import yaml


class DefectRadarError(Exception):
    """Base class for errors raised by defect-radar."""


class ProjectNotFoundError(DefectRadarError, FileNotFoundError):
    """Raised when a scan or watch root does not exist or is not a directory."""


class AnalyzerContractError(DefectRadarError, TypeError):
    """Raised when an analyzer returns something other than an ``AnalyzerResult``."""


class CatalogError(DefectRadarError, ValueError):
    """Raised when pattern catalog data is malformed."""


class MonitorError(DefectRadarError):
    """Raised for invalid monitor operations (unknown handle, stopped monitor)."""


class SystemErrorType(StrEnum):
    """Coarse classification of failures recorded on diagnostics."""

    FILE_ACCESS = "file_access"
    PARSER = "parser"
    MEMORY = "memory"
    TIMEOUT = "timeout"
    NETWORK = "network"
    ANALYZER = "analyzer"
    UNKNOWN = "unknown"


_PARSER_ERRORS: tuple[type[BaseException], ...] = (
    UnicodeDecodeError,
    SyntaxError,
    json.JSONDecodeError,
    tomllib.TOMLDecodeError,
    yaml.YAMLError,
)


def classify_error(exc: BaseException, *, default: SystemErrorType = SystemErrorType.UNKNOWN) -> SystemErrorType:
    """Map ``exc`` to a ``SystemErrorType``.

    Order matters: ``UnicodeDecodeError`` is a ``ValueError`` and timeouts are ``OSError``
    subclasses on some interpreters, so the specific checks run first.
    """

    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return SystemErrorType.TIMEOUT
    if isinstance(exc, _PARSER_ERRORS):
        return SystemErrorType.PARSER
    if isinstance(exc, MemoryError):
        return SystemErrorType.MEMORY
    if isinstance(exc, (ConnectionError, OSError)) and _looks_like_network(exc):
        return SystemErrorType.NETWORK
    if isinstance(exc, OSError):
        return SystemErrorType.FILE_ACCESS
    if isinstance(exc, AnalyzerContractError):
        return SystemErrorType.ANALYZER
    return default


def _looks_like_network(exc: BaseException) -> bool:
    return isinstance(exc, ConnectionError) or type(exc).__name__ in {"gaierror", "herror"}


__all__ = [
    "AnalyzerContractError",
    "CatalogError",
    "DefectRadarError",
    "MonitorError",
    "ProjectNotFoundError",
    "SystemErrorType",
    "classify_error",
]
