"""Stable constants shared across the engine, analyzers, and monitor."""

from __future__ import annotations

from typing import Final

# Schema versions for configuration and catalog data.
CONFIG_SCHEMA_VERSION: Final[int] = 1
CATALOG_SCHEMA_VERSION: Final[int] = 1

# Engine defaults.
DEFAULT_MAX_FILE_SIZE_BYTES: Final[int] = 1024 * 1024
DEFAULT_ANALYZER_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_CACHE_MAX_AGE_SECONDS: Final[float] = 60.0
DEFAULT_CACHE_MAX_ENTRIES: Final[int] = 1000
DEFAULT_DIAGNOSTIC_LOG_SIZE: Final[int] = 1000
DEFAULT_ENGINE_IGNORE_PATTERNS: Final[tuple[str, ...]] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "coverage",
    ".next",
    ".nuxt",
    "__pycache__",
    ".pytest_cache",
    "venv",
    ".venv",
)

# Monitor defaults.
DEFAULT_DEBOUNCE_MS: Final[int] = 300
DEFAULT_MONITOR_IGNORE_PATTERNS: Final[tuple[str, ...]] = ("node_modules", ".git", "dist", "build")
DEFAULT_HISTORY_LIMIT: Final[int] = 1000
DEFAULT_RECENT_ACTIVITY_LIMIT: Final[int] = 50
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 0.5

# Language inference by file extension.
EXTENSION_TO_LANGUAGE: Final[dict[str, str]] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".md": "markdown",
    ".env": "env",
}

# Dotenv files have no suffix (".env", ".env.local"); they share this pseudo-extension.
ENV_FILE_EXTENSION: Final[str] = ".env"

__all__ = [
    "CATALOG_SCHEMA_VERSION",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_ANALYZER_TIMEOUT_SECONDS",
    "DEFAULT_CACHE_MAX_AGE_SECONDS",
    "DEFAULT_CACHE_MAX_ENTRIES",
    "DEFAULT_DEBOUNCE_MS",
    "DEFAULT_DIAGNOSTIC_LOG_SIZE",
    "DEFAULT_ENGINE_IGNORE_PATTERNS",
    "DEFAULT_HISTORY_LIMIT",
    "DEFAULT_MAX_FILE_SIZE_BYTES",
    "DEFAULT_MONITOR_IGNORE_PATTERNS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_RECENT_ACTIVITY_LIMIT",
    "ENV_FILE_EXTENSION",
    "EXTENSION_TO_LANGUAGE",
]
