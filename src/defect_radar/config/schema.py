"""
defect-radar - configuration schema and validation.

File: src/defect_radar/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Profile overlay validation and deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Support the built-in ``strict`` and ``large_repo`` profile overlays plus user-defined ones.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from defect_radar.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_ANALYZER_TIMEOUT_SECONDS,
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_DIAGNOSTIC_LOG_SIZE,
    DEFAULT_ENGINE_IGNORE_PATTERNS,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_FILE_SIZE_BYTES,
    DEFAULT_MONITOR_IGNORE_PATTERNS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_RECENT_ACTIVITY_LIMIT,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "large_repo")
SECTION_NAMES: Final[tuple[str, ...]] = ("engine", "monitor", "observability")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("observability", "log_dir"),)


class MetaConfig(TypedDict):
    schema_version: int


class EngineConfig(TypedDict):
    ignore_patterns: list[str]
    max_file_size_bytes: int
    max_concurrency: int
    analyzer_timeout_seconds: float
    cache_enabled: bool
    cache_max_age_seconds: float
    cache_max_entries: int
    diagnostic_log_size: int


class MonitorConfig(TypedDict):
    debounce_ms: int
    ignore_patterns: list[str]
    notify_on_critical: bool
    auto_rescan: bool
    history_limit: int
    recent_activity_limit: int
    poll_interval_seconds: float


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str
    log_to_stderr: bool
    redact_secrets: bool
    event_buffer_size: int


class ProfileOverlay(TypedDict, total=False):
    engine: dict[str, Any]
    monitor: dict[str, Any]
    observability: dict[str, Any]


class DefectRadarConfig(TypedDict):
    meta: MetaConfig
    engine: EngineConfig
    monitor: MonitorConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[DefectRadarConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "engine": {
        "ignore_patterns": list(DEFAULT_ENGINE_IGNORE_PATTERNS),
        "max_file_size_bytes": DEFAULT_MAX_FILE_SIZE_BYTES,
        "max_concurrency": 0,
        "analyzer_timeout_seconds": DEFAULT_ANALYZER_TIMEOUT_SECONDS,
        "cache_enabled": True,
        "cache_max_age_seconds": DEFAULT_CACHE_MAX_AGE_SECONDS,
        "cache_max_entries": DEFAULT_CACHE_MAX_ENTRIES,
        "diagnostic_log_size": DEFAULT_DIAGNOSTIC_LOG_SIZE,
    },
    "monitor": {
        "debounce_ms": DEFAULT_DEBOUNCE_MS,
        "ignore_patterns": list(DEFAULT_MONITOR_IGNORE_PATTERNS),
        "notify_on_critical": True,
        "auto_rescan": True,
        "history_limit": DEFAULT_HISTORY_LIMIT,
        "recent_activity_limit": DEFAULT_RECENT_ACTIVITY_LIMIT,
        "poll_interval_seconds": DEFAULT_POLL_INTERVAL_SECONDS,
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": "logs/",
        "log_to_stderr": False,
        "redact_secrets": True,
        "event_buffer_size": 512,
    },
    "profiles": {
        "strict": {
            "engine": {"cache_enabled": False, "analyzer_timeout_seconds": 5.0},
            "monitor": {"debounce_ms": 100},
        },
        "large_repo": {
            "engine": {"cache_max_entries": 10000, "max_file_size_bytes": 512 * 1024},
            "monitor": {"debounce_ms": 1000, "poll_interval_seconds": 2.0},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> DefectRadarConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade defect_radar.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the defect-radar runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``; lists are replaced, not merged."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = _deep_copy_mapping(config)
    if profile is None or not profile.strip():
        return materialized
    selected = profile.strip()

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", "profiles section is required"),)
        )
    overlay_raw = profiles_raw.get(selected)
    if overlay_raw is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(materialized, overlay_raw))


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {"meta", *SECTION_NAMES, "profiles"}
    _reject_unknown_keys(payload, allowed, "", issues)
    _require_keys(payload, allowed - {"profiles"}, "", issues)

    out: dict[str, Any] = {}
    meta = payload.get("meta")
    if meta is not None:
        meta_obj = _as_object(meta, "meta", issues)
        if meta_obj is not None:
            out["meta"] = _validate_meta(meta_obj, "meta", issues)

    for section in SECTION_NAMES:
        raw = payload.get(section)
        if raw is None:
            continue
        section_obj = _as_object(raw, section, issues)
        if section_obj is not None:
            out[section] = _validate_section(section, section_obj, section, issues, partial=False)

    profiles = payload.get("profiles")
    if profiles is not None:
        profiles_obj = _as_object(profiles, "profiles", issues)
        if profiles_obj is not None:
            out["profiles"] = _validate_profiles(profiles_obj, "profiles", issues)
    return out


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        version_path = _join(path, "schema_version")
        parsed = _as_int(payload["schema_version"], version_path, issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(version_path, migration_guidance(parsed))
    return out


def _validate_section(
    section: str,
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    if section == "engine":
        return _validate_engine(payload, path, issues, partial=partial)
    if section == "monitor":
        return _validate_monitor(payload, path, issues, partial=partial)
    return _validate_observability(payload, path, issues, partial=partial)


def _validate_engine(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = set(DEFAULT_CONFIG["engine"])
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "ignore_patterns" in payload:
        _store(out, "ignore_patterns", _as_str_list(payload["ignore_patterns"], _join(path, "ignore_patterns"), issues))
    for key, minimum in (
        ("max_file_size_bytes", 1),
        ("max_concurrency", 0),
        ("cache_max_entries", 1),
        ("diagnostic_log_size", 1),
    ):
        if key in payload:
            _store(out, key, _as_int(payload[key], _join(path, key), issues, minimum=minimum))
    if "analyzer_timeout_seconds" in payload:
        _store(
            out,
            "analyzer_timeout_seconds",
            _as_float(
                payload["analyzer_timeout_seconds"],
                _join(path, "analyzer_timeout_seconds"),
                issues,
                minimum=0.001,
            ),
        )
    if "cache_max_age_seconds" in payload:
        _store(
            out,
            "cache_max_age_seconds",
            _as_float(
                payload["cache_max_age_seconds"],
                _join(path, "cache_max_age_seconds"),
                issues,
                minimum=0.0,
            ),
        )
    if "cache_enabled" in payload:
        _store(out, "cache_enabled", _as_bool(payload["cache_enabled"], _join(path, "cache_enabled"), issues))
    return out


def _validate_monitor(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = set(DEFAULT_CONFIG["monitor"])
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "ignore_patterns" in payload:
        _store(out, "ignore_patterns", _as_str_list(payload["ignore_patterns"], _join(path, "ignore_patterns"), issues))
    for key, minimum in (("debounce_ms", 0), ("history_limit", 1), ("recent_activity_limit", 1)):
        if key in payload:
            _store(out, key, _as_int(payload[key], _join(path, key), issues, minimum=minimum))
    for key in ("notify_on_critical", "auto_rescan"):
        if key in payload:
            _store(out, key, _as_bool(payload[key], _join(path, key), issues))
    if "poll_interval_seconds" in payload:
        _store(
            out,
            "poll_interval_seconds",
            _as_float(
                payload["poll_interval_seconds"],
                _join(path, "poll_interval_seconds"),
                issues,
                minimum=0.01,
            ),
        )
    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = set(DEFAULT_CONFIG["observability"])
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        _store(
            out,
            "log_level",
            _as_enum(
                payload["log_level"],
                _join(path, "log_level"),
                issues,
                allowed_values=("DEBUG", "INFO", "WARNING", "ERROR"),
            ),
        )
    if "log_format" in payload:
        _store(
            out,
            "log_format",
            _as_enum(
                payload["log_format"],
                _join(path, "log_format"),
                issues,
                allowed_values=("json", "text"),
            ),
        )
    if "log_dir" in payload:
        _store(out, "log_dir", _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues))
    for key in ("log_to_stderr", "redact_secrets"):
        if key in payload:
            _store(out, key, _as_bool(payload[key], _join(path, key), issues))
    if "event_buffer_size" in payload:
        _store(
            out,
            "event_buffer_size",
            _as_int(payload["event_buffer_size"], _join(path, "event_buffer_size"), issues, minimum=1),
        )
    return out


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        profile_obj = _as_object(payload[profile_name], profile_path, issues)
        if profile_obj is None:
            continue
        _reject_unknown_keys(profile_obj, set(SECTION_NAMES), profile_path, issues)
        overlay: dict[str, Any] = {}
        for section in SECTION_NAMES:
            raw = profile_obj.get(section)
            if raw is None:
                continue
            section_path = _join(profile_path, section)
            section_obj = _as_object(raw, section_path, issues)
            if section_obj is not None:
                overlay[section] = _validate_section(
                    section, section_obj, section_path, issues, partial=True
                )
        out[profile_name] = overlay
    return out


def _store(out: dict[str, Any], key: str, value: object | None) -> None:
    if value is not None:
        out[key] = value


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is not None:
            out.append(parsed)
    return out


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _deep_copy_value(value[key]) for key in sorted(value)}


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "DEFAULT_CONFIG",
    "PATH_FIELDS",
    "SECTION_NAMES",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DefectRadarConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
