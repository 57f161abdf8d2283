"""
defect-radar - configuration file analyzer

File: src/defect_radar/analyzers/configuration.py

Purpose
- Validate JSON, YAML, TOML, and dotenv files: parseability, well-known schemas, best practices.

Functional requirements
- A parse failure yields exactly one "Configuration file parse error" finding and stops analysis
  of that file; the parser's line and column are used when available.
- Schema checks (missing required field, wrong field type) apply to package.json, tsconfig.json,
  and .eslintrc.json and are always errors.
- Best-practice violations at or below the catalog's configuration threshold are warnings.
"""

from __future__ import annotations

import json
import re
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

import yaml

from defect_radar.analyzers.base import FindingBuilder, LineIndex
from defect_radar.domain.models import (
    AnalyzerResult,
    Category,
    Finding,
    FindingType,
    Severity,
    category_for,
)
from defect_radar.knowledge.catalog import ConfigSchema, PatternCatalog, default_catalog

PARSE_ERROR_MESSAGE: Final[str] = "Configuration file parse error"
ENV_PRACTICES_KEY: Final[str] = ".env"

_EXACT_VERSION_RE: Final[re.Pattern[str]] = re.compile(r"^\d+\.\d+\.\d+$")
_TOML_POSITION_RE: Final[re.Pattern[str]] = re.compile(r"at line (\d+), column (\d+)")
_BOM: Final[str] = "\ufeff"


@dataclass(frozen=True, slots=True)
class ParsedConfig:
    kind: str
    data: object
    env_lines: Mapping[str, int]


class ConfigParseError(ValueError):
    """Raised by ``parse_config`` with the parser's 1-based position when known."""

    def __init__(self, message: str, *, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


def config_kind(file_name: str) -> str:
    lowered = file_name.lower()
    if lowered.endswith(".json"):
        return "json"
    if lowered.endswith((".yaml", ".yml")):
        return "yaml"
    if lowered.endswith(".toml"):
        return "toml"
    if lowered.startswith(".env"):
        return "env"
    return "unknown"


def parse_config(content: str, kind: str) -> ParsedConfig:
    """Parse ``content`` as ``kind``; raise ``ConfigParseError`` on malformed input."""

    content = content.removeprefix(_BOM)
    if kind == "json":
        try:
            return ParsedConfig(kind, json.loads(content), {})
        except json.JSONDecodeError as exc:
            raise ConfigParseError(exc.msg, line=exc.lineno, column=exc.colno) from exc
    if kind == "yaml":
        try:
            return ParsedConfig(kind, yaml.safe_load(content), {})
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            if mark is None:
                raise ConfigParseError(str(exc)) from exc
            raise ConfigParseError(str(exc), line=mark.line + 1, column=mark.column + 1) from exc
    if kind == "toml":
        try:
            return ParsedConfig(kind, tomllib.loads(content), {})
        except tomllib.TOMLDecodeError as exc:
            line = getattr(exc, "lineno", None)
            column = getattr(exc, "colno", None)
            if line is None:
                position = _TOML_POSITION_RE.search(str(exc))
                if position is not None:
                    line, column = int(position.group(1)), int(position.group(2))
            raise ConfigParseError(str(exc), line=line, column=column) from exc
    if kind == "env":
        values, lines = _parse_env(content)
        return ParsedConfig(kind, values, lines)
    return ParsedConfig(kind, content, {})


def _parse_env(content: str) -> tuple[dict[str, str], dict[str, int]]:
    values: dict[str, str] = {}
    lines: dict[str, int] = {}
    for number, raw in enumerate(content.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, sep, value = stripped.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        values[key] = value.strip()
        lines.setdefault(key, number)
    return values, lines


def json_type_name(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _dependencies(config: Mapping[str, object]) -> dict[str, object]:
    merged: dict[str, object] = {}
    for section in ("dependencies", "devDependencies"):
        value = config.get(section)
        if isinstance(value, Mapping):
            merged.update(value)
    return merged


def _compiler_options(config: Mapping[str, object]) -> Mapping[str, object]:
    value = config.get("compilerOptions")
    return value if isinstance(value, Mapping) else {}


_ConfigCheck = Callable[[Mapping[str, object], PatternCatalog], bool]

# Each predicate returns True when the configuration follows the practice.
_PRACTICE_CHECKS: Final[dict[str, _ConfigCheck]] = {
    "has_license": lambda config, _: bool(config.get("license")),
    "has_repository": lambda config, _: bool(config.get("repository")),
    "has_engines": lambda config, _: bool(config.get("engines")),
    "no_exact_versions": lambda config, _: not any(
        isinstance(version, str) and _EXACT_VERSION_RE.match(version)
        for version in _dependencies(config).values()
    ),
    "no_deprecated_deps": lambda config, catalog: not (
        set(_dependencies(config)) & catalog.deprecated_dependencies
    ),
    "strict_mode": lambda config, _: _compiler_options(config).get("strict") is True,
    "no_implicit_any": lambda config, _: _compiler_options(config).get("noImplicitAny") is not False,
    "skip_lib_check": lambda config, _: _compiler_options(config).get("skipLibCheck") is True,
}


class ConfigurationAnalyzer:
    name = "configuration"

    def __init__(self, catalog: PatternCatalog | None = None) -> None:
        self._catalog = catalog if catalog is not None else default_catalog()

    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".json", ".yaml", ".yml", ".toml", ".env"})

    def finding_categories(self) -> frozenset[Category]:
        categories = {category_for(FindingType.CONFIGURATION, Severity.MAJOR)}
        for practices in self._catalog.best_practices.values():
            categories.update(
                category_for(FindingType.CONFIGURATION, practice.severity)
                for practice in practices.values()
            )
        return frozenset(categories)

    def analyze(self, content: str, path: str, language: str | None) -> AnalyzerResult:
        file_name = PurePosixPath(path.replace("\\", "/")).name
        kind = config_kind(file_name)
        builder = FindingBuilder(self._catalog, path, LineIndex(content))

        try:
            parsed = parse_config(content, kind)
        except ConfigParseError as exc:
            rule = "invalid_json" if kind == "json" else "invalid_config"
            finding = builder.build(
                finding_type=FindingType.CONFIGURATION,
                severity=Severity.MAJOR,
                message=PARSE_ERROR_MESSAGE,
                rule=rule,
                line=exc.line,
                column=exc.column,
                description=f"Failed to parse configuration: {exc}",
            )
            return AnalyzerResult(errors=(finding,))

        errors: list[Finding] = []
        warnings: list[Finding] = []
        schema = self._catalog.config_schemas.get(file_name)
        if schema is not None and isinstance(parsed.data, Mapping):
            errors.extend(self._schema_findings(parsed.data, schema, content, builder))

        for finding in self._practice_findings(parsed, file_name, builder):
            if finding.severity.at_or_below(self._catalog.config_warning_threshold):
                warnings.append(finding)
            else:
                errors.append(finding)
        return AnalyzerResult(errors=tuple(errors), warnings=tuple(warnings))

    def _schema_findings(
        self,
        config: Mapping[str, object],
        schema: ConfigSchema,
        content: str,
        builder: FindingBuilder,
    ) -> list[Finding]:
        findings: list[Finding] = []
        for field_name in schema.required:
            if field_name not in config:
                message = f"Missing required field: {field_name}"
                findings.append(
                    builder.build(
                        finding_type=FindingType.CONFIGURATION,
                        severity=Severity.MAJOR,
                        message=message,
                        rule="missing_required_field",
                        context=field_name,
                        description=f"Schema validation failed: {message}",
                    )
                )
        for field_name, allowed in schema.types.items():
            if field_name not in config:
                continue
            actual = json_type_name(config[field_name])
            if actual in allowed:
                continue
            message = (
                f'Field "{field_name}" has wrong type: expected {" or ".join(allowed)}, got {actual}'
            )
            findings.append(
                builder.build(
                    finding_type=FindingType.CONFIGURATION,
                    severity=Severity.MAJOR,
                    message=message,
                    rule="type_mismatch",
                    offset=_locate_key(content, field_name),
                    description=f"Schema validation failed: {message}",
                )
            )
        return findings

    def _practice_findings(
        self, parsed: ParsedConfig, file_name: str, builder: FindingBuilder
    ) -> list[Finding]:
        practices_key = ENV_PRACTICES_KEY if parsed.kind == "env" else file_name
        practices = self._catalog.config_practices_for(practices_key)
        if not practices or not isinstance(parsed.data, Mapping):
            return []

        findings: list[Finding] = []
        for name, practice in practices.items():
            line: int | None = None
            if name == "no_secrets_in_env":
                line = self._first_secret_line(parsed.data, parsed.env_lines)
                violated = line is not None
            else:
                check = _PRACTICE_CHECKS.get(name)
                if check is None:
                    continue
                violated = not check(parsed.data, self._catalog)
            if not violated:
                continue
            findings.append(
                builder.build(
                    finding_type=FindingType.CONFIGURATION,
                    severity=practice.severity,
                    message=practice.message,
                    rule=name,
                    line=line,
                    description=f"Best practice violation: {practice.message}",
                    default_causes=self._catalog.causes_for("best_practice"),
                )
            )
        return findings

    def _first_secret_line(
        self, values: Mapping[str, object], env_lines: Mapping[str, int]
    ) -> int | None:
        hits = [
            env_lines.get(key, 1)
            for key, value in values.items()
            if value and any(term in key.lower() for term in self._catalog.secret_key_terms)
        ]
        return min(hits) if hits else None


def _locate_key(content: str, field_name: str) -> int | None:
    index = content.find(f'"{field_name}"')
    return None if index == -1 else index


__all__ = [
    "PARSE_ERROR_MESSAGE",
    "ConfigParseError",
    "ConfigurationAnalyzer",
    "ParsedConfig",
    "config_kind",
    "json_type_name",
    "parse_config",
]
