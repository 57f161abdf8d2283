"""Configuration analyzer: parse errors, schema checks, and best practices."""

from __future__ import annotations

import json

import pytest

from defect_radar.analyzers.configuration import (
    PARSE_ERROR_MESSAGE,
    ConfigParseError,
    ConfigurationAnalyzer,
    config_kind,
    json_type_name,
    parse_config,
)
from defect_radar.domain.models import Category, FindingType, Severity


@pytest.fixture
def analyzer() -> ConfigurationAnalyzer:
    return ConfigurationAnalyzer()


def _rules(findings: tuple[object, ...]) -> list[str]:
    return sorted(getattr(item, "rule") for item in findings)


def test_config_kind_from_file_name() -> None:
    assert config_kind("package.json") == "json"
    assert config_kind("ci.YML") == "yaml"
    assert config_kind("pyproject.toml") == "toml"
    assert config_kind(".env.local") == "env"
    assert config_kind("README.md") == "unknown"


def test_json_type_names() -> None:
    assert [json_type_name(v) for v in (None, True, 1, 1.5, "s", [], {})] == [
        "null",
        "boolean",
        "number",
        "number",
        "string",
        "array",
        "object",
    ]


def test_parse_error_carries_position() -> None:
    with pytest.raises(ConfigParseError) as excinfo:
        parse_config('{\n  "a": 1\n  "b": 2\n}', "json")

    assert excinfo.value.line == 3


def test_invalid_json_yields_single_parse_finding(analyzer: ConfigurationAnalyzer) -> None:
    result = analyzer.analyze('{"name": "x",}', "/p/package.json", "json")

    assert len(result.errors) == 1
    assert result.warnings == ()
    finding = result.errors[0]
    assert finding.message == PARSE_ERROR_MESSAGE
    assert finding.rule == "invalid_json"
    assert finding.type is FindingType.CONFIGURATION
    assert finding.severity is Severity.MAJOR


def test_leading_byte_order_mark_is_not_a_parse_error(analyzer: ConfigurationAnalyzer) -> None:
    content = "\ufeff" + json.dumps({"name": "app", "version": "1.0.0", "license": "MIT"})

    result = analyzer.analyze(content, "/p/package.json", "json")

    assert "invalid_json" not in _rules(result.errors)
    assert parse_config("\ufeffkey: 1\n", "yaml").data == {"key": 1}


def test_invalid_yaml_uses_generic_parse_rule(analyzer: ConfigurationAnalyzer) -> None:
    result = analyzer.analyze("key: [unclosed\n", "/p/ci.yaml", "yaml")

    assert [finding.rule for finding in result.errors] == ["invalid_config"]


def test_invalid_toml_reports_parser_line(analyzer: ConfigurationAnalyzer) -> None:
    result = analyzer.analyze('[tool]\nname = "x"\nname = \n', "/p/pyproject.toml", "toml")

    assert [finding.rule for finding in result.errors] == ["invalid_config"]
    assert result.errors[0].location.line == 3


def test_package_json_schema_and_practices(analyzer: ConfigurationAnalyzer) -> None:
    content = json.dumps(
        {
            "name": "demo",
            "scripts": [],
            "dependencies": {"request": "^2.0.0", "lodash": "4.17.21"},
        },
        indent=2,
    )

    result = analyzer.analyze(content, "/p/package.json", "json")

    assert _rules(result.errors) == [
        "missing_required_field",
        "no_deprecated_deps",
        "type_mismatch",
    ]
    assert _rules(result.warnings) == [
        "has_engines",
        "has_license",
        "has_repository",
        "no_exact_versions",
    ]
    mismatch = next(f for f in result.errors if f.rule == "type_mismatch")
    assert mismatch.message == 'Field "scripts" has wrong type: expected object, got array'
    assert mismatch.location.line == 3


def test_tsconfig_best_practices(analyzer: ConfigurationAnalyzer) -> None:
    content = json.dumps({"compilerOptions": {"strict": True, "noImplicitAny": False}})

    result = analyzer.analyze(content, "/p/tsconfig.json", "json")

    assert result.errors == ()
    assert _rules(result.warnings) == ["no_implicit_any", "skip_lib_check"]


def test_env_secrets_are_critical_errors(analyzer: ConfigurationAnalyzer) -> None:
    content = "# local settings\nPORT=8080\nDB_PASSWORD=hunter2\n"

    result = analyzer.analyze(content, "/p/.env", "env")

    assert len(result.errors) == 1
    finding = result.errors[0]
    assert finding.rule == "no_secrets_in_env"
    assert finding.location.line == 3
    assert finding.category is Category.HIGH


def test_empty_env_secret_is_not_reported(analyzer: ConfigurationAnalyzer) -> None:
    result = analyzer.analyze("API_KEY=\n", "/p/.env", "env")

    assert result.total == 0
