"""
defect-radar - immutable pattern catalog.

File: src/defect_radar/knowledge/catalog.py

Purpose
- Load and expose the package-shipped pattern catalog used by analyzers and the resolution engine.

What should be included in this file
- File-backed loader for rule groups, resolution templates, keyword table, validation checklists,
  causes, code examples, configuration schemas, best-practice metadata, reader guidance, and
  prevention strategies.
- Deterministic lookup helpers keyed by rule name, language, and finding type.

Functional requirements
- Rule groups split findings into errors and warnings by a per-group threshold.
- Language inheritance is resolved at load time (``typescript`` receives ``javascript`` rules).
- Malformed catalog data raises ``CatalogError`` naming the offending path.

Non-functional requirements
- Immutable after construction; safe to share across engines, analyzers, and threads.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Final

import yaml

from defect_radar.constants import CATALOG_SCHEMA_VERSION
from defect_radar.domain.models import (
    Category,
    CodeExample,
    Difficulty,
    FindingType,
    JSONValue,
    Resolution,
    ResolutionStep,
    Severity,
    ValidationStep,
)
from defect_radar.errors import CatalogError

THRESHOLD_ALWAYS: Final[str] = "always"
THRESHOLD_NEVER: Final[str] = "never"
_JSON_TYPE_NAMES: Final[frozenset[str]] = frozenset(
    {"string", "number", "boolean", "object", "array", "null"}
)


def _fail(path: str, message: str) -> CatalogError:
    return CatalogError(f"{path}: {message}")


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise _fail(path, f"expected string, got {type(value).__name__}")
    parsed = value.strip()
    if not parsed:
        raise _fail(path, "must not be empty")
    return parsed


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    return _as_str(value, path)


def _as_int(value: object, path: str, *, minimum: int = 0, maximum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _fail(path, f"expected integer, got {type(value).__name__}")
    if value < minimum:
        raise _fail(path, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise _fail(path, f"must be <= {maximum}")
    return value


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise _fail(path, f"expected mapping, got {type(value).__name__}")
    for key in value:
        if not isinstance(key, str):
            raise _fail(path, "mapping keys must be strings")
    return value


def _as_sequence(value: object, path: str) -> Sequence[object]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return value
    raise _fail(path, f"expected list, got {type(value).__name__}")


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(
        _as_str(item, f"{path}[{index}]") for index, item in enumerate(_as_sequence(value, path))
    )


def _as_severity(value: object, path: str) -> Severity:
    try:
        return Severity(_as_str(value, path))
    except ValueError as exc:
        raise _fail(path, f"unknown severity {value!r}") from exc


def _as_finding_type(value: object, path: str) -> FindingType:
    try:
        return FindingType(_as_str(value, path))
    except ValueError as exc:
        raise _fail(path, f"unknown finding type {value!r}") from exc


@dataclass(frozen=True, slots=True)
class PatternRule:
    """One regex rule; ``finding_type`` overrides the owning group's type when set."""

    name: str
    pattern: re.Pattern[str]
    message: str
    severity: Severity
    description: str = ""
    finding_type: FindingType | None = None


@dataclass(frozen=True, slots=True)
class RuleGroup:
    name: str
    finding_type: FindingType
    warning_threshold: Severity | str
    default_causes: tuple[str, ...]
    rules_by_language: Mapping[str, tuple[PatternRule, ...]]

    def rules_for(self, language: str | None) -> tuple[PatternRule, ...]:
        if language is None:
            return ()
        return self.rules_by_language.get(language, ())

    def type_for(self, rule: PatternRule) -> FindingType:
        return rule.finding_type or self.finding_type

    def is_warning(self, severity: Severity) -> bool:
        """Return whether a finding of ``severity`` lands in the warnings bucket."""
        if isinstance(self.warning_threshold, Severity):
            return severity.at_or_below(self.warning_threshold)
        return self.warning_threshold == THRESHOLD_ALWAYS


@dataclass(frozen=True, slots=True)
class ResolutionTemplate:
    key: str
    title: str
    description: str
    steps: tuple[tuple[str, str | None], ...]
    difficulty: Difficulty
    estimated_time_minutes: int | None
    effectiveness: int | None
    requirements: tuple[str, ...]

    def instantiate(self, resolution_id: str | None = None) -> Resolution:
        return Resolution(
            id=resolution_id or f"res_{self.key}",
            title=self.title,
            description=self.description,
            steps=tuple(
                ResolutionStep(order=index, description=text, command=command)
                for index, (text, command) in enumerate(self.steps, start=1)
            ),
            difficulty=self.difficulty,
            estimated_time_minutes=self.estimated_time_minutes,
            effectiveness=self.effectiveness,
            requirements=self.requirements,
        )


@dataclass(frozen=True, slots=True)
class ConfigSchema:
    """Required fields and allowed JSON type names for one well-known config file."""

    required: tuple[str, ...]
    types: Mapping[str, tuple[str, ...]]


@dataclass(frozen=True, slots=True)
class BestPractice:
    name: str
    message: str
    severity: Severity


def _empty_mapping() -> Mapping[object, object]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class TypeDescription:
    title: str
    description: str
    common_causes: tuple[str, ...]


UNKNOWN_TYPE: Final[TypeDescription] = TypeDescription(
    title="Unknown Error",
    description="An unknown error occurred.",
    common_causes=("Unknown cause",),
)


@dataclass(frozen=True, slots=True)
class DiagnosticStep:
    order: int
    action: str
    question: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"order": self.order, "action": self.action, "question": self.question}


@dataclass(frozen=True, slots=True)
class RelatedPattern:
    pattern: str
    description: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"pattern": self.pattern, "description": self.description}


@dataclass(frozen=True, slots=True)
class Guidance:
    """Reader-facing tables behind finding explanations; every table may be empty."""

    type_descriptions: Mapping[FindingType, TypeDescription] = field(default_factory=_empty_mapping)
    unknown_type: TypeDescription = UNKNOWN_TYPE
    impact: Mapping[Severity, str] = field(default_factory=_empty_mapping)
    security_urgency: str | None = None
    urgency: Mapping[Category, str] = field(default_factory=_empty_mapping)
    diagnostic_steps: Mapping[str, tuple[DiagnosticStep, ...]] = field(default_factory=_empty_mapping)
    diagnostic_fallbacks: Mapping[FindingType, str] = field(default_factory=_empty_mapping)
    diagnostic_default: str | None = None
    related_patterns: Mapping[FindingType, tuple[RelatedPattern, ...]] = field(
        default_factory=_empty_mapping
    )

    def __post_init__(self) -> None:
        for finding_type, key in self.diagnostic_fallbacks.items():
            if key not in self.diagnostic_steps:
                raise _fail(f"guidance.diagnostic_fallbacks.{finding_type}", f"unknown steps {key!r}")
        if self.diagnostic_default is not None and self.diagnostic_default not in self.diagnostic_steps:
            raise _fail("guidance.diagnostic_default", f"unknown steps {self.diagnostic_default!r}")

    def describe(self, finding_type: FindingType) -> TypeDescription:
        return self.type_descriptions.get(finding_type, self.unknown_type)

    def diagnostic_steps_for(
        self, pattern_key: str | None, finding_type: FindingType
    ) -> tuple[DiagnosticStep, ...]:
        """Steps for ``pattern_key``, else the finding type's fallback, else the default list."""
        if pattern_key is not None and pattern_key in self.diagnostic_steps:
            return self.diagnostic_steps[pattern_key]
        key = self.diagnostic_fallbacks.get(finding_type, self.diagnostic_default)
        if key is None:
            return ()
        return self.diagnostic_steps[key]

    def related_for(self, finding_type: FindingType) -> tuple[RelatedPattern, ...]:
        return self.related_patterns.get(finding_type, ())


@dataclass(frozen=True, slots=True)
class PreventionStrategy:
    id: str
    title: str
    description: str
    tools: tuple[str, ...]
    steps: tuple[str, ...]
    tradeoffs: str
    config_example: str | None
    benefits: tuple[str, ...]

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tools": list(self.tools),
            "steps": list(self.steps),
            "tradeoffs": self.tradeoffs,
            "config_example": self.config_example,
            "benefits": list(self.benefits),
        }


@dataclass(frozen=True, slots=True)
class PatternCatalog:
    """Immutable lookup service over rule tables and remediation knowledge."""

    schema_version: int
    rule_groups: Mapping[str, RuleGroup]
    templates: Mapping[str, ResolutionTemplate]
    keyword_table: tuple[tuple[str, str], ...]
    generic_resolutions: Mapping[FindingType, tuple[Resolution, ...]]
    validation_checklists: Mapping[str, tuple[ValidationStep, ...]]
    validation_aliases: Mapping[str, str]
    validation_default: str
    validation_closing: tuple[ValidationStep, ...]
    causes: Mapping[str, tuple[str, ...]]
    examples: Mapping[str, tuple[CodeExample, ...]]
    config_warning_threshold: Severity
    config_schemas: Mapping[str, ConfigSchema]
    best_practices: Mapping[str, Mapping[str, BestPractice]]
    deprecated_dependencies: frozenset[str]
    secret_key_terms: tuple[str, ...]
    guidance: Guidance = field(default_factory=Guidance)
    prevention: Mapping[FindingType, tuple[PreventionStrategy, ...]] = field(
        default_factory=_empty_mapping
    )
    _keyword_lower: tuple[tuple[str, str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for keyword, key in self.keyword_table:
            if key not in self.templates:
                raise _fail("keyword_table", f"keyword {keyword!r} maps to unknown template {key!r}")
        object.__setattr__(
            self,
            "_keyword_lower",
            tuple((keyword.lower(), key) for keyword, key in self.keyword_table),
        )
        if self.validation_default not in self.validation_checklists:
            raise _fail("validation.default", f"unknown checklist {self.validation_default!r}")

    # ---------------------------------------------------------------- loading

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> PatternCatalog:
        version = _as_int(payload.get("schema_version"), "schema_version", minimum=1)
        if version != CATALOG_SCHEMA_VERSION:
            raise _fail(
                "schema_version",
                f"unsupported catalog schema {version}; expected {CATALOG_SCHEMA_VERSION}",
            )

        extends_raw = _as_mapping(payload.get("language_extends", {}), "language_extends")
        extends = {
            language: _as_str_tuple(parents, f"language_extends.{language}")
            for language, parents in extends_raw.items()
        }

        groups_raw = _as_mapping(payload.get("rule_groups"), "rule_groups")
        groups = {
            name: _parse_group(name, raw, extends, f"rule_groups.{name}")
            for name, raw in groups_raw.items()
        }

        templates_raw = _as_mapping(payload.get("resolution_templates"), "resolution_templates")
        templates = {
            key: _parse_template(key, raw, f"resolution_templates.{key}")
            for key, raw in templates_raw.items()
        }

        keyword_table: list[tuple[str, str]] = []
        for index, item in enumerate(_as_sequence(payload.get("keyword_table", ()), "keyword_table")):
            pair = _as_sequence(item, f"keyword_table[{index}]")
            if len(pair) != 2:
                raise _fail(f"keyword_table[{index}]", "expected [keyword, template_key]")
            keyword_table.append(
                (
                    _as_str(pair[0], f"keyword_table[{index}][0]"),
                    _as_str(pair[1], f"keyword_table[{index}][1]"),
                )
            )

        generic_raw = _as_mapping(payload.get("generic_resolutions", {}), "generic_resolutions")
        generic: dict[FindingType, tuple[Resolution, ...]] = {}
        for type_name, entries in generic_raw.items():
            path = f"generic_resolutions.{type_name}"
            finding_type = _as_finding_type(type_name, path)
            parsed: list[Resolution] = []
            for index, entry in enumerate(_as_sequence(entries, path)):
                entry_map = _as_mapping(entry, f"{path}[{index}]")
                resolution_id = _as_str(entry_map.get("id"), f"{path}[{index}].id")
                template = _parse_template(resolution_id, entry_map, f"{path}[{index}]")
                parsed.append(template.instantiate(resolution_id))
            generic[finding_type] = tuple(parsed)

        validation = _as_mapping(payload.get("validation"), "validation")
        checklists_raw = _as_mapping(validation.get("checklists"), "validation.checklists")
        checklists = {
            name: _parse_validation_steps(raw, f"validation.checklists.{name}")
            for name, raw in checklists_raw.items()
        }
        aliases_raw = _as_mapping(validation.get("aliases", {}), "validation.aliases")
        aliases = {
            name: _as_str(target, f"validation.aliases.{name}") for name, target in aliases_raw.items()
        }
        for name, target in aliases.items():
            if target not in checklists:
                raise _fail(f"validation.aliases.{name}", f"unknown checklist {target!r}")

        causes_raw = _as_mapping(payload.get("causes", {}), "causes")
        causes = {key: _as_str_tuple(raw, f"causes.{key}") for key, raw in causes_raw.items()}

        examples_raw = _as_mapping(payload.get("examples", {}), "examples")
        examples = {
            key: _parse_examples(raw, f"examples.{key}") for key, raw in examples_raw.items()
        }

        configuration = _as_mapping(payload.get("configuration"), "configuration")
        schemas_raw = _as_mapping(configuration.get("schemas", {}), "configuration.schemas")
        schemas = {
            name: _parse_schema(raw, f"configuration.schemas.{name}")
            for name, raw in schemas_raw.items()
        }
        practices_raw = _as_mapping(
            configuration.get("best_practices", {}), "configuration.best_practices"
        )
        practices: dict[str, Mapping[str, BestPractice]] = {}
        for file_name, raw in practices_raw.items():
            path = f"configuration.best_practices.{file_name}"
            entries = _as_mapping(raw, path)
            practices[file_name] = MappingProxyType(
                {
                    name: _parse_practice(name, item, f"{path}.{name}")
                    for name, item in entries.items()
                }
            )

        return cls(
            schema_version=version,
            rule_groups=MappingProxyType(groups),
            templates=MappingProxyType(templates),
            keyword_table=tuple(keyword_table),
            generic_resolutions=MappingProxyType(generic),
            validation_checklists=MappingProxyType(checklists),
            validation_aliases=MappingProxyType(aliases),
            validation_default=_as_str(validation.get("default"), "validation.default"),
            validation_closing=_parse_validation_steps(
                validation.get("closing", ()), "validation.closing"
            ),
            causes=MappingProxyType(causes),
            examples=MappingProxyType(examples),
            config_warning_threshold=_as_severity(
                configuration.get("warning_threshold", "minor"), "configuration.warning_threshold"
            ),
            config_schemas=MappingProxyType(schemas),
            best_practices=MappingProxyType(practices),
            deprecated_dependencies=frozenset(
                _as_str_tuple(
                    configuration.get("deprecated_dependencies"),
                    "configuration.deprecated_dependencies",
                )
            ),
            secret_key_terms=tuple(
                term.lower()
                for term in _as_str_tuple(
                    configuration.get("secret_key_terms"), "configuration.secret_key_terms"
                )
            ),
            guidance=_parse_guidance(payload.get("guidance", {}), "guidance"),
            prevention=_parse_prevention(payload.get("prevention", {}), "prevention"),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> PatternCatalog:
        candidate = Path(path).expanduser().resolve()
        try:
            payload = yaml.safe_load(candidate.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise CatalogError(f"invalid catalog YAML in {candidate}: {exc}") from exc
        except OSError as exc:
            raise CatalogError(f"unable to read catalog file {candidate}: {exc}") from exc
        return cls.from_mapping(_as_mapping(payload, "catalog"))

    # ---------------------------------------------------------------- lookups

    def group(self, name: str) -> RuleGroup:
        try:
            return self.rule_groups[name]
        except KeyError:
            raise KeyError(f"unknown rule group {name!r}") from None

    def has_template(self, key: str | None) -> bool:
        return key is not None and key in self.templates

    def resolution_for(self, key: str | None) -> Resolution | None:
        if key is None:
            return None
        template = self.templates.get(key)
        return None if template is None else template.instantiate()

    def match_keyword(self, message: str) -> str | None:
        """Return the template key of the first keyword contained in ``message``."""
        lowered = message.lower()
        for keyword, key in self._keyword_lower:
            if keyword in lowered:
                return key
        return None

    def generic_resolutions_for(self, finding_type: FindingType) -> tuple[Resolution, ...]:
        return self.generic_resolutions.get(finding_type, ())

    def validation_checklist(self, finding_type: FindingType | str) -> tuple[ValidationStep, ...]:
        name = str(finding_type)
        name = self.validation_aliases.get(name, name)
        if name not in self.validation_checklists:
            name = self.validation_default
        return self.validation_checklists[name]

    def causes_for(self, key: str | None, default: Sequence[str] = ("Unknown cause",)) -> tuple[str, ...]:
        if key is not None and key in self.causes:
            return self.causes[key]
        return tuple(default)

    def examples_for(self, key: str | None) -> tuple[CodeExample, ...]:
        if key is None:
            return ()
        return self.examples.get(key, ())

    def config_practices_for(self, file_name: str) -> Mapping[str, BestPractice]:
        return self.best_practices.get(file_name, MappingProxyType({}))

    def prevention_for(self, finding_type: FindingType) -> tuple[PreventionStrategy, ...]:
        return self.prevention.get(finding_type, ())

    def prevention_strategy(self, strategy_id: str) -> PreventionStrategy | None:
        for strategies in self.prevention.values():
            for strategy in strategies:
                if strategy.id == strategy_id:
                    return strategy
        return None

    def languages(self) -> frozenset[str]:
        found: set[str] = set()
        for group in self.rule_groups.values():
            found.update(group.rules_by_language)
        return frozenset(found)


def _parse_group(
    name: str,
    raw: object,
    extends: Mapping[str, tuple[str, ...]],
    path: str,
) -> RuleGroup:
    group = _as_mapping(raw, path)
    finding_type = _as_finding_type(group.get("type"), f"{path}.type")
    threshold_raw = _as_str(group.get("warning_threshold"), f"{path}.warning_threshold")
    threshold: Severity | str
    if threshold_raw in (THRESHOLD_ALWAYS, THRESHOLD_NEVER):
        threshold = threshold_raw
    else:
        threshold = _as_severity(threshold_raw, f"{path}.warning_threshold")

    languages_raw = _as_mapping(group.get("languages"), f"{path}.languages")
    own: dict[str, tuple[PatternRule, ...]] = {}
    for language, rules_raw in languages_raw.items():
        lang_path = f"{path}.languages.{language}"
        own[language] = tuple(
            _parse_rule(item, f"{lang_path}[{index}]")
            for index, item in enumerate(_as_sequence(rules_raw, lang_path))
        )

    resolved: dict[str, tuple[PatternRule, ...]] = dict(own)
    for language, parents in extends.items():
        merged = list(own.get(language, ()))
        seen = {rule.name for rule in merged}
        for parent in parents:
            for rule in own.get(parent, ()):
                if rule.name not in seen:
                    merged.append(rule)
                    seen.add(rule.name)
        if merged:
            resolved[language] = tuple(merged)

    return RuleGroup(
        name=name,
        finding_type=finding_type,
        warning_threshold=threshold,
        default_causes=_as_str_tuple(group.get("default_causes"), f"{path}.default_causes"),
        rules_by_language=MappingProxyType(resolved),
    )


def _parse_rule(raw: object, path: str) -> PatternRule:
    rule = _as_mapping(raw, path)
    source = _as_str(rule.get("pattern"), f"{path}.pattern")
    try:
        compiled = re.compile(source, re.MULTILINE)
    except re.error as exc:
        raise _fail(f"{path}.pattern", f"invalid regular expression: {exc}") from exc
    type_raw = rule.get("type")
    return PatternRule(
        name=_as_str(rule.get("name"), f"{path}.name"),
        pattern=compiled,
        message=_as_str(rule.get("message"), f"{path}.message"),
        severity=_as_severity(rule.get("severity"), f"{path}.severity"),
        description=_as_optional_str(rule.get("description"), f"{path}.description") or "",
        finding_type=None if type_raw is None else _as_finding_type(type_raw, f"{path}.type"),
    )


def _parse_template(key: str, raw: object, path: str) -> ResolutionTemplate:
    template = _as_mapping(raw, path)
    try:
        difficulty = Difficulty(_as_str(template.get("difficulty", "medium"), f"{path}.difficulty"))
    except ValueError as exc:
        raise _fail(f"{path}.difficulty", "expected easy, medium, or hard") from exc
    steps: list[tuple[str, str | None]] = []
    for index, item in enumerate(_as_sequence(template.get("steps", ()), f"{path}.steps")):
        step = _as_mapping(item, f"{path}.steps[{index}]")
        steps.append(
            (
                _as_str(step.get("description"), f"{path}.steps[{index}].description"),
                _as_optional_str(step.get("command"), f"{path}.steps[{index}].command"),
            )
        )
    minutes = template.get("estimated_time_minutes")
    effectiveness = template.get("effectiveness")
    return ResolutionTemplate(
        key=key,
        title=_as_str(template.get("title"), f"{path}.title"),
        description=_as_optional_str(template.get("description"), f"{path}.description") or "",
        steps=tuple(steps),
        difficulty=difficulty,
        estimated_time_minutes=(
            None if minutes is None else _as_int(minutes, f"{path}.estimated_time_minutes")
        ),
        effectiveness=(
            None
            if effectiveness is None
            else _as_int(effectiveness, f"{path}.effectiveness", maximum=100)
        ),
        requirements=_as_str_tuple(template.get("requirements"), f"{path}.requirements"),
    )


def _parse_validation_steps(raw: object, path: str) -> tuple[ValidationStep, ...]:
    steps: list[ValidationStep] = []
    for index, item in enumerate(_as_sequence(raw, path)):
        step = _as_mapping(item, f"{path}[{index}]")
        steps.append(
            ValidationStep(
                description=_as_str(step.get("description"), f"{path}[{index}].description"),
                command=_as_optional_str(step.get("command"), f"{path}[{index}].command"),
            )
        )
    return tuple(steps)


def _parse_examples(raw: object, path: str) -> tuple[CodeExample, ...]:
    examples: list[CodeExample] = []
    for index, item in enumerate(_as_sequence(raw, path)):
        example = _as_mapping(item, f"{path}[{index}]")
        examples.append(
            CodeExample(
                incorrect=_as_str(example.get("incorrect"), f"{path}[{index}].incorrect"),
                correct=_as_str(example.get("correct"), f"{path}[{index}].correct"),
                explanation=_as_optional_str(example.get("explanation"), f"{path}[{index}].explanation")
                or "",
            )
        )
    return tuple(examples)


def _parse_schema(raw: object, path: str) -> ConfigSchema:
    schema = _as_mapping(raw, path)
    types_raw = _as_mapping(schema.get("types", {}), f"{path}.types")
    types: dict[str, tuple[str, ...]] = {}
    for field_name, allowed_raw in types_raw.items():
        allowed = _as_str_tuple(allowed_raw, f"{path}.types.{field_name}")
        unknown = sorted(set(allowed) - _JSON_TYPE_NAMES)
        if unknown or not allowed:
            raise _fail(f"{path}.types.{field_name}", f"invalid type names {unknown or allowed}")
        types[field_name] = allowed
    return ConfigSchema(
        required=_as_str_tuple(schema.get("required"), f"{path}.required"),
        types=MappingProxyType(types),
    )


def _parse_practice(name: str, raw: object, path: str) -> BestPractice:
    practice = _as_mapping(raw, path)
    return BestPractice(
        name=name,
        message=_as_str(practice.get("message"), f"{path}.message"),
        severity=_as_severity(practice.get("severity"), f"{path}.severity"),
    )


def _parse_type_description(raw: object, path: str) -> TypeDescription:
    entry = _as_mapping(raw, path)
    return TypeDescription(
        title=_as_str(entry.get("title"), f"{path}.title"),
        description=_as_str(entry.get("description"), f"{path}.description"),
        common_causes=_as_str_tuple(entry.get("common_causes"), f"{path}.common_causes"),
    )


def _parse_guidance(raw: object, path: str) -> Guidance:
    guidance = _as_mapping(raw, path)

    descriptions_raw = _as_mapping(guidance.get("type_descriptions", {}), f"{path}.type_descriptions")
    descriptions = {
        _as_finding_type(name, f"{path}.type_descriptions.{name}"): _parse_type_description(
            entry, f"{path}.type_descriptions.{name}"
        )
        for name, entry in descriptions_raw.items()
    }
    unknown_raw = guidance.get("unknown_type")
    unknown = (
        UNKNOWN_TYPE
        if unknown_raw is None
        else _parse_type_description(unknown_raw, f"{path}.unknown_type")
    )

    impact_raw = _as_mapping(guidance.get("impact", {}), f"{path}.impact")
    impact = {
        _as_severity(name, f"{path}.impact.{name}"): _as_str(text, f"{path}.impact.{name}")
        for name, text in impact_raw.items()
    }

    urgency_raw = _as_mapping(guidance.get("urgency", {}), f"{path}.urgency")
    categories_raw = _as_mapping(urgency_raw.get("categories", {}), f"{path}.urgency.categories")
    urgency: dict[Category, str] = {}
    for name, text in categories_raw.items():
        entry_path = f"{path}.urgency.categories.{name}"
        try:
            category = Category(name)
        except ValueError as exc:
            raise _fail(entry_path, f"unknown category {name!r}") from exc
        urgency[category] = _as_str(text, entry_path)

    steps_raw = _as_mapping(guidance.get("diagnostic_steps", {}), f"{path}.diagnostic_steps")
    steps: dict[str, tuple[DiagnosticStep, ...]] = {}
    for key, entries in steps_raw.items():
        steps_path = f"{path}.diagnostic_steps.{key}"
        parsed: list[DiagnosticStep] = []
        for index, item in enumerate(_as_sequence(entries, steps_path)):
            step = _as_mapping(item, f"{steps_path}[{index}]")
            parsed.append(
                DiagnosticStep(
                    order=index + 1,
                    action=_as_str(step.get("action"), f"{steps_path}[{index}].action"),
                    question=_as_str(step.get("question"), f"{steps_path}[{index}].question"),
                )
            )
        steps[key] = tuple(parsed)

    fallbacks_raw = _as_mapping(
        guidance.get("diagnostic_fallbacks", {}), f"{path}.diagnostic_fallbacks"
    )
    fallbacks = {
        _as_finding_type(name, f"{path}.diagnostic_fallbacks.{name}"): _as_str(
            key, f"{path}.diagnostic_fallbacks.{name}"
        )
        for name, key in fallbacks_raw.items()
    }

    related_raw = _as_mapping(guidance.get("related_patterns", {}), f"{path}.related_patterns")
    related: dict[FindingType, tuple[RelatedPattern, ...]] = {}
    for name, entries in related_raw.items():
        related_path = f"{path}.related_patterns.{name}"
        items: list[RelatedPattern] = []
        for index, item in enumerate(_as_sequence(entries, related_path)):
            entry = _as_mapping(item, f"{related_path}[{index}]")
            items.append(
                RelatedPattern(
                    pattern=_as_str(entry.get("pattern"), f"{related_path}[{index}].pattern"),
                    description=_as_str(
                        entry.get("description"), f"{related_path}[{index}].description"
                    ),
                )
            )
        related[_as_finding_type(name, related_path)] = tuple(items)

    return Guidance(
        type_descriptions=MappingProxyType(descriptions),
        unknown_type=unknown,
        impact=MappingProxyType(impact),
        security_urgency=_as_optional_str(urgency_raw.get("security"), f"{path}.urgency.security"),
        urgency=MappingProxyType(urgency),
        diagnostic_steps=MappingProxyType(steps),
        diagnostic_fallbacks=MappingProxyType(fallbacks),
        diagnostic_default=_as_optional_str(
            guidance.get("diagnostic_default"), f"{path}.diagnostic_default"
        ),
        related_patterns=MappingProxyType(related),
    )


def _parse_prevention(
    raw: object, path: str
) -> Mapping[FindingType, tuple[PreventionStrategy, ...]]:
    by_type = _as_mapping(raw, path)
    seen: set[str] = set()
    parsed: dict[FindingType, tuple[PreventionStrategy, ...]] = {}
    for name, entries in by_type.items():
        type_path = f"{path}.{name}"
        strategies: list[PreventionStrategy] = []
        for index, item in enumerate(_as_sequence(entries, type_path)):
            entry_path = f"{type_path}[{index}]"
            entry = _as_mapping(item, entry_path)
            strategy_id = _as_str(entry.get("id"), f"{entry_path}.id")
            if strategy_id in seen:
                raise _fail(f"{entry_path}.id", f"duplicate strategy id {strategy_id!r}")
            seen.add(strategy_id)
            strategies.append(
                PreventionStrategy(
                    id=strategy_id,
                    title=_as_str(entry.get("title"), f"{entry_path}.title"),
                    description=_as_optional_str(entry.get("description"), f"{entry_path}.description")
                    or "",
                    tools=_as_str_tuple(entry.get("tools"), f"{entry_path}.tools"),
                    steps=_as_str_tuple(entry.get("steps"), f"{entry_path}.steps"),
                    tradeoffs=_as_optional_str(entry.get("tradeoffs"), f"{entry_path}.tradeoffs")
                    or "",
                    config_example=_as_optional_str(
                        entry.get("config_example"), f"{entry_path}.config_example"
                    ),
                    benefits=_as_str_tuple(entry.get("benefits"), f"{entry_path}.benefits"),
                )
            )
        parsed[_as_finding_type(name, type_path)] = tuple(strategies)
    return MappingProxyType(parsed)


def bundled_catalog_path() -> Path:
    return Path(__file__).resolve().with_name("catalog.yaml")


@lru_cache(maxsize=1)
def default_catalog() -> PatternCatalog:
    """Return the shared catalog loaded from the package-shipped YAML file."""
    return PatternCatalog.from_file(bundled_catalog_path())


def load_catalog(path: str | Path | None = None) -> PatternCatalog:
    if path is None:
        return default_catalog()
    return PatternCatalog.from_file(path)


__all__ = [
    "THRESHOLD_ALWAYS",
    "THRESHOLD_NEVER",
    "UNKNOWN_TYPE",
    "BestPractice",
    "ConfigSchema",
    "DiagnosticStep",
    "Guidance",
    "PatternCatalog",
    "PatternRule",
    "PreventionStrategy",
    "RelatedPattern",
    "ResolutionTemplate",
    "RuleGroup",
    "TypeDescription",
    "bundled_catalog_path",
    "default_catalog",
    "load_catalog",
]
