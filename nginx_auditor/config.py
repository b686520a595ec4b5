"""Auditor configuration model and YAML loader."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Set, Tuple

import yaml

from .errors import ConfigurationError
from .severity import Severity

DEFAULT_INGRESS_CLASS_NAMES: Tuple[str, ...] = ("nginx", "nginx-internal", "nginx-external")
DEFAULT_ANNOTATION_PREFIXES: Tuple[str, ...] = ("nginx.ingress.kubernetes.io/", "nginx.org/")
DEFAULT_OUTPUT_FORMATS: Tuple[str, ...] = ("md", "json")
DEFAULT_INCLUDE_PATTERNS: Tuple[str, ...] = ("**/*.yaml", "**/*.yml")
DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = ("**/node_modules/**", "**/.git/**", "**/vendor/**")
DEFAULT_API_CONCURRENCY = 10
DEFAULT_TIMEOUT_SECONDS = 30
LEGACY_INGRESS_CLASS_ANNOTATION = "kubernetes.io/ingress.class"


@dataclass(frozen=True)
class RulesConfig:
    """Rule enablement and severity overrides, keyed by upper-cased rule id."""

    enabled: Optional[frozenset] = None
    disabled: frozenset = frozenset()
    severity_overrides: Dict[str, Severity] = field(default_factory=dict)

    def override_for(self, rule_id: str) -> Optional[Severity]:
        return self.severity_overrides.get(rule_id.upper())


@dataclass(frozen=True)
class PolicyConfig:
    fail_on: Severity = Severity.HIGH


@dataclass(frozen=True)
class OutputConfig:
    formats: Tuple[str, ...] = DEFAULT_OUTPUT_FORMATS
    output_path: Optional[str] = None
    show_annotation_values: bool = False
    max_preview_length: int = 50
    confidence_weighted: bool = False


@dataclass(frozen=True)
class ClusterConfig:
    api_concurrency: int = DEFAULT_API_CONCURRENCY
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class AuditorConfig:
    """Top-level configuration consumed by the rules, engine and orchestrator."""

    ingress_class_names: Tuple[str, ...] = DEFAULT_INGRESS_CLASS_NAMES
    annotation_prefixes: Tuple[str, ...] = DEFAULT_ANNOTATION_PREFIXES
    rules: RulesConfig = field(default_factory=RulesConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    cluster: ClusterConfig = field(default_factory=ClusterConfig)

    def with_fail_on(self, severity: Severity) -> "AuditorConfig":
        return replace(self, policy=replace(self.policy, fail_on=severity))

    def with_output(self, **changes: Any) -> "AuditorConfig":
        return replace(self, output=replace(self.output, **changes))

    def with_cluster(self, **changes: Any) -> "AuditorConfig":
        return replace(self, cluster=replace(self.cluster, **changes))


def load_config(path: str | Path) -> AuditorConfig:
    """Load a YAML configuration file and merge it over the defaults."""

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Configuration file {config_path} is not valid YAML: {exc}") from exc
    if data is None:
        return AuditorConfig()
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration at {config_path} is not a mapping")
    return config_from_dict(data)


def config_from_dict(data: Mapping[str, Any]) -> AuditorConfig:
    """Build an ``AuditorConfig`` from a parsed mapping (camelCase or snake_case keys)."""

    defaults = AuditorConfig()
    class_names = _get(data, "ingressClassNames", "ingress_class_names")
    prefixes = _get(data, "annotationPrefixes", "annotation_prefixes")
    return AuditorConfig(
        ingress_class_names=_string_tuple(class_names, "ingressClassNames") if class_names is not None else defaults.ingress_class_names,
        annotation_prefixes=_string_tuple(prefixes, "annotationPrefixes") if prefixes is not None else defaults.annotation_prefixes,
        rules=_rules_config(_section(data, "rules")),
        policy=_policy_config(_section(data, "policy")),
        output=_output_config(_section(data, "output")),
        cluster=_cluster_config(_section(data, "cluster")),
    )


# ----------------------------------------------------------------------
# Section parsers
# ----------------------------------------------------------------------
def _rules_config(raw: Mapping[str, Any]) -> RulesConfig:
    enabled = _get(raw, "enabled")
    disabled = _get(raw, "disabled")
    overrides = _get(raw, "severityOverrides", "severity_overrides") or {}
    if not isinstance(overrides, dict):
        raise ConfigurationError("rules.severityOverrides must be a mapping of rule id to severity")
    return RulesConfig(
        enabled=rule_id_set(_string_tuple(enabled, "rules.enabled")) if enabled is not None else None,
        disabled=rule_id_set(_string_tuple(disabled, "rules.disabled")) if disabled is not None else frozenset(),
        severity_overrides={str(rule_id).upper(): Severity.parse(value) for rule_id, value in overrides.items()},
    )


def _policy_config(raw: Mapping[str, Any]) -> PolicyConfig:
    fail_on = _get(raw, "failOn", "fail_on")
    if fail_on is None:
        return PolicyConfig()
    return PolicyConfig(fail_on=Severity.parse(fail_on))


def _output_config(raw: Mapping[str, Any]) -> OutputConfig:
    defaults = OutputConfig()
    formats = _get(raw, "formats")
    preview = _get(raw, "maxPreviewLength", "max_preview_length")
    return OutputConfig(
        formats=_string_tuple(formats, "output.formats") if formats is not None else defaults.formats,
        output_path=_get(raw, "outputPath", "output_path"),
        show_annotation_values=bool(_get(raw, "showAnnotationValues", "show_annotation_values") or False),
        max_preview_length=_positive_int(preview, "output.maxPreviewLength") if preview is not None else defaults.max_preview_length,
        confidence_weighted=bool(_get(raw, "confidenceWeighted", "confidence_weighted") or False),
    )


def _cluster_config(raw: Mapping[str, Any]) -> ClusterConfig:
    concurrency = _get(raw, "apiConcurrency", "api_concurrency")
    timeout = _get(raw, "timeoutSeconds", "timeout_seconds")
    return ClusterConfig(
        api_concurrency=_positive_int(concurrency, "cluster.apiConcurrency") if concurrency is not None else DEFAULT_API_CONCURRENCY,
        timeout_seconds=_positive_int(timeout, "cluster.timeoutSeconds") if timeout is not None else DEFAULT_TIMEOUT_SECONDS,
    )


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def rule_id_set(values: Iterable[str]) -> frozenset:
    return frozenset(str(value).strip().upper() for value in values if str(value).strip())


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Configuration section '{key}' must be a mapping")
    return value


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _string_tuple(value: Any, name: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, (list, tuple, set)):
        return tuple(str(item) for item in value)
    raise ConfigurationError(f"'{name}' must be a list of strings")


def _positive_int(value: Any, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"'{name}' must be positive, got {number}")
    return number


def split_csv(value: Optional[str]) -> Optional[Tuple[str, ...]]:
    """Split a comma-separated CLI value; ``None`` for empty input."""

    if value is None or not value.strip():
        return None
    return tuple(item.strip() for item in value.split(",") if item.strip())


__all__ = [
    "AuditorConfig",
    "ClusterConfig",
    "OutputConfig",
    "PolicyConfig",
    "RulesConfig",
    "config_from_dict",
    "load_config",
    "rule_id_set",
    "split_csv",
    "LEGACY_INGRESS_CLASS_ANNOTATION",
    "DEFAULT_INCLUDE_PATTERNS",
    "DEFAULT_EXCLUDE_PATTERNS",
]
