"""Rule model and registry for the auditor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import ConfigurationError
from ..redaction import Redactor
from ..resource import NormalizedResource
from ..result import Evidence, Finding
from ..severity import Confidence, Severity

Matcher = Callable[[NormalizedResource], bool]
EvidenceCollector = Callable[[NormalizedResource, Redactor], Evidence]
MessageFormatter = Callable[[NormalizedResource], str]
SeverityResolver = Callable[[NormalizedResource], Severity]


@dataclass(frozen=True)
class RuleMetadata:
    """Descriptive view of a rule for listings and documentation."""

    rule_id: str
    title: str
    category: str
    default_severity: Severity
    default_confidence: Confidence
    description: str
    recommendations: Tuple[str, ...]
    rationale: Optional[str] = None
    tags: Tuple[str, ...] = ()
    references: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ruleId": self.rule_id,
            "title": self.title,
            "category": self.category,
            "defaultSeverity": self.default_severity.value.lower(),
            "defaultConfidence": self.default_confidence.value.lower(),
            "description": self.description,
            "recommendations": list(self.recommendations),
            "tags": list(self.tags),
            "references": list(self.references),
        }
        if self.rationale is not None:
            data["rationale"] = self.rationale
        return data


@dataclass(frozen=True)
class Rule:
    """A detection rule built from strategy callables.

    ``evaluate`` resolves the finding severity as: explicit override, then
    ``dynamic_severity`` when the rule defines one, then the default.
    """

    id: str
    title: str
    category: str
    default_severity: Severity
    default_confidence: Confidence
    description: str
    recommendations: Tuple[str, ...]
    matches: Matcher
    collect_evidence: EvidenceCollector
    format_message: MessageFormatter
    dynamic_severity: Optional[SeverityResolver] = None
    rationale: Optional[str] = None
    tags: Tuple[str, ...] = ()
    references: Tuple[str, ...] = field(default=())

    def evaluate(
        self,
        resource: NormalizedResource,
        redactor: Optional[Redactor] = None,
        severity_override: Optional[Severity] = None,
    ) -> Optional[Finding]:
        if not self.matches(resource):
            return None
        redactor = redactor or Redactor()
        return Finding(
            id=self.id,
            title=self.title,
            severity=self.severity_for(resource, severity_override),
            confidence=self.default_confidence,
            category=self.category,
            resource=resource.to_reference(),
            evidence=self.collect_evidence(resource, redactor),
            message=self.format_message(resource),
            recommendations=self.recommendations,
        )

    def severity_for(self, resource: NormalizedResource, severity_override: Optional[Severity] = None) -> Severity:
        if severity_override is not None:
            return severity_override
        if self.dynamic_severity is not None:
            return self.dynamic_severity(resource)
        return self.default_severity

    def metadata(self) -> RuleMetadata:
        return RuleMetadata(
            rule_id=self.id,
            title=self.title,
            category=self.category,
            default_severity=self.default_severity,
            default_confidence=self.default_confidence,
            description=self.description,
            recommendations=self.recommendations,
            rationale=self.rationale,
            tags=self.tags,
            references=self.references,
        )


class RuleRegistry:
    """Rules keyed by case-insensitive id, kept in registration order."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: Dict[str, Rule] = {}
        self.register_all(rules)

    def register(self, rule: Rule) -> None:
        self._rules[rule.id.upper()] = rule

    def register_all(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            self.register(rule)

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id.strip().upper())

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules.values())

    def __contains__(self, rule_id: object) -> bool:
        return isinstance(rule_id, str) and rule_id.strip().upper() in self._rules

    @property
    def rule_ids(self) -> List[str]:
        return [rule.id for rule in self._rules.values()]

    def metadata(self) -> List[RuleMetadata]:
        return [rule.metadata() for rule in self._rules.values()]

    def enabled_rules(
        self,
        enabled: Optional[Iterable[str]] = None,
        disabled: Optional[Iterable[str]] = None,
    ) -> List[Rule]:
        """Return the enabled rules in registration order.

        An allow-list, when given, is the sole determinant. Otherwise every
        rule is enabled except those in the deny-list.
        """
        if enabled is not None:
            allowed = {rule_id.upper() for rule_id in enabled}
            return [rule for key, rule in self._rules.items() if key in allowed]
        denied = {rule_id.upper() for rule_id in (disabled or ())}
        return [rule for key, rule in self._rules.items() if key not in denied]

    def validate_overrides(self, overrides: Mapping[str, Severity]) -> None:
        unknown = sorted(rule_id for rule_id in overrides if rule_id.upper() not in self._rules)
        if unknown:
            raise ConfigurationError(f"Severity override for unknown rule id(s): {', '.join(unknown)}")


def build_default_registry(config=None) -> RuleRegistry:
    """Register the detection and migration-risk rules for ``config``."""

    from ..config import AuditorConfig
    from . import detection, risk

    config = config or AuditorConfig()
    registry = RuleRegistry()
    registry.register_all(detection.get_rules(config.ingress_class_names, config.annotation_prefixes))
    registry.register_all(risk.get_rules())
    return registry


__all__ = [
    "Rule",
    "RuleMetadata",
    "RuleRegistry",
    "build_default_registry",
]
