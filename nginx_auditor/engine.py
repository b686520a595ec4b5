"""Apply enabled rules to resources."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .config import AuditorConfig
from .errors import RuleEvaluationError
from .redaction import Redactor
from .resource import NormalizedResource
from .result import DETECTION, Finding
from .rules import Rule, RuleMetadata, RuleRegistry, build_default_registry

logger = logging.getLogger(__name__)


class RuleEngine:
    """Evaluate the enabled rules of a registry against one resource at a time."""

    def __init__(self, registry: Optional[RuleRegistry] = None, config: Optional[AuditorConfig] = None) -> None:
        self.config = config or AuditorConfig()
        self.registry = registry or build_default_registry(self.config)
        self.registry.validate_overrides(self.config.rules.severity_overrides)
        self._rules = self.registry.enabled_rules(self.config.rules.enabled, self.config.rules.disabled)
        self._redactor = Redactor(
            show_values=self.config.output.show_annotation_values,
            max_preview_length=self.config.output.max_preview_length,
        )

    @property
    def enabled_rules(self) -> List[Rule]:
        return list(self._rules)

    def evaluate(self, resource: NormalizedResource) -> List[Finding]:
        findings: List[Finding] = []
        for rule in self._rules:
            finding = self._evaluate_rule(rule, resource)
            if finding is not None:
                logger.debug("Rule %s matched %s with severity %s", rule.id, resource, finding.severity.value)
                findings.append(finding)
        return findings

    def _evaluate_rule(self, rule: Rule, resource: NormalizedResource) -> Optional[Finding]:
        try:
            return rule.evaluate(resource, self._redactor, self.config.rules.override_for(rule.id))
        except Exception as exc:
            error = RuleEvaluationError(rule.id, str(resource), exc)
            logger.warning("%s", error)
            return None

    @staticmethod
    def is_nginx_dependent(findings: Iterable[Finding]) -> bool:
        return any(finding.category == DETECTION for finding in findings)

    def rule_metadata(self, rule_id: Optional[str] = None) -> List[RuleMetadata]:
        if rule_id is None:
            return self.registry.metadata()
        rule = self.registry.get(rule_id)
        return [rule.metadata()] if rule is not None else []
