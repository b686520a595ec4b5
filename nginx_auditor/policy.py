"""Fail-on policy evaluation and exit-code precedence."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from . import exit_codes
from .result import Finding, PolicyResult
from .severity import Severity

logger = logging.getLogger(__name__)


def evaluate_policy(findings: Iterable[Finding], threshold: Severity) -> PolicyResult:
    """Count findings at or above ``threshold``; any violation fails the policy."""

    violations = sum(1 for finding in findings if finding.severity >= threshold)
    passed = violations == 0
    if not passed:
        logger.info("%d finding(s) at or above %s", violations, threshold.value)
    return PolicyResult(
        passed=passed,
        fail_on_severity=threshold,
        violation_count=violations,
        exit_code=exit_codes.SUCCESS if passed else exit_codes.POLICY_VIOLATION,
    )


def determine_exit_code(
    policy: PolicyResult,
    warnings: Sequence[str],
    errors: Sequence[str],
    has_findings: bool,
) -> int:
    """Combine the policy outcome with recorded diagnostics.

    Order:
        1. errors and nothing found -> FATAL_ERROR
        2. diagnostics and a failed policy -> POLICY_VIOLATION
        3. diagnostics -> PARTIAL_FAILURE
        4. failed policy -> POLICY_VIOLATION
        5. SUCCESS
    """
    has_diagnostics = bool(warnings) or bool(errors)
    if errors and not has_findings:
        return exit_codes.FATAL_ERROR
    if has_diagnostics and not policy.passed:
        return exit_codes.POLICY_VIOLATION
    if has_diagnostics:
        return exit_codes.PARTIAL_FAILURE
    if not policy.passed:
        return exit_codes.POLICY_VIOLATION
    return exit_codes.SUCCESS
