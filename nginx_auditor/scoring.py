"""Risk scoring over a set of findings."""

from __future__ import annotations

from typing import Dict, Iterable

from .result import Finding
from .severity import Confidence, Severity

MAX_SCORE = 100

SEVERITY_WEIGHTS: Dict[Severity, int] = {
    Severity.CRITICAL: 40,
    Severity.HIGH: 25,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
    Severity.INFO: 1,
}

CONFIDENCE_MODIFIERS: Dict[Confidence, float] = {
    Confidence.HIGH: 1.0,
    Confidence.MEDIUM: 0.75,
    Confidence.LOW: 0.5,
}

# (minimum score, level), checked highest first
RISK_LEVELS = (
    (80, "Critical"),
    (50, "High"),
    (25, "Medium"),
    (10, "Low"),
)


def finding_weight(finding: Finding, confidence_weighted: bool = False) -> int:
    weight = SEVERITY_WEIGHTS.get(finding.severity, 0)
    if confidence_weighted:
        return int(weight * CONFIDENCE_MODIFIERS.get(finding.confidence, 1.0))
    return weight


def risk_score(findings: Iterable[Finding], confidence_weighted: bool = False) -> int:
    """Sum severity weights, optionally scaled by confidence, capped at ``MAX_SCORE``."""

    total = sum(finding_weight(finding, confidence_weighted) for finding in findings)
    return min(total, MAX_SCORE)


def risk_level(score: int) -> str:
    for minimum, level in RISK_LEVELS:
        if score >= minimum:
            return level
    return "Minimal"
