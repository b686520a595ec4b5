"""Core result data structures for the auditor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .resource import ResourceReference
from .severity import SEVERITY_ORDER, Confidence, Severity

DETECTION = "Detection"
MIGRATION_RISK = "MigrationRisk"


def _severity_counts() -> Dict[Severity, int]:
    return {severity: 0 for severity in Severity}


@dataclass(frozen=True)
class RedactedAnnotation:
    """Annotation metadata that never exposes the full raw value."""

    key: str
    value_length: int
    value_hash_prefix: str
    truncated_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"length": self.value_length, "hashPrefix": self.value_hash_prefix}
        if self.truncated_value is not None:
            data["preview"] = self.truncated_value
        return data


@dataclass(frozen=True)
class Evidence:
    """The subset of resource data a rule used to justify a finding."""

    annotations: Optional[Dict[str, RedactedAnnotation]] = None
    labels: Optional[Dict[str, str]] = None
    ingress_class_name: Optional[str] = None
    matched_patterns: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.annotations is not None:
            data["annotations"] = {key: value.to_dict() for key, value in sorted(self.annotations.items())}
        if self.labels is not None:
            data["labels"] = dict(sorted(self.labels.items()))
        if self.ingress_class_name is not None:
            data["ingressClassName"] = self.ingress_class_name
        if self.matched_patterns is not None:
            data["matchedPatterns"] = list(self.matched_patterns)
        return data


@dataclass(frozen=True)
class Finding:
    """Capture a single rule match against a single resource."""

    id: str
    title: str
    severity: Severity
    confidence: Confidence
    category: str
    resource: ResourceReference
    evidence: Evidence
    message: str
    recommendations: Tuple[str, ...] = ()

    @property
    def sort_key(self) -> Tuple[int, str, str, str]:
        return (self.severity.rank, self.resource.namespace, self.resource.name, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "severity": self.severity.value.lower(),
            "confidence": self.confidence.value.lower(),
            "category": self.category,
            "resource": self.resource.to_dict(),
            "evidence": self.evidence.to_dict(),
            "message": self.message,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class NamespaceRollup:
    """Aggregated findings for a single namespace."""

    namespace: str
    ingress_count: int
    finding_count: int
    by_severity: Dict[Severity, int]
    max_risk_score: int
    nginx_dependent_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingressCount": self.ingress_count,
            "nginxDependentCount": self.nginx_dependent_count,
            "findingCount": self.finding_count,
            "maxRiskScore": self.max_risk_score,
            "bySeverity": {severity.value.lower(): self.by_severity.get(severity, 0) for severity in Severity},
        }


@dataclass(frozen=True)
class PolicyResult:
    """Outcome of comparing the findings to the fail-on threshold."""

    passed: bool
    fail_on_severity: Severity
    violation_count: int
    exit_code: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "failOnSeverity": self.fail_on_severity.value.lower(),
            "violationCount": self.violation_count,
            "exitCode": self.exit_code,
        }


@dataclass
class ScanSummary:
    """Aggregate counts for a completed scan."""

    policy: PolicyResult
    resources_scanned: int = 0
    ingresses_scanned: int = 0
    nginx_dependent_ingresses: int = 0
    findings_by_severity: Dict[Severity, int] = field(default_factory=_severity_counts)
    by_namespace: Dict[str, NamespaceRollup] = field(default_factory=dict)

    @property
    def total_findings(self) -> int:
        return sum(self.findings_by_severity.values())

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, self.findings_by_severity.get(severity, 0)) for severity in SEVERITY_ORDER]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourcesScanned": self.resources_scanned,
            "ingressesScanned": self.ingresses_scanned,
            "nginxDependentIngresses": self.nginx_dependent_ingresses,
            "totalFindings": self.total_findings,
            "findingsBySeverity": {
                severity.value.lower(): self.findings_by_severity.get(severity, 0) for severity in Severity
            },
            "byNamespace": {name: rollup.to_dict() for name, rollup in sorted(self.by_namespace.items())},
            "policy": self.policy.to_dict(),
        }


@dataclass
class ScanMetadata:
    """Describe how and when a scan was executed."""

    tool: str
    version: str
    schema_version: str
    mode: str
    timestamp: datetime
    status: str = "complete"
    cluster_context: Optional[str] = None
    scanned_path: Optional[str] = None
    duration_seconds: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "tool": self.tool,
            "version": self.version,
            "schemaVersion": self.schema_version,
            "mode": self.mode,
            "status": self.status,
            "timestampUtc": self.timestamp.isoformat(),
        }
        if self.duration_seconds is not None:
            data["durationMs"] = round(self.duration_seconds * 1000, 3)
        if self.cluster_context is not None:
            data["clusterContext"] = self.cluster_context
        if self.scanned_path is not None:
            data["scannedPath"] = self.scanned_path
        return data


@dataclass
class ScanResult:
    """Bundle metadata, summary, sorted findings and diagnostics."""

    metadata: ScanMetadata
    summary: ScanSummary
    findings: List[Finding] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.summary.policy.passed

    @property
    def exit_code(self) -> int:
        return self.summary.policy.exit_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "summary": self.summary.to_dict(),
            "findings": [finding.to_dict() for finding in self.findings],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }

    def top_findings(self, limit: int = 5) -> List[Finding]:
        """Return the most severe findings, keeping the deterministic order."""

        ordered = sorted(
            self.findings,
            key=lambda finding: (-finding.severity.rank, finding.resource.namespace, finding.resource.name, finding.id),
        )
        return ordered[:limit]


def format_summary_table(result: ScanResult, max_findings: int = 5) -> str:
    """Create a human-readable summary table for console output."""

    summary = result.summary
    lines: List[str] = []
    lines.append("Scan Summary")
    lines.append("=" * 40)
    lines.append(f"Resources : {summary.resources_scanned}")
    lines.append(f"Ingresses : {summary.ingresses_scanned}")
    lines.append(f"NGINX-dep : {summary.nginx_dependent_ingresses}")
    lines.append("")
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in summary.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    status = "PASS" if result.passed else "FAIL"
    lines.append(f"Status    : {status} (fail-on {summary.policy.fail_on_severity.value})")
    lines.append(f"Findings  : {summary.total_findings}")

    findings = result.top_findings(max_findings)
    if findings:
        lines.append("")
        lines.append("Top Findings")
        lines.append("-" * 40)
        for finding in findings:
            lines.append(f"[{finding.severity.value}] {finding.id} {finding.title} -> {finding.resource}")
            lines.append(f"  {finding.message}")

    for label, messages in (("Warnings", result.warnings), ("Errors", result.errors)):
        if messages:
            lines.append("")
            lines.append(label)
            lines.append("-" * 40)
            lines.extend(f"  - {message}" for message in messages)
    return "\n".join(lines)


def sort_findings(findings: Sequence[Finding]) -> List[Finding]:
    """Order findings by severity, namespace, resource name and rule id."""

    return sorted(findings, key=lambda finding: finding.sort_key)
