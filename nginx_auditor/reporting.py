"""Render scan results as JSON and Markdown reports."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List

from . import SCHEMA_VERSION, TOOL_NAME
from .result import Finding, ScanResult
from .scoring import risk_level
from .severity import SEVERITY_ORDER

logger = logging.getLogger(__name__)

SCHEMA_ID = f"urn:{TOOL_NAME}:report:{SCHEMA_VERSION}"


def render_json(result: ScanResult) -> str:
    """Serialize ``result`` with stable key order; only timing fields vary between runs."""

    payload = {"$schema": SCHEMA_ID}
    payload.update(result.to_dict())
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


# ----------------------------------------------------------------------
# Markdown
# ----------------------------------------------------------------------
def render_markdown(result: ScanResult) -> str:
    lines: List[str] = ["# Ingress NGINX Retirement Audit Report", ""]
    _executive_summary(lines, result)
    if result.warnings or result.errors:
        _issues(lines, result)
    _summary(lines, result)
    if result.findings:
        _findings(lines, result.findings)
    if result.summary.by_namespace:
        _namespaces(lines, result)
    _next_steps(lines, result)
    _metadata(lines, result)
    return "\n".join(lines) + "\n"


def _executive_summary(lines: List[str], result: ScanResult) -> None:
    summary = result.summary
    lines.extend(["## Executive Summary", ""])
    lines.append(f"**Policy Status**: {'PASS' if summary.policy.passed else 'FAIL'}")
    lines.append("")
    lines.append(f"- **Total Ingresses Scanned**: {summary.ingresses_scanned}")
    lines.append(f"- **NGINX-Dependent Ingresses**: {summary.nginx_dependent_ingresses}")
    lines.append(f"- **Total Findings**: {summary.total_findings}")
    lines.append("")
    if summary.total_findings:
        lines.extend(["### Risk Distribution", "", "| Severity | Count |", "|----------|-------|"])
        for severity, count in summary.as_rows():
            if count:
                lines.append(f"| {severity} | {count} |")
        lines.append("")


def _issues(lines: List[str], result: ScanResult) -> None:
    lines.extend(["## Scan Issues", ""])
    if result.errors:
        lines.append("### Errors")
        lines.extend(f"- {error}" for error in result.errors)
        lines.append("")
    if result.warnings:
        lines.append("### Warnings")
        lines.extend(f"- {warning}" for warning in result.warnings)
        lines.append("")


def _summary(lines: List[str], result: ScanResult) -> None:
    summary = result.summary
    lines.extend(["## Summary", "", "| Metric | Value |", "|--------|-------|"])
    lines.append(f"| Resources Scanned | {summary.resources_scanned} |")
    lines.append(f"| Ingresses Scanned | {summary.ingresses_scanned} |")
    lines.append(f"| NGINX-Dependent | {summary.nginx_dependent_ingresses} |")
    lines.append(f"| Total Findings | {summary.total_findings} |")
    lines.append(f"| Policy Threshold | {summary.policy.fail_on_severity.value} |")
    lines.append(f"| Exit Code | {summary.policy.exit_code} |")
    lines.append("")


def _findings(lines: List[str], findings: Iterable[Finding]) -> None:
    lines.extend(["## Findings", ""])
    grouped: Dict = {}
    for finding in findings:
        grouped.setdefault(finding.severity, []).append(finding)

    for severity in SEVERITY_ORDER:
        group = grouped.get(severity)
        if not group:
            continue
        lines.extend([f"### {severity.value} ({len(group)})", ""])
        for finding in sorted(group, key=lambda item: (item.resource.namespace, item.resource.name, item.id)):
            _finding(lines, finding)


def _finding(lines: List[str], finding: Finding) -> None:
    lines.extend([f"#### {finding.id}: {finding.title}", ""])
    lines.extend([f"**Resource**: `{finding.resource}`", ""])
    lines.extend([f"**Message**: {finding.message}", ""])
    evidence = finding.evidence
    if evidence.annotations:
        lines.append("**Annotations**:")
        for key, value in sorted(evidence.annotations.items()):
            preview = f" (preview: `{value.truncated_value}`)" if value.truncated_value is not None else ""
            lines.append(f"- `{key}` ({value.value_length} chars, hash: `{value.value_hash_prefix}`){preview}")
        lines.append("")
    if evidence.labels:
        lines.append("**Labels**:")
        lines.extend(f"- `{key}={value}`" for key, value in sorted(evidence.labels.items()))
        lines.append("")
    if evidence.matched_patterns:
        lines.append("**Matched Patterns**:")
        lines.extend(f"- `{pattern}`" for pattern in evidence.matched_patterns)
        lines.append("")
    if finding.recommendations:
        lines.append("**Recommendations**:")
        lines.extend(f"- {item}" for item in finding.recommendations)
        lines.append("")
    lines.extend(["---", ""])


def _namespaces(lines: List[str], result: ScanResult) -> None:
    lines.extend([
        "## Namespace Breakdown",
        "",
        "| Namespace | Ingresses | NGINX-Dependent | Findings | Risk Score |",
        "|-----------|-----------|-----------------|----------|------------|",
    ])
    rollups = sorted(result.summary.by_namespace.values(), key=lambda item: (-item.max_risk_score, item.namespace))
    for rollup in rollups:
        lines.append(
            f"| {rollup.namespace} | {rollup.ingress_count} | {rollup.nginx_dependent_count} | "
            f"{rollup.finding_count} | {rollup.max_risk_score} ({risk_level(rollup.max_risk_score)}) |"
        )
    lines.append("")


def _next_steps(lines: List[str], result: ScanResult) -> None:
    lines.extend(["## Next Steps", ""])
    if result.summary.nginx_dependent_ingresses == 0:
        lines.append(
            "No NGINX-dependent Ingress resources found. Your cluster may be ready for controller retirement."
        )
    else:
        lines.extend([
            "The following steps are recommended to complete your migration:",
            "",
            "1. **Review high-severity findings first** - Focus on Critical and High findings",
            "2. **Document snippet usage** - Custom NGINX configurations require manual translation",
            "3. **Test in staging** - Validate migration changes before production",
            "4. **Plan phased rollout** - Migrate namespace by namespace",
            "5. **Monitor during migration** - Watch for errors after each change",
        ])
    lines.append("")


def _metadata(lines: List[str], result: ScanResult) -> None:
    metadata = result.metadata
    lines.extend(["## Report Metadata", ""])
    lines.append(f"- **Tool**: {metadata.tool} v{metadata.version}")
    lines.append(f"- **Scan Mode**: {metadata.mode}")
    lines.append(f"- **Timestamp**: {metadata.timestamp.isoformat()}")
    lines.append(f"- **Status**: {metadata.status}")
    if metadata.cluster_context:
        lines.append(f"- **Cluster Context**: {metadata.cluster_context}")
    if metadata.scanned_path:
        lines.append(f"- **Scanned Path**: {metadata.scanned_path}")
    if metadata.duration_seconds is not None:
        lines.append(f"- **Duration**: {metadata.duration_seconds:.2f}s")
    lines.extend(["", "---", f"*Generated by {TOOL_NAME} v{metadata.version}*"])


# ----------------------------------------------------------------------
# Output
# ----------------------------------------------------------------------
RENDERERS: Dict[str, Callable[[ScanResult], str]] = {
    "json": render_json,
    "md": render_markdown,
}


def write_reports(result: ScanResult, formats: Iterable[str], output_dir: str | Path | None = None) -> List[Path]:
    """Write ``report.<format>`` for each known format; unknown ones are skipped."""

    directory = Path(output_dir) if output_dir else Path.cwd()
    directory.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for report_format in formats:
        key = report_format.strip().lower()
        renderer = RENDERERS.get(key)
        if renderer is None:
            logger.warning("Unknown report format: %s", report_format)
            continue
        path = directory / f"report.{key}"
        path.write_text(renderer(result), encoding="utf-8")
        logger.info("Generated %s report: %s", key, path)
        written.append(path)
    return written
