"""Running severity and per-namespace totals for one scan."""

from __future__ import annotations

import threading
from typing import Dict, List

from .resource import NormalizedResource
from .result import Finding, NamespaceRollup, PolicyResult, ScanSummary
from .scoring import risk_score
from .severity import Severity


class _NamespaceBuilder:
    """Mutable per-namespace state; every access goes through ``_lock``."""

    def __init__(self, namespace: str, confidence_weighted: bool) -> None:
        self.namespace = namespace
        self._confidence_weighted = confidence_weighted
        self._lock = threading.Lock()
        self._findings: List[Finding] = []
        self._ingress_count = 0
        self._nginx_dependent_count = 0

    def add_resource(self, resource: NormalizedResource) -> None:
        if not resource.is_ingress:
            return
        with self._lock:
            self._ingress_count += 1

    def add_finding(self, finding: Finding) -> None:
        with self._lock:
            self._findings.append(finding)

    def mark_nginx_dependent(self) -> None:
        with self._lock:
            self._nginx_dependent_count += 1

    def build(self) -> NamespaceRollup:
        with self._lock:
            findings = list(self._findings)
            ingress_count = self._ingress_count
            dependent = self._nginx_dependent_count

        by_severity = {severity: 0 for severity in Severity}
        for finding in findings:
            by_severity[finding.severity] += 1
        return NamespaceRollup(
            namespace=self.namespace,
            ingress_count=ingress_count,
            finding_count=len(findings),
            by_severity=by_severity,
            max_risk_score=risk_score(findings, self._confidence_weighted) if findings else 0,
            nginx_dependent_count=dependent,
        )


class FindingAggregator:
    """Accumulate counts across a resource stream that may be filled concurrently.

    Locks are held only for a single counter update or a single namespace
    insertion. Namespace builders are created lazily and the first writer
    wins. ``summary`` is a point-in-time snapshot and is meaningful once the
    producing stream has drained.
    """

    def __init__(self, confidence_weighted: bool = False) -> None:
        self._confidence_weighted = confidence_weighted
        self._counter_lock = threading.Lock()
        self._severity_lock = threading.Lock()
        self._namespace_lock = threading.Lock()
        self._namespaces: Dict[str, _NamespaceBuilder] = {}
        self._by_severity: Dict[Severity, int] = {severity: 0 for severity in Severity}
        self._resources = 0
        self._ingresses = 0
        self._nginx_dependent = 0

    def add_resource(self, resource: NormalizedResource) -> None:
        with self._counter_lock:
            self._resources += 1
            if resource.is_ingress:
                self._ingresses += 1
        self._namespace(resource.namespace).add_resource(resource)

    def add_finding(self, finding: Finding) -> None:
        with self._severity_lock:
            self._by_severity[finding.severity] += 1
        self._namespace(finding.resource.namespace).add_finding(finding)

    def mark_nginx_dependent(self, namespace: str) -> None:
        with self._counter_lock:
            self._nginx_dependent += 1
        self._namespace(namespace).mark_nginx_dependent()

    def build_rollups(self) -> Dict[str, NamespaceRollup]:
        with self._namespace_lock:
            builders = list(self._namespaces.values())
        return {builder.namespace: builder.build() for builder in builders}

    def summary(self, policy: PolicyResult) -> ScanSummary:
        with self._severity_lock:
            by_severity = dict(self._by_severity)
        with self._counter_lock:
            resources, ingresses, dependent = self._resources, self._ingresses, self._nginx_dependent
        return ScanSummary(
            policy=policy,
            resources_scanned=resources,
            ingresses_scanned=ingresses,
            nginx_dependent_ingresses=dependent,
            findings_by_severity=by_severity,
            by_namespace=self.build_rollups(),
        )

    def _namespace(self, namespace: str) -> _NamespaceBuilder:
        builder = self._namespaces.get(namespace)
        if builder is not None:
            return builder
        with self._namespace_lock:
            return self._namespaces.setdefault(
                namespace, _NamespaceBuilder(namespace, self._confidence_weighted)
            )
