from concurrent.futures import ThreadPoolExecutor

from nginx_auditor.aggregator import FindingAggregator
from nginx_auditor.policy import evaluate_policy
from nginx_auditor.resource import NormalizedResource
from nginx_auditor.result import DETECTION, Evidence, Finding
from nginx_auditor.severity import Confidence, Severity


def resource(namespace, name="web", kind="Ingress"):
    return NormalizedResource(kind=kind, api_version="v1", name=name, namespace=namespace)


def finding(namespace, severity=Severity.HIGH, confidence=Confidence.HIGH):
    return Finding(
        id="DET-TEST-001",
        title="Test",
        severity=severity,
        confidence=confidence,
        category=DETECTION,
        resource=resource(namespace).to_reference(),
        evidence=Evidence(),
        message="test",
    )


def test_rollups_track_counts_per_namespace():
    aggregator = FindingAggregator()
    aggregator.add_resource(resource("shop", "a"))
    aggregator.add_resource(resource("shop", "b"))
    aggregator.add_resource(resource("shop", "controller", kind="Deployment"))
    aggregator.add_resource(resource("ops", "c"))
    aggregator.add_finding(finding("shop", Severity.CRITICAL))
    aggregator.add_finding(finding("shop", Severity.HIGH))
    aggregator.mark_nginx_dependent("shop")

    summary = aggregator.summary(evaluate_policy([], Severity.HIGH))

    assert summary.resources_scanned == 4
    assert summary.ingresses_scanned == 3
    assert summary.nginx_dependent_ingresses == 1
    assert summary.findings_by_severity[Severity.CRITICAL] == 1
    shop = summary.by_namespace["shop"]
    assert shop.ingress_count == 2
    assert shop.finding_count == 2
    assert shop.max_risk_score == 65
    assert shop.nginx_dependent_count == 1
    assert summary.by_namespace["ops"].finding_count == 0
    assert summary.by_namespace["ops"].max_risk_score == 0


def test_rollup_score_respects_confidence_weighting():
    aggregator = FindingAggregator(confidence_weighted=True)
    aggregator.add_finding(finding("shop", Severity.HIGH, Confidence.LOW))

    rollups = aggregator.build_rollups()

    assert rollups["shop"].max_risk_score == 12


def test_concurrent_updates_are_not_lost():
    aggregator = FindingAggregator()
    namespaces = [f"ns-{index % 7}" for index in range(700)]

    def record(namespace):
        aggregator.add_resource(resource(namespace))
        aggregator.add_finding(finding(namespace, Severity.LOW))
        aggregator.mark_nginx_dependent(namespace)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(record, namespaces))

    summary = aggregator.summary(evaluate_policy([], Severity.HIGH))
    assert summary.resources_scanned == 700
    assert summary.ingresses_scanned == 700
    assert summary.nginx_dependent_ingresses == 700
    assert summary.findings_by_severity[Severity.LOW] == 700
    assert len(summary.by_namespace) == 7
    assert sum(rollup.finding_count for rollup in summary.by_namespace.values()) == 700
    assert all(rollup.ingress_count == 100 for rollup in summary.by_namespace.values())
