from nginx_auditor.resource import ResourceReference
from nginx_auditor.result import MIGRATION_RISK, Evidence, Finding
from nginx_auditor.scoring import risk_level, risk_score
from nginx_auditor.severity import Confidence, Severity


def finding(severity, confidence=Confidence.HIGH, name="api"):
    return Finding(
        id="RISK-TEST-001",
        title="Test",
        severity=severity,
        confidence=confidence,
        category=MIGRATION_RISK,
        resource=ResourceReference("Ingress", "networking.k8s.io/v1", name, "default"),
        evidence=Evidence(),
        message="test",
    )


def test_score_sums_severity_weights():
    findings = [finding(Severity.HIGH), finding(Severity.MEDIUM), finding(Severity.INFO)]

    assert risk_score(findings) == 36


def test_score_is_capped():
    findings = [finding(Severity.CRITICAL) for _ in range(3)]

    assert risk_score(findings) == 100


def test_empty_findings_score_zero():
    assert risk_score([]) == 0
    assert risk_level(0) == "Minimal"


def test_confidence_weighting_truncates_each_term():
    findings = [finding(Severity.HIGH, Confidence.MEDIUM), finding(Severity.LOW, Confidence.LOW)]

    # int(25 * 0.75) + int(5 * 0.5)
    assert risk_score(findings, confidence_weighted=True) == 18 + 2
    assert risk_score(findings) == 30


def test_risk_levels():
    assert risk_level(100) == "Critical"
    assert risk_level(80) == "Critical"
    assert risk_level(79) == "High"
    assert risk_level(50) == "High"
    assert risk_level(25) == "Medium"
    assert risk_level(10) == "Low"
    assert risk_level(9) == "Minimal"
