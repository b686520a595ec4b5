from nginx_auditor.redaction import Redactor, value_hash_prefix
from nginx_auditor.resource import NormalizedResource
from nginx_auditor.rules import detection, risk
from nginx_auditor.severity import Severity


def ingress(annotations=None, class_name=None, name="web", namespace="default"):
    return NormalizedResource(
        kind="Ingress",
        api_version="networking.k8s.io/v1",
        name=name,
        namespace=namespace,
        annotations=dict(annotations or {}),
        ingress_class_name=class_name,
    )


def workload(kind="Deployment", labels=None, name="controller", namespace="ingress-nginx"):
    return NormalizedResource(
        kind=kind,
        api_version="apps/v1",
        name=name,
        namespace=namespace,
        labels=dict(labels or {}),
    )


def test_class_rule_matches_ingress_class_name():
    finding = detection.class_rule().evaluate(ingress(class_name="nginx", name="api", namespace="shop"))

    assert finding is not None
    assert finding.id == detection.CLASS_RULE_ID
    assert finding.severity is Severity.INFO
    assert finding.evidence.ingress_class_name == "nginx"
    assert finding.evidence.matched_patterns == ("spec.ingressClassName: nginx",)
    assert finding.message == "Ingress 'shop/Ingress/api' uses ingress-nginx controller via ingressClassName 'nginx'"


def test_class_rule_matches_legacy_annotation_case_insensitively():
    resource = ingress({"kubernetes.io/ingress.class": "NGINX-Internal"})

    finding = detection.class_rule().evaluate(resource)

    assert finding is not None
    assert finding.evidence.matched_patterns == ("annotation kubernetes.io/ingress.class: NGINX-Internal",)
    assert "legacy annotation" in finding.message


def test_class_rule_ignores_other_controllers_and_kinds():
    rule = detection.class_rule()

    assert rule.evaluate(ingress(class_name="traefik")) is None
    assert rule.evaluate(workload(labels={"app": "nginx"})) is None


def test_class_rule_uses_configured_class_names():
    rule = detection.class_rule(["corp-nginx"])

    assert rule.evaluate(ingress(class_name="corp-nginx")) is not None
    assert rule.evaluate(ingress(class_name="nginx")) is None


def test_annotation_prefix_rule_redacts_matching_annotations():
    resource = ingress(
        {
            "nginx.ingress.kubernetes.io/proxy-body-size": "10m",
            "nginx.org/client-max-body-size": "5m",
            "cert-manager.io/cluster-issuer": "letsencrypt",
        }
    )

    finding = detection.annotation_prefix_rule().evaluate(resource)

    assert finding is not None
    assert set(finding.evidence.annotations) == {
        "nginx.ingress.kubernetes.io/proxy-body-size",
        "nginx.org/client-max-body-size",
    }
    redacted = finding.evidence.annotations["nginx.ingress.kubernetes.io/proxy-body-size"]
    assert redacted.value_length == 3
    assert redacted.value_hash_prefix == value_hash_prefix("10m")
    assert redacted.truncated_value is None
    assert "has 2 NGINX-specific annotation(s)" in finding.message


def test_annotation_prefix_rule_skips_ingress_without_nginx_annotations():
    resource = ingress({"cert-manager.io/cluster-issuer": "letsencrypt"})

    assert detection.annotation_prefix_rule().evaluate(resource) is None


def test_controller_rule_matches_helm_labels():
    resource = workload(
        labels={
            "app.kubernetes.io/name": "ingress-nginx",
            "helm.sh/chart": "ingress-nginx-4.10.0",
            "team": "platform",
        }
    )

    finding = detection.controller_rule().evaluate(resource)

    assert finding is not None
    assert finding.evidence.labels == {
        "app.kubernetes.io/name": "ingress-nginx",
        "helm.sh/chart": "ingress-nginx-4.10.0",
    }
    assert "app.kubernetes.io/name=ingress-nginx" in finding.evidence.matched_patterns


def test_controller_rule_matches_controller_component_of_nginx_app():
    resource = workload(
        kind="DaemonSet",
        labels={"app.kubernetes.io/name": "my-nginx", "app.kubernetes.io/component": "controller"},
    )

    assert detection.controller_rule().evaluate(resource) is not None


def test_controller_rule_ignores_ingresses_and_unrelated_workloads():
    rule = detection.controller_rule()

    assert rule.evaluate(ingress(class_name="nginx")) is None
    assert rule.evaluate(workload(labels={"app.kubernetes.io/name": "nginx"})) is None


def test_snippet_rule_is_critical_with_server_snippet():
    resource = ingress(
        {
            risk.SERVER_SNIPPET: "location /x { deny all; }",
            risk.NGINX_PREFIX + "configuration-snippet": "more_set_headers 'X: y';",
        }
    )

    finding = risk.snippet_rule().evaluate(resource)

    assert finding is not None
    assert finding.severity is Severity.CRITICAL
    assert "[server-snippet, configuration-snippet]" in finding.message
    assert "CRITICAL migration risk" in finding.message


def test_snippet_rule_is_high_without_server_snippet():
    resource = ingress({risk.NGINX_PREFIX + "location-snippet": "return 403;"})

    finding = risk.snippet_rule().evaluate(resource)

    assert finding is not None
    assert finding.severity is Severity.HIGH
    assert finding.evidence.matched_patterns == (risk.NGINX_PREFIX + "location-snippet",)


def test_severity_override_beats_dynamic_severity():
    resource = ingress({risk.SERVER_SNIPPET: "return 200;"})

    finding = risk.snippet_rule().evaluate(resource, severity_override=Severity.LOW)

    assert finding is not None
    assert finding.severity is Severity.LOW


def test_regex_rule_requires_true_value():
    rule = risk.regex_rule()

    assert rule.evaluate(ingress({risk.USE_REGEX: "false"})) is None
    finding = rule.evaluate(ingress({risk.USE_REGEX: "True"}))
    assert finding is not None
    assert finding.severity is Severity.MEDIUM
    assert finding.evidence.matched_patterns == (f"{risk.USE_REGEX}=true",)


def test_rewrite_rule_notes_capture_groups():
    rule = risk.rewrite_rule()

    captured = rule.evaluate(ingress({risk.REWRITE_TARGET: "/$2"}))
    plain = rule.evaluate(ingress({risk.NGINX_PREFIX + "app-root": "/app"}))

    assert "regex capture groups" in captured.message
    assert captured.evidence.matched_patterns == ("rewrite-target",)
    assert "rewrite mechanism" in plain.message


def test_auth_type_priority():
    assert risk.auth_type(ingress({risk.AUTH_URL: "https://a", risk.AUTH_TYPE: "basic"})) == "external"
    assert risk.auth_type(ingress({risk.AUTH_TYPE: "Digest"})) == "digest"
    assert risk.auth_type(ingress({risk.AUTH_SECRET: "htpasswd"})) == "basic"
    assert risk.auth_type(ingress({risk.NGINX_PREFIX + "auth-realm": "Restricted"})) == "unknown"


def test_auth_rule_evidence_leads_with_auth_type():
    resource = ingress({risk.AUTH_URL: "https://auth.example.com", risk.NGINX_PREFIX + "auth-signin": "https://x"})

    finding = risk.auth_rule().evaluate(resource)

    assert finding is not None
    assert finding.evidence.matched_patterns[0] == "Authentication type: external"
    assert "uses external authentication (2 annotation(s))" in finding.message


def test_tls_redirect_rule_dynamic_severity():
    rule = risk.tls_redirect_rule()

    ssl_only = rule.evaluate(ingress({risk.SSL_REDIRECT: "true"}))
    forced = rule.evaluate(ingress({risk.FORCE_SSL_REDIRECT: "true"}))
    permanent = rule.evaluate(ingress({risk.PERMANENT_REDIRECT: "https://new.example.com"}))

    assert ssl_only.severity is Severity.LOW
    assert forced.severity is Severity.MEDIUM
    assert permanent.severity is Severity.MEDIUM


def test_tls_redirect_rule_ignores_disabled_redirects():
    resource = ingress({risk.SSL_REDIRECT: "false", risk.PERMANENT_REDIRECT: ""})

    assert risk.tls_redirect_rule().evaluate(resource) is None


def test_tls_redirect_patterns_mask_values_unless_shown():
    resource = ingress({risk.FORCE_SSL_REDIRECT: "true"})
    rule = risk.tls_redirect_rule()

    hidden = rule.evaluate(resource)
    shown = rule.evaluate(resource, Redactor(show_values=True))

    assert hidden.evidence.matched_patterns == ("force-ssl-redirect=***",)
    assert shown.evidence.matched_patterns == ("force-ssl-redirect=true",)


def test_risk_rules_only_apply_to_ingresses():
    resource = NormalizedResource(
        kind="ConfigMap",
        api_version="v1",
        name="settings",
        namespace="default",
        annotations={risk.SERVER_SNIPPET: "return 200;", risk.USE_REGEX: "true"},
    )

    assert all(rule.evaluate(resource) is None for rule in risk.get_rules())
