"""Detect resources that depend on the ingress-nginx controller."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..config import (
    DEFAULT_ANNOTATION_PREFIXES,
    DEFAULT_INGRESS_CLASS_NAMES,
    LEGACY_INGRESS_CLASS_ANNOTATION,
)
from ..redaction import Redactor
from ..resource import NormalizedResource
from ..result import DETECTION, Evidence
from ..severity import Confidence, Severity
from . import Rule

CLASS_RULE_ID = "DET-NGINX-CLASS-001"
ANNOTATION_PREFIX_RULE_ID = "DET-NGINX-ANNOT-PREFIX-001"
CONTROLLER_RULE_ID = "DET-NGINX-CTRL-001"

APP_NAME_LABEL = "app.kubernetes.io/name"
APP_INSTANCE_LABEL = "app.kubernetes.io/instance"
APP_COMPONENT_LABEL = "app.kubernetes.io/component"
HELM_CHART_LABEL = "helm.sh/chart"

CONTROLLER_APP_NAMES = ("ingress-nginx", "nginx-ingress", "nginx-ingress-controller")
CONTROLLER_CHART_MARKERS = ("ingress-nginx", "nginx-ingress")
CONTROLLER_KINDS = ("Deployment", "DaemonSet", "Service", "ConfigMap")


def _in_list(value: Optional[str], names: Sequence[str]) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return any(lowered == name.lower() for name in names)


# ----------------------------------------------------------------------
# Ingress class
# ----------------------------------------------------------------------
def class_rule(class_names: Sequence[str] = DEFAULT_INGRESS_CLASS_NAMES) -> Rule:
    names = tuple(class_names)

    def legacy_class(resource: NormalizedResource) -> Optional[str]:
        value = resource.annotations.get(LEGACY_INGRESS_CLASS_ANNOTATION)
        return value if _in_list(value, names) else None

    def matches(resource: NormalizedResource) -> bool:
        if not resource.is_ingress:
            return False
        return _in_list(resource.ingress_class_name, names) or legacy_class(resource) is not None

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        patterns: List[str] = []
        if _in_list(resource.ingress_class_name, names):
            patterns.append(f"spec.ingressClassName: {resource.ingress_class_name}")
        legacy = legacy_class(resource)
        if legacy is not None:
            patterns.append(f"annotation {LEGACY_INGRESS_CLASS_ANNOTATION}: {legacy}")
        return Evidence(ingress_class_name=resource.ingress_class_name, matched_patterns=tuple(patterns))

    def format_message(resource: NormalizedResource) -> str:
        if resource.ingress_class_name:
            source = f"ingressClassName '{resource.ingress_class_name}'"
        else:
            source = "legacy annotation"
        return f"Ingress '{resource}' uses ingress-nginx controller via {source}"

    return Rule(
        id=CLASS_RULE_ID,
        title="NGINX IngressClass detected",
        category=DETECTION,
        default_severity=Severity.INFO,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources configured to use the ingress-nginx controller via "
            "spec.ingressClassName or the legacy kubernetes.io/ingress.class annotation."
        ),
        recommendations=(
            "Plan migration to an alternative Ingress controller (e.g., Envoy Gateway, Istio, Traefik)",
            "Review the ingress-nginx retirement timeline and plan accordingly",
            "Consider using Gateway API as a future-proof alternative",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        tags=("ingress-class", "detection"),
        references=("https://kubernetes.io/docs/concepts/services-networking/ingress/#ingress-class",),
    )


# ----------------------------------------------------------------------
# Annotation prefixes
# ----------------------------------------------------------------------
def annotation_prefix_rule(prefixes: Sequence[str] = DEFAULT_ANNOTATION_PREFIXES) -> Rule:
    lowered = tuple(prefix.lower() for prefix in prefixes)

    def matching_keys(resource: NormalizedResource) -> List[str]:
        return [key for key in resource.annotations if key.lower().startswith(lowered)]

    def matches(resource: NormalizedResource) -> bool:
        return resource.is_ingress and bool(matching_keys(resource))

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        return Evidence(annotations=redactor.matching(resource.annotations, prefixes))

    def format_message(resource: NormalizedResource) -> str:
        return f"Ingress '{resource}' has {len(matching_keys(resource))} NGINX-specific annotation(s)"

    return Rule(
        id=ANNOTATION_PREFIX_RULE_ID,
        title="NGINX-specific annotations detected",
        category=DETECTION,
        default_severity=Severity.INFO,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources with annotations using ingress-nginx specific prefixes "
            "(nginx.ingress.kubernetes.io/* or nginx.org/*). These annotations configure NGINX-specific "
            "behavior that will need migration."
        ),
        recommendations=(
            "Document all NGINX-specific annotations in use",
            "Map annotation functionality to equivalent features in target controller",
            "Test annotation migration in a non-production environment first",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        tags=("annotations", "detection"),
    )


# ----------------------------------------------------------------------
# Controller components
# ----------------------------------------------------------------------
def _matched_controller_labels(resource: NormalizedResource) -> Dict[str, str]:
    labels = resource.labels
    matched: Dict[str, str] = {}
    app_name = labels.get(APP_NAME_LABEL)
    if _in_list(app_name, CONTROLLER_APP_NAMES):
        matched[APP_NAME_LABEL] = app_name
    chart = labels.get(HELM_CHART_LABEL)
    if chart and chart.lower().startswith(CONTROLLER_CHART_MARKERS):
        matched[HELM_CHART_LABEL] = chart
    instance = labels.get(APP_INSTANCE_LABEL)
    if instance and any(marker in instance.lower() for marker in CONTROLLER_CHART_MARKERS):
        matched[APP_INSTANCE_LABEL] = instance
    return matched


def _is_nginx_controller_component(resource: NormalizedResource) -> bool:
    component = resource.labels.get(APP_COMPONENT_LABEL, "")
    app_name = resource.labels.get(APP_NAME_LABEL, "")
    return component.lower() == "controller" and "nginx" in app_name.lower()


def controller_rule() -> Rule:
    def matches(resource: NormalizedResource) -> bool:
        if not resource.kind_in(*CONTROLLER_KINDS):
            return False
        return bool(_matched_controller_labels(resource)) or _is_nginx_controller_component(resource)

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        matched = _matched_controller_labels(resource)
        return Evidence(
            labels=matched,
            matched_patterns=tuple(f"{key}={value}" for key, value in matched.items()),
        )

    def format_message(resource: NormalizedResource) -> str:
        return f"NGINX Ingress controller {resource.kind} '{resource}' detected"

    return Rule(
        id=CONTROLLER_RULE_ID,
        title="NGINX Ingress controller component detected",
        category=DETECTION,
        default_severity=Severity.INFO,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects ingress-nginx controller components (Deployments, DaemonSets, Services) "
            "via standard Kubernetes labels like app.kubernetes.io/name=ingress-nginx or "
            "Helm chart labels. This indicates an ingress-nginx installation in the cluster."
        ),
        recommendations=(
            "Document the ingress-nginx controller version and configuration",
            "Identify all Ingress resources depending on this controller",
            "Plan controller replacement with migration timeline",
            "Consider running new and old controllers in parallel during migration",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        tags=("controller", "detection"),
    )


def get_rules(
    class_names: Sequence[str] = DEFAULT_INGRESS_CLASS_NAMES,
    prefixes: Sequence[str] = DEFAULT_ANNOTATION_PREFIXES,
) -> List[Rule]:
    return [class_rule(class_names), annotation_prefix_rule(prefixes), controller_rule()]
