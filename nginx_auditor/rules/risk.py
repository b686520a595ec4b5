"""Flag ingress-nginx features that make a controller migration risky."""

from __future__ import annotations

from typing import Dict, List, Sequence

from ..redaction import Redactor
from ..resource import NormalizedResource
from ..result import MIGRATION_RISK, Evidence, RedactedAnnotation
from ..severity import Confidence, Severity
from . import Rule

NGINX_PREFIX = "nginx.ingress.kubernetes.io/"

SNIPPET_RULE_ID = "RISK-SNIPPET-001"
REGEX_RULE_ID = "RISK-REGEX-001"
REWRITE_RULE_ID = "RISK-REWRITE-001"
AUTH_RULE_ID = "RISK-AUTH-001"
TLS_REDIRECT_RULE_ID = "RISK-TLS-REDIRECT-001"

SERVER_SNIPPET = NGINX_PREFIX + "server-snippet"
SNIPPET_ANNOTATIONS = (
    SERVER_SNIPPET,
    NGINX_PREFIX + "configuration-snippet",
    NGINX_PREFIX + "location-snippet",
    NGINX_PREFIX + "auth-snippet",
    NGINX_PREFIX + "modsecurity-snippet",
)

USE_REGEX = NGINX_PREFIX + "use-regex"

REWRITE_TARGET = NGINX_PREFIX + "rewrite-target"
REWRITE_ANNOTATIONS = (
    REWRITE_TARGET,
    NGINX_PREFIX + "app-root",
    NGINX_PREFIX + "x-forwarded-prefix",
)

AUTH_URL = NGINX_PREFIX + "auth-url"
AUTH_TYPE = NGINX_PREFIX + "auth-type"
AUTH_SECRET = NGINX_PREFIX + "auth-secret"
EXTERNAL_AUTH_ANNOTATIONS = (
    AUTH_URL,
    NGINX_PREFIX + "auth-signin",
    NGINX_PREFIX + "auth-signin-redirect-param",
    NGINX_PREFIX + "auth-method",
    NGINX_PREFIX + "auth-response-headers",
    NGINX_PREFIX + "auth-request-redirect",
    NGINX_PREFIX + "auth-cache-key",
    NGINX_PREFIX + "auth-cache-duration",
    NGINX_PREFIX + "auth-always-set-cookie",
)
BASIC_AUTH_ANNOTATIONS = (
    AUTH_TYPE,
    AUTH_SECRET,
    NGINX_PREFIX + "auth-secret-type",
    NGINX_PREFIX + "auth-realm",
)
AUTH_ANNOTATIONS = EXTERNAL_AUTH_ANNOTATIONS + BASIC_AUTH_ANNOTATIONS

SSL_REDIRECT = NGINX_PREFIX + "ssl-redirect"
FORCE_SSL_REDIRECT = NGINX_PREFIX + "force-ssl-redirect"
TEMPORAL_REDIRECT = NGINX_PREFIX + "temporal-redirect"
PERMANENT_REDIRECT = NGINX_PREFIX + "permanent-redirect"
REDIRECT_ANNOTATIONS = (SSL_REDIRECT, FORCE_SSL_REDIRECT, TEMPORAL_REDIRECT, PERMANENT_REDIRECT)

MASKED_VALUE = "***"


# ---- Helpers ----
def short_name(key: str) -> str:
    return key.rsplit("/", 1)[-1]


def _present(resource: NormalizedResource, keys: Sequence[str]) -> List[str]:
    return [key for key in keys if key in resource.annotations]


def _is_true(resource: NormalizedResource, key: str) -> bool:
    return resource.annotations.get(key, "").lower() == "true"


def _redact_listed(resource: NormalizedResource, keys: Sequence[str], redactor: Redactor) -> Dict[str, RedactedAnnotation]:
    lowered = {key.lower() for key in keys}
    return {
        key: redactor.annotation(key, value)
        for key, value in resource.annotations.items()
        if key.lower() in lowered
    }


# ----------------------------------------------------------------------
# Snippets
# ----------------------------------------------------------------------
def snippet_rule() -> Rule:
    def matches(resource: NormalizedResource) -> bool:
        return resource.is_ingress and bool(_present(resource, SNIPPET_ANNOTATIONS))

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        annotations = _redact_listed(resource, SNIPPET_ANNOTATIONS, redactor)
        return Evidence(annotations=annotations, matched_patterns=tuple(annotations))

    def dynamic_severity(resource: NormalizedResource) -> Severity:
        if SERVER_SNIPPET in resource.annotations:
            return Severity.CRITICAL
        return Severity.HIGH

    def format_message(resource: NormalizedResource) -> str:
        snippet_types = [short_name(key) for key in _present(resource, SNIPPET_ANNOTATIONS)]
        level = "CRITICAL" if SERVER_SNIPPET in resource.annotations else "HIGH"
        return (
            f"Ingress '{resource}' uses {len(snippet_types)} snippet annotation(s): "
            f"[{', '.join(snippet_types)}] - {level} migration risk"
        )

    return Rule(
        id=SNIPPET_RULE_ID,
        title="NGINX snippet annotations detected",
        category=MIGRATION_RISK,
        default_severity=Severity.HIGH,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources using snippet annotations that inject raw NGINX configuration. "
            "These are high-risk migration blockers as they contain controller-specific configuration "
            "that must be manually translated to the target controller. Server-snippet is particularly "
            "dangerous as it can affect the entire server block configuration."
        ),
        recommendations=(
            "Document the exact NGINX directives used in each snippet",
            "Determine if the functionality can be achieved via standard annotations",
            "Map snippet functionality to Gateway API HTTPRoute policies where possible",
            "Consider using an Envoy filter or Lua script as an alternative",
            "Test thoroughly in non-production before migration",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        dynamic_severity=dynamic_severity,
        rationale="Snippets embed raw NGINX directives that no other controller understands.",
        tags=("snippets", "migration-blocker"),
    )


# ----------------------------------------------------------------------
# Regex paths
# ----------------------------------------------------------------------
def regex_rule() -> Rule:
    def matches(resource: NormalizedResource) -> bool:
        return resource.is_ingress and _is_true(resource, USE_REGEX)

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        annotations = {}
        if USE_REGEX in resource.annotations:
            annotations[USE_REGEX] = redactor.annotation(USE_REGEX, resource.annotations[USE_REGEX])
        return Evidence(annotations=annotations, matched_patterns=(f"{USE_REGEX}=true",))

    def format_message(resource: NormalizedResource) -> str:
        return f"Ingress '{resource}' uses regex path matching - verify patterns work with target controller"

    return Rule(
        id=REGEX_RULE_ID,
        title="Regex path matching enabled",
        category=MIGRATION_RISK,
        default_severity=Severity.MEDIUM,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources with use-regex annotation set to 'true', enabling "
            "regex-based path matching. Regex patterns may need modification when migrating "
            "to controllers with different regex engines or path matching semantics."
        ),
        recommendations=(
            "Document all regex patterns used in Ingress paths",
            "Test regex patterns against target controller's regex engine",
            "Consider simplifying patterns to prefix or exact match where possible",
            "Gateway API HTTPRoute supports regex matching in its PathMatch",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        tags=("paths", "regex"),
    )


# ----------------------------------------------------------------------
# URL rewriting
# ----------------------------------------------------------------------
def rewrite_rule() -> Rule:
    def matches(resource: NormalizedResource) -> bool:
        return resource.is_ingress and bool(_present(resource, REWRITE_ANNOTATIONS))

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        annotations = _redact_listed(resource, REWRITE_ANNOTATIONS, redactor)
        return Evidence(annotations=annotations, matched_patterns=tuple(short_name(key) for key in annotations))

    def format_message(resource: NormalizedResource) -> str:
        if "$" in resource.annotations.get(REWRITE_TARGET, ""):
            note = "uses regex capture groups - requires careful translation"
        else:
            note = "needs migration to target controller's rewrite mechanism"
        return f"Ingress '{resource}' uses URL rewriting - {note}"

    return Rule(
        id=REWRITE_RULE_ID,
        title="URL rewrite patterns detected",
        category=MIGRATION_RISK,
        default_severity=Severity.MEDIUM,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources using rewrite-target annotation for URL path rewriting. "
            "Rewrite patterns, especially those using regex capture groups, require careful "
            "translation when migrating to other controllers."
        ),
        recommendations=(
            "Document all rewrite patterns and their intended behavior",
            "Map rewrite-target to equivalent mechanisms in target controller",
            "Gateway API HTTPRoute supports URLRewrite filter for path modification",
            "Test rewrite behavior thoroughly after migration",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        tags=("paths", "rewrite"),
    )


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------
def auth_type(resource: NormalizedResource) -> str:
    """Label the auth flavour: external, the explicit auth-type, basic, or unknown."""

    annotations = resource.annotations
    if AUTH_URL in annotations:
        return "external"
    if AUTH_TYPE in annotations:
        return annotations[AUTH_TYPE].lower()
    if AUTH_SECRET in annotations:
        return "basic"
    return "unknown"


def auth_rule() -> Rule:
    def matches(resource: NormalizedResource) -> bool:
        return resource.is_ingress and bool(_present(resource, AUTH_ANNOTATIONS))

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        annotations = _redact_listed(resource, AUTH_ANNOTATIONS, redactor)
        patterns = [f"Authentication type: {auth_type(resource)}"]
        patterns.extend(short_name(key) for key in annotations)
        return Evidence(annotations=annotations, matched_patterns=tuple(patterns))

    def format_message(resource: NormalizedResource) -> str:
        count = len(_present(resource, AUTH_ANNOTATIONS))
        return f"Ingress '{resource}' uses {auth_type(resource)} authentication ({count} annotation(s))"

    return Rule(
        id=AUTH_RULE_ID,
        title="External authentication configuration detected",
        category=MIGRATION_RISK,
        default_severity=Severity.MEDIUM,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources configured with external authentication (auth-url, auth-signin) "
            "or basic authentication (auth-type, auth-secret). These configurations integrate with "
            "identity providers or secrets and require careful migration to maintain security."
        ),
        recommendations=(
            "Document the authentication flow and identity provider configuration",
            "Verify target controller supports equivalent auth mechanisms",
            "Consider migrating to Gateway API with ExtAuth extension",
            "Test authentication thoroughly in staging before production migration",
            "Ensure secrets are properly migrated if using basic auth",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        tags=("auth", "security"),
    )


# ----------------------------------------------------------------------
# TLS and redirects
# ----------------------------------------------------------------------
def _active_redirects(resource: NormalizedResource) -> List[str]:
    active = []
    for key in REDIRECT_ANNOTATIONS:
        if key not in resource.annotations:
            continue
        if key in (SSL_REDIRECT, FORCE_SSL_REDIRECT):
            if _is_true(resource, key):
                active.append(key)
        elif resource.annotations[key]:
            active.append(key)
    return active


def tls_redirect_severity(resource: NormalizedResource) -> Severity:
    if _is_true(resource, FORCE_SSL_REDIRECT):
        return Severity.MEDIUM
    if TEMPORAL_REDIRECT in resource.annotations or PERMANENT_REDIRECT in resource.annotations:
        return Severity.MEDIUM
    return Severity.LOW


def tls_redirect_rule() -> Rule:
    def matches(resource: NormalizedResource) -> bool:
        return resource.is_ingress and bool(_active_redirects(resource))

    def collect_evidence(resource: NormalizedResource, redactor: Redactor) -> Evidence:
        annotations = _redact_listed(resource, REDIRECT_ANNOTATIONS, redactor)
        patterns = tuple(
            f"{short_name(key)}={redacted.truncated_value if redacted.truncated_value is not None else MASKED_VALUE}"
            for key, redacted in annotations.items()
        )
        return Evidence(annotations=annotations, matched_patterns=patterns)

    def format_message(resource: NormalizedResource) -> str:
        types = []
        if _is_true(resource, SSL_REDIRECT):
            types.append("ssl-redirect")
        if _is_true(resource, FORCE_SSL_REDIRECT):
            types.append("force-ssl-redirect")
        if TEMPORAL_REDIRECT in resource.annotations:
            types.append("temporal-redirect")
        if PERMANENT_REDIRECT in resource.annotations:
            types.append("permanent-redirect")
        return f"Ingress '{resource}' uses redirect configuration: [{', '.join(types)}]"

    return Rule(
        id=TLS_REDIRECT_RULE_ID,
        title="TLS/SSL redirect configuration detected",
        category=MIGRATION_RISK,
        default_severity=Severity.LOW,
        default_confidence=Confidence.HIGH,
        description=(
            "Detects Ingress resources with SSL/TLS redirect annotations. While ssl-redirect is "
            "commonly supported, force-ssl-redirect and other redirect patterns may need "
            "specific configuration in the target controller."
        ),
        recommendations=(
            "Verify TLS redirect behavior is supported by target controller",
            "Most controllers support automatic HTTPS redirect",
            "Gateway API supports redirect via HTTPRoute filters",
            "Test redirect behavior with both HTTP and HTTPS clients",
        ),
        matches=matches,
        collect_evidence=collect_evidence,
        format_message=format_message,
        dynamic_severity=tls_redirect_severity,
        tags=("tls", "redirect"),
    )


def get_rules() -> List[Rule]:
    return [snippet_rule(), regex_rule(), rewrite_rule(), auth_rule(), tls_redirect_rule()]
