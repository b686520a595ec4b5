"""Exception types raised and recorded by the auditor."""

from __future__ import annotations


class AuditorError(Exception):
    """Base class for all auditor failures."""


class ConfigurationError(AuditorError):
    """Invalid threshold, override, or configuration file content."""


class SourceUnavailable(AuditorError):
    """A whole resource source (directory, stdin, cluster) cannot be read."""


class ParseError(AuditorError):
    """A single YAML document failed to parse."""

    def __init__(self, document_index: int, message: str) -> None:
        super().__init__(f"Document {document_index}: {message}")
        self.document_index = document_index


class NamespaceListingError(AuditorError):
    """Listing one resource kind in one namespace failed."""

    def __init__(self, kind: str, namespace: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.namespace = namespace


class RuleEvaluationError(AuditorError):
    """A rule raised while being evaluated against a resource."""

    def __init__(self, rule_id: str, resource: str, cause: BaseException) -> None:
        super().__init__(f"Rule {rule_id} failed on resource {resource}: {cause}")
        self.rule_id = rule_id
        self.resource = resource
        self.cause = cause
