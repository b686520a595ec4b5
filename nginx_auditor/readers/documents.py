"""Split multi-document YAML and normalize Kubernetes manifests."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import yaml
from yaml.reader import ReaderError

from ..errors import ParseError
from ..resource import INGRESS_KIND, NormalizedResource
from ..utils.fileio import load_yaml, scalar_text

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"

# A "---" line starts a new document; "..." ends one.
_DOCUMENT_START = re.compile(r"^---(?:[ \t].*)?$")
_DOCUMENT_END = re.compile(r"^\.\.\.[ \t]*(?:#.*)?$")
_IGNORABLE = re.compile(r"^\s*(?:#.*)?$")
_DIRECTIVE = re.compile(r"^%[A-Za-z]")


class ParseStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class ParseResult:
    source_path: str
    status: ParseStatus
    resource: Optional[NormalizedResource] = None
    error: Optional[str] = None
    skip_reason: Optional[str] = None

    @classmethod
    def success(cls, source_path: str, resource: NormalizedResource) -> "ParseResult":
        return cls(source_path, ParseStatus.SUCCESS, resource=resource)

    @classmethod
    def skipped(cls, source_path: str, reason: str) -> "ParseResult":
        return cls(source_path, ParseStatus.SKIPPED, skip_reason=reason)

    @classmethod
    def failed(cls, source_path: str, error: str) -> "ParseResult":
        return cls(source_path, ParseStatus.ERROR, error=error)


def split_documents(content: str) -> List[str]:
    """Split a YAML stream into document texts on ``---`` separator lines.

    A leading block made only of comments or blank lines is not a document.
    Text following ``---`` on the separator line stays with its document,
    and ``%`` directives stay with the document they introduce.
    """
    documents: List[str] = []
    current: List[str] = []
    started = False
    for line in content.splitlines():
        if _DOCUMENT_START.match(line):
            if _only_directives(current):
                current = [existing for existing in current if _DIRECTIVE.match(existing)] + [line]
                started = True
                continue
            if started or _has_content(current):
                documents.append("\n".join(current))
            current = [line[3:].lstrip()] if line[3:].strip() else []
            started = True
        elif _DOCUMENT_END.match(line):
            if started or _has_content(current):
                documents.append("\n".join(current))
            current = []
            started = False
        else:
            current.append(line)
    if started or _has_content(current):
        documents.append("\n".join(current))
    return documents


def _has_content(lines: List[str]) -> bool:
    return any(not _IGNORABLE.match(line) for line in lines)


def _only_directives(lines: List[str]) -> bool:
    directives = [line for line in lines if _DIRECTIVE.match(line)]
    return bool(directives) and all(_DIRECTIVE.match(line) or _IGNORABLE.match(line) for line in lines)


def parse_documents(content: str, source_path: str) -> List[ParseResult]:
    """Parse every document of ``content``; one bad document never hides the others."""

    if not content or not content.strip():
        return []

    results: List[ParseResult] = []
    for index, text in enumerate(split_documents(content), start=1):
        try:
            document = load_yaml(text)
        except ReaderError as exc:
            # undecodable input spoils the rest of the stream
            logger.warning("Failed to read YAML stream in %s: %s", source_path, exc)
            results.append(ParseResult.failed(source_path, str(exc)))
            break
        except (yaml.YAMLError, RecursionError) as exc:
            error = ParseError(index, str(exc))
            logger.warning("YAML parse error in %s: %s", source_path, error)
            results.append(ParseResult.failed(source_path, str(error)))
            continue

        if document is None:
            continue
        if not is_kubernetes_resource(document):
            logger.debug("Skipping non-Kubernetes YAML document %d in %s", index, source_path)
            results.append(ParseResult.skipped(source_path, "Not a Kubernetes resource"))
            continue
        try:
            resource = normalize_document(document, source_path)
        except (TypeError, ValueError) as exc:
            error = ParseError(index, str(exc))
            logger.warning("Could not normalize document in %s: %s", source_path, error)
            results.append(ParseResult.failed(source_path, str(error)))
            continue
        results.append(ParseResult.success(source_path, resource))
    return results


def is_kubernetes_resource(document: Any) -> bool:
    return isinstance(document, dict) and "apiVersion" in document and "kind" in document


def normalize_document(
    document: Mapping[str, Any],
    source_path: Optional[str] = None,
    kind: Optional[str] = None,
    api_version: Optional[str] = None,
) -> NormalizedResource:
    """Reduce a manifest mapping to a ``NormalizedResource``.

    ``kind`` and ``api_version`` are fallbacks for API objects that arrive
    without their type fields.
    """
    resolved_kind = _text(document.get("kind")) or kind or ""
    resolved_api_version = _text(document.get("apiVersion")) or api_version or ""
    metadata = _mapping(document.get("metadata"))

    ingress_class_name = None
    if resolved_kind.lower() == INGRESS_KIND.lower():
        ingress_class_name = _text(_mapping(document.get("spec")).get("ingressClassName"))

    return NormalizedResource(
        kind=resolved_kind,
        api_version=resolved_api_version,
        name=_text(metadata.get("name")) or "",
        namespace=_text(metadata.get("namespace")) or DEFAULT_NAMESPACE,
        labels=_string_map(metadata.get("labels")),
        annotations=_string_map(metadata.get("annotations")),
        ingress_class_name=ingress_class_name,
        source_path=source_path,
    )


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return scalar_text(value)


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, dict) else {}


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {
        scalar_text(key): scalar_text(item)
        for key, item in value.items()
        if key is not None and scalar_text(key) and item is not None
    }
