"""Annotation value redaction for evidence and reports."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping

from .result import RedactedAnnotation

HASH_PREFIX_LENGTH = 8
DEFAULT_PREVIEW_LENGTH = 50
ELLIPSIS = "..."


def value_hash_prefix(value: str) -> str:
    """Return the first 8 hex characters of the SHA-256 digest of ``value``."""

    digest = hashlib.sha256(value.encode("utf-8")).hexdigest().upper()
    return digest[:HASH_PREFIX_LENGTH]


def truncate(value: str, max_length: int = DEFAULT_PREVIEW_LENGTH) -> str:
    if len(value) <= max_length:
        return value
    keep = max(max_length - len(ELLIPSIS), 0)
    return value[:keep] + ELLIPSIS


def redact_annotation(
    key: str,
    value: str,
    show_values: bool = False,
    max_preview_length: int = DEFAULT_PREVIEW_LENGTH,
) -> RedactedAnnotation:
    """Reduce an annotation value to its length, hash prefix and optional preview.

    Notes:
        The hash prefix is stable across runs, so unchanged values can be
        compared between reports without the value itself being stored.
    """
    return RedactedAnnotation(
        key=key,
        value_length=len(value),
        value_hash_prefix=value_hash_prefix(value),
        truncated_value=truncate(value, max_preview_length) if show_values else None,
    )


def redact_annotations(
    annotations: Mapping[str, str],
    show_values: bool = False,
    max_preview_length: int = DEFAULT_PREVIEW_LENGTH,
) -> Dict[str, RedactedAnnotation]:
    return {
        key: redact_annotation(key, value, show_values, max_preview_length)
        for key, value in annotations.items()
    }


def redact_matching(
    annotations: Mapping[str, str],
    prefixes: Iterable[str],
    show_values: bool = False,
    max_preview_length: int = DEFAULT_PREVIEW_LENGTH,
) -> Dict[str, RedactedAnnotation]:
    """Redact only the annotations whose key starts with one of ``prefixes``."""

    lowered = [prefix.lower() for prefix in prefixes]
    matching = {
        key: value
        for key, value in annotations.items()
        if any(key.lower().startswith(prefix) for prefix in lowered)
    }
    return redact_annotations(matching, show_values, max_preview_length)


@dataclass(frozen=True)
class Redactor:
    """Carry the output redaction options into rule evaluation."""

    show_values: bool = False
    max_preview_length: int = DEFAULT_PREVIEW_LENGTH

    def annotation(self, key: str, value: str) -> RedactedAnnotation:
        return redact_annotation(key, value, self.show_values, self.max_preview_length)

    def matching(self, annotations: Mapping[str, str], prefixes: Iterable[str]) -> Dict[str, RedactedAnnotation]:
        return redact_matching(annotations, prefixes, self.show_values, self.max_preview_length)
