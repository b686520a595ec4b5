"""Resource readers: YAML files, stdin and live clusters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, FrozenSet, List, Optional, Protocol, Tuple

from ..config import DEFAULT_API_CONCURRENCY, DEFAULT_TIMEOUT_SECONDS
from ..resource import NormalizedResource


@dataclass(frozen=True)
class ReaderOptions:
    """Selects which resources a reader emits."""

    include_namespaces: Optional[FrozenSet[str]] = None
    exclude_namespaces: Optional[FrozenSet[str]] = None
    label_selector: Optional[str] = None
    resource_kinds: Optional[FrozenSet[str]] = None
    path: Optional[str] = None
    include_patterns: Optional[Tuple[str, ...]] = None
    exclude_patterns: Optional[Tuple[str, ...]] = None
    max_concurrency: int = DEFAULT_API_CONCURRENCY
    timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS


class ResourceReader(Protocol):
    """Streams normalized resources and records what could not be read."""

    warnings: List[str]
    errors: List[str]

    def read_resources(self, options: ReaderOptions) -> AsyncIterator[NormalizedResource]:
        """Yield resources from the source; failures land in ``warnings``/``errors``."""


__all__ = ["ReaderOptions", "ResourceReader"]
