"""Read Ingresses and controller components from a live cluster."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, List, Sequence

from ..resource import NormalizedResource
from . import ReaderOptions
from .documents import normalize_document
from .kube import FALLBACK_API_VERSIONS, BoundedClusterClient, ClusterApi, describe_error

logger = logging.getLogger(__name__)

COMPONENT_KINDS = ("Deployment", "DaemonSet", "Service")
OPT_IN_KINDS = ("ConfigMap",)


def plural(kind: str) -> str:
    return kind + "es" if kind.endswith("s") else kind + "s"


def kinds_to_scan(options: ReaderOptions) -> List[str]:
    """Ingress always; components unless filtered out; ConfigMap only on request."""

    requested = {kind.lower() for kind in options.resource_kinds} if options.resource_kinds is not None else None
    kinds = ["Ingress"]
    for kind in COMPONENT_KINDS:
        if requested is None or kind.lower() in requested:
            kinds.append(kind)
    for kind in OPT_IN_KINDS:
        if requested is not None and kind.lower() in requested:
            kinds.append(kind)
    return kinds


class ClusterResourceReader:
    """Stream namespaced resources through a ``BoundedClusterClient``.

    Listing failures are recorded as warnings; the scan carries on with
    whatever the other namespaces and kinds return.
    """

    def __init__(self, client: BoundedClusterClient) -> None:
        self.client = client
        self.warnings: List[str] = []
        self.errors: List[str] = []

    @classmethod
    def from_api(cls, api: ClusterApi, options: ReaderOptions) -> "ClusterResourceReader":
        return cls(BoundedClusterClient(api, options.max_concurrency))

    async def read_resources(self, options: ReaderOptions) -> AsyncIterator[NormalizedResource]:
        self.warnings.clear()
        self.errors.clear()

        namespaces = await self._namespaces_to_scan(options)
        if not namespaces:
            self.warnings.append("No namespaces available to scan")
            return

        logger.info("Scanning %d namespace(s)", len(namespaces))
        for kind in kinds_to_scan(options):
            async with aclosing(self._read_kind(kind, namespaces, options)) as resources:
                async for resource in resources:
                    yield resource

    async def _read_kind(
        self, kind: str, namespaces: Sequence[str], options: ReaderOptions
    ) -> AsyncIterator[NormalizedResource]:
        fallback = FALLBACK_API_VERSIONS.get(kind, "v1")
        async with aclosing(self.client.list_namespaced(kind, namespaces, options.label_selector)) as results:
            async for result in results:
                if not result.succeeded:
                    self.warnings.append(
                        f"Failed to list {plural(kind)} in namespace '{result.namespace}': {result.error}"
                    )
                    continue
                for item in result.items:
                    yield normalize_document(item, None, kind=kind, api_version=fallback)

    async def _namespaces_to_scan(self, options: ReaderOptions) -> List[str]:
        excluded = set(options.exclude_namespaces or ())
        if options.include_namespaces:
            return sorted(ns for ns in options.include_namespaces if ns not in excluded)
        try:
            listed = await self.client.list_namespaces()
        except Exception as exc:
            logger.warning("Failed to list namespaces: %s", exc)
            self.warnings.append(f"Failed to list namespaces: {describe_error(exc)}")
            return []
        return [ns for ns in listed if ns and ns not in excluded]
