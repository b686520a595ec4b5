"""Kubernetes API access with a bounded number of in-flight calls."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Protocol, Tuple

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from ..config import DEFAULT_API_CONCURRENCY
from ..errors import NamespaceListingError, SourceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_KUBECONFIG = Path.home() / ".kube" / "config"

FALLBACK_API_VERSIONS: Dict[str, str] = {
    "Ingress": "networking.k8s.io/v1",
    "Deployment": "apps/v1",
    "DaemonSet": "apps/v1",
    "Service": "v1",
    "ConfigMap": "v1",
}


class ClusterApi(Protocol):
    """Blocking cluster calls; ``BoundedClusterClient`` runs them in threads."""

    def list_namespaces(self) -> List[str]:
        ...

    def list_namespaced(self, kind: str, namespace: str, label_selector: Optional[str] = None) -> List[Dict[str, Any]]:
        ...


class KubernetesApi:
    """``ClusterApi`` backed by the official ``kubernetes`` client."""

    def __init__(self, api_client: client.ApiClient, context: Optional[str] = None) -> None:
        self.api_client = api_client
        self.context = context
        self._core = client.CoreV1Api(api_client)
        self._apps = client.AppsV1Api(api_client)
        self._networking = client.NetworkingV1Api(api_client)
        self._listers = {
            "Ingress": self._networking.list_namespaced_ingress,
            "Deployment": self._apps.list_namespaced_deployment,
            "DaemonSet": self._apps.list_namespaced_daemon_set,
            "Service": self._core.list_namespaced_service,
            "ConfigMap": self._core.list_namespaced_config_map,
        }

    def list_namespaces(self) -> List[str]:
        response = self._core.list_namespace()
        return [item.metadata.name for item in response.items if item.metadata and item.metadata.name]

    def list_namespaced(self, kind: str, namespace: str, label_selector: Optional[str] = None) -> List[Dict[str, Any]]:
        lister = self._listers.get(kind)
        if lister is None:
            raise ValueError(f"Unsupported resource kind: {kind}")
        kwargs = {"label_selector": label_selector} if label_selector else {}
        response = lister(namespace, **kwargs)
        return [self.api_client.sanitize_for_serialization(item) for item in response.items]


@dataclass(frozen=True)
class NamespaceResult:
    """Outcome of listing one kind in one namespace."""

    namespace: str
    kind: str
    items: Tuple[Dict[str, Any], ...] = ()
    error: Optional[NamespaceListingError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, ApiException):
        return f"({exc.status}) {exc.reason}"
    return str(exc)


class BoundedClusterClient:
    """Fan out namespaced list calls under one shared permit pool.

    Every call, including the namespace listing, holds a permit for its
    duration. Results are delivered in completion order.
    """

    def __init__(self, api: ClusterApi, max_concurrency: int = DEFAULT_API_CONCURRENCY) -> None:
        self.api = api
        self.max_concurrency = max(1, int(max_concurrency))
        self._semaphore = asyncio.Semaphore(self.max_concurrency)

    async def list_namespaces(self) -> List[str]:
        async with self._semaphore:
            return await asyncio.to_thread(self.api.list_namespaces)

    async def list_namespaced(
        self,
        kind: str,
        namespaces: Iterable[str],
        label_selector: Optional[str] = None,
    ) -> AsyncIterator[NamespaceResult]:
        tasks = [
            asyncio.create_task(self._fetch(kind, namespace, label_selector), name=f"list-{kind}-{namespace}")
            for namespace in namespaces
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fetch(self, kind: str, namespace: str, label_selector: Optional[str]) -> NamespaceResult:
        async with self._semaphore:
            logger.debug("Listing %ss in namespace %s", kind, namespace)
            try:
                items = await asyncio.to_thread(self.api.list_namespaced, kind, namespace, label_selector)
            except Exception as exc:
                error = NamespaceListingError(kind, namespace, describe_error(exc))
                logger.warning("Failed to list %ss in namespace %s: %s", kind, namespace, error)
                return NamespaceResult(namespace, kind, error=error)
        return NamespaceResult(namespace, kind, tuple(items))


# ----------------------------------------------------------------------
# Authentication
# ----------------------------------------------------------------------
def _resolve_kubeconfig(kubeconfig: Optional[str]) -> Optional[Path]:
    if kubeconfig:
        path = Path(kubeconfig).expanduser()
        if not path.is_file():
            raise SourceUnavailable(f"Kubeconfig file not found at specified path: {path}")
        return path
    env_value = os.environ.get("KUBECONFIG")
    if env_value:
        first = Path(env_value.split(os.pathsep)[0]).expanduser()
        if first.is_file():
            return first
    if DEFAULT_KUBECONFIG.is_file():
        return DEFAULT_KUBECONFIG
    return None


def _in_cluster() -> bool:
    return bool(os.environ.get("KUBERNETES_SERVICE_HOST")) and bool(os.environ.get("KUBERNETES_SERVICE_PORT"))


def create_kubernetes_api(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> KubernetesApi:
    """Build a ``KubernetesApi`` from the first configuration found.

    Order: explicit kubeconfig, ``KUBECONFIG``, ``~/.kube/config``, then
    in-cluster service account.

    Raises:
        SourceUnavailable: no usable configuration or unknown context.
    """
    path = _resolve_kubeconfig(kubeconfig)
    if path is not None:
        try:
            contexts, active = config.list_kube_config_contexts(config_file=str(path))
            names = [entry["name"] for entry in contexts or []]
            if context and context not in names:
                raise SourceUnavailable(
                    f"Context '{context}' not found in kubeconfig. Available contexts: {', '.join(names)}"
                )
            api_client = config.new_client_from_config(config_file=str(path), context=context)
        except ConfigException as exc:
            raise SourceUnavailable(f"Invalid kubeconfig {path}: {exc}") from exc
        logger.info("Using kubeconfig %s", path)
        return KubernetesApi(api_client, context or (active or {}).get("name"))

    if _in_cluster():
        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
        except ConfigException as exc:
            raise SourceUnavailable(f"In-cluster configuration failed: {exc}") from exc
        logger.info("Using in-cluster service account")
        return KubernetesApi(client.ApiClient(configuration), "in-cluster")

    raise SourceUnavailable(
        "Could not find Kubernetes configuration. Provide --kubeconfig, set KUBECONFIG, "
        "ensure ~/.kube/config exists, or run in-cluster."
    )


def current_context_name(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> Optional[str]:
    """Name of the context a scan will use, for report metadata."""

    if context:
        return context
    try:
        path = _resolve_kubeconfig(kubeconfig)
    except SourceUnavailable:
        return None
    if path is None:
        return "in-cluster" if _in_cluster() else None
    try:
        _, active = config.list_kube_config_contexts(config_file=str(path))
    except ConfigException:
        return None
    return (active or {}).get("name")
