"""Source-agnostic representation of a Kubernetes resource."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

INGRESS_KIND = "Ingress"


@dataclass(frozen=True)
class ResourceReference:
    """Lightweight pointer to the resource a finding was raised against."""

    kind: str
    api_version: str
    name: str
    namespace: str

    def __str__(self) -> str:
        if not self.namespace:
            return f"{self.kind}/{self.name}"
        return f"{self.namespace}/{self.kind}/{self.name}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "kind": self.kind,
            "apiVersion": self.api_version,
            "name": self.name,
            "namespace": self.namespace,
        }


@dataclass(frozen=True)
class NormalizedResource:
    """Canonical resource shape consumed by every rule."""

    kind: str
    api_version: str
    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    ingress_class_name: Optional[str] = None
    source_path: Optional[str] = None

    @property
    def is_ingress(self) -> bool:
        return self.kind.lower() == INGRESS_KIND.lower()

    def kind_in(self, *kinds: str) -> bool:
        lowered = self.kind.lower()
        return any(lowered == kind.lower() for kind in kinds)

    def to_reference(self) -> ResourceReference:
        return ResourceReference(
            kind=self.kind,
            api_version=self.api_version,
            name=self.name,
            namespace=self.namespace,
        )

    def __str__(self) -> str:
        return str(self.to_reference())
