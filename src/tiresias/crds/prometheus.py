from dataclasses import dataclass
from typing import Any, Mapping

from .base import BaseCustomResource, ObjectMeta
from .const import (
    CRD_GROUP,
    CRD_KIND_PROMETHEUS,
    CRD_PLURAL_PROMETHEUS,
    CRD_VERSION,
)


@dataclass(frozen=True)
class Prometheus(BaseCustomResource):
    """Snapshot of a Prometheus Operator `Prometheus` resource."""

    group = CRD_GROUP
    version = CRD_VERSION
    plural = CRD_PLURAL_PROMETHEUS
    kind = CRD_KIND_PROMETHEUS

    metadata: ObjectMeta
    external_url: str = ""

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace or ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Prometheus":
        """
        Builds a snapshot from a raw API object.

        Raises:
            ValueError: If the object is not a namespaced Prometheus resource.
        """
        if not cls.matches(data):
            raise ValueError(
                f"Expected {cls.api_version()}/{cls.kind}, got "
                f"{data.get('apiVersion')}/{data.get('kind')}"
            )
        metadata = ObjectMeta.from_dict(data.get("metadata") or {})
        if not metadata.namespace:
            raise ValueError(f"Prometheus '{metadata.name}' has no namespace")
        spec = data.get("spec") or {}
        return cls(metadata=metadata, external_url=spec.get("externalUrl") or "")
