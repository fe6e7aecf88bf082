from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional

from kubernetes import client, watch


@dataclass
class ObjectMeta:
    name: str
    namespace: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    resource_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ObjectMeta":
        """
        Constructs an ObjectMeta from a dictionary, ignoring unknown fields.
        This makes it robust to extra metadata from the Kubernetes API.
        """
        name = data.get("name")
        if not name:
            raise ValueError("Object metadata is missing a name")
        return cls(
            name=name,
            namespace=data.get("namespace"),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            resource_version=data.get("resourceVersion"),
        )

    @property
    def identity(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name


class BaseCustomResource:
    """
    Read-only view of a custom resource kind we do not own.

    Subclasses declare the kind's coordinates; the class methods here only
    ever read from the API server.
    """

    group: str
    version: str
    plural: str
    kind: str

    metadata: ObjectMeta

    @classmethod
    def api_version(cls) -> str:
        return f"{cls.group}/{cls.version}"

    @classmethod
    def matches(cls, data: Mapping[str, Any]) -> bool:
        """Checks that a raw object is of this kind."""
        return (
            data.get("apiVersion") == cls.api_version()
            and data.get("kind") == cls.kind
        )

    @classmethod
    def watch(
        cls,
        watcher: watch.Watch,
        api: client.CustomObjectsApi,
        *,
        resource_version: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
    ) -> Iterator[Dict[str, Any]]:
        """
        Watches all objects of this kind across every namespace.

        Without a resource version the API server starts with a synthetic
        ADDED event for every existing object.
        """
        kwargs: Dict[str, Any] = {
            "group": cls.group,
            "version": cls.version,
            "plural": cls.plural,
            "allow_watch_bookmarks": True,
        }
        if resource_version:
            kwargs["resource_version"] = resource_version
        if timeout_seconds:
            kwargs["timeout_seconds"] = timeout_seconds
        return watcher.stream(api.list_cluster_custom_object, **kwargs)
