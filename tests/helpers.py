"""
Builders for the raw objects the Kubernetes API hands to the operator.
"""
import json
from typing import Any, Dict, List, Optional

from tiresias.crds.const import CRD_GROUP, CRD_KIND_PROMETHEUS, CRD_VERSION


def build_prometheus_body(
    name: str = "prom-a",
    namespace: str = "monitoring",
    external_url: Optional[str] = None,
    resource_version: str = "1",
) -> Dict[str, Any]:
    spec: Dict[str, Any] = {"replicas": 1}
    if external_url is not None:
        spec["externalUrl"] = external_url
    return {
        "apiVersion": f"{CRD_GROUP}/{CRD_VERSION}",
        "kind": CRD_KIND_PROMETHEUS,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": resource_version,
            "uid": f"uid-{namespace}-{name}",
        },
        "spec": spec,
    }


def build_watch_event(event_type: str, body: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": event_type, "object": body}


def build_status(code: int, reason: str, message: str = "", details=None) -> Dict[str, Any]:
    status: Dict[str, Any] = {
        "kind": "Status",
        "apiVersion": "v1",
        "status": "Failure",
        "code": code,
        "reason": reason,
        "message": message,
    }
    if details is not None:
        status["details"] = details
    return status


class FakeWatchResponse:
    """
    Stands in for the urllib3 response `watch.Watch.stream` reads, serving
    one JSON watch event per line.
    """

    def __init__(self, *events: Dict[str, Any]):
        self.status = 200
        self._payload = "".join(json.dumps(event) + "\n" for event in events)
        self.closed = False

    def stream(self, amt=None, decode_content=None):
        yield self._payload.encode("utf-8")

    def close(self) -> None:
        self.closed = True

    def release_conn(self) -> None:
        pass


class FakeCustomObjectsApi:
    """Serves one canned watch response per `list_cluster_custom_object` call."""

    def __init__(self, *responses: FakeWatchResponse):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def list_cluster_custom_object(self, group, version, plural, **kwargs):
        self.calls.append(kwargs)
        return self.responses.pop(0)
