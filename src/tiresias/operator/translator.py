"""
Maps a Prometheus resource onto the Grafana datasource that queries it.

Everything here is pure: the same inputs always produce an equal record.
"""
from ..crds.const import PROMETHEUS_WEB_PORT
from ..crds.prometheus import Prometheus
from ..grafana.datasource import Datasource


def datasource_name(cluster_name: str, namespace: str, name: str) -> str:
    # Kubernetes names never contain ':', so the triple can always be split back.
    return f"{cluster_name}:{namespace}:{name}"


def standard_proxy_url(public_address: str, namespace: str, name: str) -> str:
    """URL of the Prometheus service through the API server's service proxy."""
    return (
        f"{public_address}/api/v1/namespaces/{namespace}"
        f"/services/{name}:{PROMETHEUS_WEB_PORT}/proxy/"
    )


def translate(
    resource: Prometheus,
    *,
    cluster_name: str,
    public_address: str,
    token: str,
) -> Datasource:
    """
    Build the datasource for a Prometheus resource.

    The resource's `externalUrl` wins over the API server proxy URL. The
    returned record carries no id; Grafana assigns one on creation.
    """
    url = resource.external_url or standard_proxy_url(
        public_address, resource.namespace, resource.name
    )
    return Datasource(
        name=datasource_name(cluster_name, resource.namespace, resource.name),
        url=url,
        json_data={
            "httpMethod": "GET",
            "httpHeaderName1": "Authorization",
        },
        secure_json_data={
            "httpHeaderValue1": f"Bearer {token}",
        },
    )
