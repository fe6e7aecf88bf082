import json
from typing import Callable, List

import httpx
import pytest

from tiresias.errors import DatasourceNotFoundError, GrafanaAPIError
from tiresias.grafana.client import GrafanaClient
from tiresias.grafana.datasource import Datasource

GRAFANA_URL = "https://grafana.example.com"


def make_client(
    handler: Callable[[httpx.Request], httpx.Response],
    url: str = GRAFANA_URL,
) -> GrafanaClient:
    return GrafanaClient(url, "grafana-token", transport=httpx.MockTransport(handler))


@pytest.fixture
def datasource() -> Datasource:
    return Datasource(
        name="prod:monitoring:prom-a",
        url="https://api.example.com/api/v1/namespaces/monitoring/services/prom-a:9090/proxy/",
        json_data={"httpMethod": "GET", "httpHeaderName1": "Authorization"},
        secure_json_data={"httpHeaderValue1": "Bearer t"},
    )


def test_list_datasources_sends_bearer_token():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "name": "other"}])

    with make_client(handler) as grafana:
        assert grafana.list_datasources() == [{"id": 1, "name": "other"}]

    assert seen[0].method == "GET"
    assert seen[0].url.path == "/api/datasources"
    assert seen[0].headers["Authorization"] == "Bearer grafana-token"


def test_client_honours_url_prefix():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/grafana/api/datasources"
        return httpx.Response(200, json=[])

    with make_client(handler, url=f"{GRAFANA_URL}/grafana/") as grafana:
        grafana.verify()


def test_get_datasource_by_name():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/datasources/name/prod:monitoring:prom-a"
        return httpx.Response(200, json={"id": 9, "name": "prod:monitoring:prom-a"})

    with make_client(handler) as grafana:
        assert grafana.get_datasource_by_name("prod:monitoring:prom-a")["id"] == 9


def test_get_datasource_by_name_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Data source not found"})

    with make_client(handler) as grafana:
        with pytest.raises(DatasourceNotFoundError) as exc_info:
            grafana.get_datasource_by_name("prod:monitoring:missing")

    assert exc_info.value.name == "prod:monitoring:missing"
    assert exc_info.value.status_code == 404


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"name": "prod:monitoring:prom-a"}),
        httpx.Response(200, json={"id": None, "name": "prod:monitoring:prom-a"}),
        httpx.Response(200, json=["prod:monitoring:prom-a"]),
        httpx.Response(200),
    ],
)
def test_get_datasource_by_name_requires_an_id(response):
    with make_client(lambda request: response) as grafana:
        with pytest.raises(GrafanaAPIError) as exc_info:
            grafana.get_datasource_by_name("prod:monitoring:prom-a")

    assert not isinstance(exc_info.value, DatasourceNotFoundError)
    assert "no usable id" in str(exc_info.value)


def test_create_datasource_returns_id(datasource):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/datasources"
        body = json.loads(request.content)
        assert body["name"] == "prod:monitoring:prom-a"
        assert body["secureJsonData"] == {"httpHeaderValue1": "Bearer t"}
        assert "id" not in body
        return httpx.Response(
            200, json={"id": 15, "message": "Datasource added", "name": body["name"]}
        )

    with make_client(handler) as grafana:
        assert grafana.create_datasource(datasource) == 15


def test_update_datasource_puts_by_id(datasource):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        assert request.url.path == "/api/datasources/15"
        assert json.loads(request.content)["id"] == 15
        return httpx.Response(200, json={"message": "Datasource updated"})

    with make_client(handler) as grafana:
        grafana.update_datasource(datasource.with_id(15))


def test_update_datasource_requires_id(datasource):
    with make_client(lambda request: httpx.Response(200)) as grafana:
        with pytest.raises(ValueError):
            grafana.update_datasource(datasource)


def test_delete_datasource_by_name():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.path == "/api/datasources/name/prod:monitoring:prom-a"
        return httpx.Response(200, json={"id": 15, "message": "Data source deleted"})

    with make_client(handler) as grafana:
        grafana.delete_datasource_by_name("prod:monitoring:prom-a")


def test_delete_missing_datasource_raises_not_found():
    with make_client(lambda request: httpx.Response(404)) as grafana:
        with pytest.raises(DatasourceNotFoundError):
            grafana.delete_datasource_by_name("prod:monitoring:prom-a")


def test_http_error_carries_status_and_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Invalid API key"})

    with make_client(handler) as grafana:
        with pytest.raises(GrafanaAPIError) as exc_info:
            grafana.verify()

    assert exc_info.value.status_code == 401
    assert "Invalid API key" in str(exc_info.value)
    assert not isinstance(exc_info.value, DatasourceNotFoundError)


def test_transport_error_becomes_grafana_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with make_client(handler) as grafana:
        with pytest.raises(GrafanaAPIError) as exc_info:
            grafana.list_datasources()

    assert exc_info.value.status_code is None


def test_invalid_json_becomes_grafana_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>login</html>")

    with make_client(handler) as grafana:
        with pytest.raises(GrafanaAPIError):
            grafana.list_datasources()
