from tiresias.crds.prometheus import Prometheus
from tiresias.operator.translator import datasource_name, standard_proxy_url, translate
from tests.conftest import CLUSTER_NAME, PROMETHEUS_TOKEN, PUBLIC_ADDRESS
from tests.helpers import build_prometheus_body


def _translate(resource: Prometheus):
    return translate(
        resource,
        cluster_name=CLUSTER_NAME,
        public_address=PUBLIC_ADDRESS,
        token=PROMETHEUS_TOKEN,
    )


def test_translate_standard_resource(prometheus):
    datasource = _translate(prometheus)

    assert datasource.name == "prod:monitoring:prom-a"
    assert datasource.url == (
        "https://api.example.com/api/v1/namespaces/monitoring/services/prom-a:9090/proxy/"
    )
    assert datasource.type == "prometheus"
    assert datasource.access == "proxy"
    assert datasource.id is None
    assert datasource.json_data == {
        "httpMethod": "GET",
        "httpHeaderName1": "Authorization",
    }
    assert datasource.secure_json_data == {"httpHeaderValue1": "Bearer prometheus-token"}


def test_translate_prefers_external_url():
    resource = Prometheus.from_dict(
        build_prometheus_body(external_url="https://prom-a.example.com/")
    )

    assert _translate(resource).url == "https://prom-a.example.com/"


def test_translate_ignores_empty_external_url():
    resource = Prometheus.from_dict(
        build_prometheus_body(name="prom-b", namespace="team-x", external_url="")
    )

    assert _translate(resource).url == standard_proxy_url(
        PUBLIC_ADDRESS, "team-x", "prom-b"
    )


def test_translate_is_deterministic(prometheus):
    first = _translate(prometheus)
    second = _translate(Prometheus.from_dict(build_prometheus_body()))

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_datasource_names_do_not_collide():
    triples = [
        ("prod", "monitoring", "prom-a"),
        ("prod", "monitoring", "prom-b"),
        ("prod", "team-x", "prom-a"),
        ("staging", "monitoring", "prom-a"),
        ("prod-monitoring", "prom", "a"),
    ]

    names = {datasource_name(*triple) for triple in triples}

    assert len(names) == len(triples)
    # Namespaces and names never contain ':', so the triple is recoverable.
    for triple in triples:
        assert tuple(datasource_name(*triple).rsplit(":", 2)) == triple


def test_to_dict_matches_grafana_payload(prometheus):
    body = _translate(prometheus).with_id(7).to_dict()

    assert body == {
        "id": 7,
        "name": "prod:monitoring:prom-a",
        "type": "prometheus",
        "access": "proxy",
        "url": "https://api.example.com/api/v1/namespaces/monitoring/services/prom-a:9090/proxy/",
        "jsonData": {"httpMethod": "GET", "httpHeaderName1": "Authorization"},
        "secureJsonData": {"httpHeaderValue1": "Bearer prometheus-token"},
    }
