"""
This file contains shared fixtures for all tests.
"""
from unittest.mock import MagicMock

import pytest

from tiresias.crds.prometheus import Prometheus
from tiresias.grafana.client import GrafanaClient
from tiresias.operator.config import OperatorConfig
from tiresias.operator.reconciler import DatasourceReconciler
from tests.helpers import build_prometheus_body

CLUSTER_NAME = "prod"
PUBLIC_ADDRESS = "https://api.example.com"
PROMETHEUS_TOKEN = "prometheus-token"


@pytest.fixture
def prometheus() -> Prometheus:
    """The `monitoring/prom-a` resource without an external URL."""
    return Prometheus.from_dict(build_prometheus_body())


@pytest.fixture
def mock_grafana() -> MagicMock:
    """A GrafanaClient double whose calls can be asserted on."""
    return MagicMock(spec=GrafanaClient)


@pytest.fixture
def reconciler(mock_grafana: MagicMock) -> DatasourceReconciler:
    return DatasourceReconciler(
        mock_grafana,
        cluster_name=CLUSTER_NAME,
        public_address=PUBLIC_ADDRESS,
        token=PROMETHEUS_TOKEN,
    )


@pytest.fixture
def operator_config() -> OperatorConfig:
    return OperatorConfig(
        cluster_name=CLUSTER_NAME,
        service_account_namespace="monitoring",
        service_account_name="grafana",
        kubernetes_public_address=PUBLIC_ADDRESS,
        grafana_url="https://grafana.example.com",
        grafana_token="grafana-token",
    )
