"""
Startup and main loop of the Prometheus to Grafana datasource operator.

Bootstrap failures (cluster access, service account token, Grafana
reachability) propagate and end the process. Once running, events are
handled strictly one at a time, in delivery order.
"""
import asyncio
import logging
from typing import Optional, Tuple

from kubernetes import client

from ..grafana.client import GrafanaClient
from ..utils.kube import configure_kube_client, resolve_service_account_token
from .config import OperatorConfig, WatchMode
from .reconciler import DatasourceReconciler
from .sources import EventSource, KopfEventSource, WatchEventSource

logger = logging.getLogger(__name__)


def bootstrap(config: OperatorConfig) -> Tuple[GrafanaClient, str]:
    """
    Configure cluster access, resolve the Prometheus token and check Grafana.

    Raises:
        ConfigurationError: If the cluster or the service account token
            cannot be reached.
        GrafanaAPIError: If Grafana cannot be reached with the given token.
    """
    configure_kube_client(logger, kubeconfig_path=config.kubeconfig)

    token = resolve_service_account_token(
        client.CoreV1Api(),
        config.service_account_namespace,
        config.service_account_name,
        logger,
    )

    grafana = GrafanaClient(
        config.grafana_url, config.grafana_token, timeout=config.grafana_timeout
    )
    try:
        grafana.verify()
    except Exception:
        grafana.close()
        raise
    return grafana, token


def build_event_source(config: OperatorConfig) -> EventSource:
    if config.watch_mode is WatchMode.WATCH:
        return WatchEventSource(
            timeout_seconds=config.watch_timeout_seconds,
            backoff_initial=config.reconnect_backoff_initial,
            backoff_max=config.reconnect_backoff_max,
        )
    return KopfEventSource(
        reconnect_backoff=config.reconnect_backoff_initial,
        server_timeout=config.watch_timeout_seconds,
    )


async def run_operator(
    config: OperatorConfig, event_source: Optional[EventSource] = None
) -> None:
    """Bootstrap, then reconcile every event until the event source ends."""
    grafana, token = await asyncio.to_thread(bootstrap, config)
    logger.info(f"Operator started for cluster '{config.cluster_name}'.")

    reconciler = DatasourceReconciler(
        grafana,
        cluster_name=config.cluster_name,
        public_address=config.kubernetes_public_address,
        token=token,
    )
    source = event_source or build_event_source(config)

    try:
        logger.info(f"Watching prometheuses ({config.watch_mode.value} mode)...")
        async for event in source.events():
            logger.debug(f"Handling event: {event}")
            # Reconciliation blocks on Grafana, keep it off the event loop.
            await asyncio.to_thread(reconciler.handle, event)
    finally:
        grafana.close()
    logger.info("Event source closed, operator stopped.")
