"""
Reconciliation of Grafana datasources against Prometheus resource events.
"""
import enum
import logging
from typing import Any, Mapping, Optional

from ..crds.prometheus import Prometheus
from ..errors import DatasourceNotFoundError, GrafanaAPIError
from ..grafana.client import GrafanaClient
from .events import EventType, ResourceEvent
from .translator import translate


class ReconcileOutcome(enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    FAILED = "failed"


class DatasourceReconciler:
    """
    Applies one event at a time to Grafana.

    Grafana is the system of record: the datasource id is looked up by name on
    every event and nothing is cached between events. Grafana errors are
    logged and reported as FAILED; the datasource stays out of sync until the
    next event for the same resource.
    """

    def __init__(
        self,
        grafana: GrafanaClient,
        *,
        cluster_name: str,
        public_address: str,
        token: str,
        logger: Optional[logging.Logger] = None,
    ):
        self.grafana = grafana
        self.cluster_name = cluster_name
        self.public_address = public_address
        self.token = token
        self.logger = logger or logging.getLogger(__name__)

    def handle(self, event: ResourceEvent) -> ReconcileOutcome:
        if event.type is EventType.DELETED:
            return self.delete(event.resource)
        return self.create_or_update(event.resource)

    def _translate(self, resource: Prometheus):
        return translate(
            resource,
            cluster_name=self.cluster_name,
            public_address=self.public_address,
            token=self.token,
        )

    def create_or_update(self, resource: Prometheus) -> ReconcileOutcome:
        datasource = self._translate(resource)

        try:
            existing = self.grafana.get_datasource_by_name(datasource.name)
        except DatasourceNotFoundError:
            existing_id = None
        except GrafanaAPIError as e:
            self.logger.error(f"Failed to look up datasource '{datasource.name}': {e}")
            return ReconcileOutcome.FAILED
        else:
            existing_id = _datasource_id(existing)
            if existing_id is None:
                self.logger.error(
                    f"Failed to look up datasource '{datasource.name}': "
                    f"Grafana returned no usable id."
                )
                return ReconcileOutcome.FAILED

        if existing_id is None:
            try:
                self.grafana.create_datasource(datasource)
            except GrafanaAPIError as e:
                self.logger.error(f"Failed to create datasource '{datasource.name}': {e}")
                return ReconcileOutcome.FAILED
            self.logger.info(f"Datasource '{datasource.name}' created.")
            return ReconcileOutcome.CREATED

        try:
            self.grafana.update_datasource(datasource.with_id(existing_id))
        except GrafanaAPIError as e:
            self.logger.error(f"Failed to update datasource '{datasource.name}': {e}")
            return ReconcileOutcome.FAILED
        self.logger.info(f"Datasource '{datasource.name}' updated.")
        return ReconcileOutcome.UPDATED

    def delete(self, resource: Prometheus) -> ReconcileOutcome:
        datasource = self._translate(resource)

        try:
            self.grafana.delete_datasource_by_name(datasource.name)
        except GrafanaAPIError as e:
            self.logger.error(f"Failed to delete datasource '{datasource.name}': {e}")
            return ReconcileOutcome.FAILED
        self.logger.info(f"Datasource '{datasource.name}' deleted.")
        return ReconcileOutcome.DELETED


def _datasource_id(payload: Any) -> Optional[int]:
    if not isinstance(payload, Mapping):
        return None
    value = payload.get("id")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None
