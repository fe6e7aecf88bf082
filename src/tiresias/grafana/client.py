"""
Thin client for the Grafana datasource HTTP API.
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..errors import DatasourceNotFoundError, GrafanaAPIError
from .datasource import Datasource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class GrafanaClient:
    """
    Authenticated handle on Grafana's `/api/datasources` endpoints.

    Every failure, transport or HTTP, surfaces as a `GrafanaAPIError`.
    Lookups and deletes by name raise `DatasourceNotFoundError` on 404.
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GrafanaClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None
    ) -> Any:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise GrafanaAPIError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            raise GrafanaAPIError(
                f"{method} {path} returned {response.status_code}: "
                f"{_error_message(response)}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GrafanaAPIError(
                f"{method} {path} returned invalid JSON.",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _name_path(name: str) -> str:
        return f"/api/datasources/name/{quote(name, safe='')}"

    def list_datasources(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/datasources") or []

    def verify(self) -> None:
        """Confirms Grafana is reachable and accepts our token."""
        datasources = self.list_datasources()
        logger.info(
            f"Connected to Grafana at {self.url} ({len(datasources)} datasource(s))."
        )

    def get_datasource_by_name(self, name: str) -> Dict[str, Any]:
        """
        Looks a datasource up by name.

        The payload is only returned when it is a mapping carrying an integer
        `id`; anything else is a `GrafanaAPIError`.
        """
        try:
            payload = self._request("GET", self._name_path(name))
        except GrafanaAPIError as exc:
            if exc.status_code == 404:
                raise DatasourceNotFoundError(name) from exc
            raise
        if not isinstance(payload, dict) or not _is_datasource_id(payload.get("id")):
            raise GrafanaAPIError(
                f"Grafana returned no usable id for datasource '{name}'."
            )
        return payload

    def create_datasource(self, datasource: Datasource) -> int:
        """Creates a datasource and returns the id Grafana assigned to it."""
        payload = self._request("POST", "/api/datasources", json=datasource.to_dict())
        try:
            return int(payload["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise GrafanaAPIError(
                f"Grafana did not return an id for datasource '{datasource.name}'."
            ) from exc

    def update_datasource(self, datasource: Datasource) -> None:
        if datasource.id is None:
            raise ValueError(f"Datasource '{datasource.name}' has no id to update")
        self._request(
            "PUT", f"/api/datasources/{datasource.id}", json=datasource.to_dict()
        )

    def delete_datasource_by_name(self, name: str) -> None:
        try:
            self._request("DELETE", self._name_path(name))
        except GrafanaAPIError as exc:
            if exc.status_code == 404:
                raise DatasourceNotFoundError(name) from exc
            raise


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


def _is_datasource_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
