"""
Exception hierarchy shared by the operator, the Grafana client and the CLI.
"""
from typing import Optional


class TiresiasError(Exception):
    """Base class for all errors raised by tiresias."""


class ConfigurationError(TiresiasError):
    """Raised when the operator cannot be configured or bootstrapped."""


class GrafanaAPIError(TiresiasError):
    """Raised when a call against the Grafana HTTP API fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DatasourceNotFoundError(GrafanaAPIError):
    """Raised when Grafana has no datasource with the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Datasource '{name}' not found.", status_code=404)
        self.name = name
