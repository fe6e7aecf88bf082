import enum
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from ..errors import ConfigurationError
from ..grafana.client import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/tiresias/config.yaml"
DEFAULT_GRAFANA_TIMEOUT = DEFAULT_TIMEOUT
DEFAULT_WATCH_TIMEOUT_SECONDS = 300
DEFAULT_RECONNECT_BACKOFF_INITIAL = 1.0
DEFAULT_RECONNECT_BACKOFF_MAX = 60.0


class WatchMode(str, enum.Enum):
    # Cache-backed watch through kopf: replays existing resources and reconnects.
    INFORMER = "informer"
    # Plain watch stream with reconnect-with-backoff.
    WATCH = "watch"


DEFAULT_WATCH_MODE = WatchMode.INFORMER


@dataclass(frozen=True)
class OperatorConfig:
    cluster_name: str
    service_account_namespace: str
    service_account_name: str
    kubernetes_public_address: str
    grafana_url: str
    grafana_token: str
    kubeconfig: Optional[str] = None
    grafana_timeout: float = DEFAULT_GRAFANA_TIMEOUT
    watch_mode: WatchMode = DEFAULT_WATCH_MODE
    watch_timeout_seconds: int = DEFAULT_WATCH_TIMEOUT_SECONDS
    reconnect_backoff_initial: float = DEFAULT_RECONNECT_BACKOFF_INITIAL
    reconnect_backoff_max: float = DEFAULT_RECONNECT_BACKOFF_MAX

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "OperatorConfig":
        """
        Resolve the configuration.

        Each value comes from, in order of precedence: `overrides` (command
        line options), the environment, the YAML config file, the default.

        Raises:
            ConfigurationError: If required values are missing or malformed.
        """
        path = config_path or os.environ.get("TIRESIAS_CONFIG_PATH", DEFAULT_CONFIG_PATH)
        loader = _ValueLoader(_load_config_file(path), overrides or {})

        values = {
            "kubeconfig": loader.get("kubeconfig", "KUBECONFIG", "kubeconfig", None),
            "cluster_name": loader.get(
                "cluster_name", "CLUSTER_NAME", "clusterName", None
            ),
            "service_account_namespace": loader.get(
                "service_account_namespace",
                "SERVICE_ACCOUNT_NAMESPACE",
                "serviceAccountNamespace",
                None,
            ),
            "service_account_name": loader.get(
                "service_account_name",
                "SERVICE_ACCOUNT_NAME",
                "serviceAccountName",
                None,
            ),
            "kubernetes_public_address": loader.get(
                "kubernetes_public_address",
                "KUBERNETES_PUBLIC_ADDRESS",
                "kubernetesPublicAddress",
                None,
            ),
            "grafana_url": loader.get("grafana_url", "GRAFANA_URL", "grafanaUrl", None),
            "grafana_token": loader.get(
                "grafana_token", "GRAFANA_TOKEN", "grafanaToken", None
            ),
            "grafana_timeout": loader.get(
                "grafana_timeout",
                "GRAFANA_TIMEOUT",
                "grafanaTimeout",
                DEFAULT_GRAFANA_TIMEOUT,
                caster=float,
            ),
            "watch_mode": loader.get(
                "watch_mode",
                "TIRESIAS_WATCH_MODE",
                "watchMode",
                DEFAULT_WATCH_MODE,
                caster=WatchMode,
            ),
            "watch_timeout_seconds": loader.get(
                "watch_timeout_seconds",
                "TIRESIAS_WATCH_TIMEOUT_SECONDS",
                "watchTimeoutSeconds",
                DEFAULT_WATCH_TIMEOUT_SECONDS,
                caster=int,
            ),
            "reconnect_backoff_initial": loader.get(
                "reconnect_backoff_initial",
                "TIRESIAS_RECONNECT_BACKOFF_INITIAL",
                "reconnectBackoffInitial",
                DEFAULT_RECONNECT_BACKOFF_INITIAL,
                caster=float,
            ),
            "reconnect_backoff_max": loader.get(
                "reconnect_backoff_max",
                "TIRESIAS_RECONNECT_BACKOFF_MAX",
                "reconnectBackoffMax",
                DEFAULT_RECONNECT_BACKOFF_MAX,
                caster=float,
            ),
        }

        problems = list(loader.errors)
        for attr in _REQUIRED:
            if not values[attr]:
                problems.append(f"missing required setting '{attr}'")
        if problems:
            raise ConfigurationError("Invalid configuration: " + "; ".join(problems))

        return cls(**values)


_REQUIRED = (
    "cluster_name",
    "service_account_namespace",
    "service_account_name",
    "kubernetes_public_address",
    "grafana_url",
    "grafana_token",
)


class _ValueLoader:
    def __init__(self, file_values: Dict[str, Any], overrides: Mapping[str, Any]):
        self.file_values = file_values
        self.overrides = overrides
        self.errors: List[str] = []

    def get(
        self,
        attr: str,
        env_key: str,
        yaml_key: str,
        default: Any,
        caster: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        val = self.overrides.get(attr)
        if val is None:
            val = os.environ.get(env_key, self.file_values.get(yaml_key))
        # An explicit `key: null` in the YAML file means "use the default".
        if val is None:
            val = default
        if caster and val is not None:
            try:
                return caster(val)
            except (TypeError, ValueError):
                self.errors.append(f"invalid value {val!r} for '{attr}'")
                return default
        return val


def _load_config_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)
            logger.info(f"Loaded operator configuration from {path}")
    except FileNotFoundError:
        logger.info(f"Operator config file not found at {path}, using other sources.")
        return {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading operator configuration from {path}: {e}")
        return {}

    if config_data and not isinstance(config_data, dict):
        logger.error(f"Operator configuration at {path} is not a mapping, ignoring it.")
        return {}
    return config_data or {}
