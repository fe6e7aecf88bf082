"""
Shared helpers for configuring the Kubernetes Python client and resolving
the credentials Grafana uses to query Prometheus.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Literal, Optional

import kopf
from kubernetes import client, config as kube_config

from ..errors import ConfigurationError

# Only attached secrets whose name contains this are considered token secrets.
TOKEN_SECRET_MARKER = "token"
TOKEN_SECRET_KEY = "token"


class KubernetesConfigurationError(ConfigurationError):
    """Raised when the Kubernetes client cannot be configured."""


def configure_kube_client(
    logger: Optional[logging.Logger] = None,
    *,
    kubeconfig_path: Optional[str] = None,
) -> Literal["in-cluster", "kubeconfig"]:
    """
    Configure the Kubernetes client, preferring in-cluster credentials when available.

    Args:
        logger: Logger used to emit informational/error messages. If omitted a
            module-level logger will be used.
        kubeconfig_path: Explicit path to a kubeconfig file. When provided the
            function will only attempt to configure the client from this path.

    Returns:
        A string describing the configuration source used.

    Raises:
        KubernetesConfigurationError: If the client could not be configured.
    """

    effective_logger = logger or logging.getLogger(__name__)

    if kubeconfig_path:
        try:
            kube_config.load_kube_config(config_file=kubeconfig_path)
        except kube_config.ConfigException as exc:
            message = (
                "Could not configure Kubernetes client "
                f"from kubeconfig '{kubeconfig_path}'."
            )
            effective_logger.error("%s %s", message, exc)
            raise KubernetesConfigurationError(message) from exc

        effective_logger.info("Using kubeconfig at '%s'.", kubeconfig_path)
        return "kubeconfig"

    try:
        kube_config.load_incluster_config()
        effective_logger.info("Using in-cluster Kubernetes configuration.")
        return "in-cluster"
    except kube_config.ConfigException as incluster_error:
        try:
            kube_config.load_kube_config()
            effective_logger.info("Using local kubeconfig.")
            return "kubeconfig"
        except kube_config.ConfigException as kubeconfig_error:
            message = (
                "Unable to configure Kubernetes client using either "
                "in-cluster credentials or the default kubeconfig."
            )
            effective_logger.error(message)
            effective_logger.debug(
                "In-cluster configuration error: %s",
                incluster_error,
            )
            effective_logger.debug(
                "Default kubeconfig error: %s",
                kubeconfig_error,
            )
            raise KubernetesConfigurationError(message) from kubeconfig_error


def login_via_configured_client() -> kopf.ConnectionInfo:
    """
    Hand the credentials loaded by `configure_kube_client` over to kopf.

    kopf's own `login_via_client` reloads the default kubeconfig, which would
    ignore an explicit `--kubeconfig`; this reads the already-loaded default
    configuration instead.
    """
    configuration = client.Configuration.get_default_copy()
    header = configuration.get_api_key_with_prefix("authorization")
    parts = header.split(" ", 1) if header else []
    if len(parts) == 2:
        scheme, token = parts
    elif len(parts) == 1:
        scheme, token = None, parts[0]
    else:
        scheme, token = None, None

    return kopf.ConnectionInfo(
        server=configuration.host,
        ca_path=configuration.ssl_ca_cert,
        insecure=not configuration.verify_ssl,
        username=configuration.username or None,
        password=configuration.password or None,
        scheme=scheme,
        token=token,
        certificate_path=configuration.cert_file,
        private_key_path=configuration.key_file,
    )


def resolve_service_account_token(
    core_v1: client.CoreV1Api,
    namespace: str,
    name: str,
    logger: Optional[logging.Logger] = None,
) -> str:
    """
    Find the bearer token of a service account.

    The token is read from the first secret attached to the service account
    whose name contains "token".

    Raises:
        ConfigurationError: If the service account, its token secret or the
            token itself cannot be found.
    """
    effective_logger = logger or logging.getLogger(__name__)

    try:
        service_account = core_v1.read_namespaced_service_account(
            name=name, namespace=namespace
        )
    except client.ApiException as exc:
        raise ConfigurationError(
            f"Failed to retrieve service account '{namespace}/{name}': {exc.reason}"
        ) from exc

    secret_name = next(
        (
            ref.name
            for ref in service_account.secrets or []
            if ref.name and TOKEN_SECRET_MARKER in ref.name
        ),
        None,
    )
    if secret_name is None:
        raise ConfigurationError(
            f"Service account '{namespace}/{name}' has no attached token secret."
        )

    try:
        secret = core_v1.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.ApiException as exc:
        raise ConfigurationError(
            f"Failed to retrieve secret '{namespace}/{secret_name}': {exc.reason}"
        ) from exc

    encoded = (secret.data or {}).get(TOKEN_SECRET_KEY)
    if not encoded:
        raise ConfigurationError(
            f"Secret '{namespace}/{secret_name}' has no '{TOKEN_SECRET_KEY}' field."
        )

    try:
        token = base64.b64decode(encoded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ConfigurationError(
            f"Secret '{namespace}/{secret_name}' holds a malformed token."
        ) from exc

    effective_logger.info(
        f"Resolved Prometheus token from secret '{namespace}/{secret_name}'."
    )
    return token
