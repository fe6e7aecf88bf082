import asyncio
import logging
from typing import Any, Optional

import click

from .. import __build_date__, __commit__, __version__
from ..errors import ConfigurationError, GrafanaAPIError
from ..operator.config import OperatorConfig, WatchMode
from ..operator.operator import run_operator

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.command()
@click.version_option(
    __version__,
    "-V",
    "--version",
    message=f"Tiresias v%(version)s-{__commit__} ({__build_date__})",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the operator YAML config file.",
)
@click.option("--kubeconfig", type=str, default=None, help="Path to your kubeconfig file.")
@click.option("--cluster-name", type=str, default=None, help="Name of the Kubernetes cluster.")
@click.option(
    "--service-account-name",
    type=str,
    default=None,
    help="Service account name Grafana should use.",
)
@click.option(
    "--service-account-namespace",
    type=str,
    default=None,
    help="Service account namespace Grafana should use.",
)
@click.option(
    "--kubernetes-public-address",
    type=str,
    default=None,
    help="Public address of the Kubernetes cluster.",
)
@click.option("--grafana-url", type=str, default=None, help="Address of your Grafana instance.")
@click.option(
    "--grafana-token",
    type=str,
    default=None,
    help="Authentication token for the Grafana instance.",
)
@click.option(
    "--grafana-timeout",
    type=float,
    default=None,
    help="Timeout in seconds for Grafana API calls.",
)
@click.option(
    "--watch-mode",
    type=click.Choice([mode.value for mode in WatchMode]),
    default=None,
    help="How to watch Prometheus resources.",
)
@click.option(
    "--watch-timeout-seconds",
    type=int,
    default=None,
    help="Server-side timeout of a single watch request.",
)
@click.option(
    "--reconnect-backoff-initial",
    type=float,
    default=None,
    help="Seconds to wait before reopening a failed watch.",
)
@click.option(
    "--reconnect-backoff-max",
    type=float,
    default=None,
    help="Upper bound for the reconnect delay, in seconds.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(config_path: Optional[str], verbose: bool, **options: Any) -> None:
    """Keep Grafana datasources in sync with Prometheus resources."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT
    )

    try:
        operator_config = OperatorConfig.load(config_path=config_path, overrides=options)
        asyncio.run(run_operator(operator_config))
    except (ConfigurationError, GrafanaAPIError) as exc:
        raise click.ClickException(str(exc)) from exc
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted, exiting.")
