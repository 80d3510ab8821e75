"""
kubedeploy applies Kubernetes manifests to a cluster, creating objects that do not exist and patching those that do,
and provisions an image pull secret for private container registries.
"""

from enum import Enum
from pathlib import Path
import sys
from typing import Any

from kubernetes.config.config_exception import ConfigException
from loguru import logger
from typer import Exit, Option, Typer

from kubedeploy.client import DynamicResourceClient, new_client
from kubedeploy.reconciler.dispatch import ApplyResult, ApplyStatus


def new_typer(**kwargs: Any) -> Typer:
    return Typer(no_args_is_help=True, pretty_exceptions_enable=False, **kwargs)


app = new_typer(help=__doc__)


class LogLevel(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@app.callback()
def _callback(
    log_level: LogLevel = Option(LogLevel.INFO, "--log-level", "-l", help="The log level to use."),
) -> None:
    logger.remove()
    logger.add(sys.stderr, level=log_level.name)


def connect(kubeconfig: Path | None, context: str | None, in_cluster: bool) -> DynamicResourceClient:
    """
    Create a client for the cluster selected on the command line. Exits if the cluster configuration can not be
    loaded.
    """

    try:
        return new_client(kubeconfig, context, in_cluster)
    except (ConfigException, OSError, ValueError) as exc:
        logger.error("Unable to load the Kubernetes configuration: {}", exc)
        raise Exit(1)


def exit_with(result: ApplyResult) -> None:
    """
    Log the errors of an apply and exit with a non-zero status if it did not succeed.
    """

    for warning in result.warnings:
        logger.warning("{}", warning)
    if result.status == ApplyStatus.FATAL:
        logger.error("Nothing was applied: {}", result.load_error)
    elif result.errors:
        logger.error("{} object(s) could not be applied:", len(result.errors))
        for error in result.errors:
            logger.error("  {}", error)
    if not result.ok:
        raise Exit(1)


from . import apply  # noqa: F401,E402
from . import kinds  # noqa: F401,E402
from . import pullsecret  # noqa: E402

app.add_typer(pullsecret.app)
