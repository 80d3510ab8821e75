"""
Manage the image pull secret for the registries configured in `kubedeploy.yaml`.
"""

from pathlib import Path

from loguru import logger
from typer import Exit, Option

from kubedeploy.config import DeployConfig, DeployConfigFile
from kubedeploy.credentials import CredentialResolutionError, resolve_endpoints
from kubedeploy.deploy import KubernetesDeploy
from kubedeploy.monitor import LoggingUpdateMonitor
from kubedeploy.pullsecret import ResolvedRegistryEndpoint, pull_secret_name

from . import connect, exit_with, new_typer

app = new_typer(name="pull-secret", help=__doc__)


def _resolve(config_file: Path | None) -> tuple[DeployConfig, list[ResolvedRegistryEndpoint], str]:
    config = DeployConfigFile.load(config_file).config
    if not config.wants_pull_secret:
        logger.error("No `docker_credentials` are configured.")
        raise Exit(1)
    try:
        endpoints = resolve_endpoints(config.credential_resolver, config.docker_credentials)
        name = config.secret_name or pull_secret_name(endpoints, config.secret_name_prefix)
    except (CredentialResolutionError, ValueError) as exc:
        logger.error("{}", exc)
        raise Exit(1)
    return config, endpoints, name


@app.command()
def name(
    config_file: Path = Option(None, "--config", "-c", help="The configuration file."),
) -> None:
    """
    Print the name of the image pull secret.
    """

    print(_resolve(config_file)[2])


@app.command()
def ensure(
    config_file: Path = Option(None, "--config", "-c", help="The configuration file."),
    kubeconfig: Path = Option(None, envvar="KUBECONFIG", help="The kubeconfig file to use."),
    context: str = Option(None, help="The kubeconfig context to use. Defaults to the current context."),
    in_cluster: bool = Option(False, help="Use the in-cluster Kubernetes configuration."),
) -> None:
    """
    Create or update the image pull secret and attach it to the configured service account.
    """

    config, endpoints, secret_name = _resolve(config_file)
    deploy = KubernetesDeploy(connect(kubeconfig, context, in_cluster), monitor=LoggingUpdateMonitor())
    exit_with(deploy.provision_pull_secret(config, endpoints, secret_name))
