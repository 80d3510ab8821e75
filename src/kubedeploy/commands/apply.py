import os
from pathlib import Path

from loguru import logger
from typer import Argument, Exit, Option

from kubedeploy.config import DeployConfigFile
from kubedeploy.credentials import CredentialResolutionError
from kubedeploy.deploy import KubernetesDeploy
from kubedeploy.loader import split_patterns
from kubedeploy.monitor import LoggingUpdateMonitor

from . import app, connect, exit_with


@app.command()
def apply(
    patterns: list[str] = Argument(
        None,
        help="Glob patterns of the manifest files to apply, relative to the directory of the configuration file. "
        "Comma separated lists are accepted. Overrides the `configs` of the configuration file.",
    ),
    config_file: Path = Option(
        None,
        "--config",
        "-c",
        help="The configuration file. Defaults to the `kubedeploy.yaml` in the current directory or its parents.",
    ),
    kubeconfig: Path = Option(None, envvar="KUBECONFIG", help="The kubeconfig file to use."),
    context: str = Option(None, help="The kubeconfig context to use. Defaults to the current context."),
    in_cluster: bool = Option(
        False, help="Use the in-cluster Kubernetes configuration. The --kubeconfig and --context options are ignored."
    ),
    substitute: bool = Option(
        None,
        "--substitute/--no-substitute",
        help="Substitute `${VARIABLE}` placeholders in the manifests with environment variables. Overrides the "
        "`enable_config_substitution` option of the configuration file.",
        show_default=False,
    ),
    diff: bool = Option(False, help="Log a diff for every object that is updated."),
) -> None:
    """
    Apply Kubernetes manifests to a cluster. Objects that do not exist are created, existing objects are patched.
    Objects are never deleted.

    If `docker_credentials` are configured, an image pull secret with the credentials is created first and attached
    to the configured service account.
    """

    loaded = DeployConfigFile.load(config_file)
    config = loaded.config
    if patterns:
        config.configs = [pattern for value in patterns for pattern in split_patterns(value)]
    if substitute is not None:
        config.enable_config_substitution = substitute
    if not config.configs:
        logger.error("No manifest files to apply. Pass patterns or set `configs` in the configuration file.")
        raise Exit(1)

    deploy = KubernetesDeploy(connect(kubeconfig, context, in_cluster), monitor=LoggingUpdateMonitor(diff=diff))
    try:
        result = deploy.run(config, loaded.root, dict(os.environ))
    except (CredentialResolutionError, ValueError) as exc:
        logger.error("{}", exc)
        raise Exit(1)

    exit_with(result)
