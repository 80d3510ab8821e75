from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, overload

import databind.json
from loguru import logger
import yaml

from kubedeploy.credentials import CredentialResolver, NullCredentialResolver, RegistryCredential
from kubedeploy.pullsecret import DEFAULT_SECRET_NAME_PREFIX
from kubedeploy.tools.types import Environment

DEFAULT_NAMESPACE = "default"


@dataclass
class DeployConfig:
    """
    Configuration for deploying a set of manifests, stored in a `kubedeploy.yaml` file.
    """

    configs: list[str] = field(default_factory=list)
    """
    Glob patterns that select the manifest files to apply, relative to the directory of the configuration file.
    """

    enable_config_substitution: bool = True
    """ Substitute `${VARIABLE}` placeholders in the manifest files with environment variables. """

    secret_namespace: str = DEFAULT_NAMESPACE
    """ The namespace to create the image pull secret in. """

    secret_name: str | None = None
    """ The name of the image pull secret. Derived from the credentials if not set. """

    secret_name_prefix: str = DEFAULT_SECRET_NAME_PREFIX
    """ The prefix of the derived image pull secret name. """

    service_account: str | None = "default"
    """ The service account in the secret namespace to attach the pull secret to. Null disables attaching. """

    docker_credentials: list[RegistryCredential] = field(default_factory=list)
    """ The registries to include in the image pull secret. """

    credentials: CredentialResolver | None = None
    """ Resolves the credentials referenced in `docker_credentials`. """

    @property
    def effective_secret_namespace(self) -> str:
        return self.secret_namespace.strip() or DEFAULT_NAMESPACE

    @property
    def credential_resolver(self) -> CredentialResolver:
        return self.credentials if self.credentials is not None else NullCredentialResolver()

    @property
    def wants_pull_secret(self) -> bool:
        return any(credential.credentials_id.strip() for credential in self.docker_credentials)

    def secret_variables(self, secret_name: str) -> Environment:
        """
        The variables that expose the pull secret to manifest substitution.
        """

        return {"KUBERNETES_SECRET_NAME": secret_name, "KUBERNETES_SECRET_NAMESPACE": self.effective_secret_namespace}


@dataclass
class DeployConfigFile:
    """
    Wrapper for the configuration file.
    """

    FILENAME = "kubedeploy.yaml"

    file: Path | None
    config: DeployConfig

    @property
    def root(self) -> Path:
        """
        The directory that manifest patterns are relative to.
        """

        return self.file.parent if self.file is not None else Path.cwd()

    @overload
    @staticmethod
    def find(cwd: Path | None = None, required: Literal[True] = True) -> Path: ...

    @overload
    @staticmethod
    def find(cwd: Path | None = None, required: Literal[False] = False) -> Path | None: ...

    @staticmethod
    def find(cwd: Path | None = None, required: bool = True) -> Path | None:
        """
        Find the `kubedeploy.yaml` in the given *cwd* or any of its parent directories.
        """

        if cwd is None:
            cwd = Path.cwd()

        for directory in [cwd, *cwd.parents]:
            file = directory / DeployConfigFile.FILENAME
            if file.is_file():
                return file

        if required:
            raise FileNotFoundError(
                f"Could not find '{DeployConfigFile.FILENAME}' in '{cwd}' or any of its parent directories."
            )
        return None

    @staticmethod
    def load(file: Path | None = None, /) -> "DeployConfigFile":
        """
        Load the configuration from the given or the default configuration file. If no configuration file exists, a
        default configuration is returned.
        """

        if file is None:
            file = DeployConfigFile.find(required=False)
        if file is None:
            logger.debug("No '{}' found, using the default configuration", DeployConfigFile.FILENAME)
            return DeployConfigFile(None, DeployConfig())

        logger.debug("Loading configuration from '{}'", file)
        config = databind.json.load(yaml.safe_load(file.read_text()) or {}, DeployConfig, filename=str(file))
        if config.credentials is not None:
            config.credentials.init(file)
        return DeployConfigFile(file, config)
