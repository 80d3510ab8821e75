from abc import ABC, abstractmethod
import base64
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
import re

from databind.core import Union
from loguru import logger

from kubedeploy.pullsecret import ResolvedRegistryEndpoint

DEFAULT_REGISTRY_URL = "https://index.docker.io/v1/"
URI_SCHEME_PREFIX = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


@dataclass
class CredentialResolutionError(Exception):
    """
    Raised when the credentials for a registry can not be found.
    """

    credentials_id: str
    message: str

    def __str__(self) -> str:
        return f"Unable to resolve registry credentials '{self.credentials_id}': {self.message}"


@dataclass(frozen=True)
class RegistryToken:
    """
    The credentials to log in to a container registry.
    """

    username: str
    password: str
    email: str = ""

    @staticmethod
    def from_token(token: str, email: str = "") -> "RegistryToken":
        """
        Create a token from a base64 encoded `username:password` pair.
        """

        endpoint = ResolvedRegistryEndpoint.from_token("", token, email)
        return RegistryToken(endpoint.username, endpoint.password, endpoint.email)


@dataclass
class RegistryCredential:
    """
    Configures the credentials to use for a container registry.
    """

    credentials_id: str
    """ The ID under which the credential resolver looks up the credentials. Entries with an empty ID are ignored. """

    url: str = ""
    """ The registry URL. Defaults to Docker Hub. URLs without a scheme are assumed to use `http://`. """


@Union(style=Union.FLAT, discriminator_key="provider")
@dataclass
class CredentialResolver(ABC):
    """
    Looks up registry credentials by their ID.
    """

    def init(self, config_file: Path) -> None:
        """
        Called after loading the resolver configuration from a configuration file. The file's path is provided to
        allow the resolver to resolve relative paths.
        """

    @abstractmethod
    def resolve(self, credentials_id: str) -> RegistryToken:
        """
        Raises:
            CredentialResolutionError: If there are no credentials with the given ID.
        """


def normalize_registry_url(url: str | None) -> str:
    """
    Return the effective URL of a registry. A blank URL refers to Docker Hub. A URL without a scheme is prefixed with
    `http://`, which is logged as a warning since it is usually not what was intended.
    """

    url = (url or "").strip()
    if not url:
        return DEFAULT_REGISTRY_URL
    if not URI_SCHEME_PREFIX.match(url):
        logger.warning("Registry URL '{}' has no scheme, assuming 'http://{}'", url, url)
        url = "http://" + url
    return url


def resolve_endpoints(
    resolver: CredentialResolver,
    credentials: Iterable[RegistryCredential],
) -> list[ResolvedRegistryEndpoint]:
    """
    Resolve the credentials for each configured registry.

    Raises:
        CredentialResolutionError: If the credentials for any of the registries can not be found.
    """

    endpoints = []
    for credential in credentials:
        credentials_id = credential.credentials_id.strip()
        if not credentials_id:
            logger.debug("Skipping registry '{}' without credentials ID", credential.url)
            continue
        token = resolver.resolve(credentials_id)
        url = normalize_registry_url(credential.url)
        logger.debug("Resolved credentials '{}' for registry '{}'", credentials_id, url)
        endpoints.append(ResolvedRegistryEndpoint(url, token.username, token.password, token.email))
    return endpoints
