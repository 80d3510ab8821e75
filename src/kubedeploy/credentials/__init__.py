"""
Credential resolvers look up the username and password for a container registry. The resolver is selected in the
`credentials` section of the configuration file with the `provider` key.
"""

from kubedeploy.credentials.config import (
    CredentialResolutionError,
    CredentialResolver,
    RegistryCredential,
    RegistryToken,
    normalize_registry_url,
    resolve_endpoints,
)
from kubedeploy.credentials.env import EnvCredentialResolver
from kubedeploy.credentials.file import FileCredential, FileCredentialResolver
from kubedeploy.credentials.null import NullCredentialResolver

__all__ = [
    "CredentialResolutionError",
    "CredentialResolver",
    "EnvCredentialResolver",
    "FileCredential",
    "FileCredentialResolver",
    "NullCredentialResolver",
    "RegistryCredential",
    "RegistryToken",
    "normalize_registry_url",
    "resolve_endpoints",
]
