from dataclasses import dataclass
import os
import re

from databind.core import Union

from kubedeploy.credentials.config import CredentialResolutionError, CredentialResolver, RegistryToken


@Union.register(CredentialResolver, name="env")
@dataclass
class EnvCredentialResolver(CredentialResolver):
    """
    Reads registry credentials from environment variables. The credentials with ID `my-registry` are read from
    `MY_REGISTRY_USERNAME`, `MY_REGISTRY_PASSWORD` and (optionally) `MY_REGISTRY_EMAIL`.
    """

    prefix: str = ""
    """ A prefix for the variable names, e.g. `KUBEDEPLOY_`. """

    def variable_name(self, credentials_id: str, field: str) -> str:
        return self.prefix + re.sub(r"[^A-Za-z0-9]", "_", credentials_id).upper() + "_" + field

    # CredentialResolver

    def resolve(self, credentials_id: str) -> RegistryToken:
        username = os.environ.get(self.variable_name(credentials_id, "USERNAME"))
        password = os.environ.get(self.variable_name(credentials_id, "PASSWORD"))
        if username is None or password is None:
            raise CredentialResolutionError(
                credentials_id,
                f"environment variables {self.variable_name(credentials_id, 'USERNAME')} and "
                f"{self.variable_name(credentials_id, 'PASSWORD')} must be set",
            )
        return RegistryToken(username, password, os.environ.get(self.variable_name(credentials_id, "EMAIL"), ""))
