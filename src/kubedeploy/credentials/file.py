from dataclasses import dataclass, field
from pathlib import Path

from databind.core import Union
import databind.json
from loguru import logger
import yaml

from kubedeploy.credentials.config import CredentialResolutionError, CredentialResolver, RegistryToken


@dataclass
class FileCredential:
    """
    An entry in a credentials file. Either `username` and `password` or `auth` (a base64 encoded `username:password`
    pair, like in a Docker config) must be set.
    """

    username: str | None = None
    password: str | None = None
    auth: str | None = None
    email: str = ""


@Union.register(CredentialResolver, name="file")
@dataclass
class FileCredentialResolver(CredentialResolver):
    """
    Reads registry credentials from a YAML file that maps credential IDs to credentials:

    ```yaml
    acr:
      username: deployer
      password: s3cr3t
    hub:
      auth: dXNlcjpwYXNz
      email: user@example.com
    ```
    """

    path: Path
    """ The path to the credentials file. Relative paths are resolved relative to the configuration file. """

    _cache: dict[str, FileCredential] | None = field(init=False, repr=False, default=None)

    def _load(self) -> dict[str, FileCredential]:
        if self._cache is None:
            logger.debug("Loading registry credentials from '{}'", self.path)
            try:
                data = yaml.safe_load(self.path.read_text()) or {}
            except (OSError, yaml.YAMLError) as exc:
                raise CredentialResolutionError("*", f"unable to read '{self.path}': {exc}") from exc
            self._cache = databind.json.load(data, dict[str, FileCredential], filename=str(self.path))
        return self._cache

    # CredentialResolver

    def init(self, config_file: Path) -> None:
        self.path = (config_file.parent / self.path).absolute()

    def resolve(self, credentials_id: str) -> RegistryToken:
        credentials = self._load()
        if credentials_id not in credentials:
            raise CredentialResolutionError(credentials_id, f"no such entry in '{self.path}'")

        entry = credentials[credentials_id]
        if entry.auth is not None:
            try:
                return RegistryToken.from_token(entry.auth, entry.email)
            except ValueError as exc:
                raise CredentialResolutionError(credentials_id, str(exc)) from exc
        if entry.username is None or entry.password is None:
            raise CredentialResolutionError(credentials_id, "either 'auth' or 'username' and 'password' must be set")
        return RegistryToken(entry.username, entry.password, entry.email)
