"""
This package synthesizes the image pull secret that gives a cluster access to private container registries, and
attaches it to service accounts (see `kubedeploy.pullsecret.serviceaccount`).
"""

import base64
from collections.abc import Sequence
from dataclasses import dataclass
import hashlib
import json

from loguru import logger

from kubedeploy.client import ResourceClient
from kubedeploy.monitor import UpdateEvent, UpdateMonitor
from kubedeploy.reconciler.dispatch import ReconcilerRegistry
from kubedeploy.resources import Resource
from kubedeploy.resources.kinds import SECRET
from kubedeploy.tools.types import Manifest

DEFAULT_SECRET_NAME_PREFIX = "registry-credentials"
DOCKER_CONFIG_JSON_KEY = ".dockerconfigjson"
DOCKER_CONFIG_JSON_TYPE = "kubernetes.io/dockerconfigjson"


@dataclass(frozen=True)
class ResolvedRegistryEndpoint:
    """
    A container registry together with the credentials to log in to it.
    """

    url: str
    username: str
    password: str
    email: str = ""

    @property
    def auth(self) -> str:
        """
        The base64 encoded `username:password` pair, as Docker stores it.
        """

        return base64.b64encode(f"{self.username}:{self.password}".encode()).decode("ascii")

    @staticmethod
    def from_token(url: str, token: str, email: str = "") -> "ResolvedRegistryEndpoint":
        """
        Create an endpoint from a base64 encoded `username:password` token.
        """

        where = f" for {url}" if url else ""
        try:
            decoded = base64.b64decode(token, validate=True).decode("utf-8")
        except ValueError as exc:
            raise ValueError(f"Invalid registry token{where}: {exc}") from exc
        if ":" not in decoded:
            raise ValueError(f"Invalid registry token{where}: expected 'username:password'")
        username, password = decoded.split(":", 1)
        return ResolvedRegistryEndpoint(url, username, password, email)


@dataclass(frozen=True)
class SecretRef:
    namespace: str
    name: str
    event: UpdateEvent | None = None
    """ The event of the write that created or updated the secret. """


def docker_config(endpoints: Sequence[ResolvedRegistryEndpoint]) -> dict[str, dict[str, str]]:
    """
    Build the Docker config for the given registry endpoints: a mapping of registry URL to credentials, sorted by URL.
    The fields of each entry are always in the order `username`, `password`, `email`, `auth`.

    Raises:
        ValueError: If *endpoints* is empty or contains different credentials for the same registry URL.
    """

    if not endpoints:
        raise ValueError("At least one registry endpoint is required")

    by_url: dict[str, ResolvedRegistryEndpoint] = {}
    for endpoint in endpoints:
        existing = by_url.setdefault(endpoint.url, endpoint)
        if existing != endpoint:
            raise ValueError(f"Conflicting credentials for registry {endpoint.url}")

    return {
        url: {
            "username": endpoint.username,
            "password": endpoint.password,
            "email": endpoint.email,
            "auth": endpoint.auth,
        }
        for url, endpoint in sorted(by_url.items())
    }


def docker_config_json(endpoints: Sequence[ResolvedRegistryEndpoint]) -> str:
    """
    Serialize the Docker config for the given endpoints. The result is byte-for-byte stable for the same set of
    endpoints, independent of their order.
    """

    return json.dumps(docker_config(endpoints), separators=(",", ":"))


def pull_secret_name(
    endpoints: Sequence[ResolvedRegistryEndpoint],
    prefix: str = DEFAULT_SECRET_NAME_PREFIX,
) -> str:
    """
    Derive a secret name from the content of the Docker config, e.g. `registry-credentials-1a2b3c4d`. The name only
    changes when the credentials do.
    """

    digest = hashlib.sha256(docker_config_json(endpoints).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:8]}"


def build_pull_secret(namespace: str, name: str, endpoints: Sequence[ResolvedRegistryEndpoint]) -> Manifest:
    payload = docker_config_json(endpoints)
    return Manifest(
        {
            "apiVersion": SECRET.api_version,
            "kind": SECRET.kind,
            "metadata": {"name": name, "namespace": namespace},
            "type": DOCKER_CONFIG_JSON_TYPE,
            "data": {DOCKER_CONFIG_JSON_KEY: base64.b64encode(payload.encode("utf-8")).decode("ascii")},
        }
    )


def ensure_pull_secret(
    client: ResourceClient,
    namespace: str,
    endpoints: Sequence[ResolvedRegistryEndpoint],
    name: str | None = None,
    *,
    registry: ReconcilerRegistry,
    monitor: UpdateMonitor,
) -> SecretRef:
    """
    Create or update the pull secret for the given registry endpoints.

    Args:
        client: The client to apply the secret with.
        namespace: The namespace to create the secret in.
        endpoints: The registries to include in the secret.
        name: The name of the secret. Defaults to `pull_secret_name()` of the *endpoints*.
        registry: The secret is applied with the reconciler registered for `v1 Secret`.
        monitor: Receives the event of the write.

    Raises:
        ValueError: If the endpoints are empty or conflicting.
        ReconcileError: If the secret could not be applied.
    """

    name = name or pull_secret_name(endpoints)
    resource = Resource.from_manifest(build_pull_secret(namespace, name, endpoints))

    registries = len({endpoint.url for endpoint in endpoints})
    logger.info("Applying image pull secret {}/{} for {} registry(ies)", namespace, name, registries)
    event = registry[SECRET].reconcile(client, resource, monitor)
    return SecretRef(namespace, name, event)
