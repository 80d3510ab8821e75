"""
The typed client through which kubedeploy talks to the Kubernetes API. The engine only depends on the
`ResourceClient` interface; `DynamicResourceClient` implements it on top of the official `kubernetes` package.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from kubernetes.client import ApiClient, Configuration
from kubernetes.config import list_kube_config_contexts, load_incluster_config, new_client_from_config
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import DynamicApiError, ResourceNotFoundError, ResourceNotUniqueError
from kubernetes.dynamic.exceptions import NotFoundError as DynamicNotFoundError
from loguru import logger
import urllib3.exceptions

from kubedeploy.resources import KindTag
from kubedeploy.resources.kinds import CLUSTER_SCOPED_KINDS
from kubedeploy.tools.types import Manifest

MERGE_PATCH = "application/merge-patch+json"
IN_CLUSTER_NAMESPACE_FILE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")


@dataclass
class ClientError(Exception):
    """
    Raised by a `ResourceClient` when the API server rejects a request or cannot be reached.
    """

    status: int | None
    """ The HTTP status code, or None if no response was received. """

    reason: str
    message: str = ""

    def __str__(self) -> str:
        status = f"{self.status} " if self.status is not None else ""
        message = f"{status}{self.reason}"
        if self.message:
            message += f": {self.message}"
        return message


class NotFoundError(ClientError):
    """
    The requested object does not exist (HTTP 404).
    """

    def __init__(self, reason: str = "NotFound", message: str = "") -> None:
        super().__init__(404, reason, message)


class ResourceClient(ABC):
    """
    A client with one operation per verb that kubedeploy needs, parameterized by the kind of the object. Namespaces
    are passed through exactly as given; None means the manifest did not specify a namespace.
    """

    @abstractmethod
    def get(self, kind: KindTag, namespace: str | None, name: str) -> Manifest:
        """
        Read an object. Raises `NotFoundError` if it does not exist.
        """

    @abstractmethod
    def create(self, kind: KindTag, namespace: str | None, body: Manifest) -> Manifest:
        """
        Create an object and return it as stored by the API server.
        """

    @abstractmethod
    def patch(self, kind: KindTag, namespace: str | None, name: str, body: Manifest) -> Manifest:
        """
        Apply a JSON merge patch to an object and return the patched object.
        """


class DynamicResourceClient(ResourceClient):
    """
    Implements the `ResourceClient` with the `kubernetes.dynamic` client, which discovers the resources that the API
    server serves instead of relying on a generated API class per group version.
    """

    def __init__(self, api_client: ApiClient, default_namespace: str = "default") -> None:
        """
        Args:
            api_client: A configured `kubernetes.client.ApiClient`.
            default_namespace: The namespace to address namespaced objects in when the manifest does not specify
                one. This is the namespace of the kubeconfig context, as `kubectl` would use it.
        """

        self._api_client = api_client
        self._dynamic: Any = None
        self.default_namespace = default_namespace

    @property
    def dynamic(self) -> Any:
        # Creating the DynamicClient runs API discovery, so it is deferred until the first request.
        if self._dynamic is None:
            self._dynamic = DynamicClient(self._api_client)
        return self._dynamic

    def _resource(self, kind: KindTag) -> Any:
        # Discovery failures are never reported as NotFoundError.
        try:
            return self.dynamic.resources.get(api_version=kind.api_version, kind=kind.kind)
        except ResourceNotFoundError as exc:
            raise ClientError(None, "ResourceNotFound", f"the server does not serve {kind.label}: {exc}") from exc
        except ResourceNotUniqueError as exc:
            raise ClientError(None, "ResourceNotUnique", f"{kind.label} is ambiguous: {exc}") from exc
        except DynamicApiError as exc:
            raise ClientError(exc.status, str(exc.reason), _api_error_message(exc)) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise ClientError(None, type(exc).__name__, str(exc)) from exc

    def _namespace(self, kind: KindTag, namespace: str | None) -> str | None:
        if kind in CLUSTER_SCOPED_KINDS:
            return None
        return namespace or self.default_namespace

    def _call(self, verb: str, kind: KindTag, namespace: str | None, name: str | None, **kwargs: Any) -> Manifest:
        namespace = self._namespace(kind, namespace)
        logger.debug("{} {} (namespace={}, name={})", verb.upper(), kind.label, namespace, name)

        try:
            resource = self._resource(kind)
            if verb == "get":
                result = self.dynamic.get(resource, name=name, namespace=namespace)
            elif verb == "create":
                result = self.dynamic.create(resource, namespace=namespace, **kwargs)
            elif verb == "patch":
                result = self.dynamic.patch(resource, name=name, namespace=namespace, **kwargs)
            else:
                raise ValueError(f"unsupported verb: {verb!r}")
        except DynamicNotFoundError as exc:
            raise NotFoundError(str(exc.reason or "NotFound"), _api_error_message(exc)) from exc
        except DynamicApiError as exc:
            raise ClientError(exc.status, str(exc.reason), _api_error_message(exc)) from exc
        except urllib3.exceptions.HTTPError as exc:
            raise ClientError(None, type(exc).__name__, str(exc)) from exc

        return Manifest(result.to_dict())

    # ResourceClient

    def get(self, kind: KindTag, namespace: str | None, name: str) -> Manifest:
        return self._call("get", kind, namespace, name)

    def create(self, kind: KindTag, namespace: str | None, body: Manifest) -> Manifest:
        return self._call("create", kind, namespace, None, body=body)

    def patch(self, kind: KindTag, namespace: str | None, name: str, body: Manifest) -> Manifest:
        return self._call("patch", kind, namespace, name, body=body, content_type=MERGE_PATCH)


def _api_error_message(exc: Any) -> str:
    """
    Extract the `message` of the `Status` object the API server responded with, if there is one.
    """

    body = getattr(exc, "body", None)
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str) and body:
        try:
            status = json.loads(body)
        except ValueError:
            return body
        if isinstance(status, dict) and status.get("message"):
            return str(status["message"])
    return ""


def new_client(
    kubeconfig: Path | None = None,
    context: str | None = None,
    in_cluster: bool = False,
) -> DynamicResourceClient:
    """
    Create a `DynamicResourceClient` for a cluster.

    Args:
        kubeconfig: Path to the kubeconfig file. If not set, the default location (per `KUBECONFIG` or otherwise
            `~/.kube/config`) is used.
        context: The kubeconfig context to use. If not set, the current context is used.
        in_cluster: Use the service account that the process runs with inside a Kubernetes pod. The *kubeconfig* and
            *context* arguments are ignored.
    """

    if in_cluster:
        logger.info("Using in-cluster configuration.")
        configuration = Configuration()
        load_incluster_config(client_configuration=configuration)
        namespace = "default"
        if IN_CLUSTER_NAMESPACE_FILE.is_file():
            namespace = IN_CLUSTER_NAMESPACE_FILE.read_text().strip() or namespace
        return DynamicResourceClient(ApiClient(configuration), default_namespace=namespace)

    config_file = str(kubeconfig) if kubeconfig else None
    contexts, active = list_kube_config_contexts(config_file=config_file)
    if context is not None:
        selected = next((c for c in contexts if c["name"] == context), None)
        if selected is None:
            raise ValueError(f"Context '{context}' not found in kubeconfig")
    else:
        selected = active

    namespace = selected.get("context", {}).get("namespace") or "default"
    logger.info("Using kubeconfig context '{}' (default namespace '{}').", selected["name"], namespace)
    api_client = new_client_from_config(config_file=config_file, context=selected["name"])
    return DynamicResourceClient(api_client, default_namespace=namespace)
