"""
This package contains the reconcilers that converge one object in the cluster to its declared state: read the
object, create it if it is absent, otherwise patch it with the declared content.
"""

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from kubedeploy.client import ClientError, NotFoundError, ResourceClient
from kubedeploy.monitor import UpdateEvent, UpdateMonitor
from kubedeploy.resources import KindTag, Resource
from kubedeploy.tools.merge import strip_status
from kubedeploy.tools.types import Manifest

GetFunc = Callable[[ResourceClient, str | None, str], Manifest]
CreateFunc = Callable[[ResourceClient, str | None, Manifest], Manifest]
PatchFunc = Callable[[ResourceClient, str | None, str, Manifest], Manifest]


@dataclass
class ReconcileError(Exception):
    """
    Represents a failure to reconcile a single object. The error does not abort the application of other objects.
    """

    kind: KindTag
    namespace: str | None
    name: str
    cause: Exception

    def __str__(self) -> str:
        location = f"{self.namespace}/{self.name}" if self.namespace else self.name
        return f"Failed to reconcile {self.kind.label} {location}: {self.cause}"


@dataclass(frozen=True)
class Reconciler:
    """
    The reconcile strategy for one kind. The strategy is the same for all kinds; only the three client operations
    differ, so a reconciler is just a record of these functions.
    """

    kind: KindTag
    namespaced: bool
    get: GetFunc
    create: CreateFunc
    patch: PatchFunc

    @staticmethod
    def for_kind(kind: KindTag, namespaced: bool = True) -> "Reconciler":
        """
        Create a reconciler whose operations forward to the generic methods of the `ResourceClient`. For cluster
        scoped kinds, the namespace argument is dropped.
        """

        def get(client: ResourceClient, namespace: str | None, name: str) -> Manifest:
            return client.get(kind, namespace if namespaced else None, name)

        def create(client: ResourceClient, namespace: str | None, body: Manifest) -> Manifest:
            return client.create(kind, namespace if namespaced else None, body)

        def patch(client: ResourceClient, namespace: str | None, name: str, body: Manifest) -> Manifest:
            return client.patch(kind, namespace if namespaced else None, name, body)

        return Reconciler(kind, namespaced, get, create, patch)

    def reconcile(self, client: ResourceClient, resource: Resource, monitor: UpdateMonitor) -> UpdateEvent:
        """
        Create the object if it does not exist, otherwise patch it with the declared content. The resulting event is
        delivered to the *monitor* and returned; its `current` is the object after the operation.

        Raises:
            ReconcileError: If any request fails. Requests are not retried.
        """

        if resource.kind != self.kind:
            raise ValueError(f"{self.kind.label} reconciler cannot reconcile {resource.label}")

        namespace = resource.namespace if self.namespaced else None

        try:
            try:
                existing: Manifest | None = self.get(client, namespace, resource.name)
            except NotFoundError:
                existing = None

            if existing is None:
                logger.debug("{} does not exist, creating it", resource.label)
                event = UpdateEvent(self.kind, None, self.create(client, namespace, resource.body()))
            else:
                logger.debug("{} exists, patching it", resource.label)
                current = self.patch(client, namespace, resource.name, strip_status(resource.body()))
                event = UpdateEvent(self.kind, existing, current)
        except ClientError as exc:
            raise ReconcileError(self.kind, resource.namespace, resource.name, exc) from exc

        monitor.emit(event)
        return event

