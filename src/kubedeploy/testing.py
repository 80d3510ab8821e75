"""
Test doubles for the `ResourceClient` and `UpdateMonitor` interfaces.
"""

from copy import deepcopy
from dataclasses import dataclass, field
import itertools

from kubedeploy.client import ClientError, NotFoundError, ResourceClient
from kubedeploy.monitor import UpdateEvent, UpdateMonitor
from kubedeploy.resources import KindTag
from kubedeploy.resources.kinds import CLUSTER_SCOPED_KINDS, NAMESPACE
from kubedeploy.tools.merge import merge_patch
from kubedeploy.tools.types import Manifest

ObjectKey = tuple[KindTag, str, str]


@dataclass(frozen=True)
class Call:
    """
    A request that was made against the `InMemoryResourceClient`.
    """

    verb: str
    kind: KindTag
    namespace: str | None
    name: str


class InMemoryResourceClient(ResourceClient):
    """
    A `ResourceClient` that stores objects in memory. It behaves like an API server in the ways that matter to
    kubedeploy: objects are keyed by kind, namespace and name, patches are applied as JSON merge patches, namespaced
    objects can only be created in an existing namespace, and every write bumps `metadata.resourceVersion`.

    A request without a namespace addresses the `default` namespace, like the cluster does.
    """

    def __init__(self, namespaces: tuple[str, ...] = ("default", "kube-system")) -> None:
        self.objects: dict[ObjectKey, Manifest] = {}
        self.calls: list[Call] = []
        self._failures: dict[tuple[str, KindTag, str], ClientError] = {}
        self._versions = itertools.count(1)
        for namespace in namespaces:
            self.add(Manifest({"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": namespace}}))

    def _key(self, kind: KindTag, namespace: str | None, name: str) -> ObjectKey:
        if kind in CLUSTER_SCOPED_KINDS:
            return (kind, "", name)
        return (kind, namespace or "default", name)

    def _store(self, key: ObjectKey, manifest: Manifest) -> Manifest:
        metadata = manifest.setdefault("metadata", {})
        metadata["name"] = key[2]
        if key[1]:
            metadata["namespace"] = key[1]
        metadata["resourceVersion"] = str(next(self._versions))
        self.objects[key] = manifest
        return Manifest(deepcopy(manifest))

    def _check_failure(self, verb: str, kind: KindTag, name: str) -> None:
        failure = self._failures.get((verb, kind, name))
        if failure is not None:
            raise failure

    def add(self, manifest: Manifest) -> Manifest:
        """
        Store an object directly, bypassing the request log and all checks.
        """

        kind = KindTag.of(manifest)
        metadata = manifest["metadata"]
        return self._store(self._key(kind, metadata.get("namespace"), metadata["name"]), Manifest(deepcopy(manifest)))

    def fail(self, verb: str, kind: KindTag, name: str, error: ClientError) -> None:
        """
        Make every future *verb* request for the object with the given *kind* and *name* raise *error*.
        """

        self._failures[(verb, kind, name)] = error

    def lookup(self, kind: KindTag, namespace: str | None, name: str) -> Manifest | None:
        manifest = self.objects.get(self._key(kind, namespace, name))
        return Manifest(deepcopy(manifest)) if manifest is not None else None

    def writes(self) -> list[Call]:
        return [call for call in self.calls if call.verb != "get"]

    # ResourceClient

    def get(self, kind: KindTag, namespace: str | None, name: str) -> Manifest:
        self.calls.append(Call("get", kind, namespace, name))
        self._check_failure("get", kind, name)
        manifest = self.lookup(kind, namespace, name)
        if manifest is None:
            raise NotFoundError(message=f'{kind.kind.lower()}s "{name}" not found')
        return manifest

    def create(self, kind: KindTag, namespace: str | None, body: Manifest) -> Manifest:
        name = body["metadata"]["name"]
        self.calls.append(Call("create", kind, namespace, name))
        self._check_failure("create", kind, name)

        key = self._key(kind, namespace, name)
        if key[1] and (NAMESPACE, "", key[1]) not in self.objects:
            raise NotFoundError(message=f'namespaces "{key[1]}" not found')
        if key in self.objects:
            raise ClientError(409, "AlreadyExists", f'{kind.kind.lower()}s "{name}" already exists')
        return self._store(key, Manifest(deepcopy(body)))

    def patch(self, kind: KindTag, namespace: str | None, name: str, body: Manifest) -> Manifest:
        self.calls.append(Call("patch", kind, namespace, name))
        self._check_failure("patch", kind, name)

        key = self._key(kind, namespace, name)
        if key not in self.objects:
            raise NotFoundError(message=f'{kind.kind.lower()}s "{name}" not found')
        return self._store(key, Manifest(merge_patch(self.objects[key], body)))


@dataclass
class RecordingUpdateMonitor(UpdateMonitor):
    """
    Collects all events it receives.
    """

    events: list[UpdateEvent] = field(default_factory=list)

    def on_update(self, kind: KindTag, original: Manifest | None, current: Manifest) -> None:
        self.events.append(UpdateEvent(kind, original, current))
