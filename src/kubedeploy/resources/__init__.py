"""
This package contains the typed representation of the Kubernetes objects that kubedeploy applies.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kubedeploy.tools.types import Manifest


@dataclass(frozen=True, order=True)
class KindTag:
    """
    Identifies a Kubernetes object type by its `apiVersion` and `kind`. Two kinds with the same name in different API
    groups (e.g. `apps/v1` and `extensions/v1beta1` Deployments) are different tags.
    """

    api_version: str
    """ The `apiVersion` of the kind, either `<version>` for the core group or `<group>/<version>`. """

    kind: str
    """ The `kind` of the object. """

    @property
    def group(self) -> str:
        """
        The API group of the kind. Empty for the core group.
        """

        return self.api_version.split("/")[0] if "/" in self.api_version else ""

    @property
    def version(self) -> str:
        return self.api_version.split("/")[-1]

    @property
    def label(self) -> str:
        """
        A human readable, unambiguous name of the kind, e.g. `Deployment.apps/v1` or `Service/v1`.
        """

        if self.group:
            return f"{self.kind}.{self.group}/{self.version}"
        return f"{self.kind}/{self.version}"

    @staticmethod
    def of(manifest: Manifest) -> "KindTag":
        """
        Return the tag of a manifest. Raises a `ValueError` if `apiVersion` or `kind` are missing.
        """

        api_version = manifest.get("apiVersion")
        kind = manifest.get("kind")
        if not isinstance(api_version, str) or not api_version:
            raise ValueError("manifest has no 'apiVersion'")
        if not isinstance(kind, str) or not kind:
            raise ValueError("manifest has no 'kind'")
        return KindTag(api_version, kind)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Resource:
    """
    A Kubernetes object parsed from a manifest. The resource is treated as immutable; the manifest is copied on
    construction and must not be modified afterwards.
    """

    kind: KindTag
    name: str
    namespace: str | None
    """ The namespace given in the manifest. None if the manifest does not specify one. """

    manifest: Manifest = field(repr=False, compare=False)
    source: Path | None = field(default=None, compare=False)
    """ The file that the resource was loaded from, if any. """

    @property
    def key(self) -> tuple[KindTag, str, str]:
        """
        Uniquely identifies the object in a cluster.
        """

        return (self.kind, self.namespace or "", self.name)

    @property
    def label(self) -> str:
        if self.namespace:
            return f"{self.kind.label} {self.namespace}/{self.name}"
        return f"{self.kind.label} {self.name}"

    def body(self) -> Manifest:
        """
        Return a deep copy of the manifest that may be handed to a client.
        """

        return Manifest(deepcopy(self.manifest))

    @staticmethod
    def from_manifest(manifest: Manifest, source: Path | None = None) -> "Resource":
        """
        Parse a manifest into a resource. Raises a `ValueError` if the manifest lacks `apiVersion`, `kind` or
        `metadata.name`.
        """

        kind = KindTag.of(manifest)
        metadata: Any = manifest.get("metadata")
        if not isinstance(metadata, dict):
            raise ValueError(f"{kind.label} manifest has no 'metadata'")
        name = metadata.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"{kind.label} manifest has no 'metadata.name'")
        namespace = metadata.get("namespace")
        if namespace is not None and not isinstance(namespace, str):
            raise ValueError(f"{kind.label} {name}: 'metadata.namespace' must be a string")

        return Resource(
            kind=kind,
            name=name,
            namespace=namespace or None,
            manifest=Manifest(deepcopy(dict(manifest))),
            source=source,
        )
