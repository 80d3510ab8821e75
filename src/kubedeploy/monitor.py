"""
Update monitors receive an event for every object that kubedeploy created or patched, together with a snapshot of
the object before and after the operation.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
import difflib
from typing import Any

from loguru import logger
import yaml

from kubedeploy.resources import KindTag
from kubedeploy.tools.merge import strip_server_fields
from kubedeploy.tools.types import Manifest

UpdateCallback = Callable[[Manifest | None, Manifest], None]


@dataclass(frozen=True)
class UpdateEvent:
    """
    Describes the outcome of one write to the cluster.
    """

    kind: KindTag

    original: Manifest | None
    """ The object as it was before the write. None if the object was created. """

    current: Manifest
    """ The object as returned by the API server after the write. """

    @property
    def created(self) -> bool:
        return self.original is None

    @property
    def name(self) -> str:
        return str(self.current.get("metadata", {}).get("name", ""))

    @property
    def namespace(self) -> str | None:
        return self.current.get("metadata", {}).get("namespace")


class UpdateMonitor(ABC):
    """
    Receives update events. Events are delivered synchronously, in the order in which the objects were written.
    """

    @abstractmethod
    def on_update(self, kind: KindTag, original: Manifest | None, current: Manifest) -> None:
        """
        Called after an object of the given *kind* was created (*original* is None) or patched.
        """

    def emit(self, event: UpdateEvent) -> None:
        self.on_update(event.kind, event.original, event.current)


class NoopUpdateMonitor(UpdateMonitor):
    def on_update(self, kind: KindTag, original: Manifest | None, current: Manifest) -> None:
        pass


@dataclass
class KindCallbackMonitor(UpdateMonitor):
    """
    Dispatches events to a callback registered for the event's kind. Events of kinds without a callback are ignored.
    """

    callbacks: Mapping[KindTag, UpdateCallback] = field(default_factory=dict)

    def on_update(self, kind: KindTag, original: Manifest | None, current: Manifest) -> None:
        callback = self.callbacks.get(kind)
        if callback is not None:
            callback(original, current)


class CompositeUpdateMonitor(UpdateMonitor):
    """
    Forwards every event to each of the given monitors, in order.
    """

    def __init__(self, monitors: Iterable[UpdateMonitor]) -> None:
        self.monitors = list(monitors)

    def on_update(self, kind: KindTag, original: Manifest | None, current: Manifest) -> None:
        for monitor in self.monitors:
            monitor.on_update(kind, original, current)


@dataclass
class LoggingUpdateMonitor(UpdateMonitor):
    """
    Logs a summary of every event: the object's name and namespace and, where the kind has them, its replica count
    and container images. Changed values are shown as `old → new`.
    """

    diff: bool = False
    """ Also log a unified diff of the object's declared content. """

    diff_context: int = 3
    """ Number of context lines in the diff. """

    def on_update(self, kind: KindTag, original: Manifest | None, current: Manifest) -> None:
        now = summarize(current)
        name = f"{now['namespace']}/{now['name']}" if now["namespace"] else now["name"]

        if original is None:
            details = ", ".join(
                f"{key}={_format(value)}" for key, value in now.items() if key not in ("name", "namespace")
            )
            logger.info("Created {} {}{}", kind.label, name, f" ({details})" if details else "")
            return

        before = summarize(original)
        changes = [
            f"{key}: {_format(before.get(key))} → {_format(value)}"
            for key, value in now.items()
            if before.get(key) != value
        ]
        logger.info(
            "Updated {} {}{}", kind.label, name, f" ({'; '.join(changes)})" if changes else " (no summary changes)"
        )

        if self.diff:
            lines = list(diff_manifests(original, current, n=self.diff_context, label=f"{kind.label} {name}"))
            if lines:
                logger.info("Diff for {} {}:\n{}", kind.label, name, "".join(lines))


def summarize(manifest: Manifest) -> dict[str, Any]:
    """
    Extract the fields of a manifest that are shown in update logs.
    """

    metadata = manifest.get("metadata") or {}
    spec = manifest.get("spec") or {}
    result: dict[str, Any] = {"name": metadata.get("name"), "namespace": metadata.get("namespace")}

    if "replicas" in spec:
        result["replicas"] = spec["replicas"]
    images = container_images(manifest)
    if images:
        result["images"] = images
    return result


def container_images(manifest: Manifest) -> list[str]:
    """
    Return the images of all containers (including init containers) of a Pod or of a workload's pod template.
    CronJobs nest the template one level deeper, in their job template.
    """

    spec = manifest.get("spec") or {}
    if manifest.get("kind") == "CronJob":
        spec = (spec.get("jobTemplate") or {}).get("spec") or {}
    if manifest.get("kind") != "Pod":
        spec = (spec.get("template") or {}).get("spec") or {}

    images = []
    for key in ("initContainers", "containers"):
        for container in spec.get(key) or []:
            if isinstance(container, dict) and container.get("image"):
                images.append(container["image"])
    return images


def diff_manifests(original: Manifest, current: Manifest, n: int = 3, label: str = "") -> Iterable[str]:
    """
    Generate a unified diff between the YAML representations of two snapshots of an object. Fields maintained by the
    API server are ignored.
    """

    a = yaml.safe_dump(strip_server_fields(original), sort_keys=True).splitlines(keepends=True)
    b = yaml.safe_dump(strip_server_fields(current), sort_keys=True).splitlines(keepends=True)
    return difflib.unified_diff(a, b, fromfile=f"{label} (original)", tofile=f"{label} (current)", n=n)


def _format(value: Any) -> str:
    if isinstance(value, list):
        return ",".join(map(str, value)) or "-"
    return "-" if value is None else str(value)
