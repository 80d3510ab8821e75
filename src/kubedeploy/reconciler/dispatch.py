from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
import enum
import threading
from types import MappingProxyType

from loguru import logger

from kubedeploy.client import ResourceClient
from kubedeploy.loader import LoadError
from kubedeploy.monitor import NoopUpdateMonitor, UpdateEvent, UpdateMonitor
from kubedeploy.reconciler import ReconcileError, Reconciler
from kubedeploy.resources import KindTag, Resource
from kubedeploy.resources.kinds import CLUSTER_SCOPED_KINDS, REGISTERED_KINDS


class ReconcilerRegistry(Mapping[KindTag, Reconciler]):
    """
    A read-only mapping from a kind to the reconciler that applies objects of that kind. The registry is populated on
    construction and can not be changed afterwards.
    """

    def __init__(self, reconcilers: Iterable[Reconciler]) -> None:
        entries: dict[KindTag, Reconciler] = {}
        for reconciler in reconcilers:
            if reconciler.kind in entries:
                raise ValueError(f"Duplicate reconciler for {reconciler.kind.label}")
            entries[reconciler.kind] = reconciler
        self._entries = MappingProxyType(entries)

    @staticmethod
    def default() -> "ReconcilerRegistry":
        """
        Create a registry with a reconciler for each of the stable and beta kinds that kubedeploy supports.
        """

        return ReconcilerRegistry(
            Reconciler.for_kind(kind, namespaced=kind not in CLUSTER_SCOPED_KINDS) for kind in REGISTERED_KINDS
        )

    @property
    def kinds(self) -> frozenset[KindTag]:
        return frozenset(self._entries)

    def __getitem__(self, kind: KindTag) -> Reconciler:
        return self._entries[kind]

    def __iter__(self) -> Iterator[KindTag]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ReconcilerRegistry({', '.join(kind.label for kind in self._entries)})"


class ApplyStatus(enum.Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    """ At least one object could not be reconciled. The other objects were applied. """

    FATAL = "fatal"
    """ The manifests could not be loaded. Nothing was applied. """


@dataclass
class ApplyResult:
    """
    The outcome of applying a bundle of resources.
    """

    status: ApplyStatus = ApplyStatus.SUCCESS
    events: list[UpdateEvent] = field(default_factory=list)
    errors: list[ReconcileError] = field(default_factory=list)
    skipped: list[Resource] = field(default_factory=list)
    """ Resources that were not applied because there is no reconciler for their kind. """

    warnings: list[str] = field(default_factory=list)
    load_error: LoadError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.status == ApplyStatus.SUCCESS

    @staticmethod
    def fatal(error: LoadError) -> "ApplyResult":
        return ApplyResult(status=ApplyStatus.FATAL, load_error=error)

    def merge(self, other: "ApplyResult") -> "ApplyResult":
        """
        Combine the results of two consecutive steps. The combined status is the worse of the two statuses.
        """

        order = [ApplyStatus.SUCCESS, ApplyStatus.PARTIAL_FAILURE, ApplyStatus.FATAL]
        return ApplyResult(
            status=max(self.status, other.status, key=order.index),
            events=self.events + other.events,
            errors=self.errors + other.errors,
            skipped=self.skipped + other.skipped,
            warnings=self.warnings + other.warnings,
            load_error=self.load_error or other.load_error,
            cancelled=self.cancelled or other.cancelled,
        )


@dataclass
class Dispatcher:
    """
    Applies resources one after another, in order, with the reconciler that is registered for each resource's kind.
    A failure to reconcile one resource is recorded and does not stop the remaining resources from being applied.
    """

    client: ResourceClient
    registry: ReconcilerRegistry = field(default_factory=ReconcilerRegistry.default)
    monitor: UpdateMonitor = field(default_factory=NoopUpdateMonitor)

    def apply(self, resources: Iterable[Resource], cancel: threading.Event | None = None) -> ApplyResult:
        """
        Args:
            resources: The resources to apply.
            cancel: If set while resources are being applied, no further resources are applied. The resource that
                is currently being applied is completed first.
        """

        result = ApplyResult()
        for resource in resources:
            if cancel is not None and cancel.is_set():
                logger.warning("Apply was cancelled before {}", resource.label)
                result.cancelled = True
                break

            reconciler = self.registry.get(resource.kind)
            if reconciler is None:
                message = f"Skipping {resource.label}, no reconciler is registered for {resource.kind.label}"
                logger.warning("{}", message)
                result.skipped.append(resource)
                result.warnings.append(message)
                continue

            try:
                event = reconciler.reconcile(self.client, resource, self.monitor)
            except ReconcileError as exc:
                logger.error("{}", exc)
                result.errors.append(exc)
                continue

            result.events.append(event)

        if result.errors:
            result.status = ApplyStatus.PARTIAL_FAILURE

        logger.info(
            "Applied {} resource(s), {} failed, {} skipped{}",
            len(result.events),
            len(result.errors),
            len(result.skipped),
            " (cancelled)" if result.cancelled else "",
        )
        return result
