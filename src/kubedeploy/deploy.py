"""
The driver that performs a deployment: load the manifests, provision the image pull secret and apply the manifests.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
import threading

from loguru import logger

from kubedeploy.client import ResourceClient
from kubedeploy.config import DeployConfig
from kubedeploy.credentials import CredentialResolver, resolve_endpoints
from kubedeploy.loader import LoadError, load_bundle
from kubedeploy.monitor import NoopUpdateMonitor, UpdateEvent, UpdateMonitor
from kubedeploy.pullsecret import ResolvedRegistryEndpoint, SecretRef, ensure_pull_secret, pull_secret_name
from kubedeploy.pullsecret.serviceaccount import attach_pull_secret
from kubedeploy.reconciler import ReconcileError
from kubedeploy.reconciler.dispatch import ApplyResult, ApplyStatus, Dispatcher, ReconcilerRegistry
from kubedeploy.resources import Resource
from kubedeploy.tools.types import Environment, Substitutor


@dataclass
class KubernetesDeploy:
    """
    Applies manifests and image pull secrets to one cluster.
    """

    client: ResourceClient
    registry: ReconcilerRegistry = field(default_factory=ReconcilerRegistry.default)
    monitor: UpdateMonitor = field(default_factory=NoopUpdateMonitor)

    def apply(self, resources: Iterable[Resource], cancel: threading.Event | None = None) -> ApplyResult:
        return Dispatcher(self.client, self.registry, self.monitor).apply(resources, cancel)

    def apply_manifests(
        self,
        roots: Sequence[Path],
        patterns: Sequence[str],
        substitute: bool = True,
        env: Environment | None = None,
        *,
        substitutor: Substitutor | None = None,
        cancel: threading.Event | None = None,
    ) -> ApplyResult:
        """
        Load the manifests matching *patterns* under the *roots* and apply them. If the manifests can not be loaded,
        nothing is applied and the result is fatal.
        """

        try:
            bundle = load_bundle(roots, patterns, substitute, env, kinds=self.registry.kinds, substitutor=substitutor)
        except LoadError as exc:
            logger.error("Unable to load manifests: {}", exc)
            return ApplyResult.fatal(exc)

        result = self.apply(bundle, cancel)
        result.warnings[:0] = bundle.warnings
        return result

    def ensure_pull_secret(
        self,
        namespace: str,
        endpoints: Sequence[ResolvedRegistryEndpoint],
        name: str | None = None,
    ) -> SecretRef:
        return ensure_pull_secret(self.client, namespace, endpoints, name, registry=self.registry, monitor=self.monitor)

    def attach_pull_secret(self, namespace: str, service_account: str, secret_name: str) -> UpdateEvent | None:
        return attach_pull_secret(self.client, namespace, service_account, secret_name, monitor=self.monitor)

    def provision_pull_secret(
        self,
        config: DeployConfig,
        endpoints: Sequence[ResolvedRegistryEndpoint],
        name: str,
    ) -> ApplyResult:
        """
        Create or update the pull secret and attach it to the configured service account. Failures are recorded in
        the returned result.
        """

        result = ApplyResult()
        namespace = config.effective_secret_namespace
        try:
            ref = self.ensure_pull_secret(namespace, endpoints, name)
            if ref.event is not None:
                result.events.append(ref.event)
            if config.service_account:
                event = self.attach_pull_secret(namespace, config.service_account, ref.name)
                if event is not None:
                    result.events.append(event)
        except ReconcileError as exc:
            logger.error("{}", exc)
            result.errors.append(exc)
            result.status = ApplyStatus.PARTIAL_FAILURE
        return result

    def run(
        self,
        config: DeployConfig,
        root: Path,
        env: Environment,
        resolver: CredentialResolver | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> ApplyResult:
        """
        Perform a deployment as described by *config*:

        1. Resolve the registry credentials and derive the pull secret name.
        2. Load the manifests. The name and namespace of the pull secret are available to substitution as
           `KUBERNETES_SECRET_NAME` and `KUBERNETES_SECRET_NAMESPACE`.
        3. Create or update the pull secret and attach it to the service account.
        4. Apply the manifests.

        Nothing is written to the cluster if the credentials can not be resolved or the manifests can not be loaded.

        Raises:
            CredentialResolutionError: If the credentials for a registry can not be found.
            ValueError: If the registry credentials are conflicting.
        """

        if not config.configs:
            return ApplyResult.fatal(LoadError("No manifest file patterns are configured"))

        endpoints: list[ResolvedRegistryEndpoint] = []
        secret_name: str | None = None
        if config.wants_pull_secret:
            endpoints = resolve_endpoints(resolver or config.credential_resolver, config.docker_credentials)
            secret_name = config.secret_name or pull_secret_name(endpoints, config.secret_name_prefix)
            env = {**env, **config.secret_variables(secret_name)}

        try:
            bundle = load_bundle(
                [root],
                config.configs,
                config.enable_config_substitution,
                env,
                kinds=self.registry.kinds,
            )
        except LoadError as exc:
            logger.error("Unable to load manifests: {}", exc)
            return ApplyResult.fatal(exc)

        result = ApplyResult(warnings=list(bundle.warnings))
        if secret_name is not None:
            result = result.merge(self.provision_pull_secret(config, endpoints, secret_name))

        return result.merge(self.apply(bundle, cancel))
