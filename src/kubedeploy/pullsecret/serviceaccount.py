from dataclasses import dataclass

from loguru import logger

from kubedeploy.client import ClientError, ResourceClient
from kubedeploy.monitor import UpdateEvent, UpdateMonitor
from kubedeploy.reconciler import ReconcileError
from kubedeploy.resources.kinds import SERVICE_ACCOUNT
from kubedeploy.tools.types import Manifest


@dataclass
class AttachError(ReconcileError):
    """
    Raised when a pull secret can not be attached to a service account.
    """

    def __str__(self) -> str:
        return f"Failed to attach image pull secret to ServiceAccount {self.namespace}/{self.name}: {self.cause}"


def attach_pull_secret(
    client: ResourceClient,
    namespace: str,
    service_account: str,
    secret_name: str,
    *,
    monitor: UpdateMonitor,
) -> UpdateEvent | None:
    """
    Add *secret_name* to the `imagePullSecrets` of a service account, so that pods running as the account can pull
    images with it. Nothing is written if the account already references the secret.

    Returns:
        The event of the write, or None if the account already referenced the secret.

    Raises:
        AttachError: If the service account does not exist or can not be patched.
    """

    try:
        account = client.get(SERVICE_ACCOUNT, namespace, service_account)
    except ClientError as exc:
        raise AttachError(SERVICE_ACCOUNT, namespace, service_account, exc) from exc

    pull_secrets: list[dict] = list(account.get("imagePullSecrets") or [])
    if any(ref.get("name") == secret_name for ref in pull_secrets):
        logger.debug("ServiceAccount {}/{} already references {}", namespace, service_account, secret_name)
        return None

    # A merge patch replaces lists, so the patch carries the existing references as well.
    patch = Manifest({"imagePullSecrets": pull_secrets + [{"name": secret_name}]})
    try:
        current = client.patch(SERVICE_ACCOUNT, namespace, service_account, patch)
    except ClientError as exc:
        raise AttachError(SERVICE_ACCOUNT, namespace, service_account, exc) from exc

    logger.info("Attached image pull secret {} to ServiceAccount {}/{}", secret_name, namespace, service_account)
    event = UpdateEvent(SERVICE_ACCOUNT, account, current)
    monitor.emit(event)
    return event
