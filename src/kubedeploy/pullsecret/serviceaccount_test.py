import pytest

from kubedeploy.client import ClientError
from kubedeploy.pullsecret.serviceaccount import AttachError, attach_pull_secret
from kubedeploy.reconciler import ReconcileError
from kubedeploy.resources.kinds import SERVICE_ACCOUNT
from kubedeploy.testing import InMemoryResourceClient, RecordingUpdateMonitor
from kubedeploy.tools.types import Manifest


def service_account(*secrets: str) -> Manifest:
    manifest = {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": "default", "namespace": "dev"}}
    if secrets:
        manifest["imagePullSecrets"] = [{"name": name} for name in secrets]
    return Manifest(manifest)


def test__attach_pull_secret__is_idempotent() -> None:
    client = InMemoryResourceClient(namespaces=("dev",))
    client.add(service_account("registry-credentials-abcd1234"))
    monitor = RecordingUpdateMonitor()

    event = attach_pull_secret(client, "dev", "default", "registry-credentials-abcd1234", monitor=monitor)

    assert event is None
    assert client.writes() == []
    assert monitor.events == []


def test__attach_pull_secret__appends_to_existing_references() -> None:
    client = InMemoryResourceClient(namespaces=("dev",))
    client.add(service_account("other"))
    monitor = RecordingUpdateMonitor()

    event = attach_pull_secret(client, "dev", "default", "registry-credentials-abcd1234", monitor=monitor)

    assert event is not None
    assert event.kind == SERVICE_ACCOUNT
    assert event.original is not None
    assert event.original["imagePullSecrets"] == [{"name": "other"}]
    assert event.current["imagePullSecrets"] == [{"name": "other"}, {"name": "registry-credentials-abcd1234"}]
    assert monitor.events == [event]

    assert attach_pull_secret(client, "dev", "default", "registry-credentials-abcd1234", monitor=monitor) is None
    assert len(client.writes()) == 1


def test__attach_pull_secret__to_an_account_without_references() -> None:
    client = InMemoryResourceClient(namespaces=("dev",))
    client.add(service_account())

    event = attach_pull_secret(client, "dev", "default", "pull", monitor=RecordingUpdateMonitor())

    assert event is not None
    assert event.current["imagePullSecrets"] == [{"name": "pull"}]


def test__attach_pull_secret__fails_for_a_missing_account() -> None:
    client = InMemoryResourceClient(namespaces=("dev",))

    with pytest.raises(AttachError) as excinfo:
        attach_pull_secret(client, "dev", "builder", "pull", monitor=RecordingUpdateMonitor())

    assert isinstance(excinfo.value, ReconcileError)
    assert excinfo.value.name == "builder"
    assert "ServiceAccount dev/builder" in str(excinfo.value)


def test__attach_pull_secret__wraps_patch_errors() -> None:
    client = InMemoryResourceClient(namespaces=("dev",))
    client.add(service_account())
    client.fail("patch", SERVICE_ACCOUNT, "default", ClientError(403, "Forbidden"))

    with pytest.raises(AttachError, match="403 Forbidden"):
        attach_pull_secret(client, "dev", "default", "pull", monitor=RecordingUpdateMonitor())
