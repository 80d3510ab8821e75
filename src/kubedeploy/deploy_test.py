from pathlib import Path
import threading

import pytest

from kubedeploy.client import ClientError
from kubedeploy.config import DeployConfig
from kubedeploy.credentials import CredentialResolutionError, EnvCredentialResolver, RegistryCredential
from kubedeploy.deploy import KubernetesDeploy
from kubedeploy.pullsecret import ResolvedRegistryEndpoint, pull_secret_name
from kubedeploy.reconciler.dispatch import ApplyStatus
from kubedeploy.resources.kinds import CONFIG_MAP, DEPLOYMENT, SECRET, SERVICE_ACCOUNT
from kubedeploy.testing import InMemoryResourceClient, RecordingUpdateMonitor
from kubedeploy.tools.types import Manifest

APP_YAML = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: app
  namespace: dev
spec:
  replicas: 1
  template:
    spec:
      imagePullSecrets:
        - name: ${KUBERNETES_SECRET_NAME}
      containers:
        - name: app
          image: myregistry.azurecr.io/app:${TAG}
"""


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "k8s").mkdir()
    (tmp_path / "k8s" / "app.yaml").write_text(APP_YAML)
    return tmp_path


@pytest.fixture
def client() -> InMemoryResourceClient:
    client = InMemoryResourceClient(namespaces=("default", "dev"))
    client.add(
        Manifest({"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": "default", "namespace": "dev"}})
    )
    return client


@pytest.fixture
def registry_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ACR_USERNAME", "u1")
    monkeypatch.setenv("ACR_PASSWORD", "p1")
    monkeypatch.delenv("ACR_EMAIL", raising=False)


def make_config(**kwargs: object) -> DeployConfig:
    return DeployConfig(
        configs=["k8s/*.yaml"],
        secret_namespace="dev",
        docker_credentials=[RegistryCredential("acr", "https://myregistry.azurecr.io")],
        credentials=EnvCredentialResolver(),
        **kwargs,  # type: ignore[arg-type]
    )


def test__KubernetesDeploy__apply_manifests(workspace: Path, client: InMemoryResourceClient) -> None:
    monitor = RecordingUpdateMonitor()
    deploy = KubernetesDeploy(client, monitor=monitor)

    result = deploy.apply_manifests([workspace], ["k8s/*.yaml"], env={"TAG": "v3", "KUBERNETES_SECRET_NAME": "x"})

    assert result.status == ApplyStatus.SUCCESS
    assert [event.kind for event in monitor.events] == [DEPLOYMENT]
    stored = client.lookup(DEPLOYMENT, "dev", "app")
    assert stored is not None
    assert stored["spec"]["template"]["spec"]["containers"][0]["image"] == "myregistry.azurecr.io/app:v3"


def test__KubernetesDeploy__apply_manifests__leaves_unknown_variables(
    workspace: Path, client: InMemoryResourceClient
) -> None:
    result = KubernetesDeploy(client).apply_manifests([workspace], ["k8s/*.yaml"], env={})

    assert result.status == ApplyStatus.SUCCESS
    stored = client.lookup(DEPLOYMENT, "dev", "app")
    assert stored is not None
    assert stored["spec"]["template"]["spec"]["containers"][0]["image"] == "myregistry.azurecr.io/app:${TAG}"
    assert [warning.split(": ", 1)[1] for warning in result.warnings] == [
        "variable 'KUBERNETES_SECRET_NAME' is not defined, leaving '${KUBERNETES_SECRET_NAME}' as-is",
        "variable 'TAG' is not defined, leaving '${TAG}' as-is",
    ]


def test__KubernetesDeploy__apply_manifests__is_fatal_on_load_errors(
    tmp_path: Path, client: InMemoryResourceClient
) -> None:
    (tmp_path / "good.yaml").write_text("apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: c\n  namespace: dev\n")
    (tmp_path / "bad.yaml").write_text("apiVersion: v1\nkind: ConfigMap\nmetadata: {}\n")

    result = KubernetesDeploy(client).apply_manifests([tmp_path], ["*.yaml"], env={})

    assert result.status == ApplyStatus.FATAL
    assert result.load_error is not None
    assert result.load_error.file == tmp_path / "bad.yaml"
    assert client.writes() == []


@pytest.mark.usefixtures("registry_env")
def test__KubernetesDeploy__run(workspace: Path, client: InMemoryResourceClient) -> None:
    monitor = RecordingUpdateMonitor()
    deploy = KubernetesDeploy(client, monitor=monitor)

    result = deploy.run(make_config(), workspace, {"TAG": "v3"})

    secret_name = pull_secret_name([ResolvedRegistryEndpoint("https://myregistry.azurecr.io", "u1", "p1")])
    assert result.status == ApplyStatus.SUCCESS
    assert [event.kind for event in result.events] == [SECRET, SERVICE_ACCOUNT, DEPLOYMENT]
    assert result.events == monitor.events

    assert client.lookup(SECRET, "dev", secret_name) is not None
    account = client.lookup(SERVICE_ACCOUNT, "dev", "default")
    assert account is not None
    assert account["imagePullSecrets"] == [{"name": secret_name}]
    app = client.lookup(DEPLOYMENT, "dev", "app")
    assert app is not None
    assert app["spec"]["template"]["spec"]["imagePullSecrets"] == [{"name": secret_name}]

    # A second run finds everything in place; the service account is not written again.
    again = deploy.run(make_config(), workspace, {"TAG": "v3"})
    assert again.status == ApplyStatus.SUCCESS
    assert [event.kind for event in again.events] == [SECRET, DEPLOYMENT]


@pytest.mark.usefixtures("registry_env")
def test__KubernetesDeploy__run__without_service_account(workspace: Path, client: InMemoryResourceClient) -> None:
    result = KubernetesDeploy(client).run(
        make_config(service_account=None, secret_name="pull"), workspace, {"TAG": "v3"}
    )

    assert [event.kind for event in result.events] == [SECRET, DEPLOYMENT]
    assert client.lookup(SECRET, "dev", "pull") is not None


@pytest.mark.usefixtures("registry_env")
def test__KubernetesDeploy__run__records_attach_errors(workspace: Path, client: InMemoryResourceClient) -> None:
    result = KubernetesDeploy(client).run(make_config(service_account="builder"), workspace, {"TAG": "v3"})

    assert result.status == ApplyStatus.PARTIAL_FAILURE
    assert [error.name for error in result.errors] == ["builder"]
    assert [event.kind for event in result.events] == [SECRET, DEPLOYMENT]


def test__KubernetesDeploy__run__fails_before_writing_on_missing_credentials(
    workspace: Path, client: InMemoryResourceClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("ACR_USERNAME", raising=False)
    monkeypatch.delenv("ACR_PASSWORD", raising=False)

    with pytest.raises(CredentialResolutionError):
        KubernetesDeploy(client).run(make_config(), workspace, {"TAG": "v3"})
    assert client.writes() == []


@pytest.mark.usefixtures("registry_env")
def test__KubernetesDeploy__run__does_not_write_on_load_errors(tmp_path: Path, client: InMemoryResourceClient) -> None:
    result = KubernetesDeploy(client).run(make_config(), tmp_path, {})

    assert result.status == ApplyStatus.FATAL
    assert client.writes() == []


def test__KubernetesDeploy__run__without_registries(workspace: Path, client: InMemoryResourceClient) -> None:
    config = DeployConfig(configs=["k8s/*.yaml"])
    result = KubernetesDeploy(client).run(config, workspace, {"TAG": "v1"})

    assert [event.kind for event in result.events] == [DEPLOYMENT]
    assert all(call.kind != SECRET for call in client.calls)


def test__KubernetesDeploy__apply__isolates_failures(client: InMemoryResourceClient, tmp_path: Path) -> None:
    (tmp_path / "cm.yaml").write_text(
        "".join(
            f"---\napiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: {name}\n  namespace: dev\n" for name in "abc"
        )
    )
    client.fail("create", CONFIG_MAP, "b", ClientError(None, "ConnectTimeoutError", "timed out"))
    cancel = threading.Event()

    result = KubernetesDeploy(client).apply_manifests([tmp_path], ["cm.yaml"], env={}, cancel=cancel)

    assert result.status == ApplyStatus.PARTIAL_FAILURE
    assert [event.name for event in result.events] == ["a", "c"]
    assert not result.cancelled
