import pytest

from kubedeploy.resources import KindTag, Resource
from kubedeploy.resources.kinds import DEPLOYMENT, EXTENSIONS_DEPLOYMENT, NAMESPACE
from kubedeploy.tools.types import Manifest


def test__KindTag__label() -> None:
    assert NAMESPACE.label == "Namespace/v1"
    assert DEPLOYMENT.label == "Deployment.apps/v1"
    assert EXTENSIONS_DEPLOYMENT.label == "Deployment.extensions/v1beta1"
    assert DEPLOYMENT != EXTENSIONS_DEPLOYMENT


def test__KindTag__group_and_version() -> None:
    assert NAMESPACE.group == ""
    assert NAMESPACE.version == "v1"
    assert EXTENSIONS_DEPLOYMENT.group == "extensions"
    assert EXTENSIONS_DEPLOYMENT.version == "v1beta1"


def test__Resource__from_manifest() -> None:
    manifest = Manifest(
        {"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": "app", "namespace": "dev"}}
    )
    resource = Resource.from_manifest(manifest)

    assert resource.kind == KindTag("apps/v1", "Deployment")
    assert resource.name == "app"
    assert resource.namespace == "dev"
    assert resource.key == (DEPLOYMENT, "dev", "app")
    assert resource.label == "Deployment.apps/v1 dev/app"

    # The resource keeps its own copy of the manifest.
    manifest["metadata"]["name"] = "changed"
    assert resource.manifest["metadata"]["name"] == "app"


def test__Resource__from_manifest__without_namespace() -> None:
    resource = Resource.from_manifest(Manifest({"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "c"}}))
    assert resource.namespace is None
    assert resource.key[1] == ""
    assert "namespace" not in resource.body()["metadata"]


@pytest.mark.parametrize(
    "manifest,message",
    [
        ({"kind": "Pod", "metadata": {"name": "p"}}, "apiVersion"),
        ({"apiVersion": "v1", "metadata": {"name": "p"}}, "kind"),
        ({"apiVersion": "v1", "kind": "Pod"}, "metadata"),
        ({"apiVersion": "v1", "kind": "Pod", "metadata": {}}, "metadata.name"),
    ],
)
def test__Resource__from_manifest__rejects_incomplete_manifests(manifest: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        Resource.from_manifest(Manifest(manifest))
