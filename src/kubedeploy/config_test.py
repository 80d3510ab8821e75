from pathlib import Path
from textwrap import dedent

import pytest

from kubedeploy.config import DeployConfig, DeployConfigFile
from kubedeploy.credentials import EnvCredentialResolver, FileCredentialResolver, NullCredentialResolver
from kubedeploy.credentials import RegistryCredential


def test__DeployConfigFile__load(tmp_path: Path) -> None:
    file = tmp_path / "kubedeploy.yaml"
    file.write_text(
        dedent(
            """
            configs: ["k8s/**/*.yaml"]
            enable_config_substitution: false
            secret_namespace: ci
            service_account: null
            docker_credentials:
              - credentials_id: acr
                url: myregistry.azurecr.io
            credentials:
              provider: file
              path: creds.yaml
            """
        )
    )

    loaded = DeployConfigFile.load(file)

    assert loaded.file == file
    assert loaded.root == tmp_path
    config = loaded.config
    assert config.configs == ["k8s/**/*.yaml"]
    assert not config.enable_config_substitution
    assert config.effective_secret_namespace == "ci"
    assert config.secret_name is None
    assert config.secret_name_prefix == "registry-credentials"
    assert config.service_account is None
    assert config.docker_credentials == [RegistryCredential("acr", "myregistry.azurecr.io")]
    assert isinstance(config.credentials, FileCredentialResolver)
    assert config.credentials.path == tmp_path / "creds.yaml"
    assert config.wants_pull_secret


def test__DeployConfigFile__load__empty_file(tmp_path: Path) -> None:
    file = tmp_path / "kubedeploy.yaml"
    file.write_text("")
    config = DeployConfigFile.load(file).config
    assert config == DeployConfig()
    assert config.service_account == "default"
    assert not config.wants_pull_secret
    assert isinstance(config.credential_resolver, NullCredentialResolver)


def test__DeployConfigFile__find(tmp_path: Path) -> None:
    (tmp_path / "kubedeploy.yaml").write_text("configs: ['*.yaml']\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert DeployConfigFile.find(nested) == tmp_path / "kubedeploy.yaml"


def test__DeployConfigFile__find__not_found(tmp_path: Path) -> None:
    # The search continues into the parents of tmp_path, which are not expected to contain a kubedeploy.yaml.
    assert DeployConfigFile.find(tmp_path, required=False) is None
    with pytest.raises(FileNotFoundError):
        DeployConfigFile.find(tmp_path)


def test__DeployConfig__secret_variables() -> None:
    config = DeployConfig(secret_namespace=" ", credentials=EnvCredentialResolver())
    assert config.secret_variables("pull") == {
        "KUBERNETES_SECRET_NAME": "pull",
        "KUBERNETES_SECRET_NAMESPACE": "default",
    }
    assert isinstance(config.credential_resolver, EnvCredentialResolver)
