import base64
import json
from unittest.mock import MagicMock

import pytest

from tedge_oscar.models import Config, RegistryCredential
from tedge_oscar.services.credential_service import CredentialResolver, server_keys

HOST = "registry.example.com"


@pytest.fixture
def docker_dir(tmp_path):
    path = tmp_path / "docker"
    path.mkdir()
    return path


def write_docker_config(docker_dir, data):
    (docker_dir / "config.json").write_text(json.dumps(data))


@pytest.fixture
def config(tmp_path, docker_dir):
    return Config(
        image_dir=str(tmp_path / "images"),
        deploy_dir=str(tmp_path / "deploy"),
        docker_config_dir=str(docker_dir),
        registries=[RegistryCredential(registry=HOST, username="static-user", password="static-pass")],
    )


@pytest.fixture
def helper():
    client = MagicMock()
    client.get.return_value = None
    return client


def test_falls_back_to_static_config(config, helper):
    resolver = CredentialResolver(config, helper_client=helper)
    credential = resolver.resolve(HOST)
    assert (credential.username, credential.password) == ("static-user", "static-pass")


def test_credential_helper_has_priority(config, helper, docker_dir):
    write_docker_config(docker_dir, {
        "credHelpers": {HOST: "desktop"},
        "auths": {HOST: {"auth": base64.b64encode(b"file-user:file-pass").decode()}},
    })
    helper.get.return_value = ("helper-user", "helper-pass")

    credential = CredentialResolver(config, helper_client=helper).resolve(HOST)

    assert (credential.username, credential.password) == ("helper-user", "helper-pass")
    helper.get.assert_called_once_with("desktop", HOST)


def test_docker_config_auths_before_static_config(config, helper, docker_dir):
    write_docker_config(docker_dir, {"auths": {HOST: {"auth": base64.b64encode(b"file-user:file:pass").decode()}}})
    credential = CredentialResolver(config, helper_client=helper).resolve(HOST)
    assert (credential.username, credential.password) == ("file-user", "file:pass")


def test_failing_probes_are_treated_as_misses(config, helper, docker_dir):
    write_docker_config(docker_dir, {"credsStore": "broken"})
    helper.get.side_effect = FileNotFoundError("docker-credential-broken")

    credential = CredentialResolver(config, helper_client=helper).resolve(HOST)
    assert credential.username == "static-user"


def test_malformed_docker_config_is_a_miss(config, helper, docker_dir):
    (docker_dir / "config.json").write_text("{not json")
    assert CredentialResolver(config, helper_client=helper).resolve(HOST).username == "static-user"


def test_empty_credentials_are_skipped(config, helper, docker_dir):
    write_docker_config(docker_dir, {"auths": {HOST: {"username": "", "password": ""}}})
    assert CredentialResolver(config, helper_client=helper).resolve(HOST).username == "static-user"


def test_no_credentials_returns_none(config, helper):
    assert CredentialResolver(config, helper_client=helper).resolve("ghcr.io") is None


def test_static_config_requires_exact_host(config, helper):
    assert CredentialResolver(config, helper_client=helper).resolve("REGISTRY.example.com") is None


def test_docker_hub_keys():
    assert server_keys("docker.io")[0] == "https://index.docker.io/v1/"
    assert server_keys(HOST)[0] == HOST
