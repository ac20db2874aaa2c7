import base64
import json
import logging
import os
from collections.abc import Callable

from tedge_oscar.clients.credential_helper_client import CredentialHelperClient
from tedge_oscar.models import Config, RegistryCredential
from tedge_oscar.utils.logging import setup_logger

DOCKER_CONFIG_FILE = "config.json"
DOCKER_HUB_HOSTS = ("docker.io", "index.docker.io", "registry-1.docker.io")
DOCKER_HUB_SERVER = "https://index.docker.io/v1/"

Probe = Callable[[str], RegistryCredential | None]


def server_keys(registry: str) -> list[str]:
    """Keys under which docker stores credentials for ``registry``."""
    if registry in DOCKER_HUB_HOSTS:
        return [DOCKER_HUB_SERVER, "docker.io", "index.docker.io"]
    return [registry, f"https://{registry}", f"http://{registry}"]


class CredentialResolver:
    """Finds credentials for a registry host.

    Probes run in a fixed order: the docker credential helper configured for
    the host, the credentials stored in the docker config file, then the
    static ``registries`` list of the tedge-oscar configuration. A probe that
    fails is treated as a miss, and when every probe misses the registry is
    accessed anonymously.
    """

    def __init__(self, config: Config, helper_client: CredentialHelperClient | None = None):
        self.config: Config = config
        self.helper_client: CredentialHelperClient = helper_client or CredentialHelperClient()
        self.logger: logging.Logger = setup_logger("CredentialResolver")
        self.probes: list[tuple[str, Probe]] = [
            ("credential helper", self.from_credential_helper),
            ("docker config", self.from_docker_config),
            ("tedge-oscar config", self.from_config),
        ]

    def resolve(self, registry: str) -> RegistryCredential | None:
        for source, probe in self.probes:
            try:
                credential = probe(registry)
            except Exception as e:
                self.logger.debug(f"Credential lookup in {source} failed for {registry}: {e}")
                continue
            if credential and credential.username and credential.password:
                self.logger.info(f"Using credentials for {registry} from {source}")
                return credential
        self.logger.info(f"No credentials found for {registry}, accessing it anonymously")
        return None

    def from_credential_helper(self, registry: str) -> RegistryCredential | None:
        docker_config = self._read_docker_config()
        helpers = docker_config.get("credHelpers") or {}
        for key in server_keys(registry):
            helper = helpers.get(key) or docker_config.get("credsStore")
            if not helper:
                continue
            result = self.helper_client.get(helper, key)
            if result:
                username, password = result
                return RegistryCredential(registry=registry, username=username, password=password)
        return None

    def from_docker_config(self, registry: str) -> RegistryCredential | None:
        auths = self._read_docker_config().get("auths") or {}
        for key in server_keys(registry):
            entry = auths.get(key)
            if not entry:
                continue
            if encoded := entry.get("auth"):
                username, _, password = base64.b64decode(encoded).decode("utf-8").partition(":")
            else:
                username, password = entry.get("username", ""), entry.get("password", "")
            return RegistryCredential(registry=registry, username=username, password=password)
        return None

    def from_config(self, registry: str) -> RegistryCredential | None:
        return next((c for c in self.config.registries if c.registry == registry), None)

    def _read_docker_config(self) -> dict:
        if not self.config.docker_config_dir:
            return {}
        path = os.path.join(self.config.docker_config_dir, DOCKER_CONFIG_FILE)
        if not os.path.isfile(path):
            return {}
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
