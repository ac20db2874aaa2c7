import logging
import os
import re
from collections.abc import Mapping
from dataclasses import replace
from importlib import resources
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError

from tedge_oscar.errors import ConfigError
from tedge_oscar.models import Config, RegistryCredential
from tedge_oscar.utils.toml_loader import load_dict

logger = logging.getLogger(__name__)

CONFIG_ENV = "TEDGE_OSCAR_CONFIG"
SYSTEM_CONFIG_PATH = "/etc/tedge/plugins/tedge-oscar.toml"
DEFAULT_TEDGE_CONFIG_DIR = "/etc/tedge"
ENV_VAR_RE = re.compile(r"\$(?:\{(\w+)\}|(\w+))")


def expand_vars(value: str, environ: Mapping[str, str]) -> str:
    """Expand ``$VAR`` and ``${VAR}``, unknown variables expand to an empty string."""
    return ENV_VAR_RE.sub(lambda m: environ.get(m.group(1) or m.group(2), ""), value)


def default_config_path(environ: Mapping[str, str] | None = None) -> str:
    environ = os.environ if environ is None else environ
    if env_path := environ.get(CONFIG_ENV):
        return expand_vars(env_path, environ)
    if os.path.isfile(SYSTEM_CONFIG_PATH):
        return SYSTEM_CONFIG_PATH
    try:
        return str(Path.home() / ".config" / "tedge-oscar" / "config.toml")
    except RuntimeError:
        return "./tedge-oscar.toml"


class ConfigRepository:
    def __init__(self, file_path: str | None = None, environ: Mapping[str, str] | None = None):
        self.environ: dict[str, str] = dict(os.environ if environ is None else environ)
        self.file_path: str = file_path or default_config_path(self.environ)

    def load(self) -> Config:
        if os.path.isfile(self.file_path):
            source = self.file_path
            try:
                data = load_dict(self.file_path)
            except (OSError, TOMLKitError) as e:
                raise ConfigError(f"Failed to read config {self.file_path}: {e}") from e
        else:
            logger.debug(f"Config file {self.file_path} not found, using the default configuration")
            source = "default configuration"
            data = tomlkit.parse(resources.files("tedge_oscar").joinpath("default_config.toml").read_text()).unwrap()

        try:
            config = Config(**data)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration in {source}: {e}") from e
        return self.expand(config)

    def expand(self, config: Config) -> Config:
        environ = dict(self.environ)
        if not environ.get("TEDGE_CONFIG_DIR"):
            environ["TEDGE_CONFIG_DIR"] = config.tedge_config_dir or DEFAULT_TEDGE_CONFIG_DIR

        def expand_path(value: str) -> str:
            return os.path.expanduser(expand_vars(value, environ)) if value else value

        docker_config_dir = config.docker_config_dir or environ.get("DOCKER_CONFIG") or "~/.docker"
        return replace(
            config,
            image_dir=expand_path(config.image_dir),
            deploy_dir=expand_path(config.deploy_dir),
            cache_dir=expand_path(config.cache_dir),
            docker_config_dir=expand_path(docker_config_dir),
            registries=[
                RegistryCredential(
                    registry=expand_vars(r.registry, environ),
                    username=expand_vars(r.username, environ),
                    password=expand_vars(r.password, environ),
                )
                for r in config.registries
            ],
            unexpanded_image_dir=config.image_dir,
            unexpanded_deploy_dir=config.deploy_dir,
        )
