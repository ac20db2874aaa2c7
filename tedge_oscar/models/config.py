from dataclasses import field

from pydantic.dataclasses import dataclass

from .credential import RegistryCredential

DEFAULT_MAPPER = "flows"


@dataclass
class Config:
    image_dir: str
    deploy_dir: str
    cache_dir: str = ""
    docker_config_dir: str = ""
    tedge_config_dir: str = "/etc/tedge"
    insecure_registries: list[str] = field(default_factory=list)
    registries: list[RegistryCredential] = field(default_factory=list)
    unexpanded_image_dir: str = ""
    unexpanded_deploy_dir: str = ""

    def get_deploy_dir(self, mapper: str = DEFAULT_MAPPER) -> str:
        try:
            return self.deploy_dir.format(mapper=mapper)
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid deploy_dir template '{self.deploy_dir}': {e}") from e

    def get_display_deploy_dir(self, mapper: str = DEFAULT_MAPPER) -> str:
        if not self.unexpanded_deploy_dir:
            return "$DEPLOY_DIR"
        return self.unexpanded_deploy_dir.replace("{mapper}", mapper)
