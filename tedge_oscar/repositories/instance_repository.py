import logging
import os
from collections.abc import Iterator

from tomlkit.exceptions import TOMLKitError

from tedge_oscar.errors import LocalWriteError
from tedge_oscar.models import InstanceFile, InstanceSummary
from tedge_oscar.models.manifest import MANIFEST_FILE, read_image_version
from tedge_oscar.utils.reference import trim_version
from tedge_oscar.utils.toml_loader import load_dict

logger = logging.getLogger(__name__)

INSTANCE_SUFFIX = ".toml"


class InstanceRepository:
    def __init__(
        self,
        deploy_dir: str,
        image_dir: str = "",
        display_deploy_dir: str | None = None,
    ):
        self.deploy_dir: str = deploy_dir
        self.image_dir: str = image_dir
        self.display_deploy_dir: str = display_deploy_dir or deploy_dir

    def path_for(self, name: str) -> str:
        return os.path.join(self.deploy_dir, f"{name}{INSTANCE_SUFFIX}")

    def find_all(self) -> Iterator[InstanceSummary]:
        if not os.path.isdir(self.deploy_dir):
            return
        with os.scandir(self.deploy_dir) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir() or not entry.name.endswith(INSTANCE_SUFFIX):
                continue
            yield self._summarize(entry.name)

    def save(self, name: str, content: str) -> str:
        path = self.path_for(name)
        try:
            os.makedirs(self.deploy_dir, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise LocalWriteError(f"Failed to write instance file {path}: {e}") from e
        return path

    def remove(self, name: str) -> bool:
        path = self.path_for(name)
        if not os.path.isfile(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            raise LocalWriteError(f"Failed to remove instance file {path}: {e}") from e
        return True

    def _summarize(self, file_name: str) -> InstanceSummary:
        name = file_name.removesuffix(INSTANCE_SUFFIX)
        display_path = os.path.join(self.display_deploy_dir, file_name)
        file_path = os.path.join(self.deploy_dir, file_name)
        try:
            parsed = InstanceFile(**load_dict(file_path))
        except (OSError, TOMLKitError, TypeError, ValueError) as e:
            logger.warning(f"Invalid instance file {file_path}: {e}")
            return InstanceSummary(name=name, path=display_path)
        if not parsed.steps:
            return InstanceSummary(name=name, path=display_path)

        script = parsed.steps[0].script
        artifact_dir = os.path.dirname(os.path.dirname(script))
        image_version = None
        if self.image_dir and _is_within(script, self.image_dir):
            image_version = read_image_version(os.path.join(artifact_dir, MANIFEST_FILE))
        dir_name = os.path.basename(artifact_dir)
        return InstanceSummary(
            name=name,
            path=display_path,
            topics=", ".join(parsed.input.mqtt.topics),
            image=trim_version(dir_name) if dir_name not in ("", ".", "/") else "<invalid>",
            image_version=image_version or "<unknown>",
        )


def _is_within(path: str, directory: str) -> bool:
    directory = os.path.abspath(directory)
    return os.path.commonpath([os.path.abspath(path), directory]) == directory
