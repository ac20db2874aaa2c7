import logging
import os
from collections.abc import Iterator

from tedge_oscar.models import LocalImage
from tedge_oscar.models.manifest import MANIFEST_FILE, read_image_version

logger = logging.getLogger(__name__)

ENTRYPOINT = os.path.join("lib", "main.js")
TEMPLATE_CANDIDATES = ("flow.toml", "pipeline.toml")


class ImageRepository:
    """Layout of the local image cache: one directory per normalized artifact name."""

    def __init__(self, image_dir: str):
        self.image_dir: str = image_dir

    def artifact_dir(self, name: str) -> str:
        return os.path.join(self.image_dir, name)

    def entrypoint(self, name: str) -> str:
        return os.path.join(self.artifact_dir(name), ENTRYPOINT)

    def exists(self, name: str) -> bool:
        return os.path.isdir(self.artifact_dir(name))

    def has_entrypoint(self, name: str) -> bool:
        return os.path.isfile(self.entrypoint(name))

    def find_template(self, name: str) -> str | None:
        for candidate in TEMPLATE_CANDIDATES:
            path = os.path.join(self.artifact_dir(name), candidate)
            if os.path.isfile(path):
                return path
        return None

    def find_all(self) -> Iterator[LocalImage]:
        if not os.path.isdir(self.image_dir):
            return
        for root, dirs, _ in os.walk(self.image_dir):
            dirs.sort()
            if os.path.isfile(os.path.join(root, ENTRYPOINT)):
                dirs.clear()
                name = os.path.relpath(root, self.image_dir)
                version = read_image_version(os.path.join(root, MANIFEST_FILE))
                yield LocalImage(name=name, path=root, version=version or "<unknown>")
