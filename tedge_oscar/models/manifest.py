import json
import os

from pydantic.dataclasses import dataclass

VERSION_ANNOTATION = "org.opencontainers.image.version"
TITLE_ANNOTATION = "org.opencontainers.image.title"
UNPACK_ANNOTATION = "io.deis.oras.content.unpack"
MANIFEST_FILE = "manifest.json"


def read_image_version(path: str | os.PathLike) -> str | None:
    """Return the version annotation of a manifest side-file, None when it is missing or unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        annotations = data.get("annotations") or {}
        version = annotations.get(VERSION_ANNOTATION)
        return version if isinstance(version, str) else None
    except (OSError, ValueError, AttributeError):
        return None


@dataclass(frozen=True)
class LocalImage:
    name: str
    path: str
    version: str = "<unknown>"
