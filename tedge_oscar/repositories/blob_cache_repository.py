import logging
import os
import shutil

from tedge_oscar.errors import LocalWriteError

logger = logging.getLogger(__name__)


class BlobCacheRepository:
    """Content-addressed store of downloaded blobs, keyed by digest."""

    def __init__(self, cache_dir: str):
        self.cache_dir: str = cache_dir

    def path_for(self, digest: str) -> str:
        algorithm, _, encoded = digest.partition(":")
        return os.path.join(self.cache_dir, "blobs", algorithm, encoded)

    def get(self, digest: str) -> str | None:
        path = self.path_for(digest)
        return path if os.path.isfile(path) else None

    def put(self, digest: str, source: str) -> str:
        path = self.path_for(digest)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            shutil.copyfile(source, path)
        except OSError as e:
            raise LocalWriteError(f"Failed to cache blob {digest} at {path}: {e}") from e
        logger.debug(f"Cached blob {digest} at {path}")
        return path

    def discard(self, digest: str) -> None:
        path = self.path_for(digest)
        if os.path.isfile(path):
            os.remove(path)
