import logging
from typing import BinaryIO

import requests

from tedge_oscar.errors import FetchError, NotFoundError

logger = logging.getLogger(__name__)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class TarballClient:
    def __init__(self, timeout: int = 60):
        self.timeout: int = timeout

    def open(self, source: str) -> BinaryIO:
        if is_url(source):
            return self._download(source)
        try:
            return open(source, "rb")
        except FileNotFoundError as e:
            raise NotFoundError(f"Tarball {source} does not exist") from e
        except OSError as e:
            raise FetchError(f"Failed to open tarball {source}: {e}") from e

    def _download(self, url: str) -> BinaryIO:
        logger.info(f"Downloading tarball from {url}")
        try:
            response = requests.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Failed to download tarball {url}: {e}") from e
        if response.status_code != 200:
            response.close()
            raise FetchError(f"Failed to download tarball {url}: status {response.status_code}")
        response.raw.decode_content = True
        return response.raw
