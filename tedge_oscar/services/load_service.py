import logging
from typing import override
from urllib.parse import urlparse

import requests
import urllib3

from tedge_oscar.clients.tarball_client import TarballClient, is_url
from tedge_oscar.errors import FetchError
from tedge_oscar.services.service import Service
from tedge_oscar.utils.archive import extract_tar, is_gzip_name
from tedge_oscar.utils.logging import setup_logger


class LoadService(Service):
    """Loads a flow image from a tarball (local path or http(s) URL) into a directory."""

    def __init__(self, tarball_client: TarballClient | None = None):
        self.tarball: TarballClient = tarball_client or TarballClient()
        self.logger: logging.Logger = setup_logger("LoadService")

    @override
    def run(self, source: str, output_dir: str) -> int:
        self.logger.info(f"Loading tarball {source} into {output_dir}")
        compressed = is_gzip_name(urlparse(source).path if is_url(source) else source)
        try:
            with self.tarball.open(source) as stream:
                written = extract_tar(stream, output_dir, compressed=compressed)
        except (urllib3.exceptions.HTTPError, requests.RequestException) as e:
            raise FetchError(f"Failed to download tarball {source}: {e}") from e
        self.logger.info(f"Extracted {written} files from {source} to {output_dir}")
        return written
