import logging
from typing import Any

import requests
from oras.client import OrasClient

from tedge_oscar.errors import AuthError, LocalWriteError, NetworkError, NotFoundError, OscarError
from tedge_oscar.models import RegistryCredential

logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = ("manifest unknown", "blob unknown", "name unknown", "not found")
AUTH_MARKERS = ("unauthorized", "denied", "forbidden")


class ImageRegistryClient:
    """Registry access through the oras client, with failures mapped onto OscarError types."""

    def __init__(self, registry: str, credential: RegistryCredential | None = None, insecure: bool = False):
        self.registry: str = registry
        self.oras: OrasClient = OrasClient(insecure=insecure, auth_backend="token")
        # oras prompts for missing values, so anonymous access skips login
        if credential and credential.username and credential.password:
            try:
                self.oras.login(hostname=registry, username=credential.username, password=credential.password)
            except Exception as e:
                raise AuthError(registry, f"Failed to authenticate with registry: {e}") from e

    def container(self, repository: str, reference: str | None = None) -> str:
        name = f"{self.registry}/{repository}"
        if not reference:
            return name
        # digests always carry an algorithm prefix, tags cannot contain ':'
        return f"{name}@{reference}" if ":" in reference else f"{name}:{reference}"

    def get_manifest(self, repository: str, reference: str) -> dict[str, Any]:
        target = self.container(repository, reference)
        try:
            manifest: dict[str, Any] = self.oras.get_manifest(container=target)
        except Exception as e:
            raise self._translate(e, target) from e
        logger.debug(f"Fetched manifest of {target} ({len(manifest.get('layers') or [])} layers)")
        return manifest

    def download_blob(self, repository: str, digest: str, outfile: str) -> str:
        target = f"{self.container(repository)}@{digest}"
        try:
            return self.oras.download_blob(container=self.container(repository), digest=digest, outfile=outfile)
        except requests.RequestException as e:
            raise self._translate(e, target) from e
        except OSError as e:
            raise LocalWriteError(f"Failed to store blob {digest} at {outfile}: {e}") from e
        except Exception as e:
            raise self._translate(e, target) from e

    def _translate(self, error: Exception, target: str) -> OscarError:
        status = getattr(getattr(error, "response", None), "status_code", None)
        message = str(error).lower()
        if status == 404 or any(marker in message for marker in NOT_FOUND_MARKERS):
            return NotFoundError(f"{target} not found on registry: {error}")
        if status in (401, 403) or any(marker in message for marker in AUTH_MARKERS):
            return AuthError(target, f"Access denied by registry: {error}")
        return NetworkError(target, f"Error contacting registry {self.registry}: {error}")
