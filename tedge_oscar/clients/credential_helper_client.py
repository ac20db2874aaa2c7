import json
import logging
import subprocess

logger = logging.getLogger(__name__)


class CredentialHelperClient:
    """Runs a docker credential helper (``docker-credential-<name>``)."""

    def __init__(self, timeout: int = 10):
        self.timeout: int = timeout

    def get(self, helper: str, server_url: str) -> tuple[str, str] | None:
        cmd = [f"docker-credential-{helper}", "get"]
        result = subprocess.run(
            cmd, input=server_url, capture_output=True, text=True, check=False, timeout=self.timeout
        )
        if result.returncode != 0:
            logger.debug(f"Credential helper {helper} returned {result.returncode} for {server_url}: {result.stdout.strip()}")
            return None
        data = json.loads(result.stdout)
        return data.get("Username", ""), data.get("Secret", "")
