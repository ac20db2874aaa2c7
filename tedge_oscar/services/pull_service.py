import hashlib
import json
import logging
import os
import re
import shutil
import tempfile
from typing import Any, override

from tedge_oscar.clients.image_registry_client import ImageRegistryClient
from tedge_oscar.errors import CorruptArchiveError, LocalWriteError
from tedge_oscar.models import Config, Reference
from tedge_oscar.models.manifest import MANIFEST_FILE, TITLE_ANNOTATION, UNPACK_ANNOTATION
from tedge_oscar.repositories import BlobCacheRepository
from tedge_oscar.services.credential_service import CredentialResolver
from tedge_oscar.services.service import Service
from tedge_oscar.utils.archive import extract_tar, has_traversal, is_gzip_name, write_tarball
from tedge_oscar.utils.logging import setup_logger
from tedge_oscar.utils.reference import parse_reference

LOCAL_REGISTRIES = ("localhost", "127.0.0.1")
TAR_MEDIA_TYPE_RE = re.compile(r"\btar\b")
HASH_CHUNK_SIZE = 1024 * 1024


class PullService(Service):
    def __init__(
        self,
        config: Config,
        credential_resolver: CredentialResolver | None = None,
        blob_cache: BlobCacheRepository | None = None,
    ):
        self.config: Config = config
        self.credentials: CredentialResolver = credential_resolver or CredentialResolver(config)
        self.blob_cache: BlobCacheRepository | None = blob_cache or (
            BlobCacheRepository(config.cache_dir) if config.cache_dir else None
        )
        self.logger: logging.Logger = setup_logger("PullService")

    def create_client(self, reference: Reference) -> ImageRegistryClient:
        credential = self.credentials.resolve(reference.registry)
        host = reference.registry.split(":")[0]
        insecure = reference.registry in self.config.insecure_registries or host in LOCAL_REGISTRIES
        return ImageRegistryClient(reference.registry, credential, insecure=insecure)

    @override
    def run(self, ref: str, output_dir: str, tarball_path: str = "", cache_disabled: bool = False) -> str:
        reference = parse_reference(ref)
        client = self.create_client(reference)
        self.logger.info(f"Pulling {reference} into {output_dir}")
        manifest = client.get_manifest(reference.repository, reference.reference)

        parent = os.path.dirname(os.path.abspath(output_dir))
        try:
            os.makedirs(parent, exist_ok=True)
            workdir = tempfile.mkdtemp(prefix=".pull-", dir=parent)
        except OSError as e:
            raise LocalWriteError(f"Failed to prepare {output_dir} for {ref}: {e}") from e

        try:
            content_dir = os.path.join(workdir, "content")
            blobs_dir = os.path.join(workdir, "blobs")
            try:
                os.makedirs(content_dir)
                os.makedirs(blobs_dir)
            except OSError as e:
                raise LocalWriteError(f"Failed to prepare {output_dir} for {ref}: {e}") from e

            for layer in manifest.get("layers") or []:
                blob_path = self._fetch_blob(client, reference, layer["digest"], blobs_dir, cache_disabled)
                self._materialize_layer(layer, blob_path, content_dir)
            self._write_manifest(manifest, content_dir)

            if tarball_path:
                write_tarball(content_dir, tarball_path)
                self.logger.info(f"Saved {reference} as tarball {tarball_path}")
            self._replace(content_dir, output_dir)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        self.logger.info(f"Image {reference} pulled to {output_dir}")
        return output_dir

    def _fetch_blob(
        self, client: ImageRegistryClient, reference: Reference, digest: str, blobs_dir: str, cache_disabled: bool
    ) -> str:
        use_cache = self.blob_cache is not None and not cache_disabled
        if use_cache:
            cached = self.blob_cache.get(digest)
            if cached and _digest_matches(cached, digest):
                self.logger.debug(f"Using cached blob {digest}")
                return cached
            if cached:
                self.logger.warning(f"Cached blob {digest} is corrupt, downloading it again")
                self.blob_cache.discard(digest)

        target = client.download_blob(reference.repository, digest, os.path.join(blobs_dir, digest.replace(":", "_")))
        if not _digest_matches(target, digest):
            raise CorruptArchiveError(f"Blob {digest} of {reference} does not match its digest")
        self.logger.debug(f"Downloaded blob {digest} ({os.path.getsize(target)} bytes)")

        if use_cache:
            try:
                self.blob_cache.put(digest, target)
            except LocalWriteError as e:
                self.logger.warning(f"Not caching blob {digest}: {e}")
        return target

    def _materialize_layer(self, layer: dict[str, Any], blob_path: str, content_dir: str) -> None:
        media_type = layer.get("mediaType", "")
        annotations = layer.get("annotations") or {}
        title = annotations.get(TITLE_ANNOTATION, "")

        # oras stores plain files as tar layers too, only unpack flagged or untitled archives
        if annotations.get(UNPACK_ANNOTATION) == "true" or (not title and TAR_MEDIA_TYPE_RE.search(media_type)):
            compressed = media_type.endswith("gzip") or is_gzip_name(title)
            with open(blob_path, "rb") as f:
                extract_tar(f, content_dir, compressed=compressed)
            return

        if not title:
            self.logger.warning(f"Skipping layer {layer.get('digest')} without a title annotation")
            return
        if has_traversal(title):
            self.logger.warning(f"Skipping layer '{title}' as it uses '..' within the path")
            return
        dest = os.path.join(content_dir, title.lstrip("/"))
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            shutil.copyfile(blob_path, dest)
        except OSError as e:
            raise LocalWriteError(f"Failed to write {dest}: {e}") from e

    def _write_manifest(self, manifest: dict[str, Any], content_dir: str) -> None:
        path = os.path.join(content_dir, MANIFEST_FILE)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(manifest, f, indent=2)
        except OSError as e:
            raise LocalWriteError(f"Failed to write {path}: {e}") from e

    def _replace(self, content_dir: str, output_dir: str) -> None:
        try:
            if os.path.isdir(output_dir) and not os.path.islink(output_dir):
                shutil.rmtree(output_dir)
            elif os.path.lexists(output_dir):
                os.remove(output_dir)
            os.replace(content_dir, output_dir)
        except OSError as e:
            raise LocalWriteError(f"Failed to move pulled content to {output_dir}: {e}") from e


def _digest_matches(path: str, digest: str) -> bool:
    algorithm, _, expected = digest.partition(":")
    try:
        hasher = hashlib.new(algorithm)
    except ValueError:
        return True
    with open(path, "rb") as f:
        while chunk := f.read(HASH_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest() == expected.lower()
