import gzip
import logging
import os
import shutil
import tarfile
import zlib
from typing import BinaryIO

from tedge_oscar.errors import CorruptArchiveError, LocalWriteError

logger = logging.getLogger(__name__)

GZIP_SUFFIXES = (".gz", ".tgz")
CORRUPT_ARCHIVE_ERRORS = (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile)


def is_gzip_name(name: str) -> bool:
    return name.lower().endswith(GZIP_SUFFIXES)


def has_traversal(name: str) -> bool:
    return ".." in name.replace("\\", "/").split("/")


def extract_tar(fileobj: BinaryIO, output_dir: str, compressed: bool = False) -> int:
    """Stream a tar archive into ``output_dir`` and return the number of files written.

    Only regular files are materialized. Entries using ``..`` are skipped with a
    warning, files already written stay in place if a later entry fails.
    """
    mode = "r|gz" if compressed else "r|"
    written = 0
    try:
        with tarfile.open(fileobj=fileobj, mode=mode) as tar:
            for member in tar:
                if not member.isreg():
                    continue
                if has_traversal(member.name):
                    logger.warning(
                        f"Skipping '{member.name}' as it uses '..' within the path. "
                        "This is not allowed to prevent path traversal attacks."
                    )
                    continue
                _write_member(tar, member, output_dir)
                written += 1
    except CORRUPT_ARCHIVE_ERRORS as e:
        raise CorruptArchiveError(f"Error reading tarball: {e}") from e
    return written


def _write_member(tar: tarfile.TarFile, member: tarfile.TarInfo, output_dir: str) -> None:
    out_path = os.path.join(output_dir, member.name.lstrip("/"))
    try:
        os.makedirs(os.path.dirname(out_path), exist_ok=True)
        with open(out_path, "wb") as dst:
            shutil.copyfileobj(tar.extractfile(member), dst)
    except CORRUPT_ARCHIVE_ERRORS:
        raise
    except OSError as e:
        raise LocalWriteError(f"Failed to extract file {out_path}: {e}") from e
    logger.debug(f"Extracted {member.name} to {out_path}")


def write_tarball(source_dir: str, tarball_path: str) -> None:
    try:
        parent = os.path.dirname(tarball_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with tarfile.open(tarball_path, "w") as tar:
            for root, dirs, files in os.walk(source_dir):
                dirs.sort()
                for name in sorted(files):
                    path = os.path.join(root, name)
                    tar.add(path, arcname=os.path.relpath(path, source_dir))
    except OSError as e:
        raise LocalWriteError(f"Failed to write tarball {tarball_path}: {e}") from e
