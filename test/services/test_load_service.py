import gzip
import io
import tarfile
from unittest.mock import MagicMock

import pytest
from urllib3.exceptions import ProtocolError

from tedge_oscar.errors import CorruptArchiveError, FetchError, NotFoundError
from tedge_oscar.services.load_service import LoadService


def write_tarball(path, entries, compress=False):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
                continue
            if isinstance(content, tuple):
                info.type = tarfile.SYMTYPE
                info.linkname = content[0]
                tar.addfile(info)
                continue
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    data = gzip.compress(buf.getvalue()) if compress else buf.getvalue()
    path.write_bytes(data)
    return str(path)


@pytest.fixture
def service():
    svc = LoadService()
    svc.logger = MagicMock()
    return svc


def test_load_plain_tarball(tmp_path, service):
    source = write_tarball(tmp_path / "counter.tar", {
        "lib": None,
        "lib/main.js": b"console.log('hi')",
        "flow.toml": b"[[steps]]\nscript = 'x'\n",
        "link": ("lib/main.js",),
    })
    out = tmp_path / "images" / "counter"

    assert service.run(source, str(out)) == 2
    assert (out / "lib" / "main.js").read_bytes() == b"console.log('hi')"
    assert (out / "flow.toml").exists()
    assert not (out / "link").exists()


def test_load_gzip_tarball(tmp_path, service):
    source = write_tarball(tmp_path / "counter.tar.gz", {"lib/main.js": b"main"}, compress=True)
    out = tmp_path / "out"
    service.run(source, str(out))
    assert (out / "lib" / "main.js").read_bytes() == b"main"


def test_traversal_entries_are_skipped(tmp_path, service):
    source = write_tarball(tmp_path / "evil.tar", {
        "../../etc/passwd": b"root:x:0:0",
        "lib/main.js": b"main",
    })
    out = tmp_path / "a" / "b" / "out"

    assert service.run(source, str(out)) == 1
    assert (out / "lib" / "main.js").exists()
    assert not (tmp_path / "a" / "etc").exists()
    assert not (tmp_path / "etc").exists()


def test_overwrites_existing_files(tmp_path, service):
    out = tmp_path / "out"
    (out / "lib").mkdir(parents=True)
    (out / "lib" / "main.js").write_text("old")
    (out / "extra.txt").write_text("kept")
    source = write_tarball(tmp_path / "counter.tar", {"lib/main.js": b"new"})

    service.run(source, str(out))

    assert (out / "lib" / "main.js").read_text() == "new"
    assert (out / "extra.txt").read_text() == "kept"


def test_missing_source(tmp_path, service):
    with pytest.raises(NotFoundError):
        service.run(str(tmp_path / "missing.tar"), str(tmp_path / "out"))


def test_gzip_suffix_with_plain_content_is_corrupt(tmp_path, service):
    source = write_tarball(tmp_path / "counter.tar.gz", {"lib/main.js": b"main"}, compress=False)
    with pytest.raises(CorruptArchiveError):
        service.run(source, str(tmp_path / "out"))


def test_load_from_url_uses_url_path_for_compression(tmp_path, service):
    data = gzip.compress(tarfile_bytes({"lib/main.js": b"remote"}))
    service.tarball = MagicMock()
    service.tarball.open.return_value = io.BytesIO(data)

    service.run("https://example.com/counter.tar.gz?token=abc", str(tmp_path / "out"))

    assert (tmp_path / "out" / "lib" / "main.js").read_bytes() == b"remote"


def tarfile_bytes(entries):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for name, content in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


class DroppingStream(io.RawIOBase):
    """Serves the first chunk of a tarball, then fails like an interrupted HTTP body."""

    def __init__(self, data):
        self.data = data
        self.served = False

    def readable(self):
        return True

    def readinto(self, buffer):
        if self.served:
            raise ProtocolError("Connection broken: IncompleteRead")
        self.served = True
        n = min(len(buffer), 512)
        buffer[:n] = self.data[:n]
        return n


def test_interrupted_download_raises_fetch_error(tmp_path, service):
    data = tarfile_bytes({"lib/main.js": b"x" * 4096})
    service.tarball = MagicMock()
    service.tarball.open.return_value = DroppingStream(data)

    with pytest.raises(FetchError, match="IncompleteRead"):
        service.run("https://example.com/counter.tar", str(tmp_path / "out"))
