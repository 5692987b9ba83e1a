"""PackageIndexClient 单元测试 — patch urlopen，不访问网络"""

from __future__ import annotations

import hashlib
import io
import json
import urllib.error
import urllib.request
from pathlib import Path

import pytest

from toolshed.core.exceptions import (
    InvalidReferenceError,
    PackageNotFoundError,
    SourceUnreachableError,
)
from toolshed.services.acquire.index_client import (
    PackageIndexClient,
    ReleaseArtifact,
    pick_release_file,
)

SOURCE = "https://index.example.com/pypi"


def _release(version: str, files: list[dict]) -> bytes:
    return json.dumps({"info": {"name": "Foo", "version": version}, "urls": files}).encode()


SDIST = {
    "packagetype": "sdist",
    "filename": "foo-1.2.0.tar.gz",
    "url": "https://files.example.com/foo-1.2.0.tar.gz",
    "digests": {"sha256": "abc"},
}
WHEEL = {
    "packagetype": "bdist_wheel",
    "filename": "foo-1.2.0-py3-none-any.whl",
    "url": "https://files.example.com/foo-1.2.0-py3-none-any.whl",
    "digests": {"sha256": "def"},
}
PLATFORM_WHEEL = {
    "packagetype": "bdist_wheel",
    "filename": "foo-1.2.0-cp312-cp312-manylinux_2_17_x86_64.whl",
    "url": "https://files.example.com/foo-1.2.0-cp312-cp312-manylinux_2_17_x86_64.whl",
}


@pytest.fixture()
def responses(monkeypatch) -> dict[str, object]:
    """url -> bytes 或 Exception"""
    table: dict[str, object] = {}
    requested: list[str] = []

    def fake_urlopen(req, timeout=None):
        url = req.full_url if isinstance(req, urllib.request.Request) else req
        requested.append(url)
        result = table.get(url)
        if result is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", hdrs=None, fp=None)
        if isinstance(result, Exception):
            raise result
        return io.BytesIO(result)

    monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)
    table["_requested"] = requested
    return table


class TestResolve:

    def test_latest_prefers_pure_wheel(self, responses) -> None:
        responses[f"{SOURCE}/foo/json"] = _release("1.2.0", [SDIST, PLATFORM_WHEEL, WHEEL])
        artifact = PackageIndexClient(SOURCE).resolve("foo")
        assert artifact.version == "1.2.0"
        assert artifact.filename == "foo-1.2.0-py3-none-any.whl"
        assert artifact.is_wheel
        assert artifact.sha256 == "def"

    def test_falls_back_to_sdist(self, responses) -> None:
        responses[f"{SOURCE}/foo/json"] = _release("1.2.0", [PLATFORM_WHEEL, SDIST])
        artifact = PackageIndexClient(SOURCE).resolve("foo")
        assert artifact.filename == "foo-1.2.0.tar.gz"
        assert not artifact.is_wheel

    def test_specific_version_url(self, responses) -> None:
        responses[f"{SOURCE}/foo/0.9/json"] = _release("0.9", [SDIST])
        artifact = PackageIndexClient(SOURCE + "/").resolve("foo", "0.9")
        assert artifact.version == "0.9"
        assert responses["_requested"] == [f"{SOURCE}/foo/0.9/json"]

    def test_unknown_package(self, responses) -> None:
        with pytest.raises(PackageNotFoundError, match="不存在"):
            PackageIndexClient(SOURCE).resolve("nope")

    def test_unknown_version(self, responses) -> None:
        responses[f"{SOURCE}/foo/json"] = _release("1.2.0", [SDIST])
        with pytest.raises(PackageNotFoundError):
            PackageIndexClient(SOURCE).resolve("foo", "9.9")

    def test_no_installable_files(self, responses) -> None:
        responses[f"{SOURCE}/foo/json"] = _release("1.2.0", [PLATFORM_WHEEL])
        with pytest.raises(PackageNotFoundError, match="没有可安装"):
            PackageIndexClient(SOURCE).resolve("foo")

    def test_network_failure(self, responses) -> None:
        responses[f"{SOURCE}/foo/json"] = urllib.error.URLError("connection refused")
        with pytest.raises(SourceUnreachableError, match="无法访问"):
            PackageIndexClient(SOURCE).resolve("foo")

    def test_server_error(self, responses) -> None:
        url = f"{SOURCE}/foo/json"
        responses[url] = urllib.error.HTTPError(url, 503, "Unavailable", hdrs=None, fp=None)
        with pytest.raises(SourceUnreachableError, match="503"):
            PackageIndexClient(SOURCE).resolve("foo")

    def test_invalid_json(self, responses) -> None:
        responses[f"{SOURCE}/foo/json"] = b"<html>"
        with pytest.raises(SourceUnreachableError, match="JSON"):
            PackageIndexClient(SOURCE).resolve("foo")

    def test_rejects_non_http_source(self) -> None:
        with pytest.raises(InvalidReferenceError):
            PackageIndexClient("file:///etc")


class TestDownload:

    def test_download_verifies_checksum(self, responses, tmp_path: Path) -> None:
        payload = b"archive-bytes"
        url = "https://files.example.com/foo-1.0.tar.gz"
        responses[url] = payload
        artifact = ReleaseArtifact(
            name="foo", version="1.0", url=url, filename="foo-1.0.tar.gz",
            sha256=hashlib.sha256(payload).hexdigest(),
        )
        dest = PackageIndexClient(SOURCE).download(artifact, tmp_path / "dl")
        assert dest.read_bytes() == payload
        assert dest.name == "foo-1.0.tar.gz"

    def test_checksum_mismatch(self, responses, tmp_path: Path) -> None:
        url = "https://files.example.com/foo-1.0.tar.gz"
        responses[url] = b"tampered"
        artifact = ReleaseArtifact(
            name="foo", version="1.0", url=url, filename="foo-1.0.tar.gz", sha256="0" * 64,
        )
        with pytest.raises(SourceUnreachableError, match="校验和不匹配"):
            PackageIndexClient(SOURCE).download(artifact, tmp_path)

    def test_download_failure(self, responses, tmp_path: Path) -> None:
        artifact = ReleaseArtifact(
            name="foo", version="1.0", url="https://files.example.com/missing.tar.gz",
            filename="missing.tar.gz",
        )
        with pytest.raises(SourceUnreachableError, match="下载失败"):
            PackageIndexClient(SOURCE).download(artifact, tmp_path)


class TestPickReleaseFile:
    def test_skips_yanked(self) -> None:
        yanked = {**WHEEL, "yanked": True}
        assert pick_release_file([yanked, SDIST]) == SDIST

    def test_empty(self) -> None:
        assert pick_release_file([]) is None
