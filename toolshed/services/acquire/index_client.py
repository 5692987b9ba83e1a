"""包索引客户端 — PyPI JSON API

  GET {source}/{name}/json            最新版本
  GET {source}/{name}/{version}/json  指定版本

只负责解析出可下载的发布文件并下载，不做解压。
"""

from __future__ import annotations

import hashlib
import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from toolshed import __version__
from toolshed.core.exceptions import PackageNotFoundError, SourceUnreachableError
from toolshed.utils.net import validate_url_scheme

logger = logging.getLogger(__name__)

_USER_AGENT = f"toolshed/{__version__}"
_SDIST_SUFFIXES = (".tar.gz", ".tgz", ".zip")


@dataclass
class ReleaseArtifact:
    """索引中的一个可下载发布文件"""

    name: str
    version: str
    url: str
    filename: str
    sha256: str = ""

    @property
    def is_wheel(self) -> bool:
        return self.filename.endswith(".whl")


class PackageIndexClient:
    """PyPI 兼容索引客户端"""

    def __init__(self, source: str, timeout: int = 60) -> None:
        validate_url_scheme(source, context="package index")
        self.source = source.rstrip("/")
        self.timeout = timeout

    def resolve(self, name: str, version: str | None = None) -> ReleaseArtifact:
        """解析包名（和可选版本）到发布文件；不指定版本取最新"""
        quoted = urllib.parse.quote(name, safe="")
        if version:
            url = f"{self.source}/{quoted}/{urllib.parse.quote(version, safe='')}/json"
        else:
            url = f"{self.source}/{quoted}/json"

        label = f"{name}@{version}" if version else name
        data = self._get_json(url, label)

        info = data.get("info") or {}
        resolved_version = str(info.get("version") or version or "")
        files = data.get("urls") or []
        if not resolved_version or not isinstance(files, list):
            raise SourceUnreachableError(f"索引响应缺少版本信息: {url}")

        picked = pick_release_file(files)
        if picked is None:
            raise PackageNotFoundError(
                f"{name}@{resolved_version} 没有可安装的发布文件 (wheel 或 sdist)"
            )
        artifact = ReleaseArtifact(
            name=str(info.get("name") or name),
            version=resolved_version,
            url=str(picked["url"]),
            filename=str(picked.get("filename") or picked["url"].rsplit("/", 1)[-1]),
            sha256=str((picked.get("digests") or {}).get("sha256") or ""),
        )
        logger.info("已解析: %s -> %s", label, artifact.filename)
        return artifact

    def download(self, artifact: ReleaseArtifact, dest_dir: Path) -> Path:
        """下载发布文件到 dest_dir，有摘要时校验 sha256"""
        validate_url_scheme(artifact.url, context=f"download {artifact.name}")
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / Path(artifact.filename).name
        logger.info("下载: %s", artifact.url)

        sha256 = hashlib.sha256()
        try:
            with self._open(artifact.url) as resp, open(dest, "wb") as f:
                for chunk in iter(lambda: resp.read(65536), b""):
                    sha256.update(chunk)
                    f.write(chunk)
        except (urllib.error.URLError, socket.timeout, OSError) as e:
            raise SourceUnreachableError(f"下载失败: {artifact.url} - {e}") from e

        if artifact.sha256 and sha256.hexdigest() != artifact.sha256:
            raise SourceUnreachableError(
                f"校验和不匹配 {dest.name}: 期望 {artifact.sha256}, "
                f"实际 {sha256.hexdigest()}"
            )
        return dest

    def _open(self, url: str) -> Any:
        req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        return urllib.request.urlopen(req, timeout=self.timeout)  # nosec B310

    def _get_json(self, url: str, label: str) -> dict[str, Any]:
        try:
            with self._open(url) as resp:
                payload = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise PackageNotFoundError(
                    f"包 '{label}' 在 {self.source} 中不存在"
                ) from e
            raise SourceUnreachableError(
                f"索引请求失败 (HTTP {e.code}): {url}"
            ) from e
        except (urllib.error.URLError, socket.timeout, OSError) as e:
            raise SourceUnreachableError(f"无法访问索引 {self.source}: {e}") from e

        try:
            data = json.loads(payload)
        except ValueError as e:
            raise SourceUnreachableError(f"索引响应不是合法 JSON: {url}") from e
        if not isinstance(data, dict):
            raise SourceUnreachableError(f"索引响应格式异常: {url}")
        return data


def pick_release_file(files: list[dict[str, Any]]) -> dict[str, Any] | None:
    """挑选发布文件: 纯 Python wheel 优先，其次 sdist"""
    candidates = [f for f in files if isinstance(f, dict) and f.get("url")]
    live = [f for f in candidates if not f.get("yanked")]
    for f in live:
        filename = str(f.get("filename", ""))
        if f.get("packagetype") == "bdist_wheel" and filename.endswith("-none-any.whl"):
            return f
    for f in live:
        filename = str(f.get("filename", ""))
        if f.get("packagetype") == "sdist" or filename.endswith(_SDIST_SUFFIXES):
            return f
    return None
