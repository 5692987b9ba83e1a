"""包引用分类器

把用户输入的字符串判定为三种来源之一并规范化:

  1. repository: git@ / git+ 前缀、scp 语法、.git 后缀、已知代码托管平台 URL
  2. folder:     存在的本地路径
  3. registry:   其余一律视为包索引中的包名，可带 @version

分类只做一次路径存在性检查，不访问网络，不修改文件系统。
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from toolshed.core.exceptions import InvalidReferenceError
from toolshed.core.models import (
    InstallOptions,
    PackageReference,
    SourceKind,
    canonicalize_name,
)

KNOWN_FORGES = frozenset((
    "github.com",
    "gitlab.com",
    "bitbucket.org",
    "codeberg.org",
))

# user@host:path（scp 风格），排除 scheme://
_SCP_RE = re.compile(r"^[\w.~-]+@[\w.-]+:(?!//)\S+$")


def classify(raw: str) -> PackageReference:
    """判定包引用的来源类型"""
    if raw is None or not raw.strip():
        raise InvalidReferenceError("包引用不能为空")
    text = raw.strip()

    if is_repository_url(text):
        url = text.removeprefix("git+")
        return PackageReference(
            raw=raw, kind=SourceKind.REPOSITORY,
            locator=url, name=_repo_name(url),
        )

    path = Path(text).expanduser()
    if path.exists():
        resolved = path.resolve()
        name = resolved.name
        if resolved.is_file() and resolved.suffix == ".whl":
            # {name}-{version}-...whl
            name = canonicalize_name(resolved.stem.split("-")[0])
        return PackageReference(
            raw=raw, kind=SourceKind.LOCAL_FOLDER,
            locator=str(resolved), name=name,
        )

    ident, sep, version = text.rpartition("@")
    if not (sep and ident and version):
        ident, version = text, ""
    return PackageReference(
        raw=raw, kind=SourceKind.REGISTRY,
        locator=ident, name=canonicalize_name(ident),
        version=version or None,
    )


def is_repository_url(text: str) -> bool:
    """是否为 git 仓库地址"""
    if text.startswith(("git@", "git+")):
        return True
    if text.rstrip("/").endswith(".git"):
        return True
    if _SCP_RE.match(text):
        return True

    parsed = urlparse(text)
    if parsed.scheme in ("git", "ssh"):
        return bool(parsed.netloc)
    if parsed.scheme in ("http", "https"):
        host = (parsed.hostname or "").lower().removeprefix("www.")
        segments = [s for s in parsed.path.split("/") if s]
        return host in KNOWN_FORGES and len(segments) >= 2
    return False


def derive_name(ref: PackageReference, options: InstallOptions) -> str:
    """清单中使用的包名

    指定 --folder 时取子路径的最后一段，否则使用分类时推导的名字。
    """
    if options.folder and ref.kind is not SourceKind.REGISTRY:
        leaf = PurePosixPath(options.folder.replace("\\", "/")).name
        return _checked_name(leaf, options.folder)
    return _checked_name(ref.name, ref.raw)


def _repo_name(url: str) -> str:
    """从仓库地址推导包名: 最后一段路径去掉 .git，可能为空，由 derive_name 校验"""
    parsed = urlparse(url)
    path = parsed.path if parsed.scheme else url.split(":", 1)[-1]
    return path.rstrip("/").split("/")[-1].removesuffix(".git")


def _checked_name(name: str, origin: str) -> str:
    name = name.strip()
    if not name or name in (".", ".."):
        raise InvalidReferenceError(f"无法从 '{origin}' 推导包名")
    return name
