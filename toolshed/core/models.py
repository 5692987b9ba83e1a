"""核心数据模型

所有核心数据类集中定义，各层统一从此处导入。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from toolshed.core.config import DEFAULT_SOURCE

_CANONICAL_RE = re.compile(r"[-_.]+")


def canonicalize_name(name: str) -> str:
    """PEP 503 规范化包名: 小写，连续的 -_. 折叠为 -"""
    return _CANONICAL_RE.sub("-", name).lower()


class SourceKind(str, Enum):
    """包来源类型（封闭枚举，每种类型对应一个获取器）"""

    REGISTRY = "registry"
    REPOSITORY = "repository"
    LOCAL_FOLDER = "folder"


@dataclass(frozen=True)
class PackageReference:
    """分类后的包引用，单次调用内有效，不持久化"""

    raw: str
    kind: SourceKind
    locator: str                # 包名 / clone URL / 绝对路径
    name: str                   # 清单中的包名
    version: str | None = None  # 仅 registry 类型可指定


@dataclass(frozen=True)
class InstallOptions:
    """安装选项"""

    source: str = DEFAULT_SOURCE  # 包索引地址
    folder: str = ""              # 仓库/目录中可构建项目的子路径


@dataclass
class StagedContent:
    """一次获取的结果"""

    root: Path          # 本次获取独占的 staging 目录
    project_dir: Path   # 实际要构建的目录（或包含 wheel 的目录）
    version: str        # 版本号 / commit


@dataclass
class InstalledPackage:
    """清单中的一条安装记录"""

    name: str
    source_kind: SourceKind
    source_locator: str
    version: str
    install_path: str
    entry_point: str
    installed_at: str
    source: str = DEFAULT_SOURCE
    folder: str = ""

    @property
    def options(self) -> InstallOptions:
        """安装时使用的选项（更新时原样重放）"""
        return InstallOptions(source=self.source, folder=self.folder)

    def to_dict(self) -> dict[str, Any]:
        """序列化为清单条目（不含 name，name 作为键）"""
        return {
            "source_kind": self.source_kind.value,
            "source_locator": self.source_locator,
            "version": self.version,
            "install_path": self.install_path,
            "entry_point": self.entry_point,
            "installed_at": self.installed_at,
            "source": self.source,
            "folder": self.folder,
        }

    @classmethod
    def from_dict(cls, name: str, entry: dict[str, Any]) -> InstalledPackage:
        """从清单条目反序列化，缺字段抛 KeyError，类型非法抛 ValueError"""
        return cls(
            name=name,
            source_kind=SourceKind(entry["source_kind"]),
            source_locator=str(entry["source_locator"]),
            version=str(entry["version"]),
            install_path=str(entry["install_path"]),
            entry_point=str(entry["entry_point"]),
            installed_at=str(entry["installed_at"]),
            source=str(entry.get("source") or DEFAULT_SOURCE),
            folder=str(entry.get("folder") or ""),
        )
