"""安装清单 — 已安装包的唯一事实来源

Registry 是内存中的有序映射 (name -> InstalledPackage)；
ManifestStore 负责整份清单的加载与原子保存。

所有修改都按 load → 内存修改 → save 的顺序作为一个整体完成，
不对持久化文件做局部编辑。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from toolshed.core.exceptions import ManifestCorruptError
from toolshed.core.models import InstalledPackage
from toolshed.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1
MANIFEST_FILE = "manifest.yml"


class Registry:
    """已安装包注册表（按插入顺序）"""

    def __init__(self, packages: list[InstalledPackage] | None = None) -> None:
        self._packages: dict[str, InstalledPackage] = {}
        for pkg in packages or []:
            self.upsert(pkg)

    def upsert(self, pkg: InstalledPackage) -> None:
        """新增或替换记录；替换时保持原有位置"""
        self._packages[pkg.name] = pkg

    def remove(self, name: str) -> bool:
        """删除记录，不存在返回 False"""
        if name not in self._packages:
            return False
        del self._packages[name]
        return True

    def find(self, name: str) -> InstalledPackage | None:
        return self._packages.get(name)

    def all(self) -> list[InstalledPackage]:
        return list(self._packages.values())

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": MANIFEST_VERSION,
            "packages": {p.name: p.to_dict() for p in self._packages.values()},
        }


class ManifestStore:
    """清单文件存取"""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Registry:
        """读取清单，首次运行（文件不存在）返回空注册表

        内容损坏时抛 ManifestCorruptError，不做任何自动修复。
        """
        try:
            data = load_yaml(self.path)
        except (yaml.YAMLError, ValueError) as e:
            raise ManifestCorruptError(f"清单文件损坏: {self.path}: {e}") from e
        if not data:
            return Registry()

        version = data.get("version", MANIFEST_VERSION)
        if version != MANIFEST_VERSION:
            raise ManifestCorruptError(
                f"不支持的清单版本: {version!r} ({self.path})"
            )

        section = data.get("packages") or {}
        if not isinstance(section, dict):
            raise ManifestCorruptError(f"清单 packages 段不是字典: {self.path}")

        registry = Registry()
        for name, entry in section.items():
            if not isinstance(entry, dict):
                raise ManifestCorruptError(f"清单条目无效: {name}")
            try:
                registry.upsert(InstalledPackage.from_dict(str(name), entry))
            except (KeyError, ValueError) as e:
                raise ManifestCorruptError(f"清单条目 '{name}' 无效: {e}") from e

        logger.debug("已加载清单: %s (%d 个包)", self.path, len(registry))
        return registry

    def save(self, registry: Registry) -> None:
        """整份写入，临时文件 + os.replace 保证读者看不到半写状态"""
        save_yaml(self.path, registry.to_dict())
        logger.debug("清单已保存: %s (%d 个包)", self.path, len(registry))
