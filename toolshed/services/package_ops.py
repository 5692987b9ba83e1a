"""包操作编排 — install / uninstall / update / list

每个操作都是一次对清单的短事务:

  install:   分类 → 查重 → 获取 → 构建 → 链接 → 写清单
  uninstall: 查找 → 移走安装目录 → 写清单 → 删除文件和链接
  update:    查找 → 获取 → 构建到新目录 → 切换链接 → 写清单 → 丢弃旧目录
  list:      只读

失败语义:
  - install 任一步失败都不留清单记录，新建的安装目录被删除
  - uninstall 移走目录失败（文件占用/无权限）时保留记录
  - update 构建失败时旧记录和旧安装目录保持不变
  - staging 目录无论成败都会清理

同名包的并发 install/uninstall 不做互斥，清单只保证原子替换。
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from toolshed.core.config import Config
from toolshed.core.exceptions import (
    AlreadyInstalledError,
    FilesInUseError,
    InvalidReferenceError,
    PackageNotFoundError,
)
from toolshed.core.manifest import MANIFEST_FILE, ManifestStore
from toolshed.core.models import (
    InstalledPackage,
    InstallOptions,
    PackageReference,
    SourceKind,
)
from toolshed.core.reference import classify, derive_name
from toolshed.services.acquire import Acquirer, FolderSource, GitSource, RegistrySource
from toolshed.services.builder import Builder
from toolshed.services.shims import ShimLinker

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")


class PackageOperations:
    """包操作编排器，显式构造，不持有全局状态"""

    def __init__(
        self,
        root: Path,
        *,
        config: Config | None = None,
        acquirer: Acquirer | None = None,
        builder: Builder | None = None,
        shims: ShimLinker | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.root = Path(root)
        self.config = config or Config()
        self.log = logger or logging.getLogger(__name__)
        self.store = ManifestStore(self.root / MANIFEST_FILE)
        self.acquirer = acquirer or Acquirer(
            registry_source=RegistrySource(timeout=self.config.timeout),
            git_source=GitSource(git=self.config.git, timeout=self.config.timeout),
            folder_source=FolderSource(),
        )
        self.builder = builder or Builder(
            python=self.config.python,
            pip_args=self.config.pip_args,
            timeout=self.config.timeout,
        )
        self.shims = shims or ShimLinker(self.bin_dir)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ---- 目录布局 ----

    @property
    def packages_dir(self) -> Path:
        return self.root / "packages"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    @property
    def staging_dir(self) -> Path:
        return self.root / "staging"

    @property
    def trash_dir(self) -> Path:
        return self.root / "trash"

    def default_options(self) -> InstallOptions:
        return InstallOptions(source=self.config.default_source)

    # ---- 操作 ----

    def install(self, raw: str, options: InstallOptions | None = None) -> InstalledPackage:
        """安装包，同名已安装时抛 AlreadyInstalledError"""
        options = options or self.default_options()
        ref = classify(raw)
        name = derive_name(ref, options)
        _check_name(name)

        if name in self.store.load():
            raise AlreadyInstalledError(
                f"包 '{name}' 已安装，请先 uninstall 或使用 update"
            )

        self.log.info("安装 %s (%s: %s)", name, ref.kind.value, ref.locator)
        pkg = self._build_fresh(ref, name, options)
        install_path = Path(pkg.install_path)
        linked = False
        try:
            # 构建期间可能有其他进程写过清单，提交前重新加载
            registry = self.store.load()
            if name in registry:
                raise AlreadyInstalledError(f"包 '{name}' 已被并发安装")
            self.shims.link(name, Path(pkg.entry_point))
            linked = True
            registry.upsert(pkg)
            self.store.save(registry)
        except Exception:
            if linked:
                self._unlink_quietly(name)
            self._discard(install_path)
            raise

        self.log.info("安装完成: %s@%s -> %s", name, pkg.version, pkg.entry_point)
        return pkg

    def uninstall(self, name: str) -> InstalledPackage:
        """卸载包；安装目录无法移走时保留记录并抛 FilesInUseError"""
        registry = self.store.load()
        pkg = registry.find(name)
        if pkg is None:
            raise PackageNotFoundError(f"包 '{name}' 未安装")

        install_path = Path(pkg.install_path)
        trash: Path | None = None
        if install_path.exists():
            trash = self._move_to_trash(install_path, name)
        else:
            self.log.warning("安装目录已不存在，仅移除记录: %s", install_path)

        registry.remove(name)
        try:
            self.store.save(registry)
        except Exception:
            if trash is not None:
                os.replace(trash, install_path)
            raise

        self._unlink_quietly(name)
        if trash is not None:
            self._discard(trash)
        self.log.info("已卸载: %s", name)
        return pkg

    def update(self, name: str) -> InstalledPackage:
        """按安装时记录的来源和选项重新获取并构建

        新版本构建到新目录，成功后才切换；失败时旧安装完全不受影响。
        """
        registry = self.store.load()
        old = registry.find(name)
        if old is None:
            raise PackageNotFoundError(f"包 '{name}' 未安装")

        ref = PackageReference(
            raw=old.source_locator, kind=old.source_kind,
            locator=old.source_locator, name=old.name,
        )
        self.log.info("更新 %s (%s: %s)", name, old.source_kind.value, old.source_locator)
        new = self._build_fresh(ref, name, old.options)
        new_path = Path(new.install_path)
        try:
            registry = self.store.load()
            if registry.find(name) is None:
                raise PackageNotFoundError(f"包 '{name}' 在更新期间已被卸载")
            self.shims.link(name, Path(new.entry_point))
            registry.upsert(new)
            self.store.save(registry)
        except Exception:
            self._discard(new_path)
            if Path(old.entry_point).exists():
                self.shims.link(name, Path(old.entry_point))
            raise

        old_path = Path(old.install_path)
        if old_path.exists() and old_path != new_path:
            try:
                self._discard(self._move_to_trash(old_path, name))
            except FilesInUseError as e:
                self.log.warning("旧版本目录暂时无法删除: %s", e)
        self.log.info("更新完成: %s %s -> %s", name, old.version, new.version)
        return new

    def list(self) -> list[InstalledPackage]:
        """列出已安装包（按安装顺序）"""
        return self.store.load().all()

    # ---- 内部步骤 ----

    def _build_fresh(
        self, ref: PackageReference, name: str, options: InstallOptions,
    ) -> InstalledPackage:
        """获取 + 构建到全新的安装目录，返回尚未写入清单的记录"""
        staging = _unique_path(self.staging_dir, name)
        install_path = _unique_path(self.packages_dir, name)
        self.packages_dir.mkdir(parents=True, exist_ok=True)
        try:
            staged = self.acquirer.acquire(ref, options, staging)
            entry = self.builder.build(staged.project_dir, install_path, name)
        except Exception:
            self._discard(install_path)
            raise
        finally:
            self._discard(staging)

        return InstalledPackage(
            name=name,
            source_kind=ref.kind,
            source_locator=ref.locator,
            version=staged.version,
            install_path=str(install_path),
            entry_point=str(entry),
            installed_at=self._clock().isoformat(timespec="seconds"),
            source=options.source,
            folder=options.folder if ref.kind is not SourceKind.REGISTRY else "",
        )

    def _move_to_trash(self, path: Path, name: str) -> Path:
        """把目录原子地移出安装位置；被占用或无权限时抛 FilesInUseError"""
        self.trash_dir.mkdir(parents=True, exist_ok=True)
        trash = _unique_path(self.trash_dir, name)
        try:
            os.replace(path, trash)
        except OSError as e:
            raise FilesInUseError(f"无法删除 {path}: {e}") from e
        return trash

    def _discard(self, path: Path) -> None:
        """尽力删除目录，失败只记日志"""
        if not path.exists():
            return
        shutil.rmtree(path, onexc=self._log_rmtree_error)

    def _log_rmtree_error(self, func: object, path: str, exc: BaseException) -> None:
        self.log.warning("清理失败 %s: %s", path, exc)

    def _unlink_quietly(self, name: str) -> None:
        try:
            self.shims.unlink(name)
        except OSError as e:
            self.log.warning("删除链接失败 %s: %s", name, e)


def _unique_path(parent: Path, name: str) -> Path:
    return parent / f"{name}-{uuid.uuid4().hex[:8]}"


def _check_name(name: str) -> None:
    if not _NAME_RE.match(name):
        raise InvalidReferenceError(f"包名包含非法字符: {name!r}")
