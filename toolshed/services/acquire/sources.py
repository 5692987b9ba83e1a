"""来源适配器 - 支持 Registry / Git / Folder

职责：
- Registry: 从包索引解析并下载发布文件，sdist 自动解压
- Git:      浅克隆仓库
- Folder:   复制本地目录（从不修改源目录）

每个适配器把内容放进调用方给出的 staging 目录，失败时 staging 保留现场，
由 PackageOperations 负责清理。
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tomllib
import zipfile
from collections.abc import Callable
from pathlib import Path

from toolshed.core.exceptions import (
    CloneFailedError,
    ExecutionError,
    InvalidReferenceError,
    NoBuildableProjectError,
    PathNotFoundError,
)
from toolshed.core.models import InstallOptions, PackageReference, StagedContent
from toolshed.services.acquire.index_client import PackageIndexClient
from toolshed.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

_IGNORE_ANYWHERE = shutil.ignore_patterns(".git", "__pycache__", "*.pyc")
# 构建产物只在项目根目录忽略，子包可以叫 build / dist
_IGNORE_AT_ROOT = shutil.ignore_patterns(".venv", "build", "dist", "*.egg-info")


def _copy_ignore(root: Path, keep: str = "") -> Callable[[str, list[str]], set[str]]:
    """复制本地项目时的忽略规则；keep 为 --folder 的第一段，始终保留"""
    root_str = str(root)

    def ignore(dirpath: str, names: list[str]) -> set[str]:
        ignored = set(_IGNORE_ANYWHERE(dirpath, names))
        if dirpath == root_str:
            ignored |= set(_IGNORE_AT_ROOT(dirpath, names)) - {keep}
        return ignored

    return ignore


def select_project(base: Path, folder: str) -> Path:
    """按 --folder 选出实际要构建的子目录，不允许逃出 base"""
    if not folder:
        return base
    base = base.resolve()
    target = (base / folder).resolve()
    if not target.is_relative_to(base):
        raise InvalidReferenceError(f"--folder 超出了包内容范围: {folder}")
    if not target.is_dir():
        raise NoBuildableProjectError(f"子目录不存在: {folder}")
    return target


class RegistrySource:
    """包索引来源"""

    def __init__(
        self,
        client_factory: Callable[[str], PackageIndexClient] | None = None,
        timeout: int = 60,
    ) -> None:
        self._client_factory = client_factory or (
            lambda source: PackageIndexClient(source, timeout=timeout)
        )

    def acquire(
        self, ref: PackageReference, options: InstallOptions, staging: Path,
    ) -> StagedContent:
        if options.folder:
            logger.warning("--folder 对包索引来源无效，已忽略: %s", options.folder)

        client = self._client_factory(options.source)
        artifact = client.resolve(ref.locator, ref.version)
        archive = client.download(artifact, staging / "download")

        if artifact.is_wheel:
            return StagedContent(
                root=staging, project_dir=archive.parent, version=artifact.version,
            )

        extract_dir = staging / "src"
        _extract(archive, extract_dir)
        entries = list(extract_dir.iterdir())
        # sdist 约定只有一个顶层目录 name-version/
        project_dir = entries[0] if len(entries) == 1 and entries[0].is_dir() else extract_dir
        logger.info("Registry 就绪: %s@%s -> %s", ref.locator, artifact.version, project_dir)
        return StagedContent(root=staging, project_dir=project_dir, version=artifact.version)


class GitSource:
    """Git 仓库来源"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        git: str = "git",
        timeout: int | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.git = git
        self.timeout = timeout

    def acquire(
        self, ref: PackageReference, options: InstallOptions, staging: Path,
    ) -> StagedContent:
        dest = staging / "src"
        staging.mkdir(parents=True, exist_ok=True)
        try:
            r = self.executor.execute(
                [self.git, "clone", "--depth", "1", "--quiet", ref.locator, str(dest)],
                cwd=str(staging), env=_git_env(), timeout=self.timeout,
            )
        except ExecutionError as e:
            raise CloneFailedError(f"git clone 失败: {ref.locator}: {e}") from e
        if not r.success:
            raise CloneFailedError(
                f"git clone 失败 (rc={r.returncode}): {ref.locator}: {r.stderr.strip()[:500]}"
            )

        commit = self._get_commit_sha(dest)
        project_dir = select_project(dest, options.folder)
        logger.info("Git 就绪: %s@%s -> %s", ref.locator, commit, project_dir)
        return StagedContent(root=staging, project_dir=project_dir, version=commit)

    def _get_commit_sha(self, workspace: Path) -> str:
        """获取当前 commit SHA"""
        try:
            r = self.executor.execute(
                [self.git, "rev-parse", "HEAD"], cwd=str(workspace), timeout=self.timeout,
            )
        except ExecutionError as e:
            raise CloneFailedError(f"无法读取 commit: {e}") from e
        return r.stdout.strip()[:12] if r.success and r.stdout.strip() else "unknown"


class FolderSource:
    """本地目录来源"""

    def acquire(
        self, ref: PackageReference, options: InstallOptions, staging: Path,
    ) -> StagedContent:
        src = Path(ref.locator)
        if not src.exists():
            raise PathNotFoundError(f"路径不存在: {src}")

        dest = staging / "src"
        staging.mkdir(parents=True, exist_ok=True)
        if src.is_file():
            if src.suffix != ".whl":
                raise NoBuildableProjectError(f"不是可安装的目录或 wheel 文件: {src}")
            dest.mkdir()
            shutil.copy2(src, dest / src.name)
            return StagedContent(root=staging, project_dir=dest, version=_wheel_version(src))

        ignore = _copy_ignore(src, keep=_first_segment(options.folder))
        shutil.copytree(src, dest, ignore=ignore, symlinks=True)
        project_dir = select_project(dest, options.folder)
        version = read_project_version(project_dir)
        logger.info("Folder 就绪: %s -> %s", src, project_dir)
        return StagedContent(root=staging, project_dir=project_dir, version=version)


def _git_env() -> dict[str, str]:
    # 缺少凭据时直接失败，不等待交互输入
    return {**os.environ, "GIT_TERMINAL_PROMPT": "0"}


def read_project_version(project_dir: Path) -> str:
    """读取 pyproject.toml 的 [project].version，取不到返回 "local" """
    pyproject = project_dir / "pyproject.toml"
    if not pyproject.is_file():
        return "local"
    try:
        with open(pyproject, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("无法解析 %s: %s", pyproject, e)
        return "local"
    version = (data.get("project") or {}).get("version")
    return str(version) if version else "local"


def _wheel_version(wheel: Path) -> str:
    """wheel 文件名: {name}-{version}-{python}-{abi}-{platform}.whl"""
    parts = wheel.stem.split("-")
    return parts[1] if len(parts) >= 5 else "local"


def _extract(archive: Path, dest: Path) -> None:
    """解压 sdist（tar.gz / zip）"""
    dest.mkdir(parents=True, exist_ok=True)
    try:
        if archive.suffix == ".zip":
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        else:
            with tarfile.open(archive) as tf:
                tf.extractall(path=str(dest), filter="data")
    except (tarfile.TarError, zipfile.BadZipFile) as e:
        raise NoBuildableProjectError(f"无法解压 {archive.name}: {e}") from e


def _first_segment(folder: str) -> str:
    parts = [p for p in folder.replace("\\", "/").split("/") if p not in ("", ".")]
    return parts[0] if parts else ""
