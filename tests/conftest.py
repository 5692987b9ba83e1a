"""测试共享 fixture — 假执行器 + 假包索引

FakeExecutor 模拟 venv / pip / git 的文件系统效果，测试无需真实子进程和网络:

  python -m venv <dir>          → 创建 <dir>/bin/python, pip
  <venv>/bin/python -m pip ...  → 在 <venv>/bin 下生成 scripts 中的脚本
  git clone ... <dest>          → 在 <dest> 写入 repo_files
  git rev-parse HEAD            → 返回 commit
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from toolshed.core.exceptions import PackageNotFoundError
from toolshed.core.models import InstallOptions, PackageReference, StagedContent
from toolshed.services.acquire import Acquirer, FolderSource, GitSource
from toolshed.services.builder import Builder, venv_scripts_dir
from toolshed.services.package_ops import PackageOperations
from toolshed.utils.shell import CommandResult

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeExecutor:
    """CommandExecutor 假实现"""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail: dict[str, CommandResult] = {}
        self.scripts: list[str] = ["tool"]
        self.commit = "0123456789abcdef"
        self.repo_files: dict[str, str] = {
            "pyproject.toml": "[project]\nname = 'repo-tool'\nversion = '0.1'\n",
        }

    @staticmethod
    def kind(cmd: list[str]) -> str:
        if "venv" in cmd:
            return "venv"
        if "pip" in cmd:
            return "pip"
        if "clone" in cmd:
            return "clone"
        if "rev-parse" in cmd:
            return "rev-parse"
        return "other"

    def calls_of(self, kind: str) -> list[list[str]]:
        return [c for c in self.calls if self.kind(c) == kind]

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        self.calls.append(list(cmd))
        kind = self.kind(cmd)
        if kind in self.fail:
            return self.fail[kind]

        if kind == "venv":
            scripts = venv_scripts_dir(Path(cmd[-1]))
            scripts.mkdir(parents=True)
            (scripts / "python").write_text("")
            (scripts / "pip").write_text("")
        elif kind == "pip":
            scripts = Path(cmd[0]).parent
            for name in self.scripts:
                (scripts / name).write_text("#!/bin/sh\n")
        elif kind == "clone":
            dest = Path(cmd[-1])
            for rel, text in self.repo_files.items():
                f = dest / rel
                f.parent.mkdir(parents=True, exist_ok=True)
                f.write_text(text)
        elif kind == "rev-parse":
            return CommandResult(0, self.commit + "\n", "")
        return CommandResult(0, "", "")


class StubRegistrySource:
    """包索引来源假实现: versions 为 {包名: 最新版本}"""

    def __init__(self, versions: dict[str, str] | None = None) -> None:
        self.versions = dict(versions or {})
        self.calls: list[tuple[PackageReference, InstallOptions]] = []

    def acquire(
        self, ref: PackageReference, options: InstallOptions, staging: Path,
    ) -> StagedContent:
        self.calls.append((ref, options))
        if ref.locator not in self.versions:
            raise PackageNotFoundError(f"包 '{ref.locator}' 在 {options.source} 中不存在")
        version = ref.version or self.versions[ref.locator]
        project = staging / "src" / f"{ref.locator}-{version}"
        project.mkdir(parents=True)
        (project / "pyproject.toml").write_text(
            f"[project]\nname = '{ref.locator}'\nversion = '{version}'\n"
        )
        return StagedContent(root=staging, project_dir=project, version=version)


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def stub_registry() -> StubRegistrySource:
    return StubRegistrySource({"foo": "1.0.0", "bar": "2.3"})


@pytest.fixture()
def home(tmp_path: Path) -> Path:
    root = tmp_path / "home"
    root.mkdir()
    return root


@pytest.fixture()
def ops(
    home: Path, fake_executor: FakeExecutor, stub_registry: StubRegistrySource,
) -> PackageOperations:
    return PackageOperations(
        home,
        acquirer=Acquirer(
            registry_source=stub_registry,
            git_source=GitSource(executor=fake_executor),
            folder_source=FolderSource(),
        ),
        builder=Builder(executor=fake_executor, python="python3"),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def local_project(tmp_path: Path) -> Path:
    """一个最小的本地项目目录"""
    project = tmp_path / "projects" / "hello-cli"
    project.mkdir(parents=True)
    (project / "pyproject.toml").write_text(
        "[project]\nname = 'hello-cli'\nversion = '0.3.1'\n"
    )
    (project / "hello.py").write_text("print('hello')\n")
    return project
