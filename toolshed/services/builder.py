"""构建器 — 把 staging 中的项目安装进独立的虚拟环境

流程:
  1. 识别可构建项目（pyproject.toml / setup.py / setup.cfg，或单个 wheel）
  2. python -m venv <install_path>
  3. <venv>/bin/python -m pip install <项目>
  4. pip 安装过程中新出现的脚本即为入口

不做分类，也不接触清单。
"""

from __future__ import annotations

import logging
import os
import re
import sys
from pathlib import Path

from toolshed.core.exceptions import (
    BuildFailedError,
    ExecutionError,
    NoBuildableProjectError,
)
from toolshed.core.models import canonicalize_name
from toolshed.utils.shell import CommandExecutor, CommandResult, LocalExecutor

logger = logging.getLogger(__name__)

PROJECT_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg")

# venv 自带的脚本，不作为入口候选
_VENV_SCRIPTS = frozenset((
    "python", "python3", "pythonw", "pip", "pip3",
    "activate", "activate.bat", "activate.ps1", "activate.fish", "activate.csh",
    "activate.nu", "activate_this.py", "deactivate.bat",
))
_INTERPRETER_RE = re.compile(r"^(python|pip)[\d.]*w?(\.exe)?$")


def venv_scripts_dir(venv: Path) -> Path:
    return venv / ("Scripts" if os.name == "nt" else "bin")


def venv_python(venv: Path) -> Path:
    return venv_scripts_dir(venv) / ("python.exe" if os.name == "nt" else "python")


def find_install_target(project: Path) -> Path:
    """返回 pip 要安装的目标（项目目录或 wheel 文件）"""
    if not project.is_dir():
        raise NoBuildableProjectError(f"目录不存在: {project}")
    if any((project / marker).is_file() for marker in PROJECT_MARKERS):
        return project
    wheels = sorted(project.glob("*.whl"))
    if len(wheels) == 1:
        return wheels[0]
    raise NoBuildableProjectError(
        f"{project} 中没有找到可构建的项目 "
        f"(需要 {' / '.join(PROJECT_MARKERS)} 或一个 .whl 文件)"
    )


class Builder:
    """venv + pip 构建器"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        python: str = sys.executable,
        pip_args: list[str] | None = None,
        timeout: int | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.python = python
        self.pip_args = list(pip_args or [])
        self.timeout = timeout

    def build(self, project: Path, install_path: Path, name: str) -> Path:
        """构建并返回入口可执行文件路径"""
        target = find_install_target(project)

        logger.info("创建虚拟环境: %s", install_path)
        self._run(
            [self.python, "-m", "venv", str(install_path)],
            cwd=project, label="venv",
        )

        scripts = venv_scripts_dir(install_path)
        before = self._executables(scripts)

        logger.info("安装 %s -> %s", target.name, install_path)
        self._run(
            [
                str(venv_python(install_path)), "-m", "pip", "install",
                "--disable-pip-version-check", "--no-input",
                *self.pip_args, str(target),
            ],
            cwd=project, label="pip install",
        )

        created = sorted(self._executables(scripts) - before)
        if not created:
            raise BuildFailedError(f"{name} 安装完成但没有生成任何命令行入口")
        entry = _pick_entry(created, name)
        logger.info("入口: %s", scripts / entry)
        return scripts / entry

    def _run(self, cmd: list[str], *, cwd: Path, label: str) -> CommandResult:
        try:
            r = self.executor.execute(cmd, cwd=str(cwd), timeout=self.timeout)
        except ExecutionError as e:
            raise BuildFailedError(f"{label} 失败: {e}") from e
        if not r.success:
            raise BuildFailedError(
                f"{label} 失败 (rc={r.returncode})", output=r.output,
            )
        return r

    @staticmethod
    def _executables(scripts: Path) -> set[str]:
        if not scripts.is_dir():
            return set()
        return {
            p.name for p in scripts.iterdir()
            if p.is_file() and p.name.lower() not in _VENV_SCRIPTS
            and not _INTERPRETER_RE.match(p.name.lower())
        }


def _pick_entry(candidates: list[str], name: str) -> str:
    """与包名同名的脚本优先，否则取排序后的第一个"""
    wanted = canonicalize_name(name)
    for candidate in candidates:
        stem = candidate.rsplit(".", 1)[0] if os.name == "nt" else candidate
        if canonicalize_name(stem) == wanted:
            return candidate
    return candidates[0]
