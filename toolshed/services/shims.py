"""命令入口链接

<root>/bin/<name> 指向包的入口脚本，用户只需把 <root>/bin 加入 PATH。
POSIX 使用符号链接，Windows 生成 .cmd 转发脚本。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class ShimLinker:
    """管理 bin 目录下的命令链接"""

    def __init__(self, bin_dir: Path) -> None:
        self.bin_dir = Path(bin_dir)

    def shim_path(self, name: str) -> Path:
        return self.bin_dir / (f"{name}.cmd" if os.name == "nt" else name)

    def link(self, name: str, target: Path) -> Path:
        """创建或替换链接；先建临时链接再 replace，保证不会出现无链接的窗口"""
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        shim = self.shim_path(name)
        tmp = shim.with_name(f".{shim.name}.tmp")
        if tmp.is_symlink() or tmp.exists():
            tmp.unlink()
        if os.name == "nt":
            tmp.write_text(f'@echo off\r\n"{target}" %*\r\n', encoding="utf-8")
        else:
            os.symlink(target, tmp)
        os.replace(tmp, shim)
        logger.info("链接: %s -> %s", shim, target)
        return shim

    def unlink(self, name: str) -> bool:
        """删除链接，不存在返回 False"""
        shim = self.shim_path(name)
        if not (shim.is_symlink() or shim.exists()):
            return False
        shim.unlink()
        logger.info("已删除链接: %s", shim)
        return True

    def on_path(self, environ: dict[str, str] | None = None) -> bool:
        """bin 目录是否已在 PATH 中"""
        env = os.environ if environ is None else environ
        entries = env.get("PATH", "").split(os.pathsep)
        wanted = os.path.normcase(os.path.realpath(self.bin_dir))
        return any(
            os.path.normcase(os.path.realpath(os.path.expanduser(e))) == wanted
            for e in entries if e
        )
