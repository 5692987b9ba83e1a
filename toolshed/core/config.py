"""集中配置管理

数据根目录解析 + 从 <root>/config.yml 加载用户配置。
不维护全局单例：CLI 入口加载后显式传给 PackageOperations。
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from toolshed.core.exceptions import ConfigError
from toolshed.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "https://pypi.org/pypi"
HOME_ENV = "TOOLSHED_HOME"
APP_DIR_NAME = ".toolshed"
CONFIG_FILE = "config.yml"


def resolve_home(environ: dict[str, str] | None = None) -> Path:
    """解析数据根目录

    优先级: TOOLSHED_HOME > $HOME/.toolshed > %USERPROFILE%/.toolshed > Path.home()
    """
    env = os.environ if environ is None else environ
    explicit = env.get(HOME_ENV, "").strip()
    if explicit:
        return Path(explicit).expanduser().resolve()
    user_home = env.get("HOME") or env.get("USERPROFILE")
    base = Path(user_home) if user_home else Path.home()
    return (base / APP_DIR_NAME).resolve()


@dataclass
class Config:
    """用户配置"""

    default_source: str = DEFAULT_SOURCE
    python: str = sys.executable
    git: str = "git"
    timeout: int = 600
    pip_args: list[str] = field(default_factory=list)

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"配置文件无效: {path}: {e}") from e
        if not data:
            return cls()

        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}

        if "timeout" in matched and (
            not isinstance(matched["timeout"], int) or matched["timeout"] <= 0
        ):
            raise ConfigError(f"timeout 必须为正整数: {matched['timeout']!r}")
        if "pip_args" in matched and not isinstance(matched["pip_args"], list):
            raise ConfigError("pip_args 必须为列表")
        for key in ("default_source", "python", "git"):
            if key in matched and not isinstance(matched[key], str):
                raise ConfigError(f"{key} 必须为字符串")

        cfg = cls(**matched)
        cfg.extra = extra
        if extra:
            logger.warning("忽略未知配置项: %s", ", ".join(extra))
        return cfg

    @classmethod
    def for_root(cls, root: Path) -> Config:
        """加载数据根目录下的 config.yml"""
        return cls.from_file(root / CONFIG_FILE)
