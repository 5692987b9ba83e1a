"""toolshed 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import os

import click

from toolshed import __version__
from toolshed.utils.logger import setup_logging

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "-v", "--version")
def main() -> None:
    """toolshed - 安装和使用基于 Python 的命令行工具"""
    setup_logging(
        level=os.getenv("TOOLSHED_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("TOOLSHED_LOG_JSON", "") == "1",
    )


def run(argv: list[str] | None = None) -> int:
    """控制台入口：任何失败（包括用法错误）都返回 1"""
    try:
        rv = main.main(args=argv, prog_name="toolshed", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        click.echo("已取消", err=True)
        return 1
    return rv if isinstance(rv, int) else 0


# 注册各领域子命令
from toolshed.cli.cmd_packages import register as _reg_packages  # noqa: E402

_reg_packages(main)
