"""CLI — 包管理命令: install / uninstall / update / list"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

import click

from toolshed.core.config import Config, resolve_home
from toolshed.core.exceptions import BuildFailedError, ToolshedError
from toolshed.core.models import InstallOptions
from toolshed.services.package_ops import PackageOperations

_BUILD_OUTPUT_TAIL = 20


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(uninstall)
    group.add_command(update)
    group.add_command(list_packages)


def _ops(ctx: click.Context) -> PackageOperations:
    """获取包操作编排器；测试可通过 ctx.obj 预先注入"""
    root_ctx = ctx.find_root()
    if isinstance(root_ctx.obj, PackageOperations):
        return root_ctx.obj
    root = resolve_home()
    root.mkdir(parents=True, exist_ok=True)
    ops = PackageOperations(root, config=Config.for_root(root))
    root_ctx.obj = ops
    return ops


def _require_package(ctx: click.Context, package: str) -> None:
    if not package:
        click.echo("<PACKAGE> 参数为必填，使用 -h|--help 查看帮助", err=True)
        ctx.exit(1)


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把业务异常渲染为错误信息 + 退出码 1"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        ctx = click.get_current_context()
        try:
            return func(*args, **kwargs)
        except ToolshedError as e:
            click.echo(f"错误 [{e.code}]: {e.message}", err=True)
            if isinstance(e, BuildFailedError) and e.output:
                tail = e.output.strip().splitlines()[-_BUILD_OUTPUT_TAIL:]
                click.echo("\n".join(tail), err=True)
            ctx.exit(1)
        except OSError as e:
            click.echo(f"错误 [OS_ERROR]: {e}", err=True)
            ctx.exit(1)

    return wrapper


@click.command()
@click.argument("package", required=False, default="")
@click.option("--source", "-s", default=None, help="包索引地址（PyPI JSON API）")
@click.option("--folder", default="", help="仓库或目录中项目所在的相对子路径")
@click.pass_context
@_handle_errors
def install(ctx: click.Context, package: str, source: str | None, folder: str) -> None:
    """安装包：可以是包名、git 仓库地址或本地项目目录"""
    _require_package(ctx, package)
    ops = _ops(ctx)
    options = InstallOptions(source=source or ops.config.default_source, folder=folder)
    pkg = ops.install(package, options)
    click.echo(f"安装成功: {pkg.name} {pkg.version}")
    if not ops.shims.on_path():
        click.echo(f"提示: 请将 {ops.bin_dir} 加入 PATH 以直接运行 {pkg.name}", err=True)


@click.command()
@click.argument("package", required=False, default="")
@click.pass_context
@_handle_errors
def uninstall(ctx: click.Context, package: str) -> None:
    """卸载包（使用 list 中显示的包名）"""
    _require_package(ctx, package)
    pkg = _ops(ctx).uninstall(package)
    click.echo(f"已卸载: {pkg.name}")


@click.command()
@click.argument("package", required=False, default="")
@click.pass_context
@_handle_errors
def update(ctx: click.Context, package: str) -> None:
    """更新包（沿用安装时的来源和选项）"""
    _require_package(ctx, package)
    pkg = _ops(ctx).update(package)
    click.echo(f"更新成功: {pkg.name} {pkg.version}")


@click.command(name="list")
@click.pass_context
@_handle_errors
def list_packages(ctx: click.Context) -> None:
    """列出所有已安装的包"""
    ops = _ops(ctx)
    packages = ops.list()
    click.echo(str(ops.root))
    if not packages:
        click.echo("警告: 没有已安装的包")
        return
    for pkg in packages:
        click.echo(f"|-- {pkg.name}")
