"""pkgsolve 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
命令本身不含解析逻辑，只负责参数、输出与错误提示。
"""

import functools
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from pkgsolve import __version__
from pkgsolve.core.config import get_config, init_config
from pkgsolve.core.exceptions import PkgSolveError
from pkgsolve.utils.logger import setup_logging


def _workspace(ctx: click.Context) -> Any:
    """按全局选项构造工作空间"""
    from pkgsolve.services.workspace import Workspace
    return Workspace(ctx.obj["package_path"], config=get_config())


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把领域异常转换为带错误码的 ClickException"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except PkgSolveError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--package-path", default=".", show_default=True,
    type=click.Path(file_okay=False, path_type=Path), help="根包目录",
)
@click.option("--config", "config_path", default=None, help="配置文件路径（YAML）")
@click.pass_context
def main(ctx: click.Context, package_path: Path, config_path: str | None) -> None:
    """pkgsolve - 源码包依赖解析与工作空间管理"""
    setup_logging(
        level=os.getenv("PKGSOLVE_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PKGSOLVE_LOG_JSON", "") == "1",
    )
    if config_path:
        try:
            init_config(config_path)
        except PkgSolveError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e
    ctx.ensure_object(dict)
    ctx.obj["package_path"] = package_path


# 注册各领域子命令
from pkgsolve.cli.cmd_resolve import register as _reg_resolve  # noqa: E402
from pkgsolve.cli.cmd_manifest import register as _reg_manifest  # noqa: E402
from pkgsolve.cli.cmd_config import register as _reg_config  # noqa: E402

_reg_resolve(main)
_reg_manifest(main)
_reg_config(main)
