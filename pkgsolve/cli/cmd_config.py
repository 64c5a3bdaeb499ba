"""CLI：工作空间配置（镜像）"""

from __future__ import annotations

from pathlib import Path

import click

from pkgsolve.cli import handle_errors
from pkgsolve.core.config import get_config
from pkgsolve.services.workspace.mirrors import MirrorConfig


def register(group: click.Group) -> None:
    group.add_command(config)


def _mirrors(ctx: click.Context) -> MirrorConfig:
    root: Path = ctx.obj["package_path"]
    return MirrorConfig(root / get_config().mirrors_file)


@click.group()
def config() -> None:
    """工作空间配置"""


@config.command(name="set-mirror")
@click.option("--original", required=True, help="原始位置")
@click.option("--mirror", required=True, help="镜像位置")
@click.pass_context
@handle_errors
def set_mirror(ctx: click.Context, original: str, mirror: str) -> None:
    """设置镜像"""
    _mirrors(ctx).set_mirror(original, mirror)
    click.echo(f"已设置镜像: {original} -> {mirror}")


@config.command(name="unset-mirror")
@click.argument("location")
@click.pass_context
@handle_errors
def unset_mirror(ctx: click.Context, location: str) -> None:
    """移除镜像（按原始位置或镜像位置）"""
    _mirrors(ctx).unset_mirror(location)
    click.echo(f"已移除镜像: {location}")


@config.command(name="get-mirror")
@click.argument("original")
@click.pass_context
@handle_errors
def get_mirror(ctx: click.Context, original: str) -> None:
    """查看镜像"""
    mirror = _mirrors(ctx).get_mirror(original)
    if mirror is None:
        raise click.ClickException(f"未配置镜像: {original}")
    click.echo(mirror)
