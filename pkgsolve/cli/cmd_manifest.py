"""CLI：清单"""

from __future__ import annotations

import click

from pkgsolve.cli import _workspace, handle_errors


def register(group: click.Group) -> None:
    group.add_command(dump_manifest)


@click.command(name="dump-manifest")
@click.pass_context
@handle_errors
def dump_manifest(ctx: click.Context) -> None:
    """加载根清单并经生成器重新输出"""
    from pkgsolve.core.manifest import generate
    manifest = _workspace(ctx).root_manifest()
    click.echo(generate(manifest), nl=False)
