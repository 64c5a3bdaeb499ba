"""CLI：解析 / 更新 / 依赖展示"""

from __future__ import annotations

from typing import Any

import click

from pkgsolve.cli import _workspace, handle_errors


def register(group: click.Group) -> None:
    group.add_command(resolve)
    group.add_command(update)
    group.add_command(show_dependencies)
    group.add_command(list_managed)


def _print_paths(paths: dict[Any, Any]) -> None:
    for identity, path in paths.items():
        click.echo(f"  {str(identity):24s} {path}")


@click.command()
@click.option("--no-checkout", is_flag=True, help="只解析并写 pins，不检出")
@click.pass_context
@handle_errors
def resolve(ctx: click.Context, no_checkout: bool) -> None:
    """解析依赖（pins 仍有效时直接复用）"""
    ws = _workspace(ctx)
    paths = ws.load(checkout=not no_checkout)
    click.echo(f"已解析 {len(ws.pins)} 个依赖 ({ws.state.value})")
    _print_paths(paths)


@click.command()
@click.argument("packages", nargs=-1)
@click.option("--no-checkout", is_flag=True, help="只解析并写 pins，不检出")
@click.pass_context
@handle_errors
def update(ctx: click.Context, packages: tuple[str, ...], no_checkout: bool) -> None:
    """忽略 pins 重新解析（可只更新指定包）"""
    ws = _workspace(ctx)
    before = {i: p.describe() for i, p in ws.pins_store.load().items()}
    ws.update(list(packages) or None, checkout=not no_checkout)
    changed = 0
    for identity, pin in sorted(ws.pins.items()):
        old = before.get(identity)
        if old != pin.describe():
            changed += 1
            click.echo(f"  {str(identity):24s} {old or '-'} -> {pin.describe()}")
    click.echo(f"更新完成: {changed} 个依赖有变化")


@click.command(name="show-dependencies")
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.pass_context
@handle_errors
def show_dependencies(ctx: click.Context, fmt: str) -> None:
    """显示依赖树"""
    click.echo(_workspace(ctx).show_dependencies(fmt))


@click.command(name="list-managed")
@click.pass_context
@handle_errors
def list_managed(ctx: click.Context) -> None:
    """列出已 pin 的依赖及 checkout 状态"""
    deps = _workspace(ctx).managed_dependencies()
    if not deps:
        click.echo("没有已管理的依赖。")
        return
    for d in deps:
        mark = "✓" if d["ready"] else " "
        click.echo(f"  [{mark}] {d['identity']:24s} {d['state']:20s} {d['location']}")
