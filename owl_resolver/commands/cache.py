"""Cache management commands for owl-resolver.

Inspect, rebuild and clean the load-path cache at .owl_cache/ in the
project root.
"""

from __future__ import annotations

import sys
from datetime import datetime
from typing import NoReturn

import click
from rich.table import Table

from ..cache_store import CacheStore
from ..config import ResolverConfig
from ..console import console
from ..errors import OwlResolverError
from ..utils.error_format import escape_markup
from ..utils.error_format import format_error_details
from ..utils.error_format import format_error_message


def report_error(e: OwlResolverError) -> NoReturn:
    """Print a hard failure and exit with status 2."""
    console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e))}")
    for line in format_error_details(e):
        console.print(f"  [dim]{escape_markup(line)}[/dim]")
    sys.exit(2)


def _format_mtime(mtime: float | None) -> str:
    if mtime is None:
        return "-"
    return datetime.fromtimestamp(mtime).strftime("%Y-%m-%d %H:%M:%S")


@click.group(invoke_without_command=True)
@click.pass_context
def cache(ctx: click.Context):
    """Manage the load-path cache.

    The cache stores the Opal load paths and the files below them at
    .owl_cache/load_paths.json. It is rebuilt when Gemfile.lock changes.
    """
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@cache.command(name="path")
@click.pass_obj
def cache_path(config: ResolverConfig):
    """Show the cache file path."""
    click.echo(str(config.cache_file_path))

    if config.cache_file_path.exists():
        console.print("[dim]Status: exists[/dim]")
    else:
        console.print("[dim]Status: not created yet[/dim]")


@cache.command(name="status")
@click.pass_obj
def cache_status(config: ResolverConfig):
    """Show whether the cache is fresh, without rebuilding it."""
    report = CacheStore(config).status()

    table = Table(title="Load Path Cache", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Cache file", escape_markup(report.cache_file))
    table.add_row("Exists", "yes" if report.exists else "no")
    table.add_row("Readable", "yes" if report.readable else "no")
    table.add_row("Cache modified", _format_mtime(report.cache_mtime))
    table.add_row(f"{config.gemfile_lock} modified", _format_mtime(report.lock_mtime))
    table.add_row(f"{config.gemfile} modified", _format_mtime(report.gemfile_mtime))
    if report.load_path_count is not None:
        table.add_row("Load paths", str(report.load_path_count))
        table.add_row("Entries", str(report.entry_count))

    console.print(table)

    if report.is_stale:
        console.print("[yellow]Stale:[/yellow] the cache will be rebuilt on next use")
    else:
        console.print("[green]Fresh[/green]")
    if report.lock_is_stale:
        console.print(
            f"[yellow]Warning:[/yellow] {config.gemfile} is newer than {config.gemfile_lock}, "
            "run 'bundle install' or 'bundle update'"
        )


@cache.command(name="rebuild")
@click.pass_obj
def cache_rebuild(config: ResolverConfig):
    """Re-enumerate load paths and re-index them now."""
    store = CacheStore(config)
    try:
        with console.status("Enumerating load paths..."):
            state = store.rebuild()
    except OwlResolverError as e:
        report_error(e)

    console.print(
        f"[green]Cached {len(state.load_paths)} load paths, {len(state.index)} entries[/green]"
    )


@cache.command(name="clean")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Skip confirmation prompt",
)
@click.pass_obj
def cache_clean(config: ResolverConfig, force: bool):
    """Delete the cache directory. It is recreated on next use."""
    cache_dir = config.cache_dir_path

    if not cache_dir.exists():
        console.print("[dim]Cache directory does not exist - nothing to clean.[/dim]")
        return

    if not force and not click.confirm(f"Delete {cache_dir}?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    try:
        CacheStore(config).clear()
    except OSError as e:
        console.print(f"[red]Error cleaning cache:[/red] {escape_markup(e)}")
        sys.exit(1)

    console.print("[green]Cache removed[/green]")
