"""owl-resolver CLI - resolve Opal requires against the cached load paths."""

import logging
import os
import sys
from pathlib import Path

import click

from . import __version__
from .cache_store import CacheStore
from .commands.cache import cache as cache_group
from .commands.cache import report_error
from .config import ResolverConfig
from .config import load_config
from .console import console
from .errors import ConfigurationError
from .errors import OwlResolverError
from .logging_setup import init_logging
from .resolver import Resolver
from .utils.error_format import escape_markup

logger = logging.getLogger(__name__)


def _load_resolver(config: ResolverConfig) -> Resolver:
    try:
        state = CacheStore(config).load_or_rebuild()
    except OwlResolverError as e:
        report_error(e)
    return Resolver(state, config)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="owl-resolver")
@click.option(
    "--project-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Project directory holding Gemfile and Gemfile.lock (default: current directory)",
)
@click.option("--log-level", default=None, help="Log level (default: OWL_LOG_LEVEL or WARNING)")
@click.option("--log-file", default=None, help="Append JSONL log records to this file")
@click.pass_context
def cli(ctx: click.Context, project_root: Path | None, log_level: str | None, log_file: str | None):
    """owl-resolver - Opal load-path resolution with a persistent cache."""
    try:
        config = load_config(project_root, log_level=log_level, log_path=log_file)
    except ConfigurationError as e:
        report_error(e)

    init_logging(config.log_path, config.log_level)
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("specifier")
@click.option(
    "--from",
    "requesting_directory",
    default=None,
    help="Directory of the requiring file (default: current directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show which lookup tier matched")
@click.pass_obj
def resolve(config: ResolverConfig, specifier: str, requesting_directory: str | None, verbose: bool):
    """Resolve SPECIFIER (e.g. ./foo.rb) to an absolute path."""
    resolver = _load_resolver(config)
    directory = os.path.abspath(requesting_directory) if requesting_directory else config.working_tree

    path, tier = resolver.resolve_with_tier(directory, specifier)
    if path is None:
        console.print(f"[yellow]Not found:[/yellow] {escape_markup(specifier)}")
        sys.exit(1)

    click.echo(path)
    if verbose:
        console.print(f"[dim]matched by: {tier}[/dim]")


@cli.command(name="load-paths")
@click.pass_obj
def load_paths(config: ResolverConfig):
    """List the cached load paths in search order."""
    resolver = _load_resolver(config)
    for load_path in resolver.state.load_paths:
        click.echo(load_path)


cli.add_command(cache_group)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
