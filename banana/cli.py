"""Command-line interface for Banana.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory.
- clean: Remove the output directory.
- serve: Build and serve the site, optionally rebuilding on change.
- help: Print the help message.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .build import SiteBuilder
from .errors import BananaError

LOG_FORMAT = "%(asctime)s %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    logging.getLogger("banana").setLevel(logging.DEBUG if verbose else logging.INFO)


def _report_failure(title: str, exc: BananaError, project_root: Path) -> None:
    """Print a failed command's error to stderr."""
    click.echo(click.style(title, fg="red", bold=True), err=True)
    if exc.source_path is not None:
        path = exc.source_path.resolve()
        if project_root in path.parents:
            path = path.relative_to(project_root)
        click.echo(click.style(f"  File: {path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="banana")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Project directory (defaults to the current directory)",
)
@click.option("-v", "--verbose", is_flag=True, help="Print debug output")
@click.pass_context
def cli(ctx: click.Context, root: Path, verbose: bool):
    """A static site generator."""
    _configure_logging(verbose)
    ctx.obj = root.resolve()


@cli.command()
@click.option("--clean", is_flag=True, help="Clean before building")
@click.pass_obj
def build(project_root: Path, clean: bool):
    """Build the site."""
    builder = SiteBuilder(project_root)
    try:
        if clean:
            builder.clean()
        result = builder.build()
    except BananaError as exc:
        _report_failure("Build failed:", exc, project_root)
        raise SystemExit(1) from None
    count = len(result.files)
    click.echo(f"Built {count} pages into {result.output_dir}")


@cli.command()
@click.pass_obj
def clean(project_root: Path):
    """Clean the build directory."""
    builder = SiteBuilder(project_root)
    try:
        builder.clean()
    except BananaError as exc:
        _report_failure("Clean failed:", exc, project_root)
        raise SystemExit(1) from None
    click.echo("Build directory removed")


@cli.command()
@click.option("--port", type=int, required=False, help="Port to serve on (overrides banana.yml)")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (defaults to port + 1)",
)
@click.option("--clean", is_flag=True, help="Clean before building")
@click.option("--watch", is_flag=True, help="Watch for file changes")
@click.option("--open", "open_browser", is_flag=True, help="Open the site in a browser")
@click.pass_obj
def serve(
    project_root: Path,
    port: int | None,
    ws_port: int | None,
    clean: bool,
    watch: bool,
    open_browser: bool,
):
    """Build and serve the site."""
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
        server.start(watch_sources=watch, clean=clean, open_browser=open_browser)
    except BananaError as exc:
        _report_failure("Build failed:", exc, project_root)
        raise SystemExit(1) from None


@cli.command("help")
@click.pass_context
def help_command(ctx: click.Context):
    """Print this help message and exit."""
    click.echo(ctx.parent.get_help())


def main():
    """Entry point for the CLI application."""
    cli()
