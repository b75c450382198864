"""
cachesync CLI - Main application entry point.
"""

import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from cachesync.cli import cache, fresh, sync
from cachesync.core.config.env import load_layered_env

app = typer.Typer(
    name="cachesync",
    help="Cached API clients, freshness checks and checkpointed priority sync",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich; DEBUG when verbose, INFO otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging (cache hits/misses, requests)",
    ),
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        "-C",
        help="Project directory for .cachesync.json, .env and the cache directory",
    ),
) -> None:
    """
    cachesync - cache-aside API clients and checkpointed priority sync.

    Examples:
        cachesync cache stats                 # Entries per cache namespace
        cachesync cache clear github          # Drop cached GitHub responses
        cachesync sync priorities --dry-run   # Show label changes without applying
        cachesync sync checkpoint             # Where the next run resumes
        cachesync fresh 2025-01-01T00:00:00Z 7d
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env(project_dir=project_dir)
    configure_logging(verbose)
    ctx.obj = {"verbose": verbose, "project_dir": project_dir}


app.add_typer(cache.app, name="cache")
app.add_typer(sync.app, name="sync")
app.command(name="fresh")(fresh.fresh)


def cli_main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "cli_main", "configure_logging"]
