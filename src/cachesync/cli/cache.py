"""
cachesync CLI - Cache inspection and maintenance commands.
"""

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from cachesync.cli.errors import ExitCode, print_error
from cachesync.core.cache.manager import CacheManager
from cachesync.core.clients import GITHUB_NAMESPACE, NOTION_NAMESPACE, build_cache_manager
from cachesync.core.config.loader import load_config
from cachesync.core.config.models import CacheSyncConfig

console = Console()
app = typer.Typer(
    name="cache",
    help="Inspect and clear cached API responses",
    no_args_is_help=True,
)


def _project_dir(ctx: typer.Context) -> Path | None:
    obj = ctx.find_root().obj or {}
    project_dir: Path | None = obj.get("project_dir")
    return project_dir


def _open(ctx: typer.Context) -> tuple[CacheSyncConfig, CacheManager]:
    project_dir = _project_dir(ctx)
    try:
        config = load_config(project_dir)
    except ValidationError as e:
        print_error("Invalid configuration", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)
    return config, build_cache_manager(config, project_dir)


def known_namespaces(config: CacheSyncConfig) -> list[str]:
    """API namespaces plus any configured ones, in display order."""
    names = [GITHUB_NAMESPACE, NOTION_NAMESPACE]
    names += [name for name in sorted(config.cache.namespaces) if name not in names]
    return names


@app.command()
def stats(ctx: typer.Context) -> None:
    """
    Show entries per cache namespace.

    Examples:
        cachesync cache stats
        CACHESYNC_CACHE_BACKEND=disk cachesync cache stats
    """
    config, manager = _open(ctx)

    table = Table(title=f"Cache ({config.cache.backend}, {manager.cache_dir})")
    table.add_column("Namespace", style="cyan")
    table.add_column("Backend")
    table.add_column("TTL", justify="right")
    table.add_column("Entries", justify="right")
    table.add_column("Status")

    state = config.sync.state_namespace
    for name in [*known_namespaces(config), state]:
        store = manager.state_store(name) if name == state else manager.store(name)
        info = store.stats()
        ttl = "never" if name == state else f"{config.cache.ttl_for(name):g}s"
        status = "[yellow]degraded (in-memory)[/yellow]" if info.degraded else "[green]ok[/green]"
        table.add_row(name, info.backend, ttl, str(info.size), status)

    console.print(table)


@app.command()
def clear(
    ctx: typer.Context,
    namespace: str | None = typer.Argument(
        None,
        help="Namespace to clear (default: all API namespaces)",
    ),
    include_state: bool = typer.Option(
        False,
        "--include-state",
        help="Also clear sync state (checkpoints); the next sync starts over",
    ),
) -> None:
    """
    Clear cached responses.

    Sync checkpoints live in their own namespace and are kept unless
    --include-state is given or that namespace is named explicitly.

    Examples:
        cachesync cache clear
        cachesync cache clear notion
        cachesync cache clear --include-state
    """
    config, manager = _open(ctx)

    if namespace is not None:
        names = [namespace]
    else:
        names = known_namespaces(config)
        if include_state:
            names.append(config.sync.state_namespace)

    for name in names:
        if name == config.sync.state_namespace:
            manager.state_store(name)
        else:
            manager.store(name)
        manager.clear(name)
        console.print(f"[green]✓[/green] Cleared {name}")
