"""
cachesync CLI - Priority sync commands.

Runs the Notion to GitHub priority label sync and inspects its checkpoint.
"""

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from cachesync.cli.errors import ExitCode, print_cachesync_error, print_error
from cachesync.core.clients import PrioritySync, build_cache_manager, checkpoint_store
from cachesync.core.config.loader import load_config
from cachesync.core.config.models import CacheSyncConfig
from cachesync.core.errors import CacheSyncError, SyncAbortedError
from cachesync.core.sync.models import SyncReport

console = Console()
app = typer.Typer(
    name="sync",
    help="Sync Notion task priorities onto GitHub labels",
    no_args_is_help=True,
)


def _project_dir(ctx: typer.Context) -> Path | None:
    obj = ctx.find_root().obj or {}
    project_dir: Path | None = obj.get("project_dir")
    return project_dir


def _load(ctx: typer.Context) -> CacheSyncConfig:
    try:
        return load_config(_project_dir(ctx))
    except ValidationError as e:
        print_error("Invalid configuration", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)


async def _run(sync: PrioritySync, reset: bool) -> SyncReport:
    async with sync:
        if reset:
            sync.engine.reset()
        return await sync.engine.run()


def print_report(report: SyncReport) -> None:
    """Render changed and failed items, then totals."""
    rows = []
    for outcome in report.outcomes:
        if report.dry_run and outcome.diff is not None and not outcome.diff.is_empty:
            rows.append((outcome, outcome.diff.describe()))
        elif outcome.changed or outcome.errors:
            changes = [f"+{label}" for label in outcome.added]
            changes += [f"-{label}" for label in outcome.removed]
            rows.append((outcome, ", ".join(changes)))

    if rows:
        table = Table(title="Dry run: planned changes" if report.dry_run else "Label changes")
        table.add_column("Issue", style="cyan", overflow="fold")
        table.add_column("Changes")
        table.add_column("Errors", style="red")
        for outcome, changes in rows:
            table.add_row(outcome.ref or outcome.item_id, changes, "\n".join(outcome.errors))
        console.print(table)

    summary = (
        f"{report.processed} processed, {report.changed} changed, "
        f"{report.skipped} skipped, {report.failed_operations} failed operations"
    )
    if report.failed_operations:
        console.print(f"[yellow]⚠[/yellow]  {summary}")
    else:
        console.print(f"[green]✓[/green] {summary}")
    if report.checkpoint is not None and report.checkpoint.last_processed_id:
        console.print(f"[dim]Checkpoint: {report.checkpoint.last_processed_id}[/dim]")


@app.command()
def priorities(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Compute label changes without applying them or moving the checkpoint",
    ),
    reset: bool = typer.Option(
        False,
        "--reset",
        help="Forget the checkpoint and scan the whole task database",
    ),
) -> None:
    """
    Bring GitHub priority labels in line with Notion task priorities.

    Tasks are scanned in edit order from the last checkpoint; each handled
    task moves the checkpoint, so an interrupted run resumes where it stopped.

    Examples:
        cachesync sync priorities
        cachesync sync priorities --dry-run
        cachesync sync priorities --reset
    """
    config = _load(ctx)
    manager = build_cache_manager(config, _project_dir(ctx))

    try:
        sync = PrioritySync.from_config(config, manager, dry_run=dry_run)
    except CacheSyncError as e:
        print_cachesync_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)

    try:
        report = asyncio.run(_run(sync, reset))
    except SyncAbortedError as e:
        print_error(
            "Sync aborted",
            reason=str(e),
            solution="Re-run later; it resumes after the last checkpointed task",
        )
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted; the next run resumes after the last checkpointed task[/yellow]")
        raise typer.Exit(ExitCode.SIGINT)

    print_report(report)
    if report.failed_operations:
        raise typer.Exit(ExitCode.PARTIAL_FAILURE)


@app.command()
def checkpoint(ctx: typer.Context) -> None:
    """
    Show where the next priority sync resumes.

    Examples:
        cachesync sync checkpoint
    """
    config = _load(ctx)
    manager = build_cache_manager(config, _project_dir(ctx))
    current = checkpoint_store(config, manager).get(config.sync.checkpoint_key)

    if current is None or not current.last_processed_id:
        console.print("[blue]No checkpoint; the next run scans from the beginning[/blue]")
        return

    console.print(f"Last processed: [cyan]{current.last_processed_id}[/cyan]")
    if current.last_edited_at is not None:
        console.print(f"Edited at:      {current.last_edited_at.isoformat()}")
