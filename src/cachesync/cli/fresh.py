"""
cachesync CLI - Classify a timestamp as fresh or stale.
"""

from datetime import datetime

import typer
from rich.console import Console

from cachesync.cli.errors import ExitCode, print_error
from cachesync.core.freshness import fresh_since, parse_timestamp, stale_since

console = Console()


def _parse(text: str) -> datetime | None:
    """ISO-8601, or epoch seconds when the text is a number."""
    try:
        return parse_timestamp(float(text))
    except ValueError:
        return parse_timestamp(text)


def fresh(
    timestamp: str = typer.Argument(
        ...,
        help="Stored timestamp (ISO-8601 or epoch seconds; empty string = never stored)",
    ),
    bound: str = typer.Argument(..., help="Duration (7d, 2h30m, 90) or ISO-8601 instant"),
    now: str | None = typer.Option(
        None,
        "--now",
        help="Evaluation time (ISO-8601); defaults to the current time",
    ),
) -> None:
    """
    Classify a timestamp against a freshness bound.

    A timestamp exactly on the boundary is both fresh and stale.

    Examples:
        cachesync fresh 2025-01-01T00:00:00Z 7d
        cachesync fresh 1735689600 2025-01-01T00:00:00Z
        cachesync fresh "" 1d
    """
    try:
        evaluated_at = _parse(now) if now else None
        stored = _parse(timestamp)
        bound_value: str | datetime = bound
        try:
            fresh_since(bound)
        except ValueError:
            instant = _parse(bound)
            if instant is None:
                raise
            bound_value = instant
        is_fresh = fresh_since(bound_value)(stored, now=evaluated_at)
        is_stale = stale_since(bound_value)(stored, now=evaluated_at)
        boundary = fresh_since(bound_value).boundary(evaluated_at)
    except (TypeError, ValueError, OverflowError) as e:
        print_error("Invalid timestamp or bound", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    if is_fresh and is_stale:
        verdict = "[yellow]fresh and stale[/yellow] (on the boundary)"
    elif is_fresh:
        verdict = "[green]fresh[/green]"
    else:
        verdict = "[red]stale[/red]"

    console.print(verdict)
    console.print(f"[dim]Boundary: {boundary.isoformat()}[/dim]")
