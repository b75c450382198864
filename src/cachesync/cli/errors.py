"""
Standardized error handling and exit codes for the cachesync CLI.
"""

from enum import IntEnum

from rich.console import Console

from cachesync.core.errors import CacheSyncError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for cachesync CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error (remote API failure, aborted sync)."""

    USER_ERROR = 2
    """Configuration or input error (actionable by user)."""

    PARTIAL_FAILURE = 3
    """Run finished but some per-item operations failed."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Example:
        >>> print_error(
        ...     "No Notion task database configured",
        ...     solution="export CACHESYNC_NOTION_DATABASE=<database id or url>",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_cachesync_error(error: CacheSyncError) -> None:
    """Print a CacheSyncError with its context and any hinted env var."""
    reason = ", ".join(f"{key}={value}" for key, value in error.context.items() if key != "env")
    env = error.context.get("env")
    print_error(
        error.message,
        reason=reason or None,
        solution=f"export {env}=..." if env else None,
    )
