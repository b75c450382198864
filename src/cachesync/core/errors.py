"""
Exception hierarchy for cachesync.

Exception Hierarchy:
    CacheSyncError (base)
    ├── StoreError (cache/checkpoint backend failures)
    ├── SyncError
    │   ├── SyncAbortedError (source unreachable, run stops)
    │   └── UnknownPriorityError (item cannot be mapped to labels)
    ├── RemoteClientError (remote API failures)
    │   ├── GitHubClientError
    │   └── NotionClientError
    └── IssueUrlError (link is not a GitHub issue or pull request)

Per-item and per-cache-entry failures are caught close to where they happen
and logged; only SyncAbortedError is meant to reach the caller of a sync run.

Example:
    >>> from cachesync.core.errors import StoreError
    >>> try:
    ...     raise StoreError("sqlite", "database is locked", path="/tmp/x.sqlite")
    ... except StoreError as e:
    ...     print(f"{e.backend}: {e} {e.context}")
"""


class CacheSyncError(Exception):
    """
    Base exception for all cachesync errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class StoreError(CacheSyncError):
    """
    Raised when a store backend cannot be created or used.

    Attributes:
        backend: Name of the backend that failed (e.g., "sqlite", "disk")
    """

    def __init__(self, backend: str, message: str, **context: object) -> None:
        super().__init__(message, **context)
        self.backend = backend


class SyncError(CacheSyncError):
    """Base exception for sync engine errors."""

    pass


class SyncAbortedError(SyncError):
    """
    Raised when a sync run cannot continue.

    The checkpoint persisted before the failure still reflects every item
    that was handled, so the next run resumes from there.

    Attributes:
        checkpoint_id: Id of the last checkpointed item, if any
    """

    def __init__(self, message: str, checkpoint_id: str | None = None, **context: object) -> None:
        super().__init__(message, **context)
        self.checkpoint_id = checkpoint_id


class UnknownPriorityError(SyncError):
    """Raised when a priority value has no label mapping."""

    def __init__(self, priority: str) -> None:
        super().__init__(f"Unknown priority: {priority}", priority=priority)
        self.priority = priority


class RemoteClientError(CacheSyncError):
    """
    Base exception for remote API client failures.

    Attributes:
        status_code: HTTP status code when the failure came from a response
    """

    def __init__(self, message: str, status_code: int | None = None, **context: object) -> None:
        super().__init__(message, **context)
        self.status_code = status_code


class GitHubClientError(RemoteClientError):
    """Error from GitHub API operations."""

    pass


class NotionClientError(RemoteClientError):
    """Error from Notion API operations."""

    pass


class IssueUrlError(CacheSyncError):
    """Raised when a link is not a GitHub issue or pull request URL."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Not a GitHub issue or pull request URL: {url}", url=url)
        self.url = url


__all__ = [
    "CacheSyncError",
    "GitHubClientError",
    "IssueUrlError",
    "NotionClientError",
    "RemoteClientError",
    "StoreError",
    "SyncAbortedError",
    "SyncError",
    "UnknownPriorityError",
]
