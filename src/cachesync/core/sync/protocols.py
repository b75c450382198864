"""
Interfaces the sync engine runs against.

The engine only talks to a paginated source, a label target and a
checkpoint store, so the Notion and GitHub clients (or in-memory fakes in
tests) plug in without the engine knowing about either API.
"""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .models import Checkpoint, SourcePage


@runtime_checkable
class PaginatedSource(Protocol):
    """
    Protocol for the record source being scanned.

    Pages must be ordered ascending by edit time, and the id of a record must
    be usable as a cursor that starts the scan at that record.
    """

    async def query(self, cursor: str | None, page_size: int) -> SourcePage:
        """
        Fetch one page.

        Args:
            cursor: Where to start (None = beginning)
            page_size: Maximum items per page

        Returns:
            SourcePage with items and the cursor of the next page
        """
        ...


@runtime_checkable
class LabelTarget(Protocol):
    """Protocol for the system whose labels are corrected."""

    async def list_current_labels(self, ref: str) -> list[str]:
        """Labels currently on the object identified by ``ref``."""
        ...

    async def add_labels(self, ref: str, labels: Iterable[str]) -> None:
        """Add labels to the object identified by ``ref``."""
        ...

    async def remove_label(self, ref: str, label: str) -> None:
        """Remove one label from the object identified by ``ref``."""
        ...


@runtime_checkable
class CheckpointStore(Protocol):
    """Protocol for durable checkpoint persistence."""

    def get(self, key: str) -> Checkpoint | None:
        """Load the checkpoint stored under ``key`` (None if absent)."""
        ...

    def set(self, key: str, checkpoint: Checkpoint) -> None:
        """Persist ``checkpoint`` under ``key``."""
        ...

    def delete(self, key: str) -> None:
        """Forget the checkpoint stored under ``key``."""
        ...
