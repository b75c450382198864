"""
Data models for the checkpointed sync engine.

Defines Pydantic models for checkpoints, source pages, label diffs and
run reports.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class Checkpoint(BaseModel):
    """
    Marker of the last handled item in a scan.

    Persisted after every handled item, in scan order, so a restarted run
    resumes right after it.

    Example:
        >>> checkpoint = Checkpoint(last_processed_id="page-3", last_edited_at=datetime(2025, 1, 3))
        >>> checkpoint.model_dump_json()
    """

    last_processed_id: str | None = Field(
        default=None,
        description="Id of the last handled item (None = start from the beginning)",
    )
    last_edited_at: datetime | None = Field(
        default=None,
        description="Edit time of the last handled item",
    )


class SyncItem(BaseModel):
    """
    One record from the paginated source.

    ``ref`` identifies the object to correct (an issue or PR URL) and
    ``desired`` is the signal the desired labels are computed from (a
    priority name). Items missing either are not applicable.
    """

    id: str = Field(..., description="Source record id")
    edited_at: datetime | None = Field(default=None, description="Last edit time in the source")
    ref: str | None = Field(default=None, description="Target reference (issue/PR URL)")
    desired: str | None = Field(default=None, description="Desired-state signal (priority)")
    title: str | None = Field(default=None, description="Display title")

    @property
    def is_applicable(self) -> bool:
        """Whether the item carries everything needed to process it."""
        return bool(self.ref and self.ref.strip()) and bool(self.desired and self.desired.strip())


class SourcePage(BaseModel):
    """One page from a paginated source."""

    items: list[SyncItem] = Field(default_factory=list, description="Items, ascending by edit time")
    next_cursor: str | None = Field(default=None, description="Cursor of the next page (None = done)")


class LabelDiff(BaseModel):
    """
    Labels to add and remove on one target.

    Only labels from the managed set ever appear here; anything else on the
    target is left alone.

    Example:
        >>> LabelDiff.compute(
        ...     current=["A", "High-Priority"],
        ...     desired=["Medium-Priority"],
        ...     managed=["High-Priority", "Medium-Priority", "Low-Priority"],
        ... )
        LabelDiff(missing={'Medium-Priority'}, obsolete={'High-Priority'})
    """

    missing: set[str] = Field(default_factory=set, description="Desired labels not present")
    obsolete: set[str] = Field(default_factory=set, description="Managed labels present but not desired")

    @property
    def is_empty(self) -> bool:
        """True when nothing needs to change."""
        return not self.missing and not self.obsolete

    @classmethod
    def compute(
        cls,
        current: Iterable[str],
        desired: Iterable[str],
        managed: Iterable[str],
    ) -> LabelDiff:
        """
        Diff current labels against desired ones within the managed set.

        Args:
            current: Labels currently on the target
            desired: Labels that should be present
            managed: Labels this system may add or remove
        """
        current_set = set(current)
        managed_set = set(managed)
        desired_set = set(desired) & managed_set
        return cls(
            missing=desired_set - current_set,
            obsolete=(current_set & managed_set) - desired_set,
        )

    def describe(self) -> str:
        """Short ``+added -removed`` summary."""
        parts = [f"+{label}" for label in sorted(self.missing)]
        parts += [f"-{label}" for label in sorted(self.obsolete)]
        return ", ".join(parts) or "(no change)"


class ItemOutcome(BaseModel):
    """What happened to one processed item."""

    item_id: str = Field(..., description="Source record id")
    ref: str | None = Field(default=None, description="Target reference")
    diff: LabelDiff | None = Field(default=None, description="Computed diff (None if not reached)")
    added: list[str] = Field(default_factory=list, description="Labels added")
    removed: list[str] = Field(default_factory=list, description="Labels removed")
    errors: list[str] = Field(default_factory=list, description="Per-operation errors")

    @property
    def ok(self) -> bool:
        """True if every attempted operation succeeded."""
        return not self.errors

    @property
    def changed(self) -> bool:
        """True if any label was added or removed."""
        return bool(self.added or self.removed)


class SyncReport(BaseModel):
    """
    Summary of one engine run.

    Example:
        >>> report = await engine.run()
        >>> print(f"{report.processed} processed, {report.failed_operations} failed")
    """

    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = Field(default=None)
    dry_run: bool = Field(default=False)
    pages: int = Field(default=0, ge=0, description="Pages fetched")
    fetched: int = Field(default=0, ge=0, description="Items fetched (checkpoint item excluded)")
    processed: int = Field(default=0, ge=0, description="Items processed and checkpointed")
    skipped: int = Field(default=0, ge=0, description="Items without a target or desired state")
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    checkpoint: Checkpoint | None = Field(default=None, description="Checkpoint after the run")

    @property
    def failed_operations(self) -> int:
        """Number of individual operations that failed."""
        return sum(len(outcome.errors) for outcome in self.outcomes)

    @property
    def changed(self) -> int:
        """Number of items whose labels changed."""
        return sum(1 for outcome in self.outcomes if outcome.changed)

    @property
    def processed_ids(self) -> list[str]:
        """Ids of processed items in processing order."""
        return [outcome.item_id for outcome in self.outcomes]
