"""
Checkpointed, resumable sync of source records onto target labels.

The engine walks a paginated source ascending by edit time, corrects the
managed labels of each referenced target, and persists a checkpoint after
every handled item. A run that dies part way resumes after the last
checkpointed item on the next invocation.

Per-item work is isolated: a rejected label or an unreadable target is
recorded on that item and the scan moves on. Only a failing source stops the
run, with SyncAbortedError.

Labels flow one way only, from source priority to target labels. Target
labels are never written back to the source.

Example:
    >>> engine = CheckpointedSyncEngine(
    ...     source=NotionTaskSource(notion, database_id),
    ...     target=GitHubLabelTarget(github),
    ...     checkpoints=StoreCheckpointStore(manager.state_store("priority-sync-state")),
    ...     label_map=PriorityLabelMap(),
    ... )
    >>> report = await engine.run()
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from cachesync.core.errors import StoreError, SyncAbortedError, UnknownPriorityError

from .labels import PriorityLabelMap
from .models import Checkpoint, ItemOutcome, LabelDiff, SourcePage, SyncItem, SyncReport
from .protocols import CheckpointStore, LabelTarget, PaginatedSource

logger = logging.getLogger(__name__)


class CheckpointedSyncEngine:
    """
    Sequential label sync with per-item checkpoints.

    Attributes:
        source: Paginated record source
        target: Label target
        checkpoints: Checkpoint persistence
        label_map: Priority to label mapping (defines the managed set)
        checkpoint_key: Key the checkpoint is stored under
        page_size: Items requested per page
        dry_run: Compute diffs only; write neither labels nor checkpoints
    """

    def __init__(
        self,
        source: PaginatedSource,
        target: LabelTarget,
        checkpoints: CheckpointStore,
        label_map: PriorityLabelMap | None = None,
        *,
        checkpoint_key: str = "checkpoint",
        page_size: int = 100,
        dry_run: bool = False,
    ) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self.source = source
        self.target = target
        self.checkpoints = checkpoints
        self.label_map = label_map or PriorityLabelMap()
        self.checkpoint_key = checkpoint_key
        self.page_size = page_size
        self.dry_run = dry_run

    def current_checkpoint(self) -> Checkpoint | None:
        """The stored checkpoint, if any."""
        return self.checkpoints.get(self.checkpoint_key)

    def reset(self) -> None:
        """Delete the checkpoint so the next run starts from the beginning."""
        self.checkpoints.delete(self.checkpoint_key)
        logger.info("Checkpoint '%s' reset", self.checkpoint_key)

    async def run(self) -> SyncReport:
        """
        Scan the source from the checkpoint to the end.

        Returns:
            SyncReport describing pages, items and per-item outcomes

        Raises:
            SyncAbortedError: If the source cannot be queried or the
                checkpoint cannot be persisted
        """
        checkpoint = self.current_checkpoint() or Checkpoint()
        report = SyncReport(dry_run=self.dry_run, checkpoint=checkpoint)
        resume_id = checkpoint.last_processed_id
        if resume_id:
            logger.info("Resuming after %s (edited %s)", resume_id, checkpoint.last_edited_at)
        else:
            logger.info("No checkpoint, scanning from the beginning")

        cursor = resume_id
        while True:
            page = await self._fetch(cursor, checkpoint)
            report.pages += 1

            for item in page.items:
                if item.id == resume_id or item.id == checkpoint.last_processed_id:
                    continue
                report.fetched += 1
                if not item.is_applicable:
                    report.skipped += 1
                    logger.debug("Skipping %s: no link or priority", item.id)
                    continue

                if (
                    item.edited_at is not None
                    and checkpoint.last_edited_at is not None
                    and item.edited_at < checkpoint.last_edited_at
                ):
                    logger.warning(
                        "Item %s edited %s is older than checkpoint %s",
                        item.id,
                        item.edited_at,
                        checkpoint.last_edited_at,
                    )

                outcome = await self._process(item)
                report.outcomes.append(outcome)
                report.processed += 1

                checkpoint = Checkpoint(
                    last_processed_id=item.id,
                    last_edited_at=item.edited_at,
                )
                self._save(checkpoint)
                report.checkpoint = checkpoint

            if not page.next_cursor:
                break
            cursor = page.next_cursor

        report.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Sync finished: %d processed, %d changed, %d skipped, %d failed operations",
            report.processed,
            report.changed,
            report.skipped,
            report.failed_operations,
        )
        return report

    async def _fetch(self, cursor: str | None, checkpoint: Checkpoint) -> SourcePage:
        try:
            return await self.source.query(cursor, self.page_size)
        except Exception as e:
            logger.error("Source query failed at cursor %s: %s", cursor, e)
            raise SyncAbortedError(
                f"Source query failed: {e}",
                checkpoint_id=checkpoint.last_processed_id,
                cursor=cursor,
            ) from e

    def _save(self, checkpoint: Checkpoint) -> None:
        if self.dry_run:
            return
        try:
            self.checkpoints.set(self.checkpoint_key, checkpoint)
        except (StoreError, OSError) as e:
            raise SyncAbortedError(
                f"Could not persist checkpoint: {e}",
                checkpoint_id=checkpoint.last_processed_id,
            ) from e

    async def _process(self, item: SyncItem) -> ItemOutcome:
        """Bring one target's managed labels in line with the item."""
        ref = item.ref or ""
        outcome = ItemOutcome(item_id=item.id, ref=ref)

        try:
            desired = self.label_map.desired_labels(item.desired)
        except UnknownPriorityError as e:
            logger.warning("%s: %s", ref, e)
            outcome.errors.append(str(e))
            return outcome

        try:
            current = await self.target.list_current_labels(ref)
        except Exception as e:
            logger.error("Could not list labels of %s: %s", ref, e)
            outcome.errors.append(f"list labels: {e}")
            return outcome

        diff = LabelDiff.compute(current, desired, self.label_map.managed)
        outcome.diff = diff
        if diff.is_empty:
            logger.debug("%s: labels already correct", ref)
            return outcome
        if self.dry_run:
            logger.info("[dry-run] %s: %s", ref, diff.describe())
            return outcome

        for label in sorted(diff.obsolete):
            try:
                await self.target.remove_label(ref, label)
            except Exception as e:
                logger.warning("Failed to remove '%s' from %s: %s", label, ref, e)
                outcome.errors.append(f"remove {label}: {e}")
            else:
                outcome.removed.append(label)

        for label in sorted(diff.missing):
            try:
                await self.target.add_labels(ref, [label])
            except Exception as e:
                logger.warning("Failed to add '%s' to %s: %s", label, ref, e)
                outcome.errors.append(f"add {label}: {e}")
            else:
                outcome.added.append(label)

        if outcome.changed:
            logger.info(
                "%s: %s",
                ref,
                ", ".join([f"+{label}" for label in outcome.added] + [f"-{label}" for label in outcome.removed]),
            )
        return outcome


__all__ = ["CheckpointedSyncEngine"]
