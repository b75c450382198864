"""
Checkpointed priority sync.

Scans a paginated source (Notion tasks) in edit order and corrects the
managed priority labels on a target (GitHub issues), checkpointing after
every item.
"""

from cachesync.core.sync.checkpoints import StoreCheckpointStore
from cachesync.core.sync.engine import CheckpointedSyncEngine
from cachesync.core.sync.labels import PriorityLabelMap, compute_label_diff
from cachesync.core.sync.models import (
    Checkpoint,
    ItemOutcome,
    LabelDiff,
    SourcePage,
    SyncItem,
    SyncReport,
)
from cachesync.core.sync.protocols import CheckpointStore, LabelTarget, PaginatedSource

__all__ = [
    "Checkpoint",
    "CheckpointStore",
    "CheckpointedSyncEngine",
    "ItemOutcome",
    "LabelDiff",
    "LabelTarget",
    "PaginatedSource",
    "PriorityLabelMap",
    "SourcePage",
    "StoreCheckpointStore",
    "SyncItem",
    "SyncReport",
    "compute_label_diff",
]
