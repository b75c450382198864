"""
Checkpoint persistence on top of cache store backends.
"""

import logging
from typing import Any

from pydantic import ValidationError

from cachesync.core.cache.stores import MemoryStore, StoreAdapter

from .models import Checkpoint

logger = logging.getLogger(__name__)


class StoreCheckpointStore:
    """
    Keeps checkpoints in a StoreAdapter.

    Checkpoints are written without expiry. Use a durable backend (sqlite,
    disk or mongo) for resumption to survive restarts; the default in-memory
    store only lasts for the process.

    Example:
        >>> checkpoints = StoreCheckpointStore(manager.state_store("priority-sync-state"))
        >>> checkpoints.set("checkpoint", Checkpoint(last_processed_id="abc"))
        >>> checkpoints.get("checkpoint").last_processed_id
        'abc'
    """

    def __init__(self, store: StoreAdapter | None = None) -> None:
        self.store: StoreAdapter = store if store is not None else MemoryStore()

    def get(self, key: str) -> Checkpoint | None:
        raw: Any = self.store.get(key)
        if raw is None:
            return None
        if isinstance(raw, Checkpoint):
            return raw
        try:
            return Checkpoint.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring unreadable checkpoint '%s': %s", key, e)
            return None

    def set(self, key: str, checkpoint: Checkpoint) -> None:
        self.store.set(key, checkpoint.model_dump(mode="json"), ttl=0)

    def delete(self, key: str) -> None:
        self.store.delete(key)


__all__ = ["StoreCheckpointStore"]
