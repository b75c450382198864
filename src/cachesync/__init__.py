"""
cachesync - cache-aside proxies, freshness predicates and checkpointed sync.

Wraps remote API clients (GitHub, Notion, Slack, ...) in a transparent
caching layer and keeps GitHub priority labels in line with a Notion task
database using a resumable, checkpointed scan.
"""

__version__ = "0.4.0"

from cachesync.core.cache.manager import CacheManager
from cachesync.core.cache.proxy import wrap
from cachesync.core.freshness import fresh_since, stale_since
from cachesync.core.sync.engine import CheckpointedSyncEngine

__all__ = [
    "CacheManager",
    "CheckpointedSyncEngine",
    "fresh_since",
    "stale_since",
    "wrap",
    "__version__",
]
