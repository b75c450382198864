"""
Transparent caching layer for remote API clients.

- keys: deterministic cache keys from call path + arguments
- stores: StoreAdapter backends (memory, disk, sqlite, mongo), tiering, lazy init
- proxy: cache-aside proxy over arbitrary client object graphs
- manager: CacheManager, the per-process cache handle
"""

from cachesync.core.cache.keys import CacheKeyCodec, encode_cache_key
from cachesync.core.cache.manager import CacheManager
from cachesync.core.cache.models import CacheabilityDecision, CacheRecord, StoreStats
from cachesync.core.cache.proxy import CachedProxy, cache_key, invalidate, unwrap, wrap
from cachesync.core.cache.stores import (
    CollectionStore,
    DiskStore,
    LazyStore,
    MemoryStore,
    SqliteStore,
    StoreAdapter,
    TieredStore,
    create_store,
    list_stores,
)

__all__ = [
    "CacheKeyCodec",
    "CacheManager",
    "CacheRecord",
    "CacheabilityDecision",
    "CachedProxy",
    "CollectionStore",
    "DiskStore",
    "LazyStore",
    "MemoryStore",
    "SqliteStore",
    "StoreAdapter",
    "StoreStats",
    "TieredStore",
    "cache_key",
    "create_store",
    "encode_cache_key",
    "invalidate",
    "list_stores",
    "unwrap",
    "wrap",
]
