"""
Store backends for the caching layer.

This module defines the StoreAdapter protocol every backend implements, a
registry of named backends, and two composite stores:

- ``TieredStore``: a fast local store in front of a slower durable one
- ``LazyStore``: builds its backend on first use and degrades to memory

Backends:
    memory  In-process dict (``MemoryStore``)
    disk    Embedded file-backed store on diskcache (``DiskStore``)
    sqlite  Embedded relational store on sqlite3 (``SqliteStore``)
    mongo   Shared document-database collection (``CollectionStore``)

TTLs are enforced here, at the backend boundary. Callers never need to know
which backend they talk to.

Example:
    >>> store = create_store("sqlite", path=Path(".cache/cachesync/gh.sqlite"), default_ttl=60)
    >>> store.set("k", {"a": 1})
    >>> store.get("k")
    {'a': 1}
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import diskcache

from cachesync.core.cache.models import CacheRecord, StoreStats, ttl_seconds
from cachesync.core.errors import StoreError

if TYPE_CHECKING:
    from cachesync.core.config.models import CacheConfig

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
TTL = float | int | timedelta | None


@runtime_checkable
class StoreAdapter(Protocol):
    """
    Protocol for key-value store backends.

    ``get`` returns None for absent and expired keys. ``set`` with no ttl uses
    the store's default TTL; a ttl of zero or None means no expiry.
    """

    def get(self, key: str) -> Any | None:
        """Return the live value for key, or None."""
        ...

    def get_record(self, key: str) -> CacheRecord | None:
        """Return the live record for key, or None."""
        ...

    def set(self, key: str, value: Any, ttl: TTL = None) -> None:
        """Store value under key, replacing any previous record."""
        ...

    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""
        ...

    def clear(self) -> None:
        """Remove every entry."""
        ...

    def stats(self) -> StoreStats:
        """Best-effort size information."""
        ...


# Backend registry
_stores: dict[str, type[StoreDefaults]] = {}


def register_store(name: str) -> Callable[[type[StoreDefaults]], type[StoreDefaults]]:
    """
    Decorator to register a store backend.

    Usage:
        @register_store("memory")
        class MemoryStore(StoreDefaults):
            ...
    """

    def decorator(cls: type[StoreDefaults]) -> type[StoreDefaults]:
        _stores[name] = cls
        return cls

    return decorator


def get_store_class(name: str) -> type[StoreDefaults]:
    """
    Look up a registered backend.

    Raises:
        ValueError: If no backend is registered under name
    """
    if name not in _stores:
        available = ", ".join(sorted(_stores)) or "(none)"
        raise ValueError(f"Store backend '{name}' not registered. Available: {available}")
    return _stores[name]


def list_stores() -> list[str]:
    """Names of all registered backends."""
    return sorted(_stores)


def create_store(name: str, **options: Any) -> StoreDefaults:
    """Instantiate a registered backend with backend-specific options."""
    return get_store_class(name)(**options)


class StoreDefaults:
    """
    Shared plumbing for backends: default TTL, clock and record handling.

    Subclasses implement ``_read``, ``_write``, ``delete``, ``clear`` and
    ``_size``.
    """

    name = "base"

    def __init__(self, default_ttl: TTL = None, clock: Clock | None = None) -> None:
        self.default_ttl = ttl_seconds(default_ttl)
        self.clock: Clock = clock or time.time

    @classmethod
    def for_namespace(
        cls,
        namespace: str,
        config: CacheConfig,
        cache_dir: Path,
        default_ttl: TTL = None,
    ) -> StoreDefaults:
        """
        Build the store a CacheManager uses for one namespace.

        Backends that keep data somewhere outside the process override this to
        pick their location from the namespace and cache settings.
        """
        return cls(default_ttl=default_ttl)

    def _make_record(self, key: str, value: Any, ttl: TTL) -> CacheRecord:
        seconds = ttl_seconds(ttl) if ttl is not None else self.default_ttl
        now = self.clock()
        expires_at = now + seconds if seconds is not None else None
        return CacheRecord(key=key, value=value, stored_at=now, expires_at=expires_at)

    def _read(self, key: str) -> CacheRecord | None:
        raise NotImplementedError

    def _write(self, record: CacheRecord) -> None:
        raise NotImplementedError

    def _size(self) -> int:
        raise NotImplementedError

    def get_record(self, key: str) -> CacheRecord | None:
        record = self._read(key)
        if record is None:
            return None
        if record.is_expired(self.clock()):
            self.delete(key)
            return None
        return record

    def get(self, key: str) -> Any | None:
        record = self.get_record(key)
        return None if record is None else record.value

    def set(self, key: str, value: Any, ttl: TTL = None) -> None:
        self._write(self._make_record(key, value, ttl))

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def stats(self) -> StoreStats:
        return StoreStats(backend=self.name, size=self._size())


@register_store("memory")
class MemoryStore(StoreDefaults):
    """In-process dict store. Lost on exit."""

    name = "memory"

    def __init__(self, default_ttl: TTL = None, clock: Clock | None = None) -> None:
        super().__init__(default_ttl=default_ttl, clock=clock)
        self._data: dict[str, CacheRecord] = {}
        self._lock = threading.Lock()

    def _read(self, key: str) -> CacheRecord | None:
        with self._lock:
            return self._data.get(key)

    def _write(self, record: CacheRecord) -> None:
        with self._lock:
            self._data[record.key] = record

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def _size(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [k for k, record in self._data.items() if record.is_expired(now)]
            for k in expired:
                del self._data[k]
            return len(self._data)


@register_store("disk")
class DiskStore(StoreDefaults):
    """
    File-backed store on diskcache.

    diskcache is safe across threads and processes; entries are pickled, so
    any picklable value can be cached.
    """

    name = "disk"

    def __init__(
        self,
        directory: Path | str,
        default_ttl: TTL = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(default_ttl=default_ttl, clock=clock)
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._cache = diskcache.Cache(str(self.directory))
        except OSError as e:
            raise StoreError(self.name, f"Cannot open disk cache: {e}", path=str(directory)) from e

    @classmethod
    def for_namespace(
        cls, namespace: str, config: CacheConfig, cache_dir: Path, default_ttl: TTL = None
    ) -> DiskStore:
        return cls(cache_dir / namespace, default_ttl=default_ttl)

    def _read(self, key: str) -> CacheRecord | None:
        raw = self._cache.get(key)
        if raw is None:
            return None
        return CacheRecord(key=key, **raw)

    def _write(self, record: CacheRecord) -> None:
        self._cache.set(
            record.key,
            {"value": record.value, "stored_at": record.stored_at, "expires_at": record.expires_at},
        )

    def delete(self, key: str) -> bool:
        return bool(self._cache.delete(key))

    def clear(self) -> None:
        self._cache.clear()

    def _size(self) -> int:
        now = self.clock()
        count = 0
        for key in list(self._cache):
            raw = self._cache.get(key)
            if raw is None:
                continue
            expires_at = raw.get("expires_at")
            if expires_at is not None and now >= expires_at:
                self._cache.delete(key)
                continue
            count += 1
        return count

    def close(self) -> None:
        self._cache.close()


@register_store("sqlite")
class SqliteStore(StoreDefaults):
    """
    Embedded relational store on sqlite3.

    Values are stored as JSON text, so only JSON-compatible values can be
    cached (API responses are). One connection is shared by all threads and
    guarded by a lock.
    """

    name = "sqlite"

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS cache (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            stored_at REAL NOT NULL,
            expires_at REAL
        )
    """

    def __init__(
        self,
        path: Path | str,
        default_ttl: TTL = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(default_ttl=default_ttl, clock=clock)
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            if str(path) != ":memory:":
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(self.SCHEMA)
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StoreError(self.name, f"Cannot open sqlite cache: {e}", path=str(path)) from e

    @classmethod
    def for_namespace(
        cls, namespace: str, config: CacheConfig, cache_dir: Path, default_ttl: TTL = None
    ) -> SqliteStore:
        return cls(cache_dir / f"{namespace}.sqlite", default_ttl=default_ttl)

    def _read(self, key: str) -> CacheRecord | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value, stored_at, expires_at FROM cache WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        value, stored_at, expires_at = row
        return CacheRecord(key=key, value=json.loads(value), stored_at=stored_at, expires_at=expires_at)

    def _write(self, record: CacheRecord) -> None:
        try:
            payload = json.dumps(record.value)
        except (TypeError, ValueError) as e:
            raise StoreError(self.name, f"Value for {record.key} is not JSON serializable: {e}") from e
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO cache (key, value, stored_at, expires_at) VALUES (?, ?, ?, ?)",
                    (record.key, payload, record.stored_at, record.expires_at),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                raise StoreError(self.name, f"Write failed for {record.key}: {e}", path=str(self.path)) from e

    def delete(self, key: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM cache WHERE key = ?", (key,))
            self._conn.commit()
            return cursor.rowcount > 0

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM cache")
            self._conn.commit()

    def _size(self) -> int:
        now = self.clock()
        with self._lock:
            self._conn.execute(
                "DELETE FROM cache WHERE expires_at IS NOT NULL AND expires_at <= ?", (now,)
            )
            self._conn.commit()
            (count,) = self._conn.execute("SELECT COUNT(*) FROM cache").fetchone()
        return int(count)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


@register_store("mongo")
class CollectionStore(StoreDefaults):
    """
    Store over a shared document-database collection.

    Works with any pymongo-compatible collection (``find_one``,
    ``replace_one``, ``delete_one``, ``delete_many``, ``count_documents``).
    Documents look like ``{"_id": key, "value": ..., "stored_at": ..., "expires_at": ...}``.
    """

    name = "mongo"

    def __init__(
        self,
        collection: Any = None,
        *,
        uri: str | None = None,
        database: str | None = None,
        collection_name: str = "cachesync_cache",
        default_ttl: TTL = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(default_ttl=default_ttl, clock=clock)
        if collection is None:
            if not uri:
                raise StoreError(self.name, "Either a collection or a MongoDB uri is required")
            collection = self._connect(uri, database, collection_name)
        self.collection = collection

    @classmethod
    def for_namespace(
        cls, namespace: str, config: CacheConfig, cache_dir: Path, default_ttl: TTL = None
    ) -> CollectionStore:
        return cls(
            uri=config.mongodb_uri,
            database=config.mongodb_database,
            collection_name=f"{config.mongodb_collection_prefix}{namespace}",
            default_ttl=default_ttl,
        )

    @staticmethod
    def _connect(uri: str, database: str | None, collection_name: str) -> Any:
        try:
            from pymongo import MongoClient
            from pymongo.errors import PyMongoError
        except ImportError as e:
            raise StoreError("mongo", "pymongo is not installed (pip install cachesync[mongo])") from e
        try:
            client: Any = MongoClient(uri, serverSelectionTimeoutMS=5000)
            db = client[database] if database else client.get_default_database()
            client.admin.command("ping")
        except (PyMongoError, ValueError) as e:
            raise StoreError("mongo", f"Cannot connect to MongoDB: {e}") from e
        return db[collection_name]

    def _read(self, key: str) -> CacheRecord | None:
        doc = self.collection.find_one({"_id": key})
        if doc is None:
            return None
        return CacheRecord(
            key=key,
            value=doc.get("value"),
            stored_at=doc.get("stored_at", 0.0),
            expires_at=doc.get("expires_at"),
        )

    def _write(self, record: CacheRecord) -> None:
        self.collection.replace_one(
            {"_id": record.key},
            {
                "_id": record.key,
                "value": record.value,
                "stored_at": record.stored_at,
                "expires_at": record.expires_at,
            },
            upsert=True,
        )

    def delete(self, key: str) -> bool:
        result = self.collection.delete_one({"_id": key})
        return getattr(result, "deleted_count", 0) > 0

    def clear(self) -> None:
        self.collection.delete_many({})

    def _size(self) -> int:
        now = self.clock()
        return int(
            self.collection.count_documents(
                {"$or": [{"expires_at": None}, {"expires_at": {"$gt": now}}]}
            )
        )


class TieredStore:
    """
    Two-tier store: consult the fast layer first, then the durable layer.

    Durable hits are promoted into the fast layer with their remaining TTL so
    the two layers expire together. Writes and deletes go to both layers.

    Example:
        >>> store = TieredStore(MemoryStore(), SqliteStore(".cache/notion.sqlite"))
    """

    name = "tiered"

    def __init__(self, fast: StoreAdapter, durable: StoreAdapter) -> None:
        self.fast = fast
        self.durable = durable

    def get_record(self, key: str) -> CacheRecord | None:
        record = self.fast.get_record(key)
        if record is not None:
            return record
        record = self.durable.get_record(key)
        if record is None:
            return None
        remaining = record.remaining_ttl(_clock_of(self.durable)())
        if remaining is not None and remaining <= 0:
            return None
        self.fast.set(key, record.value, ttl=remaining)
        return record

    def get(self, key: str) -> Any | None:
        record = self.get_record(key)
        return None if record is None else record.value

    def set(self, key: str, value: Any, ttl: TTL = None) -> None:
        if ttl is None:
            ttl = getattr(self.durable, "default_ttl", None)
        self.durable.set(key, value, ttl=ttl)
        self.fast.set(key, value, ttl=ttl)

    def delete(self, key: str) -> bool:
        removed_fast = self.fast.delete(key)
        removed_durable = self.durable.delete(key)
        return removed_fast or removed_durable

    def clear(self) -> None:
        self.fast.clear()
        self.durable.clear()

    def stats(self) -> StoreStats:
        durable = self.durable.stats()
        fast = self.fast.stats()
        return StoreStats(
            backend=f"{fast.backend}+{durable.backend}",
            size=max(durable.size, fast.size),
            degraded=durable.degraded or fast.degraded,
        )


def _clock_of(store: object) -> Clock:
    return getattr(store, "clock", time.time)


class LazyStore:
    """
    Store that builds its backend on first use.

    The factory runs at most once per instance, under a lock, the first time
    any operation needs the backend. If it raises, a warning is logged and an
    in-memory store with the same default TTL takes its place for the rest of
    the process. Construction never fails the caller.

    Attributes:
        name: Label used in logs and stats
        degraded: True once the fallback is in use
    """

    def __init__(
        self,
        factory: Callable[[], StoreAdapter],
        name: str = "lazy",
        fallback: Callable[[], StoreAdapter] | None = None,
    ) -> None:
        self.name = name
        self.degraded = False
        self._factory = factory
        self._fallback = fallback or MemoryStore
        self._backend: StoreAdapter | None = None
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        """Whether the backend has been built."""
        return self._backend is not None

    @property
    def backend(self) -> StoreAdapter:
        """The underlying store, built on first access."""
        if self._backend is None:
            with self._lock:
                if self._backend is None:
                    self._backend = self._build()
        return self._backend

    def _build(self) -> StoreAdapter:
        try:
            backend = self._factory()
            logger.debug("Initialized %s cache backend", self.name)
            return backend
        except Exception as e:
            logger.warning(
                "Cache backend '%s' unavailable, falling back to in-memory cache: %s",
                self.name,
                e,
            )
            self.degraded = True
            return self._fallback()

    def get_record(self, key: str) -> CacheRecord | None:
        return self.backend.get_record(key)

    def get(self, key: str) -> Any | None:
        return self.backend.get(key)

    def set(self, key: str, value: Any, ttl: TTL = None) -> None:
        self.backend.set(key, value, ttl=ttl)

    def delete(self, key: str) -> bool:
        return self.backend.delete(key)

    def clear(self) -> None:
        self.backend.clear()

    def stats(self) -> StoreStats:
        stats = self.backend.stats()
        if self.degraded:
            stats = stats.model_copy(update={"degraded": True})
        return stats


__all__ = [
    "CollectionStore",
    "DiskStore",
    "LazyStore",
    "MemoryStore",
    "SqliteStore",
    "StoreAdapter",
    "StoreDefaults",
    "TieredStore",
    "create_store",
    "get_store_class",
    "list_stores",
    "register_store",
]
