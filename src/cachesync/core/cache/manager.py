"""
Process-wide cache handle.

A CacheManager is built once at startup from ``CacheConfig`` and passed to
whatever needs caching. It owns one lazily-built store per namespace, so all
clients wrapped under the same namespace share a single backend connection.

Example:
    >>> manager = CacheManager(load_config().cache)
    >>> github = manager.wrap(GitHubClient(token), "github")
    >>> notion = manager.wrap(NotionClient(token), "notion", should_cache=skip_incomplete_queries)
    >>> manager.stats()
    {'github': StoreStats(backend='memory+sqlite', size=12, degraded=False), ...}
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from cachesync.core.cache.keys import CacheKeyCodec
from cachesync.core.cache.models import StoreStats
from cachesync.core.cache.proxy import CachedProxy, ShouldCache, wrap
from cachesync.core.cache.stores import (
    LazyStore,
    MemoryStore,
    StoreAdapter,
    TieredStore,
    get_store_class,
)
from cachesync.core.config.loader import resolve_cache_dir
from cachesync.core.config.models import CacheConfig

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Owns the cache stores for a process.

    Stores are created per namespace on first request and reused afterwards.
    The backend itself is only built when the store is first read or written.

    Attributes:
        config: Cache configuration
        cache_dir: Directory used by file-backed backends
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        project_dir: Path | None = None,
        key_codec: CacheKeyCodec | None = None,
    ) -> None:
        self.config = config or CacheConfig()
        self.cache_dir = resolve_cache_dir(self.config, project_dir)
        self.key_codec = key_codec or CacheKeyCodec()
        self._stores: dict[str, LazyStore] = {}
        self._lock = threading.Lock()

    def _durable_factory(self, namespace: str, ttl: float | None) -> StoreAdapter:
        store_class = get_store_class(self.config.backend)
        return store_class.for_namespace(namespace, self.config, self.cache_dir, default_ttl=ttl)

    def _build(self, namespace: str, ttl: float | None) -> StoreAdapter:
        durable = self._durable_factory(namespace, ttl)
        if self.config.tiered and self.config.backend != "memory":
            return TieredStore(MemoryStore(default_ttl=ttl), durable)
        return durable

    def store(self, namespace: str, ttl: float | None = None) -> LazyStore:
        """
        Get the store for a namespace, creating the lazy handle if needed.

        Args:
            namespace: Store namespace ("github", "notion", ...)
            ttl: Default TTL in seconds; defaults to the configured TTL for
                the namespace. Ignored once the store exists.
        """
        existing = self._stores.get(namespace)
        if existing is not None:
            return existing
        with self._lock:
            existing = self._stores.get(namespace)
            if existing is not None:
                return existing
            effective_ttl = self.config.ttl_for(namespace) if ttl is None else ttl
            lazy = LazyStore(
                lambda: self._build(namespace, effective_ttl),
                name=f"{namespace}:{self.config.backend}",
                fallback=lambda: MemoryStore(default_ttl=effective_ttl),
            )
            self._stores[namespace] = lazy
            return lazy

    def state_store(self, namespace: str) -> LazyStore:
        """Store for durable state (checkpoints): same backend, never expires."""
        return self.store(namespace, ttl=0)

    def wrap(
        self,
        client: Any,
        namespace: str,
        *,
        should_cache: ShouldCache | None = None,
        ttl: float | None = None,
    ) -> CachedProxy:
        """
        Wrap a client so its method calls are cached in this namespace.

        Args:
            client: Client object to wrap
            namespace: Key prefix and store namespace
            should_cache: Optional cacheability hook
            ttl: Default TTL for the namespace store (first call wins)
        """
        proxy: CachedProxy = wrap(
            client,
            namespace,
            self.store(namespace, ttl=ttl),
            should_cache=should_cache,
            key_codec=self.key_codec,
        )
        return proxy

    @property
    def namespaces(self) -> list[str]:
        """Namespaces with a store handle."""
        return sorted(self._stores)

    def clear(self, namespace: str | None = None) -> list[str]:
        """
        Clear one namespace, or every namespace known to this manager.

        Returns:
            Names of the namespaces that were cleared
        """
        names = [namespace] if namespace is not None else self.namespaces
        for name in names:
            self.store(name).clear()
            logger.info("Cleared %s cache", name)
        return names

    def stats(self) -> dict[str, StoreStats]:
        """Best-effort stats for every namespace with a store handle."""
        return {name: self._stores[name].stats() for name in self.namespaces}


__all__ = ["CacheManager"]
