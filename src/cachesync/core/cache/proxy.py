"""
Transparent cache-aside proxy over arbitrary client objects.

``wrap(client, namespace, store)`` returns an object with the same shape as
``client``: every attribute is reachable at the same path, but method calls go
through the store first. Nested objects (``client.issues``,
``client.data_sources``) come back as proxies with the call path extended, so
caching applies to the whole object graph without registering methods.

Call flow for ``proxy.issues.list_labels(owner="o", repo="r", issue_number=1)``:

1. Build the key ``github.issues.list_labels(...)#digest``
2. Store hit: return the cached value, the client is not called
3. Miss: call the real bound method with the original arguments
4. Ask the ``should_cache`` hook; store the result unless it says skip
5. Return the result

Coroutine methods are wrapped with coroutine functions and plain methods
with plain functions. A plain method that returns an awaitable gets an
awaitable back on later hits as well. If the real call raises, the exception propagates and
nothing is stored. ``None`` results are never stored.

Example:
    >>> github = wrap(GitHubClient(token), "github", store=MemoryStore(default_ttl=60))
    >>> labels = await github.issues.list_labels(owner="o", repo="r", issue_number=1)
    >>> labels = await github.issues.list_labels(owner="o", repo="r", issue_number=1)  # cached
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from cachesync.core.cache.keys import CacheKeyCodec
from cachesync.core.cache.models import CacheabilityDecision
from cachesync.core.cache.stores import MemoryStore, StoreAdapter

logger = logging.getLogger(__name__)

ShouldCache = Callable[[str, Any], Any]

# Results of plain callables that returned an awaitable are stored under this
# key, so a later hit hands the caller an awaitable again
AWAITED_MARKER = "__cachesync_awaited__"

# Attribute values of these types are returned as is, never proxied
PLAIN_TYPES = (str, bytes, bytearray, int, float, complex, bool, list, tuple, dict, set, frozenset)


class CachedProxy:
    """
    Proxy that turns method calls into cache-aside lookups.

    Proxy state lives in ``_cachesync_*`` attributes so it cannot shadow the
    wrapped client's own attributes. Use the module functions (``unwrap``,
    ``cache_key``, ``invalidate``) to work with a proxy instead of methods.
    """

    def __init__(
        self,
        target: Any,
        store: StoreAdapter,
        namespace: str = "cache",
        *,
        should_cache: ShouldCache | None = None,
        key_codec: CacheKeyCodec | None = None,
        path: Sequence[str] = (),
    ) -> None:
        self._cachesync_target = target
        self._cachesync_store = store
        self._cachesync_namespace = namespace
        self._cachesync_should_cache = should_cache
        self._cachesync_codec = key_codec or CacheKeyCodec()
        self._cachesync_path = tuple(path)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_cachesync_"):
            raise AttributeError(name)
        value = getattr(self._cachesync_target, name)
        if value is None or isinstance(value, PLAIN_TYPES) or isinstance(value, type):
            return value
        path = (*self._cachesync_path, name)
        if callable(value):
            return self._cachesync_method(value, path)
        return self._cachesync_child(value, path)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self._cachesync_invoke(self._cachesync_target, self._cachesync_path, args, kwargs)

    def __dir__(self) -> list[str]:
        return dir(self._cachesync_target)

    def __repr__(self) -> str:
        path = ".".join(self._cachesync_path)
        where = f"{self._cachesync_namespace}.{path}" if path else self._cachesync_namespace
        return f"<CachedProxy {where} of {self._cachesync_target!r}>"

    def _cachesync_child(self, value: Any, path: tuple[str, ...]) -> CachedProxy:
        return CachedProxy(
            value,
            self._cachesync_store,
            self._cachesync_namespace,
            should_cache=self._cachesync_should_cache,
            key_codec=self._cachesync_codec,
            path=path,
        )

    def _cachesync_method(self, method: Callable[..., Any], path: tuple[str, ...]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(method):

            @functools.wraps(method)
            async def cached_coroutine(*args: Any, **kwargs: Any) -> Any:
                return await self._cachesync_invoke(method, path, args, kwargs)

            return cached_coroutine

        @functools.wraps(method)
        def cached(*args: Any, **kwargs: Any) -> Any:
            return self._cachesync_invoke(method, path, args, kwargs)

        return cached

    def _cachesync_key(self, path: Sequence[str], args: Sequence[Any], kwargs: Mapping[str, Any]) -> str:
        return self._cachesync_codec.encode(self._cachesync_namespace, path, args, kwargs)

    def _cachesync_invoke(
        self,
        func: Callable[..., Any],
        path: tuple[str, ...],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        key = self._cachesync_key(path, args, kwargs)
        if inspect.iscoroutinefunction(func):
            return self._cachesync_invoke_async(func, key, args, kwargs)

        cached = self._cachesync_lookup(key)
        if cached is not None:
            value, awaited = _unpack(cached)
            return _resolved(value) if awaited else value
        result = func(*args, **kwargs)
        if inspect.isawaitable(result):
            return self._cachesync_finish(key, result)
        self._cachesync_save(key, result)
        return result

    async def _cachesync_invoke_async(
        self,
        func: Callable[..., Awaitable[Any]],
        key: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        cached = self._cachesync_lookup(key)
        if cached is not None:
            return _unpack(cached)[0]
        result = await func(*args, **kwargs)
        self._cachesync_save(key, result)
        return result

    async def _cachesync_finish(self, key: str, pending: Awaitable[Any]) -> Any:
        result = await pending
        self._cachesync_save(key, result, awaited=True)
        return result

    def _cachesync_lookup(self, key: str) -> Any | None:
        try:
            cached = self._cachesync_store.get(key)
        except Exception as e:
            logger.warning("Cache read failed, calling through: %s (%s)", key, e)
            return None
        if cached is not None:
            logger.debug("Cache hit: %s", key)
        else:
            logger.debug("Cache miss: %s", key)
        return cached

    def _cachesync_save(self, key: str, result: Any, awaited: bool = False) -> None:
        if result is None:
            return
        if self._cachesync_should_cache is not None:
            decision = CacheabilityDecision.coerce(self._cachesync_should_cache(key, result))
            if decision is CacheabilityDecision.SKIP:
                logger.debug("Skipped caching incomplete data: %s", key)
                return
        try:
            self._cachesync_store.set(key, {AWAITED_MARKER: result} if awaited else result)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)


def _unpack(cached: Any) -> tuple[Any, bool]:
    """Split a stored entry into the value and whether it came from an awaitable."""
    if isinstance(cached, dict) and len(cached) == 1 and AWAITED_MARKER in cached:
        return cached[AWAITED_MARKER], True
    return cached, False


async def _resolved(value: Any) -> Any:
    return value


def wrap(
    client: Any,
    namespace: str = "cache",
    store: StoreAdapter | None = None,
    *,
    should_cache: ShouldCache | None = None,
    key_codec: CacheKeyCodec | None = None,
) -> Any:
    """
    Wrap a client so every method call becomes cache-aside.

    Args:
        client: Any object (or callable) whose methods should be cached
        namespace: Key prefix for this client ("github", "notion", "slack")
        store: Store to use (defaults to a fresh in-memory store)
        should_cache: Optional hook ``(key, result) -> decision``; return
            False, ``CacheabilityDecision.SKIP`` or ``{"skip": True}`` to
            return a result without storing it
        key_codec: Custom key codec

    Returns:
        A proxy with the same attribute shape as ``client``
    """
    return CachedProxy(
        client,
        store if store is not None else MemoryStore(),
        namespace,
        should_cache=should_cache,
        key_codec=key_codec,
    )


def is_proxy(obj: object) -> bool:
    """Check whether obj is a cache proxy."""
    return isinstance(obj, CachedProxy)


def unwrap(proxy: Any) -> Any:
    """Return the object behind a proxy (or obj itself if not a proxy)."""
    if isinstance(proxy, CachedProxy):
        return proxy._cachesync_target
    return proxy


def cache_key(proxy: CachedProxy, method: str, *args: Any, **kwargs: Any) -> str:
    """
    Key a call would use, without calling anything.

    Args:
        proxy: Proxy (root or nested) the method is reached from
        method: Dotted method path relative to the proxy ("issues.list_labels")
    """
    path = (*proxy._cachesync_path, *method.split("."))
    return proxy._cachesync_key(path, args, kwargs)


def invalidate(proxy: CachedProxy, method: str, *args: Any, **kwargs: Any) -> bool:
    """
    Drop the cached result of one call so the next call refreshes it.

    Returns:
        True if an entry was removed
    """
    return proxy._cachesync_store.delete(cache_key(proxy, method, *args, **kwargs))


__all__ = ["CachedProxy", "cache_key", "invalidate", "is_proxy", "unwrap", "wrap"]
