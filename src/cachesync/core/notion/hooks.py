"""
Cacheability hooks for Notion responses.
"""

from collections.abc import Mapping
from typing import Any

from cachesync.core.cache.models import CacheabilityDecision

QUERY_KEY_PREFIX = "notion.data_sources.query"


def skip_incomplete_queries(key: str, value: Any) -> CacheabilityDecision:
    """
    Only cache full data source query pages.

    A page without ``next_cursor`` is the tail of the result set and grows as
    tasks are edited, so it is returned to the caller but never stored.

    Example:
        >>> notion = manager.wrap(NotionClient(token), "notion", should_cache=skip_incomplete_queries)
    """
    if key.startswith(QUERY_KEY_PREFIX):
        if not isinstance(value, Mapping) or not value.get("next_cursor"):
            return CacheabilityDecision.SKIP
    return CacheabilityDecision.STORE


__all__ = ["QUERY_KEY_PREFIX", "skip_incomplete_queries"]
