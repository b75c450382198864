"""
Cached API clients and sync wiring built from configuration.

Example:
    >>> config = load_config()
    >>> manager = CacheManager(config.cache)
    >>> async with PrioritySync.from_config(config, manager) as sync:
    ...     report = await sync.engine.run()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from cachesync.core.cache.manager import CacheManager
from cachesync.core.cache.proxy import unwrap
from cachesync.core.config.models import CacheSyncConfig
from cachesync.core.errors import CacheSyncError
from cachesync.core.github.client import GitHubClient, GitHubLabelTarget
from cachesync.core.notion.client import NotionClient
from cachesync.core.notion.hooks import skip_incomplete_queries
from cachesync.core.notion.source import NotionTaskSource
from cachesync.core.sync.checkpoints import StoreCheckpointStore
from cachesync.core.sync.engine import CheckpointedSyncEngine
from cachesync.core.sync.labels import PriorityLabelMap

logger = logging.getLogger(__name__)

GITHUB_NAMESPACE = "github"
NOTION_NAMESPACE = "notion"


def build_cache_manager(config: CacheSyncConfig, project_dir: Path | None = None) -> CacheManager:
    """CacheManager for the configured backend."""
    return CacheManager(config.cache, project_dir=project_dir)


def cached_github(
    config: CacheSyncConfig,
    manager: CacheManager,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """GitHubClient wrapped in the ``github`` cache namespace."""
    return manager.wrap(GitHubClient.from_config(config.github, transport=transport), GITHUB_NAMESPACE)


def cached_notion(
    config: CacheSyncConfig,
    manager: CacheManager,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """NotionClient wrapped in the ``notion`` namespace; tail query pages are not cached."""
    return manager.wrap(
        NotionClient.from_config(config.notion, transport=transport),
        NOTION_NAMESPACE,
        should_cache=skip_incomplete_queries,
    )


def checkpoint_store(config: CacheSyncConfig, manager: CacheManager) -> StoreCheckpointStore:
    """Checkpoint store on the configured backend, in the sync state namespace."""
    return StoreCheckpointStore(manager.state_store(config.sync.state_namespace))


class PrioritySync:
    """
    The Notion to GitHub priority sync with its clients.

    Owns the HTTP clients it was built with; use as an async context manager
    (or call ``aclose``) to release them.

    Attributes:
        engine: Configured CheckpointedSyncEngine
        github: Cached GitHub client
        notion: Cached Notion client
    """

    def __init__(self, engine: CheckpointedSyncEngine, github: Any, notion: Any) -> None:
        self.engine = engine
        self.github = github
        self.notion = notion

    @classmethod
    def from_config(
        cls,
        config: CacheSyncConfig,
        manager: CacheManager,
        *,
        dry_run: bool = False,
        github_transport: httpx.AsyncBaseTransport | None = None,
        notion_transport: httpx.AsyncBaseTransport | None = None,
    ) -> PrioritySync:
        """
        Wire source, target and checkpoints from configuration.

        Raises:
            CacheSyncError: If no Notion database is configured
        """
        if not config.notion.database_id:
            raise CacheSyncError(
                "No Notion task database configured",
                setting="notion.database_id",
                env="CACHESYNC_NOTION_DATABASE",
            )

        github = cached_github(config, manager, transport=github_transport)
        notion = cached_notion(config, manager, transport=notion_transport)
        source = NotionTaskSource(
            notion,
            config.notion.database_id,
            link_property=config.notion.link_property,
            priority_property=config.notion.priority_property,
            title_property=config.notion.title_property,
        )
        engine = CheckpointedSyncEngine(
            source=source,
            target=GitHubLabelTarget(github),
            checkpoints=checkpoint_store(config, manager),
            label_map=PriorityLabelMap(config.sync.priority_labels),
            checkpoint_key=config.sync.checkpoint_key,
            page_size=config.sync.page_size,
            dry_run=dry_run,
        )
        return cls(engine, github, notion)

    async def aclose(self) -> None:
        await unwrap(self.github).aclose()
        await unwrap(self.notion).aclose()

    async def __aenter__(self) -> PrioritySync:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = [
    "GITHUB_NAMESPACE",
    "NOTION_NAMESPACE",
    "PrioritySync",
    "build_cache_manager",
    "cached_github",
    "cached_notion",
    "checkpoint_store",
]
