"""
Notion task database as a paginated sync source.

Tasks with a GitHub link are read ascending by ``last_edited_time``, so the
id of the last handled page doubles as the cursor to resume from.
"""

from __future__ import annotations

import logging
from typing import Any

from cachesync.core.errors import NotionClientError
from cachesync.core.freshness import parse_timestamp
from cachesync.core.sync.models import SourcePage, SyncItem

logger = logging.getLogger(__name__)


def _title(prop: dict[str, Any] | None) -> str | None:
    if not prop:
        return None
    parts = prop.get("title") or []
    text = "".join(part.get("plain_text", "") for part in parts)
    return text or None


def _select(prop: dict[str, Any] | None) -> str | None:
    if not prop:
        return None
    selected = prop.get("select")
    if not selected:
        return None
    name = selected.get("name")
    return name or None


def _url(prop: dict[str, Any] | None) -> str | None:
    if not prop:
        return None
    url = prop.get("url")
    if not url or not url.strip():
        return None
    return str(url).strip()


class NotionTaskSource:
    """
    Pages of the task database mapped to SyncItems.

    ``notion`` may be a NotionClient or a cache proxy around one.

    Attributes:
        database_id: Task database id
        link_property: URL property with the GitHub issue/PR link
        priority_property: Select property with the priority
        title_property: Title property
    """

    def __init__(
        self,
        notion: Any,
        database_id: str,
        *,
        link_property: str = "[GH🤖] Link",
        priority_property: str = "Priority",
        title_property: str = "Task",
        data_source_id: str | None = None,
    ) -> None:
        self.notion = notion
        self.database_id = database_id
        self.link_property = link_property
        self.priority_property = priority_property
        self.title_property = title_property
        self._data_source_id = data_source_id

    async def data_source_id(self) -> str:
        """Id of the database's first data source (looked up once)."""
        if self._data_source_id is None:
            database = await self.notion.databases.retrieve(self.database_id)
            sources = (database or {}).get("data_sources") or []
            if not sources:
                raise NotionClientError(f"No data sources found in database {self.database_id}")
            self._data_source_id = str(sources[0]["id"])
            logger.debug("Database %s -> data source %s", self.database_id, self._data_source_id)
        return self._data_source_id

    def query_filter(self) -> dict[str, Any]:
        return {"and": [{"property": self.link_property, "url": {"is_not_empty": True}}]}

    @staticmethod
    def query_sorts() -> list[dict[str, Any]]:
        return [{"direction": "ascending", "timestamp": "last_edited_time"}]

    def to_item(self, page: dict[str, Any]) -> SyncItem:
        """Map one Notion page object to a SyncItem."""
        properties = page.get("properties") or {}
        return SyncItem(
            id=page["id"],
            edited_at=parse_timestamp(page.get("last_edited_time")),
            ref=_url(properties.get(self.link_property)),
            desired=_select(properties.get(self.priority_property)),
            title=_title(properties.get(self.title_property)),
        )

    async def query(self, cursor: str | None, page_size: int) -> SourcePage:
        response = await self.notion.data_sources.query(
            await self.data_source_id(),
            filter=self.query_filter(),
            sorts=self.query_sorts(),
            page_size=page_size,
            start_cursor=cursor,
        )
        results = response.get("results") or []
        items = [self.to_item(page) for page in results if page.get("object", "page") == "page"]
        next_cursor = response.get("next_cursor") if response.get("has_more", True) else None
        logger.debug("Fetched %d tasks (cursor=%s, next=%s)", len(items), cursor, next_cursor)
        return SourcePage(items=items, next_cursor=next_cursor)


__all__ = ["NotionTaskSource"]
