"""
Notion API client for cachesync.

A small async client over httpx covering the endpoints the priority sync
reads. Endpoints are grouped like the API (``client.data_sources.query``,
``client.databases.retrieve``) so cached calls get readable keys such as
``notion.data_sources.query("ds-id",...)#1a2b3c4d``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from cachesync.core.config.models import NotionConfig
from cachesync.core.errors import NotionClientError
from cachesync.core.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class DatabasesAPI:
    """``/databases`` endpoints."""

    def __init__(self, client: NotionClient) -> None:
        self._client = client

    async def retrieve(self, database_id: str) -> dict[str, Any]:
        """Database object, including its ``data_sources`` list."""
        data: dict[str, Any] = await self._client.request("GET", f"/databases/{database_id}")
        return data


class DataSourcesAPI:
    """``/data_sources`` endpoints."""

    def __init__(self, client: NotionClient) -> None:
        self._client = client

    async def query(
        self,
        data_source_id: str,
        *,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
        page_size: int = 100,
        start_cursor: str | None = None,
        result_type: str | None = "page",
    ) -> dict[str, Any]:
        """
        Query a data source.

        Returns the raw list response: ``results``, ``has_more`` and
        ``next_cursor`` (None on the last page).
        """
        body: dict[str, Any] = {"page_size": page_size}
        if filter is not None:
            body["filter"] = filter
        if sorts is not None:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor
        if result_type:
            body["result_type"] = result_type
        data: dict[str, Any] = await self._client.request(
            "POST", f"/data_sources/{data_source_id}/query", json=body
        )
        return data


class PagesAPI:
    """``/pages`` endpoints."""

    def __init__(self, client: NotionClient) -> None:
        self._client = client

    async def retrieve(self, page_id: str) -> dict[str, Any]:
        data: dict[str, Any] = await self._client.request("GET", f"/pages/{page_id}")
        return data


class NotionClient:
    """
    Async Notion API client.

    Example:
        >>> async with NotionClient(token) as notion:
        ...     database = await notion.databases.retrieve(database_id)
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        api_url: str = "https://api.notion.com/v1",
        api_version: str = "2025-09-03",
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Notion-Version": api_version}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._retry = retry or RetryConfig()
        self.databases = DatabasesAPI(self)
        self.data_sources = DataSourcesAPI(self)
        self.pages = PagesAPI(self)

    @classmethod
    def from_config(
        cls, config: NotionConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> NotionClient:
        """Build a client from NotionConfig."""
        if not config.token:
            logger.warning("No Notion token configured (NOTION_TOKEN)")
        return cls(
            config.token,
            api_url=config.api_url,
            api_version=config.api_version,
            timeout=config.timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            NotionClientError: On error responses or transport failures
        """
        try:
            response = await request_with_retry(self._http, method, path, retry=self._retry, **kwargs)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            try:
                detail = e.response.json().get("message", e.response.text)
            except ValueError:
                detail = e.response.text
            raise NotionClientError(
                f"Notion {method} {path} failed ({status}): {detail}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise NotionClientError(f"Notion {method} {path} failed: {e}") from e
        return response.json()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> NotionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["DataSourcesAPI", "DatabasesAPI", "NotionClient", "PagesAPI"]
