"""
Notion integration for cachesync.

Async client, the task database source for the priority sync, and the
cacheability hook for query responses.
"""

from cachesync.core.errors import NotionClientError
from cachesync.core.notion.client import DatabasesAPI, DataSourcesAPI, NotionClient, PagesAPI
from cachesync.core.notion.hooks import skip_incomplete_queries
from cachesync.core.notion.source import NotionTaskSource

__all__ = [
    "DataSourcesAPI",
    "DatabasesAPI",
    "NotionClient",
    "NotionClientError",
    "NotionTaskSource",
    "PagesAPI",
    "skip_incomplete_queries",
]
