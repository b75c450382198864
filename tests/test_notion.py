"""
Tests for the Notion client, the task source and the query cache hook.
"""

import json

import httpx
import pytest

from cachesync.core.cache.models import CacheabilityDecision
from cachesync.core.cache.proxy import wrap
from cachesync.core.cache.stores import MemoryStore
from cachesync.core.errors import NotionClientError
from cachesync.core.http import RetryConfig
from cachesync.core.notion import NotionClient, NotionTaskSource, skip_incomplete_queries

NO_RETRY_KWARGS = {"max_retries": 0, "jitter": False}


def task_page(page_id, *, link=None, priority=None, title="Task", edited="2025-01-01T10:00:00.000Z"):
    properties = {
        "Task": {"type": "title", "title": [{"plain_text": title}] if title else []},
        "Priority": {"type": "select", "select": {"name": priority} if priority else None},
        "[GH🤖] Link": {"type": "url", "url": link},
    }
    return {"object": "page", "id": page_id, "last_edited_time": edited, "properties": properties}


class FakeNotion:
    """Database with one data source whose query pages by page id."""

    def __init__(self, pages, data_sources=("ds-1",)):
        self.pages = list(pages)
        self.data_sources = list(data_sources)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path.startswith("/v1/databases/"):
            return httpx.Response(
                200,
                json={"object": "database", "data_sources": [{"id": ds, "name": "Tasks"} for ds in self.data_sources]},
            )
        if request.method == "POST" and path.endswith("/query"):
            body = json.loads(request.content)
            ids = [page["id"] for page in self.pages]
            start = ids.index(body["start_cursor"]) if body.get("start_cursor") else 0
            end = start + body.get("page_size", 100)
            more = end < len(self.pages)
            return httpx.Response(
                200,
                json={
                    "object": "list",
                    "results": self.pages[start:end],
                    "has_more": more,
                    "next_cursor": ids[end] if more else None,
                },
            )
        return httpx.Response(404, json={"object": "error", "message": "Could not find object"})

    def query_bodies(self):
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/query")]


def make_client(server):
    return NotionClient("secret_test", retry=RetryConfig(**NO_RETRY_KWARGS), transport=httpx.MockTransport(server))


@pytest.fixture
def server():
    return FakeNotion(
        [
            task_page("p1", link="https://github.com/octo/hello/issues/1", priority="High", title="Fix login"),
            task_page("p2", link="https://github.com/octo/hello/pull/2", priority="Low"),
            task_page("p3", link="https://github.com/octo/hello/issues/3", priority=None),
        ]
    )


class TestNotionClient:
    """Test request building and errors."""

    @pytest.mark.asyncio
    async def test_headers(self, server):
        notion = make_client(server)
        await notion.databases.retrieve("db-1")
        request = server.requests[0]
        assert request.headers["Notion-Version"] == "2025-09-03"
        assert request.headers["Authorization"] == "Bearer secret_test"
        assert request.url.path == "/v1/databases/db-1"
        await notion.aclose()

    @pytest.mark.asyncio
    async def test_query_omits_unset_fields(self, server):
        notion = make_client(server)
        await notion.data_sources.query("ds-1", page_size=10)
        assert server.query_bodies() == [{"page_size": 10, "result_type": "page"}]
        await notion.aclose()

    @pytest.mark.asyncio
    async def test_error(self, server):
        notion = make_client(server)
        with pytest.raises(NotionClientError) as exc_info:
            await notion.pages.retrieve("missing")
        assert exc_info.value.status_code == 404
        assert "Could not find object" in str(exc_info.value)
        await notion.aclose()


class TestNotionTaskSource:
    """Test mapping task pages to sync items."""

    @pytest.mark.asyncio
    async def test_query_request(self, server):
        source = NotionTaskSource(make_client(server), "db-1")
        await source.query("p2", 2)
        body = server.query_bodies()[0]
        assert body["filter"] == {"and": [{"property": "[GH🤖] Link", "url": {"is_not_empty": True}}]}
        assert body["sorts"] == [{"direction": "ascending", "timestamp": "last_edited_time"}]
        assert body["start_cursor"] == "p2"
        assert body["page_size"] == 2
        assert server.requests[1].url.path == "/v1/data_sources/ds-1/query"

    @pytest.mark.asyncio
    async def test_items(self, server):
        source = NotionTaskSource(make_client(server), "db-1")
        page = await source.query(None, 100)
        assert [item.id for item in page.items] == ["p1", "p2", "p3"]
        first = page.items[0]
        assert first.ref == "https://github.com/octo/hello/issues/1"
        assert first.desired == "High"
        assert first.title == "Fix login"
        assert first.edited_at.isoformat() == "2025-01-01T10:00:00+00:00"
        assert page.items[2].desired is None
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_pagination(self, server):
        source = NotionTaskSource(make_client(server), "db-1")
        first = await source.query(None, 2)
        assert first.next_cursor == "p3"
        second = await source.query(first.next_cursor, 2)
        assert [item.id for item in second.items] == ["p3"]
        assert second.next_cursor is None

    @pytest.mark.asyncio
    async def test_data_source_looked_up_once(self, server):
        source = NotionTaskSource(make_client(server), "db-1")
        await source.query(None, 1)
        await source.query("p2", 1)
        lookups = [r for r in server.requests if r.url.path.startswith("/v1/databases/")]
        assert len(lookups) == 1

    @pytest.mark.asyncio
    async def test_no_data_sources(self):
        source = NotionTaskSource(make_client(FakeNotion([], data_sources=())), "db-1")
        with pytest.raises(NotionClientError, match="No data sources"):
            await source.query(None, 10)

    def test_custom_properties(self):
        source = NotionTaskSource(None, "db-1", link_property="Issue", priority_property="P", title_property="Name")
        page = {
            "id": "x",
            "properties": {
                "Issue": {"url": " https://github.com/o/r/issues/5 "},
                "P": {"select": {"name": "Medium"}},
                "Name": {"title": []},
            },
        }
        item = source.to_item(page)
        assert item.ref == "https://github.com/o/r/issues/5"
        assert item.desired == "Medium"
        assert item.title is None
        assert item.edited_at is None

    def test_missing_properties(self):
        item = NotionTaskSource(None, "db-1").to_item({"id": "x", "properties": {}})
        assert item.ref is None
        assert item.desired is None
        assert not item.is_applicable


class TestSkipIncompleteQueries:
    """Tail query pages are returned but not cached."""

    def test_decisions(self):
        key = "notion.data_sources.query(\"ds-1\")#0123abcd"
        assert skip_incomplete_queries(key, {"results": [], "next_cursor": "p3"}) == CacheabilityDecision.STORE
        assert skip_incomplete_queries(key, {"results": [], "next_cursor": None}) == CacheabilityDecision.SKIP
        assert skip_incomplete_queries(key, []) == CacheabilityDecision.SKIP
        assert skip_incomplete_queries("notion.pages.retrieve(\"p1\")#0", {"id": "p1"}) == CacheabilityDecision.STORE

    @pytest.mark.asyncio
    async def test_through_proxy(self, server):
        store = MemoryStore(default_ttl=60)
        notion = wrap(make_client(server), "notion", store, should_cache=skip_incomplete_queries)
        source = NotionTaskSource(notion, "db-1")

        await source.query(None, 2)
        await source.query(None, 2)
        assert len(server.query_bodies()) == 1

        await source.query("p3", 2)
        await source.query("p3", 2)
        assert len(server.query_bodies()) == 3
