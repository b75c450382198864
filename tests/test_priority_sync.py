"""
Integration tests for the Notion to GitHub priority sync.

Wires PrioritySync from configuration with both APIs served by
httpx.MockTransport, so the cache proxies, the source, the label target and
the checkpoint store all run for real.
"""

import json
from urllib.parse import unquote

import httpx
import pytest

from cachesync.core.cache.manager import CacheManager
from cachesync.core.clients import PrioritySync
from cachesync.core.config.models import CacheConfig, CacheSyncConfig, NotionConfig
from cachesync.core.errors import CacheSyncError


def notion_page(page_id, number, priority, minute):
    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": f"2025-01-01T10:{minute:02d}:00.000Z",
        "properties": {
            "Task": {"title": [{"plain_text": f"Task {number}"}]},
            "Priority": {"select": {"name": priority} if priority else None},
            "[GH🤖] Link": {"url": f"https://github.com/octo/hello/issues/{number}"},
        },
    }


class Backend:
    """Both APIs: a Notion task database and GitHub issue labels."""

    def __init__(self, pages, labels):
        self.pages = pages
        self.labels = labels
        self.github_writes: list[tuple[str, int, str]] = []

    def notion(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/v1/databases/"):
            return httpx.Response(200, json={"data_sources": [{"id": "ds-1"}]})
        body = json.loads(request.content)
        ids = [page["id"] for page in self.pages]
        start = ids.index(body["start_cursor"]) if body.get("start_cursor") else 0
        end = start + body["page_size"]
        more = end < len(self.pages)
        return httpx.Response(
            200,
            json={"results": self.pages[start:end], "has_more": more, "next_cursor": ids[end] if more else None},
        )

    def github(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        number = int(parts[4])
        current = self.labels.setdefault(number, [])
        if request.method == "POST":
            for name in json.loads(request.content)["labels"]:
                self.github_writes.append(("add", number, name))
                current.append(name)
        elif request.method == "DELETE":
            name = unquote(parts[6])
            self.github_writes.append(("remove", number, name))
            current.remove(name)
        return httpx.Response(200, json=[{"name": name} for name in current])


@pytest.fixture
def backend():
    return Backend(
        pages=[
            notion_page("p1", 1, "High", 1),
            notion_page("p2", 2, "Medium", 2),
            notion_page("p3", 3, None, 3),
            notion_page("p4", 4, "Low", 4),
        ],
        labels={1: ["bug"], 2: ["High-Priority", "enhancement"], 4: ["Low-Priority"]},
    )


@pytest.fixture
def config():
    return CacheSyncConfig(
        cache=CacheConfig(backend="memory"),
        notion=NotionConfig(token="secret_test", database_id="db-1"),
    )


def build(config, manager, backend, **kwargs):
    return PrioritySync.from_config(
        config,
        manager,
        github_transport=httpx.MockTransport(backend.github),
        notion_transport=httpx.MockTransport(backend.notion),
        **kwargs,
    )


class TestPrioritySync:
    """End-to-end runs over mocked APIs."""

    @pytest.mark.asyncio
    async def test_run(self, config, backend):
        manager = CacheManager(config.cache)
        async with build(config, manager, backend) as sync:
            report = await sync.engine.run()

        assert report.processed_ids == ["p1", "p2", "p4"]
        assert report.skipped == 1
        assert backend.labels[1] == ["bug", "High-Priority"]
        assert backend.labels[2] == ["enhancement", "Medium-Priority"]
        assert backend.labels[4] == ["Low-Priority"]
        assert backend.github_writes == [
            ("add", 1, "High-Priority"),
            ("remove", 2, "High-Priority"),
            ("add", 2, "Medium-Priority"),
        ]

    @pytest.mark.asyncio
    async def test_second_run_resumes_after_checkpoint(self, config, backend):
        manager = CacheManager(config.cache)
        async with build(config, manager, backend) as sync:
            await sync.engine.run()
        assert sync.engine.current_checkpoint().last_processed_id == "p4"

        backend.github_writes.clear()
        async with build(config, manager, backend) as sync:
            report = await sync.engine.run()
        assert report.processed == 0
        assert backend.github_writes == []

    @pytest.mark.asyncio
    async def test_dry_run(self, config, backend):
        manager = CacheManager(config.cache)
        async with build(config, manager, backend, dry_run=True) as sync:
            report = await sync.engine.run()
            assert sync.engine.current_checkpoint() is None
        assert report.changed == 0
        assert [outcome.diff.describe() for outcome in report.outcomes] == [
            "+High-Priority",
            "+Medium-Priority, -High-Priority",
            "(no change)",
        ]
        assert backend.github_writes == []

    @pytest.mark.asyncio
    async def test_checkpoint_survives_on_sqlite(self, tmp_path, backend):
        config = CacheSyncConfig(
            cache=CacheConfig(backend="sqlite", directory=tmp_path / "cache"),
            notion=NotionConfig(token="secret_test", database_id="db-1"),
        )
        async with build(config, CacheManager(config.cache), backend) as sync:
            await sync.engine.run()

        async with build(config, CacheManager(config.cache), backend) as sync:
            assert sync.engine.current_checkpoint().last_processed_id == "p4"

    def test_missing_database(self):
        config = CacheSyncConfig(cache=CacheConfig(backend="memory"))
        with pytest.raises(CacheSyncError) as exc_info:
            PrioritySync.from_config(config, CacheManager(config.cache))
        assert exc_info.value.context["env"] == "CACHESYNC_NOTION_DATABASE"
