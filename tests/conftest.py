"""
Pytest configuration and shared fixtures.

Provides a controllable clock for TTL tests, isolation from the developer's
environment and config files, and in-memory fakes for the sync engine's
source and label target.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

import pytest

from cachesync.core.config.loader import clear_cache
from cachesync.core.sync.models import SourcePage, SyncItem

ENV_VARS = (
    "CACHESYNC_CACHE_BACKEND",
    "CACHESYNC_CACHE_DIR",
    "CACHESYNC_CACHE_TTL",
    "CACHESYNC_LOCAL_DEV",
    "LOCAL_DEV",
    "CACHESYNC_MONGODB_URI",
    "MONGODB_URI",
    "CACHESYNC_SYNC_PAGE_SIZE",
    "CACHESYNC_GH_TOKEN",
    "GH_TOKEN",
    "NOTION_TOKEN",
    "CACHESYNC_NOTION_DATABASE",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from real env vars, user config and the config cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Clock
# ==============================================================================


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Provide a FakeClock starting at a fixed instant."""
    return FakeClock()


# ==============================================================================
# Sync fakes
# ==============================================================================

BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_items(count: int, priority: str = "High") -> list[SyncItem]:
    """Items i1..iN, one minute apart, each linked to its own issue."""
    return [
        SyncItem(
            id=f"i{n}",
            edited_at=BASE_TIME + timedelta(minutes=n),
            ref=f"https://github.com/octo/hello/issues/{n}",
            desired=priority,
            title=f"Task {n}",
        )
        for n in range(1, count + 1)
    ]


class ListSource:
    """
    Paginated source over a fixed list, paging like the Notion API.

    A cursor is the id of the first item of the page it starts, so the id of
    the last handled item resumes the scan at that item.
    """

    def __init__(self, items: Iterable[SyncItem], fail_on_call: int | None = None) -> None:
        self.items = list(items)
        self.calls: list[tuple[str | None, int]] = []
        self.fail_on_call = fail_on_call

    async def query(self, cursor: str | None, page_size: int) -> SourcePage:
        self.calls.append((cursor, page_size))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ConnectionError("source unavailable")
        start = 0
        if cursor is not None:
            start = next(i for i, item in enumerate(self.items) if item.id == cursor)
        page = self.items[start : start + page_size]
        end = start + page_size
        next_cursor = self.items[end].id if end < len(self.items) else None
        return SourcePage(items=page, next_cursor=next_cursor)


class FakeLabelTarget:
    """Label target keeping labels per ref in memory, with injectable failures."""

    def __init__(self, labels: dict[str, set[str]] | None = None) -> None:
        self.labels: dict[str, set[str]] = labels or {}
        self.calls: list[tuple] = []
        self.fail_remove: set[str] = set()
        self.fail_add: set[str] = set()
        self.fail_list: set[str] = set()

    async def list_current_labels(self, ref: str) -> list[str]:
        self.calls.append(("list", ref))
        if ref in self.fail_list:
            raise RuntimeError(f"cannot read {ref}")
        return sorted(self.labels.get(ref, set()))

    async def add_labels(self, ref: str, labels: Iterable[str]) -> None:
        labels = list(labels)
        self.calls.append(("add", ref, tuple(labels)))
        for label in labels:
            if label in self.fail_add:
                raise RuntimeError(f"label {label} rejected")
        self.labels.setdefault(ref, set()).update(labels)

    async def remove_label(self, ref: str, label: str) -> None:
        self.calls.append(("remove", ref, label))
        if label in self.fail_remove:
            raise RuntimeError(f"label {label} locked")
        self.labels.setdefault(ref, set()).discard(label)

    def touched_refs(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "list"]


@pytest.fixture
def items():
    """Five applicable items, ascending by edit time."""
    return make_items(5)


@pytest.fixture
def target():
    """Empty in-memory label target."""
    return FakeLabelTarget()


@pytest.fixture
def make_source():
    """Factory for ListSource (items, fail_on_call=None)."""
    return ListSource


@pytest.fixture
def make_sync_items():
    """Factory for make_items(count, priority="High")."""
    return make_items


@pytest.fixture
def make_target():
    """Factory for FakeLabelTarget (labels=None)."""
    return FakeLabelTarget
