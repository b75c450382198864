"""Tests for async HTTP retry utilities."""

import json

import httpx
import pytest

from cachesync.core import http as http_module
from cachesync.core.http import (
    RetryConfig,
    call_with_retry,
    is_retryable_error,
    request_with_retry,
    with_retry,
)

FAST = RetryConfig(max_retries=2, base_delay=0, jitter=False)


def status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/x")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError(f"HTTP {status_code}", request=request, response=response)


@pytest.fixture
def sleeps(monkeypatch):
    """Record backoff delays instead of sleeping."""
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(http_module.asyncio, "sleep", fake_sleep)
    return delays


class TestRetryConfig:
    """Test suite for RetryConfig."""

    def test_default_values(self) -> None:
        config = RetryConfig()
        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.multiplier == 2.0
        assert config.jitter is True

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"max_retries": -1}, "max_retries must be non-negative"),
            ({"base_delay": -0.5}, "base_delay must be non-negative"),
            ({"multiplier": 0.5}, "multiplier must be >= 1.0"),
            ({"jitter_ratio": 1.5}, "jitter_ratio must be between"),
        ],
    )
    def test_invalid_values(self, kwargs, message) -> None:
        with pytest.raises(ValueError, match=message):
            RetryConfig(**kwargs)

    def test_calculate_delay_no_jitter(self) -> None:
        config = RetryConfig(base_delay=1.0, multiplier=2.0, jitter=False)
        assert [config.calculate_delay(n) for n in range(3)] == [1.0, 2.0, 4.0]

    def test_calculate_delay_with_jitter(self) -> None:
        config = RetryConfig(base_delay=1.0, jitter=True, jitter_ratio=0.2)
        for _ in range(20):
            assert 0.8 <= config.calculate_delay(0) <= 1.2


class TestIsRetryableError:
    """Test classification of transient failures."""

    @pytest.mark.parametrize("status_code", [500, 502, 503, 429])
    def test_retryable_status(self, status_code) -> None:
        assert is_retryable_error(status_error(status_code))

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 422])
    def test_client_errors_not_retryable(self, status_code) -> None:
        assert not is_retryable_error(status_error(status_code))

    def test_transport_errors_retryable(self) -> None:
        assert is_retryable_error(httpx.ConnectTimeout("timed out"))
        assert is_retryable_error(httpx.ConnectError("refused"))

    def test_other_exception_not_retryable(self) -> None:
        assert not is_retryable_error(ValueError("nope"))


class Flaky:
    """Coroutine factory failing with the given errors before succeeding."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestCallWithRetry:
    """Test the async retry loop."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, sleeps) -> None:
        func = Flaky()
        assert await call_with_retry(func, FAST) == "ok"
        assert func.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_success_after_retries(self, sleeps) -> None:
        func = Flaky(status_error(503), httpx.ReadTimeout("slow"))
        config = RetryConfig(max_retries=3, base_delay=1.0, jitter=False)
        assert await call_with_retry(func, config) == "ok"
        assert func.calls == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self, sleeps) -> None:
        func = Flaky(*(status_error(500) for _ in range(5)))
        with pytest.raises(httpx.HTTPStatusError):
            await call_with_retry(func, FAST)
        assert func.calls == 3

    @pytest.mark.asyncio
    async def test_non_retryable_not_retried(self, sleeps) -> None:
        func = Flaky(status_error(404))
        with pytest.raises(httpx.HTTPStatusError):
            await call_with_retry(func, FAST)
        assert func.calls == 1
        assert sleeps == []


class TestWithRetryDecorator:
    @pytest.mark.asyncio
    async def test_passes_arguments_and_metadata(self, sleeps) -> None:
        attempts = []

        @with_retry(FAST)
        async def fetch(path, *, page=1):
            """Fetch a page."""
            attempts.append((path, page))
            if len(attempts) == 1:
                raise httpx.ConnectError("refused")
            return f"{path}?page={page}"

        assert await fetch("/items", page=2) == "/items?page=2"
        assert attempts == [("/items", 2), ("/items", 2)]
        assert fetch.__name__ == "fetch"
        assert fetch.__doc__ == "Fetch a page."


class TestRequestWithRetry:
    """Test requests through an httpx.AsyncClient with a mock transport."""

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, sleeps) -> None:
        statuses = [502, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0), json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.example.com") as client:
            response = await request_with_retry(client, "GET", "/things", retry=FAST)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert len(sleeps) == 1

    @pytest.mark.asyncio
    async def test_no_retry_on_404(self, sleeps) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={"message": "Not Found"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.example.com") as client:
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                await request_with_retry(client, "GET", "/missing", retry=FAST)

        assert exc_info.value.response.status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_passes_request_kwargs(self, sleeps) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            seen["body"] = request.content
            return httpx.Response(200)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.example.com") as client:
            await request_with_retry(client, "POST", "/things", retry=FAST, params={"per_page": "100"}, json={"a": 1})

        assert seen["params"] == {"per_page": "100"}
        assert json.loads(seen["body"]) == {"a": 1}
