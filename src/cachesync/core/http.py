"""
Async HTTP retry with exponential backoff.

Remote clients send their requests through ``request_with_retry`` so that
transient failures (5xx, 429, timeouts, dropped connections) are retried
with exponential backoff and jitter, while client errors (other 4xx) fail
immediately.

Example:
    >>> async with httpx.AsyncClient(base_url="https://api.github.com") as client:
    ...     response = await request_with_retry(client, "GET", "/repos/o/r/issues/1/labels")

With the defaults a request is tried four times, waiting roughly 1s, 2s and
4s (each within 20%) between attempts.
"""

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = frozenset({429})


class RetryConfig:
    """
    Backoff policy shared by the API clients.

    Attributes:
        max_retries: Retries after the first attempt; 0 disables retrying
        base_delay: Seconds to wait before the first retry
        multiplier: Growth factor applied to the wait after each retry
        jitter: Randomize each wait so parallel clients spread out
        jitter_ratio: Largest random change, as a fraction of the wait
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        jitter: bool = True,
        jitter_ratio: float = 0.2,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if not 0.0 <= jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self.jitter_ratio = jitter_ratio

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay before retry number ``attempt`` (0-indexed).

        ``base_delay * multiplier ** attempt``, with ±jitter_ratio variance
        when jitter is on.
        """
        delay = self.base_delay * self.multiplier**attempt
        if not self.jitter:
            return delay
        spread = delay * self.jitter_ratio
        return max(0.0, delay + random.uniform(-spread, spread))


def is_retryable_error(exception: BaseException) -> bool:
    """
    Whether an exception is a transient failure worth retrying.

    Retryable: 5xx and 429 responses, timeouts, connection and other
    transport errors. Not retryable: other 4xx responses and anything that
    is not an httpx error.
    """
    # HTTPStatusError is also an HTTPError, check it first
    if isinstance(exception, httpx.HTTPStatusError):
        status_code = exception.response.status_code
        return 500 <= status_code < 600 or status_code in RETRYABLE_STATUS
    if isinstance(exception, (httpx.TimeoutException, httpx.RequestError)):
        return True
    return isinstance(exception, httpx.HTTPError)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    name: str | None = None,
) -> T:
    """
    Await ``func()`` until it succeeds, fails permanently or retries run out.

    Args:
        func: Zero-argument coroutine factory (called once per attempt)
        config: Retry behavior (defaults to RetryConfig())
        name: Label used in log messages

    Raises:
        The last exception raised by ``func``
    """
    config = config or RetryConfig()
    label = name or getattr(func, "__name__", repr(func))

    for attempt in range(config.max_retries + 1):
        try:
            return await func()
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug("%s: non-retryable error on attempt %d: %s", label, attempt + 1, e)
                raise
            if attempt >= config.max_retries:
                logger.warning("%s: max retries (%d) exceeded: %s", label, config.max_retries, e)
                raise
            delay = config.calculate_delay(attempt)
            logger.info(
                "%s: retry %d/%d after %.2fs due to: %s",
                label,
                attempt + 1,
                config.max_retries,
                delay,
                e,
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable: the last attempt returns or raises")


def with_retry(
    config: RetryConfig | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator form of ``call_with_retry`` for coroutine functions.

    Example:
        >>> @with_retry(RetryConfig(max_retries=2))
        ... async def fetch_labels(client: httpx.AsyncClient) -> list:
        ...     response = await client.get("/labels")
        ...     return response.raise_for_status().json()
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await call_with_retry(
                lambda: func(*args, **kwargs),
                config,
                name=getattr(func, "__name__", None),
            )

        return wrapper

    return decorator


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    retry: RetryConfig | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request through ``client``, raising for error statuses, with retry.

    Args:
        client: Shared async client (base URL, headers, timeout)
        method: HTTP method
        url: URL or path relative to the client's base URL
        retry: Retry behavior
        **kwargs: Passed to ``client.request``

    Raises:
        httpx.HTTPStatusError: On non-retryable status or after max retries
        httpx.RequestError: After max retries on transport errors
    """

    async def _send() -> httpx.Response:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    return await call_with_retry(_send, retry, name=f"{method} {url}")


__all__ = [
    "RetryConfig",
    "call_with_retry",
    "is_retryable_error",
    "request_with_retry",
    "with_retry",
]
