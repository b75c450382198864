"""
GitHub REST client for cachesync.

A small async client over httpx covering the issue label endpoints the
priority sync needs. Endpoints are grouped the way the REST API groups them
(``client.issues.list_labels(...)``), which also gives cached calls readable
keys such as ``github.issues.list_labels("octo","hello",42)#1a2b3c4d``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any
from urllib.parse import quote

import httpx

from cachesync.core.cache.proxy import invalidate, is_proxy, unwrap
from cachesync.core.config.models import GitHubConfig
from cachesync.core.errors import GitHubClientError
from cachesync.core.github.models import IssueRef
from cachesync.core.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class IssuesAPI:
    """Issue label endpoints (``/repos/{owner}/{repo}/issues/{number}/labels``)."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    @staticmethod
    def _path(owner: str, repo: str, number: int) -> str:
        return f"/repos/{owner}/{repo}/issues/{number}"

    async def get(self, owner: str, repo: str, number: int) -> dict[str, Any]:
        """Fetch one issue (pull requests included)."""
        data: dict[str, Any] = await self._client.request("GET", self._path(owner, repo, number))
        return data

    async def list_labels(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        """Labels on an issue or pull request."""
        data: list[dict[str, Any]] = await self._client.request(
            "GET",
            f"{self._path(owner, repo, number)}/labels",
            params={"per_page": 100},
        )
        return data

    async def add_labels(
        self, owner: str, repo: str, number: int, labels: Iterable[str]
    ) -> list[dict[str, Any]]:
        """Add labels; returns the labels now on the issue."""
        data: list[dict[str, Any]] = await self._client.request(
            "POST",
            f"{self._path(owner, repo, number)}/labels",
            json={"labels": list(labels)},
        )
        return data

    async def remove_label(
        self, owner: str, repo: str, number: int, label: str
    ) -> list[dict[str, Any]]:
        """
        Remove one label; returns the labels left on the issue.

        Removing a label that is not on the issue is a no-op.
        """
        try:
            data: list[dict[str, Any]] = await self._client.request(
                "DELETE",
                f"{self._path(owner, repo, number)}/labels/{quote(label, safe='')}",
            )
        except GitHubClientError as e:
            if e.status_code == 404:
                logger.debug("Label '%s' not on %s/%s#%d", label, owner, repo, number)
                return []
            raise
        return data


class GitHubClient:
    """
    Async GitHub REST client.

    Requests are retried on transient failures; errors surface as
    GitHubClientError with the response status code.

    Example:
        >>> async with GitHubClient(token) as github:
        ...     labels = await github.issues.list_labels("octo", "hello", 42)
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._retry = retry or RetryConfig()
        self.issues = IssuesAPI(self)

    @classmethod
    def from_config(
        cls, config: GitHubConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> GitHubClient:
        """Build a client from GitHubConfig."""
        if not config.token:
            logger.warning("No GitHub token configured (GH_TOKEN); requests are unauthenticated")
        return cls(
            config.token,
            api_url=config.api_url,
            timeout=config.timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            GitHubClientError: On error responses or transport failures
        """
        try:
            response = await request_with_retry(self._http, method, path, retry=self._retry, **kwargs)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            try:
                detail = e.response.json().get("message", e.response.text)
            except ValueError:
                detail = e.response.text
            raise GitHubClientError(
                f"GitHub {method} {path} failed ({status}): {detail}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise GitHubClientError(f"GitHub {method} {path} failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class GitHubLabelTarget:
    """
    Label target over issue and pull request URLs.

    ``github`` may be a plain GitHubClient or a cache proxy around one.
    Reads go through it (and so through the cache); writes always go to the
    underlying client and drop the cached label list of the issue they touch.

    Example:
        >>> target = GitHubLabelTarget(manager.wrap(GitHubClient(token), "github"))
        >>> await target.list_current_labels("https://github.com/octo/hello/issues/42")
        ['bug', 'High-Priority']
    """

    def __init__(self, github: Any) -> None:
        self.github = github
        self._writer: GitHubClient = unwrap(github)

    def _forget(self, issue: IssueRef) -> None:
        if is_proxy(self.github):
            invalidate(self.github, "issues.list_labels", issue.owner, issue.repo, issue.number)

    async def list_current_labels(self, ref: str) -> list[str]:
        issue = IssueRef.from_url(ref)
        labels = await self.github.issues.list_labels(issue.owner, issue.repo, issue.number)
        return [label["name"] for label in labels or []]

    async def add_labels(self, ref: str, labels: Iterable[str]) -> None:
        issue = IssueRef.from_url(ref)
        try:
            await self._writer.issues.add_labels(issue.owner, issue.repo, issue.number, list(labels))
        finally:
            self._forget(issue)

    async def remove_label(self, ref: str, label: str) -> None:
        issue = IssueRef.from_url(ref)
        try:
            await self._writer.issues.remove_label(issue.owner, issue.repo, issue.number, label)
        finally:
            self._forget(issue)


__all__ = ["GitHubClient", "GitHubLabelTarget", "IssuesAPI"]
