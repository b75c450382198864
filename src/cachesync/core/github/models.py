"""
GitHub data models for cachesync.

Defines Pydantic models for repositories, issue references and labels.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field, computed_field

from cachesync.core.errors import IssueUrlError

_ISSUE_URL = re.compile(
    r"^https?://(?:www\.)?github\.com/"
    r"(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)/"
    r"(?P<kind>issues|pull)/(?P<number>\d+)"
    r"(?:[/?#].*)?$"
)


class RepoInfo(BaseModel):
    """
    GitHub repository coordinates.

    Example:
        >>> RepoInfo(owner="octo", repo="hello").full_name
        'octo/hello'
    """

    owner: str = Field(..., description="Repository owner (user or organization)")
    repo: str = Field(..., description="Repository name")

    @computed_field
    @property
    def full_name(self) -> str:
        """Full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"

    @computed_field
    @property
    def url(self) -> str:
        """GitHub URL for the repository."""
        return f"https://github.com/{self.owner}/{self.repo}"


class IssueRef(BaseModel):
    """
    Reference to one issue or pull request.

    Pull requests share the issue number space, so labels on either are
    managed through the issues API.

    Example:
        >>> IssueRef.from_url("https://github.com/octo/hello/pull/42")
        IssueRef(owner='octo', repo='hello', number=42, kind='pull')
    """

    owner: str = Field(..., description="Repository owner")
    repo: str = Field(..., description="Repository name")
    number: int = Field(..., gt=0, description="Issue or pull request number")
    kind: Literal["issues", "pull"] = Field(default="issues", description="URL kind")

    @property
    def repo_info(self) -> RepoInfo:
        return RepoInfo(owner=self.owner, repo=self.repo)

    @property
    def url(self) -> str:
        """Canonical html URL."""
        return f"https://github.com/{self.owner}/{self.repo}/{self.kind}/{self.number}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @classmethod
    def from_url(cls, url: str) -> IssueRef:
        """
        Parse an issue or pull request URL.

        Handles:
        - https://github.com/owner/repo/issues/123
        - https://github.com/owner/repo/pull/123
        - either with a trailing path, query or fragment (/files, #comment)

        Raises:
            IssueUrlError: If the URL is not an issue or pull request URL
        """
        match = _ISSUE_URL.match(url.strip()) if url else None
        if not match:
            raise IssueUrlError(url)
        kind: Literal["issues", "pull"] = "pull" if match.group("kind") == "pull" else "issues"
        return cls(
            owner=match.group("owner"),
            repo=match.group("repo"),
            number=int(match.group("number")),
            kind=kind,
        )


class GitHubLabel(BaseModel):
    """A label as returned by the issues API."""

    name: str = Field(..., description="Label name")
    color: str | None = Field(default=None, description="Hex color without #")
    description: str | None = Field(default=None)


__all__ = ["GitHubLabel", "IssueRef", "RepoInfo"]
