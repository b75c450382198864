"""
GitHub integration for cachesync.

Async REST client for issue labels and the label target used by the
priority sync.
"""

from cachesync.core.errors import GitHubClientError, IssueUrlError
from cachesync.core.github.client import GitHubClient, GitHubLabelTarget, IssuesAPI
from cachesync.core.github.models import GitHubLabel, IssueRef, RepoInfo

__all__ = [
    "GitHubClient",
    "GitHubClientError",
    "GitHubLabel",
    "GitHubLabelTarget",
    "IssueRef",
    "IssueUrlError",
    "IssuesAPI",
    "RepoInfo",
]
