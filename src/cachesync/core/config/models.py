"""
Configuration data models for cachesync.

These models define the structure of .cachesync.json and
~/.config/cachesync/config.json files, with validation via Pydantic.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PRIORITY_LABELS = {
    "High": "High-Priority",
    "Medium": "Medium-Priority",
    "Low": "Low-Priority",
}


class NamespaceCacheConfig(BaseModel):
    """Per-client overrides (keyed by namespace: github, notion, slack)."""

    ttl_seconds: Optional[float] = Field(
        default=None,
        ge=0,
        description="TTL for this namespace (0 = never expire, None = use cache default)"
    )
    local_dev_ttl_seconds: Optional[float] = Field(
        default=None,
        ge=0,
        description="TTL for this namespace when local_dev is on"
    )


class CacheConfig(BaseModel):
    """
    Cache backend selection and expiry.

    The backend is built lazily on first use. If it cannot be built (no write
    access, database down), the cache silently runs in memory instead.
    """
    backend: str = Field(
        default="sqlite",
        pattern="^(memory|disk|sqlite|mongo)$",
        description="Durable backend: memory, disk, sqlite or mongo"
    )
    tiered: bool = Field(
        default=True,
        description="Keep an in-memory layer in front of the durable backend"
    )
    directory: Optional[Path] = Field(
        default=None,
        description="Directory for disk/sqlite files (default: .cache/cachesync or tmp)"
    )
    ttl_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Default TTL in seconds (0 = never expire)"
    )
    local_dev: bool = Field(
        default=False,
        description="Use the longer local-development TTL"
    )
    local_dev_ttl_seconds: float = Field(
        default=30 * 60.0,
        ge=0,
        description="Default TTL when local_dev is on"
    )
    namespaces: dict[str, NamespaceCacheConfig] = Field(
        default_factory=dict,
        description="Per-namespace overrides"
    )
    mongodb_uri: Optional[str] = Field(
        default=None,
        description="MongoDB connection string for the mongo backend"
    )
    mongodb_database: Optional[str] = Field(
        default=None,
        description="Database name (default: from the uri)"
    )
    mongodb_collection_prefix: str = Field(
        default="cachesync_",
        description="Collection name prefix; the namespace is appended"
    )

    def ttl_for(self, namespace: str) -> float:
        """Effective TTL in seconds for a namespace."""
        override = self.namespaces.get(namespace)
        if self.local_dev:
            if override and override.local_dev_ttl_seconds is not None:
                return override.local_dev_ttl_seconds
            return self.local_dev_ttl_seconds
        if override and override.ttl_seconds is not None:
            return override.ttl_seconds
        return self.ttl_seconds


class SyncConfig(BaseModel):
    """
    Checkpointed priority sync settings.
    """
    page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Items requested per page from the source"
    )
    checkpoint_key: str = Field(
        default="checkpoint",
        description="Key under which the scan checkpoint is stored"
    )
    state_namespace: str = Field(
        default="priority-sync-state",
        description="Store namespace holding checkpoints"
    )
    priority_labels: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_PRIORITY_LABELS),
        description="Source priority value -> GitHub label (the managed label set)"
    )

    @field_validator("priority_labels")
    @classmethod
    def validate_priority_labels(cls, v: dict[str, str]) -> dict[str, str]:
        """Require at least one mapping and distinct label names."""
        if not v:
            raise ValueError("priority_labels must not be empty")
        if len(set(v.values())) != len(v):
            raise ValueError("priority_labels must map to distinct labels")
        return v


class GitHubConfig(BaseModel):
    """GitHub REST API access."""
    token: Optional[str] = Field(default=None, description="GitHub token (GH_TOKEN)")
    api_url: str = Field(default="https://api.github.com", description="REST API base URL")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")


class NotionConfig(BaseModel):
    """Notion API access and task database layout."""
    token: Optional[str] = Field(default=None, description="Notion integration token (NOTION_TOKEN)")
    api_url: str = Field(default="https://api.notion.com/v1", description="API base URL")
    api_version: str = Field(default="2025-09-03", description="Notion-Version header")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    database_id: Optional[str] = Field(
        default=None,
        description="Task database id (or full notion.so URL)"
    )
    link_property: str = Field(
        default="[GH🤖] Link",
        description="URL property holding the GitHub issue/PR link"
    )
    priority_property: str = Field(default="Priority", description="Select property with the priority")
    title_property: str = Field(default="Task", description="Title property")

    @field_validator("database_id", mode="before")
    @classmethod
    def validate_database_id(cls, v: Optional[str]) -> Optional[str]:
        """Accept a full notion.so URL and keep only the trailing id."""
        if isinstance(v, str) and "/" in v:
            return v.rstrip("/").split("/")[-1].split("-")[-1].split("?")[0]
        return v


class CacheSyncConfig(BaseModel):
    """
    Top-level cachesync configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = CacheSyncConfig(cache=CacheConfig(backend="memory"))
        >>> config.cache.ttl_for("github")
        60.0
    """
    cache: CacheConfig = Field(default_factory=CacheConfig, description="Cache settings")
    sync: SyncConfig = Field(default_factory=SyncConfig, description="Priority sync settings")
    github: GitHubConfig = Field(default_factory=GitHubConfig, description="GitHub access")
    notion: NotionConfig = Field(default_factory=NotionConfig, description="Notion access")

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
