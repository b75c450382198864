"""
Configuration models and loading.

This module provides Pydantic models for cachesync configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .env import load_layered_env
from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
    resolve_cache_dir,
)
from .models import (
    DEFAULT_PRIORITY_LABELS,
    CacheConfig,
    CacheSyncConfig,
    GitHubConfig,
    NamespaceCacheConfig,
    NotionConfig,
    SyncConfig,
)

__all__ = [
    # Models
    "CacheConfig",
    "CacheSyncConfig",
    "DEFAULT_PRIORITY_LABELS",
    "GitHubConfig",
    "NamespaceCacheConfig",
    "NotionConfig",
    "SyncConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
    "resolve_cache_dir",
]
