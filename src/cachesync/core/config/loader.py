"""
Layered configuration for cachesync.

Later layers win: built-in defaults, then the user file, then the project
file, then environment variables.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .models import CacheConfig, CacheSyncConfig

logger = logging.getLogger(__name__)

# Loaded once per process unless use_cache=False
_config_cache: CacheSyncConfig | None = None

_BACKENDS = ("memory", "disk", "sqlite", "mongo")
_FALSE_VALUES = ("false", "0", "", "no", "off")


def get_xdg_config_home() -> Path:
    """$XDG_CONFIG_HOME, or ~/.config when unset."""
    configured = os.environ.get("XDG_CONFIG_HOME")
    return Path(configured) if configured else Path.home() / ".config"


def get_user_config_path() -> Path:
    """User-level settings shared by every project."""
    return get_xdg_config_home() / "cachesync" / "config.json"


def get_project_config_path(project_dir: Path | None = None) -> Path:
    """The .cachesync.json file at the root of ``project_dir`` (default: cwd)."""
    return (project_dir or Path.cwd()) / ".cachesync.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Return ``base`` updated with ``override``, recursing into nested dicts.

    Neither argument is modified.

    Example:
        >>> deep_merge({"cache": {"backend": "disk", "tiered": True}}, {"cache": {"backend": "sqlite"}})
        {'cache': {'backend': 'sqlite', 'tiered': True}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = deep_merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Read a JSON object from ``path``.

    Missing files give None. Unreadable files, invalid JSON and top-level
    values that are not objects are logged and also give None.
    """
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: expected a JSON object", path)
        return None
    return data


def _section(result: dict[str, Any], name: str) -> dict[str, Any]:
    if not isinstance(result.get(name), dict):
        result[name] = {}
    else:
        result[name] = dict(result[name])
    section: dict[str, Any] = result[name]
    return section


def _env_float(name: str, minimum: float | None = None) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s value '%s', ignoring", name, raw)
        return None
    if minimum is not None and value < minimum:
        logger.warning("%s must be >= %s, got %s, ignoring", name, minimum, value)
        return None
    return value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Overlay settings taken from the environment onto ``config_dict``.

    Variables read:
        CACHESYNC_CACHE_BACKEND - overrides cache.backend
        CACHESYNC_CACHE_DIR - overrides cache.directory
        CACHESYNC_CACHE_TTL - overrides cache.ttl_seconds
        CACHESYNC_LOCAL_DEV / LOCAL_DEV - overrides cache.local_dev
        CACHESYNC_MONGODB_URI / MONGODB_URI - overrides cache.mongodb_uri
        CACHESYNC_SYNC_PAGE_SIZE - overrides sync.page_size
        CACHESYNC_GH_TOKEN / GH_TOKEN - overrides github.token
        NOTION_TOKEN - overrides notion.token
        CACHESYNC_NOTION_DATABASE - overrides notion.database_id

    Invalid values are logged and skipped. The input dict is not modified.
    """
    result = dict(config_dict)

    if backend := os.environ.get("CACHESYNC_CACHE_BACKEND"):
        if backend.lower() in _BACKENDS:
            _section(result, "cache")["backend"] = backend.lower()
        else:
            logger.warning(
                "Invalid CACHESYNC_CACHE_BACKEND value '%s' (expected one of %s), ignoring",
                backend,
                ", ".join(_BACKENDS),
            )

    if cache_dir := os.environ.get("CACHESYNC_CACHE_DIR"):
        _section(result, "cache")["directory"] = cache_dir

    ttl = _env_float("CACHESYNC_CACHE_TTL", minimum=0)
    if ttl is not None:
        _section(result, "cache")["ttl_seconds"] = ttl

    local_dev = os.environ.get("CACHESYNC_LOCAL_DEV", os.environ.get("LOCAL_DEV"))
    if local_dev is not None:
        _section(result, "cache")["local_dev"] = local_dev.lower() not in _FALSE_VALUES

    if mongodb_uri := os.environ.get("CACHESYNC_MONGODB_URI") or os.environ.get("MONGODB_URI"):
        _section(result, "cache")["mongodb_uri"] = mongodb_uri

    page_size = _env_float("CACHESYNC_SYNC_PAGE_SIZE", minimum=1)
    if page_size is not None:
        if page_size > 100:
            logger.warning("CACHESYNC_SYNC_PAGE_SIZE must be <= 100, got %s, ignoring", page_size)
        else:
            _section(result, "sync")["page_size"] = int(page_size)

    if gh_token := os.environ.get("CACHESYNC_GH_TOKEN") or os.environ.get("GH_TOKEN"):
        _section(result, "github")["token"] = gh_token

    if notion_token := os.environ.get("NOTION_TOKEN"):
        _section(result, "notion")["token"] = notion_token

    if database := os.environ.get("CACHESYNC_NOTION_DATABASE"):
        _section(result, "notion")["database_id"] = database

    return result


def get_default_config() -> dict[str, Any]:
    """Built-in settings: API responses live for a minute, 30 minutes in local development."""
    return {
        "cache": {
            "backend": "sqlite",
            "tiered": True,
            "ttl_seconds": 60.0,
            "local_dev_ttl_seconds": 1800.0,
            "namespaces": {},
        },
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> CacheSyncConfig:
    """
    Build the validated configuration for ``project_dir`` (default: cwd).

    Environment variables beat .cachesync.json, which beats the user's
    ~/.config/cachesync/config.json, which beats the built-in defaults.
    The result is memoized for the process; pass ``use_cache=False`` to
    reread every layer.

    Raises:
        pydantic.ValidationError: The merged settings are invalid
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    layers = [get_default_config()]
    for path in (get_user_config_path(), get_project_config_path(project_dir)):
        layer = load_json_file(path)
        if layer:
            logger.debug("Loaded config layer %s", path)
            layers.append(layer)

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = deep_merge(merged, layer)

    _config_cache = CacheSyncConfig.model_validate(apply_env_overrides(merged))
    return _config_cache


def clear_cache() -> None:
    """Forget the memoized configuration so the next load_config rereads it."""
    global _config_cache
    _config_cache = None


def resolve_cache_dir(config: CacheConfig, project_dir: Path | None = None) -> Path:
    """
    Pick the directory for file-backed cache stores.

    Uses the configured directory when set; otherwise ``.cache/cachesync``
    under the project if the project directory is writable, and
    ``<tmp>/.cache/cachesync`` when it is not.

    The directory is not created here; backends create it on first use.
    """
    if config.directory is not None:
        return Path(config.directory).expanduser()

    if project_dir is None:
        project_dir = Path.cwd()

    if os.access(project_dir, os.W_OK):
        return project_dir / ".cache" / "cachesync"
    return Path(tempfile.gettempdir()) / ".cache" / "cachesync"
