"""Layered .env loading.

Files are read in order, later files winning:

  ~/.config/cachesync/.env < <project>/.env < <project>/.env.local

Variables already present in the process environment are never touched, so
a token exported in the shell beats every file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)


def _read_env(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    return {str(k): str(v) for k, v in dotenv_values(path).items() if k and v is not None}


def default_env_paths(project_dir: Path) -> list[Path]:
    """User .env followed by the project's .env and .env.local."""
    return [
        get_xdg_config_home() / "cachesync" / ".env",
        project_dir / ".env",
        project_dir / ".env.local",
    ]


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> list[str]:
    """Export variables from the user and project .env files.

    Args:
        project_dir: base directory for project env paths (defaults to cwd)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths

    Returns:
        Sorted names of the variables that were exported
    """
    project_dir = project_dir or Path.cwd()
    defaults = default_env_paths(project_dir)
    if user_env_paths is None:
        user_env_paths = defaults[:1]
    if project_env_paths is None:
        project_env_paths = defaults[1:]

    merged: dict[str, str] = {}
    for path in [*user_env_paths, *project_env_paths]:
        merged.update(_read_env(Path(path)))

    exported = sorted(key for key in merged if key not in os.environ)
    for key in exported:
        os.environ[key] = merged[key]
    if exported:
        logger.debug("Loaded %d variables from .env files", len(exported))
    return exported
