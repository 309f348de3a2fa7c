"""Configuration helpers for loading environment variables.

This module ensures that variables defined in a project-level ``.env`` file
are loaded before attempting to access them.  Consumers should rely on the
``get_env`` family of helpers instead of using :func:`os.getenv` directly so
that the configuration is loaded in a single, well-defined place.

Recognised variables:

``TASKWEAVE_DB_PATH``
    SQLite database used by the default application. Unset keeps the graph
    purely in memory.
``TASKWEAVE_LAYOUT_ITERATIONS`` / ``TASKWEAVE_LAYOUT_ASPECT_RATIO``
    Defaults for :meth:`taskweave.layout.model.LayoutConfig.from_env`.
``TASKWEAVE_LOG_LEVEL`` / ``TASKWEAVE_LOG_FILE``
    Consumed by :func:`taskweave.obs.log_config.configure_logging`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DB_PATH_ENV = "TASKWEAVE_DB_PATH"
LAYOUT_ITERATIONS_ENV = "TASKWEAVE_LAYOUT_ITERATIONS"
LAYOUT_ASPECT_RATIO_ENV = "TASKWEAVE_LAYOUT_ASPECT_RATIO"
LOG_LEVEL_ENV = "TASKWEAVE_LOG_LEVEL"
LOG_FILE_ENV = "TASKWEAVE_LOG_FILE"


@lru_cache(maxsize=1)
def _load_environment() -> None:
    """Load environment variables from the project's ``.env`` file.

    The loader first attempts to read ``.env`` from the repository root.  If the
    file does not exist we still call :func:`load_dotenv` to allow the default
    discovery mechanism to run (e.g., for users who store the file elsewhere).
    Subsequent calls are cached so the file is only read once per process.
    """

    project_root = Path(__file__).resolve().parents[1]
    env_path = project_root / ".env"

    if env_path.exists():
        load_dotenv(env_path, override=False)
    else:
        load_dotenv(override=False)


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the value for ``key`` from the environment.

    Parameters
    ----------
    key:
        The name of the environment variable to look up.
    default:
        The value to return when ``key`` is not present.
    """

    _load_environment()
    return os.environ.get(key, default)


def get_env_int(key: str, default: int) -> int:
    """Return ``key`` parsed as an integer, or ``default`` when unusable."""

    raw = get_env(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_env_float(key: str, default: float) -> float:
    """Return ``key`` parsed as a float, or ``default`` when unusable."""

    raw = get_env(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


__all__ = [
    "DB_PATH_ENV",
    "LAYOUT_ASPECT_RATIO_ENV",
    "LAYOUT_ITERATIONS_ENV",
    "LOG_FILE_ENV",
    "LOG_LEVEL_ENV",
    "get_env",
    "get_env_float",
    "get_env_int",
]
