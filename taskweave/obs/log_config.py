"""Process-wide logging configuration driven by environment variables."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from taskweave.config import LOG_FILE_ENV, LOG_LEVEL_ENV, get_env

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_CONFIGURED = False


def configure_logging(*, force: bool = False) -> Optional[int]:
    """Configure the root logger from ``TASKWEAVE_LOG_LEVEL``/``TASKWEAVE_LOG_FILE``.

    ``0`` (the default) keeps logging silent, ``1`` enables INFO and ``2`` or
    more enables DEBUG. Records go to ``TASKWEAVE_LOG_FILE`` when set and to
    stderr otherwise. Returns the configured level, or ``None`` when silent.
    Later calls are no-ops unless ``force`` is set.
    """

    global _CONFIGURED
    if _CONFIGURED and not force:
        return None
    _CONFIGURED = True

    level = _map_level(_read_level(get_env(LOG_LEVEL_ENV, "0")))
    if level is None:
        return None

    log_path = get_env(LOG_FILE_ENV)
    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(level=level, filename=log_file, filemode="a", format=_FORMAT, force=force)
    else:
        logging.basicConfig(level=level, format=_FORMAT, force=force)
    return level


def _read_level(raw: Optional[str]) -> int:
    try:
        return int(raw or "0")
    except ValueError:
        return 0


def _map_level(level: int) -> Optional[int]:
    if level <= 0:
        return None
    if level >= 2:
        return logging.DEBUG
    return logging.INFO


__all__ = ["configure_logging"]
