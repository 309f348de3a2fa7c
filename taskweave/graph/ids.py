"""Identifier and timestamp helpers shared by the graph store and the event bus."""
from __future__ import annotations

import datetime as _dt
import time
import uuid


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""

    return time.time_ns() // 1_000_000


def utc_now() -> str:
    """Return the current UTC time formatted as an ISO 8601 string."""

    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def new_id(prefix: str) -> str:
    """Return a random identifier with the provided ``prefix``."""

    return f"{prefix}_{uuid.uuid4().hex}"
