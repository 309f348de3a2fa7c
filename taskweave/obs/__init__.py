"""Observability helpers: domain events and logging setup."""

from .events import Event, EventBus
from .log_config import configure_logging

__all__ = ["Event", "EventBus", "configure_logging"]
