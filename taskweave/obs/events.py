"""Event bus used to report task graph changes to a presentation layer.

Every emitted :class:`Event` is kept in a bounded in-memory history, mirrored
to the standard :mod:`logging` system and handed to registered listeners.
Rejected relationships are emitted at ``warning`` level so that a UI can show
a transient message for them.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Callable, Iterable, List, Optional

from taskweave.graph.ids import utc_now

LOGGER = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class Event:
    """A single notification about an action on the task graph."""

    ts: str
    level: str
    msg: str
    action: Optional[str] = None
    target_ids: tuple[int, ...] = ()
    extras: Optional[dict] = None

    def to_payload(self) -> dict:
        payload = asdict(self)
        payload["target_ids"] = list(self.target_ids)
        return payload


Listener = Callable[[Event], None]


@dataclass
class EventBus:
    """Bounded event history with synchronous listeners."""

    limit: int = 1000
    events: List[Event] = field(default_factory=list)
    _listeners: List[Listener] = field(default_factory=list, init=False, repr=False)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` for every future event; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(
        self,
        *,
        level: str,
        msg: str,
        action: Optional[str] = None,
        target_ids: Iterable[int] | None = None,
        extras: dict | None = None,
    ) -> Event:
        """Record a new :class:`Event` and notify listeners."""

        if level not in _LEVELS:
            raise ValueError(f"Unsupported event level: {level}")
        event = Event(
            ts=utc_now(),
            level=level,
            msg=msg,
            action=action,
            target_ids=tuple(target_ids or ()),
            extras=extras,
        )
        self.events.append(event)
        if self.limit > 0 and len(self.events) > self.limit:
            del self.events[: len(self.events) - self.limit]
        LOGGER.log(_LEVELS[level], "[%s] %s", action or "-", msg)
        for listener in list(self._listeners):
            listener(event)
        return event

    def history(self, *, action: str | None = None) -> Iterable[Event]:
        """Return the retained events in order, optionally for one ``action``."""

        if action is None:
            return tuple(self.events)
        return tuple(event for event in self.events if event.action == action)


__all__ = ["Event", "EventBus", "Listener"]
