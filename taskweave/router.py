"""Action routing for the taskweave application facade."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol


class ActionHandler(Protocol):
    """Callable that receives action params and returns a result mapping."""

    def __call__(self, params: dict) -> dict:  # pragma: no cover - interface
        ...


@dataclass
class ActionRouter:
    """Map action names to handlers."""

    registry: Dict[str, ActionHandler] = field(default_factory=dict)

    def register(self, action: str, handler: Optional[ActionHandler] = None):
        """Register ``handler`` under ``action``; usable as a decorator."""

        def _register(func: ActionHandler) -> ActionHandler:
            if action in self.registry:
                raise ValueError(f"Action already registered: {action}")
            self.registry[action] = func
            return func

        if handler is None:
            return _register
        return _register(handler)

    def actions(self) -> list[str]:
        return sorted(self.registry)

    def dispatch(self, action: str, params: dict) -> dict:
        """Execute the handler registered for ``action``."""

        handler: Callable[[dict], dict] | None = self.registry.get(action)
        if handler is None:
            raise KeyError(f"Unknown action: {action}")
        return handler(params)
