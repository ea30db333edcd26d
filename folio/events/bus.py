"""EventBus for broadcasting events to multiple handlers."""

import logging
from typing import Callable, List

from .base import BaseEvent

logger = logging.getLogger(__name__)


class EventBus:
    """Broadcast events to multiple handlers with error isolation."""

    def __init__(self):
        self._handlers: List[Callable[[BaseEvent], None]] = []

    def subscribe(self, handler: Callable[[BaseEvent], None]) -> None:
        """Subscribe a handler to receive events.

        Args:
            handler: Callable that accepts a BaseEvent
        """
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Callable[[BaseEvent], None]) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, event: BaseEvent) -> None:
        """Emit event to all subscribers with error isolation.

        Args:
            event: Event to broadcast
        """
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", type(event).__name__)

    def has_handlers(self) -> bool:
        return len(self._handlers) > 0
