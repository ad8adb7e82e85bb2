"""EventBus for broadcasting events to multiple handlers."""

import logging
from typing import Callable, List, Protocol

from .base import BaseEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Anything that accepts store notifications."""

    def emit(self, event: BaseEvent) -> None: ...


class EventBus:
    """Broadcast events to multiple handlers with error isolation."""

    def __init__(self):
        self._handlers: List[Callable[[BaseEvent], None]] = []

    def subscribe(self, handler: Callable[[BaseEvent], None]) -> Callable[[], None]:
        """Subscribe a handler to receive events.

        Args:
            handler: Callable that accepts a BaseEvent

        Returns:
            Callable that unsubscribes the handler
        """
        if handler not in self._handlers:
            self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: Callable[[BaseEvent], None]) -> None:
        """Unsubscribe a handler.

        Args:
            handler: Handler to remove
        """
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
                logger.exception("Handler error while dispatching %s", event.event_type.name)

    def has_handlers(self) -> bool:
        """Check if any handlers are subscribed."""
        return len(self._handlers) > 0

    def handler_count(self) -> int:
        """Get number of subscribed handlers."""
        return len(self._handlers)
