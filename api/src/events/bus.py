"""In-memory async event bus.

Handlers subscribe to an event class and receive every published event that is
an instance of it, so subscribing to ``DomainEvent`` receives everything.
Handlers run concurrently; a failing handler is logged and never affects the
publisher or the other handlers.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from src.core.logging import get_logger
from src.events.models import DomainEvent


logger = get_logger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


class EventBus:
    """Publish/subscribe hub for domain events."""

    def __init__(self) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = {}
        self._published = 0

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        """Register an async handler for an event class (and its subclasses)."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            "event_handler_subscribed",
            event_type=event_type.__name__,
            handler=getattr(handler, "__qualname__", repr(handler)),
        )

    def unsubscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> bool:
        """Remove a handler. Returns False if it was not subscribed."""
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[event_type]
        return True

    def handlers_for(self, event: DomainEvent) -> list[EventHandler]:
        matched: list[EventHandler] = []
        for event_type, handlers in self._handlers.items():
            if isinstance(event, event_type):
                matched.extend(handlers)
        return matched

    async def publish(self, event: DomainEvent) -> int:
        """Deliver an event to every matching handler.

        Returns:
            Number of handlers that completed without raising.
        """
        self._published += 1
        handlers = self.handlers_for(event)
        if not handlers:
            logger.debug("event_unhandled", event_name=event.name, event_id=str(event.event_id))
            return 0

        async def safe_call(handler: EventHandler) -> bool:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "event_handler_failed",
                    event_name=event.name,
                    event_id=str(event.event_id),
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
                return False
            return True

        results = await asyncio.gather(*(safe_call(h) for h in handlers))
        succeeded = sum(results)
        logger.debug(
            "event_published",
            event_name=event.name,
            event_id=str(event.event_id),
            handlers=len(handlers),
            succeeded=succeeded,
        )
        return succeeded

    @property
    def published_count(self) -> int:
        return self._published

    def clear(self) -> None:
        self._handlers.clear()
