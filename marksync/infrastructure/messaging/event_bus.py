"""In-memory event bus for engine state notifications.

The sync engine publishes domain events here; presentation code subscribes
to the types it cares about. Handlers registered for a base class receive
every subclass as well, so subscribing to ``DomainEvent`` observes all.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from marksync.domain.events.sync_events import DomainEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=DomainEvent)

EventHandler = Callable[[TEvent], Awaitable[None]]


class EventBus:
    """Simple in-memory publish/subscribe hub for domain events.

    Example:
        ```python
        bus = EventBus()

        async def on_change(event: EngineStateChanged):
            render(event.state)

        bus.subscribe(EngineStateChanged, on_change)
        engine = BookmarkSyncEngine(gateway, event_bus=bus)
        ```

    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Subscribe a handler to an event type and its subclasses.

        Args:
            event_type: The type of event to subscribe to.
            handler: Async function to call when a matching event is published.

        """
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": getattr(handler, "__name__", repr(handler)),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

    def unsubscribe(
        self,
        event_type: type[TEvent],
        handler: EventHandler[TEvent],
    ) -> None:
        """Unsubscribe a handler from an event type.

        Unknown handlers are logged and ignored.
        """
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._handlers[event_type]
            return
        logger.warning(
            "event_handler_not_found",
            extra={
                "event_type": event_type.__name__,
                "handler": getattr(handler, "__name__", repr(handler)),
            },
        )

    def _handlers_for(self, event_type: type) -> list[EventHandler]:
        matched: list[EventHandler] = []
        for klass in event_type.__mro__:
            matched.extend(self._handlers.get(klass, ()))
        return matched

    async def publish(self, event: DomainEvent) -> None:
        """Publish a domain event to all matching handlers.

        Handlers run sequentially in subscription order, most specific type
        first. A failing handler is logged and does not stop the others.

        Args:
            event: The domain event to publish.

        """
        event_type = type(event)
        handlers = self._handlers_for(event_type)

        if not handlers:
            logger.debug(
                "event_published_no_handlers",
                extra={"event_type": event_type.__name__},
            )
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": getattr(handler, "__name__", repr(handler)),
                        "error": str(exc),
                    },
                )

    def clear_handlers(self, event_type: type[TEvent] | None = None) -> None:
        """Clear handlers for one event type, or all handlers when None."""
        if event_type is not None:
            self._handlers.pop(event_type, None)
        else:
            self._handlers.clear()

    def get_handler_count(self, event_type: type[TEvent]) -> int:
        """Number of handlers registered directly for ``event_type``."""
        return len(self._handlers.get(event_type, []))
