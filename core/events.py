"""
Event-driven hooks for sync operations.

Provides a simple publish/subscribe pattern for decoupling ingestion from
its consumers, such as log handlers and downstream refreshes.

Each service container owns one ``EventBus``; nothing is global.

Usage:
    bus = EventBus()

    @bus.on(SyncEvent.ORDERS_SYNCED)
    async def handle_orders_synced(data: dict):
        print(f"Synced {data['count']} orders for {data['store_id']}")

    await bus.emit(SyncEvent.ORDERS_SYNCED, {"count": 100, "store_id": "..."})
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional

from core.observability import get_logger, get_correlation_id

logger = get_logger(__name__)

# Type for event handlers
EventHandler = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]


class SyncEvent(Enum):
    """Events emitted during ingestion and retry."""

    # Ingest lifecycle
    SYNC_COMPLETED = "sync.completed"
    SYNC_FAILED = "sync.failed"

    # Resource-specific events
    ORDERS_SYNCED = "orders.synced"
    PRODUCTS_SYNCED = "products.synced"
    CUSTOMERS_SYNCED = "customers.synced"
    CATEGORIES_SYNCED = "categories.synced"

    # Retry events
    RETRY_SCHEDULED = "retry.scheduled"

    @classmethod
    def for_resource(cls, plural: str) -> "SyncEvent":
        """Resource-specific event for a plural resource name."""
        return cls(f"{plural}.synced")


@dataclass
class Event:
    """Emitted event with the request it belongs to."""

    type: SyncEvent
    data: Dict[str, Any]
    source: str = "sync_service"
    correlation_id: Optional[str] = field(default_factory=get_correlation_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.type.value,
            "data": self.data,
            "source": self.source,
            "correlation_id": self.correlation_id,
        }


class EventBus:
    """
    Async event bus with per-event handlers.

    Handlers run concurrently; one handler failing never affects the others
    or the emitter.
    """

    def __init__(self):
        self._handlers: Dict[SyncEvent, List[EventHandler]] = {}

    def on(self, event_type: SyncEvent) -> Callable[[EventHandler], EventHandler]:
        """Decorator to register an event handler."""

        def decorator(handler: EventHandler) -> EventHandler:
            self.subscribe(event_type, handler)
            return handler

        return decorator

    def subscribe(self, event_type: SyncEvent, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Registered handler {handler.__name__} for {event_type.value}")

    async def emit(
        self,
        event_type: SyncEvent,
        data: Optional[Dict[str, Any]] = None,
        source: str = "sync_service",
    ) -> Event:
        """
        Emit an event to all subscribed handlers.

        Handler failures are logged and never propagate to the emitter.
        """
        event = Event(type=event_type, data=data or {}, source=source)

        handlers = list(self._handlers.get(event_type, []))
        if not handlers:
            return event

        logger.debug(
            f"Emitting {event_type.value} to {len(handlers)} handlers",
            extra={"event": event.to_dict()},
        )

        results = await asyncio.gather(
            *[handler(event.data) for handler in handlers],
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Handler {handler.__name__} failed for {event_type.value}: {result}",
                    extra={"event": event.to_dict()},
                )

        return event

    def clear_handlers(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
