"""
Integration tests for core/events.py

Tests the event-driven publish/subscribe system and the events emitted
by the sync service.
"""
import pytest
from typing import Dict, Any, List

from core.events import EventBus, SyncEvent, Event
from core.models import Resource
from core.observability import correlation_context


class TestEventBus:
    """Tests for EventBus class."""

    def setup_method(self):
        """Create fresh event bus for each test."""
        self.bus = EventBus()

    @pytest.mark.asyncio
    async def test_emit_with_no_handlers(self):
        """Emitting event with no handlers succeeds silently."""
        event = await self.bus.emit(SyncEvent.SYNC_COMPLETED, {"sync_type": "bulk:orders"})
        assert event.type == SyncEvent.SYNC_COMPLETED
        assert event.data["sync_type"] == "bulk:orders"

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self):
        """Subscribed handler receives events."""
        received: List[Dict[str, Any]] = []

        @self.bus.on(SyncEvent.ORDERS_SYNCED)
        async def handler(data: dict):
            received.append(data)

        await self.bus.emit(SyncEvent.ORDERS_SYNCED, {"count": 10})

        assert len(received) == 1
        assert received[0]["count"] == 10

    @pytest.mark.asyncio
    async def test_other_events_not_delivered(self):
        received = []

        @self.bus.on(SyncEvent.SYNC_FAILED)
        async def handler(data: dict):
            received.append(data)

        await self.bus.emit(SyncEvent.SYNC_COMPLETED, {})
        assert received == []

    @pytest.mark.asyncio
    async def test_multiple_handlers(self):
        """Multiple handlers all receive the event."""
        results = []

        @self.bus.on(SyncEvent.SYNC_COMPLETED)
        async def handler1(data: dict):
            results.append("handler1")

        async def handler2(data: dict):
            results.append("handler2")

        self.bus.subscribe(SyncEvent.SYNC_COMPLETED, handler2)
        await self.bus.emit(SyncEvent.SYNC_COMPLETED, {})

        assert sorted(results) == ["handler1", "handler2"]

    @pytest.mark.asyncio
    async def test_handler_isolation(self):
        """Failing handler doesn't affect other handlers."""
        results = []

        @self.bus.on(SyncEvent.ORDERS_SYNCED)
        async def failing_handler(data: dict):
            raise ValueError("Handler error")

        @self.bus.on(SyncEvent.ORDERS_SYNCED)
        async def working_handler(data: dict):
            results.append("success")

        await self.bus.emit(SyncEvent.ORDERS_SYNCED, {})

        assert results == ["success"]

    @pytest.mark.asyncio
    async def test_emit_source_and_correlation(self):
        with correlation_context("req-42"):
            event = await self.bus.emit(
                SyncEvent.RETRY_SCHEDULED, {}, source="retry_scheduler"
            )

        assert event.to_dict() == {
            "event_type": "retry.scheduled",
            "data": {},
            "source": "retry_scheduler",
            "correlation_id": "req-42",
        }

    @pytest.mark.asyncio
    async def test_clear_handlers(self):
        received = []

        @self.bus.on(SyncEvent.ORDERS_SYNCED)
        async def handler(data):
            received.append(data)

        self.bus.clear_handlers()
        await self.bus.emit(SyncEvent.ORDERS_SYNCED, {})
        assert received == []


class TestSyncEvent:
    """Tests for SyncEvent lookup."""

    @pytest.mark.parametrize("plural,expected", [
        ("orders", SyncEvent.ORDERS_SYNCED),
        ("products", SyncEvent.PRODUCTS_SYNCED),
        ("customers", SyncEvent.CUSTOMERS_SYNCED),
        ("categories", SyncEvent.CATEGORIES_SYNCED),
    ])
    def test_for_resource(self, plural, expected):
        assert SyncEvent.for_resource(plural) is expected

    def test_for_unknown_resource(self):
        with pytest.raises(ValueError):
            SyncEvent.for_resource("coupons")

    def test_event_defaults(self):
        event = Event(type=SyncEvent.SYNC_COMPLETED, data={"duration_ms": 1234})
        assert event.source == "sync_service"
        assert event.to_dict()["event_type"] == "sync.completed"


def _record(bus: EventBus, *event_types: SyncEvent) -> List[tuple]:
    received: List[tuple] = []
    for event_type in event_types:

        async def handler(data: dict, event_type=event_type):
            received.append((event_type, data))

        bus.subscribe(event_type, handler)
    return received


class TestSyncServiceEvents:
    """Events emitted while ingesting batches."""

    @pytest.mark.asyncio
    async def test_successful_ingest_emits_completed_and_resource_event(
        self, services, store_id, make_order
    ):
        received = _record(
            services.events,
            SyncEvent.SYNC_COMPLETED,
            SyncEvent.ORDERS_SYNCED,
            SyncEvent.SYNC_FAILED,
        )

        await services.sync_service.sync_batch(store_id, Resource.ORDER, [make_order(1001)])

        assert [event_type for event_type, _ in received] == [
            SyncEvent.SYNC_COMPLETED,
            SyncEvent.ORDERS_SYNCED,
        ]
        assert received[0][1]["sync_type"] == "bulk:orders"
        assert received[1][1]["count"] == 1

    @pytest.mark.asyncio
    async def test_rejected_batch_emits_nothing(self, services, store_id):
        received = _record(
            services.events,
            SyncEvent.SYNC_COMPLETED,
            SyncEvent.ORDERS_SYNCED,
            SyncEvent.SYNC_FAILED,
        )

        await services.sync_service.sync_batch(store_id, Resource.ORDER, [{"wc_order_id": 1}])
        assert received == []
