"""Unit tests for EventBus."""

from datetime import UTC, datetime

import pytest

from marksync.domain.events.sync_events import (
    DomainEvent,
    EngineStateChanged,
    SubscriptionStatusChanged,
)
from marksync.infrastructure.messaging.event_bus import EventBus
from marksync.sync.state import EngineState, SubscriptionStatus


def _state_changed(reason: str = "refresh_finished") -> EngineStateChanged:
    return EngineStateChanged(
        occurred_at=datetime.now(UTC),
        aggregate_id="alice",
        reason=reason,
        state=EngineState(identity="alice"),
    )


def _status_changed() -> SubscriptionStatusChanged:
    return SubscriptionStatusChanged(
        occurred_at=datetime.now(UTC),
        aggregate_id="alice",
        previous=SubscriptionStatus.CONNECTING,
        current=SubscriptionStatus.ENABLED,
    )


class TestEventBus:
    """Test suite for EventBus."""

    @pytest.fixture
    def event_bus(self):
        """Create a fresh event bus for each test."""
        return EventBus()

    @pytest.mark.asyncio
    async def test_subscribe_and_publish(self, event_bus):
        """Test subscribing to and publishing events."""
        received = []

        async def handler(event: EngineStateChanged):
            received.append(event)

        event_bus.subscribe(EngineStateChanged, handler)
        event = _state_changed()

        await event_bus.publish(event)

        assert received == [event]

    @pytest.mark.asyncio
    async def test_handlers_only_receive_their_type(self, event_bus):
        """Handlers for one event type ignore other types."""
        received = []

        async def handler(event: SubscriptionStatusChanged):
            received.append(event)

        event_bus.subscribe(SubscriptionStatusChanged, handler)
        await event_bus.publish(_state_changed())

        assert received == []

    @pytest.mark.asyncio
    async def test_base_class_subscription_receives_all(self, event_bus):
        """Subscribing to DomainEvent observes every event."""
        received = []

        async def handler(event: DomainEvent):
            received.append(type(event))

        event_bus.subscribe(DomainEvent, handler)
        await event_bus.publish(_state_changed())
        await event_bus.publish(_status_changed())

        assert received == [EngineStateChanged, SubscriptionStatusChanged]

    @pytest.mark.asyncio
    async def test_publish_with_no_handlers(self, event_bus):
        """Test publishing event with no subscribed handlers."""
        # Should not raise error
        await event_bus.publish(_state_changed())

    @pytest.mark.asyncio
    async def test_handler_error_does_not_affect_other_handlers(self, event_bus):
        """Test that error in one handler doesn't stop other handlers."""
        handler2_called = False

        async def handler1(event: EngineStateChanged):
            raise ValueError("Handler 1 error")

        async def handler2(event: EngineStateChanged):
            nonlocal handler2_called
            handler2_called = True

        event_bus.subscribe(EngineStateChanged, handler1)
        event_bus.subscribe(EngineStateChanged, handler2)

        await event_bus.publish(_state_changed())

        assert handler2_called is True

    def test_get_handler_count(self, event_bus):
        """Test getting handler count for an event type."""

        async def handler1(event: EngineStateChanged):
            pass

        async def handler2(event: EngineStateChanged):
            pass

        event_bus.subscribe(EngineStateChanged, handler1)
        event_bus.subscribe(EngineStateChanged, handler2)

        assert event_bus.get_handler_count(EngineStateChanged) == 2
        assert event_bus.get_handler_count(SubscriptionStatusChanged) == 0

    def test_unsubscribe(self, event_bus):
        """Test unsubscribing a handler."""

        async def handler(event: EngineStateChanged):
            pass

        event_bus.subscribe(EngineStateChanged, handler)
        event_bus.unsubscribe(EngineStateChanged, handler)
        # Unknown handler is ignored
        event_bus.unsubscribe(EngineStateChanged, handler)

        assert event_bus.get_handler_count(EngineStateChanged) == 0

    def test_clear_handlers(self, event_bus):
        """Test clearing handlers for one type and for all types."""

        async def handler1(event: EngineStateChanged):
            pass

        async def handler2(event: SubscriptionStatusChanged):
            pass

        event_bus.subscribe(EngineStateChanged, handler1)
        event_bus.subscribe(SubscriptionStatusChanged, handler2)

        event_bus.clear_handlers(EngineStateChanged)
        assert event_bus.get_handler_count(EngineStateChanged) == 0
        assert event_bus.get_handler_count(SubscriptionStatusChanged) == 1

        event_bus.clear_handlers()
        assert event_bus.get_handler_count(SubscriptionStatusChanged) == 0


class TestDomainEvents:
    def test_occurred_at_must_be_datetime(self):
        with pytest.raises(TypeError):
            EngineStateChanged(
                occurred_at="now", reason="x", state=EngineState()
            )

    def test_reason_required(self):
        with pytest.raises(ValueError):
            _state_changed(reason="")

    def test_engine_state_busy(self):
        assert EngineState().busy is False
        assert EngineState(loading=True).busy is True
        assert EngineState(deleting_ids=frozenset({"a"})).busy is True
