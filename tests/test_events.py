"""Tests for the event bus and the audit subscriber."""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock, patch

import pytest

from src.events import bus
from src.events.audit import audit_on_event, mask_phone
from src.schemas.events import EventType, SystemEvent


@pytest.fixture(autouse=True)
def _clean_bus():
    yield
    bus._queue = None
    bus._worker_task = None
    bus._handlers.clear()


def _event(event_type: EventType = EventType.SESSION_STARTED, **data) -> SystemEvent:
    return SystemEvent(event_type=event_type, session_id=uuid.uuid4(), restaurant_id="rest-1", data=data)


class TestEventBus:
    @pytest.mark.asyncio()
    async def test_global_subscriber_receives_everything(self):
        received: list[SystemEvent] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        await bus.emit(_event(EventType.SESSION_STARTED))
        await bus.emit(_event(EventType.REVIEW_HANDOFF))

        assert [e.event_type for e in received] == [EventType.SESSION_STARTED, EventType.REVIEW_HANDOFF]

    @pytest.mark.asyncio()
    async def test_typed_subscriber_filters(self):
        received: list[EventType] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event.event_type)

        bus.subscribe(handler, [EventType.SESSION_COMPLETED])
        await bus.emit(_event(EventType.SESSION_STARTED))
        await bus.emit(_event(EventType.SESSION_COMPLETED))

        assert received == [EventType.SESSION_COMPLETED]

    @pytest.mark.asyncio()
    async def test_failing_handler_does_not_block_others(self):
        received: list[SystemEvent] = []

        async def broken(event: SystemEvent) -> None:
            raise RuntimeError("boom")

        async def healthy(event: SystemEvent) -> None:
            received.append(event)

        bus.subscribe(broken)
        bus.subscribe(healthy)
        await bus.emit(_event())

        assert len(received) == 1

    @pytest.mark.asyncio()
    async def test_unsubscribe(self):
        received: list[SystemEvent] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        bus.subscribe(handler, [EventType.SESSION_STARTED])
        bus.unsubscribe(handler)
        await bus.emit(_event())

        assert received == []

    @pytest.mark.asyncio()
    async def test_queued_events_flushed_on_stop(self):
        received: list[SystemEvent] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        await bus.start_event_system()
        await bus.emit(_event())
        await bus.emit(_event())
        await bus.stop_event_system()

        assert len(received) == 2

    @pytest.mark.asyncio()
    async def test_running_bus_defers_delivery_to_worker(self):
        received: list[SystemEvent] = []

        async def handler(event: SystemEvent) -> None:
            received.append(event)

        bus.subscribe(handler)
        await bus.start_event_system()
        await bus.emit(_event())

        assert received == []
        await bus.stop_event_system()
        assert len(received) == 1

    @pytest.mark.asyncio()
    async def test_stop_without_start_is_harmless(self):
        await bus.stop_event_system()
        assert bus._queue is None


class TestAudit:
    def test_mask_phone(self):
        assert mask_phone("5551234567") == "*******567"
        assert mask_phone("12") == "***"

    @pytest.mark.asyncio()
    async def test_phone_masked_in_audit_line(self):
        fake_logger = MagicMock()
        with patch("src.events.audit.audit_logger", fake_logger):
            await audit_on_event(_event(EventType.CUSTOMER_AUTHENTICATED, phone="5551234567", table_id="t-1"))

        args, kwargs = fake_logger.info.call_args
        assert args == ("customer.authenticated",)
        assert kwargs["data"] == {"phone": "*******567", "table_id": "t-1"}
        assert kwargs["restaurant_id"] == "rest-1"

    @pytest.mark.asyncio()
    async def test_audit_never_raises(self):
        fake_logger = MagicMock()
        fake_logger.info.side_effect = RuntimeError("sink closed")
        with patch("src.events.audit.audit_logger", fake_logger):
            await audit_on_event(_event())
