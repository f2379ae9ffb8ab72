from datetime import UTC, datetime

import pytest

from messaging_service.domain.events import MessageInserted, MessageUpdated
from messaging_service.infrastructure.event_dispatcher import EventDispatcher


def make_event(event_type=MessageInserted):
    now = datetime.now(UTC)
    return event_type(
        message_id="m1",
        conversation_id="c1",
        sender_id="u1",
        content="Test",
        is_edited=False,
        is_deleted=False,
        created_at=now,
        updated_at=now,
    )


@pytest.mark.asyncio
async def test_event_dispatcher():
    dispatcher = EventDispatcher()

    events_received = []

    async def test_handler(event):
        events_received.append(event)

    dispatcher.register("MessageInserted", test_handler)

    await dispatcher.dispatch(make_event())

    assert len(events_received) == 1
    assert isinstance(events_received[0], MessageInserted)


@pytest.mark.asyncio
async def test_event_dispatcher_routes_by_event_type():
    dispatcher = EventDispatcher()
    inserted, updated = [], []

    async def on_insert(event):
        inserted.append(event)

    async def on_update(event):
        updated.append(event)

    dispatcher.register("MessageInserted", on_insert)
    dispatcher.register("MessageUpdated", on_update)

    await dispatcher.dispatch(make_event(MessageUpdated))

    assert inserted == []
    assert len(updated) == 1


@pytest.mark.asyncio
async def test_event_dispatcher_without_handlers():
    dispatcher = EventDispatcher()
    await dispatcher.dispatch(make_event())
