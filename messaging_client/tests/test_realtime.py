# messaging_client/tests/test_realtime.py
import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import fakeredis
import pytest
from fakeredis import aioredis
from redis.exceptions import ConnectionError as RedisConnectionError

from messaging_client.realtime import RealtimeClient


async def eventually(condition, timeout=3.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


@pytest.fixture
def server():
    return fakeredis.FakeServer()


@pytest.fixture
async def realtime(server):
    client = RealtimeClient(
        reconnect_delay=0.01,
        redis_factory=lambda: aioredis.FakeRedis(server=server, decode_responses=True),
    )
    yield client
    await client.close()


@pytest.fixture
async def publisher(server):
    redis = aioredis.FakeRedis(server=server, decode_responses=True)
    yield redis
    await redis.aclose()


@pytest.mark.asyncio
async def test_connect_reports_status(realtime):
    statuses = []
    realtime.on_status_change(statuses.append)

    assert await realtime.connect() is True
    assert realtime.is_connected is True
    assert statuses == [True]


@pytest.mark.asyncio
async def test_connect_failure_reports_disconnected(caplog):
    caplog.set_level(logging.ERROR)
    broken = MagicMock()
    broken.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
    broken.aclose = AsyncMock()
    client = RealtimeClient(reconnect_delay=0.01, redis_factory=lambda: broken)
    statuses = []
    client.on_status_change(statuses.append)

    assert await client.connect() is False
    assert client.is_connected is False
    assert statuses[0] is False
    assert "Unable to connect to Redis at localhost:6379" in caplog.text
    await client.close()


@pytest.mark.asyncio
async def test_published_envelope_reaches_matching_binding(realtime, publisher):
    received = []

    async def on_message(envelope):
        received.append(envelope)

    await realtime.connect()
    await realtime.channel("conversation:c1").on(
        "broadcast", {"event": "new_message"}, on_message
    ).subscribe()

    envelope = {"type": "broadcast", "event": "new_message", "payload": {"id": "m1"}}
    await eventually(lambda: realtime._pubsub.subscribed)
    await publisher.publish("conversation:c1", json.dumps(envelope))

    await eventually(lambda: received)
    assert received == [envelope]


@pytest.mark.asyncio
async def test_channel_send_round_trips(realtime):
    received = []

    async def on_message(envelope):
        received.append(envelope["payload"])

    await realtime.connect()
    channel = await realtime.channel("conversation:c1").on(
        "broadcast", {"event": "new_message"}, on_message
    ).subscribe()
    await eventually(lambda: realtime._pubsub.subscribed)

    assert await channel.send("new_message", {"id": "m1"}) is True

    await eventually(lambda: received)
    assert received == [{"id": "m1"}]


@pytest.mark.asyncio
async def test_dispatch_respects_filters():
    client = RealtimeClient()
    inserts, updates = [], []

    async def on_insert(envelope):
        inserts.append(envelope)

    async def on_update(envelope):
        updates.append(envelope)

    channel = (
        client.channel("conversation:c1")
        .on("postgres_changes", {"event": "INSERT", "table": "messages"}, on_insert)
        .on("postgres_changes", {"event": "UPDATE", "table": "messages"}, on_update)
    )

    await channel.dispatch({"type": "postgres_changes", "event": "UPDATE", "table": "messages", "new": {}})
    await channel.dispatch({"type": "postgres_changes", "event": "INSERT", "table": "profiles", "new": {}})

    assert inserts == []
    assert len(updates) == 1


@pytest.mark.asyncio
async def test_failing_callback_does_not_stop_others(caplog):
    caplog.set_level(logging.ERROR)
    client = RealtimeClient()
    received = []

    async def broken(envelope):
        raise ValueError("bad payload")

    async def working(envelope):
        received.append(envelope)

    channel = (
        client.channel("conversation:c1")
        .on("broadcast", {"event": "new_message"}, broken)
        .on("broadcast", {"event": "new_message"}, working)
    )
    await channel.dispatch({"type": "broadcast", "event": "new_message", "payload": {}})

    assert len(received) == 1
    assert "Error in callback for channel 'conversation:c1': bad payload" in caplog.text


@pytest.mark.asyncio
async def test_subscribe_is_idempotent_and_unsubscribe_removes():
    client = RealtimeClient()
    channel = client.channel("conversation:c1")

    await channel.subscribe()
    await channel.subscribe()
    assert client.channel_names == ["conversation:c1"]
    assert channel.is_subscribed is True

    await channel.unsubscribe()
    await channel.unsubscribe()
    assert client.channel_names == []
    assert channel.is_subscribed is False


@pytest.mark.asyncio
async def test_unsubscribed_channel_gets_no_delivery(realtime, publisher):
    received = []

    async def on_message(envelope):
        received.append(envelope)

    await realtime.connect()
    channel = await realtime.channel("conversation:c1").on(
        "broadcast", {"event": "new_message"}, on_message
    ).subscribe()
    await channel.unsubscribe()

    await publisher.publish(
        "conversation:c1", json.dumps({"type": "broadcast", "event": "new_message", "payload": {}})
    )
    await asyncio.sleep(0.1)
    await realtime.wait_idle()

    assert received == []


@pytest.mark.asyncio
async def test_publish_without_connection_returns_false():
    client = RealtimeClient()
    assert await client.publish("conversation:c1", {"type": "broadcast"}) is False


@pytest.mark.asyncio
async def test_reconnect_resubscribes_and_runs_callbacks(realtime):
    await realtime.channel("conversation:c1").subscribe()
    await realtime.channel("conversation:c2").subscribe()
    backfill = AsyncMock()
    realtime.on_reconnect(backfill)
    statuses = []
    realtime.on_status_change(statuses.append)

    realtime._needs_reconnect = True
    await realtime._reconnect()

    assert realtime._needs_reconnect is False
    assert set(realtime._pubsub.channels) == {"conversation:c1", "conversation:c2"}
    backfill.assert_awaited_once()
    assert statuses == [True]


@pytest.mark.asyncio
async def test_close_drops_channels(realtime):
    await realtime.connect()
    await realtime.channel("conversation:c1").subscribe()

    await realtime.close()

    assert realtime.channel_names == []
    assert realtime.is_connected is False
