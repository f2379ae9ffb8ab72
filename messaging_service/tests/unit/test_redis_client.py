import json
import logging
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest
import redis

from messaging_service.domain.events import MessageInserted, MessageUpdated
from messaging_service.infrastructure.event_handlers import EventHandlers
from messaging_service.infrastructure.redis_client import RedisClient


@pytest.fixture
def test_logger():
    logger = logging.getLogger("test_redis")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def redis_client(test_logger):
    return RedisClient(host="localhost", port=6379, logger=test_logger)


@pytest.fixture
def event_handlers(redis_client):
    return EventHandlers(redis_client)


def message_event(event_type, **overrides):
    values = dict(
        message_id="m1",
        conversation_id="c1",
        sender_id="u1",
        content="Test message",
        is_edited=False,
        is_deleted=False,
        created_at=datetime(2024, 1, 1, 12, 0, 0),
        updated_at=datetime(2024, 1, 1, 12, 0, 0),
    )
    values.update(overrides)
    return event_type(**values)


@pytest.mark.asyncio
async def test_redis_connect_and_publish(redis_client, caplog):
    caplog.set_level(logging.DEBUG)
    with patch("redis.asyncio.Redis", return_value=AsyncMock()) as mock_redis:
        mock_redis.return_value.ping.return_value = True
        await redis_client.connect()
        assert redis_client.client is not None
        assert (
            f"Successfully connected to Redis at {redis_client.host}:{redis_client.port}"
            in caplog.text
        )

        await redis_client.publish("test_channel", "test_message")
        redis_client.client.publish.assert_called_once_with("test_channel", "test_message")
        assert "Published message to channel test_channel" in caplog.text


@pytest.mark.asyncio
async def test_redis_connect_failure(redis_client, caplog):
    with patch("redis.asyncio.Redis", return_value=AsyncMock()) as mock_redis:
        mock_redis.return_value.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(redis.ConnectionError):
            await redis_client.connect()
    assert "Failed to connect to Redis: refused" in caplog.text
    assert "Redis host: localhost, Redis port: 6379" in caplog.text


@pytest.mark.asyncio
async def test_publish_without_connection(redis_client):
    with pytest.raises(RuntimeError, match="Redis client not connected"):
        await redis_client.publish("test_channel", "test_message")


@pytest.mark.asyncio
async def test_redis_disconnect(redis_client, caplog):
    caplog.set_level(logging.INFO)
    redis_client.client = AsyncMock()
    await redis_client.disconnect()
    redis_client.client.aclose.assert_awaited_once()
    assert "Disconnected from Redis" in caplog.text


@pytest.mark.asyncio
async def test_redis_publish_message_inserted(redis_client, event_handlers, caplog):
    caplog.set_level(logging.DEBUG)
    redis_client.client = AsyncMock()

    await event_handlers.publish_message_inserted(message_event(MessageInserted))

    expected_data = {
        "type": "postgres_changes",
        "event": "INSERT",
        "schema": "public",
        "table": "messages",
        "new": {
            "id": "m1",
            "conversation_id": "c1",
            "sender_id": "u1",
            "content": "Test message",
            "is_edited": False,
            "is_deleted": False,
            "created_at": "2024-01-01T12:00:00",
            "updated_at": "2024-01-01T12:00:00",
        },
    }
    redis_client.client.publish.assert_called_once()
    call_args = redis_client.client.publish.call_args
    assert call_args[0][0] == "conversation:c1"
    assert json.loads(call_args[0][1]) == expected_data
    assert "Published message to channel conversation:c1" in caplog.text


@pytest.mark.asyncio
async def test_redis_publish_message_updated(redis_client, event_handlers):
    redis_client.client = AsyncMock()

    await event_handlers.publish_message_updated(
        message_event(MessageUpdated, content="", is_deleted=True)
    )

    call_args = redis_client.client.publish.call_args
    payload = json.loads(call_args[0][1])
    assert call_args[0][0] == "conversation:c1"
    assert payload["event"] == "UPDATE"
    assert payload["new"]["is_deleted"] is True


@pytest.mark.asyncio
async def test_publish_failure_is_logged(redis_client, event_handlers, caplog):
    redis_client.client = AsyncMock()
    redis_client.client.publish.side_effect = redis.ConnectionError("gone")

    await event_handlers.publish_message_inserted(message_event(MessageInserted))

    assert "Failed to publish INSERT on conversation:c1: gone" in caplog.text
