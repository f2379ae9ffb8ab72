# messaging_service/infrastructure/event_handlers.py
from typing import Any

from redis.exceptions import RedisError

from messaging_service.domain.events import MessageEvent, MessageInserted, MessageUpdated


def conversation_channel(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


class EventHandlers:
    """Publishes committed message rows as change-feed envelopes.

    Clients subscribed to ``conversation:{id}`` receive
    ``{"type": "postgres_changes", "event": "INSERT" | "UPDATE", ...}`` with the
    raw row under ``new``. The row carries no sender profile.
    """

    def __init__(self, redis_client):
        self.redis_client = redis_client

    def build_change(self, event: MessageEvent, operation: str) -> dict[str, Any]:
        row = event.model_dump(mode="json")
        row["id"] = row.pop("message_id")
        return {
            "type": "postgres_changes",
            "event": operation,
            "schema": "public",
            "table": "messages",
            "new": row,
        }

    async def _publish_change(self, event: MessageEvent, operation: str):
        channel = conversation_channel(event.conversation_id)
        try:
            await self.redis_client.publish_json(
                channel, self.build_change(event, operation)
            )
        except RedisError as e:
            # The row is already committed; clients recover on their next fetch
            self.redis_client.logger.error(
                f"Failed to publish {operation} on {channel}: {e!s}"
            )

    async def publish_message_inserted(self, event: MessageInserted):
        await self._publish_change(event, "INSERT")

    async def publish_message_updated(self, event: MessageUpdated):
        await self._publish_change(event, "UPDATE")
