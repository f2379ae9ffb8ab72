# messaging_client/realtime.py
import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from messaging_client.logger import get_logger

EnvelopeCallback = Callable[[dict[str, Any]], Awaitable[None]]


class RealtimeChannel:
    """One named pub/sub channel with event bindings.

    Envelopes are JSON objects. Broadcasts look like
    ``{"type": "broadcast", "event": "new_message", "payload": {...}}`` and
    change-feed rows like ``{"type": "postgres_changes", "event": "INSERT",
    "table": "messages", "new": {...}}``.
    """

    def __init__(self, name: str, client: "RealtimeClient"):
        self.name = name
        self._client = client
        self._bindings: list[tuple[str, dict[str, Any], EnvelopeCallback]] = []

    @property
    def is_subscribed(self) -> bool:
        return self._client.is_registered(self)

    def on(self, event_type: str, filter: dict[str, Any], callback: EnvelopeCallback) -> "RealtimeChannel":
        self._bindings.append((event_type, filter, callback))
        return self

    async def subscribe(self) -> "RealtimeChannel":
        await self._client._subscribe(self)
        return self

    async def unsubscribe(self) -> None:
        await self._client._unsubscribe(self)

    async def send(self, event: str, payload: dict[str, Any]) -> bool:
        return await self._client.publish(
            self.name, {"type": "broadcast", "event": event, "payload": payload}
        )

    async def dispatch(self, envelope: dict[str, Any]) -> None:
        for event_type, filter, callback in list(self._bindings):
            if envelope.get("type") != event_type:
                continue
            if any(envelope.get(key) != value for key, value in filter.items()):
                continue
            try:
                await callback(envelope)
            except Exception as e:
                self._client.logger.error(
                    f"Error in callback for channel '{self.name}': {str(e)}"
                )


class RealtimeClient:
    """Redis pub/sub transport shared by every channel of a session.

    A single listener task reads the pub/sub connection; each delivered
    envelope is handled in its own task so a slow handler does not hold up the
    others. On a connection error the client waits, reconnects, re-subscribes
    every registered channel and then runs the reconnect callbacks.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        reconnect_delay: float = 5.0,
        redis_factory: Optional[Callable[[], redis.Redis]] = None,
    ):
        self.host = host
        self.port = port
        self.reconnect_delay = reconnect_delay
        self._redis_factory = redis_factory or self._default_factory
        self._redis: Optional[redis.Redis] = None
        self._pubsub = None
        self._channels: dict[str, RealtimeChannel] = {}
        self._listener: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._reconnect_callbacks: list[Callable[[], Awaitable[None]]] = []
        self._status_callbacks: list[Callable[[bool], None]] = []
        self._closed = False
        self._needs_reconnect = False
        self.logger = get_logger("RealtimeClient")

    def _default_factory(self) -> redis.Redis:
        return redis.Redis(
            host=self.host,
            port=self.port,
            db=0,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    @property
    def is_connected(self) -> bool:
        return self._pubsub is not None

    async def connect(self) -> bool:
        self._closed = False
        try:
            self._redis = self._redis_factory()
            await self._redis.ping()
            self._pubsub = self._redis.pubsub()
            for name in self._channels:
                await self._pubsub.subscribe(name)
        except RedisError as e:
            self.logger.error(
                f"Unable to connect to Redis at {self.host}:{self.port}. ERROR: {str(e)}"
            )
            self._pubsub = None
            self._needs_reconnect = True
            self._start_listener()
            self._notify_status(False)
            return False

        self._start_listener()
        self.logger.info(f"Successfully connected to Redis at {self.host}:{self.port}")
        self._notify_status(True)
        return True

    def _start_listener(self) -> None:
        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(self._listen())

    def on_reconnect(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._reconnect_callbacks.append(callback)

    def on_status_change(self, callback: Callable[[bool], None]) -> None:
        self._status_callbacks.append(callback)

    def _notify_status(self, connected: bool) -> None:
        for callback in self._status_callbacks:
            try:
                callback(connected)
            except Exception as e:
                self.logger.error(f"Error in connection status callback: {str(e)}")

    # Channels
    def channel(self, name: str) -> RealtimeChannel:
        return RealtimeChannel(name, self)

    def is_registered(self, channel: RealtimeChannel) -> bool:
        return self._channels.get(channel.name) is channel

    @property
    def channel_names(self) -> list[str]:
        return list(self._channels)

    async def _subscribe(self, channel: RealtimeChannel) -> None:
        if self.is_registered(channel):
            return
        self._channels[channel.name] = channel
        if self._pubsub is not None:
            try:
                await self._pubsub.subscribe(channel.name)
            except RedisError as e:
                # Stays registered; re-subscribed after reconnect
                self.logger.error(f"Failed to subscribe to '{channel.name}': {str(e)}")
                return
        self.logger.info(f"Subscribed to Redis channel '{channel.name}'")

    async def _unsubscribe(self, channel: RealtimeChannel) -> None:
        if not self.is_registered(channel):
            return
        del self._channels[channel.name]
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(channel.name)
            except RedisError as e:
                self.logger.error(f"Failed to unsubscribe from '{channel.name}': {str(e)}")
        self.logger.info(f"Unsubscribed from Redis channel '{channel.name}'")

    async def publish(self, name: str, envelope: dict[str, Any]) -> bool:
        if self._redis is None:
            self.logger.error("Cannot publish. Redis client is not connected.")
            return False
        try:
            await self._redis.publish(name, json.dumps(envelope, default=str))
        except RedisError as e:
            self.logger.error(f"Failed to publish to '{name}': {str(e)}")
            return False
        return True

    # Delivery
    async def _listen(self) -> None:
        while not self._closed:
            try:
                if self._needs_reconnect:
                    await self._reconnect()
                    continue
                if self._pubsub is None or not self._pubsub.subscribed:
                    await asyncio.sleep(0.1)
                    continue
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
                if message is not None:
                    self._deliver(message)
            except RedisConnectionError as e:
                self.logger.error(
                    f"Redis connection error: {str(e)}. Attempting to reconnect in "
                    f"{self.reconnect_delay} seconds..."
                )
                self._notify_status(False)
                self._needs_reconnect = True
                await asyncio.sleep(self.reconnect_delay)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error(f"Unexpected error in pubsub listener: {str(e)}. Continuing...")

    def _deliver(self, message: dict[str, Any]) -> None:
        if message.get("type") != "message":
            return
        name = message["channel"]
        if isinstance(name, bytes):
            name = name.decode()
        channel = self._channels.get(name)
        if channel is None:
            return
        try:
            envelope = json.loads(message["data"])
        except (json.JSONDecodeError, TypeError) as e:
            self.logger.error(f"Error decoding message on '{name}': {str(e)}")
            return

        task = asyncio.create_task(channel.dispatch(envelope))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _reconnect(self) -> None:
        await self._close_connection()
        try:
            self._redis = self._redis_factory()
            await self._redis.ping()
            self._pubsub = self._redis.pubsub()
            for name in self._channels:
                await self._pubsub.subscribe(name)
                self.logger.info(f"Resubscribed to Redis channel '{name}'")
        except RedisError as e:
            self.logger.error(
                f"Failed to reconnect to Redis: {str(e)}. Will retry in "
                f"{self.reconnect_delay} seconds."
            )
            self._pubsub = None
            await asyncio.sleep(self.reconnect_delay)
            return

        self._needs_reconnect = False
        self.logger.info(f"Reconnected to Redis at {self.host}:{self.port}")
        self._notify_status(True)
        for callback in list(self._reconnect_callbacks):
            try:
                await callback()
            except Exception as e:
                self.logger.error(f"Error in reconnect callback: {str(e)}")

    async def wait_idle(self) -> None:
        """Wait until every delivered envelope has been handled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _close_connection(self) -> None:
        pubsub, client = self._pubsub, self._redis
        self._pubsub = None
        self._redis = None
        if pubsub is not None:
            try:
                await pubsub.aclose()
            except RedisError:
                pass  # Connection already gone
        if client is not None:
            try:
                await client.aclose()
            except RedisError:
                pass

    async def close(self) -> None:
        """Stops the listener, drops every channel and closes the connection."""
        self._closed = True
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._channels.clear()
        await self._close_connection()
        self.logger.info("Closed Redis pubsub.")
