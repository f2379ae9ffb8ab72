# messaging_client/core.py
from functools import partial
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from messaging_client.api_client import ApiClient, ApiResponse
from messaging_client.exceptions import (
    NOT_AUTHENTICATED,
    MessagingError,
    NotAuthenticatedError,
    SendMessageError,
    SendTimeoutError,
)
from messaging_client.logger import get_logger
from messaging_client.models import Conversation, Message, Profile
from messaging_client.notifications import NotificationSound
from messaging_client.realtime import RealtimeChannel, RealtimeClient
from messaging_client.reconcile import (
    append_unique,
    merge_message,
    merge_snapshot,
    sort_by_recency,
)
from messaging_client.state import MessagingState

# Per conversation; older ids fall out once a conversation has seen this many
MAX_SEEN_MESSAGE_IDS = 500


def conversation_channel(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


def failure_message(response: ApiResponse, fallback: str) -> str:
    if not response.authenticated:
        return NOT_AUTHENTICATED
    return response.error or fallback


class MessagingCore:
    """
    Per-session controller for conversations, messages and unread counts.

    Coordinates the REST client, the realtime channels and the state store.
    Every conversation in the list has one realtime channel carrying two
    sources for the same messages: broadcasts from the sending client and
    the database change-feed. Both are folded into state by message id, so
    a message shows up once whichever source delivers it first.
    """

    def __init__(
        self,
        api_client: ApiClient,
        realtime: RealtimeClient,
        state: Optional[MessagingState] = None,
        notification_sound: Optional[NotificationSound] = None,
        send_timeout: float = 15.0,
    ) -> None:
        self.api_client = api_client
        self.realtime = realtime
        self.state = state or MessagingState()
        self.notification_sound = notification_sound or NotificationSound()
        self.send_timeout = send_timeout
        self.logger = get_logger("MessagingCore")

        # Keyed by conversation id
        self._channels: dict[str, RealtimeChannel] = {}
        self._seen_message_ids: dict[str, dict[str, None]] = {}
        self._profiles: dict[str, Profile] = {}

        self.realtime.on_reconnect(self._backfill)
        self.realtime.on_status_change(self.state.set_connection_status)

    # Session lifecycle
    async def start(self, user_id: str) -> None:
        self.state.set_current_user(user_id)
        await self.realtime.connect()
        await self.fetch_conversations()

    async def close(self) -> None:
        for conversation_id in list(self._channels):
            await self.unsubscribe_from_conversation(conversation_id)
        await self.realtime.close()
        await self.api_client.close()
        self._seen_message_ids.clear()
        self._profiles.clear()
        self.state.clear_all_state()

    # Snapshots
    async def fetch_conversations(self) -> None:
        if not self.state.current_user_id:
            return

        self.state.set_loading(True)
        self.state.set_error(None)
        try:
            response = await self.api_client.get_conversations()
            if not response.success:
                self.state.set_error(
                    failure_message(response, "Failed to fetch conversations")
                )
                return

            conversations = [Conversation.model_validate(c) for c in response.data or []]
            for conversation in conversations:
                if conversation.last_message:
                    self._mark_seen(conversation.id, [conversation.last_message.id])
            self.state.set_conversations(conversations)
            self.state.set_total_unread_count(sum(c.unread_count for c in conversations))
            await self.reconcile_subscriptions()
        except ValidationError as e:
            self.logger.error(f"Error fetching conversations: {str(e)}")
            self.state.set_error("Failed to fetch conversations")
        finally:
            self.state.set_loading(False)

    async def fetch_messages(self, conversation_id: str) -> None:
        """Load history and merge it with what realtime already delivered.

        The result only lands in state when the conversation is still the
        selected one once the response arrives.
        """
        if not self.state.current_user_id:
            return

        self.state.set_loading(True)
        self.state.set_error(None)
        try:
            response = await self.api_client.get_messages(conversation_id)
            if not response.success:
                self.state.set_error(failure_message(response, "Failed to fetch messages"))
                return

            snapshot = [Message.model_validate(m) for m in response.data or []]
            self._mark_seen(conversation_id, (m.id for m in snapshot))

            if self.state.current_conversation_id != conversation_id:
                self.logger.info(
                    f"Discarding messages for {conversation_id}, no longer selected"
                )
                return

            local = [
                m for m in self.state.messages if m.conversation_id == conversation_id
            ]
            self.state.set_messages(merge_snapshot(snapshot, local))
        except ValidationError as e:
            self.logger.error(f"Error fetching messages: {str(e)}")
            self.state.set_error("Failed to fetch messages")
        finally:
            self.state.set_loading(False)

    async def fetch_total_unread_count(self) -> None:
        response = await self.api_client.get_unread_count()
        if not response.success:
            self.state.set_error(failure_message(response, "Failed to fetch unread count"))
            return
        count = response.data.get("count") if isinstance(response.data, dict) else None
        if not isinstance(count, int):
            self.logger.error(f"Unexpected unread count payload: {response.data!r}")
            self.state.set_error("Failed to fetch unread count")
            return
        self.state.set_total_unread_count(count)

    # Selection
    async def select_conversation(self, conversation_id: Optional[str]) -> None:
        # Called from a user action, so the sound may play from now on
        self.notification_sound.unlock()

        if conversation_id is None:
            self.state.set_current_conversation(None)
            self.state.set_messages([])
            return

        conversation = self.state.get_conversation(conversation_id)
        if conversation is None:
            self.state.set_current_conversation(None)
            self.state.set_messages([])
            return

        self.state.set_current_conversation(conversation_id)
        self.state.set_messages(
            [m for m in self.state.messages if m.conversation_id == conversation_id]
        )
        await self.fetch_messages(conversation_id)

        conversation = self.state.get_conversation(conversation_id)
        if conversation is not None and conversation.unread_count > 0:
            await self.mark_as_read(conversation_id)

    # Actions
    async def send_message(self, content: str) -> Optional[Message]:
        conversation_id = self.state.current_conversation_id
        if not conversation_id or not self.state.current_user_id:
            return None

        self.notification_sound.unlock()
        response = await self.api_client.send_message(
            conversation_id, content, timeout=self.send_timeout
        )
        if not response.success:
            if not response.authenticated:
                self.state.set_error(NOT_AUTHENTICATED)
                return None
            if response.timed_out:
                error: SendMessageError = SendTimeoutError()
            else:
                error = SendMessageError(
                    response.error or f"Failed to send message ({response.status_code})"
                )
            self.logger.error(f"Error sending message: {str(error)}")
            self.state.set_error(str(error))
            raise error

        message = Message.model_validate(response.data)
        self._mark_seen(conversation_id, [message.id])

        if self.state.current_conversation_id == conversation_id:
            _, added = append_unique(self.state.messages, message)
            if added:
                self.state.add_message(message)
        self._touch_conversation(conversation_id, message, count_unread=False)

        channel = self._channels.get(conversation_id)
        if channel is not None:
            await channel.send("new_message", message.model_dump(mode="json"))
        return message

    async def mark_as_read(self, conversation_id: str) -> None:
        if not self.state.current_user_id:
            return

        response = await self.api_client.mark_as_read(conversation_id)
        if not response.success:
            error = failure_message(response, "Failed to mark conversation as read")
            self.logger.error(f"Error marking as read: {error}")
            self.state.set_error(error)
            return

        # Read after the request so increments that arrived meanwhile are cleared too
        conversation = self.state.get_conversation(conversation_id)
        if conversation is None:
            return
        cleared = conversation.unread_count
        self.state.update_conversation(conversation.model_copy(update={"unread_count": 0}))
        self.state.set_total_unread_count(self.state.total_unread_count - cleared)

    async def create_conversation(
        self, participant_ids: list[str], name: Optional[str] = None, is_group: bool = False
    ) -> Conversation:
        if not self.state.current_user_id:
            raise NotAuthenticatedError()

        response = await self.api_client.create_conversation(participant_ids, name, is_group)
        if not response.success:
            if not response.authenticated:
                raise NotAuthenticatedError()
            raise MessagingError(response.error or "Failed to create conversation")

        conversation = Conversation.model_validate(response.data)
        await self.fetch_conversations()
        return conversation

    async def edit_message(
        self, message_id: str, content: str, conversation_id: Optional[str] = None
    ) -> Message:
        conversation_id = conversation_id or self.state.current_conversation_id
        if not conversation_id:
            raise MessagingError("No conversation selected")

        response = await self.api_client.edit_message(conversation_id, message_id, content)
        if not response.success:
            if not response.authenticated:
                raise NotAuthenticatedError()
            raise MessagingError(response.error or "Failed to edit message")

        message = Message.model_validate(response.data)
        await self._broadcast_update(conversation_id, message)
        return message

    async def delete_message(
        self, message_id: str, conversation_id: Optional[str] = None
    ) -> Message:
        conversation_id = conversation_id or self.state.current_conversation_id
        if not conversation_id:
            raise MessagingError("No conversation selected")

        response = await self.api_client.delete_message(conversation_id, message_id)
        if not response.success:
            if not response.authenticated:
                raise NotAuthenticatedError()
            raise MessagingError(response.error or "Failed to delete message")

        message = Message.model_validate(response.data)
        await self._broadcast_update(conversation_id, message)
        return message

    async def leave_conversation(self, conversation_id: str) -> None:
        response = await self.api_client.leave_conversation(conversation_id)
        if not response.success:
            if not response.authenticated:
                raise NotAuthenticatedError()
            raise MessagingError(response.error or "Failed to leave conversation")

        await self.unsubscribe_from_conversation(conversation_id)
        removed = self.state.remove_conversation(conversation_id)
        if self.state.current_conversation_id == conversation_id:
            self.state.set_current_conversation(None)
            self.state.set_messages([])
        if removed is not None:
            self.state.set_total_unread_count(
                self.state.total_unread_count - removed.unread_count
            )

    # Subscriptions
    async def subscribe_to_conversation(self, conversation_id: str) -> None:
        if conversation_id in self._channels:
            return

        channel = (
            self.realtime.channel(conversation_channel(conversation_id))
            .on("broadcast", {"event": "new_message"},
                partial(self._handle_broadcast_message, conversation_id))
            .on("broadcast", {"event": "message_updated"},
                partial(self._handle_broadcast_update, conversation_id))
            .on("postgres_changes", {"event": "INSERT", "table": "messages"},
                partial(self._handle_inserted_row, conversation_id))
            .on("postgres_changes", {"event": "UPDATE", "table": "messages"},
                partial(self._handle_updated_row, conversation_id))
        )
        # Registered before the await so a concurrent call sees it
        self._channels[conversation_id] = channel
        await channel.subscribe()

    async def unsubscribe_from_conversation(self, conversation_id: str) -> None:
        channel = self._channels.pop(conversation_id, None)
        if channel is None:
            return
        self._seen_message_ids.pop(conversation_id, None)
        await channel.unsubscribe()

    async def reconcile_subscriptions(self) -> None:
        listed = [c.id for c in self.state.conversations]
        for conversation_id in listed:
            await self.subscribe_to_conversation(conversation_id)
        for conversation_id in list(self._channels):
            if conversation_id not in listed:
                await self.unsubscribe_from_conversation(conversation_id)

    @property
    def subscribed_conversation_ids(self) -> list[str]:
        return list(self._channels)

    # Realtime handlers
    async def _handle_broadcast_message(self, conversation_id: str, envelope: dict[str, Any]) -> None:
        message = Message.model_validate(envelope.get("payload") or {})
        await self._receive_message(conversation_id, message)

    async def _handle_inserted_row(self, conversation_id: str, envelope: dict[str, Any]) -> None:
        row = envelope.get("new") or {}
        if row.get("sender_id") == self.state.current_user_id:
            return

        message = Message.model_validate(row)
        if message.sender_id:
            sender = await self._lookup_profile(conversation_id, message.sender_id)
            message = message.model_copy(update={"sender": sender})
        await self._receive_message(conversation_id, message)

    async def _handle_broadcast_update(self, conversation_id: str, envelope: dict[str, Any]) -> None:
        self._apply_update(conversation_id, envelope.get("payload") or {})

    async def _handle_updated_row(self, conversation_id: str, envelope: dict[str, Any]) -> None:
        self._apply_update(conversation_id, envelope.get("new") or {})

    async def _receive_message(self, conversation_id: str, message: Message) -> None:
        # Selection and user are read now, after any awaited lookup
        user_id = self.state.current_user_id
        if user_id is None or message.sender_id == user_id:
            return

        selected = self.state.current_conversation_id == conversation_id
        if selected:
            _, added = append_unique(self.state.messages, message)
            if added:
                self.state.add_message(message)

        if self._is_seen(conversation_id, message.id):
            return
        self._mark_seen(conversation_id, [message.id])

        conversation = self.state.get_conversation(conversation_id)
        if conversation is None:
            return
        self._touch_conversation(conversation_id, message, count_unread=not selected)
        if not selected:
            self.state.set_total_unread_count(self.state.total_unread_count + 1)

        participant = conversation.participant(user_id)
        if participant is None or not participant.is_muted:
            self.notification_sound.play()

    def _apply_update(self, conversation_id: str, changes: dict[str, Any]) -> None:
        if not changes.get("id"):
            return

        if self.state.current_conversation_id == conversation_id:
            messages, merged = merge_message(self.state.messages, changes)
            if merged is not None:
                self.state.apply_message_update(messages, merged)

        conversation = self.state.get_conversation(conversation_id)
        if (
            conversation is not None
            and conversation.last_message is not None
            and conversation.last_message.id == changes["id"]
        ):
            _, last_message = merge_message([conversation.last_message], changes)
            self.state.update_conversation(
                conversation.model_copy(update={"last_message": last_message})
            )

    async def _broadcast_update(self, conversation_id: str, message: Message) -> None:
        payload = message.model_dump(mode="json")
        self._apply_update(conversation_id, payload)
        channel = self._channels.get(conversation_id)
        if channel is not None:
            await channel.send("message_updated", payload)

    def _touch_conversation(self, conversation_id: str, message: Message, count_unread: bool) -> None:
        conversation = self.state.get_conversation(conversation_id)
        if conversation is None:
            return

        updates: dict[str, Any] = {
            "last_message": message,
            "updated_at": message.created_at,
        }
        if count_unread:
            updates["unread_count"] = conversation.unread_count + 1
        self.state.update_conversation(conversation.model_copy(update=updates))
        self.state.reorder_conversations(sort_by_recency(self.state.conversations))

    async def _lookup_profile(self, conversation_id: str, user_id: str) -> Optional[Profile]:
        if user_id in self._profiles:
            return self._profiles[user_id]

        conversation = self.state.get_conversation(conversation_id)
        participant = conversation.participant(user_id) if conversation else None
        if participant is not None and participant.profile is not None:
            self._profiles[user_id] = participant.profile
            return participant.profile

        response = await self.api_client.get_profile(user_id)
        if not response.success:
            self.logger.warning(
                f"Could not load profile {user_id}: {failure_message(response, 'unknown error')}"
            )
            return None
        profile = Profile.model_validate(response.data)
        self._profiles[user_id] = profile
        return profile

    def _is_seen(self, conversation_id: str, message_id: str) -> bool:
        return message_id in self._seen_message_ids.get(conversation_id, {})

    def _mark_seen(self, conversation_id: str, message_ids: Iterable[str]) -> None:
        seen = self._seen_message_ids.setdefault(conversation_id, {})
        for message_id in message_ids:
            seen.pop(message_id, None)
            seen[message_id] = None
        # Dicts keep insertion order, so the oldest ids go first
        for message_id in list(seen)[: max(0, len(seen) - MAX_SEEN_MESSAGE_IDS)]:
            del seen[message_id]

    async def _backfill(self) -> None:
        """Catch up on whatever was missed while realtime was disconnected."""
        self.logger.info("Realtime reconnected, refreshing conversations and messages")
        await self.fetch_conversations()
        conversation_id = self.state.current_conversation_id
        if conversation_id and self.state.get_conversation(conversation_id) is not None:
            await self.fetch_messages(conversation_id)
