# messaging_client/state.py
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from messaging_client.logger import get_logger
from messaging_client.models import Conversation, Message


class StateEvent(Enum):
    """Events that can trigger state changes."""

    CONVERSATIONS_LOADED = "conversations_loaded"
    CONVERSATION_UPDATED = "conversation_updated"
    CURRENT_CONVERSATION_CHANGED = "current_conversation_changed"
    MESSAGES_LOADED = "messages_loaded"
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_UPDATED = "message_updated"
    UNREAD_COUNT_UPDATED = "unread_count_updated"
    ERROR_CHANGED = "error_changed"
    LOADING_CHANGED = "loading_changed"
    CONNECTION_STATUS_CHANGED = "connection_status_changed"


class MessagingState:
    """
    State store for one messaging session using the observer pattern.

    Each session owns its own instance. Everything runs on a single event
    loop, so reads always see the latest write; long-lived realtime handlers
    must read the selection and user from here when they run.
    """

    def __init__(self) -> None:
        self.logger = get_logger("MessagingState")

        self._current_user_id: Optional[str] = None
        self._conversations: List[Conversation] = []
        self._current_conversation_id: Optional[str] = None
        self._messages: List[Message] = []
        self._total_unread_count: int = 0
        self._loading: bool = False
        self._error: Optional[str] = None
        self._is_connected: bool = True

        self._observers: Dict[StateEvent, List[Callable]] = {
            event: [] for event in StateEvent
        }

    # Observer pattern methods
    def subscribe(self, event: StateEvent, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Subscribe to state changes for a specific event."""
        if callback not in self._observers[event]:
            self._observers[event].append(callback)

    def unsubscribe(self, event: StateEvent, callback: Callable[[Dict[str, Any]], None]) -> None:
        if callback in self._observers[event]:
            self._observers[event].remove(callback)

    def _notify_observers(self, event: StateEvent, data: Dict[str, Any]) -> None:
        for callback in self._observers[event].copy():
            try:
                callback(data)
            except Exception as e:
                self.logger.error(
                    f"Error in observer callback for {event.value}: {str(e)}"
                )

    # User
    @property
    def current_user_id(self) -> Optional[str]:
        return self._current_user_id

    def set_current_user(self, user_id: Optional[str]) -> None:
        self._current_user_id = user_id

    # Conversations
    @property
    def conversations(self) -> List[Conversation]:
        return list(self._conversations)

    def get_conversation(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def set_conversations(self, conversations: List[Conversation]) -> None:
        """Set the complete conversation list and notify observers."""
        self._conversations = list(conversations)
        self._notify_observers(
            StateEvent.CONVERSATIONS_LOADED, {"conversations": self.conversations}
        )
        self.logger.info(f"Loaded {len(self._conversations)} conversations")

    def update_conversation(self, conversation: Conversation) -> None:
        """Replace a conversation in place; unknown ids are ignored."""
        for i, existing in enumerate(self._conversations):
            if existing.id == conversation.id:
                self._conversations[i] = conversation
                break
        else:
            return
        self._notify_observers(
            StateEvent.CONVERSATION_UPDATED,
            {"conversation_id": conversation.id, "conversation": conversation},
        )

    def reorder_conversations(self, conversations: List[Conversation]) -> None:
        """Replace the list after a local change such as a re-sort."""
        self._conversations = list(conversations)
        self._notify_observers(
            StateEvent.CONVERSATIONS_LOADED, {"conversations": self.conversations}
        )

    def remove_conversation(self, conversation_id: str) -> Optional[Conversation]:
        removed = self.get_conversation(conversation_id)
        if removed is None:
            return None
        self._conversations = [c for c in self._conversations if c.id != conversation_id]
        self._notify_observers(
            StateEvent.CONVERSATIONS_LOADED, {"conversations": self.conversations}
        )
        return removed

    # Selection
    @property
    def current_conversation_id(self) -> Optional[str]:
        return self._current_conversation_id

    @property
    def current_conversation(self) -> Optional[Conversation]:
        return self.get_conversation(self._current_conversation_id)

    def set_current_conversation(self, conversation_id: Optional[str]) -> None:
        old_conversation_id = self._current_conversation_id
        self._current_conversation_id = conversation_id

        if old_conversation_id != conversation_id:
            self._notify_observers(
                StateEvent.CURRENT_CONVERSATION_CHANGED,
                {
                    "old_conversation_id": old_conversation_id,
                    "new_conversation_id": conversation_id,
                },
            )
            self.logger.info(
                f"Current conversation changed from {old_conversation_id} to {conversation_id}"
            )

    # Messages of the selected conversation
    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def set_messages(self, messages: List[Message]) -> None:
        self._messages = list(messages)
        self._notify_observers(StateEvent.MESSAGES_LOADED, {"messages": self.messages})

    def add_message(self, message: Message) -> None:
        self._messages.append(message)
        self._notify_observers(StateEvent.MESSAGE_RECEIVED, {"message": message})

    def apply_message_update(self, messages: List[Message], message: Message) -> None:
        self._messages = list(messages)
        self._notify_observers(StateEvent.MESSAGE_UPDATED, {"message": message})

    # Unread counts
    @property
    def total_unread_count(self) -> int:
        return self._total_unread_count

    def set_total_unread_count(self, count: int) -> None:
        count = max(0, count)
        old_count = self._total_unread_count
        self._total_unread_count = count
        if old_count != count:
            self._notify_observers(
                StateEvent.UNREAD_COUNT_UPDATED,
                {"old_count": old_count, "new_count": count},
            )

    # Status fields
    @property
    def loading(self) -> bool:
        return self._loading

    def set_loading(self, loading: bool) -> None:
        if self._loading != loading:
            self._loading = loading
            self._notify_observers(StateEvent.LOADING_CHANGED, {"loading": loading})

    @property
    def error(self) -> Optional[str]:
        return self._error

    def set_error(self, error: Optional[str]) -> None:
        if self._error != error:
            self._error = error
            self._notify_observers(StateEvent.ERROR_CHANGED, {"error": error})

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    def set_connection_status(self, connected: bool) -> None:
        old_status = self._is_connected
        self._is_connected = connected
        if old_status != connected:
            self._notify_observers(
                StateEvent.CONNECTION_STATUS_CHANGED,
                {"old_status": old_status, "new_status": connected},
            )
            self.logger.info(f"Connection status changed: {connected}")

    def clear_all_state(self) -> None:
        """Clear all state (session end)."""
        self._current_user_id = None
        self._conversations = []
        self._current_conversation_id = None
        self._messages = []
        self._total_unread_count = 0
        self._loading = False
        self._error = None
        self._is_connected = True

        self.logger.info("All state cleared")
