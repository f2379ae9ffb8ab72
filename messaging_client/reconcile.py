# messaging_client/reconcile.py
"""Pure helpers that fold server snapshots and realtime events into local lists.

Nothing here touches the network or the state store, so the rules for
de-duplication, ordering and merging can be exercised in isolation.
"""
from typing import Any, Iterable, Optional

from messaging_client.models import Conversation, Message


def sort_by_recency(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Most recently active first. Ties keep their existing order."""
    return sorted(conversations, key=lambda c: c.updated_at, reverse=True)


def append_unique(messages: list[Message], message: Message) -> tuple[list[Message], bool]:
    if any(existing.id == message.id for existing in messages):
        return messages, False
    return [*messages, message], True


def merge_message(
    messages: list[Message], changes: dict[str, Any]
) -> tuple[list[Message], Optional[Message]]:
    """Merge changed fields into the message with the same id.

    Change-feed rows carry no ``sender``; the local profile snapshot is kept.
    """
    message_id = changes.get("id")
    merged: Optional[Message] = None
    result = []
    for existing in messages:
        if existing.id == message_id:
            data = existing.model_dump()
            data.update({k: v for k, v in changes.items() if k in Message.model_fields})
            if data.get("sender") is None:
                data["sender"] = existing.sender
            merged = Message.model_validate(data)
            result.append(merged)
        else:
            result.append(existing)
    return result, merged


def merge_snapshot(snapshot: list[Message], local: list[Message]) -> list[Message]:
    """Combine a fetched page with what realtime delivery already put in place.

    The snapshot decides order. A local copy that was updated later than the
    snapshot's copy wins, and local messages newer than the newest snapshot
    message are kept at the end.
    """
    local_by_id = {m.id: m for m in local}
    merged = []
    for message in snapshot:
        current = local_by_id.get(message.id)
        if current is not None and current.updated_at > message.updated_at:
            merged.append(current)
        else:
            merged.append(message)

    seen = {m.id for m in snapshot}
    newest = max((m.created_at for m in snapshot), default=None)
    extras = [
        m for m in local
        if m.id not in seen and (newest is None or m.created_at > newest)
    ]
    return merged + sorted(extras, key=lambda m: m.created_at)
