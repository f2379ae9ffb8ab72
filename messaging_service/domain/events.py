# messaging_service/domain/events.py
from datetime import datetime

from pydantic import BaseModel


class Event(BaseModel):
    pass


class MessageEvent(Event):
    message_id: str
    conversation_id: str
    sender_id: str | None
    content: str
    is_edited: bool
    is_deleted: bool
    created_at: datetime
    updated_at: datetime


class MessageInserted(MessageEvent):
    pass


class MessageUpdated(MessageEvent):
    pass
