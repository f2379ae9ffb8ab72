# messaging_client/models.py
from datetime import datetime
from typing import Optional

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the server as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=pytz.UTC)
    return value.astimezone(pytz.UTC)


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Profile(_Model):
    id: str
    full_name: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Message(_Model):
    id: str
    conversation_id: str
    sender_id: Optional[str] = None
    content: str
    is_edited: bool = False
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime
    sender: Optional[Profile] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class Participant(_Model):
    id: str
    conversation_id: str
    user_id: str
    role: str = "member"
    joined_at: datetime
    left_at: Optional[datetime] = None
    is_muted: bool = False
    last_read_at: datetime
    profile: Optional[Profile] = None

    @field_validator("joined_at", "left_at", "last_read_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value else value


class Conversation(_Model):
    id: str
    name: Optional[str] = None
    is_group: bool = False
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    participants: list[Participant] = Field(default_factory=list)
    last_message: Optional[Message] = None
    unread_count: int = 0

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def participant(self, user_id: Optional[str]) -> Optional[Participant]:
        return next((p for p in self.participants if p.user_id == user_id), None)
