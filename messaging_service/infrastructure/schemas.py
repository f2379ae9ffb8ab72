# messaging_service/infrastructure/schemas.py
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ProfileBasic(BaseModel):
    id: str
    full_name: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class Participant(BaseModel):
    id: str
    conversation_id: str
    user_id: str
    role: str
    joined_at: datetime
    left_at: datetime | None = None
    is_muted: bool
    last_read_at: datetime
    profile: ProfileBasic | None = None

    model_config = ConfigDict(from_attributes=True)


class MessageRow(BaseModel):
    """A message exactly as stored, without the denormalized sender."""

    id: str
    conversation_id: str
    sender_id: str | None = None
    content: str
    is_edited: bool
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Message(MessageRow):
    sender: ProfileBasic | None = None


class ConversationBase(BaseModel):
    id: str
    name: str | None = None
    is_group: bool
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Conversation(ConversationBase):
    participants: list[Participant] = Field(default_factory=list)
    last_message: Message | None = None
    unread_count: int = 0


class ConversationCreate(BaseModel):
    participant_ids: list[str] = Field(default_factory=list, alias="participantIds")
    name: str | None = None
    is_group: bool = Field(False, alias="isGroup")

    model_config = ConfigDict(populate_by_name=True)


class ConversationUpdate(BaseModel):
    name: str | None = None
    is_muted: bool | None = Field(None, alias="isMuted")

    model_config = ConfigDict(populate_by_name=True)


class ParticipantAdd(BaseModel):
    user_id: str = Field(..., alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class MessageCreate(BaseModel):
    content: str


class MessageUpdate(BaseModel):
    content: str


class UnreadCount(BaseModel):
    count: int


class DataResponse(BaseModel, Generic[T]):
    data: T


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str
