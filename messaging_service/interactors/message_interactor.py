# messaging_service/interactors/message_interactor.py
from datetime import datetime
from typing import List, Optional

from messaging_service.config import AppConfig
from messaging_service.gateways.conversation_gateway import ConversationGateway
from messaging_service.gateways.message_gateway import MessageGateway
from messaging_service.infrastructure import schemas


class MessageInteractor:
    def __init__(
        self,
        message_gateway: MessageGateway,
        conversation_gateway: ConversationGateway,
        config: AppConfig,
    ):
        self.message_gateway = message_gateway
        self.conversation_gateway = conversation_gateway
        self.config = config

    async def _ensure_participant(self, conversation_id: str, user_id: str):
        participation = await self.conversation_gateway.get_participation(
            conversation_id, user_id
        )
        if not participation:
            raise PermissionError("Not a participant of this conversation")
        return participation

    def _validate_content(self, content: str) -> str:
        content = (content or "").strip()
        if not content:
            raise ValueError("Message content is required")
        if len(content) > self.config.MESSAGE_MAX_LENGTH:
            raise ValueError(
                f"Message exceeds maximum length of {self.config.MESSAGE_MAX_LENGTH} characters"
            )
        return content

    async def get_messages(
        self,
        conversation_id: str,
        user_id: str,
        limit: Optional[int] = None,
        before: Optional[datetime] = None,
    ) -> List[schemas.Message]:
        await self._ensure_participant(conversation_id, user_id)
        messages = await self.message_gateway.get_all(
            conversation_id, limit or self.config.MESSAGE_PAGE_SIZE, before
        )
        return [schemas.Message.model_validate(message) for message in messages]

    async def send_message(
        self, conversation_id: str, user_id: str, message: schemas.MessageCreate
    ) -> schemas.Message:
        content = self._validate_content(message.content)
        await self._ensure_participant(conversation_id, user_id)

        new_message = await self.message_gateway.create_message(
            conversation_id, user_id, content
        )
        conversation = await self.conversation_gateway.get_conversation(conversation_id)
        conversation.updated_at = new_message.created_at
        await self.conversation_gateway.commit()
        return schemas.Message.model_validate(new_message)

    async def edit_message(
        self,
        conversation_id: str,
        message_id: str,
        user_id: str,
        message_update: schemas.MessageUpdate,
    ) -> schemas.Message:
        content = self._validate_content(message_update.content)
        message = await self.message_gateway.get_message(message_id, conversation_id)
        if not message or message.sender_id != user_id or message.is_deleted:
            raise PermissionError("Message not found or not authorized")

        updated = await self.message_gateway.update_message(
            message, content=content, is_edited=True
        )
        await self.conversation_gateway.commit()
        return schemas.Message.model_validate(updated)

    async def delete_message(
        self, conversation_id: str, message_id: str, user_id: str
    ) -> schemas.Message:
        message = await self.message_gateway.get_message(message_id, conversation_id)
        if not message or message.sender_id != user_id:
            raise PermissionError("Message not found or not authorized")

        deleted = await self.message_gateway.update_message(message, is_deleted=True)
        await self.conversation_gateway.commit()
        return schemas.Message.model_validate(deleted)
