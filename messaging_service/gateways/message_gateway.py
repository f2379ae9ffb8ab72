# messaging_service/gateways/message_gateway.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.gateways.interfaces import IMessageGateway
from messaging_service.infrastructure import models


class MessageGateway(IMessageGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_message(
        self, message_id: str, conversation_id: str
    ) -> Optional[models.Message]:
        stmt = select(models.Message).filter(
            models.Message.id == message_id,
            models.Message.conversation_id == conversation_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all(
        self, conversation_id: str, limit: int = 50, before: Optional[datetime] = None
    ) -> List[models.Message]:
        stmt = select(models.Message).filter(
            models.Message.conversation_id == conversation_id
        )
        if before:
            stmt = stmt.filter(models.Message.created_at < before)
        stmt = stmt.order_by(models.Message.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        # Newest page first from the database, chronological for the caller
        return list(reversed(result.scalars().all()))

    async def create_message(
        self, conversation_id: str, sender_id: str, content: str
    ) -> models.Message:
        message = models.Message(
            id=models.generate_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
        )
        self.session.add(message)
        await self.session.flush()
        return await self._reload(message.id)

    async def update_message(self, message: models.Message, **values) -> models.Message:
        for key, value in values.items():
            setattr(message, key, value)
        message.updated_at = models.utcnow()
        await self.session.flush()
        return await self._reload(message.id)

    async def _reload(self, message_id: str) -> models.Message:
        stmt = (
            select(models.Message)
            .filter(models.Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
