# messaging_service/gateways/conversation_gateway.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from messaging_service.gateways.interfaces import IConversationGateway
from messaging_service.infrastructure import models


class ConversationGateway(IConversationGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_conversation(self, conversation_id: str) -> Optional[models.Conversation]:
        stmt = (
            select(models.Conversation)
            .options(selectinload(models.Conversation.participants))
            .filter(models.Conversation.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all(self, user_id: str) -> List[models.Conversation]:
        stmt = (
            select(models.Conversation)
            .join(models.Conversation.participants)
            .options(selectinload(models.Conversation.participants))
            .filter(
                models.ConversationParticipant.user_id == user_id,
                models.ConversationParticipant.left_at.is_(None),
            )
            .order_by(models.Conversation.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().unique().all())

    async def get_participation(
        self, conversation_id: str, user_id: str, active_only: bool = True
    ) -> Optional[models.ConversationParticipant]:
        stmt = select(models.ConversationParticipant).filter(
            models.ConversationParticipant.conversation_id == conversation_id,
            models.ConversationParticipant.user_id == user_id,
        )
        if active_only:
            stmt = stmt.filter(models.ConversationParticipant.left_at.is_(None))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_participations(self, user_id: str) -> List[models.ConversationParticipant]:
        stmt = select(models.ConversationParticipant).filter(
            models.ConversationParticipant.user_id == user_id,
            models.ConversationParticipant.left_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_direct_conversation(
        self, user_id: str, other_user_id: str
    ) -> Optional[models.Conversation]:
        stmt = (
            select(models.Conversation)
            .join(models.Conversation.participants)
            .options(selectinload(models.Conversation.participants))
            .filter(
                models.Conversation.is_group.is_(False),
                models.ConversationParticipant.user_id == user_id,
            )
        )
        result = await self.session.execute(stmt)
        wanted = {user_id, other_user_id}
        for conversation in result.scalars().unique().all():
            member_ids = {participant.user_id for participant in conversation.participants}
            if member_ids == wanted:
                return conversation
        return None

    async def create_conversation(
        self,
        participant_ids: List[str],
        created_by: str,
        name: Optional[str] = None,
        is_group: bool = False,
    ) -> models.Conversation:
        conversation = models.Conversation(
            id=models.generate_id(),
            name=name,
            is_group=is_group,
            created_by=created_by,
        )
        self.session.add(conversation)
        for user_id in participant_ids:
            self.session.add(
                models.ConversationParticipant(
                    conversation_id=conversation.id,
                    user_id=user_id,
                    role="admin" if user_id == created_by else "member",
                )
            )
        await self.session.flush()
        return await self.get_conversation(conversation.id)

    async def add_participant(
        self, conversation_id: str, user_id: str, role: str = "member"
    ) -> models.ConversationParticipant:
        participant = models.ConversationParticipant(
            conversation_id=conversation_id, user_id=user_id, role=role
        )
        self.session.add(participant)
        await self.session.flush()
        return participant

    async def get_last_message(self, conversation_id: str) -> Optional[models.Message]:
        stmt = (
            select(models.Message)
            .filter(
                models.Message.conversation_id == conversation_id,
                models.Message.is_deleted.is_(False),
            )
            .order_by(models.Message.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_unread_count(
        self, conversation_id: str, user_id: str, since: datetime
    ) -> int:
        stmt = select(func.count(models.Message.id)).filter(
            models.Message.conversation_id == conversation_id,
            models.Message.is_deleted.is_(False),
            models.Message.sender_id != user_id,
            models.Message.created_at > since,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def commit(self) -> None:
        await self.session.commit()
