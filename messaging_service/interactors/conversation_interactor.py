# messaging_service/interactors/conversation_interactor.py
from datetime import UTC, datetime
from typing import List, Optional

from messaging_service.config import AppConfig
from messaging_service.gateways.conversation_gateway import ConversationGateway
from messaging_service.gateways.profile_gateway import ProfileGateway
from messaging_service.infrastructure import models, schemas


class ConversationInteractor:
    def __init__(
        self,
        conversation_gateway: ConversationGateway,
        profile_gateway: ProfileGateway,
        config: AppConfig,
    ):
        self.conversation_gateway = conversation_gateway
        self.profile_gateway = profile_gateway
        self.config = config

    async def _with_details(
        self, conversation: models.Conversation, user_id: str
    ) -> schemas.Conversation:
        last_message = await self.conversation_gateway.get_last_message(conversation.id)
        participation = next(
            (p for p in conversation.participants if p.user_id == user_id), None
        )
        unread_count = 0
        if participation and participation.last_read_at:
            unread_count = await self.conversation_gateway.get_unread_count(
                conversation.id, user_id, participation.last_read_at
            )
        return schemas.Conversation.model_validate(conversation).model_copy(
            update={
                "last_message": (
                    schemas.Message.model_validate(last_message) if last_message else None
                ),
                "unread_count": unread_count,
            }
        )

    async def get_conversations(self, user_id: str) -> List[schemas.Conversation]:
        conversations = await self.conversation_gateway.get_all(user_id)
        return [await self._with_details(c, user_id) for c in conversations]

    async def get_conversation(
        self, conversation_id: str, user_id: str
    ) -> Optional[schemas.Conversation]:
        participation = await self.conversation_gateway.get_participation(
            conversation_id, user_id
        )
        if not participation:
            return None
        conversation = await self.conversation_gateway.get_conversation(conversation_id)
        if not conversation:
            return None
        return schemas.Conversation.model_validate(conversation)

    async def create_conversation(
        self, data: schemas.ConversationCreate, user_id: str
    ) -> schemas.Conversation:
        if not data.participant_ids:
            raise ValueError("participantIds is required and must be a non-empty array")

        # Creator first, duplicates dropped, order otherwise preserved
        participant_ids = list(dict.fromkeys([user_id, *data.participant_ids]))

        if data.is_group:
            if len(participant_ids) < self.config.GROUP_MIN_PARTICIPANTS:
                raise ValueError(
                    f"Group conversations require at least "
                    f"{self.config.GROUP_MIN_PARTICIPANTS} participants"
                )
            if not data.name or not data.name.strip():
                raise ValueError("Group conversations require a name")

        profiles = await self.profile_gateway.get_profiles(participant_ids)
        if len(profiles) != len(participant_ids):
            raise LookupError("One or more participants not found")

        if not data.is_group and len(participant_ids) == 2:
            existing = await self.conversation_gateway.find_direct_conversation(
                participant_ids[0], participant_ids[1]
            )
            if existing:
                return schemas.Conversation.model_validate(existing)

        conversation = await self.conversation_gateway.create_conversation(
            participant_ids,
            created_by=user_id,
            name=data.name.strip() if data.is_group and data.name else None,
            is_group=data.is_group,
        )
        await self.conversation_gateway.commit()
        return schemas.Conversation.model_validate(conversation)

    async def update_conversation(
        self, conversation_id: str, user_id: str, update: schemas.ConversationUpdate
    ) -> schemas.Conversation:
        participation = await self.conversation_gateway.get_participation(
            conversation_id, user_id
        )
        if not participation:
            raise LookupError("Conversation not found")

        if update.is_muted is not None:
            participation.is_muted = update.is_muted

        if update.name is not None:
            if participation.role != "admin":
                raise PermissionError("Only admins can update group name")
            conversation = await self.conversation_gateway.get_conversation(conversation_id)
            if not conversation.is_group:
                raise ValueError("Only group conversations can be renamed")
            conversation.name = update.name

        await self.conversation_gateway.commit()
        conversation = await self.conversation_gateway.get_conversation(conversation_id)
        return schemas.Conversation.model_validate(conversation)

    async def leave_conversation(self, conversation_id: str, user_id: str) -> None:
        participation = await self.conversation_gateway.get_participation(
            conversation_id, user_id
        )
        if not participation:
            raise LookupError("Conversation not found")
        participation.left_at = datetime.now(UTC)
        await self.conversation_gateway.commit()

    async def mark_as_read(self, conversation_id: str, user_id: str) -> None:
        participation = await self.conversation_gateway.get_participation(
            conversation_id, user_id
        )
        if not participation:
            raise LookupError("Conversation not found")
        participation.last_read_at = datetime.now(UTC)
        await self.conversation_gateway.commit()

    async def add_participant(
        self, conversation_id: str, admin_user_id: str, new_user_id: str
    ) -> None:
        conversation = await self.conversation_gateway.get_conversation(conversation_id)
        if not conversation or not conversation.is_group:
            raise PermissionError("Conversation not found or not a group")

        admin = await self.conversation_gateway.get_participation(
            conversation_id, admin_user_id
        )
        if not admin or admin.role != "admin":
            raise PermissionError("Only admins can add participants")

        if not await self.profile_gateway.get_profile(new_user_id):
            raise LookupError("User not found")

        existing = await self.conversation_gateway.get_participation(
            conversation_id, new_user_id, active_only=False
        )
        if existing and existing.left_at is None:
            raise ValueError("User is already a participant")

        if existing:
            existing.left_at = None
            existing.joined_at = datetime.now(UTC)
        else:
            await self.conversation_gateway.add_participant(conversation_id, new_user_id)
        await self.conversation_gateway.commit()

    async def remove_participant(
        self, conversation_id: str, admin_user_id: str, user_id_to_remove: str
    ) -> None:
        if admin_user_id == user_id_to_remove:
            raise PermissionError("Use leave conversation to leave")

        admin = await self.conversation_gateway.get_participation(
            conversation_id, admin_user_id
        )
        if not admin or admin.role != "admin":
            raise PermissionError("Only admins can remove participants")

        participation = await self.conversation_gateway.get_participation(
            conversation_id, user_id_to_remove
        )
        if not participation:
            raise LookupError("Participant not found")
        participation.left_at = datetime.now(UTC)
        await self.conversation_gateway.commit()

    async def get_total_unread_count(self, user_id: str) -> int:
        total = 0
        for participation in await self.conversation_gateway.get_participations(user_id):
            if participation.last_read_at:
                total += await self.conversation_gateway.get_unread_count(
                    participation.conversation_id, user_id, participation.last_read_at
                )
        return total
