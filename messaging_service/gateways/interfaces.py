# messaging_service/gateways/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from messaging_service.infrastructure import models


class IProfileGateway(ABC):
    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[models.Profile]:
        pass

    @abstractmethod
    async def get_profiles(self, user_ids: List[str]) -> List[models.Profile]:
        pass


class IConversationGateway(ABC):
    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[models.Conversation]:
        pass

    @abstractmethod
    async def get_all(self, user_id: str) -> List[models.Conversation]:
        pass

    @abstractmethod
    async def get_participation(
        self, conversation_id: str, user_id: str, active_only: bool = True
    ) -> Optional[models.ConversationParticipant]:
        pass

    @abstractmethod
    async def get_participations(self, user_id: str) -> List[models.ConversationParticipant]:
        pass

    @abstractmethod
    async def find_direct_conversation(
        self, user_id: str, other_user_id: str
    ) -> Optional[models.Conversation]:
        pass

    @abstractmethod
    async def create_conversation(
        self,
        participant_ids: List[str],
        created_by: str,
        name: Optional[str] = None,
        is_group: bool = False,
    ) -> models.Conversation:
        pass

    @abstractmethod
    async def add_participant(
        self, conversation_id: str, user_id: str, role: str = "member"
    ) -> models.ConversationParticipant:
        pass

    @abstractmethod
    async def get_last_message(self, conversation_id: str) -> Optional[models.Message]:
        pass

    @abstractmethod
    async def get_unread_count(
        self, conversation_id: str, user_id: str, since: datetime
    ) -> int:
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def get_message(
        self, message_id: str, conversation_id: str
    ) -> Optional[models.Message]:
        pass

    @abstractmethod
    async def get_all(
        self, conversation_id: str, limit: int = 50, before: Optional[datetime] = None
    ) -> List[models.Message]:
        pass

    @abstractmethod
    async def create_message(
        self, conversation_id: str, sender_id: str, content: str
    ) -> models.Message:
        pass

    @abstractmethod
    async def update_message(self, message: models.Message, **values) -> models.Message:
        pass
