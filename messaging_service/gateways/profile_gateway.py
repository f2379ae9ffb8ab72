# messaging_service/gateways/profile_gateway.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.gateways.interfaces import IProfileGateway
from messaging_service.infrastructure import models


class ProfileGateway(IProfileGateway):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_profile(self, user_id: str) -> Optional[models.Profile]:
        return await self.session.get(models.Profile, user_id)

    async def get_profiles(self, user_ids: List[str]) -> List[models.Profile]:
        if not user_ids:
            return []
        stmt = select(models.Profile).filter(models.Profile.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
