# messaging_service/api/dependencies.py
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from messaging_service.config import AppConfig
from messaging_service.gateways.conversation_gateway import ConversationGateway
from messaging_service.gateways.message_gateway import MessageGateway
from messaging_service.gateways.profile_gateway import ProfileGateway
from messaging_service.infrastructure import schemas
from messaging_service.infrastructure.event_dispatcher import EventDispatcher
from messaging_service.infrastructure.security import SecurityService
from messaging_service.interactors.conversation_interactor import ConversationInteractor
from messaging_service.interactors.message_interactor import MessageInteractor

bearer_scheme = HTTPBearer(auto_error=False)


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_profile_gateway(session: AsyncSession = Depends(get_session)):
    return ProfileGateway(session)


async def get_conversation_gateway(session: AsyncSession = Depends(get_session)):
    return ConversationGateway(session)


async def get_message_gateway(session: AsyncSession = Depends(get_session)):
    return MessageGateway(session)


async def get_conversation_interactor(
    conversation_gateway: ConversationGateway = Depends(get_conversation_gateway),
    profile_gateway: ProfileGateway = Depends(get_profile_gateway),
    config: AppConfig = Depends(get_config),
):
    return ConversationInteractor(conversation_gateway, profile_gateway, config)


async def get_message_interactor(
    message_gateway: MessageGateway = Depends(get_message_gateway),
    conversation_gateway: ConversationGateway = Depends(get_conversation_gateway),
    config: AppConfig = Depends(get_config),
):
    return MessageInteractor(message_gateway, conversation_gateway, config)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    security_service: SecurityService = Depends(get_security_service),
    profile_gateway: ProfileGateway = Depends(get_profile_gateway),
) -> schemas.ProfileBasic:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = security_service.decode_access_token(credentials.credentials)
    profile = await profile_gateway.get_profile(user_id) if user_id else None
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return schemas.ProfileBasic.model_validate(profile)
