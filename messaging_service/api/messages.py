# messaging_service/api/messages.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from messaging_service.api.dependencies import (
    get_current_user,
    get_event_dispatcher,
    get_message_interactor,
)
from messaging_service.api.errors import to_http_exception
from messaging_service.domain.events import MessageEvent, MessageInserted, MessageUpdated
from messaging_service.infrastructure import schemas
from messaging_service.infrastructure.event_dispatcher import EventDispatcher
from messaging_service.interactors.message_interactor import MessageInteractor

router = APIRouter()


def message_event(event_type: type[MessageEvent], message: schemas.Message) -> MessageEvent:
    return event_type(
        message_id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        is_edited=message.is_edited,
        is_deleted=message.is_deleted,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


@router.get(
    "/{conversation_id}/messages",
    response_model=schemas.DataResponse[list[schemas.Message]],
)
async def read_messages(
    conversation_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    before: Optional[datetime] = Query(None, description="Only messages created before"),
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        messages = await message_interactor.get_messages(
            conversation_id, current_user.id, limit, before
        )
    except PermissionError as e:
        raise to_http_exception(e)
    return {"data": messages}


@router.post(
    "/{conversation_id}/messages",
    response_model=schemas.DataResponse[schemas.Message],
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    message: schemas.MessageCreate,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    try:
        new_message = await message_interactor.send_message(
            conversation_id, current_user.id, message
        )
    except (ValueError, PermissionError) as e:
        raise to_http_exception(e)

    await event_dispatcher.dispatch(message_event(MessageInserted, new_message))
    return {"data": new_message}


@router.put(
    "/{conversation_id}/messages/{message_id}",
    response_model=schemas.DataResponse[schemas.Message],
)
async def edit_message(
    conversation_id: str,
    message_id: str,
    message_update: schemas.MessageUpdate,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    try:
        updated_message = await message_interactor.edit_message(
            conversation_id, message_id, current_user.id, message_update
        )
    except (ValueError, PermissionError) as e:
        raise to_http_exception(e)

    await event_dispatcher.dispatch(message_event(MessageUpdated, updated_message))
    return {"data": updated_message}


@router.delete(
    "/{conversation_id}/messages/{message_id}",
    response_model=schemas.DataResponse[schemas.Message],
)
async def delete_message(
    conversation_id: str,
    message_id: str,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    try:
        deleted_message = await message_interactor.delete_message(
            conversation_id, message_id, current_user.id
        )
    except PermissionError as e:
        raise to_http_exception(e)

    await event_dispatcher.dispatch(message_event(MessageUpdated, deleted_message))
    return {"data": deleted_message}
