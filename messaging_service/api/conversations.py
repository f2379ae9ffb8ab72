# messaging_service/api/conversations.py
from fastapi import APIRouter, Depends, HTTPException, status

from messaging_service.api.dependencies import (
    get_conversation_interactor,
    get_current_user,
)
from messaging_service.api.errors import to_http_exception
from messaging_service.infrastructure import schemas
from messaging_service.interactors.conversation_interactor import ConversationInteractor

router = APIRouter()


@router.get("", response_model=schemas.DataResponse[list[schemas.Conversation]])
async def read_conversations(
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    conversations = await conversation_interactor.get_conversations(current_user.id)
    return {"data": conversations}


@router.post(
    "",
    response_model=schemas.DataResponse[schemas.Conversation],
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    conversation: schemas.ConversationCreate,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        new_conversation = await conversation_interactor.create_conversation(
            conversation, current_user.id
        )
    except (ValueError, LookupError) as e:
        raise to_http_exception(e)
    return {"data": new_conversation}


@router.get("/unread-count", response_model=schemas.DataResponse[schemas.UnreadCount])
async def read_unread_count(
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    count = await conversation_interactor.get_total_unread_count(current_user.id)
    return {"data": {"count": count}}


@router.get("/{conversation_id}", response_model=schemas.DataResponse[schemas.Conversation])
async def read_conversation(
    conversation_id: str,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    conversation = await conversation_interactor.get_conversation(
        conversation_id, current_user.id
    )
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"data": conversation}


@router.put("/{conversation_id}", response_model=schemas.DataResponse[schemas.Conversation])
async def update_conversation(
    conversation_id: str,
    conversation_update: schemas.ConversationUpdate,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        conversation = await conversation_interactor.update_conversation(
            conversation_id, current_user.id, conversation_update
        )
    except (ValueError, LookupError, PermissionError) as e:
        raise to_http_exception(e)
    return {"data": conversation}


@router.delete("/{conversation_id}", response_model=schemas.SuccessResponse)
async def leave_conversation(
    conversation_id: str,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        await conversation_interactor.leave_conversation(conversation_id, current_user.id)
    except LookupError as e:
        raise to_http_exception(e)
    return schemas.SuccessResponse()


@router.post("/{conversation_id}/read", response_model=schemas.SuccessResponse)
async def mark_as_read(
    conversation_id: str,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        await conversation_interactor.mark_as_read(conversation_id, current_user.id)
    except LookupError as e:
        raise to_http_exception(e)
    return schemas.SuccessResponse()


@router.post(
    "/{conversation_id}/participants",
    response_model=schemas.SuccessResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_participant(
    conversation_id: str,
    participant: schemas.ParticipantAdd,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        await conversation_interactor.add_participant(
            conversation_id, current_user.id, participant.user_id
        )
    except (ValueError, LookupError, PermissionError) as e:
        raise to_http_exception(e)
    return schemas.SuccessResponse()


@router.delete(
    "/{conversation_id}/participants/{user_id}", response_model=schemas.SuccessResponse
)
async def remove_participant(
    conversation_id: str,
    user_id: str,
    conversation_interactor: ConversationInteractor = Depends(get_conversation_interactor),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    try:
        await conversation_interactor.remove_participant(
            conversation_id, current_user.id, user_id
        )
    except (LookupError, PermissionError) as e:
        raise to_http_exception(e)
    return schemas.SuccessResponse()
