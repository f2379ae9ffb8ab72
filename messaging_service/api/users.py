# messaging_service/api/users.py
from fastapi import APIRouter, Depends, HTTPException

from messaging_service.api.dependencies import get_current_user, get_profile_gateway
from messaging_service.gateways.profile_gateway import ProfileGateway
from messaging_service.infrastructure import schemas

router = APIRouter()


@router.get("/{user_id}", response_model=schemas.DataResponse[schemas.ProfileBasic])
async def read_user(
    user_id: str,
    profile_gateway: ProfileGateway = Depends(get_profile_gateway),
    current_user: schemas.ProfileBasic = Depends(get_current_user),
):
    profile = await profile_gateway.get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return {"data": schemas.ProfileBasic.model_validate(profile)}
