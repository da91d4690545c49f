"""Profile API controller for the signed-in user's own account."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.user.service import UserService
from app.schemas.base import ResponseSchema
from app.schemas.user import (
    ChangePasswordRequest,
    UpdateAvatarRequest,
    UpdateNameRequest,
    UpdateUsernameRequest,
    UserResponse,
)
from models import User

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("", response_model=ResponseSchema)
async def get_profile(current_user: User = Depends(get_current_user)):
    return ResponseSchema(
        status="success",
        message="Profile retrieved successfully",
        data=UserResponse.model_validate(current_user).model_dump(),
    )


@router.put("/name", response_model=ResponseSchema)
async def update_name(
    payload: UpdateNameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).update_name(current_user, payload.full_name)
    return ResponseSchema(
        status="success",
        message="Name updated successfully",
        data=UserResponse.model_validate(user).model_dump(),
    )


@router.put("/username", response_model=ResponseSchema)
async def update_username(
    payload: UpdateUsernameRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).update_username(current_user, payload.username)
    return ResponseSchema(
        status="success",
        message="Username updated successfully",
        data=UserResponse.model_validate(user).model_dump(),
    )


@router.put("/avatar", response_model=ResponseSchema)
async def update_avatar(
    payload: UpdateAvatarRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).update_avatar(current_user, str(payload.avatar_url))
    return ResponseSchema(
        status="success",
        message="Avatar updated successfully",
        data=UserResponse.model_validate(user).model_dump(),
    )


@router.put("/password", response_model=ResponseSchema)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).change_password(
        current_user, payload.current_password, payload.new_password
    )
    return ResponseSchema(status="success", message="Password updated successfully", data=None)


@router.delete("", response_model=ResponseSchema)
async def delete_account(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the account together with every project it owns."""
    await UserService(db).delete_account(current_user)
    return ResponseSchema(status="success", message="Account deleted successfully", data=None)
