"""Invitation API controller."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db, get_optional_user
from app.domains.invitation.service import InvitationService
from app.schemas.base import ResponseSchema
from app.schemas.invitation import (
    InvitationAcceptResult,
    InvitationCreate,
    InvitationPreview,
    InvitationResponse,
)
from models.user import User

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_invitation(
    data: InvitationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Invite a registered user to a project by email."""

    invitation, email_result = await InvitationService(db).create_invitation(data, current_user)
    return ResponseSchema(
        status="success",
        message="Invitation sent successfully",
        data={
            "invitation": InvitationResponse.model_validate(invitation).model_dump(),
            "email_preview": email_result.preview_url if email_result.is_test_mode else None,
        },
    )


@router.get("/preview/{token}", response_model=ResponseSchema)
async def preview_invitation(
    token: str = Path(..., description="Invitation token"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Summary for the acceptance page; works without signing in."""

    preview = await InvitationService(db).preview_invitation(token, current_user)
    return ResponseSchema(
        status="success",
        message="Invitation retrieved successfully",
        data=InvitationPreview.model_validate(preview).model_dump(),
    )


@router.post("/accept/{token}", response_model=ResponseSchema)
async def accept_invitation(
    token: str = Path(..., description="Invitation token"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await InvitationService(db).accept_invitation(token, current_user)
    return ResponseSchema(
        status="success",
        message="You are already a member of this project"
        if result["already_member"]
        else "Invitation accepted successfully",
        data=InvitationAcceptResult.model_validate(result).model_dump(),
    )


@router.post("/reject/{token}", response_model=ResponseSchema)
async def reject_invitation(
    token: str = Path(..., description="Invitation token"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await InvitationService(db).reject_invitation(token, current_user)
    return ResponseSchema(status="success", message="Invitation rejected", data=None)


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_project_invitations(
    project_id: UUID = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    invitations = await InvitationService(db).get_project_invitations(project_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Invitations retrieved successfully",
        data=[InvitationResponse.model_validate(i).model_dump() for i in invitations],
    )


@router.delete("/{invitation_id}", response_model=ResponseSchema)
async def cancel_invitation(
    invitation_id: UUID = Path(..., description="Invitation ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await InvitationService(db).cancel_invitation(invitation_id, current_user.id)
    return ResponseSchema(status="success", message="Invitation cancelled", data=None)
