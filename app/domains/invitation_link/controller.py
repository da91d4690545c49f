"""Invitation link API controller."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.invitation_link.service import InvitationLinkService
from app.schemas.base import ResponseSchema
from app.schemas.invitation import (
    InvitationAcceptResult,
    InvitationLinkCreate,
    InvitationLinkResponse,
)
from models.user import User

router = APIRouter(prefix="/api/invitation-links", tags=["invitation-links"])


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_active_link(
    project_id: UUID = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    link = await InvitationLinkService(db).get_active_link(project_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Invitation link retrieved successfully" if link else "No active invitation link",
        data=InvitationLinkResponse.model_validate(link).model_dump() if link else None,
    )


@router.post("/project/{project_id}", response_model=ResponseSchema)
async def create_link(
    project_id: UUID = Path(..., description="Project ID"),
    data: Optional[InvitationLinkCreate] = Body(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get or create the project's share link; ``rotate`` forces a new one."""

    rotate = bool(data and data.rotate)
    link = await InvitationLinkService(db).create_link(project_id, current_user.id, rotate)
    return ResponseSchema(
        status="success",
        message="Invitation link ready",
        data=InvitationLinkResponse.model_validate(link).model_dump(),
    )


@router.delete("/project/{project_id}", response_model=ResponseSchema)
async def deactivate_links(
    project_id: UUID = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await InvitationLinkService(db).deactivate_links(project_id, current_user.id)
    return ResponseSchema(
        status="success", message="Invitation link deactivated", data={"deactivated": count}
    )


@router.post("/accept/{token}", response_model=ResponseSchema)
async def accept_link(
    token: str = Path(..., description="Invitation link token"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await InvitationLinkService(db).accept_link(token, current_user)
    return ResponseSchema(
        status="success",
        message="You are already a member of this project"
        if result["already_member"]
        else "Joined project successfully",
        data=InvitationAcceptResult.model_validate(result).model_dump(),
    )
