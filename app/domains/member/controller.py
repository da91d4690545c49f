"""Project membership API controller."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.member.service import MemberService
from app.schemas.base import ResponseSchema
from app.schemas.member import MemberAdd, MemberResponse, MemberRoleUpdate
from models.user import User

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_members(
    project_id: UUID = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the owner and every member of a project."""

    members = await MemberService(db).get_members(project_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Members retrieved successfully",
        data=[MemberResponse.model_validate(m).model_dump() for m in members],
    )


@router.post("/", response_model=ResponseSchema, status_code=201)
async def add_member(
    data: MemberAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    member = await MemberService(db).add_member(data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Member added successfully",
        data=MemberResponse.model_validate(member).model_dump(),
    )


@router.put("/{member_id}", response_model=ResponseSchema)
async def update_member_role(
    member_id: UUID = Path(..., description="Membership ID"),
    data: MemberRoleUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    member = await MemberService(db).update_member_role(member_id, data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Member role updated successfully",
        data=MemberResponse.model_validate(member).model_dump(),
    )


@router.delete("/{member_id}", response_model=ResponseSchema)
async def remove_member(
    member_id: UUID = Path(..., description="Membership ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove a member, or leave the project by passing your own membership."""

    await MemberService(db).remove_member(member_id, current_user.id)
    return ResponseSchema(status="success", message="Member removed successfully", data=None)
