"""Task collaborator API controller."""

from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.collaborator.service import CollaboratorService
from app.schemas.base import ResponseSchema
from app.schemas.member import CollaboratorAdd, CollaboratorResponse
from models.user import User

router = APIRouter(prefix="/api/collaborators", tags=["collaborators"])


@router.get("/task/{task_id}", response_model=ResponseSchema)
async def get_collaborators(
    task_id: UUID = Path(..., description="Task ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    collaborators = await CollaboratorService(db).get_collaborators(task_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Collaborators retrieved successfully",
        data=[CollaboratorResponse.model_validate(c).model_dump() for c in collaborators],
    )


@router.post("/", response_model=ResponseSchema, status_code=201)
async def add_collaborator(
    data: CollaboratorAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    collaborator = await CollaboratorService(db).add_collaborator(data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Collaborator added successfully",
        data=CollaboratorResponse.model_validate(collaborator).model_dump(),
    )


@router.delete("/{collaborator_id}", response_model=ResponseSchema)
async def remove_collaborator(
    collaborator_id: UUID = Path(..., description="Collaborator ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CollaboratorService(db).remove_collaborator(collaborator_id, current_user.id)
    return ResponseSchema(status="success", message="Collaborator removed successfully", data=None)
