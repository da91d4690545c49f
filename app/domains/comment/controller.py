"""Task comment API controller."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.comment.service import CommentService
from app.schemas.base import ResponseSchema
from app.schemas.comment import CommentCreate, CommentResponse, CommentUpdate
from models.user import User

router = APIRouter(prefix="/api/comments", tags=["comments"])


@router.get("/task/{task_id}", response_model=ResponseSchema)
async def get_comments(
    task_id: UUID = Path(..., description="Task ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comments = await CommentService(db).get_comments(task_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Comments retrieved successfully",
        data=[CommentResponse.model_validate(c).model_dump() for c in comments],
    )


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_comment(
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Comment on a task, or reply to a comment with ``parent_id``."""

    comment = await CommentService(db).create_comment(comment_data, current_user)
    return ResponseSchema(
        status="success",
        message="Comment added successfully",
        data=CommentResponse.model_validate(comment).model_dump(),
    )


@router.put("/{comment_id}", response_model=ResponseSchema)
async def update_comment(
    comment_id: UUID = Path(..., description="Comment ID"),
    comment_data: CommentUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await CommentService(db).update_comment(comment_id, comment_data, current_user)
    return ResponseSchema(
        status="success",
        message="Comment updated successfully",
        data=CommentResponse.model_validate(comment).model_dump(),
    )


@router.delete("/{comment_id}", response_model=ResponseSchema)
async def delete_comment(
    comment_id: UUID = Path(..., description="Comment ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await CommentService(db).delete_comment(comment_id, current_user.id)
    return ResponseSchema(status="success", message="Comment deleted successfully", data=None)
