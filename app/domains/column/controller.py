"""Board column API controller."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.column.service import ColumnService
from app.schemas.base import ResponseSchema
from app.schemas.board import (
    ColumnCreate,
    ColumnReorderRequest,
    ColumnResponse,
    ColumnUpdate,
)
from models.user import User

router = APIRouter(prefix="/api/columns", tags=["columns"])


def _dump(columns):
    return [ColumnResponse.model_validate(c).model_dump() for c in columns]


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_columns(
    project_id: UUID = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a project's columns in board order."""

    columns = await ColumnService(db).get_columns(project_id, current_user.id)
    return ResponseSchema(
        status="success", message="Columns retrieved successfully", data=_dump(columns)
    )


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_column(
    column_data: ColumnCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    column = await ColumnService(db).create_column(column_data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Column created successfully",
        data=ColumnResponse.model_validate(column).model_dump(),
    )


@router.patch("/reorder", response_model=ResponseSchema)
async def reorder_columns(
    reorder: ColumnReorderRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply a new column order; all or nothing."""

    columns = await ColumnService(db).reorder_columns(reorder, current_user.id)
    return ResponseSchema(
        status="success", message="Columns reordered successfully", data=_dump(columns)
    )


@router.put("/{column_id}", response_model=ResponseSchema)
async def update_column(
    column_id: UUID = Path(..., description="Column ID"),
    column_data: ColumnUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    column = await ColumnService(db).update_column(column_id, column_data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Column updated successfully",
        data=ColumnResponse.model_validate(column).model_dump(),
    )


@router.delete("/{column_id}", response_model=ResponseSchema)
async def delete_column(
    column_id: UUID = Path(..., description="Column ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ColumnService(db).delete_column(column_id, current_user.id)
    return ResponseSchema(status="success", message="Column deleted successfully", data=None)
