"""Task API controller with FastAPI endpoints."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.task.service import TaskService
from app.schemas.base import ResponseSchema
from app.schemas.board import TaskCreate, TaskReorderRequest, TaskResponse, TaskUpdate
from models.user import User

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_tasks(
    project_id: UUID = Path(..., description="Project ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get every task on a project's board."""

    tasks = await TaskService(db).get_tasks(project_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Tasks retrieved successfully",
        data=[TaskResponse.model_validate(t).model_dump() for t in tasks],
    )


@router.post("/", response_model=ResponseSchema, status_code=201)
async def create_task(
    task_data: TaskCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a task in the given column."""

    task = await TaskService(db).create_task(task_data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Task created successfully",
        data=TaskResponse.model_validate(task).model_dump(),
    )


@router.patch("/reorder", response_model=ResponseSchema)
async def reorder_tasks(
    reorder: TaskReorderRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tasks = await TaskService(db).reorder_tasks(reorder, current_user.id)
    return ResponseSchema(
        status="success",
        message="Tasks reordered successfully",
        data=[TaskResponse.model_validate(t).model_dump() for t in tasks],
    )


@router.get("/{task_id}", response_model=ResponseSchema)
async def get_task(
    task_id: UUID = Path(..., description="Task ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    task = await TaskService(db).get_task(task_id, current_user.id)
    return ResponseSchema(
        status="success",
        message="Task retrieved successfully",
        data=TaskResponse.model_validate(task).model_dump(),
    )


@router.put("/{task_id}", response_model=ResponseSchema)
async def update_task(
    task_id: UUID = Path(..., description="Task ID"),
    task_data: TaskUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a task; only the fields sent are changed."""

    task = await TaskService(db).update_task(task_id, task_data, current_user.id)
    return ResponseSchema(
        status="success",
        message="Task updated successfully",
        data=TaskResponse.model_validate(task).model_dump(),
    )


@router.delete("/{task_id}", response_model=ResponseSchema)
async def delete_task(
    task_id: UUID = Path(..., description="Task ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await TaskService(db).delete_task(task_id, current_user.id)
    return ResponseSchema(status="success", message="Task deleted successfully", data=None)
