"""Task service layer with business logic."""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role, check_project_access, require_project_access
from app.domains.audit.recorder import (
    AuditAction,
    AuditEntity,
    AuditRecorder,
    diff_task,
    snapshot,
)
from app.exceptions.base import BadRequestError, DatabaseError
from app.exceptions.project import (
    ColumnNotFoundError,
    InvalidReorderError,
    TaskNotFoundError,
)
from app.schemas.board import TaskCreate, TaskReorderRequest, TaskUpdate
from models import Task, TaskCollaborator, TaskColumn, TaskComment, User

logger = logging.getLogger(__name__)

TASK_TRACKED_FIELDS = ("title", "assignee_id", "column_id", "priority")


class TaskService:
    """Service class for task business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def get_tasks(self, project_id: UUID, user_id: UUID) -> List[Dict[str, Any]]:
        """All tasks of a project ordered by column position, then task position."""
        await require_project_access(self.db, user_id, project_id, Role.member)

        result = await self.db.execute(
            select(Task, User.full_name)
            .join(TaskColumn, Task.column_id == TaskColumn.id)
            .outerjoin(User, Task.assignee_id == User.id)
            .where(Task.project_id == project_id)
            .order_by(TaskColumn.position, Task.position, Task.created_at)
        )
        return [self._to_dict(task, name) for task, name in result.all()]

    async def get_task(self, task_id: UUID, user_id: UUID) -> Dict[str, Any]:
        task = await self._get_task(task_id)
        await require_project_access(self.db, user_id, task.project_id, Role.member)
        return await self._with_assignee(task)

    async def create_task(self, task_data: TaskCreate, user_id: UUID) -> Dict[str, Any]:
        column = await self.db.get(TaskColumn, task_data.column_id)
        if not column:
            raise ColumnNotFoundError()
        project_id = column.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        if task_data.assignee_id:
            await self._ensure_assignable(project_id, task_data.assignee_id)

        position = task_data.position
        if position is None:
            max_position = await self.db.scalar(
                select(func.max(Task.position)).where(Task.column_id == column.id)
            )
            position = 0 if max_position is None else max_position + 1

        task = Task(
            column_id=column.id,
            project_id=project_id,
            created_by=user_id,
            title=task_data.title,
            description=task_data.description,
            priority=task_data.priority,
            due_date=task_data.due_date,
            assignee_id=task_data.assignee_id,
            position=position,
            tags=task_data.tags,
            checkbox_states=task_data.checkbox_states,
        )

        try:
            self.db.add(task)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.task_created,
                entity_type=AuditEntity.task,
                entity_id=task.id,
                details={
                    "task_title": task.title,
                    "column_id": task.column_id,
                    "priority": task.priority,
                },
            )
            await self.db.commit()
            await self.db.refresh(task)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create task in project %s", project_id)
            raise DatabaseError("Failed to create task") from e

        logger.info("Task %s created in project %s", task.id, project_id)
        return await self._with_assignee(task)

    async def update_task(
        self, task_id: UUID, task_data: TaskUpdate, user_id: UUID
    ) -> Dict[str, Any]:
        """
        Apply a partial update.

        Every tracked field that changes gets its own audit record, so a
        single request can produce several.
        """
        task = await self._get_task(task_id)
        project_id = task.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        update_data = task_data.model_dump(exclude_unset=True)
        for field in ("title", "priority", "column_id", "position", "tags", "checkbox_states"):
            if field in update_data and update_data[field] is None:
                update_data.pop(field)

        if "column_id" in update_data and update_data["column_id"] != task.column_id:
            target = await self.db.get(TaskColumn, update_data["column_id"])
            if not target:
                raise ColumnNotFoundError()
            if target.project_id != project_id:
                raise BadRequestError(
                    "Cannot move a task to a column of another project",
                    error_code="COLUMN_PROJECT_MISMATCH",
                )

        if update_data.get("assignee_id") and update_data["assignee_id"] != task.assignee_id:
            await self._ensure_assignable(project_id, update_data["assignee_id"])

        before = snapshot(task, *TASK_TRACKED_FIELDS)
        for field, value in update_data.items():
            setattr(task, field, value)

        self.audit.record_events(
            diff_task(before, update_data),
            project_id=project_id,
            user_id=user_id,
            entity_type=AuditEntity.task,
            entity_id=task.id,
        )

        try:
            await self.db.commit()
            await self.db.refresh(task)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to update task %s", task_id)
            raise DatabaseError("Failed to update task") from e

        return await self._with_assignee(task)

    async def delete_task(self, task_id: UUID, user_id: UUID) -> bool:
        """Delete a task with its comments and collaborators; requires admin."""
        task = await self._get_task(task_id)
        project_id = task.project_id
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can delete tasks"
        )

        try:
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.task_deleted,
                entity_type=AuditEntity.task,
                entity_id=task.id,
                details={"task_title": task.title},
            )
            await self.db.execute(delete(TaskComment).where(TaskComment.task_id == task.id))
            await self.db.execute(
                delete(TaskCollaborator).where(TaskCollaborator.task_id == task.id)
            )
            await self.db.delete(task)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to delete task %s", task_id)
            raise DatabaseError("Failed to delete task") from e

        return True

    async def reorder_tasks(
        self, reorder: TaskReorderRequest, user_id: UUID
    ) -> List[Dict[str, Any]]:
        """
        Move and reposition several tasks at once; all or nothing.

        Every task in a column the request reads from or writes to must be
        listed, so positions stay unique within each column.
        """
        project_id = reorder.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        task_ids = [item.id for item in reorder.tasks]
        result = await self.db.execute(
            select(Task).where(Task.project_id == project_id, Task.id.in_(task_ids))
        )
        tasks = {task.id: task for task in result.scalars().all()}
        unknown = [str(tid) for tid in task_ids if tid not in tasks]
        if unknown:
            raise InvalidReorderError(
                "Some tasks do not belong to this project", details={"task_ids": unknown}
            )

        column_ids = {item.column_id for item in reorder.tasks}
        result = await self.db.execute(
            select(TaskColumn.id).where(
                TaskColumn.project_id == project_id, TaskColumn.id.in_(column_ids)
            )
        )
        known_columns = set(result.scalars().all())
        foreign = [str(cid) for cid in column_ids if cid not in known_columns]
        if foreign:
            raise InvalidReorderError(
                "Some columns do not belong to this project", details={"column_ids": foreign}
            )

        touched = column_ids | {task.column_id for task in tasks.values()}
        result = await self.db.execute(
            select(Task.id).where(Task.project_id == project_id, Task.column_id.in_(touched))
        )
        missing = [str(tid) for tid in result.scalars().all() if tid not in tasks]
        if missing:
            raise InvalidReorderError(
                "Every task in the affected columns must be listed",
                details={"missing_task_ids": missing},
            )

        try:
            for item in reorder.tasks:
                task = tasks[item.id]
                before = snapshot(task, *TASK_TRACKED_FIELDS)
                task.column_id = item.column_id
                task.position = item.position
                self.audit.record_events(
                    diff_task(before, {"column_id": item.column_id}),
                    project_id=project_id,
                    user_id=user_id,
                    entity_type=AuditEntity.task,
                    entity_id=task.id,
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to reorder tasks in project %s", project_id)
            raise DatabaseError("Failed to reorder tasks") from e

        return await self.get_tasks(project_id, user_id)

    # Private helper methods
    async def _get_task(self, task_id: UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if not task:
            raise TaskNotFoundError()
        return task

    async def _ensure_assignable(self, project_id: UUID, assignee_id: UUID) -> None:
        decision = await check_project_access(self.db, assignee_id, project_id, Role.member)
        if not decision.has_access:
            raise BadRequestError(
                "Assignee does not have access to this project",
                error_code="INVALID_ASSIGNEE",
                details={"assignee_id": str(assignee_id)},
            )

    async def _with_assignee(self, task: Task) -> Dict[str, Any]:
        name: Optional[str] = None
        if task.assignee_id:
            name = await self.db.scalar(select(User.full_name).where(User.id == task.assignee_id))
        return self._to_dict(task, name)

    @staticmethod
    def _to_dict(task: Task, assignee_name: Optional[str]) -> Dict[str, Any]:
        return {
            "id": task.id,
            "column_id": task.column_id,
            "project_id": task.project_id,
            "assignee_id": task.assignee_id,
            "created_by": task.created_by,
            "title": task.title,
            "description": task.description,
            "priority": task.priority,
            "due_date": task.due_date,
            "position": task.position,
            "tags": task.tags or [],
            "checkbox_states": task.checkbox_states or {},
            "created_at": task.created_at,
            "updated_at": task.updated_at,
            "assignee_name": assignee_name,
        }
