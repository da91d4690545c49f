"""Board column service layer."""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role, require_project_access
from app.domains.audit.recorder import (
    AuditAction,
    AuditEntity,
    AuditRecorder,
    diff_column,
    snapshot,
)
from app.exceptions.base import DatabaseError
from app.exceptions.project import (
    ColumnNotEmptyError,
    ColumnNotFoundError,
    InvalidReorderError,
    LastColumnError,
)
from app.schemas.board import ColumnCreate, ColumnReorderRequest, ColumnUpdate
from models import Task, TaskColumn

logger = logging.getLogger(__name__)

COLUMN_TRACKED_FIELDS = ("name", "position", "color")


class ColumnService:
    """Service class for column business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def get_columns(self, project_id: UUID, user_id: UUID) -> List[TaskColumn]:
        await require_project_access(self.db, user_id, project_id, Role.member)
        return await self._ordered_columns(project_id)

    async def create_column(self, column_data: ColumnCreate, user_id: UUID) -> TaskColumn:
        """Append a column to the board unless an explicit position is given."""
        project_id = column_data.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        position = column_data.position
        if position is None:
            max_position = await self.db.scalar(
                select(func.max(TaskColumn.position)).where(TaskColumn.project_id == project_id)
            )
            position = 0 if max_position is None else max_position + 1

        column = TaskColumn(
            project_id=project_id,
            name=column_data.name,
            color=column_data.color,
            position=position,
        )

        try:
            self.db.add(column)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.column_created,
                entity_type=AuditEntity.column,
                entity_id=column.id,
                details={"column_name": column.name, "position": column.position},
            )
            await self.db.commit()
            await self.db.refresh(column)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create column in project %s", project_id)
            raise DatabaseError("Failed to create column") from e

        return column

    async def update_column(
        self, column_id: UUID, column_data: ColumnUpdate, user_id: UUID
    ) -> TaskColumn:
        column = await self._get_column(column_id)
        project_id = column.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        update_data = {
            field: value
            for field, value in column_data.model_dump(exclude_unset=True).items()
            if value is not None
        }

        before = snapshot(column, *COLUMN_TRACKED_FIELDS)
        for field, value in update_data.items():
            setattr(column, field, value)

        self.audit.record_events(
            diff_column(before, update_data),
            project_id=project_id,
            user_id=user_id,
            entity_type=AuditEntity.column,
            entity_id=column.id,
        )

        try:
            await self.db.commit()
            await self.db.refresh(column)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to update column %s", column_id)
            raise DatabaseError("Failed to update column") from e

        return column

    async def delete_column(self, column_id: UUID, user_id: UUID) -> bool:
        """Delete an empty column; the last column of a project cannot go."""
        column = await self._get_column(column_id)
        project_id = column.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        task_count = await self.db.scalar(
            select(func.count()).select_from(Task).where(Task.column_id == column.id)
        )
        if task_count:
            raise ColumnNotEmptyError(task_count)

        column_count = await self.db.scalar(
            select(func.count()).select_from(TaskColumn).where(TaskColumn.project_id == project_id)
        )
        if column_count <= 1:
            raise LastColumnError()

        try:
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.column_deleted,
                entity_type=AuditEntity.column,
                entity_id=column.id,
                details={"column_name": column.name},
            )
            await self.db.delete(column)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to delete column %s", column_id)
            raise DatabaseError("Failed to delete column") from e

        return True

    async def reorder_columns(
        self, reorder: ColumnReorderRequest, user_id: UUID
    ) -> List[TaskColumn]:
        """
        Rewrite column positions in a single transaction.

        Every id must belong to the project and every column of the project
        must be listed. On any failure the session is rolled back and the
        stored order is left untouched.
        """
        project_id = reorder.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        requested_ids = [item.id for item in reorder.columns]
        result = await self.db.execute(
            select(TaskColumn).where(
                TaskColumn.project_id == project_id, TaskColumn.id.in_(requested_ids)
            )
        )
        columns = {column.id: column for column in result.scalars().all()}

        unknown = [str(cid) for cid in requested_ids if cid not in columns]
        if unknown:
            raise InvalidReorderError(
                "Some columns do not belong to this project", details={"column_ids": unknown}
            )

        result = await self.db.execute(
            select(TaskColumn.id).where(TaskColumn.project_id == project_id)
        )
        missing = [str(cid) for cid in result.scalars().all() if cid not in columns]
        if missing:
            raise InvalidReorderError(
                "Every column of the project must be listed",
                details={"missing_column_ids": missing},
            )

        try:
            for item in reorder.columns:
                column = columns[item.id]
                before = snapshot(column, *COLUMN_TRACKED_FIELDS)
                column.position = item.position
                self.audit.record_events(
                    diff_column(before, {"position": item.position}),
                    project_id=project_id,
                    user_id=user_id,
                    entity_type=AuditEntity.column,
                    entity_id=column.id,
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to reorder columns in project %s", project_id)
            raise DatabaseError("Failed to reorder columns") from e

        logger.info("Reordered %d columns in project %s", len(columns), project_id)
        return await self._ordered_columns(project_id)

    # Private helper methods
    async def _get_column(self, column_id: UUID) -> TaskColumn:
        column = await self.db.get(TaskColumn, column_id)
        if not column:
            raise ColumnNotFoundError()
        return column

    async def _ordered_columns(self, project_id: UUID) -> List[TaskColumn]:
        result = await self.db.execute(
            select(TaskColumn)
            .where(TaskColumn.project_id == project_id)
            .order_by(TaskColumn.position, TaskColumn.created_at)
        )
        return list(result.scalars().all())
