"""Task collaborator (watcher) service layer."""

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role, check_project_access, require_project_access, role_satisfies
from app.domains.audit.recorder import AuditAction, AuditEntity, AuditRecorder
from app.exceptions.base import AppPermissionError, BadRequestError, ConflictError, DatabaseError
from app.exceptions.project import CollaboratorNotFoundError, TaskNotFoundError
from app.schemas.member import CollaboratorAdd
from models import Task, TaskCollaborator, User

logger = logging.getLogger(__name__)


class CollaboratorService:
    """Service class for task collaborators."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def get_collaborators(self, task_id: UUID, user_id: UUID) -> List[Dict[str, Any]]:
        task = await self._get_task(task_id)
        await require_project_access(self.db, user_id, task.project_id, Role.member)

        result = await self.db.execute(
            select(TaskCollaborator, User)
            .join(User, TaskCollaborator.user_id == User.id)
            .where(TaskCollaborator.task_id == task.id)
            .order_by(TaskCollaborator.added_at)
        )
        return [self._to_dict(collab, user) for collab, user in result.all()]

    async def add_collaborator(self, data: CollaboratorAdd, user_id: UUID) -> Dict[str, Any]:
        """Only the task's assignee may add collaborators."""
        task = await self._get_task(data.task_id)
        project_id = task.project_id
        await require_project_access(self.db, user_id, project_id, Role.member)

        if task.assignee_id != user_id:
            raise AppPermissionError("Only the task assignee can add collaborators")

        target = await self.db.get(User, data.user_id)
        decision = await check_project_access(self.db, data.user_id, project_id, Role.member)
        if not target or not decision.has_access:
            raise BadRequestError(
                "User does not have access to this project", error_code="INVALID_COLLABORATOR"
            )

        existing = await self.db.scalar(
            select(TaskCollaborator.id).where(
                TaskCollaborator.task_id == task.id, TaskCollaborator.user_id == data.user_id
            )
        )
        if existing:
            raise ConflictError(
                "User is already a collaborator on this task", error_code="ALREADY_COLLABORATOR"
            )

        collaborator = TaskCollaborator(task_id=task.id, user_id=data.user_id, added_by=user_id)
        try:
            self.db.add(collaborator)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.collaborator_added,
                entity_type=AuditEntity.task_collaborator,
                entity_id=collaborator.id,
                details={
                    "task_id": task.id,
                    "task_title": task.title,
                    "collaborator_id": data.user_id,
                },
            )
            await self.db.commit()
            await self.db.refresh(collaborator)
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                "User is already a collaborator on this task", error_code="ALREADY_COLLABORATOR"
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to add collaborator to task %s", data.task_id)
            raise DatabaseError("Failed to add collaborator") from e

        return self._to_dict(collaborator, target)

    async def remove_collaborator(self, collaborator_id: UUID, user_id: UUID) -> bool:
        """The assignee, the collaborator themself, or an admin may remove."""
        collaborator = await self.db.get(TaskCollaborator, collaborator_id)
        if not collaborator:
            raise CollaboratorNotFoundError()
        task = await self._get_task(collaborator.task_id)
        project_id = task.project_id
        role = await require_project_access(self.db, user_id, project_id, Role.member)

        allowed = (
            task.assignee_id == user_id
            or collaborator.user_id == user_id
            or role_satisfies(role, Role.admin)
        )
        if not allowed:
            raise AppPermissionError("You cannot remove this collaborator")

        try:
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.collaborator_removed,
                entity_type=AuditEntity.task_collaborator,
                entity_id=collaborator.id,
                details={
                    "task_id": task.id,
                    "task_title": task.title,
                    "collaborator_id": collaborator.user_id,
                },
            )
            await self.db.delete(collaborator)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to remove collaborator %s", collaborator_id)
            raise DatabaseError("Failed to remove collaborator") from e

        return True

    # Private helper methods
    async def _get_task(self, task_id: UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if not task:
            raise TaskNotFoundError()
        return task

    @staticmethod
    def _to_dict(collaborator: TaskCollaborator, user: User) -> Dict[str, Any]:
        return {
            "id": collaborator.id,
            "task_id": collaborator.task_id,
            "user_id": collaborator.user_id,
            "added_by": collaborator.added_by,
            "added_at": collaborator.added_at,
            "user": user,
        }
