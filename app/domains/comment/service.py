"""Task comment service layer."""

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role, require_project_access
from app.domains.audit.recorder import AuditAction, AuditEntity, AuditRecorder
from app.exceptions.base import AppPermissionError, BadRequestError, DatabaseError
from app.exceptions.project import CommentNotFoundError, TaskNotFoundError
from app.schemas.comment import CommentCreate, CommentUpdate
from models import Task, TaskComment, User

logger = logging.getLogger(__name__)


class CommentService:
    """Service class for task comments and their replies."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def get_comments(self, task_id: UUID, user_id: UUID) -> List[Dict[str, Any]]:
        """Comments of a task, oldest first, each with its author."""
        task = await self._get_task(task_id)
        await require_project_access(self.db, user_id, task.project_id, Role.member)

        result = await self.db.execute(
            select(TaskComment, User)
            .join(User, TaskComment.user_id == User.id)
            .where(TaskComment.task_id == task.id)
            .order_by(TaskComment.created_at)
        )
        return [self._to_dict(comment, author) for comment, author in result.all()]

    async def create_comment(self, comment_data: CommentCreate, user: User) -> Dict[str, Any]:
        task = await self._get_task(comment_data.task_id)
        project_id = task.project_id
        await require_project_access(self.db, user.id, project_id, Role.member)

        if comment_data.parent_id:
            parent = await self.db.get(TaskComment, comment_data.parent_id)
            if not parent or parent.task_id != task.id:
                raise BadRequestError(
                    "Parent comment does not belong to this task",
                    error_code="INVALID_PARENT_COMMENT",
                )

        comment = TaskComment(
            task_id=task.id,
            user_id=user.id,
            parent_id=comment_data.parent_id,
            content=comment_data.content,
        )

        try:
            self.db.add(comment)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user.id,
                action=AuditAction.comment_added,
                entity_type=AuditEntity.comment,
                entity_id=comment.id,
                details={
                    "task_id": task.id,
                    "task_title": task.title,
                    "is_reply": comment.parent_id is not None,
                },
            )
            await self.db.commit()
            await self.db.refresh(comment)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to add comment to task %s", comment_data.task_id)
            raise DatabaseError("Failed to add comment") from e

        return self._to_dict(comment, user)

    async def update_comment(
        self, comment_id: UUID, comment_data: CommentUpdate, user: User
    ) -> Dict[str, Any]:
        comment = await self._get_own_comment(comment_id, user.id, "edit")
        project_id = await self._project_of(comment)

        comment.content = comment_data.content
        self.audit.record(
            project_id=project_id,
            user_id=user.id,
            action=AuditAction.comment_updated,
            entity_type=AuditEntity.comment,
            entity_id=comment.id,
            details={"task_id": comment.task_id},
        )

        try:
            await self.db.commit()
            await self.db.refresh(comment)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to update comment %s", comment_id)
            raise DatabaseError("Failed to update comment") from e

        return self._to_dict(comment, user)

    async def delete_comment(self, comment_id: UUID, user_id: UUID) -> bool:
        """Delete a comment and, transitively, every reply beneath it."""
        comment = await self._get_own_comment(comment_id, user_id, "delete")
        project_id = await self._project_of(comment)

        try:
            doomed = await self._thread_ids(comment.id)
            for doomed_id in doomed:
                details = {"task_id": comment.task_id}
                if doomed_id != comment.id:
                    details["thread_root_id"] = comment.id
                self.audit.record(
                    project_id=project_id,
                    user_id=user_id,
                    action=AuditAction.comment_deleted,
                    entity_type=AuditEntity.comment,
                    entity_id=doomed_id,
                    details=details,
                )
            await self.db.execute(delete(TaskComment).where(TaskComment.id.in_(doomed)))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to delete comment %s", comment_id)
            raise DatabaseError("Failed to delete comment") from e

        return True

    # Private helper methods
    async def _get_task(self, task_id: UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if not task:
            raise TaskNotFoundError()
        return task

    async def _get_own_comment(self, comment_id: UUID, user_id: UUID, verb: str) -> TaskComment:
        comment = await self.db.get(TaskComment, comment_id)
        if not comment:
            raise CommentNotFoundError()
        if comment.user_id != user_id:
            raise AppPermissionError(f"You can only {verb} your own comments")
        return comment

    async def _project_of(self, comment: TaskComment) -> UUID:
        return await self.db.scalar(select(Task.project_id).where(Task.id == comment.task_id))

    async def _thread_ids(self, root_id: UUID) -> List[UUID]:
        ids = [root_id]
        frontier = [root_id]
        while frontier:
            result = await self.db.execute(
                select(TaskComment.id).where(TaskComment.parent_id.in_(frontier))
            )
            frontier = list(result.scalars().all())
            ids.extend(frontier)
        return ids

    @staticmethod
    def _to_dict(comment: TaskComment, author: User) -> Dict[str, Any]:
        return {
            "id": comment.id,
            "task_id": comment.task_id,
            "user_id": comment.user_id,
            "parent_id": comment.parent_id,
            "content": comment.content,
            "created_at": comment.created_at,
            "updated_at": comment.updated_at,
            "author": author,
        }
