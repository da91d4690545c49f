"""Project membership service layer."""

import logging
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role, require_project_access, role_satisfies
from app.domains.audit.recorder import (
    AuditAction,
    AuditEntity,
    AuditRecorder,
    diff_member,
    diff_task,
    snapshot,
)
from app.exceptions.base import AppPermissionError, DatabaseError
from app.exceptions.project import AlreadyMemberError, MemberNotFoundError
from app.exceptions.user import UserNotFoundError
from app.schemas.member import MemberAdd, MemberRoleUpdate
from models import Project, ProjectMember, Task, TaskCollaborator, User

logger = logging.getLogger(__name__)


class MemberService:
    """Service class for project membership."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def get_members(self, project_id: UUID, user_id: UUID) -> List[Dict[str, Any]]:
        """Owner first, then admins, then members, each group by join date."""
        await require_project_access(self.db, user_id, project_id, Role.member)

        project = await self.db.get(Project, project_id)
        owner = await self.db.get(User, project.owner_id)
        members: List[Dict[str, Any]] = [
            {
                "id": None,
                "project_id": project.id,
                "user_id": owner.id,
                "role": Role.owner.value,
                "joined_at": project.created_at,
                "user": owner,
            }
        ]

        role_order = case((ProjectMember.role == Role.admin.value, 0), else_=1)
        result = await self.db.execute(
            select(ProjectMember, User)
            .join(User, ProjectMember.user_id == User.id)
            .where(ProjectMember.project_id == project_id)
            .order_by(role_order, ProjectMember.joined_at)
        )
        members.extend(self._to_dict(member, user) for member, user in result.all())
        return members

    async def add_member(self, data: MemberAdd, user_id: UUID) -> Dict[str, Any]:
        project_id = data.project_id
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can add members"
        )

        target = await self.db.scalar(select(User).where(User.email == data.email))
        if not target:
            raise UserNotFoundError("No user found with this email")

        project = await self.db.get(Project, project_id)
        if project.owner_id == target.id:
            raise AlreadyMemberError("User is the owner of this project")
        existing = await self.db.scalar(
            select(ProjectMember.id).where(
                ProjectMember.project_id == project_id, ProjectMember.user_id == target.id
            )
        )
        if existing:
            raise AlreadyMemberError()

        member = ProjectMember(project_id=project_id, user_id=target.id, role=data.role)
        try:
            self.db.add(member)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.member_added,
                entity_type=AuditEntity.member,
                entity_id=member.id,
                details={"user_id": target.id, "email": target.email, "role": member.role},
            )
            await self.db.commit()
            await self.db.refresh(member)
        except IntegrityError as e:
            await self.db.rollback()
            raise AlreadyMemberError() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to add member to project %s", project_id)
            raise DatabaseError("Failed to add member") from e

        logger.info("User %s added to project %s as %s", target.id, project_id, data.role)
        return self._to_dict(member, target)

    async def update_member_role(
        self, member_id: UUID, data: MemberRoleUpdate, user_id: UUID
    ) -> Dict[str, Any]:
        member = await self._get_member(member_id)
        project_id = member.project_id
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can change roles"
        )

        before = snapshot(member, "user_id", "role")
        member.role = data.role
        self.audit.record_events(
            diff_member(before, {"role": data.role}),
            project_id=project_id,
            user_id=user_id,
            entity_type=AuditEntity.member,
            entity_id=member.id,
        )

        try:
            await self.db.commit()
            await self.db.refresh(member)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to change role of member %s", member_id)
            raise DatabaseError("Failed to update member role") from e

        user = await self.db.get(User, member.user_id)
        return self._to_dict(member, user)

    async def remove_member(self, member_id: UUID, user_id: UUID) -> bool:
        """
        Remove a member, or leave the project when removing oneself.

        The member's collaborations on the project's tasks go with them and
        their assigned tasks become unassigned.
        """
        member = await self._get_member(member_id)
        project_id = member.project_id
        member_user_id = member.user_id

        if member_user_id != user_id:
            role = await require_project_access(self.db, user_id, project_id, Role.member)
            if not role_satisfies(role, Role.admin):
                raise AppPermissionError("Only owners and admins can remove other members")

        try:
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.member_removed,
                entity_type=AuditEntity.member,
                entity_id=member.id,
                details={"user_id": member_user_id, "role": member.role},
            )
            collaborations = await self.db.execute(
                select(TaskCollaborator, Task)
                .join(Task, TaskCollaborator.task_id == Task.id)
                .where(
                    Task.project_id == project_id,
                    TaskCollaborator.user_id == member_user_id,
                )
            )
            for collaborator, task in collaborations.all():
                self.audit.record(
                    project_id=project_id,
                    user_id=user_id,
                    action=AuditAction.collaborator_removed,
                    entity_type=AuditEntity.task_collaborator,
                    entity_id=collaborator.id,
                    details={
                        "task_id": task.id,
                        "task_title": task.title,
                        "collaborator_id": member_user_id,
                    },
                )
                await self.db.delete(collaborator)

            assigned = await self.db.execute(
                select(Task).where(
                    Task.project_id == project_id, Task.assignee_id == member_user_id
                )
            )
            for task in assigned.scalars().all():
                before = snapshot(task, "title", "assignee_id")
                task.assignee_id = None
                self.audit.record_events(
                    diff_task(before, {"assignee_id": None}),
                    project_id=project_id,
                    user_id=user_id,
                    entity_type=AuditEntity.task,
                    entity_id=task.id,
                )

            await self.db.delete(member)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to remove member %s", member_id)
            raise DatabaseError("Failed to remove member") from e

        logger.info("User %s removed from project %s", member_user_id, project_id)
        return True

    # Private helper methods
    async def _get_member(self, member_id: UUID) -> ProjectMember:
        member = await self.db.get(ProjectMember, member_id)
        if not member:
            raise MemberNotFoundError()
        return member

    @staticmethod
    def _to_dict(member: ProjectMember, user: User) -> Dict[str, Any]:
        return {
            "id": member.id,
            "project_id": member.project_id,
            "user_id": member.user_id,
            "role": member.role,
            "joined_at": member.joined_at,
            "user": user,
        }
