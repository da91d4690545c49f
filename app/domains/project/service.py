"""Project service layer with business logic."""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, desc, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Role, require_project_access
from app.domains.audit.recorder import (
    AuditAction,
    AuditEntity,
    AuditRecorder,
    diff_project,
    snapshot,
)
from app.exceptions.base import DatabaseError
from app.exceptions.project import ProjectNotFoundError
from app.schemas.project import ProjectCreate, ProjectUpdate
from app.shared.pagination import PaginationParams, paginate
from models import (
    Project,
    ProjectInvitation,
    ProjectInvitationLink,
    ProjectMember,
    Task,
    TaskCollaborator,
    TaskColumn,
    TaskComment,
    User,
)
from models.column import DEFAULT_COLUMNS

logger = logging.getLogger(__name__)

PROJECT_TRACKED_FIELDS = ("name", "description", "color")


async def purge_project_rows(db: AsyncSession, project_id: UUID) -> None:
    """
    Delete every row that hangs off a project, children first.

    Audit records are kept on purpose; they have no foreign key to projects.
    """
    task_ids = select(Task.id).where(Task.project_id == project_id)
    await db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids)))
    await db.execute(delete(TaskCollaborator).where(TaskCollaborator.task_id.in_(task_ids)))
    await db.execute(delete(Task).where(Task.project_id == project_id))
    await db.execute(delete(TaskColumn).where(TaskColumn.project_id == project_id))
    await db.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
    await db.execute(delete(ProjectInvitation).where(ProjectInvitation.project_id == project_id))
    await db.execute(
        delete(ProjectInvitationLink).where(ProjectInvitationLink.project_id == project_id)
    )


class ProjectService:
    """Service class for project business logic."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def create_project(self, project_data: ProjectCreate, user_id: UUID) -> Dict[str, Any]:
        """Create a project owned by the caller, seeded with the default board columns."""
        project = Project(
            owner_id=user_id,
            name=project_data.name,
            description=project_data.description,
            color=project_data.color,
        )

        try:
            self.db.add(project)
            await self.db.flush()

            self.audit.record(
                project_id=project.id,
                user_id=user_id,
                action=AuditAction.project_created,
                entity_type=AuditEntity.project,
                entity_id=project.id,
                details={"project_name": project.name},
            )

            for defaults in DEFAULT_COLUMNS:
                column = TaskColumn(project_id=project.id, **defaults)
                self.db.add(column)
                await self.db.flush()
                self.audit.record(
                    project_id=project.id,
                    user_id=user_id,
                    action=AuditAction.column_created,
                    entity_type=AuditEntity.column,
                    entity_id=column.id,
                    details={"column_name": column.name, "position": column.position},
                )

            await self.db.commit()
            await self.db.refresh(project)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create project for user %s", user_id)
            raise DatabaseError("Failed to create project") from e

        logger.info("Project %s created by %s", project.id, user_id)
        owner = await self.db.get(User, user_id)
        return self._to_dict(project, Role.owner, owner.full_name if owner else None)

    async def get_projects_list(
        self, user_id: UUID, pagination: Optional[PaginationParams] = None
    ) -> Dict[str, Any]:
        """Projects the caller owns or belongs to, most recently updated first."""
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        stmt = (
            select(Project)
            .where(or_(Project.owner_id == user_id, Project.id.in_(member_of)))
            .order_by(desc(Project.updated_at))
        )

        page = await paginate(self.db, stmt, pagination or PaginationParams())
        projects = page["items"]

        roles = await self._member_roles(user_id, [p.id for p in projects])
        owner_names = await self._owner_names({p.owner_id for p in projects})

        page["items"] = [
            self._to_dict(
                project,
                Role.owner if project.owner_id == user_id else Role(roles[project.id]),
                owner_names.get(project.owner_id),
            )
            for project in projects
        ]
        return page

    async def get_project(self, project_id: UUID, user_id: UUID) -> Dict[str, Any]:
        role = await require_project_access(self.db, user_id, project_id, Role.member)
        project = await self._get_project(project_id)
        owner_names = await self._owner_names({project.owner_id})
        return self._to_dict(project, role, owner_names.get(project.owner_id))

    async def update_project(
        self, project_id: UUID, project_data: ProjectUpdate, user_id: UUID
    ) -> Dict[str, Any]:
        """Update name, description or color; requires admin."""
        role = await require_project_access(
            self.db,
            user_id,
            project_id,
            Role.admin,
            "Only owners and admins can update the project",
        )
        project = await self._get_project(project_id)

        update_data = project_data.model_dump(exclude_unset=True)
        if "name" in update_data and update_data["name"] is None:
            update_data.pop("name")
        if "color" in update_data and update_data["color"] is None:
            update_data.pop("color")

        before = snapshot(project, *PROJECT_TRACKED_FIELDS)
        for field, value in update_data.items():
            setattr(project, field, value)

        self.audit.record_events(
            diff_project(before, update_data),
            project_id=project.id,
            user_id=user_id,
            entity_type=AuditEntity.project,
            entity_id=project.id,
        )

        try:
            await self.db.commit()
            await self.db.refresh(project)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to update project %s", project_id)
            raise DatabaseError("Failed to update project") from e

        owner_names = await self._owner_names({project.owner_id})
        return self._to_dict(project, role, owner_names.get(project.owner_id))

    async def delete_project(self, project_id: UUID, user_id: UUID) -> bool:
        """Delete a project and everything on its board; owner only."""
        await require_project_access(
            self.db,
            user_id,
            project_id,
            Role.owner,
            "Only the project owner can delete the project",
        )
        project = await self._get_project(project_id)

        try:
            self.audit.record(
                project_id=project.id,
                user_id=user_id,
                action=AuditAction.project_deleted,
                entity_type=AuditEntity.project,
                entity_id=project.id,
                details={"project_name": project.name},
            )
            await purge_project_rows(self.db, project.id)
            await self.db.delete(project)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to delete project %s", project_id)
            raise DatabaseError("Failed to delete project") from e

        logger.info("Project %s deleted by %s", project_id, user_id)
        return True

    # Private helper methods
    async def _get_project(self, project_id: UUID) -> Project:
        project = await self.db.get(Project, project_id)
        if not project:
            raise ProjectNotFoundError()
        return project

    async def _member_roles(self, user_id: UUID, project_ids: list[UUID]) -> Dict[UUID, str]:
        if not project_ids:
            return {}
        result = await self.db.execute(
            select(ProjectMember.project_id, ProjectMember.role).where(
                ProjectMember.user_id == user_id,
                ProjectMember.project_id.in_(project_ids),
            )
        )
        return {project_id: role for project_id, role in result.all()}

    async def _owner_names(self, owner_ids: set[UUID]) -> Dict[UUID, str]:
        if not owner_ids:
            return {}
        result = await self.db.execute(
            select(User.id, User.full_name).where(User.id.in_(owner_ids))
        )
        return {uid: name for uid, name in result.all()}

    @staticmethod
    def _to_dict(project: Project, role: Role, owner_name: Optional[str]) -> Dict[str, Any]:
        return {
            "id": project.id,
            "owner_id": project.owner_id,
            "name": project.name,
            "description": project.description,
            "color": project.color,
            "created_at": project.created_at,
            "updated_at": project.updated_at,
            "role": Role(role).value,
            "owner_name": owner_name,
        }
