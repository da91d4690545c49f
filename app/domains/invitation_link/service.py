"""Shareable invitation links: one active link per project, member role only."""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.permissions import Role, get_project_role, require_project_access
from app.core.security import generate_token
from app.domains.audit.recorder import AuditAction, AuditEntity, AuditRecorder
from app.exceptions.base import DatabaseError
from app.exceptions.invitation import (
    InvitationExpiredError,
    InvitationLinkNotFoundError,
    InvitationRetryError,
)
from app.exceptions.project import AlreadyMemberError
from models import ProjectInvitationLink, ProjectMember, User
from models.base import utcnow

logger = logging.getLogger(__name__)


def link_url(token: str) -> str:
    return f"{settings.frontend_url}/invite/{token}"


class InvitationLinkService:
    """Service class for project share links."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def get_active_link(self, project_id: UUID, user_id: UUID) -> Optional[Dict[str, Any]]:
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can manage links"
        )
        link = await self._active_link(project_id)
        return self._to_dict(link) if link else None

    async def create_link(
        self, project_id: UUID, user_id: UUID, rotate: bool = False
    ) -> Dict[str, Any]:
        """
        Return the project's active link, creating one if needed.

        With ``rotate`` the current link is deactivated and replaced even if
        it is still valid.
        """
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can manage links"
        )

        if not rotate:
            existing = await self._active_link(project_id)
            if existing:
                return self._to_dict(existing)

        link = ProjectInvitationLink(
            project_id=project_id,
            token=generate_token(),
            created_by=user_id,
            expires_at=utcnow() + timedelta(days=settings.invitation_link_expire_days),
            is_active=True,
        )

        try:
            await self._deactivate_all(project_id, user_id)
            self.db.add(link)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.invitation_link_created,
                entity_type=AuditEntity.invitation_link,
                entity_id=link.id,
                details={"expires_at": link.expires_at.isoformat(), "rotated": rotate},
            )
            await self.db.commit()
            await self.db.refresh(link)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create invitation link for project %s", project_id)
            raise DatabaseError("Failed to create invitation link") from e

        return self._to_dict(link)

    async def deactivate_links(self, project_id: UUID, user_id: UUID) -> int:
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can manage links"
        )
        try:
            count = await self._deactivate_all(project_id, user_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to deactivate links for project %s", project_id)
            raise DatabaseError("Failed to deactivate invitation links") from e
        return count

    async def accept_link(self, token: str, user: User) -> Dict[str, Any]:
        """Join the link's project as a member."""
        link = await self.db.scalar(
            select(ProjectInvitationLink)
            .where(ProjectInvitationLink.token == token, ProjectInvitationLink.is_active.is_(True))
            .with_for_update()
        )
        if link is None:
            raise InvitationLinkNotFoundError()

        project_id = link.project_id
        if utcnow() > link.expires_at:
            link.is_active = False
            self.audit.record(
                project_id=project_id,
                user_id=None,
                action=AuditAction.invitation_link_deactivated,
                entity_type=AuditEntity.invitation_link,
                entity_id=link.id,
                details={"reason": "expired"},
            )
            await self._commit("Failed to deactivate expired link")
            raise InvitationExpiredError("Invitation link has expired")

        role = await get_project_role(self.db, user.id, project_id)
        if role == Role.owner:
            raise AlreadyMemberError("You are the owner of this project")
        if role is not None:
            return {"project_id": project_id, "role": role.value, "already_member": True}

        member = ProjectMember(project_id=project_id, user_id=user.id, role=Role.member.value)
        try:
            self.db.add(member)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=user.id,
                action=AuditAction.member_added,
                entity_type=AuditEntity.member,
                entity_id=member.id,
                details={
                    "user_id": user.id,
                    "email": user.email,
                    "role": Role.member.value,
                    "via_link": True,
                },
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise InvitationRetryError() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to join project %s via link", project_id)
            raise DatabaseError("Failed to accept invitation link") from e

        logger.info("User %s joined project %s via link", user.id, project_id)
        return {"project_id": project_id, "role": Role.member.value, "already_member": False}

    # Private helper methods
    async def _active_link(self, project_id: UUID) -> Optional[ProjectInvitationLink]:
        return await self.db.scalar(
            select(ProjectInvitationLink)
            .where(
                ProjectInvitationLink.project_id == project_id,
                ProjectInvitationLink.is_active.is_(True),
                ProjectInvitationLink.expires_at > utcnow(),
            )
            .order_by(ProjectInvitationLink.created_at.desc())
            .limit(1)
        )

    async def _deactivate_all(self, project_id: UUID, user_id: UUID) -> int:
        result = await self.db.execute(
            select(ProjectInvitationLink.id).where(
                ProjectInvitationLink.project_id == project_id,
                ProjectInvitationLink.is_active.is_(True),
            )
        )
        link_ids = list(result.scalars().all())
        if not link_ids:
            return 0

        await self.db.execute(
            update(ProjectInvitationLink)
            .where(ProjectInvitationLink.id.in_(link_ids))
            .values(is_active=False)
        )
        for link_id in link_ids:
            self.audit.record(
                project_id=project_id,
                user_id=user_id,
                action=AuditAction.invitation_link_deactivated,
                entity_type=AuditEntity.invitation_link,
                entity_id=link_id,
            )
        return len(link_ids)

    async def _commit(self, message: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(message)
            raise DatabaseError(message) from e

    @staticmethod
    def _to_dict(link: ProjectInvitationLink) -> Dict[str, Any]:
        return {
            "id": link.id,
            "project_id": link.project_id,
            "token": link.token,
            "created_by": link.created_by,
            "expires_at": link.expires_at,
            "is_active": link.is_active,
            "created_at": link.created_at,
            "url": link_url(link.token),
        }
