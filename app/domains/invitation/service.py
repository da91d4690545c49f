"""
Invitation lifecycle.

An invitation moves ``pending -> accepted | expired | rejected`` and never
leaves a terminal state. Expiry is applied lazily whenever an overdue
pending invitation is touched, and in bulk by the periodic sweep.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.permissions import Role, get_project_role, require_project_access
from app.core.security import generate_token
from app.domains.audit.recorder import (
    AuditAction,
    AuditEntity,
    AuditRecorder,
    diff_invitation,
    snapshot,
)
from app.exceptions.base import AppPermissionError, DatabaseError
from app.exceptions.invitation import (
    DuplicateInvitationError,
    InvitationAlreadyAcceptedError,
    InvitationDeliveryError,
    InvitationExpiredError,
    InvitationNotFoundError,
    InvitationNotPendingError,
    InvitationRetryError,
    RegistrationRequiredError,
)
from app.exceptions.project import AlreadyMemberError
from app.exceptions.user import UserNotFoundError
from app.schemas.invitation import InvitationCreate
from app.services.email_service import EmailResult, email_service
from models import Project, ProjectInvitation, ProjectMember, User
from models.base import utcnow

logger = logging.getLogger(__name__)


def is_overdue(invitation: ProjectInvitation) -> bool:
    return invitation.status == "pending" and utcnow() > invitation.expires_at


async def expire_stale_invitations(db: AsyncSession) -> int:
    """Mark every overdue pending invitation as expired. Returns the count."""
    result = await db.execute(
        select(ProjectInvitation).where(
            ProjectInvitation.status == "pending",
            ProjectInvitation.expires_at < utcnow(),
        )
    )
    invitations = list(result.scalars().all())

    recorder = AuditRecorder(db)
    try:
        for invitation in invitations:
            _transition(recorder, invitation, "expired", user_id=None)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Failed to expire stale invitations")
        raise DatabaseError("Failed to expire invitations") from e

    if invitations:
        logger.info("Expired %d stale invitations", len(invitations))
    return len(invitations)


def _transition(
    recorder: AuditRecorder,
    invitation: ProjectInvitation,
    status: str,
    user_id: Optional[UUID],
) -> None:
    before = snapshot(invitation, "email", "status")
    invitation.status = status
    if status == "accepted":
        invitation.accepted_at = utcnow()
    recorder.record_events(
        diff_invitation(before, {"status": status}),
        project_id=invitation.project_id,
        user_id=user_id,
        entity_type=AuditEntity.invitation,
        entity_id=invitation.id,
    )


class InvitationService:
    """Service class for email invitations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditRecorder(db)

    async def create_invitation(
        self, data: InvitationCreate, inviter: User
    ) -> Tuple[Dict[str, Any], EmailResult]:
        """
        Invite a registered user to a project and email them the link.

        The invitation is only committed once the email went out; a delivery
        failure rolls it back and raises ``InvitationDeliveryError``.
        """
        project_id = data.project_id
        await require_project_access(
            self.db, inviter.id, project_id, Role.admin, "Only owners and admins can invite"
        )
        project = await self.db.get(Project, project_id)

        invitee = await self.db.scalar(select(User).where(User.email == data.email))
        if not invitee:
            raise UserNotFoundError("No user found with this email")
        if await get_project_role(self.db, invitee.id, project_id) is not None:
            raise AlreadyMemberError()

        pending = await self.db.scalar(
            select(ProjectInvitation).where(
                ProjectInvitation.project_id == project_id,
                ProjectInvitation.email == data.email,
                ProjectInvitation.status == "pending",
            )
        )
        if pending is not None:
            if not is_overdue(pending):
                raise DuplicateInvitationError()
            _transition(self.audit, pending, "expired", user_id=None)

        invitation = ProjectInvitation(
            project_id=project_id,
            email=data.email,
            role=data.role,
            token=generate_token(),
            invited_by=inviter.id,
            status="pending",
            expires_at=utcnow() + timedelta(days=settings.invitation_expire_days),
        )

        try:
            self.db.add(invitation)
            await self.db.flush()
            self.audit.record(
                project_id=project_id,
                user_id=inviter.id,
                action=AuditAction.invitation_sent,
                entity_type=AuditEntity.invitation,
                entity_id=invitation.id,
                details={"invited_email": invitation.email, "role": invitation.role},
            )
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateInvitationError() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to create invitation in project %s", project_id)
            raise DatabaseError("Failed to create invitation") from e

        result = await run_in_threadpool(
            email_service.send_invitation_email,
            invitation.email,
            inviter.display_name,
            project.name,
            invitation.role,
            invitation.token,
        )
        if not result.success:
            await self.db.rollback()
            logger.error("Invitation email to %s failed: %s", data.email, result.error)
            raise InvitationDeliveryError(result.error)

        try:
            await self.db.commit()
            await self.db.refresh(invitation)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to commit invitation in project %s", project_id)
            raise DatabaseError("Failed to create invitation") from e

        logger.info("Invitation %s sent to %s", invitation.id, invitation.email)
        return self._to_dict(invitation, inviter), result

    async def accept_invitation(self, token: str, user: User) -> Dict[str, Any]:
        """
        Accept an invitation on behalf of ``user``.

        The invitation row is locked for the rest of the transaction so that
        two concurrent acceptances cannot both create a membership.
        """
        invitation = await self.db.scalar(
            select(ProjectInvitation).where(ProjectInvitation.token == token).with_for_update()
        )
        if invitation is None:
            raise InvitationNotFoundError()

        if invitation.status == "accepted":
            raise InvitationAlreadyAcceptedError(invitation.project_id)
        await self._raise_if_expired(invitation)
        if invitation.status != "pending":
            raise InvitationNotPendingError(invitation.status)

        invitee_exists = await self.db.scalar(
            select(User.id).where(User.email == invitation.email)
        )
        if invitee_exists is None:
            raise RegistrationRequiredError(invitation.email)
        if user.email.lower() != invitation.email.lower():
            raise AppPermissionError("This invitation was sent to a different email address")

        project_id = invitation.project_id
        role = invitation.role
        current_role = await get_project_role(self.db, user.id, project_id)

        try:
            _transition(self.audit, invitation, "accepted", user_id=user.id)
            if current_role is None:
                member = ProjectMember(project_id=project_id, user_id=user.id, role=role)
                self.db.add(member)
                await self.db.flush()
                self.audit.record(
                    project_id=project_id,
                    user_id=user.id,
                    action=AuditAction.member_added,
                    entity_type=AuditEntity.member,
                    entity_id=member.id,
                    details={"user_id": user.id, "email": user.email, "role": role},
                )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Concurrent acceptance of invitation for project %s", project_id)
            raise InvitationRetryError() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to accept invitation for project %s", project_id)
            raise DatabaseError("Failed to accept invitation") from e

        if current_role is not None:
            return {"project_id": project_id, "role": current_role.value, "already_member": True}

        logger.info("User %s joined project %s as %s", user.id, project_id, role)
        return {"project_id": project_id, "role": role, "already_member": False}

    async def reject_invitation(self, token: str, user: User) -> bool:
        invitation = await self.db.scalar(
            select(ProjectInvitation).where(ProjectInvitation.token == token).with_for_update()
        )
        if invitation is None:
            raise InvitationNotFoundError()
        if user.email.lower() != invitation.email.lower():
            raise AppPermissionError("This invitation was sent to a different email address")
        await self._raise_if_expired(invitation)
        if invitation.status != "pending":
            raise InvitationNotPendingError(invitation.status)

        _transition(self.audit, invitation, "rejected", user_id=user.id)
        await self._commit("Failed to reject invitation")
        return True

    async def cancel_invitation(self, invitation_id: UUID, user_id: UUID) -> bool:
        """Withdraw a pending invitation. Cancelled invitations end up ``rejected``."""
        invitation = await self.db.get(ProjectInvitation, invitation_id)
        if invitation is None:
            raise InvitationNotFoundError()
        await require_project_access(
            self.db,
            user_id,
            invitation.project_id,
            Role.admin,
            "Only owners and admins can cancel invitations",
        )
        if invitation.status != "pending":
            raise InvitationNotPendingError(invitation.status)

        invitation.status = "rejected"
        self.audit.record(
            project_id=invitation.project_id,
            user_id=user_id,
            action=AuditAction.invitation_cancelled,
            entity_type=AuditEntity.invitation,
            entity_id=invitation.id,
            details={"invited_email": invitation.email},
        )
        await self._commit("Failed to cancel invitation")
        return True

    async def get_project_invitations(
        self, project_id: UUID, user_id: UUID
    ) -> List[Dict[str, Any]]:
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can view invitations"
        )
        result = await self.db.execute(
            select(ProjectInvitation, User)
            .outerjoin(User, ProjectInvitation.invited_by == User.id)
            .where(ProjectInvitation.project_id == project_id)
            .order_by(desc(ProjectInvitation.created_at))
        )
        return [self._to_dict(invitation, inviter) for invitation, inviter in result.all()]

    async def preview_invitation(self, token: str, user: Optional[User] = None) -> Dict[str, Any]:
        """Read-only summary shown on the acceptance page; no state changes."""
        row = (
            await self.db.execute(
                select(ProjectInvitation, Project, User)
                .join(Project, ProjectInvitation.project_id == Project.id)
                .outerjoin(User, ProjectInvitation.invited_by == User.id)
                .where(ProjectInvitation.token == token)
            )
        ).first()
        if row is None:
            raise InvitationNotFoundError()
        invitation, project, inviter = row

        return {
            "project_id": project.id,
            "project_name": project.name,
            "project_description": project.description,
            "inviter_name": inviter.display_name if inviter else None,
            "email": invitation.email,
            "role": invitation.role,
            "status": invitation.status,
            "expires_at": invitation.expires_at,
            "is_expired": invitation.status == "expired" or is_overdue(invitation),
            "email_matches": (
                user.email.lower() == invitation.email.lower() if user is not None else None
            ),
        }

    # Private helper methods
    async def _raise_if_expired(self, invitation: ProjectInvitation) -> None:
        if invitation.status == "expired":
            raise InvitationExpiredError()
        if is_overdue(invitation):
            _transition(self.audit, invitation, "expired", user_id=None)
            await self._commit("Failed to expire invitation")
            raise InvitationExpiredError()

    async def _commit(self, message: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(message)
            raise DatabaseError(message) from e

    @staticmethod
    def _to_dict(invitation: ProjectInvitation, inviter: Optional[User]) -> Dict[str, Any]:
        return {
            "id": invitation.id,
            "project_id": invitation.project_id,
            "email": invitation.email,
            "role": invitation.role,
            "status": invitation.status,
            "invited_by": invitation.invited_by,
            "expires_at": invitation.expires_at,
            "accepted_at": invitation.accepted_at,
            "created_at": invitation.created_at,
            "inviter": inviter,
        }
