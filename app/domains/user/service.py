# app/domains/user/service.py
import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.security import TokenAuthenticator, generate_token, hash_password, verify_password
from app.domains.project.service import purge_project_rows
from app.exceptions.base import BadRequestError, DatabaseError
from app.exceptions.user import (
    EmailAlreadyRegisteredError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    UsernameTakenError,
    UserNotFoundError,
)
from app.services.email_service import EmailResult, email_service
from models import (
    AuditLog,
    Project,
    ProjectInvitation,
    ProjectInvitationLink,
    ProjectMember,
    Task,
    TaskCollaborator,
    TaskComment,
    User,
)
from models.base import utcnow

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.tokens = TokenAuthenticator()

    # ===== Lookups =====

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by ID."""
        return await self.db.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user_by_token_subject(self, subject: str) -> Optional[User]:
        """Resolve the ``sub`` claim of an access token to a user."""
        try:
            user_id = UUID(str(subject))
        except ValueError:
            return None
        return await self.get_user_by_id(user_id)

    def issue_token(self, user: User) -> str:
        return self.tokens.create_access_token(user.id, user.email)

    # ===== Registration & verification =====

    async def register(self, email: str, password: str, full_name: str) -> tuple[User, EmailResult]:
        """Create an unverified account and send the verification email.

        A delivery failure is logged but does not undo the registration; the
        user can ask for the email again.
        """
        if await self.get_user_by_email(email):
            raise EmailAlreadyRegisteredError()

        token = generate_token()
        user = User(
            email=email.lower(),
            password_hash=hash_password(password),
            full_name=full_name,
            email_verified=False,
            email_verification_token=token,
            email_verification_expires=utcnow()
            + timedelta(hours=settings.email_verification_expire_hours),
        )

        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
        except IntegrityError as e:
            await self.db.rollback()
            raise EmailAlreadyRegisteredError() from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to register %s", email)
            raise DatabaseError("Failed to create account") from e

        result = await run_in_threadpool(
            email_service.send_verification_email, user.email, user.full_name, token
        )
        if not result.success:
            logger.error("Failed to send verification email to %s: %s", user.email, result.error)

        logger.info("User %s registered", user.id)
        return user, result

    async def verify_email(self, token: str) -> User:
        result = await self.db.execute(
            select(User).where(User.email_verification_token == token)
        )
        user = result.scalar_one_or_none()
        expires = user.email_verification_expires if user else None
        if not expires or expires < utcnow():
            raise InvalidOrExpiredTokenError("Invalid or expired verification token")
        if user.email_verified:
            raise BadRequestError("Email already verified", error_code="EMAIL_ALREADY_VERIFIED")

        user.email_verified = True
        user.email_verification_token = None
        user.email_verification_expires = None
        await self._commit(user, "Failed to verify email")
        return user

    async def resend_verification(self, email: str) -> EmailResult:
        user = await self.get_user_by_email(email)
        if not user:
            raise UserNotFoundError()
        if user.email_verified:
            raise BadRequestError("Email already verified", error_code="EMAIL_ALREADY_VERIFIED")

        token = generate_token()
        user.email_verification_token = token
        user.email_verification_expires = utcnow() + timedelta(
            hours=settings.email_verification_expire_hours
        )
        await self._commit(user, "Failed to refresh verification token")

        result = await run_in_threadpool(
            email_service.send_verification_email, user.email, user.full_name, token
        )
        if not result.success:
            logger.error("Failed to resend verification email to %s: %s", user.email, result.error)
        return result

    # ===== Login & password reset =====

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise InvalidCredentialsError("User account is inactive")
        if settings.require_email_verification and not user.email_verified:
            raise EmailNotVerifiedError(user.email)
        return user

    async def request_password_reset(self, email: str) -> Optional[EmailResult]:
        """Issue a reset token. Returns None for unknown emails; callers must not reveal that."""
        user = await self.get_user_by_email(email)
        if not user:
            return None

        token = generate_token()
        user.password_reset_token = token
        user.password_reset_expires = utcnow() + timedelta(
            minutes=settings.password_reset_expire_minutes
        )
        await self._commit(user, "Failed to store password reset token")

        result = await run_in_threadpool(
            email_service.send_password_reset_email, user.email, user.full_name, token
        )
        if not result.success:
            logger.error("Failed to send password reset email to %s: %s", user.email, result.error)
        return result

    async def reset_password(self, token: str, new_password: str) -> User:
        result = await self.db.execute(select(User).where(User.password_reset_token == token))
        user = result.scalar_one_or_none()
        if not user or not user.password_reset_expires or user.password_reset_expires < utcnow():
            raise InvalidOrExpiredTokenError("Invalid or expired reset token")

        user.password_hash = hash_password(new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        await self._commit(user, "Failed to reset password")
        logger.info("Password reset for user %s", user.id)
        return user

    # ===== Profile =====

    async def update_name(self, user: User, full_name: str) -> User:
        user.full_name = full_name
        await self._commit(user, "Failed to update name")
        return user

    async def update_username(self, user: User, username: str) -> User:
        existing = await self.db.scalar(
            select(User.id).where(User.username == username, User.id != user.id)
        )
        if existing:
            raise UsernameTakenError()

        user.username = username
        try:
            await self.db.commit()
            await self.db.refresh(user)
        except IntegrityError as e:
            await self.db.rollback()
            raise UsernameTakenError() from e
        return user

    async def update_avatar(self, user: User, avatar_url: str) -> User:
        user.avatar_url = avatar_url
        await self._commit(user, "Failed to update avatar")
        return user

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise BadRequestError("Current password is incorrect", error_code="INVALID_PASSWORD")
        user.password_hash = hash_password(new_password)
        await self._commit(user, "Failed to update password")

    async def delete_account(self, user: User) -> bool:
        """Delete the user, the projects they own and their participation elsewhere."""
        user_id = user.id
        try:
            owned = await self.db.execute(select(Project.id).where(Project.owner_id == user_id))
            for project_id in owned.scalars().all():
                await purge_project_rows(self.db, project_id)
                await self.db.execute(delete(Project).where(Project.id == project_id))

            await self.db.execute(delete(TaskComment).where(TaskComment.user_id == user_id))
            await self.db.execute(
                delete(TaskCollaborator).where(TaskCollaborator.user_id == user_id)
            )
            await self.db.execute(delete(ProjectMember).where(ProjectMember.user_id == user_id))
            await self.db.execute(
                delete(ProjectInvitation).where(ProjectInvitation.invited_by == user_id)
            )
            await self.db.execute(
                delete(ProjectInvitationLink).where(ProjectInvitationLink.created_by == user_id)
            )
            await self.db.execute(
                update(Task).where(Task.assignee_id == user_id).values(assignee_id=None)
            )
            await self.db.execute(
                update(Task).where(Task.created_by == user_id).values(created_by=None)
            )
            await self.db.execute(
                update(TaskCollaborator)
                .where(TaskCollaborator.added_by == user_id)
                .values(added_by=None)
            )
            await self.db.execute(
                update(AuditLog).where(AuditLog.user_id == user_id).values(user_id=None)
            )
            await self.db.execute(delete(User).where(User.id == user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to delete account %s", user_id)
            raise DatabaseError("Failed to delete account") from e

        logger.info("Account %s deleted", user_id)
        return True

    async def _commit(self, user: User, failure_message: str) -> None:
        try:
            await self.db.commit()
            await self.db.refresh(user)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(failure_message)
            raise DatabaseError(failure_message) from e
