"""
Unit tests for UserService: accounts, verification, passwords and profile.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.core.security import verify_password
from app.domains.user.service import UserService
from app.exceptions.base import BadRequestError
from app.exceptions.user import (
    EmailAlreadyRegisteredError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    UsernameTakenError,
    UserNotFoundError,
)
from models import AuditLog, Project, ProjectMember, User
from models.base import utcnow
from tests.factories import AuditLogFactory, UserFactory, persist

DEFAULT_PASSWORD = "password123"


class TestRegistration:
    @pytest.mark.asyncio
    async def test_register_creates_unverified_account(self, test_db):
        user, result = await UserService(test_db).register(
            "New.Person@Example.com", "s3cret-pass", "New Person"
        )

        assert user.email == "new.person@example.com"
        assert user.email_verified is False
        assert user.email_verification_token
        assert verify_password("s3cret-pass", user.password_hash)
        assert result.success is True
        assert result.is_test_mode is True
        assert result.preview_url.endswith(f"/verify-email?token={user.email_verification_token}")

    @pytest.mark.asyncio
    async def test_duplicate_email(self, test_db, owner):
        with pytest.raises(EmailAlreadyRegisteredError):
            await UserService(test_db).register("OWNER@example.com", "whatever1", "Again")

    @pytest.mark.asyncio
    async def test_verify_email(self, test_db):
        service = UserService(test_db)
        user, _ = await service.register("verify@example.com", "password123", "Vera")

        verified = await service.verify_email(user.email_verification_token)

        assert verified.email_verified is True
        assert verified.email_verification_token is None

    @pytest.mark.asyncio
    async def test_verify_with_unknown_or_expired_token(self, test_db):
        service = UserService(test_db)
        user, _ = await service.register("late@example.com", "password123", "Lately")
        token = user.email_verification_token
        user.email_verification_expires = utcnow() - timedelta(minutes=1)
        await test_db.commit()

        with pytest.raises(InvalidOrExpiredTokenError):
            await service.verify_email("nope")
        with pytest.raises(InvalidOrExpiredTokenError):
            await service.verify_email(token)

    @pytest.mark.asyncio
    async def test_resend_verification_issues_new_token(self, test_db):
        service = UserService(test_db)
        user, _ = await service.register("again@example.com", "password123", "Agatha")
        old_token = user.email_verification_token

        result = await service.resend_verification("again@example.com")

        assert user.email_verification_token != old_token
        assert result.preview_url.endswith(user.email_verification_token)

    @pytest.mark.asyncio
    async def test_resend_for_verified_or_unknown_email(self, test_db, owner):
        service = UserService(test_db)

        with pytest.raises(BadRequestError) as exc_info:
            await service.resend_verification(owner.email)
        assert exc_info.value.error_code == "EMAIL_ALREADY_VERIFIED"

        with pytest.raises(UserNotFoundError):
            await service.resend_verification("ghost@example.com")


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_authenticate(self, test_db, owner):
        user = await UserService(test_db).authenticate("Owner@Example.com", DEFAULT_PASSWORD)
        assert user.id == owner.id

    @pytest.mark.asyncio
    async def test_wrong_password_or_unknown_email(self, test_db, owner):
        service = UserService(test_db)

        with pytest.raises(InvalidCredentialsError):
            await service.authenticate(owner.email, "wrong-password")
        with pytest.raises(InvalidCredentialsError):
            await service.authenticate("ghost@example.com", DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_inactive_account(self, test_db):
        await persist(test_db, UserFactory.build(email="gone@example.com", is_active=False))

        with pytest.raises(InvalidCredentialsError, match="inactive"):
            await UserService(test_db).authenticate("gone@example.com", DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_unverified_account_is_refused(self, test_db):
        await persist(test_db, UserFactory.build(email="fresh@example.com", email_verified=False))

        with pytest.raises(EmailNotVerifiedError) as exc_info:
            await UserService(test_db).authenticate("fresh@example.com", DEFAULT_PASSWORD)

        assert exc_info.value.status_code == 403


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_reset_flow(self, test_db, owner):
        service = UserService(test_db)

        result = await service.request_password_reset(owner.email)
        token = owner.password_reset_token
        assert result.preview_url.endswith(f"/reset-password?token={token}")

        await service.reset_password(token, "brand-new-pass")

        assert owner.password_reset_token is None
        assert await service.authenticate(owner.email, "brand-new-pass")
        with pytest.raises(InvalidOrExpiredTokenError):
            await service.reset_password(token, "another-pass")

    @pytest.mark.asyncio
    async def test_unknown_email_is_silent(self, test_db):
        assert await UserService(test_db).request_password_reset("ghost@example.com") is None


class TestProfile:
    @pytest.mark.asyncio
    async def test_update_name_and_avatar(self, test_db, owner):
        service = UserService(test_db)

        await service.update_name(owner, "Olivia O.")
        await service.update_avatar(owner, "https://cdn.example.com/olivia.png")

        stored = await test_db.scalar(select(User).where(User.id == owner.id))
        assert stored.full_name == "Olivia O."
        assert stored.avatar_url == "https://cdn.example.com/olivia.png"

    @pytest.mark.asyncio
    async def test_username_must_be_unique(self, test_db, owner, member_user):
        service = UserService(test_db)
        await service.update_username(owner, "olivia")

        with pytest.raises(UsernameTakenError):
            await service.update_username(member_user, "olivia")

        # Setting one's own username again is fine
        assert (await service.update_username(owner, "olivia")).username == "olivia"

    @pytest.mark.asyncio
    async def test_change_password(self, test_db, owner):
        service = UserService(test_db)

        with pytest.raises(BadRequestError) as exc_info:
            await service.change_password(owner, "not-it", "new-password")
        assert exc_info.value.error_code == "INVALID_PASSWORD"

        await service.change_password(owner, DEFAULT_PASSWORD, "new-password")
        assert verify_password("new-password", owner.password_hash)


class TestDeleteAccount:
    @pytest.mark.asyncio
    async def test_delete_removes_owned_projects_and_memberships(
        self, test_db, team_project, owner, member_user
    ):
        other = await persist(test_db, Project(owner_id=member_user.id, name="Side project"))
        other_id, member_id, project_id = other.id, member_user.id, team_project.id
        await persist(
            test_db,
            AuditLogFactory.build(project_id=project_id, user_id=member_id),
        )

        assert await UserService(test_db).delete_account(member_user)

        assert await test_db.scalar(select(User.id).where(User.id == member_id)) is None
        assert await test_db.scalar(select(Project.id).where(Project.id == other_id)) is None
        memberships = await test_db.scalar(
            select(func.count())
            .select_from(ProjectMember)
            .where(ProjectMember.user_id == member_id)
        )
        assert memberships == 0
        orphaned = await test_db.scalar(
            select(func.count())
            .select_from(AuditLog)
            .where(AuditLog.project_id == project_id, AuditLog.user_id.is_(None))
        )
        assert orphaned == 1
        assert await test_db.scalar(select(Project.id).where(Project.id == project_id))
