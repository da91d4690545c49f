"""
Unit tests for InvitationLinkService.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core.config import settings
from app.core.permissions import Role, get_project_role
from app.domains.invitation_link.service import InvitationLinkService
from app.exceptions.base import AppPermissionError
from app.exceptions.invitation import InvitationExpiredError, InvitationLinkNotFoundError
from app.exceptions.project import AlreadyMemberError
from models import AuditLog, ProjectInvitationLink
from models.base import utcnow
from tests.factories import persist


async def _link_actions(db):
    result = await db.execute(
        select(AuditLog.action)
        .where(AuditLog.entity_type == "invitation_link")
        .order_by(AuditLog.created_at, AuditLog.action)
    )
    return list(result.scalars().all())


class TestManageLinks:
    @pytest.mark.asyncio
    async def test_create_returns_existing_active_link(self, test_db, project, owner):
        service = InvitationLinkService(test_db)

        first = await service.create_link(project.id, owner.id)
        second = await service.create_link(project.id, owner.id)

        assert first["id"] == second["id"]
        assert first["url"] == f"{settings.frontend_url}/invite/{first['token']}"
        assert await _link_actions(test_db) == ["invitation_link_created"]

    @pytest.mark.asyncio
    async def test_rotate_replaces_active_link(self, test_db, project, owner):
        service = InvitationLinkService(test_db)
        first = await service.create_link(project.id, owner.id)

        rotated = await service.create_link(project.id, owner.id, rotate=True)

        assert rotated["token"] != first["token"]
        old = await test_db.scalar(
            select(ProjectInvitationLink.is_active).where(ProjectInvitationLink.id == first["id"])
        )
        assert old is False
        actions = await _link_actions(test_db)
        assert sorted(actions) == [
            "invitation_link_created",
            "invitation_link_created",
            "invitation_link_deactivated",
        ]
        active = await service.get_active_link(project.id, owner.id)
        assert active["id"] == rotated["id"]

    @pytest.mark.asyncio
    async def test_deactivate_counts_links(self, test_db, project, owner):
        service = InvitationLinkService(test_db)
        await service.create_link(project.id, owner.id)

        assert await service.deactivate_links(project.id, owner.id) == 1
        assert await service.deactivate_links(project.id, owner.id) == 0
        assert await service.get_active_link(project.id, owner.id) is None

    @pytest.mark.asyncio
    async def test_members_cannot_manage_links(self, test_db, team_project, member_user):
        service = InvitationLinkService(test_db)

        with pytest.raises(AppPermissionError):
            await service.create_link(team_project.id, member_user.id)
        with pytest.raises(AppPermissionError):
            await service.get_active_link(team_project.id, member_user.id)

    @pytest.mark.asyncio
    async def test_admin_can_manage_links(self, test_db, team_project, admin_user):
        link = await InvitationLinkService(test_db).create_link(team_project.id, admin_user.id)
        assert link["created_by"] == admin_user.id


class TestAcceptLink:
    @pytest.mark.asyncio
    async def test_join_as_member(self, test_db, project, owner, outsider):
        service = InvitationLinkService(test_db)
        link = await service.create_link(project.id, owner.id)

        result = await service.accept_link(link["token"], outsider)

        assert result == {"project_id": project.id, "role": "member", "already_member": False}
        assert await get_project_role(test_db, outsider.id, project.id) == Role.member
        log = await test_db.scalar(select(AuditLog).where(AuditLog.action == "member_added"))
        assert log.user_id == outsider.id
        assert log.details["via_link"] is True

    @pytest.mark.asyncio
    async def test_existing_member_is_told_so(self, test_db, team_project, owner, admin_user):
        service = InvitationLinkService(test_db)
        link = await service.create_link(team_project.id, owner.id)

        result = await service.accept_link(link["token"], admin_user)

        assert result["already_member"] is True
        assert result["role"] == "admin"

    @pytest.mark.asyncio
    async def test_owner_cannot_join_own_project(self, test_db, project, owner):
        service = InvitationLinkService(test_db)
        link = await service.create_link(project.id, owner.id)

        with pytest.raises(AlreadyMemberError, match="owner"):
            await service.accept_link(link["token"], owner)

    @pytest.mark.asyncio
    async def test_unknown_or_inactive_link(self, test_db, project, owner, outsider):
        service = InvitationLinkService(test_db)
        link = await service.create_link(project.id, owner.id)
        await service.deactivate_links(project.id, owner.id)

        with pytest.raises(InvitationLinkNotFoundError):
            await service.accept_link(link["token"], outsider)
        with pytest.raises(InvitationLinkNotFoundError):
            await service.accept_link("no-such-token", outsider)

    @pytest.mark.asyncio
    async def test_expired_link_is_deactivated(self, test_db, project, owner, outsider):
        link = await persist(
            test_db,
            ProjectInvitationLink(
                project_id=project.id,
                token="stale-link-token",
                created_by=owner.id,
                expires_at=utcnow() - timedelta(minutes=1),
                is_active=True,
            ),
        )
        link_id = link.id

        with pytest.raises(InvitationExpiredError) as exc_info:
            await InvitationLinkService(test_db).accept_link("stale-link-token", outsider)

        assert exc_info.value.status_code == 410
        is_active = await test_db.scalar(
            select(ProjectInvitationLink.is_active).where(ProjectInvitationLink.id == link_id)
        )
        assert is_active is False
        assert await get_project_role(test_db, outsider.id, project.id) is None

        log = await test_db.scalar(
            select(AuditLog).where(AuditLog.action == "invitation_link_deactivated")
        )
        assert log.entity_id == link_id
        assert log.user_id is None
        assert log.details == {"reason": "expired"}
