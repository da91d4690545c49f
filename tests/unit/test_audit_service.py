"""
Unit tests for AuditService.

The ``project`` fixture is created through ProjectService, so every test
starts with one ``project_created`` and four ``column_created`` records.
"""

import csv
import io
import json
import uuid
from datetime import timedelta

import pytest

from app.domains.audit.service import CSV_HEADER, AuditService, render_audit_csv
from app.exceptions.audit import AuditLogNotFoundError
from app.exceptions.base import AppPermissionError
from app.exceptions.project import ProjectNotFoundError
from app.schemas.audit import AuditLogFilter
from app.shared.pagination import OffsetPaginationParams
from models import AuditLog, User
from models.base import utcnow
from tests.factories import AuditLogFactory, persist


class TestListLogs:
    @pytest.mark.asyncio
    async def test_lists_project_history(self, test_db, project, owner):
        page = await AuditService(test_db).list_logs(owner.id, project.id)

        assert page["total"] == 5
        assert page["has_more"] is False
        actions = sorted(log.action for log, _ in page["items"])
        assert actions == ["column_created"] * 4 + ["project_created"]
        assert all(user.id == owner.id for _, user in page["items"])

    @pytest.mark.asyncio
    async def test_newest_first(self, test_db, project, owner):
        await persist(
            test_db,
            AuditLogFactory.build(
                project_id=project.id,
                user_id=owner.id,
                action="task_created",
                created_at=utcnow() - timedelta(days=1),
            ),
        )

        page = await AuditService(test_db).list_logs(owner.id, project.id)

        assert page["items"][-1][0].action == "task_created"

    @pytest.mark.asyncio
    async def test_offset_pagination(self, test_db, project, owner):
        service = AuditService(test_db)

        first = await service.list_logs(
            owner.id, project.id, pagination=OffsetPaginationParams(limit=2, offset=0)
        )
        last = await service.list_logs(
            owner.id, project.id, pagination=OffsetPaginationParams(limit=2, offset=4)
        )

        assert len(first["items"]) == 2
        assert first["has_more"] is True
        assert len(last["items"]) == 1
        assert last["has_more"] is False
        assert last["total"] == 5

    @pytest.mark.asyncio
    async def test_filters_combine(self, test_db, project, owner, admin_user):
        await persist(
            test_db,
            AuditLogFactory.build(
                project_id=project.id, user_id=admin_user.id, action="column_created"
            ),
        )
        service = AuditService(test_db)

        by_action = await service.list_logs(
            owner.id, project.id, AuditLogFilter(action="column_created")
        )
        by_action_and_user = await service.list_logs(
            owner.id, project.id, AuditLogFilter(action="column_created", user_id=admin_user.id)
        )

        assert by_action["total"] == 5
        assert by_action_and_user["total"] == 1

    @pytest.mark.asyncio
    async def test_date_range_filter(self, test_db, project, owner):
        await persist(
            test_db,
            AuditLogFactory.build(
                project_id=project.id,
                user_id=owner.id,
                created_at=utcnow() - timedelta(days=10),
            ),
        )

        page = await AuditService(test_db).list_logs(
            owner.id,
            project.id,
            AuditLogFilter(
                start_date=utcnow() - timedelta(days=11), end_date=utcnow() - timedelta(days=9)
            ),
        )

        assert page["total"] == 1
        assert page["items"][0][0].action == "task_created"

    @pytest.mark.asyncio
    async def test_other_projects_are_not_included(self, test_db, project, owner):
        await persist(test_db, AuditLogFactory.build(project_id=uuid.uuid4(), user_id=owner.id))

        page = await AuditService(test_db).list_logs(owner.id, project.id)

        assert page["total"] == 5

    @pytest.mark.asyncio
    async def test_member_cannot_view(self, test_db, team_project, member_user):
        with pytest.raises(AppPermissionError):
            await AuditService(test_db).list_logs(member_user.id, team_project.id)

    @pytest.mark.asyncio
    async def test_outsider_gets_not_found(self, test_db, project, outsider):
        with pytest.raises(ProjectNotFoundError):
            await AuditService(test_db).list_logs(outsider.id, project.id)

    @pytest.mark.asyncio
    async def test_admin_can_view(self, test_db, team_project, admin_user):
        page = await AuditService(test_db).list_logs(admin_user.id, team_project.id)
        assert page["total"] == 5


class TestGetLog:
    @pytest.mark.asyncio
    async def test_returns_log_with_actor(self, test_db, project, owner):
        log = await persist(
            test_db, AuditLogFactory.build(project_id=project.id, user_id=owner.id)
        )

        found, user = await AuditService(test_db).get_log(owner.id, log.id)

        assert found.id == log.id
        assert user.id == owner.id

    @pytest.mark.asyncio
    async def test_log_without_project_is_hidden(self, test_db, owner):
        log = await persist(test_db, AuditLogFactory.build(project_id=None, user_id=owner.id))

        with pytest.raises(AuditLogNotFoundError):
            await AuditService(test_db).get_log(owner.id, log.id)

    @pytest.mark.asyncio
    async def test_outsider_cannot_tell_the_log_exists(self, test_db, project, outsider):
        log = await persist(test_db, AuditLogFactory.build(project_id=project.id))

        with pytest.raises(AuditLogNotFoundError):
            await AuditService(test_db).get_log(outsider.id, log.id)

    @pytest.mark.asyncio
    async def test_member_is_refused(self, test_db, team_project, member_user):
        log = await persist(test_db, AuditLogFactory.build(project_id=team_project.id))

        with pytest.raises(AppPermissionError):
            await AuditService(test_db).get_log(member_user.id, log.id)


class TestGetActions:
    @pytest.mark.asyncio
    async def test_full_vocabulary_without_project(self, test_db, owner):
        actions = await AuditService(test_db).get_actions(owner.id)

        assert "task_moved" in actions["all"]
        assert "invitation_link_deactivated" in actions["categorized"]["invitation_links"]
        assert actions["all"] == sorted(actions["all"])

    @pytest.mark.asyncio
    async def test_recorded_actions_for_project(self, test_db, project, owner):
        actions = await AuditService(test_db).get_actions(owner.id, project.id)

        assert actions["all"] == ["column_created", "project_created"]
        assert actions["categorized"]["columns"] == ["column_created"]
        assert actions["categorized"]["tasks"] == []


class TestGetStats:
    @pytest.mark.asyncio
    async def test_counts(self, test_db, project, owner):
        await persist(
            test_db,
            AuditLogFactory.build(
                project_id=project.id,
                user_id=None,
                action="invitation_expired",
                entity_type="invitation",
            ),
        )

        stats = await AuditService(test_db).get_stats(owner.id, project.id)

        assert stats["total"] == 6
        assert stats["by_action"][0] == {"action": "column_created", "count": 4}
        assert {"action": "invitation_expired", "count": 1} in stats["by_action"]
        # System events have no actor and do not rank
        assert stats["top_users"] == [
            {"user_id": owner.id, "full_name": owner.full_name, "email": owner.email, "count": 5}
        ]
        entity_counts = {row["entity_type"]: row["count"] for row in stats["by_entity_type"]}
        assert entity_counts == {"column": 4, "project": 1, "invitation": 1}
        assert sum(row["count"] for row in stats["by_day"]) == 6

    @pytest.mark.asyncio
    async def test_by_day_ignores_old_activity(self, test_db, project, owner):
        await persist(
            test_db,
            AuditLogFactory.build(
                project_id=project.id, user_id=owner.id, created_at=utcnow() - timedelta(days=60)
            ),
        )

        stats = await AuditService(test_db).get_stats(owner.id, project.id)

        assert stats["total"] == 6
        assert sum(row["count"] for row in stats["by_day"]) == 5

    @pytest.mark.asyncio
    async def test_requires_admin(self, test_db, team_project, member_user):
        with pytest.raises(AppPermissionError):
            await AuditService(test_db).get_stats(member_user.id, team_project.id)


class TestExportCsv:
    @pytest.mark.asyncio
    async def test_one_line_per_record_plus_header(self, test_db, project, owner):
        content = await AuditService(test_db).export_csv(owner.id, project.id)

        lines = content.split("\n")
        assert len(lines) == 6
        assert lines[0] == ",".join(f'"{name}"' for name in CSV_HEADER)
        assert not content.endswith("\n")

    @pytest.mark.asyncio
    async def test_empty_export_is_header_only(self, test_db, project, owner):
        content = await AuditService(test_db).export_csv(
            owner.id, project.id, AuditLogFilter(action="task_deleted")
        )

        assert content.split("\n") == [",".join(f'"{name}"' for name in CSV_HEADER)]

    @pytest.mark.asyncio
    async def test_member_cannot_export(self, test_db, team_project, member_user):
        with pytest.raises(AppPermissionError):
            await AuditService(test_db).export_csv(member_user.id, team_project.id)

    def test_quotes_are_doubled_and_details_are_json(self):
        user = User(
            id=uuid.uuid4(),
            email="quote@example.com",
            full_name='Dwayne "The Rock" Johnson',
            username=None,
        )
        log = AuditLog(
            id=uuid.uuid4(),
            project_id=uuid.uuid4(),
            user_id=user.id,
            action="comment_added",
            entity_type="comment",
            entity_id=None,
            details={"content": 'said "hi"'},
            created_at=utcnow(),
        )

        content = render_audit_csv([(log, user)])

        assert '"Dwayne ""The Rock"" Johnson"' in content
        row = list(csv.reader(io.StringIO(content)))[1]
        assert row[1] == "comment_added"
        assert row[3] == ""
        assert row[4].endswith("+00:00")
        assert row[5] == 'Dwayne "The Rock" Johnson'
        assert json.loads(row[8]) == {"content": 'said "hi"'}

    def test_record_without_actor_has_blank_user_columns(self):
        log = AuditLog(
            id=uuid.uuid4(),
            project_id=uuid.uuid4(),
            action="invitation_expired",
            entity_type="invitation",
            entity_id=uuid.uuid4(),
            details={},
            created_at=utcnow(),
        )

        row = list(csv.reader(io.StringIO(render_audit_csv([(log, None)]))))[1]

        assert row[5:8] == ["", "", ""]
        assert row[8] == "{}"


class TestCleanup:
    @pytest.mark.asyncio
    async def test_removes_only_old_records(self, test_db, project, owner):
        await persist(
            test_db,
            AuditLogFactory.build(
                project_id=project.id, user_id=owner.id, created_at=utcnow() - timedelta(days=100)
            ),
        )
        project_id, owner_id = project.id, owner.id

        deleted = await AuditService(test_db).cleanup_old_logs(days_to_keep=90)

        assert deleted == 1
        page = await AuditService(test_db).list_logs(owner_id, project_id)
        assert page["total"] == 5

    @pytest.mark.asyncio
    async def test_rejects_non_positive_retention(self, test_db):
        with pytest.raises(ValueError):
            await AuditService(test_db).cleanup_old_logs(days_to_keep=0)
