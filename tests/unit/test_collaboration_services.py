"""
Unit tests for CommentService, CollaboratorService and MemberService.
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import select

from app.domains.collaborator.service import CollaboratorService
from app.domains.comment.service import CommentService
from app.domains.member.service import MemberService
from app.exceptions.base import AppPermissionError, BadRequestError, ConflictError
from app.exceptions.project import AlreadyMemberError, MemberNotFoundError, ProjectNotFoundError
from app.exceptions.user import UserNotFoundError
from app.schemas.comment import CommentCreate, CommentUpdate
from app.schemas.member import CollaboratorAdd, MemberAdd, MemberRoleUpdate
from models import AuditLog, ProjectMember, Task, TaskCollaborator, TaskComment
from tests.factories import CommentFactory, TaskFactory, persist


@pytest_asyncio.fixture
async def task(test_db, team_project, columns, member_user):
    """A task assigned to the plain member."""
    return await persist(
        test_db,
        TaskFactory.build(
            column_id=columns[0].id,
            project_id=team_project.id,
            title="Write release notes",
            assignee_id=member_user.id,
        ),
    )


async def _membership(db, project_id, user_id):
    return await db.scalar(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id, ProjectMember.user_id == user_id
        )
    )


class TestCommentService:
    @pytest.mark.asyncio
    async def test_add_comment_and_reply(self, test_db, task, owner, member_user):
        service = CommentService(test_db)

        root = await service.create_comment(
            CommentCreate(task_id=task.id, content="  Looks good  "), owner
        )
        reply = await service.create_comment(
            CommentCreate(task_id=task.id, content="Thanks!", parent_id=root["id"]), member_user
        )

        assert root["content"] == "Looks good"
        assert root["author"].id == owner.id
        assert reply["parent_id"] == root["id"]
        details = await test_db.scalar(
            select(AuditLog.details).where(AuditLog.entity_id == reply["id"])
        )
        assert details == {
            "task_id": str(task.id),
            "task_title": "Write release notes",
            "is_reply": True,
        }

    @pytest.mark.asyncio
    async def test_reply_must_stay_in_the_same_task(
        self, test_db, task, team_project, columns, owner
    ):
        other_task = await persist(
            test_db, TaskFactory.build(column_id=columns[1].id, project_id=team_project.id)
        )
        foreign = await persist(
            test_db, CommentFactory.build(task_id=other_task.id, user_id=owner.id)
        )

        with pytest.raises(BadRequestError) as exc_info:
            await CommentService(test_db).create_comment(
                CommentCreate(task_id=task.id, content="Hi", parent_id=foreign.id), owner
            )

        assert exc_info.value.error_code == "INVALID_PARENT_COMMENT"

    @pytest.mark.asyncio
    async def test_outsider_cannot_comment(self, test_db, task, outsider):
        with pytest.raises(ProjectNotFoundError):
            await CommentService(test_db).create_comment(
                CommentCreate(task_id=task.id, content="Hello?"), outsider
            )

    @pytest.mark.asyncio
    async def test_list_comments_with_authors(self, test_db, task, owner, member_user):
        await persist(test_db, CommentFactory.build(task_id=task.id, user_id=owner.id))

        comments = await CommentService(test_db).get_comments(task.id, member_user.id)

        assert len(comments) == 1
        assert comments[0]["author"].full_name == "Olivia Owner"

    @pytest.mark.asyncio
    async def test_only_author_edits(self, test_db, task, owner, member_user):
        comment = await persist(test_db, CommentFactory.build(task_id=task.id, user_id=owner.id))
        service = CommentService(test_db)

        with pytest.raises(AppPermissionError, match="edit your own"):
            await service.update_comment(comment.id, CommentUpdate(content="Hijack"), member_user)

        updated = await service.update_comment(comment.id, CommentUpdate(content="Edited"), owner)
        assert updated["content"] == "Edited"

    @pytest.mark.asyncio
    async def test_delete_removes_whole_thread(self, test_db, task, owner, member_user):
        root = await persist(test_db, CommentFactory.build(task_id=task.id, user_id=owner.id))
        reply = await persist(
            test_db,
            CommentFactory.build(task_id=task.id, user_id=member_user.id, parent_id=root.id),
        )
        await persist(
            test_db, CommentFactory.build(task_id=task.id, user_id=owner.id, parent_id=reply.id)
        )
        root_id, reply_id = root.id, reply.id

        assert await CommentService(test_db).delete_comment(root_id, owner.id)

        remaining = await test_db.execute(select(TaskComment).where(TaskComment.task_id == task.id))
        assert remaining.scalars().all() == []
        logs = (
            await test_db.execute(select(AuditLog).where(AuditLog.action == "comment_deleted"))
        ).scalars().all()
        assert len(logs) == 3
        by_entity = {log.entity_id: log for log in logs}
        assert "thread_root_id" not in by_entity[root_id].details
        assert by_entity[reply_id].details["thread_root_id"] == str(root_id)

    @pytest.mark.asyncio
    async def test_only_author_deletes(self, test_db, task, owner, admin_user):
        comment = await persist(test_db, CommentFactory.build(task_id=task.id, user_id=owner.id))

        with pytest.raises(AppPermissionError):
            await CommentService(test_db).delete_comment(comment.id, admin_user.id)


class TestCollaboratorService:
    @pytest.mark.asyncio
    async def test_assignee_adds_collaborator(self, test_db, task, member_user, admin_user):
        collaborator = await CollaboratorService(test_db).add_collaborator(
            CollaboratorAdd(task_id=task.id, user_id=admin_user.id), member_user.id
        )

        assert collaborator["user"].id == admin_user.id
        assert collaborator["added_by"] == member_user.id
        log = await test_db.scalar(select(AuditLog).where(AuditLog.entity_id == collaborator["id"]))
        assert log.action == "collaborator_added"
        assert log.entity_type == "task_collaborator"

    @pytest.mark.asyncio
    async def test_only_assignee_adds(self, test_db, task, owner, admin_user):
        with pytest.raises(AppPermissionError):
            await CollaboratorService(test_db).add_collaborator(
                CollaboratorAdd(task_id=task.id, user_id=admin_user.id), owner.id
            )

    @pytest.mark.asyncio
    async def test_collaborator_needs_project_access(self, test_db, task, member_user, outsider):
        with pytest.raises(BadRequestError) as exc_info:
            await CollaboratorService(test_db).add_collaborator(
                CollaboratorAdd(task_id=task.id, user_id=outsider.id), member_user.id
            )

        assert exc_info.value.error_code == "INVALID_COLLABORATOR"

    @pytest.mark.asyncio
    async def test_duplicate_collaborator(self, test_db, task, member_user, owner):
        service = CollaboratorService(test_db)
        await service.add_collaborator(
            CollaboratorAdd(task_id=task.id, user_id=owner.id), member_user.id
        )

        with pytest.raises(ConflictError) as exc_info:
            await service.add_collaborator(
                CollaboratorAdd(task_id=task.id, user_id=owner.id), member_user.id
            )

        assert exc_info.value.error_code == "ALREADY_COLLABORATOR"

    @pytest.mark.asyncio
    async def test_who_may_remove(self, test_db, task, owner, admin_user, member_user, outsider):
        await persist(
            test_db,
            ProjectMember(project_id=task.project_id, user_id=outsider.id, role="member"),
        )
        first, second = await persist(
            test_db,
            TaskCollaborator(task_id=task.id, user_id=owner.id, added_by=member_user.id),
            TaskCollaborator(task_id=task.id, user_id=admin_user.id, added_by=member_user.id),
        )
        service = CollaboratorService(test_db)

        # A plain member who is neither assignee nor the collaborator
        with pytest.raises(AppPermissionError):
            await service.remove_collaborator(first.id, outsider.id)

        assert await service.remove_collaborator(first.id, owner.id)
        assert await service.remove_collaborator(second.id, member_user.id)
        assert await service.get_collaborators(task.id, owner.id) == []


class TestMemberService:
    @pytest.mark.asyncio
    async def test_list_starts_with_owner_then_admins(
        self, test_db, team_project, owner, admin_user, member_user
    ):
        members = await MemberService(test_db).get_members(team_project.id, member_user.id)

        assert [(m["user_id"], m["role"]) for m in members] == [
            (owner.id, "owner"),
            (admin_user.id, "admin"),
            (member_user.id, "member"),
        ]
        assert members[0]["id"] is None

    @pytest.mark.asyncio
    async def test_add_member_by_email(self, test_db, team_project, admin_user, outsider):
        member = await MemberService(test_db).add_member(
            MemberAdd(project_id=team_project.id, email="Outsider@Example.com", role="admin"),
            admin_user.id,
        )

        assert member["user_id"] == outsider.id
        assert member["role"] == "admin"
        log = await test_db.scalar(select(AuditLog).where(AuditLog.action == "member_added"))
        assert log.details == {
            "user_id": str(outsider.id),
            "email": outsider.email,
            "role": "admin",
        }

    @pytest.mark.asyncio
    async def test_add_unknown_email(self, test_db, team_project, owner):
        with pytest.raises(UserNotFoundError):
            await MemberService(test_db).add_member(
                MemberAdd(project_id=team_project.id, email="ghost@example.com"), owner.id
            )

    @pytest.mark.asyncio
    async def test_cannot_add_owner_or_existing_member(
        self, test_db, team_project, owner, member_user
    ):
        service = MemberService(test_db)

        with pytest.raises(AlreadyMemberError):
            await service.add_member(
                MemberAdd(project_id=team_project.id, email=owner.email), owner.id
            )
        with pytest.raises(AlreadyMemberError):
            await service.add_member(
                MemberAdd(project_id=team_project.id, email=member_user.email), owner.id
            )

    @pytest.mark.asyncio
    async def test_members_cannot_add(self, test_db, team_project, member_user, outsider):
        with pytest.raises(AppPermissionError):
            await MemberService(test_db).add_member(
                MemberAdd(project_id=team_project.id, email=outsider.email), member_user.id
            )

    @pytest.mark.asyncio
    async def test_change_role(self, test_db, team_project, owner, member_user):
        membership = await _membership(test_db, team_project.id, member_user.id)

        result = await MemberService(test_db).update_member_role(
            membership.id, MemberRoleUpdate(role="admin"), owner.id
        )

        assert result["role"] == "admin"
        log = await test_db.scalar(
            select(AuditLog).where(AuditLog.action == "member_role_changed")
        )
        assert log.details == {
            "user_id": str(member_user.id),
            "old_role": "member",
            "new_role": "admin",
        }

    def test_owner_role_cannot_be_assigned(self):
        with pytest.raises(ValueError):
            MemberRoleUpdate(role="owner")

    @pytest.mark.asyncio
    async def test_member_leaves_project(self, test_db, team_project, member_user, task):
        membership = await _membership(test_db, team_project.id, member_user.id)
        task_id = task.id

        assert await MemberService(test_db).remove_member(membership.id, member_user.id)

        assert await _membership(test_db, team_project.id, member_user.id) is None
        assignee = await test_db.scalar(select(Task.assignee_id).where(Task.id == task_id))
        assert assignee is None
        log = await test_db.scalar(
            select(AuditLog).where(
                AuditLog.entity_id == task_id, AuditLog.action == "task_unassigned"
            )
        )
        assert log is not None
        assert log.user_id == member_user.id
        assert log.details["old_assignee_id"] == str(member_user.id)
        assert log.details["new_assignee_id"] is None

    @pytest.mark.asyncio
    async def test_removal_drops_collaborations(
        self, test_db, team_project, owner, admin_user, member_user, task
    ):
        collaborator = await persist(
            test_db,
            TaskCollaborator(task_id=task.id, user_id=admin_user.id, added_by=member_user.id),
        )
        collaborator_id, task_id = collaborator.id, task.id
        membership = await _membership(test_db, team_project.id, admin_user.id)

        await MemberService(test_db).remove_member(membership.id, owner.id)

        remaining = await test_db.execute(
            select(TaskCollaborator).where(TaskCollaborator.user_id == admin_user.id)
        )
        assert remaining.scalars().all() == []
        log = await test_db.scalar(
            select(AuditLog).where(AuditLog.action == "collaborator_removed")
        )
        assert log.entity_id == collaborator_id
        assert log.user_id == owner.id
        assert log.details["task_id"] == str(task_id)
        assert log.details["collaborator_id"] == str(admin_user.id)

    @pytest.mark.asyncio
    async def test_removal_audits_every_side_effect(
        self, test_db, team_project, owner, member_user, task
    ):
        await persist(
            test_db,
            TaskCollaborator(task_id=task.id, user_id=member_user.id, added_by=owner.id),
        )
        membership = await _membership(test_db, team_project.id, member_user.id)
        task_id = task.id

        await MemberService(test_db).remove_member(membership.id, owner.id)

        actions = (await test_db.execute(select(AuditLog.action))).scalars().all()
        assert actions.count("member_removed") == 1
        assert actions.count("collaborator_removed") == 1
        task_actions = await test_db.execute(
            select(AuditLog.action).where(AuditLog.entity_id == task_id)
        )
        assert task_actions.scalars().all() == ["task_unassigned"]

    @pytest.mark.asyncio
    async def test_member_cannot_remove_others(
        self, test_db, team_project, admin_user, member_user
    ):
        membership = await _membership(test_db, team_project.id, admin_user.id)

        with pytest.raises(AppPermissionError):
            await MemberService(test_db).remove_member(membership.id, member_user.id)

    @pytest.mark.asyncio
    async def test_unknown_membership(self, test_db, owner):
        with pytest.raises(MemberNotFoundError):
            await MemberService(test_db).remove_member(uuid.uuid4(), owner.id)
