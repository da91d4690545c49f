"""
Unit tests for audit event recording and update diffs.
"""

import uuid

import pytest
from sqlalchemy import select

from app.domains.audit.recorder import (
    AuditAction,
    AuditEntity,
    AuditRecorder,
    categorize_actions,
    diff_column,
    diff_invitation,
    diff_member,
    diff_project,
    diff_task,
)
from models import AuditLog


def _actions(events):
    return [action for action, _ in events]


class TestDiffTask:
    def test_unchanged_fields_produce_nothing(self):
        before = {"title": "Write docs", "priority": "low", "column_id": None, "assignee_id": None}
        assert diff_task(before, {"priority": "low", "title": "Write docs"}) == []

    def test_each_changed_field_gets_its_own_event(self):
        old_column, new_column = uuid.uuid4(), uuid.uuid4()
        before = {
            "title": "Write docs",
            "priority": "low",
            "column_id": old_column,
            "assignee_id": None,
        }

        events = diff_task(before, {"column_id": new_column, "priority": "high"})

        assert _actions(events) == [AuditAction.task_moved, AuditAction.task_priority_changed]
        moved = events[0][1]
        assert moved == {
            "task_title": "Write docs",
            "old_column_id": str(old_column),
            "new_column_id": str(new_column),
        }
        assert events[1][1]["old_priority"] == "low"
        assert events[1][1]["new_priority"] == "high"

    def test_assignment_and_unassignment(self):
        user_id = uuid.uuid4()
        before = {"title": "T", "assignee_id": None}

        assigned = diff_task(before, {"assignee_id": user_id})
        unassigned = diff_task({"title": "T", "assignee_id": user_id}, {"assignee_id": None})

        assert _actions(assigned) == [AuditAction.task_assigned]
        assert assigned[0][1]["new_assignee_id"] == str(user_id)
        assert _actions(unassigned) == [AuditAction.task_unassigned]
        assert unassigned[0][1]["old_assignee_id"] == str(user_id)

    def test_title_change_uses_new_title_in_other_events(self):
        events = diff_task(
            {"title": "Old", "priority": "low"}, {"title": "New", "priority": "urgent"}
        )

        assert _actions(events) == [AuditAction.task_priority_changed, AuditAction.task_updated]
        assert events[0][1]["task_title"] == "New"
        assert events[1][1] == {"old_title": "Old", "new_title": "New"}


class TestOtherDiffs:
    def test_column_rename_move_and_recolor(self):
        before = {"name": "Todo", "position": 0, "color": "#000000"}

        events = diff_column(before, {"name": "Backlog", "position": 2, "color": "#FFFFFF"})

        assert _actions(events) == [
            AuditAction.column_renamed,
            AuditAction.column_moved,
            AuditAction.column_updated,
        ]
        assert events[1][1]["column_name"] == "Backlog"
        assert events[2][1]["field_changed"] == "color"

    def test_project_description_change(self):
        events = diff_project(
            {"name": "P", "description": None, "color": "#3B82F6"}, {"description": "Now described"}
        )

        assert _actions(events) == [AuditAction.project_updated]
        assert events[0][1]["field_changed"] == "description"
        assert events[0][1]["new_description"] == "Now described"

    def test_member_role_change(self):
        user_id = uuid.uuid4()

        events = diff_member({"role": "member", "user_id": user_id}, {"role": "admin"})

        assert events == [
            (
                AuditAction.member_role_changed,
                {"user_id": str(user_id), "old_role": "member", "new_role": "admin"},
            )
        ]
        assert diff_member({"role": "admin"}, {"role": "admin"}) == []

    @pytest.mark.parametrize(
        "status,action",
        [
            ("accepted", AuditAction.invitation_accepted),
            ("rejected", AuditAction.invitation_rejected),
            ("expired", AuditAction.invitation_expired),
        ],
    )
    def test_invitation_status_transitions(self, status, action):
        before = {"status": "pending", "email": "a@example.com"}

        events = diff_invitation(before, {"status": status})

        assert _actions(events) == [action]
        assert events[0][1]["invited_email"] == "a@example.com"

    def test_invitation_without_status_change(self):
        assert diff_invitation({"status": "pending"}, {"status": "pending"}) == []


class TestCategorizeActions:
    def test_groups_by_prefix(self):
        categorized = categorize_actions(
            ["task_created", "invitation_link_created", "invitation_sent", "member_added"]
        )

        assert categorized["tasks"] == ["task_created"]
        assert categorized["invitation_links"] == ["invitation_link_created"]
        assert categorized["invitations"] == ["invitation_sent"]
        assert categorized["members"] == ["member_added"]
        assert categorized["comments"] == []

    def test_every_known_action_has_a_group(self):
        categorized = categorize_actions(action.value for action in AuditAction)
        grouped = sorted(a for actions in categorized.values() for a in actions)

        assert grouped == sorted(action.value for action in AuditAction)


class TestAuditRecorder:
    @pytest.mark.asyncio
    async def test_record_is_part_of_the_callers_transaction(self, test_db, owner):
        project_id = uuid.uuid4()
        entity_id = uuid.uuid4()
        owner_id = owner.id

        AuditRecorder(test_db).record(
            project_id=project_id,
            user_id=owner_id,
            action=AuditAction.task_created,
            entity_type=AuditEntity.task,
            entity_id=entity_id,
            details={"assignee_id": entity_id, "task_title": "Ship it"},
        )
        await test_db.rollback()

        logs = (await test_db.execute(select(AuditLog))).scalars().all()
        assert logs == []

    @pytest.mark.asyncio
    async def test_record_stringifies_uuid_details(self, test_db, owner):
        project_id = uuid.uuid4()
        entity_id = uuid.uuid4()

        AuditRecorder(test_db).record(
            project_id=project_id,
            user_id=owner.id,
            action="task_created",
            entity_type="task",
            entity_id=entity_id,
            details={"assignee_id": entity_id, "task_title": "Ship it"},
        )
        await test_db.commit()

        log = (await test_db.execute(select(AuditLog))).scalar_one()
        assert log.project_id == project_id
        assert log.action == "task_created"
        assert log.entity_type == "task"
        assert log.details == {"assignee_id": str(entity_id), "task_title": "Ship it"}

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, test_db):
        with pytest.raises(ValueError):
            AuditRecorder(test_db).record(
                project_id=None,
                user_id=None,
                action="task_exploded",
                entity_type=AuditEntity.task,
                entity_id=None,
            )

    @pytest.mark.asyncio
    async def test_record_events_writes_one_row_per_event(self, test_db, owner):
        project_id = uuid.uuid4()
        events = diff_task(
            {"title": "T", "priority": "low", "column_id": None},
            {"priority": "high", "column_id": uuid.uuid4()},
        )

        logs = AuditRecorder(test_db).record_events(
            events,
            project_id=project_id,
            user_id=owner.id,
            entity_type=AuditEntity.task,
            entity_id=uuid.uuid4(),
        )
        await test_db.commit()

        assert [log.action for log in logs] == ["task_moved", "task_priority_changed"]
