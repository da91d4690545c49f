"""Audit event recording.

Every mutating service method calls into :class:`AuditRecorder` right after
the state change, on the same session, so the audit rows commit or roll back
together with the change they describe.

Update diffs emit one record per independently tracked field; a task update
that moves the task and raises its priority yields two records.
"""

import logging
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    project_created = "project_created"
    project_renamed = "project_renamed"
    project_updated = "project_updated"
    project_deleted = "project_deleted"

    column_created = "column_created"
    column_renamed = "column_renamed"
    column_moved = "column_moved"
    column_updated = "column_updated"
    column_deleted = "column_deleted"

    task_created = "task_created"
    task_assigned = "task_assigned"
    task_unassigned = "task_unassigned"
    task_moved = "task_moved"
    task_priority_changed = "task_priority_changed"
    task_updated = "task_updated"
    task_deleted = "task_deleted"

    comment_added = "comment_added"
    comment_updated = "comment_updated"
    comment_deleted = "comment_deleted"

    member_added = "member_added"
    member_role_changed = "member_role_changed"
    member_removed = "member_removed"

    invitation_sent = "invitation_sent"
    invitation_accepted = "invitation_accepted"
    invitation_rejected = "invitation_rejected"
    invitation_expired = "invitation_expired"
    invitation_cancelled = "invitation_cancelled"

    collaborator_added = "collaborator_added"
    collaborator_removed = "collaborator_removed"

    invitation_link_created = "invitation_link_created"
    invitation_link_deactivated = "invitation_link_deactivated"


class AuditEntity(str, Enum):
    project = "project"
    column = "column"
    task = "task"
    comment = "comment"
    member = "member"
    invitation = "invitation"
    invitation_link = "invitation_link"
    task_collaborator = "task_collaborator"


# Prefix -> catalogue group name
ACTION_CATEGORIES = {
    "task_": "tasks",
    "column_": "columns",
    "comment_": "comments",
    "member_": "members",
    "invitation_link_": "invitation_links",
    "invitation_": "invitations",
    "collaborator_": "collaborators",
    "project_": "projects",
}

INVITATION_STATUS_ACTIONS = {
    "accepted": AuditAction.invitation_accepted,
    "rejected": AuditAction.invitation_rejected,
    "expired": AuditAction.invitation_expired,
}

AuditEvent = tuple[AuditAction, dict[str, Any]]


def categorize_actions(actions: Iterable[str]) -> dict[str, list[str]]:
    """Group action names by their entity prefix."""
    categorized: dict[str, list[str]] = {name: [] for name in ACTION_CATEGORIES.values()}
    for action in actions:
        for prefix, name in ACTION_CATEGORIES.items():
            if action.startswith(prefix):
                categorized[name].append(action)
                break
    return categorized


def _json_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    return value


def snapshot(obj: Any, *fields: str) -> dict[str, Any]:
    """Copy the tracked attributes of an ORM object before mutating it."""
    return {field: getattr(obj, field) for field in fields}


def _changed(before: dict[str, Any], after: dict[str, Any], field: str) -> bool:
    return field in after and before.get(field) != after.get(field)


def diff_task(before: dict[str, Any], after: dict[str, Any]) -> list[AuditEvent]:
    """
    Audit events for a task update.

    ``before`` and ``after`` are snapshots holding at least ``title``;
    fields missing from ``after`` are treated as unchanged.
    """
    title = after.get("title", before.get("title"))
    events: list[AuditEvent] = []

    if _changed(before, after, "assignee_id"):
        action = (
            AuditAction.task_assigned if after["assignee_id"] else AuditAction.task_unassigned
        )
        events.append(
            (
                action,
                {
                    "task_title": title,
                    "old_assignee_id": _json_value(before.get("assignee_id")),
                    "new_assignee_id": _json_value(after["assignee_id"]),
                },
            )
        )

    if _changed(before, after, "column_id"):
        events.append(
            (
                AuditAction.task_moved,
                {
                    "task_title": title,
                    "old_column_id": _json_value(before.get("column_id")),
                    "new_column_id": _json_value(after["column_id"]),
                },
            )
        )

    if _changed(before, after, "priority"):
        events.append(
            (
                AuditAction.task_priority_changed,
                {
                    "task_title": title,
                    "old_priority": before.get("priority"),
                    "new_priority": after["priority"],
                },
            )
        )

    if _changed(before, after, "title"):
        events.append(
            (
                AuditAction.task_updated,
                {"old_title": before.get("title"), "new_title": after["title"]},
            )
        )

    return events


def diff_column(before: dict[str, Any], after: dict[str, Any]) -> list[AuditEvent]:
    name = after.get("name", before.get("name"))
    events: list[AuditEvent] = []

    if _changed(before, after, "name"):
        events.append(
            (
                AuditAction.column_renamed,
                {"old_name": before.get("name"), "new_name": after["name"]},
            )
        )
    if _changed(before, after, "position"):
        events.append(
            (
                AuditAction.column_moved,
                {
                    "column_name": name,
                    "old_position": before.get("position"),
                    "new_position": after["position"],
                },
            )
        )
    if _changed(before, after, "color"):
        events.append(
            (
                AuditAction.column_updated,
                {
                    "column_name": name,
                    "field_changed": "color",
                    "old_color": before.get("color"),
                    "new_color": after["color"],
                },
            )
        )
    return events


def diff_project(before: dict[str, Any], after: dict[str, Any]) -> list[AuditEvent]:
    name = after.get("name", before.get("name"))
    events: list[AuditEvent] = []

    if _changed(before, after, "name"):
        events.append(
            (
                AuditAction.project_renamed,
                {"old_name": before.get("name"), "new_name": after["name"]},
            )
        )
    for field in ("description", "color"):
        if _changed(before, after, field):
            events.append(
                (
                    AuditAction.project_updated,
                    {
                        "project_name": name,
                        "field_changed": field,
                        f"old_{field}": before.get(field),
                        f"new_{field}": after[field],
                    },
                )
            )
    return events


def diff_member(before: dict[str, Any], after: dict[str, Any]) -> list[AuditEvent]:
    if not _changed(before, after, "role"):
        return []
    return [
        (
            AuditAction.member_role_changed,
            {
                "user_id": _json_value(after.get("user_id", before.get("user_id"))),
                "old_role": before.get("role"),
                "new_role": after["role"],
            },
        )
    ]


def diff_invitation(before: dict[str, Any], after: dict[str, Any]) -> list[AuditEvent]:
    if not _changed(before, after, "status"):
        return []
    action = INVITATION_STATUS_ACTIONS.get(after["status"])
    if action is None:
        return []
    return [
        (
            action,
            {
                "invited_email": after.get("email", before.get("email")),
                "old_status": before.get("status"),
                "new_status": after["status"],
            },
        )
    ]


class AuditRecorder:
    """Appends audit facts to the caller's session; the caller commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        *,
        project_id: UUID | None,
        user_id: UUID | None,
        action: AuditAction,
        entity_type: AuditEntity,
        entity_id: UUID | None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        log = AuditLog(
            project_id=project_id,
            user_id=user_id,
            action=AuditAction(action).value,
            entity_type=AuditEntity(entity_type).value,
            entity_id=entity_id,
            details={k: _json_value(v) for k, v in (details or {}).items()},
        )
        self.db.add(log)
        logger.debug("audit %s %s %s by %s", log.action, log.entity_type, entity_id, user_id)
        return log

    def record_events(
        self,
        events: list[AuditEvent],
        *,
        project_id: UUID | None,
        user_id: UUID | None,
        entity_type: AuditEntity,
        entity_id: UUID | None,
    ) -> list[AuditLog]:
        return [
            self.record(
                project_id=project_id,
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
            )
            for action, details in events
        ]
