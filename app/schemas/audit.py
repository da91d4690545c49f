"""Audit log schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, model_validator

from .base import BaseSchema
from .user import UserSummary


class AuditLogFilter(BaseSchema):
    """Read-side filters; every field is optional and they combine with AND."""

    project_id: UUID | None = None
    action: str | None = None
    entity_type: str | None = None
    user_id: UUID | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    @model_validator(mode="after")
    def check_range(self) -> "AuditLogFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class AuditLogResponse(BaseSchema):
    id: UUID
    project_id: UUID | None = None
    user_id: UUID | None = None
    action: str
    entity_type: str
    entity_id: UUID | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    user: UserSummary | None = None


class AuditLogPage(BaseSchema):
    logs: list[AuditLogResponse]
    total: int
    limit: int
    offset: int
    has_more: bool


class ActionCount(BaseSchema):
    action: str
    count: int


class UserActivity(BaseSchema):
    user_id: UUID
    full_name: str | None = None
    email: str | None = None
    count: int


class EntityCount(BaseSchema):
    entity_type: str
    count: int


class DailyActivity(BaseSchema):
    date: str
    count: int


class AuditStats(BaseSchema):
    total: int
    by_action: list[ActionCount]
    top_users: list[UserActivity]
    by_entity_type: list[EntityCount]
    by_day: list[DailyActivity]
