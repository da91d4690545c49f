"""Membership and collaborator schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import EmailStr, field_validator

from .base import BaseSchema
from .user import UserSummary

AssignableRole = Literal["admin", "member"]


class MemberAdd(BaseSchema):
    project_id: UUID
    email: EmailStr
    role: AssignableRole = "member"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class MemberRoleUpdate(BaseSchema):
    role: AssignableRole


class MemberResponse(BaseSchema):
    """One participant of a project. The owner has no membership row and so no ``id``."""

    id: UUID | None = None
    project_id: UUID
    user_id: UUID
    role: str
    joined_at: datetime | None = None
    user: UserSummary


class CollaboratorAdd(BaseSchema):
    task_id: UUID
    user_id: UUID


class CollaboratorResponse(BaseSchema):
    id: UUID
    task_id: UUID
    user_id: UUID
    added_by: UUID | None = None
    added_at: datetime
    user: UserSummary | None = None
