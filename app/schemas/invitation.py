"""Invitation and invitation link schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, field_validator

from .base import BaseSchema
from .member import AssignableRole
from .user import UserSummary


class InvitationCreate(BaseSchema):
    project_id: UUID
    email: EmailStr
    role: AssignableRole = "member"

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class InvitationResponse(BaseSchema):
    id: UUID
    project_id: UUID
    email: str
    role: str
    status: str
    invited_by: UUID
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime
    inviter: UserSummary | None = None


class InvitationPreview(BaseSchema):
    """What the acceptance page shows before the user decides."""

    project_id: UUID
    project_name: str
    project_description: str | None = None
    inviter_name: str | None = None
    email: str
    role: str
    status: str
    expires_at: datetime
    is_expired: bool
    email_matches: bool | None = None


class InvitationAcceptResult(BaseSchema):
    project_id: UUID
    role: str
    already_member: bool = False


class InvitationLinkCreate(BaseSchema):
    rotate: bool = False


class InvitationLinkResponse(BaseSchema):
    id: UUID
    project_id: UUID
    token: str
    created_by: UUID
    expires_at: datetime
    is_active: bool
    created_at: datetime
    url: str | None = None
