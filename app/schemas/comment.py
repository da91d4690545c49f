"""Comment schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import Field, field_validator

from .base import BaseModelSchema, BaseSchema
from .user import UserSummary


class CommentCreate(BaseSchema):
    task_id: UUID
    content: str = Field(..., min_length=1)
    parent_id: UUID | None = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment content is required")
        return v


class CommentUpdate(BaseSchema):
    content: str = Field(..., min_length=1)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment content is required")
        return v


class CommentResponse(BaseModelSchema):
    task_id: UUID
    user_id: UUID
    parent_id: UUID | None = None
    content: str
    author: UserSummary | None = None
