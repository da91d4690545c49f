"""Column and task schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from .base import BaseModelSchema, BaseSchema
from .project import HEX_COLOR

Priority = Literal["low", "medium", "high", "urgent"]


def _strip_required(v: str | None, label: str) -> str | None:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError(f"{label} cannot be empty or only whitespace")
    return v


# ===== Columns =====


class ColumnCreate(BaseSchema):
    project_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    color: str = Field(default="#6B7280", pattern=HEX_COLOR)
    position: int | None = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _strip_required(v, "Column name")


class ColumnUpdate(BaseSchema):
    name: str | None = Field(None, min_length=1, max_length=255)
    color: str | None = Field(None, pattern=HEX_COLOR)
    position: int | None = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return _strip_required(v, "Column name")


class ColumnResponse(BaseModelSchema):
    project_id: UUID
    name: str
    position: int
    color: str


class ColumnPosition(BaseSchema):
    id: UUID
    position: int = Field(..., ge=0)


class ColumnReorderRequest(BaseSchema):
    """Target ordering for a project's columns."""

    project_id: UUID
    columns: list[ColumnPosition] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique(self) -> "ColumnReorderRequest":
        ids = [c.id for c in self.columns]
        if len(set(ids)) != len(ids):
            raise ValueError("Each column may appear only once")
        positions = [c.position for c in self.columns]
        if len(set(positions)) != len(positions):
            raise ValueError("Column positions must be unique")
        return self


# ===== Tasks =====


class TaskCreate(BaseSchema):
    column_id: UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    priority: Priority = "medium"
    due_date: datetime | None = None
    assignee_id: UUID | None = None
    position: int | None = Field(None, ge=0)
    tags: list[str] = Field(default_factory=list)
    checkbox_states: dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _strip_required(v, "Task title")


class TaskUpdate(BaseSchema):
    """Partial update; only fields present in the body are applied."""

    column_id: UUID | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
    assignee_id: UUID | None = None
    position: int | None = Field(None, ge=0)
    tags: list[str] | None = None
    checkbox_states: dict[str, Any] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        return _strip_required(v, "Task title")


class TaskResponse(BaseModelSchema):
    column_id: UUID
    project_id: UUID
    assignee_id: UUID | None = None
    created_by: UUID | None = None
    title: str
    description: str | None = None
    priority: str
    due_date: datetime | None = None
    position: int
    tags: list[str] = []
    checkbox_states: dict[str, Any] = {}

    # Computed fields
    assignee_name: str | None = None


class TaskPosition(BaseSchema):
    id: UUID
    column_id: UUID
    position: int = Field(..., ge=0)


class TaskReorderRequest(BaseSchema):
    project_id: UUID
    tasks: list[TaskPosition] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique(self) -> "TaskReorderRequest":
        ids = [t.id for t in self.tasks]
        if len(set(ids)) != len(ids):
            raise ValueError("Each task may appear only once")
        slots = [(t.column_id, t.position) for t in self.tasks]
        if len(set(slots)) != len(slots):
            raise ValueError("Task positions must be unique within a column")
        return self
