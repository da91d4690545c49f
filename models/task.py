"""
A module defining the task ORM models.

Classes:
    Task: A card on a project board. It lives in exactly one column and,
    redundantly, in that column's project. Tasks are ordered inside their
    column by ``position``.
    TaskCollaborator: A watcher on a task, distinct from the assignee.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .base import UUID, BaseModel, JSONType, utcnow

TASK_PRIORITIES = ("low", "medium", "high", "urgent")


class Task(BaseModel):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'urgent')", name="ck_tasks_priority"
        ),
    )

    column_id = Column(
        UUID(), ForeignKey("task_columns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id = Column(
        UUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignee_id = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_by = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text)
    priority = Column(String(20), nullable=False, default="medium")
    due_date = Column(DateTime)
    position = Column(Integer, nullable=False, default=0)
    tags = Column(JSONType, nullable=False, default=list)
    checkbox_states = Column(JSONType, nullable=False, default=dict)


class TaskCollaborator(BaseModel):
    __tablename__ = "task_collaborators"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_collaborators_task_user"),
    )

    task_id = Column(UUID(), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    added_by = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"))
    added_at = Column(DateTime, default=utcnow, nullable=False)
