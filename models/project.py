"""
Project model and its membership join table.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
)

from .base import UUID, BaseModel, utcnow


class Project(BaseModel):
    """
    Represents a project entity in the application.

    The owner is implicitly the ``owner`` role and never has a
    ``project_members`` row.
    """

    __tablename__ = "projects"

    owner_id = Column(
        UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    description = Column(Text)
    color = Column(String(7), nullable=False, default="#3B82F6")


class ProjectMember(BaseModel):
    """
    A (project, user, role) record granting a non-owner user access.
    """

    __tablename__ = "project_members"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
        CheckConstraint("role IN ('admin', 'member')", name="ck_project_members_role"),
    )

    project_id = Column(
        UUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")
    joined_at = Column(DateTime, default=utcnow, nullable=False)
