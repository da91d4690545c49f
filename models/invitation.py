"""
Invitation models.

``ProjectInvitation`` is a single-use, email-addressed offer to join a
project with a preset role. ``ProjectInvitationLink`` is a reusable,
shareable token granting the member role to anyone holding it.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    text,
)

from .base import UUID, BaseModel

INVITATION_STATUSES = ("pending", "accepted", "expired", "rejected")


class ProjectInvitation(BaseModel):
    __tablename__ = "project_invitations"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'member')", name="ck_project_invitations_role"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'expired', 'rejected')",
            name="ck_project_invitations_status",
        ),
        # At most one pending invitation per (project, email)
        Index(
            "uq_project_invitations_pending",
            "project_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    project_id = Column(
        UUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")
    token = Column(String(255), nullable=False, unique=True, index=True)
    invited_by = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime)


class ProjectInvitationLink(BaseModel):
    __tablename__ = "project_invitation_links"

    project_id = Column(
        UUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(255), nullable=False, unique=True, index=True)
    created_by = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
