"""
Append-only audit fact table.

``project_id`` deliberately has no foreign key so that a project's history
outlives the project itself. ``user_id`` is set to NULL when the acting user
is deleted.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, String

from .base import UUID, Base, JSONType, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_project_action", "project_id", "action"),
        Index("idx_audit_logs_project_created", "project_id", "created_at"),
    )

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(), index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(UUID())
    details = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
