"""
Board column model.

Columns are ordered within their project by the integer ``position`` key.
"""

from sqlalchemy import Column, ForeignKey, Integer, String

from .base import UUID, BaseModel

DEFAULT_COLUMNS = (
    {"name": "To Do", "position": 0, "color": "#6B7280"},
    {"name": "In Progress", "position": 1, "color": "#3B82F6"},
    {"name": "Review", "position": 2, "color": "#F59E0B"},
    {"name": "Done", "position": 3, "color": "#10B981"},
)


class TaskColumn(BaseModel):
    __tablename__ = "task_columns"

    project_id = Column(
        UUID(), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    color = Column(String(7), nullable=False, default="#6B7280")
