"""
Task comment model with optional threaded replies.
"""

from sqlalchemy import Column, ForeignKey, Text

from .base import UUID, BaseModel


class TaskComment(BaseModel):
    """
    A comment on a task.

    ``parent_id`` points at the comment being replied to; storage does not
    bound the depth of a thread.
    """

    __tablename__ = "task_comments"

    task_id = Column(UUID(), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(UUID(), ForeignKey("task_comments.id", ondelete="CASCADE"), index=True)
    content = Column(Text, nullable=False)
