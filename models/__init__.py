"""
Models package initialization.
"""

from .audit_log import AuditLog
from .base import Base, BaseModel
from .column import TaskColumn
from .comment import TaskComment
from .invitation import ProjectInvitation, ProjectInvitationLink
from .project import Project, ProjectMember
from .task import Task, TaskCollaborator
from .user import User

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Project",
    "ProjectMember",
    "TaskColumn",
    "Task",
    "TaskComment",
    "TaskCollaborator",
    # Invitations
    "ProjectInvitation",
    "ProjectInvitationLink",
    "AuditLog",
]
