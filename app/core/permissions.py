"""Project role resolution and access checks.

A user's effective role on a project is ``owner`` when they own it, otherwise
the role stored on their ``project_members`` row, otherwise none. Access is
granted when the effective role ranks at least as high as the required one.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions.base import AppPermissionError
from app.exceptions.project import ProjectNotFoundError
from models import Project, ProjectMember


class Role(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"


ROLE_RANK: dict[Role, int] = {
    Role.owner: 3,
    Role.admin: 2,
    Role.member: 1,
}

# Roles that can be stored on a membership row or granted by invitation
ASSIGNABLE_ROLES = (Role.admin.value, Role.member.value)


def role_satisfies(role: Role | str | None, required: Role | str) -> bool:
    """Return True when ``role`` ranks at or above ``required``."""
    if role is None:
        return False
    return ROLE_RANK[Role(role)] >= ROLE_RANK[Role(required)]


@dataclass(frozen=True)
class AccessDecision:
    has_access: bool
    role: Role | None


async def get_project_role(db: AsyncSession, user_id: UUID, project_id: UUID) -> Role | None:
    """Resolve the caller's effective role on a project, or None."""
    owner_id = await db.scalar(select(Project.owner_id).where(Project.id == project_id))
    if owner_id is None:
        return None
    if owner_id == user_id:
        return Role.owner

    member_role = await db.scalar(
        select(ProjectMember.role).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return Role(member_role) if member_role else None


async def check_project_access(
    db: AsyncSession,
    user_id: UUID,
    project_id: UUID,
    required_role: Role | str = Role.member,
) -> AccessDecision:
    """
    Evaluate whether a user may act on a project at ``required_role``.

    Never raises for a missing role; only database failures propagate.
    """
    role = await get_project_role(db, user_id, project_id)
    if role is None:
        return AccessDecision(has_access=False, role=None)
    return AccessDecision(has_access=role_satisfies(role, required_role), role=role)


async def require_project_access(
    db: AsyncSession,
    user_id: UUID,
    project_id: UUID,
    required_role: Role | str = Role.member,
    message: str | None = None,
) -> Role:
    """
    Same as :func:`check_project_access` but raising on refusal.

    A caller with no role at all gets ``ProjectNotFoundError`` so that the
    project's existence is not revealed; a caller whose role is too low gets
    ``AppPermissionError``.
    """
    decision = await check_project_access(db, user_id, project_id, required_role)
    if decision.role is None:
        raise ProjectNotFoundError()
    if not decision.has_access:
        raise AppPermissionError(
            message or f"This action requires the {Role(required_role).value} role",
            details={"required_role": Role(required_role).value, "role": decision.role.value},
        )
    return decision.role
