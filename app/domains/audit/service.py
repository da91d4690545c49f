"""Audit log read side: filtered listing, statistics, CSV export and retention."""

import csv
import io
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from app.core.config import settings
from app.core.permissions import Role, check_project_access, require_project_access
from app.domains.audit.recorder import AuditAction, categorize_actions
from app.exceptions.audit import AuditLogNotFoundError
from app.exceptions.base import AppPermissionError, DatabaseError
from app.schemas.audit import AuditLogFilter
from app.shared.pagination import OffsetPaginationParams, paginate_offset
from models import AuditLog, User
from models.base import utcnow

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "ID",
    "Action",
    "Entity Type",
    "Entity ID",
    "Date",
    "User Name",
    "Username",
    "Email",
    "Details",
]


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def render_audit_csv(rows: Iterable[Tuple[AuditLog, Optional[User]]]) -> str:
    """
    Render audit records as CSV.

    Every value is double-quoted with embedded quotes doubled, ``details`` is
    serialized as a JSON string, and rows are joined by ``\\n`` without a
    trailing newline, so N records yield exactly N+1 lines.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for log, user in rows:
        writer.writerow(
            [
                str(log.id),
                log.action,
                log.entity_type,
                str(log.entity_id) if log.entity_id else "",
                _iso(log.created_at),
                user.full_name if user else "",
                (user.username or "") if user else "",
                user.email if user else "",
                json.dumps(log.details or {}),
            ]
        )
    return buffer.getvalue().rstrip("\n")


class AuditService:
    """Service class for reading and maintaining the audit trail."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_logs(
        self,
        user_id: UUID,
        project_id: UUID,
        filters: Optional[AuditLogFilter] = None,
        pagination: Optional[OffsetPaginationParams] = None,
    ) -> Dict[str, Any]:
        """Newest-first audit records of a project; requires admin."""
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can view audit logs"
        )

        stmt = self._filtered_query(project_id, filters).order_by(desc(AuditLog.created_at))
        page = await paginate_offset(self.db, stmt, pagination or OffsetPaginationParams())
        users = await self._load_users(log.user_id for log in page["items"])
        page["items"] = [(log, users.get(log.user_id)) for log in page["items"]]
        return page

    async def get_log(self, user_id: UUID, log_id: UUID) -> Tuple[AuditLog, Optional[User]]:
        log = await self.db.get(AuditLog, log_id)
        if not log or not log.project_id:
            raise AuditLogNotFoundError()

        decision = await check_project_access(self.db, user_id, log.project_id, Role.admin)
        if decision.role is None:
            raise AuditLogNotFoundError()
        if not decision.has_access:
            raise AppPermissionError("Only owners and admins can view audit logs")

        users = await self._load_users([log.user_id])
        return log, users.get(log.user_id)

    async def get_actions(self, user_id: UUID, project_id: Optional[UUID] = None) -> Dict[str, Any]:
        """
        Action catalogue grouped by entity prefix.

        Without a project this is the full vocabulary; with one it is the
        distinct actions actually recorded there.
        """
        if project_id is None:
            actions = sorted(action.value for action in AuditAction)
        else:
            await require_project_access(self.db, user_id, project_id, Role.admin)
            result = await self.db.execute(
                select(AuditLog.action)
                .where(AuditLog.project_id == project_id)
                .distinct()
                .order_by(AuditLog.action)
            )
            actions = list(result.scalars().all())

        return {"all": actions, "categorized": categorize_actions(actions)}

    async def get_stats(
        self,
        user_id: UUID,
        project_id: UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        await require_project_access(
            self.db,
            user_id,
            project_id,
            Role.admin,
            "Only owners and admins can view audit statistics",
        )
        filters = AuditLogFilter(start_date=start_date, end_date=end_date)
        conditions = self._conditions(project_id, filters)

        total = await self.db.scalar(select(func.count(AuditLog.id)).where(*conditions)) or 0

        count_col = func.count(AuditLog.id).label("count")
        by_action = await self.db.execute(
            select(AuditLog.action, count_col)
            .where(*conditions)
            .group_by(AuditLog.action)
            .order_by(desc("count"), AuditLog.action)
        )

        by_user = await self.db.execute(
            select(AuditLog.user_id, User.full_name, User.email, count_col)
            .join(User, User.id == AuditLog.user_id)
            .where(*conditions)
            .group_by(AuditLog.user_id, User.full_name, User.email)
            .order_by(desc("count"))
            .limit(10)
        )

        by_entity = await self.db.execute(
            select(AuditLog.entity_type, count_col)
            .where(*conditions)
            .group_by(AuditLog.entity_type)
            .order_by(desc("count"), AuditLog.entity_type)
        )

        window_start = utcnow() - timedelta(days=settings.audit_stats_window_days)
        day = func.date(AuditLog.created_at).label("day")
        by_day = await self.db.execute(
            select(day, func.count(AuditLog.id))
            .where(AuditLog.project_id == project_id, AuditLog.created_at >= window_start)
            .group_by(day)
            .order_by(desc(day))
        )

        return {
            "total": total,
            "by_action": [{"action": a, "count": c} for a, c in by_action.all()],
            "top_users": [
                {"user_id": uid, "full_name": name, "email": email, "count": c}
                for uid, name, email, c in by_user.all()
            ],
            "by_entity_type": [{"entity_type": e, "count": c} for e, c in by_entity.all()],
            # DATE() is a string on SQLite and a date on PostgreSQL
            "by_day": [{"date": str(d), "count": c} for d, c in by_day.all()],
        }

    async def export_csv(
        self, user_id: UUID, project_id: UUID, filters: Optional[AuditLogFilter] = None
    ) -> str:
        await require_project_access(
            self.db, user_id, project_id, Role.admin, "Only owners and admins can export audit logs"
        )
        stmt = self._filtered_query(project_id, filters).order_by(desc(AuditLog.created_at))
        logs = (await self.db.execute(stmt)).scalars().all()
        users = await self._load_users(log.user_id for log in logs)

        logger.info("Exporting %d audit records for project %s", len(logs), project_id)
        return render_audit_csv((log, users.get(log.user_id)) for log in logs)

    async def cleanup_old_logs(self, days_to_keep: int = 90) -> int:
        """Delete records older than ``days_to_keep`` days; returns the count removed."""
        if days_to_keep < 1:
            raise ValueError("days_to_keep must be at least 1")

        cutoff = utcnow() - timedelta(days=days_to_keep)
        try:
            result = await self.db.execute(delete(AuditLog).where(AuditLog.created_at < cutoff))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Audit retention sweep failed")
            raise DatabaseError("Failed to clean up audit logs") from e

        deleted = result.rowcount or 0
        logger.info("Removed %d audit records older than %d days", deleted, days_to_keep)
        return deleted

    # Private helper methods
    def _conditions(self, project_id: UUID, filters: Optional[AuditLogFilter]) -> List[Any]:
        conditions: List[Any] = [AuditLog.project_id == project_id]
        if not filters:
            return conditions
        if filters.action:
            conditions.append(AuditLog.action == filters.action)
        if filters.entity_type:
            conditions.append(AuditLog.entity_type == filters.entity_type)
        if filters.user_id:
            conditions.append(AuditLog.user_id == filters.user_id)
        if filters.start_date:
            conditions.append(AuditLog.created_at >= _naive_utc(filters.start_date))
        if filters.end_date:
            conditions.append(AuditLog.created_at <= _naive_utc(filters.end_date))
        return conditions

    def _filtered_query(self, project_id: UUID, filters: Optional[AuditLogFilter]) -> Select:
        return select(AuditLog).where(*self._conditions(project_id, filters))

    async def _load_users(self, user_ids: Iterable[Optional[UUID]]) -> Dict[UUID, User]:
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
