"""Periodic maintenance tasks: audit retention and invitation expiry."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import all models to ensure they're registered before creating session
import models  # noqa: F401
from app.celery_app import celery_app
from app.core.config import settings
from app.domains.audit.service import AuditService
from app.domains.invitation.service import expire_stale_invitations

logger = logging.getLogger(__name__)


async def _run_with_session(job: Callable[[AsyncSession], Awaitable[Any]]) -> Any:
    """Run ``job`` on a session from an engine that lives only for this event loop."""
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_maker() as session:
            return await job(session)
    finally:
        await engine.dispose()


async def _cleanup_async(days_to_keep: int) -> int:
    return await _run_with_session(
        lambda session: AuditService(session).cleanup_old_logs(days_to_keep)
    )


async def _expire_async() -> int:
    return await _run_with_session(expire_stale_invitations)


@celery_app.task(name="app.tasks.maintenance_tasks.cleanup_old_audit_logs_task", bind=True)
def cleanup_old_audit_logs_task(self, days_to_keep: int | None = None) -> dict[str, Any]:
    """Delete audit records older than the retention window."""
    days = days_to_keep or settings.audit_retention_days
    logger.info("Starting audit retention sweep (task %s, keep %d days)", self.request.id, days)

    try:
        deleted = asyncio.run(_cleanup_async(days))
    except Exception as e:
        logger.error("Audit retention sweep failed: %s", e)
        raise self.retry(exc=e, countdown=60 * 5, max_retries=3)

    return {"deleted": deleted, "days_to_keep": days}


@celery_app.task(name="app.tasks.maintenance_tasks.expire_stale_invitations_task", bind=True)
def expire_stale_invitations_task(self) -> dict[str, Any]:
    """Move overdue pending invitations to ``expired``."""
    logger.info("Starting invitation expiry sweep (task %s)", self.request.id)

    try:
        expired = asyncio.run(_expire_async())
    except Exception as e:
        logger.error("Invitation expiry sweep failed: %s", e)
        raise self.retry(exc=e, countdown=60, max_retries=3)

    return {"expired": expired}
