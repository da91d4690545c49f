"""Audit log API controller: listing, statistics and CSV export."""

from datetime import datetime
from typing import Optional
from uuid import UUID

import pydantic
from fastapi import APIRouter, Depends, Path, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_db
from app.domains.audit.service import AuditService
from app.exceptions.base import ValidationError
from app.schemas.audit import AuditLogFilter, AuditLogPage, AuditLogResponse, AuditStats
from app.schemas.base import ResponseSchema
from app.shared.pagination import OffsetPaginationParams
from models.base import utcnow
from models.user import User

router = APIRouter(prefix="/api/audit", tags=["audit"])


def audit_filters(
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    user_id: Optional[UUID] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> AuditLogFilter:
    try:
        return AuditLogFilter(
            action=action,
            entity_type=entity_type,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )
    except pydantic.ValidationError as e:
        raise ValidationError("Invalid audit log filters", details={"errors": str(e)}) from e


def _log_dict(log, user):
    return AuditLogResponse(
        id=log.id,
        project_id=log.project_id,
        user_id=log.user_id,
        action=log.action,
        entity_type=log.entity_type,
        entity_id=log.entity_id,
        details=log.details or {},
        created_at=log.created_at,
        user=user,
    ).model_dump()


@router.get("/actions", response_model=ResponseSchema)
async def get_actions(
    project_id: Optional[UUID] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Known audit actions, grouped by entity."""

    actions = await AuditService(db).get_actions(current_user.id, project_id)
    return ResponseSchema(status="success", message="Audit actions retrieved", data=actions)


@router.get("/project/{project_id}", response_model=ResponseSchema)
async def get_project_logs(
    project_id: UUID = Path(..., description="Project ID"),
    filters: AuditLogFilter = Depends(audit_filters),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await AuditService(db).list_logs(
        current_user.id,
        project_id,
        filters,
        OffsetPaginationParams(limit=limit, offset=offset),
    )
    return ResponseSchema(
        status="success",
        message="Audit logs retrieved successfully",
        data=AuditLogPage(
            logs=[_log_dict(log, user) for log, user in page["items"]],
            total=page["total"],
            limit=page["limit"],
            offset=page["offset"],
            has_more=page["has_more"],
        ).model_dump(),
    )


@router.get("/project/{project_id}/stats", response_model=ResponseSchema)
async def get_project_stats(
    project_id: UUID = Path(..., description="Project ID"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stats = await AuditService(db).get_stats(current_user.id, project_id, start_date, end_date)
    return ResponseSchema(
        status="success",
        message="Audit statistics retrieved successfully",
        data=AuditStats.model_validate(stats).model_dump(),
    )


@router.get("/log/{log_id}", response_model=ResponseSchema)
async def get_log(
    log_id: UUID = Path(..., description="Audit log ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    log, user = await AuditService(db).get_log(current_user.id, log_id)
    return ResponseSchema(
        status="success", message="Audit log retrieved successfully", data=_log_dict(log, user)
    )


@router.get("/project/{project_id}/export")
async def export_project_logs(
    project_id: UUID = Path(..., description="Project ID"),
    filters: AuditLogFilter = Depends(audit_filters),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Download the filtered audit trail as CSV."""

    content = await AuditService(db).export_csv(current_user.id, project_id, filters)
    filename = f"audit-log-{project_id}-{utcnow():%Y-%m-%d}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
