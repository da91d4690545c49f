"""Page-number and offset pagination over SQLAlchemy selects."""

from typing import Any, Dict

from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select


class PaginationParams(BaseModel):
    """Page-number parameters used by the project list."""

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    size: int = Field(default=20, ge=1, le=100, description="Page size")


class OffsetPaginationParams(BaseModel):
    """Offset/limit parameters for feeds where the client appends pages."""

    limit: int = Field(default=50, ge=1, le=500, description="Maximum records to return")
    offset: int = Field(default=0, ge=0, description="Records to skip")


async def _count(db: AsyncSession, query: Select) -> int:
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    return (await db.execute(count_query)).scalar() or 0


async def paginate(db: AsyncSession, query: Select, pagination: PaginationParams) -> Dict[str, Any]:
    """
    Page through ``query``.

    Args:
        db: Database session
        query: Ordered select returning one entity per row
        pagination: Page number and size

    Returns:
        Dictionary with ``items``, ``total``, ``page``, ``size``, ``has_next``,
        ``has_prev`` and ``total_pages``
    """
    total = await _count(db, query)
    total_pages = -(-total // pagination.size)

    offset = (pagination.page - 1) * pagination.size
    result = await db.execute(query.offset(offset).limit(pagination.size))

    return {
        "items": result.scalars().all(),
        "total": total,
        "page": pagination.page,
        "size": pagination.size,
        "has_next": pagination.page < total_pages,
        "has_prev": pagination.page > 1,
        "total_pages": total_pages,
    }


async def paginate_offset(
    db: AsyncSession, query: Select, pagination: OffsetPaginationParams
) -> Dict[str, Any]:
    """
    Offset-paginate a SQLAlchemy query.

    Returns the page items plus ``total`` and ``has_more``, which is true when
    records remain after this page.
    """
    total = await _count(db, query)
    result = await db.execute(query.offset(pagination.offset).limit(pagination.limit))
    items = result.scalars().all()

    return {
        "items": items,
        "total": total,
        "limit": pagination.limit,
        "offset": pagination.offset,
        "has_more": pagination.offset + len(items) < total,
    }
