"""Pagination utility module for SQLAlchemy async queries.

Provides parameter normalization, a generic paginate function and the
pagination metadata block shared by every list endpoint.
"""

import math
from typing import Any, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.common import PaginatedData, PaginationMeta

DEFAULT_PAGE: int = 1
DEFAULT_LIMIT: int = 10
MAX_LIMIT: int = 100


def normalize_page_params(
    page: int | None, limit: int | None, max_limit: int = MAX_LIMIT
) -> tuple[int, int]:
    """Clamp page to >= 1 and limit to 1..max_limit.

    Missing values fall back to page 1 and limit 10.
    """
    page = DEFAULT_PAGE if page is None else max(1, page)
    limit = DEFAULT_LIMIT if limit is None else min(max(1, limit), max_limit)
    return page, limit


def build_meta(total: int, page: int, limit: int) -> PaginationMeta:
    """Build pagination metadata with ``total_pages = ceil(total / limit)``."""
    total_pages: int = math.ceil(total / limit) if limit else 0
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def build_page(items: Sequence[Any], total: int, page: int, limit: int) -> PaginatedData:
    """Wrap serialized items and their metadata."""
    return PaginatedData(items=list(items), pagination=build_meta(total, page, limit))


async def paginate(
    db: AsyncSession,
    query: Select[Any],
    page: int = 1,
    per_page: int = DEFAULT_LIMIT,
) -> tuple[Sequence[Any], int]:
    """Execute a paginated SQLAlchemy query, returning items and total count.

    Runs two queries: one for the total count (via subquery) and one for
    the actual page of results with OFFSET/LIMIT.

    Args:
        db: Async database session
        query: Base query to paginate
        page: Page number, 1-indexed
        per_page: Items per page

    Returns:
        tuple[Sequence[Any], int]: Paginated items and total count
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total: int = (await db.execute(count_query)).scalar() or 0

    offset: int = (page - 1) * per_page
    result = await db.execute(query.offset(offset).limit(per_page))
    items: Sequence[Any] = result.scalars().unique().all()

    return items, total
