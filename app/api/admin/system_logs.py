"""Admin System Log Router. Operational log browsing, stats, CSV export and retention.

Permission: SUPER_ADMIN
"""

from datetime import datetime
from io import BytesIO
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, page_params, require_super_admin
from app.database import get_db
from app.models.system_log import SystemLogCategory, SystemLogLevel
from app.models.user import User
from app.schemas.common import success_response
from app.services.system_log_service import system_log_service
from app.utils.dates import as_utc, utcnow

router: APIRouter = APIRouter()


def log_filters(
    level: Annotated[list[SystemLogLevel] | None, Query()] = None,
    category: Annotated[list[SystemLogCategory] | None, Query()] = None,
    event_type: Annotated[str | None, Query(alias="eventType")] = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
    resource_type: Annotated[str | None, Query(alias="resourceType")] = None,
    resource_id: Annotated[str | None, Query(alias="resourceId")] = None,
    search: str | None = None,
) -> dict[str, Any]:
    """Filter query params shared by the list and the export. ``level`` and ``category`` repeat."""
    return {
        "levels": [str(v) for v in level] if level else None,
        "categories": [str(v) for v in category] if category else None,
        "event_type": event_type,
        "user_id": user_id,
        "date_from": as_utc(date_from),
        "date_to": as_utc(date_to),
        "resource_type": resource_type,
        "resource_id": resource_id,
        "search": search,
    }


@router.get("")
async def list_system_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    filters: Annotated[dict[str, Any], Depends(log_filters)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> dict:
    """Newest entries first."""
    return success_response(await system_log_service.list_logs(db, page, limit, **filters))


@router.get("/stats")
async def get_system_log_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    timeframe: Annotated[str, Query(pattern=r"^(hour|day|week|month)$")] = "day",
) -> dict:
    """Counts by level and category, error totals and mean duration for the timeframe."""
    return success_response(await system_log_service.get_stats(db, timeframe))


@router.get("/export")
async def export_system_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    filters: Annotated[dict[str, Any], Depends(log_filters)],
    client: Annotated[dict[str, str | None], Depends(client_info)],
) -> StreamingResponse:
    """Matching entries (up to 10000) as a CSV download."""
    content: str = await system_log_service.export_csv(db, current_user, client, **filters)
    await db.commit()
    filename: str = f"system-logs-{utcnow().date().isoformat()}.csv"
    return StreamingResponse(
        BytesIO(content.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.delete("/cleanup")
async def cleanup_system_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    client: Annotated[dict[str, str | None], Depends(client_info)],
    retention_days: Annotated[int, Query(alias="retentionDays")] = 90,
) -> dict:
    """Delete entries older than ``retentionDays`` (7..365); CRITICAL entries are kept."""
    result = await system_log_service.cleanup(db, current_user, retention_days, client)
    await db.commit()
    return success_response(result, result.message)
