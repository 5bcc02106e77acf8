"""Admin Audit Log Router. Read access to the back-office audit trail.

Permission: audit:read (granted to ADMIN by default)
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import page_params, require_permission
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.services.audit_log_service import audit_log_service
from app.utils.dates import as_utc

router: APIRouter = APIRouter()


@router.get("")
async def list_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission("audit:read"))],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    action: str | None = None,
    admin_user_id: Annotated[UUID | None, Query(alias="adminUserId")] = None,
    resource_type: Annotated[str | None, Query(alias="resourceType")] = None,
    resource_id: Annotated[str | None, Query(alias="resourceId")] = None,
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
) -> dict:
    """Newest entries first."""
    page, limit = paging
    result = await audit_log_service.list_logs(
        db, page, limit, action, admin_user_id, resource_type, resource_id, as_utc(date_from), as_utc(date_to)
    )
    return success_response(result)


@router.get("/stats")
async def get_audit_log_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission("audit:read"))],
) -> dict:
    """Total and today's entries, top five actions and top five admins."""
    return success_response(await audit_log_service.get_stats(db))
