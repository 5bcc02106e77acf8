"""Admin Notification Router. Back-office view of the notifications sent to guests.

Permission: ADMIN+ (ADMIN sees the venues they own, SUPER_ADMIN everything)
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.admin import NotificationReadUpdate
from app.schemas.common import success_response
from app.services.notification_service import notification_service
from app.utils.dates import as_utc

router: APIRouter = APIRouter()

StartDate = Annotated[datetime | None, Query(alias="startDate")]
EndDate = Annotated[datetime | None, Query(alias="endDate")]


@router.get("")
async def list_notifications(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    is_read: Annotated[bool | None, Query(alias="isRead")] = None,
    notification_type: Annotated[str | None, Query(alias="type")] = None,
    start_date: StartDate = None,
    end_date: EndDate = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    level: Annotated[str, Query(pattern=r"^(all|unread|read)$")] = "all",
    search: str | None = None,
) -> dict:
    """Newest first, with total and unread counts over the same filters."""
    result = await notification_service.list_for_admin(
        db, current_user, page, limit, is_read, notification_type,
        as_utc(start_date), as_utc(end_date), user_id, level, search,
    )
    return success_response(result)


@router.patch("")
async def update_notifications_read(
    data: NotificationReadUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    updated: int = await notification_service.set_read_for_admin(
        db, current_user, data.notification_ids, data.is_read
    )
    await db.commit()
    return success_response(
        {"updatedCount": updated, "isRead": data.is_read}, "Notifications updated"
    )


@router.get("/stats")
async def get_notification_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    period: Annotated[str, Query(pattern=r"^(today|week|month|year)$")] = "month",
    start_date: StartDate = None,
    end_date: EndDate = None,
) -> dict:
    """Overview, per-type and per-day counts, recent activity and top recipients."""
    result = await notification_service.get_admin_stats(
        db, current_user, period, as_utc(start_date), as_utc(end_date)
    )
    return success_response(result)
