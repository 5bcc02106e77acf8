"""Notification Router. The caller's in-app notifications."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, page_params
from app.database import get_db
from app.models.user import User
from app.schemas.admin import UnreadCountResponse
from app.schemas.common import success_response
from app.services.notification_service import notification_service

router: APIRouter = APIRouter()


@router.get("")
async def list_notifications(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
) -> dict:
    page, limit = paging
    result = await notification_service.list_notifications(db, current_user.id, page, limit, unread_only)
    return success_response(result)


@router.get("/unread-count")
async def get_unread_count(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    count: int = await notification_service.get_unread_count(db, current_user.id)
    return success_response(UnreadCountResponse(unread_count=count))


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    await notification_service.mark_read(db, notification_id, current_user.id)
    await db.commit()
    return success_response(None, "Notification marked as read")


@router.patch("/read-all")
async def mark_all_notifications_read(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    updated: int = await notification_service.mark_all_read(db, current_user.id)
    await db.commit()
    return success_response({"updated": updated}, "All notifications marked as read")
