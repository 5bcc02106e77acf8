"""Settings Router. Per-user notification preferences and profile settings."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.user import NotificationSettingsUpdate, ProfileSettingsUpdate
from app.services.settings_service import settings_service

router: APIRouter = APIRouter()


@router.get("/notifications")
async def get_notification_settings(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Stored preferences; defaults are created on first access."""
    result = await settings_service.get_notification_settings(db, current_user)
    await db.commit()
    return success_response(result)


@router.put("/notifications")
async def update_notification_settings(
    data: NotificationSettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await settings_service.update_notification_settings(db, current_user, data)
    await db.commit()
    return success_response(result, "Notification settings updated")


@router.get("/profile")
async def get_profile_settings(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await settings_service.get_profile_settings(db, current_user)
    await db.commit()
    return success_response(result)


@router.put("/profile")
async def update_profile_settings(
    data: ProfileSettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await settings_service.update_profile_settings(db, current_user, data)
    await db.commit()
    return success_response(result, "Profile settings updated")
