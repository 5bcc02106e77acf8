"""Settings Service. Per-user notification preferences and profile settings.

Settings rows are created with defaults the first time they are read.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, UserSettings
from app.repositories.user_repository import user_repository
from app.schemas.user import (
    NotificationSettingsResponse,
    NotificationSettingsUpdate,
    ProfileSettingsResponse,
    ProfileSettingsUpdate,
)

_PROFILE_USER_FIELDS: frozenset[str] = frozenset({"first_name", "last_name", "phone"})


class SettingsService:

    def _notifications(self, prefs: UserSettings) -> NotificationSettingsResponse:
        return NotificationSettingsResponse(
            email_notifications=prefs.email_notifications,
            push_notifications=prefs.push_notifications,
            marketing_emails=prefs.marketing_emails,
            reservation_reminders=prefs.reservation_reminders,
        )

    def _profile(self, user: User, prefs: UserSettings) -> ProfileSettingsResponse:
        return ProfileSettingsResponse(
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone=user.phone,
            language=prefs.language,
            timezone=prefs.timezone,
        )

    async def get_notification_settings(self, db: AsyncSession, user: User) -> NotificationSettingsResponse:
        return self._notifications(await user_repository.get_or_create_settings(db, user.id))

    async def update_notification_settings(
        self, db: AsyncSession, user: User, data: NotificationSettingsUpdate
    ) -> NotificationSettingsResponse:
        prefs: UserSettings = await user_repository.get_or_create_settings(db, user.id)
        changes: dict = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        await user_repository.update(db, prefs, changes)
        return self._notifications(prefs)

    async def get_profile_settings(self, db: AsyncSession, user: User) -> ProfileSettingsResponse:
        return self._profile(user, await user_repository.get_or_create_settings(db, user.id))

    async def update_profile_settings(
        self, db: AsyncSession, user: User, data: ProfileSettingsUpdate
    ) -> ProfileSettingsResponse:
        """Name and phone live on the user row; language and timezone on the settings row."""
        prefs: UserSettings = await user_repository.get_or_create_settings(db, user.id)
        changes: dict = data.model_dump(exclude_unset=True)

        user_changes: dict = {k: v for k, v in changes.items() if k in _PROFILE_USER_FIELDS and (v is not None or k == "phone")}
        prefs_changes: dict = {k: v for k, v in changes.items() if k not in _PROFILE_USER_FIELDS and v is not None}
        if user_changes:
            await user_repository.update(db, user, user_changes)
        if prefs_changes:
            await user_repository.update(db, prefs, prefs_changes)
        return self._profile(user, prefs)


# Singleton instance
settings_service: SettingsService = SettingsService()
