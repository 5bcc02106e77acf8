"""Notification Repository. Per-user inbox queries and the venue-scoped back-office view."""

from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import ColumnElement, Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.repositories.base import BaseRepository
from app.utils.dates import as_utc


class NotificationRepository(BaseRepository[Notification]):
    """Notification repository with read/unread operations."""

    def __init__(self) -> None:
        super().__init__(Notification)

    async def get_user_notifications(
        self,
        db: AsyncSession,
        user_id: UUID,
        page: int = 1,
        per_page: int = 10,
        unread_only: bool = False,
    ) -> tuple[Sequence[Notification], int]:
        """Page of a user's notifications, newest first.

        Args:
            db: Async database session
            user_id: Recipient UUID
            page: Page number, 1-based
            per_page: Items per page
            unread_only: Only unread notifications

        Returns:
            tuple[Sequence[Notification], int]: (notifications, total count)
        """
        query: Select = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc())
        return await self.get_paginated(db, query, page, per_page)

    async def get_unread_count(self, db: AsyncSession, user_id: UUID) -> int:
        query: Select = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return (await db.execute(query)).scalar() or 0

    async def mark_read(self, db: AsyncSession, notification_id: UUID, user_id: UUID) -> bool:
        """Mark one of the user's notifications read. False when it is not theirs."""
        result = await db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        await db.flush()
        return result.rowcount > 0

    async def mark_all_read(self, db: AsyncSession, user_id: UUID) -> int:
        """Mark every unread notification read. Returns the updated count."""
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await db.flush()
        return result.rowcount

    async def create_notification(
        self,
        db: AsyncSession,
        user_id: UUID,
        notification_type: str,
        title: str,
        message: str,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
        venue_id: UUID | None = None,
    ) -> Notification:
        notification: Notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            reference_type=reference_type,
            reference_id=reference_id,
            venue_id=venue_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    # --- Back-office inbox ---

    def _admin_conditions(
        self,
        venue_ids: list[UUID] | None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[ColumnElement[bool]]:
        """Scope (None = every venue) and created_at range."""
        conditions: list[ColumnElement[bool]] = []
        if venue_ids is not None:
            conditions.append(Notification.venue_id.in_(venue_ids))
        if date_from is not None:
            conditions.append(Notification.created_at >= date_from)
        if date_to is not None:
            conditions.append(Notification.created_at <= date_to)
        return conditions

    def build_admin_query(
        self,
        venue_ids: list[UUID] | None,
        is_read: bool | None = None,
        notification_type: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        user_id: UUID | None = None,
        search: str | None = None,
    ) -> Select:
        """Back-office notification list query, newest first."""
        query: Select = select(Notification).where(*self._admin_conditions(venue_ids, date_from, date_to))
        if is_read is not None:
            query = query.where(Notification.is_read.is_(is_read))
        if notification_type:
            query = query.where(Notification.type == notification_type)
        if user_id is not None:
            query = query.where(Notification.user_id == user_id)
        if search:
            pattern: str = f"%{search}%"
            query = query.where(or_(Notification.title.ilike(pattern), Notification.message.ilike(pattern)))
        return query.order_by(Notification.created_at.desc())

    async def count_unread_in(self, db: AsyncSession, query: Select) -> int:
        """Unread rows among those matched by ``query``."""
        subquery = query.order_by(None).where(Notification.is_read.is_(False)).subquery()
        return (await db.execute(select(func.count()).select_from(subquery))).scalar() or 0

    async def set_read_in_scope(
        self,
        db: AsyncSession,
        notification_ids: list[UUID],
        is_read: bool,
        venue_ids: list[UUID] | None,
    ) -> int:
        """Set ``is_read`` on the listed notifications inside the scope. Returns the updated count."""
        if not notification_ids:
            return 0
        result = await db.execute(
            update(Notification)
            .where(Notification.id.in_(notification_ids), *self._admin_conditions(venue_ids))
            .values(is_read=is_read)
        )
        await db.flush()
        return result.rowcount

    async def get_admin_stats(
        self,
        db: AsyncSession,
        venue_ids: list[UUID] | None,
        date_from: datetime,
        date_to: datetime,
    ) -> dict[str, Any]:
        """Totals, per-type and per-day counts, latest 10 and top 10 recipients in the range."""
        conditions = self._admin_conditions(venue_ids, date_from, date_to)

        total: int = (await db.execute(
            select(func.count(Notification.id)).where(*conditions)
        )).scalar() or 0
        unread: int = (await db.execute(
            select(func.count(Notification.id)).where(*conditions, Notification.is_read.is_(False))
        )).scalar() or 0

        type_count = func.count(Notification.id)
        by_type = (await db.execute(
            select(Notification.type, type_count)
            .where(*conditions)
            .group_by(Notification.type)
            .order_by(type_count.desc())
        )).all()

        recent: Sequence[Notification] = (await db.execute(
            select(Notification).where(*conditions).order_by(Notification.created_at.desc()).limit(10)
        )).scalars().all()

        user_count = func.count(Notification.id)
        top_users = (await db.execute(
            select(Notification.user_id, user_count)
            .where(*conditions)
            .group_by(Notification.user_id)
            .order_by(user_count.desc())
            .limit(10)
        )).all()

        # created_at and is_read only; grouped by UTC date in Python for portability
        rows = (await db.execute(
            select(Notification.created_at, Notification.is_read).where(*conditions)
        )).all()
        by_day: dict[str, dict[str, Any]] = {}
        for created_at, is_read in rows:
            day: str = as_utc(created_at).date().isoformat()
            entry = by_day.setdefault(day, {"date": day, "count": 0, "unread_count": 0})
            entry["count"] += 1
            if not is_read:
                entry["unread_count"] += 1

        return {
            "total": int(total),
            "unread": int(unread),
            "by_type": {notification_type: int(count) for notification_type, count in by_type},
            "by_day": sorted(by_day.values(), key=lambda e: e["date"], reverse=True)[:30],
            "recent": recent,
            "top_users": [(user_id, int(count)) for user_id, count in top_users],
        }


# Singleton instance
notification_repository: NotificationRepository = NotificationRepository()
