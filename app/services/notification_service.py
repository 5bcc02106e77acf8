"""Notification Service. In-app notification listing and auto-creation.

Reservation and payment flows call the ``notify_*`` helpers; those run
inside the caller's transaction and only flush. Each notification keeps
the venue of its reservation so the back office can scope the inbox:
SUPER_ADMIN sees every notification, ADMIN those of the venues they own.
"""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.models.payment import Payment
from app.models.reservation import Reservation
from app.models.user import User
from app.repositories.notification_repository import notification_repository
from app.repositories.reservation_repository import reservation_repository
from app.repositories.user_repository import user_repository
from app.schemas.admin import (
    AdminNotificationListData,
    AdminNotificationResponse,
    NotificationDay,
    NotificationOverview,
    NotificationRecipient,
    NotificationResponse,
    NotificationStats,
    NotificationSummary,
)
from app.schemas.common import PaginatedData
from app.services.venue_service import scoped_venue_ids
from app.utils.dates import as_utc, start_of_day, utcnow
from app.utils.exceptions import ForbiddenError, NotFoundError
from app.utils.pagination import build_meta, build_page

# Stats period -> lookback from now; "today" starts at UTC midnight
STATS_PERIODS: dict[str, timedelta] = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


class NotificationService:
    """Notification service providing read/unread operations and auto-creation."""

    def _to_response(self, notification: Notification) -> NotificationResponse:
        return NotificationResponse(
            id=str(notification.id),
            type=notification.type,
            title=notification.title,
            message=notification.message,
            reference_type=notification.reference_type,
            reference_id=str(notification.reference_id) if notification.reference_id else None,
            is_read=notification.is_read,
            created_at=notification.created_at,
        )

    def _to_admin_response(self, notification: Notification, users: dict[UUID, User]) -> AdminNotificationResponse:
        user: User | None = users.get(notification.user_id)
        return AdminNotificationResponse(
            **self._to_response(notification).model_dump(),
            user_id=str(notification.user_id),
            user_email=user.email if user else None,
            user_name=user.full_name if user else None,
            venue_id=str(notification.venue_id) if notification.venue_id else None,
        )

    async def _users_by_id(self, db: AsyncSession, user_ids: set[UUID]) -> dict[UUID, User]:
        return {user.id: user for user in await user_repository.get_by_ids(db, list(user_ids))}

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: UUID,
        page: int,
        limit: int,
        unread_only: bool = False,
    ) -> PaginatedData:
        items, total = await notification_repository.get_user_notifications(
            db, user_id, page, limit, unread_only
        )
        return build_page([self._to_response(n) for n in items], total, page, limit)

    async def get_unread_count(self, db: AsyncSession, user_id: UUID) -> int:
        return await notification_repository.get_unread_count(db, user_id)

    async def mark_read(self, db: AsyncSession, notification_id: UUID, user_id: UUID) -> None:
        """Mark one notification read.

        Raises:
            NotFoundError: Notification missing or owned by another user
        """
        if not await notification_repository.mark_read(db, notification_id, user_id):
            raise NotFoundError("Notification not found")

    async def mark_all_read(self, db: AsyncSession, user_id: UUID) -> int:
        return await notification_repository.mark_all_read(db, user_id)

    # --- Back office ---

    async def list_for_admin(
        self,
        db: AsyncSession,
        caller: User,
        page: int,
        limit: int,
        is_read: bool | None = None,
        notification_type: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        user_id: UUID | None = None,
        level: str = "all",
        search: str | None = None,
    ) -> AdminNotificationListData:
        """Notifications in the caller's scope, newest first.

        ``level`` (all | unread | read) overrides ``is_read``. An ADMIN
        without venues gets an empty page.
        """
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        if venue_ids == []:
            return AdminNotificationListData(
                items=[],
                pagination=build_meta(0, page, limit),
                summary=NotificationSummary(total_notifications=0, unread_count=0),
            )

        if level == "unread":
            is_read = False
        elif level == "read":
            is_read = True

        query = notification_repository.build_admin_query(
            venue_ids, is_read, notification_type, date_from, date_to, user_id, search
        )
        items, total = await notification_repository.get_paginated(db, query, page, limit)
        unread: int = await notification_repository.count_unread_in(db, query)
        users = await self._users_by_id(db, {n.user_id for n in items})
        return AdminNotificationListData(
            items=[self._to_admin_response(n, users) for n in items],
            pagination=build_meta(total, page, limit),
            summary=NotificationSummary(total_notifications=total, unread_count=unread),
        )

    async def set_read_for_admin(
        self, db: AsyncSession, caller: User, notification_ids: list[UUID], is_read: bool
    ) -> int:
        """Bulk read/unread inside the caller's scope. Ids outside it are skipped.

        Raises:
            ForbiddenError: ADMIN without venues
        """
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        if venue_ids == []:
            raise ForbiddenError("No venues found for this admin")
        return await notification_repository.set_read_in_scope(db, notification_ids, is_read, venue_ids)

    async def get_admin_stats(
        self,
        db: AsyncSession,
        caller: User,
        period: str = "month",
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> NotificationStats:
        """Notification figures for a period, or for ``date_from``..``date_to`` when both are given."""
        now: datetime = utcnow()
        if date_from is not None and date_to is not None:
            period = "custom"
        else:
            date_to = now
            date_from = start_of_day(now) if period == "today" else now - STATS_PERIODS[period]

        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        if venue_ids == []:
            stats: dict[str, Any] = {
                "total": 0, "unread": 0, "by_type": {}, "by_day": [], "recent": [], "top_users": [],
            }
        else:
            stats = await notification_repository.get_admin_stats(db, venue_ids, date_from, date_to)

        user_ids: set[UUID] = {n.user_id for n in stats["recent"]} | {uid for uid, _ in stats["top_users"]}
        users = await self._users_by_id(db, user_ids)
        return NotificationStats(
            period=period,
            date_from=as_utc(date_from),
            date_to=as_utc(date_to),
            overview=NotificationOverview(
                total_notifications=stats["total"],
                unread_count=stats["unread"],
                read_count=stats["total"] - stats["unread"],
            ),
            by_type=stats["by_type"],
            by_day=[NotificationDay(**day) for day in stats["by_day"]],
            recent_activity=[self._to_admin_response(n, users) for n in stats["recent"]],
            top_users=[
                NotificationRecipient(
                    user_id=str(uid),
                    email=users[uid].email if uid in users else None,
                    name=users[uid].full_name if uid in users else None,
                    notification_count=count,
                )
                for uid, count in stats["top_users"]
            ],
        )

    # --- Auto-creation ---

    async def notify_reservation(
        self, db: AsyncSession, reservation: Reservation, event: str
    ) -> Notification:
        """Notify the guest of a reservation event (created, confirmed, cancelled)."""
        titles: dict[str, str] = {
            "created": "Reserva creada",
            "confirmed": "Reserva confirmada",
            "cancelled": "Reserva cancelada",
            "capacity_conflict": "Reserva pagada sin disponibilidad",
        }
        return await notification_repository.create_notification(
            db,
            user_id=reservation.user_id,
            notification_type=f"reservation_{event}",
            title=titles.get(event, "Reserva actualizada"),
            message=f"Reserva {reservation.confirmation_code}: {event}",
            reference_type="reservation",
            reference_id=reservation.id,
            venue_id=reservation.venue_id,
        )

    async def notify_payment(self, db: AsyncSession, payment: Payment, event: str) -> Notification:
        """Notify the payer of a payment event (completed, failed, refunded)."""
        titles: dict[str, str] = {
            "completed": "Pago recibido",
            "failed": "Error en el pago",
            "refunded": "Pago reembolsado",
        }
        venue_id: UUID | None = await reservation_repository.get_venue_id(db, payment.reservation_id)
        return await notification_repository.create_notification(
            db,
            user_id=payment.user_id,
            notification_type=f"payment_{event}",
            title=titles.get(event, "Pago actualizado"),
            message=f"Pago de {float(payment.amount):.2f} {payment.currency}: {event}",
            reference_type="payment",
            reference_id=payment.id,
            venue_id=venue_id,
        )


# Singleton instance
notification_service: NotificationService = NotificationService()
