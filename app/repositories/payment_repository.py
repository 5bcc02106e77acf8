"""Payment Repository. Gateway lookups, filtered listing and revenue sums."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.payment import Payment, PaymentStatus
from app.models.reservation import Reservation
from app.models.user import User
from app.repositories.base import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Repository handling database queries for the payments table."""

    def __init__(self) -> None:
        super().__init__(Payment)

    @staticmethod
    def _load_options() -> list:
        return [
            selectinload(Payment.reservation).selectinload(Reservation.service),
            selectinload(Payment.reservation).selectinload(Reservation.venue),
            selectinload(Payment.user),
        ]

    async def get_detail(self, db: AsyncSession, payment_id: UUID) -> Payment | None:
        """Payment with reservation (service, venue) and user loaded."""
        return await self.get_by_id(db, payment_id, options=self._load_options())

    async def get_details(self, db: AsyncSession, payment_ids: list[UUID]) -> dict[UUID, Payment]:
        """Loaded payments keyed by id; unknown ids are absent."""
        if not payment_ids:
            return {}
        result = await db.execute(
            select(Payment).options(*self._load_options()).where(Payment.id.in_(payment_ids))
        )
        return {payment.id: payment for payment in result.scalars().all()}

    async def get_by_stripe_id(self, db: AsyncSession, stripe_payment_id: str) -> Payment | None:
        result = await db.execute(
            select(Payment)
            .options(*self._load_options())
            .where(Payment.stripe_payment_id == stripe_payment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_completed_for_reservation(self, db: AsyncSession, reservation_id: UUID) -> Payment | None:
        """Latest COMPLETED payment of a reservation."""
        result = await db.execute(
            select(Payment)
            .where(Payment.reservation_id == reservation_id, Payment.status == PaymentStatus.COMPLETED)
            .order_by(Payment.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    def build_list_query(
        self,
        user_id: UUID | None = None,
        status: str | None = None,
        method: str | None = None,
        reservation_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        search: str | None = None,
    ) -> Select:
        """Payment list query, newest first.

        Args:
            user_id: Paying user
            status / method: PaymentStatus / PaymentMethod filters
            reservation_id: Paid reservation
            date_from / date_to: Creation window
            search: Matches stripe id, description or payer email

        Returns:
            Select: Payment query with reservation and user loaded
        """
        query: Select = select(Payment).options(*self._load_options())
        return self._apply_filters(
            query, user_id, status, method, reservation_id, date_from, date_to, search
        ).order_by(Payment.created_at.desc())

    def _apply_filters(
        self,
        query: Select,
        user_id: UUID | None = None,
        status: str | None = None,
        method: str | None = None,
        reservation_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        search: str | None = None,
    ) -> Select:
        if user_id is not None:
            query = query.where(Payment.user_id == user_id)
        if status:
            query = query.where(Payment.status == status)
        if method:
            query = query.where(Payment.method == method)
        if reservation_id is not None:
            query = query.where(Payment.reservation_id == reservation_id)
        if date_from is not None:
            query = query.where(Payment.created_at >= date_from)
        if date_to is not None:
            query = query.where(Payment.created_at <= date_to)
        if search:
            pattern = f"%{search}%"
            query = query.join(User, User.id == Payment.user_id).where(
                or_(
                    Payment.stripe_payment_id.ilike(pattern),
                    Payment.description.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
        return query

    async def get_totals(self, db: AsyncSession, **filters: Any) -> dict[str, Any]:
        """Aggregates over the same filters as ``build_list_query``.

        Returns:
            dict: total_amount (COMPLETED), total_refunded, count, by_status
        """
        base: Select = self._apply_filters(
            select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0),
                   func.coalesce(func.sum(Payment.refunded_amount), 0)),
            **filters,
        ).group_by(Payment.status)
        rows = (await db.execute(base)).all()

        by_status: dict[str, int] = {}
        total_amount: float = 0.0
        total_refunded: float = 0.0
        for status, count, amount, refunded in rows:
            by_status[status] = int(count)
            if status == PaymentStatus.COMPLETED:
                total_amount += float(amount)
            total_refunded += float(refunded)

        return {
            "total_amount": round(total_amount, 2),
            "total_refunded": round(total_refunded, 2),
            "count": sum(by_status.values()),
            "by_status": by_status,
        }

    async def sum_completed(
        self,
        db: AsyncSession,
        since: datetime | None = None,
        until: datetime | None = None,
        venue_ids: list[UUID] | None = None,
    ) -> float:
        """Sum of COMPLETED payments paid in ``[since, until)``."""
        paid_at = func.coalesce(Payment.paid_at, Payment.created_at)
        query: Select = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status == PaymentStatus.COMPLETED
        )
        if since is not None:
            query = query.where(paid_at >= since)
        if until is not None:
            query = query.where(paid_at < until)
        if venue_ids is not None:
            query = query.join(Reservation, Reservation.id == Payment.reservation_id).where(
                Reservation.venue_id.in_(venue_ids)
            )
        return float((await db.execute(query)).scalar() or 0)

    async def get_completed_in_range(
        self,
        db: AsyncSession,
        since: datetime,
        until: datetime,
        venue_ids: list[UUID] | None = None,
    ) -> list[Payment]:
        """COMPLETED payments paid in ``[since, until)`` for report rows."""
        paid_at = func.coalesce(Payment.paid_at, Payment.created_at)
        query: Select = (
            select(Payment)
            .options(*self._load_options())
            .where(Payment.status == PaymentStatus.COMPLETED, paid_at >= since, paid_at < until)
        )
        if venue_ids is not None:
            query = query.join(Reservation, Reservation.id == Payment.reservation_id).where(
                Reservation.venue_id.in_(venue_ids)
            )
        result = await db.execute(query.order_by(paid_at))
        return list(result.scalars().all())


# Singleton instance
payment_repository: PaymentRepository = PaymentRepository()
