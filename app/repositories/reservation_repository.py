"""Reservation Repository. Filtered listing and dashboard aggregations."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.reservation import Reservation
from app.models.user import User
from app.models.venue import Service, Venue
from app.repositories.base import BaseRepository


class ReservationRepository(BaseRepository[Reservation]):
    """Repository handling database queries for the reservations table."""

    def __init__(self) -> None:
        super().__init__(Reservation)

    @staticmethod
    def _load_options() -> list:
        return [
            selectinload(Reservation.user).selectinload(User.role),
            selectinload(Reservation.service),
            selectinload(Reservation.venue),
            selectinload(Reservation.payments),
        ]

    def build_list_query(
        self,
        user_id: UUID | None = None,
        status: str | None = None,
        service_id: UUID | None = None,
        venue_id: UUID | None = None,
        venue_ids: list[UUID] | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        search: str | None = None,
    ) -> Select:
        """Reservation list query, newest first.

        Args:
            user_id: Guest filter
            status: ReservationStatus filter
            service_id / venue_id: Booked service or venue
            venue_ids: Tenant scope; None means every venue
            date_from / date_to: Check-in window
            search: Matches confirmation code, guest email or guest name

        Returns:
            Select: Reservation query with user, service, venue and payments loaded
        """
        query: Select = select(Reservation).options(*self._load_options())

        if user_id is not None:
            query = query.where(Reservation.user_id == user_id)
        if status:
            query = query.where(Reservation.status == status)
        if service_id is not None:
            query = query.where(Reservation.service_id == service_id)
        if venue_id is not None:
            query = query.where(Reservation.venue_id == venue_id)
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        if date_from is not None:
            query = query.where(Reservation.check_in >= date_from)
        if date_to is not None:
            query = query.where(Reservation.check_in <= date_to)
        if search:
            pattern = f"%{search}%"
            query = query.join(User, User.id == Reservation.user_id).where(
                or_(
                    Reservation.confirmation_code.ilike(pattern),
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                )
            )

        return query.order_by(Reservation.created_at.desc())

    async def get_detail(self, db: AsyncSession, reservation_id: UUID) -> Reservation | None:
        """Reservation with user, service, venue and payments loaded."""
        return await self.get_by_id(db, reservation_id, options=self._load_options())

    async def code_exists(self, db: AsyncSession, code: str) -> bool:
        return await self.exists(db, {"confirmation_code": code})

    async def get_venue_id(self, db: AsyncSession, reservation_id: UUID) -> UUID | None:
        result = await db.execute(select(Reservation.venue_id).where(Reservation.id == reservation_id))
        return result.scalar_one_or_none()

    async def count(
        self,
        db: AsyncSession,
        venue_ids: list[UUID] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        """Reservations created in ``[since, until)`` within the venue scope."""
        query: Select = select(func.count(Reservation.id))
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        if since is not None:
            query = query.where(Reservation.created_at >= since)
        if until is not None:
            query = query.where(Reservation.created_at < until)
        return int((await db.execute(query)).scalar() or 0)

    async def count_guests(self, db: AsyncSession, venue_ids: list[UUID] | None = None) -> int:
        """Distinct users holding a reservation within the venue scope."""
        query: Select = select(func.count(func.distinct(Reservation.user_id)))
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        return int((await db.execute(query)).scalar() or 0)

    async def count_by_status(
        self,
        db: AsyncSession,
        venue_ids: list[UUID] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> dict[str, int]:
        query: Select = select(Reservation.status, func.count(Reservation.id)).group_by(Reservation.status)
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        if since is not None:
            query = query.where(Reservation.created_at >= since)
        if until is not None:
            query = query.where(Reservation.created_at < until)
        return {status: int(count) for status, count in (await db.execute(query)).all()}

    async def get_recent(
        self, db: AsyncSession, limit: int = 5, venue_ids: list[UUID] | None = None
    ) -> list[Reservation]:
        """Latest reservations for the dashboard."""
        query: Select = select(Reservation).options(
            selectinload(Reservation.user),
            selectinload(Reservation.service),
            selectinload(Reservation.venue),
        )
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        result = await db.execute(query.order_by(Reservation.created_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def get_popular_venues(
        self, db: AsyncSession, limit: int = 5, venue_ids: list[UUID] | None = None
    ) -> list[tuple[Venue, int]]:
        """(venue, reservation count) pairs for venues with reservations."""
        cnt = func.count(Reservation.id)
        query: Select = (
            select(Venue, cnt)
            .join(Reservation, Reservation.venue_id == Venue.id)
            .group_by(Venue.id)
        )
        if venue_ids is not None:
            query = query.where(Venue.id.in_(venue_ids))
        result = await db.execute(query.order_by(cnt.desc()).limit(limit))
        return [(venue, int(count)) for venue, count in result.all()]

    async def get_in_range(
        self,
        db: AsyncSession,
        since: datetime,
        until: datetime,
        venue_ids: list[UUID] | None = None,
    ) -> list[Reservation]:
        """Reservations created in ``[since, until)`` with service and venue loaded."""
        query: Select = (
            select(Reservation)
            .options(selectinload(Reservation.service), selectinload(Reservation.venue), selectinload(Reservation.user))
            .where(Reservation.created_at >= since, Reservation.created_at < until)
        )
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        result = await db.execute(query.order_by(Reservation.created_at))
        return list(result.scalars().all())

    async def revenue_by_category(
        self,
        db: AsyncSession,
        since: datetime,
        until: datetime,
        venue_ids: list[UUID] | None = None,
    ) -> list[tuple[str, int, Any]]:
        """(service category, reservation count, booked amount) rows."""
        query: Select = (
            select(Service.category, func.count(Reservation.id), func.coalesce(func.sum(Reservation.total_amount), 0))
            .join(Service, Service.id == Reservation.service_id)
            .where(Reservation.created_at >= since, Reservation.created_at < until)
            .group_by(Service.category)
        )
        if venue_ids is not None:
            query = query.where(Reservation.venue_id.in_(venue_ids))
        return [(category, int(count), amount) for category, count, amount in (await db.execute(query)).all()]


# Singleton instance
reservation_repository: ReservationRepository = ReservationRepository()
