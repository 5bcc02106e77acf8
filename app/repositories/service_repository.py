"""Service Repository. Catalogue listing, capacity and aggregation queries."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.payment import Payment, PaymentStatus
from app.models.reservation import BLOCKING_STATUSES, Reservation, ReservationStatus
from app.models.venue import Service, Venue
from app.repositories.base import BaseRepository


class ServiceRepository(BaseRepository[Service]):
    """Repository handling database queries for the services table."""

    def __init__(self) -> None:
        super().__init__(Service)

    def build_list_query(
        self,
        category: str | None = None,
        venue_id: UUID | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        capacity: int | None = None,
        duration: int | None = None,
        available: bool | None = None,
        include_inactive: bool = False,
        owner_id: UUID | None = None,
    ) -> Select:
        """Service list query ordered by price asc, then newest.

        Args:
            category: ServiceCategory filter
            venue_id: Parent venue filter
            search: Matches name or description
            min_price / max_price: Price range
            capacity: Minimum capacity
            duration: Maximum session length in minutes
            available: is_available filter
            include_inactive: Include soft-deleted services
            owner_id: Restrict to services of venues owned by this user

        Returns:
            Select: Service query with venue loaded
        """
        query: Select = select(Service).options(selectinload(Service.venue))

        if not include_inactive:
            query = query.where(Service.is_active.is_(True))
        if category:
            query = query.where(Service.category == category)
        if venue_id is not None:
            query = query.where(Service.venue_id == venue_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Service.name.ilike(pattern), Service.description.ilike(pattern)))
        if min_price is not None:
            query = query.where(Service.price >= min_price)
        if max_price is not None:
            query = query.where(Service.price <= max_price)
        if capacity is not None:
            query = query.where(Service.capacity >= capacity)
        if duration is not None:
            query = query.where(Service.duration <= duration)
        if available is not None:
            query = query.where(Service.is_available == available)
        if owner_id is not None:
            query = query.join(Venue, Venue.id == Service.venue_id).where(Venue.owner_id == owner_id)

        return query.order_by(Service.price.asc(), Service.created_at.desc())

    async def get_detail(self, db: AsyncSession, service_id: UUID) -> Service | None:
        """Service with its venue loaded."""
        return await self.get_by_id(db, service_id, options=[selectinload(Service.venue)])

    async def get_reserved_guests(
        self,
        db: AsyncSession,
        service_id: UUID,
        check_in: datetime,
        check_out: datetime,
        exclude_reservation_id: UUID | None = None,
    ) -> int:
        """Guests already holding the service during the range.

        Counts CONFIRMED and CHECKED_IN reservations whose range touches
        ``[check_in, check_out]`` (boundaries inclusive).
        """
        query: Select = select(func.coalesce(func.sum(Reservation.guests), 0)).where(
            Reservation.service_id == service_id,
            Reservation.status.in_(BLOCKING_STATUSES),
            Reservation.check_in <= check_out,
            Reservation.check_out >= check_in,
        )
        if exclude_reservation_id is not None:
            query = query.where(Reservation.id != exclude_reservation_id)
        return int((await db.execute(query)).scalar() or 0)

    async def get_reserved_guests_by_service(
        self,
        db: AsyncSession,
        service_ids: list[UUID],
        check_in: datetime,
        check_out: datetime,
    ) -> dict[UUID, int]:
        """Reserved guest totals for several services over one range."""
        if not service_ids:
            return {}
        result = await db.execute(
            select(Reservation.service_id, func.sum(Reservation.guests))
            .where(
                Reservation.service_id.in_(service_ids),
                Reservation.status.in_(BLOCKING_STATUSES),
                Reservation.check_in <= check_out,
                Reservation.check_out >= check_in,
            )
            .group_by(Reservation.service_id)
        )
        return {service_id: int(total or 0) for service_id, total in result.all()}

    async def get_with_reservation_counts(
        self, db: AsyncSession, limit: int, venue_id: UUID | None = None
    ) -> list[tuple[Service, int]]:
        """(service, reservation count) pairs, most reserved first."""
        counts = (
            select(Reservation.service_id.label("service_id"), func.count(Reservation.id).label("cnt"))
            .group_by(Reservation.service_id)
            .subquery()
        )
        cnt = func.coalesce(counts.c.cnt, 0)
        query: Select = (
            select(Service, cnt)
            .options(selectinload(Service.venue))
            .outerjoin(counts, counts.c.service_id == Service.id)
            .where(Service.is_active.is_(True), Service.is_available.is_(True))
        )
        if venue_id is not None:
            query = query.where(Service.venue_id == venue_id)
        result = await db.execute(query.order_by(cnt.desc(), Service.price.asc()).limit(limit))
        return [(service, int(count)) for service, count in result.all()]

    async def get_service_stats(self, db: AsyncSession, service: Service) -> dict[str, Any]:
        """Per-service aggregates."""
        rows = (await db.execute(
            select(Reservation.status, func.count(Reservation.id))
            .where(Reservation.service_id == service.id)
            .group_by(Reservation.status)
        )).all()
        by_status: dict[str, int] = {status: int(count) for status, count in rows}
        total: int = sum(by_status.values())
        revenue = (await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0))
            .join(Reservation, Reservation.id == Payment.reservation_id)
            .where(Reservation.service_id == service.id, Payment.status == PaymentStatus.COMPLETED)
        )).scalar() or 0
        active: int = total - by_status.get(ReservationStatus.CANCELLED, 0) - by_status.get(ReservationStatus.NO_SHOW, 0)

        return {
            "total_reservations": total,
            "reservations_by_status": by_status,
            "total_revenue": float(revenue),
            "booking_rate": round(active / service.capacity * 100, 2) if service.capacity else 0.0,
            "capacity": service.capacity,
        }


# Singleton instance
service_repository: ServiceRepository = ServiceRepository()
