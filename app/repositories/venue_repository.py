"""Venue Repository. Filtered listing, geo lookup and aggregation queries."""

from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.payment import Payment, PaymentStatus
from app.models.reservation import Reservation, ReservationStatus
from app.models.review import Review
from app.models.venue import Service, Venue
from app.repositories.base import BaseRepository


class VenueRepository(BaseRepository[Venue]):
    """Repository handling database queries for the venues table."""

    def __init__(self) -> None:
        super().__init__(Venue)

    def build_list_query(
        self,
        category: str | None = None,
        search: str | None = None,
        city: str | None = None,
        min_rating: float | None = None,
        is_active: bool | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        owner_id: UUID | None = None,
    ) -> Select:
        """Venue list query ordered by rating desc, then newest.

        Args:
            category: VenueCategory filter
            search: Matches name or description
            city: City substring
            min_rating: Minimum rating
            is_active: Active flag filter
            min_price / max_price: Keep venues with at least one active
                service priced inside the range
            owner_id: Restrict to venues owned by this user

        Returns:
            Select: Venue query
        """
        query: Select = select(Venue)

        if category:
            query = query.where(Venue.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Venue.name.ilike(pattern), Venue.description.ilike(pattern)))
        if city:
            query = query.where(Venue.city.ilike(f"%{city}%"))
        if min_rating is not None:
            query = query.where(Venue.rating >= min_rating)
        if is_active is not None:
            query = query.where(Venue.is_active == is_active)
        if owner_id is not None:
            query = query.where(Venue.owner_id == owner_id)
        if min_price is not None or max_price is not None:
            price_conditions = [Service.venue_id == Venue.id, Service.is_active.is_(True)]
            if min_price is not None:
                price_conditions.append(Service.price >= min_price)
            if max_price is not None:
                price_conditions.append(Service.price <= max_price)
            query = query.where(exists().where(and_(*price_conditions)))

        return query.order_by(Venue.rating.desc(), Venue.created_at.desc())

    async def get_detail(self, db: AsyncSession, venue_id: UUID) -> Venue | None:
        """Venue with its services loaded."""
        return await self.get_by_id(db, venue_id, options=[selectinload(Venue.services)])

    async def get_geolocated(self, db: AsyncSession) -> list[Venue]:
        """Active venues that have both coordinates."""
        result = await db.execute(
            select(Venue).where(
                Venue.is_active.is_(True),
                Venue.latitude.is_not(None),
                Venue.longitude.is_not(None),
            )
        )
        return list(result.scalars().all())

    def _reservation_counts(self) -> Any:
        return (
            select(Reservation.venue_id.label("venue_id"), func.count(Reservation.id).label("cnt"))
            .group_by(Reservation.venue_id)
            .subquery()
        )

    async def get_with_reservation_counts(
        self,
        db: AsyncSession,
        active_only: bool = True,
        min_rating: float | None = None,
        owner_id: UUID | None = None,
    ) -> list[tuple[Venue, int]]:
        """(venue, reservation count) pairs, most reserved first."""
        counts = self._reservation_counts()
        cnt = func.coalesce(counts.c.cnt, 0)
        query: Select = select(Venue, cnt).outerjoin(counts, counts.c.venue_id == Venue.id)
        if active_only:
            query = query.where(Venue.is_active.is_(True))
        if min_rating is not None:
            query = query.where(Venue.rating >= min_rating)
        if owner_id is not None:
            query = query.where(Venue.owner_id == owner_id)
        result = await db.execute(query.order_by(cnt.desc(), Venue.rating.desc()))
        return [(venue, int(count)) for venue, count in result.all()]

    async def get_venue_stats(self, db: AsyncSession, venue_id: UUID) -> dict[str, Any]:
        """Per-venue aggregates for the venue stats endpoint."""
        total_reservations: int = (await db.execute(
            select(func.count(Reservation.id)).where(Reservation.venue_id == venue_id)
        )).scalar() or 0
        active_reservations: int = (await db.execute(
            select(func.count(Reservation.id)).where(
                Reservation.venue_id == venue_id,
                Reservation.status.not_in([ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW]),
            )
        )).scalar() or 0
        revenue = (await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0))
            .join(Reservation, Reservation.id == Payment.reservation_id)
            .where(Reservation.venue_id == venue_id, Payment.status == PaymentStatus.COMPLETED)
        )).scalar() or 0
        average_rating = (await db.execute(
            select(func.avg(Review.rating)).where(Review.venue_id == venue_id, Review.is_visible.is_(True))
        )).scalar()
        total_services: int = (await db.execute(
            select(func.count(Service.id)).where(Service.venue_id == venue_id, Service.is_active.is_(True))
        )).scalar() or 0

        return {
            "total_reservations": total_reservations,
            "active_reservations": active_reservations,
            "total_revenue": float(revenue),
            "average_rating": round(float(average_rating), 2) if average_rating is not None else 0.0,
            "total_services": total_services,
        }

    async def count_grouped(self, db: AsyncSession, column: Any) -> list[tuple[Any, int]]:
        """(value, count) pairs for ``column`` across active venues."""
        result = await db.execute(
            select(column, func.count(Venue.id))
            .where(Venue.is_active.is_(True))
            .group_by(column)
            .order_by(func.count(Venue.id).desc())
        )
        return [(value, int(count)) for value, count in result.all()]

    async def get_totals(self, db: AsyncSession) -> dict[str, Any]:
        row = (await db.execute(
            select(
                func.count(Venue.id),
                func.count(Venue.id).filter(Venue.is_active.is_(True)),
                func.avg(Venue.rating).filter(Venue.is_active.is_(True)),
            )
        )).one()
        return {
            "total_venues": int(row[0] or 0),
            "active_venues": int(row[1] or 0),
            "average_rating": round(float(row[2]), 2) if row[2] is not None else 0.0,
        }

    async def count_active(self, db: AsyncSession, venue_ids: list[UUID] | None = None) -> int:
        query: Select = select(func.count(Venue.id)).where(Venue.is_active.is_(True))
        if venue_ids is not None:
            query = query.where(Venue.id.in_(venue_ids))
        return int((await db.execute(query)).scalar() or 0)

    async def get_owned_ids(self, db: AsyncSession, owner_id: UUID) -> list[UUID]:
        result = await db.execute(select(Venue.id).where(Venue.owner_id == owner_id))
        return list(result.scalars().all())

    async def update_rating(self, db: AsyncSession, venue: Venue) -> float:
        """Recompute ``venue.rating`` from its visible reviews."""
        average = (await db.execute(
            select(func.avg(Review.rating)).where(Review.venue_id == venue.id, Review.is_visible.is_(True))
        )).scalar()
        venue.rating = round(float(average), 2) if average is not None else 0.0
        await db.flush()
        return venue.rating


# Singleton instance
venue_repository: VenueRepository = VenueRepository()
