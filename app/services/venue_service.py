"""Venue Service. Venue catalogue, geo search, popularity and statistics.

Tenant scoping: ADMIN and MANAGER users may only mutate venues they own;
SUPER_ADMIN may mutate any venue.
"""

import math
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import ROLE_LEVELS, RoleName, User
from app.models.venue import Service, Venue
from app.repositories.user_repository import user_repository
from app.repositories.venue_repository import venue_repository
from app.schemas.common import PaginatedData
from app.schemas.venue import (
    NearbyVenueResponse,
    PopularVenueResponse,
    ServiceResponse,
    VenueCreate,
    VenueDetailResponse,
    VenueResponse,
    VenueUpdate,
)
from app.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.utils.pagination import build_page

EARTH_RADIUS_KM: float = 6371.0

# Popularity score weights
RESERVATION_WEIGHT: float = 0.7
RATING_WEIGHT: float = 0.3


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def service_to_response(service: Service, venue_name: str | None = None) -> ServiceResponse:
    return ServiceResponse(
        id=str(service.id),
        venue_id=str(service.venue_id),
        venue_name=venue_name,
        name=service.name,
        description=service.description,
        category=service.category,
        price=float(service.price),
        currency=service.currency,
        capacity=service.capacity,
        duration=service.duration,
        images=service.images or [],
        amenities=service.amenities or [],
        is_available=service.is_available,
        is_active=service.is_active,
        created_at=service.created_at,
        updated_at=service.updated_at,
    )


def is_super_admin(user: User) -> bool:
    return user.role.level <= ROLE_LEVELS[RoleName.SUPER_ADMIN]


def owner_scope(user: User) -> UUID | None:
    """Owner filter for venue queries; None means every venue."""
    return None if is_super_admin(user) else user.id


async def scoped_venue_ids(db: AsyncSession, user: User) -> list[UUID] | None:
    """Venue ids the user administers; None means every venue."""
    if is_super_admin(user):
        return None
    return await venue_repository.get_owned_ids(db, user.id)


def ensure_can_manage(venue: Venue, user: User) -> None:
    """Raise ForbiddenError unless ``user`` may mutate ``venue``."""
    if not is_super_admin(user) and venue.owner_id != user.id:
        raise ForbiddenError("You do not manage this venue")


class VenueService:
    """Service handling venue business logic."""

    def _fields(self, venue: Venue) -> dict[str, Any]:
        return {
            "id": str(venue.id),
            "owner_id": str(venue.owner_id) if venue.owner_id else None,
            "name": venue.name,
            "description": venue.description,
            "category": venue.category,
            "address": venue.address,
            "city": venue.city,
            "country": venue.country,
            "latitude": venue.latitude,
            "longitude": venue.longitude,
            "phone": venue.phone,
            "email": venue.email,
            "website": venue.website,
            "rating": float(venue.rating or 0),
            "images": venue.images or [],
            "amenities": venue.amenities or [],
            "check_in_time": venue.check_in_time,
            "check_out_time": venue.check_out_time,
            "cancellation_policy": venue.cancellation_policy,
            "is_active": venue.is_active,
            "created_at": venue.created_at,
            "updated_at": venue.updated_at,
        }

    def _to_response(self, venue: Venue) -> VenueResponse:
        return VenueResponse(**self._fields(venue))

    async def get_venue_or_404(self, db: AsyncSession, venue_id: UUID) -> Venue:
        venue: Venue | None = await venue_repository.get_by_id(db, venue_id)
        if venue is None:
            raise NotFoundError("Venue not found")
        return venue

    async def list_venues(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        category: str | None = None,
        search: str | None = None,
        city: str | None = None,
        min_rating: float | None = None,
        is_active: bool | None = True,
        min_price: float | None = None,
        max_price: float | None = None,
        owner_id: UUID | None = None,
    ) -> PaginatedData:
        """Paginated venue list ordered by rating desc, then newest."""
        query = venue_repository.build_list_query(
            category, search, city, min_rating, is_active, min_price, max_price, owner_id
        )
        venues, total = await venue_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(v) for v in venues], total, page, limit)

    async def get_nearby(
        self,
        db: AsyncSession,
        lat: float,
        lng: float,
        radius_km: float = 10.0,
        limit: int = 10,
    ) -> list[NearbyVenueResponse]:
        """Active venues within ``radius_km`` of the point, nearest first."""
        results: list[NearbyVenueResponse] = []
        for venue in await venue_repository.get_geolocated(db):
            distance: float = haversine_km(lat, lng, venue.latitude, venue.longitude)
            if distance <= radius_km:
                results.append(NearbyVenueResponse(**self._fields(venue), distance_km=round(distance, 2)))
        results.sort(key=lambda v: v.distance_km)
        return results[:limit]

    async def get_popular(
        self, db: AsyncSession, limit: int = 6, min_rating: float | None = None
    ) -> list[PopularVenueResponse]:
        """Active venues ranked by reservations * 0.7 + rating * 0.3."""
        scored: list[PopularVenueResponse] = []
        for venue, count in await venue_repository.get_with_reservation_counts(db, True, min_rating):
            score: float = count * RESERVATION_WEIGHT + float(venue.rating or 0) * RATING_WEIGHT
            scored.append(PopularVenueResponse(
                **self._fields(venue),
                reservation_count=count,
                popularity_score=round(score, 2),
            ))
        scored.sort(key=lambda v: v.popularity_score, reverse=True)
        return scored[:limit]

    async def get_overview_stats(self, db: AsyncSession, owner_id: UUID | None = None) -> dict[str, Any]:
        """Platform-wide venue statistics for the admin dashboard."""
        totals: dict[str, Any] = await venue_repository.get_totals(db)
        by_category = await venue_repository.count_grouped(db, Venue.category)
        by_city = await venue_repository.count_grouped(db, Venue.city)
        top = await venue_repository.get_with_reservation_counts(db, False, None, owner_id)

        return {
            "totalVenues": totals["total_venues"],
            "activeVenues": totals["active_venues"],
            "averageRating": totals["average_rating"],
            "byCategory": [{"category": c, "count": n} for c, n in by_category],
            "byCity": [{"city": c, "count": n} for c, n in by_city if c],
            "topVenues": [
                {"id": str(v.id), "name": v.name, "rating": float(v.rating or 0), "reservationCount": n}
                for v, n in top[:5]
            ],
        }

    async def get_venue(self, db: AsyncSession, venue_id: UUID, include_inactive: bool = False) -> VenueDetailResponse:
        """Venue with its active services.

        Raises:
            NotFoundError: Unknown venue, or inactive and not requested by staff
        """
        venue: Venue | None = await venue_repository.get_detail(db, venue_id)
        if venue is None or (not venue.is_active and not include_inactive):
            raise NotFoundError("Venue not found")

        services: list[ServiceResponse] = [
            service_to_response(s, venue.name)
            for s in sorted(venue.services, key=lambda s: float(s.price))
            if s.is_active
        ]
        return VenueDetailResponse(**self._fields(venue), services=services)

    async def get_venue_stats(self, db: AsyncSession, venue_id: UUID, caller: User) -> dict[str, Any]:
        """Reservation, revenue, occupancy and rating figures for one venue.

        Occupancy is the share of reservations that were neither cancelled nor
        no-shows, in percent.
        """
        venue: Venue = await self.get_venue_or_404(db, venue_id)
        ensure_can_manage(venue, caller)

        stats: dict[str, Any] = await venue_repository.get_venue_stats(db, venue_id)
        total: int = stats["total_reservations"]
        occupancy: float = round(stats["active_reservations"] / total * 100, 2) if total else 0.0
        return {
            "venueId": str(venue.id),
            "totalReservations": total,
            "activeReservations": stats["active_reservations"],
            "totalRevenue": stats["total_revenue"],
            "occupancyRate": occupancy,
            "averageRating": stats["average_rating"],
            "totalServices": stats["total_services"],
        }

    async def create_venue(self, db: AsyncSession, data: VenueCreate, caller: User) -> VenueResponse:
        """Create a venue owned by the caller.

        SUPER_ADMIN may assign another owner through ``owner_id``.

        Raises:
            ForbiddenError: Non-SUPER_ADMIN assigning another owner
            BadRequestError: Unknown owner
        """
        owner_id: UUID = caller.id
        if data.owner_id:
            requested = data.owner_id
            if requested != caller.id and not is_super_admin(caller):
                raise ForbiddenError("Only super admins can assign venue owners")
            if await user_repository.get_by_id(db, requested) is None:
                raise BadRequestError("Owner not found")
            owner_id = requested

        payload: dict[str, Any] = data.model_dump(exclude={"owner_id"})
        payload["owner_id"] = owner_id
        venue: Venue = await venue_repository.create(db, payload)
        return self._to_response(venue)

    async def update_venue(
        self, db: AsyncSession, venue_id: UUID, data: VenueUpdate, caller: User
    ) -> VenueResponse:
        venue: Venue = await self.get_venue_or_404(db, venue_id)
        ensure_can_manage(venue, caller)

        update_data: dict = data.model_dump(exclude_unset=True)
        venue = await venue_repository.update(db, venue, update_data)
        await db.refresh(venue)
        return self._to_response(venue)

    async def delete_venue(self, db: AsyncSession, venue_id: UUID, caller: User) -> None:
        """Soft delete (is_active = False)."""
        venue: Venue = await self.get_venue_or_404(db, venue_id)
        ensure_can_manage(venue, caller)
        venue.is_active = False
        await db.flush()


# Singleton instance
venue_service: VenueService = VenueService()
