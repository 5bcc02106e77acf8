"""Service Catalog Service. Bookable services offered by venues.

Named ``service_catalog`` to keep "service" free for the business-logic
layer. Mutations require ownership of the parent venue.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.models.venue import Service, Venue
from app.repositories.service_repository import service_repository
from app.schemas.common import PaginatedData
from app.schemas.venue import (
    AvailableServiceResponse,
    PopularServiceResponse,
    ServiceCreate,
    ServicePricingUpdate,
    ServiceResponse,
    ServiceUpdate,
)
from app.services.venue_service import ensure_can_manage, service_to_response, venue_service
from app.utils.dates import as_utc
from app.utils.exceptions import BadRequestError, NotFoundError
from app.utils.pagination import build_page


class ServiceCatalogService:
    """Service handling the service catalogue."""

    def _to_response(self, service: Service) -> ServiceResponse:
        return service_to_response(service, service.venue.name if service.venue else None)

    async def get_service_or_404(self, db: AsyncSession, service_id: UUID) -> Service:
        service: Service | None = await service_repository.get_detail(db, service_id)
        if service is None:
            raise NotFoundError("Service not found")
        return service

    async def list_services(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        category: str | None = None,
        venue_id: UUID | None = None,
        search: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        capacity: int | None = None,
        duration: int | None = None,
        available: bool | None = None,
    ) -> PaginatedData:
        query = service_repository.build_list_query(
            category, venue_id, search, min_price, max_price, capacity, duration, available
        )
        services, total = await service_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(s) for s in services], total, page, limit)

    async def get_available(
        self,
        db: AsyncSession,
        check_in: datetime,
        check_out: datetime,
        guests: int = 1,
        venue_id: UUID | None = None,
        category: str | None = None,
    ) -> list[AvailableServiceResponse]:
        """Active, bookable services with room for ``guests`` over the range.

        Raises:
            BadRequestError: check_in is not before check_out
        """
        check_in, check_out = as_utc(check_in), as_utc(check_out)
        if check_in >= check_out:
            raise BadRequestError("checkIn must be before checkOut")

        query = service_repository.build_list_query(
            category=category, venue_id=venue_id, capacity=guests, available=True
        )
        services: list[Service] = list((await db.execute(query)).scalars().all())
        reserved: dict[UUID, int] = await service_repository.get_reserved_guests_by_service(
            db, [s.id for s in services], check_in, check_out
        )

        results: list[AvailableServiceResponse] = []
        for service in services:
            taken: int = reserved.get(service.id, 0)
            remaining: int = service.capacity - taken
            if remaining >= guests:
                results.append(AvailableServiceResponse(
                    **self._to_response(service).model_dump(),
                    reserved_guests=taken,
                    remaining_capacity=remaining,
                ))
        return results

    async def get_popular(
        self, db: AsyncSession, limit: int = 6, venue_id: UUID | None = None
    ) -> list[PopularServiceResponse]:
        pairs = await service_repository.get_with_reservation_counts(db, limit, venue_id)
        return [
            PopularServiceResponse(**self._to_response(s).model_dump(), reservation_count=n)
            for s, n in pairs
        ]

    async def get_service(self, db: AsyncSession, service_id: UUID) -> ServiceResponse:
        service: Service = await self.get_service_or_404(db, service_id)
        if not service.is_active:
            raise NotFoundError("Service not found")
        return self._to_response(service)

    async def get_service_stats(self, db: AsyncSession, service_id: UUID, caller: User) -> dict[str, Any]:
        """Reservation counts by status, revenue and booking rate for one service."""
        service: Service = await self.get_service_or_404(db, service_id)
        ensure_can_manage(service.venue, caller)

        stats: dict[str, Any] = await service_repository.get_service_stats(db, service)
        return {
            "serviceId": str(service.id),
            "totalReservations": stats["total_reservations"],
            "reservationsByStatus": stats["reservations_by_status"],
            "totalRevenue": stats["total_revenue"],
            "bookingRate": stats["booking_rate"],
            "capacity": stats["capacity"],
        }

    async def create_service(self, db: AsyncSession, data: ServiceCreate, caller: User) -> ServiceResponse:
        """Create a service under a venue the caller manages.

        Raises:
            NotFoundError: Unknown venue
            ForbiddenError: Venue owned by someone else
        """
        venue: Venue = await venue_service.get_venue_or_404(db, data.venue_id)
        ensure_can_manage(venue, caller)

        payload: dict[str, Any] = data.model_dump()
        payload["venue_id"] = venue.id
        payload["currency"] = payload["currency"].upper()
        service: Service = await service_repository.create(db, payload)
        return service_to_response(service, venue.name)

    async def update_service(
        self, db: AsyncSession, service_id: UUID, data: ServiceUpdate, caller: User
    ) -> ServiceResponse:
        service: Service = await self.get_service_or_404(db, service_id)
        ensure_can_manage(service.venue, caller)

        update_data: dict = data.model_dump(exclude_unset=True)
        if update_data.get("currency"):
            update_data["currency"] = update_data["currency"].upper()
        await service_repository.update(db, service, update_data)
        return self._to_response(await self.get_service_or_404(db, service_id))

    async def delete_service(self, db: AsyncSession, service_id: UUID, caller: User) -> None:
        """Soft delete (is_active = False, is_available = False)."""
        service: Service = await self.get_service_or_404(db, service_id)
        ensure_can_manage(service.venue, caller)
        service.is_active = False
        service.is_available = False
        await db.flush()

    async def set_availability(
        self, db: AsyncSession, service_id: UUID, is_available: bool | None, caller: User
    ) -> ServiceResponse:
        """Set the bookable flag, or flip it when ``is_available`` is None."""
        service: Service = await self.get_service_or_404(db, service_id)
        ensure_can_manage(service.venue, caller)

        new_value: bool = (not service.is_available) if is_available is None else is_available
        await service_repository.update(db, service, {"is_available": new_value})
        return self._to_response(await self.get_service_or_404(db, service_id))

    async def update_pricing(
        self, db: AsyncSession, service_id: UUID, data: ServicePricingUpdate, caller: User
    ) -> ServiceResponse:
        service: Service = await self.get_service_or_404(db, service_id)
        ensure_can_manage(service.venue, caller)

        update_data: dict[str, Any] = {"price": data.price}
        if data.currency:
            update_data["currency"] = data.currency.upper()
        await service_repository.update(db, service, update_data)
        return self._to_response(await self.get_service_or_404(db, service_id))


# Singleton instance
service_catalog_service: ServiceCatalogService = ServiceCatalogService()
