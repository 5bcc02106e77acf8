"""Service Router. Bookable service catalogue and its management.

Permission Matrix:
    - List / available / popular / detail: public
    - Stats, create / update / delete, availability, pricing: ADMIN+
      owning the parent venue (SUPER_ADMIN unrestricted)
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import page_params, require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.venue import ServiceAvailabilityUpdate, ServiceCreate, ServicePricingUpdate, ServiceUpdate
from app.services.service_catalog_service import service_catalog_service

router: APIRouter = APIRouter()


@router.get("")
async def list_services(
    db: Annotated[AsyncSession, Depends(get_db)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    category: str | None = None,
    venue_id: Annotated[UUID | None, Query(alias="venueId")] = None,
    search: str | None = None,
    min_price: Annotated[float | None, Query(alias="minPrice", ge=0)] = None,
    max_price: Annotated[float | None, Query(alias="maxPrice", ge=0)] = None,
    capacity: Annotated[int | None, Query(ge=1)] = None,
    duration: Annotated[int | None, Query(ge=1)] = None,
    available: bool | None = None,
) -> dict:
    """Active services ordered by price, then newest."""
    page, limit = paging
    result = await service_catalog_service.list_services(
        db, page, limit,
        category=category.upper() if category else None,
        venue_id=venue_id,
        search=search,
        min_price=min_price,
        max_price=max_price,
        capacity=capacity,
        duration=duration,
        available=available,
    )
    return success_response(result)


@router.get("/available")
async def get_available_services(
    db: Annotated[AsyncSession, Depends(get_db)],
    check_in: Annotated[datetime, Query(alias="checkIn")],
    check_out: Annotated[datetime, Query(alias="checkOut")],
    guests: Annotated[int, Query(ge=1)] = 1,
    venue_id: Annotated[UUID | None, Query(alias="venueId")] = None,
    category: str | None = None,
) -> dict:
    """Services with enough remaining capacity for ``guests`` over the range."""
    result = await service_catalog_service.get_available(
        db, check_in, check_out, guests, venue_id, category.upper() if category else None
    )
    return success_response(result)


@router.get("/popular")
async def get_popular_services(
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=50)] = 6,
    venue_id: Annotated[UUID | None, Query(alias="venueId")] = None,
) -> dict:
    return success_response(await service_catalog_service.get_popular(db, limit, venue_id))


@router.get("/{service_id}")
async def get_service(
    service_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    return success_response(await service_catalog_service.get_service(db, service_id))


@router.get("/{service_id}/stats")
async def get_service_stats(
    service_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    return success_response(await service_catalog_service.get_service_stats(db, service_id, current_user))


@router.post("", status_code=201)
async def create_service(
    data: ServiceCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await service_catalog_service.create_service(db, data, current_user)
    await db.commit()
    return success_response(result, "Service created")


@router.put("/{service_id}")
async def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await service_catalog_service.update_service(db, service_id, data, current_user)
    await db.commit()
    return success_response(result, "Service updated")


@router.delete("/{service_id}")
async def delete_service(
    service_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    await service_catalog_service.delete_service(db, service_id, current_user)
    await db.commit()
    return success_response(None, "Service deleted")


@router.patch("/{service_id}/availability")
async def set_service_availability(
    service_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    data: ServiceAvailabilityUpdate | None = None,
) -> dict:
    """Set ``isAvailable``; without a body the flag is toggled."""
    is_available: bool | None = data.is_available if data else None
    result = await service_catalog_service.set_availability(db, service_id, is_available, current_user)
    await db.commit()
    return success_response(result, "Availability updated")


@router.patch("/{service_id}/pricing")
async def update_service_pricing(
    service_id: UUID,
    data: ServicePricingUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await service_catalog_service.update_pricing(db, service_id, data, current_user)
    await db.commit()
    return success_response(result, "Pricing updated")
