"""Venue Router. Public venue discovery plus owner-scoped management.

Permission Matrix:
    - List / nearby / popular / detail: public
    - Overview stats, per-venue stats, create / update / delete: ADMIN+
      (ADMIN limited to venues they own; SUPER_ADMIN unrestricted)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_optional_user, page_params, require_admin
from app.database import get_db
from app.models.user import ROLE_LEVELS, RoleName, User
from app.schemas.common import success_response
from app.schemas.venue import VenueCreate, VenueUpdate
from app.services.venue_service import is_super_admin, venue_service

router: APIRouter = APIRouter()


def _is_staff(user: User | None) -> bool:
    return user is not None and user.role.level <= ROLE_LEVELS[RoleName.MANAGER]


@router.get("")
async def list_venues(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User | None, Depends(get_optional_user)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    category: str | None = None,
    search: str | None = None,
    city: str | None = None,
    rating: Annotated[float | None, Query(ge=0, le=5)] = None,
    is_active: Annotated[bool | None, Query(alias="isActive")] = True,
    min_price: Annotated[float | None, Query(alias="minPrice", ge=0)] = None,
    max_price: Annotated[float | None, Query(alias="maxPrice", ge=0)] = None,
) -> dict:
    """Venues ordered by rating, then newest. Only staff may list inactive venues."""
    page, limit = paging
    if not _is_staff(current_user):
        is_active = True
    result = await venue_service.list_venues(
        db, page, limit,
        category=category.upper() if category else None,
        search=search,
        city=city,
        min_rating=rating,
        is_active=is_active,
        min_price=min_price,
        max_price=max_price,
    )
    return success_response(result)


@router.get("/nearby")
async def get_nearby_venues(
    db: Annotated[AsyncSession, Depends(get_db)],
    lat: Annotated[float, Query(ge=-90, le=90)],
    lng: Annotated[float, Query(ge=-180, le=180)],
    radius: Annotated[float, Query(gt=0, le=500)] = 10.0,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> dict:
    """Active venues within ``radius`` km, nearest first."""
    return success_response(await venue_service.get_nearby(db, lat, lng, radius, limit))


@router.get("/popular")
async def get_popular_venues(
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=50)] = 6,
    min_rating: Annotated[float | None, Query(alias="minRating", ge=0, le=5)] = None,
) -> dict:
    return success_response(await venue_service.get_popular(db, limit, min_rating))


@router.get("/stats")
async def get_venue_overview(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    owner_id: UUID | None = None if is_super_admin(current_user) else current_user.id
    return success_response(await venue_service.get_overview_stats(db, owner_id))


@router.get("/{venue_id}")
async def get_venue(
    venue_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User | None, Depends(get_optional_user)],
) -> dict:
    result = await venue_service.get_venue(db, venue_id, include_inactive=_is_staff(current_user))
    return success_response(result)


@router.get("/{venue_id}/stats")
async def get_venue_stats(
    venue_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    return success_response(await venue_service.get_venue_stats(db, venue_id, current_user))


@router.post("", status_code=201)
async def create_venue(
    data: VenueCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await venue_service.create_venue(db, data, current_user)
    await db.commit()
    return success_response(result, "Venue created")


@router.put("/{venue_id}")
async def update_venue(
    venue_id: UUID,
    data: VenueUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await venue_service.update_venue(db, venue_id, data, current_user)
    await db.commit()
    return success_response(result, "Venue updated")


@router.delete("/{venue_id}")
async def delete_venue(
    venue_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    """Soft delete: the venue is deactivated."""
    await venue_service.delete_venue(db, venue_id, current_user)
    await db.commit()
    return success_response(None, "Venue deleted")
