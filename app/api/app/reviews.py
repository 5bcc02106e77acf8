"""Review Router. Venue reviews, statistics and moderation.

Permission Matrix:
    - List / stats / read: public
    - Create, helpful, report: authenticated
    - Edit: author; delete: author or ADMIN+
    - Hide / show: ADMIN+
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_optional_user, page_params, require_admin
from app.database import get_db
from app.models.user import ROLE_LEVELS, RoleName, User
from app.schemas.common import success_response
from app.schemas.review import ReviewCreate, ReviewUpdate, ReviewVisibilityUpdate
from app.services.review_service import review_service

router: APIRouter = APIRouter()


@router.get("")
async def list_reviews(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User | None, Depends(get_optional_user)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    venue_id: Annotated[UUID | None, Query(alias="venueId")] = None,
    service_id: Annotated[UUID | None, Query(alias="serviceId")] = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    rating: Annotated[int | None, Query(ge=1, le=5)] = None,
    sort: str = "newest",
    include_hidden: Annotated[bool, Query(alias="includeHidden")] = False,
) -> dict:
    """Sort: newest | oldest | rating_high | rating_low | helpful. Hidden reviews are admin-only."""
    page, limit = paging
    is_admin: bool = current_user is not None and current_user.role.level <= ROLE_LEVELS[RoleName.ADMIN]
    result = await review_service.list_reviews(
        db, page, limit, venue_id, service_id, user_id, rating, sort, include_hidden and is_admin
    )
    return success_response(result)


@router.get("/stats/{venue_id}")
async def get_review_stats(
    venue_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    return success_response(await review_service.get_stats(db, venue_id))


@router.get("/{review_id}")
async def get_review(
    review_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    return success_response(await review_service.get_review(db, review_id))


@router.post("", status_code=201)
async def create_review(
    data: ReviewCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await review_service.create_review(db, data, current_user)
    await db.commit()
    return success_response(result, "Review created")


@router.put("/{review_id}")
async def update_review(
    review_id: UUID,
    data: ReviewUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await review_service.update_review(db, review_id, data, current_user)
    await db.commit()
    return success_response(result, "Review updated")


@router.post("/{review_id}/helpful")
async def mark_review_helpful(
    review_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await review_service.mark_helpful(db, review_id)
    await db.commit()
    return success_response(result)


@router.post("/{review_id}/report")
async def report_review(
    review_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await review_service.report(db, review_id)
    await db.commit()
    return success_response(result, "Review reported")


@router.patch("/{review_id}/visibility")
async def set_review_visibility(
    review_id: UUID,
    data: ReviewVisibilityUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    result = await review_service.set_visibility(db, review_id, data.is_visible)
    await db.commit()
    return success_response(result, "Review visibility updated")


@router.delete("/{review_id}")
async def delete_review(
    review_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    await review_service.delete_review(db, review_id, current_user)
    await db.commit()
    return success_response(None, "Review deleted")
