"""Review Repository. Venue review listing and rating statistics."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.review import Review
from app.repositories.base import BaseRepository

# sort key -> ORDER BY clauses
REVIEW_SORTS: dict[str, tuple] = {
    "newest": (Review.created_at.desc(),),
    "oldest": (Review.created_at.asc(),),
    "rating_high": (Review.rating.desc(), Review.created_at.desc()),
    "rating_low": (Review.rating.asc(), Review.created_at.desc()),
    "helpful": (Review.helpful_votes.desc(), Review.created_at.desc()),
}


class ReviewRepository(BaseRepository[Review]):
    """Repository handling database queries for the reviews table."""

    def __init__(self) -> None:
        super().__init__(Review)

    def build_list_query(
        self,
        venue_id: UUID | None = None,
        service_id: UUID | None = None,
        user_id: UUID | None = None,
        rating: int | None = None,
        include_hidden: bool = False,
        sort: str = "newest",
    ) -> Select:
        query: Select = select(Review).options(selectinload(Review.user))

        if venue_id is not None:
            query = query.where(Review.venue_id == venue_id)
        if service_id is not None:
            query = query.where(Review.service_id == service_id)
        if user_id is not None:
            query = query.where(Review.user_id == user_id)
        if rating is not None:
            query = query.where(Review.rating == rating)
        if not include_hidden:
            query = query.where(Review.is_visible.is_(True))

        return query.order_by(*REVIEW_SORTS.get(sort, REVIEW_SORTS["newest"]))

    async def get_detail(self, db: AsyncSession, review_id: UUID) -> Review | None:
        return await self.get_by_id(db, review_id, options=[selectinload(Review.user)])

    async def get_for_reservation(self, db: AsyncSession, user_id: UUID, reservation_id: UUID) -> Review | None:
        result = await db.execute(
            select(Review).where(Review.user_id == user_id, Review.reservation_id == reservation_id)
        )
        return result.scalar_one_or_none()

    async def get_stats(self, db: AsyncSession, venue_id: UUID, recent_since: datetime) -> dict[str, Any]:
        """Average, 1..5 distribution, verified and recent counts of visible reviews."""
        visible = (Review.venue_id == venue_id, Review.is_visible.is_(True))

        distribution: dict[int, int] = {star: 0 for star in range(1, 6)}
        for rating, count in (await db.execute(
            select(Review.rating, func.count(Review.id)).where(*visible).group_by(Review.rating)
        )).all():
            distribution[int(rating)] = int(count)

        average = (await db.execute(select(func.avg(Review.rating)).where(*visible))).scalar()
        verified: int = (await db.execute(
            select(func.count(Review.id)).where(*visible, Review.is_verified.is_(True))
        )).scalar() or 0
        recent: int = (await db.execute(
            select(func.count(Review.id)).where(*visible, Review.created_at >= recent_since)
        )).scalar() or 0

        return {
            "total_reviews": sum(distribution.values()),
            "average_rating": round(float(average), 2) if average is not None else 0.0,
            "rating_distribution": distribution,
            "verified_reviews": int(verified),
            "recent_reviews": int(recent),
        }


# Singleton instance
review_repository: ReviewRepository = ReviewRepository()
