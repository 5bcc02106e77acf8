"""Review Service. Venue reviews, moderation and rating statistics.

The venue rating is the average of its visible reviews and is recomputed
on every change that can move it.
"""

from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reservation import Reservation, ReservationStatus
from app.models.review import Review
from app.models.user import ROLE_LEVELS, RoleName, User
from app.models.venue import Service, Venue
from app.repositories.reservation_repository import reservation_repository
from app.repositories.review_repository import REVIEW_SORTS, review_repository
from app.repositories.service_repository import service_repository
from app.repositories.venue_repository import venue_repository
from app.schemas.common import PaginatedData
from app.schemas.review import ReviewCreate, ReviewResponse, ReviewStats, ReviewUpdate
from app.utils.dates import utcnow
from app.utils.exceptions import BadRequestError, DuplicateError, ForbiddenError, NotFoundError
from app.utils.pagination import build_page

RECENT_DAYS: int = 30


class ReviewService:
    """Service handling review business logic."""

    def _to_response(self, review: Review) -> ReviewResponse:
        return ReviewResponse(
            id=str(review.id),
            user_id=str(review.user_id),
            user_name=review.user.full_name if review.user else None,
            venue_id=str(review.venue_id),
            service_id=str(review.service_id) if review.service_id else None,
            reservation_id=str(review.reservation_id) if review.reservation_id else None,
            rating=review.rating,
            title=review.title,
            comment=review.comment,
            is_verified=review.is_verified,
            is_visible=review.is_visible,
            helpful_votes=review.helpful_votes,
            report_count=review.report_count,
            created_at=review.created_at,
            updated_at=review.updated_at,
        )

    async def _get_review(self, db: AsyncSession, review_id: UUID) -> Review:
        review: Review | None = await review_repository.get_detail(db, review_id)
        if review is None:
            raise NotFoundError("Review not found")
        return review

    async def _refresh_venue_rating(self, db: AsyncSession, venue_id: UUID) -> None:
        venue: Venue | None = await venue_repository.get_by_id(db, venue_id)
        if venue is not None:
            await venue_repository.update_rating(db, venue)

    async def create_review(self, db: AsyncSession, data: ReviewCreate, user: User) -> ReviewResponse:
        """Post a review of a venue.

        Verified when the linked reservation is CHECKED_OUT.

        Raises:
            NotFoundError: Unknown venue, service or reservation
            BadRequestError: Service or reservation from another venue
            ForbiddenError: Reservation belongs to someone else
            DuplicateError: Reservation already reviewed by the user
        """
        venue: Venue | None = await venue_repository.get_by_id(db, data.venue_id)
        if venue is None or not venue.is_active:
            raise NotFoundError("Venue not found")

        service_id: UUID | None = None
        if data.service_id:
            service: Service | None = await service_repository.get_by_id(db, data.service_id)
            if service is None:
                raise NotFoundError("Service not found")
            if service.venue_id != venue.id:
                raise BadRequestError("Service does not belong to this venue")
            service_id = service.id

        reservation_id: UUID | None = None
        is_verified: bool = False
        if data.reservation_id:
            reservation: Reservation | None = await reservation_repository.get_by_id(db, data.reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation not found")
            if reservation.user_id != user.id:
                raise ForbiddenError("You can only review your own reservations")
            if reservation.venue_id != venue.id:
                raise BadRequestError("Reservation does not belong to this venue")
            if await review_repository.get_for_reservation(db, user.id, reservation.id) is not None:
                raise DuplicateError("You already reviewed this reservation")
            reservation_id = reservation.id
            service_id = service_id or reservation.service_id
            is_verified = reservation.status == ReservationStatus.CHECKED_OUT

        review: Review = await review_repository.create(
            db,
            {
                "user_id": user.id,
                "venue_id": venue.id,
                "service_id": service_id,
                "reservation_id": reservation_id,
                "rating": data.rating,
                "title": data.title,
                "comment": data.comment,
                "is_verified": is_verified,
            },
        )
        await self._refresh_venue_rating(db, venue.id)
        return self._to_response(await self._get_review(db, review.id))

    async def list_reviews(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        venue_id: UUID | None = None,
        service_id: UUID | None = None,
        user_id: UUID | None = None,
        rating: int | None = None,
        sort: str = "newest",
        include_hidden: bool = False,
    ) -> PaginatedData:
        if sort not in REVIEW_SORTS:
            raise BadRequestError(f"sort must be one of: {', '.join(REVIEW_SORTS)}")
        query = review_repository.build_list_query(venue_id, service_id, user_id, rating, include_hidden, sort)
        reviews, total = await review_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(r) for r in reviews], total, page, limit)

    async def get_review(self, db: AsyncSession, review_id: UUID) -> ReviewResponse:
        review: Review = await self._get_review(db, review_id)
        if not review.is_visible:
            raise NotFoundError("Review not found")
        return self._to_response(review)

    async def get_stats(self, db: AsyncSession, venue_id: UUID) -> ReviewStats:
        if await venue_repository.get_by_id(db, venue_id) is None:
            raise NotFoundError("Venue not found")
        stats = await review_repository.get_stats(db, venue_id, utcnow() - timedelta(days=RECENT_DAYS))
        return ReviewStats(**stats)

    async def update_review(self, db: AsyncSession, review_id: UUID, data: ReviewUpdate, user: User) -> ReviewResponse:
        """Author-only edit of rating and text."""
        review: Review = await self._get_review(db, review_id)
        if review.user_id != user.id:
            raise ForbiddenError("You can only edit your own reviews")

        update_data: dict = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k != "rating"}
        await review_repository.update(db, review, update_data)
        if "rating" in update_data:
            await self._refresh_venue_rating(db, review.venue_id)
        return self._to_response(await self._get_review(db, review_id))

    async def mark_helpful(self, db: AsyncSession, review_id: UUID) -> ReviewResponse:
        review: Review = await self._get_review(db, review_id)
        await review_repository.update(db, review, {"helpful_votes": review.helpful_votes + 1})
        return self._to_response(review)

    async def report(self, db: AsyncSession, review_id: UUID) -> ReviewResponse:
        review: Review = await self._get_review(db, review_id)
        await review_repository.update(db, review, {"report_count": review.report_count + 1})
        return self._to_response(review)

    async def set_visibility(self, db: AsyncSession, review_id: UUID, is_visible: bool) -> ReviewResponse:
        """Hide or show a review (moderation) and recompute the venue rating."""
        review: Review = await self._get_review(db, review_id)
        await review_repository.update(db, review, {"is_visible": is_visible})
        await self._refresh_venue_rating(db, review.venue_id)
        return self._to_response(review)

    async def delete_review(self, db: AsyncSession, review_id: UUID, caller: User) -> None:
        """Author or ADMIN+."""
        review: Review = await self._get_review(db, review_id)
        if review.user_id != caller.id and caller.role.level > ROLE_LEVELS[RoleName.ADMIN]:
            raise ForbiddenError("You can only delete your own reviews")
        venue_id: UUID = review.venue_id
        await review_repository.delete(db, review)
        await self._refresh_venue_rating(db, venue_id)


# Singleton instance
review_service: ReviewService = ReviewService()
