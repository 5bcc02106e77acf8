"""Review Pydantic request/response schema definitions."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class ReviewCreate(CamelModel):
    """Review creation request.

    Attributes:
        venue_id: Reviewed venue
        service_id: Optional reviewed service (must belong to the venue)
        reservation_id: Optional source booking (must belong to the author)
        rating: 1..5
    """

    venue_id: UUID
    service_id: UUID | None = None
    reservation_id: UUID | None = None
    rating: int = Field(ge=1, le=5)
    title: str | None = Field(default=None, max_length=255)
    comment: str | None = Field(default=None, max_length=5000)


class ReviewUpdate(CamelModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    title: str | None = Field(default=None, max_length=255)
    comment: str | None = Field(default=None, max_length=5000)


class ReviewVisibilityUpdate(CamelModel):
    is_visible: bool


class ReviewResponse(CamelModel):
    id: str
    user_id: str
    user_name: str | None = None
    venue_id: str
    service_id: str | None
    reservation_id: str | None
    rating: int
    title: str | None
    comment: str | None
    is_verified: bool
    is_visible: bool
    helpful_votes: int
    report_count: int
    created_at: datetime
    updated_at: datetime


class ReviewStats(CamelModel):
    """Visible-review statistics of a venue.

    ``rating_distribution`` maps each star value 1..5 to its count.
    """

    total_reviews: int
    average_rating: float
    rating_distribution: dict[int, int]
    verified_reviews: int
    recent_reviews: int
