"""Venue and Service Pydantic request/response schema definitions.

Venues are bookable business locations; services are the bookable offers
(rooms, tables, treatments, tours) that belong to a venue.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.models.venue import ServiceCategory, VenueCategory
from app.schemas.common import CamelModel

_TIME_PATTERN: str = r"^([01]\d|2[0-3]):[0-5]\d$"


# === Venue schemas ===

class VenueCreate(CamelModel):
    """Venue creation request.

    Attributes:
        name: Display name
        category: VenueCategory value
        address / city / country: Location text
        latitude / longitude: Optional coordinates used by the nearby search
        check_in_time / check_out_time: "HH:MM" house times
        owner_id: SUPER_ADMIN may assign another owner; defaults to the caller
    """

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: VenueCategory
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    images: list[str] = []
    amenities: list[str] = []
    check_in_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    check_out_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    cancellation_policy: str | None = None
    owner_id: UUID | None = None


class VenueUpdate(CamelModel):
    """Venue update request (partial)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: VenueCategory | None = None
    address: str | None = Field(default=None, max_length=500)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    images: list[str] | None = None
    amenities: list[str] | None = None
    check_in_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    check_out_time: str | None = Field(default=None, pattern=_TIME_PATTERN)
    cancellation_policy: str | None = None
    is_active: bool | None = None


class VenueResponse(CamelModel):
    id: str
    owner_id: str | None
    name: str
    description: str | None
    category: str
    address: str | None
    city: str | None
    country: str | None
    latitude: float | None
    longitude: float | None
    phone: str | None
    email: str | None
    website: str | None
    rating: float
    images: list[str]
    amenities: list[str]
    check_in_time: str | None
    check_out_time: str | None
    cancellation_policy: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class NearbyVenueResponse(VenueResponse):
    """Venue with its great-circle distance from the search point."""

    distance_km: float


class PopularVenueResponse(VenueResponse):
    reservation_count: int
    popularity_score: float


class VenueDetailResponse(VenueResponse):
    services: list["ServiceResponse"] = []


# === Service schemas ===

class ServiceCreate(CamelModel):
    """Service creation request.

    Attributes:
        venue_id: Parent venue (must be owned by the caller unless SUPER_ADMIN)
        category: ServiceCategory value
        price: Unit price, per guest for timed services or per night otherwise
        capacity: Maximum concurrent guests
        duration: Session length in minutes; None for nightly services
    """

    venue_id: UUID
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: ServiceCategory
    price: float = Field(ge=0)
    currency: str = Field(default="MXN", min_length=3, max_length=3)
    capacity: int = Field(default=1, ge=1)
    duration: int | None = Field(default=None, ge=1)
    images: list[str] = []
    amenities: list[str] = []
    is_available: bool = True


class ServiceUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: ServiceCategory | None = None
    price: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    capacity: int | None = Field(default=None, ge=1)
    duration: int | None = Field(default=None, ge=1)
    images: list[str] | None = None
    amenities: list[str] | None = None
    is_available: bool | None = None
    is_active: bool | None = None


class ServiceAvailabilityUpdate(CamelModel):
    """Explicit availability flag; omitted means toggle."""

    is_available: bool | None = None


class ServicePricingUpdate(CamelModel):
    price: float = Field(ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class ServiceResponse(CamelModel):
    id: str
    venue_id: str
    venue_name: str | None = None
    name: str
    description: str | None
    category: str
    price: float
    currency: str
    capacity: int
    duration: int | None
    images: list[str]
    amenities: list[str]
    is_available: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AvailableServiceResponse(ServiceResponse):
    """Service with its remaining capacity over the requested range."""

    reserved_guests: int
    remaining_capacity: int


class PopularServiceResponse(ServiceResponse):
    reservation_count: int


VenueDetailResponse.model_rebuild()
