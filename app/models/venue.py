"""Venue and Service SQLAlchemy ORM model definitions.

Tables:
    - venues: Bookable business locations, each owned by an admin (tenant)
    - services: Bookable offerings at a venue (room type, table, treatment, tour slot)
"""

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, enum_check


class VenueCategory(enum.StrEnum):
    ACCOMMODATION = "ACCOMMODATION"
    RESTAURANT = "RESTAURANT"
    SPA = "SPA"
    TOUR_OPERATOR = "TOUR_OPERATOR"
    EVENT_CENTER = "EVENT_CENTER"
    ENTERTAINMENT = "ENTERTAINMENT"


class ServiceCategory(enum.StrEnum):
    ACCOMMODATION = "ACCOMMODATION"
    DINING = "DINING"
    SPA_WELLNESS = "SPA_WELLNESS"
    TOUR_EXPERIENCE = "TOUR_EXPERIENCE"
    EVENT_MEETING = "EVENT_MEETING"
    ENTERTAINMENT = "ENTERTAINMENT"


class Venue(Base):
    """Venue model. A bookable business location.

    Venues are the tenant boundary: ADMIN and MANAGER users only manage
    venues they own, SUPER_ADMIN manages all of them.

    Attributes:
        id: Unique identifier
        owner_id: Administering user
        name / description: Display information
        category: VenueCategory value
        address / city / country: Location text
        latitude / longitude: Coordinates for nearby search (optional)
        phone / email / website: Contact details
        rating: Average visible review rating, 0..5
        images: List of image URLs
        amenities: List of amenity labels
        check_in_time / check_out_time: Local "HH:MM" strings
        cancellation_policy: Free text shown to guests
        is_active: Soft-delete flag
    """

    __tablename__ = "venues"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    images: Mapped[list] = mapped_column(JSON, default=list)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    check_in_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    check_out_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    cancellation_policy: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(enum_check("category", VenueCategory), name="ck_venues_category"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_venues_rating"),
    )

    owner = relationship("User", back_populates="owned_venues")
    services = relationship("Service", back_populates="venue", cascade="all, delete-orphan")
    reservations = relationship("Reservation", back_populates="venue")


class Service(Base):
    """Service model. A bookable offering at a venue.

    ``duration`` (minutes) marks per-session services priced per guest;
    services without a duration are priced per night.

    Attributes:
        id: Unique identifier
        venue_id: Parent venue
        name / description: Display information
        category: ServiceCategory value
        price: Unit price (per guest for sessions, per night otherwise)
        currency: ISO currency code
        capacity: Maximum concurrent guests
        duration: Session length in minutes (optional)
        images / amenities: JSON lists
        is_available: Bookable toggle
        is_active: Soft-delete flag
    """

    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    venue_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MXN")
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    images: Mapped[list] = mapped_column(JSON, default=list)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(enum_check("category", ServiceCategory), name="ck_services_category"),
        CheckConstraint("price >= 0", name="ck_services_price"),
        CheckConstraint("capacity >= 1", name="ck_services_capacity"),
    )

    venue = relationship("Venue", back_populates="services")
    reservations = relationship("Reservation", back_populates="service")
