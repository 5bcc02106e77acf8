"""Reservation Service. Booking, status lifecycle and cancellation policy.

Flow:
    1. Guest creates a PENDING reservation (capacity checked against
       CONFIRMED/CHECKED_IN bookings over the same range)
    2. Payment confirmation (or staff) moves it to CONFIRMED
    3. Staff checks the guest in and out, or marks a NO_SHOW
    4. Guest or admin may cancel; the refund owed depends on how far away
       check-in is
"""

import logging
import math
import secrets
import string
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payment import PaymentStatus
from app.models.reservation import RefundStatus, Reservation, ReservationStatus
from app.models.user import ROLE_LEVELS, RoleName, User
from app.models.venue import Service
from app.repositories.payment_repository import payment_repository
from app.repositories.reservation_repository import reservation_repository
from app.repositories.service_repository import service_repository
from app.schemas.common import PaginatedData
from app.schemas.reservation import ReservationCreate, ReservationResponse, ReservationUpdate
from app.services.email_service import email_service
from app.services.notification_service import notification_service
from app.services.venue_service import scoped_venue_ids
from app.utils.dates import as_utc, utcnow
from app.utils.exceptions import BadRequestError, DuplicateError, ForbiddenError, NotFoundError
from app.utils.pagination import build_page

logger = logging.getLogger(__name__)

# Staff-driven status changes
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({
        ReservationStatus.CHECKED_IN, ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW,
    }),
    ReservationStatus.CHECKED_IN: frozenset({ReservationStatus.CHECKED_OUT}),
    ReservationStatus.CHECKED_OUT: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}

NON_CANCELLABLE: frozenset[str] = frozenset({ReservationStatus.CHECKED_OUT, ReservationStatus.NO_SHOW})

REMINDER_STATUSES: dict[str, str] = {
    "checkin": ReservationStatus.CONFIRMED,
    "checkout": ReservationStatus.CHECKED_IN,
}

# Cancellation refund policy: (hours before check-in, share refunded)
REFUND_TIERS: tuple[tuple[float, Decimal], ...] = (
    (48, Decimal("1")),
    (24, Decimal("0.5")),
)

CODE_ALPHABET: str = string.ascii_uppercase + string.digits
CODE_LENGTH: int = 8


def calculate_total(service: Service, check_in: datetime, check_out: datetime, guests: int) -> Decimal:
    """Price a booking.

    Timed services (with a duration) cost price x guests; nightly services
    cost price x nights, where a partial night counts as a full one.
    """
    price = Decimal(str(service.price))
    if service.duration:
        total = price * guests
    else:
        nights: int = max(1, math.ceil((check_out - check_in).total_seconds() / 86400))
        total = price * nights
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def calculate_refund(total_amount: Decimal, check_in: datetime, now: datetime | None = None) -> Decimal:
    """Refund owed when cancelling: >48h 100%, >24h 50%, otherwise nothing."""
    hours_until: float = (as_utc(check_in) - (now or utcnow())).total_seconds() / 3600
    for threshold, share in REFUND_TIERS:
        if hours_until > threshold:
            return (Decimal(str(total_amount)) * share).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return Decimal("0.00")


class ReservationService:
    """Service handling reservation business logic."""

    def _to_response(self, reservation: Reservation) -> ReservationResponse:
        latest_payment = reservation.payments[-1] if reservation.payments else None
        return ReservationResponse(
            id=str(reservation.id),
            confirmation_code=reservation.confirmation_code,
            user_id=str(reservation.user_id),
            guest_name=reservation.user.full_name if reservation.user else None,
            guest_email=reservation.user.email if reservation.user else None,
            service_id=str(reservation.service_id),
            service_name=reservation.service.name if reservation.service else None,
            venue_id=str(reservation.venue_id),
            venue_name=reservation.venue.name if reservation.venue else None,
            check_in=as_utc(reservation.check_in),
            check_out=as_utc(reservation.check_out),
            guests=reservation.guests,
            total_amount=float(reservation.total_amount),
            currency=reservation.currency,
            status=reservation.status,
            special_requests=reservation.special_requests,
            cancel_reason=reservation.cancel_reason,
            cancelled_at=as_utc(reservation.cancelled_at),
            refund_amount=float(reservation.refund_amount) if reservation.refund_amount is not None else None,
            refund_status=reservation.refund_status,
            payment_status=latest_payment.status if latest_payment else None,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at,
        )

    async def get_reservation_or_404(self, db: AsyncSession, reservation_id: UUID) -> Reservation:
        reservation: Reservation | None = await reservation_repository.get_detail(db, reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found")
        return reservation

    async def _is_staff_for(self, db: AsyncSession, reservation: Reservation, user: User, max_level: int) -> bool:
        """True when ``user`` is at least ``max_level`` and the venue is in scope."""
        if user.role.level > max_level:
            return False
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, user)
        return venue_ids is None or reservation.venue_id in venue_ids

    async def _generate_code(self, db: AsyncSession) -> str:
        while True:
            code: str = "RSV-" + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if not await reservation_repository.code_exists(db, code):
                return code

    async def _check_capacity(
        self,
        db: AsyncSession,
        service: Service,
        check_in: datetime,
        check_out: datetime,
        guests: int,
        exclude_reservation_id: UUID | None = None,
    ) -> None:
        """Raise unless ``guests`` fit next to the blocking bookings in the range.

        Raises:
            BadRequestError: More guests than the service holds
            DuplicateError: Not enough remaining capacity for the dates
        """
        if guests > service.capacity:
            raise BadRequestError(f"Service capacity is {service.capacity} guests")
        reserved: int = await service_repository.get_reserved_guests(
            db, service.id, check_in, check_out, exclude_reservation_id
        )
        if reserved + guests > service.capacity:
            raise DuplicateError("Service is not available for the selected dates")

    async def _notify(self, db: AsyncSession, reservation: Reservation, event: str) -> None:
        try:
            await notification_service.notify_reservation(db, reservation, event)
        except Exception:
            logger.exception("Failed to create %s notification for reservation %s", event, reservation.id)

    async def create_reservation(self, db: AsyncSession, data: ReservationCreate, user: User) -> ReservationResponse:
        """Book a service.

        Raises:
            BadRequestError: Bad date range, past check-in, unavailable service or too many guests
            NotFoundError: Unknown or inactive service
            DuplicateError: Capacity exhausted for the dates
        """
        check_in, check_out = as_utc(data.check_in), as_utc(data.check_out)
        if check_in >= check_out:
            raise BadRequestError("checkIn must be before checkOut")
        if check_in < utcnow():
            raise BadRequestError("checkIn cannot be in the past")

        service: Service | None = await service_repository.get_detail(db, data.service_id)
        if service is None or not service.is_active:
            raise NotFoundError("Service not found")
        if not service.is_available or (service.venue is not None and not service.venue.is_active):
            raise BadRequestError("Service is not available")

        await self._check_capacity(db, service, check_in, check_out, data.guests)

        reservation: Reservation = await reservation_repository.create(
            db,
            {
                "confirmation_code": await self._generate_code(db),
                "user_id": user.id,
                "service_id": service.id,
                "venue_id": service.venue_id,
                "check_in": check_in,
                "check_out": check_out,
                "guests": data.guests,
                "total_amount": calculate_total(service, check_in, check_out, data.guests),
                "currency": service.currency,
                "status": ReservationStatus.PENDING,
                "special_requests": data.special_requests,
            },
        )
        logger.info("Reservation %s created by %s", reservation.confirmation_code, user.email)

        await self._notify(db, reservation, "created")
        return self._to_response(await self.get_reservation_or_404(db, reservation.id))

    async def list_reservations(
        self,
        db: AsyncSession,
        caller: User,
        page: int,
        limit: int,
        status: str | None = None,
        user_id: UUID | None = None,
        service_id: UUID | None = None,
        venue_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        search: str | None = None,
    ) -> PaginatedData:
        """Guests see their own reservations; MANAGER+ see the venues they administer."""
        venue_ids: list[UUID] | None = None
        if caller.role.level > ROLE_LEVELS[RoleName.MANAGER]:
            user_id = caller.id
        else:
            venue_ids = await scoped_venue_ids(db, caller)

        query = reservation_repository.build_list_query(
            user_id, status, service_id, venue_id, venue_ids, as_utc(date_from), as_utc(date_to), search
        )
        reservations, total = await reservation_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(r) for r in reservations], total, page, limit)

    async def get_reservation(self, db: AsyncSession, reservation_id: UUID, caller: User) -> ReservationResponse:
        """Owner or MANAGER+ for the venue.

        Raises:
            NotFoundError: Unknown reservation
            ForbiddenError: Not the owner and not staff for the venue
        """
        reservation: Reservation = await self.get_reservation_or_404(db, reservation_id)
        if reservation.user_id != caller.id and not await self._is_staff_for(
            db, reservation, caller, ROLE_LEVELS[RoleName.MANAGER]
        ):
            raise ForbiddenError("You do not have access to this reservation")
        return self._to_response(reservation)

    async def update_reservation(
        self, db: AsyncSession, reservation_id: UUID, data: ReservationUpdate, caller: User
    ) -> ReservationResponse:
        """Edit booking details or, for staff, move the status along.

        Raises:
            ForbiddenError: Not the owner/staff, or a guest changing status
            BadRequestError: Guest editing a non-PENDING booking, or an invalid transition
            DuplicateError: New dates or guests exceed capacity
        """
        reservation: Reservation = await self.get_reservation_or_404(db, reservation_id)
        is_staff: bool = await self._is_staff_for(db, reservation, caller, ROLE_LEVELS[RoleName.MANAGER])
        if reservation.user_id != caller.id and not is_staff:
            raise ForbiddenError("You do not have access to this reservation")

        update_data: dict = data.model_dump(exclude_unset=True)
        new_status: str | None = update_data.pop("status", None)
        if new_status is not None and not is_staff:
            raise ForbiddenError("Only staff can change the reservation status")

        if update_data:
            if not is_staff and reservation.status != ReservationStatus.PENDING:
                raise BadRequestError("Only pending reservations can be edited")
            await self._apply_booking_changes(db, reservation, update_data)

        if new_status is not None and new_status != reservation.status:
            await self._transition(db, reservation, new_status, caller)

        return self._to_response(await self.get_reservation_or_404(db, reservation_id))

    async def _apply_booking_changes(self, db: AsyncSession, reservation: Reservation, update_data: dict) -> None:
        check_in: datetime = as_utc(update_data.get("check_in") or reservation.check_in)
        check_out: datetime = as_utc(update_data.get("check_out") or reservation.check_out)
        guests: int = update_data.get("guests") or reservation.guests
        if check_in >= check_out:
            raise BadRequestError("checkIn must be before checkOut")

        changes: dict = {}
        if "special_requests" in update_data:
            changes["special_requests"] = update_data["special_requests"]
        if {"check_in", "check_out", "guests"} & set(update_data):
            if "check_in" in update_data and check_in < utcnow():
                raise BadRequestError("checkIn cannot be in the past")
            service: Service = reservation.service
            await self._check_capacity(db, service, check_in, check_out, guests, reservation.id)
            changes.update({
                "check_in": check_in,
                "check_out": check_out,
                "guests": guests,
                "total_amount": calculate_total(service, check_in, check_out, guests),
            })
        await reservation_repository.update(db, reservation, changes)

    async def _transition(self, db: AsyncSession, reservation: Reservation, new_status: str, caller: User) -> None:
        if new_status not in STATUS_TRANSITIONS[reservation.status]:
            raise BadRequestError(f"Cannot change status from {reservation.status} to {new_status}")

        if new_status == ReservationStatus.CANCELLED:
            await self._apply_cancellation(db, reservation, None)
            return
        if new_status == ReservationStatus.CONFIRMED:
            await self._check_capacity(
                db, reservation.service, as_utc(reservation.check_in), as_utc(reservation.check_out),
                reservation.guests, reservation.id,
            )

        await reservation_repository.update(db, reservation, {"status": new_status})
        logger.info("Reservation %s -> %s by %s", reservation.confirmation_code, new_status, caller.email)

        if new_status == ReservationStatus.CONFIRMED:
            await self._notify(db, reservation, "confirmed")
            try:
                await email_service.send_reservation_confirmation(reservation)
            except Exception:
                logger.exception("Failed to send confirmation email for %s", reservation.confirmation_code)

    async def _apply_cancellation(self, db: AsyncSession, reservation: Reservation, reason: str | None) -> None:
        refund_amount: Decimal = calculate_refund(reservation.total_amount, reservation.check_in)
        if await payment_repository.get_completed_for_reservation(db, reservation.id) is not None:
            refund_status: str = RefundStatus.PROCESSING
        elif refund_amount > 0:
            refund_status = RefundStatus.PENDING
        else:
            refund_status = RefundStatus.COMPLETED

        await reservation_repository.update(
            db,
            reservation,
            {
                "status": ReservationStatus.CANCELLED,
                "cancel_reason": reason,
                "cancelled_at": utcnow(),
                "refund_amount": refund_amount,
                "refund_status": refund_status,
            },
        )
        logger.info(
            "Reservation %s cancelled, refund %s (%s)", reservation.confirmation_code, refund_amount, refund_status
        )

        await self._notify(db, reservation, "cancelled")
        try:
            await email_service.send_reservation_cancellation(reservation)
        except Exception:
            logger.exception("Failed to send cancellation email for %s", reservation.confirmation_code)

    async def cancel_reservation(
        self, db: AsyncSession, reservation_id: UUID, caller: User, reason: str | None = None
    ) -> ReservationResponse:
        """Cancel a booking and record the refund owed.

        Cancelling an already cancelled reservation returns it unchanged.

        Raises:
            ForbiddenError: Not the owner and not ADMIN+ for the venue
            BadRequestError: Reservation already checked out or marked no-show
        """
        reservation: Reservation = await self.get_reservation_or_404(db, reservation_id)
        if reservation.user_id != caller.id and not await self._is_staff_for(
            db, reservation, caller, ROLE_LEVELS[RoleName.ADMIN]
        ):
            raise ForbiddenError("You do not have access to this reservation")

        if reservation.status == ReservationStatus.CANCELLED:
            return self._to_response(reservation)
        if reservation.status in NON_CANCELLABLE:
            raise BadRequestError(f"Reservations in status {reservation.status} cannot be cancelled")

        await self._apply_cancellation(db, reservation, reason)
        return self._to_response(await self.get_reservation_or_404(db, reservation_id))

    async def set_status_from_payment(self, db: AsyncSession, reservation: Reservation, payment_status: str) -> None:
        """Follow a gateway-reported payment status on the reservation.

        COMPLETED confirms a PENDING booking when the service still has room
        for it; otherwise the booking stays PENDING and a capacity conflict
        notification is raised for staff to resolve. FAILED and CANCELLED
        cancel a booking that has not started yet.
        """
        if payment_status == PaymentStatus.COMPLETED and reservation.status == ReservationStatus.PENDING:
            try:
                await self._check_capacity(
                    db, reservation.service, as_utc(reservation.check_in), as_utc(reservation.check_out),
                    reservation.guests, reservation.id,
                )
            except (BadRequestError, DuplicateError) as exc:
                logger.warning(
                    "Paid reservation %s left PENDING: %s", reservation.confirmation_code, exc.detail
                )
                await self._notify(db, reservation, "capacity_conflict")
                return
            await reservation_repository.update(db, reservation, {"status": ReservationStatus.CONFIRMED})
            await self._notify(db, reservation, "confirmed")
        elif payment_status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED) and reservation.status in (
            ReservationStatus.PENDING, ReservationStatus.CONFIRMED,
        ):
            await reservation_repository.update(
                db, reservation, {"status": ReservationStatus.CANCELLED, "cancelled_at": utcnow()}
            )
            await self._notify(db, reservation, "cancelled")

    async def send_reminder(self, db: AsyncSession, reservation_id: UUID, kind: str, caller: User) -> None:
        """Email the guest a check-in or check-out reminder.

        Check-in reminders go to CONFIRMED bookings, check-out reminders to
        CHECKED_IN ones.

        Raises:
            ForbiddenError: Not MANAGER+ for the venue
            BadRequestError: Reminder does not fit the reservation status
        """
        reservation: Reservation = await self.get_reservation_or_404(db, reservation_id)
        if not await self._is_staff_for(db, reservation, caller, ROLE_LEVELS[RoleName.MANAGER]):
            raise ForbiddenError("You do not have access to this reservation")

        expected: str = REMINDER_STATUSES[kind]
        if reservation.status != expected:
            raise BadRequestError(f"A {kind} reminder needs a {expected} reservation")

        if kind == "checkin":
            await email_service.send_checkin_reminder(reservation)
        else:
            await email_service.send_checkout_reminder(reservation)
        logger.info("Sent %s reminder for %s", kind, reservation.confirmation_code)


# Singleton instance
reservation_service: ReservationService = ReservationService()
