"""Payment Service. Stripe payment flow, webhooks, refunds and history.

Payment statuses follow the gateway:
    requires_* → PENDING, processing → PROCESSING, succeeded → COMPLETED,
    canceled → CANCELLED, payment_failed event → FAILED,
    full charge refund → REFUNDED

Side effects of a status change (reservation status, notification,
receipt, emails) are applied once, when the payment first enters the
status, so repeated webhook deliveries are harmless.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.payment import Payment, PaymentMethod, PaymentStatus
from app.models.reservation import Reservation, ReservationStatus
from app.models.user import ROLE_LEVELS, RoleName, User
from app.repositories.payment_repository import payment_repository
from app.repositories.reservation_repository import reservation_repository
from app.schemas.payment import (
    ConfirmPaymentRequest,
    CreateIntentRequest,
    CreateIntentResponse,
    PaymentListData,
    PaymentResponse,
    PaymentSummary,
    RefundRequest,
)
from app.services.email_service import email_service
from app.services.notification_service import notification_service
from app.services.receipt_service import receipt_service
from app.services.reservation_service import reservation_service
from app.services.stripe_gateway import from_cents, stripe_gateway
from app.services.system_log_service import system_log_service
from app.services.venue_service import scoped_venue_ids
from app.utils.dates import as_utc, utcnow
from app.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.utils.pagination import build_meta

logger = logging.getLogger(__name__)

# PaymentIntent.status → PaymentStatus
INTENT_STATUS_MAP: dict[str, str] = {
    "succeeded": PaymentStatus.COMPLETED,
    "processing": PaymentStatus.PROCESSING,
    "requires_payment_method": PaymentStatus.PENDING,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "requires_capture": PaymentStatus.PENDING,
    "canceled": PaymentStatus.CANCELLED,
}

MAX_HISTORY_LIMIT: int = 50


def payment_to_response(payment: Payment) -> PaymentResponse:
    reservation: Reservation | None = payment.reservation
    return PaymentResponse(
        id=str(payment.id),
        reservation_id=str(payment.reservation_id),
        user_id=str(payment.user_id),
        user_email=payment.user.email if payment.user else None,
        user_name=payment.user.full_name if payment.user else None,
        service_name=reservation.service.name if reservation and reservation.service else None,
        venue_name=reservation.venue.name if reservation and reservation.venue else None,
        amount=float(payment.amount),
        currency=payment.currency,
        status=payment.status,
        method=payment.method,
        stripe_payment_id=payment.stripe_payment_id,
        description=payment.description,
        failure_reason=payment.failure_reason,
        refunded_amount=float(payment.refunded_amount or 0),
        metadata=payment.metadata_ or {},
        paid_at=as_utc(payment.paid_at),
        refunded_at=as_utc(payment.refunded_at),
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


class PaymentService:
    """Service handling the guest payment flow and gateway events."""

    async def get_payment_or_404(self, db: AsyncSession, payment_id: UUID) -> Payment:
        payment: Payment | None = await payment_repository.get_detail(db, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment

    async def _load_reservation(self, db: AsyncSession, payment: Payment) -> Reservation:
        return await reservation_service.get_reservation_or_404(db, payment.reservation_id)

    # --- Guest flow ---

    async def create_intent(self, db: AsyncSession, data: CreateIntentRequest, user: User) -> CreateIntentResponse:
        """Create a Stripe PaymentIntent and a PENDING payment for a reservation.

        Raises:
            NotFoundError: Unknown reservation
            ForbiddenError: Reservation belongs to someone else
            BadRequestError: Reservation cancelled or already finished
            PaymentGatewayError: Stripe rejected the call
        """
        reservation: Reservation | None = await reservation_repository.get_detail(db, data.reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation not found")
        if reservation.user_id != user.id:
            raise ForbiddenError("You can only pay for your own reservations")
        if reservation.status in (ReservationStatus.CANCELLED, ReservationStatus.CHECKED_OUT, ReservationStatus.NO_SHOW):
            raise BadRequestError(f"Reservations in status {reservation.status} cannot be paid")

        currency: str = (data.currency or settings.STRIPE_CURRENCY).lower()
        metadata: dict[str, str] = {
            "checkInDate": as_utc(reservation.check_in).isoformat(),
            "checkOutDate": as_utc(reservation.check_out).isoformat(),
            "guestCount": str(reservation.guests),
            "reservationId": str(reservation.id),
            "serviceId": str(reservation.service_id),
            "userId": str(reservation.user_id),
            "venueId": str(reservation.venue_id),
        }
        intent = await stripe_gateway.create_payment_intent(data.amount, currency, metadata)

        payment: Payment = await payment_repository.create(
            db,
            {
                "reservation_id": reservation.id,
                "user_id": user.id,
                "amount": Decimal(str(data.amount)),
                "currency": currency.upper(),
                "status": PaymentStatus.PENDING,
                "method": PaymentMethod.STRIPE,
                "stripe_payment_id": intent["id"],
                "description": f"Payment for reservation {reservation.confirmation_code}",
                "metadata_": metadata,
            },
        )
        logger.info("PaymentIntent %s created for reservation %s", intent["id"], reservation.confirmation_code)

        return CreateIntentResponse(
            client_secret=intent.get("client_secret"),
            payment_intent_id=intent["id"],
            payment_id=str(payment.id),
            amount=float(from_cents(intent["amount"])),
            currency=intent["currency"],
            status=intent["status"],
        )

    async def confirm_payment(self, db: AsyncSession, data: ConfirmPaymentRequest, user: User) -> PaymentResponse:
        """Sync a payment with its PaymentIntent after client-side confirmation.

        Raises:
            NotFoundError: No payment for the intent
            ForbiddenError: Payment belongs to someone else
        """
        payment: Payment | None = await payment_repository.get_by_stripe_id(db, data.payment_intent_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if payment.user_id != user.id and user.role.level > ROLE_LEVELS[RoleName.MANAGER]:
            raise ForbiddenError("You do not have access to this payment")

        intent = await stripe_gateway.retrieve_payment_intent(data.payment_intent_id)
        new_status: str = INTENT_STATUS_MAP.get(intent["status"], PaymentStatus.PENDING)
        await self.apply_status(db, payment, new_status)
        return payment_to_response(await self.get_payment_or_404(db, payment.id))

    # --- Status changes ---

    async def apply_status(
        self,
        db: AsyncSession,
        payment: Payment,
        new_status: str,
        failure_reason: str | None = None,
        send_emails: bool = False,
    ) -> bool:
        """Move ``payment`` to ``new_status`` and run the side effects.

        REFUNDED is terminal and COMPLETED only moves on through a refund,
        so late gateway events cannot reopen a settled payment.

        Returns:
            bool: False when the payment was already in ``new_status`` or
            the transition is not allowed
        """
        if payment.status == new_status:
            return False
        if payment.status == PaymentStatus.REFUNDED or (
            payment.status == PaymentStatus.COMPLETED and new_status != PaymentStatus.REFUNDED
        ):
            logger.warning("Ignoring payment %s transition %s -> %s", payment.id, payment.status, new_status)
            return False

        changes: dict[str, Any] = {"status": new_status}
        if new_status == PaymentStatus.COMPLETED:
            changes["paid_at"] = utcnow()
        elif new_status == PaymentStatus.FAILED:
            changes["failure_reason"] = failure_reason or "Payment failed"
        await payment_repository.update(db, payment, changes)
        logger.info("Payment %s -> %s", payment.id, new_status)
        await system_log_service.log_payment_event(
            db,
            f"payment_{new_status.lower()}",
            payment,
            success=new_status != PaymentStatus.FAILED,
            error_message=payment.failure_reason if new_status == PaymentStatus.FAILED else None,
        )

        reservation: Reservation = await self._load_reservation(db, payment)
        await reservation_service.set_status_from_payment(db, reservation, new_status)

        if new_status == PaymentStatus.COMPLETED:
            await self._safe_notify(db, payment, "completed")
            await receipt_service.create_for_payment(db, payment)
            if send_emails:
                await self._safe_email(email_service.send_payment_confirmation, payment, reservation)
                await self._safe_email(email_service.send_reservation_confirmation, reservation)
        elif new_status == PaymentStatus.FAILED:
            await self._safe_notify(db, payment, "failed")
            if send_emails:
                await self._safe_email(email_service.send_payment_failed, payment, reservation)
        return True

    async def record_refund(
        self,
        db: AsyncSession,
        payment: Payment,
        amount: Decimal,
        metadata_key: str,
        details: dict[str, Any],
    ) -> None:
        """Add ``amount`` to the refunded total.

        A refund reaching the full amount sets REFUNDED and cancels the
        reservation; a partial refund keeps the payment COMPLETED.
        """
        refunded: Decimal = Decimal(str(payment.refunded_amount or 0)) + amount
        metadata: dict[str, Any] = dict(payment.metadata_ or {})
        metadata[metadata_key] = details
        fully_refunded: bool = refunded >= Decimal(str(payment.amount))
        if not fully_refunded:
            metadata["partialRefundAmount"] = float(refunded)

        changes: dict[str, Any] = {"refunded_amount": refunded, "metadata_": metadata}
        if fully_refunded:
            changes.update({"status": PaymentStatus.REFUNDED, "refunded_at": utcnow()})
        await payment_repository.update(db, payment, changes)
        await system_log_service.log_payment_event(
            db,
            "payment_refunded" if fully_refunded else "payment_partially_refunded",
            payment,
            metadata={"refund_amount": amount, "refunded_total": refunded},
        )

        if fully_refunded:
            reservation: Reservation = await self._load_reservation(db, payment)
            if reservation.status not in (ReservationStatus.CANCELLED, ReservationStatus.CHECKED_OUT):
                await reservation_repository.update(
                    db, reservation, {"status": ReservationStatus.CANCELLED, "cancelled_at": utcnow()}
                )
            await self._safe_notify(db, payment, "refunded")

    async def _safe_notify(self, db: AsyncSession, payment: Payment, event: str) -> None:
        try:
            await notification_service.notify_payment(db, payment, event)
        except Exception:
            logger.exception("Failed to create %s notification for payment %s", event, payment.id)

    async def _safe_email(self, send: Any, *args: Any) -> None:
        try:
            await send(*args)
        except Exception:
            logger.exception("Failed to send %s", getattr(send, "__name__", "email"))

    # --- Webhooks ---

    async def handle_webhook(self, db: AsyncSession, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify and dispatch a Stripe event. Unknown events are acknowledged.

        Raises:
            BadRequestError: Missing or invalid signature
        """
        if not signature:
            raise BadRequestError("Missing stripe-signature header")
        event = stripe_gateway.construct_event(payload, signature)
        event_type: str = event["type"]
        obj = event["data"]["object"]
        logger.info("Stripe webhook %s (%s)", event_type, event.get("id"))

        handlers = {
            "payment_intent.succeeded": self._on_intent_succeeded,
            "payment_intent.payment_failed": self._on_intent_failed,
            "payment_intent.canceled": self._on_intent_canceled,
            "charge.refunded": self._on_charge_refunded,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info("Ignoring unhandled Stripe event %s", event_type)
            return {"received": True, "type": event_type, "handled": False}

        await handler(db, obj)
        return {"received": True, "type": event_type, "handled": True}

    async def _find_for_intent(self, db: AsyncSession, intent_id: str | None) -> Payment | None:
        payment: Payment | None = await payment_repository.get_by_stripe_id(db, intent_id) if intent_id else None
        if payment is None:
            logger.warning("No payment found for PaymentIntent %s", intent_id)
        return payment

    async def _on_intent_succeeded(self, db: AsyncSession, intent: Any) -> None:
        payment = await self._find_for_intent(db, intent["id"])
        if payment is not None:
            await self.apply_status(db, payment, PaymentStatus.COMPLETED, send_emails=True)

    async def _on_intent_failed(self, db: AsyncSession, intent: Any) -> None:
        payment = await self._find_for_intent(db, intent["id"])
        if payment is None:
            return
        error = intent.get("last_payment_error") or {}
        await self.apply_status(
            db, payment, PaymentStatus.FAILED, failure_reason=error.get("message"), send_emails=True
        )

    async def _on_intent_canceled(self, db: AsyncSession, intent: Any) -> None:
        payment = await self._find_for_intent(db, intent["id"])
        if payment is not None:
            await self.apply_status(db, payment, PaymentStatus.CANCELLED)

    async def _on_charge_refunded(self, db: AsyncSession, charge: Any) -> None:
        payment = await self._find_for_intent(db, charge.get("payment_intent"))
        if payment is None or payment.status == PaymentStatus.REFUNDED:
            return

        total_refunded: Decimal = from_cents(charge.get("amount_refunded") or 0)
        already: Decimal = Decimal(str(payment.refunded_amount or 0))
        if total_refunded <= already:
            return
        await self.record_refund(
            db, payment, total_refunded - already, "chargeRefund",
            {"chargeId": charge.get("id"), "amountRefunded": float(total_refunded), "processedAt": utcnow().isoformat()},
        )

    # --- Refunds ---

    async def refund_payment(self, db: AsyncSession, data: RefundRequest, caller: User) -> PaymentResponse:
        """Refund a completed Stripe payment, fully or partially.

        Raises:
            NotFoundError: Unknown payment
            BadRequestError: Not COMPLETED, no Stripe id, or amount above the refundable balance
            PaymentGatewayError: Stripe rejected the refund
        """
        payment: Payment = await self.get_payment_or_404(db, data.payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise BadRequestError("Only completed payments can be refunded")
        if not payment.stripe_payment_id:
            raise BadRequestError("Payment has no Stripe payment id")

        refundable: Decimal = Decimal(str(payment.amount)) - Decimal(str(payment.refunded_amount or 0))
        amount: Decimal = Decimal(str(data.amount)) if data.amount is not None else refundable
        if amount > refundable:
            raise BadRequestError(f"Refund amount exceeds the refundable balance ({refundable})")

        refund = await stripe_gateway.create_refund(
            payment.stripe_payment_id,
            amount,
            {"paymentId": str(payment.id), "refundedBy": str(caller.id), "reason": data.reason or ""},
        )
        await self.record_refund(
            db, payment, amount, "refund",
            {
                "refundId": refund["id"],
                "amount": float(amount),
                "reason": data.reason,
                "processedAt": utcnow().isoformat(),
                "processedBy": str(caller.id),
            },
        )
        logger.info("Refunded %s of payment %s (%s)", amount, payment.id, refund["id"])
        return payment_to_response(await self.get_payment_or_404(db, payment.id))

    # --- Reads ---

    async def list_user_payments(
        self,
        db: AsyncSession,
        user: User,
        page: int,
        limit: int,
        status: str | None = None,
        reservation_id: UUID | None = None,
    ) -> PaymentListData:
        """The caller's payment history with totals."""
        limit = min(limit, MAX_HISTORY_LIMIT)
        query = payment_repository.build_list_query(user_id=user.id, status=status, reservation_id=reservation_id)
        payments, total = await payment_repository.get_paginated(db, query, page, limit)
        totals: dict[str, Any] = await payment_repository.get_totals(db, user_id=user.id)
        return PaymentListData(
            items=[payment_to_response(p) for p in payments],
            pagination=build_meta(total, page, limit),
            summary=PaymentSummary(**totals),
        )

    async def get_payment(self, db: AsyncSession, payment_id: UUID, caller: User) -> PaymentResponse:
        """Owner or MANAGER+ for the venue."""
        payment: Payment = await self.get_payment_or_404(db, payment_id)
        if payment.user_id != caller.id:
            if caller.role.level > ROLE_LEVELS[RoleName.MANAGER]:
                raise ForbiddenError("You do not have access to this payment")
            venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
            if venue_ids is not None and payment.reservation.venue_id not in venue_ids:
                raise ForbiddenError("You do not have access to this payment")
        return payment_to_response(payment)


# Singleton instance
payment_service: PaymentService = PaymentService()
