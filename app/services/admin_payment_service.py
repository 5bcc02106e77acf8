"""Admin Payment Service. Back-office payment listing, actions and invoices.

Every action is written to the admin audit log together with the customer
and reservation context of the payment.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.audit_log import AuditAction, AuditResource
from app.models.payment import Payment, PaymentStatus
from app.models.user import User
from app.repositories.payment_repository import payment_repository
from app.schemas.payment import PaymentActionRequest, PaymentListData, PaymentResponse, PaymentSummary
from app.services.audit_log_service import audit_log_service
from app.services.payment_service import payment_service, payment_to_response
from app.services.receipt_service import render_document_html, split_amount
from app.services.stripe_gateway import stripe_gateway
from app.utils.dates import as_utc, utcnow
from app.utils.exceptions import BadRequestError
from app.utils.pagination import build_meta

logger = logging.getLogger(__name__)


def audit_context(payment: Payment) -> dict[str, Any]:
    """Customer and booking details stored with payment audit entries."""
    reservation = payment.reservation
    return {
        "customerEmail": payment.user.email if payment.user else None,
        "customerName": payment.user.full_name if payment.user else None,
        "paymentAmount": float(payment.amount),
        "reservationId": str(payment.reservation_id),
        "serviceName": reservation.service.name if reservation and reservation.service else None,
        "venueName": reservation.venue.name if reservation and reservation.venue else None,
    }


def refundable_balance(payment: Payment) -> Decimal:
    return Decimal(str(payment.amount)) - Decimal(str(payment.refunded_amount or 0))


class AdminPaymentService:
    """Service handling admin payment management."""

    async def list_payments(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        status: str | None = None,
        method: str | None = None,
        user_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        search: str | None = None,
    ) -> PaymentListData:
        """Every payment matching the filters, with totals over the same filters."""
        filters: dict[str, Any] = {
            "user_id": user_id,
            "status": status,
            "method": method,
            "date_from": as_utc(date_from),
            "date_to": as_utc(date_to),
            "search": search,
        }
        query = payment_repository.build_list_query(**filters)
        payments, total = await payment_repository.get_paginated(db, query, page, limit)
        totals: dict[str, Any] = await payment_repository.get_totals(db, **filters)
        return PaymentListData(
            items=[payment_to_response(p) for p in payments],
            pagination=build_meta(total, page, limit),
            summary=PaymentSummary(**totals),
        )

    async def perform_action(
        self,
        db: AsyncSession,
        data: PaymentActionRequest,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> PaymentResponse:
        """Run one admin action on a payment.

        Raises:
            NotFoundError: Unknown payment
            BadRequestError: Action not valid for the payment's state
            PaymentGatewayError: Stripe rejected a refund
        """
        payment: Payment = await payment_service.get_payment_or_404(db, data.payment_id)
        if data.action == "refund":
            await self.refund(db, payment, data.amount, data.reason, caller, client_info)
        elif data.action == "updateStatus":
            if data.status is None:
                raise BadRequestError("status is required for updateStatus")
            await self.update_status(db, payment, data.status, data.reason, data.verification_method, caller, client_info)
        else:
            await self.manual_verification(db, payment, data.notes, caller, client_info)
        return payment_to_response(await payment_service.get_payment_or_404(db, payment.id))

    async def refund(
        self,
        db: AsyncSession,
        payment: Payment,
        amount: float | None,
        reason: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> Decimal:
        """Refund through Stripe when the payment has an intent, otherwise record a manual refund.

        Returns:
            Decimal: Amount refunded
        """
        if payment.status != PaymentStatus.COMPLETED:
            raise BadRequestError("Only completed payments can be refunded")
        refundable: Decimal = refundable_balance(payment)
        refund_amount: Decimal = Decimal(str(amount)) if amount is not None else refundable
        if refund_amount > refundable or refund_amount <= 0:
            raise BadRequestError(f"Refund amount must be between 0 and {refundable}")

        old_values: dict[str, Any] = {"status": payment.status, "refundedAmount": float(payment.refunded_amount or 0)}
        details: dict[str, Any] = {
            "amount": float(refund_amount),
            "reason": reason,
            "processedAt": utcnow().isoformat(),
            "processedBy": str(caller.id),
        }
        if payment.stripe_payment_id:
            refund = await stripe_gateway.create_refund(
                payment.stripe_payment_id,
                refund_amount,
                {"adminUserId": str(caller.id), "paymentId": str(payment.id), "reason": reason or ""},
            )
            details["refundId"] = refund["id"]
            await payment_service.record_refund(db, payment, refund_amount, "refund", details)
        else:
            await payment_service.record_refund(db, payment, refund_amount, "manualRefund", details)

        await audit_log_service.record(
            db, caller, AuditAction.PAYMENT_REFUND, AuditResource.PAYMENT, payment.id,
            old_values=old_values,
            new_values={"status": payment.status, "refundedAmount": float(payment.refunded_amount)},
            metadata={**audit_context(payment), "refundAmount": float(refund_amount), "reason": reason,
                      "manual": not payment.stripe_payment_id},
            client_info=client_info,
        )
        return refund_amount

    async def update_status(
        self,
        db: AsyncSession,
        payment: Payment,
        new_status: str,
        reason: str | None,
        verification_method: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
        audit: bool = True,
    ) -> None:
        """Override a payment's status without gateway side effects.

        Raises:
            BadRequestError: ``new_status`` is REFUNDED; refunds must go
                through :meth:`refund` so the gateway returns the money
        """
        if new_status == PaymentStatus.REFUNDED:
            raise BadRequestError("Use the refund action to refund a payment")
        previous: str = payment.status
        metadata: dict[str, Any] = dict(payment.metadata_ or {})
        metadata["statusUpdate"] = {
            "newStatus": new_status,
            "previousStatus": previous,
            "processedAt": utcnow().isoformat(),
            "processedBy": str(caller.id),
            "reason": reason,
            "verificationMethod": verification_method or "manual",
        }
        changes: dict[str, Any] = {"status": new_status, "metadata_": metadata}
        if new_status == PaymentStatus.COMPLETED and payment.paid_at is None:
            changes["paid_at"] = utcnow()
        await payment_repository.update(db, payment, changes)

        if audit:
            await audit_log_service.record(
                db, caller, AuditAction.PAYMENT_STATUS_UPDATE, AuditResource.PAYMENT, payment.id,
                old_values={"status": previous},
                new_values={"status": new_status},
                metadata={**audit_context(payment), "reason": reason},
                client_info=client_info,
            )

    async def manual_verification(
        self,
        db: AsyncSession,
        payment: Payment,
        notes: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> None:
        """Mark a payment COMPLETED after an admin checked it by hand."""
        previous: str = payment.status
        if previous in (PaymentStatus.REFUNDED, PaymentStatus.CANCELLED):
            raise BadRequestError(f"Payments in status {previous} cannot be verified")

        await payment_service.apply_status(db, payment, PaymentStatus.COMPLETED)
        metadata: dict[str, Any] = dict(payment.metadata_ or {})
        metadata["manualVerification"] = {
            "method": "admin_review",
            "notes": notes,
            "verifiedAt": utcnow().isoformat(),
            "verifiedBy": str(caller.id),
        }
        await payment_repository.update(db, payment, {"metadata_": metadata})

        await audit_log_service.record(
            db, caller, AuditAction.PAYMENT_MANUAL_VERIFICATION, AuditResource.PAYMENT, payment.id,
            old_values={"status": previous},
            new_values={"status": PaymentStatus.COMPLETED, "verified": True},
            metadata={**audit_context(payment), "notes": notes},
            client_info=client_info,
        )

    async def render_invoice(self, db: AsyncSession, payment_id: UUID) -> tuple[str, str]:
        """(filename, html) invoice for a payment."""
        payment: Payment = await payment_service.get_payment_or_404(db, payment_id)
        reservation = payment.reservation
        subtotal, tax = split_amount(payment.amount)
        number: str = f"INV-{as_utc(payment.created_at):%Y%m%d}-{str(payment.id)[:8].upper()}"

        def money(value: Any) -> str:
            return f"${float(value):,.2f} {payment.currency}"

        document: str = render_document_html(
            title="Factura",
            number=number,
            issued_at=as_utc(payment.paid_at or payment.created_at),
            parties=[
                ("Cliente", payment.user.full_name if payment.user else None),
                ("Email", payment.user.email if payment.user else None),
                ("Estado", payment.status),
                ("Método", payment.method),
            ],
            lines=[
                ("Reserva", reservation.confirmation_code if reservation else None),
                ("Lugar", reservation.venue.name if reservation and reservation.venue else None),
                ("Servicio", reservation.service.name if reservation and reservation.service else None),
                ("Huéspedes", reservation.guests if reservation else None),
                ("Pago", payment.stripe_payment_id or str(payment.id)),
            ],
            totals=[
                ("Subtotal", money(subtotal)),
                (f"IVA ({settings.TAX_RATE:.0%})", money(tax)),
                ("Reembolsado", money(payment.refunded_amount) if payment.refunded_amount else None),
                ("Total", money(payment.amount)),
            ],
        )
        return f"{number}.html", document


# Singleton instance
admin_payment_service: AdminPaymentService = AdminPaymentService()
