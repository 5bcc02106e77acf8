"""Bulk Payment Service. Sequential multi-payment admin operations.

Each id is processed on its own; failures are collected per item and never
abort the rest of the batch. Ids already in the requested end state are
counted as skipped.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditResource
from app.models.payment import Payment, PaymentStatus
from app.models.user import User
from app.repositories.payment_repository import payment_repository
from app.schemas.payment import (
    BulkFailure,
    BulkOperationResult,
    BulkPreview,
    BulkRefundRequest,
    BulkStatusRequest,
    BulkSummary,
    BulkValidateRequest,
    BulkValidationResult,
)
from app.services.admin_payment_service import admin_payment_service, refundable_balance
from app.services.audit_log_service import audit_log_service
from app.utils.exceptions import BadRequestError, PaymentGatewayError

logger = logging.getLogger(__name__)

# Allowed admin status changes; bypass_validation skips this table.
# REFUNDED is reached only through the refund operation.
PAYMENT_TRANSITIONS: dict[str, frozenset[str]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED,
    }),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}),
    PaymentStatus.COMPLETED: frozenset(),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

# Fixed target status of the shortcut operations
OPERATION_TARGETS: dict[str, str] = {
    "cancel": PaymentStatus.CANCELLED,
    "mark-failed": PaymentStatus.FAILED,
    "refund": PaymentStatus.REFUNDED,
}

SKIP: str = "SKIP"


class _ItemError(Exception):
    """Per-item failure carrying a machine-readable code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def check_item(
    payment: Payment | None,
    operation: str,
    new_status: str | None,
    bypass_validation: bool = False,
    refund_amount: float | None = None,
) -> str | None:
    """Validate one payment for a bulk operation.

    Returns:
        str | None: SKIP when the payment already is in the end state, else None

    Raises:
        _ItemError: The operation cannot be applied to this payment
    """
    if payment is None:
        raise _ItemError("NOT_FOUND", "Payment not found")

    target: str | None = new_status if operation == "status" else OPERATION_TARGETS[operation]
    if target is None:
        raise _ItemError("MISSING_STATUS", "newStatus is required")
    if payment.status == target:
        return SKIP

    if operation == "refund":
        if payment.status != PaymentStatus.COMPLETED:
            raise _ItemError("INVALID_STATUS", f"Cannot refund a {payment.status} payment")
        refundable: Decimal = refundable_balance(payment)
        if refund_amount is not None and Decimal(str(refund_amount)) > refundable:
            raise _ItemError("AMOUNT_EXCEEDS_BALANCE", f"Refund exceeds the refundable balance ({refundable})")
        return None

    if not bypass_validation and target not in PAYMENT_TRANSITIONS[payment.status]:
        raise _ItemError("INVALID_TRANSITION", f"Cannot change status from {payment.status} to {target}")
    return None


def _parse_ids(raw_ids: list[str]) -> tuple[list[UUID], dict[str, str]]:
    """(valid uuids, {raw id: error}) with duplicates dropped."""
    parsed: list[UUID] = []
    invalid: dict[str, str] = {}
    for raw_id in dict.fromkeys(raw_ids):
        try:
            parsed.append(UUID(raw_id))
        except ValueError:
            invalid[raw_id] = "Invalid payment id"
    return parsed, invalid


class BulkPaymentService:
    """Service running admin operations over many payments."""

    async def _run(
        self,
        db: AsyncSession,
        raw_ids: list[str],
        operation: str,
        apply: Any,
        caller: User,
        client_info: dict[str, str | None] | None,
        new_status: str | None = None,
        bypass_validation: bool = False,
        refund_amount: float | None = None,
        notes: str | None = None,
    ) -> BulkOperationResult:
        ids, invalid = _parse_ids(raw_ids)
        payments: dict[UUID, Payment] = await payment_repository.get_details(db, ids)

        successful: list[str] = []
        failed: list[BulkFailure] = [BulkFailure(id=raw, error=msg, code="INVALID_ID") for raw, msg in invalid.items()]
        skipped: int = 0

        for payment_id in ids:
            payment: Payment | None = payments.get(payment_id)
            try:
                if check_item(payment, operation, new_status, bypass_validation, refund_amount) == SKIP:
                    skipped += 1
                    continue
                await apply(payment)
                successful.append(str(payment_id))
            except _ItemError as exc:
                failed.append(BulkFailure(id=str(payment_id), error=exc.message, code=exc.code))
            except (BadRequestError, PaymentGatewayError) as exc:
                failed.append(BulkFailure(id=str(payment_id), error=exc.detail, code=exc.code))

        result = BulkOperationResult(
            successful=successful,
            failed=failed,
            summary=BulkSummary(
                total=len(ids) + len(invalid),
                successful=len(successful),
                failed=len(failed),
                skipped=skipped,
            ),
        )
        logger.info(
            "Bulk %s by %s: %d ok, %d failed, %d skipped",
            operation, caller.email, len(successful), len(failed), skipped,
        )
        await audit_log_service.record(
            db, caller, AuditAction.PAYMENT_BULK_OPERATION, AuditResource.PAYMENT, "bulk",
            new_values={"operation": operation, "newStatus": new_status, "paymentIds": successful},
            metadata={
                "notes": notes,
                "bypassValidation": bypass_validation,
                "summary": result.summary.model_dump(by_alias=True),
            },
            client_info=client_info,
        )
        return result

    async def bulk_update_status(
        self,
        db: AsyncSession,
        data: BulkStatusRequest,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> BulkOperationResult:
        async def apply(payment: Payment) -> None:
            await admin_payment_service.update_status(
                db, payment, data.new_status, data.notes, "bulk", caller, client_info, audit=False
            )

        return await self._run(
            db, data.payment_ids, "status", apply, caller, client_info,
            new_status=data.new_status, bypass_validation=data.bypass_validation, notes=data.notes,
        )

    async def bulk_refund(
        self,
        db: AsyncSession,
        data: BulkRefundRequest,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> BulkOperationResult:
        async def apply(payment: Payment) -> None:
            await admin_payment_service.refund(db, payment, data.refund_amount, data.refund_reason, caller, client_info)

        return await self._run(
            db, data.payment_ids, "refund", apply, caller, client_info,
            refund_amount=data.refund_amount, notes=data.notes,
        )

    async def bulk_cancel(
        self,
        db: AsyncSession,
        payment_ids: list[str],
        notes: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> BulkOperationResult:
        async def apply(payment: Payment) -> None:
            await admin_payment_service.update_status(
                db, payment, PaymentStatus.CANCELLED, notes, "bulk", caller, client_info, audit=False
            )

        return await self._run(db, payment_ids, "cancel", apply, caller, client_info, notes=notes)

    async def bulk_mark_failed(
        self,
        db: AsyncSession,
        payment_ids: list[str],
        notes: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> BulkOperationResult:
        async def apply(payment: Payment) -> None:
            await admin_payment_service.update_status(
                db, payment, PaymentStatus.FAILED, notes, "bulk", caller, client_info, audit=False
            )
            await payment_repository.update(db, payment, {"failure_reason": notes or "Marked as failed by admin"})

        return await self._run(db, payment_ids, "mark-failed", apply, caller, client_info, notes=notes)

    async def validate(self, db: AsyncSession, data: BulkValidateRequest) -> BulkValidationResult:
        """Dry-run check of a bulk operation; nothing is changed."""
        ids, invalid = _parse_ids(data.payment_ids)
        payments: dict[UUID, Payment] = await payment_repository.get_details(db, ids)

        errors: list[str] = [f"{raw}: {msg}" for raw, msg in invalid.items()]
        for payment_id in ids:
            try:
                check_item(payments.get(payment_id), data.operation, data.new_status)
            except _ItemError as exc:
                errors.append(f"{payment_id}: {exc.message}")
        return BulkValidationResult(valid=not errors, errors=errors)

    async def preview(self, db: AsyncSession, data: BulkValidateRequest) -> BulkPreview:
        """Amount, reservations and status/method breakdown a bulk operation would touch."""
        ids, invalid = _parse_ids(data.payment_ids)
        payments: dict[UUID, Payment] = await payment_repository.get_details(db, ids)

        warnings: list[str] = [f"{raw}: {msg}" for raw, msg in invalid.items()]
        by_status: dict[str, int] = {}
        by_method: dict[str, int] = {}
        total_amount = Decimal("0")
        reservations: set[UUID] = set()

        for payment_id in ids:
            payment: Payment | None = payments.get(payment_id)
            try:
                if check_item(payment, data.operation, data.new_status) == SKIP:
                    warnings.append(f"{payment_id}: already {payment.status}, will be skipped")
            except _ItemError as exc:
                warnings.append(f"{payment_id}: {exc.message}")
            if payment is None:
                continue
            by_status[payment.status] = by_status.get(payment.status, 0) + 1
            by_method[payment.method] = by_method.get(payment.method, 0) + 1
            total_amount += Decimal(str(payment.amount))
            reservations.add(payment.reservation_id)

        return BulkPreview(
            total_amount=float(total_amount),
            affected_reservations=len(reservations),
            summary={"byStatus": by_status, "byMethod": by_method, "count": len(payments)},
            warnings=warnings,
        )


# Singleton instance
bulk_payment_service: BulkPaymentService = BulkPaymentService()
