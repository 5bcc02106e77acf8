"""Receipt Service. Receipt numbering, generation, verification and documents.

Receipt numbers follow RCP-YYYYMMDD-XXXXXX. Amounts are tax-inclusive; the
subtotal and tax split uses settings.TAX_RATE. Documents are rendered as
HTML for download and printing.
"""

import html
import logging
import secrets
import string
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.audit_log import AuditAction, AuditResource
from app.models.payment import Payment, Receipt, ReceiptStatus, ReceiptType
from app.models.user import ROLE_LEVELS, RoleName, User
from app.repositories.payment_repository import payment_repository
from app.repositories.receipt_repository import receipt_repository
from app.schemas.common import PaginatedData
from app.schemas.receipt import BulkVerifyItem, ReceiptCreate, ReceiptResponse
from app.services.audit_log_service import audit_log_service
from app.utils.dates import as_utc, utcnow
from app.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.utils.pagination import build_page

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET: str = string.ascii_uppercase + string.digits


def split_amount(amount: Decimal | float, tax_rate: float | None = None) -> tuple[Decimal, Decimal]:
    """Split a tax-inclusive amount into (subtotal, tax)."""
    rate = Decimal(str(settings.TAX_RATE if tax_rate is None else tax_rate))
    total = Decimal(str(amount))
    subtotal = (total / (1 + rate)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return subtotal, total - subtotal


def render_document_html(title: str, number: str, issued_at: datetime, parties: list[tuple[str, Any]],
                         lines: list[tuple[str, Any]], totals: list[tuple[str, str]]) -> str:
    """Printable HTML document shared by receipts and invoices."""
    def _rows(pairs: list[tuple[str, Any]]) -> str:
        return "".join(
            f"<tr><th>{html.escape(label)}</th><td>{html.escape(str(value))}</td></tr>"
            for label, value in pairs
            if value is not None
        )

    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)} {html.escape(number)}</title>"
        "<style>body{font-family:Arial,sans-serif;max-width:720px;margin:32px auto;color:#222}"
        "table{width:100%;border-collapse:collapse;margin:16px 0}"
        "th,td{text-align:left;padding:6px 8px;border-bottom:1px solid #eee}"
        ".totals td{text-align:right}</style></head><body>"
        f"<h1>{html.escape(settings.APP_NAME)}</h1>"
        f"<h2>{html.escape(title)} {html.escape(number)}</h2>"
        f"<p>{issued_at.strftime('%Y-%m-%d %H:%M')} UTC</p>"
        f"<table>{_rows(parties)}</table>"
        f"<table>{_rows(lines)}</table>"
        f"<table class=\"totals\">{_rows(totals)}</table>"
        "</body></html>"
    )


def _money(amount: Any, currency: str) -> str:
    return f"${float(amount):,.2f} {currency}"


class ReceiptService:
    """Service handling receipt business logic."""

    def _to_response(self, receipt: Receipt) -> ReceiptResponse:
        return ReceiptResponse(
            id=str(receipt.id),
            receipt_number=receipt.receipt_number,
            payment_id=str(receipt.payment_id),
            reservation_id=str(receipt.reservation_id) if receipt.reservation_id else None,
            user_id=str(receipt.user_id),
            user_email=receipt.user.email if receipt.user else None,
            type=receipt.type,
            status=receipt.status,
            amount=float(receipt.amount),
            subtotal=float(receipt.subtotal),
            tax=float(receipt.tax),
            currency=receipt.currency,
            pdf_url=receipt.pdf_url,
            is_verified=receipt.is_verified,
            verified_at=as_utc(receipt.verified_at),
            verified_by=str(receipt.verified_by) if receipt.verified_by else None,
            notes=receipt.notes,
            metadata=receipt.metadata_ or {},
            created_at=receipt.created_at,
            updated_at=receipt.updated_at,
        )

    async def _get_receipt(self, db: AsyncSession, receipt_id: UUID) -> Receipt:
        receipt: Receipt | None = await receipt_repository.get_detail(db, receipt_id)
        if receipt is None:
            raise NotFoundError("Receipt not found")
        return receipt

    async def generate_number(self, db: AsyncSession) -> str:
        """Unused RCP-YYYYMMDD-XXXXXX number for today."""
        prefix: str = f"RCP-{utcnow():%Y%m%d}-"
        while True:
            number: str = prefix + "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
            if not await receipt_repository.number_exists(db, number):
                return number

    async def create_for_payment(
        self,
        db: AsyncSession,
        payment: Payment,
        receipt_type: str = ReceiptType.PAYMENT,
        notes: str | None = None,
    ) -> Receipt:
        """Receipt for ``payment``; an existing receipt of the same type is returned as is.

        REFUND receipts carry the refunded amount.

        Raises:
            BadRequestError: REFUND receipt for a payment with nothing refunded
        """
        existing: Receipt | None = await receipt_repository.get_by_payment(db, payment.id, receipt_type)
        if existing is not None:
            return existing

        amount = Decimal(str(payment.amount))
        if receipt_type == ReceiptType.REFUND:
            amount = Decimal(str(payment.refunded_amount or 0))
            if amount <= 0:
                raise BadRequestError("Payment has no refunded amount")
        subtotal, tax = split_amount(amount)

        receipt: Receipt = await receipt_repository.create(
            db,
            {
                "receipt_number": await self.generate_number(db),
                "payment_id": payment.id,
                "reservation_id": payment.reservation_id,
                "user_id": payment.user_id,
                "type": receipt_type,
                "status": ReceiptStatus.PENDING,
                "amount": amount,
                "subtotal": subtotal,
                "tax": tax,
                "currency": settings.DEFAULT_CURRENCY,
                "notes": notes,
                "metadata_": {
                    "paymentMethod": payment.method,
                    "stripePaymentId": payment.stripe_payment_id,
                    "taxRate": settings.TAX_RATE,
                },
            },
        )
        logger.info("Receipt %s generated for payment %s", receipt.receipt_number, payment.id)
        return receipt

    async def create_receipt(self, db: AsyncSession, data: ReceiptCreate) -> ReceiptResponse:
        """Admin receipt creation from an existing payment.

        Raises:
            NotFoundError: Unknown payment
        """
        payment: Payment | None = await payment_repository.get_by_id(db, data.payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        receipt: Receipt = await self.create_for_payment(db, payment, data.type, data.notes)
        return self._to_response(await self._get_receipt(db, receipt.id))

    async def list_receipts(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        user_id: UUID | None = None,
        status: str | None = None,
        receipt_type: str | None = None,
        is_verified: bool | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> PaginatedData:
        query = receipt_repository.build_list_query(
            user_id, status, receipt_type, is_verified, None, as_utc(date_from), as_utc(date_to)
        )
        receipts, total = await receipt_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(r) for r in receipts], total, page, limit)

    async def get_receipt(self, db: AsyncSession, receipt_id: UUID, caller: User) -> ReceiptResponse:
        return self._to_response(await self._get_accessible(db, receipt_id, caller))

    async def _get_accessible(self, db: AsyncSession, receipt_id: UUID, caller: User) -> Receipt:
        receipt: Receipt = await self._get_receipt(db, receipt_id)
        if receipt.user_id != caller.id and caller.role.level > ROLE_LEVELS[RoleName.MANAGER]:
            raise ForbiddenError("You do not have access to this receipt")
        return receipt

    def render_html(self, receipt: Receipt) -> str:
        reservation = receipt.reservation
        return render_document_html(
            title="Recibo" if receipt.type == ReceiptType.PAYMENT else f"Recibo ({receipt.type})",
            number=receipt.receipt_number,
            issued_at=as_utc(receipt.created_at),
            parties=[
                ("Cliente", receipt.user.full_name if receipt.user else None),
                ("Email", receipt.user.email if receipt.user else None),
                ("Estado", receipt.status),
            ],
            lines=[
                ("Reserva", reservation.confirmation_code if reservation else None),
                ("Lugar", reservation.venue.name if reservation and reservation.venue else None),
                ("Servicio", reservation.service.name if reservation and reservation.service else None),
                ("Pago", receipt.payment.stripe_payment_id or str(receipt.payment_id) if receipt.payment else None),
            ],
            totals=[
                ("Subtotal", _money(receipt.subtotal, receipt.currency)),
                (f"IVA ({settings.TAX_RATE:.0%})", _money(receipt.tax, receipt.currency)),
                ("Total", _money(receipt.amount, receipt.currency)),
            ],
        )

    async def download(self, db: AsyncSession, receipt_id: UUID, caller: User) -> tuple[str, str]:
        """(filename, html) for the receipt document."""
        receipt: Receipt = await self._get_accessible(db, receipt_id, caller)
        return f"{receipt.receipt_number}.html", self.render_html(receipt)

    async def get_stats(self, db: AsyncSession) -> dict[str, Any]:
        stats: dict[str, Any] = await receipt_repository.get_stats(db)
        return {
            "total": stats["total"],
            "verified": stats["verified"],
            "pending": stats["by_status"].get(ReceiptStatus.PENDING, 0),
            "rejected": stats["by_status"].get(ReceiptStatus.REJECTED, 0),
            "byStatus": stats["by_status"],
            "byType": stats["by_type"],
            "totalAmount": stats["total_amount"],
        }

    async def verify_receipt(
        self,
        db: AsyncSession,
        receipt_id: UUID,
        status: str,
        notes: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> ReceiptResponse:
        """Mark a receipt VERIFIED or REJECTED and audit the decision.

        Raises:
            BadRequestError: Status other than VERIFIED/REJECTED
            NotFoundError: Unknown receipt
        """
        if status not in (ReceiptStatus.VERIFIED, ReceiptStatus.REJECTED):
            raise BadRequestError("Status must be VERIFIED or REJECTED")

        receipt: Receipt = await self._get_receipt(db, receipt_id)
        old_values: dict[str, Any] = {"status": receipt.status, "isVerified": receipt.is_verified}
        verified: bool = status == ReceiptStatus.VERIFIED

        await receipt_repository.update(
            db,
            receipt,
            {
                "status": status,
                "is_verified": verified,
                "verified_at": utcnow(),
                "verified_by": caller.id,
                "notes": notes if notes is not None else receipt.notes,
            },
        )
        await audit_log_service.record(
            db, caller, AuditAction.RECEIPT_VERIFICATION, AuditResource.RECEIPT, receipt.id,
            old_values=old_values,
            new_values={"status": status, "isVerified": verified},
            metadata={"receiptNumber": receipt.receipt_number, "notes": notes},
            client_info=client_info,
        )
        return self._to_response(await self._get_receipt(db, receipt_id))

    async def bulk_verify(
        self,
        db: AsyncSession,
        receipt_ids: list[str],
        notes: str | None,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> list[BulkVerifyItem]:
        """Verify receipts one by one, collecting per-item outcomes."""
        results: list[BulkVerifyItem] = []
        for raw_id in receipt_ids:
            try:
                await self.verify_receipt(db, UUID(raw_id), ReceiptStatus.VERIFIED, notes, caller, client_info)
                results.append(BulkVerifyItem(id=raw_id, success=True))
            except ValueError:
                results.append(BulkVerifyItem(id=raw_id, success=False, error="Invalid receipt id"))
            except (NotFoundError, BadRequestError) as exc:
                results.append(BulkVerifyItem(id=raw_id, success=False, error=exc.detail))
        return results

    async def regenerate(
        self,
        db: AsyncSession,
        receipt_id: UUID,
        reason: str,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> ReceiptResponse:
        """Issue a new number for a receipt and reset its verification."""
        receipt: Receipt = await self._get_receipt(db, receipt_id)
        old_number: str = receipt.receipt_number
        new_number: str = await self.generate_number(db)

        metadata: dict[str, Any] = dict(receipt.metadata_ or {})
        metadata.update({
            "previousNumber": old_number,
            "regeneratedAt": utcnow().isoformat(),
            "regenerationReason": reason,
        })
        await receipt_repository.update(
            db,
            receipt,
            {
                "receipt_number": new_number,
                "status": ReceiptStatus.PENDING,
                "is_verified": False,
                "verified_at": None,
                "verified_by": None,
                "pdf_url": None,
                "metadata_": metadata,
            },
        )
        await audit_log_service.record(
            db, caller, AuditAction.RECEIPT_REGENERATION, AuditResource.RECEIPT, receipt.id,
            old_values={"receiptNumber": old_number},
            new_values={"receiptNumber": new_number},
            metadata={"reason": reason},
            client_info=client_info,
        )
        return self._to_response(await self._get_receipt(db, receipt_id))


# Singleton instance
receipt_service: ReceiptService = ReceiptService()
