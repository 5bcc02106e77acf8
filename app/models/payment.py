"""Payment and Receipt SQLAlchemy ORM model definitions.

Tables:
    - payments: Monetary transactions against a reservation, processed by Stripe
    - receipts: Generated proof-of-payment documents linked to a payment
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
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, enum_check


class PaymentStatus(enum.StrEnum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(enum.StrEnum):
    STRIPE = "STRIPE"
    CASH = "CASH"
    TRANSFER = "TRANSFER"


class ReceiptType(enum.StrEnum):
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"
    CREDIT = "CREDIT"


class ReceiptStatus(enum.StrEnum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Payment(Base):
    """Payment model.

    Status transitions mirror the gateway's reported events:
        PENDING → PROCESSING → COMPLETED | FAILED
        PENDING → CANCELLED
        COMPLETED → REFUNDED

    Attributes:
        id: Unique identifier
        reservation_id / user_id: Paid reservation and paying user
        amount: Charged amount in major currency units
        currency: ISO currency code
        status: PaymentStatus value
        method: PaymentMethod value
        stripe_payment_id: PaymentIntent id (unique when present)
        description: Free text
        failure_reason: Gateway error message for FAILED payments
        refunded_amount: Total refunded so far
        metadata_: Gateway metadata, partial refunds, manual verification info
        paid_at / refunded_at: Transition timestamps
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MXN")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.PENDING)
    method: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentMethod.STRIPE)
    stripe_payment_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refunded_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(enum_check("status", PaymentStatus), name="ck_payments_status"),
        CheckConstraint(enum_check("method", PaymentMethod), name="ck_payments_method"),
        CheckConstraint("amount > 0", name="ck_payments_amount"),
    )

    reservation = relationship("Reservation", back_populates="payments")
    user = relationship("User")
    receipts = relationship("Receipt", back_populates="payment")


class Receipt(Base):
    """Receipt model. Proof of payment, refund or credit.

    Attributes:
        id: Unique identifier
        receipt_number: RCP-YYYYMMDD-XXXXXX, unique
        payment_id / reservation_id / user_id: Linked records
        type: ReceiptType value
        status: ReceiptStatus value
        amount / subtotal / tax: Amount split using the configured tax rate
        currency: ISO currency code
        pdf_url: Stored document URL, when uploaded
        is_verified / verified_at / verified_by: Admin verification
        notes: Admin notes (rejection reason, etc.)
        metadata_: Free-form details
    """

    __tablename__ = "receipts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    receipt_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    payment_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    reservation_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("reservations.id", ondelete="SET NULL"), nullable=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default=ReceiptType.PAYMENT)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReceiptStatus.PENDING)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="MXN")
    pdf_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(enum_check("type", ReceiptType), name="ck_receipts_type"),
        CheckConstraint(enum_check("status", ReceiptStatus), name="ck_receipts_status"),
    )

    payment = relationship("Payment", back_populates="receipts")
    reservation = relationship("Reservation")
    user = relationship("User", foreign_keys=[user_id])
