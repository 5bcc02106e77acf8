"""Receipt Repository. Receipt lookups, admin listing and statistics."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.payment import Receipt
from app.models.reservation import Reservation
from app.repositories.base import BaseRepository


class ReceiptRepository(BaseRepository[Receipt]):
    """Repository handling database queries for the receipts table."""

    def __init__(self) -> None:
        super().__init__(Receipt)

    @staticmethod
    def _load_options() -> list:
        return [
            selectinload(Receipt.payment),
            selectinload(Receipt.reservation).selectinload(Reservation.service),
            selectinload(Receipt.reservation).selectinload(Reservation.venue),
            selectinload(Receipt.user),
        ]

    async def get_detail(self, db: AsyncSession, receipt_id: UUID) -> Receipt | None:
        """Receipt with payment, reservation (service, venue) and user loaded."""
        return await self.get_by_id(db, receipt_id, options=self._load_options())

    async def get_by_payment(self, db: AsyncSession, payment_id: UUID, receipt_type: str | None = None) -> Receipt | None:
        """Oldest receipt of a payment, optionally of one type."""
        query: Select = select(Receipt).where(Receipt.payment_id == payment_id)
        if receipt_type:
            query = query.where(Receipt.type == receipt_type)
        result = await db.execute(query.order_by(Receipt.created_at).limit(1))
        return result.scalar_one_or_none()

    async def number_exists(self, db: AsyncSession, receipt_number: str) -> bool:
        return await self.exists(db, {"receipt_number": receipt_number})

    def build_list_query(
        self,
        user_id: UUID | None = None,
        status: str | None = None,
        receipt_type: str | None = None,
        is_verified: bool | None = None,
        payment_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> Select:
        """Receipt list query, newest first."""
        query: Select = select(Receipt).options(*self._load_options())

        if user_id is not None:
            query = query.where(Receipt.user_id == user_id)
        if status:
            query = query.where(Receipt.status == status)
        if receipt_type:
            query = query.where(Receipt.type == receipt_type)
        if is_verified is not None:
            query = query.where(Receipt.is_verified == is_verified)
        if payment_id is not None:
            query = query.where(Receipt.payment_id == payment_id)
        if date_from is not None:
            query = query.where(Receipt.created_at >= date_from)
        if date_to is not None:
            query = query.where(Receipt.created_at <= date_to)

        return query.order_by(Receipt.created_at.desc())

    async def get_stats(self, db: AsyncSession) -> dict[str, Any]:
        """Totals by status and type, verified count and summed amount."""
        by_status: dict[str, int] = {
            status: int(count)
            for status, count in (await db.execute(
                select(Receipt.status, func.count(Receipt.id)).group_by(Receipt.status)
            )).all()
        }
        by_type: dict[str, int] = {
            receipt_type: int(count)
            for receipt_type, count in (await db.execute(
                select(Receipt.type, func.count(Receipt.id)).group_by(Receipt.type)
            )).all()
        }
        verified: int = (await db.execute(
            select(func.count(Receipt.id)).where(Receipt.is_verified.is_(True))
        )).scalar() or 0
        total_amount = (await db.execute(select(func.coalesce(func.sum(Receipt.amount), 0)))).scalar() or 0

        return {
            "total": sum(by_status.values()),
            "verified": int(verified),
            "by_status": by_status,
            "by_type": by_type,
            "total_amount": float(total_amount),
        }


# Singleton instance
receipt_repository: ReceiptRepository = ReceiptRepository()
