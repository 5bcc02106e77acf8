"""Reservation Router. Booking lifecycle endpoints.

Permission Matrix:
    - Create / list own / read own / edit own while PENDING / cancel own:
      any authenticated user
    - List and read venue reservations, change status: MANAGER+ in scope
    - Cancel someone else's reservation: ADMIN+ in scope
    - Send check-in / check-out reminder emails: MANAGER+ in scope
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, page_params
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.reservation import (
    ReservationCancelRequest,
    ReservationCreate,
    ReservationReminderRequest,
    ReservationUpdate,
)
from app.services.reservation_service import reservation_service

router: APIRouter = APIRouter()


@router.post("", status_code=201)
async def create_reservation(
    data: ReservationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await reservation_service.create_reservation(db, data, current_user)
    await db.commit()
    return success_response(result, "Reservation created")


@router.get("")
async def list_reservations(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    status: str | None = None,
    user_id: Annotated[UUID | None, Query(alias="userId")] = None,
    service_id: Annotated[UUID | None, Query(alias="serviceId")] = None,
    venue_id: Annotated[UUID | None, Query(alias="venueId")] = None,
    date_from: Annotated[datetime | None, Query(alias="dateFrom")] = None,
    date_to: Annotated[datetime | None, Query(alias="dateTo")] = None,
    search: str | None = None,
) -> dict:
    page, limit = paging
    result = await reservation_service.list_reservations(
        db, current_user, page, limit,
        status=status.upper() if status else None,
        user_id=user_id,
        service_id=service_id,
        venue_id=venue_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
    )
    return success_response(result)


@router.get("/{reservation_id}")
async def get_reservation(
    reservation_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return success_response(await reservation_service.get_reservation(db, reservation_id, current_user))


@router.put("/{reservation_id}")
async def update_reservation(
    reservation_id: UUID,
    data: ReservationUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await reservation_service.update_reservation(db, reservation_id, data, current_user)
    await db.commit()
    return success_response(result, "Reservation updated")


@router.patch("/{reservation_id}/cancel")
async def cancel_reservation(
    reservation_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    data: ReservationCancelRequest | None = None,
) -> dict:
    """Cancel and compute the refund owed; repeating the call is harmless."""
    reason: str | None = data.reason if data else None
    result = await reservation_service.cancel_reservation(db, reservation_id, current_user, reason)
    await db.commit()
    return success_response(result, "Reservation cancelled")


@router.post("/{reservation_id}/reminders")
async def send_reminder(
    reservation_id: UUID,
    data: ReservationReminderRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    await reservation_service.send_reminder(db, reservation_id, data.type, current_user)
    return success_response(None, "Reminder sent")
