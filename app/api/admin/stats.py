"""Admin Stats and Reports Router. Dashboard figures, range reports and Excel export.

Permission: ADMIN+ (ADMIN sees the venues they own, SUPER_ADMIN everything)
"""

from datetime import datetime
from io import BytesIO
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.services.report_service import report_service

stats_router: APIRouter = APIRouter()
reports_router: APIRouter = APIRouter()

DateFrom = Annotated[datetime | None, Query(alias="dateFrom")]
DateTo = Annotated[datetime | None, Query(alias="dateTo")]


@stats_router.get("")
async def get_dashboard_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
) -> dict:
    return success_response(await report_service.get_dashboard(db, current_user))


@reports_router.get("/revenue")
async def get_revenue_report(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    date_from: DateFrom = None,
    date_to: DateTo = None,
) -> dict:
    """Completed payments in the range (default: the last 30 days)."""
    return success_response(await report_service.get_revenue_report(db, current_user, date_from, date_to))


@reports_router.get("/reservations")
async def get_reservations_report(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    date_from: DateFrom = None,
    date_to: DateTo = None,
) -> dict:
    return success_response(await report_service.get_reservations_report(db, current_user, date_from, date_to))


@reports_router.get("/users")
async def get_users_report(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    date_from: DateFrom = None,
    date_to: DateTo = None,
) -> dict:
    return success_response(await report_service.get_users_report(db, date_from, date_to))


@reports_router.get("/export")
async def export_report(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    date_from: DateFrom = None,
    date_to: DateTo = None,
) -> StreamingResponse:
    """Summary, payments and reservations for the range as an .xlsx download."""
    content: bytes = await report_service.export_excel(db, current_user, date_from, date_to)
    return StreamingResponse(
        BytesIO(content),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=reservapp_report.xlsx"},
    )
