"""Report Service. Admin dashboard aggregates, range reports and Excel export.

ADMIN callers only see figures for the venues they own; SUPER_ADMIN sees
the whole platform. Monthly buckets are keyed "YYYY-MM" in UTC.
"""

from collections import Counter
from datetime import datetime, timedelta
from io import BytesIO
from uuid import UUID

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payment import Payment
from app.models.reservation import Reservation, ReservationStatus
from app.models.user import User
from app.repositories.payment_repository import payment_repository
from app.repositories.reservation_repository import reservation_repository
from app.repositories.user_repository import user_repository
from app.repositories.venue_repository import venue_repository
from app.schemas.admin import (
    CategoryRevenue,
    ChartPoint,
    DashboardStats,
    PopularVenue,
    RecentReservation,
    ReservationsReport,
    RevenueReport,
    UsersReport,
)
from app.services.venue_service import scoped_venue_ids
from app.utils.dates import as_utc, utcnow
from app.utils.exceptions import BadRequestError

CHART_MONTHS: int = 6
DASHBOARD_LIST_SIZE: int = 5
DEFAULT_REPORT_DAYS: int = 30


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_months(value: datetime, months: int) -> datetime:
    """Move a month-start datetime by ``months`` (negative goes back)."""
    years, month_index = divmod(value.month - 1 + months, 12)
    return value.replace(year=value.year + years, month=month_index + 1)


def month_keys(since: datetime, until: datetime) -> list[str]:
    """Every "YYYY-MM" key touched by ``[since, until)``, oldest first."""
    keys: list[str] = []
    cursor: datetime = month_start(since)
    while cursor < until:
        keys.append(f"{cursor:%Y-%m}")
        cursor = shift_months(cursor, 1)
    return keys


def bucket_by_month(keys: list[str], entries: list[tuple[datetime, float]]) -> list[ChartPoint]:
    """Sum ``(timestamp, value)`` entries into the given month buckets."""
    totals: dict[str, float] = dict.fromkeys(keys, 0.0)
    for stamp, value in entries:
        key: str = f"{as_utc(stamp):%Y-%m}"
        if key in totals:
            totals[key] += value
    return [ChartPoint(month=key, value=round(total, 2)) for key, total in totals.items()]


def _paid_at(payment: Payment) -> datetime:
    return as_utc(payment.paid_at or payment.created_at)


def _stamp(value: datetime | None) -> str:
    return f"{as_utc(value):%Y-%m-%d %H:%M}" if value else ""


class ReportService:
    """Service producing admin dashboard and report figures."""

    def _resolve_range(self, date_from: datetime | None, date_to: datetime | None) -> tuple[datetime, datetime]:
        until: datetime = as_utc(date_to) or utcnow()
        since: datetime = as_utc(date_from) or until - timedelta(days=DEFAULT_REPORT_DAYS)
        if since >= until:
            raise BadRequestError("dateFrom must be earlier than dateTo")
        return since, until

    async def get_dashboard(self, db: AsyncSession, caller: User) -> DashboardStats:
        """Headline numbers, latest activity and six-month charts."""
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        now: datetime = utcnow()
        current_month: datetime = month_start(now)
        chart_start: datetime = shift_months(current_month, -(CHART_MONTHS - 1))
        chart_end: datetime = shift_months(current_month, 1)
        keys: list[str] = month_keys(chart_start, chart_end)

        if venue_ids is None:
            total_users: int = await user_repository.count_all(db)
        else:
            total_users = await reservation_repository.count_guests(db, venue_ids)

        recent: list[Reservation] = await reservation_repository.get_recent(db, DASHBOARD_LIST_SIZE, venue_ids)
        popular = await reservation_repository.get_popular_venues(db, DASHBOARD_LIST_SIZE, venue_ids)
        payments: list[Payment] = await payment_repository.get_completed_in_range(db, chart_start, chart_end, venue_ids)
        reservations: list[Reservation] = await reservation_repository.get_in_range(db, chart_start, chart_end, venue_ids)

        return DashboardStats(
            total_reservations=await reservation_repository.count(db, venue_ids),
            active_venues=await venue_repository.count_active(db, venue_ids),
            monthly_revenue=await payment_repository.sum_completed(db, since=current_month, venue_ids=venue_ids),
            total_users=total_users,
            recent_reservations=[
                RecentReservation(
                    id=str(r.id),
                    confirmation_code=r.confirmation_code,
                    guest_name=r.user.full_name if r.user else None,
                    venue_name=r.venue.name if r.venue else None,
                    service_name=r.service.name if r.service else None,
                    status=r.status,
                    total_amount=float(r.total_amount),
                    check_in=r.check_in,
                    created_at=r.created_at,
                )
                for r in recent
            ],
            popular_venues=[
                PopularVenue(
                    id=str(venue.id),
                    name=venue.name,
                    city=venue.city,
                    rating=venue.rating or 0.0,
                    reservation_count=count,
                )
                for venue, count in popular
            ],
            revenue_chart=bucket_by_month(keys, [(_paid_at(p), float(p.amount)) for p in payments]),
            reservations_chart=bucket_by_month(keys, [(r.created_at, 1.0) for r in reservations]),
        )

    async def get_revenue_report(
        self,
        db: AsyncSession,
        caller: User,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> RevenueReport:
        since, until = self._resolve_range(date_from, date_to)
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        payments: list[Payment] = await payment_repository.get_completed_in_range(db, since, until, venue_ids)
        categories = await reservation_repository.revenue_by_category(db, since, until, venue_ids)

        total: float = sum(float(p.amount) for p in payments)
        return RevenueReport(
            date_from=since,
            date_to=until,
            total_revenue=round(total, 2),
            payment_count=len(payments),
            average_payment=round(total / len(payments), 2) if payments else 0.0,
            by_month=bucket_by_month(month_keys(since, until), [(_paid_at(p), float(p.amount)) for p in payments]),
            by_category=[
                CategoryRevenue(category=category, reservations=count, amount=round(float(amount), 2))
                for category, count, amount in categories
            ],
        )

    async def get_reservations_report(
        self,
        db: AsyncSession,
        caller: User,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> ReservationsReport:
        since, until = self._resolve_range(date_from, date_to)
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        reservations: list[Reservation] = await reservation_repository.get_in_range(db, since, until, venue_ids)

        total: int = len(reservations)
        by_status: Counter[str] = Counter(r.status for r in reservations)
        nights: list[int] = [max((as_utc(r.check_out) - as_utc(r.check_in)).days, 1) for r in reservations]
        return ReservationsReport(
            date_from=since,
            date_to=until,
            total=total,
            by_status=dict(by_status),
            cancellation_rate=round(by_status[ReservationStatus.CANCELLED] / total * 100, 1) if total else 0.0,
            average_guests=round(sum(r.guests for r in reservations) / total, 2) if total else 0.0,
            average_nights=round(sum(nights) / total, 2) if total else 0.0,
            by_month=bucket_by_month(month_keys(since, until), [(r.created_at, 1.0) for r in reservations]),
        )

    async def get_users_report(
        self,
        db: AsyncSession,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> UsersReport:
        since, until = self._resolve_range(date_from, date_to)
        signups: list[datetime] = await user_repository.get_created_between(db, since, until)
        return UsersReport(
            date_from=since,
            date_to=until,
            total_users=await user_repository.count_all(db),
            new_users=len(signups),
            active_users=await user_repository.count_active_between(db, since, until),
            by_role=await user_repository.count_grouped_by_role(db),
            by_month=bucket_by_month(month_keys(since, until), [(stamp, 1.0) for stamp in signups]),
        )

    async def export_excel(
        self,
        db: AsyncSession,
        caller: User,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> bytes:
        """Summary, payment and reservation sheets for the range as an .xlsx file."""
        since, until = self._resolve_range(date_from, date_to)
        venue_ids: list[UUID] | None = await scoped_venue_ids(db, caller)
        revenue: RevenueReport = await self.get_revenue_report(db, caller, since, until)
        bookings: ReservationsReport = await self.get_reservations_report(db, caller, since, until)

        wb = Workbook()
        header_font = Font(bold=True, color="FFFFFF", size=11)
        header_fill = PatternFill(start_color="2D3436", end_color="2D3436", fill_type="solid")

        def style_headers(ws, headers: list[str]) -> None:
            for col_idx, h in enumerate(headers, 1):
                cell = ws.cell(row=1, column=col_idx, value=h)
                cell.font = header_font
                cell.fill = header_fill
                cell.alignment = Alignment(horizontal="center")

        def set_widths(ws, widths: list[int]) -> None:
            for i, w in enumerate(widths, 1):
                ws.column_dimensions[ws.cell(row=1, column=i).column_letter].width = w

        # --- Sheet 1: Summary ---
        ws1 = wb.active
        ws1.title = "Summary"
        style_headers(ws1, ["Metric", "Value"])
        ws1.append(["From", _stamp(since)])
        ws1.append(["To", _stamp(until)])
        ws1.append(["Total revenue", revenue.total_revenue])
        ws1.append(["Completed payments", revenue.payment_count])
        ws1.append(["Average payment", revenue.average_payment])
        ws1.append(["Reservations", bookings.total])
        ws1.append(["Cancellation rate (%)", bookings.cancellation_rate])
        ws1.append(["Average guests", bookings.average_guests])
        for status, count in sorted(bookings.by_status.items()):
            ws1.append([f"Reservations {status}", count])
        for row in revenue.by_category:
            ws1.append([f"Revenue {row.category}", row.amount])
        set_widths(ws1, [30, 20])

        # --- Sheet 2: Payments ---
        ws2 = wb.create_sheet("Payments")
        style_headers(ws2, ["Paid At", "Confirmation", "Guest", "Venue", "Service", "Method", "Amount", "Currency"])
        for payment in await payment_repository.get_completed_in_range(db, since, until, venue_ids):
            reservation = payment.reservation
            ws2.append([
                _stamp(_paid_at(payment)),
                reservation.confirmation_code if reservation else "",
                payment.user.full_name if payment.user else "",
                reservation.venue.name if reservation and reservation.venue else "",
                reservation.service.name if reservation and reservation.service else "",
                payment.method,
                float(payment.amount),
                payment.currency,
            ])
        set_widths(ws2, [18, 16, 22, 24, 24, 12, 12, 10])

        # --- Sheet 3: Reservations ---
        ws3 = wb.create_sheet("Reservations")
        style_headers(ws3, ["Created", "Confirmation", "Guest", "Venue", "Service", "Check-in", "Check-out", "Guests", "Status", "Total"])
        for r in await reservation_repository.get_in_range(db, since, until, venue_ids):
            ws3.append([
                _stamp(r.created_at),
                r.confirmation_code,
                r.user.full_name if r.user else "",
                r.venue.name if r.venue else "",
                r.service.name if r.service else "",
                _stamp(r.check_in),
                _stamp(r.check_out),
                r.guests,
                r.status,
                float(r.total_amount),
            ])
        set_widths(ws3, [18, 16, 22, 24, 24, 18, 18, 8, 14, 12])

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()


# Singleton instance
report_service: ReportService = ReportService()
