"""Admin back-office Pydantic schema definitions.

Audit log entries, system log entries, system configuration entries,
guest and back-office notifications and the dashboard/report payloads.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel, PaginatedData


# === Audit log ===

class AuditLogResponse(CamelModel):
    id: str
    action: str
    admin_user_id: str | None
    admin_user_email: str
    admin_user_name: str
    resource_type: str
    resource_id: str
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    metadata: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime


class ActionCount(CamelModel):
    action: str
    count: int


class AdminCount(CamelModel):
    admin_user_id: str | None
    email: str
    name: str
    count: int


class AuditLogStats(CamelModel):
    """Total entries, today's entries, top 5 actions and top 5 admins."""

    total: int
    today: int
    top_actions: list[ActionCount]
    top_admins: list[AdminCount]


# === System logs ===

class SystemLogResponse(CamelModel):
    id: str
    level: str
    category: str
    event_type: str
    message: str
    user_id: str | None
    user_email: str | None
    user_name: str | None
    user_role: str | None
    ip_address: str | None
    user_agent: str | None
    resource_type: str | None
    resource_id: str | None
    duration: int | None
    status_code: int | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    metadata: dict[str, Any] | None
    error_message: str | None
    created_at: datetime


class SystemLogStats(CamelModel):
    """System log figures for the last hour, day, week or month.

    Attributes:
        by_level / by_category: Count per value, zero-filled
        recent_errors: ERROR and CRITICAL entries
        critical_alerts: CRITICAL entries
        average_response_time: Mean ``duration`` (ms) of entries that have one
    """

    timeframe: str
    total_logs: int
    by_level: dict[str, int]
    by_category: dict[str, int]
    recent_errors: int
    critical_alerts: int
    average_response_time: float


class LogCleanupResult(CamelModel):
    deleted_count: int
    message: str
    retention_days: int


# === System config ===

class SystemConfigUpsert(CamelModel):
    """Create-or-replace payload for one configuration key."""

    value: Any = None
    description: str | None = None
    category: str = Field(default="general", max_length=50)
    is_public: bool = False


class SystemConfigResponse(CamelModel):
    id: str
    key: str
    value: Any
    description: str | None
    category: str
    is_public: bool
    updated_by: str | None
    updated_at: datetime


# === Notifications ===

class NotificationResponse(CamelModel):
    id: str
    type: str
    title: str
    message: str
    reference_type: str | None
    reference_id: str | None
    is_read: bool
    created_at: datetime


class UnreadCountResponse(CamelModel):
    unread_count: int


class AdminNotificationResponse(NotificationResponse):
    """Back-office view of a notification with its recipient and venue."""

    user_id: str
    user_email: str | None
    user_name: str | None
    venue_id: str | None


class NotificationSummary(CamelModel):
    total_notifications: int
    unread_count: int


class AdminNotificationListData(PaginatedData):
    """Paginated notifications plus counts over the same filters."""

    summary: NotificationSummary


class NotificationReadUpdate(CamelModel):
    notification_ids: list[UUID] = Field(max_length=100)
    is_read: bool


class NotificationOverview(CamelModel):
    total_notifications: int
    unread_count: int
    read_count: int


class NotificationDay(CamelModel):
    """Notifications created on one UTC ``date`` ("YYYY-MM-DD")."""

    date: str
    count: int
    unread_count: int


class NotificationRecipient(CamelModel):
    user_id: str
    email: str | None
    name: str | None
    notification_count: int


class NotificationStats(CamelModel):
    """Notification figures for ``[date_from, date_to]``.

    Attributes:
        period: today | week | month | year, or "custom" for an explicit range
        by_type: Count per notification type
        by_day: Newest 30 days with notifications
        recent_activity: Latest 10 notifications
        top_users: 10 users with the most notifications
    """

    period: str
    date_from: datetime
    date_to: datetime
    overview: NotificationOverview
    by_type: dict[str, int]
    by_day: list[NotificationDay]
    recent_activity: list[AdminNotificationResponse]
    top_users: list[NotificationRecipient]


# === Dashboard and reports ===

class ChartPoint(CamelModel):
    """One month of a dashboard chart. ``month`` is "YYYY-MM"."""

    month: str
    value: float


class RecentReservation(CamelModel):
    id: str
    confirmation_code: str
    guest_name: str | None
    venue_name: str | None
    service_name: str | None
    status: str
    total_amount: float
    check_in: datetime
    created_at: datetime


class PopularVenue(CamelModel):
    id: str
    name: str
    city: str | None
    rating: float
    reservation_count: int


class DashboardStats(CamelModel):
    total_reservations: int
    active_venues: int
    monthly_revenue: float
    total_users: int
    recent_reservations: list[RecentReservation]
    popular_venues: list[PopularVenue]
    revenue_chart: list[ChartPoint]
    reservations_chart: list[ChartPoint]


class CategoryRevenue(CamelModel):
    category: str
    reservations: int
    amount: float


class RevenueReport(CamelModel):
    """Completed payments in ``[date_from, date_to)``."""

    date_from: datetime
    date_to: datetime
    total_revenue: float
    payment_count: int
    average_payment: float
    by_month: list[ChartPoint]
    by_category: list[CategoryRevenue]


class ReservationsReport(CamelModel):
    """Reservations created in ``[date_from, date_to)``."""

    date_from: datetime
    date_to: datetime
    total: int
    by_status: dict[str, int]
    cancellation_rate: float
    average_guests: float
    average_nights: float
    by_month: list[ChartPoint]


class UsersReport(CamelModel):
    """Account signups and logins in ``[date_from, date_to)``. Platform-wide."""

    date_from: datetime
    date_to: datetime
    total_users: int
    new_users: int
    active_users: int
    by_role: dict[str, int]
    by_month: list[ChartPoint]


class UploadRequest(CamelModel):
    """Presigned image upload request.

    Attributes:
        file_name: Original file name; the extension picks the content type
        folder: venues | services
    """

    file_name: str = Field(min_length=1, max_length=255)
    folder: str = Field(default="venues", pattern=r"^(venues|services)$")


class UploadResponse(CamelModel):
    upload_url: str
    file_url: str
    key: str
