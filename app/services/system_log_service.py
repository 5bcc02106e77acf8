"""System Log Service. Operational event log for the platform owner.

Login attempts, payment status changes and log maintenance are written
here in the caller's transaction. Writes are non-fatal: a failing entry
is reported through ``logging`` and the calling flow continues. Values
whose key looks sensitive (password, token, card, ...) are stored as
"[REDACTED]".
"""

import csv
import io
import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payment import Payment
from app.models.system_log import SystemLog, SystemLogCategory, SystemLogLevel
from app.models.user import User
from app.repositories.system_log_repository import system_log_repository
from app.schemas.admin import LogCleanupResult, SystemLogResponse, SystemLogStats
from app.schemas.common import PaginatedData
from app.services.audit_log_service import to_json_safe
from app.utils.dates import utcnow
from app.utils.exceptions import BadRequestError
from app.utils.pagination import build_page

logger = logging.getLogger(__name__)

SENSITIVE_KEYS: tuple[str, ...] = (
    "password", "token", "secret", "key", "apikey", "authorization",
    "credit", "card", "cvv", "ssn", "social",
)
REDACTED: str = "[REDACTED]"

MAX_ERROR_MESSAGE_LENGTH: int = 2000
MAX_USER_AGENT_LENGTH: int = 1000

TIMEFRAMES: dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}

# Retention bounds for cleanup (days)
MIN_RETENTION_DAYS: int = 7
MAX_RETENTION_DAYS: int = 365
MAX_EXPORT_ROWS: int = 10000

CSV_HEADERS: list[str] = [
    "Timestamp", "Level", "Category", "Event Type", "Message", "User Email", "User Role",
    "Resource Type", "Resource ID", "IP Address", "Status Code", "Duration", "Error Message",
]


def sanitize(value: Any) -> Any:
    """JSON-safe copy of ``value`` with sensitive keys redacted at any depth."""
    if isinstance(value, dict):
        return {
            str(k): REDACTED if any(s in str(k).lower() for s in SENSITIVE_KEYS) else sanitize(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [sanitize(v) for v in value]
    return to_json_safe(value)


class SystemLogService:
    """System log writes, queries, export and retention."""

    def _to_response(self, log: SystemLog) -> SystemLogResponse:
        return SystemLogResponse(
            id=str(log.id),
            level=log.level,
            category=log.category,
            event_type=log.event_type,
            message=log.message,
            user_id=str(log.user_id) if log.user_id else None,
            user_email=log.user_email,
            user_name=log.user_name,
            user_role=log.user_role,
            ip_address=log.ip_address,
            user_agent=log.user_agent,
            resource_type=log.resource_type,
            resource_id=log.resource_id,
            duration=log.duration,
            status_code=log.status_code,
            old_values=log.old_values,
            new_values=log.new_values,
            metadata=log.metadata_,
            error_message=log.error_message,
            created_at=log.created_at,
        )

    async def record(
        self,
        db: AsyncSession,
        level: str,
        category: str,
        event_type: str,
        message: str,
        user: User | None = None,
        user_email: str | None = None,
        user_id: UUID | None = None,
        client_info: dict[str, str | None] | None = None,
        resource_type: str | None = None,
        resource_id: Any = None,
        duration: int | None = None,
        status_code: int | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> SystemLog | None:
        """Append a system log entry.

        User details come from ``user`` when given, otherwise from
        ``user_id``/``user_email``. Returns None when the write fails.
        """
        client_info = client_info or {}
        user_agent: str | None = client_info.get("user_agent")
        data: dict[str, Any] = {
            "level": level,
            "category": category,
            "event_type": event_type,
            "message": message,
            "user_id": user.id if user else user_id,
            "user_email": user.email if user else user_email,
            "user_name": user.full_name if user else None,
            "user_role": user.role.name if user and user.role else None,
            "ip_address": client_info.get("ip_address"),
            "user_agent": user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "duration": duration,
            "status_code": status_code,
            "old_values": sanitize(old_values),
            "new_values": sanitize(new_values),
            "metadata_": sanitize(metadata),
            "error_message": error_message[:MAX_ERROR_MESSAGE_LENGTH] if error_message else None,
        }
        try:
            return await system_log_repository.create(db, data)
        except Exception:
            logger.exception("Failed to write system log %s", event_type)
            return None

    async def log_authentication(
        self,
        db: AsyncSession,
        event_type: str,
        email: str | None,
        success: bool,
        user: User | None = None,
        client_info: dict[str, str | None] | None = None,
        error_message: str | None = None,
    ) -> SystemLog | None:
        """INFO/200 on success, WARN/401 on failure."""
        return await self.record(
            db,
            level=SystemLogLevel.INFO if success else SystemLogLevel.WARN,
            category=SystemLogCategory.AUTHENTICATION,
            event_type=event_type,
            message=f"Authentication event: {event_type} for user {email or 'unknown'}",
            user=user,
            user_email=email,
            client_info=client_info,
            status_code=200 if success else 401,
            error_message=error_message,
        )

    async def log_payment_event(
        self,
        db: AsyncSession,
        event_type: str,
        payment: Payment,
        success: bool = True,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SystemLog | None:
        """INFO/200 on success, ERROR/400 on failure. Amount, currency and status go to metadata."""
        return await self.record(
            db,
            level=SystemLogLevel.INFO if success else SystemLogLevel.ERROR,
            category=SystemLogCategory.PAYMENT_PROCESSING,
            event_type=event_type,
            message=f"Payment event: {event_type} for payment {payment.id}",
            user_id=payment.user_id,
            resource_type="payment",
            resource_id=payment.id,
            status_code=200 if success else 400,
            metadata={
                **(metadata or {}),
                "amount": payment.amount,
                "currency": payment.currency,
                "status": payment.status,
            },
            error_message=error_message,
        )

    async def log_admin_action(
        self,
        db: AsyncSession,
        event_type: str,
        admin: User,
        resource_type: str,
        resource_id: Any,
        client_info: dict[str, str | None] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SystemLog | None:
        return await self.record(
            db,
            level=SystemLogLevel.INFO,
            category=SystemLogCategory.ADMIN_ACTION,
            event_type=event_type,
            message=f"Admin action: {event_type} on {resource_type} {resource_id} by {admin.email}",
            user=admin,
            client_info=client_info,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=metadata,
        )

    # --- Queries ---

    async def list_logs(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        **filters: Any,
    ) -> PaginatedData:
        """Newest first. ``filters`` are the keyword arguments of ``build_list_query``."""
        query = system_log_repository.build_list_query(**filters)
        items, total = await system_log_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(log) for log in items], total, page, limit)

    async def get_stats(self, db: AsyncSession, timeframe: str = "day") -> SystemLogStats:
        stats: dict[str, Any] = await system_log_repository.get_stats(db, utcnow() - TIMEFRAMES[timeframe])
        stats["by_level"] = {level.value: stats["by_level"].get(level.value, 0) for level in SystemLogLevel}
        stats["by_category"] = {
            category.value: stats["by_category"].get(category.value, 0) for category in SystemLogCategory
        }
        return SystemLogStats(timeframe=timeframe, **stats)

    async def export_csv(
        self,
        db: AsyncSession,
        admin: User,
        client_info: dict[str, str | None] | None = None,
        **filters: Any,
    ) -> str:
        """Up to 10000 matching entries as CSV, newest first. The export itself is logged."""
        query = system_log_repository.build_list_query(**filters)
        logs = await system_log_repository.get_rows(db, query, MAX_EXPORT_ROWS)

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for log in logs:
            writer.writerow([
                log.created_at.isoformat(),
                log.level,
                log.category,
                log.event_type,
                log.message,
                log.user_email or "",
                log.user_role or "",
                log.resource_type or "",
                log.resource_id or "",
                log.ip_address or "",
                log.status_code if log.status_code is not None else "",
                log.duration if log.duration is not None else "",
                log.error_message or "",
            ])

        await self.log_admin_action(
            db, "system_logs_export", admin, "system_logs", "export", client_info,
            metadata={"filters": filters, "exported_count": len(logs)},
        )
        return buffer.getvalue()

    async def cleanup(
        self,
        db: AsyncSession,
        admin: User,
        retention_days: int = 90,
        client_info: dict[str, str | None] | None = None,
    ) -> LogCleanupResult:
        """Delete entries older than ``retention_days``, keeping CRITICAL ones.

        Raises:
            BadRequestError: Retention outside 7..365 days
        """
        if not MIN_RETENTION_DAYS <= retention_days <= MAX_RETENTION_DAYS:
            raise BadRequestError(
                f"Retention days must be between {MIN_RETENTION_DAYS} and {MAX_RETENTION_DAYS}"
            )

        cutoff: datetime = utcnow() - timedelta(days=retention_days)
        deleted: int = await system_log_repository.delete_older_than(db, cutoff)
        logger.info("Deleted %d system log entries older than %s", deleted, cutoff.isoformat())

        await self.log_admin_action(
            db, "system_logs_cleanup", admin, "system_logs", "cleanup", client_info,
            metadata={"deleted_count": deleted, "retention_days": retention_days},
        )
        return LogCleanupResult(
            deleted_count=deleted,
            message=f"Successfully deleted {deleted} old log entries",
            retention_days=retention_days,
        )


# Singleton instance
system_log_service: SystemLogService = SystemLogService()
