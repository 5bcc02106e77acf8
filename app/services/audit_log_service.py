"""Admin Audit Service. Records and queries administrative actions.

Entries copy the acting admin's email and name so they stay readable after
the account changes. Values are converted to JSON-safe primitives before
they are stored.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AdminAuditLog
from app.models.user import User
from app.repositories.audit_log_repository import audit_log_repository
from app.schemas.admin import AuditLogResponse, AuditLogStats
from app.schemas.common import PaginatedData
from app.utils.dates import start_of_day, utcnow
from app.utils.pagination import build_page


def to_json_safe(value: Any) -> Any:
    """Recursively convert Decimal, UUID, datetime and enums for JSON columns."""
    if isinstance(value, dict):
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


class AuditLogService:
    """Admin audit log service."""

    def _to_response(self, log: AdminAuditLog) -> AuditLogResponse:
        return AuditLogResponse(
            id=str(log.id),
            action=log.action,
            admin_user_id=str(log.admin_user_id) if log.admin_user_id else None,
            admin_user_email=log.admin_user_email,
            admin_user_name=log.admin_user_name,
            resource_type=log.resource_type,
            resource_id=log.resource_id,
            old_values=log.old_values,
            new_values=log.new_values,
            metadata=log.metadata_,
            ip_address=log.ip_address,
            user_agent=log.user_agent,
            created_at=log.created_at,
        )

    async def record(
        self,
        db: AsyncSession,
        admin: User,
        action: str,
        resource_type: str,
        resource_id: Any,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        client_info: dict[str, str | None] | None = None,
    ) -> AdminAuditLog:
        """Append an audit entry in the caller's transaction.

        Args:
            db: Async database session
            admin: Acting admin user
            action: AuditAction value
            resource_type / resource_id: Affected record
            old_values / new_values: State before and after
            metadata: Extra context
            client_info: {"ip_address", "user_agent"} from the request

        Returns:
            AdminAuditLog: Created entry
        """
        client_info = client_info or {}
        return await audit_log_repository.create(
            db,
            {
                "action": action,
                "admin_user_id": admin.id,
                "admin_user_email": admin.email,
                "admin_user_name": admin.full_name or "Admin User",
                "resource_type": resource_type,
                "resource_id": str(resource_id),
                "old_values": to_json_safe(old_values),
                "new_values": to_json_safe(new_values),
                "metadata_": to_json_safe(metadata),
                "ip_address": client_info.get("ip_address"),
                "user_agent": client_info.get("user_agent"),
            },
        )

    async def list_logs(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        action: str | None = None,
        admin_user_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> PaginatedData:
        query = audit_log_repository.build_list_query(
            action, admin_user_id, resource_type, resource_id, date_from, date_to
        )
        items, total = await audit_log_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(log) for log in items], total, page, limit)

    async def get_stats(self, db: AsyncSession) -> AuditLogStats:
        stats: dict[str, Any] = await audit_log_repository.get_stats(db, start_of_day(utcnow()))
        for admin in stats["top_admins"]:
            if admin["admin_user_id"] is not None:
                admin["admin_user_id"] = str(admin["admin_user_id"])
        return AuditLogStats(**stats)


# Singleton instance
audit_log_service: AuditLogService = AuditLogService()
