"""Admin Audit Log Repository. Append-only writes, filtered reads and stats."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AdminAuditLog
from app.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AdminAuditLog]):
    """Repository handling database queries for the admin_audit_logs table."""

    def __init__(self) -> None:
        super().__init__(AdminAuditLog)

    def build_list_query(
        self,
        action: str | None = None,
        admin_user_id: UUID | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> Select:
        """Audit log list query, newest first."""
        query: Select = select(AdminAuditLog)

        if action:
            query = query.where(AdminAuditLog.action == action)
        if admin_user_id is not None:
            query = query.where(AdminAuditLog.admin_user_id == admin_user_id)
        if resource_type:
            query = query.where(AdminAuditLog.resource_type == resource_type)
        if resource_id:
            query = query.where(AdminAuditLog.resource_id == resource_id)
        if date_from is not None:
            query = query.where(AdminAuditLog.created_at >= date_from)
        if date_to is not None:
            query = query.where(AdminAuditLog.created_at <= date_to)

        return query.order_by(AdminAuditLog.created_at.desc())

    async def get_stats(self, db: AsyncSession, today_start: datetime) -> dict[str, Any]:
        """Total, today's count, top 5 actions and top 5 admins."""
        total: int = (await db.execute(select(func.count(AdminAuditLog.id)))).scalar() or 0
        today: int = (await db.execute(
            select(func.count(AdminAuditLog.id)).where(AdminAuditLog.created_at >= today_start)
        )).scalar() or 0

        action_count = func.count(AdminAuditLog.id)
        top_actions = (await db.execute(
            select(AdminAuditLog.action, action_count)
            .group_by(AdminAuditLog.action)
            .order_by(action_count.desc())
            .limit(5)
        )).all()

        admin_count = func.count(AdminAuditLog.id)
        top_admins = (await db.execute(
            select(AdminAuditLog.admin_user_id, AdminAuditLog.admin_user_email, AdminAuditLog.admin_user_name, admin_count)
            .group_by(AdminAuditLog.admin_user_id, AdminAuditLog.admin_user_email, AdminAuditLog.admin_user_name)
            .order_by(admin_count.desc())
            .limit(5)
        )).all()

        return {
            "total": int(total),
            "today": int(today),
            "top_actions": [{"action": action, "count": int(count)} for action, count in top_actions],
            "top_admins": [
                {"admin_user_id": admin_id, "email": email, "name": name, "count": int(count)}
                for admin_id, email, name, count in top_admins
            ],
        }


# Singleton instance
audit_log_repository: AuditLogRepository = AuditLogRepository()
