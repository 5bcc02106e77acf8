"""System Log Repository. Filtered reads, stats and retention cleanup."""

from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.system_log import SystemLog, SystemLogLevel
from app.repositories.base import BaseRepository


class SystemLogRepository(BaseRepository[SystemLog]):
    """Repository handling database queries for the system_logs table."""

    def __init__(self) -> None:
        super().__init__(SystemLog)

    def build_list_query(
        self,
        levels: list[str] | None = None,
        categories: list[str] | None = None,
        event_type: str | None = None,
        user_id: UUID | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        search: str | None = None,
    ) -> Select:
        """System log list query, newest first.

        ``event_type`` and ``resource_type`` match substrings; ``search``
        looks at the message, user email and event type.
        """
        query: Select = select(SystemLog)

        if levels:
            query = query.where(SystemLog.level.in_(levels))
        if categories:
            query = query.where(SystemLog.category.in_(categories))
        if event_type:
            query = query.where(SystemLog.event_type.ilike(f"%{event_type}%"))
        if user_id is not None:
            query = query.where(SystemLog.user_id == user_id)
        if date_from is not None:
            query = query.where(SystemLog.created_at >= date_from)
        if date_to is not None:
            query = query.where(SystemLog.created_at <= date_to)
        if resource_type:
            query = query.where(SystemLog.resource_type.ilike(f"%{resource_type}%"))
        if resource_id:
            query = query.where(SystemLog.resource_id == resource_id)
        if search:
            pattern: str = f"%{search}%"
            query = query.where(
                or_(
                    SystemLog.message.ilike(pattern),
                    SystemLog.user_email.ilike(pattern),
                    SystemLog.event_type.ilike(pattern),
                )
            )

        return query.order_by(SystemLog.created_at.desc())

    async def get_rows(self, db: AsyncSession, query: Select, limit: int) -> Sequence[SystemLog]:
        result = await db.execute(query.limit(limit))
        return result.scalars().all()

    async def get_stats(self, db: AsyncSession, since: datetime) -> dict[str, Any]:
        """Counts by level and category, error figures and mean duration since ``since``."""
        in_window = SystemLog.created_at >= since

        total: int = (await db.execute(
            select(func.count(SystemLog.id)).where(in_window)
        )).scalar() or 0
        by_level = (await db.execute(
            select(SystemLog.level, func.count(SystemLog.id)).where(in_window).group_by(SystemLog.level)
        )).all()
        by_category = (await db.execute(
            select(SystemLog.category, func.count(SystemLog.id)).where(in_window).group_by(SystemLog.category)
        )).all()
        errors: int = (await db.execute(
            select(func.count(SystemLog.id)).where(
                in_window, SystemLog.level.in_([SystemLogLevel.ERROR, SystemLogLevel.CRITICAL])
            )
        )).scalar() or 0
        critical: int = (await db.execute(
            select(func.count(SystemLog.id)).where(in_window, SystemLog.level == SystemLogLevel.CRITICAL)
        )).scalar() or 0
        avg_duration = (await db.execute(
            select(func.avg(SystemLog.duration)).where(in_window, SystemLog.duration.is_not(None))
        )).scalar()

        return {
            "total_logs": int(total),
            "by_level": {level: int(count) for level, count in by_level},
            "by_category": {category: int(count) for category, count in by_category},
            "recent_errors": int(errors),
            "critical_alerts": int(critical),
            "average_response_time": float(avg_duration or 0),
        }

    async def delete_older_than(self, db: AsyncSession, cutoff: datetime) -> int:
        """Delete entries created before ``cutoff``; CRITICAL entries are kept."""
        result = await db.execute(
            delete(SystemLog).where(
                SystemLog.created_at < cutoff,
                SystemLog.level != SystemLogLevel.CRITICAL,
            )
        )
        await db.flush()
        return result.rowcount


# Singleton instance
system_log_repository: SystemLogRepository = SystemLogRepository()
