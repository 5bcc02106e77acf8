"""System Config Repository. Key lookups for runtime configuration."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.system_config import SystemConfig
from app.repositories.base import BaseRepository


class SystemConfigRepository(BaseRepository[SystemConfig]):
    """system_configs table queries."""

    def __init__(self) -> None:
        super().__init__(SystemConfig)

    async def get_by_key(self, db: AsyncSession, key: str) -> SystemConfig | None:
        result = await db.execute(select(SystemConfig).where(SystemConfig.key == key))
        return result.scalar_one_or_none()

    async def list_entries(
        self,
        db: AsyncSession,
        category: str | None = None,
        public_only: bool = False,
    ) -> list[SystemConfig]:
        """Entries ordered by category then key."""
        query = select(SystemConfig).order_by(SystemConfig.category, SystemConfig.key)
        if category:
            query = query.where(SystemConfig.category == category)
        if public_only:
            query = query.where(SystemConfig.is_public.is_(True))
        result = await db.execute(query)
        return list(result.scalars().all())


# Singleton instance
system_config_repository: SystemConfigRepository = SystemConfigRepository()
