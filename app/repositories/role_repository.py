"""Role Repository. CRUD and duplicate-check queries for roles.

Extends BaseRepository with Role-specific database operations.
"""

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import Role, User
from app.repositories.base import BaseRepository


class RoleRepository(BaseRepository[Role]):
    """Repository handling database queries for the roles table."""

    def __init__(self) -> None:
        super().__init__(Role)

    async def list_ordered(self, db: AsyncSession) -> list[Role]:
        """All roles, highest authority first."""
        result = await db.execute(select(Role).order_by(Role.level, Role.name))
        return list(result.scalars().all())

    async def get_by_name(self, db: AsyncSession, name: str) -> Role | None:
        result = await db.execute(select(Role).where(Role.name == name.upper()))
        return result.scalar_one_or_none()

    async def name_exists(
        self,
        db: AsyncSession,
        name: str,
        exclude_id: UUID | None = None,
    ) -> bool:
        """Whether another role already uses ``name``."""
        query: Select = select(func.count()).select_from(Role).where(Role.name == name.upper())
        if exclude_id is not None:
            query = query.where(Role.id != exclude_id)
        count: int = (await db.execute(query)).scalar() or 0
        return count > 0

    async def count_users(self, db: AsyncSession, role_id: UUID) -> int:
        """Number of users assigned to the role."""
        result = await db.execute(
            select(func.count()).select_from(User).where(User.role_id == role_id)
        )
        return result.scalar() or 0


# Singleton instance
role_repository: RoleRepository = RoleRepository()
