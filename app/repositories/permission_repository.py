"""Permission Repository. Queries for permission lookups and role grants."""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.permission import Permission, RolePermission


class PermissionRepository:
    """permissions / role_permissions table queries."""

    async def get_codes_by_role_id(self, db: AsyncSession, role_id: UUID) -> set[str]:
        """Set of permission codes granted to ``role_id``."""
        result = await db.execute(
            select(Permission.code)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
        )
        return {row[0] for row in result.all()}

    async def get_by_code(self, db: AsyncSession, code: str) -> Permission | None:
        result = await db.execute(select(Permission).where(Permission.code == code))
        return result.scalar_one_or_none()

    async def get_all(self, db: AsyncSession, module: str | None = None) -> list[Permission]:
        """Full catalogue ordered by module then action."""
        query = select(Permission).order_by(Permission.module, Permission.action)
        if module:
            query = query.where(Permission.module == module.upper())
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_role_permissions(self, db: AsyncSession, role_id: UUID) -> list[Permission]:
        """Permissions granted to a role, with details."""
        result = await db.execute(
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
            .order_by(Permission.module, Permission.action)
        )
        return list(result.scalars().all())

    async def set_role_permissions(
        self, db: AsyncSession, role_id: UUID, permission_ids: list[UUID]
    ) -> None:
        """Replace every grant of a role (delete existing, insert new)."""
        await db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        await db.flush()

        for perm_id in permission_ids:
            db.add(RolePermission(role_id=role_id, permission_id=perm_id))
        await db.flush()


# Singleton instance
permission_repository: PermissionRepository = PermissionRepository()
