"""Permission Service. Permission catalogue and role grant management."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditResource
from app.models.permission import Permission
from app.models.user import Role, User
from app.repositories.permission_repository import permission_repository
from app.repositories.role_repository import role_repository
from app.schemas.user import PermissionResponse
from app.services.audit_log_service import audit_log_service
from app.utils.exceptions import ForbiddenError, NotFoundError


class PermissionService:

    def _to_response(self, permission: Permission) -> PermissionResponse:
        return PermissionResponse(
            id=str(permission.id),
            code=permission.code,
            module=permission.module,
            action=permission.action,
            description=permission.description,
        )

    async def list_all_permissions(self, db: AsyncSession, module: str | None = None) -> list[PermissionResponse]:
        perms = await permission_repository.get_all(db, module)
        return [self._to_response(p) for p in perms]

    async def get_role_permissions(self, db: AsyncSession, role_id: UUID) -> list[PermissionResponse]:
        if await role_repository.get_by_id(db, role_id) is None:
            raise NotFoundError("Role not found")
        perms = await permission_repository.get_role_permissions(db, role_id)
        return [self._to_response(p) for p in perms]

    async def update_role_permissions(
        self,
        db: AsyncSession,
        role_id: UUID,
        permission_codes: list[str],
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> list[PermissionResponse]:
        """Replace a role's grants by permission code.

        Raises:
            NotFoundError: Unknown role or permission code
            ForbiddenError: Target role at or above the caller's level
        """
        target_role: Role | None = await role_repository.get_by_id(db, role_id)
        if target_role is None:
            raise NotFoundError("Role not found")
        if target_role.level <= caller.role.level:
            raise ForbiddenError("Cannot modify permissions of a role at or above your level")

        perm_map: dict[str, UUID] = {p.code: p.id for p in await permission_repository.get_all(db)}
        permission_ids: list[UUID] = []
        for code in dict.fromkeys(permission_codes):
            if code not in perm_map:
                raise NotFoundError(f"Permission not found: {code}")
            permission_ids.append(perm_map[code])

        old_codes: set[str] = await permission_repository.get_codes_by_role_id(db, role_id)
        await permission_repository.set_role_permissions(db, role_id, permission_ids)

        await audit_log_service.record(
            db, caller, AuditAction.ROLE_PERMISSIONS_UPDATE, AuditResource.ROLE, role_id,
            old_values={"permissions": sorted(old_codes)},
            new_values={"permissions": sorted(dict.fromkeys(permission_codes))},
            metadata={"role": target_role.name},
            client_info=client_info,
        )
        return await self.get_role_permissions(db, role_id)


# Singleton instance
permission_service: PermissionService = PermissionService()
