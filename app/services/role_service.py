"""Role Service. Business logic for role CRUD.

System roles (the built-in hierarchy) cannot be renamed or deleted, and a
role that still has users cannot be deleted.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import Role
from app.repositories.permission_repository import permission_repository
from app.repositories.role_repository import role_repository
from app.schemas.user import RoleCreate, RoleResponse, RoleUpdate
from app.utils.exceptions import BadRequestError, DuplicateError, ForbiddenError, NotFoundError


class RoleService:
    """Service handling role business logic."""

    async def _to_response(self, db: AsyncSession, role: Role) -> RoleResponse:
        return RoleResponse(
            id=str(role.id),
            name=role.name,
            description=role.description,
            level=role.level,
            is_system=role.is_system,
            user_count=await role_repository.count_users(db, role.id),
            permissions=sorted(await permission_repository.get_codes_by_role_id(db, role.id)),
            created_at=role.created_at,
        )

    async def _get_role(self, db: AsyncSession, role_id: UUID) -> Role:
        role: Role | None = await role_repository.get_by_id(db, role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def list_roles(self, db: AsyncSession) -> list[RoleResponse]:
        roles: list[Role] = await role_repository.list_ordered(db)
        return [await self._to_response(db, r) for r in roles]

    async def get_role(self, db: AsyncSession, role_id: UUID) -> RoleResponse:
        return await self._to_response(db, await self._get_role(db, role_id))

    async def create_role(self, db: AsyncSession, data: RoleCreate, caller_level: int = 1) -> RoleResponse:
        """Create a custom role strictly below the caller's level.

        Raises:
            ForbiddenError: Level at or above the caller's
            DuplicateError: Name already used
        """
        if data.level <= caller_level:
            raise ForbiddenError("Cannot create a role at or above your level")
        if await role_repository.name_exists(db, data.name):
            raise DuplicateError("A role with this name already exists")

        role: Role = await role_repository.create(
            db,
            {
                "name": data.name.strip().upper(),
                "description": data.description,
                "level": data.level,
                "is_system": False,
            },
        )
        return await self._to_response(db, role)

    async def update_role(
        self,
        db: AsyncSession,
        role_id: UUID,
        data: RoleUpdate,
        caller_level: int = 1,
    ) -> RoleResponse:
        """Update a role below the caller's level.

        Raises:
            NotFoundError: Unknown role
            ForbiddenError: Role (or new level) at or above the caller's
            BadRequestError: Renaming or re-levelling a system role
            DuplicateError: Name already used
        """
        role: Role = await self._get_role(db, role_id)
        if role.level <= caller_level:
            raise ForbiddenError("Cannot modify a role at or above your level")
        if data.level is not None and data.level <= caller_level:
            raise ForbiddenError("Cannot set role level at or above your level")
        if role.is_system and (data.name is not None or data.level is not None):
            raise BadRequestError("System roles cannot be renamed or re-levelled")

        update_data: dict = data.model_dump(exclude_unset=True)
        if data.name is not None:
            if await role_repository.name_exists(db, data.name, exclude_id=role_id):
                raise DuplicateError("A role with this name already exists")
            update_data["name"] = data.name.strip().upper()

        role = await role_repository.update(db, role, update_data)
        return await self._to_response(db, role)

    async def delete_role(self, db: AsyncSession, role_id: UUID, caller_level: int = 1) -> None:
        """Delete a custom role without users.

        Raises:
            NotFoundError: Unknown role
            ForbiddenError: Role at or above the caller's level
            BadRequestError: System role, or role still assigned to users
        """
        role: Role = await self._get_role(db, role_id)
        if role.level <= caller_level:
            raise ForbiddenError("Cannot delete a role at or above your level")
        if role.is_system:
            raise BadRequestError("System roles cannot be deleted")
        if await role_repository.count_users(db, role_id) > 0:
            raise BadRequestError("Role is assigned to users")

        await role_repository.delete(db, role)


# Singleton instance
role_service: RoleService = RoleService()
