"""User Service. Admin user management business logic.

Regular users may read and edit their own profile fields; role changes,
activation and account creation are reserved for ADMIN+ and are written
to the admin audit log.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditResource
from app.models.user import ROLE_LEVELS, Role, RoleName, User, UserSettings
from app.repositories.role_repository import role_repository
from app.repositories.user_repository import user_repository
from app.schemas.common import PaginatedData
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services.audit_log_service import audit_log_service
from app.utils.exceptions import BadRequestError, DuplicateError, ForbiddenError, NotFoundError
from app.utils.pagination import build_page
from app.utils.password import hash_password

_PROFILE_FIELDS: frozenset[str] = frozenset({"email", "first_name", "last_name", "phone"})


class UserService:
    """Service handling user business logic."""

    def _to_response(self, user: User) -> UserResponse:
        return UserResponse(
            id=str(user.id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            phone=user.phone,
            role=user.role.name,
            role_level=user.role.level,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )

    async def _get_user(self, db: AsyncSession, user_id: UUID) -> User:
        user: User | None = await user_repository.get_with_role(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _resolve_role(self, db: AsyncSession, role_name: str, caller: User) -> Role:
        """Look up a role the caller is allowed to assign.

        Raises:
            BadRequestError: Unknown role
            ForbiddenError: Role outranks the caller
        """
        role: Role | None = await role_repository.get_by_name(db, role_name)
        if role is None:
            raise BadRequestError(f"Unknown role: {role_name}")
        if caller.role.level > ROLE_LEVELS[RoleName.SUPER_ADMIN] and role.level < caller.role.level:
            raise ForbiddenError("Cannot assign a role above your own")
        return role

    async def list_users(
        self,
        db: AsyncSession,
        page: int,
        limit: int,
        email: str | None = None,
        is_active: bool | None = None,
        role: str | None = None,
        search: str | None = None,
    ) -> PaginatedData:
        """Paginated user list, newest first."""
        query = user_repository.build_list_query(email, is_active, role, search)
        users, total = await user_repository.get_paginated(db, query, page, limit)
        return build_page([self._to_response(u) for u in users], total, page, limit)

    async def get_user(self, db: AsyncSession, user_id: UUID, caller: User) -> UserResponse:
        """Self or MANAGER+ only.

        Raises:
            ForbiddenError: Caller is a USER/EMPLOYEE reading someone else
            NotFoundError: Unknown user
        """
        if caller.id != user_id and caller.role.level > ROLE_LEVELS[RoleName.MANAGER]:
            raise ForbiddenError("Cannot view other users")
        return self._to_response(await self._get_user(db, user_id))

    async def create_user(
        self,
        db: AsyncSession,
        data: UserCreate,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> UserResponse:
        """Create an account with the given role and default settings.

        Raises:
            DuplicateError: Email already registered
        """
        email: str = data.email.strip().lower()
        if await user_repository.email_exists(db, email):
            raise DuplicateError("Email already registered")

        role: Role = await self._resolve_role(db, data.role, caller)
        user: User = await user_repository.create(
            db,
            {
                "role_id": role.id,
                "email": email,
                "password_hash": hash_password(data.password),
                "first_name": data.first_name.strip(),
                "last_name": data.last_name.strip(),
                "phone": data.phone,
            },
        )
        db.add(UserSettings(user_id=user.id))
        await db.flush()

        await audit_log_service.record(
            db, caller, AuditAction.USER_UPDATE, AuditResource.USER, user.id,
            new_values={"email": email, "role": role.name, "created": True},
            client_info=client_info,
        )
        return self._to_response(await self._get_user(db, user.id))

    async def update_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        data: UserUpdate,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> UserResponse:
        """Partial update.

        The user may edit their own profile fields. ADMIN+ may edit anyone,
        including role and is_active.

        Raises:
            ForbiddenError: Not allowed to edit this user or these fields
            DuplicateError: Email already in use
        """
        is_admin: bool = caller.role.level <= ROLE_LEVELS[RoleName.ADMIN]
        if caller.id != user_id and not is_admin:
            raise ForbiddenError("Cannot edit other users")

        update_data: dict = data.model_dump(exclude_unset=True)
        if not is_admin and set(update_data) - _PROFILE_FIELDS:
            raise ForbiddenError("Only administrators can change role or status")
        if caller.id == user_id and update_data.get("is_active") is False:
            raise BadRequestError("You cannot deactivate your own account")

        user: User = await self._get_user(db, user_id)
        old_values: dict = {"email": user.email, "role": user.role.name, "is_active": user.is_active}

        if "email" in update_data and update_data["email"] is not None:
            update_data["email"] = update_data["email"].strip().lower()
            if await user_repository.email_exists(db, update_data["email"], exclude_id=user_id):
                raise DuplicateError("Email already registered")

        role_name: str | None = update_data.pop("role", None)
        if role_name is not None:
            role: Role = await self._resolve_role(db, role_name, caller)
            update_data["role"] = role

        update_data = {k: v for k, v in update_data.items() if v is not None or k == "phone"}
        await user_repository.update(db, user, update_data)
        user = await self._get_user(db, user_id)

        if is_admin and caller.id != user_id:
            await audit_log_service.record(
                db, caller, AuditAction.USER_UPDATE, AuditResource.USER, user.id,
                old_values=old_values,
                new_values={"email": user.email, "role": user.role.name, "is_active": user.is_active},
                client_info=client_info,
            )
        return self._to_response(user)

    async def deactivate_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> None:
        """Soft delete (is_active = False).

        Raises:
            BadRequestError: Caller targets their own account
        """
        if caller.id == user_id:
            raise BadRequestError("You cannot deactivate your own account")

        user: User = await self._get_user(db, user_id)
        if user.role.level < caller.role.level:
            raise ForbiddenError("Cannot deactivate a user above your own role")

        was_active: bool = user.is_active
        user.is_active = False
        await db.flush()
        await audit_log_service.record(
            db, caller, AuditAction.USER_DEACTIVATION, AuditResource.USER, user.id,
            old_values={"is_active": was_active}, new_values={"is_active": False},
            client_info=client_info,
        )


# Singleton instance
user_service: UserService = UserService()
