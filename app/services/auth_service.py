"""Auth Service. Registration, login, token refresh and profile logic.

Handles the JWT token lifecycle (refresh tokens are persisted and rotated
on every refresh) and self-service profile/password management.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import Role, RoleName, User, UserSettings
from app.repositories.auth_repository import auth_repository
from app.repositories.permission_repository import permission_repository
from app.repositories.role_repository import role_repository
from app.repositories.user_repository import user_repository
from app.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
    UserProfileResponse,
)
from app.services.email_service import email_service
from app.services.system_log_service import system_log_service
from app.utils.dates import as_utc, utcnow
from app.utils.exceptions import (
    BadRequestError,
    DuplicateError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from app.utils.jwt import create_access_token, create_refresh_token, decode_token
from app.utils.password import hash_password, verify_password

logger = logging.getLogger(__name__)


class AuthService:
    """Service handling authentication business logic."""

    def _build_jwt_payload(self, user: User, role: Role) -> dict[str, str | int]:
        return {
            "sub": str(user.id),
            "email": user.email,
            "role": role.name,
            "level": role.level,
        }

    async def _generate_tokens(self, db: AsyncSession, user: User, role: Role) -> TokenResponse:
        """Issue an access/refresh pair and persist the refresh token.

        Earlier refresh tokens of the user are revoked.
        """
        payload: dict[str, str | int] = self._build_jwt_payload(user, role)
        access_token: str = create_access_token(payload)
        refresh_token: str = create_refresh_token(payload)

        await auth_repository.delete_user_refresh_tokens(db, user.id)

        expires_at: datetime = datetime.now(timezone.utc) + timedelta(
            days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS
        )
        await auth_repository.create_refresh_token(
            db, user_id=user.id, token=refresh_token, expires_at=expires_at
        )

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        )

    async def build_profile(self, db: AsyncSession, user: User) -> UserProfileResponse:
        """Profile response with the role's permission codes.

        Args:
            db: Async database session
            user: User with role loaded

        Returns:
            UserProfileResponse: Profile response
        """
        role: Role = user.role
        permissions: set[str] = await permission_repository.get_codes_by_role_id(db, role.id)
        return UserProfileResponse(
            id=str(user.id),
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            phone=user.phone,
            role=role.name,
            role_level=role.level,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            permissions=sorted(permissions),
        )

    async def register(self, db: AsyncSession, data: RegisterRequest) -> AuthResponse:
        """Create a USER account with default settings and sign it in.

        Raises:
            DuplicateError: Email already registered
            BadRequestError: USER role missing (database not seeded)
        """
        email: str = data.email.strip().lower()
        if await user_repository.email_exists(db, email):
            raise DuplicateError("Email already registered")

        role: Role | None = await role_repository.get_by_name(db, RoleName.USER)
        if role is None:
            raise BadRequestError("Default user role is not configured")

        user: User = User(
            role_id=role.id,
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=data.phone,
            last_login_at=utcnow(),
        )
        db.add(user)
        await db.flush()
        db.add(UserSettings(user_id=user.id))
        await db.flush()

        user = await user_repository.get_with_role(db, user.id)
        tokens: TokenResponse = await self._generate_tokens(db, user, user.role)

        try:
            await email_service.send_welcome(user)
        except Exception:
            logger.exception("Welcome email to %s failed", user.email)

        return AuthResponse(user=await self.build_profile(db, user), tokens=tokens)

    async def login(
        self,
        db: AsyncSession,
        data: LoginRequest,
        client_info: dict[str, str | None] | None = None,
    ) -> AuthResponse:
        """Verify credentials and issue tokens.

        Every attempt is written to the system log; on failure the entry
        is flushed before the error is raised, so the caller commits it.

        Raises:
            UnauthorizedError: Unknown email or wrong password
            ForbiddenError: Account deactivated
        """
        user: User | None = await auth_repository.get_user_by_email(db, data.email)
        if user is None or not verify_password(data.password, user.password_hash):
            await system_log_service.log_authentication(
                db, "login_failed", data.email, False, user=user, client_info=client_info,
                error_message="Invalid email or password",
            )
            raise UnauthorizedError("Invalid email or password")

        if not user.is_active:
            await system_log_service.log_authentication(
                db, "login_blocked", data.email, False, user=user, client_info=client_info,
                error_message="Account is deactivated",
            )
            raise ForbiddenError("Account is deactivated")

        user.last_login_at = utcnow()
        await db.flush()
        await system_log_service.log_authentication(
            db, "login_success", user.email, True, user=user, client_info=client_info
        )

        tokens: TokenResponse = await self._generate_tokens(db, user, user.role)
        return AuthResponse(user=await self.build_profile(db, user), tokens=tokens)

    async def refresh_tokens(self, db: AsyncSession, refresh_token: str) -> TokenResponse:
        """Rotate a stored refresh token.

        Raises:
            UnauthorizedError: Unknown, expired or malformed refresh token
        """
        db_token = await auth_repository.get_refresh_token(db, refresh_token)
        if db_token is None:
            raise UnauthorizedError("Invalid refresh token")

        if as_utc(db_token.expires_at) < utcnow():
            await auth_repository.delete_refresh_token(db, refresh_token)
            raise UnauthorizedError("Refresh token has expired")

        try:
            payload: dict = decode_token(refresh_token)
        except jwt.InvalidTokenError:
            await auth_repository.delete_refresh_token(db, refresh_token)
            raise UnauthorizedError("Invalid refresh token")

        if payload.get("type") != "refresh" or payload.get("sub") is None:
            raise UnauthorizedError("Invalid refresh token payload")

        user: User | None = await user_repository.get_with_role(db, UUID(payload["sub"]))
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")

        await auth_repository.delete_refresh_token(db, refresh_token)
        return await self._generate_tokens(db, user, user.role)

    async def logout(self, db: AsyncSession, refresh_token: str) -> None:
        await auth_repository.delete_refresh_token(db, refresh_token)

    async def update_profile(
        self, db: AsyncSession, user: User, data: ProfileUpdateRequest
    ) -> UserProfileResponse:
        update_data: dict = data.model_dump(exclude_unset=True, exclude_none=True)
        await user_repository.update(db, user, update_data)
        loaded: User | None = await user_repository.get_with_role(db, user.id)
        if loaded is None:
            raise NotFoundError("User not found")
        return await self.build_profile(db, loaded)

    async def change_password(
        self, db: AsyncSession, user: User, data: ChangePasswordRequest
    ) -> None:
        """Replace the password and revoke every refresh token of the user.

        Raises:
            BadRequestError: Wrong current password, or new password equals the current one
        """
        if not verify_password(data.current_password, user.password_hash):
            raise BadRequestError("Current password is incorrect")
        if data.current_password == data.new_password:
            raise BadRequestError("New password must be different from the current password")

        user.password_hash = hash_password(data.new_password)
        await auth_repository.delete_user_refresh_tokens(db, user.id)
        await db.flush()


# Singleton instance
auth_service: AuthService = AuthService()
