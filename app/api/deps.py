"""FastAPI dependency injection module. Authentication and authorization.

Provides reusable dependencies for extracting the current user from a JWT
and enforcing role-level and permission based access control.

Authentication Flow:
    1. Client sends the Authorization: Bearer <token> header
    2. HTTPBearer extracts the token
    3. decode_token() verifies the JWT and returns its payload
    4. The user is fetched by the payload "sub" claim with its role loaded
    5. Inactive users are rejected

Authorization Flow (require_level):
    Lower level = higher authority. A caller passes when
    ``role.level <= max_level``; otherwise 403 is returned.
"""

from typing import Annotated, Awaitable, Callable
from uuid import UUID

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.models.user import ROLE_LEVELS, RoleName, User
from app.repositories.permission_repository import permission_repository
from app.utils.exceptions import ForbiddenError, UnauthorizedError
from app.utils.jwt import decode_token
from app.utils.pagination import normalize_page_params
from app.utils.request import get_client_info

# Bearer token extractor; missing headers are handled below so the error
# carries the application envelope instead of the default 403
security: HTTPBearer = HTTPBearer(auto_error=False)


async def _load_user(db: AsyncSession, token: str) -> User:
    try:
        payload: dict = decode_token(token)
        # Reject refresh tokens used as access tokens
        if payload.get("type") != "access":
            raise UnauthorizedError("Invalid token type")
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise UnauthorizedError("Invalid token")
        parsed_id: UUID = UUID(user_id)
    except UnauthorizedError:
        raise
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError, ValueError):
        raise UnauthorizedError("Invalid or expired token")

    result = await db.execute(
        select(User).options(selectinload(User.role)).where(User.id == parsed_id)
    )
    user: User | None = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise UnauthorizedError("User not found or inactive")
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Decode the bearer token and return the authenticated user.

    Raises:
        UnauthorizedError(401): Missing, invalid or expired token, or the
            user is unknown or inactive
    """
    if credentials is None:
        raise UnauthorizedError("Authentication required")
    return await _load_user(db, credentials.credentials)


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """Authenticated user when a valid token is sent, otherwise None."""
    if credentials is None:
        return None
    try:
        return await _load_user(db, credentials.credentials)
    except UnauthorizedError:
        return None


def require_level(max_level: int) -> Callable[..., Awaitable[User]]:
    """Dependency factory enforcing a maximum role level (inclusive).

    Level hierarchy:
        1 = SUPER_ADMIN
        2 = ADMIN
        3 = MANAGER
        4 = EMPLOYEE
        5 = USER
    """
    async def _check(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        role = current_user.role
        if role is None or role.level > max_level:
            raise ForbiddenError("Insufficient permissions")
        return current_user
    return _check


def require_permission(code: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory requiring a ``module:action`` permission code.

    SUPER_ADMIN passes without a permission lookup.
    """
    async def _check(
        current_user: Annotated[User, Depends(get_current_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> User:
        role = current_user.role
        if role is None:
            raise ForbiddenError("Insufficient permissions")
        if role.level <= ROLE_LEVELS[RoleName.SUPER_ADMIN]:
            return current_user
        codes: set[str] = await permission_repository.get_codes_by_role_id(db, role.id)
        if code not in codes:
            raise ForbiddenError(f"Missing permission: {code}")
        return current_user
    return _check


def page_params(page: int = 1, limit: int = 10) -> tuple[int, int]:
    """``page``/``limit`` query params, clamped to page >= 1 and limit 1..100."""
    return normalize_page_params(page, limit)


def client_info(request: Request) -> dict[str, str | None]:
    """IP address and user agent for audit log entries."""
    return get_client_info(request)


# Pre-configured level dependencies for common role requirements
require_super_admin = require_level(ROLE_LEVELS[RoleName.SUPER_ADMIN])
require_admin = require_level(ROLE_LEVELS[RoleName.ADMIN])
require_manager = require_level(ROLE_LEVELS[RoleName.MANAGER])
require_employee = require_level(ROLE_LEVELS[RoleName.EMPLOYEE])
