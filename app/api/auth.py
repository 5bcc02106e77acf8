"""Auth Router. Registration, login, token rotation and own profile.

Shared by the booking app and the admin back office.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, get_current_user
from app.database import get_db
from app.models.user import User
from app.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RefreshRequest,
    RegisterRequest,
)
from app.schemas.common import success_response
from app.services.auth_service import auth_service
from app.utils.exceptions import ForbiddenError, UnauthorizedError

router: APIRouter = APIRouter()


@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Create a USER account and return it with a token pair."""
    result = await auth_service.register(db, data)
    await db.commit()
    return success_response(result, "Registration successful")


@router.post("/login")
async def login(
    data: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[dict[str, str | None], Depends(client_info)],
) -> dict:
    try:
        result = await auth_service.login(db, data, client)
    except (UnauthorizedError, ForbiddenError):
        # Keep the failed attempt's system log entry
        await db.commit()
        raise
    await db.commit()
    return success_response(result, "Login successful")


@router.post("/refresh")
async def refresh_token(
    data: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Issue a new token pair; the submitted refresh token is revoked."""
    result = await auth_service.refresh_tokens(db, data.refresh_token)
    await db.commit()
    return success_response(result, "Token refreshed")


@router.post("/logout")
async def logout(
    data: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    await auth_service.logout(db, data.refresh_token)
    await db.commit()
    return success_response(None, "Logged out")


@router.get("/profile")
async def get_profile(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return success_response(await auth_service.build_profile(db, current_user))


@router.put("/profile")
async def update_profile(
    data: ProfileUpdateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    result = await auth_service.update_profile(db, current_user, data)
    await db.commit()
    return success_response(result, "Profile updated")


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Replace the password; every session of the user is signed out."""
    await auth_service.change_password(db, current_user, data)
    await db.commit()
    return success_response(None, "Password changed")
