"""User Router. Account management endpoints.

Permission Matrix:
    - List: MANAGER+
    - Create / deactivate: ADMIN+
    - Read / update: self, or MANAGER+ read and ADMIN+ update
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, get_current_user, page_params, require_admin, require_manager
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.user import UserCreate, UserUpdate
from app.services.user_service import user_service

router: APIRouter = APIRouter()


@router.get("")
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_manager)],
    paging: Annotated[tuple[int, int], Depends(page_params)],
    email: str | None = None,
    is_active: Annotated[bool | None, Query(alias="isActive")] = None,
    role: str | None = None,
    search: str | None = None,
) -> dict:
    page, limit = paging
    result = await user_service.list_users(db, page, limit, email, is_active, role, search)
    return success_response(result)


@router.post("", status_code=201)
async def create_user(
    data: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await user_service.create_user(db, data, current_user, info)
    await db.commit()
    return success_response(result, "User created")


@router.get("/{user_id}")
async def get_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    return success_response(await user_service.get_user(db, user_id, current_user))


@router.put("/{user_id}")
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await user_service.update_user(db, user_id, data, current_user, info)
    await db.commit()
    return success_response(result, "User updated")


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    """Soft delete: the account is deactivated, never removed."""
    await user_service.deactivate_user(db, user_id, current_user, info)
    await db.commit()
    return success_response(None, "User deactivated")
