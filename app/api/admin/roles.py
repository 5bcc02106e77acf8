"""Admin Role Router. Role CRUD and role permission assignment.

SUPER_ADMIN only. System roles cannot be renamed or deleted.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, require_super_admin
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.schemas.user import RoleCreate, RolePermissionsUpdate, RoleUpdate
from app.services.permission_service import permission_service
from app.services.role_service import role_service

router: APIRouter = APIRouter()


@router.get("")
async def list_roles(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    """All roles ordered by level, with user counts."""
    return success_response(await role_service.list_roles(db))


@router.get("/{role_id}")
async def get_role(
    role_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    return success_response(await role_service.get_role(db, role_id))


@router.post("", status_code=201)
async def create_role(
    data: RoleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    result = await role_service.create_role(db, data, caller_level=current_user.role.level)
    await db.commit()
    return success_response(result, "Role created")


@router.put("/{role_id}")
async def update_role(
    role_id: UUID,
    data: RoleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    result = await role_service.update_role(db, role_id, data, caller_level=current_user.role.level)
    await db.commit()
    return success_response(result, "Role updated")


@router.delete("/{role_id}")
async def delete_role(
    role_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    await role_service.delete_role(db, role_id, caller_level=current_user.role.level)
    await db.commit()
    return success_response(None, "Role deleted")


@router.get("/{role_id}/permissions")
async def get_role_permissions(
    role_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    return success_response(await permission_service.get_role_permissions(db, role_id))


@router.put("/{role_id}/permissions")
async def update_role_permissions(
    role_id: UUID,
    data: RolePermissionsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    """Replace the role's permission set with the given codes."""
    result = await permission_service.update_role_permissions(db, role_id, data.permissions, current_user, info)
    await db.commit()
    return success_response(result, "Role permissions updated")
