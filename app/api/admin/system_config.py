"""Admin System Config Router. Key/value platform configuration.

Permission: SUPER_ADMIN. Every change is audited.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import client_info, require_super_admin
from app.database import get_db
from app.models.user import User
from app.schemas.admin import SystemConfigUpsert
from app.schemas.common import success_response
from app.services.system_config_service import system_config_service

router: APIRouter = APIRouter()


@router.get("")
async def list_config_entries(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    category: str | None = None,
    public_only: Annotated[bool, Query(alias="publicOnly")] = False,
) -> dict:
    return success_response(await system_config_service.list_entries(db, category, public_only))


@router.get("/{key}")
async def get_config_entry(
    key: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
) -> dict:
    return success_response(await system_config_service.get_entry(db, key))


@router.put("/{key}")
async def upsert_config_entry(
    key: str,
    data: SystemConfigUpsert,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    result = await system_config_service.upsert(db, key, data, current_user, info)
    await db.commit()
    return success_response(result, "Configuration saved")


@router.delete("/{key}")
async def delete_config_entry(
    key: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_super_admin)],
    info: Annotated[dict, Depends(client_info)],
) -> dict:
    await system_config_service.delete(db, key, current_user, info)
    await db.commit()
    return success_response(None, "Configuration deleted")
