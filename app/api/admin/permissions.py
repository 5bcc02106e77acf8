"""Admin Permission Router. Read-only permission catalogue.

Permission: permission:read (granted to ADMIN by default)
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.database import get_db
from app.models.user import User
from app.schemas.common import success_response
from app.services.permission_service import permission_service

router: APIRouter = APIRouter()


@router.get("")
async def list_permissions(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission("permission:read"))],
    module: str | None = None,
) -> dict:
    """Every ``module:action`` permission, optionally for one module."""
    return success_response(await permission_service.list_all_permissions(db, module))
