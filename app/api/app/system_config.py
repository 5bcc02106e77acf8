"""Public System Config Router. Client-visible configuration values."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.common import success_response
from app.services.system_config_service import system_config_service

router: APIRouter = APIRouter()


@router.get("/public")
async def get_public_config(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """{key: value} of every entry flagged public."""
    return success_response(await system_config_service.get_public_values(db))
