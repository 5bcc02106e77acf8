"""System Config Service. Runtime key/value configuration.

Writes are restricted to SUPER_ADMIN and audited; entries flagged
``is_public`` are also served without authentication.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditAction, AuditResource
from app.models.system_config import SystemConfig
from app.models.user import User
from app.repositories.system_config_repository import system_config_repository
from app.schemas.admin import SystemConfigResponse, SystemConfigUpsert
from app.services.audit_log_service import audit_log_service
from app.utils.exceptions import NotFoundError


class SystemConfigService:

    def _to_response(self, entry: SystemConfig) -> SystemConfigResponse:
        return SystemConfigResponse(
            id=str(entry.id),
            key=entry.key,
            value=entry.value,
            description=entry.description,
            category=entry.category,
            is_public=entry.is_public,
            updated_by=str(entry.updated_by) if entry.updated_by else None,
            updated_at=entry.updated_at,
        )

    async def _get_entry(self, db: AsyncSession, key: str) -> SystemConfig:
        entry: SystemConfig | None = await system_config_repository.get_by_key(db, key)
        if entry is None:
            raise NotFoundError(f"Configuration key not found: {key}")
        return entry

    async def list_entries(
        self, db: AsyncSession, category: str | None = None, public_only: bool = False
    ) -> list[SystemConfigResponse]:
        entries = await system_config_repository.list_entries(db, category, public_only)
        return [self._to_response(e) for e in entries]

    async def get_public_values(self, db: AsyncSession) -> dict[str, Any]:
        """{key: value} of every public entry."""
        return {e.key: e.value for e in await system_config_repository.list_entries(db, public_only=True)}

    async def get_entry(self, db: AsyncSession, key: str) -> SystemConfigResponse:
        return self._to_response(await self._get_entry(db, key))

    async def upsert(
        self,
        db: AsyncSession,
        key: str,
        data: SystemConfigUpsert,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> SystemConfigResponse:
        """Create or replace one entry."""
        entry: SystemConfig | None = await system_config_repository.get_by_key(db, key)
        old_values: dict[str, Any] | None = None
        payload: dict[str, Any] = {**data.model_dump(), "updated_by": caller.id}

        if entry is None:
            entry = await system_config_repository.create(db, {"key": key, **payload})
        else:
            old_values = {"value": entry.value, "category": entry.category, "isPublic": entry.is_public}
            entry = await system_config_repository.update(db, entry, payload)

        await audit_log_service.record(
            db, caller, AuditAction.SYSTEM_CONFIG_UPDATE, AuditResource.SYSTEM_CONFIG, key,
            old_values=old_values,
            new_values={"value": data.value, "category": data.category, "isPublic": data.is_public},
            client_info=client_info,
        )
        return self._to_response(entry)

    async def delete(
        self,
        db: AsyncSession,
        key: str,
        caller: User,
        client_info: dict[str, str | None] | None = None,
    ) -> None:
        entry: SystemConfig = await self._get_entry(db, key)
        old_values: dict[str, Any] = {"value": entry.value, "category": entry.category, "isPublic": entry.is_public}
        await system_config_repository.delete(db, entry)
        await audit_log_service.record(
            db, caller, AuditAction.SYSTEM_CONFIG_UPDATE, AuditResource.SYSTEM_CONFIG, key,
            old_values=old_values, new_values=None, metadata={"deleted": True},
            client_info=client_info,
        )


# Singleton instance
system_config_service: SystemConfigService = SystemConfigService()
