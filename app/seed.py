"""Seed script. Creates the role hierarchy, permission catalogue, super admin
account and default system configuration.

Usage:
    python -m app.seed

Creates:
    - 5 system roles: SUPER_ADMIN(1), ADMIN(2), MANAGER(3), EMPLOYEE(4), USER(5)
    - Every ``module:action`` permission and the default role grants
    - 1 super admin account (SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD)
    - Default system configuration entries

Idempotent: existing rows are left untouched, missing ones are added.
"""

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import Base, async_session, engine
from app.models.permission import (
    Permission,
    PermissionAction,
    PermissionModule,
    permission_code,
)
from app.models.system_config import SystemConfig
from app.models.user import ROLE_LEVELS, Role, RoleName, User, UserSettings
from app.repositories.auth_repository import auth_repository
from app.repositories.permission_repository import permission_repository
from app.repositories.role_repository import role_repository
from app.repositories.system_config_repository import system_config_repository
from app.utils.password import hash_password

logger = logging.getLogger(__name__)

ROLE_DESCRIPTIONS: dict[str, str] = {
    RoleName.SUPER_ADMIN: "Full platform access",
    RoleName.ADMIN: "Venue owner, manages own venues, payments and reports",
    RoleName.MANAGER: "Runs day-to-day operations of a venue",
    RoleName.EMPLOYEE: "Front-desk staff, handles check-in and check-out",
    RoleName.USER: "Guest, books and pays for services",
}

_CRUD: list[str] = [
    PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.DELETE,
]

# Grants per role; SUPER_ADMIN receives the whole catalogue
DEFAULT_GRANTS: dict[str, dict[str, list[str]]] = {
    RoleName.ADMIN: {
        PermissionModule.USER: [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE],
        PermissionModule.VENUE: _CRUD + [PermissionAction.MANAGE],
        PermissionModule.SERVICE: _CRUD + [PermissionAction.MANAGE],
        PermissionModule.RESERVATION: _CRUD + [PermissionAction.MANAGE],
        PermissionModule.PAYMENT: [PermissionAction.READ, PermissionAction.UPDATE, PermissionAction.EXECUTE],
        PermissionModule.ROLE: [PermissionAction.READ],
        PermissionModule.PERMISSION: [PermissionAction.READ],
        PermissionModule.REPORT: [PermissionAction.READ, PermissionAction.EXECUTE],
        PermissionModule.AUDIT: [PermissionAction.READ],
    },
    RoleName.MANAGER: {
        PermissionModule.USER: [PermissionAction.READ],
        PermissionModule.VENUE: [PermissionAction.READ, PermissionAction.UPDATE],
        PermissionModule.SERVICE: [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE],
        PermissionModule.RESERVATION: [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE],
        PermissionModule.PAYMENT: [PermissionAction.READ],
        PermissionModule.REPORT: [PermissionAction.READ],
    },
    RoleName.EMPLOYEE: {
        PermissionModule.VENUE: [PermissionAction.READ],
        PermissionModule.SERVICE: [PermissionAction.READ],
        PermissionModule.RESERVATION: [PermissionAction.READ, PermissionAction.UPDATE],
    },
    RoleName.USER: {
        PermissionModule.VENUE: [PermissionAction.READ],
        PermissionModule.SERVICE: [PermissionAction.READ],
        PermissionModule.RESERVATION: [PermissionAction.CREATE, PermissionAction.READ, PermissionAction.UPDATE],
        PermissionModule.PAYMENT: [PermissionAction.CREATE, PermissionAction.READ],
    },
}

# (key, value, description, category, is_public)
DEFAULT_SYSTEM_CONFIG: list[tuple[str, Any, str, str, bool]] = [
    ("app.name", settings.APP_NAME, "Display name of the platform", "general", True),
    ("app.support_email", settings.SMTP_FROM_EMAIL, "Contact address shown to guests", "general", True),
    ("billing.currency", settings.DEFAULT_CURRENCY, "Default currency", "billing", True),
    ("billing.tax_rate", settings.TAX_RATE, "Tax rate included in receipt amounts", "billing", True),
    (
        "reservations.cancellation_policy",
        {"fullRefundHours": 48, "partialRefundHours": 24, "partialRefundPercent": 50},
        "Refund tiers by hours before check-in",
        "reservations",
        True,
    ),
    ("maintenance.enabled", False, "Maintenance mode flag", "general", True),
]


async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    """Create missing system roles. Returns {name: Role}."""
    roles: dict[str, Role] = {}
    for name, level in ROLE_LEVELS.items():
        role: Role | None = await role_repository.get_by_name(db, name)
        if role is None:
            role = Role(name=name, level=level, description=ROLE_DESCRIPTIONS[name], is_system=True)
            db.add(role)
            await db.flush()
            logger.info("Created role %s", name)
        roles[name] = role
    return roles


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """Create the full ``module:action`` catalogue. Returns {code: Permission}."""
    existing: dict[str, Permission] = {p.code: p for p in await permission_repository.get_all(db)}
    for module in PermissionModule:
        for action in PermissionAction:
            code: str = permission_code(module, action)
            if code in existing:
                continue
            perm = Permission(
                code=code,
                module=module.value,
                action=action.value,
                description=f"{action.value.capitalize()} {module.value.lower()}",
            )
            db.add(perm)
            existing[code] = perm
    await db.flush()
    return existing


async def seed_role_grants(
    db: AsyncSession, roles: dict[str, Role], permissions: dict[str, Permission]
) -> None:
    """Apply the default grants to roles that have none yet.

    Roles whose grants were already edited are left alone.
    """
    for name, role in roles.items():
        if await permission_repository.get_codes_by_role_id(db, role.id):
            continue
        if name == RoleName.SUPER_ADMIN:
            codes: list[str] = list(permissions)
        else:
            codes = [
                permission_code(module, action)
                for module, actions in DEFAULT_GRANTS.get(name, {}).items()
                for action in actions
            ]
        await permission_repository.set_role_permissions(db, role.id, [permissions[c].id for c in codes])
        logger.info("Granted %d permissions to %s", len(codes), name)


async def seed_super_admin(db: AsyncSession, role: Role) -> User:
    email: str = settings.SEED_ADMIN_EMAIL.lower()
    admin: User | None = await auth_repository.get_user_by_email(db, email)
    if admin is not None:
        return admin
    admin = User(
        role_id=role.id,
        email=email,
        password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
        first_name="Super",
        last_name="Admin",
        is_active=True,
        email_verified=True,
    )
    db.add(admin)
    await db.flush()
    db.add(UserSettings(user_id=admin.id))
    await db.flush()
    logger.info("Created super admin %s", email)
    return admin


async def seed_system_config(db: AsyncSession) -> None:
    for key, value, description, category, is_public in DEFAULT_SYSTEM_CONFIG:
        if await system_config_repository.get_by_key(db, key) is not None:
            continue
        db.add(SystemConfig(key=key, value=value, description=description, category=category, is_public=is_public))
    await db.flush()


async def seed_database(db: AsyncSession) -> None:
    """Run every seed step in one transaction owned by the caller."""
    roles = await seed_roles(db)
    permissions = await seed_permissions(db)
    await seed_role_grants(db, roles, permissions)
    await seed_super_admin(db, roles[RoleName.SUPER_ADMIN])
    await seed_system_config(db)


async def seed() -> None:
    """Create tables if they don't exist, then seed and commit."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as db:
        await seed_database(db)
        await db.commit()
    logger.info("Seed complete")


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s %(message)s")
    asyncio.run(seed())
