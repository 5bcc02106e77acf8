"""Seed tests. Roles, permission grants, super admin and default configuration."""

from sqlalchemy import func, select

from app.config import settings
from app.models.permission import Permission
from app.models.system_config import SystemConfig
from app.models.user import Role, RoleName, User
from app.repositories.permission_repository import permission_repository
from app.seed import DEFAULT_SYSTEM_CONFIG, seed_database
from app.utils.password import verify_password


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


class TestSeedDatabase:

    async def test_creates_everything(self, db):
        await seed_database(db)

        roles = {r.name: r for r in (await db.execute(select(Role))).scalars().all()}
        assert {name: role.level for name, role in roles.items()} == {
            RoleName.SUPER_ADMIN: 1, RoleName.ADMIN: 2, RoleName.MANAGER: 3, RoleName.EMPLOYEE: 4, RoleName.USER: 5,
        }

        admin = (await db.execute(
            select(User).where(User.email == settings.SEED_ADMIN_EMAIL.lower())
        )).scalar_one()
        assert admin.role_id == roles[RoleName.SUPER_ADMIN].id
        assert verify_password(settings.SEED_ADMIN_PASSWORD, admin.password_hash)

        assert await _count(db, SystemConfig) == len(DEFAULT_SYSTEM_CONFIG)

    async def test_default_grants(self, db):
        await seed_database(db)
        roles = {r.name: r for r in (await db.execute(select(Role))).scalars().all()}

        super_codes = await permission_repository.get_codes_by_role_id(db, roles[RoleName.SUPER_ADMIN].id)
        assert len(super_codes) == await _count(db, Permission)

        admin_codes = await permission_repository.get_codes_by_role_id(db, roles[RoleName.ADMIN].id)
        assert {"audit:read", "payment:execute", "venue:manage"} <= admin_codes
        assert "role:update" not in admin_codes

        guest_codes = await permission_repository.get_codes_by_role_id(db, roles[RoleName.USER].id)
        assert "reservation:create" in guest_codes
        assert "audit:read" not in guest_codes

    async def test_idempotent(self, db):
        await seed_database(db)
        counts = [await _count(db, model) for model in (Role, Permission, User, SystemConfig)]
        await seed_database(db)
        assert [await _count(db, model) for model in (Role, Permission, User, SystemConfig)] == counts

    async def test_edited_grants_preserved(self, db):
        await seed_database(db)
        role = (await db.execute(select(Role).where(Role.name == RoleName.MANAGER))).scalar_one()
        audit = (await db.execute(select(Permission).where(Permission.code == "audit:read"))).scalar_one()
        await permission_repository.set_role_permissions(db, role.id, [audit.id])

        await seed_database(db)
        assert await permission_repository.get_codes_by_role_id(db, role.id) == {"audit:read"}
