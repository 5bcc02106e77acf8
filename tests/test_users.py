"""User, role and permission API tests."""

from httpx import AsyncClient
from sqlalchemy import select

from app.models.audit_log import AdminAuditLog
from app.models.user import Role, RoleName
from tests.conftest import auth_header, create_user

USERS = "/api/users"
ROLES = "/api/admin/roles"
PERMISSIONS = "/api/admin/permissions"


class TestUserList:

    async def test_manager_lists_users(self, client: AsyncClient, guest, manager_token):
        res = await client.get(USERS, headers=auth_header(manager_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["pagination"]["total"] == 2
        assert {u["email"] for u in data["items"]} == {"guest@test.com", "manager@test.com"}

    async def test_filter_by_role_and_search(self, client: AsyncClient, guest, other_guest, admin_user, admin_token):
        res = await client.get(USERS, params={"role": "USER", "search": "oscar"}, headers=auth_header(admin_token))
        items = res.json()["data"]["items"]
        assert [u["email"] for u in items] == ["other@test.com"]

    async def test_guest_cannot_list(self, client: AsyncClient, guest_token):
        res = await client.get(USERS, headers=auth_header(guest_token))
        assert res.status_code == 403
        assert res.json()["error"] == "FORBIDDEN"

    async def test_pagination(self, client: AsyncClient, db, roles, super_admin_token):
        for i in range(11):
            await create_user(db, roles[RoleName.USER], f"paged{i:02d}@test.com")

        seen = set()
        for page, size, has_next, has_prev in ((1, 5, True, False), (2, 5, True, True), (3, 1, False, True)):
            res = await client.get(
                USERS, params={"role": "USER", "page": page, "limit": 5}, headers=auth_header(super_admin_token)
            )
            data = res.json()["data"]
            assert len(data["items"]) == size
            assert data["pagination"]["total"] == 11
            assert data["pagination"]["totalPages"] == 3
            assert data["pagination"]["hasNext"] is has_next
            assert data["pagination"]["hasPrev"] is has_prev
            seen.update(u["email"] for u in data["items"])
        assert len(seen) == 11

    async def test_pagination_is_clamped(self, client: AsyncClient, guest, admin_token):
        res = await client.get(USERS, params={"page": 0, "limit": 1000}, headers=auth_header(admin_token))
        pagination = res.json()["data"]["pagination"]
        assert pagination["page"] == 1
        assert pagination["limit"] == 100


class TestUserCrud:

    async def test_admin_creates_user(self, client: AsyncClient, db, admin_user, admin_token):
        res = await client.post(USERS, json={
            "email": "Clerk@Test.com",
            "password": "clerkpass1",
            "firstName": "Carla",
            "lastName": "Clerk",
            "role": "EMPLOYEE",
        }, headers=auth_header(admin_token))
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["email"] == "clerk@test.com"
        assert data["role"] == "EMPLOYEE"

        logs = (await db.execute(select(AdminAuditLog))).scalars().all()
        assert len(logs) == 1
        assert logs[0].admin_user_email == "owner@test.com"

    async def test_admin_cannot_create_super_admin(self, client: AsyncClient, admin_token):
        res = await client.post(USERS, json={
            "email": "boss@test.com",
            "password": "bosspass12",
            "firstName": "Big",
            "lastName": "Boss",
            "role": "SUPER_ADMIN",
        }, headers=auth_header(admin_token))
        assert res.status_code == 403

    async def test_create_with_unknown_role(self, client: AsyncClient, admin_token):
        res = await client.post(USERS, json={
            "email": "x@test.com",
            "password": "whatever12",
            "firstName": "X",
            "lastName": "Y",
            "role": "WIZARD",
        }, headers=auth_header(admin_token))
        assert res.status_code == 400

    async def test_user_reads_self_but_not_others(self, client: AsyncClient, guest, other_guest, guest_token):
        res = await client.get(f"{USERS}/{guest.id}", headers=auth_header(guest_token))
        assert res.status_code == 200
        res = await client.get(f"{USERS}/{other_guest.id}", headers=auth_header(guest_token))
        assert res.status_code == 403

    async def test_unknown_user(self, client: AsyncClient, manager_token):
        res = await client.get(f"{USERS}/00000000-0000-0000-0000-000000000000", headers=auth_header(manager_token))
        assert res.status_code == 404
        assert res.json()["error"] == "NOT_FOUND"

    async def test_user_updates_own_profile_fields(self, client: AsyncClient, guest, guest_token):
        res = await client.put(f"{USERS}/{guest.id}", json={"lastName": "Traveller"}, headers=auth_header(guest_token))
        assert res.status_code == 200
        assert res.json()["data"]["fullName"] == "Gina Traveller"

    async def test_user_cannot_change_own_role(self, client: AsyncClient, guest, guest_token):
        res = await client.put(f"{USERS}/{guest.id}", json={"role": "ADMIN"}, headers=auth_header(guest_token))
        assert res.status_code == 403

    async def test_admin_changes_role(self, client: AsyncClient, guest, admin_token):
        res = await client.put(f"{USERS}/{guest.id}", json={"role": "MANAGER"}, headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["role"] == "MANAGER"
        assert data["roleLevel"] == 3

    async def test_update_duplicate_email(self, client: AsyncClient, guest, other_guest, admin_token):
        res = await client.put(
            f"{USERS}/{guest.id}", json={"email": "other@test.com"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 409

    async def test_admin_deactivates_user(self, client: AsyncClient, guest, admin_token):
        res = await client.delete(f"{USERS}/{guest.id}", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert guest.is_active is False

        # Deactivated users can no longer authenticate
        res = await client.post("/api/auth/login", json={"email": "guest@test.com", "password": "password123"})
        assert res.status_code == 403

    async def test_cannot_deactivate_self(self, client: AsyncClient, admin_user, admin_token):
        res = await client.delete(f"{USERS}/{admin_user.id}", headers=auth_header(admin_token))
        assert res.status_code == 400

    async def test_admin_cannot_deactivate_super_admin(self, client: AsyncClient, super_admin, admin_token):
        res = await client.delete(f"{USERS}/{super_admin.id}", headers=auth_header(admin_token))
        assert res.status_code == 403


class TestRoles:

    async def test_list_roles_ordered_by_level(self, client: AsyncClient, super_admin_token):
        res = await client.get(ROLES, headers=auth_header(super_admin_token))
        assert res.status_code == 200
        names = [r["name"] for r in res.json()["data"]]
        assert names == ["SUPER_ADMIN", "ADMIN", "MANAGER", "EMPLOYEE", "USER"]

    async def test_admin_cannot_manage_roles(self, client: AsyncClient, admin_token):
        res = await client.get(ROLES, headers=auth_header(admin_token))
        assert res.status_code == 403

    async def test_create_update_delete_custom_role(self, client: AsyncClient, super_admin_token):
        res = await client.post(
            ROLES, json={"name": "auditor", "description": "Read-only", "level": 4},
            headers=auth_header(super_admin_token),
        )
        assert res.status_code == 201
        role = res.json()["data"]
        assert role["name"] == "AUDITOR"
        assert role["isSystem"] is False

        res = await client.put(
            f"{ROLES}/{role['id']}", json={"description": "Reads reports"}, headers=auth_header(super_admin_token)
        )
        assert res.json()["data"]["description"] == "Reads reports"

        res = await client.delete(f"{ROLES}/{role['id']}", headers=auth_header(super_admin_token))
        assert res.status_code == 200

    async def test_duplicate_role_name(self, client: AsyncClient, super_admin_token):
        res = await client.post(ROLES, json={"name": "manager", "level": 3}, headers=auth_header(super_admin_token))
        assert res.status_code == 409

    async def test_system_role_cannot_be_deleted(self, client: AsyncClient, roles, super_admin_token):
        res = await client.delete(f"{ROLES}/{roles['EMPLOYEE'].id}", headers=auth_header(super_admin_token))
        assert res.status_code == 400

    async def test_system_role_cannot_be_renamed(self, client: AsyncClient, roles, super_admin_token):
        res = await client.put(
            f"{ROLES}/{roles['USER'].id}", json={"name": "CUSTOMER"}, headers=auth_header(super_admin_token)
        )
        assert res.status_code == 400

    async def test_role_with_users_cannot_be_deleted(self, client: AsyncClient, db, super_admin_token):
        from tests.conftest import create_user

        role = Role(name="TEMP", level=6, is_system=False)
        db.add(role)
        await db.flush()
        await create_user(db, role, "temp@test.com")

        res = await client.delete(f"{ROLES}/{role.id}", headers=auth_header(super_admin_token))
        assert res.status_code == 400


class TestPermissions:

    async def test_catalogue_is_complete(self, client: AsyncClient, admin_token):
        res = await client.get(PERMISSIONS, headers=auth_header(admin_token))
        assert res.status_code == 200
        codes = {p["code"] for p in res.json()["data"]}
        assert len(codes) == 60
        assert {"venue:read", "payment:execute", "audit:manage"} <= codes

    async def test_filter_by_module(self, client: AsyncClient, admin_token):
        res = await client.get(PERMISSIONS, params={"module": "PAYMENT"}, headers=auth_header(admin_token))
        assert {p["module"] for p in res.json()["data"]} == {"PAYMENT"}

    async def test_manager_lacks_permission_read(self, client: AsyncClient, manager_token):
        res = await client.get(PERMISSIONS, headers=auth_header(manager_token))
        assert res.status_code == 403
        assert "permission:read" in res.json()["message"]

    async def test_replace_role_permissions(self, client: AsyncClient, roles, super_admin_token):
        url = f"{ROLES}/{roles['EMPLOYEE'].id}/permissions"
        res = await client.put(
            url, json={"permissions": ["reservation:read", "venue:read", "venue:read"]},
            headers=auth_header(super_admin_token),
        )
        assert res.status_code == 200
        assert sorted(p["code"] for p in res.json()["data"]) == ["reservation:read", "venue:read"]

        res = await client.get(url, headers=auth_header(super_admin_token))
        assert len(res.json()["data"]) == 2

    async def test_unknown_permission_code(self, client: AsyncClient, roles, super_admin_token):
        res = await client.put(
            f"{ROLES}/{roles['EMPLOYEE'].id}/permissions", json={"permissions": ["venue:fly"]},
            headers=auth_header(super_admin_token),
        )
        assert res.status_code == 404

    async def test_granted_permission_opens_endpoint(self, client: AsyncClient, roles, manager_token, super_admin_token):
        res = await client.put(
            f"{ROLES}/{roles['MANAGER'].id}/permissions", json={"permissions": ["permission:read"]},
            headers=auth_header(super_admin_token),
        )
        assert res.status_code == 200
        res = await client.get(PERMISSIONS, headers=auth_header(manager_token))
        assert res.status_code == 200
