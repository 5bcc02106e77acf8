"""System configuration tests. SUPER_ADMIN key/value management and the public view."""

from httpx import AsyncClient
from sqlalchemy import select

from app.models.audit_log import AdminAuditLog, AuditAction
from app.seed import seed_system_config
from tests.conftest import auth_header

ADMIN_CONFIG = "/api/admin/system-config"
PUBLIC_CONFIG = "/api/system-config/public"


class TestPublicConfig:

    async def test_public_values(self, client: AsyncClient, db):
        await seed_system_config(db)
        res = await client.get(PUBLIC_CONFIG)
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["billing.currency"] == "MXN"
        assert data["billing.tax_rate"] == 0.16
        assert data["reservations.cancellation_policy"]["fullRefundHours"] == 48
        assert data["maintenance.enabled"] is False

    async def test_private_entries_hidden(self, client: AsyncClient, super_admin_token):
        await client.put(
            f"{ADMIN_CONFIG}/stripe.mode", json={"value": "live", "category": "billing"},
            headers=auth_header(super_admin_token),
        )
        res = await client.get(PUBLIC_CONFIG)
        assert "stripe.mode" not in res.json()["data"]


class TestAdminConfig:

    async def test_create_and_replace(self, client: AsyncClient, db, super_admin, super_admin_token):
        url = f"{ADMIN_CONFIG}/booking.max_guests"
        res = await client.put(url, json={
            "value": 8, "description": "Guest cap per booking", "category": "reservations", "isPublic": True,
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["value"] == 8
        assert data["isPublic"] is True
        assert data["updatedBy"] == str(super_admin.id)

        res = await client.put(url, json={"value": 10, "category": "reservations"}, headers=auth_header(super_admin_token))
        data = res.json()["data"]
        assert data["value"] == 10
        assert data["isPublic"] is False

        logs = (await db.execute(
            select(AdminAuditLog).where(AdminAuditLog.action == AuditAction.SYSTEM_CONFIG_UPDATE)
        )).scalars().all()
        assert len(logs) == 2
        assert [log.old_values for log in logs if log.old_values] == [
            {"value": 8, "category": "reservations", "isPublic": True},
        ]

    async def test_list_by_category(self, client: AsyncClient, db, super_admin_token):
        await seed_system_config(db)
        res = await client.get(ADMIN_CONFIG, params={"category": "billing"}, headers=auth_header(super_admin_token))
        assert [e["key"] for e in res.json()["data"]] == ["billing.currency", "billing.tax_rate"]

        res = await client.get(ADMIN_CONFIG, headers=auth_header(super_admin_token))
        categories = [e["category"] for e in res.json()["data"]]
        assert categories == sorted(categories)

    async def test_get_and_delete(self, client: AsyncClient, db, super_admin_token):
        await seed_system_config(db)
        url = f"{ADMIN_CONFIG}/maintenance.enabled"
        res = await client.get(url, headers=auth_header(super_admin_token))
        assert res.json()["data"]["value"] is False

        res = await client.delete(url, headers=auth_header(super_admin_token))
        assert res.status_code == 200
        assert (await client.get(url, headers=auth_header(super_admin_token))).status_code == 404

    async def test_unknown_key(self, client: AsyncClient, super_admin_token):
        res = await client.delete(f"{ADMIN_CONFIG}/nope", headers=auth_header(super_admin_token))
        assert res.status_code == 404
        assert "nope" in res.json()["message"]

    async def test_admin_forbidden(self, client: AsyncClient, admin_token):
        res = await client.put(f"{ADMIN_CONFIG}/x", json={"value": 1}, headers=auth_header(admin_token))
        assert res.status_code == 403
        assert (await client.get(ADMIN_CONFIG, headers=auth_header(admin_token))).status_code == 403

    async def test_seed_is_idempotent(self, client: AsyncClient, db, super_admin_token):
        await seed_system_config(db)
        await seed_system_config(db)
        res = await client.get(ADMIN_CONFIG, headers=auth_header(super_admin_token))
        keys = [e["key"] for e in res.json()["data"]]
        assert len(keys) == len(set(keys)) == 6
