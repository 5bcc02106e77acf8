"""Auth API tests. Registration, login, token refresh, logout and profile."""

from datetime import timedelta

from httpx import AsyncClient
from sqlalchemy import select

from app.models.token import RefreshToken
from app.utils.dates import utcnow
from app.utils.jwt import create_refresh_token
from tests.conftest import TEST_PASSWORD, auth_header

AUTH = "/api/auth"


async def _login(client: AsyncClient, email: str, password: str = TEST_PASSWORD):
    return await client.post(f"{AUTH}/login", json={"email": email, "password": password})


class TestRegister:

    async def test_register_creates_user_role_account(self, client: AsyncClient, roles):
        res = await client.post(f"{AUTH}/register", json={
            "email": "New.Guest@Example.com",
            "password": "supersecret1",
            "firstName": "New",
            "lastName": "Guest",
        })
        assert res.status_code == 201
        body = res.json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["email"] == "new.guest@example.com"
        assert user["role"] == "USER"
        assert user["roleLevel"] == 5
        assert user["fullName"] == "New Guest"
        assert "venue:read" in user["permissions"]
        assert body["data"]["tokens"]["tokenType"] == "bearer"
        assert body["data"]["tokens"]["accessToken"]

    async def test_register_duplicate_email(self, client: AsyncClient, guest):
        res = await client.post(f"{AUTH}/register", json={
            "email": "GUEST@test.com",
            "password": "supersecret1",
            "firstName": "Dup",
            "lastName": "Licate",
        })
        assert res.status_code == 409
        assert res.json()["error"] == "CONFLICT"

    async def test_register_short_password(self, client: AsyncClient, roles):
        res = await client.post(f"{AUTH}/register", json={
            "email": "short@test.com",
            "password": "short",
            "firstName": "Short",
            "lastName": "Pw",
        })
        assert res.status_code == 422
        body = res.json()
        assert body["success"] is False
        assert body["error"] == "VALIDATION_ERROR"
        assert body["details"]

    async def test_register_without_seeded_roles(self, client: AsyncClient):
        res = await client.post(f"{AUTH}/register", json={
            "email": "early@test.com",
            "password": "supersecret1",
            "firstName": "Too",
            "lastName": "Early",
        })
        assert res.status_code == 400


class TestLogin:

    async def test_login_success(self, client: AsyncClient, guest):
        res = await _login(client, "guest@test.com")
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["user"]["email"] == "guest@test.com"
        assert data["tokens"]["refreshToken"]
        assert data["tokens"]["expiresIn"] > 0
        assert guest.last_login_at is not None

    async def test_login_is_case_insensitive(self, client: AsyncClient, guest):
        res = await _login(client, "Guest@Test.com")
        assert res.status_code == 200

    async def test_login_wrong_password(self, client: AsyncClient, guest):
        res = await _login(client, "guest@test.com", "wrong-password")
        assert res.status_code == 401
        body = res.json()
        assert body["success"] is False
        assert body["error"] == "UNAUTHORIZED"

    async def test_login_unknown_email(self, client: AsyncClient, roles):
        res = await _login(client, "nobody@test.com")
        assert res.status_code == 401

    async def test_login_inactive_user(self, client: AsyncClient, db, guest):
        guest.is_active = False
        await db.flush()
        res = await _login(client, "guest@test.com")
        assert res.status_code == 403

    async def test_login_replaces_previous_refresh_tokens(self, client: AsyncClient, db, guest):
        await _login(client, "guest@test.com")
        await _login(client, "guest@test.com")
        tokens = (await db.execute(select(RefreshToken).where(RefreshToken.user_id == guest.id))).scalars().all()
        assert len(tokens) == 1


class TestRefreshAndLogout:

    async def test_refresh_rotates_token(self, client: AsyncClient, guest):
        tokens = (await _login(client, "guest@test.com")).json()["data"]["tokens"]
        res = await client.post(f"{AUTH}/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert res.status_code == 200
        new_tokens = res.json()["data"]
        assert new_tokens["refreshToken"] != tokens["refreshToken"]

        # The old token is gone after rotation
        res = await client.post(f"{AUTH}/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert res.status_code == 401

    async def test_refresh_unknown_token(self, client: AsyncClient, guest):
        res = await client.post(f"{AUTH}/refresh", json={"refreshToken": "not-a-token"})
        assert res.status_code == 401

    async def test_refresh_expired_token(self, client: AsyncClient, db, guest):
        token = create_refresh_token({"sub": str(guest.id)})
        db.add(RefreshToken(user_id=guest.id, token=token, expires_at=utcnow() - timedelta(minutes=1)))
        await db.flush()
        res = await client.post(f"{AUTH}/refresh", json={"refreshToken": token})
        assert res.status_code == 401
        assert "expired" in res.json()["message"]

    async def test_refresh_token_rejected_as_access_token(self, client: AsyncClient, guest):
        tokens = (await _login(client, "guest@test.com")).json()["data"]["tokens"]
        res = await client.get(f"{AUTH}/profile", headers=auth_header(tokens["refreshToken"]))
        assert res.status_code == 401

    async def test_logout_revokes_refresh_token(self, client: AsyncClient, guest, guest_token):
        tokens = (await _login(client, "guest@test.com")).json()["data"]["tokens"]
        res = await client.post(
            f"{AUTH}/logout", json={"refreshToken": tokens["refreshToken"]}, headers=auth_header(guest_token)
        )
        assert res.status_code == 200
        res = await client.post(f"{AUTH}/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert res.status_code == 401


class TestProfile:

    async def test_profile_requires_auth(self, client: AsyncClient):
        res = await client.get(f"{AUTH}/profile")
        assert res.status_code == 401
        assert res.json()["success"] is False

    async def test_profile_with_bad_token(self, client: AsyncClient):
        res = await client.get(f"{AUTH}/profile", headers=auth_header("garbage"))
        assert res.status_code == 401

    async def test_get_profile(self, client: AsyncClient, guest, guest_token):
        res = await client.get(f"{AUTH}/profile", headers=auth_header(guest_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["id"] == str(guest.id)
        assert data["firstName"] == "Gina"

    async def test_update_profile(self, client: AsyncClient, guest, guest_token):
        res = await client.put(
            f"{AUTH}/profile", json={"firstName": "Georgina", "phone": "+52 998 000 0000"},
            headers=auth_header(guest_token),
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["firstName"] == "Georgina"
        assert data["lastName"] == "Guest"
        assert data["phone"] == "+52 998 000 0000"

    async def test_change_password(self, client: AsyncClient, guest, guest_token):
        res = await client.post(
            f"{AUTH}/change-password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "brand-new-pass"},
            headers=auth_header(guest_token),
        )
        assert res.status_code == 200
        assert (await _login(client, "guest@test.com")).status_code == 401
        assert (await _login(client, "guest@test.com", "brand-new-pass")).status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, guest, guest_token):
        res = await client.post(
            f"{AUTH}/change-password",
            json={"currentPassword": "not-my-password", "newPassword": "brand-new-pass"},
            headers=auth_header(guest_token),
        )
        assert res.status_code == 400

    async def test_change_password_same_as_current(self, client: AsyncClient, guest, guest_token):
        res = await client.post(
            f"{AUTH}/change-password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": TEST_PASSWORD},
            headers=auth_header(guest_token),
        )
        assert res.status_code == 400
