"""Notification and settings API tests.

Covers the caller's notification feed (list, unread count, mark read) and
per-user notification and profile preferences.
"""

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.notification_service import notification_service
from tests.conftest import auth_header, create_payment

NOTIFICATIONS = "/api/notifications"
SETTINGS = "/api/settings"


@pytest_asyncio.fixture
async def notifications(db: AsyncSession, reservation) -> list:
    """Three notifications for the guest: created, confirmed, payment_completed."""
    created = await notification_service.notify_reservation(db, reservation, "created")
    confirmed = await notification_service.notify_reservation(db, reservation, "confirmed")
    payment = await create_payment(db, reservation)
    paid = await notification_service.notify_payment(db, payment, "completed")
    return [created, confirmed, paid]


class TestNotifyHelpers:

    async def test_reservation_notification(self, db, reservation):
        notification = await notification_service.notify_reservation(db, reservation, "cancelled")
        assert notification.user_id == reservation.user_id
        assert notification.type == "reservation_cancelled"
        assert notification.title == "Reserva cancelada"
        assert notification.reference_type == "reservation"
        assert notification.reference_id == reservation.id
        assert "RSV-TEST0001" in notification.message

    async def test_unknown_reservation_event_title(self, db, reservation):
        notification = await notification_service.notify_reservation(db, reservation, "moved")
        assert notification.title == "Reserva actualizada"

    async def test_payment_notification(self, db, reservation):
        payment = await create_payment(db, reservation)
        notification = await notification_service.notify_payment(db, payment, "refunded")
        assert notification.type == "payment_refunded"
        assert notification.title == "Pago reembolsado"
        assert notification.message == "Pago de 2000.00 MXN: refunded"


class TestNotificationFeed:

    async def test_list(self, client: AsyncClient, notifications, guest_token):
        res = await client.get(NOTIFICATIONS, headers=auth_header(guest_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["pagination"]["total"] == 3
        assert {n["type"] for n in data["items"]} == {
            "reservation_created", "reservation_confirmed", "payment_completed",
        }
        assert all(n["isRead"] is False for n in data["items"])

    async def test_other_user_sees_nothing(self, client: AsyncClient, notifications, other_guest_token):
        res = await client.get(NOTIFICATIONS, headers=auth_header(other_guest_token))
        assert res.json()["data"]["pagination"]["total"] == 0

    async def test_requires_auth(self, client: AsyncClient):
        res = await client.get(NOTIFICATIONS)
        assert res.status_code == 401

    async def test_unread_count(self, client: AsyncClient, notifications, guest_token):
        res = await client.get(f"{NOTIFICATIONS}/unread-count", headers=auth_header(guest_token))
        assert res.json()["data"] == {"unreadCount": 3}

    async def test_mark_read(self, client: AsyncClient, notifications, guest_token):
        target = notifications[0]
        res = await client.patch(f"{NOTIFICATIONS}/{target.id}/read", headers=auth_header(guest_token))
        assert res.status_code == 200
        assert target.is_read is True

        res = await client.get(NOTIFICATIONS, params={"unreadOnly": "true"}, headers=auth_header(guest_token))
        assert res.json()["data"]["pagination"]["total"] == 2

    async def test_cannot_mark_others_notification(self, client: AsyncClient, notifications, other_guest_token):
        res = await client.patch(f"{NOTIFICATIONS}/{notifications[0].id}/read", headers=auth_header(other_guest_token))
        assert res.status_code == 404
        assert notifications[0].is_read is False

    async def test_mark_all_read(self, client: AsyncClient, notifications, guest_token):
        res = await client.patch(f"{NOTIFICATIONS}/read-all", headers=auth_header(guest_token))
        assert res.status_code == 200
        assert res.json()["data"] == {"updated": 3}

        res = await client.patch(f"{NOTIFICATIONS}/read-all", headers=auth_header(guest_token))
        assert res.json()["data"] == {"updated": 0}

        res = await client.get(f"{NOTIFICATIONS}/unread-count", headers=auth_header(guest_token))
        assert res.json()["data"]["unreadCount"] == 0


class TestNotificationSettings:

    async def test_defaults(self, client: AsyncClient, guest_token):
        res = await client.get(f"{SETTINGS}/notifications", headers=auth_header(guest_token))
        assert res.status_code == 200
        assert res.json()["data"] == {
            "emailNotifications": True,
            "pushNotifications": True,
            "marketingEmails": False,
            "reservationReminders": True,
        }

    async def test_partial_update(self, client: AsyncClient, guest_token):
        res = await client.put(
            f"{SETTINGS}/notifications", json={"marketingEmails": True, "pushNotifications": None},
            headers=auth_header(guest_token),
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["marketingEmails"] is True
        assert data["pushNotifications"] is True

        res = await client.get(f"{SETTINGS}/notifications", headers=auth_header(guest_token))
        assert res.json()["data"]["marketingEmails"] is True


class TestProfileSettings:

    async def test_get_profile(self, client: AsyncClient, guest_token):
        res = await client.get(f"{SETTINGS}/profile", headers=auth_header(guest_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["firstName"] == "Gina"
        assert data["email"] == "guest@test.com"
        assert data["language"] == "es"
        assert data["timezone"] == "America/Mexico_City"

    async def test_update_splits_user_and_preferences(self, client: AsyncClient, guest, guest_token):
        res = await client.put(f"{SETTINGS}/profile", json={
            "firstName": "Georgina", "phone": "+52 998 000 0000", "language": "en", "timezone": "America/Cancun",
        }, headers=auth_header(guest_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["firstName"] == "Georgina"
        assert data["lastName"] == "Guest"
        assert data["language"] == "en"
        assert data["timezone"] == "America/Cancun"
        assert guest.phone == "+52 998 000 0000"

    async def test_phone_can_be_cleared(self, client: AsyncClient, db, guest, guest_token):
        guest.phone = "+52 1"
        await db.flush()
        res = await client.put(f"{SETTINGS}/profile", json={"phone": None}, headers=auth_header(guest_token))
        assert res.json()["data"]["phone"] is None

    async def test_empty_name_rejected(self, client: AsyncClient, guest_token):
        res = await client.put(f"{SETTINGS}/profile", json={"firstName": ""}, headers=auth_header(guest_token))
        assert res.status_code == 422
