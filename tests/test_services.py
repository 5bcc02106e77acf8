"""Service catalogue API tests. Listing, availability search, stats and owner management."""

from datetime import timedelta
from decimal import Decimal

from httpx import AsyncClient

from app.models.reservation import ReservationStatus
from app.models.venue import Service
from app.utils.dates import utcnow
from tests.conftest import auth_header, create_reservation, make_token

SERVICES = "/api/services"


class TestServiceList:

    async def test_ordered_by_price(self, client: AsyncClient, service, spa_service):
        res = await client.get(SERVICES)
        assert res.status_code == 200
        items = res.json()["data"]["items"]
        assert [s["name"] for s in items] == ["Hot Stone Massage", "Ocean View Suite"]
        assert items[0]["venueName"] == "Hotel Playa"
        assert items[0]["price"] == 500.0

    async def test_filters(self, client: AsyncClient, venue, service, spa_service):
        res = await client.get(SERVICES, params={"category": "spa_wellness"})
        assert [s["name"] for s in res.json()["data"]["items"]] == ["Hot Stone Massage"]

        res = await client.get(SERVICES, params={"capacity": 3})
        assert [s["name"] for s in res.json()["data"]["items"]] == ["Hot Stone Massage"]

        res = await client.get(SERVICES, params={"minPrice": 600, "venueId": str(venue.id)})
        assert [s["name"] for s in res.json()["data"]["items"]] == ["Ocean View Suite"]

        res = await client.get(SERVICES, params={"duration": 90})
        assert [s["name"] for s in res.json()["data"]["items"]] == ["Hot Stone Massage"]

    async def test_pagination(self, client: AsyncClient, db, venue):
        for i in range(11):
            db.add(Service(
                venue_id=venue.id, name=f"Room {i:02d}", category="ACCOMMODATION",
                price=Decimal(100 + i), currency="MXN", capacity=2, images=[], amenities=[],
            ))
        await db.flush()

        res = await client.get(SERVICES, params={"limit": 5})
        data = res.json()["data"]
        assert [s["name"] for s in data["items"]] == [f"Room {i:02d}" for i in range(5)]
        assert data["pagination"]["totalPages"] == 3
        assert data["pagination"]["hasNext"] is True
        assert data["pagination"]["hasPrev"] is False

        res = await client.get(SERVICES, params={"page": 2, "limit": 5})
        data = res.json()["data"]
        assert [s["name"] for s in data["items"]] == [f"Room {i:02d}" for i in range(5, 10)]
        assert data["pagination"]["hasNext"] is True
        assert data["pagination"]["hasPrev"] is True

        res = await client.get(SERVICES, params={"page": 3, "limit": 5})
        data = res.json()["data"]
        assert [s["name"] for s in data["items"]] == ["Room 10"]
        assert data["pagination"]["hasNext"] is False

    async def test_inactive_services_hidden(self, client: AsyncClient, db, service, spa_service):
        spa_service.is_active = False
        await db.flush()
        res = await client.get(SERVICES)
        assert res.json()["data"]["pagination"]["total"] == 1
        assert (await client.get(f"{SERVICES}/{spa_service.id}")).status_code == 404

    async def test_get_service(self, client: AsyncClient, service):
        res = await client.get(f"{SERVICES}/{service.id}")
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["capacity"] == 2
        assert data["duration"] is None
        assert data["isAvailable"] is True


class TestAvailability:

    async def test_fully_booked_service_excluded(self, client: AsyncClient, db, guest, service, spa_service):
        booked = await create_reservation(
            db, guest, service, guests=2, status=ReservationStatus.CONFIRMED, code="RSV-FULL0001"
        )
        params = {
            "checkIn": (booked.check_in + timedelta(hours=12)).isoformat(),
            "checkOut": (booked.check_in + timedelta(days=1)).isoformat(),
        }
        res = await client.get(f"{SERVICES}/available", params=params)
        assert res.status_code == 200
        data = res.json()["data"]
        assert [s["name"] for s in data] == ["Hot Stone Massage"]
        assert data[0]["remainingCapacity"] == 4
        assert data[0]["reservedGuests"] == 0

    async def test_pending_reservations_do_not_block(self, client: AsyncClient, db, guest, service):
        booked = await create_reservation(db, guest, service, guests=2, code="RSV-PEND0001")
        params = {
            "checkIn": booked.check_in.isoformat(),
            "checkOut": booked.check_out.isoformat(),
        }
        res = await client.get(f"{SERVICES}/available", params=params)
        assert [s["name"] for s in res.json()["data"]] == ["Ocean View Suite"]

    async def test_partial_capacity_reported(self, client: AsyncClient, db, guest, service):
        booked = await create_reservation(db, guest, service, status=ReservationStatus.CHECKED_IN, code="RSV-PART0001")
        params = {
            "checkIn": booked.check_in.isoformat(),
            "checkOut": booked.check_out.isoformat(),
        }
        data = (await client.get(f"{SERVICES}/available", params=params)).json()["data"]
        assert data[0]["reservedGuests"] == 1
        assert data[0]["remainingCapacity"] == 1

        params["guests"] = 2
        data = (await client.get(f"{SERVICES}/available", params=params)).json()["data"]
        assert data == []

    async def test_unavailable_service_excluded(self, client: AsyncClient, db, service):
        service.is_available = False
        await db.flush()
        start = utcnow() + timedelta(days=3)
        params = {"checkIn": start.isoformat(), "checkOut": (start + timedelta(days=1)).isoformat()}
        assert (await client.get(f"{SERVICES}/available", params=params)).json()["data"] == []

    async def test_range_must_be_ordered(self, client: AsyncClient, service):
        start = utcnow() + timedelta(days=3)
        params = {"checkIn": start.isoformat(), "checkOut": start.isoformat()}
        res = await client.get(f"{SERVICES}/available", params=params)
        assert res.status_code == 400
        assert res.json()["error"] == "BAD_REQUEST"


class TestPopularServices:

    async def test_most_reserved_first(self, client: AsyncClient, db, guest, service, spa_service):
        await create_reservation(db, guest, service, code="RSV-POPS0001")
        await create_reservation(db, guest, service, days_ahead=20, code="RSV-POPS0002")
        res = await client.get(f"{SERVICES}/popular")
        data = res.json()["data"]
        assert [s["name"] for s in data] == ["Ocean View Suite", "Hot Stone Massage"]
        assert [s["reservationCount"] for s in data] == [2, 0]


class TestServiceManagement:

    async def test_owner_creates_service(self, client: AsyncClient, venue, admin_token):
        res = await client.post(SERVICES, json={
            "venueId": str(venue.id),
            "name": "Sunset Tour",
            "category": "TOUR_EXPERIENCE",
            "price": 850,
            "currency": "usd",
            "capacity": 12,
            "duration": 180,
        }, headers=auth_header(admin_token))
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["currency"] == "USD"
        assert data["venueName"] == "Hotel Playa"
        assert data["isActive"] is True

    async def test_create_validation(self, client: AsyncClient, venue, admin_token):
        res = await client.post(SERVICES, json={
            "venueId": str(venue.id), "name": "Bad", "category": "SPA_WELLNESS", "price": -1,
        }, headers=auth_header(admin_token))
        assert res.status_code == 422

    async def test_other_admin_cannot_create(self, client: AsyncClient, venue, other_admin):
        res = await client.post(SERVICES, json={
            "venueId": str(venue.id), "name": "Intruder", "category": "DINING", "price": 10,
        }, headers=auth_header(make_token(other_admin)))
        assert res.status_code == 403

    async def test_unknown_venue(self, client: AsyncClient, admin_token):
        res = await client.post(SERVICES, json={
            "venueId": "00000000-0000-0000-0000-000000000000", "name": "Ghost", "category": "DINING", "price": 10,
        }, headers=auth_header(admin_token))
        assert res.status_code == 404

    async def test_update_service(self, client: AsyncClient, service, admin_token):
        res = await client.put(
            f"{SERVICES}/{service.id}", json={"capacity": 3, "description": "Sea view"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["capacity"] == 3
        assert data["description"] == "Sea view"

    async def test_employee_cannot_update(self, client: AsyncClient, service, employee_token):
        res = await client.put(f"{SERVICES}/{service.id}", json={"capacity": 3}, headers=auth_header(employee_token))
        assert res.status_code == 403

    async def test_delete_deactivates(self, client: AsyncClient, service, admin_token):
        res = await client.delete(f"{SERVICES}/{service.id}", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert service.is_active is False
        assert service.is_available is False

    async def test_availability_toggle_and_explicit(self, client: AsyncClient, service, admin_token):
        url = f"{SERVICES}/{service.id}/availability"
        res = await client.patch(url, headers=auth_header(admin_token))
        assert res.json()["data"]["isAvailable"] is False
        res = await client.patch(url, headers=auth_header(admin_token))
        assert res.json()["data"]["isAvailable"] is True
        res = await client.patch(url, json={"isAvailable": True}, headers=auth_header(admin_token))
        assert res.json()["data"]["isAvailable"] is True

    async def test_update_pricing(self, client: AsyncClient, service, admin_token):
        res = await client.patch(
            f"{SERVICES}/{service.id}/pricing", json={"price": 1250.5, "currency": "eur"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["price"] == 1250.5
        assert data["currency"] == "EUR"

    async def test_pricing_keeps_currency_when_omitted(self, client: AsyncClient, service, super_admin_token):
        res = await client.patch(
            f"{SERVICES}/{service.id}/pricing", json={"price": 900}, headers=auth_header(super_admin_token)
        )
        assert res.json()["data"]["currency"] == "MXN"


class TestServiceStats:

    async def test_stats(self, client: AsyncClient, db, guest, service, admin_token):
        await create_reservation(db, guest, service, status=ReservationStatus.CONFIRMED, code="RSV-SSTA0001")
        await create_reservation(db, guest, service, days_ahead=40, status=ReservationStatus.CANCELLED, code="RSV-SSTA0002")

        res = await client.get(f"{SERVICES}/{service.id}/stats", headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["serviceId"] == str(service.id)
        assert data["totalReservations"] == 2
        assert data["reservationsByStatus"] == {"CONFIRMED": 1, "CANCELLED": 1}
        assert data["bookingRate"] == 50.0
        assert data["capacity"] == 2

    async def test_stats_require_ownership(self, client: AsyncClient, service, other_admin):
        res = await client.get(f"{SERVICES}/{service.id}/stats", headers=auth_header(make_token(other_admin)))
        assert res.status_code == 403
