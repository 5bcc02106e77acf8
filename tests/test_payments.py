"""Payment API tests. Stripe calls are patched on the gateway singleton."""

import threading
from decimal import Decimal
from unittest.mock import patch

import pytest
import stripe
from httpx import AsyncClient
from sqlalchemy import func, select

from app.config import settings
from app.models.notification import Notification
from app.models.payment import Payment, PaymentStatus, Receipt
from app.models.reservation import ReservationStatus
from app.services.stripe_gateway import from_cents, stripe_gateway, to_cents
from app.utils.exceptions import PaymentGatewayError
from tests.conftest import auth_header, create_payment, create_reservation, make_token

PAYMENTS = "/api/payments"


def _intent(intent_id: str = "pi_test_1", status: str = "requires_payment_method", amount: int = 200000) -> dict:
    return {
        "id": intent_id,
        "amount": amount,
        "currency": "mxn",
        "status": status,
        "client_secret": f"{intent_id}_secret_abc",
    }


def _event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


async def _count(db, model, *where) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*where))).scalar()


class TestCents:

    def test_to_cents_rounds_half_up(self):
        assert to_cents(Decimal("10.005")) == 1001
        assert to_cents(2000) == 200000

    def test_from_cents(self):
        assert from_cents(123456) == Decimal("1234.56")


class TestGateway:

    async def test_sdk_runs_in_worker_thread(self, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
        calls = []

        def fake_create(**params):
            calls.append((threading.get_ident(), params))
            return {"id": "re_thread"}

        with patch.object(stripe.Refund, "create", side_effect=fake_create):
            refund = await stripe_gateway.create_refund("pi_test_1", Decimal("12.50"))

        assert refund == {"id": "re_thread"}
        thread_id, params = calls[0]
        assert thread_id != threading.get_ident()
        assert params["amount"] == 1250
        assert params["payment_intent"] == "pi_test_1"

    async def test_sdk_error_translated(self, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
        error = stripe.InvalidRequestError("No such payment_intent", "id")
        with patch.object(stripe.PaymentIntent, "retrieve", side_effect=error):
            with pytest.raises(PaymentGatewayError):
                await stripe_gateway.retrieve_payment_intent("pi_missing")


class TestCreateIntent:

    async def test_creates_pending_payment(self, client: AsyncClient, db, reservation, guest_token):
        with patch.object(stripe_gateway, "create_payment_intent", return_value=_intent()) as create:
            res = await client.post(f"{PAYMENTS}/create-intent", json={
                "reservationId": str(reservation.id), "amount": 2000,
            }, headers=auth_header(guest_token))

        assert res.status_code == 201
        data = res.json()["data"]
        assert data["clientSecret"] == "pi_test_1_secret_abc"
        assert data["paymentIntentId"] == "pi_test_1"
        assert data["amount"] == 2000.0

        amount, currency, metadata = create.call_args.args
        assert currency == "mxn"
        assert metadata["reservationId"] == str(reservation.id)
        assert metadata["guestCount"] == "1"

        payment = (await db.execute(select(Payment))).scalar_one()
        assert payment.status == PaymentStatus.PENDING
        assert payment.currency == "MXN"
        assert payment.stripe_payment_id == "pi_test_1"

    async def test_cannot_pay_for_others(self, client: AsyncClient, reservation, other_guest_token):
        with patch.object(stripe_gateway, "create_payment_intent") as create:
            res = await client.post(f"{PAYMENTS}/create-intent", json={
                "reservationId": str(reservation.id), "amount": 2000,
            }, headers=auth_header(other_guest_token))
        assert res.status_code == 403
        create.assert_not_called()

    async def test_cancelled_reservation_rejected(self, client: AsyncClient, db, reservation, guest_token):
        reservation.status = ReservationStatus.CANCELLED
        await db.flush()
        res = await client.post(f"{PAYMENTS}/create-intent", json={
            "reservationId": str(reservation.id), "amount": 2000,
        }, headers=auth_header(guest_token))
        assert res.status_code == 400

    async def test_amount_must_be_positive(self, client: AsyncClient, reservation, guest_token):
        res = await client.post(f"{PAYMENTS}/create-intent", json={
            "reservationId": str(reservation.id), "amount": 0,
        }, headers=auth_header(guest_token))
        assert res.status_code == 422

    async def test_gateway_error_maps_to_502(self, client: AsyncClient, reservation, guest_token):
        with patch.object(stripe_gateway, "create_payment_intent", side_effect=PaymentGatewayError("Card declined")):
            res = await client.post(f"{PAYMENTS}/create-intent", json={
                "reservationId": str(reservation.id), "amount": 2000,
            }, headers=auth_header(guest_token))
        assert res.status_code == 502
        assert res.json()["error"] == "PAYMENT_GATEWAY_ERROR"
        assert res.json()["message"] == "Card declined"

    async def test_unconfigured_gateway(self, client: AsyncClient, reservation, guest_token):
        res = await client.post(f"{PAYMENTS}/create-intent", json={
            "reservationId": str(reservation.id), "amount": 2000,
        }, headers=auth_header(guest_token))
        assert res.status_code == 502


class TestConfirmPayment:

    async def test_succeeded_intent_completes_payment(self, client: AsyncClient, db, reservation, guest_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        with patch.object(stripe_gateway, "retrieve_payment_intent", return_value=_intent(status="succeeded")):
            res = await client.post(
                f"{PAYMENTS}/confirm", json={"paymentIntentId": "pi_test_1"}, headers=auth_header(guest_token)
            )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["paidAt"] is not None
        assert reservation.status == ReservationStatus.CONFIRMED
        assert await _count(db, Receipt, Receipt.payment_id == payment.id) == 1

    async def test_processing_intent(self, client: AsyncClient, db, reservation, guest_token):
        await create_payment(db, reservation, status=PaymentStatus.PENDING)
        with patch.object(stripe_gateway, "retrieve_payment_intent", return_value=_intent(status="processing")):
            res = await client.post(
                f"{PAYMENTS}/confirm", json={"paymentIntentId": "pi_test_1"}, headers=auth_header(guest_token)
            )
        assert res.json()["data"]["status"] == "PROCESSING"
        assert reservation.status == ReservationStatus.PENDING

    async def test_refunded_payment_not_reopened(self, client: AsyncClient, db, reservation, guest_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.REFUNDED)
        payment.refunded_amount = payment.amount
        reservation.status = ReservationStatus.CANCELLED
        await db.flush()

        with patch.object(stripe_gateway, "retrieve_payment_intent", return_value=_intent(status="succeeded")):
            res = await client.post(
                f"{PAYMENTS}/confirm", json={"paymentIntentId": "pi_test_1"}, headers=auth_header(guest_token)
            )
        assert res.status_code == 200
        assert res.json()["data"]["status"] == "REFUNDED"
        assert reservation.status == ReservationStatus.CANCELLED
        assert await _count(db, Receipt, Receipt.payment_id == payment.id) == 0

    async def test_unknown_intent(self, client: AsyncClient, guest, guest_token):
        res = await client.post(
            f"{PAYMENTS}/confirm", json={"paymentIntentId": "pi_missing"}, headers=auth_header(guest_token)
        )
        assert res.status_code == 404

    async def test_other_guest_forbidden(self, client: AsyncClient, db, reservation, other_guest_token):
        await create_payment(db, reservation, status=PaymentStatus.PENDING)
        res = await client.post(
            f"{PAYMENTS}/confirm", json={"paymentIntentId": "pi_test_1"}, headers=auth_header(other_guest_token)
        )
        assert res.status_code == 403


class TestWebhook:

    async def _post(self, client: AsyncClient, event: dict):
        with patch.object(stripe_gateway, "construct_event", return_value=event):
            return await client.post(
                f"{PAYMENTS}/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
            )

    async def test_missing_signature(self, client: AsyncClient):
        res = await client.post(f"{PAYMENTS}/webhook", content=b"{}")
        assert res.status_code == 400

    async def test_invalid_signature_without_secret(self, client: AsyncClient):
        res = await client.post(f"{PAYMENTS}/webhook", content=b"{}", headers={"stripe-signature": "bad"})
        assert res.status_code == 400

    async def test_succeeded_is_idempotent(self, client: AsyncClient, db, guest, reservation):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        event = _event("payment_intent.succeeded", _intent(status="succeeded"))

        first = await self._post(client, event)
        second = await self._post(client, event)
        assert first.status_code == 200
        assert first.json()["data"] == {"received": True, "type": "payment_intent.succeeded", "handled": True}
        assert second.status_code == 200

        assert payment.status == PaymentStatus.COMPLETED
        assert reservation.status == ReservationStatus.CONFIRMED
        assert await _count(db, Receipt, Receipt.payment_id == payment.id) == 1
        assert await _count(
            db, Notification, Notification.user_id == guest.id, Notification.type == "payment_completed"
        ) == 1

    async def test_payment_failed(self, client: AsyncClient, db, reservation):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        intent = _intent(status="requires_payment_method")
        intent["last_payment_error"] = {"message": "Your card was declined."}
        await self._post(client, _event("payment_intent.payment_failed", intent))

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Your card was declined."
        assert reservation.status == ReservationStatus.CANCELLED

    async def test_canceled_intent(self, client: AsyncClient, db, reservation):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        await self._post(client, _event("payment_intent.canceled", _intent(status="canceled")))
        assert payment.status == PaymentStatus.CANCELLED
        assert reservation.status == ReservationStatus.CANCELLED

    async def test_full_charge_refund(self, client: AsyncClient, db, reservation):
        payment = await create_payment(db, reservation)
        charge = {"id": "ch_1", "payment_intent": "pi_test_1", "amount_refunded": 200000}
        await self._post(client, _event("charge.refunded", charge))

        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_at is not None
        assert reservation.status == ReservationStatus.CANCELLED

    async def test_partial_charge_refund(self, client: AsyncClient, db, reservation):
        payment = await create_payment(db, reservation)
        charge = {"id": "ch_1", "payment_intent": "pi_test_1", "amount_refunded": 50000}
        await self._post(client, _event("charge.refunded", charge))
        await self._post(client, _event("charge.refunded", charge))

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.refunded_amount == Decimal("500.00")
        assert payment.metadata_["partialRefundAmount"] == 500.0

    async def test_late_success_after_refund(self, client: AsyncClient, db, guest, reservation):
        payment = await create_payment(db, reservation)
        charge = {"id": "ch_1", "payment_intent": "pi_test_1", "amount_refunded": 200000}
        await self._post(client, _event("charge.refunded", charge))
        res = await self._post(client, _event("payment_intent.succeeded", _intent(status="succeeded")))

        assert res.status_code == 200
        assert payment.status == PaymentStatus.REFUNDED
        assert reservation.status == ReservationStatus.CANCELLED
        assert await _count(
            db, Notification, Notification.user_id == guest.id, Notification.type == "payment_completed"
        ) == 0

    async def test_completed_payment_ignores_failure(self, client: AsyncClient, db, reservation):
        payment = await create_payment(db, reservation)
        reservation.status = ReservationStatus.CONFIRMED
        await db.flush()
        await self._post(client, _event("payment_intent.payment_failed", _intent()))

        assert payment.status == PaymentStatus.COMPLETED
        assert payment.failure_reason is None
        assert reservation.status == ReservationStatus.CONFIRMED

    async def test_success_without_capacity_keeps_booking_pending(self, client: AsyncClient, db, guest, service):
        first = await create_reservation(db, guest, service, guests=2, code="RSV-FULL0001")
        second = await create_reservation(db, guest, service, guests=2, code="RSV-FULL0002")
        await create_payment(db, first, status=PaymentStatus.PENDING, stripe_payment_id="pi_first")
        late = await create_payment(db, second, status=PaymentStatus.PENDING, stripe_payment_id="pi_second")

        await self._post(client, _event("payment_intent.succeeded", _intent("pi_first", "succeeded")))
        await self._post(client, _event("payment_intent.succeeded", _intent("pi_second", "succeeded")))

        assert first.status == ReservationStatus.CONFIRMED
        assert late.status == PaymentStatus.COMPLETED
        assert second.status == ReservationStatus.PENDING
        assert await _count(
            db, Notification, Notification.reference_id == second.id,
            Notification.type == "reservation_capacity_conflict",
        ) == 1

    async def test_unknown_event_acknowledged(self, client: AsyncClient):
        res = await self._post(client, _event("customer.created", {"id": "cus_1"}))
        assert res.status_code == 200
        assert res.json()["data"]["handled"] is False

    async def test_event_for_unknown_intent(self, client: AsyncClient, roles):
        res = await self._post(client, _event("payment_intent.succeeded", _intent("pi_ghost", "succeeded")))
        assert res.status_code == 200


class TestRefund:

    async def test_full_refund(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        with patch.object(stripe_gateway, "create_refund", return_value={"id": "re_1"}) as refund:
            res = await client.post(
                f"{PAYMENTS}/refund", json={"paymentId": str(payment.id), "reason": "Guest request"},
                headers=auth_header(admin_token),
            )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["status"] == "REFUNDED"
        assert data["refundedAmount"] == 2000.0
        assert data["metadata"]["refund"]["refundId"] == "re_1"
        assert refund.call_args.args[1] == Decimal("2000.00")
        assert reservation.status == ReservationStatus.CANCELLED

    async def test_partial_refund(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        with patch.object(stripe_gateway, "create_refund", return_value={"id": "re_2"}):
            res = await client.post(
                f"{PAYMENTS}/refund", json={"paymentId": str(payment.id), "amount": 500},
                headers=auth_header(admin_token),
            )
        data = res.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["metadata"]["partialRefundAmount"] == 500.0
        assert reservation.status == ReservationStatus.PENDING

    async def test_amount_above_balance(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        with patch.object(stripe_gateway, "create_refund") as refund:
            res = await client.post(
                f"{PAYMENTS}/refund", json={"paymentId": str(payment.id), "amount": 5000},
                headers=auth_header(admin_token),
            )
        assert res.status_code == 400
        refund.assert_not_called()

    @pytest.mark.parametrize("status", [PaymentStatus.PENDING, PaymentStatus.REFUNDED])
    async def test_only_completed_payments(self, client: AsyncClient, db, reservation, admin_token, status):
        payment = await create_payment(db, reservation, status=status)
        res = await client.post(
            f"{PAYMENTS}/refund", json={"paymentId": str(payment.id)}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

    async def test_requires_stripe_id(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation, stripe_payment_id=None)
        res = await client.post(
            f"{PAYMENTS}/refund", json={"paymentId": str(payment.id)}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

    async def test_manager_cannot_refund(self, client: AsyncClient, db, reservation, manager_token):
        payment = await create_payment(db, reservation)
        res = await client.post(
            f"{PAYMENTS}/refund", json={"paymentId": str(payment.id)}, headers=auth_header(manager_token)
        )
        assert res.status_code == 403


class TestPaymentHistory:

    async def test_lists_own_payments_with_summary(
        self, client: AsyncClient, db, guest, other_guest, service, reservation, guest_token
    ):
        await create_payment(db, reservation)
        other = await create_reservation(db, other_guest, service, days_ahead=30, code="RSV-OTHR0001")
        await create_payment(db, other, stripe_payment_id="pi_other")

        res = await client.get(PAYMENTS, headers=auth_header(guest_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert len(data["items"]) == 1
        assert data["items"][0]["venueName"] == "Hotel Playa"
        assert data["summary"]["totalAmount"] == 2000.0
        assert data["summary"]["byStatus"] == {"COMPLETED": 1}

    async def test_history_limit_capped(self, client: AsyncClient, guest, guest_token):
        res = await client.get(PAYMENTS, params={"limit": 100}, headers=auth_header(guest_token))
        assert res.json()["data"]["pagination"]["limit"] == 50

    async def test_get_payment_access(
        self, client: AsyncClient, db, reservation, guest_token, other_guest_token, admin_token, other_admin
    ):
        payment = await create_payment(db, reservation)
        url = f"{PAYMENTS}/{payment.id}"
        assert (await client.get(url, headers=auth_header(guest_token))).status_code == 200
        assert (await client.get(url, headers=auth_header(other_guest_token))).status_code == 403
        assert (await client.get(url, headers=auth_header(admin_token))).status_code == 200
        assert (await client.get(url, headers=auth_header(make_token(other_admin)))).status_code == 403
