"""Admin payment tests. Listing, single actions, bulk operations and invoices."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.audit_log import AdminAuditLog, AuditAction
from app.models.payment import PaymentMethod, PaymentStatus
from app.models.reservation import ReservationStatus
from app.services.bulk_payment_service import SKIP, _ItemError, check_item
from app.services.stripe_gateway import stripe_gateway
from tests.conftest import auth_header, create_payment, create_reservation

ADMIN_PAYMENTS = "/api/admin/payments"


async def _audit_logs(db, action: str) -> list[AdminAuditLog]:
    return list((await db.execute(select(AdminAuditLog).where(AdminAuditLog.action == action))).scalars().all())


async def _payments(db, guest, service, count: int, status: str = PaymentStatus.PENDING) -> list:
    payments = []
    for i in range(count):
        reservation = await create_reservation(db, guest, service, days_ahead=10 + i * 3, code=f"RSV-BULK{i:04d}")
        payments.append(await create_payment(db, reservation, status=status, stripe_payment_id=f"pi_bulk_{i}"))
    return payments


class TestCheckItem:

    def _payment(self, status: str) -> SimpleNamespace:
        return SimpleNamespace(status=status, amount=Decimal("100.00"), refunded_amount=Decimal("0"))

    def test_missing_payment(self):
        with pytest.raises(_ItemError) as exc_info:
            check_item(None, "cancel", None)
        assert exc_info.value.code == "NOT_FOUND"

    def test_already_in_target_is_skipped(self):
        assert check_item(self._payment(PaymentStatus.CANCELLED), "cancel", None) == SKIP

    def test_transition_table(self):
        assert check_item(self._payment(PaymentStatus.PENDING), "status", PaymentStatus.COMPLETED) is None
        with pytest.raises(_ItemError) as exc_info:
            check_item(self._payment(PaymentStatus.REFUNDED), "status", PaymentStatus.PENDING)
        assert exc_info.value.code == "INVALID_TRANSITION"
        with pytest.raises(_ItemError) as exc_info:
            check_item(self._payment(PaymentStatus.COMPLETED), "status", PaymentStatus.REFUNDED)
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_bypass_validation(self):
        assert check_item(self._payment(PaymentStatus.REFUNDED), "status", PaymentStatus.PENDING, True) is None

    def test_refund_amount_over_balance(self):
        with pytest.raises(_ItemError) as exc_info:
            check_item(self._payment(PaymentStatus.COMPLETED), "refund", None, refund_amount=150)
        assert exc_info.value.code == "AMOUNT_EXCEEDS_BALANCE"


class TestAdminPaymentList:

    async def test_list_with_summary(self, client: AsyncClient, db, guest, service, admin_token):
        payments = await _payments(db, guest, service, 3)
        payments[0].status = PaymentStatus.COMPLETED
        await db.flush()

        res = await client.get(ADMIN_PAYMENTS, headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["pagination"]["total"] == 3
        assert data["summary"]["count"] == 3
        assert data["summary"]["byStatus"] == {"COMPLETED": 1, "PENDING": 2}
        assert data["summary"]["totalAmount"] == 2000.0

        res = await client.get(ADMIN_PAYMENTS, params={"status": "pending"}, headers=auth_header(admin_token))
        assert res.json()["data"]["pagination"]["total"] == 2

    async def test_manager_forbidden(self, client: AsyncClient, manager_token):
        assert (await client.get(ADMIN_PAYMENTS, headers=auth_header(manager_token))).status_code == 403


class TestPaymentActions:

    async def test_actions_require_super_admin(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "refund", "paymentId": str(payment.id),
        }, headers=auth_header(admin_token))
        assert res.status_code == 403

    async def test_stripe_refund_action(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation)
        with patch.object(stripe_gateway, "create_refund", return_value={"id": "re_admin"}) as refund:
            res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
                "action": "refund", "paymentId": str(payment.id), "amount": 800, "reason": "Goodwill",
            }, headers={**auth_header(super_admin_token), "User-Agent": "pytest"})
        assert res.status_code == 200
        refund.assert_called_once()
        data = res.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["refundedAmount"] == 800.0

        logs = await _audit_logs(db, AuditAction.PAYMENT_REFUND)
        assert len(logs) == 1
        assert logs[0].metadata_["refundAmount"] == 800.0
        assert logs[0].metadata_["customerEmail"] == "guest@test.com"
        assert logs[0].metadata_["manual"] is False
        assert logs[0].user_agent == "pytest"

    async def test_manual_refund_without_stripe_id(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation, stripe_payment_id=None, method=PaymentMethod.CASH)
        with patch.object(stripe_gateway, "create_refund") as refund:
            res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
                "action": "refund", "paymentId": str(payment.id),
            }, headers=auth_header(super_admin_token))
        refund.assert_not_called()
        data = res.json()["data"]
        assert data["status"] == "REFUNDED"
        assert "manualRefund" in data["metadata"]
        assert reservation.status == ReservationStatus.CANCELLED

    async def test_refund_pending_payment_rejected(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "refund", "paymentId": str(payment.id),
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 400

    async def test_update_status_action(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "updateStatus", "paymentId": str(payment.id), "status": "PROCESSING", "reason": "Bank transfer",
        }, headers=auth_header(super_admin_token))
        data = res.json()["data"]
        assert data["status"] == "PROCESSING"
        assert data["metadata"]["statusUpdate"]["previousStatus"] == "PENDING"
        assert data["metadata"]["statusUpdate"]["verificationMethod"] == "manual"
        assert len(await _audit_logs(db, AuditAction.PAYMENT_STATUS_UPDATE)) == 1

    async def test_update_status_cannot_refund(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation)
        with patch.object(stripe_gateway, "create_refund") as refund:
            res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
                "action": "updateStatus", "paymentId": str(payment.id), "status": "REFUNDED",
            }, headers=auth_header(super_admin_token))
        assert res.status_code == 400
        assert "refund action" in res.json()["message"]
        refund.assert_not_called()
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.refunded_amount == Decimal("0")
        assert await _audit_logs(db, AuditAction.PAYMENT_STATUS_UPDATE) == []

    async def test_malformed_payment_id(self, client: AsyncClient, super_admin_token):
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "manualVerification", "paymentId": "not-a-uuid",
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 422

    async def test_update_status_requires_status(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "updateStatus", "paymentId": str(payment.id),
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 400

    async def test_manual_verification(self, client: AsyncClient, db, reservation, super_admin_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.PENDING)
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "manualVerification", "paymentId": str(payment.id), "notes": "Deposit slip checked",
        }, headers=auth_header(super_admin_token))
        data = res.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["metadata"]["manualVerification"]["notes"] == "Deposit slip checked"
        assert reservation.status == ReservationStatus.CONFIRMED
        assert len(await _audit_logs(db, AuditAction.PAYMENT_MANUAL_VERIFICATION)) == 1

    async def test_unknown_action_rejected(self, client: AsyncClient, super_admin_token):
        res = await client.post(f"{ADMIN_PAYMENTS}/actions", json={
            "action": "explode", "paymentId": str(uuid4()),
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 422


class TestBulkOperations:

    async def test_bulk_status_collects_outcomes(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 3)
        payments[1].status = PaymentStatus.COMPLETED
        payments[2].status = PaymentStatus.PROCESSING
        await db.flush()

        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/status", json={
            "paymentIds": [str(p.id) for p in payments] + ["not-a-uuid", str(uuid4())],
            "newStatus": "PROCESSING",
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["successful"] == [str(payments[0].id)]
        assert data["summary"] == {"total": 5, "successful": 1, "failed": 3, "skipped": 1}
        codes = {f["code"] for f in data["failed"]}
        assert codes == {"INVALID_ID", "NOT_FOUND", "INVALID_TRANSITION"}

        logs = await _audit_logs(db, AuditAction.PAYMENT_BULK_OPERATION)
        assert len(logs) == 1
        assert logs[0].resource_id == "bulk"

    async def test_bulk_status_bypass(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 1, status=PaymentStatus.REFUNDED)
        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/status", json={
            "paymentIds": [str(payments[0].id)], "newStatus": "PENDING", "bypassValidation": True,
        }, headers=auth_header(super_admin_token))
        assert res.json()["data"]["summary"]["successful"] == 1
        assert payments[0].status == PaymentStatus.PENDING

    async def test_bulk_status_cannot_refund(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 1, status=PaymentStatus.COMPLETED)
        for bypass in (False, True):
            res = await client.post(f"{ADMIN_PAYMENTS}/bulk/status", json={
                "paymentIds": [str(payments[0].id)], "newStatus": "REFUNDED", "bypassValidation": bypass,
            }, headers=auth_header(super_admin_token))
            data = res.json()["data"]
            assert data["summary"]["failed"] == 1
            assert data["failed"][0]["code"] == ("BAD_REQUEST" if bypass else "INVALID_TRANSITION")
        assert payments[0].status == PaymentStatus.COMPLETED
        assert payments[0].refunded_at is None

    async def test_bulk_cancel_and_mark_failed(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 2)
        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/cancel", json={
            "paymentIds": [str(payments[0].id)],
        }, headers=auth_header(super_admin_token))
        assert res.json()["data"]["summary"]["successful"] == 1
        assert payments[0].status == PaymentStatus.CANCELLED

        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/mark-failed", json={
            "paymentIds": [str(payments[1].id)], "notes": "Chargeback",
        }, headers=auth_header(super_admin_token))
        assert res.json()["data"]["summary"]["successful"] == 1
        assert payments[1].status == PaymentStatus.FAILED
        assert payments[1].failure_reason == "Chargeback"

    async def test_bulk_refund(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 2, status=PaymentStatus.COMPLETED)
        payments[1].status = PaymentStatus.FAILED
        await db.flush()

        with patch.object(stripe_gateway, "create_refund", return_value={"id": "re_bulk"}) as refund:
            res = await client.post(f"{ADMIN_PAYMENTS}/bulk/refund", json={
                "paymentIds": [str(p.id) for p in payments], "refundReason": "Venue closed",
            }, headers=auth_header(super_admin_token))
        data = res.json()["data"]
        assert data["summary"]["successful"] == 1
        assert data["failed"][0]["code"] == "INVALID_STATUS"
        assert refund.call_count == 1
        assert payments[0].status == PaymentStatus.REFUNDED

    async def test_bulk_refund_requires_reason(self, client: AsyncClient, super_admin_token):
        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/refund", json={
            "paymentIds": [str(uuid4())],
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 422

    async def test_bulk_limit(self, client: AsyncClient, super_admin_token):
        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/cancel", json={
            "paymentIds": [str(uuid4()) for _ in range(101)],
        }, headers=auth_header(super_admin_token))
        assert res.status_code == 422

    async def test_validate_is_dry_run(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 2)
        payments[1].status = PaymentStatus.REFUNDED
        await db.flush()

        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/validate", json={
            "paymentIds": [str(p.id) for p in payments], "operation": "cancel",
        }, headers=auth_header(super_admin_token))
        data = res.json()["data"]
        assert data["valid"] is False
        assert len(data["errors"]) == 1
        assert payments[0].status == PaymentStatus.PENDING

    async def test_preview(self, client: AsyncClient, db, guest, service, super_admin_token):
        payments = await _payments(db, guest, service, 2)
        payments[1].status = PaymentStatus.CANCELLED
        await db.flush()

        res = await client.post(f"{ADMIN_PAYMENTS}/bulk/preview", json={
            "paymentIds": [str(p.id) for p in payments], "operation": "cancel",
        }, headers=auth_header(super_admin_token))
        data = res.json()["data"]
        assert data["totalAmount"] == 4000.0
        assert data["affectedReservations"] == 2
        assert data["summary"]["byStatus"] == {"PENDING": 1, "CANCELLED": 1}
        assert any("skipped" in w for w in data["warnings"])


class TestInvoice:

    async def test_invoice_html(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        res = await client.get(f"{ADMIN_PAYMENTS}/{payment.id}/invoice", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/html")
        assert "filename=INV-" in res.headers["content-disposition"]
        body = res.text
        assert "Factura" in body
        assert "RSV-TEST0001" in body
        assert "$2,000.00 MXN" in body

    async def test_invoice_unknown_payment(self, client: AsyncClient, admin_token):
        res = await client.get(f"{ADMIN_PAYMENTS}/{uuid4()}/invoice", headers=auth_header(admin_token))
        assert res.status_code == 404
