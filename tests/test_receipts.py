"""Receipt tests. Generation, guest access, HTML download and admin verification."""

import re
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models.audit_log import AdminAuditLog, AuditAction
from app.models.payment import PaymentStatus, ReceiptStatus, ReceiptType
from app.services.receipt_service import receipt_service, split_amount
from app.utils.exceptions import BadRequestError
from tests.conftest import auth_header, create_payment, make_token

RECEIPTS = "/api/receipts"
ADMIN_RECEIPTS = "/api/admin/receipts"
NUMBER_PATTERN = re.compile(r"^RCP-\d{8}-[A-Z0-9]{6}$")


class TestSplitAmount:

    def test_tax_inclusive_split(self):
        subtotal, tax = split_amount(Decimal("2000"))
        assert subtotal == Decimal("1724.14")
        assert tax == Decimal("275.86")

    def test_custom_rate(self):
        assert split_amount(110, tax_rate=0.10) == (Decimal("100.00"), Decimal("10.00"))

    def test_parts_add_up(self):
        subtotal, tax = split_amount(Decimal("99.99"))
        assert subtotal + tax == Decimal("99.99")


class TestReceiptGeneration:

    async def test_payment_receipt(self, db, reservation):
        payment = await create_payment(db, reservation)
        receipt = await receipt_service.create_for_payment(db, payment)
        assert NUMBER_PATTERN.match(receipt.receipt_number)
        assert receipt.type == ReceiptType.PAYMENT
        assert receipt.status == ReceiptStatus.PENDING
        assert receipt.amount == Decimal("2000")
        assert receipt.currency == "MXN"
        assert receipt.metadata_["stripePaymentId"] == "pi_test_1"

    async def test_same_type_is_idempotent(self, db, reservation):
        payment = await create_payment(db, reservation)
        first = await receipt_service.create_for_payment(db, payment)
        second = await receipt_service.create_for_payment(db, payment)
        assert first.id == second.id

    async def test_refund_receipt_needs_refunded_amount(self, db, reservation):
        payment = await create_payment(db, reservation)
        with pytest.raises(BadRequestError):
            await receipt_service.create_for_payment(db, payment, ReceiptType.REFUND)

        payment.refunded_amount = Decimal("500")
        await db.flush()
        refund = await receipt_service.create_for_payment(db, payment, ReceiptType.REFUND)
        assert refund.amount == Decimal("500")

    async def test_admin_create(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        res = await client.post(
            ADMIN_RECEIPTS, json={"paymentId": str(payment.id), "notes": "Front desk"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["paymentId"] == str(payment.id)
        assert data["subtotal"] == 1724.14
        assert data["tax"] == 275.86
        assert data["notes"] == "Front desk"
        assert data["userEmail"] == "guest@test.com"

        again = await client.post(ADMIN_RECEIPTS, json={"paymentId": str(payment.id)}, headers=auth_header(admin_token))
        assert again.json()["data"]["id"] == data["id"]

    async def test_admin_create_refund_without_refund(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        res = await client.post(
            ADMIN_RECEIPTS, json={"paymentId": str(payment.id), "type": "REFUND"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

    async def test_admin_create_unknown_payment(self, client: AsyncClient, admin_token):
        res = await client.post(
            ADMIN_RECEIPTS, json={"paymentId": "00000000-0000-0000-0000-000000000000"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 404

    async def test_guest_cannot_create(self, client: AsyncClient, db, reservation, guest_token):
        payment = await create_payment(db, reservation)
        res = await client.post(ADMIN_RECEIPTS, json={"paymentId": str(payment.id)}, headers=auth_header(guest_token))
        assert res.status_code == 403


class TestGuestReceipts:

    async def test_list_own_receipts(self, client: AsyncClient, db, reservation, guest_token, other_guest_token):
        payment = await create_payment(db, reservation)
        await receipt_service.create_for_payment(db, payment)

        res = await client.get(RECEIPTS, headers=auth_header(guest_token))
        assert res.status_code == 200
        assert res.json()["data"]["pagination"]["total"] == 1

        res = await client.get(RECEIPTS, headers=auth_header(other_guest_token))
        assert res.json()["data"]["pagination"]["total"] == 0

    async def test_access_control(self, client: AsyncClient, db, reservation, guest_token, other_guest_token, manager_token):
        payment = await create_payment(db, reservation)
        receipt = await receipt_service.create_for_payment(db, payment)
        url = f"{RECEIPTS}/{receipt.id}"

        assert (await client.get(url, headers=auth_header(guest_token))).status_code == 200
        assert (await client.get(url, headers=auth_header(other_guest_token))).status_code == 403
        assert (await client.get(url, headers=auth_header(manager_token))).status_code == 200

    async def test_download_html(self, client: AsyncClient, db, reservation, guest_token):
        payment = await create_payment(db, reservation)
        receipt = await receipt_service.create_for_payment(db, payment)

        res = await client.get(f"{RECEIPTS}/{receipt.id}/download", headers=auth_header(guest_token))
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/html")
        assert res.headers["content-disposition"] == f"attachment; filename={receipt.receipt_number}.html"
        assert receipt.receipt_number in res.text
        assert "RSV-TEST0001" in res.text
        assert "$2,000.00 MXN" in res.text

    async def test_download_forbidden_for_other_guest(self, client: AsyncClient, db, reservation, other_guest_token):
        payment = await create_payment(db, reservation)
        receipt = await receipt_service.create_for_payment(db, payment)
        res = await client.get(f"{RECEIPTS}/{receipt.id}/download", headers=auth_header(other_guest_token))
        assert res.status_code == 403


class TestAdminVerification:

    async def _receipt(self, db, reservation):
        payment = await create_payment(db, reservation)
        return await receipt_service.create_for_payment(db, payment)

    async def test_verify(self, client: AsyncClient, db, reservation, admin_user, admin_token):
        receipt = await self._receipt(db, reservation)
        res = await client.patch(
            f"{ADMIN_RECEIPTS}/{receipt.id}/verify", json={"status": "VERIFIED", "notes": "Matched bank"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["status"] == "VERIFIED"
        assert data["isVerified"] is True
        assert data["verifiedBy"] == str(admin_user.id)
        assert data["verifiedAt"] is not None

        logs = (await db.execute(
            select(AdminAuditLog).where(AdminAuditLog.action == AuditAction.RECEIPT_VERIFICATION)
        )).scalars().all()
        assert len(logs) == 1
        assert logs[0].new_values == {"status": "VERIFIED", "isVerified": True}

    async def test_reject(self, client: AsyncClient, db, reservation, admin_token):
        receipt = await self._receipt(db, reservation)
        res = await client.patch(
            f"{ADMIN_RECEIPTS}/{receipt.id}/verify", json={"status": "REJECTED"}, headers=auth_header(admin_token)
        )
        data = res.json()["data"]
        assert data["status"] == "REJECTED"
        assert data["isVerified"] is False

    async def test_pending_is_not_a_decision(self, client: AsyncClient, db, reservation, admin_token):
        receipt = await self._receipt(db, reservation)
        res = await client.patch(
            f"{ADMIN_RECEIPTS}/{receipt.id}/verify", json={"status": "PENDING"}, headers=auth_header(admin_token)
        )
        assert res.status_code == 400

    async def test_manager_cannot_verify(self, client: AsyncClient, db, reservation, manager_token):
        receipt = await self._receipt(db, reservation)
        res = await client.patch(
            f"{ADMIN_RECEIPTS}/{receipt.id}/verify", json={"status": "VERIFIED"}, headers=auth_header(manager_token)
        )
        assert res.status_code == 403

    async def test_bulk_verify(self, client: AsyncClient, db, reservation, admin_token):
        receipt = await self._receipt(db, reservation)
        missing = "00000000-0000-0000-0000-000000000000"
        res = await client.post(
            f"{ADMIN_RECEIPTS}/bulk-verify", json={"receiptIds": [str(receipt.id), "nope", missing]},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        results = res.json()["data"]
        assert [r["success"] for r in results] == [True, False, False]
        assert results[1]["error"] == "Invalid receipt id"
        assert results[2]["error"] == "Receipt not found"
        assert receipt.is_verified is True

    async def test_regenerate(self, client: AsyncClient, db, reservation, admin_token):
        receipt = await self._receipt(db, reservation)
        old_number = receipt.receipt_number
        await client.patch(
            f"{ADMIN_RECEIPTS}/{receipt.id}/verify", json={"status": "VERIFIED"}, headers=auth_header(admin_token)
        )

        res = await client.post(
            f"{ADMIN_RECEIPTS}/{receipt.id}/regenerate", json={"reason": "Typo in name"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["receiptNumber"] != old_number
        assert NUMBER_PATTERN.match(data["receiptNumber"])
        assert data["status"] == "PENDING"
        assert data["isVerified"] is False
        assert data["metadata"]["previousNumber"] == old_number
        assert data["metadata"]["regenerationReason"] == "Typo in name"

        logs = (await db.execute(
            select(AdminAuditLog).where(AdminAuditLog.action == AuditAction.RECEIPT_REGENERATION)
        )).scalars().all()
        assert logs[0].old_values == {"receiptNumber": old_number}

    async def test_regenerate_requires_reason(self, client: AsyncClient, db, reservation, admin_token):
        receipt = await self._receipt(db, reservation)
        res = await client.post(
            f"{ADMIN_RECEIPTS}/{receipt.id}/regenerate", json={"reason": ""}, headers=auth_header(admin_token)
        )
        assert res.status_code == 422


class TestAdminListAndStats:

    async def test_list_filters(self, client: AsyncClient, db, reservation, admin_token):
        payment = await create_payment(db, reservation)
        await receipt_service.create_for_payment(db, payment)
        payment.refunded_amount = Decimal("300")
        await db.flush()
        await receipt_service.create_for_payment(db, payment, ReceiptType.REFUND)

        res = await client.get(ADMIN_RECEIPTS, headers=auth_header(admin_token))
        assert res.json()["data"]["pagination"]["total"] == 2

        res = await client.get(ADMIN_RECEIPTS, params={"type": "refund"}, headers=auth_header(admin_token))
        items = res.json()["data"]["items"]
        assert [r["amount"] for r in items] == [300.0]

        res = await client.get(ADMIN_RECEIPTS, params={"verified": "true"}, headers=auth_header(admin_token))
        assert res.json()["data"]["pagination"]["total"] == 0

    async def test_stats(self, client: AsyncClient, db, guest, reservation, admin_token):
        payment = await create_payment(db, reservation, status=PaymentStatus.COMPLETED)
        receipt = await receipt_service.create_for_payment(db, payment)
        await receipt_service.verify_receipt(db, receipt.id, ReceiptStatus.VERIFIED, None, guest)

        res = await client.get(f"{ADMIN_RECEIPTS}/stats", headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["total"] == 1
        assert data["verified"] == 1
        assert data["pending"] == 0
        assert data["byType"] == {"PAYMENT": 1}
        assert data["totalAmount"] == 2000.0

    async def test_other_guest_token_rejected(self, client: AsyncClient, other_guest):
        res = await client.get(ADMIN_RECEIPTS, headers=auth_header(make_token(other_guest)))
        assert res.status_code == 403
