"""Stripe Gateway. Thin wrapper over the Stripe SDK.

Amounts are passed in major units and converted to cents here. SDK errors
are translated to PaymentGatewayError so callers never handle Stripe types.
The SDK is synchronous, so network calls run in a worker thread.
"""

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe

from app.config import settings
from app.utils.exceptions import BadRequestError, PaymentGatewayError

logger = logging.getLogger(__name__)


def to_cents(amount: Decimal | float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


class StripeGateway:
    """PaymentIntent, Refund and webhook helpers."""

    @property
    def is_configured(self) -> bool:
        return bool(settings.STRIPE_SECRET_KEY)

    def _configure(self) -> None:
        if not self.is_configured:
            raise PaymentGatewayError("Payment gateway is not configured")
        stripe.api_key = settings.STRIPE_SECRET_KEY

    async def create_payment_intent(
        self, amount: Decimal | float, currency: str, metadata: dict[str, str]
    ) -> Any:
        """Create a card PaymentIntent.

        Args:
            amount: Amount in major units
            currency: ISO currency code (any case)
            metadata: String metadata attached to the intent

        Returns:
            stripe.PaymentIntent
        """
        self._configure()
        try:
            return await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=to_cents(amount),
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe PaymentIntent.create failed: %s", exc)
            raise PaymentGatewayError(exc.user_message or str(exc)) from exc

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        self._configure()
        try:
            return await asyncio.to_thread(stripe.PaymentIntent.retrieve, payment_intent_id)
        except stripe.StripeError as exc:
            logger.warning("Stripe PaymentIntent.retrieve(%s) failed: %s", payment_intent_id, exc)
            raise PaymentGatewayError(exc.user_message or str(exc)) from exc

    async def create_refund(
        self,
        payment_intent_id: str,
        amount: Decimal | float | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Any:
        """Refund a PaymentIntent, fully when ``amount`` is None.

        Returns:
            stripe.Refund
        """
        self._configure()
        params: dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": "requested_by_customer",
            "metadata": metadata or {},
        }
        if amount is not None:
            params["amount"] = to_cents(amount)
        try:
            return await asyncio.to_thread(stripe.Refund.create, **params)
        except stripe.StripeError as exc:
            logger.warning("Stripe Refund.create(%s) failed: %s", payment_intent_id, exc)
            raise PaymentGatewayError(exc.user_message or str(exc)) from exc

    def construct_event(self, payload: bytes, signature: str) -> Any:
        """Verify a webhook payload against its ``stripe-signature`` header.

        Raises:
            BadRequestError: Missing secret, bad payload or bad signature
        """
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise BadRequestError("Webhook secret is not configured")
        try:
            return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError as exc:
            raise BadRequestError("Invalid webhook payload") from exc
        except stripe.SignatureVerificationError as exc:
            raise BadRequestError("Invalid webhook signature") from exc


# Singleton instance
stripe_gateway: StripeGateway = StripeGateway()
