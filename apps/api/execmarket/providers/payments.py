import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import stripe

from execmarket.core import get_settings

logger = logging.getLogger(__name__)


class PaymentServiceError(Exception):
    """Raised when the payment processor fails or returns an unexpected response."""


class PaymentConfigError(PaymentServiceError):
    """Raised when payment configuration is missing or invalid."""


class WebhookVerificationError(PaymentServiceError):
    """Raised when a webhook payload or its signature cannot be verified."""


@dataclass(frozen=True)
class PaymentIntentHandle:
    id: str
    client_secret: str
    amount: int
    currency: str


class StripePaymentProvider:
    def __init__(self, api_key: str | None, webhook_secret: str | None, tolerance: int = 300):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    async def create_payment_intent(
        self,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        customer_id: str | None = None,
        description: str | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentIntentHandle:
        if not self.api_key:
            raise PaymentConfigError("Payment service not configured.")
        params: dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
            "api_key": self.api_key,
        }
        if customer_id:
            params["customer"] = customer_id
        if description:
            params["description"] = description
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.create, **params)
        except stripe.StripeError as e:
            logger.warning("Stripe error creating payment intent: %s", e)
            raise PaymentServiceError("Payment service returned an error.") from e
        logger.info("PaymentIntent created (id=%s, amount=%d %s)", intent.id, amount, currency)
        return PaymentIntentHandle(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=currency,
        )

    def verify_webhook(self, payload: bytes, sig_header: str) -> stripe.Event:
        """Verify the Stripe-Signature header and build the event. Nothing is trusted before this."""
        if not self.webhook_secret:
            raise PaymentConfigError("Stripe webhook secret is not configured.")
        try:
            return stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret, tolerance=self.tolerance)
        except ValueError as e:
            raise WebhookVerificationError("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError("Invalid signature") from e


@lru_cache
def get_payment_provider() -> StripePaymentProvider:
    s = get_settings()
    return StripePaymentProvider(
        api_key=s.stripe_api_key,
        webhook_secret=s.stripe_webhook_secret,
        tolerance=s.stripe_webhook_tolerance_seconds,
    )
