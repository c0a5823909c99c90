from .payments import (
    PaymentServiceError,
    PaymentConfigError,
    WebhookVerificationError,
    PaymentIntentHandle,
    StripePaymentProvider,
    get_payment_provider,
)

__all__ = [
    "PaymentServiceError",
    "PaymentConfigError",
    "WebhookVerificationError",
    "PaymentIntentHandle",
    "StripePaymentProvider",
    "get_payment_provider",
]
