"""Shared API constants."""

# Stripe metadata "kind" values routed by the webhook handler
PAYMENT_KIND_PROFILE_UNLOCK = "profile_unlock"
PAYMENT_KIND_CREDIT_PACK = "credit_pack"

# Credit ledger reasons
LEDGER_REASON_UNLOCK = "unlock_profile"
LEDGER_REASON_PURCHASE = "purchase"
LEDGER_REASON_ADJUSTMENT = "adjustment"

REQUEST_ID_HEADER = "X-Request-ID"
