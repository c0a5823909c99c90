"""Anonymization transformer and disclosure ledger."""

from .anonymizer import transform
from .ledger import (
    UnlockResult,
    confirm_payment,
    ensure_unlocked,
    entitlements_for,
    fail_payment,
    get_entitlement,
    has_unlimited_disclosure,
    reserve_card_unlock,
)

__all__ = [
    "transform",
    "UnlockResult",
    "confirm_payment",
    "ensure_unlocked",
    "entitlements_for",
    "fail_payment",
    "get_entitlement",
    "has_unlimited_disclosure",
    "reserve_card_unlock",
]
