"""Card unlock intents and verified Stripe webhook events.

Webhook events reach ``handle_stripe_event`` only after signature
verification. Handlers are idempotent by Stripe object id, so redelivered
events change nothing.
"""

import logging
import uuid
from typing import Any

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.config import get_settings
from execmarket.core.constants import PAYMENT_KIND_CREDIT_PACK, PAYMENT_KIND_PROFILE_UNLOCK
from execmarket.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
)
from execmarket.db.models import CandidateProfile, Company
from execmarket.domain import Viewer
from execmarket.providers import PaymentServiceError, StripePaymentProvider, get_payment_provider
from execmarket.schemas import UnlockIntentResponse
from execmarket.services.credits import add_credits
from execmarket.services.disclosure import (
    confirm_payment,
    fail_payment,
    get_entitlement,
    reserve_card_unlock,
)

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


def _uuid_or_none(value: Any) -> str | None:
    if not value:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


# -----------------------------------------------------------------------------
# Card unlock intent
# -----------------------------------------------------------------------------
async def create_unlock_intent(
    db: AsyncSession,
    viewer: Viewer,
    candidate_id: str,
    provider: StripePaymentProvider | None = None,
) -> UnlockIntentResponse:
    """Create a PaymentIntent for one profile and reserve the unlock under its id."""
    if not viewer.is_authenticated:
        raise AuthenticationError()
    if not viewer.company_id:
        raise AuthorizationError("Company membership required to unlock profiles")
    result = await db.execute(
        select(CandidateProfile.id).where(
            CandidateProfile.id == candidate_id,
            CandidateProfile.is_active.is_(True),
            CandidateProfile.profile_completed.is_(True),
        )
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Candidate not found")
    entitlement = await get_entitlement(db, viewer, candidate_id)
    if entitlement.disclosed:
        raise ConflictError("Profile already unlocked", code="already_unlocked")

    company = (await db.execute(select(Company).where(Company.id == viewer.company_id))).scalar_one()
    s = get_settings()
    provider = provider or get_payment_provider()
    try:
        intent = await provider.create_payment_intent(
            amount=s.unlock_price_minor,
            currency=s.unlock_price_currency,
            metadata={
                "kind": PAYMENT_KIND_PROFILE_UNLOCK,
                "company_id": viewer.company_id,
                "candidate_id": candidate_id,
                "user_id": viewer.user_id or "",
            },
            customer_id=company.stripe_customer_id,
            description="Candidate profile unlock",
        )
    except PaymentServiceError as e:
        logger.warning("Unlock intent failed company=%s candidate=%s: %s", viewer.company_id, candidate_id, e)
        raise DependencyError() from e

    await reserve_card_unlock(db, viewer, candidate_id, intent.id, intent.amount, intent.currency)
    return UnlockIntentResponse(
        payment_ref=intent.id,
        client_secret=intent.client_secret,
        amount=intent.amount,
        currency=intent.currency,
    )


# -----------------------------------------------------------------------------
# Webhook events
# -----------------------------------------------------------------------------
async def _payment_succeeded(db: AsyncSession, obj: dict[str, Any]) -> bool:
    intent_id = obj.get("id")
    metadata = obj.get("metadata") or {}
    kind = metadata.get("kind") or (PAYMENT_KIND_PROFILE_UNLOCK if metadata.get("candidate_id") else None)
    amount = obj.get("amount_received") or obj.get("amount")
    currency = obj.get("currency")
    company_id = _uuid_or_none(metadata.get("company_id"))
    if not intent_id:
        return False

    if kind == PAYMENT_KIND_PROFILE_UNLOCK:
        row = await confirm_payment(
            db,
            intent_id,
            company_id=company_id,
            candidate_id=_uuid_or_none(metadata.get("candidate_id")),
            user_id=metadata.get("user_id") or None,
            amount=int(amount) if amount is not None else None,
            currency=currency,
        )
        return row is not None

    if kind == PAYMENT_KIND_CREDIT_PACK:
        try:
            credits = int(metadata.get("credits") or 0)
        except ValueError:
            credits = 0
        if not company_id or credits <= 0:
            logger.warning("Credit pack payment %s missing company or credits metadata", intent_id)
            return False
        balance, credited = await add_credits(
            db,
            company_id,
            credits,
            external_ref=intent_id,
            reference_type="payment_intent",
            reference_id=intent_id,
        )
        logger.info("Credit pack %s company=%s credited=%s balance=%d", intent_id, company_id, credited, balance)
        return True

    logger.info("payment_intent.succeeded %s with unknown kind %r ignored", intent_id, kind)
    return False


async def _payment_failed(db: AsyncSession, obj: dict[str, Any]) -> bool:
    intent_id = obj.get("id")
    if not intent_id:
        return False
    return await fail_payment(db, intent_id) is not None


async def _company_for_subscription(db: AsyncSession, obj: dict[str, Any]) -> Company | None:
    company_id = _uuid_or_none((obj.get("metadata") or {}).get("company_id"))
    if company_id:
        stmt = select(Company).where(Company.id == company_id)
    elif obj.get("customer"):
        stmt = select(Company).where(Company.stripe_customer_id == obj["customer"])
    else:
        return None
    return (await db.execute(stmt)).scalar_one_or_none()


def _subscription_tier(obj: dict[str, Any]) -> str:
    """Tier from the subscription's price id, falling back to metadata.tier."""
    s = get_settings()
    if obj.get("status") not in ACTIVE_SUBSCRIPTION_STATUSES:
        return "basic"
    items = ((obj.get("items") or {}).get("data")) or []
    price_ids = {((i.get("price") or {}).get("id")) for i in items if isinstance(i, dict)}
    if s.stripe_enterprise_price_id and s.stripe_enterprise_price_id in price_ids:
        return "enterprise"
    if s.stripe_premium_price_id and s.stripe_premium_price_id in price_ids:
        return "premium"
    tier = (obj.get("metadata") or {}).get("tier")
    return tier if tier in ("basic", "premium", "enterprise") else "basic"


def _apply_tier(company: Company, tier: str) -> None:
    if company.tier != tier:
        company.tier = tier
        company.searches_used = 0
    company.search_quota = get_settings().search_quota_for_tier(tier)


async def _subscription_changed(db: AsyncSession, obj: dict[str, Any], deleted: bool) -> bool:
    company = await _company_for_subscription(db, obj)
    if company is None:
        logger.warning("Subscription %s for unknown customer %s", obj.get("id"), obj.get("customer"))
        return False
    if deleted:
        _apply_tier(company, "basic")
        company.stripe_subscription_id = None
    else:
        _apply_tier(company, _subscription_tier(obj))
        company.stripe_subscription_id = obj.get("id")
        if obj.get("customer") and not company.stripe_customer_id:
            company.stripe_customer_id = obj["customer"]
    await db.flush()
    logger.info("Subscription %s company=%s tier=%s", obj.get("id"), company.id, company.tier)
    return True


async def handle_stripe_event(db: AsyncSession, event: stripe.Event) -> bool:
    """Apply a verified Stripe event. Returns whether it changed (or confirmed) any state."""
    event_type = event["type"]
    obj = event["data"]["object"].to_dict()
    if event_type == "payment_intent.succeeded":
        return await _payment_succeeded(db, obj)
    if event_type == "payment_intent.payment_failed":
        return await _payment_failed(db, obj)
    if event_type in ("customer.subscription.created", "customer.subscription.updated"):
        return await _subscription_changed(db, obj, deleted=False)
    if event_type == "customer.subscription.deleted":
        return await _subscription_changed(db, obj, deleted=True)
    logger.info("Unhandled Stripe event type %s", event_type)
    return False
