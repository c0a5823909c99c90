"""
Disclosure ledger: per (company, candidate) unlock state and its payment.

A pair moves from unpurchased to purchased exactly once. Replaying a payment
reference is a no-op. The credit debit, the purchased unlock row and the
ledger entry are flushed in one transaction; a concurrent unlock of the same
pair trips the partial unique index and resolves to the winner's row.
Card payments are two-phase: a row reserved when the payment intent is
created, confirmed by the Stripe webhook.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.config import get_settings
from execmarket.core.constants import LEDGER_REASON_UNLOCK
from execmarket.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    PaymentNotConfirmedError,
    ValidationError,
)
from execmarket.db.models import CandidateProfile, CreditLedger, ProfileUnlock
from execmarket.domain import Viewer
from execmarket.schemas import Entitlement
from execmarket.serializers import unlock_to_purchase
from execmarket.services.credits import deduct_credits, get_balance, get_ledger_entry

logger = logging.getLogger(__name__)

NOT_PURCHASED = Entitlement(status="not_purchased")
PLAN = Entitlement(status="plan")


@dataclass(frozen=True)
class UnlockResult:
    entitlement: Entitlement
    already_unlocked: bool
    balance: int | None
    transaction: CreditLedger | None = None


def has_unlimited_disclosure(viewer: Viewer) -> bool:
    if viewer.is_admin:
        return True
    return bool(viewer.tier) and viewer.tier.lower() in get_settings().unlimited_disclosure_tier_set


def _purchased(row: ProfileUnlock) -> Entitlement:
    return Entitlement(status="purchased", purchase=unlock_to_purchase(row))


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------
async def _purchased_row(db: AsyncSession, company_id: str, candidate_id: str) -> ProfileUnlock | None:
    result = await db.execute(
        select(ProfileUnlock).where(
            ProfileUnlock.company_id == company_id,
            ProfileUnlock.candidate_id == candidate_id,
            ProfileUnlock.status == ProfileUnlock.PURCHASED,
        )
    )
    return result.scalar_one_or_none()


async def _row_by_ref(db: AsyncSession, payment_ref: str) -> ProfileUnlock | None:
    result = await db.execute(select(ProfileUnlock).where(ProfileUnlock.payment_ref == payment_ref))
    return result.scalar_one_or_none()


async def get_entitlement(db: AsyncSession, viewer: Viewer, candidate_id: str) -> Entitlement:
    if has_unlimited_disclosure(viewer):
        return PLAN
    if not viewer.company_id:
        return NOT_PURCHASED
    row = await _purchased_row(db, viewer.company_id, candidate_id)
    return _purchased(row) if row else NOT_PURCHASED


async def entitlements_for(db: AsyncSession, viewer: Viewer, candidate_ids: list[str]) -> dict[str, Entitlement]:
    """Bulk entitlement lookup for a page of results. Missing ids are not purchased."""
    if has_unlimited_disclosure(viewer):
        return {cid: PLAN for cid in candidate_ids}
    out = {cid: NOT_PURCHASED for cid in candidate_ids}
    if not viewer.company_id or not candidate_ids:
        return out
    result = await db.execute(
        select(ProfileUnlock).where(
            ProfileUnlock.company_id == viewer.company_id,
            ProfileUnlock.candidate_id.in_(candidate_ids),
            ProfileUnlock.status == ProfileUnlock.PURCHASED,
        )
    )
    for row in result.scalars().all():
        out[str(row.candidate_id)] = _purchased(row)
    return out


# -----------------------------------------------------------------------------
# Unlock
# -----------------------------------------------------------------------------
async def _require_candidate(db: AsyncSession, candidate_id: str) -> None:
    result = await db.execute(
        select(CandidateProfile.id).where(
            CandidateProfile.id == candidate_id,
            CandidateProfile.is_active.is_(True),
            CandidateProfile.profile_completed.is_(True),
        )
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Candidate not found")


async def _replay(db: AsyncSession, viewer: Viewer, candidate_id: str, payment_ref: str) -> UnlockResult | None:
    """Resolve a request from existing rows: same reference, or pair already purchased."""
    row = await _row_by_ref(db, payment_ref)
    if row is not None:
        if str(row.company_id) != viewer.company_id or str(row.candidate_id) != candidate_id:
            raise ConflictError("Payment reference already used for another unlock", code="payment_ref_conflict")
        if row.status == ProfileUnlock.PURCHASED:
            return UnlockResult(
                entitlement=_purchased(row),
                already_unlocked=True,
                balance=await get_balance(db, viewer.company_id),
                transaction=await get_ledger_entry(db, payment_ref),
            )
        if row.status == ProfileUnlock.RESERVED:
            raise PaymentNotConfirmedError(payment_ref=payment_ref)
        if row.status == ProfileUnlock.FAILED:
            raise PaymentNotConfirmedError("Payment failed. Start a new payment to unlock this profile.", payment_ref=payment_ref)
        # duplicate: the pair was purchased under another reference

    existing = await _purchased_row(db, viewer.company_id, candidate_id)
    if existing is not None:
        return UnlockResult(
            entitlement=_purchased(existing),
            already_unlocked=True,
            balance=await get_balance(db, viewer.company_id),
            transaction=await get_ledger_entry(db, existing.payment_ref),
        )
    return None


async def reserve_card_unlock(
    db: AsyncSession,
    viewer: Viewer,
    candidate_id: str,
    payment_ref: str,
    amount: int,
    currency: str,
) -> ProfileUnlock:
    """Record a card payment awaiting processor confirmation."""
    row = ProfileUnlock(
        company_id=viewer.company_id,
        candidate_id=candidate_id,
        user_id=viewer.user_id,
        payment_ref=payment_ref,
        status=ProfileUnlock.RESERVED,
        source="card",
        amount=amount,
        currency=currency,
    )
    db.add(row)
    await db.flush()
    return row


async def ensure_unlocked(
    db: AsyncSession,
    viewer: Viewer,
    candidate_id: str,
    payment_ref: str,
) -> UnlockResult:
    """Grant disclosure of ``candidate_id`` to the viewer's company, paying with ``payment_ref``.

    Raises InsufficientCreditsError (nothing written), PaymentNotConfirmedError
    (card payment reserved, awaiting webhook), ValidationError (card reference
    not issued by create_unlock_intent) or ConflictError (reference
    already spent on another pair). Already-unlocked pairs return success.
    """
    if not viewer.is_authenticated:
        raise AuthenticationError("Sign in to unlock profiles")
    await _require_candidate(db, candidate_id)

    if not viewer.company_id:
        if has_unlimited_disclosure(viewer):
            return UnlockResult(entitlement=PLAN, already_unlocked=True, balance=None)
        raise AuthorizationError("Company membership required to unlock profiles")

    replay = await _replay(db, viewer, candidate_id, payment_ref)
    if replay is not None:
        return replay

    if has_unlimited_disclosure(viewer):
        return UnlockResult(
            entitlement=PLAN,
            already_unlocked=True,
            balance=await get_balance(db, viewer.company_id),
        )

    if viewer.access_model == "card":
        # card references are issued (and reserved) by create_unlock_intent
        logger.info("Unknown card payment ref company=%s candidate=%s ref=%s", viewer.company_id, candidate_id, payment_ref)
        raise ValidationError(
            "Unknown payment reference. Create a payment for this profile first.",
            field="payment_ref",
            code="unknown_payment_ref",
        )

    cost = get_settings().unlock_cost_credits
    balance = await get_balance(db, viewer.company_id)
    if balance < cost:
        raise InsufficientCreditsError()

    unlock = ProfileUnlock(
        company_id=viewer.company_id,
        candidate_id=candidate_id,
        user_id=viewer.user_id,
        payment_ref=payment_ref,
        status=ProfileUnlock.PURCHASED,
        source="credits",
        amount=cost,
        confirmed_at=datetime.now(timezone.utc),
    )
    try:
        db.add(unlock)
        await db.flush()
        ledger = await deduct_credits(
            db,
            viewer.company_id,
            cost,
            LEDGER_REASON_UNLOCK,
            reference_type="unlock_id",
            reference_id=str(unlock.id),
            external_ref=payment_ref,
        )
    except IntegrityError:
        # Lost a race on the same pair or reference: nothing of ours is kept
        await db.rollback()
        logger.info("Concurrent unlock resolved company=%s candidate=%s ref=%s", viewer.company_id, candidate_id, payment_ref)
        replay = await _replay(db, viewer, candidate_id, payment_ref)
        if replay is None:
            raise ConflictError("Unlock could not be completed, please retry")
        return replay
    if ledger is None:
        raise InsufficientCreditsError()

    logger.info("Profile unlocked company=%s candidate=%s ref=%s", viewer.company_id, candidate_id, payment_ref)
    return UnlockResult(
        entitlement=_purchased(unlock),
        already_unlocked=False,
        balance=ledger.balance_after,
        transaction=ledger,
    )


# -----------------------------------------------------------------------------
# Payment processor callbacks
# -----------------------------------------------------------------------------
async def confirm_payment(
    db: AsyncSession,
    payment_ref: str,
    *,
    company_id: str | None = None,
    candidate_id: str | None = None,
    user_id: str | None = None,
    amount: int | None = None,
    currency: str | None = None,
) -> ProfileUnlock | None:
    """Move a reserved card unlock to purchased. Idempotent by payment reference.

    Without a reservation the row is created from the payment metadata. A second
    payment for an already purchased pair is kept as ``duplicate`` for refund.
    """
    row = await _row_by_ref(db, payment_ref)
    if row is None:
        if not (company_id and candidate_id):
            logger.warning("Payment %s confirmed without unlock metadata, ignoring", payment_ref)
            return None
        row = ProfileUnlock(
            company_id=company_id,
            candidate_id=candidate_id,
            user_id=user_id,
            payment_ref=payment_ref,
            status=ProfileUnlock.RESERVED,
            source="card",
            amount=amount or 0,
            currency=currency,
        )
        db.add(row)
        await db.flush()

    if row.status in (ProfileUnlock.PURCHASED, ProfileUnlock.DUPLICATE):
        return row

    if amount is not None:
        row.amount = amount
    if currency:
        row.currency = currency
    existing = await _purchased_row(db, str(row.company_id), str(row.candidate_id))
    if existing is not None:
        row.status = ProfileUnlock.DUPLICATE
        logger.warning(
            "Duplicate payment %s for company=%s candidate=%s (already purchased via %s); refund required",
            payment_ref,
            row.company_id,
            row.candidate_id,
            existing.payment_ref,
        )
    else:
        row.status = ProfileUnlock.PURCHASED
        row.confirmed_at = datetime.now(timezone.utc)
    await db.flush()
    return row


async def fail_payment(db: AsyncSession, payment_ref: str) -> ProfileUnlock | None:
    row = await _row_by_ref(db, payment_ref)
    if row is None:
        logger.info("Payment failure for unknown reference %s", payment_ref)
        return None
    if row.status == ProfileUnlock.RESERVED:
        row.status = ProfileUnlock.FAILED
        await db.flush()
    return row
