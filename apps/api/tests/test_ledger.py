"""Disclosure ledger: credit unlocks, idempotent replays, conflicts and two-phase card payments."""

import asyncio

import pytest
from sqlalchemy import func, select

from execmarket.core.errors import (
    AuthenticationError,
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    PaymentNotConfirmedError,
    ValidationError,
)
from execmarket.db import async_session
from execmarket.db.models import CreditLedger, ProfileUnlock
from execmarket.domain import PUBLIC_VIEWER
from execmarket.services.credits import get_balance
from execmarket.services.disclosure import (
    confirm_payment,
    ensure_unlocked,
    fail_payment,
    get_entitlement,
    reserve_card_unlock,
)
from tests.conftest import make_candidate, make_company, viewer_for


async def _count(db, model, *where) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*where))).scalar_one()


class TestCreditUnlock:

    async def test_unlock_debits_once_and_replays(self, db):
        company, user = await make_company(db, credits=2)
        candidate = await make_candidate(db)
        viewer = viewer_for(company, user)
        cid = str(candidate.id)

        result = await ensure_unlocked(db, viewer, cid, "ref-1")
        await db.commit()
        assert result.already_unlocked is False
        assert result.entitlement.status == "purchased"
        assert result.entitlement.purchase.payment_ref == "ref-1"
        assert result.balance == 1
        assert result.transaction.amount == -1
        assert result.transaction.balance_after == 1

        replay = await ensure_unlocked(db, viewer, cid, "ref-1")
        assert replay.already_unlocked is True
        assert replay.balance == 1
        assert replay.transaction.id == result.transaction.id

        again = await ensure_unlocked(db, viewer, cid, "ref-2")
        await db.commit()
        assert again.already_unlocked is True
        assert again.balance == 1

        assert await _count(db, CreditLedger, CreditLedger.company_id == company.id) == 1
        assert await _count(db, ProfileUnlock, ProfileUnlock.status == ProfileUnlock.PURCHASED) == 1
        assert (await get_entitlement(db, viewer, cid)).disclosed is True

    async def test_insufficient_credits_writes_nothing(self, db):
        company, user = await make_company(db, credits=0)
        candidate = await make_candidate(db)
        with pytest.raises(InsufficientCreditsError):
            await ensure_unlocked(db, viewer_for(company, user), str(candidate.id), "ref-poor")
        await db.rollback()
        assert await get_balance(db, str(company.id)) == 0
        assert await _count(db, ProfileUnlock) == 0
        assert await _count(db, CreditLedger) == 0

    async def test_reference_reused_for_other_candidate_conflicts(self, db):
        company, user = await make_company(db, credits=5)
        first = await make_candidate(db)
        second = await make_candidate(db)
        viewer = viewer_for(company, user)
        await ensure_unlocked(db, viewer, str(first.id), "ref-shared")
        await db.commit()
        with pytest.raises(ConflictError) as exc:
            await ensure_unlocked(db, viewer, str(second.id), "ref-shared")
        assert exc.value.code == "payment_ref_conflict"
        await db.rollback()
        assert await get_balance(db, str(company.id)) == 4

    async def test_unlimited_plan_needs_no_payment(self, db):
        company, user = await make_company(db, tier="enterprise", credits=0)
        candidate = await make_candidate(db)
        result = await ensure_unlocked(db, viewer_for(company, user), str(candidate.id), "ref-plan")
        assert result.entitlement.status == "plan"
        assert await _count(db, ProfileUnlock) == 0

    async def test_public_viewer_must_sign_in(self, db):
        candidate = await make_candidate(db)
        with pytest.raises(AuthenticationError):
            await ensure_unlocked(db, PUBLIC_VIEWER, str(candidate.id), "ref-x")

    async def test_inactive_candidate_not_found(self, db):
        company, user = await make_company(db, credits=5)
        candidate = await make_candidate(db, is_active=False)
        with pytest.raises(NotFoundError):
            await ensure_unlocked(db, viewer_for(company, user), str(candidate.id), "ref-x")


class TestCardUnlock:

    async def test_reserve_then_confirm(self, db):
        company, user = await make_company(db, payment_preference="card")
        candidate = await make_candidate(db)
        viewer = viewer_for(company, user)
        cid = str(candidate.id)
        await reserve_card_unlock(db, viewer, cid, "pi_1", 4900, "gbp")
        await db.commit()

        with pytest.raises(PaymentNotConfirmedError) as exc:
            await ensure_unlocked(db, viewer, cid, "pi_1")
        assert exc.value.payment_ref == "pi_1"
        assert (await get_entitlement(db, viewer, cid)).disclosed is False

        # replaying before the webhook still reports pending
        with pytest.raises(PaymentNotConfirmedError):
            await ensure_unlocked(db, viewer, cid, "pi_1")

        row = await confirm_payment(db, "pi_1", amount=4900, currency="gbp")
        await db.commit()
        assert row.status == ProfileUnlock.PURCHASED
        entitlement = await get_entitlement(db, viewer, cid)
        assert entitlement.status == "purchased"
        assert entitlement.purchase.source == "card"

        result = await ensure_unlocked(db, viewer, cid, "pi_1")
        assert result.already_unlocked is True

    async def test_unissued_card_reference_rejected(self, db):
        company, user = await make_company(db, payment_preference="card")
        candidate = await make_candidate(db)
        viewer = viewer_for(company, user)

        with pytest.raises(ValidationError) as exc:
            await ensure_unlocked(db, viewer, str(candidate.id), "pi_made_up")
        assert exc.value.code == "unknown_payment_ref"
        await db.rollback()
        assert await _count(db, ProfileUnlock) == 0
        # a webhook for the invented reference has nothing to confirm
        assert await confirm_payment(db, "pi_made_up") is None
        assert (await get_entitlement(db, viewer, str(candidate.id))).disclosed is False

    async def test_confirm_is_idempotent_and_second_payment_is_duplicate(self, db):
        company, user = await make_company(db, payment_preference="card")
        candidate = await make_candidate(db)
        meta = {"company_id": str(company.id), "candidate_id": str(candidate.id), "user_id": user.id}

        first = await confirm_payment(db, "pi_a", amount=4900, currency="gbp", **meta)
        await db.commit()
        again = await confirm_payment(db, "pi_a", amount=4900, currency="gbp", **meta)
        await db.commit()
        assert first.id == again.id
        assert again.status == ProfileUnlock.PURCHASED

        second = await confirm_payment(db, "pi_b", amount=4900, currency="gbp", **meta)
        await db.commit()
        assert second.status == ProfileUnlock.DUPLICATE
        assert await _count(db, ProfileUnlock, ProfileUnlock.status == ProfileUnlock.PURCHASED) == 1

    async def test_failed_payment_stays_locked(self, db):
        company, user = await make_company(db, payment_preference="card")
        candidate = await make_candidate(db)
        viewer = viewer_for(company, user)
        await reserve_card_unlock(db, viewer, str(candidate.id), "pi_fail", 4900, "gbp")
        await db.commit()
        with pytest.raises(PaymentNotConfirmedError):
            await ensure_unlocked(db, viewer, str(candidate.id), "pi_fail")

        row = await fail_payment(db, "pi_fail")
        await db.commit()
        assert row.status == ProfileUnlock.FAILED
        with pytest.raises(PaymentNotConfirmedError):
            await ensure_unlocked(db, viewer, str(candidate.id), "pi_fail")
        assert (await get_entitlement(db, viewer, str(candidate.id))).disclosed is False

    async def test_confirm_without_metadata_is_ignored(self, db):
        assert await confirm_payment(db, "pi_unknown") is None
        assert await _count(db, ProfileUnlock) == 0


class TestConcurrentUnlock:

    async def test_parallel_unlocks_of_same_pair_debit_once(self, db):
        company, user = await make_company(db, credits=3)
        candidate = await make_candidate(db)
        viewer = viewer_for(company, user)
        cid = str(candidate.id)

        async def unlock(ref):
            async with async_session() as session:
                result = await ensure_unlocked(session, viewer, cid, ref)
                await session.commit()
                return result

        results = await asyncio.gather(unlock("ref-a"), unlock("ref-b"))

        assert sorted(r.already_unlocked for r in results) == [False, True]
        refs = {r.entitlement.purchase.payment_ref for r in results}
        assert len(refs) == 1
        assert await _count(db, CreditLedger, CreditLedger.company_id == company.id) == 1
        assert await _count(db, ProfileUnlock, ProfileUnlock.status == ProfileUnlock.PURCHASED) == 1
        assert await get_balance(db, str(company.id)) == 2
