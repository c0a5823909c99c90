"""Stripe webhook verification and event handling, plus card unlock intents."""

import hashlib
import hmac
import json
import time

import pytest
from sqlalchemy import func, select

from execmarket.core.errors import ConflictError
from execmarket.db.models import Company, CreditLedger, ProfileUnlock
from execmarket.providers import PaymentIntentHandle
from execmarket.services.billing import create_unlock_intent
from execmarket.services.disclosure import get_entitlement
from tests.conftest import make_candidate, make_company, viewer_for

WEBHOOK_SECRET = "whsec_test"


def _sign(payload: str, secret: str = WEBHOOK_SECRET) -> dict[str, str]:
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


def _signed(event: dict, secret: str = WEBHOOK_SECRET) -> tuple[bytes, dict[str, str]]:
    payload = json.dumps(event)
    return payload.encode(), _sign(payload, secret)


def _event(event_type: str, obj: dict) -> dict:
    return {"id": f"evt_{obj.get('id', 'x')}", "type": event_type, "data": {"object": obj}}


async def _post(client, event: dict, secret: str = WEBHOOK_SECRET):
    payload, headers = _signed(event, secret)
    return await client.post("/webhooks/stripe", content=payload, headers=headers)


class _FakeProvider:
    async def create_payment_intent(self, amount, currency, metadata, customer_id=None, description=None, idempotency_key=None):
        self.metadata = metadata
        return PaymentIntentHandle(id="pi_fake", client_secret="pi_fake_secret", amount=amount, currency=currency)


class TestVerification:

    async def test_bad_signature_rejected_without_changes(self, client, db):
        company, _ = await make_company(db)
        event = _event("payment_intent.succeeded", {
            "id": "pi_forged",
            "amount": 1000,
            "metadata": {"kind": "credit_pack", "company_id": str(company.id), "credits": "50"},
        })
        resp = await _post(client, event, secret="whsec_wrong")
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_webhook"
        balance = (await db.execute(select(Company.credits_balance).where(Company.id == company.id))).scalar_one()
        assert balance == 0

    async def test_missing_signature_rejected(self, client, db):
        resp = await client.post("/webhooks/stripe", content=b"{}")
        assert resp.status_code == 400

    async def test_signed_payload_that_is_not_json_rejected(self, client, db):
        payload = "payment_intent.succeeded pi_1"
        resp = await client.post("/webhooks/stripe", content=payload.encode(), headers=_sign(payload))
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_webhook"

    async def test_stale_signature_rejected(self, client, db):
        payload = json.dumps(_event("invoice.created", {"id": "in_old"}))
        timestamp = int(time.time()) - 3600
        signature = hmac.new(WEBHOOK_SECRET.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
        resp = await client.post(
            "/webhooks/stripe",
            content=payload.encode(),
            headers={"Stripe-Signature": f"t={timestamp},v1={signature}"},
        )
        assert resp.status_code == 400

    async def test_unknown_event_acknowledged(self, client, db):
        resp = await _post(client, _event("invoice.created", {"id": "in_1"}))
        assert resp.status_code == 200
        assert resp.json() == {"status": "received", "handled": False}


class TestPaymentEvents:

    async def test_unlock_payment_confirms_reservation(self, client, db):
        company, user = await make_company(db, payment_preference="card")
        candidate = await make_candidate(db)
        viewer = viewer_for(company, user)
        provider = _FakeProvider()

        intent = await create_unlock_intent(db, viewer, str(candidate.id), provider=provider)
        await db.commit()
        assert intent.payment_ref == "pi_fake"
        assert intent.amount == 4900
        assert provider.metadata["kind"] == "profile_unlock"
        assert provider.metadata["candidate_id"] == str(candidate.id)

        event = _event("payment_intent.succeeded", {
            "id": "pi_fake",
            "amount_received": 4900,
            "currency": "gbp",
            "metadata": provider.metadata,
        })
        for _ in range(2):
            resp = await _post(client, event)
            assert resp.status_code == 200
            assert resp.json()["handled"] is True

        db.expire_all()
        rows = (await db.execute(select(ProfileUnlock))).scalars().all()
        assert len(rows) == 1
        assert rows[0].status == ProfileUnlock.PURCHASED
        assert (await get_entitlement(db, viewer, str(candidate.id))).disclosed is True

        with pytest.raises(ConflictError):
            await create_unlock_intent(db, viewer, str(candidate.id), provider=provider)

    async def test_payment_failed_marks_reservation(self, client, db):
        company, user = await make_company(db, payment_preference="card")
        candidate = await make_candidate(db)
        await create_unlock_intent(db, viewer_for(company, user), str(candidate.id), provider=_FakeProvider())
        await db.commit()

        resp = await _post(client, _event("payment_intent.payment_failed", {"id": "pi_fake"}))
        assert resp.json()["handled"] is True
        status = (await db.execute(select(ProfileUnlock.status))).scalar_one()
        assert status == ProfileUnlock.FAILED

    async def test_credit_pack_credited_once(self, client, db):
        company, _ = await make_company(db, credits=1)
        event = _event("payment_intent.succeeded", {
            "id": "pi_pack",
            "amount_received": 9900,
            "currency": "gbp",
            "metadata": {"kind": "credit_pack", "company_id": str(company.id), "credits": "10"},
        })
        await _post(client, event)
        await _post(client, event)

        balance = (await db.execute(select(Company.credits_balance).where(Company.id == company.id))).scalar_one()
        assert balance == 11
        entries = (await db.execute(select(func.count()).select_from(CreditLedger))).scalar_one()
        assert entries == 1


class TestSubscriptionEvents:

    async def test_upgrade_sets_tier_and_resets_usage(self, client, db):
        company, _ = await make_company(db, quota=10, searches_used=10, stripe_customer_id="cus_1")
        resp = await _post(client, _event("customer.subscription.updated", {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "active",
            "metadata": {"tier": "premium"},
        }))
        assert resp.json()["handled"] is True
        row = (await db.execute(
            select(Company.tier, Company.search_quota, Company.searches_used, Company.stripe_subscription_id)
            .where(Company.id == company.id)
        )).one()
        assert tuple(row) == ("premium", 100, 0, "sub_1")

    async def test_cancellation_returns_to_basic(self, client, db):
        company, _ = await make_company(db, tier="premium", quota=100, stripe_customer_id="cus_2")
        await _post(client, _event("customer.subscription.deleted", {"id": "sub_2", "customer": "cus_2", "status": "canceled"}))
        tier, quota = (await db.execute(
            select(Company.tier, Company.search_quota).where(Company.id == company.id)
        )).one()
        assert (tier, quota) == ("basic", 10)

    async def test_unknown_customer_not_handled(self, client, db):
        resp = await _post(client, _event("customer.subscription.created", {"id": "sub_3", "customer": "cus_none", "status": "active"}))
        assert resp.status_code == 200
        assert resp.json()["handled"] is False
