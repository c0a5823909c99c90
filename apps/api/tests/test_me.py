"""/me routes: unlock history with spend totals, and the candidate anonymity switch."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update

from execmarket.db.models import CandidateProfile, ProfileUnlock, User
from execmarket.domain import PrivateMetadata
from execmarket.services.disclosure import confirm_payment
from tests.conftest import auth_headers, make_candidate, make_company, make_user


async def _candidate_user(db, candidate) -> User:
    return (await db.execute(select(User).where(User.id == candidate.user_id))).scalar_one()


class TestUnlockHistory:

    async def test_history_lists_purchases_with_totals(self, client, db):
        company, user = await make_company(db, credits=5)
        other, other_user = await make_company(db, credits=5)
        cfo = await make_candidate(db, title="Chief Financial Officer", experience="executive")
        coo = await make_candidate(db, title="Chief Operating Officer")
        cto = await make_candidate(db, title="Chief Technology Officer")
        headers = auth_headers(user)

        for candidate, ref in ((cfo, "ref-1"), (coo, "ref-2")):
            resp = await client.post(f"/candidates/{candidate.id}/unlock", json={"payment_ref": ref}, headers=headers)
            assert resp.status_code == 200, resp.text
        await client.post(f"/candidates/{cfo.id}/unlock", json={"payment_ref": "ref-x"}, headers=auth_headers(other_user))
        await confirm_payment(
            db,
            "pi_card",
            company_id=str(company.id),
            candidate_id=str(cto.id),
            user_id=user.id,
            amount=4900,
            currency="gbp",
        )
        await db.commit()

        body = (await client.get("/me/unlocks", headers=headers)).json()
        assert body["total"] == 3
        assert body["period_days"] == 30
        assert body["credits_spent"] == 2
        assert body["card_spent"] == {"gbp": 4900}
        refs = {u["payment_ref"] for u in body["unlocks"]}
        assert refs == {"ref-1", "ref-2", "pi_card"}
        cfo_entry = next(u for u in body["unlocks"] if u["payment_ref"] == "ref-1")
        assert cfo_entry["candidate_title"] == "Chief Financial Officer"
        assert cfo_entry["candidate_experience"] == "executive"
        assert cfo_entry["source"] == "credits"
        assert cfo_entry["purchased_by"] == user.email

        one = (await client.get("/me/unlocks", params={"candidate_id": str(cfo.id)}, headers=headers)).json()
        assert [u["payment_ref"] for u in one["unlocks"]] == ["ref-1"]

    async def test_history_window(self, client, db):
        company, user = await make_company(db, credits=5)
        old = await make_candidate(db)
        recent = await make_candidate(db)
        headers = auth_headers(user)
        await client.post(f"/candidates/{old.id}/unlock", json={"payment_ref": "ref-old"}, headers=headers)
        await client.post(f"/candidates/{recent.id}/unlock", json={"payment_ref": "ref-new"}, headers=headers)
        long_ago = datetime.now(timezone.utc) - timedelta(days=45)
        await db.execute(
            update(ProfileUnlock)
            .where(ProfileUnlock.payment_ref == "ref-old")
            .values(created_at=long_ago, confirmed_at=long_ago)
        )
        await db.commit()

        body = (await client.get("/me/unlocks", headers=headers)).json()
        assert [u["payment_ref"] for u in body["unlocks"]] == ["ref-new"]
        assert body["credits_spent"] == 1

        body = (await client.get("/me/unlocks", params={"days": 90}, headers=headers)).json()
        assert [u["payment_ref"] for u in body["unlocks"]] == ["ref-new", "ref-old"]
        assert body["credits_spent"] == 2

    async def test_requires_company(self, client, db):
        user = await make_user(db, role="candidate")
        resp = await client.get("/me/unlocks", headers=auth_headers(user))
        assert resp.status_code == 403


class TestAnonymityToggle:

    async def test_toggle_changes_public_view(self, client, db):
        candidate = await make_candidate(db, first_name="Ada", title="Group CFO")
        headers = auth_headers(await _candidate_user(db, candidate))

        before = (await client.get("/search/candidates")).json()["results"][0]
        assert "first_name" not in before

        resp = await client.post("/me/profile/anonymity", headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["is_anonymized"] is False
        assert resp.json()["previous"] is True

        after = (await client.get("/search/candidates")).json()["results"][0]
        assert after["first_name"] == "Ada"
        assert after["title"] == "Group CFO"
        assert after["disclosed"] is False
        assert "email" not in after

        resp = await client.post("/me/profile/anonymity", headers=headers)
        assert resp.json()["is_anonymized"] is True
        stored = (await db.execute(
            select(CandidateProfile.private_metadata).where(CandidateProfile.id == candidate.id)
        )).scalar_one()
        metadata = PrivateMetadata.load(stored)
        assert metadata.anonymity_toggles == 2
        assert metadata.last_anonymity_toggle_at is not None

    async def test_toggle_keeps_existing_metadata(self, client, db):
        candidate = await make_candidate(
            db, private_metadata={"enrichment": [{"kind": "verification", "status": "passed"}]}
        )
        await client.post("/me/profile/anonymity", headers=auth_headers(await _candidate_user(db, candidate)))
        stored = (await db.execute(
            select(CandidateProfile.private_metadata).where(CandidateProfile.id == candidate.id)
        )).scalar_one()
        assert stored["enrichment"] == [{"kind": "verification", "status": "passed"}]
        assert stored["anonymity_toggles"] == 1

    async def test_company_user_cannot_toggle(self, client, db):
        _, user = await make_company(db)
        resp = await client.post("/me/profile/anonymity", headers=auth_headers(user))
        assert resp.status_code == 403

    async def test_candidate_without_profile(self, client, db):
        user = await make_user(db, role="candidate")
        resp = await client.post("/me/profile/anonymity", headers=auth_headers(user))
        assert resp.status_code == 404
