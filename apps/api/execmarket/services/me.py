"""Me (company credits, ledger, unlock history; candidate visibility) business logic."""

import logging
import math
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.errors import AuthorizationError, NotFoundError
from execmarket.db.models import CandidateProfile, Company, ProfileUnlock, User
from execmarket.domain import PrivateMetadata, Viewer
from execmarket.schemas import (
    AnonymityResponse,
    CreditsResponse,
    LedgerEntryResponse,
    UnlockHistoryEntry,
    UnlockHistoryResponse,
)
from execmarket.serializers import ledger_to_response
from execmarket.services.credits import list_ledger

logger = logging.getLogger(__name__)


def require_company_id(viewer: Viewer) -> str:
    if not viewer.company_id:
        raise AuthorizationError("Company membership required")
    return viewer.company_id


async def get_credits(db: AsyncSession, viewer: Viewer) -> CreditsResponse:
    company_id = require_company_id(viewer)
    result = await db.execute(select(Company).where(Company.id == company_id))
    company = result.scalar_one_or_none()
    if not company:
        raise NotFoundError("Company not found")
    return CreditsResponse(
        balance=company.credits_balance,
        tier=company.tier,
        payment_preference=company.payment_preference,
        search_quota=company.search_quota,
        searches_used=company.searches_used,
    )


async def get_credits_ledger(db: AsyncSession, viewer: Viewer, limit: int = 50) -> list[LedgerEntryResponse]:
    company_id = require_company_id(viewer)
    rows = await list_ledger(db, company_id, limit=limit)
    return [ledger_to_response(r) for r in rows]


async def get_unlock_history(
    db: AsyncSession,
    viewer: Viewer,
    page: int = 1,
    limit: int = 20,
    days: int = 30,
    candidate_id: str | None = None,
) -> UnlockHistoryResponse:
    """Purchased unlocks of the viewer's company, newest first, with spend totals for the period."""
    company_id = require_company_id(viewer)
    purchased_at = func.coalesce(ProfileUnlock.confirmed_at, ProfileUnlock.created_at)
    where = [
        ProfileUnlock.company_id == company_id,
        ProfileUnlock.status == ProfileUnlock.PURCHASED,
        purchased_at >= datetime.now(timezone.utc) - timedelta(days=days),
    ]
    if candidate_id:
        where.append(ProfileUnlock.candidate_id == candidate_id)

    total = (await db.execute(select(func.count()).select_from(ProfileUnlock).where(*where))).scalar_one()
    spend = await db.execute(
        select(ProfileUnlock.source, ProfileUnlock.currency, func.sum(ProfileUnlock.amount))
        .where(*where)
        .group_by(ProfileUnlock.source, ProfileUnlock.currency)
    )
    credits_spent = 0
    card_spent: dict[str, int] = {}
    for source, currency, amount in spend.all():
        if source == "credits":
            credits_spent += int(amount or 0)
        else:
            key = (currency or "").lower()
            card_spent[key] = card_spent.get(key, 0) + int(amount or 0)

    result = await db.execute(
        select(ProfileUnlock, CandidateProfile, User)
        .join(CandidateProfile, CandidateProfile.id == ProfileUnlock.candidate_id)
        .outerjoin(User, User.id == ProfileUnlock.user_id)
        .where(*where)
        .order_by(purchased_at.desc(), ProfileUnlock.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    unlocks = []
    for unlock, candidate, purchaser in result.all():
        name = " ".join(p for p in (purchaser.first_name, purchaser.last_name) if p) if purchaser else ""
        unlocks.append(
            UnlockHistoryEntry(
                id=str(unlock.id),
                payment_ref=unlock.payment_ref,
                candidate_id=str(unlock.candidate_id),
                candidate_title=candidate.title,
                candidate_experience=candidate.experience,
                candidate_location=candidate.location,
                source=unlock.source,
                amount=unlock.amount,
                currency=unlock.currency,
                purchased_by=name or (purchaser.email if purchaser else None),
                purchased_at=unlock.confirmed_at or unlock.created_at,
            )
        )
    return UnlockHistoryResponse(
        unlocks=unlocks,
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
        period_days=days,
        credits_spent=credits_spent,
        card_spent=card_spent,
    )


async def toggle_anonymity(db: AsyncSession, viewer: Viewer) -> AnonymityResponse:
    """Flip the signed-in candidate's anonymity and count the change in private metadata."""
    if viewer.role != User.CANDIDATE:
        raise AuthorizationError("Candidate account required")
    result = await db.execute(select(CandidateProfile).where(CandidateProfile.user_id == viewer.user_id))
    candidate = result.scalar_one_or_none()
    if candidate is None:
        raise NotFoundError("Candidate profile not found")

    now = datetime.now(timezone.utc)
    previous = bool(candidate.is_anonymized)
    candidate.is_anonymized = not previous
    candidate.updated_at = now
    metadata = PrivateMetadata.load(candidate.private_metadata)
    metadata.anonymity_toggles += 1
    metadata.last_anonymity_toggle_at = now
    candidate.private_metadata = metadata.dump()
    await db.flush()
    logger.info("Candidate %s anonymity %s -> %s", candidate.id, previous, candidate.is_anonymized)
    return AnonymityResponse(is_anonymized=candidate.is_anonymized, previous=previous, updated_at=now)


class MeService:
    """Facade for the signed-in viewer's account."""

    @staticmethod
    async def get_credits(db: AsyncSession, viewer: Viewer) -> CreditsResponse:
        return await get_credits(db, viewer)

    @staticmethod
    async def get_credits_ledger(db: AsyncSession, viewer: Viewer, limit: int = 50) -> list[LedgerEntryResponse]:
        return await get_credits_ledger(db, viewer, limit)

    @staticmethod
    async def get_unlock_history(db: AsyncSession, viewer: Viewer, **params) -> UnlockHistoryResponse:
        return await get_unlock_history(db, viewer, **params)

    @staticmethod
    async def toggle_anonymity(db: AsyncSession, viewer: Viewer) -> AnonymityResponse:
        return await toggle_anonymity(db, viewer)


me_service = MeService()
