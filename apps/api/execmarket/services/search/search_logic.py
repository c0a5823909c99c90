"""Search pipeline business logic.

Pipeline: decode filters -> authorize and consume quota -> compile (base
predicates first) -> page + count + facets concurrently -> entitlements ->
anonymize each result -> log the search.
"""

import asyncio
import logging
import math
import uuid
from typing import Any, Mapping

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.errors import (
    AuthorizationError,
    DependencyError,
    NotFoundError,
    QuotaExceededError,
)
from execmarket.db.models import Company, SearchQuery
from execmarket.domain import Viewer
from execmarket.schemas import FilterWarning, ProfileView, SearchResponse
from execmarket.services.disclosure import (
    entitlements_for,
    get_entitlement,
    has_unlimited_disclosure,
    transform,
)

from .compiler import compile_criteria
from .facets import aggregate_all
from .filter_codec import decode_with_issues, encode
from .repository import CandidateRepository

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Authorization and quota
# -----------------------------------------------------------------------------
def _authorize(viewer: Viewer) -> None:
    """Signed-in viewers need a company or admin role; anonymous viewers search in public mode."""
    if viewer.is_authenticated and not (viewer.is_admin or viewer.company_id):
        raise AuthorizationError()


async def consume_search_quota(db: AsyncSession, company_id: str) -> None:
    """Atomically take one search from the company allowance or raise QuotaExceededError."""
    result = await db.execute(
        update(Company)
        .where(Company.id == company_id, Company.searches_used < Company.search_quota)
        .values(searches_used=Company.searches_used + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise QuotaExceededError()


# -----------------------------------------------------------------------------
# Search
# -----------------------------------------------------------------------------
async def run_search(
    db: AsyncSession,
    viewer: Viewer,
    raw: Mapping[str, Any] | None,
    repo: CandidateRepository | None = None,
) -> SearchResponse:
    repo = repo or CandidateRepository()
    criteria, issues = decode_with_issues(raw)
    _authorize(viewer)
    if viewer.company_id and not has_unlimited_disclosure(viewer):
        await consume_search_quota(db, viewer.company_id)

    plan = compile_criteria(criteria).with_base()
    try:
        records, total, facets = await asyncio.gather(
            repo.fetch_page(plan),
            repo.count(plan.predicates),
            aggregate_all(repo, plan.predicates),
        )
    except Exception as exc:
        logger.exception("Search query failed: %s", exc)
        raise DependencyError() from exc

    entitlements = await entitlements_for(db, viewer, [r.id for r in records])
    results = [transform(r, entitlements[r.id]) for r in records]

    search_id = str(uuid.uuid4())
    filters = encode(criteria)
    if viewer.is_authenticated:
        db.add(
            SearchQuery(
                id=search_id,
                company_id=viewer.company_id,
                user_id=viewer.user_id,
                filters=filters,
                result_count=total,
            )
        )
        await db.flush()

    logger.info(
        "search | viewer=%s total=%d page=%d limit=%d filters=%s",
        viewer.user_id or "public",
        total,
        criteria.page,
        criteria.limit,
        filters,
    )
    return SearchResponse(
        results=results,
        total=total,
        page=criteria.page,
        limit=criteria.limit,
        total_pages=math.ceil(total / criteria.limit),
        facets=facets,
        search_id=search_id,
        filters=filters,
        warnings=[FilterWarning(field=i.field, message=i.message) for i in issues],
    )


async def get_profile_view(
    db: AsyncSession,
    viewer: Viewer,
    candidate_id: str,
    repo: CandidateRepository | None = None,
) -> ProfileView:
    """Single profile as this viewer may see it. Inactive or incomplete profiles are not found."""
    repo = repo or CandidateRepository()
    try:
        record = await repo.get_record(candidate_id)
    except Exception as exc:
        logger.exception("Profile lookup failed for %s: %s", candidate_id, exc)
        raise DependencyError() from exc
    if record is None:
        raise NotFoundError("Candidate not found")
    entitlement = await get_entitlement(db, viewer, candidate_id)
    return transform(record, entitlement)
