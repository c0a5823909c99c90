"""Saved searches and the company search history.

Saved filters are stored in the canonical encoding produced by the filter
codec (minus the page), so running one replays exactly what was saved.
History is read from the SearchQuery rows the search pipeline writes.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.errors import NotFoundError
from execmarket.db.models import SavedSearch, SearchQuery
from execmarket.domain import Viewer
from execmarket.schemas import (
    FilterWarning,
    SavedSearchCreate,
    SavedSearchResponse,
    SavedSearchUpdate,
    SearchHistoryEntry,
    SearchHistoryResponse,
    SearchResponse,
)
from execmarket.services.me import require_company_id

from .filter_codec import decode_with_issues, encode
from .search_logic import run_search

logger = logging.getLogger(__name__)

# Keys left out of saved filters and history summaries
_PAGING_KEYS = ("page", "limit", "sortBy", "sortOrder")


def canonical_filters(raw: Mapping[str, Any] | None) -> tuple[dict[str, str], list[FilterWarning]]:
    criteria, issues = decode_with_issues(raw)
    filters = encode(criteria)
    filters.pop("page", None)
    return filters, [FilterWarning(field=i.field, message=i.message) for i in issues]


def summarize(filters: Mapping[str, Any] | None) -> str:
    """Short human-readable line for a stored filter map."""
    parts = [f"{k}: {v}" for k, v in (filters or {}).items() if k not in _PAGING_KEYS]
    return "; ".join(parts) or "All candidates"


def _to_response(row: SavedSearch, warnings: list[FilterWarning] | None = None) -> SavedSearchResponse:
    return SavedSearchResponse(
        id=str(row.id),
        name=row.name,
        description=row.description,
        filters=row.filters or {},
        alerts_enabled=row.alerts_enabled,
        alert_frequency=row.alert_frequency,
        last_executed_at=row.last_executed_at,
        result_count=row.result_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
        warnings=warnings or [],
    )


async def _get_saved(db: AsyncSession, company_id: str, saved_id: str) -> SavedSearch:
    result = await db.execute(
        select(SavedSearch).where(
            SavedSearch.id == saved_id,
            SavedSearch.company_id == company_id,
            SavedSearch.is_active.is_(True),
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError("Saved search not found")
    return row


# -----------------------------------------------------------------------------
# Saved searches
# -----------------------------------------------------------------------------
async def list_saved_searches(db: AsyncSession, viewer: Viewer) -> list[SavedSearchResponse]:
    company_id = require_company_id(viewer)
    result = await db.execute(
        select(SavedSearch)
        .where(SavedSearch.company_id == company_id, SavedSearch.is_active.is_(True))
        .order_by(SavedSearch.updated_at.desc(), SavedSearch.id)
    )
    return [_to_response(r) for r in result.scalars().all()]


async def create_saved_search(db: AsyncSession, viewer: Viewer, body: SavedSearchCreate) -> SavedSearchResponse:
    company_id = require_company_id(viewer)
    filters, warnings = canonical_filters(body.filters)
    row = SavedSearch(
        company_id=company_id,
        user_id=viewer.user_id,
        name=body.name.strip(),
        description=body.description,
        filters=filters,
        alerts_enabled=body.alerts_enabled,
        alert_frequency=body.alert_frequency,
    )
    db.add(row)
    await db.flush()
    logger.info("Saved search %s created company=%s filters=%s", row.id, company_id, filters)
    return _to_response(row, warnings)


async def update_saved_search(
    db: AsyncSession, viewer: Viewer, saved_id: str, body: SavedSearchUpdate
) -> SavedSearchResponse:
    row = await _get_saved(db, require_company_id(viewer), saved_id)
    warnings: list[FilterWarning] = []
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if "filters" in changes:
        changes["filters"], warnings = canonical_filters(changes["filters"])
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    for key, value in changes.items():
        setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return _to_response(row, warnings)


async def delete_saved_search(db: AsyncSession, viewer: Viewer, saved_id: str) -> None:
    row = await _get_saved(db, require_company_id(viewer), saved_id)
    row.is_active = False
    row.updated_at = datetime.now(timezone.utc)
    await db.flush()


async def run_saved_search(
    db: AsyncSession,
    viewer: Viewer,
    saved_id: str,
    page: int | None = None,
    limit: int | None = None,
) -> SearchResponse:
    """Run the stored filters through the normal search pipeline (quota and history included)."""
    row = await _get_saved(db, require_company_id(viewer), saved_id)
    raw: dict[str, Any] = dict(row.filters or {})
    if page is not None:
        raw["page"] = str(page)
    if limit is not None:
        raw["limit"] = str(limit)
    response = await run_search(db, viewer, raw)
    row.last_executed_at = datetime.now(timezone.utc)
    row.result_count = response.total
    await db.flush()
    return response


# -----------------------------------------------------------------------------
# Search history
# -----------------------------------------------------------------------------
def _cutoff(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


async def get_search_history(
    db: AsyncSession,
    viewer: Viewer,
    page: int = 1,
    limit: int = 20,
    days: int = 30,
) -> SearchHistoryResponse:
    company_id = require_company_id(viewer)
    where = (SearchQuery.company_id == company_id, SearchQuery.created_at >= _cutoff(days))
    total = (await db.execute(select(func.count()).select_from(SearchQuery).where(*where))).scalar_one()
    result = await db.execute(
        select(SearchQuery)
        .where(*where)
        .order_by(SearchQuery.created_at.desc(), SearchQuery.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    history = [
        SearchHistoryEntry(
            id=str(q.id),
            user_id=q.user_id,
            filters=q.filters or {},
            summary=summarize(q.filters),
            result_count=q.result_count,
            searched_at=q.created_at,
        )
        for q in result.scalars().all()
    ]
    return SearchHistoryResponse(
        history=history,
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
        period_days=days,
    )


async def clear_search_history(db: AsyncSession, viewer: Viewer, days: int | None = None) -> int:
    """Delete the company's history; with ``days``, only entries from that many recent days."""
    company_id = require_company_id(viewer)
    stmt = delete(SearchQuery).where(SearchQuery.company_id == company_id)
    if days:
        stmt = stmt.where(SearchQuery.created_at >= _cutoff(days))
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    logger.info("Search history cleared company=%s days=%s deleted=%d", company_id, days, result.rowcount)
    return result.rowcount
