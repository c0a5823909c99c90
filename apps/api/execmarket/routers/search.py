import uuid
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core import get_settings, limiter
from execmarket.dependencies import get_current_viewer, get_db, get_optional_viewer
from execmarket.domain import Viewer
from execmarket.schemas import (
    HistoryCleared,
    ProfileView,
    SavedSearchCreate,
    SavedSearchResponse,
    SavedSearchUpdate,
    SearchHistoryResponse,
    SearchResponse,
)
from execmarket.services import search_service
from execmarket.services.search.filter_codec import query_params_to_raw

router = APIRouter(prefix="/search", tags=["search"])


@router.get("/candidates", response_model=SearchResponse, response_model_exclude_none=True)
@limiter.limit(get_settings().search_rate_limit)
async def search_candidates(
    request: Request,
    viewer: Viewer = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    raw = query_params_to_raw(request.query_params.multi_items())
    return await search_service.search(db, viewer, raw)


@router.post("/candidates", response_model=SearchResponse, response_model_exclude_none=True)
@limiter.limit(get_settings().search_rate_limit)
async def search_candidates_post(
    request: Request,
    body: dict[str, Any] | None = Body(None),
    viewer: Viewer = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.search(db, viewer, body or {})


@router.get("/profiles/{candidate_id}", response_model=ProfileView, response_model_exclude_none=True)
async def get_profile(
    candidate_id: uuid.UUID,
    viewer: Viewer = Depends(get_optional_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.get_profile(db, viewer, str(candidate_id))


# -----------------------------------------------------------------------------
# Saved searches
# -----------------------------------------------------------------------------
@router.get("/saved", response_model=list[SavedSearchResponse])
async def list_saved_searches(
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.list_saved_searches(db, viewer)


@router.post("/saved", response_model=SavedSearchResponse, status_code=status.HTTP_201_CREATED)
async def create_saved_search(
    body: SavedSearchCreate,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.create_saved_search(db, viewer, body)


@router.patch("/saved/{saved_id}", response_model=SavedSearchResponse)
async def update_saved_search(
    saved_id: uuid.UUID,
    body: SavedSearchUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.update_saved_search(db, viewer, str(saved_id), body)


@router.delete("/saved/{saved_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_saved_search(
    saved_id: uuid.UUID,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    await search_service.delete_saved_search(db, viewer, str(saved_id))


@router.post("/saved/{saved_id}/run", response_model=SearchResponse, response_model_exclude_none=True)
@limiter.limit(get_settings().search_rate_limit)
async def run_saved_search(
    request: Request,
    saved_id: uuid.UUID,
    page: Optional[int] = Query(None, ge=1, le=100_000),
    limit: Optional[int] = Query(None, ge=1),
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.run_saved_search(db, viewer, str(saved_id), page=page, limit=limit)


# -----------------------------------------------------------------------------
# History
# -----------------------------------------------------------------------------
@router.get("/history", response_model=SearchHistoryResponse)
async def get_search_history(
    page: int = Query(1, ge=1, le=100_000),
    limit: int = Query(20, ge=1, le=50),
    days: int = Query(30, ge=1, le=365),
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await search_service.list_search_history(db, viewer, page=page, limit=limit, days=days)


@router.delete("/history", response_model=HistoryCleared)
async def clear_search_history(
    days: Optional[int] = Query(None, ge=1, le=365),
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return HistoryCleared(deleted=await search_service.clear_search_history(db, viewer, days))
