import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.dependencies import get_current_viewer, get_db
from execmarket.domain import Viewer
from execmarket.schemas import (
    AnonymityResponse,
    CreditsResponse,
    LedgerEntryResponse,
    UnlockHistoryResponse,
)
from execmarket.services import me_service

router = APIRouter(prefix="/me", tags=["me"])


@router.get("/credits", response_model=CreditsResponse)
async def get_credits(
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await me_service.get_credits(db, viewer)


@router.get("/credits/ledger", response_model=list[LedgerEntryResponse])
async def get_credits_ledger(
    limit: int = Query(50, ge=1, le=200),
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await me_service.get_credits_ledger(db, viewer, limit)


@router.get("/unlocks", response_model=UnlockHistoryResponse)
async def get_unlock_history(
    page: int = Query(1, ge=1, le=100_000),
    limit: int = Query(20, ge=1, le=100),
    days: int = Query(30, ge=1, le=365),
    candidate_id: Optional[uuid.UUID] = None,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await me_service.get_unlock_history(
        db,
        viewer,
        page=page,
        limit=limit,
        days=days,
        candidate_id=str(candidate_id) if candidate_id else None,
    )


@router.post("/profile/anonymity", response_model=AnonymityResponse)
async def toggle_anonymity(
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    return await me_service.toggle_anonymity(db, viewer)
