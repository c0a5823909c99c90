import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core import get_settings, limiter
from execmarket.dependencies import get_current_viewer, get_db
from execmarket.domain import Viewer
from execmarket.schemas import UnlockRequest, UnlockResponse
from execmarket.serializers import ledger_to_response
from execmarket.services import search_service

router = APIRouter(prefix="/candidates", tags=["candidates"])


@router.post("/{candidate_id}/unlock", response_model=UnlockResponse, response_model_exclude_none=True)
@limiter.limit(get_settings().unlock_rate_limit)
async def unlock_candidate(
    request: Request,
    candidate_id: uuid.UUID,
    body: UnlockRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    result = await search_service.unlock(db, viewer, str(candidate_id), body.payment_ref)
    return UnlockResponse(
        entitlement=result.entitlement.status,
        already_unlocked=result.already_unlocked,
        balance=result.balance,
        transaction=ledger_to_response(result.transaction) if result.transaction else None,
        purchase=result.entitlement.purchase,
    )
