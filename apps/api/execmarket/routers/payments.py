import uuid

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core import get_settings, limiter
from execmarket.core.errors import ValidationError
from execmarket.dependencies import get_current_viewer, get_db
from execmarket.domain import Viewer
from execmarket.schemas import UnlockIntentRequest, UnlockIntentResponse
from execmarket.services.billing import create_unlock_intent

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/unlock-intent", response_model=UnlockIntentResponse)
@limiter.limit(get_settings().unlock_rate_limit)
async def unlock_intent(
    request: Request,
    body: UnlockIntentRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    try:
        candidate_id = str(uuid.UUID(body.candidate_id))
    except ValueError:
        raise ValidationError("candidate_id must be a UUID", field="candidate_id")
    return await create_unlock_intent(db, viewer, candidate_id)
