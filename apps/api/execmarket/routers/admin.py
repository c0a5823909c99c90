import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.dependencies import get_db, require_admin
from execmarket.domain import Viewer
from execmarket.schemas import ApprovalRequest, ApprovalResponse
from execmarket.services.approval import approve_profile, retire_profile

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/candidates/{candidate_id}/approval", response_model=ApprovalResponse)
async def approve_candidate(
    candidate_id: uuid.UUID,
    body: ApprovalRequest,
    admin: Viewer = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await approve_profile(db, str(candidate_id), body, admin_user_id=admin.user_id)


@router.post("/candidates/{candidate_id}/retire", status_code=status.HTTP_204_NO_CONTENT)
async def retire_candidate(
    candidate_id: uuid.UUID,
    admin: Viewer = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await retire_profile(db, str(candidate_id), admin_user_id=admin.user_id)
