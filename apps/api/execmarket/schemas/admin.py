from typing import Literal, Optional

from pydantic import BaseModel

from execmarket.domain import ProfileSubmission


class ApprovalRequest(BaseModel):
    action: Literal["approve", "reject"] = "approve"
    # Replaces the stored submission before processing when given
    submission: Optional[ProfileSubmission] = None


class ApprovalResponse(BaseModel):
    candidate_id: str
    status: str  # approved, reprocessed, rejected
    is_active: bool
    profile_completed: bool
    tags: int
    work_experiences: int
    education: int
    board_experience: int
