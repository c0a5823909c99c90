from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from execmarket.schemas.profile import PurchaseRecord


class CreditsResponse(BaseModel):
    balance: int
    tier: str
    payment_preference: str
    search_quota: int
    searches_used: int


class LedgerEntryResponse(BaseModel):
    id: str
    amount: int
    reason: str
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    balance_after: Optional[int] = None
    created_at: Optional[datetime] = None


class UnlockRequest(BaseModel):
    payment_ref: str = Field(..., min_length=1, max_length=255)


class UnlockResponse(BaseModel):
    entitlement: str  # purchased, plan
    already_unlocked: bool = False
    balance: Optional[int] = None
    transaction: Optional[LedgerEntryResponse] = None
    purchase: Optional[PurchaseRecord] = None


class UnlockHistoryEntry(BaseModel):
    id: str
    payment_ref: str
    candidate_id: str
    candidate_title: Optional[str] = None
    candidate_experience: Optional[str] = None
    candidate_location: Optional[str] = None
    source: str  # credits, card
    amount: int  # credits, or minor units for card
    currency: Optional[str] = None
    purchased_by: Optional[str] = None
    purchased_at: Optional[datetime] = None


class UnlockHistoryResponse(BaseModel):
    unlocks: list[UnlockHistoryEntry]
    page: int
    limit: int
    total: int
    total_pages: int
    period_days: int
    credits_spent: int
    card_spent: dict[str, int] = {}  # currency -> minor units
