"""Pydantic request/response schemas."""

from execmarket.schemas.profile import (
    TagView,
    WorkExperienceView,
    EducationView,
    PurchaseRecord,
    Entitlement,
    ProfileView,
    AnonymityResponse,
)
from execmarket.schemas.search import (
    FacetValue,
    FilterWarning,
    SearchResponse,
    SavedSearchCreate,
    SavedSearchUpdate,
    SavedSearchResponse,
    SearchHistoryEntry,
    SearchHistoryResponse,
    HistoryCleared,
)
from execmarket.schemas.credits import (
    CreditsResponse,
    LedgerEntryResponse,
    UnlockRequest,
    UnlockResponse,
    UnlockHistoryEntry,
    UnlockHistoryResponse,
)
from execmarket.schemas.payments import UnlockIntentRequest, UnlockIntentResponse, WebhookAck
from execmarket.schemas.admin import ApprovalRequest, ApprovalResponse

__all__ = [
    "TagView",
    "WorkExperienceView",
    "EducationView",
    "PurchaseRecord",
    "Entitlement",
    "ProfileView",
    "AnonymityResponse",
    "FacetValue",
    "FilterWarning",
    "SearchResponse",
    "SavedSearchCreate",
    "SavedSearchUpdate",
    "SavedSearchResponse",
    "SearchHistoryEntry",
    "SearchHistoryResponse",
    "HistoryCleared",
    "CreditsResponse",
    "LedgerEntryResponse",
    "UnlockRequest",
    "UnlockResponse",
    "UnlockHistoryEntry",
    "UnlockHistoryResponse",
    "UnlockIntentRequest",
    "UnlockIntentResponse",
    "WebhookAck",
    "ApprovalRequest",
    "ApprovalResponse",
]
