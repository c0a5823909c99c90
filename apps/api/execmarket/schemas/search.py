from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from execmarket.schemas.profile import ProfileView


class FacetValue(BaseModel):
    value: str
    count: int
    label: Optional[str] = None


class FilterWarning(BaseModel):
    """A filter value that was dropped or adjusted while decoding."""
    field: Optional[str] = None
    message: str


class SearchResponse(BaseModel):
    results: list[ProfileView]
    total: int
    page: int
    limit: int
    total_pages: int
    facets: dict[str, list[FacetValue]] = {}
    search_id: str
    filters: dict[str, str] = {}  # canonical encoding of the applied filters
    warnings: list[FilterWarning] = []


AlertFrequency = Literal["daily", "weekly", "monthly"]


class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    # Same flat keys as GET /search/candidates
    filters: dict[str, Any] = {}
    alerts_enabled: bool = False
    alert_frequency: AlertFrequency = "weekly"


class SavedSearchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    filters: Optional[dict[str, Any]] = None
    alerts_enabled: Optional[bool] = None
    alert_frequency: Optional[AlertFrequency] = None


class SavedSearchResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    filters: dict[str, str]
    alerts_enabled: bool
    alert_frequency: str
    last_executed_at: Optional[datetime] = None
    result_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    warnings: list[FilterWarning] = []


class SearchHistoryEntry(BaseModel):
    id: str
    user_id: Optional[str] = None
    filters: dict[str, str]
    summary: str
    result_count: int
    searched_at: Optional[datetime] = None


class SearchHistoryResponse(BaseModel):
    history: list[SearchHistoryEntry]
    page: int
    limit: int
    total: int
    total_pages: int
    period_days: int


class HistoryCleared(BaseModel):
    deleted: int
