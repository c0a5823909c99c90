"""
Domain types for candidate profiles, search dimensions and private metadata.
Single source of truth for the filter codec, compiler, transformer and API.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union, get_args

from pydantic import BaseModel, Field, PrivateAttr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# 1. Enums
# -----------------------------------------------------------------------------

ExperienceLevel = Literal["junior", "mid", "senior", "lead", "executive"]

Availability = Literal["immediately", "2weeks", "1month", "3months", "6months"]

RemotePreference = Literal["remote", "hybrid", "onsite", "flexible"]

TagCategory = Literal["skill", "expertise", "industry", "role", "certification", "language"]

BoardExperienceType = Literal[
    "ftse100", "ftse250", "aim", "private-equity",
    "startup", "public-sector", "charity",
]

Proficiency = Literal["beginner", "intermediate", "advanced", "expert"]

CompanyTier = Literal["basic", "premium", "enterprise"]

AccessModel = Literal["credits", "card"]

UserRole = Literal["candidate", "company", "admin"]

SortBy = Literal["relevance", "salary", "updated", "alphabetical", "experience"]

SortOrder = Literal["asc", "desc"]

EXPERIENCE_LEVELS: tuple[str, ...] = get_args(ExperienceLevel)
AVAILABILITIES: tuple[str, ...] = get_args(Availability)
REMOTE_PREFERENCES: tuple[str, ...] = get_args(RemotePreference)
TAG_CATEGORIES: tuple[str, ...] = get_args(TagCategory)
BOARD_EXPERIENCE_TYPES: tuple[str, ...] = get_args(BoardExperienceType)
SORT_KEYS: tuple[str, ...] = get_args(SortBy)
SORT_ORDERS: tuple[str, ...] = get_args(SortOrder)

# executive > lead > senior > mid > junior
EXPERIENCE_RANK: dict[str, int] = {level: i for i, level in enumerate(EXPERIENCE_LEVELS, start=1)}

EXPERIENCE_LABELS: dict[str, str] = {
    "junior": "0-5 years",
    "mid": "5-10 years",
    "senior": "10-15 years",
    "lead": "15-20 years",
    "executive": "20+ years",
}

AVAILABILITY_LABELS: dict[str, str] = {
    "immediately": "Immediately",
    "2weeks": "2 weeks notice",
    "1month": "1 month notice",
    "3months": "3 months notice",
    "6months": "6 months notice",
}

REMOTE_LABELS: dict[str, str] = {
    "remote": "Remote",
    "hybrid": "Hybrid",
    "onsite": "On-site",
    "flexible": "Flexible",
}

BOARD_EXPERIENCE_LABELS: dict[str, str] = {
    "ftse100": "FTSE 100",
    "ftse250": "FTSE 250",
    "aim": "AIM Listed",
    "private-equity": "PE Backed",
    "startup": "Startup/Scale-up",
    "public-sector": "Public Sector",
    "charity": "Charity/Third Sector",
}


def slugify(value: str) -> str:
    """Lowercase, hyphen-separated slug for tag names ("Tech & Software" -> "tech-software")."""
    out: list[str] = []
    prev_dash = False
    for ch in value.strip().lower():
        if ch.isalnum():
            out.append(ch)
            prev_dash = False
        elif not prev_dash and out:
            out.append("-")
            prev_dash = True
    return "".join(out).strip("-")


# -----------------------------------------------------------------------------
# 2. Enrichment records (private metadata, tagged by "kind")
# -----------------------------------------------------------------------------

class VerificationRecord(BaseModel):
    kind: Literal["verification"] = "verification"
    status: Literal["pending", "passed", "failed"] = "pending"
    method: Optional[str] = None  # identity, references, linkedin
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None


class SkillAssessment(BaseModel):
    kind: Literal["skill_assessment"] = "skill_assessment"
    skill: str
    score: Optional[float] = Field(None, ge=0, le=100)
    assessor: Optional[str] = None
    assessed_at: Optional[datetime] = None


class BackgroundCheck(BaseModel):
    kind: Literal["background_check"] = "background_check"
    provider: Optional[str] = None
    outcome: Literal["clear", "consider", "pending"] = "pending"
    checked_at: Optional[datetime] = None


class PortfolioReview(BaseModel):
    kind: Literal["portfolio_review"] = "portfolio_review"
    reviewer: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None


EnrichmentRecord = Annotated[
    Union[VerificationRecord, SkillAssessment, BackgroundCheck, PortfolioReview],
    Field(discriminator="kind"),
]

_enrichment_adapter = TypeAdapter(EnrichmentRecord)


def parse_enrichment(items: Any) -> list[EnrichmentRecord]:
    """Parse stored enrichment records; unknown kinds and malformed entries are dropped."""
    if not isinstance(items, list):
        return []
    out: list[EnrichmentRecord] = []
    for item in items:
        try:
            out.append(_enrichment_adapter.validate_python(item))
        except PydanticValidationError as e:
            logger.warning("Dropping malformed enrichment record: %s", e.errors()[:1])
    return out


def is_verified(records: list[EnrichmentRecord]) -> bool:
    """True when the latest verification record passed."""
    verdict = False
    for record in records:
        if isinstance(record, VerificationRecord):
            verdict = record.status == "passed"
    return verdict


# -----------------------------------------------------------------------------
# 3. Submission (signup payload processed on approval)
# -----------------------------------------------------------------------------

class SubmittedTag(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: TagCategory
    proficiency: Optional[Proficiency] = None
    years_experience: Optional[int] = Field(None, ge=0, le=60)


class SubmittedWorkExperience(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False


class SubmittedEducation(BaseModel):
    institution: str = Field(..., min_length=1, max_length=255)
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    graduation_year: Optional[int] = Field(None, ge=1900, le=2100)


class SubmittedCompensation(BaseModel):
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    currency: str = "GBP"


class ProfileSubmission(BaseModel):
    """What the candidate submitted at signup; replayed wholesale on each approval run."""
    tags: list[SubmittedTag] = []
    work_experiences: list[SubmittedWorkExperience] = []
    education: list[SubmittedEducation] = []
    board_experience: list[BoardExperienceType] = []
    compensation: Optional[SubmittedCompensation] = None


class ProcessingEvent(BaseModel):
    at: datetime
    by: Optional[str] = None
    status: Literal["approved", "reprocessed", "rejected", "retired"]
    tags: int = 0
    work_experiences: int = 0
    education: int = 0
    board_experience: int = 0


class PrivateMetadata(BaseModel):
    submission: Optional[ProfileSubmission] = None
    enrichment: list[Any] = []
    processing_history: list[ProcessingEvent] = []
    anonymity_toggles: int = 0
    last_anonymity_toggle_at: Optional[datetime] = None

    # sections that failed validation, written back untouched by dump()
    _unreadable: dict[str, Any] = PrivateAttr(default_factory=dict)

    @classmethod
    def load(cls, raw: Any) -> "PrivateMetadata":
        """Read the stored JSON document section by section.

        An unreadable submission is kept aside (see ``submission_unreadable``),
        enrichment stays as the raw list and only invalid history entries are dropped.
        """
        meta = cls()
        if not isinstance(raw, dict):
            return meta
        for key, value in raw.items():
            if key not in cls.model_fields:
                meta._unreadable[key] = value

        stored = raw.get("submission")
        if stored is not None:
            try:
                meta.submission = ProfileSubmission.model_validate(stored)
            except PydanticValidationError as e:
                logger.warning("Stored submission failed validation: %s", e.errors()[:1])
                meta._unreadable["submission"] = stored

        enrichment = raw.get("enrichment")
        if isinstance(enrichment, list):
            meta.enrichment = list(enrichment)
        elif enrichment is not None:
            meta._unreadable["enrichment"] = enrichment

        history = raw.get("processing_history")
        for item in history if isinstance(history, list) else []:
            try:
                meta.processing_history.append(ProcessingEvent.model_validate(item))
            except PydanticValidationError as e:
                logger.warning("Dropping unreadable processing history entry: %s", e.errors()[:1])

        for key in ("anonymity_toggles", "last_anonymity_toggle_at"):
            if raw.get(key) is None:
                continue
            try:
                setattr(meta, key, getattr(cls.model_validate({key: raw[key]}), key))
            except PydanticValidationError as e:
                logger.warning("Dropping unreadable %s: %s", key, e.errors()[:1])
        return meta

    @property
    def submission_unreadable(self) -> bool:
        return self.submission is None and "submission" in self._unreadable

    def dump(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude_none=True)
        for key, value in self._unreadable.items():
            if key == "submission" and self.submission is not None:
                continue
            data[key] = value
        return data

    def enrichment_records(self) -> list[EnrichmentRecord]:
        return parse_enrichment(self.enrichment)


# -----------------------------------------------------------------------------
# 4. Viewer
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Viewer:
    """Who is searching or unlocking. Entitlements and credits belong to the company account."""
    user_id: Optional[str] = None
    role: Optional[str] = None  # candidate, company, admin; None for public
    company_id: Optional[str] = None
    tier: Optional[str] = None
    access_model: str = "credits"

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


PUBLIC_VIEWER = Viewer()
