from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel


class TagView(BaseModel):
    name: str
    slug: str
    category: str
    proficiency: Optional[str] = None
    years_experience: Optional[int] = None
    is_endorsed: Optional[bool] = None


class WorkExperienceView(BaseModel):
    company_name: str
    title: str
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False


class EducationView(BaseModel):
    institution: str
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    graduation_year: Optional[int] = None


class PurchaseRecord(BaseModel):
    payment_ref: str
    source: str  # credits, card
    amount: int
    currency: Optional[str] = None
    purchased_at: Optional[datetime] = None


class Entitlement(BaseModel):
    """Viewer's disclosure right for one candidate."""

    status: Literal["not_purchased", "purchased", "plan"] = "not_purchased"
    purchase: Optional[PurchaseRecord] = None

    @property
    def disclosed(self) -> bool:
        return self.status != "not_purchased"


class ProfileView(BaseModel):
    """Candidate profile as a particular viewer may see it. Absent fields are omitted from JSON."""

    id: str
    disclosed: bool
    is_anonymized: bool

    # Identity and contact (disclosure only; names also when not anonymized)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None

    # Professional
    title: Optional[str] = None
    summary: Optional[str] = None
    experience: Optional[str] = None
    experience_label: Optional[str] = None
    location: Optional[str] = None
    remote_preference: Optional[str] = None
    availability: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    salary_currency: Optional[str] = None
    salary_rounded: Optional[bool] = None

    tags: list[TagView] = []
    tag_count: Optional[int] = None
    board_experience: list[str] = []
    work_experiences: Optional[list[WorkExperienceView]] = None
    education: Optional[list[EducationView]] = None

    is_verified: bool = False
    profile_completion: Optional[int] = None
    purchase: Optional[PurchaseRecord] = None
    updated_at: Optional[datetime] = None


class AnonymityResponse(BaseModel):
    """Candidate's own visibility switch."""

    is_anonymized: bool
    previous: bool
    updated_at: Optional[datetime] = None
