"""Shared model-to-record and model-to-response serializers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from execmarket.db.models import CandidateProfile, CreditLedger, ProfileUnlock
from execmarket.domain import EnrichmentRecord, PrivateMetadata
from execmarket.schemas import LedgerEntryResponse, PurchaseRecord


@dataclass(frozen=True)
class TagRecord:
    name: str
    slug: str
    category: str
    proficiency: Optional[str] = None
    years_experience: Optional[int] = None
    is_endorsed: bool = False


@dataclass(frozen=True)
class WorkExperienceRecord:
    company_name: str
    title: str
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False


@dataclass(frozen=True)
class EducationRecord:
    institution: str
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    graduation_year: Optional[int] = None


@dataclass(frozen=True)
class CandidateRecord:
    """Detached, read-only snapshot of a candidate profile and its children."""
    id: str
    user_id: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    title: Optional[str]
    summary: Optional[str]
    experience: Optional[str]
    location: Optional[str]
    remote_preference: Optional[str]
    availability: Optional[str]
    salary_min: Optional[int]
    salary_max: Optional[int]
    salary_currency: Optional[str]
    linkedin_url: Optional[str]
    github_url: Optional[str]
    portfolio_url: Optional[str]
    is_active: bool
    profile_completed: bool
    is_anonymized: bool
    tags: tuple[TagRecord, ...] = ()
    work_experiences: tuple[WorkExperienceRecord, ...] = ()
    education: tuple[EducationRecord, ...] = ()
    board_experience: tuple[str, ...] = ()
    enrichment: tuple[EnrichmentRecord, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def candidate_to_record(c: CandidateProfile) -> CandidateRecord:
    """Map a CandidateProfile (children and user eagerly loaded) to CandidateRecord."""
    user = c.user
    metadata = PrivateMetadata.load(c.private_metadata)
    tags = sorted(
        (ct for ct in c.tags if ct.tag is not None),
        key=lambda ct: (ct.tag.category, ct.tag.name.lower()),
    )
    return CandidateRecord(
        id=str(c.id),
        user_id=c.user_id,
        first_name=user.first_name if user else None,
        last_name=user.last_name if user else None,
        email=user.email if user else None,
        phone=user.phone if user else None,
        title=c.title,
        summary=c.summary,
        experience=c.experience,
        location=c.location,
        remote_preference=c.remote_preference,
        availability=c.availability,
        salary_min=c.salary_min,
        salary_max=c.salary_max,
        salary_currency=c.salary_currency,
        linkedin_url=c.linkedin_url,
        github_url=c.github_url,
        portfolio_url=c.portfolio_url,
        is_active=bool(c.is_active),
        profile_completed=bool(c.profile_completed),
        is_anonymized=bool(c.is_anonymized),
        tags=tuple(
            TagRecord(
                name=ct.tag.name,
                slug=ct.tag.slug,
                category=ct.tag.category,
                proficiency=ct.proficiency,
                years_experience=ct.years_experience,
                is_endorsed=bool(ct.is_endorsed),
            )
            for ct in tags
        ),
        work_experiences=tuple(
            WorkExperienceRecord(
                company_name=w.company_name,
                title=w.title,
                description=w.description,
                start_date=w.start_date,
                end_date=w.end_date,
                is_current=bool(w.is_current),
            )
            for w in c.work_experiences
        ),
        education=tuple(
            EducationRecord(
                institution=e.institution,
                degree=e.degree,
                field_of_study=e.field_of_study,
                graduation_year=e.graduation_year,
            )
            for e in c.education
        ),
        board_experience=tuple(sorted(b.board_type for b in c.board_experiences)),
        enrichment=tuple(metadata.enrichment_records()),
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def unlock_to_purchase(u: ProfileUnlock) -> PurchaseRecord:
    return PurchaseRecord(
        payment_ref=u.payment_ref,
        source=u.source,
        amount=u.amount,
        currency=u.currency,
        purchased_at=u.confirmed_at or u.created_at,
    )


def ledger_to_response(row: CreditLedger) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        id=str(row.id),
        amount=row.amount,
        reason=row.reason,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        balance_after=row.balance_after,
        created_at=row.created_at,
    )
