"""
Anonymization transformer: (CandidateRecord, Entitlement) -> ProfileView.

Anonymization (a per-profile setting) and disclosure (a per-viewer purchase)
are independent gates:
- disclosed: every field verbatim, plus the purchase record.
- redacted, anonymized: no identity, contact, summary or history; title,
  location and salary generalized; tags cut to a preview.
- redacted, not anonymized: professional fields verbatim, contact withheld.
Absent source fields stay absent; nothing is filled with placeholder values.
"""

import math

from execmarket.core.config import get_settings
from execmarket.domain import EXPERIENCE_LABELS, is_verified
from execmarket.schemas import (
    EducationView,
    Entitlement,
    ProfileView,
    TagView,
    WorkExperienceView,
)
from execmarket.serializers import CandidateRecord, TagRecord

REQUIRED_COMPLETION_FIELDS = ("title", "summary", "experience", "location", "remote_preference", "availability")
OPTIONAL_COMPLETION_FIELDS = ("salary_min", "salary_max", "linkedin_url", "github_url", "portfolio_url")


# -----------------------------------------------------------------------------
# Generalization helpers
# -----------------------------------------------------------------------------
def generalize_title(experience: str | None) -> str:
    return f"{(experience or 'experienced').capitalize()} Professional"


def generalize_location(location: str) -> str:
    """Last comma-separated segment (country/region), else "Remote"."""
    parts = location.split(",")
    if len(parts) > 1:
        last = parts[-1].strip()
        if last:
            return last
    return "Remote"


def round_salary_band(
    salary_min: int | None,
    salary_max: int | None,
    step: int,
) -> tuple[int | None, int | None]:
    """Round outward to ``step``: the published band always contains the true band."""
    lo = math.floor(salary_min / step) * step if salary_min is not None else None
    hi = math.ceil(salary_max / step) * step if salary_max is not None else None
    return lo, hi


def profile_completion(record: CandidateRecord) -> int:
    """Percentage: 10 per required field, 5 per optional field, 5 each for tags, history, education."""
    score = 0
    for name in REQUIRED_COMPLETION_FIELDS:
        if getattr(record, name) not in (None, ""):
            score += 10
    for name in OPTIONAL_COMPLETION_FIELDS:
        if getattr(record, name) not in (None, ""):
            score += 5
    if record.tags:
        score += 5
    if record.work_experiences:
        score += 5
    if record.education:
        score += 5
    return min(score, 100)


def _tag_view(t: TagRecord, full: bool) -> TagView:
    if not full:
        return TagView(name=t.name, slug=t.slug, category=t.category)
    return TagView(
        name=t.name,
        slug=t.slug,
        category=t.category,
        proficiency=t.proficiency,
        years_experience=t.years_experience,
        is_endorsed=t.is_endorsed,
    )


# -----------------------------------------------------------------------------
# Transform
# -----------------------------------------------------------------------------
def transform(
    record: CandidateRecord,
    entitlement: Entitlement,
    *,
    salary_step: int | None = None,
    tag_preview_limit: int | None = None,
) -> ProfileView:
    s = get_settings()
    salary_step = salary_step or s.salary_rounding_step
    tag_preview_limit = s.tag_preview_limit if tag_preview_limit is None else tag_preview_limit

    view = ProfileView(
        id=record.id,
        disclosed=entitlement.disclosed,
        is_anonymized=record.is_anonymized,
        experience=record.experience,
        experience_label=EXPERIENCE_LABELS.get(record.experience) if record.experience else None,
        remote_preference=record.remote_preference,
        availability=record.availability,
        salary_currency=record.salary_currency,
        board_experience=list(record.board_experience),
        is_verified=is_verified(list(record.enrichment)),
        updated_at=record.updated_at,
    )

    if entitlement.disclosed:
        return view.model_copy(update={
            "first_name": record.first_name,
            "last_name": record.last_name,
            "email": record.email,
            "phone": record.phone,
            "linkedin_url": record.linkedin_url,
            "github_url": record.github_url,
            "portfolio_url": record.portfolio_url,
            "title": record.title,
            "summary": record.summary,
            "location": record.location,
            "salary_min": record.salary_min,
            "salary_max": record.salary_max,
            "tags": [_tag_view(t, full=True) for t in record.tags],
            "tag_count": len(record.tags),
            "work_experiences": [WorkExperienceView(**vars(w)) for w in record.work_experiences],
            "education": [EducationView(**vars(e)) for e in record.education],
            "profile_completion": profile_completion(record),
            "purchase": entitlement.purchase,
        })

    if not record.is_anonymized:
        return view.model_copy(update={
            "first_name": record.first_name,
            "last_name": record.last_name,
            "title": record.title,
            "summary": record.summary,
            "location": record.location,
            "salary_min": record.salary_min,
            "salary_max": record.salary_max,
            "tags": [_tag_view(t, full=True) for t in record.tags],
            "tag_count": len(record.tags),
            "work_experiences": [WorkExperienceView(**vars(w)) for w in record.work_experiences],
            "education": [EducationView(**vars(e)) for e in record.education],
        })

    salary_min, salary_max = round_salary_band(record.salary_min, record.salary_max, salary_step)
    has_salary = salary_min is not None or salary_max is not None
    return view.model_copy(update={
        "title": generalize_title(record.experience) if record.title else None,
        "location": generalize_location(record.location) if record.location else None,
        "salary_min": salary_min,
        "salary_max": salary_max,
        "salary_rounded": True if has_salary else None,
        "salary_currency": record.salary_currency if has_salary else None,
        "tags": [_tag_view(t, full=False) for t in record.tags[:tag_preview_limit]],
        "tag_count": len(record.tags),
    })
