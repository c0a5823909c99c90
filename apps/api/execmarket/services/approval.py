"""Candidate approval pipeline.

Approving (or re-approving) replays the stored submission: tags are upserted by
(name, category) and the candidate's tag set, work history, education and
board experience are deleted and re-inserted. Everything runs in the request
transaction, so a failed run leaves the previous children in place.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.core.errors import NotFoundError, ValidationError
from execmarket.db.models import (
    BoardExperience,
    CandidateProfile,
    CandidateTag,
    Education,
    Tag,
    WorkExperience,
)
from execmarket.domain import (
    PrivateMetadata,
    ProcessingEvent,
    ProfileSubmission,
    SubmittedTag,
    slugify,
)
from execmarket.schemas import ApprovalRequest, ApprovalResponse

logger = logging.getLogger(__name__)


async def _get_candidate(db: AsyncSession, candidate_id: str) -> CandidateProfile:
    result = await db.execute(select(CandidateProfile).where(CandidateProfile.id == candidate_id))
    candidate = result.scalar_one_or_none()
    if not candidate:
        raise NotFoundError("Candidate not found")
    return candidate


def _dedupe_tags(tags: list[SubmittedTag]) -> list[SubmittedTag]:
    """Dedupe preserving order, keyed on (name, category) case-insensitively."""
    seen: set[tuple[str, str]] = set()
    out: list[SubmittedTag] = []
    for t in tags:
        name = t.name.strip()
        key = (name.lower(), t.category)
        if not name or key in seen:
            continue
        seen.add(key)
        out.append(t.model_copy(update={"name": name}))
    return out


async def upsert_tag(db: AsyncSession, name: str, category: str) -> str:
    """Insert the tag unless (name, category) exists. Returns its id."""
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    await db.execute(
        insert(Tag)
        .values(name=name, slug=slugify(name), category=category)
        .on_conflict_do_nothing(index_elements=["name", "category"])
    )
    result = await db.execute(select(Tag.id).where(Tag.name == name, Tag.category == category))
    return str(result.scalar_one())


async def _replace_children(db: AsyncSession, candidate_id: str, submission: ProfileSubmission) -> ProcessingEvent:
    for model in (CandidateTag, WorkExperience, Education, BoardExperience):
        await db.execute(
            delete(model)
            .where(model.candidate_id == candidate_id)
            .execution_options(synchronize_session=False)
        )

    tags = _dedupe_tags(submission.tags)
    for t in tags:
        tag_id = await upsert_tag(db, t.name, t.category)
        db.add(
            CandidateTag(
                candidate_id=candidate_id,
                tag_id=tag_id,
                proficiency=t.proficiency,
                years_experience=t.years_experience,
            )
        )

    for i, w in enumerate(submission.work_experiences):
        db.add(WorkExperience(candidate_id=candidate_id, sort_order=i, **w.model_dump()))

    for i, e in enumerate(submission.education):
        db.add(Education(candidate_id=candidate_id, sort_order=i, **e.model_dump()))

    boards = list(dict.fromkeys(submission.board_experience))
    for board_type in boards:
        db.add(BoardExperience(candidate_id=candidate_id, board_type=board_type))

    await db.flush()
    return ProcessingEvent(
        at=datetime.now(timezone.utc),
        status="approved",
        tags=len(tags),
        work_experiences=len(submission.work_experiences),
        education=len(submission.education),
        board_experience=len(boards),
    )


async def _child_counts(db: AsyncSession, candidate_id: str) -> ProcessingEvent:
    counts = {}
    for field, model in (
        ("tags", CandidateTag),
        ("work_experiences", WorkExperience),
        ("education", Education),
        ("board_experience", BoardExperience),
    ):
        result = await db.execute(select(func.count()).select_from(model).where(model.candidate_id == candidate_id))
        counts[field] = result.scalar_one()
    return ProcessingEvent(at=datetime.now(timezone.utc), status="approved", **counts)


async def approve_profile(
    db: AsyncSession,
    candidate_id: str,
    body: ApprovalRequest,
    admin_user_id: str | None = None,
) -> ApprovalResponse:
    candidate = await _get_candidate(db, candidate_id)
    metadata = PrivateMetadata.load(candidate.private_metadata)
    now = datetime.now(timezone.utc)

    if body.action == "reject":
        candidate.is_active = False
        candidate.profile_completed = False
        event = ProcessingEvent(at=now, by=admin_user_id, status="rejected")
    else:
        was_active = bool(candidate.is_active)
        if body.submission is not None:
            metadata.submission = body.submission
        elif metadata.submission_unreadable:
            raise ValidationError(
                "Stored submission is unreadable; supply a submission to approve this candidate",
                field="submission",
                code="invalid_submission",
            )
        submission = metadata.submission
        if submission is None:
            # nothing submitted yet: keep the current children
            event = await _child_counts(db, candidate.id)
        else:
            event = await _replace_children(db, candidate.id, submission)
        event = event.model_copy(update={"by": admin_user_id, "status": "reprocessed" if was_active else "approved"})
        if submission is not None and submission.compensation is not None:
            candidate.salary_min = submission.compensation.salary_min
            candidate.salary_max = submission.compensation.salary_max
            candidate.salary_currency = submission.compensation.currency
        candidate.is_active = True
        candidate.profile_completed = True
        candidate.retired_at = None

    metadata.processing_history.append(event)
    candidate.private_metadata = metadata.dump()
    candidate.updated_at = now
    await db.flush()
    logger.info(
        "Candidate %s %s by %s (tags=%d work=%d education=%d boards=%d)",
        candidate.id,
        event.status,
        admin_user_id,
        event.tags,
        event.work_experiences,
        event.education,
        event.board_experience,
    )
    return ApprovalResponse(
        candidate_id=str(candidate.id),
        status=event.status,
        is_active=candidate.is_active,
        profile_completed=candidate.profile_completed,
        tags=event.tags,
        work_experiences=event.work_experiences,
        education=event.education,
        board_experience=event.board_experience,
    )


async def retire_profile(db: AsyncSession, candidate_id: str, admin_user_id: str | None = None) -> None:
    """Soft-retire: hidden from search, rows kept for unlock and ledger history."""
    candidate = await _get_candidate(db, candidate_id)
    now = datetime.now(timezone.utc)
    candidate.is_active = False
    candidate.retired_at = now
    metadata = PrivateMetadata.load(candidate.private_metadata)
    metadata.processing_history.append(ProcessingEvent(at=now, by=admin_user_id, status="retired"))
    candidate.private_metadata = metadata.dump()
    await db.flush()
    logger.info("Candidate %s retired by %s", candidate.id, admin_user_id)
