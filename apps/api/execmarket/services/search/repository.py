"""Candidate repository: executes QueryPlans and group-by counts against the store.

Every read opens its own session from the session factory, so page, count and
facet queries for one request can run concurrently.
"""

from dataclasses import dataclass
from typing import Callable

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from execmarket.db.models import BoardExperience, CandidateProfile, CandidateTag, Tag
from execmarket.db.session import async_session
from execmarket.domain import EXPERIENCE_RANK
from execmarket.serializers import CandidateRecord, candidate_to_record

from .compiler import (
    DIM_AVAILABILITY,
    DIM_BOARD,
    DIM_EXPERIENCE,
    DIM_LOCATION,
    DIM_REMOTE,
    TAG_DIMENSIONS,
    Contains,
    Equals,
    InSet,
    Predicate,
    QueryPlan,
    Range,
    SortKey,
    Substring,
)

_COLUMN_DIMENSIONS = {
    DIM_EXPERIENCE: CandidateProfile.experience,
    DIM_AVAILABILITY: CandidateProfile.availability,
    DIM_REMOTE: CandidateProfile.remote_preference,
    DIM_LOCATION: CandidateProfile.location,
}


@dataclass(frozen=True)
class GroupCount:
    value: str
    count: int
    label: str | None = None


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def predicate_to_clause(p: Predicate):
    """Translate one predicate to a SQL boolean clause over candidate_profiles."""
    if isinstance(p, Equals):
        return getattr(CandidateProfile, p.field) == p.value
    if isinstance(p, InSet):
        tagged = (
            select(CandidateTag.candidate_id)
            .join(Tag, Tag.id == CandidateTag.tag_id)
            .where(Tag.category == p.category, Tag.slug.in_(p.values))
        )
        return CandidateProfile.id.in_(tagged)
    if isinstance(p, Contains):
        boards = select(BoardExperience.candidate_id).where(BoardExperience.board_type.in_(p.values))
        return CandidateProfile.id.in_(boards)
    if isinstance(p, Substring):
        pattern = f"%{_escape_like(p.text)}%"
        return or_(*[getattr(CandidateProfile, f).ilike(pattern, escape="\\") for f in p.fields])
    if isinstance(p, Range):
        # A one-sided band counts as a point; no salary data never matches
        upper = func.coalesce(CandidateProfile.salary_max, CandidateProfile.salary_min)
        lower = func.coalesce(CandidateProfile.salary_min, CandidateProfile.salary_max)
        parts = []
        if p.low is not None:
            parts.append(upper >= p.low)
        if p.high is not None:
            parts.append(lower <= p.high)
        return and_(*parts)
    raise TypeError(f"Unsupported predicate: {type(p).__name__}")


def _clauses(predicates: tuple[Predicate, ...]) -> list:
    return [predicate_to_clause(p) for p in predicates]


def _order_by(sort: SortKey) -> list:
    """Primary key (nulls last in both directions) then id ascending."""
    if sort.key == "salary":
        col = func.coalesce(CandidateProfile.salary_max, CandidateProfile.salary_min)
    elif sort.key == "alphabetical":
        col = func.lower(CandidateProfile.title)
    elif sort.key == "experience":
        col = case(EXPERIENCE_RANK, value=CandidateProfile.experience, else_=None)
    else:  # relevance, updated
        col = CandidateProfile.updated_at
    return [
        col.is_(None),
        col.desc() if sort.descending else col.asc(),
        CandidateProfile.id.asc(),
    ]


def _with_children(stmt):
    return stmt.options(
        selectinload(CandidateProfile.user),
        selectinload(CandidateProfile.tags).selectinload(CandidateTag.tag),
        selectinload(CandidateProfile.work_experiences),
        selectinload(CandidateProfile.education),
        selectinload(CandidateProfile.board_experiences),
    )


class CandidateRepository:
    def __init__(self, session_factory: Callable[[], AsyncSession] = async_session):
        self._session_factory = session_factory

    async def fetch_page(self, plan: QueryPlan) -> list[CandidateRecord]:
        stmt = _with_children(
            select(CandidateProfile)
            .where(*_clauses(plan.predicates))
            .order_by(*_order_by(plan.sort))
            .offset(plan.offset)
            .limit(plan.limit)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [candidate_to_record(c) for c in result.scalars().all()]

    async def count(self, predicates: tuple[Predicate, ...]) -> int:
        stmt = select(func.count(CandidateProfile.id)).where(*_clauses(predicates))
        async with self._session_factory() as db:
            return int((await db.execute(stmt)).scalar_one())

    async def count_by(
        self,
        predicates: tuple[Predicate, ...],
        dimension: str,
        limit: int | None = None,
    ) -> list[GroupCount]:
        """Distinct-candidate counts per value of ``dimension``, count desc then value asc."""
        clauses = _clauses(predicates)
        n = func.count(CandidateProfile.id.distinct()).label("n")
        if dimension in TAG_DIMENSIONS:
            value = Tag.slug
            label = func.min(Tag.name)
            stmt = (
                select(value, n, label)
                .select_from(CandidateProfile)
                .join(CandidateTag, CandidateTag.candidate_id == CandidateProfile.id)
                .join(Tag, Tag.id == CandidateTag.tag_id)
                .where(Tag.category == TAG_DIMENSIONS[dimension], *clauses)
            )
        elif dimension == DIM_BOARD:
            value = BoardExperience.board_type
            stmt = (
                select(value, n)
                .select_from(CandidateProfile)
                .join(BoardExperience, BoardExperience.candidate_id == CandidateProfile.id)
                .where(*clauses)
            )
        elif dimension in _COLUMN_DIMENSIONS:
            value = _COLUMN_DIMENSIONS[dimension]
            stmt = select(value, n).where(value.is_not(None), value != "", *clauses)
        else:
            raise ValueError(f"Unknown facet dimension: {dimension}")

        stmt = stmt.group_by(value).order_by(n.desc(), value.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as db:
            rows = (await db.execute(stmt)).all()
        return [
            GroupCount(value=str(r[0]), count=int(r[1]), label=(r[2] if len(r) > 2 else None))
            for r in rows
        ]

    async def get_record(self, candidate_id: str, *, searchable_only: bool = True) -> CandidateRecord | None:
        """Load one candidate. With searchable_only, inactive or incomplete profiles read as absent."""
        stmt = _with_children(select(CandidateProfile).where(CandidateProfile.id == candidate_id))
        if searchable_only:
            stmt = stmt.where(CandidateProfile.is_active.is_(True), CandidateProfile.profile_completed.is_(True))
        async with self._session_factory() as db:
            c = (await db.execute(stmt)).scalar_one_or_none()
            return candidate_to_record(c) if c else None
