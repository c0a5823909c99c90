"""
Criteria compiler: FilterCriteria -> QueryPlan (predicates + sort + window).

Pure. Each filter field maps to exactly one predicate tagged with its facet
dimension, so the facet aggregator can drop a single dimension from the
baseline. Store-specific translation lives in the repository.
"""

from dataclasses import dataclass, replace
from typing import Union

from .filter_codec import FilterCriteria

# Facet / filter dimensions
DIM_ACTIVE = "is_active"
DIM_COMPLETED = "profile_completed"
DIM_QUERY = "query"
DIM_EXPERIENCE = "experience"
DIM_LOCATION = "location"
DIM_AVAILABILITY = "availability"
DIM_REMOTE = "remote_preference"
DIM_ROLES = "roles"
DIM_SECTORS = "sectors"
DIM_SPECIALISMS = "specialisms"
DIM_SKILLS = "skills"
DIM_BOARD = "board_experience"
DIM_SALARY = "salary"

# Multi-select dimension -> tag category it filters on
TAG_DIMENSIONS: dict[str, str] = {
    DIM_ROLES: "role",
    DIM_SECTORS: "industry",
    DIM_SPECIALISMS: "expertise",
    DIM_SKILLS: "skill",
}

# Free-text query spans these profile columns
TEXT_QUERY_FIELDS = ("title", "summary", "location")


# -----------------------------------------------------------------------------
# Predicates
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Equals:
    """Single-valued column equality (enums, visibility flags)."""
    dimension: str
    field: str
    value: object


@dataclass(frozen=True)
class InSet:
    """Candidate has a tag of ``category`` whose slug is any of ``values``."""
    dimension: str
    category: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class Range:
    """Salary band overlap: candidate band intersects [low, high]. Either bound may be open."""
    dimension: str
    low: int | None
    high: int | None


@dataclass(frozen=True)
class Substring:
    """Case-insensitive substring match, OR'ed across ``fields``."""
    dimension: str
    fields: tuple[str, ...]
    text: str


@dataclass(frozen=True)
class Contains:
    """Candidate's board-experience set contains any of ``values``."""
    dimension: str
    values: tuple[str, ...]


Predicate = Union[Equals, InSet, Range, Substring, Contains]

# Applied to every search before user filters; no codec key can reach these.
BASE_PREDICATES: tuple[Predicate, ...] = (
    Equals(DIM_ACTIVE, "is_active", True),
    Equals(DIM_COMPLETED, "profile_completed", True),
)


@dataclass(frozen=True)
class SortKey:
    key: str  # relevance, salary, updated, alphabetical, experience
    descending: bool = True


@dataclass(frozen=True)
class QueryPlan:
    predicates: tuple[Predicate, ...]
    sort: SortKey
    offset: int
    limit: int

    def without(self, dimension: str) -> tuple[Predicate, ...]:
        """Predicates with one dimension's own filter removed (facet baseline)."""
        return tuple(p for p in self.predicates if p.dimension != dimension)

    def with_base(self, base: tuple[Predicate, ...] = BASE_PREDICATES) -> "QueryPlan":
        return replace(self, predicates=base + self.predicates)


def compile_criteria(criteria: FilterCriteria) -> QueryPlan:
    """Map filter criteria to user predicates, sort and pagination window."""
    predicates: list[Predicate] = []

    if criteria.query:
        predicates.append(Substring(DIM_QUERY, TEXT_QUERY_FIELDS, criteria.query))

    for dimension, category in TAG_DIMENSIONS.items():
        values = getattr(criteria, dimension)
        if values:
            predicates.append(InSet(dimension, category, values))

    if criteria.board_experience:
        predicates.append(Contains(DIM_BOARD, criteria.board_experience))

    for dimension in (DIM_EXPERIENCE, DIM_AVAILABILITY, DIM_REMOTE):
        value = getattr(criteria, dimension)
        if value:
            predicates.append(Equals(dimension, dimension, value))

    if criteria.location:
        predicates.append(Substring(DIM_LOCATION, ("location",), criteria.location))

    if criteria.salary_min is not None or criteria.salary_max is not None:
        predicates.append(Range(DIM_SALARY, criteria.salary_min, criteria.salary_max))

    return QueryPlan(
        predicates=tuple(predicates),
        sort=SortKey(criteria.sort_by, descending=criteria.sort_order == "desc"),
        offset=criteria.offset,
        limit=criteria.limit,
    )
