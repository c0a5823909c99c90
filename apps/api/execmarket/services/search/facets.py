"""Facet aggregation: per-dimension value counts under the current filters.

Each dimension is counted with its own predicate removed from the baseline, so a
facet shows what changing that filter would yield. Dimensions run concurrently;
a failing dimension is logged and left out of the response.
"""

import asyncio
import logging

from execmarket.core.config import get_settings
from execmarket.domain import (
    AVAILABILITY_LABELS,
    BOARD_EXPERIENCE_LABELS,
    EXPERIENCE_LABELS,
    REMOTE_LABELS,
)
from execmarket.schemas import FacetValue

from .compiler import (
    DIM_AVAILABILITY,
    DIM_BOARD,
    DIM_EXPERIENCE,
    DIM_LOCATION,
    DIM_REMOTE,
    DIM_ROLES,
    DIM_SECTORS,
    DIM_SKILLS,
    DIM_SPECIALISMS,
    Predicate,
)
from .repository import CandidateRepository

logger = logging.getLogger(__name__)

FACET_DIMENSIONS: tuple[str, ...] = (
    DIM_EXPERIENCE,
    DIM_LOCATION,
    DIM_REMOTE,
    DIM_AVAILABILITY,
    DIM_ROLES,
    DIM_SECTORS,
    DIM_SPECIALISMS,
    DIM_SKILLS,
    DIM_BOARD,
)

_LABELS: dict[str, dict[str, str]] = {
    DIM_EXPERIENCE: EXPERIENCE_LABELS,
    DIM_AVAILABILITY: AVAILABILITY_LABELS,
    DIM_REMOTE: REMOTE_LABELS,
    DIM_BOARD: BOARD_EXPERIENCE_LABELS,
}


def facet_limit(dimension: str) -> int | None:
    """Top-N cap for high-cardinality dimensions; None means return every value."""
    s = get_settings()
    return {
        DIM_LOCATION: s.location_facet_limit,
        DIM_SECTORS: s.sector_facet_limit,
        DIM_SPECIALISMS: s.specialism_facet_limit,
        DIM_SKILLS: s.skill_facet_limit,
    }.get(dimension)


async def aggregate(
    repo: CandidateRepository,
    baseline: tuple[Predicate, ...],
    dimension: str,
) -> list[FacetValue]:
    """Counts for one dimension with that dimension's own predicate excluded from baseline."""
    predicates = tuple(p for p in baseline if p.dimension != dimension)
    rows = await repo.count_by(predicates, dimension, limit=facet_limit(dimension))
    labels = _LABELS.get(dimension, {})
    return [
        FacetValue(value=r.value, count=r.count, label=r.label or labels.get(r.value))
        for r in rows
        if r.count > 0
    ]


async def aggregate_all(
    repo: CandidateRepository,
    baseline: tuple[Predicate, ...],
    dimensions: tuple[str, ...] = FACET_DIMENSIONS,
) -> dict[str, list[FacetValue]]:
    results = await asyncio.gather(
        *(aggregate(repo, baseline, d) for d in dimensions),
        return_exceptions=True,
    )
    facets: dict[str, list[FacetValue]] = {}
    for dimension, result in zip(dimensions, results):
        if isinstance(result, Exception):
            logger.warning("Facet %s omitted: %s", dimension, result, exc_info=result)
            continue
        if isinstance(result, BaseException):
            raise result
        facets[dimension] = result
    return facets
