"""Facet aggregation: own-dimension exclusion, labels, top-N caps and failure isolation."""

from execmarket.services.search.compiler import compile_criteria
from execmarket.services.search.facets import aggregate, aggregate_all, facet_limit
from execmarket.services.search.filter_codec import FilterCriteria
from execmarket.services.search.repository import CandidateRepository, GroupCount
from tests.conftest import make_candidate


class _FakeRepo:
    """Records the predicates each count_by call receives."""

    def __init__(self, rows=None, fail_on=()):
        self.rows = rows or {}
        self.fail_on = set(fail_on)
        self.calls = {}

    async def count_by(self, predicates, dimension, limit=None):
        self.calls[dimension] = (predicates, limit)
        if dimension in self.fail_on:
            raise RuntimeError(f"{dimension} store error")
        return self.rows.get(dimension, [])


class TestAggregateUnit:

    async def test_own_dimension_predicate_removed(self):
        plan = compile_criteria(FilterCriteria(experience="senior", skills=("python",))).with_base()
        repo = _FakeRepo()
        await aggregate(repo, plan.predicates, "experience")
        predicates, _ = repo.calls["experience"]
        assert all(p.dimension != "experience" for p in predicates)
        assert any(p.dimension == "skills" for p in predicates)

    async def test_labels_and_zero_counts(self):
        repo = _FakeRepo(rows={"experience": [GroupCount("senior", 3), GroupCount("junior", 0)]})
        values = await aggregate(repo, (), "experience")
        assert [(v.value, v.count, v.label) for v in values] == [("senior", 3, "10-15 years")]

    async def test_top_n_limit_passed_for_high_cardinality(self):
        repo = _FakeRepo()
        await aggregate(repo, (), "skills")
        await aggregate(repo, (), "experience")
        assert repo.calls["skills"][1] == facet_limit("skills") == 8
        assert repo.calls["experience"][1] is None

    async def test_failing_dimension_is_omitted(self):
        repo = _FakeRepo(
            rows={"experience": [GroupCount("lead", 2)]},
            fail_on={"skills"},
        )
        facets = await aggregate_all(repo, (), ("experience", "skills"))
        assert "skills" not in facets
        assert facets["experience"][0].value == "lead"


class TestAggregateDatabase:

    async def test_counts_respect_other_filters(self, db):
        await make_candidate(db, experience="senior", location="London, UK", tags=[("Python", "skill")])
        await make_candidate(db, experience="senior", location="Leeds, UK", tags=[("Python", "skill")])
        await make_candidate(db, experience="lead", location="London, UK", tags=[("SQL", "skill")])
        await make_candidate(db, experience="junior", location="London, UK", is_active=False)

        plan = compile_criteria(FilterCriteria(experience="senior", location="London")).with_base()
        facets = await aggregate_all(CandidateRepository(), plan.predicates)

        # experience ignores its own filter: every searchable London candidate counts
        assert {v.value: v.count for v in facets["experience"]} == {"senior": 1, "lead": 1}
        # location ignores the location filter but keeps experience=senior
        assert {v.value: v.count for v in facets["location"]} == {"London, UK": 1, "Leeds, UK": 1}
        assert {v.value: v.count for v in facets["skills"]} == {"python": 1}
        assert facets["skills"][0].label == "Python"

    async def test_single_valued_facet_sums_to_total_without_its_filter(self, db):
        for level in ("senior", "senior", "lead", "executive", "mid"):
            await make_candidate(db, experience=level, location="London, UK")

        repo = CandidateRepository()
        plan = compile_criteria(FilterCriteria(experience="senior")).with_base()
        facets = await aggregate_all(repo, plan.predicates)
        total_without = await repo.count(plan.without("experience"))
        assert sum(v.count for v in facets["experience"]) == total_without == 5
