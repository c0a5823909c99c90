"""Unit tests for the filter codec: decoding, fail-soft handling and canonical encoding."""

import pytest

from execmarket.services.search.filter_codec import (
    MAX_OFFSET,
    FilterCriteria,
    decode,
    decode_with_issues,
    encode,
    query_params_to_raw,
)


class TestDecode:

    def test_empty_input_gives_defaults(self):
        criteria = decode({})
        assert criteria == FilterCriteria()
        assert criteria.page == 1
        assert criteria.limit == 12
        assert criteria.sort_by == "relevance"
        assert criteria.sort_order == "desc"

    def test_none_input_gives_defaults(self):
        assert decode(None) == FilterCriteria()

    def test_multi_values_split_lowercased_and_deduped(self):
        criteria = decode({"skills": "Python, sql,python", "sectors": ["tech", "Finance", "tech"]})
        assert criteria.skills == ("python", "sql")
        assert criteria.sectors == ("tech", "finance")

    def test_aliases_are_accepted(self):
        criteria = decode({
            "role[]": ["cfo", "ceo"],
            "q": "fintech",
            "remote_preference": "remote",
            "salary_min": "50000",
            "sort_by": "salary",
        })
        assert criteria.roles == ("cfo", "ceo")
        assert criteria.query == "fintech"
        assert criteria.remote_preference == "remote"
        assert criteria.salary_min == 50000
        assert criteria.sort_by == "salary"

    def test_unknown_keys_are_ignored(self):
        criteria, issues = decode_with_issues({"isActive": "false", "profile_completed": "false", "foo": "bar"})
        assert criteria == FilterCriteria()
        assert issues == []

    def test_enum_values_case_insensitive(self):
        criteria = decode({"experience": "SENIOR", "availability": "1Month"})
        assert criteria.experience == "senior"
        assert criteria.availability == "1month"

    def test_board_experience_values(self):
        criteria = decode({"boardExperience": "ftse100,private-equity"})
        assert criteria.board_experience == ("ftse100", "private-equity")


class TestFailSoft:

    def test_invalid_enum_is_dropped_and_reported(self):
        criteria, issues = decode_with_issues({"experience": "guru", "location": "London"})
        assert criteria.experience is None
        assert criteria.location == "London"
        assert [i.field for i in issues] == ["experience"]

    def test_invalid_slug_dropped_valid_kept(self):
        criteria, issues = decode_with_issues({"skills": "python,c++,sql"})
        assert criteria.skills == ("python", "sql")
        assert len(issues) == 1
        assert issues[0].field == "skills"

    def test_unknown_board_type_dropped(self):
        criteria, issues = decode_with_issues({"boardExperience": "ftse100,ftse9000"})
        assert criteria.board_experience == ("ftse100",)
        assert issues[0].field == "board_experience"

    def test_non_numeric_salary_dropped(self):
        criteria, issues = decode_with_issues({"salaryMin": "lots", "salaryMax": "90000"})
        assert criteria.salary_min is None
        assert criteria.salary_max == 90000
        assert issues[0].field == "salary_min"

    def test_negative_salary_dropped(self):
        criteria, issues = decode_with_issues({"salaryMin": "-5"})
        assert criteria.salary_min is None
        assert len(issues) == 1

    def test_reversed_salary_range_is_swapped(self):
        criteria, issues = decode_with_issues({"salaryMin": "150000", "salaryMax": "100000"})
        assert (criteria.salary_min, criteria.salary_max) == (100000, 150000)
        assert issues == []

    def test_page_below_one_clamped(self):
        assert decode({"page": "0"}).page == 1
        assert decode({"page": "-3"}).page == 1

    def test_limit_clamped_to_max(self):
        assert decode({"limit": "1000"}).limit == 100
        assert decode({"limit": "0"}).limit == 1

    def test_non_numeric_page_reported(self):
        criteria, issues = decode_with_issues({"page": "two"})
        assert criteria.page == 1
        assert issues[0].field == "page"

    def test_invalid_sort_falls_back_to_default(self):
        criteria, issues = decode_with_issues({"sortBy": "random", "sortOrder": "sideways"})
        assert criteria.sort_by == "relevance"
        assert criteria.sort_order == "desc"
        assert {i.field for i in issues} == {"sort_by", "sort_order"}

    def test_overlong_query_dropped(self):
        criteria, issues = decode_with_issues({"query": "x" * 201})
        assert criteria.query is None
        assert issues[0].field == "query"

    def test_blank_values_are_absent(self):
        criteria, issues = decode_with_issues({"location": "   ", "skills": ", ,", "experience": ""})
        assert criteria == FilterCriteria()
        assert issues == []


class TestEncode:

    def test_canonical_keys_and_omitted_empties(self):
        criteria = FilterCriteria(skills=("python", "sql"), experience="senior", salary_min=80000)
        assert encode(criteria) == {
            "skills": "python,sql",
            "experience": "senior",
            "salaryMin": "80000",
            "page": "1",
            "limit": "12",
            "sortBy": "relevance",
            "sortOrder": "desc",
        }

    @pytest.mark.parametrize(
        "criteria",
        [
            pytest.param(FilterCriteria(), id="empty"),
            pytest.param(FilterCriteria(page=1, limit=12, sort_by="relevance", sort_order="desc"), id="defaults"),
            pytest.param(
                FilterCriteria(
                    roles=("cfo",),
                    sectors=("tech",),
                    specialisms=("m-and-a",),
                    skills=("ifrs",),
                    board_experience=("aim",),
                ),
                id="single-element-multiselects",
            ),
            pytest.param(FilterCriteria(salary_min=90000), id="salary-min-only"),
            pytest.param(FilterCriteria(salary_max=140000), id="salary-max-only"),
            pytest.param(
                FilterCriteria(
                    query="interim cfo",
                    roles=("cfo",),
                    sectors=("financial-services", "tech"),
                    specialisms=("m-and-a",),
                    skills=("ifrs",),
                    board_experience=("ftse250", "aim"),
                    experience="executive",
                    location="Manchester",
                    availability="immediately",
                    remote_preference="flexible",
                    salary_min=90000,
                    salary_max=140000,
                    page=3,
                    limit=25,
                    sort_by="experience",
                    sort_order="asc",
                ),
                id="everything-set",
            ),
        ],
    )
    def test_decode_encode_round_trip(self, criteria):
        assert decode(encode(criteria)) == criteria


class TestPageCap:

    def test_huge_page_is_capped_with_warning(self):
        criteria, issues = decode_with_issues({"page": "100000000000000000000", "limit": "12"})
        assert criteria.page == MAX_OFFSET // 12 + 1
        assert criteria.offset + criteria.limit < 2**63
        assert [i.field for i in issues] == ["page"]

    def test_page_in_range_is_untouched(self):
        criteria, issues = decode_with_issues({"page": "40"})
        assert criteria.page == 40
        assert issues == []


class TestQueryParamsToRaw:

    def test_repeated_keys_become_lists(self):
        raw = query_params_to_raw([("role[]", "cfo"), ("role[]", "ceo"), ("page", "2")])
        assert raw == {"role[]": ["cfo", "ceo"], "page": ["2"]}
        criteria = decode(raw)
        assert criteria.roles == ("cfo", "ceo")
        assert criteria.page == 2
