"""
Filter codec: flat query map (URL query string or JSON body) <-> FilterCriteria.

decode is fail-soft: a malformed optional value is dropped and reported as a
ValidationError issue; decoding itself never raises. Unknown keys are ignored.
For any well-formed criteria f, decode(encode(f)) == f.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from execmarket.core.config import get_settings
from execmarket.core.errors import ValidationError
from execmarket.domain import (
    AVAILABILITIES,
    BOARD_EXPERIENCE_TYPES,
    EXPERIENCE_LEVELS,
    REMOTE_PREFERENCES,
    SORT_KEYS,
    SORT_ORDERS,
)

MAX_QUERY_LENGTH = 200
MAX_LOCATION_LENGTH = 100
MAX_SALARY = 10_000_000
# OFFSET is a signed 64-bit value in Postgres and SQLite; keep offset + limit below it
MAX_OFFSET = 2**62
DEFAULT_SORT_BY = "relevance"
DEFAULT_SORT_ORDER = "desc"

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True)
class FilterCriteria:
    """Typed, immutable search filters. Multi-selects are ordered, de-duplicated tuples of slugs."""
    query: Optional[str] = None
    roles: tuple[str, ...] = ()
    sectors: tuple[str, ...] = ()
    specialisms: tuple[str, ...] = ()
    skills: tuple[str, ...] = ()
    board_experience: tuple[str, ...] = ()
    experience: Optional[str] = None
    location: Optional[str] = None
    availability: Optional[str] = None
    remote_preference: Optional[str] = None
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    page: int = 1
    limit: int = field(default_factory=lambda: get_settings().default_page_limit)
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# Canonical wire key first; the rest are accepted aliases.
_KEYS: dict[str, tuple[str, ...]] = {
    "query": ("query", "q"),
    "roles": ("roles", "role", "roles[]", "role[]"),
    "sectors": ("sectors", "sector", "sectors[]", "sector[]"),
    "specialisms": ("specialisms", "specialism", "specialisms[]", "specialism[]"),
    "skills": ("skills", "skill", "skills[]", "skill[]"),
    "board_experience": ("boardExperience", "boardExperience[]", "board_experience", "board_experience[]"),
    "experience": ("experience",),
    "location": ("location",),
    "availability": ("availability",),
    "remote_preference": ("remotePreference", "remote_preference"),
    "salary_min": ("salaryMin", "salary_min"),
    "salary_max": ("salaryMax", "salary_max"),
    "page": ("page",),
    "limit": ("limit",),
    "sort_by": ("sortBy", "sort_by"),
    "sort_order": ("sortOrder", "sort_order"),
}

_MULTI_FIELDS = ("roles", "sectors", "specialisms", "skills", "board_experience")

_ENUM_FIELDS: dict[str, tuple[str, ...]] = {
    "experience": EXPERIENCE_LEVELS,
    "availability": AVAILABILITIES,
    "remote_preference": REMOTE_PREFERENCES,
}


# -----------------------------------------------------------------------------
# Raw value helpers
# -----------------------------------------------------------------------------
def _raw_values(raw: Mapping[str, Any], name: str) -> list[str]:
    """All values given for a field under any of its keys, as strings, in key order."""
    out: list[str] = []
    for key in _KEYS[name]:
        if key not in raw:
            continue
        value = raw[key]
        items: Iterable[Any] = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            if item is None or isinstance(item, (dict, list, tuple)):
                continue
            if isinstance(item, bool):
                item = str(item).lower()
            out.append(str(item))
    return out


def _first(raw: Mapping[str, Any], name: str) -> Optional[str]:
    for v in _raw_values(raw, name):
        s = v.strip()
        if s:
            return s
    return None


def _split_multi(values: list[str]) -> list[str]:
    """Comma-split, strip, lowercase and dedupe preserving order."""
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        for part in v.split(","):
            s = part.strip().lower()
            if not s or s in seen:
                continue
            seen.add(s)
            out.append(s)
    return out


def _parse_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        pass
    try:
        f = float(value)
    except ValueError:
        return None
    if f != f or f in (float("inf"), float("-inf")) or not f.is_integer():
        return None
    return int(f)


# -----------------------------------------------------------------------------
# Decode / encode
# -----------------------------------------------------------------------------
def decode_with_issues(
    raw: Mapping[str, Any] | None,
    *,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> tuple[FilterCriteria, list[ValidationError]]:
    """Decode a raw query map. Returns the criteria and the list of dropped/adjusted values."""
    s = get_settings()
    default_limit = default_limit or s.default_page_limit
    max_limit = max_limit or s.max_page_limit
    raw = raw or {}
    issues: list[ValidationError] = []
    values: dict[str, Any] = {}

    query = _first(raw, "query")
    if query is not None:
        if len(query) > MAX_QUERY_LENGTH:
            issues.append(ValidationError(f"query longer than {MAX_QUERY_LENGTH} characters", field="query"))
        else:
            values["query"] = query

    for name in _MULTI_FIELDS:
        kept: list[str] = []
        for slug in _split_multi(_raw_values(raw, name)):
            if name == "board_experience":
                ok = slug in BOARD_EXPERIENCE_TYPES
            else:
                ok = bool(_SLUG_RE.match(slug))
            if ok:
                kept.append(slug)
            else:
                issues.append(ValidationError(f"unknown value {slug!r}", field=name))
        values[name] = tuple(kept)

    for name, allowed in _ENUM_FIELDS.items():
        v = _first(raw, name)
        if v is None:
            continue
        v = v.lower()
        if v in allowed:
            values[name] = v
        else:
            issues.append(ValidationError(f"must be one of: {', '.join(allowed)}", field=name))

    location = _first(raw, "location")
    if location is not None:
        if len(location) > MAX_LOCATION_LENGTH:
            issues.append(ValidationError("location too long", field="location"))
        else:
            values["location"] = location

    for name in ("salary_min", "salary_max"):
        v = _first(raw, name)
        if v is None:
            continue
        n = _parse_int(v)
        if n is None or n < 0 or n > MAX_SALARY:
            issues.append(ValidationError("must be a non-negative whole number", field=name))
            continue
        values[name] = n
    lo, hi = values.get("salary_min"), values.get("salary_max")
    if lo is not None and hi is not None and lo > hi:
        values["salary_min"], values["salary_max"] = hi, lo

    limit_raw = _first(raw, "limit")
    limit = default_limit
    if limit_raw is not None:
        n = _parse_int(limit_raw)
        if n is None:
            issues.append(ValidationError("limit must be a whole number", field="limit"))
        else:
            limit = min(max(1, n), max_limit)
    values["limit"] = limit

    page_raw = _first(raw, "page")
    page = 1
    if page_raw is not None:
        n = _parse_int(page_raw)
        max_page = MAX_OFFSET // limit + 1
        if n is None:
            issues.append(ValidationError("page must be a whole number", field="page"))
        elif n > max_page:
            issues.append(ValidationError(f"page capped at {max_page}", field="page"))
            page = max_page
        else:
            page = max(1, n)
    values["page"] = page

    sort_by = _first(raw, "sort_by")
    if sort_by is not None:
        if sort_by.lower() in SORT_KEYS:
            values["sort_by"] = sort_by.lower()
        else:
            issues.append(ValidationError(f"sortBy must be one of: {', '.join(SORT_KEYS)}", field="sort_by"))
    sort_order = _first(raw, "sort_order")
    if sort_order is not None:
        if sort_order.lower() in SORT_ORDERS:
            values["sort_order"] = sort_order.lower()
        else:
            issues.append(ValidationError("sortOrder must be asc or desc", field="sort_order"))

    return FilterCriteria(**values), issues


def decode(raw: Mapping[str, Any] | None) -> FilterCriteria:
    criteria, _ = decode_with_issues(raw)
    return criteria


def encode(criteria: FilterCriteria) -> dict[str, str]:
    """Flat string map using canonical keys. Empty and absent fields are omitted."""
    out: dict[str, str] = {}
    if criteria.query:
        out["query"] = criteria.query
    for name in _MULTI_FIELDS:
        items = getattr(criteria, name)
        if items:
            out[_KEYS[name][0]] = ",".join(items)
    for name in ("experience", "location", "availability", "remote_preference"):
        v = getattr(criteria, name)
        if v:
            out[_KEYS[name][0]] = v
    if criteria.salary_min is not None:
        out["salaryMin"] = str(criteria.salary_min)
    if criteria.salary_max is not None:
        out["salaryMax"] = str(criteria.salary_max)
    out["page"] = str(criteria.page)
    out["limit"] = str(criteria.limit)
    out["sortBy"] = criteria.sort_by
    out["sortOrder"] = criteria.sort_order
    return out


def query_params_to_raw(items: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """Merge repeated query-string keys (role[]=a&role[]=b) into lists."""
    merged: dict[str, list[str]] = {}
    for key, value in items:
        merged.setdefault(key, []).append(value)
    return merged
