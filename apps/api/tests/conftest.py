import os
# Override settings before any app imports: local SQLite, no rate limiting, known secrets
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_execmarket.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_API_KEY"] = ""
os.environ["LOG_JSON"] = "false"

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from execmarket.core import create_access_token
from execmarket.db import Base, async_session, engine
from execmarket.db.models import (
    BoardExperience,
    CandidateProfile,
    CandidateTag,
    Company,
    CompanyUser,
    Education,
    Tag,
    User,
    WorkExperience,
)
from execmarket.domain import Viewer, slugify
from execmarket.main import app


@pytest.fixture
async def schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db(schema):
    async with async_session() as session:
        yield session


@pytest.fixture
async def client(schema):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# Factory helpers: create test entities quickly and consistently
# ---------------------------------------------------------------------------

_counter = 0


def _unique_id() -> str:
    global _counter
    _counter += 1
    return f"{_counter}-{uuid.uuid4().hex[:8]}"


_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def make_user(db, role: str = User.COMPANY, **fields) -> User:
    uid = fields.pop("id", None) or f"user-{_unique_id()}"
    user = User(
        id=uid,
        email=fields.pop("email", None) or f"{uid}@test.com",
        role=role,
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


async def make_company(
    db,
    *,
    tier: str = "basic",
    credits: int = 0,
    quota: int = 10,
    searches_used: int = 0,
    payment_preference: str = "credits",
    stripe_customer_id: str | None = None,
) -> tuple[Company, User]:
    """Company with one member user. Returns (company, member)."""
    company = Company(
        name=f"Company {_unique_id()}",
        tier=tier,
        credits_balance=credits,
        search_quota=quota,
        searches_used=searches_used,
        payment_preference=payment_preference,
        stripe_customer_id=stripe_customer_id,
    )
    db.add(company)
    await db.flush()
    user = await make_user(db, role=User.COMPANY)
    db.add(CompanyUser(company_id=company.id, user_id=user.id, role="owner"))
    await db.commit()
    return company, user


async def get_or_create_tag(db, name: str, category: str) -> Tag:
    result = await db.execute(select(Tag).where(Tag.name == name, Tag.category == category))
    tag = result.scalar_one_or_none()
    if tag is None:
        tag = Tag(name=name, slug=slugify(name), category=category)
        db.add(tag)
        await db.flush()
    return tag


async def make_candidate(
    db,
    *,
    tags: list[tuple[str, str]] = (),
    boards: list[str] = (),
    work: list[dict] = (),
    education: list[dict] = (),
    first_name: str = "Jane",
    last_name: str = "Doe",
    phone: str | None = "+44 7700 900000",
    age_rank: int = 0,
    **fields,
) -> CandidateProfile:
    """Active, completed, anonymized candidate unless overridden. Higher age_rank = updated later."""
    user = await make_user(db, role=User.CANDIDATE, first_name=first_name, last_name=last_name, phone=phone)
    values = {
        "title": "Chief Financial Officer",
        "summary": "Finance leader.",
        "experience": "senior",
        "location": "London, UK",
        "remote_preference": "hybrid",
        "availability": "3months",
        "salary_min": 120000,
        "salary_max": 150000,
        "salary_currency": "GBP",
        "linkedin_url": "https://linkedin.com/in/example",
        "is_active": True,
        "profile_completed": True,
        "is_anonymized": True,
        "updated_at": _BASE_TIME + timedelta(days=age_rank),
    }
    values.update(fields)
    candidate = CandidateProfile(user_id=user.id, **values)
    db.add(candidate)
    await db.flush()
    for name, category in tags:
        tag = await get_or_create_tag(db, name, category)
        db.add(CandidateTag(candidate_id=candidate.id, tag_id=tag.id, proficiency="expert"))
    for board_type in boards:
        db.add(BoardExperience(candidate_id=candidate.id, board_type=board_type))
    for i, w in enumerate(work):
        db.add(WorkExperience(candidate_id=candidate.id, sort_order=i, **w))
    for i, e in enumerate(education):
        db.add(Education(candidate_id=candidate.id, sort_order=i, **e))
    await db.commit()
    return candidate


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}


def viewer_for(company: Company, user: User) -> Viewer:
    return Viewer(
        user_id=user.id,
        role=user.role,
        company_id=str(company.id),
        tier=company.tier,
        access_model=company.payment_preference,
    )
