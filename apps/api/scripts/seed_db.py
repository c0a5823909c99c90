"""
Seed the database with searchable candidates, a tag vocabulary, three companies and an admin.
Run from apps/api: python scripts/seed_db.py [--candidates 60]
Prints a bearer token per seeded company user and for the admin.
"""
import argparse
import asyncio
import logging
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Ensure execmarket is importable when run from repo root or apps/api
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

logger = logging.getLogger(__name__)

from execmarket.core import create_access_token
from execmarket.db.session import Base, async_session, engine
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
from execmarket.domain import (
    AVAILABILITIES,
    BOARD_EXPERIENCE_TYPES,
    EXPERIENCE_LEVELS,
    REMOTE_PREFERENCES,
    slugify,
)

DEFAULT_CANDIDATES = 60
SEED_PREFIX = "seed"

FIRST_NAMES = [
    "Alex", "Jordan", "Sam", "Taylor", "Morgan", "Casey", "Riley", "Avery",
    "Emma", "Liam", "Olivia", "Noah", "Amelia", "Oliver", "Isla", "George",
    "Ava", "Harry", "Freya", "Arthur", "Priya", "Rohan", "Mei", "Tomasz",
]
LAST_NAMES = [
    "Smith", "Jones", "Williams", "Taylor", "Brown", "Davies", "Evans", "Wilson",
    "Thomas", "Roberts", "Patel", "Khan", "Wright", "Walker", "Green", "Hughes",
]

TITLES_BY_LEVEL = {
    "junior": ["Finance Analyst", "Marketing Associate", "Operations Analyst"],
    "mid": ["Finance Manager", "Product Manager", "HR Business Partner"],
    "senior": ["Finance Director", "Head of Marketing", "Head of Operations"],
    "lead": ["VP Finance", "VP Engineering", "Commercial Director"],
    "executive": ["Chief Financial Officer", "Chief Executive Officer", "Non-Executive Director", "Chief People Officer"],
}
SALARY_BY_LEVEL = {
    "junior": (35000, 55000),
    "mid": (55000, 85000),
    "senior": (85000, 130000),
    "lead": (120000, 170000),
    "executive": (150000, 300000),
}
LOCATIONS = [
    "London, UK", "Manchester, UK", "Birmingham, UK", "Leeds, UK", "Bristol, UK",
    "Edinburgh, UK", "Glasgow, UK", "Cambridge, UK", "Dublin, Ireland", "Remote",
]

# (name, category) vocabulary; slugs derive from names
ROLES = ["CFO", "CEO", "COO", "CTO", "Chair", "Non-Executive Director", "Finance Director", "HR Director"]
SECTORS = ["Financial Services", "Technology", "Healthcare", "Retail", "Energy", "Manufacturing", "Public Sector", "Charity"]
SPECIALISMS = ["M&A", "Turnaround", "Fundraising", "Digital Transformation", "Audit & Risk", "ESG", "Scale-up Growth"]
SKILLS = ["IFRS", "FP&A", "Board Reporting", "Stakeholder Management", "Python", "SQL", "Change Management", "Negotiation"]

EMPLOYERS = ["Acme plc", "Northwind Group", "Contoso Ltd", "Globex Holdings", "Initech", "Umbrella Health", "Soylent Foods"]
INSTITUTIONS = ["LSE", "University of Oxford", "University of Manchester", "Imperial College London", "INSEAD", "University of Edinburgh"]
DEGREES = ["BSc Economics", "MBA", "BA History", "MSc Finance", "BEng Mechanical Engineering"]

COMPANIES = [
    # (name, tier, credits, payment_preference)
    ("Harbour Search Partners", "basic", 25, "credits"),
    ("Meridian Talent", "premium", 0, "card"),
    ("Sterling Executive", "enterprise", 0, "credits"),
]

QUOTA_BY_TIER = {"basic": 10, "premium": 100, "enterprise": 1000}


async def get_or_create_tag(db, cache: dict, name: str, category: str) -> Tag:
    key = (name, category)
    if key in cache:
        return cache[key]
    tag = Tag(name=name, slug=slugify(name), category=category)
    db.add(tag)
    await db.flush()
    cache[key] = tag
    return tag


def random_salary(level: str) -> tuple[int | None, int | None]:
    if random.random() < 0.1:
        return None, None
    lo, hi = SALARY_BY_LEVEL[level]
    salary_min = random.randrange(lo, hi, 1000)
    salary_max = salary_min + random.choice([10000, 20000, 30000])
    if random.random() < 0.1:
        return salary_min, None
    return salary_min, salary_max


async def seed_candidate(db, i: int, tag_cache: dict) -> CandidateProfile:
    level = random.choice(EXPERIENCE_LEVELS)
    first, last = random.choice(FIRST_NAMES), random.choice(LAST_NAMES)
    user = User(
        id=f"{SEED_PREFIX}-candidate-{i}",
        email=f"{first.lower()}.{last.lower()}.{i}@example.com",
        first_name=first,
        last_name=last,
        phone=f"+44 7700 9{i:05d}",
        role=User.CANDIDATE,
    )
    db.add(user)
    salary_min, salary_max = random_salary(level)
    candidate = CandidateProfile(
        user_id=user.id,
        title=random.choice(TITLES_BY_LEVEL[level]),
        summary=f"{level.capitalize()} leader with a track record across {random.choice(SECTORS).lower()}.",
        experience=level,
        location=random.choice(LOCATIONS),
        remote_preference=random.choice(REMOTE_PREFERENCES),
        availability=random.choice(AVAILABILITIES),
        salary_min=salary_min,
        salary_max=salary_max,
        salary_currency="GBP",
        linkedin_url=f"https://www.linkedin.com/in/{first.lower()}-{last.lower()}-{i}",
        is_active=random.random() > 0.05,
        profile_completed=random.random() > 0.05,
        is_anonymized=random.random() > 0.2,
        updated_at=datetime.now(timezone.utc) - timedelta(days=random.randint(0, 180)),
    )
    db.add(candidate)
    await db.flush()

    picks = (
        [(n, "role") for n in random.sample(ROLES, random.randint(1, 2))]
        + [(n, "industry") for n in random.sample(SECTORS, random.randint(1, 3))]
        + [(n, "expertise") for n in random.sample(SPECIALISMS, random.randint(0, 2))]
        + [(n, "skill") for n in random.sample(SKILLS, random.randint(2, 5))]
    )
    for name, category in picks:
        tag = await get_or_create_tag(db, tag_cache, name, category)
        db.add(CandidateTag(
            candidate_id=candidate.id,
            tag_id=tag.id,
            proficiency=random.choice(["intermediate", "advanced", "expert"]),
            years_experience=random.randint(2, 20),
        ))

    if level in ("lead", "executive"):
        for board_type in random.sample(BOARD_EXPERIENCE_TYPES, random.randint(0, 3)):
            db.add(BoardExperience(candidate_id=candidate.id, board_type=board_type))

    year = 2024
    for order in range(random.randint(1, 3)):
        start = year - random.randint(2, 6)
        db.add(WorkExperience(
            candidate_id=candidate.id,
            company_name=random.choice(EMPLOYERS),
            title=random.choice(TITLES_BY_LEVEL[level]),
            start_date=f"{start}-{random.randint(1, 12):02d}",
            end_date=None if order == 0 else f"{year}-{random.randint(1, 12):02d}",
            is_current=order == 0,
            sort_order=order,
        ))
        year = start

    db.add(Education(
        candidate_id=candidate.id,
        institution=random.choice(INSTITUTIONS),
        degree=random.choice(DEGREES),
        graduation_year=random.randint(1985, 2015),
        sort_order=0,
    ))
    return candidate


async def seed_companies(db) -> list[tuple[str, User]]:
    out = []
    for i, (name, tier, credits, preference) in enumerate(COMPANIES):
        company = Company(
            name=name,
            tier=tier,
            search_quota=QUOTA_BY_TIER[tier],
            credits_balance=credits,
            payment_preference=preference,
        )
        db.add(company)
        await db.flush()
        user = User(
            id=f"{SEED_PREFIX}-company-{i}",
            email=f"recruiter{i}@{slugify(name)}.example.com",
            first_name="Recruiter",
            last_name=str(i),
            role=User.COMPANY,
        )
        db.add(user)
        await db.flush()
        db.add(CompanyUser(company_id=company.id, user_id=user.id, role="owner"))
        out.append((name, user))
    return out


async def main(num_candidates: int) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    random.seed(42)
    async with async_session() as db:
        tag_cache: dict = {}
        for i in range(num_candidates):
            await seed_candidate(db, i, tag_cache)
        companies = await seed_companies(db)
        admin = User(id=f"{SEED_PREFIX}-admin", email="admin@example.com", role=User.ADMIN)
        db.add(admin)
        await db.commit()

    logger.info("Seeded %d candidates, %d tags, %d companies", num_candidates, len(tag_cache), len(companies))
    for name, user in companies:
        print(f"{name} ({user.id}): {create_access_token(user.id, role=user.role)}")
    print(f"admin ({admin.id}): {create_access_token(admin.id, role=admin.role)}")
    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--candidates", type=int, default=DEFAULT_CANDIDATES)
    args = parser.parse_args()
    asyncio.run(main(args.candidates))
