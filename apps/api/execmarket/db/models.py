import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .session import Base


def uuid4_str():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


# JSONB on Postgres, plain JSON elsewhere (tests run on SQLite)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    """Mirror of the identity-provider user. ``id`` is the provider's subject."""
    __tablename__ = "users"

    CANDIDATE = "candidate"
    COMPANY = "company"
    ADMIN = "admin"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), nullable=False, default=CANDIDATE)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    candidate_profile = relationship("CandidateProfile", back_populates="user", uselist=False)
    company_membership = relationship("CompanyUser", back_populates="user", uselist=False)


class Company(Base):
    """Paying account. Search quota, credits and disclosure entitlements belong here."""
    __tablename__ = "companies"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    name = Column(String(255), nullable=False)
    tier = Column(String(20), nullable=False, default="basic")  # basic, premium, enterprise
    search_quota = Column(Integer, nullable=False, default=10)
    searches_used = Column(Integer, nullable=False, default=0)
    credits_balance = Column(Integer, nullable=False, default=0)
    payment_preference = Column(String(20), nullable=False, default="credits")  # credits, card
    stripe_customer_id = Column(String(255), nullable=True, unique=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    members = relationship("CompanyUser", back_populates="company")


class CompanyUser(Base):
    __tablename__ = "company_users"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="member")  # owner, member
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    company = relationship("Company", back_populates="members")
    user = relationship("User", back_populates="company_membership")


class CandidateProfile(Base):
    """Searchable candidate profile. Created inactive and anonymized; approval activates it."""
    __tablename__ = "candidate_profiles"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    title = Column(String(255), nullable=True)
    summary = Column(Text, nullable=True)
    experience = Column(String(20), nullable=True)  # junior, mid, senior, lead, executive
    location = Column(String(255), nullable=True)
    remote_preference = Column(String(20), nullable=True)  # remote, hybrid, onsite, flexible
    availability = Column(String(20), nullable=True)  # immediately, 2weeks, 1month, 3months, 6months
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    salary_currency = Column(String(3), nullable=True, default="GBP")

    # Contact links (disclosure only)
    linkedin_url = Column(String(500), nullable=True)
    github_url = Column(String(500), nullable=True)
    portfolio_url = Column(String(500), nullable=True)

    # Visibility
    is_active = Column(Boolean, nullable=False, default=False)
    profile_completed = Column(Boolean, nullable=False, default=False)
    is_anonymized = Column(Boolean, nullable=False, default=True)

    # Admin-only structured facts: submission, enrichment records, processing history
    private_metadata = Column(JSONDocument, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    retired_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="candidate_profile")
    tags = relationship("CandidateTag", back_populates="candidate", cascade="all, delete-orphan")
    work_experiences = relationship(
        "WorkExperience",
        back_populates="candidate",
        cascade="all, delete-orphan",
        order_by="WorkExperience.sort_order",
    )
    education = relationship(
        "Education",
        back_populates="candidate",
        cascade="all, delete-orphan",
        order_by="Education.sort_order",
    )
    board_experiences = relationship("BoardExperience", back_populates="candidate", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_candidate_profiles_search", "is_active", "profile_completed"),
        Index("ix_candidate_profiles_updated_at", "updated_at"),
    )


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, index=True)
    category = Column(String(30), nullable=False)  # skill, expertise, industry, role, certification, language
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("name", "category", name="uq_tags_name_category"),)


class CandidateTag(Base):
    __tablename__ = "candidate_tags"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    candidate_id = Column(Uuid(as_uuid=False), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False)
    tag_id = Column(Uuid(as_uuid=False), ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)
    proficiency = Column(String(20), nullable=True)  # beginner, intermediate, advanced, expert
    years_experience = Column(Integer, nullable=True)
    is_endorsed = Column(Boolean, nullable=False, default=False)

    candidate = relationship("CandidateProfile", back_populates="tags")
    tag = relationship("Tag")

    __table_args__ = (
        UniqueConstraint("candidate_id", "tag_id", name="uq_candidate_tags_candidate_tag"),
        Index("ix_candidate_tags_tag_id", "tag_id"),
    )


class WorkExperience(Base):
    __tablename__ = "work_experiences"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    candidate_id = Column(Uuid(as_uuid=False), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False)
    company_name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(String(20), nullable=True)  # YYYY-MM
    end_date = Column(String(20), nullable=True)
    is_current = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)

    candidate = relationship("CandidateProfile", back_populates="work_experiences")


class Education(Base):
    __tablename__ = "education"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    candidate_id = Column(Uuid(as_uuid=False), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False)
    institution = Column(String(255), nullable=False)
    degree = Column(String(255), nullable=True)
    field_of_study = Column(String(255), nullable=True)
    graduation_year = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    candidate = relationship("CandidateProfile", back_populates="education")


class BoardExperience(Base):
    __tablename__ = "board_experiences"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    candidate_id = Column(Uuid(as_uuid=False), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False)
    board_type = Column(String(30), nullable=False)  # ftse100, ftse250, aim, private-equity, ...

    candidate = relationship("CandidateProfile", back_populates="board_experiences")

    __table_args__ = (
        UniqueConstraint("candidate_id", "board_type", name="uq_board_experiences_candidate_type"),
        Index("ix_board_experiences_board_type", "board_type"),
    )


class ProfileUnlock(Base):
    """One row per payment reference. The entitlement of a pair is its purchased row."""
    __tablename__ = "profile_unlocks"

    RESERVED = "reserved"
    PURCHASED = "purchased"
    FAILED = "failed"
    DUPLICATE = "duplicate"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    candidate_id = Column(Uuid(as_uuid=False), ForeignKey("candidate_profiles.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payment_ref = Column(String(255), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default=RESERVED)
    source = Column(String(20), nullable=False)  # credits, card
    amount = Column(Integer, nullable=False, default=0)  # credits, or minor units for card
    currency = Column(String(10), nullable=True)  # None for credits
    created_at = Column(DateTime(timezone=True), default=utcnow)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_profile_unlocks_company_candidate", "company_id", "candidate_id"),
        Index(
            "uq_profile_unlocks_purchased_pair",
            "company_id",
            "candidate_id",
            unique=True,
            postgresql_where=text("status = 'purchased'"),
            sqlite_where=text("status = 'purchased'"),
        ),
    )


class CreditLedger(Base):
    __tablename__ = "credit_ledger"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Integer, nullable=False)  # negative for debit
    reason = Column(String(100), nullable=False)  # unlock_profile, purchase, adjustment
    reference_type = Column(String(50), nullable=True)  # unlock_id, payment_intent
    reference_id = Column(String(255), nullable=True)
    external_ref = Column(String(255), nullable=True, unique=True)  # dedup key
    balance_after = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_credit_ledger_company_id", "company_id"),)


class SearchQuery(Base):
    """Executed searches; read back as the company search history."""
    __tablename__ = "search_queries"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    filters = Column(JSONDocument, nullable=True)
    result_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_search_queries_company_created", "company_id", "created_at"),)


class SavedSearch(Base):
    """Named filter set of a company, stored in the canonical filter encoding."""
    __tablename__ = "saved_searches"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=uuid4_str)
    company_id = Column(Uuid(as_uuid=False), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    filters = Column(JSONDocument, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)  # False once deleted
    alerts_enabled = Column(Boolean, nullable=False, default=False)
    alert_frequency = Column(String(20), nullable=False, default="weekly")  # daily, weekly, monthly
    last_executed_at = Column(DateTime(timezone=True), nullable=True)
    result_count = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("ix_saved_searches_company_id", "company_id"),)
