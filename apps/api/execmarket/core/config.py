from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from apps/api so it works regardless of CWD
_env_file = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    database_url: str = "postgresql://localhost/execmarket"
    sql_echo: bool = False

    # Identity provider issues HS256 tokens; sub is the user id
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24  # 1 day

    # Rate limiting (per-user when key_func uses user id; multi-instance needs Redis later)
    rate_limit_enabled: bool = True
    search_rate_limit: str = "30/minute"
    unlock_rate_limit: str = "30/minute"

    # CORS (comma-separated origins; * allows all)
    cors_origins: str = "*"

    # Pagination
    default_page_limit: int = 12
    max_page_limit: int = 100

    # Facets: top-N for high-cardinality dimensions
    location_facet_limit: int = 10
    sector_facet_limit: int = 10
    specialism_facet_limit: int = 10
    skill_facet_limit: int = 8

    # Redaction
    salary_rounding_step: int = 5000
    tag_preview_limit: int = 3

    # Disclosure pricing
    unlock_cost_credits: int = 1
    unlock_price_minor: int = 4900  # card unlock, minor units
    unlock_price_currency: str = "gbp"
    # Tiers whose plan grants disclosure of every profile (comma-separated)
    unlimited_disclosure_tiers: str = "enterprise"

    # Search quota per subscription tier
    basic_search_quota: int = 10
    premium_search_quota: int = 100
    enterprise_search_quota: int = 1000

    # Stripe
    stripe_api_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_webhook_tolerance_seconds: int = 300
    stripe_premium_price_id: str | None = None
    stripe_enterprise_price_id: str | None = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parsed CORS origins for middleware."""
        raw = self.cors_origins.strip()
        return ["*"] if not raw else [o.strip() for o in raw.split(",") if o.strip()]

    @property
    def unlimited_disclosure_tier_set(self) -> frozenset[str]:
        return frozenset(t.strip().lower() for t in self.unlimited_disclosure_tiers.split(",") if t.strip())

    def search_quota_for_tier(self, tier: str) -> int:
        return {
            "basic": self.basic_search_quota,
            "premium": self.premium_search_quota,
            "enterprise": self.enterprise_search_quota,
        }.get(tier, self.basic_search_quota)


@lru_cache
def get_settings() -> Settings:
    return Settings()
