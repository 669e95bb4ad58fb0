"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded in code paths)
    - get_settings() is cached (lru_cache) — single read-only instance per process
    - The session signing secret lives here and nowhere else
    - A checkout claim outlives the longest possible charge, so a stale-claim
      takeover never overlaps a charge still in flight
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# wait_for abandons the Stripe worker thread on timeout; it may keep running
# until the SDK's own 80 second network timeout fires.
CHARGE_THREAD_GRACE_SECONDS = 80


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, frozen=True,
    )

    # Database
    database_url: str = (
        "postgresql+asyncpg://storefront:storefront@db:5432/storefront"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql://; asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Sessions & credentials
    app_secret: str = "change-me"
    session_cookie_name: str = "token"
    session_max_age_days: int = 365
    session_cookie_secure: bool = False
    bcrypt_rounds: int = 10

    # Password reset
    reset_token_ttl_seconds: int = 3600
    frontend_url: str = "http://localhost:7777"

    # Payments
    payment_provider: Literal["stripe", "fake"] = "stripe"
    stripe_secret_key: str = "sk_test_placeholder"
    payment_currency: str = "EUR"
    payment_timeout_seconds: float = 20.0
    checkout_claim_ttl_seconds: int = 300

    # Mail
    mail_provider: Literal["smtp", "log"] = "smtp"
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_timeout_seconds: int = 30
    mail_from: str = "shop@storefront.local"

    # API
    cors_origins: list[str] = ["http://localhost:7777"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("payment_currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("payment_currency must be a 3-letter ISO code")
        return v.upper()

    @model_validator(mode="after")
    def claim_outlives_charge(self) -> "Settings":
        floor = self.payment_timeout_seconds + CHARGE_THREAD_GRACE_SECONDS
        if self.checkout_claim_ttl_seconds <= floor:
            raise ValueError(
                f"checkout_claim_ttl_seconds must exceed {floor:g} "
                "(payment_timeout_seconds + charge thread grace)"
            )
        return self

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_days * 24 * 60 * 60


@lru_cache
def get_settings() -> Settings:
    return Settings()
