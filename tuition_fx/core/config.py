from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tuition_fx.models.constants import CURRENCY_CODES


ALLOWED_RATE_PROVIDERS = {"external-http", "disabled"}


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., DEBUG, HOME_CURRENCY,
    CACHE_TTL_MS, QUOTA_LIMIT, RETRY_ATTEMPTS). Every value has a default so the
    service runs with zero configuration.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Tuition FX"
    debug: bool = False
    version: str = "0.1.0"

    # Currency the viewer thinks in; tuition conversions target it
    home_currency: str = "NGN"

    # Exchange rate provider
    # Allowed: 'external-http' (live API), 'disabled' (cache/fallback only)
    exchange_rate_provider: str = "external-http"
    exchange_api_base_url: AnyHttpUrl = "https://api.exchangerate.host"  # type: ignore[assignment]
    exchange_api_key: Optional[str] = None

    # Rate cache
    cache_ttl_ms: int = Field(300_000, gt=0)
    cache_max_entries: int = Field(100, gt=0)
    # Serve a fresh cache hit before spending quota on a live call
    prefer_cache: bool = False

    # API quota (free tiers are typically ~100 calls/day)
    quota_limit: int = Field(100, gt=0)
    quota_window_seconds: int = Field(86_400, gt=0)

    # Retry / timeouts
    retry_attempts: int = Field(3, ge=1)
    retry_base_delay_ms: int = Field(1000, ge=0)
    request_timeout_ms: int = Field(5000, gt=0)
    health_timeout_ms: int = Field(1500, gt=0)

    # Circuit breaker around the live provider
    breaker_failure_threshold: int = Field(5, gt=0)
    breaker_reset_seconds: int = Field(60, gt=0)

    @field_validator("home_currency")
    @classmethod
    def valid_home_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in CURRENCY_CODES:
            raise ValueError(f"unsupported home currency '{v}'")
        return v

    @field_validator("exchange_rate_provider")
    @classmethod
    def valid_provider(cls, v: str) -> str:
        if v not in ALLOWED_RATE_PROVIDERS:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{v}'. Allowed: {ALLOWED_RATE_PROVIDERS}"
            )
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
