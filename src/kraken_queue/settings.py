from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from kraken_queue.config.rate_limit import DEFAULT_POLL_INTERVAL_MS, RateLimitConfig, for_tier


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Credentials
    kraken_api_key: str = Field(default="", validation_alias="KRAKEN_API_KEY")
    kraken_api_secret: str = Field(default="", validation_alias="KRAKEN_API_SECRET")

    # Transport
    base_url: str = Field(default="https://api.kraken.com", validation_alias="KRAKEN_BASE_URL")
    timeout_seconds: float = Field(default=5.0, gt=0, validation_alias="KRAKEN_TIMEOUT_SECONDS")
    max_attempts: int = Field(default=5, ge=1, validation_alias="KRAKEN_MAX_ATTEMPTS")
    retry_delay_seconds: float = Field(
        default=5.0,
        ge=0,
        validation_alias="KRAKEN_RETRY_DELAY_SECONDS",
    )

    # Rate limit
    tier: int = Field(default=2, validation_alias="KRAKEN_TIER")
    poll_interval_ms: int = Field(
        default=DEFAULT_POLL_INTERVAL_MS,
        gt=0,
        validation_alias="KRAKEN_POLL_INTERVAL_MS",
    )

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    def rate_limit(self) -> RateLimitConfig:
        return for_tier(self.tier, poll_interval_ms=self.poll_interval_ms)

    def has_credentials(self) -> bool:
        return bool(self.kraken_api_key.strip() and self.kraken_api_secret.strip())
