"""Runtime configuration for the hotel search service.

Relies on pydantic-settings so that environment variables (prefixed with ``SHUDENOUT_``)
can override defaults. See `.env.example` for common values.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PRODUCTION = "production"


class Settings(BaseSettings):
    """Captures runtime configuration for the search pipeline."""

    rakuten_app_id: Optional[str] = Field(
        default=None, description="Primary provider application identifier"
    )
    rakuten_affiliate_id: Optional[str] = Field(
        default=None, description="Affiliate identifier used when wrapping hotel detail links"
    )
    jalan_api_key: Optional[str] = Field(
        default=None, description="Secondary provider API key; searches are skipped when unset"
    )

    environment: str = Field(default="development", description="'production' enables strict mode")
    allow_sample_data: bool = Field(
        default=True,
        description="Serve synthetic placeholder hotels when live data is unavailable (never in production)",
    )

    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("data/logs"))

    http_timeout_s: float = Field(default=5.0, description="Timeout applied to every upstream call")
    link_check_timeout_s: float = Field(default=3.0, description="Timeout for affiliate link HEAD checks")
    link_cache_ttl_s: float = Field(default=6 * 60 * 60, description="Link verification cache window")
    search_cache_ttl_s: float = Field(default=3 * 60, description="Window for reusing identical searches")

    vacancy_chunk_size: int = Field(default=15, description="Facilities per vacancy search call")
    candidate_hits: int = Field(default=100, description="Candidates requested during discovery")
    default_radius_km: float = Field(default=3.0)
    default_hits: int = Field(default=10)

    user_agent: str = Field(default="ShudenOut/1.0")

    model_config = SettingsConfigDict(
        env_prefix="SHUDENOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    @field_validator("rakuten_app_id", "rakuten_affiliate_id", "jalan_api_key", mode="before")
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("environment", mode="before")
    def _normalise_environment(cls, value: object) -> str:
        if value in (None, ""):
            return "development"
        return str(value).strip().lower()

    @field_validator("log_dir", mode="before")
    def _expand_log_dir(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value
        return Path(value).expanduser()

    @field_validator("vacancy_chunk_size", "candidate_hits")
    def _validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("chunk size and candidate hits must be positive")
        return value

    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    def sample_data_enabled(self) -> bool:
        """Synthetic data is hard-disabled in production regardless of the flag."""
        if self.is_production():
            return False
        return self.allow_sample_data

    def has_primary_credentials(self) -> bool:
        return bool(self.rakuten_app_id)

    def masked_app_id(self) -> str:
        return mask_secret(self.rakuten_app_id)


def mask_secret(value: Optional[str]) -> str:
    if not value:
        return ""
    if len(value) > 5:
        return f"{value[:3]}...{value[-2:]}"
    return "***"
