# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Configuration management using Pydantic Settings."""

from beartype import beartype
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Rating engine settings with immutable configuration.

    Values are read from ``RATING_*`` environment variables. None of these
    settings change what :func:`policy_rating.services.rating.evaluate`
    computes for a given set of arguments; they only supply the defaults the
    service layer passes in.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATING_",
        env_file=None,
        frozen=True,  # Immutable settings
        validate_default=True,
        extra="forbid",
    )

    app_name: str = Field(
        default="Policy Rating Engine",
        description="Application name",
        min_length=1,
    )
    api_env: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="API environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )
    api_host: str = Field(default="127.0.0.1", description="API bind host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API bind port")

    # Rounding
    final_rounding_mode: str = Field(
        default="nearest",
        pattern="^(none|up|down|nearest|bankers|truncate)$",
        description="Rounding applied to the chain total by the rating service",
    )

    # Package rating
    package_all_or_nothing: bool = Field(
        default=False,
        description="Fail the whole package when any coverage fails to rate",
    )

    # Response cache
    cache_capacity: int = Field(
        default=1024,
        ge=1,
        le=1_000_000,
        description="Maximum number of cached rating responses",
    )
    cache_ttl_seconds: float = Field(
        default=900.0,
        gt=0,
        le=86400,
        description="Time to live of a cached rating response in seconds",
    )

    # Monitoring
    slow_evaluation_ms: float = Field(
        default=50.0,
        gt=0,
        description="Evaluations slower than this are logged as slow",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
