"""
Configuration with Pydantic Settings.

Every field can be overridden from the environment using the ``FORGE_`` prefix
and ``__`` as the nesting delimiter, e.g.::

    FORGE_STRATEGY__INITIAL_SAMPLES=3
    FORGE_STRATEGY__MAX_SAMPLES=7
    FORGE_VOTING__CANONICAL_KEYS=false
    FORGE_OBSERVABILITY__LOG_LEVEL=DEBUG
"""

import logging
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.strategy import ConsensusStrategy


class VotingConfig(BaseModel):
    """Vote tally behaviour."""

    canonical_keys: bool = Field(
        True,
        description="Key the tally by key-sorted serialization; false keys by field order",
    )


class ObservabilityConfig(BaseModel):
    """Logging, tracing and metrics."""

    log_level: str = Field("INFO")
    enable_tracing: bool = Field(True)
    enable_metrics: bool = Field(True)
    otlp_endpoint: str | None = Field(None)
    service_name: str = Field("forge")
    service_version: str = Field("0.1.0")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator("otlp_endpoint")
    @classmethod
    def validate_otlp_endpoint(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError("otlp_endpoint must start with http:// or https://")
        return v


class Settings(BaseSettings):
    """Main settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="FORGE_", env_nested_delimiter="__", case_sensitive=False, extra="ignore"
    )

    strategy: ConsensusStrategy = Field(default_factory=ConsensusStrategy)
    voting: VotingConfig = Field(default_factory=VotingConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
