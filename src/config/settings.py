# src/config/settings.py - v3
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for TTLs, cache capacity, collaborator endpoints,
quality threshold and cost ceilings. Cross-field rules are checked at
load time and reported together as a ConfigurationError.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promptlift.logging.handlers import is_valid_rotation


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === DOCUMENTATION SERVICE ===
    docs_provider: Literal["context7"] = "context7"
    docs_api_url: str = "https://context7.com/api"
    docs_api_key: str = ""
    docs_timeout_s: float = 5.0
    docs_cache_ttl_seconds: int = 3600
    library_cache_ttl_seconds: int = 86400
    docs_max_frameworks: int = 3

    # === SUMMARIZATION SERVICE ===
    summarizer_enabled: bool = True
    summarizer_provider: Literal["anthropic", "openai"] = "anthropic"
    summarizer_model: str = "claude-haiku-4-5-20251001"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    summarizer_timeout_s: float = 10.0
    summarization_version: str = "v1"
    quality_threshold: float = 0.6
    cost_per_call_ceiling_usd: float = 0.05
    cost_monthly_ceiling_usd: float = 10.0

    # === CACHE ===
    cache_enabled: bool = True
    cache_root: Path = Path("~/.promptlift/cache")
    cache_db_name: str = "promptlift_cache.db"
    cache_raw_ttl_seconds: int = 2 * 60 * 60
    cache_summarized_ttl_seconds: int = 24 * 60 * 60
    cache_response_ttl_seconds: int = 60 * 60
    cache_response_max_ttl_seconds: int = 24 * 60 * 60
    cache_memory_capacity: int = 1000
    cache_durable_timeout_s: float = 2.0
    cache_sweep_interval_seconds: int = 600

    # === PIPELINE ===
    token_budget_simple: int = 1000
    token_budget_medium: int = 2000
    token_budget_complex: int = 4000

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("quality_threshold")
    @classmethod
    def validate_quality_threshold(cls, v: float) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError("quality_threshold must be within [0, 1]")
        return v

    @field_validator("summarization_version")
    @classmethod
    def validate_summarization_version(cls, v: str) -> str:  # noqa: N805
        if not v or ":" in v:
            raise ValueError("summarization_version must be non-empty and contain no ':'")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        ttls = {
            "CACHE_RAW_TTL_SECONDS": self.cache_raw_ttl_seconds,
            "CACHE_SUMMARIZED_TTL_SECONDS": self.cache_summarized_ttl_seconds,
            "CACHE_RESPONSE_TTL_SECONDS": self.cache_response_ttl_seconds,
            "CACHE_RESPONSE_MAX_TTL_SECONDS": self.cache_response_max_ttl_seconds,
            "DOCS_CACHE_TTL_SECONDS": self.docs_cache_ttl_seconds,
            "LIBRARY_CACHE_TTL_SECONDS": self.library_cache_ttl_seconds,
        }
        for name, value in ttls.items():
            if value <= 0:
                errors.append(f"{name} must be > 0")

        if self.cache_summarized_ttl_seconds < self.cache_raw_ttl_seconds:
            errors.append("CACHE_SUMMARIZED_TTL_SECONDS must be >= CACHE_RAW_TTL_SECONDS")

        if self.cache_memory_capacity <= 0:
            errors.append("CACHE_MEMORY_CAPACITY must be > 0")

        if not (
            0 < self.token_budget_simple
            <= self.token_budget_medium
            <= self.token_budget_complex
        ):
            errors.append("TOKEN_BUDGET_* must satisfy 0 < simple <= medium <= complex")

        if self.cost_per_call_ceiling_usd < 0 or self.cost_monthly_ceiling_usd < 0:
            errors.append("Cost ceilings must be >= 0")

        if self.docs_timeout_s <= 0 or self.summarizer_timeout_s <= 0:
            errors.append("Collaborator timeouts must be > 0")

        if self.docs_max_frameworks <= 0:
            errors.append("DOCS_MAX_FRAMEWORKS must be > 0")

        if not is_valid_rotation(self.log_rotation):
            errors.append("LOG_ROTATION must be a size (10MB) or hourly/daily/midnight/weekly")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def cache_db_path(self) -> Path:
        """Full path of the durable cache database."""
        return self.cache_root.expanduser() / self.cache_db_name

    def token_budget_for(self, level: str) -> int:
        """Token budget for a complexity level (unknown -> medium)."""
        return {
            "simple": self.token_budget_simple,
            "medium": self.token_budget_medium,
            "complex": self.token_budget_complex,
        }.get(level, self.token_budget_medium)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-call config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
