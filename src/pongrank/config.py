"""
Configuration management for pongrank.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. Values can also be placed in a
.env file in the project root.

Usage:
    from pongrank.config import settings
    print(settings.rating_k_factor)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field can be overridden with an environment variable of the
    same name prefixed with PONGRANK_ (e.g. PONGRANK_RATING_K_FACTOR=24).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PONGRANK_",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///pongrank.db",
        description="SQLAlchemy connection URL for the rankings database",
    )

    # Pool settings (ignored for SQLite)
    db_pool_size: int = Field(
        default=5,
        description="Number of connections to keep in the pool",
    )
    db_max_overflow: int = Field(
        default=10,
        description="Max additional connections beyond pool_size",
    )

    # ==========================================================================
    # Rating Configuration
    # ==========================================================================

    rating_baseline: int = Field(
        default=1200,
        description="Rating every competitor starts from on a full rebuild",
    )
    rating_k_factor: int = Field(
        default=32,
        description="Maximum rating points exchanged in a single match",
    )
    rating_spread: int = Field(
        default=400,
        description="Rating difference that corresponds to 10:1 odds",
    )

    # ==========================================================================
    # Recompute Configuration
    # ==========================================================================

    default_scope: str = Field(
        default="default",
        description="Dataset scope used when none is given",
    )
    recompute_lock_timeout_seconds: float = Field(
        default=10.0,
        description="How long a rebuild waits for another rebuild of the same scope",
    )
    store_timeout_seconds: float = Field(
        default=5.0,
        description="Upper bound for a single store read/write statement",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="%(asctime)s %(levelname)s %(name)s: %(message)s",
        description="Format string passed to logging.basicConfig in scripts",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper_v

    @field_validator("rating_k_factor", "rating_spread")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once,
    which is important because loading from .env can be slow.
    """
    return Settings()


# Convenience alias for importing
settings = get_settings()
