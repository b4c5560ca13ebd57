"""
Configuration management for SeasonElo.

Uses Pydantic Settings to load configuration from environment variables
with sensible defaults for development. The database URL and rating
constants can be overridden via environment variables or a .env file.

Usage:
    from seasonelo.config import settings
    print(settings.database_url)
"""

import logging
import sys
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables can be set directly or via a .env file
    in the project root directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ==========================================================================
    # Database Configuration
    # ==========================================================================

    database_url: str = Field(
        default="sqlite:///seasonelo.db",
        description="SQLAlchemy connection URL for the ledger database",
    )

    # Pool settings (ignored for SQLite, which uses its own pooling)
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

    baseline_rating: float = Field(
        default=1000.0,
        description="Rating every player starts each season with",
    )
    k_factor: float = Field(
        default=32.0,
        description="Base K-factor (maximum swing for an even, zero-margin match)",
    )
    spread: float = Field(
        default=400.0,
        description="Logistic spread: a gap of this many points gives 10:1 odds",
    )
    margin_scale: float = Field(
        default=400.0,
        description="Score difference that adds 1.0 to the K multiplier",
    )
    max_margin_multiplier: float = Field(
        default=2.5,
        description="Upper clamp for the margin-of-victory K multiplier",
    )

    # ==========================================================================
    # Match Configuration
    # ==========================================================================

    max_score_diff: int = Field(
        default=960,
        description="Largest score difference a match may carry",
    )
    score_diff_step: int = Field(
        default=5,
        description="Score differences must be a multiple of this value",
    )
    recent_matches_limit: int = Field(
        default=8,
        description="Default number of matches returned by the recent matches view",
    )

    # ==========================================================================
    # Recomputation Configuration
    # ==========================================================================

    recompute_mode: str = Field(
        default="incremental",
        description="'incremental' replays from the changed match, 'full' replays the season",
    )
    season_lock_timeout_seconds: float = Field(
        default=30.0,
        description="How long a mutation waits for the season writer slot",
    )

    # ==========================================================================
    # Logging Configuration
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_format: str = Field(
        default="console",
        description="Log format: 'json' for production, 'console' for dev",
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

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower_v = v.lower()
        if lower_v not in {"json", "console"}:
            raise ValueError("log_format must be 'json' or 'console'")
        return lower_v

    @field_validator("recompute_mode")
    @classmethod
    def validate_recompute_mode(cls, v: str) -> str:
        lower_v = v.lower()
        if lower_v not in {"incremental", "full"}:
            raise ValueError("recompute_mode must be 'incremental' or 'full'")
        return lower_v

    @field_validator("k_factor", "spread", "margin_scale")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("max_margin_multiplier")
    @classmethod
    def validate_max_margin_multiplier(cls, v: float) -> float:
        # A clamp below 1.0 would shrink ordinary wins
        if v < 1.0:
            raise ValueError("max_margin_multiplier must be at least 1.0")
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


_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_JSON_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)


def configure_logging(config: Settings | None = None) -> None:
    """
    Configure the root logger from settings.

    Replaces any existing root handlers with a single stdout handler so
    that calling this twice does not duplicate output.
    """
    config = config or settings
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = _JSON_FORMAT if config.log_format == "json" else _CONSOLE_FORMAT
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%S"))

    root.setLevel(config.log_level)
    root.addHandler(handler)

    # SQL echo is handled by the engine; keep the sqlalchemy logger quiet otherwise
    if config.log_level != "DEBUG":
        logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
