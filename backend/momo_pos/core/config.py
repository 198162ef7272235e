"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. Business constants that staff may
tune per deployment (fixed daily costs, momo piece counts) live here too.
"""

from functools import lru_cache
from typing import Dict, List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database - relative path by default, override via env for deployments
    database_url: str = "sqlite:///./data/momo_pos.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # one trading day

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    timezone: str = "Asia/Kolkata"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True

    # ==========================================================================
    # Business rules
    # ==========================================================================
    # Fixed costs used by the P&L report, per trading day
    daily_salary_rate: float = 1200.0
    daily_rent_rate: float = 800.0

    # Pieces per plate for momo items consuming the bulk (global) recipe
    momo_piece_counts: Dict[str, int] = {"small": 4, "medium": 6, "large": 8}

    # Optimistic stock updates: attempts before giving up with a conflict
    stock_update_max_retries: int = 5

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == "change-me-in-production" or len(v) < 32:
            import warnings
            warnings.warn(
                "SECRET_KEY is the default or shorter than 32 characters. "
                "Set a secure SECRET_KEY environment variable.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator("momo_piece_counts")
    @classmethod
    def validate_piece_counts(cls, v: Dict[str, int]) -> Dict[str, int]:
        missing = {"small", "medium", "large"} - set(v)
        if missing:
            raise ValueError(f"momo_piece_counts is missing sizes: {sorted(missing)}")
        if any(count <= 0 for count in v.values()):
            raise ValueError("momo_piece_counts must be positive")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to run outside debug mode with the default secret key."""
        if not self.debug and self.secret_key == "change-me-in-production":
            raise ValueError(
                "FATAL: Cannot start in production mode with default SECRET_KEY. "
                "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
            )
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
