"""
Configuration management for the Bayesian regression course toolkit.

Uses pydantic-settings for type-safe, validated configuration from environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Sampler defaults
    # =========================================================================
    random_seed: int = Field(default=42)
    draws: int = Field(default=1000, ge=10, description="Posterior draws per chain")
    tune: int = Field(default=1000, ge=0, description="Warm-up iterations per chain")
    chains: int = Field(default=4, ge=1, le=16)
    cores: int = Field(
        default=1,
        ge=1,
        description="Processes used by the sampler (1 keeps notebooks and Windows happy)",
    )
    target_accept: float = Field(default=0.9, gt=0.0, lt=1.0)

    # =========================================================================
    # Reporting
    # =========================================================================
    credible_interval: float = Field(
        default=0.95,
        gt=0.0,
        lt=1.0,
        description="Mass of reported credible intervals",
    )
    rhat_threshold: float = Field(default=1.01, ge=1.0)
    ess_threshold: int = Field(default=400, ge=1)

    # =========================================================================
    # Caching & output
    # =========================================================================
    cache_dir: Path = Field(default=Path(".cache"))
    use_cache: bool = Field(
        default=False,
        description="Reuse fitted models stored as netCDF in cache_dir",
    )
    figures_dir: Path = Field(default=Path("figures"))

    # =========================================================================
    # API
    # =========================================================================
    api_base_url: str = Field(default="http://localhost:8080")

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    # =========================================================================
    # Validation
    # =========================================================================
    @field_validator("cache_dir", "figures_dir", mode="before")
    @classmethod
    def validate_output_dir(cls, v: str | Path) -> Path:
        """Convert string to Path and create if needed."""
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("log_file", mode="before")
    @classmethod
    def validate_log_file(cls, v: Optional[str | Path]) -> Optional[Path]:
        """Convert string to Path and create parent dir if needed."""
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience exports
settings = get_settings()
