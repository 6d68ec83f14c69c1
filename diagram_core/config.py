"""Core settings.

All configuration is sourced from environment variables prefixed with
`DIAGRAM_CORE_` (and optionally `.env`).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed environment-backed settings for the diagram core."""

    model_config = SettingsConfigDict(
        env_prefix="DIAGRAM_CORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # Layout engine
    layout_timeout_seconds: float = Field(default=5.0, gt=0, description="Per-layout time budget")
    group_padding: float = Field(default=40.0, ge=0, description="Padding inside containers")

    # Collision resolver (standalone use)
    collision_margin: float = Field(default=15.0, ge=0)
    collision_tolerance: float = Field(default=0.5, ge=0)
    collision_max_iterations: int = Field(default=50, ge=1)

    # Collision resolver as run after a layout
    layout_collision_margin: float = Field(default=24.0, ge=0)
    layout_collision_tolerance: float = Field(default=0.0, ge=0)
    layout_collision_max_iterations: int = Field(default=150, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
