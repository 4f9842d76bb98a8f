"""
Centralized settings and path configuration for the price resolution engine.

Values are loaded from ``PARTS_PRICING_*`` environment variables (or a
``.env`` file) using Pydantic Settings.
"""
import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Paths ────────────────────────────────────────────
    project_root: Path = Field(default_factory=get_project_root)
    # Holds pricing_settings.json, price_levels.csv, price_matrix.csv and
    # customer_profiles.json; defaults to <project_root>/data
    data_dir: Optional[Path] = None

    # ── Pricing cache ────────────────────────────────────
    cache_ttl_seconds: float = Field(default=30.0, ge=0)
    fetch_workers: int = Field(default=3, ge=1)

    # ── Logging ──────────────────────────────────────────
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PARTS_PRICING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _default_data_dir(self) -> "Settings":
        if self.data_dir is None:
            self.data_dir = self.project_root / "data"
        return self

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the environment, optionally pinning the project root."""
        if project_root is None:
            return cls()
        return cls(project_root=project_root)


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def configure_logging(level: Optional[str] = None):
    """Configure root logging for scripts and the API process."""
    logging.basicConfig(
        level=(level or get_settings().log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
