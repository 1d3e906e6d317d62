"""Configuration settings for fcos_images.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# CoreOS build infrastructure
DEFAULT_BASE_URL = "https://builds.coreos.fedoraproject.org"

# Distribution keyring used to validate artifact signatures
DEFAULT_KEYRING_URL = "https://fedoraproject.org/fedora.gpg"


def _default_cache_dir() -> Path:
    """Return the default cache directory."""
    return Path.home() / ".cache" / "fcos-images"


def _no_color_convention() -> bool:
    """NO_COLOR disables colour when set to any non-empty value."""
    return bool(os.environ.get("NO_COLOR"))


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the FCOS_IMG_ prefix.
    Colour output additionally honours the NO_COLOR convention.
    """

    model_config = SettingsConfigDict(
        env_prefix="FCOS_IMG_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Paths
    cache_dir: Path = Field(
        default_factory=_default_cache_dir,
        description="Root directory of the image cache",
    )

    # Remote endpoints
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL of the CoreOS build infrastructure",
    )
    keyring_url: str = Field(
        default=DEFAULT_KEYRING_URL,
        description="URL of the trusted signing keyring",
    )

    # Output
    no_color: bool = Field(
        default_factory=_no_color_convention,
        description="Disable coloured terminal output",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    # Timeouts (in seconds)
    download_timeout: int = Field(
        default=3600,
        ge=1,
        description="Timeout for artifact downloads",
    )
    metadata_timeout: int = Field(
        default=30,
        ge=1,
        description="Timeout for manifest and metadata requests",
    )

    # Cache behaviour
    lock_entries: bool = Field(
        default=True,
        description="Hold an advisory lock on a cache entry while downloading",
    )

    # External tools
    gpgv_path: str = Field(
        default="gpgv",
        description="gpgv executable used for signature validation",
    )

    @field_validator("base_url", "keyring_url")
    @classmethod
    def validate_https(cls, v: str) -> str:
        """Only HTTPS endpoints are accepted."""
        if not v.startswith("https://"):
            raise ValueError(f"URL must use https://, got '{v}'")
        return v.rstrip("/")


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_KEYRING_URL",
    "Settings",
    "get_settings",
    "print_settings_json",
]
