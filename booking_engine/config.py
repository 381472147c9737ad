"""Booking engine configuration loaded from the environment and config/.env."""

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Find .env file
# =============================================================================

def find_env_file() -> str:
    """Find the .env file relative to project root."""
    candidates = [
        "config/.env",
        ".env",
        Path(__file__).parent.parent / "config" / ".env",
    ]

    for candidate in candidates:
        path = Path(candidate)
        if path.exists():
            return str(path)

    return "config/.env"  # Default


ENV_FILE = find_env_file()

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


# =============================================================================
# Settings Classes
# =============================================================================


class FrontDeskApiSettings(BaseSettings):
    """Front-desk REST backend settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="FRONTDESK_API_",
        extra="ignore",
    )

    base_url: str = "http://localhost:3000"
    api_token: SecretStr | None = None
    timeout_seconds: int = 30

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Timeout must be at least 1 second")
        return v


class PricingSettings(BaseSettings):
    """Charge computation settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="PRICING_",
        extra="ignore",
    )

    # Discount base composition
    discount_includes_extras: bool = True
    discount_includes_complementary: bool = False

    # Default stay times
    default_check_in_time: str = "14:00"
    default_check_out_time: str = "12:00"

    currency: str = "LKR"

    @field_validator("default_check_in_time", "default_check_out_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not TIME_PATTERN.match(v):
            raise ValueError(f"Time must be in HH:MM format, got {v!r}")
        return v


class AppSettings(BaseSettings):
    """Process-level settings: logging, reference data and the HTTP surface."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"

    # Reference data
    use_fallback_catalog: bool = True
    fallback_catalog_file: str | None = None

    # HTTP surface
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    draft_idle_minutes: int = 240  # Untouched drafts are evicted after this long

    @field_validator("draft_idle_minutes")
    @classmethod
    def validate_idle_minutes(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Draft idle timeout must be at least 1 minute")
        return v


class Settings(BaseSettings):
    """Settings container; each concern is loaded on first access."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache for sub-settings
    _frontdesk: FrontDeskApiSettings | None = None
    _pricing: PricingSettings | None = None
    _app: AppSettings | None = None

    @property
    def frontdesk(self) -> FrontDeskApiSettings:
        if self._frontdesk is None:
            self._frontdesk = FrontDeskApiSettings()
        return self._frontdesk

    @property
    def pricing(self) -> PricingSettings:
        if self._pricing is None:
            self._pricing = PricingSettings()
        return self._pricing

    @property
    def app(self) -> AppSettings:
        if self._app is None:
            self._app = AppSettings()
        return self._app

    # Convenience accessors
    @property
    def frontdesk_base_url(self) -> str:
        return self.frontdesk.base_url

    @property
    def frontdesk_api_token(self) -> str | None:
        token = self.frontdesk.api_token
        return token.get_secret_value() if token else None

    @property
    def log_level(self) -> str:
        return self.app.log_level

    @property
    def log_format(self) -> str:
        return self.app.log_format


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
