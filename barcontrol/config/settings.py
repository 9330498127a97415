"""
Configuration Management for BarControl

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage capacity, photo limits and display defaults are validated at
startup instead of being scattered as constants across the services.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local key-value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BARCONTROL_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    directory: Path = Field(
        default=Path(".barcontrol"),
        description="Directory holding one file per stored key"
    )
    capacity_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Total bytes the store may hold (browser local storage is ~5 MiB)"
    )
    history_photo_keep: int = Field(
        default=5,
        ge=0,
        description="Sessions (newest first) that keep their photos when history is degraded"
    )


class CaptureSettings(BaseSettings):
    """Photo capture and downsampling configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BARCONTROL_CAPTURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_dimension: int = Field(
        default=800,
        ge=64,
        le=4096,
        description="Long edge cap in pixels after downsampling"
    )
    jpeg_quality: int = Field(
        default=70,
        ge=1,
        le=95,
        description="Initial JPEG quality used when re-encoding"
    )
    min_jpeg_quality: int = Field(
        default=30,
        ge=1,
        le=95,
        description="Lowest JPEG quality tried before giving up on the size cap"
    )
    max_photo_bytes: int = Field(
        default=120_000,
        ge=1024,
        description="Largest encoded photo payload accepted into an item"
    )
    target_aspect_ratio: float = Field(
        default=1.0,
        gt=0.0,
        description="Aspect ratio requested from the camera (1.0 = square)"
    )
    facing_mode: str = Field(
        default="environment",
        pattern="^(environment|user)$",
        description="Camera to request (environment = rear-facing)"
    )

    @field_validator('min_jpeg_quality')
    @classmethod
    def validate_quality_floor(cls, v: int, info: ValidationInfo) -> int:
        """The quality floor cannot sit above the starting quality."""
        start = info.data.get('jpeg_quality')
        if start is not None and v > start:
            raise ValueError("min_jpeg_quality cannot exceed jpeg_quality")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BARCONTROL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Logging
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level emitted by the structured logger"
    )

    # Budget
    default_budget_limit: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Budget limit used when none is stored (0 = no limit)"
    )

    # Display
    currency_symbol: str = Field(
        default="R$",
        max_length=5,
        description="Symbol shown in front of amounts"
    )

    @property
    def effective_log_level(self) -> str:
        """Level handed to configure_logging()."""
        return "DEBUG" if self.debug_mode else self.log_level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def capture(self) -> CaptureSettings:
        return CaptureSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<setting_name>_error" entry for each section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "capture", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
