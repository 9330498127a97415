"""Configuration package."""

from barcontrol.config.settings import (
    AppSettings,
    CaptureSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CaptureSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
