"""
Tests for configuration loading
"""

from decimal import Decimal
from pathlib import Path

import pytest

from barcontrol.config import (
    AppSettings,
    CaptureSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


class TestDefaults:
    """Tests for values used when nothing is configured."""

    def test_storage_defaults(self):
        settings = StorageSettings()
        assert settings.directory == Path(".barcontrol")
        assert settings.capacity_bytes == 5 * 1024 * 1024
        assert settings.history_photo_keep == 5

    def test_capture_defaults(self):
        settings = CaptureSettings()
        assert settings.max_dimension == 800
        assert settings.jpeg_quality == 70
        assert settings.facing_mode == "environment"

    def test_app_defaults(self):
        settings = AppSettings()
        assert settings.default_budget_limit == Decimal("0")
        assert settings.currency_symbol == "R$"
        assert settings.effective_log_level == "INFO"


class TestEnvironment:
    """Tests for environment overrides."""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BARCONTROL_STORAGE_HISTORY_PHOTO_KEEP", "3")
        monkeypatch.setenv("BARCONTROL_DEFAULT_BUDGET_LIMIT", "300")
        assert StorageSettings().history_photo_keep == 3
        assert AppSettings().default_budget_limit == Decimal("300")

    def test_debug_mode_forces_debug_logging(self, monkeypatch):
        monkeypatch.setenv("BARCONTROL_LOG_LEVEL", "WARNING")
        assert AppSettings().effective_log_level == "WARNING"
        monkeypatch.setenv("BARCONTROL_DEBUG_MODE", "true")
        assert AppSettings().effective_log_level == "DEBUG"

    def test_quality_floor_above_start_is_rejected(self):
        """Test that min_jpeg_quality cannot exceed jpeg_quality."""
        with pytest.raises(ValueError):
            CaptureSettings(jpeg_quality=50, min_jpeg_quality=60)

    def test_invalid_section_is_reported(self, monkeypatch):
        """Test that validate_all_settings names the broken section."""
        monkeypatch.setenv("BARCONTROL_CAPTURE_FACING_MODE", "sideways")
        get_settings.cache_clear()
        try:
            results = validate_all_settings()
        finally:
            get_settings.cache_clear()
        assert results["storage"] is True
        assert results["capture"] is False
        assert "capture_error" in results
