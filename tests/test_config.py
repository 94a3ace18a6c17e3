"""Tests for topohound.config module.

This module tests configuration management including environment
variable loading, settings validation, and caching behavior.
"""

from __future__ import annotations

import os
import pytest

from topohound.config import Settings, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_settings_default_values(self, clean_environment):
        """Test Settings with all default values."""
        settings = Settings()

        assert settings.strict is True
        assert settings.max_resources == 10000
        assert settings.root_module == "root"
        assert settings.output_format == "records"
        assert settings.output_indent is None
        assert settings.log_level == "INFO"

    def test_settings_from_environment(self, clean_environment):
        """Test Settings loads from environment variables."""
        os.environ["TOPOHOUND_STRICT"] = "false"
        os.environ["TOPOHOUND_MAX_RESOURCES"] = "50"
        os.environ["TOPOHOUND_OUTPUT_INDENT"] = "2"

        settings = Settings()

        assert settings.strict is False
        assert settings.max_resources == 50
        assert settings.output_indent == 2

    def test_settings_output_format_normalized(self, clean_environment):
        """Test output_format is lowercased."""
        os.environ["TOPOHOUND_OUTPUT_FORMAT"] = "Cytoscape"

        settings = Settings()

        assert settings.output_format == "cytoscape"

    def test_settings_log_level_uppercased(self, clean_environment):
        """Test log_level is uppercased."""
        os.environ["TOPOHOUND_LOG_LEVEL"] = "debug"

        settings = Settings()

        assert settings.log_level == "DEBUG"


class TestSettingsEnvPrefix:
    """Tests for Settings environment variable prefix."""

    def test_settings_uses_topohound_prefix(self, clean_environment):
        """Test Settings uses TOPOHOUND_ prefix."""
        os.environ["TOPOHOUND_MAX_RESOURCES"] = "99"
        os.environ["MAX_RESOURCES"] = "88"

        try:
            settings = Settings()
        finally:
            del os.environ["MAX_RESOURCES"]

        assert settings.max_resources == 99

    def test_settings_case_insensitive(self, clean_environment):
        """Test Settings is case insensitive for env vars."""
        os.environ["topohound_max_resources"] = "77"

        settings = Settings()

        assert settings.max_resources == 77


class TestSettingsValidation:
    """Tests for Settings validation behavior."""

    def test_unknown_output_format(self, clean_environment):
        """Test Settings rejects unknown output formats."""
        os.environ["TOPOHOUND_OUTPUT_FORMAT"] = "graphml"

        with pytest.raises(Exception):  # Pydantic validation error
            Settings()

    def test_max_resources_must_be_positive(self, clean_environment):
        """Test Settings rejects a zero resource cap."""
        with pytest.raises(Exception):
            Settings(max_resources=0)

    def test_invalid_strict_value(self, clean_environment):
        """Test Settings raises error for a non-boolean strict flag."""
        os.environ["TOPOHOUND_STRICT"] = "sometimes"

        with pytest.raises(Exception):
            Settings()

    def test_negative_indent(self, clean_environment):
        """Test Settings rejects a negative indent."""
        with pytest.raises(Exception):
            Settings(output_indent=-1)


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_settings_instance(self, clean_environment):
        """Test get_settings returns a Settings instance."""
        get_settings.cache_clear()

        settings = get_settings()

        assert isinstance(settings, Settings)

    def test_get_settings_is_cached(self, clean_environment):
        """Test get_settings returns cached instance."""
        get_settings.cache_clear()

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2

    def test_get_settings_cache_can_be_cleared(self, clean_environment):
        """Test get_settings picks up new environment after cache_clear."""
        get_settings.cache_clear()
        settings1 = get_settings()

        os.environ["TOPOHOUND_STRICT"] = "false"
        get_settings.cache_clear()
        settings2 = get_settings()
        get_settings.cache_clear()

        assert settings1.strict is True
        assert settings2.strict is False
