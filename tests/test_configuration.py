"""
Tests for settings loading.
"""

import pytest
from omegaconf.errors import ConfigKeyError

from gatepass_backend.configuration import load_settings, settings_to_dict


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings.pdf.format == "A4"
        assert settings.pdf.headless is True
        assert settings.pdf.wait_until == "networkidle"
        assert settings_to_dict(settings.pdf.margin) == {
            "top": "8mm",
            "right": "8mm",
            "bottom": "10mm",
            "left": "8mm",
        }
        assert settings.pdf_cache.single_flight is True

    def test_environment_feeds_settings(self):
        settings = load_settings()
        assert settings.cache.backend == "sqlite"
        assert settings.database.path.endswith("gatepass.db")

    def test_cache_defaults_to_record_database(self):
        settings = load_settings()
        assert settings.cache.sqlite_path == settings.database.path

    def test_unset_logo_settings_are_none(self):
        settings = load_settings()
        assert settings.logo.data_uri is None
        assert settings.logo.path is None
        assert settings.logo.base64_path is None

    def test_logo_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOGO_DATA_URI", "data:image/png;base64,QUJD")
        assert load_settings().logo.data_uri == "data:image/png;base64,QUJD"

    def test_overrides(self):
        settings = load_settings({"pdf": {"format": "Letter"}})
        assert settings.pdf.format == "Letter"
        assert settings.pdf.headless is True

    def test_unknown_override_key_raises(self):
        with pytest.raises(ConfigKeyError):
            load_settings({"pdf": {"fromat": "Letter"}})
