"""Tests for language validation and service settings."""

from __future__ import annotations

import pytest

from captionize.config import (
    AssemblyAISettings,
    CloudinarySettings,
    ConfigurationError,
    GeminiSettings,
    validate_language_code,
)


class TestValidateLanguageCode:
    @pytest.mark.parametrize("code", [None, "", "auto", "AUTO"])
    def test_detection_values_return_none(self, code):
        assert validate_language_code(code) is None

    def test_known_code_is_lowercased(self):
        assert validate_language_code(" En_US ") == "en_us"

    def test_unknown_code_lists_supported(self):
        with pytest.raises(ValueError, match="Supported: ar, de"):
            validate_language_code("xx")


class TestSettingsFromEnv:
    def test_assemblyai(self, monkeypatch):
        monkeypatch.setenv("ASSEMBLYAI_API_KEY", " key ")
        assert AssemblyAISettings.from_env().api_key == "key"

    def test_missing_key_names_variable(self, monkeypatch):
        monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="ASSEMBLYAI_API_KEY"):
            AssemblyAISettings.from_env()

    def test_cloudinary_needs_all_three(self, monkeypatch):
        monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
        monkeypatch.setenv("CLOUDINARY_API_KEY", "123")
        monkeypatch.delenv("CLOUDINARY_API_SECRET", raising=False)
        with pytest.raises(ConfigurationError, match="CLOUDINARY_API_SECRET"):
            CloudinarySettings.from_env()

    def test_gemini(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g")
        settings = GeminiSettings.from_env()
        assert settings.api_key == "g"
        assert settings.model

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
