"""Configuration constants, language codes, and explicit service settings.

WHY: Centralizes every configurable value so it is easy to find, update,
and override. The external services (transcription, media, translation)
each need credentials; those are gathered into settings objects that
callers pass in explicitly instead of configuring SDKs globally at import.

HOW: python-dotenv loads the .env file on import. Defaults are
module-level strings read with os.getenv. Each service has a small
frozen dataclass with a from_env() constructor that raises
ConfigurationError naming the missing variable.

RULES:
- Credentials are loaded from the environment (via .env), never hardcoded
- The core (segmentation + codec) never imports this module
- All defaults can be overridden via environment variables
- SUPPORTED_LANGUAGES keys are the provider's language codes
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load .env from the project root (where the app is run from)
load_dotenv()


class ConfigurationError(ValueError):
    """Raised when a required setting is missing from the environment."""


# ---------------------------------------------------------------------------
# Languages accepted for transcription and translation
# ---------------------------------------------------------------------------

AUTO_LANGUAGE = "auto"
"""Ask the transcription provider to detect the spoken language."""

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "en_us": "English (US)",
    "en_uk": "English (UK)",
    "en_au": "English (Australia)",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "hi": "Hindi",
    "ja": "Japanese",
    "zh": "Chinese",
    "fi": "Finnish",
    "ko": "Korean",
    "pl": "Polish",
    "ru": "Russian",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "ar": "Arabic",
}

FALLBACK_LANGUAGE = "en_us"
"""Used when language detection returns nothing."""


def validate_language_code(code: str | None) -> str | None:
    """Return a usable language code, or None for provider detection.

    RULES:
    - None, "" and "auto" mean "let the provider detect" → None
    - Known codes are returned lowercased
    - Unknown codes raise ValueError listing the accepted ones
    """
    if not code or code.lower() == AUTO_LANGUAGE:
        return None
    normalized = code.strip().lower()
    if normalized not in SUPPORTED_LANGUAGES:
        raise ValueError(
            "Unsupported language code '{}'. Supported: {}".format(
                code, ", ".join(sorted(SUPPORTED_LANGUAGES))
            )
        )
    return normalized


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

ASSEMBLYAI_BASE_URL = os.getenv("ASSEMBLYAI_BASE_URL", "https://api.assemblyai.com/v2")
CLOUDINARY_API_URL = os.getenv("CLOUDINARY_API_URL", "https://api.cloudinary.com/v1_1")
CLOUDINARY_DELIVERY_URL = os.getenv("CLOUDINARY_DELIVERY_URL", "https://res.cloudinary.com")
GEMINI_BASE_URL = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
DEFAULT_LANGUAGE_CODE = os.getenv("DEFAULT_LANGUAGE_CODE", AUTO_LANGUAGE)
DEFAULT_SEGMENTATION_POLICY = os.getenv("DEFAULT_SEGMENTATION_POLICY", "storage")
WEBHOOK_URL = os.getenv("CAPTIONIZE_WEBHOOK_URL") or None


def _require(name: str, service: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(
            "{} is not configured. Add {} to the .env file.".format(service, name)
        )
    return value


# ---------------------------------------------------------------------------
# Service settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssemblyAISettings:
    """Credentials and endpoint for the speech-to-text provider."""

    api_key: str
    base_url: str = ASSEMBLYAI_BASE_URL

    @classmethod
    def from_env(cls) -> AssemblyAISettings:
        return cls(
            api_key=_require("ASSEMBLYAI_API_KEY", "AssemblyAI API key"),
            base_url=ASSEMBLYAI_BASE_URL,
        )


@dataclass(frozen=True)
class CloudinarySettings:
    """Credentials and endpoints for the media storage/transformation provider."""

    cloud_name: str
    api_key: str
    api_secret: str
    api_url: str = CLOUDINARY_API_URL
    delivery_url: str = CLOUDINARY_DELIVERY_URL

    @classmethod
    def from_env(cls) -> CloudinarySettings:
        return cls(
            cloud_name=_require("CLOUDINARY_CLOUD_NAME", "Cloudinary cloud name"),
            api_key=_require("CLOUDINARY_API_KEY", "Cloudinary API key"),
            api_secret=_require("CLOUDINARY_API_SECRET", "Cloudinary API secret"),
        )


@dataclass(frozen=True)
class GeminiSettings:
    """Credentials and model for subtitle translation."""

    api_key: str
    model: str = GEMINI_MODEL
    base_url: str = GEMINI_BASE_URL

    @classmethod
    def from_env(cls) -> GeminiSettings:
        return cls(
            api_key=_require("GEMINI_API_KEY", "Gemini API key"),
            model=GEMINI_MODEL,
            base_url=GEMINI_BASE_URL,
        )
