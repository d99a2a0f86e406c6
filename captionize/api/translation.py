"""Subtitle translation through the Gemini generateContent API.

WHY: Editors can publish the same video in several languages. The
language model is good at keeping SRT structure intact when asked to,
so the whole subtitle file is sent in one request and parsed back.

HOW: GeminiClient is an httpx async context manager like the other
collaborators; its generate() sends one prompt and returns the first
candidate's text. SubtitleTranslator builds on it: translate()
serializes blocks with format_srt, sends a prompt asking to keep the SRT
format, and parses the answer with the lenient SRT parser. The
correction client in api/corrections.py reuses GeminiClient the same way.

RULES:
- Temperature is fixed at 0.2 so timings are not rewritten creatively
- Code fences around the model's answer are stripped before parsing
- No text, or zero parseable blocks, raises TranslationError
- Transport failures and non-JSON bodies raise the client's error_class
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Type

import httpx

from captionize.config import SUPPORTED_LANGUAGES, GeminiSettings
from captionize.core.models import CaptionBlock
from captionize.formatters.srt import format_srt, parse_srt_lenient

logger = logging.getLogger(__name__)

TEMPERATURE = 0.2
PROMPT_TEMPLATE = "Translate to {language}. Keep SRT format:\n\n{srt}"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\n|\n?```\s*$")


class GenerationError(Exception):
    """Raised when the language model provider fails or returns no usable text."""


class TranslationError(GenerationError):
    """Raised when a translation cannot be produced."""


def build_prompt(srt: str, target_language: str) -> str:
    language = SUPPORTED_LANGUAGES.get(target_language.lower(), target_language)
    return PROMPT_TEMPLATE.format(language=language, srt=srt)


def extract_text(payload: Any) -> Optional[str]:
    """Return ``candidates[0].content.parts[0].text`` or None."""
    try:
        return payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip())


class GeminiClient:
    """Async client for one-shot generateContent calls.

    RULES:
    - Use as: async with <subclass>() as client: ...
    - settings defaults to GeminiSettings.from_env()
    - Subclasses set error_class and label for their error messages
    """

    error_class: Type[GenerationError] = GenerationError
    label = "Generation"

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or GeminiSettings.from_env()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url.rstrip("/"),
            timeout=httpx.Timeout(120.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "{name} must be used as an async context manager: "
                "async with {name}() as client: ...".format(name=type(self).__name__)
            )
        return self._client

    async def generate(self, prompt: str, generation_config: Dict[str, Any]) -> str:
        """Send one prompt and return the first candidate's text.

        Raises:
            GenerationError (error_class): On transport failures, non-200
                status, a non-JSON body, or an answer without text.
        """
        client = self._ensure_client()
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        try:
            resp = await client.post(
                "/models/{}:generateContent".format(self._settings.model),
                params={"key": self._settings.api_key},
                json=body,
            )
        except httpx.HTTPError as exc:
            raise self.error_class("{} request failed: {}".format(self.label, exc)) from exc

        if resp.status_code != 200:
            raise self.error_class(
                "{} request failed with status {}: {}".format(self.label, resp.status_code, resp.text[:200])
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise self.error_class("{} response was not JSON: {}".format(self.label, resp.text[:200])) from exc

        text = extract_text(payload)
        if not text:
            raise self.error_class("{} response contained no text".format(self.label))
        return text


class SubtitleTranslator(GeminiClient):
    """Async client that translates caption blocks.

    RULES:
    - Use as: async with SubtitleTranslator() as translator: ...
    """

    error_class = TranslationError
    label = "Translation"

    async def translate(self, blocks: List[CaptionBlock], target_language: str) -> List[CaptionBlock]:
        """Translate caption blocks, keeping their timings.

        Returns:
            Translated blocks numbered 1..n.

        Raises:
            TranslationError: On provider errors or unusable output.
        """
        prompt = build_prompt(format_srt(blocks, renumber_ids=True), target_language)
        text = await self.generate(prompt, {"temperature": TEMPERATURE})

        translated = parse_srt_lenient(strip_fences(text))
        if not translated:
            raise TranslationError("Translation response contained no subtitle blocks")
        if len(translated) != len(blocks):
            logger.warning(
                "Translation to %s returned %d blocks for %d source blocks",
                target_language, len(translated), len(blocks),
            )
        return translated
