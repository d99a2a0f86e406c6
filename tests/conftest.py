"""Shared test fixtures for the captionize test suite.

WHY: The segmenter, codec, store and API tests all need the same small
word streams and block lists. Centralizing them keeps expected values in
one place.

HOW: Module-level constants hold the raw data; fixtures return fresh
copies so tests may mutate them. Service settings fixtures carry fake
credentials so no test reads the environment.

RULES:
- Word timings are integer milliseconds, chronologically ordered
- SAMPLE_SRT is exactly format_srt(SAMPLE_BLOCKS)
- Settings fixtures never contain real credentials
"""

from typing import List

import pytest

from captionize.config import AssemblyAISettings, CloudinarySettings, GeminiSettings
from captionize.core.models import CaptionBlock, Word

# "Hello world" then a 1.1s pause, then "again"
PAUSE_WORDS = [
    {"text": "Hello", "start_ms": 0, "end_ms": 400},
    {"text": "world", "start_ms": 500, "end_ms": 900},
    {"text": "again", "start_ms": 2000, "end_ms": 2500},
]

SAMPLE_BLOCKS = [
    {"id": 1, "start_ms": 0, "end_ms": 1500, "text": "Hello world"},
    {"id": 2, "start_ms": 2000, "end_ms": 3500, "text": "Second line\nwith a wrap"},
]

SAMPLE_SRT = (
    "1\n00:00:00,000 --> 00:00:01,500\nHello world\n\n"
    "2\n00:00:02,000 --> 00:00:03,500\nSecond line\nwith a wrap"
)


@pytest.fixture
def pause_words() -> List[Word]:
    return [Word.from_dict(w) for w in PAUSE_WORDS]


@pytest.fixture
def sample_blocks() -> List[CaptionBlock]:
    return [CaptionBlock.from_dict(b) for b in SAMPLE_BLOCKS]


@pytest.fixture
def sample_srt() -> str:
    return SAMPLE_SRT


@pytest.fixture
def assemblyai_settings() -> AssemblyAISettings:
    return AssemblyAISettings(api_key="test-aai-key", base_url="https://aai.test/v2")


@pytest.fixture
def cloudinary_settings() -> CloudinarySettings:
    return CloudinarySettings(
        cloud_name="demo",
        api_key="123456",
        api_secret="shh",
        api_url="https://api.cloudinary.test/v1_1",
        delivery_url="https://res.cloudinary.test",
    )


@pytest.fixture
def gemini_settings() -> GeminiSettings:
    return GeminiSettings(api_key="test-gemini-key", model="gemini-test", base_url="https://gemini.test/v1beta")
