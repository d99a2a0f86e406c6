"""Clients for the external services around the caption core.

WHY: Transcription, media transformation, translation and correction are
all delegated to third-party HTTP APIs. This package keeps every byte of
HTTP in one place so the core stays pure.

HOW: Each service has one async client class built on httpx.AsyncClient
and used as an async context manager. Response data is parsed into typed
dataclasses (models.py) or converted straight into core types.

RULES:
- All HTTP calls go through these clients (no direct httpx elsewhere)
- Clients take explicit settings objects from captionize.config
- Clients accept an optional httpx transport so tests never hit the network
"""

from captionize.api.client import AssemblyAIClient
from captionize.api.corrections import SubtitleCorrector
from captionize.api.media import CloudinaryClient, SubtitleStyle
from captionize.api.models import TranscriptStatus, TranscriptWord
from captionize.api.translation import SubtitleTranslator

__all__ = [
    "AssemblyAIClient",
    "CloudinaryClient",
    "SubtitleCorrector",
    "SubtitleStyle",
    "SubtitleTranslator",
    "TranscriptStatus",
    "TranscriptWord",
]
