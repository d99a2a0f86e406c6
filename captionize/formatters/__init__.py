"""Subtitle formatter registry and codec entry points.

WHY: The CLI and the HTTP API need a single lookup to find the right
serializer by name, and a single import site for the SRT/VTT codec.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["vtt"]()``.
PARSERS maps the same keys to the parse function for that format.

RULES:
- Keys are the file extensions without the dot ("srt", "vtt")
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, List

from captionize.formatters.srt import (
    SRTFormatter,
    format_srt,
    parse_srt,
    parse_srt_lenient,
    words_to_srt,
)
from captionize.formatters.vtt import VTTFormatter, contains_rtl, format_vtt, parse_vtt

if TYPE_CHECKING:
    from captionize.core.models import CaptionBlock
    from captionize.formatters.base import BaseFormatter

FORMATTERS: Dict[str, type[BaseFormatter]] = {
    "srt": SRTFormatter,
    "vtt": VTTFormatter,
}

PARSERS: Dict[str, Callable[[str], List[CaptionBlock]]] = {
    "srt": parse_srt,
    "vtt": parse_vtt,
}

__all__ = [
    "FORMATTERS",
    "PARSERS",
    "SRTFormatter",
    "VTTFormatter",
    "contains_rtl",
    "format_srt",
    "format_vtt",
    "parse_srt",
    "parse_srt_lenient",
    "parse_vtt",
    "words_to_srt",
]
