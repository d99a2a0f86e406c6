"""Formatter interface shared by the SRT and WebVTT writers.

WHY: The CLI picks a writer by file extension and the HTTP API by route,
but both hand over the same CaptionBlock list. A common interface lets
them treat every subtitle format the same way.

HOW: BaseFormatter declares a ``name`` and a ``format()`` that returns a
FormatterOutput: the serialized text plus the suffix and MIME type a
caller needs to save or serve it.

RULES:
- ``suffix`` includes the leading dot (".srt", ".vtt")
- Formatters never mutate the blocks they are given
- Choosing the output filename is the caller's job
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from captionize.core.models import CaptionBlock


@dataclass
class FormatterOutput:
    """Serialized subtitles ready to be written or served.

    Attributes:
        suffix: Extension for the written file, e.g. ``".vtt"``.
        content: The subtitle text.
        media_type: MIME type for HTTP responses, e.g. ``"text/vtt"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """A subtitle file format.

    New formats subclass this and are added to FORMATTERS (and, when
    they can be read back, PARSERS) in formatters/__init__.py.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name, e.g. 'SubRip (SRT)'."""

    @abstractmethod
    def format(self, blocks: List[CaptionBlock]) -> FormatterOutput:
        """Serialize blocks, in display order, into one file's content."""
