"""WebVTT serializer, right-to-left detection, and cue parser.

WHY: Browsers only play WebVTT natively, and the media service accepts
it for burned-in captions. WebVTT also carries a ``STYLE`` block, which
is how the chosen font and right-to-left rendering for Arabic script
reach the player.

HOW: format_vtt() writes the ``WEBVTT`` header, an optional
``STYLE``/``::cue`` rule, then one cue per block with period-separated
timestamps. parse_vtt() reads provider exports back into blocks,
skipping the header and any STYLE/NOTE/REGION blocks.

RULES:
- Empty block list produces header-only output ("WEBVTT\\n")
- font-family line only when a font family is given
- "direction: rtl; unicode-bidi: embed;" only when some text contains
  a character in U+0600–U+06FF
- Milliseconds are always three digits
- parse_vtt() renumbers ids 1..n and never raises on malformed cues
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from captionize.core.models import CaptionBlock
from captionize.core.timecode import TimecodeError, ms_to_vtt, parse_timestamp
from captionize.formatters.base import BaseFormatter, FormatterOutput
from captionize.formatters.srt import split_blocks

logger = logging.getLogger(__name__)

VTT_MEDIA_TYPE = "text/vtt"

ARABIC_RE = re.compile("[\u0600-\u06FF]")

_CUE_TIMING_RE = re.compile(
    r"^((?:\d+:)?\d{2}:\d{2}\.\d{1,3})\s+-->\s+((?:\d+:)?\d{2}:\d{2}\.\d{1,3})(?:\s.*)?$"
)
_NON_CUE_BLOCKS = ("NOTE", "STYLE", "REGION")


def contains_rtl(blocks: List[CaptionBlock]) -> bool:
    """True if any block's text contains an Arabic-script character."""
    return any(ARABIC_RE.search(b.text) for b in blocks)


def build_style_block(font_family: Optional[str], rtl: bool) -> List[str]:
    """Return the STYLE block lines, or an empty list when nothing to style."""
    properties: List[str] = []
    if font_family:
        properties.append('  font-family: "{}", sans-serif;'.format(font_family))
    if rtl:
        properties.append("  direction: rtl;")
        properties.append("  unicode-bidi: embed;")
    if not properties:
        return []
    return ["STYLE", "::cue {"] + properties + ["}", ""]


def format_vtt(blocks: List[CaptionBlock], font_family: Optional[str] = None) -> str:
    """Serialize caption blocks to WebVTT text.

    Args:
        blocks: Caption blocks in display order.
        font_family: Optional CSS font family for the ``::cue`` rule.
    """
    lines = ["WEBVTT", ""]
    lines.extend(build_style_block(font_family, contains_rtl(blocks)))

    for block in blocks:
        lines.append(str(block.id))
        lines.append("{} --> {}".format(ms_to_vtt(block.start_ms), ms_to_vtt(block.end_ms)))
        lines.append(block.text)
        lines.append("")

    return "\n".join(lines)


def _parse_cue(lines: List[str]) -> Optional[CaptionBlock]:
    timing_index = None
    for index in (0, 1):
        if index < len(lines) and "-->" in lines[index]:
            timing_index = index
            break
    if timing_index is None:
        return None
    match = _CUE_TIMING_RE.match(lines[timing_index].strip())
    if not match:
        return None
    text = "\n".join(lines[timing_index + 1:]).strip()
    if not text:
        return None
    try:
        start_ms = parse_timestamp(match.group(1))
        end_ms = parse_timestamp(match.group(2))
    except TimecodeError:
        return None
    return CaptionBlock(id=0, start_ms=start_ms, end_ms=end_ms, text=text)


def parse_vtt(text: str) -> List[CaptionBlock]:
    """Parse WebVTT text into caption blocks numbered 1..n."""
    blocks: List[CaptionBlock] = []
    for index, lines in enumerate(split_blocks(text)):
        first = lines[0].strip()
        if index == 0 and first.startswith("WEBVTT"):
            continue
        if first.split(" ", 1)[0] in _NON_CUE_BLOCKS:
            continue

        block = _parse_cue(lines)
        if block is None:
            logger.debug("Skipping malformed VTT cue: %r", lines[:2])
            continue
        block.id = len(blocks) + 1
        blocks.append(block)
    return blocks


class VTTFormatter(BaseFormatter):
    """Formatter that produces a ``.vtt`` file.

    RULES:
    - font_family is optional and passed straight into the STYLE block
    - Media type: "text/vtt"
    """

    def __init__(self, font_family: Optional[str] = None) -> None:
        self.font_family = font_family

    @property
    def name(self) -> str:
        return "WebVTT"

    def format(self, blocks: List[CaptionBlock]) -> FormatterOutput:
        return FormatterOutput(
            suffix=".vtt",
            content=format_vtt(blocks, self.font_family),
            media_type=VTT_MEDIA_TYPE,
        )
