"""SubRip (SRT) serializer and parsers.

WHY: SRT is the format captions are persisted in and the format the
media and translation services exchange. Stored text comes back from
people and from language models, so parsing must survive garbage: a
broken block is dropped, never fatal.

HOW: format_srt() joins ``id / start --> end / text`` blocks with blank
lines. Two parsers share one block scanner:
  parse_srt()         strict: numeric id line, comma-separated
                      timestamps, source ids preserved
  parse_srt_lenient() id line optional, "," or "." separators, cue
                      settings ignored, ids renumbered from 1
Both strip a BOM, normalize CRLF/CR to LF, split on blank lines, and
skip any block that does not match.

RULES:
- parse_srt(format_srt(blocks)) == blocks for well-formed blocks
  (unique ids, non-empty text without surrounding whitespace)
- Parsers never raise for malformed subtitle text
- A block needs at least one non-empty text line
- format_srt() of an empty list is the empty string
"""

from __future__ import annotations

import logging
import re
from typing import Iterator, List, Optional, Sequence, Union

from captionize.core.models import CaptionBlock, Word, renumber
from captionize.core.segmenter import SegmentationPolicy, segment_words
from captionize.core.timecode import TimecodeError, ms_to_srt, parse_timestamp
from captionize.formatters.base import BaseFormatter, FormatterOutput

logger = logging.getLogger(__name__)

SRT_MEDIA_TYPE = "application/x-subrip"

_BLOCK_SPLIT_RE = re.compile(r"\n(?:[ \t]*\n)+")
_STRICT_TIMING_RE = re.compile(r"^(\d{2,}:\d{2}:\d{2},\d{3}) --> (\d{2,}:\d{2}:\d{2},\d{3})$")
_LENIENT_TIMING_RE = re.compile(
    r"^((?:\d+:)?\d{2}:\d{2}[,.]\d{1,3})\s*-->\s*((?:\d+:)?\d{2}:\d{2}[,.]\d{1,3})(?:\s.*)?$"
)


def format_srt(blocks: List[CaptionBlock], renumber_ids: bool = False) -> str:
    """Serialize caption blocks to SRT text.

    Args:
        blocks: Caption blocks in display order.
        renumber_ids: Emit ids 1..n instead of each block's own id.
    """
    if renumber_ids:
        blocks = renumber(blocks)
    return "\n\n".join(
        "{}\n{} --> {}\n{}".format(b.id, ms_to_srt(b.start_ms), ms_to_srt(b.end_ms), b.text)
        for b in blocks
    )


def words_to_srt(words: Sequence[Word], policy: Union[str, SegmentationPolicy] = "storage") -> str:
    """Segment words and serialize the result as SRT in one step."""
    return format_srt(segment_words(words, policy))


def normalize_text(text: str) -> str:
    """Strip a leading BOM and normalize line endings to ``\\n``."""
    text = text.lstrip("\ufeff")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_blocks(text: str) -> Iterator[List[str]]:
    """Yield each block as a list of lines.

    Any run of one or more blank (or whitespace-only) lines separates blocks.
    """
    for raw in _BLOCK_SPLIT_RE.split(normalize_text(text).strip()):
        lines = [line.rstrip() for line in raw.split("\n")]
        if any(lines):
            yield lines


def _parse_strict_block(lines: List[str]) -> Optional[CaptionBlock]:
    if len(lines) < 3:
        return None
    id_line = lines[0].strip()
    if not id_line.isdigit():
        return None
    match = _STRICT_TIMING_RE.match(lines[1].strip())
    if not match:
        return None
    text = "\n".join(lines[2:]).strip()
    if not text:
        return None
    try:
        start_ms = parse_timestamp(match.group(1))
        end_ms = parse_timestamp(match.group(2))
    except TimecodeError:
        return None
    return CaptionBlock(id=int(id_line), start_ms=start_ms, end_ms=end_ms, text=text)


def _parse_lenient_block(lines: List[str]) -> Optional[CaptionBlock]:
    lines = [line for line in lines if line.strip()]
    timing_index = None
    for index in (0, 1):
        if index < len(lines) and _LENIENT_TIMING_RE.match(lines[index].strip()):
            timing_index = index
            break
    if timing_index is None:
        return None
    text = "\n".join(lines[timing_index + 1:]).strip()
    if not text:
        return None
    match = _LENIENT_TIMING_RE.match(lines[timing_index].strip())
    try:
        start_ms = parse_timestamp(match.group(1))
        end_ms = parse_timestamp(match.group(2))
    except TimecodeError:
        return None
    return CaptionBlock(id=0, start_ms=start_ms, end_ms=end_ms, text=text)


def parse_srt(text: str) -> List[CaptionBlock]:
    """Parse SRT text, keeping the ids found in the source.

    Malformed blocks (non-numeric id, missing or malformed timestamp
    line, no text) are skipped.
    """
    blocks: List[CaptionBlock] = []
    for lines in split_blocks(text):
        block = _parse_strict_block(lines)
        if block is None:
            logger.debug("Skipping malformed SRT block: %r", lines[:2])
            continue
        blocks.append(block)
    return blocks


def parse_srt_lenient(text: str) -> List[CaptionBlock]:
    """Parse SRT-like text loosely and renumber ids 1..n.

    Accepts ``,`` or ``.`` millisecond separators, a missing id line,
    and trailing cue settings on the timing line. Used for text that
    comes back from people or from a language model.
    """
    blocks: List[CaptionBlock] = []
    for lines in split_blocks(text):
        block = _parse_lenient_block(lines)
        if block is None:
            logger.debug("Skipping unparseable subtitle block: %r", lines[:2])
            continue
        block.id = len(blocks) + 1
        blocks.append(block)
    return blocks


class SRTFormatter(BaseFormatter):
    """Formatter that produces a ``.srt`` file.

    RULES:
    - Ids are renumbered 1..n; players expect a contiguous sequence
    - Media type: "application/x-subrip"
    """

    @property
    def name(self) -> str:
        return "SubRip (SRT)"

    def format(self, blocks: List[CaptionBlock]) -> FormatterOutput:
        return FormatterOutput(
            suffix=".srt",
            content=format_srt(blocks, renumber_ids=True),
            media_type=SRT_MEDIA_TYPE,
        )
