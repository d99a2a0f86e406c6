"""Timestamp conversion between integer milliseconds and SRT/VTT notation.

WHY: SRT writes ``HH:MM:SS,mmm`` and WebVTT writes ``HH:MM:SS.mmm``.
Decomposing offsets with a date/time type rolls over at 24 hours and
drags in timezone rules that have nothing to do with media offsets, so
everything here is plain integer division.

HOW: format_timestamp() splits milliseconds into hours/minutes/seconds/
millis and joins them with the requested separator. parse_timestamp()
is the inverse and accepts either separator. The two *_to_* helpers are
separator substitutions for callers that hold timestamp strings.

RULES:
- Hours are unbounded (at least two digits, never wrapped at 24)
- Minutes and seconds are two digits, milliseconds exactly three
- Negative offsets format as 00:00:00,000
- parse_timestamp() right-pads a short fraction ("5" -> 500 ms)
- Invalid timestamp text raises TimecodeError (a ValueError)
"""

from __future__ import annotations

import re

SRT_SEPARATOR = ","
VTT_SEPARATOR = "."

_MS_PER_SECOND = 1000
_MS_PER_MINUTE = 60 * _MS_PER_SECOND
_MS_PER_HOUR = 60 * _MS_PER_MINUTE

# Either separator; VTT also allows the hours field to be omitted.
TIMESTAMP_RE = re.compile(r"^(?:(\d+):)?(\d{2}):(\d{2})[,.](\d{1,3})$")


class TimecodeError(ValueError):
    """Raised when a timestamp string cannot be parsed."""


def format_timestamp(ms: int, separator: str = SRT_SEPARATOR) -> str:
    """Format a millisecond offset as ``HH:MM:SS<sep>mmm``.

    Args:
        ms: Offset from the start of the media in milliseconds.
        separator: ``","`` for SRT, ``"."`` for VTT.

    Returns:
        The zero-padded timestamp string.
    """
    ms = max(0, int(ms))
    hours, rest = divmod(ms, _MS_PER_HOUR)
    minutes, rest = divmod(rest, _MS_PER_MINUTE)
    seconds, millis = divmod(rest, _MS_PER_SECOND)
    return "{:02d}:{:02d}:{:02d}{}{:03d}".format(hours, minutes, seconds, separator, millis)


def ms_to_srt(ms: int) -> str:
    return format_timestamp(ms, SRT_SEPARATOR)


def ms_to_vtt(ms: int) -> str:
    return format_timestamp(ms, VTT_SEPARATOR)


def parse_timestamp(text: str) -> int:
    """Parse an SRT or VTT timestamp into integer milliseconds.

    RULES:
    - Accepts "," or "." as the millisecond separator
    - Accepts "MM:SS.mmm" (hours omitted, as WebVTT allows)
    - Minutes and seconds must be below 60

    Raises:
        TimecodeError: If the text is not a timestamp.
    """
    match = TIMESTAMP_RE.match(text.strip())
    if not match:
        raise TimecodeError("Invalid timestamp: {!r}".format(text))

    hours = int(match.group(1) or 0)
    minutes = int(match.group(2))
    seconds = int(match.group(3))
    millis = int(match.group(4).ljust(3, "0"))

    if minutes >= 60 or seconds >= 60:
        raise TimecodeError("Invalid timestamp: {!r}".format(text))

    return hours * _MS_PER_HOUR + minutes * _MS_PER_MINUTE + seconds * _MS_PER_SECOND + millis


def srt_to_vtt_timestamp(timestamp: str) -> str:
    """``00:01:02,345`` -> ``00:01:02.345`` (millis padded to three digits)."""
    base, _, fraction = timestamp.strip().replace(SRT_SEPARATOR, VTT_SEPARATOR).partition(VTT_SEPARATOR)
    return "{}.{}".format(base, fraction.ljust(3, "0")[:3])


def vtt_to_srt_timestamp(timestamp: str) -> str:
    """``00:01:02.345`` -> ``00:01:02,345``."""
    return timestamp.strip().replace(VTT_SEPARATOR, SRT_SEPARATOR)
