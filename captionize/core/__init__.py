"""Core data model, timecode arithmetic, and word segmentation.

WHY: The core package is the stable heart of captionize: the dataclasses
every other layer exchanges and the algorithm that turns words into
caption blocks. It must stay free of I/O so it can run anywhere.

HOW: models.py defines Word and CaptionBlock, timecode.py converts
between integer milliseconds and SRT/VTT timestamps, segmenter.py groups
words into blocks under a configurable break policy.

RULES:
- Pure functions only: no network, no files, no environment lookups
- Never reorder: output order always follows input order
"""

from captionize.core.models import CaptionBlock, Word
from captionize.core.segmenter import (
    POLICIES,
    SegmentationPolicy,
    build_segment_lines,
    segment_words,
)

__all__ = [
    "CaptionBlock",
    "POLICIES",
    "SegmentationPolicy",
    "Word",
    "build_segment_lines",
    "segment_words",
]
