"""Captionize: word-timed transcripts to readable, styled subtitles.

WHY: Speech-to-text providers return flat word lists with millisecond
offsets. Nobody can read those on screen. This package turns them into
timed caption blocks, serializes them to SRT/WebVTT, and drives the
external services (transcription, media transformation, translation,
document storage) that sit around that core.

HOW: Three layers: core (data model, timecodes, segmentation), formatters
(SRT/VTT codec behind a pluggable registry), and collaborators (async
HTTP clients, in-memory document store, FastAPI server, CLI). Each layer
only depends on the ones before it.

RULES:
- The core is pure: no I/O, no configuration, no shared mutable state
- All timing inside the package is integer milliseconds
- Collaborators receive explicit settings objects, never global config
"""

__version__ = "0.1.0"
