"""Dataclasses exchanged between segmentation, the codec, and collaborators.

WHY: The transcription provider, the segmenter, the SRT/VTT codec, the
document store and the HTTP layer all talk about the same two things: a
transcribed word and a displayed caption block. One typed definition of
each keeps them from drifting apart.

HOW: Two plain dataclasses:
  Word         one transcribed token with millisecond offsets
  CaptionBlock one displayed subtitle unit (possibly multi-line text)

RULES:
- All times are integer milliseconds from the start of the media
- Word is immutable (frozen); the transcription provider owns its values
- CaptionBlock is mutable; the editor adjusts timing and text in place
- CaptionBlock.id is 1-based; blocks built by the segmenter have
  id == position + 1
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class Word:
    """A single transcribed token with start/end offsets.

    WHY: The segmenter needs only text and timing. Provider-specific
    fields (confidence, speaker) are dropped at the collaborator boundary
    so the core never depends on a provider's schema.

    RULES:
    - start_ms >= 0 and end_ms >= start_ms for well-formed input
    - The segmenter does not validate these; see segment_words()
    """

    text: str
    start_ms: int
    end_ms: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Word:
        """Build a Word from a JSON-style dict.

        Accepts both the snake_case keys used across this package and the
        camelCase ``startMs``/``endMs`` or provider-style ``start``/``end``
        keys found in stored transcripts.
        """
        start = data.get("start_ms", data.get("startMs", data.get("start", 0)))
        end = data.get("end_ms", data.get("endMs", data.get("end", start)))
        return cls(text=str(data["text"]), start_ms=int(start), end_ms=int(end))


@dataclass
class CaptionBlock:
    """A displayed subtitle unit spanning a time range.

    WHY: This is the round-trip unit of the codec and the thing the editor
    manipulates. The text may contain embedded newlines produced by line
    wrapping.

    RULES:
    - id: 1-based index; unique within a sequence
    - start_ms <= end_ms
    - text is stored as displayed (line breaks included, no trailing blank lines)
    """

    id: int
    start_ms: int
    end_ms: int
    text: str

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CaptionBlock:
        return cls(
            id=int(data["id"]),
            start_ms=int(data["start_ms"]),
            end_ms=int(data["end_ms"]),
            text=str(data["text"]),
        )


def renumber(blocks: list[CaptionBlock]) -> list[CaptionBlock]:
    """Return copies of blocks with ids reassigned 1..n in list order."""
    return [
        CaptionBlock(id=i, start_ms=b.start_ms, end_ms=b.end_ms, text=b.text)
        for i, b in enumerate(blocks, 1)
    ]
