"""AssemblyAI response dataclasses.

WHY: The transcription API returns flat JSON objects for transcripts and
their words. Typed dataclasses make these structures explicit and keep
the provider's field names (``start``/``end``, ``confidence``,
``speaker``) out of the core data model.

HOW: Each dataclass maps 1:1 to a provider JSON object. from_dict()
factories handle parsing from raw API responses. TranscriptWord.to_word()
converts to the core Word at the collaborator boundary.

RULES:
- start/end are integer milliseconds, exactly as the provider sends them
- speaker is None when speaker labels are disabled
- words is empty until status is "completed"
- status is one of "queued", "processing", "completed", "error"
"""

from __future__ import annotations

from dataclasses import dataclass, field

from captionize.core.models import Word

TERMINAL_STATUSES = frozenset({"completed", "error"})


@dataclass
class TranscriptWord:
    """A single word from a completed transcript."""

    text: str
    start: int
    end: int
    confidence: float = 1.0
    speaker: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptWord:
        return cls(
            text=data["text"],
            start=int(data["start"]),
            end=int(data["end"]),
            confidence=float(data.get("confidence", 1.0)),
            speaker=data.get("speaker"),
        )

    def to_word(self) -> Word:
        return Word(text=self.text, start_ms=self.start, end_ms=self.end)


@dataclass
class TranscriptStatus:
    """Status (and, once completed, content) of a transcription job.

    RULES:
    - id and status are always present
    - error is only set when status is "error"
    - language_code is set once the provider has detected or been told it
    """

    id: str
    status: str
    language_code: str | None = None
    error: str | None = None
    text: str | None = None
    words: list[TranscriptWord] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptStatus:
        return cls(
            id=data["id"],
            status=data["status"],
            language_code=data.get("language_code"),
            error=data.get("error"),
            text=data.get("text"),
            words=[TranscriptWord.from_dict(w) for w in data.get("words") or []],
        )
