"""Pydantic request/response models for the subtitle API.

WHY: FastAPI uses these models to validate request bodies, serialize
responses, and generate the OpenAPI schema shown at /docs. Keeping them
apart from the core dataclasses means the wire shape can carry
validation (non-negative times, closed enums) without the core having
to validate anything.

HOW: Words and blocks mirror the core Word/CaptionBlock fields. Enums
represent closed sets (policy names, subtitle formats). Every field has
a Field(description=...) for the docs.

RULES:
- Enum values match the core registries exactly (POLICIES, FORMATTERS)
- Timestamps on the wire are integer milliseconds
- Style values are passed through; only their types are checked
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from captionize.formatters.srt import normalize_text

_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PolicyName(str, Enum):
    """Segmentation policy identifiers (keys of core POLICIES)."""

    storage = "storage"
    basic = "basic"


class SubtitleFormat(str, Enum):
    """Subtitle file formats (keys of formatters.FORMATTERS)."""

    srt = "srt"
    vtt = "vtt"


# ---------------------------------------------------------------------------
# Core shapes
# ---------------------------------------------------------------------------


class WordModel(BaseModel):
    """One timed word from a transcript."""

    text: str = Field(description="The word as spoken, including attached punctuation.")
    start_ms: int = Field(ge=0, description="Start time in milliseconds from media start.")
    end_ms: int = Field(ge=0, description="End time in milliseconds from media start.")


class BlockModel(BaseModel):
    """One caption block."""

    id: int = Field(description="1-based position of the block in its list.")
    start_ms: int = Field(ge=0, description="Display start in milliseconds.")
    end_ms: int = Field(ge=0, description="Display end in milliseconds.")
    text: str = Field(description="Caption text; lines separated by '\\n'.")


class BlockInputModel(BlockModel):
    """A caption block sent by a client.

    RULES:
    - text is non-empty and has no blank line (it would split the block in SRT)
    - end_ms >= start_ms
    """

    @field_validator("text")
    @classmethod
    def _text_is_one_block(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be empty")
        if _BLANK_LINE_RE.search(normalize_text(value)):
            raise ValueError("text must not contain a blank line")
        return value

    @model_validator(mode="after")
    def _end_after_start(self) -> BlockInputModel:
        if self.end_ms < self.start_ms:
            raise ValueError("end_ms ({}) is before start_ms ({})".format(self.end_ms, self.start_ms))
        return self


class BlockListResponse(BaseModel):
    """A list of caption blocks."""

    blocks: List[BlockModel] = Field(description="Caption blocks in display order.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "blocks": [
                    {"id": 1, "start_ms": 0, "end_ms": 900, "text": "Hello world"},
                    {"id": 2, "start_ms": 2000, "end_ms": 2500, "text": "again"},
                ]
            }
        ]
    }}


# ---------------------------------------------------------------------------
# Stateless codec requests
# ---------------------------------------------------------------------------


class SegmentRequest(BaseModel):
    """Words to be grouped into caption blocks."""

    words: List[WordModel] = Field(description="Words in chronological order.")
    policy: PolicyName = Field(
        default=PolicyName.storage,
        description="Segmentation policy: 'storage' (pause, duration, length) or 'basic' (pause, duration).",
    )


class SrtRequest(BaseModel):
    blocks: List[BlockInputModel] = Field(description="Blocks to serialize.")
    renumber: bool = Field(default=False, description="Write ids 1..n instead of the given ids.")


class VttRequest(BaseModel):
    blocks: List[BlockInputModel] = Field(description="Blocks to serialize.")
    font_family: Optional[str] = Field(
        default=None,
        description="CSS font family written into the ::cue STYLE rule.",
    )


class ParseRequest(BaseModel):
    """Subtitle text to be parsed back into blocks."""

    text: str = Field(description="Full SRT or WebVTT file content.")
    format: SubtitleFormat = Field(default=SubtitleFormat.srt, description="Format of text.")
    renumber: bool = Field(
        default=False,
        description=(
            "SRT only: use the lenient parser (optional id line, '.' or ',' "
            "separators) and renumber ids 1..n. WebVTT is always renumbered."
        ),
    )


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------


class StyleModel(BaseModel):
    """Editor styling for burned-in subtitles."""

    font_family: str = Field(default="Arial, sans-serif", description="CSS font family.")
    font_size: int = Field(default=48, gt=0, description="Font size in pixels.")
    color: str = Field(default="#FFFFFF", description="Text colour.")
    background_color: str = Field(default="rgba(0,0,0,0.5)", description="Box colour as rgba().")
    outline_color: str = Field(default="transparent", description="Outline colour.")
    bold: bool = Field(default=False, description="Bold text.")
    italic: bool = Field(default=False, description="Italic text.")
    underline: bool = Field(default=False, description="Underlined text.")


class VideoCreateRequest(BaseModel):
    """Register a hosted video and start transcribing it."""

    name: str = Field(description="Display name.")
    video_url: str = Field(description="Publicly reachable URL of the video.")
    public_id: Optional[str] = Field(
        default=None,
        description="Media provider public ID, required later for burn-in.",
    )
    language_code: Optional[str] = Field(
        default=None,
        description="Spoken language code, or 'auto'/omitted for detection.",
    )
    policy: PolicyName = Field(default=PolicyName.storage, description="Segmentation policy.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "name": "Product launch",
                "video_url": "https://res.cloudinary.com/demo/video/upload/launch.mp4",
                "public_id": "launch",
                "language_code": "en_us",
                "policy": "storage",
            }
        ]
    }}


class VideoResponse(BaseModel):
    id: str = Field(description="Video identifier.")
    name: str = Field(description="Display name.")
    video_url: str = Field(description="Source video URL.")
    public_id: Optional[str] = Field(default=None, description="Media provider public ID.")
    status: str = Field(description="processing, completed or failed.")
    language_code: Optional[str] = Field(default=None, description="Language code, if known.")
    policy: str = Field(description="Segmentation policy used for this video.")
    transcript_id: Optional[str] = Field(default=None, description="Transcription job ID.")
    style: Dict[str, Any] = Field(description="Stored styling values.")
    burned_url: Optional[str] = Field(default=None, description="Last burned-in video URL.")
    error: Optional[str] = Field(default=None, description="Error message when status is 'failed'.")
    block_count: int = Field(description="Number of stored caption blocks.")
    created_at: float = Field(description="Creation time (Unix epoch seconds).")
    updated_at: float = Field(description="Last change (Unix epoch seconds).")


class VideoDetailResponse(VideoResponse):
    blocks: List[BlockModel] = Field(description="Stored caption blocks.")


class SubtitlesUpdateRequest(BaseModel):
    blocks: List[BlockInputModel] = Field(description="Edited blocks; ids are renumbered on save.")


class BurnInResponse(BaseModel):
    video_id: str = Field(description="Video identifier.")
    url: str = Field(description="Delivery URL of the video with subtitles burned in.")


class TranslateRequest(BaseModel):
    target_language: str = Field(description="Language code to translate into (e.g. 'es').")
    save: bool = Field(default=False, description="Replace the stored subtitles with the translation.")


class TranslateResponse(BlockListResponse):
    target_language: str = Field(description="Language the blocks were translated into.")


class CorrectionRequest(BaseModel):
    """Ask for a suggested correction of one stored block."""

    block_id: int = Field(description="Id of the stored block to correct.")
    apply: bool = Field(default=False, description="Replace the block's text with the suggestion.")


class TextCorrectionRequest(BaseModel):
    """Ask for a suggested correction of free-standing subtitle text."""

    text: str = Field(min_length=1, description="Subtitle text to correct.")
    context: str = Field(default="", description="Surrounding subtitles, for the model's reference.")


class CorrectionResponse(BaseModel):
    block_id: Optional[int] = Field(default=None, description="Corrected block, when one was named.")
    original_text: str = Field(description="Text before correction.")
    suggested_text: str = Field(description="Suggested replacement text.")
    explanation: str = Field(description="Why the change was suggested.")
    applied: bool = Field(default=False, description="Whether the stored block was updated.")


class WatermarkRequest(BaseModel):
    """Overlay an image (e.g. a logo) on a video."""

    image_url: str = Field(description="Publicly reachable URL of the watermark image.")
    position: str = Field(
        default="north_east",
        description="Gravity: north_west, north, north_east, west, center, east, south_west, south, south_east.",
    )
    scale: float = Field(default=0.2, gt=0, le=1, description="Watermark width as a fraction of the video width.")
    opacity: int = Field(default=80, ge=0, le=100, description="Opacity in percent.")


class WatermarkResponse(BaseModel):
    video_id: str = Field(description="Video identifier.")
    url: str = Field(description="Signed delivery URL of the watermarked video.")


class WebhookPayload(BaseModel):
    """Completion callback sent by the transcription provider."""

    transcript_id: str = Field(description="Transcription job ID.")
    status: str = Field(description="Provider job status ('completed' or 'error').")


class WebhookResponse(BaseModel):
    video_id: str = Field(description="Video the transcript belongs to.")
    status: str = Field(description="Video status after handling the callback.")


# ---------------------------------------------------------------------------
# Service info
# ---------------------------------------------------------------------------


class PolicyInfo(BaseModel):
    """Description of a segmentation policy."""

    name: str = Field(description="Policy identifier used in requests.")
    break_on_pause: bool = Field(description="Break when the gap between words exceeds pause_threshold_ms.")
    break_on_duration: bool = Field(description="Break when a block would exceed max_duration_ms.")
    break_on_length: bool = Field(description="Break when a block's text would exceed max_chars.")
    pause_threshold_ms: int = Field(description="Pause threshold in milliseconds.")
    max_duration_ms: int = Field(description="Maximum block duration in milliseconds.")
    max_chars: int = Field(description="Maximum characters per block.")
    max_line_chars: int = Field(description="Maximum characters per wrapped line.")


class ErrorResponse(BaseModel):
    """Standard error response body.

    RULES:
    - detail is always a human-readable error message
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
