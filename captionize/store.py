"""In-memory document store for videos and their subtitles.

WHY: A video's subtitles are produced in the background (transcription
takes minutes), edited by hand, restyled and burned in later. Something
has to hold that record between requests. A single-process editor tool
needs no database; a locked dict is enough and keeps tests hermetic.

HOW: Three components work together:
  VideoStatus: enum of record states (processing → completed | failed)
  VideoRecord: dataclass holding metadata, style values, and the
    subtitles as serialized SRT text
  VideoStore: thread-safe dict-based store with create/get/list/
    update/delete and TTL cleanup of failed records

Subtitles are stored as SRT text, not as block objects: set_subtitles()
serializes with format_srt and get_subtitles() reads back with
parse_srt, so what is stored is exactly what would be downloaded.

RULES:
- All store mutations are protected by threading.Lock
- get_video() returns None for missing IDs (no exceptions)
- list_videos() is ordered by updated_at, newest first
- Style values are opaque; they are stored and returned untouched
- Only FAILED records expire; completed work is never dropped silently
- Record IDs are UUID4 hex strings generated at creation time
- set_subtitles() refuses blocks that would not survive the SRT round trip
"""

from __future__ import annotations

import enum
import logging
import re
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from captionize.core.models import CaptionBlock
from captionize.formatters.srt import format_srt, normalize_text, parse_srt

logger = logging.getLogger(__name__)

# Default time-to-live for failed records (seconds)
DEFAULT_TTL_SECONDS = 3600

_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")


def check_storable(block: CaptionBlock) -> None:
    """Raise ValueError for a block that stored SRT could not hold as one block."""
    if not block.text.strip():
        raise ValueError("Block {} has empty text".format(block.id))
    if _BLANK_LINE_RE.search(normalize_text(block.text)):
        raise ValueError("Block {} text contains a blank line".format(block.id))
    if block.end_ms < block.start_ms:
        raise ValueError("Block {} ends ({}) before it starts ({})".format(block.id, block.end_ms, block.start_ms))


class VideoStatus(str, enum.Enum):
    """Subtitle state of a video.

    RULES:
    - processing: registered, transcription running
    - completed: subtitles available
    - failed: transcription or segmentation failed (see error)
    """

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class VideoRecord:
    """A video and everything the editor knows about it.

    RULES:
    - id: UUID4 hex, immutable after creation
    - video_url/public_id: where the media provider serves the video
    - subtitles_srt: serialized SRT ("" until transcription finishes)
    - style: opaque styling values used for burn-in
    - transcript_id: provider job ID, used to match webhook callbacks
    """

    id: str
    name: str
    video_url: str
    status: VideoStatus
    created_at: float
    updated_at: float
    public_id: Optional[str] = None
    language_code: Optional[str] = None
    policy: str = "storage"
    subtitles_srt: str = ""
    style: Dict[str, Any] = field(default_factory=dict)
    transcript_id: Optional[str] = None
    burned_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def blocks(self) -> List[CaptionBlock]:
        return parse_srt(self.subtitles_srt)


class VideoStore:
    """Thread-safe in-memory store for video records.

    WHY: Request handlers and the background transcription pipeline
    touch the same records concurrently.

    HOW: Records live in a plain dict keyed by ID. Every public method
    takes self._lock. Returned records are the live instances.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, max_videos: int = 500) -> None:
        self._videos: Dict[str, VideoRecord] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_videos = max_videos

    def create_video(
        self,
        name: str,
        video_url: str,
        public_id: Optional[str] = None,
        language_code: Optional[str] = None,
        policy: str = "storage",
        style: Optional[Dict[str, Any]] = None,
    ) -> VideoRecord:
        """Register a video in PROCESSING state.

        Raises:
            ValueError: When the store is full.
        """
        with self._lock:
            if len(self._videos) >= self.max_videos:
                raise ValueError(
                    "Maximum number of stored videos ({}) reached".format(self.max_videos)
                )

            now = time.time()
            record = VideoRecord(
                id=uuid.uuid4().hex,
                name=name,
                video_url=video_url,
                public_id=public_id,
                language_code=language_code,
                policy=policy,
                status=VideoStatus.PROCESSING,
                created_at=now,
                updated_at=now,
                style=dict(style or {}),
            )
            self._videos[record.id] = record

        logger.info("Registered video %s (%s)", record.id, name)
        return record

    def get_video(self, video_id: str) -> Optional[VideoRecord]:
        with self._lock:
            return self._videos.get(video_id)

    def find_by_transcript(self, transcript_id: str) -> Optional[VideoRecord]:
        """Return the record waiting on a transcript job, if any."""
        with self._lock:
            for record in self._videos.values():
                if record.transcript_id == transcript_id:
                    return record
        return None

    def list_videos(self) -> List[VideoRecord]:
        """Snapshot of all records, most recently updated first."""
        with self._lock:
            return sorted(self._videos.values(), key=lambda v: v.updated_at, reverse=True)

    def update_video(
        self,
        video_id: str,
        status: Optional[VideoStatus] = None,
        error: Optional[str] = None,
        transcript_id: Optional[str] = None,
        style: Optional[Dict[str, Any]] = None,
        burned_url: Optional[str] = None,
        language_code: Optional[str] = None,
    ) -> Optional[VideoRecord]:
        """Apply non-None updates and bump updated_at.

        RULES:
        - Returns the updated record, or None if video_id not found
        - style replaces the stored style dict wholesale
        """
        with self._lock:
            record = self._videos.get(video_id)
            if record is None:
                return None

            if status is not None:
                record.status = status
            if error is not None:
                record.error = error
            if transcript_id is not None:
                record.transcript_id = transcript_id
            if style is not None:
                record.style = dict(style)
            if burned_url is not None:
                record.burned_url = burned_url
            if language_code is not None:
                record.language_code = language_code

            record.updated_at = time.time()
            return record

    def set_subtitles(self, video_id: str, blocks: List[CaptionBlock]) -> Optional[VideoRecord]:
        """Store blocks as SRT text and mark the record completed.

        Ids are renumbered 1..n on the way in, so edited block lists with
        gaps or duplicates come back out contiguous.

        Raises:
            ValueError: If a block would not read back unchanged: empty
                text, a blank line inside the text, or end before start.
        """
        for block in blocks:
            check_storable(block)
        srt = format_srt(blocks, renumber_ids=True)
        with self._lock:
            record = self._videos.get(video_id)
            if record is None:
                return None
            record.subtitles_srt = srt
            record.status = VideoStatus.COMPLETED
            record.error = None
            record.updated_at = time.time()

        logger.info("Stored %d subtitle blocks for video %s", len(blocks), video_id)
        return record

    def get_subtitles(self, video_id: str) -> Optional[List[CaptionBlock]]:
        """Parse the stored SRT back into blocks, or None if not found."""
        with self._lock:
            record = self._videos.get(video_id)
            srt = record.subtitles_srt if record else None
        if srt is None:
            return None
        return parse_srt(srt)

    def delete_video(self, video_id: str) -> bool:
        with self._lock:
            record = self._videos.pop(video_id, None)
        if record is None:
            return False
        logger.info("Deleted video %s", video_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove FAILED records older than the TTL; return how many."""
        now = time.time()
        expired: List[VideoRecord] = []

        with self._lock:
            for video_id, record in list(self._videos.items()):
                if record.status != VideoStatus.FAILED:
                    continue
                if now - record.updated_at > self._ttl_seconds:
                    expired.append(self._videos.pop(video_id))

        for record in expired:
            logger.info("Expired failed video %s (failed %.0fs ago)", record.id, now - record.updated_at)

        return len(expired)
