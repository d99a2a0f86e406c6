"""Async HTTP client for the AssemblyAI speech-to-text API.

WHY: Captions start from word-level timestamps, and those come from the
transcription provider. The workflow (upload media, create a transcript
job, poll until it finishes, fetch words) is hidden behind one client
class so the CLI, the HTTP server and tests don't need HTTP details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. AssemblyAIClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool. Each API step is a separate method:
upload_file → create_transcript → poll_until_complete → fetch_words →
delete_transcript.

RULES:
- Always use the async context manager (async with AssemblyAIClient(...) as client:)
- The API key goes in the bare Authorization header (no "Bearer")
- Polling uses exponential backoff: 3s initial, 1.5x factor, 15s max, 60min timeout
- language_code None or "auto" turns on provider language detection
- delete_transcript() is best-effort and never raises
- Status callback (on_status) is optional; when provided, called with status strings
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from captionize.api.models import TranscriptStatus
from captionize.config import FALLBACK_LANGUAGE, AssemblyAISettings, validate_language_code
from captionize.core.models import Word

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_POLL_INITIAL_INTERVAL_S = 3.0
_POLL_BACKOFF_FACTOR = 1.5
_POLL_MAX_INTERVAL_S = 15.0
_POLL_TIMEOUT_S = 60 * 60  # 60 minutes

SUBTITLE_FORMATS = ("srt", "vtt")


class AssemblyAIError(Exception):
    """Raised when the AssemblyAI API returns an error response.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"AssemblyAI API error {status_code}: {message}")


class TranscriptionError(Exception):
    """Raised when a transcript job enters the "error" status."""


class TranscriptionTimeoutError(TimeoutError):
    """Raised when polling exceeds the maximum timeout."""


class AssemblyAIClient:
    """Async client for the AssemblyAI transcript API.

    WHY: Provides a clean, typed interface for the full transcription
    workflow: upload → create → poll → fetch → delete. Handles auth,
    backoff, and error wrapping.

    RULES:
    - Use as: async with AssemblyAIClient() as client: ...
    - settings defaults to AssemblyAISettings.from_env()
    - transport is for tests (httpx.MockTransport); None means real network
    """

    def __init__(
        self,
        settings: AssemblyAISettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        poll_initial_interval_s: float = _POLL_INITIAL_INTERVAL_S,
        poll_timeout_s: float = _POLL_TIMEOUT_S,
    ) -> None:
        self._settings = settings or AssemblyAISettings.from_env()
        self._transport = transport
        self._poll_initial_interval_s = poll_initial_interval_s
        self._poll_timeout_s = poll_timeout_s
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> AssemblyAIClient:
        self._client = httpx.AsyncClient(
            base_url=self._settings.base_url.rstrip("/"),
            headers={"Authorization": self._settings.api_key},
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "AssemblyAIClient must be used as an async context manager: "
                "async with AssemblyAIClient() as client: ..."
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request; connection failures and timeouts become AssemblyAIError.

        status_code 0 means no response was received.
        """
        client = self._ensure_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise AssemblyAIError(0, f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _json(resp: httpx.Response) -> dict:
        """Decode a JSON object body; anything else is an AssemblyAIError."""
        try:
            data = resp.json()
        except ValueError as exc:
            raise AssemblyAIError(resp.status_code, f"Invalid JSON response: {resp.text[:200]}") from exc
        if not isinstance(data, dict):
            raise AssemblyAIError(resp.status_code, f"Expected a JSON object, got {type(data).__name__}")
        return data

    @classmethod
    def _json_field(cls, resp: httpx.Response, key: str) -> Any:
        data = cls._json(resp)
        if key not in data:
            raise AssemblyAIError(resp.status_code, f"Response is missing '{key}'")
        return data[key]

    # ------------------------------------------------------------------
    # Step 1: Upload
    # ------------------------------------------------------------------

    async def upload_file(
        self,
        file_path: Path,
        on_status: Callable[[str], None] | None = None,
    ) -> str:
        """Upload a local audio/video file and return its private upload URL.

        WHY: Transcript jobs take a URL. Media already hosted (for example
        on the media CDN) can skip this step; local files cannot.

        Raises:
            AssemblyAIError: On transport failures, non-2xx or malformed responses.
        """
        self._ensure_client()
        if on_status:
            on_status("Uploading file...")

        content = Path(file_path).read_bytes()
        resp = await self._request(
            "POST",
            "/upload",
            content=content,
            headers={"Content-Type": "application/octet-stream"},
        )
        if resp.status_code not in (200, 201):
            raise AssemblyAIError(resp.status_code, resp.text)

        return self._json_field(resp, "upload_url")

    # ------------------------------------------------------------------
    # Step 2: Create transcript
    # ------------------------------------------------------------------

    async def create_transcript(
        self,
        audio_url: str,
        language_code: str | None = None,
        speaker_labels: bool = True,
        webhook_url: str | None = None,
        on_status: Callable[[str], None] | None = None,
    ) -> str:
        """Create a transcript job and return its ID.

        RULES:
        - language_code None/"auto" → language_detection: true
        - Unknown language codes raise ValueError before any request
        - webhook_url, when given, is called by the provider on completion

        Raises:
            AssemblyAIError: On transport failures, non-2xx or malformed responses.
        """
        self._ensure_client()
        if on_status:
            on_status("Creating transcript...")

        code = validate_language_code(language_code)
        body: dict = {
            "audio_url": audio_url,
            "speaker_labels": speaker_labels,
        }
        if code:
            body["language_code"] = code
            body["language_detection"] = False
        else:
            body["language_detection"] = True
        if webhook_url:
            body["webhook_url"] = webhook_url

        resp = await self._request("POST", "/transcript", json=body)
        if resp.status_code not in (200, 201):
            raise AssemblyAIError(resp.status_code, resp.text)

        transcript_id = self._json_field(resp, "id")
        logger.info("Created transcript %s for %s", transcript_id, audio_url)
        return transcript_id

    async def get_transcript(self, transcript_id: str) -> TranscriptStatus:
        """Fetch the current state of a transcript job."""
        resp = await self._request("GET", f"/transcript/{transcript_id}")
        if resp.status_code != 200:
            raise AssemblyAIError(resp.status_code, resp.text)
        data = self._json(resp)
        try:
            return TranscriptStatus.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise AssemblyAIError(resp.status_code, f"Malformed transcript payload: {exc}") from exc

    # ------------------------------------------------------------------
    # Step 3: Poll until complete
    # ------------------------------------------------------------------

    async def poll_until_complete(
        self,
        transcript_id: str,
        on_status: Callable[[str], None] | None = None,
    ) -> TranscriptStatus:
        """Poll a transcript job until it completes or fails.

        HOW: Exponential backoff polling. Starts at the initial interval,
        grows by 1.5x per poll, capped at 15s, bounded by the timeout.

        RULES:
        - Returns TranscriptStatus when status is "completed"
        - Raises TranscriptionError when status is "error"
        - Raises TranscriptionTimeoutError after the timeout
        """
        interval = self._poll_initial_interval_s
        start_time = time.monotonic()

        while True:
            elapsed = time.monotonic() - start_time
            if elapsed > self._poll_timeout_s:
                raise TranscriptionTimeoutError(
                    f"Transcript {transcript_id} timed out after "
                    f"{elapsed:.0f}s (limit: {self._poll_timeout_s:.0f}s)"
                )

            status = await self.get_transcript(transcript_id)

            if on_status:
                elapsed_min = int(elapsed) // 60
                elapsed_sec = int(elapsed) % 60
                if status.status == "queued":
                    on_status("Transcript queued...")
                elif status.status == "processing":
                    on_status(f"Transcribing... (elapsed: {elapsed_min}m {elapsed_sec:02d}s)")
                elif status.status == "completed":
                    on_status("Transcription complete.")
                elif status.status == "error":
                    on_status(f"Transcription error: {status.error}")

            if status.is_terminal:
                if status.status == "error":
                    raise TranscriptionError(f"Transcription failed: {status.error}")
                return status

            await asyncio.sleep(interval)
            interval = min(interval * _POLL_BACKOFF_FACTOR, _POLL_MAX_INTERVAL_S)

    # ------------------------------------------------------------------
    # Step 4: Fetch results
    # ------------------------------------------------------------------

    async def fetch_words(
        self,
        transcript_id: str,
        on_status: Callable[[str], None] | None = None,
    ) -> list[Word]:
        """Fetch a completed transcript's words as core Word objects.

        RULES:
        - Only call after poll_until_complete returns "completed"
        - Raises TranscriptionError if the transcript is not completed
        """
        if on_status:
            on_status("Fetching words...")

        status = await self.get_transcript(transcript_id)
        if status.status != "completed":
            raise TranscriptionError(
                f"Transcript {transcript_id} is not completed (status: {status.status})"
            )
        return [w.to_word() for w in status.words]

    async def export_subtitles(
        self,
        transcript_id: str,
        fmt: str = "srt",
        chars_per_caption: int | None = None,
    ) -> str:
        """Fetch the provider's own SRT/VTT rendering of a transcript.

        Raises:
            ValueError: If fmt is not "srt" or "vtt".
            AssemblyAIError: On transport failures or non-2xx responses.
        """
        if fmt not in SUBTITLE_FORMATS:
            raise ValueError(f"Unsupported subtitle format '{fmt}'. Use 'srt' or 'vtt'.")

        params = {}
        if chars_per_caption:
            params["chars_per_caption"] = chars_per_caption
        resp = await self._request("GET", f"/transcript/{transcript_id}/{fmt}", params=params)
        if resp.status_code != 200:
            raise AssemblyAIError(resp.status_code, resp.text)
        return resp.text

    async def detect_language(self, audio_url: str) -> str:
        """Run language detection on hosted media and return the language code.

        RULES:
        - Falls back to "en_us" (with a warning) when nothing is detected
        """
        transcript_id = await self.create_transcript(audio_url, language_code=None, speaker_labels=False)
        status = await self.poll_until_complete(transcript_id)
        if not status.language_code:
            logger.warning(
                "Could not detect language for transcript %s, falling back to %s",
                transcript_id, FALLBACK_LANGUAGE,
            )
            return FALLBACK_LANGUAGE
        return status.language_code

    # ------------------------------------------------------------------
    # Step 5: Cleanup
    # ------------------------------------------------------------------

    async def delete_transcript(
        self,
        transcript_id: str,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        """Delete a transcript from the provider (best-effort)."""
        client = self._ensure_client()
        if on_status:
            on_status("Cleaning up...")

        try:
            resp = await client.delete(f"/transcript/{transcript_id}")
        except httpx.HTTPError:
            logger.warning("Failed to delete transcript %s", transcript_id)
            return
        if resp.status_code not in (200, 204):
            logger.warning(
                "Failed to delete transcript %s: %s", transcript_id, resp.status_code
            )
