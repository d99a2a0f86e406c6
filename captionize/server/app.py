"""FastAPI application for segmentation, subtitle files, and the video editor.

WHY: The editor front-end, automation tools and curl users need an HTTP
surface for three kinds of work: stateless codec calls (words → blocks,
blocks → SRT/VTT, text → blocks), the video lifecycle (register a video,
transcribe it in the background, edit, restyle, download), and the
collaborator actions (burn-in, watermarking, translation, suggested
corrections, transcription webhooks).
FastAPI provides request validation, background tasks and OpenAPI docs.

HOW: Endpoints are thin. They convert pydantic models to core
dataclasses, call the core or one collaborator client, and convert
back. The video store is a module-level singleton; transcription runs
via BackgroundTasks. When CAPTIONIZE_WEBHOOK_URL is set, the background
task only creates the transcript and POST /webhook finishes the job;
otherwise the task polls until the transcript completes.

RULES:
- Unknown video IDs → 404; malformed input → 400/422
- Collaborator failures (AssemblyAI, Cloudinary, Gemini) → 502, including
  connection errors and unreadable response bodies
- Missing collaborator credentials → 503
- Stored subtitles are always read back through parse_srt
- Background pipeline failures mark the record failed and are logged
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import Response

from captionize import __version__
from captionize.api.client import AssemblyAIClient, AssemblyAIError, TranscriptionError
from captionize.api.corrections import CorrectionError, SubtitleCorrector
from captionize.api.media import CloudinaryClient, MediaError, SubtitleStyle
from captionize.api.translation import SubtitleTranslator, TranslationError
from captionize.config import WEBHOOK_URL, ConfigurationError, validate_language_code
from captionize.core.models import CaptionBlock, Word
from captionize.core.segmenter import POLICIES, segment_words
from captionize.formatters.srt import SRT_MEDIA_TYPE, format_srt, parse_srt, parse_srt_lenient
from captionize.formatters.vtt import format_vtt, parse_vtt
from captionize.server.models import (
    BlockListResponse,
    BlockModel,
    BurnInResponse,
    CorrectionRequest,
    CorrectionResponse,
    ErrorResponse,
    HealthResponse,
    ParseRequest,
    PolicyInfo,
    SegmentRequest,
    SrtRequest,
    StyleModel,
    SubtitleFormat,
    SubtitlesUpdateRequest,
    TextCorrectionRequest,
    TranslateRequest,
    TranslateResponse,
    VideoCreateRequest,
    VideoDetailResponse,
    VideoResponse,
    VttRequest,
    WatermarkRequest,
    WatermarkResponse,
    WebhookPayload,
    WebhookResponse,
)
from captionize.store import VideoRecord, VideoStatus, VideoStore

logger = logging.getLogger(__name__)

VTT_RESPONSE_TYPE = "text/vtt; charset=utf-8"

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

video_store = VideoStore()


async def _periodic_cleanup() -> None:
    """Drop expired failed records every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        video_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Captionize API",
    description=(
        "Turn word-level transcripts into readable caption blocks, convert "
        "between SRT and WebVTT, and manage subtitled videos: background "
        "transcription, editing, styling, burn-in and translation."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_blocks(models: List[BlockModel]) -> List[CaptionBlock]:
    return [CaptionBlock(id=m.id, start_ms=m.start_ms, end_ms=m.end_ms, text=m.text) for m in models]


def _to_models(blocks: List[CaptionBlock]) -> List[BlockModel]:
    return [BlockModel(**b.to_dict()) for b in blocks]


def _video_to_response(record: VideoRecord, blocks: Optional[List[CaptionBlock]] = None) -> VideoResponse:
    if blocks is None:
        blocks = record.blocks
    return VideoResponse(
        id=record.id,
        name=record.name,
        video_url=record.video_url,
        public_id=record.public_id,
        status=record.status.value,
        language_code=record.language_code,
        policy=record.policy,
        transcript_id=record.transcript_id,
        style=record.style,
        burned_url=record.burned_url,
        error=record.error,
        block_count=len(blocks),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _get_video_or_404(video_id: str) -> VideoRecord:
    record = video_store.get_video(video_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Video not found: {}".format(video_id))
    return record


def _require_subtitles(record: VideoRecord) -> List[CaptionBlock]:
    """Return stored blocks, or 409 when there is nothing to work with yet."""
    blocks = record.blocks
    if not blocks:
        raise HTTPException(
            status_code=409,
            detail="Video has no subtitles yet (current status: {}).".format(record.status.value),
        )
    return blocks


def _css_family_name(font_family: Optional[str]) -> Optional[str]:
    """'"Open Sans", sans-serif' → 'Open Sans' for the ::cue rule."""
    if not font_family:
        return None
    first = font_family.split(",", 1)[0].strip().strip("\"'")
    return first or None


def _download(content: str, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


def _collaborator_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


async def _run_transcription_pipeline(video_id: str, store: VideoStore) -> None:
    """Transcribe a registered video and store its caption blocks.

    WHY: Transcription takes minutes; the POST /videos request returns
    immediately and this task does the work.

    HOW: create transcript → (webhook mode: stop here) → poll until
    complete → segment the words with the record's policy → store SRT.

    RULES:
    - Catches all exceptions and marks the record failed
    - The provider transcript is deleted after a successful poll
    """
    record = store.get_video(video_id)
    if record is None:
        logger.warning("Video %s vanished before transcription started", video_id)
        return

    try:
        async with AssemblyAIClient() as client:
            transcript_id = await client.create_transcript(
                record.video_url,
                language_code=record.language_code,
                webhook_url=WEBHOOK_URL,
            )
            store.update_video(video_id, transcript_id=transcript_id)

            if WEBHOOK_URL:
                logger.info("Video %s waiting for webhook on transcript %s", video_id, transcript_id)
                return

            status = await client.poll_until_complete(transcript_id)
            words = [w.to_word() for w in status.words]
            blocks = segment_words(words, record.policy)
            store.update_video(video_id, language_code=status.language_code)
            store.set_subtitles(video_id, blocks)
            await client.delete_transcript(transcript_id)

    except Exception as exc:
        logger.exception("Transcription pipeline failed for video %s", video_id)
        store.update_video(video_id, status=VideoStatus.FAILED, error=str(exc))


def _run_transcription_sync(video_id: str, store: VideoStore) -> None:
    """Synchronous wrapper so BackgroundTasks can run the async pipeline."""
    asyncio.run(_run_transcription_pipeline(video_id, store))


# ---------------------------------------------------------------------------
# Endpoints: Segmentation and subtitle files
# ---------------------------------------------------------------------------


@app.post(
    "/segment",
    response_model=BlockListResponse,
    tags=["subtitles"],
    summary="Group words into caption blocks",
    description=(
        "Segments a chronological word list into caption blocks using the "
        "named policy, wrapping each block's text at 42 characters per line."
    ),
)
async def segment(request: SegmentRequest) -> BlockListResponse:
    words = [Word(text=w.text, start_ms=w.start_ms, end_ms=w.end_ms) for w in request.words]
    blocks = segment_words(words, request.policy.value)
    return BlockListResponse(blocks=_to_models(blocks))


@app.post(
    "/subtitles/srt",
    tags=["subtitles"],
    summary="Serialize blocks to SRT",
    response_class=Response,
    responses={200: {"content": {"text/plain": {}}, "description": "SRT file content"}},
)
async def blocks_to_srt(request: SrtRequest) -> Response:
    return Response(
        content=format_srt(_to_blocks(request.blocks), renumber_ids=request.renumber),
        media_type="text/plain",
    )


@app.post(
    "/subtitles/vtt",
    tags=["subtitles"],
    summary="Serialize blocks to WebVTT",
    response_class=Response,
    responses={200: {"content": {"text/vtt": {}}, "description": "WebVTT file content"}},
)
async def blocks_to_vtt(request: VttRequest) -> Response:
    return Response(
        content=format_vtt(_to_blocks(request.blocks), request.font_family),
        media_type=VTT_RESPONSE_TYPE,
    )


@app.post(
    "/subtitles/parse",
    response_model=BlockListResponse,
    tags=["subtitles"],
    summary="Parse SRT or WebVTT text into blocks",
    description="Malformed blocks are skipped; the request never fails on content.",
)
async def parse_subtitles(request: ParseRequest) -> BlockListResponse:
    if request.format == SubtitleFormat.vtt:
        blocks = parse_vtt(request.text)
    elif request.renumber:
        blocks = parse_srt_lenient(request.text)
    else:
        blocks = parse_srt(request.text)
    return BlockListResponse(blocks=_to_models(blocks))


# ---------------------------------------------------------------------------
# Endpoints: Videos
# ---------------------------------------------------------------------------


@app.post(
    "/videos",
    response_model=VideoResponse,
    status_code=201,
    tags=["videos"],
    summary="Register a video and start transcription",
    description=(
        "Stores the video with status 'processing' and transcribes it in the "
        "background. Poll GET /videos/{id} until status is 'completed'."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported language code"},
        429: {"model": ErrorResponse, "description": "Store is full"},
    },
)
async def create_video(request: VideoCreateRequest, background_tasks: BackgroundTasks) -> VideoResponse:
    try:
        language_code = validate_language_code(request.language_code)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        record = video_store.create_video(
            name=request.name,
            video_url=request.video_url,
            public_id=request.public_id,
            language_code=language_code,
            policy=request.policy.value,
        )
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    background_tasks.add_task(_run_transcription_sync, record.id, video_store)
    return _video_to_response(record)


@app.get(
    "/videos",
    response_model=List[VideoResponse],
    tags=["videos"],
    summary="List videos, most recently updated first",
)
async def list_videos() -> List[VideoResponse]:
    return [_video_to_response(record) for record in video_store.list_videos()]


@app.get(
    "/videos/{video_id}",
    response_model=VideoDetailResponse,
    tags=["videos"],
    summary="Get a video with its caption blocks",
    responses={404: {"model": ErrorResponse, "description": "Video not found"}},
)
async def get_video(video_id: str) -> VideoDetailResponse:
    record = _get_video_or_404(video_id)
    blocks = record.blocks
    summary = _video_to_response(record, blocks)
    return VideoDetailResponse(**summary.model_dump(), blocks=_to_models(blocks))


@app.delete(
    "/videos/{video_id}",
    status_code=204,
    tags=["videos"],
    summary="Delete a video record",
    responses={404: {"model": ErrorResponse, "description": "Video not found"}},
)
async def delete_video(video_id: str) -> Response:
    if not video_store.delete_video(video_id):
        raise HTTPException(status_code=404, detail="Video not found: {}".format(video_id))
    return Response(status_code=204)


@app.put(
    "/videos/{video_id}/subtitles",
    response_model=BlockListResponse,
    tags=["videos"],
    summary="Replace a video's caption blocks",
    description="Saves edited blocks. Ids are renumbered 1..n; the video becomes 'completed'.",
    responses={404: {"model": ErrorResponse, "description": "Video not found"}},
)
async def update_subtitles(video_id: str, request: SubtitlesUpdateRequest) -> BlockListResponse:
    _get_video_or_404(video_id)
    video_store.set_subtitles(video_id, _to_blocks(request.blocks))
    return BlockListResponse(blocks=_to_models(video_store.get_subtitles(video_id) or []))


@app.put(
    "/videos/{video_id}/style",
    response_model=VideoResponse,
    tags=["videos"],
    summary="Store subtitle styling for burn-in",
    responses={404: {"model": ErrorResponse, "description": "Video not found"}},
)
async def update_style(video_id: str, style: StyleModel) -> VideoResponse:
    _get_video_or_404(video_id)
    record = video_store.update_video(video_id, style=style.model_dump())
    return _video_to_response(record)


@app.get(
    "/videos/{video_id}/subtitles.srt",
    tags=["videos"],
    summary="Download subtitles as SRT",
    response_class=Response,
    responses={
        404: {"model": ErrorResponse, "description": "Video not found"},
        409: {"model": ErrorResponse, "description": "No subtitles yet"},
    },
)
async def download_srt(video_id: str) -> Response:
    record = _get_video_or_404(video_id)
    blocks = _require_subtitles(record)
    return _download(format_srt(blocks), SRT_MEDIA_TYPE, "{}.srt".format(record.name))


@app.get(
    "/videos/{video_id}/subtitles.vtt",
    tags=["videos"],
    summary="Download subtitles as WebVTT",
    description="The stored font family, if any, is written into the STYLE block.",
    response_class=Response,
    responses={
        404: {"model": ErrorResponse, "description": "Video not found"},
        409: {"model": ErrorResponse, "description": "No subtitles yet"},
    },
)
async def download_vtt(video_id: str) -> Response:
    record = _get_video_or_404(video_id)
    blocks = _require_subtitles(record)
    font_family = _css_family_name(record.style.get("font_family"))
    return _download(format_vtt(blocks, font_family), VTT_RESPONSE_TYPE, "{}.vtt".format(record.name))


@app.post(
    "/videos/{video_id}/burn-in",
    response_model=BurnInResponse,
    tags=["videos"],
    summary="Burn subtitles into the video",
    description=(
        "Uploads the stored subtitles to the media provider and returns the "
        "delivery URL of the video with the subtitles rendered in, using the "
        "stored style."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Video has no media public ID"},
        404: {"model": ErrorResponse, "description": "Video not found"},
        409: {"model": ErrorResponse, "description": "No subtitles yet"},
        502: {"model": ErrorResponse, "description": "Media provider failure"},
    },
)
async def burn_in(video_id: str) -> BurnInResponse:
    record = _get_video_or_404(video_id)
    if not record.public_id:
        raise HTTPException(status_code=400, detail="Video has no media public_id to burn into.")
    blocks = _require_subtitles(record)

    try:
        async with CloudinaryClient() as client:
            url = await client.burn_in(record.public_id, blocks, SubtitleStyle.from_dict(record.style))
    except (MediaError, ConfigurationError) as exc:
        logger.error("Burn-in failed for video %s: %s", video_id, exc)
        raise _collaborator_error(exc)

    video_store.update_video(video_id, burned_url=url)
    return BurnInResponse(video_id=video_id, url=url)


@app.post(
    "/videos/{video_id}/translate",
    response_model=TranslateResponse,
    tags=["videos"],
    summary="Translate a video's subtitles",
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported target language"},
        404: {"model": ErrorResponse, "description": "Video not found"},
        409: {"model": ErrorResponse, "description": "No subtitles yet"},
        502: {"model": ErrorResponse, "description": "Translation provider failure"},
    },
)
async def translate(video_id: str, request: TranslateRequest) -> TranslateResponse:
    record = _get_video_or_404(video_id)
    try:
        target = validate_language_code(request.target_language)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if target is None:
        raise HTTPException(status_code=400, detail="A target language is required.")
    blocks = _require_subtitles(record)

    try:
        async with SubtitleTranslator() as translator:
            translated = await translator.translate(blocks, target)
    except (TranslationError, ConfigurationError) as exc:
        logger.error("Translation of video %s to %s failed: %s", video_id, target, exc)
        raise _collaborator_error(exc)

    if request.save:
        try:
            video_store.set_subtitles(video_id, translated)
        except ValueError as exc:
            logger.error("Translation of video %s to %s is not storable: %s", video_id, target, exc)
            raise HTTPException(status_code=502, detail="Translation returned unusable blocks: {}".format(exc))
        video_store.update_video(video_id, language_code=target)
    return TranslateResponse(blocks=_to_models(translated), target_language=target)


@app.post(
    "/videos/{video_id}/corrections",
    response_model=CorrectionResponse,
    tags=["videos"],
    summary="Suggest a correction for one caption block",
    description=(
        "Sends the block and its neighbours to the language model and returns "
        "a suggested rewrite with an explanation. With apply=true the stored "
        "block's text is replaced by the suggestion."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Video or block not found"},
        409: {"model": ErrorResponse, "description": "No subtitles yet"},
        502: {"model": ErrorResponse, "description": "Language model failure"},
    },
)
async def suggest_block_correction(video_id: str, request: CorrectionRequest) -> CorrectionResponse:
    record = _get_video_or_404(video_id)
    blocks = _require_subtitles(record)
    if not any(b.id == request.block_id for b in blocks):
        raise HTTPException(status_code=404, detail="Block not found: {}".format(request.block_id))

    try:
        async with SubtitleCorrector() as corrector:
            suggestion = await corrector.suggest_for_block(blocks, request.block_id)
    except (CorrectionError, ConfigurationError) as exc:
        logger.error("Correction of block %d in video %s failed: %s", request.block_id, video_id, exc)
        raise _collaborator_error(exc)

    applied = False
    if request.apply and suggestion.changed:
        edited = [
            CaptionBlock(b.id, b.start_ms, b.end_ms, suggestion.suggested_text) if b.id == request.block_id else b
            for b in blocks
        ]
        video_store.set_subtitles(video_id, edited)
        applied = True

    return CorrectionResponse(
        block_id=suggestion.block_id,
        original_text=suggestion.original_text,
        suggested_text=suggestion.suggested_text,
        explanation=suggestion.explanation,
        applied=applied,
    )


@app.post(
    "/subtitles/corrections",
    response_model=CorrectionResponse,
    tags=["subtitles"],
    summary="Suggest a correction for subtitle text",
    description="Stateless variant: the caller sends the text and its surrounding context.",
    responses={502: {"model": ErrorResponse, "description": "Language model failure"}},
)
async def suggest_text_correction(request: TextCorrectionRequest) -> CorrectionResponse:
    try:
        async with SubtitleCorrector() as corrector:
            suggestion = await corrector.suggest(request.text, request.context)
    except (CorrectionError, ConfigurationError) as exc:
        logger.error("Text correction failed: %s", exc)
        raise _collaborator_error(exc)

    return CorrectionResponse(
        original_text=suggestion.original_text,
        suggested_text=suggestion.suggested_text,
        explanation=suggestion.explanation,
    )


@app.post(
    "/videos/{video_id}/watermark",
    response_model=WatermarkResponse,
    tags=["videos"],
    summary="Overlay a watermark image on the video",
    description=(
        "Returns a signed delivery URL of the video with the image scaled "
        "relative to the video width and placed at the given gravity. "
        "Nothing is uploaded."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "No media public ID, or unknown position"},
        404: {"model": ErrorResponse, "description": "Video not found"},
        503: {"model": ErrorResponse, "description": "Media provider not configured"},
    },
)
async def watermark(video_id: str, request: WatermarkRequest) -> WatermarkResponse:
    record = _get_video_or_404(video_id)
    if not record.public_id:
        raise HTTPException(status_code=400, detail="Video has no media public_id to watermark.")

    try:
        client = CloudinaryClient()
    except ConfigurationError as exc:
        raise _collaborator_error(exc)
    try:
        url = client.build_watermark_url(
            record.public_id,
            request.image_url,
            position=request.position,
            scale=request.scale,
            opacity=request.opacity,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info("Built watermark URL for video %s", video_id)
    return WatermarkResponse(video_id=video_id, url=url)


# ---------------------------------------------------------------------------
# Endpoints: Transcription webhook
# ---------------------------------------------------------------------------


@app.post(
    "/webhook",
    response_model=WebhookResponse,
    tags=["webhook"],
    summary="Transcription completion callback",
    description=(
        "Called by the transcription provider when a transcript finishes. On "
        "'completed' the words are fetched, segmented and stored on the "
        "matching video; on 'error' the video is marked failed."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "No video waits on this transcript"},
        502: {"model": ErrorResponse, "description": "Transcription provider failure"},
    },
)
async def transcription_webhook(payload: WebhookPayload) -> WebhookResponse:
    record = video_store.find_by_transcript(payload.transcript_id)
    if record is None:
        raise HTTPException(
            status_code=404,
            detail="No video waits on transcript {}".format(payload.transcript_id),
        )

    if payload.status == "error":
        video_store.update_video(
            record.id,
            status=VideoStatus.FAILED,
            error="Transcription {} failed".format(payload.transcript_id),
        )
    elif payload.status == "completed":
        try:
            async with AssemblyAIClient() as client:
                words = await client.fetch_words(payload.transcript_id)
        except (AssemblyAIError, TranscriptionError, ConfigurationError) as exc:
            logger.error("Fetching words for transcript %s failed: %s", payload.transcript_id, exc)
            video_store.update_video(record.id, status=VideoStatus.FAILED, error=str(exc))
            raise _collaborator_error(exc)
        try:
            video_store.set_subtitles(record.id, segment_words(words, record.policy))
        except ValueError as exc:
            logger.error("Transcript %s produced unstorable blocks: %s", payload.transcript_id, exc)
            video_store.update_video(record.id, status=VideoStatus.FAILED, error=str(exc))
            raise HTTPException(status_code=502, detail=str(exc))
    else:
        logger.info("Ignoring webhook status %r for transcript %s", payload.status, payload.transcript_id)

    return WebhookResponse(video_id=record.id, status=record.status.value)


# ---------------------------------------------------------------------------
# Endpoints: Service info
# ---------------------------------------------------------------------------


@app.get(
    "/policies",
    response_model=List[PolicyInfo],
    tags=["subtitles"],
    summary="List segmentation policies",
)
async def list_policies() -> List[PolicyInfo]:
    return [
        PolicyInfo(
            name=policy.name,
            break_on_pause=policy.break_on_pause,
            break_on_duration=policy.break_on_duration,
            break_on_length=policy.break_on_length,
            pause_threshold_ms=policy.pause_threshold_ms,
            max_duration_ms=policy.max_duration_ms,
            max_chars=policy.max_chars,
            max_line_chars=policy.max_line_chars,
        )
        for _, policy in sorted(POLICIES.items())
    ]


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the captionize-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
