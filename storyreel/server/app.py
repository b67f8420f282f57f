"""FastAPI application: story, narration, captions, export, and download.

WHY: The browser editor needs one HTTP surface for every step of making
a captioned story video: generate a story, narrate it with timed
captions, preview caption timings, export the burned-in MP4, and fetch
the result. FastAPI provides request validation, OpenAPI docs, and a
lifespan hook for the workspace janitor.

HOW: create_app() builds the app around explicit collaborators —
Settings, an encoder, a WorkspaceStore, and a provider factory — stored
on app.state. Handlers translate request models into core calls; every
StoryreelError is rendered by one exception handler as
``{success: false, error, details?}`` with the error's status code.

RULES:
- Settings are resolved once and never mutated by a handler
- Story generation never fails: provider errors become a canned story
- Narration failures surface (there is no fallback audio); caption
  failures degrade to estimated captions
- Every temp file or workspace a request creates is released on all paths
- The janitor sweeps expired workspaces every 5 minutes
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import base64
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from storyreel import __version__
from storyreel.api.client import GroqClient
from storyreel.config import Settings
from storyreel.core import estimator
from storyreel.core.fallback import SOURCE_ESTIMATED, produce_captions
from storyreel.core.retry import retry_with_backoff
from storyreel.core.stories import generate_story
from storyreel.errors import StoryreelError, UserInputError
from storyreel.formatters import FORMATTERS
from storyreel.media.encoder import FFmpegEncoder
from storyreel.media.pipeline import (
    ExportRequest,
    assemble,
    decode_audio,
    extract_frame,
    read_export,
)
from storyreel.media.workspaces import WorkspaceStore, scoped_temp_file
from storyreel.server.models import (
    ApiKeyStatus,
    CaptionRequest,
    CaptionsResponse,
    ExportRequestModel,
    ExportResponse,
    FormatInfo,
    FrameResponse,
    HealthResponse,
    SpeechRequest,
    SpeechResponse,
    StoryRequest,
    StoryResponse,
    error_responses,
)

logger = logging.getLogger(__name__)

JANITOR_INTERVAL_S = 300
DOWNLOAD_FILENAME = "generated-video.mp4"

ProviderFactory = Callable[[Settings], Any]


# ---------------------------------------------------------------------------
# Janitor
# ---------------------------------------------------------------------------


async def _periodic_cleanup(store: WorkspaceStore) -> None:
    """Sweep expired workspaces every 5 minutes."""
    while True:
        await asyncio.sleep(JANITOR_INTERVAL_S)
        removed = store.cleanup_expired()
        if removed:
            logger.info("Janitor released %d expired workspaces", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the janitor on startup; cancel it and release workspaces on shutdown."""
    store = app.state.workspaces
    task = asyncio.create_task(_periodic_cleanup(store))
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    store.release_all()


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    encoder: Any = None,
    store: Optional[WorkspaceStore] = None,
    provider_factory: ProviderFactory = GroqClient,
) -> FastAPI:
    """Build the FastAPI app around explicit collaborators.

    Args:
        settings: Process configuration; defaults to Settings.from_env().
        encoder: FFmpegEncoder or a test double with the same methods.
        store: Workspace registry; defaults to one under the system temp dir.
        provider_factory: Callable(settings) → async context manager exposing
            generate_story / synthesize_speech / transcribe.
    """
    settings = settings or Settings.from_env()
    app = FastAPI(
        lifespan=lifespan,
        title="Storyreel API",
        description=(
            "REST API for short narrated story videos: generate a story, "
            "narrate it with timed captions, and export an MP4 with the "
            "captions burned in over a background video."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.encoder = encoder or FFmpegEncoder(settings.ffmpeg_binary)
    app.state.workspaces = store or WorkspaceStore(
        ttl_seconds=settings.workspace_ttl_seconds,
        max_workspaces=settings.max_workspaces,
    )
    app.state.provider_factory = provider_factory

    @app.exception_handler(StoryreelError)
    async def _storyreel_error(request: Request, exc: StoryreelError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    state = app.state

    # -----------------------------------------------------------------
    # Story
    # -----------------------------------------------------------------

    @app.post(
        "/api/generate-story",
        response_model=StoryResponse,
        tags=["story"],
        summary="Generate a short story",
        description=(
            "Asks the text model for a story sized by the length preset. "
            "Provider failures return a canned story for the theme."
        ),
        responses=error_responses(400),
    )
    async def generate_story_endpoint(body: StoryRequest) -> StoryResponse:
        if not body.theme or not body.length:
            raise UserInputError("Theme and length are required")

        settings = state.settings
        if not settings.has_api_key:
            logger.warning("No API key configured, using fallback story")
            return StoryResponse(story=await generate_story(body.theme, body.length, None))

        async with state.provider_factory(settings) as client:
            story = await generate_story(body.theme, body.length, client)
        return StoryResponse(story=story)

    # -----------------------------------------------------------------
    # Narration + captions
    # -----------------------------------------------------------------

    @app.post(
        "/api/text-to-speech",
        response_model=SpeechResponse,
        tags=["speech"],
        summary="Narrate text and time captions against it",
        description=(
            "Synthesizes WAV narration, then transcribes it for segment "
            "timestamps. If transcription keeps failing, captions are "
            "estimated from the text instead."
        ),
        responses=error_responses(400, 403, 429, 500, 502),
    )
    async def text_to_speech(body: SpeechRequest) -> SpeechResponse:
        if not body.text:
            raise UserInputError("Text is required")

        text = body.text
        logger.info("TTS request received (%d chars, voice %s)", len(text), body.voice)
        async with state.provider_factory(state.settings) as client:
            audio = await retry_with_backoff(
                lambda: client.synthesize_speech(text, body.voice)
            )
            with scoped_temp_file(audio, suffix=".wav") as audio_path:
                result = await produce_captions(text, audio_path, client)

        logger.info(
            "TTS and caption generation complete: %d bytes audio, %d captions (%s)",
            len(audio), len(result.segments), result.source,
        )
        return SpeechResponse(
            audio=base64.b64encode(audio).decode("ascii"),
            captions=[s.to_dict() for s in result.segments],
            text=text,
            transcriptionSource=result.source,
        )

    @app.post(
        "/api/generate-captions",
        response_model=CaptionsResponse,
        response_model_exclude_none=True,
        tags=["captions"],
        summary="Build caption timings for text or audio",
        description=(
            "Text only: per-word estimated timings. With audio and a "
            "configured API key: transcription first, estimation as fallback. "
            "Pass 'format' to also receive a rendered document."
        ),
        responses=error_responses(400),
    )
    async def generate_captions(body: CaptionRequest) -> CaptionsResponse:
        if not body.text and not body.audioData:
            raise UserInputError("Either text or audio data is required")
        if body.format and body.format not in FORMATTERS:
            raise UserInputError(
                "Unknown format '{}'. Available: {}".format(
                    body.format, ", ".join(sorted(FORMATTERS))
                )
            )

        text = body.text or ""
        if body.audioData and state.settings.has_api_key:
            audio = decode_audio(body.audioData)
            async with state.provider_factory(state.settings) as client:
                result = await produce_captions(text, audio, client, duration=body.duration)
            segments = result.segments
            estimated = result.source == SOURCE_ESTIMATED
        elif body.duration:
            segments = estimator.estimate_by_proportion(text, body.duration)
            estimated = True
        else:
            segments = estimator.estimate(text)
            estimated = True

        document = None
        if body.format:
            outputs = FORMATTERS[body.format]().format(segments)
            document = outputs[0].content if outputs else ""

        return CaptionsResponse(
            captions=[s.to_dict() for s in segments],
            fullTranscript=text,
            estimated=estimated,
            document=document,
        )

    # -----------------------------------------------------------------
    # Export
    # -----------------------------------------------------------------

    @app.post(
        "/api/export",
        response_model=ExportResponse,
        tags=["export"],
        summary="Render the captioned video",
        description=(
            "Composites narration and burned-in captions over the background "
            "video. Returns a one-time download URL."
        ),
        responses=error_responses(400, 429, 500),
    )
    async def export_video(body: ExportRequestModel) -> ExportResponse:
        request = ExportRequest.from_dict(body.model_dump(exclude_none=True))
        try:
            result = await assemble(
                request,
                settings=state.settings,
                workspaces=state.workspaces,
                encoder=state.encoder,
            )
        except StoryreelError:
            raise
        except Exception as exc:
            logger.exception("Error in video export")
            raise StoryreelError(str(exc) or "Failed to generate video") from exc
        return ExportResponse(**result.to_dict())

    @app.get(
        "/api/export/download",
        tags=["export"],
        summary="Download a rendered video",
        description=(
            "Returns the MP4 produced by POST /api/export. The workspace is "
            "released after the download, so each id can be fetched once."
        ),
        responses={
            200: {"content": {"video/mp4": {}}, "description": "The rendered video"},
            **error_responses(400, 404),
        },
    )
    async def download_video(
        id: Optional[str] = Query(default=None, description="Export id from videoUrl."),
    ) -> Response:
        data = read_export(state.workspaces, id)
        return Response(
            content=data,
            media_type="video/mp4",
            headers={
                "Content-Disposition": 'attachment; filename="{}"'.format(DOWNLOAD_FILENAME),
            },
        )

    @app.get(
        "/api/extract-frame",
        response_model=FrameResponse,
        tags=["export"],
        summary="Extract the first frame of a video",
        description="Returns the first frame as a base64 JPEG data URL for previews.",
        responses=error_responses(400, 404, 500),
    )
    async def extract_frame_endpoint(
        path: Optional[str] = Query(default=None, description="Video path under the project root."),
    ) -> FrameResponse:
        frame = await extract_frame(
            path,
            settings=state.settings,
            workspaces=state.workspaces,
            encoder=state.encoder,
        )
        return FrameResponse(frameData=frame)

    # -----------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------

    @app.get(
        "/api/check-api-key",
        response_model=ApiKeyStatus,
        tags=["health"],
        summary="Report whether a provider API key is configured",
    )
    async def check_api_key() -> ApiKeyStatus:
        exists = state.settings.has_api_key
        return ApiKeyStatus(
            keyExists=exists,
            message=(
                "Groq API key is configured"
                if exists
                else "No Groq API key found - please set GROQ_API_KEY in .env"
            ),
        )

    @app.get(
        "/api/formats",
        response_model=List[FormatInfo],
        tags=["captions"],
        summary="List caption document formats",
    )
    async def list_formats() -> List[FormatInfo]:
        result = []
        for key, formatter_cls in sorted(FORMATTERS.items()):
            formatter = formatter_cls()
            outputs = formatter.format([])
            result.append(FormatInfo(
                key=key,
                name=formatter.name,
                suffix=outputs[0].suffix if outputs else "",
                media_type=outputs[0].media_type if outputs else "text/plain",
            ))
        return result

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
        description="Liveness check; also reports whether FFmpeg is reachable.",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            version=__version__,
            ffmpeg=await state.encoder.available(),
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for ``storyreel serve``."""
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(create_app(settings), host=host, port=port)
