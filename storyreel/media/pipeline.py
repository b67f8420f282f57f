"""Media assembly: narration + captions + background → burned-in MP4.

WHY: Export is the one step that touches every other part of the
system: the caption document, the style overlay, the background assets,
and the external encoder. It also owns temp files, so it is where leaks
happen if cleanup is left to chance.

HOW: assemble() runs the steps in order inside a workspace from the
WorkspaceStore:
  1. validate audio            6. optional background image (non-fatal)
  2. check the encoder         7. write captions.srt
  3. create the workspace      8. compile the overlay filter
  4. write audio.wav           9. run the encoder once
  5. copy the background video 10. check the exit code, mark ready
Any failure after step 3 releases the workspace before the error
propagates. On success the intermediate files are deleted and only
output.mp4 remains until it is downloaded or the janitor expires it.

RULES:
- Missing audio → UserInputError; missing encoder → DependencyUnavailableError
- Empty captions are valid; the SRT file is simply empty
- Non-zero exit → EncoderError carrying the exit code
- The encoder is awaited to exit before the result is inspected
- extract_frame() always releases its workspace
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import httpx

from storyreel.config import DEFAULT_ASPECT_RATIO, Settings
from storyreel.core.ir import CaptionSegment, CaptionSettings, sanitize_segments
from storyreel.errors import (
    DependencyUnavailableError,
    EncoderError,
    NotFoundError,
    StoryreelError,
    UserInputError,
)
from storyreel.formatters.srt_captions import render_srt
from storyreel.media.background import copy_background_video, prepare_background_image
from storyreel.media.overlay import compile_overlay_filter
from storyreel.media.workspaces import WorkspaceStore

logger = logging.getLogger(__name__)

AUDIO_FILE_NAME = "audio.wav"
SUBTITLE_FILE_NAME = "captions.srt"
OUTPUT_FILE_NAME = "output.mp4"
FRAME_FILE_NAME = "frame.jpg"

DOWNLOAD_URL = "/api/export/download?id={}"


class Encoder(Protocol):
    async def available(self) -> bool: ...

    async def encode(
        self,
        background_video: Path,
        audio: Path,
        overlay_filter: str,
        output: Path,
    ) -> int: ...

    async def extract_first_frame(self, video: Path, frame: Path) -> int: ...


@dataclass
class ExportRequest:
    """One export call: base64 narration, captions, style, and framing."""

    audio_data: str
    background_src: str | None = None
    captions: list[CaptionSegment] = field(default_factory=list)
    caption_settings: CaptionSettings = field(default_factory=CaptionSettings)
    aspect_ratio: str = DEFAULT_ASPECT_RATIO

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExportRequest:
        """Build from the camelCase JSON body; malformed captions are dropped."""
        return cls(
            audio_data=data.get("audioData") or "",
            background_src=data.get("backgroundSrc") or None,
            captions=sanitize_segments(data.get("captions")),
            caption_settings=CaptionSettings.from_dict(data.get("captionSettings")),
            aspect_ratio=data.get("aspectRatio") or DEFAULT_ASPECT_RATIO,
        )


@dataclass
class ExportResult:
    export_id: str
    output_path: Path

    @property
    def video_url(self) -> str:
        return DOWNLOAD_URL.format(self.export_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "message": "Video generated successfully",
            "videoUrl": self.video_url,
        }


def decode_audio(audio_data: str) -> bytes:
    """Decode base64 audio; invalid or empty data is a user error."""
    if not audio_data:
        raise UserInputError("Missing audio data")
    try:
        audio = base64.b64decode(audio_data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UserInputError("Audio data is not valid base64") from exc
    if not audio:
        raise UserInputError("Missing audio data")
    return audio


async def assemble(
    request: ExportRequest,
    *,
    settings: Settings,
    workspaces: WorkspaceStore,
    encoder: Encoder,
    http_client: httpx.AsyncClient | None = None,
) -> ExportResult:
    """Render the export request into an MP4 inside a fresh workspace.

    Args:
        request: Parsed export request.
        settings: Asset locations (background video, public dir).
        workspaces: Store that owns the request's temp directory.
        encoder: FFmpegEncoder or a test double with the same methods.
        http_client: Optional client for remote background images.

    Returns:
        ExportResult whose export_id is the download handle.
    """
    logger.info("Export requested (%d captions, aspect %s)",
                len(request.captions), request.aspect_ratio)

    audio = decode_audio(request.audio_data)

    if not await encoder.available():
        raise DependencyUnavailableError(
            "FFmpeg is not installed on the server. Video generation requires FFmpeg."
        )

    workspace = workspaces.create("export")
    try:
        audio_path = workspace.path / AUDIO_FILE_NAME
        audio_path.write_bytes(audio)

        background_video = copy_background_video(settings.background_video_path, workspace.path)

        await prepare_background_image(
            request.background_src,
            request.aspect_ratio,
            workspace.path,
            settings.public_dir,
            http_client,
        )

        subtitle_path = workspace.path / SUBTITLE_FILE_NAME
        subtitle_path.write_text(render_srt(request.captions), encoding="utf-8")

        overlay_filter = compile_overlay_filter(
            request.caption_settings, subtitle_path.resolve()
        )
        output_path = workspace.path / OUTPUT_FILE_NAME

        logger.info("Generating video with FFmpeg in %s", workspace.path)
        code = await encoder.encode(background_video, audio_path, overlay_filter, output_path)
        if code != 0:
            logger.error("FFmpeg process exited with code %s", code)
            raise EncoderError("FFmpeg process exited with code {}".format(code), exit_code=code)
        if not output_path.exists():
            raise EncoderError("FFmpeg reported success but wrote no output", exit_code=code)
    except BaseException as exc:
        workspaces.mark_failed(workspace.id, str(exc))
        workspaces.release(workspace.id)
        raise

    _remove_intermediates(workspace.path, keep=OUTPUT_FILE_NAME)
    workspaces.mark_ready(workspace.id, OUTPUT_FILE_NAME)
    logger.info("Video generated successfully: %s", workspace.id)
    return ExportResult(export_id=workspace.id, output_path=output_path)


def _remove_intermediates(path: Path, keep: str) -> None:
    for entry in path.iterdir():
        if entry.name == keep:
            continue
        try:
            entry.unlink()
        except OSError:
            logger.warning("Could not remove intermediate file %s", entry)


def read_export(workspaces: WorkspaceStore, export_id: str | None) -> bytes:
    """Return the finished video bytes and release the workspace.

    RULES:
    - Missing id → UserInputError; unknown or unfinished id → NotFoundError
    - The workspace is released once the bytes are in memory
    """
    if not export_id:
        raise UserInputError("Video ID is required")

    workspace = workspaces.get(export_id)
    output = workspace.output_path if workspace else None
    if output is None or not output.exists():
        logger.error("Video not found for id %s", export_id)
        raise NotFoundError("Video not found")

    try:
        data = output.read_bytes()
    finally:
        workspaces.release(export_id)
    logger.info("Serving video file (size: %d bytes)", len(data))
    return data


def resolve_video_path(video_path: str, project_root: Path) -> Path:
    """Resolve a request path like ``/public/videos/x.mp4`` under the project root."""
    root = project_root.resolve()
    candidate = (root / video_path.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        raise NotFoundError("Video file not found: {}".format(video_path))
    return candidate


async def extract_frame(
    video_path: str | None,
    *,
    settings: Settings,
    workspaces: WorkspaceStore,
    encoder: Encoder,
) -> str:
    """Extract the first frame of a video as a ``data:image/jpeg;base64,`` URL."""
    if not video_path:
        raise UserInputError("Video path is required")

    if not await encoder.available():
        raise DependencyUnavailableError("FFmpeg is not installed on the server")

    full_path = resolve_video_path(video_path, settings.project_root)
    if not full_path.is_file():
        raise NotFoundError("Video file not found: {}".format(video_path))

    workspace = workspaces.create("frame")
    try:
        frame_path = workspace.path / FRAME_FILE_NAME
        code = await encoder.extract_first_frame(full_path, frame_path)
        if code != 0:
            raise EncoderError("FFmpeg process exited with code {}".format(code), exit_code=code)
        try:
            frame = frame_path.read_bytes()
        except OSError as exc:
            raise StoryreelError("Failed to read extracted frame") from exc
    finally:
        workspaces.release(workspace.id)

    return "data:image/jpeg;base64,{}".format(base64.b64encode(frame).decode("ascii"))
