"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. The
browser client speaks camelCase JSON, so field names follow the wire
format exactly.

HOW: Each endpoint pair (request + response) has its own model. Enums
represent closed sets like the caption source. All models include Field
descriptions for rich OpenAPI docs.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Required-field checks that must return the structured 400 body
  (text, theme, audio) are done in the handlers, so those fields are
  Optional here
- Caption lists are accepted as raw objects; malformed entries are
  filtered by the core, never rejected with 422
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TranscriptionSource(str, Enum):
    """Which path produced a caption list.

    RULES:
    - Values match storyreel.core.fallback SOURCE_* constants exactly
    """

    transcript = "transcript"
    estimated = "estimated"


# ---------------------------------------------------------------------------
# Shared shapes
# ---------------------------------------------------------------------------


class CaptionSegmentModel(BaseModel):
    """One timed caption as it appears on the wire."""

    text: str = Field(description="Caption text, trimmed.")
    startTime: float = Field(description="Start offset in seconds.")
    endTime: float = Field(description="End offset in seconds.")


class PositionModel(BaseModel):
    x: float = Field(default=50.0, description="Horizontal position, percent of frame width.")
    y: float = Field(default=80.0, description="Vertical position, percent of frame height.")


class CaptionSettingsModel(BaseModel):
    """Caption styling chosen in the editor."""

    text: Optional[str] = Field(default=None, description="Manual preview placeholder text.")
    fontColor: Optional[str] = Field(default=None, description="Font color, hex or simple name.")
    backgroundColor: Optional[str] = Field(default=None, description="Caption box color (hex).")
    opacity: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Caption box opacity, 0 to 1.",
    )
    fontSize: Optional[float] = Field(default=None, gt=0, description="Font size in pixels.")
    position: Optional[PositionModel] = Field(
        default=None, description="Caption anchor as percentages of the frame.",
    )
    style: Optional[str] = Field(default=None, description="Style tag.")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class StoryRequest(BaseModel):
    theme: Optional[str] = Field(default=None, description="Story theme, e.g. 'funny'.")
    length: Optional[str] = Field(
        default=None,
        description="One of 'Short (15s)', 'Medium (30s)', 'Long (60s)'.",
    )


class SpeechRequest(BaseModel):
    text: Optional[str] = Field(default=None, description="Text to narrate.")
    voice: Optional[str] = Field(default=None, description="Voice id; defaults to the configured voice.")


class CaptionRequest(BaseModel):
    text: Optional[str] = Field(default=None, description="Narrated text.")
    audioData: Optional[str] = Field(default=None, description="Base64 WAV narration.")
    duration: Optional[float] = Field(
        default=None, gt=0, description="Known narration length in seconds.",
    )
    format: Optional[str] = Field(
        default=None,
        description="Optional formatter key ('srt', 'plain_text') to also render a document.",
    )


class ExportRequestModel(BaseModel):
    """Body of POST /api/export.

    RULES:
    - audioData is required (checked by the handler for a 400 body)
    - captions may be empty; the export still succeeds
    - aspectRatio defaults to 9:16; unknown values resize images as 16:9
    """

    audioData: Optional[str] = Field(default=None, description="Base64 WAV narration.")
    backgroundSrc: Optional[str] = Field(
        default=None,
        description="Optional background image: http(s) URL or path under the public dir.",
    )
    captions: List[Any] = Field(
        default_factory=list,
        description="Caption segments ({text, startTime, endTime}); malformed ones are skipped.",
    )
    captionSettings: Optional[CaptionSettingsModel] = Field(
        default=None, description="Caption styling; absent fields use defaults.",
    )
    aspectRatio: Optional[str] = Field(
        default=None,
        description="Output frame proportion (16:9, 9:16, 1:1, 4:5); defaults to 9:16.",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class StoryResponse(BaseModel):
    story: str = Field(description="Generated (or fallback) story text.")


class SpeechResponse(BaseModel):
    """Narration plus captions timed against it."""

    audio: str = Field(description="Base64 WAV narration.")
    captions: List[CaptionSegmentModel] = Field(description="Caption segments for the audio.")
    text: str = Field(description="The narrated text.")
    transcriptionSource: TranscriptionSource = Field(
        description="'transcript' when timed by speech recognition, else 'estimated'.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "audio": "UklGRiQAAABXQVZF...",
                "captions": [
                    {"text": "Hello world.", "startTime": 0.0, "endTime": 1.13},
                ],
                "text": "Hello world.",
                "transcriptionSource": "transcript",
            }
        ]
    }}


class CaptionsResponse(BaseModel):
    captions: List[CaptionSegmentModel] = Field(description="Caption segments.")
    fullTranscript: str = Field(description="The text the captions were built from.")
    estimated: bool = Field(description="True when timings are estimated rather than transcribed.")
    document: Optional[str] = Field(
        default=None, description="Rendered caption document when a format was requested.",
    )


class ExportResponse(BaseModel):
    success: bool = Field(default=True, description="Always true on success.")
    message: str = Field(description="Human-readable status.")
    videoUrl: str = Field(description="Relative URL that downloads the video once.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "success": True,
                "message": "Video generated successfully",
                "videoUrl": "/api/export/download?id=550e8400-e29b-41d4-a716-446655440000",
            }
        ]
    }}


class FrameResponse(BaseModel):
    success: bool = Field(default=True, description="Always true on success.")
    frameData: str = Field(description="data:image/jpeg;base64,... URL of the first frame.")


class ApiKeyStatus(BaseModel):
    keyExists: bool = Field(description="Whether a provider API key is configured.")
    message: str = Field(description="Human-readable status.")


class FormatInfo(BaseModel):
    key: str = Field(description="Formatter identifier used in requests.")
    name: str = Field(description="Human-readable format name.")
    suffix: str = Field(description="File suffix of the rendered document.")
    media_type: str = Field(description="MIME type of the rendered document.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service status: 'ok'.")
    version: str = Field(description="Package version.")
    ffmpeg: bool = Field(description="Whether the encoder binary answered its availability check.")


class ErrorResponse(BaseModel):
    """Structured failure body shared by every endpoint.

    RULES:
    - rateLimited / requiresTermsAcceptance are present only for the
      matching provider policy errors
    """

    success: bool = Field(default=False, description="Always false.")
    error: str = Field(description="Error message, surfaced verbatim for user errors.")
    details: Optional[str] = Field(default=None, description="Additional detail, if any.")
    rateLimited: Optional[bool] = Field(default=None, description="Set on HTTP 429.")
    requiresTermsAcceptance: Optional[bool] = Field(
        default=None, description="Set when the speech model terms must be accepted.",
    )


def error_responses(*codes: int) -> Dict[int, Dict[str, Any]]:
    """OpenAPI ``responses=`` entries for the given status codes."""
    descriptions = {
        400: "Missing or invalid input",
        403: "Provider terms not accepted",
        404: "Resource not found",
        429: "Rate limited or too many workspaces",
        500: "Dependency unavailable or encoder failure",
        502: "Provider connection failure",
    }
    return {
        code: {"model": ErrorResponse, "description": descriptions.get(code, "Error")}
        for code in codes
    }
