"""Configuration constants, aspect-ratio presets, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Provider endpoints, model names, the FFmpeg
binary, and the background asset location are plain data — not buried
in logic — and are resolved exactly once when the process starts.

HOW: python-dotenv loads the .env file on import. Settings.from_env()
reads the environment into a frozen dataclass that the app factory and
CLI thread into every provider client and pipeline call.

RULES:
- Settings is immutable; request handlers never mutate configuration
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
- ASPECT_RATIO_DIMENSIONS holds the canonical pixel size per preset
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from storyreel.errors import ConfigurationError

# Load .env from the project root (where the server is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Aspect ratios: preset → canonical (width, height)
# ---------------------------------------------------------------------------

ASPECT_RATIO_DIMENSIONS: dict[str, tuple[int, int]] = {
    "16:9": (1280, 720),
    "9:16": (720, 1280),
    "1:1": (1080, 1080),
    "4:5": (1080, 1350),
}

DEFAULT_ASPECT_RATIO = "9:16"
FALLBACK_ASPECT_RATIO = "16:9"
"""Used when an unknown aspect ratio reaches the image resize step."""

# ---------------------------------------------------------------------------
# Provider defaults
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_STORY_MODEL = "llama3-70b-8192"
DEFAULT_TTS_MODEL = "playai-tts"
DEFAULT_STT_MODEL = "whisper-large-v3"
DEFAULT_VOICE = "Fritz-PlayAI"

DEFAULT_WORKSPACE_TTL_SECONDS = 3600
DEFAULT_MAX_WORKSPACES = 100


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration resolved once at start-up.

    WHY: Provider credentials and tool locations used to live in mutable
    process environment state. A frozen object passed explicitly to every
    collaborator makes the configuration visible and keeps concurrent
    requests from seeing each other's changes.

    HOW: Built by from_env() (or directly in tests). Consumers receive it
    through constructor or function parameters.

    RULES:
    - api_key may be None; clients call require_api_key() before use
    - background_video_path is resolved relative to the working directory
    - project_root bounds the video paths accepted by frame extraction
    """

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    story_model: str = DEFAULT_STORY_MODEL
    tts_model: str = DEFAULT_TTS_MODEL
    stt_model: str = DEFAULT_STT_MODEL
    default_voice: str = DEFAULT_VOICE
    ffmpeg_binary: str = "ffmpeg"
    background_video_path: Path = Path("public/videos/minecraft-v1.mp4")
    public_dir: Path = Path("public")
    project_root: Path = Path(".")
    workspace_ttl_seconds: int = DEFAULT_WORKSPACE_TTL_SECONDS
    max_workspaces: int = DEFAULT_MAX_WORKSPACES
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Read every setting from the environment (populated by python-dotenv)."""
        key = os.getenv("GROQ_API_KEY", "").strip()
        return cls(
            api_key=key or None,
            base_url=os.getenv("GROQ_BASE_URL", DEFAULT_BASE_URL),
            story_model=os.getenv("STORY_MODEL", DEFAULT_STORY_MODEL),
            tts_model=os.getenv("TTS_MODEL", DEFAULT_TTS_MODEL),
            stt_model=os.getenv("STT_MODEL", DEFAULT_STT_MODEL),
            default_voice=os.getenv("DEFAULT_VOICE", DEFAULT_VOICE),
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
            background_video_path=Path(
                os.getenv("BACKGROUND_VIDEO_PATH", "public/videos/minecraft-v1.mp4")
            ),
            public_dir=Path(os.getenv("PUBLIC_DIR", "public")),
            project_root=Path(os.getenv("PROJECT_ROOT", ".")),
            workspace_ttl_seconds=int(
                os.getenv("WORKSPACE_TTL_SECONDS", str(DEFAULT_WORKSPACE_TTL_SECONDS))
            ),
            max_workspaces=int(os.getenv("MAX_WORKSPACES", str(DEFAULT_MAX_WORKSPACES))),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def require_api_key(self) -> str:
        """Return the provider API key.

        RULES:
        - Raises ConfigurationError if the key is missing or empty
        - Never returns a default/placeholder value
        """
        if not self.api_key:
            raise ConfigurationError(
                "Groq API key not configured. "
                "Add GROQ_API_KEY to the .env file in the app folder."
            )
        return self.api_key


def dimensions_for(aspect_ratio: str) -> tuple[int, int]:
    """Map an aspect-ratio preset to pixel dimensions, falling back to 16:9."""
    return ASPECT_RATIO_DIMENSIONS.get(
        aspect_ratio, ASPECT_RATIO_DIMENSIONS[FALLBACK_ASPECT_RATIO]
    )
