"""Shared test fixtures for the storyreel test suite.

WHY: Pipeline, API, and fallback tests all need the same stand-ins for
the two external collaborators — the FFmpeg encoder and the AI
provider — plus a sample transcription payload. Centralizing them here
keeps every test module honest about the same contracts.

HOW: FakeEncoder writes a placeholder output file instead of spawning
FFmpeg and records every call. FakeProvider is an async context manager
with the GroqClient method surface whose replies (or exceptions) are
set per test. Settings and WorkspaceStore fixtures point at tmp_path.

RULES:
- No test ever spawns FFmpeg or touches the network
- Every workspace lives under tmp_path
- SAMPLE_TRANSCRIPTION mirrors the provider's verbose_json shape
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Any, Dict, List

import pytest

from storyreel.api.models import TranscriptionResponse
from storyreel.config import Settings
from storyreel.media.workspaces import WorkspaceStore


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

SAMPLE_TEXT = "Hello world. This is great!"

SAMPLE_TRANSCRIPTION: Dict[str, Any] = {
    "text": " Hello world. This is great!",
    "language": "English",
    "duration": 2.4,
    "segments": [
        {
            "id": 0, "seek": 0, "start": 0.0, "end": 1.2,
            "text": " Hello world.", "tokens": [50364, 2425, 1002, 13],
            "temperature": 0.0, "avg_logprob": -0.21,
            "compression_ratio": 0.8, "no_speech_prob": 0.01,
        },
        {
            "id": 1, "seek": 0, "start": 1.2, "end": 2.4,
            "text": " This is great!", "tokens": [50424, 639, 307, 869, 0],
            "temperature": 0.0, "avg_logprob": -0.18,
            "compression_ratio": 0.8, "no_speech_prob": 0.01,
        },
    ],
}

WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt fake-audio"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEncoder:
    """Encoder double: same methods as FFmpegEncoder, no subprocess."""

    def __init__(self, available: bool = True, exit_code: int = 0) -> None:
        self.is_available = available
        self.exit_code = exit_code
        self.encode_calls: List[Dict[str, Any]] = []
        self.frame_calls: List[Dict[str, Any]] = []

    async def available(self) -> bool:
        return self.is_available

    async def encode(self, background_video: Path, audio: Path, overlay_filter: str,
                     output: Path) -> int:
        self.encode_calls.append({
            "background_video": background_video,
            "audio": audio,
            "overlay_filter": overlay_filter,
            "output": output,
            "workspace_files": sorted(p.name for p in output.parent.iterdir()),
        })
        if self.exit_code == 0:
            output.write_bytes(b"\x00\x00\x00\x18ftypmp42fake-video")
        return self.exit_code

    async def extract_first_frame(self, video: Path, frame: Path) -> int:
        self.frame_calls.append({"video": video, "frame": frame})
        if self.exit_code == 0:
            frame.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
        return self.exit_code


class FakeProvider:
    """Provider double with the GroqClient surface.

    Set ``story``, ``speech`` and ``transcriptions`` before use. Entries
    in ``transcriptions`` are consumed one per call; an exception entry
    is raised instead of returned.
    """

    def __init__(self) -> None:
        self.story: Any = "Once upon a time. The end."
        self.speech: Any = WAV_BYTES
        self.transcriptions: List[Any] = [SAMPLE_TRANSCRIPTION]
        self.transcribe_calls = 0
        self.transcribed_audio: List[Any] = []
        self.entered = 0
        self.exited = 0

    def __call__(self, settings: Settings) -> FakeProvider:
        return self

    async def __aenter__(self) -> FakeProvider:
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.exited += 1

    async def generate_story(self, theme: str, length: str) -> str:
        if isinstance(self.story, BaseException):
            raise self.story
        return self.story

    async def synthesize_speech(self, text: str, voice: Any = None) -> bytes:
        if isinstance(self.speech, BaseException):
            raise self.speech
        return self.speech

    async def transcribe(self, audio: Any, filename: str = "audio.wav",
                         granularity: str = "segment") -> TranscriptionResponse:
        self.transcribe_calls += 1
        self.transcribed_audio.append(audio)
        if isinstance(audio, Path):
            assert audio.exists()
        reply = self.transcriptions.pop(0) if len(self.transcriptions) > 1 else self.transcriptions[0]
        if isinstance(reply, BaseException):
            raise reply
        return TranscriptionResponse.from_dict(reply)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_TEXT


@pytest.fixture
def sample_transcription() -> Dict[str, Any]:
    return dict(SAMPLE_TRANSCRIPTION)


@pytest.fixture
def wav_b64() -> str:
    return base64.b64encode(WAV_BYTES).decode("ascii")


@pytest.fixture
def background_video(tmp_path) -> Path:
    path = tmp_path / "public" / "videos" / "minecraft-v1.mp4"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"fake-background-video")
    return path


@pytest.fixture
def settings(tmp_path, background_video) -> Settings:
    return Settings(
        api_key="test-key",
        base_url="https://api.example.test/openai/v1",
        background_video_path=background_video,
        public_dir=tmp_path / "public",
        project_root=tmp_path,
    )


@pytest.fixture
def store(tmp_path) -> WorkspaceStore:
    root = tmp_path / "workspaces"
    root.mkdir()
    s = WorkspaceStore(root=root, ttl_seconds=60, max_workspaces=5)
    yield s
    s.release_all()


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays: List[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep
