"""Async HTTP client for the Groq OpenAI-compatible API.

WHY: Story text, narration audio, and segment-timed transcripts all
come from one provider. This module keeps the HTTP details (auth,
endpoints, multipart uploads, error bodies) behind a single client so
the pipeline and the API layer only see typed results and typed errors.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. GroqClient is an
async context manager — enter it to get an authenticated client, exit
to close the connection pool. One method per capability:
generate_story → synthesize_speech → transcribe.

RULES:
- Always use the async context manager (async with GroqClient(...) as client:)
- The API key comes from Settings; a missing key raises ConfigurationError
  on entry, before any request is made
- Network-level failures raise TransientProviderError (retryable)
- 429 raises RateLimitError; a terms-acceptance refusal raises
  TermsAcceptanceRequiredError; any other non-2xx raises ProviderAPIError
- transcribe() always asks for verbose_json with segment timestamps
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from storyreel.api.models import TranscriptionResponse
from storyreel.config import Settings
from storyreel.core.stories import STORY_SYSTEM_PROMPT, build_story_prompt, max_tokens_for
from storyreel.errors import (
    ProviderAPIError,
    RateLimitError,
    TermsAcceptanceRequiredError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STORY_TEMPERATURE = 0.7
SPEECH_FORMAT = "wav"
TRANSCRIPTION_FORMAT = "verbose_json"

TERMS_DETAILS = "You need to accept the terms for PlayAI TTS model on the Groq console."


class GroqClient:
    """Async client for story, speech, and transcription requests.

    WHY: Provides a clean, typed interface over the three provider
    endpoints the app uses, with one error taxonomy for all of them.

    HOW: Wraps httpx.AsyncClient with Bearer token auth. A custom
    transport can be injected (httpx.MockTransport in tests).

    RULES:
    - Use as: async with GroqClient(settings) as client: ...
    - Model names and default voice come from Settings
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._base_url = settings.base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GroqClient:
        api_key = self._settings.require_api_key()
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": "Bearer {}".format(api_key)},
            timeout=httpx.Timeout(120.0, connect=30.0),
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
                "GroqClient must be used as an async context manager: "
                "async with GroqClient(settings) as client: ..."
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._ensure_client()
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransientProviderError(
                "Connection error talking to provider: {}".format(exc)
            ) from exc
        _raise_for_status(resp)
        return resp

    # ------------------------------------------------------------------
    # Story text
    # ------------------------------------------------------------------

    async def generate_story(self, theme: str, length: str) -> str:
        """Ask the chat-completions endpoint for a story.

        RULES:
        - max_tokens follows the length preset (100/200/400)
        - Returns the trimmed message content, possibly empty
        """
        body = {
            "model": self._settings.story_model,
            "messages": [
                {"role": "system", "content": STORY_SYSTEM_PROMPT},
                {"role": "user", "content": build_story_prompt(theme, length)},
            ],
            "max_tokens": max_tokens_for(length),
            "temperature": STORY_TEMPERATURE,
        }
        logger.info("Requesting %s %s story from %s", theme, length, self._settings.story_model)
        resp = await self._request("POST", "/chat/completions", json=body)
        data = resp.json()
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""
        return content.strip()

    # ------------------------------------------------------------------
    # Speech synthesis
    # ------------------------------------------------------------------

    async def synthesize_speech(self, text: str, voice: str | None = None) -> bytes:
        """Synthesize ``text`` and return WAV bytes."""
        body = {
            "model": self._settings.tts_model,
            "input": text,
            "voice": voice or self._settings.default_voice,
            "response_format": SPEECH_FORMAT,
        }
        logger.info("Generating speech for %d characters", len(text))
        resp = await self._request("POST", "/audio/speech", json=body)
        logger.info("Audio data received, size: %d bytes", len(resp.content))
        return resp.content

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    async def transcribe(
        self,
        audio: bytes | Path,
        filename: str = "audio.wav",
        granularity: str = "segment",
    ) -> TranscriptionResponse:
        """Transcribe audio with per-segment timestamps.

        Args:
            audio: WAV bytes or a path to an audio file.
            filename: Upload name when ``audio`` is bytes.
            granularity: "segment" or "word".

        Returns:
            Parsed TranscriptionResponse.
        """
        if isinstance(audio, Path):
            filename = audio.name
            content = audio.read_bytes()
        else:
            content = audio

        data = {
            "model": self._settings.stt_model,
            "response_format": TRANSCRIPTION_FORMAT,
            "timestamp_granularities[]": granularity,
        }
        logger.info("Starting transcription of %s (%d bytes)", filename, len(content))
        resp = await self._request(
            "POST",
            "/audio/transcriptions",
            data=data,
            files={"file": (filename, content, "audio/wav")},
        )
        return TranscriptionResponse.from_dict(resp.json())


def _raise_for_status(resp: httpx.Response) -> None:
    """Map a non-2xx provider response to the error taxonomy."""
    if resp.is_success:
        return

    body = resp.text
    if resp.status_code == 429:
        raise RateLimitError(
            "Rate limit exceeded. Please try again later.",
            details=body,
        )
    if "terms" in body.lower():
        raise TermsAcceptanceRequiredError(
            "Terms acceptance required for TTS model",
            details=TERMS_DETAILS,
        )
    raise ProviderAPIError(resp.status_code, body)
