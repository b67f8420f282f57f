"""Caption production with transcription first, estimation as fallback.

WHY: Narrated audio should get captions timed from real speech
recognition, but the recognition service is a network dependency that
flakes. The user must still get captions, so transcription is retried
on transient errors and then degraded to the text-based estimator.

HOW: produce_captions() calls the transcription provider through
retry_with_backoff(). A successful transcript is mapped 1:1; any final
failure falls back to proportional estimation using a duration derived
from the word count. The result records which path produced it.

RULES:
- Never raises to the caller (cancellation excepted)
- source is "transcript" or "estimated"
- Total failure of both paths yields [] with source "estimated"
- A transcript with no segments is treated as an unusable payload and
  falls back to estimation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from storyreel.api.models import TranscriptionResponse
from storyreel.core import estimator
from storyreel.core.ir import CaptionSegment
from storyreel.core.retry import retry_with_backoff
from storyreel.core.transcript import map_transcript

logger = logging.getLogger(__name__)

SOURCE_TRANSCRIPT = "transcript"
SOURCE_ESTIMATED = "estimated"


class TranscriptionProvider(Protocol):
    async def transcribe(
        self,
        audio: bytes | Path,
        filename: str = "audio.wav",
        granularity: str = "segment",
    ) -> TranscriptionResponse: ...


@dataclass
class CaptionResult:
    """Segments plus the path that produced them."""

    segments: list[CaptionSegment] = field(default_factory=list)
    source: str = SOURCE_ESTIMATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "captions": [s.to_dict() for s in self.segments],
            "source": self.source,
        }


def _estimate(text: str, duration: float | None) -> CaptionResult:
    try:
        if not duration or duration <= 0:
            duration = estimator.estimate_duration(text)
        segments = estimator.estimate_by_proportion(text, duration)
    except Exception:
        logger.exception("Fallback caption estimation failed")
        segments = []
    logger.info("Generated %d fallback caption segments based on text.", len(segments))
    return CaptionResult(segments=segments, source=SOURCE_ESTIMATED)


async def produce_captions(
    text: str,
    audio: bytes | Path | None,
    provider: TranscriptionProvider | None,
    *,
    duration: float | None = None,
    **retry_options: Any,
) -> CaptionResult:
    """Produce caption segments for synthesized narration.

    Args:
        text: The narrated text, used only by the fallback path.
        audio: The synthesized audio (bytes or a temp file path).
        provider: Transcription provider, or None when unavailable.
        duration: Known narration length for the fallback; defaults to
                  word count at 3 words per second.
        **retry_options: Forwarded to retry_with_backoff (sleep, rand, ...).

    Returns:
        CaptionResult with source "transcript" or "estimated".
    """
    if provider is None or not audio:
        logger.info("Transcription unavailable, estimating captions from text")
        return _estimate(text, duration)

    async def _attempt() -> TranscriptionResponse:
        return await provider.transcribe(audio, granularity="segment")

    try:
        response = await retry_with_backoff(_attempt, **retry_options)
    except Exception as exc:
        logger.error("Transcription failed, using fallback caption generation: %s", exc)
        return _estimate(text, duration)

    logger.info("Transcription received with %d segments.", len(response.segments))
    try:
        segments = map_transcript(response.segments)
    except Exception:
        logger.exception("Unexpected transcription payload")
        segments = []

    if not segments:
        return _estimate(text, duration)
    return CaptionResult(segments=segments, source=SOURCE_TRANSCRIPT)
