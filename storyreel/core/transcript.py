"""Projection of a speech-recognition transcript onto caption segments.

WHY: When transcription succeeds, the provider's segment timestamps are
the best timing we will ever have. The mapper must pass them through
untouched so captions line up with the narration exactly.

HOW: One CaptionSegment per provider segment: text trimmed, start and
end copied. Accepts ProviderSegment objects or raw dicts with the same
keys so tests and alternate providers can feed it directly. Segments
that would break the CaptionSegment invariants (blank text such as a
silence segment, end <= start, non-finite times) are dropped and
counted in one warning.

RULES:
- 1:1 projection of the valid segments, order preserved, no timing computation
- None or empty input returns [] and logs a diagnostic; never raises
- Word-level timings are carried over when present
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from storyreel.api.models import ProviderSegment
from storyreel.core.ir import CaptionSegment, CaptionWord, is_valid_segment

logger = logging.getLogger(__name__)


def _project(segment: ProviderSegment | dict[str, Any]) -> CaptionSegment:
    if isinstance(segment, dict):
        segment = ProviderSegment.from_dict(segment)
    words = tuple(
        CaptionWord(text=w.word.strip(), start=w.start, end=w.end) for w in segment.words
    )
    return CaptionSegment(
        text=segment.text.strip(),
        start_time=segment.start,
        end_time=segment.end,
        words=words,
    )


def map_transcript(
    segments: Sequence[ProviderSegment | dict[str, Any]] | None,
) -> list[CaptionSegment]:
    """Convert transcription segments directly into caption segments."""
    if not segments:
        logger.warning("No segments found in transcription response to map to captions.")
        return []

    captions: list[CaptionSegment] = []
    dropped = 0
    for segment in segments:
        try:
            caption = _project(segment)
        except (AttributeError, KeyError, TypeError, ValueError):
            dropped += 1
            continue
        if not is_valid_segment(caption):
            dropped += 1
            continue
        captions.append(caption)

    if dropped:
        logger.warning("Dropped %d unusable transcription segments", dropped)
    return captions
