"""Caption timing estimated from text alone.

WHY: When no speech-recognition transcript is available, the only
source of timing is the text itself. These heuristics are the system's
sole substitute for real speech timing; playback sync is tuned to their
granularity (a few hundred milliseconds of drift per sentence), so the
constants below are part of the contract and must not drift.

HOW: Two variants share one sentence splitter.
  estimate()               — per-word durations: base + per-character
                             cost, plus a fixed pause per sentence
  estimate_by_proportion() — distributes a known total duration across
                             sentences by their share of characters

RULES:
- Empty, whitespace-only, or non-string input returns [] (never raises)
- Segments are contiguous: segment[i].end_time == segment[i+1].start_time
- The first segment starts at 0.0
- Sentences split at . ? ! followed by an uppercase letter; otherwise on
  terminator runs; otherwise the whole input is one sentence
"""

from __future__ import annotations

import re
from typing import Any

from storyreel.core.ir import CaptionSegment

WORD_BASE_S = 0.25
WORD_PER_CHAR_S = 0.03
SENTENCE_PAUSE_S = 0.3
WORDS_PER_SECOND = 3.0

# Boundary: terminal punctuation, optional whitespace, then an uppercase letter.
_BOUNDARY_RE = re.compile(r"([.?!])\s*(?=[A-Z])")
# Fallback: runs of non-terminators closed by terminators (or end of input).
_TERMINATOR_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def split_sentences(text: str) -> list[str]:
    """Split text into trimmed, non-empty sentence-like units.

    RULES:
    - Uppercase-boundary split wins when at least one boundary exists
    - Otherwise split on terminator runs, keeping an unterminated tail
    - Otherwise the entire trimmed text is a single sentence
    """
    if _BOUNDARY_RE.search(text):
        parts = _BOUNDARY_RE.sub(r"\1|", text).split("|")
    else:
        parts = _TERMINATOR_RE.findall(text) or [text]

    return [p.strip() for p in parts if p.strip()]


def word_duration(word: str) -> float:
    """Estimated seconds to speak one word: 0.25s + 0.03s per character."""
    return WORD_BASE_S + WORD_PER_CHAR_S * len(word)


def sentence_duration(sentence: str) -> float:
    return sum(word_duration(w) for w in sentence.split()) + SENTENCE_PAUSE_S


def estimate_duration(text: Any) -> float:
    """Estimate narration length from word count at 3 words per second."""
    if not isinstance(text, str):
        return 0.0
    return len(text.split()) / WORDS_PER_SECOND


def estimate(text: Any) -> list[CaptionSegment]:
    """Derive caption segments from text using per-word duration estimates.

    WHY: Used when only the story text is known (no audio duration, no
    transcript).

    HOW: Each sentence lasts the sum of its word durations plus a 0.3s
    pause. Segments are laid end to end starting at zero.

    Args:
        text: The story text. Anything that is not a non-blank string
              yields an empty list.

    Returns:
        Contiguous CaptionSegments, one per sentence.
    """
    if not isinstance(text, str) or not text.strip():
        return []

    segments: list[CaptionSegment] = []
    current = 0.0
    for sentence in split_sentences(text):
        end = current + sentence_duration(sentence)
        segments.append(CaptionSegment(text=sentence, start_time=current, end_time=end))
        current = end

    return segments


def estimate_by_proportion(
    text: Any,
    total_duration: float | None = None,
) -> list[CaptionSegment]:
    """Distribute a known narration duration across sentences by length.

    WHY: After speech synthesis succeeded but transcription did not, the
    narration length is better known than per-word guesses. Each sentence
    gets a slice proportional to its character count.

    HOW: Missing or non-positive durations are replaced with the word
    count at 3 words per second. Sentence character counts are measured
    after trimming so the slices sum to the total duration.

    RULES:
    - Non-string or blank text returns []
    - segments[-1].end_time == total duration (up to float rounding)
    """
    if not isinstance(text, str) or not text.strip():
        return []

    if not total_duration or total_duration <= 0:
        total_duration = estimate_duration(text)

    sentences = split_sentences(text)
    total_chars = sum(len(s) for s in sentences)
    if total_chars == 0 or total_duration <= 0:
        return []

    segments: list[CaptionSegment] = []
    current = 0.0
    for sentence in sentences:
        end = current + total_duration * (len(sentence) / total_chars)
        segments.append(CaptionSegment(text=sentence, start_time=current, end_time=end))
        current = end

    return segments
