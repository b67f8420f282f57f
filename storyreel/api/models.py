"""Provider response dataclasses for the speech-recognition API.

WHY: The transcription endpoint returns verbose JSON whose segment
objects carry a dozen provider-specific fields. Typed dataclasses make
the fields we rely on explicit and keep the rest available for
diagnostics.

HOW: Each dataclass maps 1:1 to a provider JSON object. Factory methods
(from_dict) handle parsing from raw API responses; unknown fields are
kept in ``extra``.

RULES:
- start/end are float seconds, authoritative, never adjusted here
- text is kept exactly as returned (trimming is the mapper's job)
- A missing "segments" key parses as an empty list
- One malformed segment never discards the others
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_SEGMENT_KEYS = frozenset({"text", "start", "end", "words"})


@dataclass
class ProviderWord:
    word: str
    start: float
    end: float


@dataclass
class ProviderSegment:
    """A single timed segment from the transcription response.

    RULES:
    - text: raw segment text, usually with a leading space
    - start/end: float seconds from the start of the audio
    - words: present only when word granularity was requested
    - extra: id, seek, tokens, avg_logprob, no_speech_prob, ...
    """

    text: str
    start: float
    end: float
    words: list[ProviderWord] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> ProviderSegment:
        """Parse a segment dict; text/start/end are required."""
        words = [
            ProviderWord(word=w["word"], start=float(w["start"]), end=float(w["end"]))
            for w in data.get("words") or []
        ]
        return cls(
            text=data["text"],
            start=float(data["start"]),
            end=float(data["end"]),
            words=words,
            extra={k: v for k, v in data.items() if k not in _SEGMENT_KEYS},
        )


@dataclass
class TranscriptionResponse:
    """Verbose transcription response: full text, language, and segments.

    RULES:
    - Segments that cannot be parsed (missing keys, non-numeric times,
      non-string text) are skipped with a warning; the rest are kept
    """

    text: str
    segments: list[ProviderSegment]
    language: str | None = None
    duration: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptionResponse:
        segments: list[ProviderSegment] = []
        for raw in data.get("segments") or []:
            try:
                segment = ProviderSegment.from_dict(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed transcription segment %r: %s", raw, exc)
                continue
            if not isinstance(segment.text, str):
                logger.warning("Skipping transcription segment without text: %r", raw)
                continue
            segments.append(segment)
        return cls(
            text=data.get("text", ""),
            segments=segments,
            language=data.get("language"),
            duration=data.get("duration"),
        )
