"""Caption intermediate representation shared by every layer.

WHY: Captions arrive from three places (the estimator, a speech
recognition transcript, or the browser in an export request) and are
consumed by three others (playback sync, subtitle documents, the
export pipeline). One well-typed form decouples producers from
consumers.

HOW: Frozen dataclasses for the timed units, plain dataclasses for the
user-editable style settings and the playback clock. Coercion helpers
turn loosely-shaped JSON into typed segments, dropping anything
malformed instead of failing the whole list.

RULES:
- All times are float seconds
- A valid segment has non-empty text and 0 <= start_time < end_time
- Segment lists are sorted ascending by start_time (stable sort)
- Segments are immutable once created; lists are replaced, never merged
- Malformed entries are logged at WARNING and skipped, never raised
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptionWord:
    """Optional word-level timing inside a segment."""

    text: str
    start: float
    end: float


@dataclass(frozen=True)
class CaptionSegment:
    """A single timed caption unit.

    RULES:
    - text: trimmed, non-empty
    - start_time / end_time: float seconds, end_time > start_time
    - words: optional sub-timings, not required by any core behaviour
    """

    text: str
    start_time: float
    end_time: float
    words: tuple[CaptionWord, ...] = field(default_factory=tuple)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def contains(self, t: float, lookahead: float = 0.0) -> bool:
        """True if ``t`` lies in [start_time - lookahead, end_time], both inclusive."""
        return self.start_time - lookahead <= t <= self.end_time

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys the browser client uses."""
        data: dict[str, Any] = {
            "text": self.text,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.words:
            data["words"] = [
                {"text": w.text, "start": w.start, "end": w.end} for w in self.words
            ]
        return data


@dataclass
class CaptionPosition:
    """Caption anchor as a percentage of the frame (0–100 on both axes)."""

    x: float = 50.0
    y: float = 80.0


@dataclass
class CaptionSettings:
    """User-editable caption style.

    WHY: The overlay compiler needs to know which fields the user actually
    set, so absent fields stay None and defaults are applied at compile
    time rather than here.

    RULES:
    - opacity is in [0, 1]; font_size is positive pixels
    - colors are hex strings ("#rrggbb") or simple color names
    - text is only a manual-preview placeholder, never rendered by export
    """

    text: str | None = None
    font_color: str | None = None
    background_color: str | None = None
    opacity: float | None = None
    font_size: float | None = None
    position: CaptionPosition | None = None
    style: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CaptionSettings:
        """Parse camelCase settings JSON; unknown keys are ignored.

        Non-finite or non-numeric numbers and non-string colors are
        treated as absent so the compile-time defaults apply.
        """
        if not isinstance(data, dict) or not data:
            return cls()
        position = None
        raw_position = data.get("position")
        if isinstance(raw_position, dict):
            position = CaptionPosition(
                x=_number_or(raw_position.get("x"), 50.0),
                y=_number_or(raw_position.get("y"), 80.0),
            )
        return cls(
            text=_string_or_none(data.get("text")),
            font_color=_string_or_none(data.get("fontColor")),
            background_color=_string_or_none(data.get("backgroundColor")),
            opacity=_number_or(data.get("opacity"), None),
            font_size=_number_or(data.get("fontSize"), None),
            position=position,
            style=_string_or_none(data.get("style")),
        )


@dataclass
class PlaybackClock:
    """Snapshot of whatever plays the audio, read once per update tick."""

    is_playing: bool
    current_time: float
    duration: float = 0.0


# ---------------------------------------------------------------------------
# Coercion and validation
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _number_or(value: Any, default: float | None) -> float | None:
    return float(value) if _is_number(value) else default


def _string_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def is_valid_segment(segment: Any) -> bool:
    """Check the shape invariants of a CaptionSegment instance."""
    return (
        isinstance(segment, CaptionSegment)
        and isinstance(segment.text, str)
        and bool(segment.text.strip())
        and _is_number(segment.start_time)
        and _is_number(segment.end_time)
        and segment.start_time >= 0
        and segment.end_time > segment.start_time
    )


def segment_from_dict(data: Any) -> CaptionSegment | None:
    """Build a CaptionSegment from camelCase JSON, or None if malformed."""
    if isinstance(data, CaptionSegment):
        return data if is_valid_segment(data) else None
    if not isinstance(data, dict):
        return None

    text = data.get("text")
    start = data.get("startTime")
    end = data.get("endTime")
    if not isinstance(text, str) or not _is_number(start) or not _is_number(end):
        return None

    words: list[CaptionWord] = []
    for w in data.get("words") or []:
        if (
            isinstance(w, dict)
            and isinstance(w.get("text"), str)
            and _is_number(w.get("start"))
            and _is_number(w.get("end"))
        ):
            words.append(CaptionWord(text=w["text"], start=float(w["start"]), end=float(w["end"])))

    segment = CaptionSegment(
        text=text.strip(),
        start_time=float(start),
        end_time=float(end),
        words=tuple(words),
    )
    return segment if is_valid_segment(segment) else None


def sanitize_segments(raw: Iterable[Any] | None) -> list[CaptionSegment]:
    """Coerce, filter, and sort a loosely-typed segment list.

    WHY: Segment lists cross trust boundaries (browser JSON, provider
    payloads). One bad entry must not cost the user every caption.

    HOW: Each entry goes through segment_from_dict; invalid ones are
    counted and reported in a single warning. The survivors are stably
    sorted by start_time so overlapping segments keep their input order.

    RULES:
    - None or an empty iterable returns []
    - Never raises on malformed entries
    """
    if not raw:
        return []

    valid: list[CaptionSegment] = []
    dropped = 0
    for item in raw:
        segment = segment_from_dict(item)
        if segment is None:
            dropped += 1
            continue
        valid.append(segment)

    if dropped:
        logger.warning("Filtered out %d invalid caption segments", dropped)

    return sorted(valid, key=lambda s: s.start_time)
