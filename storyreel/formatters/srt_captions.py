"""SRT subtitle document generation and parsing.

WHY: The encoder's subtitles filter reads captions from an SRT file, and
users download the same document from the CLI. Timestamp mistakes here
show up directly as captions out of sync in the finished video.

HOW: render_srt() writes numbered blocks: index, ``start --> end``, text,
blank line. Timestamps are ``HH:MM:SS,mmm`` computed by flooring the
float seconds to whole milliseconds. parse_srt() reads such a document
back into provider-style segment dicts so it can be fed through the
transcript mapper.

RULES:
- Sub-millisecond fractions are truncated, not rounded; float noise
  below a nanosecond is absorbed first so 1.13 renders as 01,130
- Entries with non-string text or non-numeric timestamps are skipped
  silently; the rest of the document is still produced
- Block indices are consecutive over the emitted blocks, starting at 1
- render_srt(map_transcript(parse_srt(doc))) == doc for generated docs
"""

from __future__ import annotations

import math
import numbers
import re
from collections.abc import Sequence
from typing import Any

from storyreel.core.ir import CaptionSegment
from storyreel.formatters.base import BaseFormatter, FormatterOutput

SRT_MEDIA_TYPE = "application/x-subrip"

_TIMESTAMP_RE = re.compile(r"(\d+):(\d{2}):(\d{2})[,.](\d{3})")
_TIMING_LINE_RE = re.compile(
    r"^\s*(\d+:\d{2}:\d{2}[,.]\d{3})\s*-->\s*(\d+:\d{2}:\d{2}[,.]\d{3})"
)


def format_timestamp(seconds: float) -> str:
    """Format float seconds as ``HH:MM:SS,mmm`` (milliseconds truncated)."""
    total_ms = max(0, math.floor(round(seconds * 1000, 6)))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    return "{:02d}:{:02d}:{:02d},{:03d}".format(hours, minutes, secs, millis)


def parse_timestamp(value: str) -> float:
    """Parse ``HH:MM:SS,mmm`` (or with a dot) into float seconds."""
    match = _TIMESTAMP_RE.fullmatch(value.strip())
    if not match:
        raise ValueError("Invalid SRT timestamp: {!r}".format(value))
    h, m, s, ms = (int(g) for g in match.groups())
    return h * 3600 + m * 60 + s + ms / 1000.0


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _fields(entry: Any) -> tuple[Any, Any, Any]:
    if isinstance(entry, CaptionSegment):
        return entry.text, entry.start_time, entry.end_time
    if isinstance(entry, dict):
        return entry.get("text"), entry.get("startTime"), entry.get("endTime")
    return None, None, None


def render_srt(segments: Sequence[Any] | None) -> str:
    """Serialize caption segments into an SRT document.

    Args:
        segments: CaptionSegments (or camelCase dicts from a request body).

    Returns:
        The SRT text; an empty string when nothing is renderable.
    """
    blocks: list[str] = []
    for entry in segments or []:
        text, start, end = _fields(entry)
        if not isinstance(text, str) or not _is_number(start) or not _is_number(end):
            continue
        blocks.append(
            "{}\n{} --> {}\n{}\n\n".format(
                len(blocks) + 1,
                format_timestamp(start),
                format_timestamp(end),
                text,
            )
        )
    return "".join(blocks)


def parse_srt(document: str) -> list[dict[str, Any]]:
    """Parse an SRT document into ``{text, start, end}`` segment dicts.

    RULES:
    - Blocks are separated by blank lines
    - Blocks without a valid timing line are ignored
    - Multi-line caption text is joined with newlines
    """
    segments: list[dict[str, Any]] = []
    normalized = document.replace("\r\n", "\n").replace("\r", "\n")
    for block in re.split(r"\n\s*\n", normalized):
        lines = [line for line in block.split("\n") if line.strip()]
        timing_index = next(
            (i for i, line in enumerate(lines) if _TIMING_LINE_RE.match(line)), None
        )
        if timing_index is None:
            continue
        match = _TIMING_LINE_RE.match(lines[timing_index])
        segments.append({
            "text": "\n".join(lines[timing_index + 1:]),
            "start": parse_timestamp(match.group(1)),
            "end": parse_timestamp(match.group(2)),
        })
    return segments


class SRTCaptionFormatter(BaseFormatter):
    """Formatter producing a single SRT subtitle document."""

    @property
    def name(self) -> str:
        return "SRT Subtitles"

    def format(self, segments: Sequence[CaptionSegment]) -> list[FormatterOutput]:
        return [
            FormatterOutput(
                suffix=".srt",
                content=render_srt(segments),
                media_type=SRT_MEDIA_TYPE,
            )
        ]
