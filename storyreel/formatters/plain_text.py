"""Plain text transcript formatter.

WHY: The caption endpoints return the full transcript alongside the
timed segments, and CLI users sometimes want only the narration text
for review — no timecodes.

HOW: Joins the segment texts in order with single spaces, collapsing
internal whitespace so multi-line captions read as one paragraph.

RULES:
- One paragraph, trailing newline when non-empty
- Output suffix: "-transcript.txt"
- Media type: "text/plain"
"""

from __future__ import annotations

from collections.abc import Sequence

from storyreel.core.ir import CaptionSegment
from storyreel.formatters.base import BaseFormatter, FormatterOutput


def segments_to_text(segments: Sequence[CaptionSegment]) -> str:
    """Join caption texts into a single whitespace-normalized string."""
    return " ".join(" ".join(s.text.split()) for s in segments if s.text.strip())


class PlainTextFormatter(BaseFormatter):
    """Formatter that produces the untimed narration text."""

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(self, segments: Sequence[CaptionSegment]) -> list[FormatterOutput]:
        content = segments_to_text(segments)
        if content:
            content += "\n"
        return [
            FormatterOutput(
                suffix="-transcript.txt",
                content=content,
                media_type="text/plain",
            )
        ]
