"""Abstract base formatter and output container.

WHY: Every caption document consumes the same CaptionSegment list but
produces different file content. This base class gives the CLI and the
HTTP API one interface for any formatter.

HOW: BaseFormatter is an ABC with two requirements — a ``name`` property
and a ``format()`` method. FormatterOutput bundles a file suffix with
its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list; current formatters return one item
- ``suffix`` starts with a dot or hyphen, e.g. ``".srt"``
- Formatters never modify the segments they receive
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from storyreel.core.ir import CaptionSegment


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the output stem, e.g. ``".srt"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"application/x-subrip"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for caption document formatters.

    New formats subclass this in their own module under formatters/ and
    add one entry to FORMATTERS; /api/formats and the CLI's --format
    choices pick them up from there.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'SRT Subtitles'."""

    @abstractmethod
    def format(self, segments: Sequence[CaptionSegment]) -> list[FormatterOutput]:
        """Convert caption segments into one or more output documents."""
