"""Caption document formatter registry.

WHY: The CLI and the HTTP API need a single lookup to find the right
formatter by name. A central dict makes adding a format one line.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["srt"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags and request bodies)
- Values are BaseFormatter subclasses (not instances)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from storyreel.formatters.plain_text import PlainTextFormatter
from storyreel.formatters.srt_captions import SRTCaptionFormatter

if TYPE_CHECKING:
    from storyreel.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "srt": SRTCaptionFormatter,
    "plain_text": PlainTextFormatter,
}
