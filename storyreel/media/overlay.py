"""Compile caption style settings into the FFmpeg subtitles filter string.

WHY: The encoder burns captions in through its ``subtitles`` filter with
a ``force_style`` override written in a tiny key=value language. One
wrong character (an unescaped drive-letter colon, a missing alpha
digit) corrupts the whole filter expression and FFmpeg fails with a
parse error that points nowhere near the cause.

HOW: compile_overlay_filter() is a pure function of the settings and the
subtitle path. Colors lose their ``#``; the background color gets the
opacity appended as a two-digit hex alpha; the path gets forward slashes
and backslash-escaped colons.

RULES:
- Defaults for absent fields: fontSize 24, fontColor white,
  backgroundColor #000000, opacity 0.7 (an explicit 0 is kept)
- Alpha = round-half-up(opacity * 255) on the computed float, lowercase
  two-digit hex (0.7 → "b3", since 0.7 * 255 == 178.5 rounds up to 179)
- Position, when set, becomes Alignment=2 plus a MarginV measured from
  the bottom of the 288-line subtitle script resolution
- Same inputs always produce the same string
"""

from __future__ import annotations

import math
from pathlib import Path

from storyreel.core.ir import CaptionSettings

DEFAULT_FONT_SIZE = 24
DEFAULT_FONT_COLOR = "white"
DEFAULT_BACKGROUND_COLOR = "#000000"
DEFAULT_OPACITY = 0.7

# libass renders SRT input on a 384x288 script canvas; margins use its units.
SCRIPT_HEIGHT = 288

_NAMED_COLORS = {
    "white": "FFFFFF",
    "black": "000000",
    "red": "FF0000",
    "green": "00FF00",
    "blue": "0000FF",
    "yellow": "FFFF00",
}


def escape_filter_path(path: str | Path) -> str:
    """Normalize separators to ``/`` and escape ``:`` as ``\\:`` for filter args."""
    return str(path).replace("\\", "/").replace(":", "\\:")


def color_digits(color: str) -> str:
    """Strip ``#`` from a hex color; map simple color names to hex digits."""
    value = color.strip()
    named = _NAMED_COLORS.get(value.lower())
    if named is not None:
        return named
    return value.replace("#", "")


def alpha_hex(opacity: float) -> str:
    """Convert 0–1 opacity to a two-digit lowercase hex alpha byte."""
    clamped = min(max(float(opacity), 0.0), 1.0)
    return "{:02x}".format(math.floor(clamped * 255 + 0.5))


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def compile_force_style(settings: CaptionSettings | None) -> str:
    """Build the comma-separated ``force_style`` body (without quotes)."""
    settings = settings or CaptionSettings()

    font_size = settings.font_size if settings.font_size else DEFAULT_FONT_SIZE
    font_color = settings.font_color or DEFAULT_FONT_COLOR
    background = settings.background_color or DEFAULT_BACKGROUND_COLOR
    opacity = DEFAULT_OPACITY if settings.opacity is None else settings.opacity

    parts = [
        "FontSize={}".format(_format_number(font_size)),
        "PrimaryColour=&H{}".format(color_digits(font_color)),
        "OutlineColour=&H000000",
        "BorderStyle=3",
        "Outline=1",
        "Shadow=0",
        "BackColour=&H{}{}".format(color_digits(background), alpha_hex(opacity)),
    ]

    if settings.position is not None:
        from_bottom = (100.0 - min(max(settings.position.y, 0.0), 100.0)) / 100.0
        parts.append("Alignment=2")
        parts.append("MarginV={}".format(int(round(from_bottom * SCRIPT_HEIGHT))))

    return ",".join(parts)


def compile_overlay_filter(
    settings: CaptionSettings | None,
    subtitle_path: str | Path,
) -> str:
    """Return the complete ``-vf`` argument that burns in the subtitle file.

    Args:
        settings: Caption style; None or empty fields use the defaults.
        subtitle_path: Absolute path to the SRT document in the workspace.

    Returns:
        ``subtitles='<escaped path>':force_style='<style>'``
    """
    return "subtitles='{}':force_style='{}'".format(
        escape_filter_path(subtitle_path),
        compile_force_style(settings),
    )
