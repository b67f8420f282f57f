"""Tests for the FFmpeg subtitles filter compiler.

WHY: A single wrong character in the filter string makes FFmpeg fail
with an unhelpful parse error, so the exact output is pinned here.
"""

from __future__ import annotations

import pytest

from storyreel.core.ir import CaptionPosition, CaptionSettings
from storyreel.media.overlay import (
    alpha_hex,
    color_digits,
    compile_force_style,
    compile_overlay_filter,
    escape_filter_path,
)


class TestAlpha:

    def test_default_opacity_is_b3(self):
        # 0.7 * 255 evaluates to exactly 178.5, which rounds half up
        assert alpha_hex(0.7) == "b3"

    @pytest.mark.parametrize("opacity, expected", [
        (0, "00"),
        (1, "ff"),
        (0.5, "80"),
        (0.1, "1a"),
        (1.5, "ff"),
        (-0.2, "00"),
    ])
    def test_round_half_up_and_clamp(self, opacity, expected):
        assert alpha_hex(opacity) == expected


class TestColors:

    def test_strips_hash(self):
        assert color_digits("#FF00AA") == "FF00AA"

    def test_named_colors(self):
        assert color_digits("white") == "FFFFFF"
        assert color_digits("Black") == "000000"


class TestPathEscaping:

    def test_windows_drive_path(self):
        assert escape_filter_path("C:\\Temp\\video-export-1\\captions.srt") == (
            "C\\:/Temp/video-export-1/captions.srt"
        )

    def test_posix_path_unchanged(self):
        assert escape_filter_path("/tmp/video-export-1/captions.srt") == (
            "/tmp/video-export-1/captions.srt"
        )


class TestCompile:

    def test_defaults(self):
        assert compile_force_style(CaptionSettings()) == (
            "FontSize=24,PrimaryColour=&HFFFFFF,OutlineColour=&H000000,"
            "BorderStyle=3,Outline=1,Shadow=0,BackColour=&H000000b3"
        )

    def test_none_settings_use_defaults(self):
        assert compile_force_style(None) == compile_force_style(CaptionSettings())

    def test_custom_values(self):
        style = compile_force_style(CaptionSettings(
            font_color="#FFFF00", background_color="#112233", opacity=0.5, font_size=32,
        ))
        assert style.startswith("FontSize=32,PrimaryColour=&HFFFF00,")
        assert style.endswith("BackColour=&H11223380")

    def test_explicit_zero_opacity_is_kept(self):
        assert compile_force_style(CaptionSettings(opacity=0)).endswith("BackColour=&H00000000")

    def test_position_adds_bottom_margin(self):
        style = compile_force_style(CaptionSettings(position=CaptionPosition(x=50, y=75)))
        assert style.endswith(",Alignment=2,MarginV=72")

    def test_full_filter(self):
        result = compile_overlay_filter(CaptionSettings(), "C:\\tmp\\captions.srt")
        assert result == (
            "subtitles='C\\:/tmp/captions.srt':force_style='FontSize=24,"
            "PrimaryColour=&HFFFFFF,OutlineColour=&H000000,BorderStyle=3,"
            "Outline=1,Shadow=0,BackColour=&H000000b3'"
        )

    def test_is_pure(self):
        settings = CaptionSettings(font_size=30, opacity=0.3)
        first = compile_overlay_filter(settings, "/tmp/a.srt")
        assert compile_overlay_filter(settings, "/tmp/a.srt") == first
        assert settings == CaptionSettings(font_size=30, opacity=0.3)

    def test_non_finite_settings_fall_back_to_defaults(self):
        settings = CaptionSettings.from_dict({
            "opacity": float("nan"),
            "fontSize": float("inf"),
            "position": {"x": "left", "y": float("nan")},
        })
        assert compile_force_style(settings) == (
            compile_force_style(CaptionSettings(position=CaptionPosition()))
        )
        assert "BackColour=&H000000b3" in compile_force_style(settings)
