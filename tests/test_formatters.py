"""Tests for the caption document formatters (SRT and plain text).

WHY: The SRT document is consumed by FFmpeg's subtitles filter. Timestamp
formatting must truncate (never round) milliseconds, and one malformed
caption must not cost the user the whole document.

HOW: Tests are organized by class:
  - TestTimestamps: HH:MM:SS,mmm formatting and parsing
  - TestRenderSrt: block layout, numbering, defensive filtering
  - TestRoundTrip: render(parse(doc)) == doc for generated documents
  - TestRegistry: FORMATTERS keys and formatter outputs
"""

from __future__ import annotations

import pytest

from storyreel.core.estimator import estimate
from storyreel.core.ir import CaptionSegment, sanitize_segments
from storyreel.formatters import FORMATTERS
from storyreel.formatters.plain_text import PlainTextFormatter
from storyreel.formatters.srt_captions import (
    SRTCaptionFormatter,
    format_timestamp,
    parse_srt,
    parse_timestamp,
    render_srt,
)


class TestTimestamps:

    @pytest.mark.parametrize("seconds, expected", [
        (0, "00:00:00,000"),
        (1.13, "00:00:01,130"),
        (61.5, "00:01:01,500"),
        (3725.0459, "01:02:05,045"),
        (0.9999, "00:00:00,999"),
        (-1.0, "00:00:00,000"),
    ])
    def test_format(self, seconds, expected):
        assert format_timestamp(seconds) == expected

    def test_sub_millisecond_is_truncated_not_rounded(self):
        assert format_timestamp(2.0008) == "00:00:02,000"

    def test_parse_accepts_comma_or_dot(self):
        assert parse_timestamp("01:02:05,045") == pytest.approx(3725.045)
        assert parse_timestamp("00:00:01.130") == pytest.approx(1.13)

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("1:2:3")


class TestRenderSrt:

    def test_block_layout(self):
        doc = render_srt([
            CaptionSegment("Hello world.", 0.0, 1.13),
            CaptionSegment("This is great!", 1.13, 2.54),
        ])
        assert doc == (
            "1\n00:00:00,000 --> 00:00:01,130\nHello world.\n\n"
            "2\n00:00:01,130 --> 00:00:02,540\nThis is great!\n\n"
        )

    def test_accepts_camel_case_dicts(self):
        doc = render_srt([{"text": "Hi", "startTime": 0.5, "endTime": 1}])
        assert doc == "1\n00:00:00,500 --> 00:00:01,000\nHi\n\n"

    def test_malformed_entries_are_skipped(self):
        doc = render_srt([
            {"text": 5, "startTime": 0, "endTime": 1},
            {"text": "ok", "startTime": "0", "endTime": 1},
            None,
            {"text": "Kept", "startTime": 2, "endTime": 3},
            {"text": "bool", "startTime": True, "endTime": 3},
        ])
        assert doc == "1\n00:00:02,000 --> 00:00:03,000\nKept\n\n"

    @pytest.mark.parametrize("bad", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_times_are_skipped(self, bad):
        doc = render_srt([
            {"text": "ok", "startTime": 0, "endTime": 1},
            {"text": "bad end", "startTime": 1.0, "endTime": bad},
            CaptionSegment("bad start", bad, 2.0),
        ])
        assert doc == "1\n00:00:00,000 --> 00:00:01,000\nok\n\n"

    def test_empty_list_is_empty_document(self):
        assert render_srt([]) == ""
        assert render_srt(None) == ""


class TestRoundTrip:

    def test_generated_document_is_stable(self):
        doc = render_srt(estimate(
            "Hello world. This is great! Another sentence follows here. And the end?"
        ))
        parsed = parse_srt(doc)
        captions = sanitize_segments(
            {"text": p["text"], "startTime": p["start"], "endTime": p["end"]}
            for p in parsed
        )
        assert render_srt(captions) == doc

    def test_parse_ignores_blocks_without_timing(self):
        doc = "garbage\n\n1\n00:00:01,000 --> 00:00:02,000\nline one\nline two\n\n"
        assert parse_srt(doc) == [{"text": "line one\nline two", "start": 1.0, "end": 2.0}]

    def test_parse_handles_crlf(self):
        doc = "1\r\n00:00:00,000 --> 00:00:01,500\r\nHi\r\n\r\n"
        assert parse_srt(doc) == [{"text": "Hi", "start": 0.0, "end": 1.5}]


class TestRegistry:

    def test_registered_keys(self):
        assert set(FORMATTERS) == {"srt", "plain_text"}

    def test_srt_formatter_output(self):
        [output] = SRTCaptionFormatter().format([CaptionSegment("Hi", 0, 1)])
        assert output.suffix == ".srt"
        assert output.media_type == "application/x-subrip"
        assert output.content.startswith("1\n00:00:00,000 --> 00:00:01,000\nHi")

    def test_plain_text_joins_captions(self):
        [output] = PlainTextFormatter().format([
            CaptionSegment("Hello   world.", 0, 1),
            CaptionSegment("Bye.", 1, 2),
        ])
        assert output.content == "Hello world. Bye.\n"
        assert output.media_type == "text/plain"

    def test_plain_text_empty(self):
        [output] = PlainTextFormatter().format([])
        assert output.content == ""
