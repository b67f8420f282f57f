"""Tests for provider response parsing and transcript-to-caption mapping."""

from __future__ import annotations

from storyreel.api.models import ProviderSegment, TranscriptionResponse
from storyreel.core.transcript import map_transcript


def test_response_parses_segments_and_keeps_extra_fields(sample_transcription):
    response = TranscriptionResponse.from_dict(sample_transcription)
    assert response.language == "English"
    assert len(response.segments) == 2
    first = response.segments[0]
    assert first.text == " Hello world."
    assert first.extra["avg_logprob"] == -0.21
    assert "text" not in first.extra


def test_missing_segments_key_is_empty_list():
    assert TranscriptionResponse.from_dict({"text": "hi"}).segments == []


def test_maps_one_to_one_and_trims_text(sample_transcription):
    response = TranscriptionResponse.from_dict(sample_transcription)
    captions = map_transcript(response.segments)
    assert [c.text for c in captions] == ["Hello world.", "This is great!"]
    assert captions[0].start_time == 0.0
    assert captions[0].end_time == 1.2
    assert captions[1].start_time == 1.2


def test_timestamps_pass_through_unmodified():
    seg = ProviderSegment(text="x", start=0.123456789, end=9.87654321)
    [caption] = map_transcript([seg])
    assert caption.start_time == 0.123456789
    assert caption.end_time == 9.87654321


def test_accepts_raw_dicts_with_words():
    [caption] = map_transcript([{
        "text": "  Hi there ",
        "start": 0.5,
        "end": 1.0,
        "words": [{"word": " Hi", "start": 0.5, "end": 0.7}],
    }])
    assert caption.text == "Hi there"
    assert caption.words[0].text == "Hi"
    assert caption.to_dict()["words"] == [{"text": "Hi", "start": 0.5, "end": 0.7}]


def test_empty_or_none_returns_empty_and_logs(caplog):
    assert map_transcript(None) == []
    assert map_transcript([]) == []
    assert "No segments found" in caplog.text


# ---------------------------------------------------------------------------
# Malformed provider segments
# ---------------------------------------------------------------------------


def test_segment_missing_end_is_skipped_and_rest_kept(caplog):
    response = TranscriptionResponse.from_dict({
        "text": " Hello world. This is great!",
        "segments": [
            {"start": 0.0, "end": 1.2, "text": " Hello world."},
            {"start": 1.2, "text": " This is great!"},
            {"start": "soon", "end": 3.0, "text": " Bad time."},
            "not a segment",
        ],
    })
    assert [s.text for s in response.segments] == [" Hello world."]
    assert "Skipping malformed transcription segment" in caplog.text


def test_blank_and_inverted_segments_are_dropped(caplog):
    captions = map_transcript([
        {"text": " Hello world.", "start": 0.0, "end": 1.2},
        {"text": "   ", "start": 1.2, "end": 1.9},
        {"text": " Backwards.", "start": 3.0, "end": 2.0},
        {"text": " Zero length.", "start": 3.0, "end": 3.0},
        {"text": " Infinite.", "start": 3.0, "end": float("inf")},
        {"text": " This is great!", "start": 1.9, "end": 2.4},
    ])
    assert [c.text for c in captions] == ["Hello world.", "This is great!"]
    assert all(c.text for c in captions)
    assert "Dropped 4 unusable transcription segments" in caplog.text


def test_only_blank_segments_map_to_empty():
    assert map_transcript([ProviderSegment(text=" ", start=0.0, end=1.0)]) == []


def test_raw_dicts_and_parsed_segments_map_the_same(sample_transcription):
    parsed = TranscriptionResponse.from_dict(sample_transcription).segments
    assert map_transcript(sample_transcription["segments"]) == map_transcript(parsed)
