"""Tests for text-based caption timing estimation.

WHY: When transcription is unavailable, the estimator is the only
source of caption timing. Downstream sync logic is tuned to its
granularity, so the per-word constants and contiguity must not drift.

HOW: Tests are organized by class:
  - TestSplitSentences: boundary and terminator splitting
  - TestEstimate: per-word durations, contiguity, invalid input
  - TestEstimateByProportion: proportional slices and derived duration
"""

from __future__ import annotations

import pytest

from storyreel.core.estimator import (
    estimate,
    estimate_by_proportion,
    estimate_duration,
    split_sentences,
    word_duration,
)


class TestSplitSentences:

    def test_splits_on_punctuation_before_uppercase(self):
        assert split_sentences("Hello world. This is great!") == [
            "Hello world.", "This is great!",
        ]

    def test_question_and_exclamation_boundaries(self):
        assert split_sentences("Ready? Go! Now.") == ["Ready?", "Go!", "Now."]

    def test_lowercase_after_period_uses_terminator_split(self):
        assert split_sentences("one. two. three") == ["one.", "two.", "three"]

    def test_no_punctuation_is_one_sentence(self):
        assert split_sentences("  just some words  ") == ["just some words"]

    def test_decimal_point_does_not_split(self):
        assert split_sentences("It cost 3.50 dollars. Then What?") == [
            "It cost 3.50 dollars.", "Then What?",
        ]


class TestEstimate:

    def test_hello_world_example(self, sample_text):
        segments = estimate(sample_text)
        assert len(segments) == 2
        assert segments[0].text == "Hello world."
        assert segments[0].start_time == 0
        assert segments[0].duration == pytest.approx(1.13)
        assert segments[1].start_time == segments[0].end_time
        assert segments[1].text == "This is great!"

    def test_word_duration_constants(self):
        assert word_duration("a") == pytest.approx(0.28)
        assert word_duration("hello") == pytest.approx(0.40)

    def test_segments_are_contiguous_and_increasing(self):
        text = "First one here. Second sentence follows! Third? Fourth and last."
        segments = estimate(text)
        assert len(segments) == 4
        assert segments[0].start_time == 0
        for prev, nxt in zip(segments, segments[1:]):
            assert prev.end_time == nxt.start_time
            assert nxt.end_time > nxt.start_time

    @pytest.mark.parametrize("value", ["", "   \n\t", None, 42, ["Hello."]])
    def test_invalid_input_returns_empty(self, value):
        assert estimate(value) == []


class TestEstimateByProportion:

    def test_slices_sum_to_total_duration(self):
        segments = estimate_by_proportion("Short. A much longer sentence here.", 10.0)
        assert len(segments) == 2
        assert segments[0].start_time == 0
        assert segments[-1].end_time == pytest.approx(10.0)
        assert segments[0].end_time == segments[1].start_time

    def test_slices_proportional_to_characters(self):
        segments = estimate_by_proportion("Aaaa. Bbbbbbbbb.", 3.0)
        # 5 and 10 trimmed characters
        assert segments[0].duration == pytest.approx(1.0)
        assert segments[1].duration == pytest.approx(2.0)

    def test_missing_duration_uses_three_words_per_second(self):
        text = "one two three. four five six."
        assert estimate_duration(text) == pytest.approx(2.0)
        segments = estimate_by_proportion(text)
        assert segments[-1].end_time == pytest.approx(2.0)

    def test_non_positive_duration_is_replaced(self):
        segments = estimate_by_proportion("one two three", -5)
        assert segments[-1].end_time == pytest.approx(1.0)

    def test_unterminated_tail_is_kept(self):
        segments = estimate_by_proportion("done. and more", 2.0)
        assert [s.text for s in segments] == ["done.", "and more"]

    @pytest.mark.parametrize("value", ["", "  ", None])
    def test_invalid_input_returns_empty(self, value):
        assert estimate_by_proportion(value, 5.0) == []
