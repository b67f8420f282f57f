"""Tests for retry-with-backoff and the caption fallback coordinator.

WHY: Transcription is a flaky network dependency. The retry policy must
be exact (two retries, 1s then 2s, ±50% jitter, transient errors only),
and the coordinator must always hand back captions without raising.

HOW: Async code runs under asyncio.run inside plain test functions.
Sleeping is replaced by a recorder (no real delays) and jitter is pinned
with rand=lambda: 0.5, which makes the jitter factor exactly 1.

RULES:
- No test sleeps for real
- Provider failures are simulated with FakeProvider from conftest
"""

from __future__ import annotations

import asyncio
import errno

import pytest

from conftest import FakeProvider, SAMPLE_TEXT, WAV_BYTES
from storyreel.core.fallback import SOURCE_ESTIMATED, SOURCE_TRANSCRIPT, produce_captions
from storyreel.core.retry import backoff_delay, is_transient_error, retry_with_backoff
from storyreel.errors import ProviderAPIError, RateLimitError, TransientProviderError


def _reset() -> ConnectionResetError:
    return ConnectionResetError(errno.ECONNRESET, "read ECONNRESET")


# ---------------------------------------------------------------------------
# is_transient_error / backoff_delay
# ---------------------------------------------------------------------------


class TestTransientPredicate:

    @pytest.mark.parametrize("exc", [
        _reset(),
        TransientProviderError("boom"),
        OSError(errno.ECONNRESET, "reset"),
        RuntimeError("Connection error."),
    ])
    def test_transient(self, exc):
        assert is_transient_error(exc)

    @pytest.mark.parametrize("exc", [
        ProviderAPIError(401, "invalid api key"),
        RateLimitError("slow down"),
        ValueError("bad input"),
    ])
    def test_not_transient(self, exc):
        assert not is_transient_error(exc)


def test_backoff_delay_without_jitter():
    assert backoff_delay(0, rand=lambda: 0.5) == pytest.approx(1.0)
    assert backoff_delay(1, rand=lambda: 0.5) == pytest.approx(2.0)


def test_backoff_delay_jitter_bounds():
    assert backoff_delay(0, rand=lambda: 0.0) == pytest.approx(0.5)
    assert backoff_delay(1, rand=lambda: 0.9999999) == pytest.approx(3.0, rel=1e-5)


# ---------------------------------------------------------------------------
# retry_with_backoff
# ---------------------------------------------------------------------------


class TestRetryWithBackoff:

    def test_returns_first_success(self, no_sleep):
        calls = []

        async def fn():
            calls.append(1)
            return "ok"

        assert asyncio.run(retry_with_backoff(fn, sleep=no_sleep)) == "ok"
        assert len(calls) == 1
        assert no_sleep.delays == []

    def test_retries_transient_then_succeeds(self, no_sleep):
        attempts = []

        async def fn():
            attempts.append(1)
            if len(attempts) < 3:
                raise _reset()
            return "done"

        result = asyncio.run(retry_with_backoff(fn, sleep=no_sleep, rand=lambda: 0.5))
        assert result == "done"
        assert len(attempts) == 3
        assert no_sleep.delays == [pytest.approx(1.0), pytest.approx(2.0)]

    def test_gives_up_after_max_retries(self, no_sleep):
        attempts = []

        async def fn():
            attempts.append(1)
            raise _reset()

        with pytest.raises(ConnectionResetError):
            asyncio.run(retry_with_backoff(fn, sleep=no_sleep))
        assert len(attempts) == 3

    def test_non_retryable_error_raises_immediately(self, no_sleep):
        attempts = []

        async def fn():
            attempts.append(1)
            raise ProviderAPIError(400, "bad request")

        with pytest.raises(ProviderAPIError):
            asyncio.run(retry_with_backoff(fn, sleep=no_sleep))
        assert len(attempts) == 1
        assert no_sleep.delays == []

    def test_cancellation_propagates_during_delay(self):
        async def fn():
            raise _reset()

        async def main():
            task = asyncio.create_task(retry_with_backoff(fn, base_delay=10.0))
            await asyncio.sleep(0.01)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(main())


# ---------------------------------------------------------------------------
# produce_captions
# ---------------------------------------------------------------------------


class TestProduceCaptions:

    def test_transcript_after_two_connection_resets(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [_reset(), _reset(), provider.transcriptions[0]]

        result = asyncio.run(produce_captions(
            SAMPLE_TEXT, WAV_BYTES, provider, sleep=no_sleep, rand=lambda: 0.5,
        ))
        assert result.source == SOURCE_TRANSCRIPT
        assert provider.transcribe_calls == 3
        assert no_sleep.delays == [pytest.approx(1.0), pytest.approx(2.0)]
        assert [s.text for s in result.segments] == ["Hello world.", "This is great!"]

    def test_exhausted_retries_fall_back_to_estimate(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [_reset()]

        result = asyncio.run(produce_captions(SAMPLE_TEXT, WAV_BYTES, provider, sleep=no_sleep))
        assert result.source == SOURCE_ESTIMATED
        assert provider.transcribe_calls == 3
        # 5 words at 3 words/s, split by character share
        assert result.segments[-1].end_time == pytest.approx(5 / 3)
        assert [s.text for s in result.segments] == ["Hello world.", "This is great!"]

    def test_non_retryable_error_falls_back_without_retry(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [ProviderAPIError(401, "invalid api key")]

        result = asyncio.run(produce_captions(SAMPLE_TEXT, WAV_BYTES, provider, sleep=no_sleep))
        assert result.source == SOURCE_ESTIMATED
        assert provider.transcribe_calls == 1
        assert no_sleep.delays == []

    def test_known_duration_is_used_by_fallback(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [ValueError("unexpected")]

        result = asyncio.run(produce_captions(
            SAMPLE_TEXT, WAV_BYTES, provider, duration=9.0, sleep=no_sleep,
        ))
        assert result.segments[-1].end_time == pytest.approx(9.0)

    def test_empty_transcript_falls_back(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [{"text": "", "segments": []}]

        result = asyncio.run(produce_captions(SAMPLE_TEXT, WAV_BYTES, provider, sleep=no_sleep))
        assert result.source == SOURCE_ESTIMATED
        assert len(result.segments) == 2

    def test_no_provider_estimates(self):
        result = asyncio.run(produce_captions(SAMPLE_TEXT, WAV_BYTES, None))
        assert result.source == SOURCE_ESTIMATED
        assert len(result.segments) == 2

    def test_total_failure_returns_empty_estimated(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [_reset()]

        result = asyncio.run(produce_captions("   ", WAV_BYTES, provider, sleep=no_sleep))
        assert result.segments == []
        assert result.source == SOURCE_ESTIMATED
        assert result.to_dict() == {"captions": [], "source": "estimated"}

    def test_one_malformed_segment_keeps_transcript(self, no_sleep):
        provider = FakeProvider()
        provider.transcriptions = [{
            "text": " Hello world. This is great!",
            "segments": [
                {"start": 0.0, "end": 1.2, "text": " Hello world."},
                {"start": 1.2, "text": " This is great!"},
                {"start": 1.2, "end": 2.0, "text": "   "},
            ],
        }]

        result = asyncio.run(produce_captions(SAMPLE_TEXT, WAV_BYTES, provider, sleep=no_sleep))
        assert result.source == SOURCE_TRANSCRIPT
        assert [s.to_dict() for s in result.segments] == [
            {"text": "Hello world.", "startTime": 0.0, "endTime": 1.2},
        ]
