"""Keep the displayed caption in step with a playback clock.

WHY: Captions are useful only if the right one is on screen at the
right moment, and re-rendering on every clock tick is wasteful. The
synchronizer resolves the single active caption for each tick and
notifies listeners only when it changes.

HOW: on_tick() is a pure lookup plus a dedupe check against the last
emitted text. It is scheduler-agnostic: a media element event, a timer,
the async run() helper, or a test harness may call it. Each call maps to
exactly one clock update, in order.

RULES:
- Not playing or no segments: emit "" once if something was showing
- Lookup: first segment (in sorted order) with start <= t <= end
- If none, retry with a 0.1s lookahead on the start boundary only
- Overlapping segments resolve to the first match in sort order; this
  tie-break is defined behaviour
- Never emit the same text twice in a row
- After stop(), ticks are no-ops and listeners are detached
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Sequence

from storyreel.core.ir import CaptionSegment, PlaybackClock, sanitize_segments

logger = logging.getLogger(__name__)

LOOKAHEAD_S = 0.1

CaptionListener = Callable[[str], None]


def find_active_segment(
    segments: Sequence[CaptionSegment],
    current_time: float,
    lookahead: float = LOOKAHEAD_S,
) -> CaptionSegment | None:
    """Return the caption that should be visible at ``current_time``.

    HOW: Exact containment first, then a second pass that accepts
    ``current_time >= start_time - lookahead`` to mask sub-frame gaps
    between consecutive segments.
    """
    for segment in segments:
        if segment.contains(current_time):
            return segment
    for segment in segments:
        if segment.contains(current_time, lookahead):
            return segment
    return None


class PlaybackSynchronizer:
    """Resolve and publish the active caption for each clock tick.

    WHY: Owners of the playback clock (an audio player, a preview
    renderer, a test) need one object that remembers what is on screen
    and tells subscribers only about changes.

    HOW: Holds a sanitized, sorted segment list and the last emitted
    caption. Listeners are plain callables receiving the new text.

    RULES:
    - set_segments() replaces the list (never merges)
    - subscribe() returns an unsubscribe callable
    - stop() clears the caption if needed, then detaches everything
    """

    def __init__(
        self,
        segments: Sequence[CaptionSegment] | None = None,
        lookahead: float = LOOKAHEAD_S,
    ) -> None:
        self._segments: list[CaptionSegment] = sanitize_segments(segments)
        self._lookahead = lookahead
        self._active = ""
        self._listeners: list[CaptionListener] = []
        self._stopped = False

    @property
    def active_caption(self) -> str:
        return self._active

    @property
    def segments(self) -> list[CaptionSegment]:
        return list(self._segments)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def set_segments(self, segments: Sequence[CaptionSegment] | None) -> None:
        """Replace the caption list, e.g. after a new narration is generated."""
        self._segments = sanitize_segments(segments)

    def subscribe(self, listener: CaptionListener) -> Callable[[], None]:
        """Register a change listener and return its unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, text: str) -> None:
        self._active = text
        for listener in list(self._listeners):
            try:
                listener(text)
            except Exception:
                logger.exception("Caption listener failed")

    def on_tick(
        self,
        clock: PlaybackClock,
        segments: Sequence[CaptionSegment] | None = None,
    ) -> str:
        """Process one clock update and return the active caption.

        Args:
            clock: Current playback state.
            segments: Sorted segments to use for this tick; defaults to
                      the list held by the synchronizer.

        Returns:
            The caption now active ("" when none).
        """
        if self._stopped:
            return ""

        if segments is None:
            segments = self._segments

        if not clock.is_playing or not segments:
            if self._active != "":
                self._emit("")
            return self._active

        found = find_active_segment(segments, clock.current_time, self._lookahead)
        text = found.text if found is not None else ""
        if text != self._active:
            self._emit(text)
        return self._active

    def stop(self) -> None:
        """End the session: clear the caption once, then detach listeners."""
        if self._stopped:
            return
        if self._active != "":
            self._emit("")
        self._listeners.clear()
        self._stopped = True

    async def run(self, clocks: AsyncIterator[PlaybackClock]) -> None:
        """Drive on_tick from an async stream of clock snapshots.

        RULES:
        - One on_tick per snapshot, in arrival order
        - stop() runs when the stream ends, fails, or the task is cancelled
        """
        try:
            async for clock in clocks:
                self.on_tick(clock)
        finally:
            self.stop()
