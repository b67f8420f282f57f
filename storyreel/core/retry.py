"""Generic async retry with exponential backoff and jitter.

WHY: Provider calls fail transiently (connection resets, dropped
sockets). The retry policy must be applied the same way at every call
site, so it lives here as one parameterized higher-order function
instead of being inlined per caller.

HOW: Call ``fn()`` until it succeeds, the error is not retryable, or
``max_retries`` retries are used up. Between attempts, sleep
``base_delay * multiplier**n`` seconds scaled by a random factor in
``[1 - jitter, 1 + jitter]``. Sleeping uses asyncio.sleep, so the event
loop stays responsive and cancelling the awaiting task abandons the
in-flight attempt immediately.

RULES:
- Default policy: 2 retries (3 attempts), 1s base, x2, ±50% jitter
- Non-retryable errors propagate on the first occurrence
- The last error propagates unchanged once retries are exhausted
- asyncio.CancelledError is never swallowed
"""

from __future__ import annotations

import asyncio
import errno
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from storyreel.errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2
DEFAULT_BASE_DELAY_S = 1.0
DEFAULT_MULTIPLIER = 2.0
DEFAULT_JITTER = 0.5


def is_transient_error(exc: BaseException) -> bool:
    """True for connection-level failures worth retrying.

    RULES:
    - TransientProviderError and built-in ConnectionError (incl. reset) retry
    - OSError with errno ECONNRESET retries
    - Messages containing "Connection error" retry
    - Everything else (auth, validation, policy) does not
    """
    if isinstance(exc, (TransientProviderError, ConnectionError)):
        return True
    if isinstance(exc, OSError) and exc.errno == errno.ECONNRESET:
        return True
    return "Connection error" in str(exc) or "ECONNRESET" in str(exc)


def backoff_delay(
    retry_index: int,
    base_delay: float = DEFAULT_BASE_DELAY_S,
    multiplier: float = DEFAULT_MULTIPLIER,
    jitter: float = DEFAULT_JITTER,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before retry number ``retry_index`` (0-based), with jitter applied."""
    factor = 1.0 + jitter * (2.0 * rand() - 1.0)
    return base_delay * (multiplier ** retry_index) * factor


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY_S,
    multiplier: float = DEFAULT_MULTIPLIER,
    jitter: float = DEFAULT_JITTER,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """Await ``fn()`` with retries on retryable errors.

    Args:
        fn: Zero-argument coroutine factory; called once per attempt.
        max_retries: Retries after the first attempt.
        base_delay: Seconds before the first retry (before jitter).
        multiplier: Growth factor per retry.
        jitter: Relative jitter; 0.5 means ±50%.
        is_retryable: Predicate deciding whether an error is retried.
        sleep: Async sleep, injectable for tests.
        rand: Uniform [0, 1) source, injectable for tests.

    Returns:
        The first successful result of ``fn()``.
    """
    retries = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if retries >= max_retries or not is_retryable(exc):
                raise
            delay = backoff_delay(retries, base_delay, multiplier, jitter, rand)
            retries += 1
            logger.info(
                "Retry %d/%d after %.0fms due to connection error: %s",
                retries, max_retries, delay * 1000, exc,
            )
            await sleep(delay)
