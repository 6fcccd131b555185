"""Re-issue a pair's request when it failed for a transient reason.

The batch runner calls retry_with_backoff() with a factory that builds a
brand-new request (and therefore a fresh stream) on every attempt; a
half-consumed stream is never resumed.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from atelier.errors import RequestError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    """Classify a failed attempt.

    Atelier request errors decide for themselves: connection failures,
    rate limiting and 5xx statuses are transient; anything else the
    upstream rejected is not. Custom providers that let a bare timeout or
    connection error escape are treated the same way.
    """
    if isinstance(exc, RequestError):
        return exc.transient
    return isinstance(exc, (TimeoutError, ConnectionError))


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Full-jitter exponential delay before retry number ``attempt + 1``."""
    ceiling = min(base_delay * (2 ** attempt), max_delay)
    return random.uniform(0, ceiling)  # noqa: S311


async def retry_with_backoff(
    attempt_factory: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> tuple[T, int]:
    """Await a fresh attempt until one succeeds or retrying stops making sense.

    Args:
        attempt_factory: Builds a new awaitable for each attempt.
        max_retries: Extra attempts after the first (0 disables retry).
        base_delay: Delay ceiling in seconds before the first retry.
        max_delay: Upper bound on any single delay.

    Returns:
        (result, retries_used).

    Raises:
        Exception: The first non-transient error, or the last transient
            one once max_retries is used up.
    """
    retries_used = 0
    while True:
        try:
            return await attempt_factory(), retries_used
        except Exception as exc:
            if retries_used >= max_retries or not is_transient(exc):
                raise
            delay = backoff_delay(retries_used, base_delay, max_delay)
            retries_used += 1
            logger.info(
                "Transient %s (%s); attempt %d of %d in %.2fs",
                type(exc).__name__, exc, retries_used + 1, max_retries + 1, delay,
            )
            await asyncio.sleep(delay)
