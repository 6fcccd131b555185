"""Provider boundary checks: input size limits and request-rate budget.

These run at the provider boundary, immediately before an upstream call.
The batch engine itself does not enforce them.
"""

from __future__ import annotations

import asyncio
import logging
import time

from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from atelier.adapters.base import CompletionRequest
from atelier.errors import RateLimitError, ValidationError

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 100_000
MAX_IMAGES = 10
MAX_HISTORY_TURNS = 100

DEFAULT_RATE_LIMIT = "20/minute"

# Floor for a single wait so a stale window estimate cannot spin the loop
MIN_WAIT_SECONDS = 0.05


def validate_request(request: CompletionRequest) -> None:
    """Reject requests that exceed the boundary's input limits.

    Raises:
        ValidationError: If a prompt is too long, too many images are
            attached, or the prior-turn history is too long.
    """
    if len(request.system_prompt) > MAX_PROMPT_CHARS:
        raise ValidationError("System prompt is too long")
    if len(request.user_prompt) > MAX_PROMPT_CHARS:
        raise ValidationError("User prompt is too long")
    if len(request.images) > MAX_IMAGES:
        raise ValidationError(f"Too many images. Maximum {MAX_IMAGES} allowed.")
    if len(request.history) > MAX_HISTORY_TURNS:
        raise ValidationError("Conversation history is too long")


def parse_rate_limit(limit: str) -> RateLimitItem:
    """Parse a rate-limit string such as ``"20/minute"`` or ``"3/15minutes"``.

    Raises:
        ValueError: If the string is not a single valid limit or allows
            zero requests.
    """
    item = parse(limit)
    if item.amount < 1:
        raise ValueError(f"rate limit {limit!r} must allow at least one request")
    return item


class RequestRateLimiter:
    """Per-identity request budget over a moving time window.

    Backed by the ``limits`` moving-window strategy on in-process storage.
    With ``block=False`` an exhausted budget raises RateLimitError; with
    ``block=True`` acquire() waits until the oldest request in the window
    expires, which is what a long batch run wants.
    """

    def __init__(self, limit: str = DEFAULT_RATE_LIMIT, block: bool = False) -> None:
        self.limit = parse_rate_limit(limit)
        self.block = block
        self._storage = MemoryStorage()
        self._strategy = MovingWindowRateLimiter(self._storage)

    def try_acquire(self, identity: str) -> bool:
        """Record a request for identity if the budget allows it."""
        return self._strategy.hit(self.limit, identity)

    def remaining(self, identity: str) -> int:
        """Number of requests identity may still make in the current window."""
        return self._strategy.get_window_stats(self.limit, identity).remaining

    def seconds_until_free(self, identity: str) -> float:
        """How long until identity's oldest request leaves the window."""
        stats = self._strategy.get_window_stats(self.limit, identity)
        return max(0.0, stats.reset_time - time.time())

    async def acquire(self, identity: str) -> None:
        """Charge one request to identity's budget.

        Raises:
            RateLimitError: If the budget is exhausted and the limiter
                does not block.
        """
        while not self.try_acquire(identity):
            if not self.block:
                raise RateLimitError()
            delay = max(self.seconds_until_free(identity), MIN_WAIT_SECONDS)
            logger.info("Rate limit %s reached for %s; waiting %.2fs", self.limit, identity, delay)
            await asyncio.sleep(delay)

    def reset(self) -> None:
        """Forget every recorded request."""
        self._storage.reset()


async def check_boundary(
    request: CompletionRequest,
    rate_limiter: RequestRateLimiter | None = None,
    identity: str = "local",
) -> None:
    """Apply the input limits, then charge one request to identity's budget."""
    validate_request(request)
    if rate_limiter is not None:
        await rate_limiter.acquire(identity)
