"""Tests for atelier.adapters.boundary - input limits and request-rate budget."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from atelier.adapters.base import ChatTurn, CompletionRequest, ImageAttachment
from atelier.adapters.boundary import (
    MAX_PROMPT_CHARS,
    RequestRateLimiter,
    check_boundary,
    parse_rate_limit,
    validate_request,
)
from atelier.errors import RateLimitError, ValidationError


def _request(**overrides) -> CompletionRequest:
    defaults = {"system_prompt": "s", "user_prompt": "u", "model": "m"}
    defaults.update(overrides)
    return CompletionRequest(**defaults)


class TestValidateRequest:
    """Test input size limits."""

    def test_within_limits(self):
        validate_request(_request(system_prompt="x" * MAX_PROMPT_CHARS))

    def test_system_prompt_too_long(self):
        with pytest.raises(ValidationError, match="System prompt is too long"):
            validate_request(_request(system_prompt="x" * (MAX_PROMPT_CHARS + 1)))

    def test_user_prompt_too_long(self):
        with pytest.raises(ValidationError, match="User prompt is too long"):
            validate_request(_request(user_prompt="x" * (MAX_PROMPT_CHARS + 1)))

    def test_too_many_images(self):
        images = [ImageAttachment(data="a", mime_type="image/png")] * 11
        with pytest.raises(ValidationError, match="Maximum 10 allowed"):
            validate_request(_request(images=images))

    def test_ten_images_allowed(self):
        validate_request(_request(images=[ImageAttachment(data="a", mime_type="image/png")] * 10))

    def test_history_too_long(self):
        history = [ChatTurn(role="user", content="x")] * 101
        with pytest.raises(ValidationError, match="history is too long"):
            validate_request(_request(history=history))


class TestParseRateLimit:
    """Test rate-limit string parsing."""

    def test_accepts_common_forms(self):
        assert parse_rate_limit("20/minute").amount == 20
        assert parse_rate_limit("3/15minutes").amount == 3

    @pytest.mark.parametrize("value", ["", "twenty per minute", "0/minute"])
    def test_rejects_unusable_limits(self, value):
        with pytest.raises(ValueError):
            parse_rate_limit(value)


class TestRequestRateLimiter:
    """Test the per-identity moving window."""

    def test_admits_up_to_budget(self):
        limiter = RequestRateLimiter("3/minute")
        assert [limiter.try_acquire("a") for _ in range(4)] == [True, True, True, False]

    def test_identities_are_independent(self):
        limiter = RequestRateLimiter("1/minute")
        assert limiter.try_acquire("a") is True
        assert limiter.try_acquire("b") is True
        assert limiter.try_acquire("a") is False

    def test_limiters_do_not_share_storage(self):
        first = RequestRateLimiter("1/minute")
        second = RequestRateLimiter("1/minute")
        assert first.try_acquire("a") is True
        assert second.try_acquire("a") is True

    @pytest.mark.asyncio
    async def test_remaining(self):
        limiter = RequestRateLimiter("20/minute")
        assert limiter.remaining("a") == 20
        for _ in range(5):
            await limiter.acquire("a")
        assert limiter.remaining("a") == 15
        limiter.reset()
        assert limiter.remaining("a") == 20

    def test_seconds_until_free_within_window(self):
        limiter = RequestRateLimiter("1/minute")
        limiter.try_acquire("a")
        assert 0 < limiter.seconds_until_free("a") <= 60

    @pytest.mark.asyncio
    async def test_acquire_raises_rate_limit_error(self):
        limiter = RequestRateLimiter("1/minute")
        await limiter.acquire("a")
        with pytest.raises(RateLimitError) as exc_info:
            await limiter.acquire("a")
        assert exc_info.value.status == 429
        assert "Rate limit exceeded" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_blocking_acquire_waits_for_the_window(self):
        limiter = RequestRateLimiter("1/minute", block=True)
        await limiter.acquire("a")

        delays: list[float] = []

        async def fake_sleep(delay: float) -> None:
            delays.append(delay)
            limiter.reset()

        with patch("atelier.adapters.boundary.asyncio.sleep", side_effect=fake_sleep):
            await limiter.acquire("a")

        assert len(delays) == 1
        assert 0 < delays[0] <= 60
        assert limiter.remaining("a") == 0

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            RequestRateLimiter("often")


class TestCheckBoundary:
    """Test the combined boundary check."""

    @pytest.mark.asyncio
    async def test_invalid_request_does_not_consume_budget(self):
        limiter = RequestRateLimiter("1/minute")
        with pytest.raises(ValidationError):
            await check_boundary(_request(user_prompt="x" * (MAX_PROMPT_CHARS + 1)), limiter)
        assert limiter.remaining("local") == 1

    @pytest.mark.asyncio
    async def test_without_limiter_only_validates(self):
        await check_boundary(_request())
