"""Tests for atelier.adapters.anthropic_adapter - Anthropic streaming provider.

Uses unittest.mock to stand in for the Anthropic SDK client, so tests
run without API keys or network access.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from atelier.adapters.anthropic_adapter import AnthropicProvider
from atelier.adapters.base import (
    ChatTurn,
    CompletionRequest,
    ImageAttachment,
    StreamDone,
    TextDelta,
    UsageReport,
)
from atelier.errors import ConnectionFailure, RateLimitError, RequestError


def _message_start(input_tokens: int):
    return SimpleNamespace(
        type="message_start",
        message=SimpleNamespace(usage=SimpleNamespace(input_tokens=input_tokens)),
    )


def _text(text: str):
    return SimpleNamespace(
        type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text)
    )


def _message_delta(output_tokens: int):
    return SimpleNamespace(
        type="message_delta", usage=SimpleNamespace(output_tokens=output_tokens)
    )


async def _stream(events):
    for event in events:
        yield event


def _provider_with(events=None, side_effect=None) -> tuple[AnthropicProvider, MagicMock]:
    provider = AnthropicProvider()
    client = MagicMock()
    if side_effect is not None:
        client.messages.create = AsyncMock(side_effect=side_effect)
    else:
        client.messages.create = AsyncMock(return_value=_stream(events or []))
    provider._clients["sk-ant-test"] = client
    return provider, client


def _request(**overrides) -> CompletionRequest:
    defaults = {
        "system_prompt": "You are helpful.",
        "user_prompt": "Hello",
        "model": "claude-3-5-haiku-20241022",
        "credential": "sk-ant-test",
    }
    defaults.update(overrides)
    return CompletionRequest(**defaults)


async def _events(provider, request) -> list:
    return [event async for event in provider.stream_completion(request)]


class TestAnthropicConvertMessages:
    """Test request conversion to Anthropic messages format."""

    def test_system_prompt_not_in_messages(self):
        messages = AnthropicProvider()._convert_messages(_request())
        assert messages == [{"role": "user", "content": "Hello"}]

    def test_history_precedes_user(self):
        request = _request(history=[ChatTurn(role="user", content="a"), ChatTurn(role="assistant", content="b")])
        messages = AnthropicProvider()._convert_messages(request)
        assert [m["role"] for m in messages] == ["user", "assistant", "user"]

    def test_images_use_base64_blocks(self):
        request = _request(images=[ImageAttachment(data="QUJD", mime_type="image/png")])
        content = AnthropicProvider()._convert_messages(request)[-1]["content"]
        assert content[0] == {"type": "text", "text": "Hello"}
        assert content[1] == {
            "type": "image",
            "source": {"type": "base64", "media_type": "image/png", "data": "QUJD"},
        }


class TestAnthropicStreamCompletion:
    """Test stream translation with a mocked client."""

    @pytest.mark.asyncio
    async def test_text_then_single_usage_then_done(self):
        provider, client = _provider_with([
            _message_start(25),
            SimpleNamespace(type="content_block_start"),
            _text("Hi"),
            _text(" there"),
            SimpleNamespace(type="content_block_stop"),
            _message_delta(7),
            SimpleNamespace(type="message_stop"),
        ])
        events = await _events(provider, _request())

        assert events == [
            TextDelta(text="Hi"),
            TextDelta(text=" there"),
            UsageReport(prompt_tokens=25, completion_tokens=7, total_tokens=32),
            StreamDone(),
        ]
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "You are helpful."
        assert kwargs["max_tokens"] == 8192
        assert kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_non_text_deltas_ignored(self):
        provider, _ = _provider_with([
            SimpleNamespace(
                type="content_block_delta",
                delta=SimpleNamespace(type="input_json_delta", partial_json="{"),
            ),
            _text("ok"),
        ])
        result = await provider.complete(_request())
        assert result.content == "ok"

    @pytest.mark.asyncio
    async def test_429_becomes_rate_limit(self):
        exc = Exception("rate limited")
        exc.status_code = 429  # type: ignore[attr-defined]
        provider, _ = _provider_with(side_effect=exc)
        with pytest.raises(RateLimitError):
            await _events(provider, _request())

    @pytest.mark.asyncio
    async def test_overloaded_becomes_request_error(self):
        exc = Exception("overloaded")
        exc.status_code = 529  # type: ignore[attr-defined]
        exc.body = {"error": {"type": "overloaded_error", "message": "Overloaded"}}  # type: ignore[attr-defined]
        provider, _ = _provider_with(side_effect=exc)
        with pytest.raises(RequestError) as exc_info:
            await _events(provider, _request())
        assert exc_info.value.message == "Overloaded"
        assert exc_info.value.status == 529

    @pytest.mark.asyncio
    async def test_timeout_becomes_connection_failure(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        provider, _ = _provider_with(side_effect=anthropic.APITimeoutError(request=request))
        with pytest.raises(ConnectionFailure) as exc_info:
            await _events(provider, _request())
        assert exc_info.value.status is None
        assert exc_info.value.transient

    def test_provider_name(self):
        assert AnthropicProvider().provider_name() == "anthropic"
