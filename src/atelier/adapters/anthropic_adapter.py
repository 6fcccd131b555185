"""Anthropic provider for the Atelier batch engine.

Converts a CompletionRequest to Anthropic messages format and translates
the streamed message events into TextDelta / UsageReport / StreamDone.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from atelier.adapters.base import (
    BaseProvider,
    CompletionRequest,
    StreamDone,
    StreamEvent,
    TextDelta,
    UsageReport,
    translate_sdk_error,
)
from atelier.adapters.boundary import RequestRateLimiter, check_boundary
from atelier.errors import AtelierError

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 8192


class AnthropicProvider(BaseProvider):
    """Provider for the Anthropic messages streaming API.

    Anthropic reports input tokens on message_start and output tokens on
    message_delta, so usage is emitted once, after the last text delta.
    """

    credential_env_var = "ANTHROPIC_API_KEY"

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        rate_limiter: RequestRateLimiter | None = None,
        identity: str = "local",
    ) -> None:
        self._clients: dict[str, Any] = {}
        self._max_tokens = max_tokens
        self._rate_limiter = rate_limiter
        self._identity = identity

    def _get_client(self, api_key: str) -> Any:
        """Lazily initialize and return the AsyncAnthropic client for api_key."""
        client = self._clients.get(api_key)
        if client is None:
            from anthropic import AsyncAnthropic

            client = AsyncAnthropic(api_key=api_key)
            self._clients[api_key] = client
        return client

    def _convert_messages(self, request: CompletionRequest) -> list[dict[str, Any]]:
        """Convert prior turns and the user prompt to Anthropic messages.

        The system prompt is not included: Anthropic takes it as a
        separate parameter.
        """
        content: Any = request.user_prompt
        if request.images:
            content = [{"type": "text", "text": request.user_prompt}]
            for image in request.images:
                content.append(
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": image.mime_type,
                            "data": image.data,
                        },
                    }
                )

        messages: list[dict[str, Any]] = [
            {"role": turn.role, "content": turn.content} for turn in request.history
        ]
        messages.append({"role": "user", "content": content})
        return messages

    async def stream_completion(
        self, request: CompletionRequest
    ) -> AsyncIterator[StreamEvent]:
        """Stream a message from Anthropic.

        Args:
            request: The completion request.

        Yields:
            TextDelta for each text delta, one UsageReport, then StreamDone.
        """
        api_key = self.resolve_credential(request.credential)
        await check_boundary(request, self._rate_limiter, self._identity)
        client = self._get_client(api_key)

        kwargs: dict[str, Any] = {
            "model": request.model or DEFAULT_MODEL,
            "max_tokens": self._max_tokens,
            "messages": self._convert_messages(request),
            "stream": True,
        }
        if request.system_prompt:
            kwargs["system"] = request.system_prompt

        input_tokens = 0
        output_tokens = 0

        try:
            stream = await client.messages.create(**kwargs)
            async for event in stream:
                if event.type == "content_block_delta":
                    if event.delta.type == "text_delta":
                        yield TextDelta(text=event.delta.text)
                elif event.type == "message_start":
                    usage = getattr(event.message, "usage", None)
                    if usage is not None:
                        input_tokens = usage.input_tokens or 0
                elif event.type == "message_delta":
                    usage = getattr(event, "usage", None)
                    if usage is not None:
                        output_tokens = usage.output_tokens or 0
        except AtelierError:
            raise
        except Exception as exc:
            from anthropic import APIConnectionError

            raise translate_sdk_error(exc, (APIConnectionError,)) from exc

        yield UsageReport(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )
        yield StreamDone()

    def provider_name(self) -> str:
        """Return the provider name."""
        return "anthropic"
