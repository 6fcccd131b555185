"""OpenAI provider for the Atelier batch engine.

Converts a CompletionRequest to OpenAI chat completion format and
translates the streamed chunks into TextDelta / UsageReport / StreamDone.
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

DEFAULT_MODEL = "gpt-4o"


class OpenAIProvider(BaseProvider):
    """Provider for the OpenAI chat completion streaming API.

    A client is created per credential and cached, so one provider can
    serve several API keys.
    """

    credential_env_var = "OPENAI_API_KEY"

    def __init__(
        self,
        rate_limiter: RequestRateLimiter | None = None,
        identity: str = "local",
    ) -> None:
        self._clients: dict[str, Any] = {}
        self._rate_limiter = rate_limiter
        self._identity = identity

    def _get_client(self, api_key: str) -> Any:
        """Lazily initialize and return the AsyncOpenAI client for api_key."""
        client = self._clients.get(api_key)
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key)
            self._clients[api_key] = client
        return client

    def _convert_messages(self, request: CompletionRequest) -> list[dict[str, Any]]:
        """Convert the request to OpenAI chat messages.

        Order: system prompt, prior turns, then the user prompt. Images
        switch the user message to the multi-part vision format.
        """
        messages: list[dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})

        for turn in request.history:
            messages.append({"role": turn.role, "content": turn.content})

        if request.images:
            content: list[dict[str, Any]] = [
                {"type": "text", "text": request.user_prompt}
            ]
            for image in request.images:
                content.append(
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:{image.mime_type};base64,{image.data}"
                        },
                    }
                )
            messages.append({"role": "user", "content": content})
        elif request.user_prompt:
            messages.append({"role": "user", "content": request.user_prompt})

        return messages

    async def stream_completion(
        self, request: CompletionRequest
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion from OpenAI.

        Args:
            request: The completion request.

        Yields:
            TextDelta for each non-empty content delta, one UsageReport
            from the final usage chunk, then StreamDone.
        """
        api_key = self.resolve_credential(request.credential)
        await check_boundary(request, self._rate_limiter, self._identity)
        client = self._get_client(api_key)

        try:
            stream = await client.chat.completions.create(
                model=request.model or DEFAULT_MODEL,
                messages=self._convert_messages(request),
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                if chunk.choices:
                    delta = chunk.choices[0].delta
                    content = getattr(delta, "content", None) if delta else None
                    if content:
                        yield TextDelta(text=content)

                if chunk.usage is not None:
                    yield UsageReport(
                        prompt_tokens=chunk.usage.prompt_tokens,
                        completion_tokens=chunk.usage.completion_tokens,
                        total_tokens=chunk.usage.total_tokens,
                    )
        except AtelierError:
            raise
        except Exception as exc:
            from openai import APIConnectionError

            raise translate_sdk_error(exc, (APIConnectionError,)) from exc

        yield StreamDone()

    def provider_name(self) -> str:
        """Return the provider name."""
        return "openai"
