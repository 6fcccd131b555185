"""HTTP event-stream provider for a remote completion proxy route.

POSTs the request as JSON to an endpoint that answers with the ``data: ``
line protocol (see atelier.adapters.sse) and decodes the body lazily.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from atelier.adapters.base import BaseProvider, CompletionRequest, StreamEvent
from atelier.adapters.sse import decode_lines
from atelier.errors import ConnectionFailure, RateLimitError, RequestError

DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


def _error_message(response: httpx.Response, body: bytes) -> str:
    """Pick the error field from a JSON body, else the reason phrase."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return response.reason_phrase or f"HTTP {response.status_code}"


class HTTPStreamProvider(BaseProvider):
    """Completion client for a proxy that speaks the event-stream protocol.

    One outbound POST per stream_completion() call; no retry, no caching.
    Pass ``client`` to share a connection pool or to inject a mock
    transport in tests.
    """

    def __init__(
        self,
        endpoint: str,
        name: str = "http",
        client: httpx.AsyncClient | None = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint
        self._name = name
        self._client = client
        self._timeout = timeout

    def _build_body(self, request: CompletionRequest) -> dict[str, Any]:
        """Build the JSON body the proxy route expects."""
        body: dict[str, Any] = {
            "systemPrompt": request.system_prompt,
            "userPrompt": request.user_prompt,
            "model": request.model,
            "apiKey": request.credential,
        }
        if request.images:
            body["images"] = [
                {"data": img.data, "mimeType": img.mime_type} for img in request.images
            ]
        if request.history:
            body["messages"] = [
                {"role": turn.role, "content": turn.content} for turn in request.history
            ]
        return body

    async def stream_completion(
        self, request: CompletionRequest
    ) -> AsyncIterator[StreamEvent]:
        """POST the request and yield decoded events as lines arrive.

        Raises:
            RateLimitError: On HTTP 429.
            ConnectionFailure: On timeouts and connection or read failures.
            RequestError: On any other non-2xx status.
        """
        credential = self.resolve_credential(request.credential)
        body = self._build_body(request)
        body["apiKey"] = credential

        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            async with client.stream("POST", self.endpoint, json=body) as response:
                if not response.is_success:
                    raw = await response.aread()
                    message = _error_message(response, raw)
                    if response.status_code == 429:
                        raise RateLimitError(message)
                    raise RequestError(message, response.status_code)

                async for event in decode_lines(response.aiter_lines()):
                    yield event
        except httpx.TransportError as exc:
            raise ConnectionFailure(f"Request to {self.endpoint} failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise RequestError(f"Request to {self.endpoint} failed: {exc}") from exc
        finally:
            if owns_client:
                await client.aclose()

    def provider_name(self) -> str:
        """Return the configured provider name."""
        return self._name
