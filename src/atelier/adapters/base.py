"""BaseProvider ABC, stream event union, and the completion request type.

Every completion provider (OpenAI, Anthropic, HTTP proxy, custom) subclasses
BaseProvider and implements stream_completion(), translating its vendor wire
format into the uniform StreamEvent union defined here.

These are plain dataclasses (not Pydantic) to avoid overhead in the
hot path of streaming calls.
"""

from __future__ import annotations

import contextlib
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, AsyncIterator
from dataclasses import dataclass, field
from typing import Literal, Union

from atelier.errors import (
    AtelierError,
    ConnectionFailure,
    RateLimitError,
    RequestError,
    ValidationError,
)


@dataclass(frozen=True)
class TextDelta:
    """An incremental piece of response text."""

    text: str
    kind: Literal["text"] = "text"


@dataclass(frozen=True)
class UsageReport:
    """Cumulative token usage reported near the end of a stream."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    kind: Literal["usage"] = "usage"


@dataclass(frozen=True)
class StreamDone:
    """End-of-stream marker; nothing follows it."""

    kind: Literal["done"] = "done"


StreamEvent = Union[TextDelta, UsageReport, StreamDone]


@dataclass
class ImageAttachment:
    """A base64-encoded image attached to the user turn."""

    data: str
    mime_type: str


@dataclass
class ChatTurn:
    """A prior conversation turn sent ahead of the user prompt."""

    role: Literal["user", "assistant"]
    content: str


@dataclass
class CompletionRequest:
    """One completion call: system prompt, user prompt and model.

    The credential is optional because SDK providers can fall back to
    their environment variable.
    """

    system_prompt: str
    user_prompt: str
    model: str
    credential: str | None = None
    images: list[ImageAttachment] = field(default_factory=list)
    history: list[ChatTurn] = field(default_factory=list)


@dataclass
class CompletionResult:
    """A fully drained completion stream."""

    content: str
    usage: UsageReport | None = None


async def collect_completion(events: AsyncIterator[StreamEvent]) -> CompletionResult:
    """Drain a stream into its full text and final usage report.

    Text deltas are concatenated in arrival order. The last usage event
    wins. Draining stops at the first StreamDone or when the iterator ends;
    either way a generator-backed stream is closed before returning, so its
    HTTP response or SDK stream is released right away.
    """
    parts: list[str] = []
    usage: UsageReport | None = None

    async with _closing(events) as stream:
        async for event in stream:
            if isinstance(event, TextDelta):
                parts.append(event.text)
            elif isinstance(event, UsageReport):
                usage = event
            elif isinstance(event, StreamDone):
                break

    return CompletionResult(content="".join(parts), usage=usage)


def _closing(
    events: AsyncIterator[StreamEvent],
) -> contextlib.AbstractAsyncContextManager[AsyncIterator[StreamEvent]]:
    # Plain iterators have nothing to close
    if isinstance(events, AsyncGenerator):
        return contextlib.aclosing(events)
    return contextlib.nullcontext(events)


class BaseProvider(ABC):
    """Abstract base class for all completion providers.

    Subclasses implement stream_completion(), an async generator producing
    StreamEvent values. Each call issues exactly one upstream request; a
    retry means calling stream_completion() again.
    """

    #: Environment variable consulted when a request carries no credential.
    credential_env_var: str | None = None

    @abstractmethod
    def stream_completion(
        self, request: CompletionRequest
    ) -> AsyncIterator[StreamEvent]:
        """Stream a completion for the request.

        Args:
            request: The completion request.

        Returns:
            A lazy, finite, non-restartable async iterator of StreamEvent.
        """
        ...

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """Issue the request and drain the stream."""
        return await collect_completion(self.stream_completion(request))

    def resolve_credential(self, credential: str | None) -> str:
        """Return the credential to use, falling back to the environment.

        Raises:
            ValidationError: If neither the argument nor the environment
                variable supplies a credential.
        """
        if credential:
            return credential
        if self.credential_env_var:
            from_env = os.environ.get(self.credential_env_var)
            if from_env:
                return from_env
            raise ValidationError(
                f"{self.provider_name()} API key is required "
                f"(pass a credential or set {self.credential_env_var})"
            )
        raise ValidationError(f"{self.provider_name()} API key is required")

    def provider_name(self) -> str:
        """Return the provider name for this provider.

        Default implementation returns the class name.
        Subclasses may override for custom naming.
        """
        return type(self).__name__


def translate_sdk_error(
    exc: Exception,
    transport_errors: tuple[type[BaseException], ...] = (),
) -> AtelierError:
    """Map a vendor SDK exception onto the Atelier error taxonomy.

    Anything in ``transport_errors`` (the SDK's connection and timeout
    classes), and bare TimeoutError or ConnectionError, becomes
    ConnectionFailure. Status errors carry ``status_code``; 429 becomes
    RateLimitError and any other status becomes RequestError. Atelier
    errors pass through unchanged.
    """
    if isinstance(exc, AtelierError):
        return exc

    if isinstance(exc, (TimeoutError, ConnectionError, *transport_errors)):
        return ConnectionFailure(str(exc) or type(exc).__name__)

    status = getattr(exc, "status_code", None)
    body = getattr(exc, "body", None)
    message = str(exc) or type(exc).__name__
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            message = str(error["message"])
        elif isinstance(error, str) and error:
            message = error

    if status == 429:
        return RateLimitError(message)
    return RequestError(message, status if isinstance(status, int) else None)
