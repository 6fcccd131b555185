"""Atelier adapters - completion provider abstraction layer.

Re-exports the BaseProvider ABC, the stream event union, request/result
dataclasses, the event-stream codec, the provider registry function, and
the concrete providers (SDK imports happen lazily on first request).
"""

from atelier.adapters.anthropic_adapter import AnthropicProvider
from atelier.adapters.base import (
    BaseProvider,
    ChatTurn,
    CompletionRequest,
    CompletionResult,
    ImageAttachment,
    StreamDone,
    StreamEvent,
    TextDelta,
    UsageReport,
    collect_completion,
)
from atelier.adapters.http_adapter import HTTPStreamProvider
from atelier.adapters.openai_adapter import OpenAIProvider
from atelier.adapters.registry import get_provider
from atelier.adapters.sse import decode_line, decode_lines, encode_event

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "ChatTurn",
    "CompletionRequest",
    "CompletionResult",
    "HTTPStreamProvider",
    "ImageAttachment",
    "OpenAIProvider",
    "StreamDone",
    "StreamEvent",
    "TextDelta",
    "UsageReport",
    "collect_completion",
    "decode_line",
    "decode_lines",
    "encode_event",
    "get_provider",
]
