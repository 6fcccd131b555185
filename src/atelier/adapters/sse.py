"""Event-stream codec for the proxy wire format.

Each event is one ``data: `` line carrying a JSON object:

    data: {"content": "<text delta>"}
    data: {"tokens": {"prompt": N, "completion": N, "total": N}}
    data: [DONE]

Malformed lines raise StreamDecodeError from decode_line(); decode_lines()
logs and skips them so one bad line never kills a long generation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

from atelier.adapters.base import StreamDone, StreamEvent, TextDelta, UsageReport
from atelier.errors import StreamDecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def decode_line(line: str) -> StreamEvent | None:
    """Decode a single event-stream line.

    Args:
        line: One line of the response body, without its newline.

    Returns:
        The decoded StreamEvent, or None for lines that carry no event
        (blank keep-alives, comments, other SSE fields).

    Raises:
        StreamDecodeError: If a data line is not valid JSON or is not a
            recognized event object.
    """
    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):]
    if payload.strip() == DONE_SENTINEL:
        return StreamDone()

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StreamDecodeError(line, f"invalid JSON ({exc.msg})") from exc

    if not isinstance(data, dict):
        raise StreamDecodeError(line, "payload is not a JSON object")

    if "content" in data:
        content = data["content"]
        if not isinstance(content, str):
            raise StreamDecodeError(line, "'content' is not a string")
        return TextDelta(text=content)

    if "tokens" in data:
        tokens = data["tokens"]
        if not isinstance(tokens, dict):
            raise StreamDecodeError(line, "'tokens' is not an object")
        try:
            prompt = int(tokens.get("prompt", 0))
            completion = int(tokens.get("completion", 0))
            total = int(tokens.get("total", prompt + completion))
        except (TypeError, ValueError) as exc:
            raise StreamDecodeError(line, "token counts are not integers") from exc
        return UsageReport(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total,
        )

    raise StreamDecodeError(line, "unrecognized event object")


async def decode_lines(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """Decode an async stream of lines into StreamEvents.

    Stops after the ``[DONE]`` sentinel. Undecodable lines are skipped.
    """
    async for line in lines:
        try:
            event = decode_line(line)
        except StreamDecodeError as exc:
            logger.debug("Skipping malformed stream line: %s", exc)
            continue

        if event is None:
            continue

        yield event
        if isinstance(event, StreamDone):
            return


def encode_event(event: StreamEvent) -> str:
    """Encode a StreamEvent as one SSE frame (line plus blank separator)."""
    if isinstance(event, TextDelta):
        payload = json.dumps({"content": event.text})
    elif isinstance(event, UsageReport):
        payload = json.dumps(
            {
                "tokens": {
                    "prompt": event.prompt_tokens,
                    "completion": event.completion_tokens,
                    "total": event.total_tokens,
                }
            }
        )
    else:
        payload = DONE_SENTINEL
    return f"{DATA_PREFIX}{payload}\n\n"
