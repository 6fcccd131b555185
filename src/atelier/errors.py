"""Error taxonomy shared by the provider, variable and batch layers."""

from __future__ import annotations

# Upstream statuses worth a fresh attempt: rate limiting and server errors
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})


class AtelierError(Exception):
    """Base class for all Atelier errors."""


class RequestError(AtelierError):
    """A completion request failed at the transport or HTTP level.

    Attributes:
        message: Human-readable description (from the provider's error
            field when available).
        status: HTTP status code, or None for connection-level failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.message = message
        self.status = status
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """Whether re-issuing the same request may succeed."""
        return self.status in TRANSIENT_STATUS_CODES


class ConnectionFailure(RequestError):
    """The request never got an HTTP response.

    Covers timeouts, refused or dropped connections and streams cut off
    mid-body. Always transient.
    """

    @property
    def transient(self) -> bool:
        return True


class RateLimitError(RequestError):
    """The caller exceeded its request-rate budget (HTTP 429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded. Please try again later.",
        status: int | None = 429,
    ) -> None:
        super().__init__(message, status)


class ValidationError(AtelierError, ValueError):
    """Invalid input: missing credential, oversized prompt, bad variable set."""


class StreamDecodeError(AtelierError):
    """A single event-stream line could not be decoded.

    Non-fatal: the stream decoder logs and skips the line.
    """

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Cannot decode stream line {line[:80]!r}: {reason}")


class PairFailure(AtelierError):
    """One (template, test case) pair failed; the batch carries on.

    Attributes:
        template_name: Name of the template whose pair failed.
        test_case_name: Name of the test case whose pair failed.
        cause: The underlying exception.
    """

    def __init__(
        self, template_name: str, test_case_name: str, cause: BaseException
    ) -> None:
        self.template_name = template_name
        self.test_case_name = test_case_name
        self.cause = cause
        super().__init__(
            f"Pair ({template_name!r}, {test_case_name!r}) failed: "
            f"{type(cause).__name__}: {cause}"
        )
