"""
Exception hierarchy for fetch-sling.
"""
from typing import Any, Optional

MAX_BODY_EXCERPT = 100
TRUNCATED_SUFFIX = " (truncated)"


def body_excerpt(body: bytes, limit: int = MAX_BODY_EXCERPT) -> str:
    """Render at most `limit` bytes of a body, marking anything cut off."""
    if len(body) <= limit:
        return body.decode("utf-8", errors="replace")
    return body[:limit].decode("utf-8", errors="replace") + TRUNCATED_SUFFIX


class FetchSlingError(Exception):
    """Base exception for all fetch-sling errors."""
    pass


class URLParseError(FetchSlingError, ValueError):
    """Raised when the base URL, a path or an existing query is malformed."""

    def __init__(self, url: str, reason: Any):
        super().__init__(f"invalid URL {url!r}: {reason}")
        self.url = url
        self.reason = reason


class QueryEncodeError(FetchSlingError, ValueError):
    """Raised when a structured query or form value cannot be encoded."""
    pass


class BodyEncodeError(FetchSlingError, ValueError):
    """Raised when a request body cannot be serialized."""
    pass


class TransportError(FetchSlingError, ConnectionError):
    """Raised when the transport fails to produce a response."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class TraceError(FetchSlingError):
    """Raised when a tracer hook fails."""
    pass


class DecodeError(FetchSlingError):
    """Raised when a response body cannot be read or deserialized."""

    def __init__(
        self,
        status_code: int,
        body: bytes,
        cause: BaseException,
        response: Any = None,
    ):
        self.status_code = status_code
        self.body = body
        self.cause = cause
        self.response = response
        self.excerpt = body_excerpt(body)
        message = f"failed to decode response with status code {status_code}: {cause}"
        if body:
            message += f", got body: {self.excerpt}"
        super().__init__(message)


class NonSuccessError(FetchSlingError):
    """Raised for a non-2xx response with nowhere to decode it."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: Optional[str] = None,
        response: Any = None,
        raw_response: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.response = response
        self.raw_response = raw_response
