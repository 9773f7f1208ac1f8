"""
Core type definitions for fetch-sling.
"""
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterable,
    BinaryIO,
    Dict,
    List,
    Literal,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

import httpx

if TYPE_CHECKING:
    from .context import CallContext

# HTTP Methods
HttpMethod = Literal[
    "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE", "CONNECT"
]

# Ordered key -> values mapping produced by query and form encoders
MultiMap = Dict[str, List[str]]

# What a body provider may hand back
BodyStream = Union[bytes, BinaryIO, AsyncIterable[bytes]]


@runtime_checkable
class Transport(Protocol):
    """Anything that can send an httpx.Request (httpx.AsyncClient conforms)."""
    async def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response: ...


@runtime_checkable
class QueryEncoder(Protocol):
    """Encodes a structured value into a query/form multi-map."""
    def encode(self, value: Any) -> MultiMap: ...


@runtime_checkable
class Tracer(Protocol):
    """Hooks invoked around response body consumption."""
    def begin_trace(self, ctx: "CallContext") -> None: ...
    def end_trace(self, ctx: "CallContext") -> None: ...


@dataclass(frozen=True)
class FetchResponse:
    """Snapshot of a response, excluding the body."""
    status: str  # e.g. "200 OK"
    status_code: int
    http_version: str  # e.g. "HTTP/1.1"
    headers: httpx.Headers
    content_length: Optional[int]  # None when unknown
    url: str
    transfer_encoding: List[str] = field(default_factory=list)
    close: bool = False
    request: Optional[httpx.Request] = None

    @property
    def is_success(self) -> bool:
        """Check if status code is 2xx."""
        return 200 <= self.status_code <= 299

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "FetchResponse":
        headers = httpx.Headers(response.headers.multi_items())
        transfer_encoding = [
            item.strip().lower()
            for value in headers.get_list("transfer-encoding")
            for item in value.split(",")
            if item.strip()
        ]
        connection = headers.get("connection", "").lower()
        try:
            request: Optional[httpx.Request] = response.request
        except RuntimeError:
            request = None
        return cls(
            status=f"{response.status_code} {response.reason_phrase}".strip(),
            status_code=response.status_code,
            http_version=response.http_version,
            headers=headers,
            content_length=declared_content_length(response),
            url=str(request.url) if request is not None else "",
            transfer_encoding=transfer_encoding,
            close="close" in connection,
            request=request,
        )


@dataclass(frozen=True)
class ReceiveResult:
    """Outcome of a receive call: the response summary plus decoded values."""
    response: FetchResponse
    success: Any = None
    failure: Any = None

    @property
    def ok(self) -> bool:
        return self.response.is_success


def declared_content_length(response: httpx.Response) -> Optional[int]:
    """Content-Length header as an int, or None when absent or invalid."""
    raw = response.headers.get("content-length")
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value >= 0 else None
