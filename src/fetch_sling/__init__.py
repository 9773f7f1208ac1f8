"""
Fetch Sling - composable HTTP request builder
"""

__version__ = "0.1.0"

from .config import ClientConfig, TimeoutConfig, load_config_from_env
from .context import CallContext
from .types import FetchResponse, ReceiveResult, Transport, QueryEncoder, Tracer
from .errors import (
    FetchSlingError,
    URLParseError,
    QueryEncodeError,
    BodyEncodeError,
    TransportError,
    DecodeError,
    NonSuccessError,
    TraceError,
)
from .core.request import RequestBuilder, canonical_header_key
from .core.body import BodyProvider, RawBodyProvider, JsonBodyProvider, FormBodyProvider
from .core.decoder import ResponseDecoder, JsonResponseDecoder
from .core.encoding import StructEncoder
from .core.tracing import TracedBody, TraceState
from .client import FetchClient
from .transport import get_default_transport, close_default_transport


def new(url: str = "") -> RequestBuilder:
    """Start a builder using the shared default transport."""
    return RequestBuilder(url)


__all__ = [
    "new",
    "ClientConfig", "TimeoutConfig", "load_config_from_env",
    "CallContext",
    "FetchResponse", "ReceiveResult", "Transport", "QueryEncoder", "Tracer",
    "FetchSlingError", "URLParseError", "QueryEncodeError", "BodyEncodeError",
    "TransportError", "DecodeError", "NonSuccessError", "TraceError",
    "RequestBuilder", "canonical_header_key",
    "BodyProvider", "RawBodyProvider", "JsonBodyProvider", "FormBodyProvider",
    "ResponseDecoder", "JsonResponseDecoder",
    "StructEncoder",
    "TracedBody", "TraceState",
    "FetchClient",
    "get_default_transport", "close_default_transport",
]
