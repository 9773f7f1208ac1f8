"""
Request builder.
"""
import base64
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

import httpx

from ..context import CONTEXT_EXTENSION, CallContext
from ..errors import URLParseError
from ..transport import get_default_transport
from ..types import BodyStream, HttpMethod, QueryEncoder, ReceiveResult, Tracer, Transport
from . import dispatcher
from .body import BodyProvider, FormBodyProvider, JsonBodyProvider, RawBodyProvider, to_request_content
from .decoder import JsonResponseDecoder, ResponseDecoder
from .encoding import StructEncoder
from .query import RawQuery, merge_query, to_query_params

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchSling:request]"

CONTENT_TYPE = "Content-Type"

HeaderInput = Union[Mapping[str, Union[str, List[str]]], httpx.Headers, Iterable[Tuple[str, str]]]

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789"
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)


def canonical_header_key(key: str) -> str:
    """
    Canonical form of a header key: "content-type" -> "Content-Type".

    Keys containing characters outside the HTTP token set are returned
    unchanged.
    """
    if not key or any(ch not in _TOKEN_CHARS for ch in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


def _header_items(headers: HeaderInput) -> List[Tuple[str, List[str]]]:
    """Group header input by canonical key, keeping per-key value order."""
    if isinstance(headers, httpx.Headers):
        pairs: Iterable[Tuple[str, Any]] = headers.multi_items()
    elif isinstance(headers, Mapping):
        pairs = headers.items()
    else:
        pairs = headers
    grouped: Dict[str, List[str]] = {}
    for key, value in pairs:
        values = value if isinstance(value, (list, tuple)) else [value]
        grouped.setdefault(canonical_header_key(key), []).extend(str(v) for v in values)
    return list(grouped.items())


class RequestBuilder:
    """
    Fluent HTTP request builder and sender.

    Mutators return the same builder. Use new() to branch a shared base
    configuration: the clone gets its own headers and query sources while
    the body provider, decoder, encoder, tracer and transport are shared.

        base = RequestBuilder().base("https://api.io/")
        users = base.new().get("users/")
        repos = base.new().get("repos/")
    """

    def __init__(self, url: str = "", method: HttpMethod = "GET"):
        self._method: str = method
        self._raw_url: str = url
        self._headers: Dict[str, List[str]] = {}
        self._query_sources: List[Any] = []
        self._body_provider: Optional[BodyProvider] = None
        self._response_decoder: ResponseDecoder = JsonResponseDecoder()
        self._query_encoder: QueryEncoder = StructEncoder()
        self._transport: Optional[Transport] = None
        self._tracer: Optional[Tracer] = None

    def new(self) -> "RequestBuilder":
        """Return an independent copy of this builder."""
        clone = RequestBuilder(self._raw_url, self._method)  # type: ignore[arg-type]
        clone._headers = {key: list(values) for key, values in self._headers.items()}
        clone._query_sources = list(self._query_sources)
        clone._body_provider = self._body_provider
        clone._response_decoder = self._response_decoder
        clone._query_encoder = self._query_encoder
        clone._transport = self._transport
        clone._tracer = self._tracer
        return clone

    # Inspection

    @property
    def http_method(self) -> str:
        return self._method

    @property
    def raw_url(self) -> str:
        return self._raw_url

    @property
    def headers(self) -> httpx.Headers:
        """Copy of the recorded headers."""
        return httpx.Headers(
            [(key, value) for key, values in self._headers.items() for value in values]
        )

    @property
    def query_sources(self) -> Tuple[Any, ...]:
        return tuple(self._query_sources)

    # Transport

    def client(self, transport: Optional[Transport]) -> "RequestBuilder":
        """Set the transport used to send requests; None restores the default."""
        self._transport = transport
        return self

    def doer(self, transport: Optional[Transport]) -> "RequestBuilder":
        return self.client(transport)

    # URL

    def base(self, url: str) -> "RequestBuilder":
        """Replace the URL. Give a trailing slash if it is to be extended by path()."""
        self._raw_url = url
        return self

    def path(self, path: str) -> "RequestBuilder":
        """
        Resolve `path` against the current URL (RFC 3986).

        If either fails to parse the URL is left unmodified; the problem
        surfaces when request() parses the URL.
        """
        try:
            # httpx re-quotes a malformed authority such as "[bad"; urlsplit rejects it.
            urlsplit(self._raw_url)
            urlsplit(path)
            resolved = httpx.URL(self._raw_url).join(httpx.URL(path))
        except (httpx.InvalidURL, ValueError) as e:
            logger.debug(f"{LOG_PREFIX} Ignoring path {path!r} for {self._raw_url!r}: {e}")
            return self
        self._raw_url = str(resolved)
        return self

    # Method

    def method(self, method: str) -> "RequestBuilder":
        """Set the HTTP method without touching the URL."""
        self._method = method
        return self

    def get(self, path: str = "") -> "RequestBuilder":
        return self.method("GET").path(path)

    def post(self, path: str = "") -> "RequestBuilder":
        return self.method("POST").path(path)

    def put(self, path: str = "") -> "RequestBuilder":
        return self.method("PUT").path(path)

    def patch(self, path: str = "") -> "RequestBuilder":
        return self.method("PATCH").path(path)

    def delete(self, path: str = "") -> "RequestBuilder":
        return self.method("DELETE").path(path)

    def head(self, path: str = "") -> "RequestBuilder":
        return self.method("HEAD").path(path)

    def options(self, path: str = "") -> "RequestBuilder":
        return self.method("OPTIONS").path(path)

    def trace(self, path: str = "") -> "RequestBuilder":
        return self.method("TRACE").path(path)

    def connect(self, path: str = "") -> "RequestBuilder":
        return self.method("CONNECT").path(path)

    # Headers

    def add(self, key: str, value: str) -> "RequestBuilder":
        """Append a header value to any existing values for the key."""
        self._headers.setdefault(canonical_header_key(key), []).append(value)
        return self

    def set(self, key: str, value: str) -> "RequestBuilder":
        """Replace all values for the key with `value`."""
        self._headers[canonical_header_key(key)] = [value]
        return self

    def add_headers(self, headers: HeaderInput) -> "RequestBuilder":
        for key, values in _header_items(headers):
            for value in values:
                self.add(key, value)
        return self

    def set_headers(self, headers: HeaderInput) -> "RequestBuilder":
        for key, values in _header_items(headers):
            for i, value in enumerate(values):
                if i == 0:
                    self.set(key, value)
                else:
                    self.add(key, value)
        return self

    def set_basic_auth(self, username: str, password: str) -> "RequestBuilder":
        """Set the Authorization header for HTTP Basic Authentication."""
        token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return self.set("Authorization", f"Basic {token}")

    # Query

    def query_struct(self, value: Any) -> "RequestBuilder":
        """Append a structured value, encoded with the query encoder at request time."""
        if value is not None:
            self._query_sources.append(value)
        return self

    def query_values(self, values: Optional[RawQuery]) -> "RequestBuilder":
        """Append raw key/value pairs, bypassing the query encoder."""
        if values is not None:
            self._query_sources.append(to_query_params(values))
        return self

    def query_encoder(self, encoder: Optional[QueryEncoder]) -> "RequestBuilder":
        if encoder is not None:
            self._query_encoder = encoder
        return self

    # Body

    def body(self, stream: Optional[BodyStream]) -> "RequestBuilder":
        """Send `stream` verbatim. Content-Type is left as it is."""
        if stream is None:
            return self
        return self.body_provider(RawBodyProvider(stream))

    def body_provider(self, provider: Optional[BodyProvider]) -> "RequestBuilder":
        if provider is None:
            return self
        self._body_provider = provider
        content_type = provider.content_type()
        if content_type:
            self.set(CONTENT_TYPE, content_type)
        return self

    def body_json(self, payload: Any) -> "RequestBuilder":
        if payload is None:
            return self
        return self.body_provider(JsonBodyProvider(payload))

    def body_form(self, payload: Any) -> "RequestBuilder":
        """
        URL-encode `payload` as the body. httpx.QueryParams are encoded as
        given; other values go through the query encoder in effect when the
        request is built.
        """
        if payload is None:
            return self
        return self.body_provider(FormBodyProvider(payload))

    # Decoding and tracing

    def response_decoder(self, decoder: Optional[ResponseDecoder]) -> "RequestBuilder":
        if decoder is not None:
            self._response_decoder = decoder
        return self

    def tracer(self, tracer: Optional[Tracer]) -> "RequestBuilder":
        """Trace response body consumption; None disables tracing."""
        self._tracer = tracer
        return self

    # Requests

    def request(self, ctx: Optional[CallContext] = None) -> httpx.Request:
        """
        Build a new httpx.Request from the builder state.

        Raises URLParseError, QueryEncodeError or BodyEncodeError.
        """
        ctx = ctx or CallContext.background()
        try:
            httpx.URL(self._raw_url)
            parts = urlsplit(self._raw_url)
        except (httpx.InvalidURL, ValueError) as e:
            raise URLParseError(self._raw_url, e) from e

        query = merge_query(parts.query, self._query_sources, self._query_encoder)
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))

        content = None
        provider = self._body_provider
        if isinstance(provider, FormBodyProvider):
            provider = provider.with_encoder(self._query_encoder)
        if provider is not None:
            content = to_request_content(provider.body())

        extensions: Dict[str, Any] = {CONTEXT_EXTENSION: ctx}
        remaining = ctx.remaining()
        if remaining is not None:
            extensions["timeout"] = {
                "connect": remaining,
                "read": remaining,
                "write": remaining,
                "pool": remaining,
            }

        try:
            request = httpx.Request(self._method, url, content=content, extensions=extensions)
        except httpx.InvalidURL as e:
            raise URLParseError(url, e) from e

        request.headers = httpx.Headers(
            list(request.headers.multi_items())
            + [(key, value) for key, values in self._headers.items() for value in values]
        )
        return request

    async def receive_success(
        self, success: Any = None, ctx: Optional[CallContext] = None
    ) -> ReceiveResult:
        """Send the request, decoding 2xx bodies into `success`."""
        return await self.receive(success, None, ctx)

    async def receive(
        self,
        success: Any = None,
        failure: Any = None,
        ctx: Optional[CallContext] = None,
    ) -> ReceiveResult:
        """
        Send the request. 2xx bodies are decoded into the `success` type and
        other bodies into the `failure` type; a 204 or empty body skips
        decoding.
        """
        request = self.request(ctx)
        return await dispatcher.receive(
            self._resolve_transport(),
            request,
            self._response_decoder,
            success=success,
            failure=failure,
            tracer=self._tracer,
        )

    async def do(self, ctx: Optional[CallContext] = None) -> httpx.Response:
        """Send the request and raise NonSuccessError on any non-2xx status."""
        request = self.request(ctx)
        return await dispatcher.do(self._resolve_transport(), request, tracer=self._tracer)

    def _resolve_transport(self) -> Transport:
        if self._transport is not None:
            return self._transport
        return get_default_transport()

    def __repr__(self) -> str:
        return f"RequestBuilder(method={self._method!r}, url={self._raw_url!r})"
