"""
Body providers: produce a request body stream plus its content type.
"""
import asyncio
import io
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional, Union

from pydantic_core import PydanticSerializationError, to_json

from ..errors import BodyEncodeError
from ..types import BodyStream, QueryEncoder
from .encoding import StructEncoder
from .query import encode_query, source_values

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

STREAM_CHUNK_SIZE = 64 * 1024

RequestContent = Union[bytes, AsyncIterator[bytes], Any]


class BodyProvider(ABC):
    """Body provider interface."""

    @abstractmethod
    def content_type(self) -> str:
        """Media type for the Content-Type header, or "" to leave it alone."""
        ...

    @abstractmethod
    def body(self) -> BodyStream:
        """Materialize the body stream."""
        ...


class RawBodyProvider(BodyProvider):
    """Passes a caller-supplied stream through untouched."""

    def __init__(self, stream: BodyStream):
        self._stream = stream

    def content_type(self) -> str:
        return ""

    def body(self) -> BodyStream:
        return self._stream


class JsonBodyProvider(BodyProvider):
    """Serializes a payload to compact JSON."""

    def __init__(self, payload: Any):
        self._payload = payload

    def content_type(self) -> str:
        return JSON_CONTENT_TYPE

    def body(self) -> BodyStream:
        try:
            return io.BytesIO(to_json(self._payload))
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise BodyEncodeError(
                f"failed to encode {type(self._payload).__name__} as JSON: {e}"
            ) from e


class FormBodyProvider(BodyProvider):
    """
    URL-encodes a form payload.

    httpx.QueryParams payloads are encoded directly; anything else goes
    through the structured encoder first. Without an explicit encoder the
    provider takes the one bound by the builder at request time, falling
    back to StructEncoder.
    """

    def __init__(self, payload: Any, encoder: Optional[QueryEncoder] = None):
        self._payload = payload
        self._encoder = encoder

    def content_type(self) -> str:
        return FORM_CONTENT_TYPE

    def with_encoder(self, encoder: QueryEncoder) -> "FormBodyProvider":
        """This provider if it has its own encoder, else a copy using `encoder`."""
        if self._encoder is not None:
            return self
        return FormBodyProvider(self._payload, encoder)

    def body(self) -> BodyStream:
        values = source_values(self._payload, self._encoder or StructEncoder())
        return io.BytesIO(encode_query(values).encode("ascii"))


def to_request_content(stream: BodyStream) -> RequestContent:
    """
    Adapt a body stream for an async httpx.Request.

    In-memory bodies keep a fixed length; other readers are streamed.
    """
    if isinstance(stream, (bytes, bytearray)):
        return bytes(stream)
    if isinstance(stream, str):
        return stream.encode("utf-8")
    if isinstance(stream, io.BytesIO):
        return stream.read()
    if hasattr(stream, "__aiter__"):
        return stream
    if hasattr(stream, "read"):
        return _iter_reader(stream)
    raise BodyEncodeError(f"unsupported body stream type {type(stream).__name__}")


async def _iter_reader(reader: Any) -> AsyncIterator[bytes]:
    while True:
        chunk = await asyncio.to_thread(reader.read, STREAM_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk

