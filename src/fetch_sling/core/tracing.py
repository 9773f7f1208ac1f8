"""
Response body tracing.
"""
import logging
from enum import Enum
from typing import AsyncIterator

import httpx

from ..context import CallContext
from ..errors import TraceError
from ..types import Tracer

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchSling:trace]"


class TraceState(str, Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    ENDED = "ended"


class TracedBody(httpx.AsyncByteStream):
    """
    Wraps a response byte stream so the tracer's end hook fires exactly once.

    The end hook fires on whichever comes first: iteration reaching the end
    of the data, or a successful close. Streams are single-consumer, so the
    state transition needs no locking.
    """

    def __init__(self, stream: httpx.AsyncByteStream, tracer: Tracer, ctx: CallContext):
        self._stream = stream
        self._tracer = tracer
        self._ctx = ctx
        self._state = TraceState.NOT_STARTED

    @classmethod
    def wrap(
        cls, stream: httpx.AsyncByteStream, tracer: Tracer, ctx: CallContext
    ) -> "TracedBody":
        """Begin a trace and return the wrapped stream."""
        body = cls(stream, tracer, ctx)
        body.begin()
        return body

    @property
    def state(self) -> TraceState:
        return self._state

    def begin(self) -> None:
        if self._state is not TraceState.NOT_STARTED:
            return
        try:
            self._tracer.begin_trace(self._ctx)
        except Exception as e:
            raise TraceError(f"error while trying to begin trace: {e}") from e
        self._state = TraceState.STARTED

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._stream:
            yield chunk
        try:
            self._end()
        except Exception as e:
            raise TraceError(f"got end of body and then error while trying to end trace: {e}") from e

    async def aclose(self) -> None:
        await self._stream.aclose()
        self.end()

    def end(self) -> None:
        """Fire the end hook unless it already fired."""
        try:
            self._end()
        except Exception as e:
            raise TraceError(f"got error while trying to end trace: {e}") from e

    def _end(self) -> None:
        if self._state is TraceState.ENDED:
            return
        self._state = TraceState.ENDED
        logger.debug(f"{LOG_PREFIX} ending trace")
        self._tracer.end_trace(self._ctx)
