"""
Shared fixtures for fetch-sling tests.
"""
import asyncio
from typing import Any, Callable, List

import httpx
import pytest


class RecordingTracer:
    """Tracer double that records hook calls."""

    def __init__(self, fail_begin: bool = False, fail_end: bool = False):
        self.calls: List[str] = []
        self.contexts: List[Any] = []
        self._fail_begin = fail_begin
        self._fail_end = fail_end

    def begin_trace(self, ctx: Any) -> None:
        self.calls.append("begin")
        self.contexts.append(ctx)
        if self._fail_begin:
            raise RuntimeError("begin failed")

    def end_trace(self, ctx: Any) -> None:
        self.calls.append("end")
        self.contexts.append(ctx)
        if self._fail_end:
            raise RuntimeError("end failed")


class RecordingStream(httpx.AsyncByteStream):
    """Response body double that tracks consumption and closing."""

    def __init__(self, *chunks: bytes, fail_after: int = -1):
        self.chunks = list(chunks)
        self.consumed = False
        self.closed = False
        self._fail_after = fail_after

    async def __aiter__(self):
        for i, chunk in enumerate(self.chunks):
            if i == self._fail_after:
                raise httpx.ReadError("connection reset")
            yield chunk
        self.consumed = True

    async def aclose(self) -> None:
        self.closed = True


class HangingTransport:
    """Transport whose send never completes on its own."""

    def __init__(self):
        self.started = asyncio.Event()
        self.cancelled = False

    async def send(self, request: httpx.Request, *, stream: bool = False) -> httpx.Response:
        self.started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")


@pytest.fixture
def tracer() -> RecordingTracer:
    return RecordingTracer()


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an httpx.AsyncClient around a MockTransport handler."""
    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)
    return _make
