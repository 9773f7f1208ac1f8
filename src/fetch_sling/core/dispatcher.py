"""
Sends built requests and applies the status-based decoding policy.
"""
import asyncio
import logging
from typing import Any, Optional, Tuple

import httpx

from ..context import context_of
from ..errors import DecodeError, FetchSlingError, NonSuccessError, TraceError, TransportError
from ..errors import MAX_BODY_EXCERPT, body_excerpt
from ..types import FetchResponse, ReceiveResult, Tracer, Transport, declared_content_length
from .decoder import ResponseDecoder
from .tracing import TracedBody

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchSling]"


def is_successful(status_code: int) -> bool:
    return 200 <= status_code <= 299


async def send(
    transport: Transport,
    request: httpx.Request,
    tracer: Optional[Tracer] = None,
) -> httpx.Response:
    """
    Send `request` and return the response with its body still unread.

    Cancellation of the request's CallContext is translated into a
    TransportError carrying the recorded cause.
    """
    ctx = context_of(request)
    # Requests built outside an httpx client carry no timeout of their own.
    if "timeout" not in request.extensions and isinstance(transport, httpx.AsyncClient):
        request.extensions["timeout"] = transport.timeout.as_dict()
    logger.debug(f"{LOG_PREFIX} Request: {request.method} {request.url}")
    try:
        response = await ctx.run(transport.send(request, stream=True))
    except asyncio.CancelledError as e:
        if not ctx.cancelled:
            raise
        cause = ctx.cause
        if cause is not None:
            logger.error(f"{LOG_PREFIX} Request canceled: {cause}")
            raise TransportError(str(cause) or type(cause).__name__, cause=cause) from cause
        logger.error(f"{LOG_PREFIX} Request canceled")
        raise TransportError("context canceled", cause=e) from e
    except TimeoutError as e:
        logger.error(f"{LOG_PREFIX} Request failed: {e}")
        raise TransportError(str(e), cause=e) from e
    except httpx.HTTPError as e:
        logger.error(f"{LOG_PREFIX} Request failed: {e}")
        raise TransportError(str(e) or type(e).__name__, cause=e) from e

    logger.debug(f"{LOG_PREFIX} Response: {response.status_code} {request.method} {request.url}")

    if tracer is not None:
        try:
            response.stream = TracedBody.wrap(response.stream, tracer, ctx)
        except TraceError:
            await response.aclose()
            raise
    return response


async def receive(
    transport: Transport,
    request: httpx.Request,
    decoder: ResponseDecoder,
    success: Any = None,
    failure: Any = None,
    tracer: Optional[Tracer] = None,
) -> ReceiveResult:
    """
    Send `request` and decode the body into `success` (2xx) or `failure`.

    A 204, or a declared Content-Length of 0, skips decoding. The body is
    drained and closed on every exit path.
    """
    response = await send(transport, request, tracer)
    summary = FetchResponse.from_httpx(response)
    try:
        success_value, failure_value = await _decode(response, summary, decoder, success, failure)
    except FetchSlingError as e:
        if getattr(e, "response", None) is None:
            e.response = summary  # type: ignore[attr-defined]
        raise
    finally:
        await drain_and_close(response)
    return ReceiveResult(response=summary, success=success_value, failure=failure_value)


async def do(
    transport: Transport,
    request: httpx.Request,
    tracer: Optional[Tracer] = None,
) -> httpx.Response:
    """
    Send `request`, read the body and raise on any non-2xx status.

    No decoding is attempted; the raw response is returned, or attached to
    the error, for inspection.
    """
    response = await send(transport, request, tracer)
    try:
        await response.aread()
    finally:
        await drain_and_close(response)

    if not is_successful(response.status_code):
        raise NonSuccessError(
            f"status code {response.status_code} was not successful",
            status_code=response.status_code,
            body=response.text,
            response=FetchResponse.from_httpx(response),
            raw_response=response,
        )
    return response


async def drain_and_close(response: httpx.Response) -> None:
    """Discard any unread body and close the response."""
    try:
        if not response.is_stream_consumed and not response.is_closed:
            async for _ in response.aiter_raw():
                pass
    except httpx.HTTPError as e:
        logger.debug(f"{LOG_PREFIX} Failed to drain response body: {e}")
    except TraceError as e:
        logger.warning(f"{LOG_PREFIX} {e}")
    finally:
        try:
            await response.aclose()
            # A body buffered by the transport is closed without touching the stream.
            if isinstance(response.stream, TracedBody):
                response.stream.end()
        except TraceError as e:
            logger.warning(f"{LOG_PREFIX} {e}")


async def _decode(
    response: httpx.Response,
    summary: FetchResponse,
    decoder: ResponseDecoder,
    success: Any,
    failure: Any,
) -> Tuple[Any, Any]:
    status_code = response.status_code

    if status_code == 204:
        return None, None

    if declared_content_length(response) == 0:
        if failure is None and not is_successful(status_code):
            raise NonSuccessError(
                f"status code {status_code} was not successful and had no body",
                status_code=status_code,
                response=summary,
            )
        return None, None

    if is_successful(status_code):
        if success is None:
            return None, None
        if summary.content_length is None and not await _has_body(response):
            return None, None
        return await decoder.decode(response, success), None

    if failure is not None:
        return None, await decoder.decode(response, failure)

    try:
        body = await read_with_cap(response, MAX_BODY_EXCERPT)
    except (httpx.HTTPError, ValueError) as e:
        raise NonSuccessError(
            f"status code {status_code} was not successful and could not get body: {e}",
            status_code=status_code,
            response=summary,
        ) from e
    raise NonSuccessError(
        f"status code {status_code} was not successful, got body: {body}",
        status_code=status_code,
        body=body,
        response=summary,
    )


async def _has_body(response: httpx.Response) -> bool:
    """Buffer a body of unknown length and report whether it is non-empty."""
    try:
        content = await response.aread()
    except httpx.HTTPError as e:
        raise DecodeError(response.status_code, b"", e) from e
    return len(content) > 0


async def read_with_cap(response: httpx.Response, cap: int) -> str:
    """
    Read the body keeping at most `cap` + 1 bytes; the rest is drained.

    The extra byte distinguishes a body of exactly `cap` bytes from a longer
    one, which is rendered with a truncation marker.
    """
    kept = bytearray()
    async for chunk in response.aiter_bytes():
        if len(kept) <= cap:
            kept.extend(chunk[: cap + 1 - len(kept)])
    if not kept:
        raise ValueError("got no response content")
    return body_excerpt(bytes(kept), cap)
