"""
Cancellation and deadline context threaded from request() to the transport call.
"""
import asyncio
import contextlib
import time
from typing import Any, Awaitable, Optional, TypeVar

T = TypeVar("T")

CONTEXT_EXTENSION = "fetch_sling.context"


class CallContext:
    """
    Carries an optional deadline and a cancellation signal with a cause.

    The first call to cancel() wins; later calls do not replace the cause.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout
        self._cancelled = False
        self._cause: Optional[BaseException] = None
        self._event: Optional[asyncio.Event] = None

    @classmethod
    def background(cls) -> "CallContext":
        """A context that is never cancelled and has no deadline."""
        return cls()

    @property
    def deadline(self) -> Optional[float]:
        """Deadline on the time.monotonic() clock, if any."""
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def cause(self) -> Optional[BaseException]:
        return self._cause

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, never negative."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, cause: Optional[BaseException] = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._cause = cause
        if self._event is not None:
            self._event.set()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable`, racing it against cancellation and the deadline.

        Raises asyncio.CancelledError if the context is cancelled first and
        TimeoutError if the deadline passes first. The pending work is
        cancelled in both cases.
        """
        task = asyncio.ensure_future(awaitable)
        if self._cancelled:
            await _cancel_and_wait(task)
            raise asyncio.CancelledError("context canceled")

        if self._event is None:
            self._event = asyncio.Event()
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            await _cancel_and_wait(task)
            raise
        finally:
            await _cancel_and_wait(waiter)

        if task in done:
            return task.result()

        await _cancel_and_wait(task)
        if self._cancelled:
            raise asyncio.CancelledError("context canceled")
        raise TimeoutError("context deadline exceeded")

    def __repr__(self) -> str:
        return (
            f"CallContext(cancelled={self._cancelled}, "
            f"remaining={self.remaining()}, cause={self._cause!r})"
        )


def context_of(request: Any) -> CallContext:
    """Context bound to an httpx.Request, or a background one."""
    extensions = getattr(request, "extensions", None) or {}
    ctx = extensions.get(CONTEXT_EXTENSION)
    if isinstance(ctx, CallContext):
        return ctx
    return CallContext.background()


async def _cancel_and_wait(task: "asyncio.Future[Any]") -> None:
    if task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
