# src/ollama_native/core/cancellation.py
from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Optional, TypeVar

from .errors import OllamaCancelledError, OllamaTimeoutError

T = TypeVar("T")


class CancellationToken:
    """
    Cancel flag plus at most one auto-fire timer.
    One token per attempt, owned by a single transport. Not thread-safe: arm/cancel
    must run on the event loop that awaits the guarded work.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._timeout_ms: Optional[int] = None
        self.reason: Optional[str] = None

    @classmethod
    def create(cls) -> "CancellationToken":
        return cls()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def arm(self, timeout_ms: int) -> None:
        self.disarm()
        if self.cancelled:
            return
        self._timeout_ms = timeout_ms
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(timeout_ms / 1000.0, self._expire)

    def disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancel(self, reason: str = "aborted") -> None:
        self.disarm()
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def _expire(self) -> None:
        self._timer = None
        self.cancel(reason="timeout")

    def error(self, context: str = "request") -> OllamaCancelledError:
        if self.reason == "timeout":
            return OllamaTimeoutError(f"{context} timed out after {self._timeout_ms}ms", status=408)
        return OllamaCancelledError(f"{context} was aborted", status=499)

    async def guard(self, awaitable: Awaitable[T], context: str = "request") -> T:
        """
        Await `awaitable` unless the token fires first. On cancellation the pending
        work is cancelled and the token's error is raised.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise self.error(context)

        work: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        # finished work is returned as-is, callers re-check `cancelled` at their safe points
        if work.done():
            return work.result()

        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise self.error(context)
