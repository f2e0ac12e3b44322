# src/ollama_native/resilience/streaming.py
from __future__ import annotations
import logging
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from ollama_native.core.cancellation import CancellationToken
from ollama_native.core.errors import OllamaCancelledError, OllamaStreamError, OllamaTimeoutError
from ollama_native.transport.decoding import StreamDecoder
from ollama_native.transport.framing import LineFramer
from ollama_native.transport.models import RequestDescriptor
from .retrying import RetryingTransport

logger = logging.getLogger(__name__)

STREAMING = "streaming"
DRAINED = "drained"
ABORTED = "aborted"
FAILED = "failed"


async def _next_chunk(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


class EventStream:
    """
    Decoded NDJSON events of one open response, pulled one chunk at a time.

    Single consumer, single pass. Iterate with `async for`; leaving early is fine,
    the response and timer are released by aclose() (or `async with`, or when the
    iterator is garbage collected). A cancelled stream ends quietly; a read error or
    an inactivity timeout ends it with an exception after the events already yielded.
    """

    def __init__(
        self,
        response: httpx.Response,
        token: CancellationToken,
        *,
        idle_timeout_ms: int,
        context: str = "stream",
        on_close: Optional[Callable[[CancellationToken], None]] = None,
    ):
        self._response = response
        self._token = token
        self._idle_timeout_ms = idle_timeout_ms
        self._context = context
        self._on_close = on_close
        self._decoder = StreamDecoder()
        self._gen = self._events()
        self._consumed = False
        self.state = STREAMING

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def closed(self) -> bool:
        return self.state in (DRAINED, ABORTED, FAILED)

    def __aiter__(self) -> "EventStream":
        if self._consumed:
            raise RuntimeError("EventStream supports only one consumer")
        self._consumed = True
        return self

    async def __anext__(self) -> Any:
        return await self._gen.__anext__()

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def cancel(self) -> None:
        """Stop at the next line boundary. The consumer's loop ends without an error."""
        self._token.cancel()

    async def aclose(self) -> None:
        await self._gen.aclose()
        if not self.closed:
            # never started: the generator body (and its finally) did not run
            await self._release(ABORTED)

    async def _events(self) -> AsyncIterator[Any]:
        framer = LineFramer()
        chunks = self._response.aiter_bytes()
        outcome = ABORTED
        try:
            while not self._token.cancelled:
                self._token.arm(self._idle_timeout_ms)
                try:
                    chunk = await self._token.guard(_next_chunk(chunks), context=self._context)
                except OllamaTimeoutError:
                    outcome = FAILED
                    raise
                except OllamaCancelledError:
                    return
                except (httpx.HTTPError, httpx.StreamError) as e:
                    outcome = FAILED
                    raise OllamaStreamError(f"{self._context} stream failed: {type(e).__name__}: {e}") from e
                self._token.disarm()

                if chunk is None:
                    for event in self._decoder.decode(framer.flush()):
                        if self._token.cancelled:
                            return
                        yield event
                    outcome = DRAINED
                    return

                if self._token.cancelled:
                    return
                for event in self._decoder.decode(framer.feed(chunk)):
                    if self._token.cancelled:
                        return
                    yield event
        finally:
            await chunks.aclose()
            await self._release(outcome)

    async def _release(self, outcome: str) -> None:
        if self.closed:
            return
        self.state = outcome
        self._token.disarm()
        await self._response.aclose()
        if self._on_close is not None:
            self._on_close(self._token)
        logger.debug("%s stream %s", self._context, outcome)


class StreamingTransport(RetryingTransport):
    """
    RetryingTransport that leaves the body open and decodes it incrementally.
    Retries cover the connection phase only (network errors, non-2xx before any body
    byte); once events flow nothing is replayed.
    """

    async def request_stream(self, descriptor: RequestDescriptor) -> EventStream:
        outcome, token = await self._run(descriptor, stream=True)
        logger.debug("%s streaming (attempt %d)", descriptor.context, outcome.attempt + 1)
        return EventStream(
            outcome.value,
            token,
            idle_timeout_ms=descriptor.timeout_ms or self.config.timeout_ms,
            context=descriptor.context,
            on_close=self._release,
        )
