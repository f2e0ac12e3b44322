from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

from ollama_native.config import TransportConfig
from ollama_native.core.cancellation import CancellationToken
from ollama_native.core.errors import OllamaError
from ollama_native.core.ports import AsyncHttpClient
from ollama_native.transport.executor import RequestExecutor
from ollama_native.transport.models import Failure, RequestDescriptor, Success

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RetryPolicy:
    def __init__(self, max_retries=1, base_delay_ms=1000, max_delay_ms=5000):
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def compute_backoff(self, attempt: int) -> int:
        """Delay in ms before retry number `attempt` (0 for the first retry)."""
        return min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)

    def should_retry(self, failure: Failure) -> bool:
        if failure.cancelled:
            return False
        if failure.attempt >= self.max_retries:
            return False
        return failure.error.retryable


class RetryingTransport:
    """
    Runs a logical call as up to max_retries + 1 attempts.
    Holds the single "current" cancellation token of this instance; abort() fires it.
    """

    def __init__(
        self,
        config: TransportConfig,
        client: AsyncHttpClient,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config
        self.policy = policy or RetryPolicy(max_retries=config.max_retries)
        self.executor = RequestExecutor(client, config.base_url)
        self._sleep = sleep
        self._current: Optional[CancellationToken] = None

    @property
    def is_active(self) -> bool:
        return self._current is not None

    def abort(self) -> bool:
        token = self._current
        if token is None:
            return False
        token.cancel()
        self._current = None
        return True

    async def request(self, descriptor: RequestDescriptor) -> Any:
        """Buffered call: the parsed body (JSON value, text, or None for an empty body)."""
        outcome, token = await self._run(descriptor, stream=False)
        self._release(token)
        return outcome.value

    def _begin_attempt(self) -> CancellationToken:
        # replaces the slot only; a stream still holding the previous token keeps its timer
        token = CancellationToken.create()
        self._current = token
        return token

    def _release(self, token: CancellationToken) -> None:
        token.disarm()
        if self._current is token:
            self._current = None

    def _merged_headers(self, descriptor: RequestDescriptor):
        return {**self.config.headers, **(descriptor.headers or {})}

    async def _run(self, descriptor: RequestDescriptor, *, stream: bool) -> Tuple[Success, CancellationToken]:
        """
        Attempt loop. Returns the successful outcome with its token still current
        (the caller releases it); every other exit releases the token first.
        """
        headers = self._merged_headers(descriptor)
        timeout_ms = descriptor.timeout_ms or self.config.timeout_ms
        attempt = 0
        while True:
            token = self._begin_attempt()
            try:
                outcome = await self.executor.execute(
                    descriptor, headers, timeout_ms, token, stream=stream, attempt=attempt
                )
                if isinstance(outcome, Success):
                    return outcome, token

                if not self.policy.should_retry(outcome):
                    raise self._surface(outcome, descriptor)

                delay_ms = self.policy.compute_backoff(attempt)
                logger.warning(
                    "%s attempt %d/%d failed (%s); retrying in %dms",
                    descriptor.context, attempt + 1, self.policy.max_retries + 1, outcome.error, delay_ms,
                )
                # the failed attempt's token stays current while we wait, so abort() skips the retry
                await token.guard(self._sleep(delay_ms / 1000.0), context=descriptor.context)
                if token.cancelled:
                    raise token.error(descriptor.context)
            except BaseException:
                self._release(token)
                raise
            self._release(token)
            attempt += 1

    def _surface(self, failure: Failure, descriptor: RequestDescriptor) -> OllamaError:
        if failure.cancelled:
            return failure.error
        logger.debug("%s giving up after %d attempt(s)", descriptor.context, failure.attempt + 1)
        err = failure.error.with_context(descriptor.context, attempts=failure.attempt + 1)
        err.__cause__ = failure.error
        return err
