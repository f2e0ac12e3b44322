# src/ollama_native/transport/executor.py
from __future__ import annotations
import json
import logging
from typing import Dict

import httpx

from ollama_native.core.cancellation import CancellationToken
from ollama_native.core.errors import (
    OllamaCancelledError,
    OllamaResponseError,
    OllamaServerError,
    OllamaTransportError,
)
from ollama_native.core.ports import AsyncHttpClient
from .models import AttemptOutcome, Failure, RequestDescriptor, Success

logger = logging.getLogger(__name__)


class RequestExecutor:
    """
    Performs exactly one HTTP attempt and reports it as an AttemptOutcome.
    Never raises for HTTP or network failures; the retry loop decides what to do with them.
    """

    def __init__(self, client: AsyncHttpClient, base_url: str):
        self.client = client
        self.base_url = base_url

    def build_url(self, endpoint: str) -> str:
        # caller-supplied paths are trusted, no slash normalisation
        return f"{self.base_url}{endpoint}"

    async def execute(
        self,
        descriptor: RequestDescriptor,
        headers: Dict[str, str],
        timeout_ms: int,
        token: CancellationToken,
        *,
        stream: bool = False,
        attempt: int = 0,
    ) -> AttemptOutcome:
        token.arm(timeout_ms)
        try:
            return await self._attempt(descriptor, headers, token, stream, attempt)
        finally:
            token.disarm()

    async def _attempt(
        self,
        descriptor: RequestDescriptor,
        headers: Dict[str, str],
        token: CancellationToken,
        stream: bool,
        attempt: int,
    ) -> AttemptOutcome:
        url = self.build_url(descriptor.endpoint)
        content = None
        if descriptor.body is not None and descriptor.method != "GET":
            content = json.dumps(descriptor.body)

        request = self.client.build_request(descriptor.method, url, headers=headers, content=content)
        logger.debug("Attempt %d: %s %s", attempt + 1, descriptor.method, url)
        try:
            response = await token.guard(self.client.send(request, stream=stream), context=descriptor.context)
        except OllamaCancelledError as e:
            return Failure(e, attempt)
        except httpx.HTTPError as e:
            return Failure(OllamaTransportError(f"{type(e).__name__}: {e}"), attempt)
        except OSError as e:
            return Failure(OllamaTransportError(f"{type(e).__name__}: {e}"), attempt)

        if token.cancelled:
            await response.aclose()
            return Failure(token.error(descriptor.context), attempt)

        if not response.is_success:
            if stream:
                await response.aclose()
            return Failure(
                OllamaServerError(f"HTTP {response.status_code}: {response.reason_phrase}", response.status_code),
                attempt,
            )

        if stream:
            return Success(response, attempt)
        return self._parse(response, attempt)

    def _parse(self, response: httpx.Response, attempt: int) -> AttemptOutcome:
        content_type = response.headers.get("content-type")
        # empty body or no declared type: nothing meaningful to parse
        if response.headers.get("content-length") == "0" or not content_type:
            return Success(None, attempt)
        if "application/json" in content_type:
            try:
                return Success(response.json(), attempt)
            except ValueError as e:
                return Failure(
                    OllamaResponseError(f"Invalid JSON body from {response.request.url}: {e}", response.status_code),
                    attempt,
                )
        return Success(response.text, attempt)
