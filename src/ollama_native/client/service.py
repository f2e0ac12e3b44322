# src/ollama_native/client/service.py
from __future__ import annotations
import asyncio
import types
from typing import Any, Callable, Dict, List, Optional

import httpx

from ollama_native.config import TransportConfig
from ollama_native.core.errors import (
    OllamaCancelledError,
    OllamaResponseError,
    OllamaServerError,
    OllamaValidationError,
)
from ollama_native.core.ports import AsyncHttpClient
from ollama_native.core.types import ChatRequest, CreateRequest, EmbedRequest, GenerateRequest
from ollama_native.resilience.streaming import ABORTED, EventStream, StreamingTransport
from ollama_native.transport.models import RequestDescriptor
from .endpoints import API_ENDPOINTS, WEB_BASE_URL

MAX_WEB_RESULTS = 10


def _require_str(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise OllamaValidationError(f"Invalid {name}: must be a non-empty string")
    return value


def _require_model(request: Dict[str, Any]) -> None:
    if not isinstance(request, dict):
        raise OllamaValidationError("Invalid request: must be a dict")
    _require_str(request.get("model"), "model")


def _merge_generate(parts: List[Dict[str, Any]], final: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(final)
    out["response"] = "".join(p.get("response") or "" for p in parts)
    thinking = "".join(p.get("thinking") or "" for p in parts)
    if thinking:
        out["thinking"] = thinking
    return out


def _merge_chat(parts: List[Dict[str, Any]], final: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(final)
    messages = [p.get("message") or {} for p in parts]
    message: Dict[str, Any] = dict(final.get("message") or {})
    message.setdefault("role", "assistant")
    message["content"] = "".join(m.get("content") or "" for m in messages)
    thinking = "".join(m.get("thinking") or "" for m in messages)
    if thinking:
        message["thinking"] = thinking
    tool_calls = [c for m in messages for c in (m.get("tool_calls") or [])]
    if tool_calls:
        message["tool_calls"] = tool_calls
    out["message"] = message
    return out


async def _collect(
    stream: EventStream,
    merge: Callable[[List[Dict[str, Any]], Dict[str, Any]], Dict[str, Any]],
    context: str,
) -> Dict[str, Any]:
    """Drain a generate/chat stream up to the first done event and fold it into one response."""
    parts: List[Dict[str, Any]] = []
    async with stream:
        async for event in stream:
            if not isinstance(event, dict):
                continue
            if event.get("error"):
                raise OllamaServerError(f"{context} failed: {event['error']}")
            parts.append(event)
            if event.get("done"):
                return merge(parts, event)
    if stream.state == ABORTED:
        raise OllamaCancelledError(f"{context} was aborted", status=499)
    if not parts:
        raise OllamaResponseError(f"{context} returned an empty stream")
    return merge(parts, parts[-1])


class OllamaService:
    """
    High-level async client for the Ollama API.

    Buffered methods return decoded JSON; the *_stream variants return an EventStream
    of decoded NDJSON events. One request at a time per service: abort() cancels it.
    """

    def __init__(
        self,
        config: TransportConfig,
        *,
        http_client: Optional[AsyncHttpClient] = None,
        web_config: Optional[TransportConfig] = None,
        sleep=asyncio.sleep,
    ):
        self.config = config
        self._owns_client = http_client is None
        # deadlines come from the cancellation token, not from httpx
        self._http: AsyncHttpClient = http_client or httpx.AsyncClient(timeout=None)
        self._transport = StreamingTransport(config, self._http, sleep=sleep)
        self._web = StreamingTransport(web_config or config.for_host(WEB_BASE_URL), self._http, sleep=sleep)

    async def __aenter__(self) -> "OllamaService":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc: Optional[BaseException],
        tb: Optional[types.TracebackType],
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ----- cancellation -----

    def abort(self) -> bool:
        """Cancel the running request. True if one was active."""
        local = self._transport.abort()
        web = self._web.abort()
        return local or web

    @property
    def is_active(self) -> bool:
        return self._transport.is_active or self._web.is_active

    # ----- helpers -----

    @staticmethod
    def _descriptor(
        name: str,
        method: str = "GET",
        body: Optional[Any] = None,
        timeout_ms: Optional[int] = None,
    ) -> RequestDescriptor:
        return RequestDescriptor(endpoint=API_ENDPOINTS[name], method=method, body=body, timeout_ms=timeout_ms)

    async def _status(self, name: str, method: str, body: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._transport.request(self._descriptor(name, method, body))
        # copy/delete answer 200 with an empty body
        return data if isinstance(data, dict) else {"status": "success"}

    # ----- models -----

    async def list(self) -> List[Dict[str, Any]]:
        data = await self._transport.request(self._descriptor("list"))
        return (data or {}).get("models", [])

    async def ps(self) -> List[Dict[str, Any]]:
        data = await self._transport.request(self._descriptor("ps"))
        return (data or {}).get("models", [])

    async def version(self) -> str:
        data = await self._transport.request(self._descriptor("version"))
        return (data or {}).get("version", "")

    async def show(self, model: str, **extra: Any) -> Dict[str, Any]:
        _require_str(model, "model")
        return await self._transport.request(self._descriptor("show", "POST", {"model": model, **extra}))

    async def copy(self, source: str, destination: str) -> Dict[str, Any]:
        _require_str(source, "source")
        _require_str(destination, "destination")
        return await self._status("copy", "POST", {"source": source, "destination": destination})

    async def delete(self, model: str) -> Dict[str, Any]:
        _require_str(model, "model")
        return await self._status("delete", "DELETE", {"model": model})

    async def create(self, request: CreateRequest) -> Dict[str, Any]:
        _require_model(request)
        return await self._status("create", "POST", {**request, "stream": False})

    async def create_stream(self, request: CreateRequest) -> EventStream:
        _require_model(request)
        return await self._transport.request_stream(self._descriptor("create", "POST", {**request, "stream": True}))

    async def pull(self, model: str, insecure: bool = False) -> Dict[str, Any]:
        _require_str(model, "model")
        return await self._status("pull", "POST", {"model": model, "insecure": insecure, "stream": False})

    async def pull_stream(self, model: str, insecure: bool = False) -> EventStream:
        _require_str(model, "model")
        body = {"model": model, "insecure": insecure, "stream": True}
        return await self._transport.request_stream(self._descriptor("pull", "POST", body))

    async def push(self, model: str, insecure: bool = False) -> Dict[str, Any]:
        _require_str(model, "model")
        return await self._status("push", "POST", {"model": model, "insecure": insecure, "stream": False})

    async def push_stream(self, model: str, insecure: bool = False) -> EventStream:
        _require_str(model, "model")
        body = {"model": model, "insecure": insecure, "stream": True}
        return await self._transport.request_stream(self._descriptor("push", "POST", body))

    # ----- inference -----

    async def generate_stream(self, request: GenerateRequest, *, timeout_ms: Optional[int] = None) -> EventStream:
        _require_model(request)
        if not isinstance(request.get("prompt"), str):
            raise OllamaValidationError("Invalid prompt: must be a string")
        body = {**request, "stream": True}
        return await self._transport.request_stream(self._descriptor("generate", "POST", body, timeout_ms))

    async def generate(self, request: GenerateRequest, *, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        """Streams under the hood and returns the done event with the full `response` text."""
        stream = await self.generate_stream(request, timeout_ms=timeout_ms)
        return await _collect(stream, _merge_generate, "POST /api/generate")

    async def chat_stream(self, request: ChatRequest, *, timeout_ms: Optional[int] = None) -> EventStream:
        _require_model(request)
        if not isinstance(request.get("messages"), list):
            raise OllamaValidationError("Invalid messages: must be a list")
        body = {**request, "stream": True}
        return await self._transport.request_stream(self._descriptor("chat", "POST", body, timeout_ms))

    async def chat(self, request: ChatRequest, *, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        """Streams under the hood and returns the done event with the full assistant message."""
        stream = await self.chat_stream(request, timeout_ms=timeout_ms)
        return await _collect(stream, _merge_chat, "POST /api/chat")

    async def embed(self, request: EmbedRequest, *, timeout_ms: Optional[int] = None) -> Dict[str, Any]:
        _require_model(request)
        inp = request.get("input")
        if not (isinstance(inp, str) or (isinstance(inp, list) and all(isinstance(i, str) for i in inp))):
            raise OllamaValidationError("Invalid input: must be a string or a list of strings")
        return await self._transport.request(self._descriptor("embed", "POST", dict(request), timeout_ms))

    # ----- hosted web tools -----

    async def web_search(self, query: str, max_results: Optional[int] = None) -> Dict[str, Any]:
        _require_str(query, "query")
        body: Dict[str, Any] = {"query": query}
        if max_results is not None:
            if isinstance(max_results, bool) or not isinstance(max_results, int) or not (1 <= max_results <= MAX_WEB_RESULTS):
                raise OllamaValidationError(f"Invalid max_results: must be between 1 and {MAX_WEB_RESULTS}")
            body["max_results"] = max_results
        return await self._web.request(self._descriptor("web_search", "POST", body))

    async def web_fetch(self, url: str) -> Dict[str, Any]:
        _require_str(url, "url")
        return await self._web.request(self._descriptor("web_fetch", "POST", {"url": url}))
