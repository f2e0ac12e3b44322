# tests/unit/test_service.py

from __future__ import annotations
import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from ollama_native.client.service import OllamaService
from ollama_native.config import TransportConfig
from ollama_native.core.errors import (
    OllamaResponseError,
    OllamaServerError,
    OllamaValidationError,
)

BASE = "http://localhost:11434"


# -------- helpers --------

class Recorder:
    """Mock server: records every request and answers with `reply(request)`."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return self.reply(request)

    @property
    def bodies(self):
        return [json.loads(r.content) if r.content else None for r in self.requests]


def ndjson(*events):
    return httpx.Response(200, content="".join(json.dumps(e) + "\n" for e in events).encode())


async def no_sleep(_):
    return None


def run(server, call, web_config=None, **options):
    async def go():
        config = TransportConfig.from_options(BASE, **options)
        async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as client:
            async with OllamaService(config, http_client=client, web_config=web_config, sleep=no_sleep) as service:
                return await call(service)
    return asyncio.run(go())


# -------- end to end --------

def test_buffered_call_failing_every_time_makes_three_attempts():
    server = Recorder(lambda r: httpx.Response(500))
    with pytest.raises(OllamaServerError) as ei:
        run(server, lambda s: s.list(), max_retries=2)
    assert len(server.requests) == 3
    assert ei.value.status == 500
    assert "GET /api/tags" in str(ei.value)


def test_request_body_is_echoed_back_unchanged():
    request = {
        "model": "llama3",
        "messages": [{"role": "user", "content": "héllo \"quoted\"\nline"}],
        "options": {"temperature": 0.2, "stop": ["\n\n"]},
        "keep_alive": "5m",
    }
    server = Recorder(lambda r: httpx.Response(200, content=r.content + b"\n"))

    async def call(service):
        stream = await service.chat_stream(request)
        async with stream:
            return [event async for event in stream]

    events = run(server, call)
    assert events == [{**request, "stream": True}]


# -------- inference --------

def test_generate_streams_and_aggregates():
    server = Recorder(lambda r: ndjson(
        {"model": "m", "response": "Hel", "done": False},
        {"model": "m", "response": "lo", "thinking": "hmm", "done": False},
        {"model": "m", "response": "", "done": True, "done_reason": "stop", "eval_count": 3},
        {"model": "m", "response": "ignored", "done": False},
    ))
    reply = run(server, lambda s: s.generate({"model": "m", "prompt": "hi"}))
    assert reply["response"] == "Hello"
    assert reply["thinking"] == "hmm"
    assert reply["done"] is True
    assert reply["eval_count"] == 3
    assert server.bodies == [{"model": "m", "prompt": "hi", "stream": True}]
    assert str(server.requests[0].url) == "http://localhost:11434/api/generate"


def test_chat_aggregates_message_content_and_tool_calls():
    call = {"function": {"name": "get_weather", "arguments": {"city": "Paris"}}}
    server = Recorder(lambda r: ndjson(
        {"message": {"role": "assistant", "content": "It is "}, "done": False},
        {"message": {"role": "assistant", "content": "sunny", "tool_calls": [call]}, "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True, "total_duration": 10},
    ))
    reply = run(server, lambda s: s.chat({"model": "m", "messages": [{"role": "user", "content": "weather?"}]}))
    assert reply["message"]["role"] == "assistant"
    assert reply["message"]["content"] == "It is sunny"
    assert reply["message"]["tool_calls"] == [call]
    assert reply["total_duration"] == 10


def test_buffered_generate_without_done_uses_last_event():
    server = Recorder(lambda r: ndjson({"response": "a", "done": False}, {"response": "b", "done": False}))
    reply = run(server, lambda s: s.generate({"model": "m", "prompt": "x"}))
    assert reply["response"] == "ab"


def test_buffered_generate_on_empty_stream_raises():
    server = Recorder(lambda r: httpx.Response(200, content=b"\n"))
    with pytest.raises(OllamaResponseError):
        run(server, lambda s: s.generate({"model": "m", "prompt": "x"}))


def test_error_event_in_stream_raises():
    server = Recorder(lambda r: ndjson({"error": "model 'nope' not found"}))
    with pytest.raises(OllamaServerError) as ei:
        run(server, lambda s: s.chat({"model": "nope", "messages": []}))
    assert "not found" in str(ei.value)


def test_embed_posts_request():
    server = Recorder(lambda r: httpx.Response(200, json={"model": "e", "embeddings": [[0.1, 0.2]]}))
    data = run(server, lambda s: s.embed({"model": "e", "input": ["a"]}))
    assert data["embeddings"] == [[0.1, 0.2]]
    assert server.bodies == [{"model": "e", "input": ["a"]}]


# -------- model management --------

def test_list_ps_version():
    replies = {
        "/api/tags": {"models": [{"name": "llama3:latest"}]},
        "/api/ps": {"models": []},
        "/api/version": {"version": "0.5.7"},
    }
    server = Recorder(lambda r: httpx.Response(200, json=replies[r.url.path]))

    async def call(service):
        return await service.list(), await service.ps(), await service.version()

    models, running, version = run(server, call)
    assert models == [{"name": "llama3:latest"}]
    assert running == []
    assert version == "0.5.7"
    assert [r.method for r in server.requests] == ["GET", "GET", "GET"]


def test_delete_and_copy_with_empty_body():
    server = Recorder(lambda r: httpx.Response(200))

    async def call(service):
        return await service.delete("old"), await service.copy("a", "b")

    deleted, copied = run(server, call)
    assert deleted == copied == {"status": "success"}
    assert [r.method for r in server.requests] == ["DELETE", "POST"]
    assert server.bodies == [{"model": "old"}, {"source": "a", "destination": "b"}]


def test_pull_stream_reports_progress():
    server = Recorder(lambda r: ndjson(
        {"status": "pulling manifest"},
        {"status": "downloading", "digest": "sha256:1", "total": 10, "completed": 5},
        {"status": "success"},
    ))

    async def call(service):
        stream = await service.pull_stream("llama3")
        async with stream:
            return [event["status"] async for event in stream]

    assert run(server, call) == ["pulling manifest", "downloading", "success"]
    assert server.bodies == [{"model": "llama3", "insecure": False, "stream": True}]


def test_buffered_pull_disables_streaming():
    server = Recorder(lambda r: httpx.Response(200, json={"status": "success"}))
    assert run(server, lambda s: s.pull("llama3")) == {"status": "success"}
    assert server.bodies[0]["stream"] is False


# -------- web tools --------

def test_web_search_goes_to_web_host_with_auth():
    server = Recorder(lambda r: httpx.Response(200, json={"results": [{"title": "t", "url": "u", "content": "c"}]}))
    web = TransportConfig.from_options("https://ollama.com", headers={"Authorization": "Bearer k"}, max_retries=0)
    data = run(server, lambda s: s.web_search("ollama", max_results=3), web_config=web)
    assert data["results"][0]["title"] == "t"
    req = server.requests[0]
    assert str(req.url) == "https://ollama.com/api/web_search"
    assert req.headers["authorization"] == "Bearer k"
    assert server.bodies == [{"query": "ollama", "max_results": 3}]


def test_local_requests_carry_no_auth():
    server = Recorder(lambda r: httpx.Response(200, json={"models": []}))
    web = TransportConfig.from_options("https://ollama.com", headers={"Authorization": "Bearer k"})
    run(server, lambda s: s.list(), web_config=web)
    assert "authorization" not in server.requests[0].headers


# -------- validation --------

@pytest.mark.parametrize("call", [
    lambda s: s.generate({"prompt": "x"}),
    lambda s: s.generate({"model": "", "prompt": "x"}),
    lambda s: s.generate({"model": "m", "prompt": None}),
    lambda s: s.chat({"model": "m", "messages": "hi"}),
    lambda s: s.embed({"model": "m", "input": [1, 2]}),
    lambda s: s.show(""),
    lambda s: s.web_search("q", max_results=11),
    lambda s: s.web_search("q", max_results=0),
    lambda s: s.web_search(" "),
    lambda s: s.web_fetch(""),
])
def test_invalid_requests_never_reach_the_network(call):
    server = Recorder(lambda r: httpx.Response(200, json={}))
    with pytest.raises(OllamaValidationError):
        run(server, call)
    assert server.requests == []


def test_abort_when_idle_is_false():
    server = Recorder(lambda r: httpx.Response(200, json={}))

    async def call(service):
        return service.abort(), service.is_active

    assert run(server, call) == (False, False)


def test_default_web_transport_does_not_inherit_local_auth():
    server = Recorder(lambda r: httpx.Response(200, json={"title": "t", "content": "c"}))
    run(server, lambda s: s.web_fetch("https://example.com"), headers={"Authorization": "Bearer local-proxy"})
    req = server.requests[0]
    assert str(req.url) == "https://ollama.com/api/web_fetch"
    assert "authorization" not in req.headers
