# tests/unit/test_chat_session.py

from __future__ import annotations
import asyncio
import sys
from pathlib import Path

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from ollama_native.core.chat_session import ChatSession


class FakeStream:
    def __init__(self, pieces):
        self.pieces = pieces
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True

    async def __aiter__(self):
        for i, piece in enumerate(self.pieces):
            yield {"message": {"role": "assistant", "content": piece}, "done": i == len(self.pieces) - 1}


class FakeService:
    def __init__(self, text="hello"):
        self.text = text
        self.requests = []
        self.streams = []

    async def chat(self, request):
        self.requests.append(request)
        return {"message": {"role": "assistant", "content": self.text}, "done": True}

    async def chat_stream(self, request):
        self.requests.append(request)
        mid = len(self.text) // 2
        stream = FakeStream([self.text[:mid], self.text[mid:]])
        self.streams.append(stream)
        return stream


def test_run_turn_non_stream():
    service = FakeService("pong")
    cs = ChatSession(service, "llama3", system_prompt="sys", options={"temperature": 0})

    out = asyncio.run(cs.run_turn("ping"))
    assert out == "pong"

    # history: system, user, assistant
    assert cs.messages[0] == {"role": "system", "content": "sys"}
    assert cs.messages[1] == {"role": "user", "content": "ping"}
    assert cs.messages[2] == {"role": "assistant", "content": "pong"}

    req = service.requests[0]
    assert req["model"] == "llama3"
    assert req["options"] == {"temperature": 0}
    assert len(req["messages"]) == 2


def test_run_turn_stream_persists_final():
    service = FakeService("stream")
    cs = ChatSession(service, "llama3")

    async def go():
        return [piece async for piece in cs.run_turn_stream("go")]

    chunks = asyncio.run(go())
    assert "".join(chunks) == "stream"
    assert cs.messages[-1] == {"role": "assistant", "content": "stream"}
    assert service.streams[0].closed


def test_run_turn_stream_partial_on_close():
    # caller stops after the first piece
    service = FakeService("partial")
    cs = ChatSession(service, "llama3")

    async def go():
        gen = cs.run_turn_stream("go")
        first = await gen.__anext__()
        await gen.aclose()
        return first

    assert asyncio.run(go()) == "par"
    assert cs.messages[-1] == {"role": "assistant", "content": "par"}
    assert service.streams[0].closed


def test_reset_keeps_system_prompt():
    cs = ChatSession(FakeService("x"), "llama3", system_prompt="sys")
    asyncio.run(cs.run_turn("hi"))
    cs.reset()
    assert cs.messages == [{"role": "system", "content": "sys"}]
