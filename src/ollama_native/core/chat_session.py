from __future__ import annotations
from typing import Any, AsyncIterator, Dict, List, Optional


class ChatSession:
    """
    Conversation state on top of OllamaService.chat / chat_stream.
    Keeps the message history; the assistant reply is recorded even when a
    streamed turn is cut short.
    """

    def __init__(self, service, model: str, system_prompt: Optional[str] = None,
                 options: Optional[Dict[str, Any]] = None):
        self.service = service
        self.model = model
        self.options = options or {}
        self.messages: List[Dict[str, Any]] = []
        if system_prompt:
            self.messages.append({"role": "system", "content": system_prompt})

    def _request(self) -> Dict[str, Any]:
        req: Dict[str, Any] = {"model": self.model, "messages": list(self.messages)}
        if self.options:
            req["options"] = self.options
        return req

    async def run_turn(self, user_text: str) -> str:
        self.messages.append({"role": "user", "content": user_text})
        reply = await self.service.chat(self._request())
        content = (reply.get("message") or {}).get("content", "")
        self.messages.append({"role": "assistant", "content": content})
        return content

    async def run_turn_stream(self, user_text: str) -> AsyncIterator[str]:
        self.messages.append({"role": "user", "content": user_text})
        stream = await self.service.chat_stream(self._request())
        partial: List[str] = []
        try:
            async with stream:
                async for event in stream:
                    piece = (event.get("message") or {}).get("content") or ""
                    if piece:
                        partial.append(piece)
                        yield piece
                    if event.get("done"):
                        break
        finally:
            if partial:
                self.messages.append({"role": "assistant", "content": "".join(partial)})

    def reset(self) -> None:
        self.messages = [m for m in self.messages if m.get("role") == "system"]
