# src/ollama_native/core/types.py
from __future__ import annotations
from typing import Any, Dict, List, Literal, NotRequired, TypedDict, Union

# Shapes of the JSON the Ollama API exchanges. Documentation only: payloads are
# plain dicts and nothing here is validated at runtime.

Role = Literal["system", "user", "assistant", "tool"]
Thinking = Union[bool, Literal["high", "medium", "low"]]


class ToolCall(TypedDict):
    function: Dict[str, Any]


class Message(TypedDict):
    role: Role
    content: str
    images: NotRequired[List[str]]
    tool_calls: NotRequired[List[ToolCall]]
    tool_name: NotRequired[str]
    thinking: NotRequired[str]


class GenerateRequest(TypedDict):
    model: str
    prompt: str
    suffix: NotRequired[str]
    system: NotRequired[str]
    template: NotRequired[str]
    context: NotRequired[List[int]]
    images: NotRequired[List[str]]
    format: NotRequired[Union[str, Dict[str, Any]]]
    options: NotRequired[Dict[str, Any]]
    raw: NotRequired[bool]
    think: NotRequired[Thinking]
    keep_alive: NotRequired[Union[str, int]]
    stream: NotRequired[bool]


class ChatRequest(TypedDict):
    model: str
    messages: List[Message]
    tools: NotRequired[List[Dict[str, Any]]]
    format: NotRequired[Union[str, Dict[str, Any]]]
    options: NotRequired[Dict[str, Any]]
    think: NotRequired[Thinking]
    keep_alive: NotRequired[Union[str, int]]
    stream: NotRequired[bool]


class EmbedRequest(TypedDict):
    model: str
    input: Union[str, List[str]]
    truncate: NotRequired[bool]
    dimensions: NotRequired[int]
    options: NotRequired[Dict[str, Any]]
    keep_alive: NotRequired[Union[str, int]]


CreateRequest = TypedDict(
    "CreateRequest",
    {
        "model": str,
        "from": NotRequired[str],
        "files": NotRequired[Dict[str, str]],
        "template": NotRequired[str],
        "system": NotRequired[str],
        "parameters": NotRequired[Dict[str, Any]],
        "quantize": NotRequired[str],
        "stream": NotRequired[bool],
    },
)


class ProgressEvent(TypedDict):
    status: str
    digest: NotRequired[str]
    total: NotRequired[int]
    completed: NotRequired[int]


class GenerateEvent(TypedDict):
    model: str
    created_at: str
    response: str
    done: bool
    thinking: NotRequired[str]
    context: NotRequired[List[int]]
    done_reason: NotRequired[str]
    total_duration: NotRequired[int]
    eval_count: NotRequired[int]


class ChatEvent(TypedDict):
    model: str
    created_at: str
    message: Message
    done: bool
    done_reason: NotRequired[str]
    total_duration: NotRequired[int]
    eval_count: NotRequired[int]
