from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ollama_native.core.errors import OllamaError, OllamaCancelledError


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical call: where to send it and what to send. Built per call, never kept."""
    endpoint: str
    method: str = "GET"
    body: Optional[Any] = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout_ms: Optional[int] = None

    @property
    def context(self) -> str:
        return f"{self.method} {self.endpoint}"


@dataclass(frozen=True)
class Success:
    value: Any
    attempt: int = 0


@dataclass(frozen=True)
class Failure:
    error: OllamaError
    attempt: int = 0

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, OllamaCancelledError)


AttemptOutcome = Union[Success, Failure]
