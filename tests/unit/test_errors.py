# tests/unit/test_errors.py

from __future__ import annotations
import sys
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from ollama_native.core.errors import (
    OllamaCancelledError,
    OllamaError,
    OllamaServerError,
    OllamaStreamError,
    OllamaTimeoutError,
    OllamaTransportError,
    OllamaValidationError,
)


def test_retryable_classification():
    assert OllamaTransportError("x").retryable
    assert OllamaServerError("x", 503).retryable
    assert not OllamaValidationError("x").retryable
    assert not OllamaCancelledError("x").retryable
    assert not OllamaTimeoutError("x").retryable
    assert not OllamaStreamError("x").retryable


def test_statuses_and_hierarchy():
    assert OllamaError("x").status == 500
    assert OllamaValidationError("x").status == 400
    assert isinstance(OllamaValidationError("x"), ValueError)
    assert isinstance(OllamaTimeoutError("x"), OllamaCancelledError)
    assert OllamaTimeoutError("x").reason == "timeout"
    assert OllamaCancelledError("x").reason == "aborted"


def test_with_context_keeps_class_and_status():
    original = OllamaServerError("HTTP 502: Bad Gateway", 502)
    err = original.with_context("POST /api/chat", attempts=2)
    assert type(err) is OllamaServerError
    assert err.status == 502
    assert str(err) == "POST /api/chat failed after 2 attempt(s): HTTP 502: Bad Gateway"
    # the original is untouched
    assert str(original) == "HTTP 502: Bad Gateway"
