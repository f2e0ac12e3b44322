# src/ollama_native/config.py

from __future__ import annotations
from dataclasses import dataclass, field
from importlib.metadata import version as pkg_version, PackageNotFoundError
from types import MappingProxyType
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from .core.errors import OllamaValidationError

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 1
MIN_TIMEOUT_MS = 1000
MAX_TIMEOUT_MS = 86400000


def _user_agent() -> str:
    try:
        return f"ollama-native/{pkg_version('ollama-native')}"
    except PackageNotFoundError:
        return "ollama-native/0.0.0"


def default_headers() -> dict:
    return {"User-Agent": _user_agent(), "Content-Type": "application/json"}


def is_valid_url(url: Any) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlsplit(url)
        port = parsed.port  # raises ValueError when out of range / not numeric
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    if not parsed.hostname:
        return False
    if url.endswith(":"):
        return False
    if port is not None and not (1 <= port <= 65535):
        return False
    return True


def _origin(url: str) -> tuple:
    parts = urlsplit(url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return parts.scheme, (parts.hostname or "").lower(), port


def _check_headers(headers: Any) -> None:
    """Header names and values must be strings httpx can put on the wire (ASCII)."""
    if not isinstance(headers, Mapping):
        raise OllamaValidationError("Invalid headers: must be a mapping")
    bad = sorted(str(k) for k, v in headers.items() if not isinstance(k, str) or not isinstance(v, str))
    if bad:
        raise OllamaValidationError(f"Invalid headers: values must be strings ({bad})")
    bad = sorted(k for k, v in headers.items() if not (k.isascii() and v.isascii()))
    if bad:
        raise OllamaValidationError(f"Invalid headers: names and values must be ASCII ({bad})")


@dataclass(frozen=True)
class TransportConfig:
    """
    Validated, immutable settings for one transport instance.
    headers already hold the defaults merged under the caller's overrides.
    """
    base_url: str
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(default_headers()))
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def from_options(
        cls,
        host: Any,
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
        max_retries: Optional[int] = None,
    ) -> "TransportConfig":
        if not host or not isinstance(host, str):
            raise OllamaValidationError("Invalid host: must be a non-empty string")
        if not is_valid_url(host):
            raise OllamaValidationError("Invalid host URL: must be a valid HTTP/HTTPS URL")
        if timeout_ms is not None and (
            isinstance(timeout_ms, bool)
            or not isinstance(timeout_ms, int)
            or not (MIN_TIMEOUT_MS <= timeout_ms <= MAX_TIMEOUT_MS)
        ):
            raise OllamaValidationError(
                f"Invalid timeout: must be between {MIN_TIMEOUT_MS} and {MAX_TIMEOUT_MS} milliseconds"
            )
        if max_retries is not None and (
            isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0
        ):
            raise OllamaValidationError("Invalid retries: must be a non-negative integer")
        if headers is not None:
            _check_headers(headers)

        merged = {**default_headers(), **(headers or {})}
        return cls(
            base_url=host,
            headers=MappingProxyType(merged),
            timeout_ms=DEFAULT_TIMEOUT_MS if timeout_ms is None else timeout_ms,
            max_retries=DEFAULT_MAX_RETRIES if max_retries is None else max_retries,
        )

    def with_headers(self, extra: Mapping[str, str]) -> "TransportConfig":
        _check_headers(extra)
        return TransportConfig(
            base_url=self.base_url,
            headers=MappingProxyType({**self.headers, **extra}),
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
        )

    def for_host(self, host: str) -> "TransportConfig":
        """
        Same timeout and retry budget pointed at another host (validated).
        Caller headers follow only to the same origin; another origin starts from
        the default headers.
        """
        same_origin = is_valid_url(host) and _origin(host) == _origin(self.base_url)
        headers = dict(self.headers) if same_origin else None
        return TransportConfig.from_options(
            host, headers=headers, timeout_ms=self.timeout_ms, max_retries=self.max_retries
        )
