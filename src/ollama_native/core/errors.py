from __future__ import annotations
import copy
from typing import Optional


class OllamaError(Exception):
    """Base class for every failure surfaced by the client. Carries an HTTP-ish status."""

    retryable = False

    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.message = message
        self.status = status

    def with_context(self, context: str, attempts: Optional[int] = None) -> "OllamaError":
        """
        Same error class, message prefixed with where it happened.
        Used once the retry budget is spent, so the caller sees which endpoint failed.
        """
        suffix = f" after {attempts} attempt(s)" if attempts else ""
        err = copy.copy(self)
        err.message = f"{context} failed{suffix}: {self.message}"
        err.args = (err.message,)
        return err

    def __str__(self) -> str:
        return self.message


class OllamaValidationError(OllamaError, ValueError):
    """
    Non-retryable: bad configuration or request input. Raised before any network
    activity. The fix is to change input/config, not retry.
    """

    def __init__(self, message: str, status: int = 400):
        super().__init__(message, status)


class OllamaTransportError(OllamaError):
    """Retryable: connection refused, DNS failure, reset, etc."""

    retryable = True


class OllamaServerError(OllamaError):
    """Retryable: the server answered with a non-2xx status."""

    retryable = True


class OllamaResponseError(OllamaError):
    """Retryable: the server claimed JSON but the body did not parse."""

    retryable = True


class OllamaCancelledError(OllamaError):
    """
    Terminal: the request was aborted by the caller. Never retried, retrying
    would go against what the caller asked for.
    """

    reason = "aborted"


class OllamaTimeoutError(OllamaCancelledError):
    """Terminal: the per-attempt (or stream inactivity) timer fired."""

    reason = "timeout"


class OllamaStreamError(OllamaError):
    """Reading the body failed after the stream was established. Ends the event sequence."""
