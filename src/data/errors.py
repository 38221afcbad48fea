"""
Errors raised by the Pacifica fetch pipeline.

Transport trouble (429, 5xx, network) is retried and only surfaces as a
RetryExhaustedError subclass once the retry budget is spent. Explicit
rejections (non-retryable status, ``success: false``) surface immediately.
"""

from __future__ import annotations

from enum import Enum


class FailureClass(str, Enum):
    """Retryable failure kinds."""

    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK = "network"


class PacificaAPIError(Exception):
    """Base class for fetch pipeline errors."""


class RetryExhaustedError(PacificaAPIError):
    def __init__(self, message: str, failure_class: FailureClass, attempts: int) -> None:
        super().__init__(message)
        self.failure_class = failure_class
        self.attempts = attempts


class RateLimitExhaustedError(RetryExhaustedError):
    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Rate limit exceeded after {attempts} attempts",
            FailureClass.RATE_LIMITED,
            attempts,
        )


class ServerErrorExhaustedError(RetryExhaustedError):
    def __init__(self, status_code: int, attempts: int) -> None:
        super().__init__(
            f"Server error {status_code} after {attempts} attempts",
            FailureClass.SERVER_ERROR,
            attempts,
        )
        self.status_code = status_code


class NetworkErrorExhaustedError(RetryExhaustedError):
    def __init__(self, detail: str, attempts: int) -> None:
        super().__init__(
            f"Network error after {attempts} attempts: {detail}",
            FailureClass.NETWORK,
            attempts,
        )


class HTTPStatusError(PacificaAPIError):
    """Non-retryable HTTP status (4xx other than 429)."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"HTTP {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class APIRejectedError(PacificaAPIError):
    """HTTP 200 with ``success: false`` in the envelope."""

    def __init__(self, error: str | None, code: int | None = None) -> None:
        message = f"API Error: {error or 'Unknown error'}"
        if code is not None:
            message += f" (code {code})"
        super().__init__(message)
        self.error = error
        self.code = code


class MalformedResponseError(PacificaAPIError):
    """A 2xx response whose body is not a response envelope."""
