"""
Fetch pipeline: rate limiter, resilient page fetcher, cursor pager and the
five history endpoints.

Depends on nothing in history_core; grouping consumes what this returns.
"""

from data.client import PacificaClient, PageEnvelope
from data.errors import (
    APIRejectedError,
    FailureClass,
    HTTPStatusError,
    MalformedResponseError,
    NetworkErrorExhaustedError,
    PacificaAPIError,
    RateLimitExhaustedError,
    RetryExhaustedError,
    ServerErrorExhaustedError,
)
from data.rate_limiter import RateLimiter

__all__ = [
    "APIRejectedError",
    "FailureClass",
    "HTTPStatusError",
    "MalformedResponseError",
    "NetworkErrorExhaustedError",
    "PacificaAPIError",
    "PacificaClient",
    "PageEnvelope",
    "RateLimitExhaustedError",
    "RateLimiter",
    "RetryExhaustedError",
    "ServerErrorExhaustedError",
    "build_client",
]


def build_client(cfg, *, on_event=None) -> PacificaClient:
    """Client wired from an AppConfig."""
    limiter = RateLimiter(
        cfg.rate_limit.max_requests_per_minute,
        cfg.rate_limit.delay_ms / 1000,
    )
    return PacificaClient(
        cfg.api.base_url,
        max_retries=cfg.api.max_retries,
        timeout=cfg.api.timeout_seconds,
        rate_limiter=limiter,
        on_event=on_event,
    )
