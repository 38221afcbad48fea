"""
Pacifica REST client: one-page GET with retries, and a cursor pager on top.

Retry policy (``max_retries`` total attempts):
- 429: wait 2**attempt seconds, retry.
- 5xx or transport failure: wait ``attempt`` seconds, retry.
- Any other non-2xx: raise HTTPStatusError immediately.
- ``success: false`` in a 200 body is never retried; the pager raises
  APIRejectedError for it.

Pages are fetched strictly one after another; the next cursor is only known
once the previous page has arrived.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import httpx

from data.errors import (
    APIRejectedError,
    FailureClass,
    HTTPStatusError,
    MalformedResponseError,
    NetworkErrorExhaustedError,
    RateLimitExhaustedError,
    ServerErrorExhaustedError,
)
from data.rate_limiter import RateLimiter

logger = logging.getLogger("pacifica.fetch")

DEFAULT_BASE_URL = "https://api.pacifica.fi/api/v1"
DEFAULT_MAX_RETRIES = 3

EventCallback = Callable[[str, dict], None]


@dataclass(frozen=True)
class PageEnvelope:
    """Response envelope shared by every history endpoint."""

    success: bool
    data: list[Any] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool | None = None
    error: str | None = None
    code: int | None = None

    @classmethod
    def from_json(cls, body: Any) -> PageEnvelope:
        if not isinstance(body, dict):
            raise MalformedResponseError(f"expected a JSON object, got {type(body).__name__}")
        data = body.get("data")
        if data is None:
            data = []
        elif not isinstance(data, list):
            raise MalformedResponseError(f"'data' must be an array, got {type(data).__name__}")
        cursor = body.get("next_cursor")
        return cls(
            success=bool(body.get("success", False)),
            data=data,
            next_cursor=str(cursor) if cursor is not None else None,
            has_more=body.get("has_more"),
            error=body.get("error"),
            code=body.get("code"),
        )


def clean_params(params: Mapping[str, Any]) -> dict[str, str]:
    """Drop None/empty values and stringify the rest."""
    return {k: str(v) for k, v in params.items() if v is not None and v != ""}


class PacificaClient:
    """
    Fetch paginated history from the Pacifica API.

    ``sleep`` is used for retry backoff and is injectable for tests, as is the
    httpx transport. ``on_event(event_type, payload)`` receives progress
    events (page_fetched, retry_scheduled, fetch_complete).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: float = 30.0,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_event: EventCallback | None = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._max_retries = max_retries
        self._rate_limiter = rate_limiter or RateLimiter()
        self._sleep = sleep
        self._on_event = on_event
        self._http = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "*/*"},
        )

    def _emit(self, event_type: str, **payload: Any) -> None:
        if self._on_event is not None:
            self._on_event(event_type, payload)

    def _backoff(self, endpoint: str, failure: FailureClass, attempt: int, wait: float, detail: str) -> None:
        logger.warning(
            "%s on %s (attempt %d/%d), retrying in %.0fs",
            detail,
            endpoint,
            attempt,
            self._max_retries,
            wait,
        )
        self._emit(
            "retry_scheduled",
            endpoint=endpoint,
            failure_class=failure.value,
            attempt=attempt,
            wait_seconds=wait,
        )
        self._sleep(wait)

    # -------- Single page --------

    def fetch_page(self, endpoint: str, params: Mapping[str, Any]) -> PageEnvelope:
        """GET one page and return its envelope, retrying transient failures."""
        query = clean_params(params)
        attempt = 0
        while True:
            attempt += 1
            last_attempt = attempt >= self._max_retries
            try:
                resp = self._http.get(endpoint, params=query)
            except httpx.TransportError as exc:
                if last_attempt:
                    raise NetworkErrorExhaustedError(str(exc) or type(exc).__name__, attempt) from exc
                self._backoff(endpoint, FailureClass.NETWORK, attempt, float(attempt), "Network error")
                continue

            status = resp.status_code
            if status == 429:
                if last_attempt:
                    raise RateLimitExhaustedError(attempt)
                self._backoff(endpoint, FailureClass.RATE_LIMITED, attempt, float(2**attempt), "Rate limited (429)")
                continue
            if status >= 500:
                if last_attempt:
                    raise ServerErrorExhaustedError(status, attempt)
                self._backoff(endpoint, FailureClass.SERVER_ERROR, attempt, float(attempt), f"Server error ({status})")
                continue
            if not resp.is_success:
                raise HTTPStatusError(status, resp.text)

            try:
                body = resp.json()
            except ValueError as exc:
                raise MalformedResponseError(f"non-JSON response from {endpoint}: {resp.text[:200]}") from exc
            return PageEnvelope.from_json(body)

    # -------- Pagination --------

    def fetch_all_pages(self, endpoint: str, params: Mapping[str, Any]) -> list[Any]:
        """Follow ``next_cursor`` until it is absent or empty; concatenate ``data`` in page order."""
        records: list[Any] = []
        cursor: str | None = None
        pages = 0
        while True:
            self._rate_limiter.acquire()
            query = dict(params)
            if cursor:
                query["cursor"] = cursor
            page = self.fetch_page(endpoint, query)
            if not page.success:
                raise APIRejectedError(page.error, page.code)

            records.extend(page.data)
            pages += 1
            logger.info("%s page %d: %d records", endpoint, pages, len(page.data))
            self._emit("page_fetched", endpoint=endpoint, page=pages, records=len(page.data))

            cursor = page.next_cursor
            if not cursor:
                break

        self._emit("fetch_complete", endpoint=endpoint, pages=pages, records=len(records))
        return records

    # -------- Utilities --------

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> PacificaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
