"""Pytest fixtures: fill rows and an offline Pacifica client for deterministic tests."""

from __future__ import annotations

import json
from typing import Any, Callable, Iterator

import httpx
import pytest

from data.client import PacificaClient
from data.rate_limiter import RateLimiter
from history_core.contracts import RawFill

WALLET = "BrZp5bidJ3WUvceSq7X78bhjTfZXeezzGvGEV4hAYKTa"


def fill_row(
    history_id: int,
    side: str,
    amount: str,
    price: str,
    created_at: int,
    *,
    order_id: int | None = None,
    symbol: str = "BTC",
    fee: str | None = "0",
    pnl: str | None = None,
    **extra: Any,
) -> dict:
    """One /positions/history row as the API returns it."""
    row = {
        "history_id": history_id,
        "order_id": order_id,
        "symbol": symbol,
        "amount": amount,
        "price": price,
        "entry_price": None,
        "fee": fee,
        "pnl": pnl,
        "event_type": "fulfill_taker",
        "side": side,
        "created_at": created_at,
        "cause": "normal",
    }
    row.update(extra)
    return row


def make_fill(*args: Any, **kwargs: Any) -> RawFill:
    return RawFill.from_api(fill_row(*args, **kwargs))


class SleepRecorder:
    """Stands in for time.sleep; records requested durations."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def envelope(data: list, next_cursor: str | None = None, **extra: Any) -> dict:
    body = {"success": True, "data": data, "next_cursor": next_cursor, "has_more": bool(next_cursor)}
    body.update(extra)
    return body


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(sleeps: SleepRecorder) -> Iterator[Callable[..., tuple[PacificaClient, list[httpx.Request]]]]:
    """Build a client whose transport replays *responses* in order.

    Each item is an httpx.Response, a dict (sent as a 200 JSON body) or an
    exception instance (raised as a transport failure). Returns the client and
    the list of requests it made.
    """
    clients: list[PacificaClient] = []

    def _make(responses: list[Any], **kwargs: Any) -> tuple[PacificaClient, list[httpx.Request]]:
        queue = list(responses)
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            item = queue.pop(0)
            if isinstance(item, Exception):
                raise item
            if isinstance(item, dict):
                return httpx.Response(200, content=json.dumps(item).encode())
            # fresh copy so one Response can be listed several times
            return httpx.Response(item.status_code, headers=item.headers, content=item.content)

        kwargs.setdefault("rate_limiter", RateLimiter(delay_seconds=0, sleep=sleeps))
        client = PacificaClient(
            "https://api.test/api/v1",
            transport=httpx.MockTransport(handler),
            sleep=sleeps,
            **kwargs,
        )
        clients.append(client)
        return client, seen

    yield _make
    for c in clients:
        c.close()
