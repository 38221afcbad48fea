"""
Per-endpoint fetchers. Each builds the query for one history endpoint and
runs it through the cursor pager. Only positions history feeds grouping; the
rest are passthrough.
"""

from __future__ import annotations

from typing import Any

from data.client import PacificaClient

POSITIONS_HISTORY = "/positions/history"
FUNDING_HISTORY = "/funding/history"
PORTFOLIO = "/portfolio"
ORDERS_HISTORY = "/orders/history"
BALANCE_HISTORY = "/account/balance/history"

DEFAULT_PAGE_LIMIT = 100
PORTFOLIO_TIME_RANGES = ("1d", "7d", "14d", "30d", "all")


def _base_params(wallet: str, limit: int) -> dict[str, Any]:
    if not wallet:
        raise ValueError("wallet address is required")
    return {"account": wallet, "limit": limit}


def fetch_positions_history(
    client: PacificaClient,
    wallet: str,
    *,
    limit: int = DEFAULT_PAGE_LIMIT,
    start_time: int | None = None,
    end_time: int | None = None,
    symbol: str | None = None,
) -> list[dict]:
    """Fill-level trade history (the input to order and position grouping)."""
    params = _base_params(wallet, limit)
    params.update(start_time=start_time, end_time=end_time, symbol=symbol)
    return client.fetch_all_pages(POSITIONS_HISTORY, params)


def fetch_orders_history(
    client: PacificaClient,
    wallet: str,
    *,
    limit: int = DEFAULT_PAGE_LIMIT,
    start_time: int | None = None,
    end_time: int | None = None,
    symbol: str | None = None,
) -> list[dict]:
    params = _base_params(wallet, limit)
    params.update(start_time=start_time, end_time=end_time, symbol=symbol)
    return client.fetch_all_pages(ORDERS_HISTORY, params)


def fetch_funding_history(client: PacificaClient, wallet: str, *, limit: int = DEFAULT_PAGE_LIMIT) -> list[dict]:
    return client.fetch_all_pages(FUNDING_HISTORY, _base_params(wallet, limit))


def fetch_portfolio_history(
    client: PacificaClient,
    wallet: str,
    *,
    limit: int = DEFAULT_PAGE_LIMIT,
    time_range: str | None = None,
) -> list[dict]:
    """Account equity series. ``time_range`` is one of 1d, 7d, 14d, 30d, all (default)."""
    time_range = time_range or "all"
    if time_range not in PORTFOLIO_TIME_RANGES:
        raise ValueError(f"Unsupported time range {time_range!r}. Supported: {list(PORTFOLIO_TIME_RANGES)}")
    params = _base_params(wallet, limit)
    params["time_range"] = time_range
    return client.fetch_all_pages(PORTFOLIO, params)


def fetch_balance_history(client: PacificaClient, wallet: str, *, limit: int = DEFAULT_PAGE_LIMIT) -> list[dict]:
    return client.fetch_all_pages(BALANCE_HISTORY, _base_params(wallet, limit))


ENDPOINTS = {
    "positions": POSITIONS_HISTORY,
    "funding": FUNDING_HISTORY,
    "portfolio": PORTFOLIO,
    "orders": ORDERS_HISTORY,
    "balance": BALANCE_HISTORY,
}
