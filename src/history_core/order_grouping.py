"""
Order grouping: consolidate fills into one Trade per originating order.

Fills without an order id become single-fill trades keyed by history id, so
every fill lands in exactly one trade.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from history_core.contracts import RawFill, Trade
from history_core.decimals import (
    AMOUNT_PLACES,
    FEE_PLACES,
    PNL_PLACES,
    PRICE_PLACES,
    VALUE_PLACES,
    ZERO,
    quantize,
    to_decimal,
    weighted_average,
)

logger = logging.getLogger("pacifica.grouping")


def group_by_order(fills: Iterable[RawFill]) -> list[Trade]:
    """Group fills into trades.

    Fills are stably sorted by ``created_at`` first, so each trade's fills are
    time ordered. Trades come out in order of their first fill's appearance.
    """
    ordered = sorted(fills, key=lambda f: f.created_at)

    groups: dict[str, list[RawFill]] = {}
    for fill in ordered:
        groups.setdefault(fill.group_key, []).append(fill)

    trades = [build_trade(key, group) for key, group in groups.items()]
    logger.debug("Grouped %d fills into %d trades", len(ordered), len(trades))
    return trades


def build_trade(trade_id: str, fills: Sequence[RawFill]) -> Trade:
    """Aggregate one order's time-ordered fills."""
    if not fills:
        raise ValueError(f"trade {trade_id} has no fills")

    total_amount, total_value, average_price = weighted_average(
        [(to_decimal(f.amount), to_decimal(f.price)) for f in fills]
    )
    total_fee = sum((to_decimal(f.fee) for f in fills), ZERO)
    total_pnl = sum((to_decimal(f.pnl) for f in fills), ZERO)

    first, last = fills[0], fills[-1]
    return Trade(
        trade_id=trade_id,
        order_id=first.order_id,
        symbol=first.symbol,
        side=first.side,
        total_amount=quantize(total_amount, AMOUNT_PLACES),
        average_price=quantize(average_price, PRICE_PLACES),
        total_value=quantize(total_value, VALUE_PLACES),
        total_fee=quantize(total_fee, FEE_PLACES),
        total_pnl=quantize(total_pnl, PNL_PLACES),
        entry_price=first.entry_price,
        first_fill_time=first.created_at,
        last_fill_time=last.created_at,
        fills=tuple(fills),
    )
