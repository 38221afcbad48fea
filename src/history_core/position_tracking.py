"""
Position tracking: walk the trade stream and cut it into entry-to-exit positions.

Each symbol has its own accumulator; symbols never interact. A position is
complete when its tracked size gets within CLOSE_EPSILON of zero. Anything
still tracked at the end of the stream is reported as an open position.

Output is best effort. When the fetched history starts mid-position, the
first close creates an accumulator seeded with its own amount, so the
position's open time is the close trade's time and it has no entry price.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from history_core.contracts import (
    Action,
    Direction,
    DirectionConflictError,
    Position,
    PositionStatus,
    Trade,
    parse_side,
)
from history_core.decimals import (
    AMOUNT_PLACES,
    FEE_PLACES,
    PERCENT_PLACES,
    PNL_PLACES,
    PRICE_PLACES,
    VALUE_PLACES,
    ZERO,
    quantize,
    weighted_average,
)

logger = logging.getLogger("pacifica.grouping")

CLOSE_EPSILON = Decimal("0.0001")
MS_PER_HOUR = 60 * 60 * 1000


@dataclass
class _Accumulator:
    direction: Direction
    start_time: int
    size: Decimal = ZERO
    entry_trades: list[Trade] = field(default_factory=list)
    exit_trades: list[Trade] = field(default_factory=list)


def group_by_position(
    trades: Iterable[Trade],
    *,
    allow_direction_conflicts: bool = False,
) -> list[Position]:
    """Group trades into positions, most recently opened first.

    Raises UnrecognizedSideError for a side that is not ``open_*``/``close_*``.
    Raises DirectionConflictError when a trade's direction differs from the
    position still open on its symbol, unless *allow_direction_conflicts* is
    set, in which case the trade is merged into that position.
    """
    ordered = sorted(trades, key=lambda t: t.first_fill_time)
    accumulators: dict[str, _Accumulator] = {}
    positions: list[Position] = []

    for trade in ordered:
        closed = _apply_trade(accumulators, trade, allow_direction_conflicts)
        if closed is not None:
            positions.append(closed)

    for symbol, acc in accumulators.items():
        close_time = acc.exit_trades[-1].last_fill_time if acc.exit_trades else acc.start_time
        positions.append(build_position(symbol, acc, close_time, PositionStatus.OPEN))

    logger.debug(
        "Grouped %d trades into %d positions (%d open)",
        len(ordered),
        len(positions),
        len(accumulators),
    )
    return sorted(positions, key=lambda p: p.opened_at, reverse=True)


def _apply_trade(
    accumulators: dict[str, _Accumulator],
    trade: Trade,
    allow_direction_conflicts: bool,
) -> Position | None:
    """Fold one trade into its symbol's accumulator. Returns a Position if it closed."""
    parsed = parse_side(trade.side)
    acc = accumulators.get(trade.symbol)

    if acc is not None and acc.direction is not parsed.direction:
        if not allow_direction_conflicts:
            raise DirectionConflictError(trade.symbol, acc.direction, trade.trade_id, parsed.direction)
        logger.warning(
            "%s: merging %s trade %s into open %s position",
            trade.symbol,
            parsed.direction.value,
            trade.trade_id,
            acc.direction.value,
        )

    if parsed.action is Action.OPEN:
        if acc is None:
            acc = _Accumulator(direction=parsed.direction, start_time=trade.first_fill_time)
            accumulators[trade.symbol] = acc
        acc.size += trade.total_amount
        acc.entry_trades.append(trade)
        return None

    if acc is None:
        # history starts mid-position: the opening leg is outside the fetched window
        acc = _Accumulator(
            direction=parsed.direction,
            start_time=trade.first_fill_time,
            size=trade.total_amount,
        )
        accumulators[trade.symbol] = acc
    acc.size -= trade.total_amount
    acc.exit_trades.append(trade)

    if abs(acc.size) < CLOSE_EPSILON:
        del accumulators[trade.symbol]
        return build_position(trade.symbol, acc, trade.last_fill_time, PositionStatus.CLOSED)
    return None


def build_position(
    symbol: str,
    acc: _Accumulator,
    close_time: int,
    status: PositionStatus,
) -> Position:
    entry_amount, _, entry_price = weighted_average([(t.total_amount, t.average_price) for t in acc.entry_trades])
    exit_amount, _, exit_price = weighted_average([(t.total_amount, t.average_price) for t in acc.exit_trades])

    all_trades = tuple(acc.entry_trades) + tuple(acc.exit_trades)
    total_pnl = sum((t.total_pnl for t in all_trades), ZERO)
    total_fees = sum((t.total_fee for t in all_trades), ZERO)

    position_size = max(entry_amount, exit_amount)
    notional_value = position_size * entry_price

    pnl_percentage: Decimal | None = None
    if exit_price > ZERO and entry_price > ZERO:
        move = exit_price - entry_price if acc.direction is Direction.LONG else entry_price - exit_price
        pnl_percentage = quantize(move / entry_price * 100, PERCENT_PLACES)

    return Position(
        position_id=f"{symbol}_{acc.direction.value}_{acc.start_time}",
        symbol=symbol,
        direction=acc.direction,
        opened_at=acc.start_time,
        closed_at=close_time,
        duration_hours=round((close_time - acc.start_time) / MS_PER_HOUR, 2),
        entry_price=quantize(entry_price, PRICE_PLACES),
        exit_price=quantize(exit_price, PRICE_PLACES) if exit_price > ZERO else None,
        position_size=quantize(position_size, AMOUNT_PLACES),
        notional_value=quantize(notional_value, VALUE_PLACES),
        total_pnl=quantize(total_pnl, PNL_PLACES),
        total_fees=quantize(total_fees, FEE_PLACES),
        pnl_percentage=pnl_percentage,
        trades=all_trades,
        status=status,
        residual_size=acc.size,
    )
