"""
Data contracts for history-core: RawFill, Trade, Position.

history-core consumes RawFill records (deserialized API rows) and produces
Trade and Position records. No I/O; these are frozen dataclasses.
Decimal fields are kept as Decimal; ``to_dict`` renders them as fixed-point
strings for JSON output.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

from history_core.decimals import (
    AMOUNT_PLACES,
    FEE_PLACES,
    PERCENT_PLACES,
    PNL_PLACES,
    PRICE_PLACES,
    VALUE_PLACES,
    fmt,
    to_decimal,
)

NOT_APPLICABLE = "N/A"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class MalformedFillError(ValueError):
    """An API row could not be turned into a RawFill."""


class UnrecognizedSideError(ValueError):
    """A ``side`` value is neither ``open_*`` nor ``close_*`` long/short."""

    def __init__(self, side: str) -> None:
        super().__init__(f"Unrecognized side: {side!r}")
        self.side = side


class DirectionConflictError(ValueError):
    """A trade's direction disagrees with the open position on its symbol.

    Raised for hedge-mode style histories (long and short exposure on one
    symbol at the same time), which one accumulator per symbol cannot model.
    """

    def __init__(self, symbol: str, open_direction: Direction, trade_id: str, trade_direction: Direction) -> None:
        super().__init__(
            f"{symbol}: trade {trade_id} is {trade_direction.value} while a "
            f"{open_direction.value} position is still open (hedge mode is not supported)"
        )
        self.symbol = symbol
        self.open_direction = open_direction
        self.trade_id = trade_id
        self.trade_direction = trade_direction


# ---------------------------------------------------------------------------
# Enums and side parsing
# ---------------------------------------------------------------------------


class Action(str, Enum):
    """Whether a fill adds to or reduces exposure."""

    OPEN = "open"
    CLOSE = "close"


class Direction(str, Enum):
    LONG = "long"
    SHORT = "short"


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class ParsedSide:
    action: Action
    direction: Direction


def parse_side(side: str) -> ParsedSide:
    """Classify an exchange ``side`` string such as ``open_long`` or ``close_short``.

    Action comes from the prefix, direction from the ``long``/``short``
    substring. Anything else raises UnrecognizedSideError.
    """
    if side.startswith("open_"):
        action = Action.OPEN
    elif side.startswith("close_"):
        action = Action.CLOSE
    else:
        raise UnrecognizedSideError(side)

    if "long" in side:
        direction = Direction.LONG
    elif "short" in side:
        direction = Direction.SHORT
    else:
        raise UnrecognizedSideError(side)
    return ParsedSide(action=action, direction=direction)


def ms_to_iso(ms: int) -> str:
    """Epoch milliseconds -> ISO-8601 UTC string with millisecond precision."""
    ts = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def _optional_int(raw: Mapping[str, Any], key: str) -> int | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    return str(value)


def _decimal_str(raw: Mapping[str, Any], key: str, *, required: bool) -> str | None:
    """Check a decimal-string field parses; the API string itself is kept."""
    value = raw[key] if required else raw.get(key)
    if value is None and not required:
        return None
    if not isinstance(value, str) or (required and not value.strip()):
        raise ValueError(f"{key} must be a decimal string, got {value!r}")
    try:
        to_decimal(value)
    except ValueError as exc:
        raise ValueError(f"{key}: {exc}") from exc
    return value


@dataclass(frozen=True)
class RawFill:
    """One execution event from ``/positions/history``. Decimal fields stay as API strings."""

    history_id: int
    symbol: str
    amount: str
    price: str
    event_type: str
    side: str
    created_at: int
    order_id: int | None = None
    entry_price: str | None = None
    fee: str | None = None
    pnl: str | None = None
    cause: str | None = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> RawFill:
        try:
            return cls(
                history_id=int(raw["history_id"]),
                symbol=str(raw["symbol"]),
                amount=_decimal_str(raw, "amount", required=True),
                price=_decimal_str(raw, "price", required=True),
                event_type=str(raw.get("event_type", "")),
                side=str(raw["side"]),
                created_at=int(raw["created_at"]),
                order_id=_optional_int(raw, "order_id"),
                entry_price=_decimal_str(raw, "entry_price", required=False),
                fee=_decimal_str(raw, "fee", required=False),
                pnl=_decimal_str(raw, "pnl", required=False),
                cause=_optional_str(raw, "cause"),
            )
        except KeyError as exc:
            raise MalformedFillError(f"fill is missing required field {exc.args[0]!r}: {dict(raw)!r}") from exc
        except (TypeError, ValueError) as exc:
            raise MalformedFillError(f"fill has an invalid field: {exc}") from exc

    @property
    def group_key(self) -> str:
        """Order id when present and non-zero, else a singleton key from history_id."""
        if self.order_id:
            return str(self.order_id)
        return f"single_{self.history_id}"

    def to_dict(self) -> dict[str, Any]:
        """The fill as it appears inside a grouped trade."""
        return {
            "history_id": self.history_id,
            "amount": self.amount,
            "price": self.price,
            "fee": self.fee,
            "pnl": self.pnl,
            "event_type": self.event_type,
            "created_at": self.created_at,
            "created_at_readable": ms_to_iso(self.created_at),
            "cause": self.cause,
        }


@dataclass(frozen=True)
class Trade:
    """All fills of one order. Totals are quantized Decimals."""

    trade_id: str
    symbol: str
    side: str
    total_amount: Decimal
    average_price: Decimal
    total_value: Decimal
    total_fee: Decimal
    total_pnl: Decimal
    first_fill_time: int
    last_fill_time: int
    fills: tuple[RawFill, ...]
    order_id: int | None = None
    entry_price: str | None = None

    @property
    def fill_count(self) -> int:
        return len(self.fills)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "order_id": self.order_id,
            "symbol": self.symbol,
            "side": self.side,
            "total_amount": fmt(self.total_amount, AMOUNT_PLACES),
            "average_price": fmt(self.average_price, PRICE_PLACES),
            "total_value": fmt(self.total_value, VALUE_PLACES),
            "total_fee": fmt(self.total_fee, FEE_PLACES),
            "total_pnl": fmt(self.total_pnl, PNL_PLACES),
            "entry_price": self.entry_price,
            "first_fill_time": self.first_fill_time,
            "last_fill_time": self.last_fill_time,
            "first_fill_time_readable": ms_to_iso(self.first_fill_time),
            "last_fill_time_readable": ms_to_iso(self.last_fill_time),
            "fills": [f.to_dict() for f in self.fills],
            "fill_count": self.fill_count,
        }


@dataclass(frozen=True)
class Position:
    """Trades on one symbol from first entry to net-zero exposure (or end of history).

    ``exit_price`` and ``pnl_percentage`` are None when not applicable.
    ``residual_size`` is the tracked net size when the record was emitted.
    """

    position_id: str
    symbol: str
    direction: Direction
    opened_at: int
    closed_at: int
    duration_hours: float
    entry_price: Decimal
    exit_price: Decimal | None
    position_size: Decimal
    notional_value: Decimal
    total_pnl: Decimal
    total_fees: Decimal
    pnl_percentage: Decimal | None
    trades: tuple[Trade, ...]
    status: PositionStatus
    residual_size: Decimal

    @property
    def trade_count(self) -> int:
        return len(self.trades)

    def to_dict(self) -> dict[str, Any]:
        return {
            "position_id": self.position_id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "opened_at": self.opened_at,
            "closed_at": self.closed_at,
            "opened_at_readable": ms_to_iso(self.opened_at),
            "closed_at_readable": ms_to_iso(self.closed_at),
            "duration_hours": self.duration_hours,
            "entry_price": fmt(self.entry_price, PRICE_PLACES),
            "exit_price": fmt(self.exit_price, PRICE_PLACES) if self.exit_price is not None else NOT_APPLICABLE,
            "position_size": fmt(self.position_size, AMOUNT_PLACES),
            "notional_value": fmt(self.notional_value, VALUE_PLACES),
            "total_pnl": fmt(self.total_pnl, PNL_PLACES),
            "total_fees": fmt(self.total_fees, FEE_PLACES),
            "pnl_percentage": (
                fmt(self.pnl_percentage, PERCENT_PLACES) if self.pnl_percentage is not None else NOT_APPLICABLE
            ),
            "trades": [t.to_dict() for t in self.trades],
            "trade_count": self.trade_count,
            "status": self.status.value,
        }
