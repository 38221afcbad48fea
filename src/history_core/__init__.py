"""
history-core: rebuild orders and positions from a flat fill history.

No I/O, no network. Consumes RawFill records, produces Trade and Position
records. Deterministic: the same fills always give the same output.
"""

from history_core.contracts import (
    Direction,
    DirectionConflictError,
    MalformedFillError,
    ParsedSide,
    Position,
    PositionStatus,
    RawFill,
    Trade,
    UnrecognizedSideError,
    parse_side,
)
from history_core.order_grouping import group_by_order
from history_core.position_tracking import CLOSE_EPSILON, group_by_position

__all__ = [
    "CLOSE_EPSILON",
    "Direction",
    "DirectionConflictError",
    "group_by_order",
    "group_by_position",
    "MalformedFillError",
    "ParsedSide",
    "parse_side",
    "Position",
    "PositionStatus",
    "RawFill",
    "Trade",
    "UnrecognizedSideError",
]
