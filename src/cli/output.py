"""
Human-readable terminal output: fetch header/footer, per-endpoint summaries,
record tables and the grouped positions report.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence

from history_core.contracts import Position, PositionStatus, ms_to_iso
from history_core.decimals import ZERO, to_decimal

RULE = "=" * 50
TABLE_ROWS = 10


def _signed_usd(value: Decimal) -> str:
    sign = "+" if value > 0 else ""
    return f"{sign}${value:.2f}"


def _date_range(records: Sequence[dict], key: str) -> str | None:
    stamps = [r[key] for r in records if isinstance(r.get(key), (int, float))]
    if not stamps:
        return None
    return f"{ms_to_iso(int(min(stamps)))} to {ms_to_iso(int(max(stamps)))}"


def format_header(wallet: str, endpoints: Sequence[str], max_requests_per_minute: int) -> str:
    return "\n".join(
        [
            RULE,
            "Fetching Pacifica Historical Data",
            RULE,
            f"Wallet: {wallet}",
            f"Endpoints: {', '.join(endpoints)}",
            f"Rate Limit: {max_requests_per_minute} requests/min",
            RULE,
        ]
    )


def format_footer(total_records: int, duration_seconds: float) -> str:
    return "\n".join(
        [
            RULE,
            "Fetch Complete",
            RULE,
            f"Total Records: {total_records}",
            f"Duration: {duration_seconds:.2f}s",
            RULE,
        ]
    )


def format_records_table(records: Sequence[dict], limit: int = TABLE_ROWS) -> str:
    """Plain-text table of the first *limit* records; columns from the first record's keys."""
    rows = [r for r in records[:limit] if isinstance(r, dict)]
    if not rows:
        return "(no records)"
    columns = list(rows[0].keys())
    cells = [[("" if r.get(c) is None else str(r.get(c))) for c in columns] for r in rows]
    widths = [max(len(c), *(len(row[i]) for row in cells)) for i, c in enumerate(columns)]
    lines = [
        "  ".join(c.ljust(w) for c, w in zip(columns, widths)),
        "  ".join("-" * w for w in widths),
    ]
    lines.extend("  ".join(v.ljust(w) for v, w in zip(row, widths)) for row in cells)
    return "\n".join(lines)


def _positions_history_summary(records: Sequence[dict]) -> list[str]:
    symbols = sorted({str(r.get("symbol")) for r in records})
    total_pnl = sum((to_decimal(r.get("pnl")) for r in records), ZERO)
    lines = [f"Symbols: {', '.join(symbols)}", f"Total PnL: {_signed_usd(total_pnl)}"]
    span = _date_range(records, "created_at")
    if span:
        lines.append(f"Date Range: {span}")
    return lines


def _funding_summary(records: Sequence[dict]) -> list[str]:
    symbols = sorted({str(r.get("symbol")) for r in records})
    total_payout = sum((to_decimal(r.get("payout")) for r in records), ZERO)
    lines = [f"Symbols: {', '.join(symbols)}", f"Total Funding Paid: {_signed_usd(total_payout)}"]
    span = _date_range(records, "created_at")
    if span:
        lines.append(f"Date Range: {span}")
    return lines


def _portfolio_summary(records: Sequence[dict]) -> list[str]:
    first_equity = to_decimal(records[0].get("account_equity"))
    last_equity = to_decimal(records[-1].get("account_equity"))
    total_pnl = to_decimal(records[-1].get("pnl"))
    lines = [
        f"Initial Equity: ${first_equity:.2f}",
        f"Final Equity: ${last_equity:.2f}",
        f"Total PnL: {_signed_usd(total_pnl)}",
    ]
    span = _date_range(records, "timestamp")
    if span:
        lines.append(f"Date Range: {span}")
    return lines


_SUMMARIES = {
    "positions": _positions_history_summary,
    "funding": _funding_summary,
    "portfolio": _portfolio_summary,
}


def format_endpoint_summary(endpoint: str, title: str, records: Sequence[dict]) -> str:
    """Summary block for one endpoint plus its first records."""
    lines = [RULE, f"{title} Summary", RULE, f"Total Records: {len(records)}"]
    if not records:
        lines.append("No data found.")
        return "\n".join(lines)

    summarize = _SUMMARIES.get(endpoint)
    if summarize is not None:
        lines.extend(summarize(records))
    else:
        span = _date_range(records, "created_at")
        if span:
            lines.append(f"Date Range: {span}")

    lines.append("")
    lines.append(f"First {min(TABLE_ROWS, len(records))} records:")
    lines.append(format_records_table(records))
    return "\n".join(lines)


def format_positions(positions: Sequence[Position], trade_count: int, fill_count: int) -> str:
    """Grouped positions report, most recent first."""
    closed = [p for p in positions if p.status is PositionStatus.CLOSED]
    realized = sum((p.total_pnl for p in closed), ZERO)
    fees = sum((p.total_fees for p in positions), ZERO)

    lines = [
        RULE,
        "Grouped Positions",
        RULE,
        f"Fills: {fill_count}  Trades: {trade_count}  Positions: {len(positions)} "
        f"({len(closed)} closed, {len(positions) - len(closed)} open)",
        f"Realized PnL (closed): {_signed_usd(realized)}",
        f"Fees: ${fees:.2f}",
    ]
    if not positions:
        lines.append("No positions found.")
        return "\n".join(lines)

    lines.append("")
    rows: list[dict[str, Any]] = []
    for p in positions:
        d = p.to_dict()
        rows.append(
            {
                "opened": d["opened_at_readable"],
                "symbol": p.symbol,
                "dir": p.direction.value,
                "status": p.status.value,
                "size": d["position_size"],
                "entry": d["entry_price"],
                "exit": d["exit_price"],
                "pnl": d["total_pnl"],
                "pnl_%": d["pnl_percentage"],
                "hours": d["duration_hours"],
                "trades": p.trade_count,
            }
        )
    lines.append(format_records_table(rows, limit=len(rows)))
    return "\n".join(lines)
