"""
CLI entry point: pacifica-history fetch | group.

fetch  pulls one or more history endpoints and writes JSON files (or prints
       console summaries).
group  rebuilds trades and positions from positions history, fetched live or
       read from a previous ``fetch`` export.
"""

import logging
import sys
import time

import click
from dotenv import load_dotenv

from config import AppConfig, ConfigError, load_config

load_dotenv()

logger = logging.getLogger("pacifica")

ENDPOINT_TITLES = {
    "positions": "Position History",
    "funding": "Funding History",
    "portfolio": "Portfolio History",
    "orders": "Order History",
    "balance": "Balance History",
}
EXPORT_NAMES = {
    "positions": "positions_history",
    "funding": "funding_history",
    "portfolio": "portfolio_history",
    "orders": "orders_history",
    "balance": "balance_history",
}
DEFAULT_ENDPOINTS = "positions,funding,portfolio"


def _setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _load(ctx: click.Context) -> AppConfig:
    try:
        cfg = load_config(ctx.obj["config_path"])
    except (FileNotFoundError, ConfigError) as exc:
        raise click.ClickException(str(exc)) from exc
    _setup_logging(cfg.logging.level)
    return cfg


def _parse_endpoints(value: str) -> list[str]:
    names = [e.strip() for e in value.split(",") if e.strip()]
    unknown = [n for n in names if n not in ENDPOINT_TITLES]
    if unknown:
        raise click.BadParameter(
            f"unknown endpoint(s): {', '.join(unknown)}. Choose from: {', '.join(ENDPOINT_TITLES)}",
            param_hint="--endpoints",
        )
    return names


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML (defaults apply when omitted).")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """pacifica-history: fetch Pacifica perps history and rebuild trades and positions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- pacifica-history fetch ----------


@cli.command()
@click.option("--wallet", default=None, help="Wallet address (default: config / PACIFICA_WALLET).")
@click.option("--endpoints", "endpoints_str", default=DEFAULT_ENDPOINTS, show_default=True,
              help="Comma-separated: positions,funding,portfolio,orders,balance.")
@click.option("--start-time", type=int, default=None, help="Start time in ms (positions/orders).")
@click.option("--end-time", type=int, default=None, help="End time in ms (positions/orders).")
@click.option("--time-range", default=None, type=click.Choice(["1d", "7d", "14d", "30d", "all"]),
              help="Portfolio time range (default: all).")
@click.option("--symbol", default=None, help="Filter by symbol (positions/orders).")
@click.option("--limit", type=int, default=None, help="Records per page (default: config page_limit).")
@click.option("--output", "output_format", default=None, type=click.Choice(["json", "console"]),
              help="Output format (default: config output.format).")
@click.option("--output-dir", default=None, help="Directory for JSON files (default: config output.dir).")
@click.pass_context
def fetch(
    ctx: click.Context,
    wallet: str | None,
    endpoints_str: str,
    start_time: int | None,
    end_time: int | None,
    time_range: str | None,
    symbol: str | None,
    limit: int | None,
    output_format: str | None,
    output_dir: str | None,
) -> None:
    """Fetch history endpoints for a wallet and save or print them."""
    cfg = _load(ctx)
    endpoints = _parse_endpoints(endpoints_str)
    wallet = wallet or cfg.wallet
    if not wallet:
        raise click.UsageError("--wallet is required (or set wallet in config / PACIFICA_WALLET)")

    from cli.output import format_endpoint_summary, format_footer, format_header
    from cli.structured_log import StructuredEventLogger
    from data import PacificaAPIError, build_client
    from data import endpoints as api
    from export import HistoryWriter

    events = StructuredEventLogger(wallet, enabled=cfg.logging.structured_logs)
    writer = HistoryWriter(output_dir or cfg.output.dir)
    fmt = output_format or cfg.output.format
    page_limit = limit or cfg.api.page_limit

    fetchers = {
        "positions": lambda c: api.fetch_positions_history(
            c, wallet, limit=page_limit, start_time=start_time, end_time=end_time, symbol=symbol
        ),
        "funding": lambda c: api.fetch_funding_history(c, wallet, limit=page_limit),
        "portfolio": lambda c: api.fetch_portfolio_history(c, wallet, limit=page_limit, time_range=time_range),
        "orders": lambda c: api.fetch_orders_history(
            c, wallet, limit=page_limit, start_time=start_time, end_time=end_time, symbol=symbol
        ),
        "balance": lambda c: api.fetch_balance_history(c, wallet, limit=page_limit),
    }

    click.echo(format_header(wallet, endpoints, cfg.rate_limit.max_requests_per_minute))
    started = time.monotonic()
    total = 0
    with build_client(cfg, on_event=events.on_event) as client:
        for i, name in enumerate(endpoints, start=1):
            title = ENDPOINT_TITLES[name]
            click.echo(f"[{i}/{len(endpoints)}] Fetching {title}...")
            events.fetch_start(api.ENDPOINTS[name], {"limit": page_limit})
            try:
                records = fetchers[name](client)
            except PacificaAPIError as exc:
                events.error(message=str(exc), detail=type(exc).__name__)
                raise click.ClickException(str(exc)) from exc
            total += len(records)
            click.echo(f"  Completed: {len(records)} total records")

            if fmt == "json":
                path = writer.write_json(wallet, EXPORT_NAMES[name], records)
                click.echo(f"  Saved to: {path}")
            else:
                click.echo(format_endpoint_summary(name, title, records))

    click.echo(format_footer(total, time.monotonic() - started))


# ---------- pacifica-history group ----------


@cli.command()
@click.option("--wallet", default=None, help="Wallet address to fetch positions history for.")
@click.option("--from-file", "from_file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Group a saved positions_history export instead of fetching.")
@click.option("--start-time", type=int, default=None, help="Start time in ms.")
@click.option("--end-time", type=int, default=None, help="End time in ms.")
@click.option("--symbol", default=None, help="Filter by symbol.")
@click.option("--allow-direction-conflicts", is_flag=True, default=False,
              help="Merge opposite-direction trades into the open position instead of failing (hedge mode).")
@click.option("--output", "output_format", default=None, type=click.Choice(["json", "console"]),
              help="Output format (default: config output.format).")
@click.option("--output-dir", default=None, help="Directory for JSON files (default: config output.dir).")
@click.pass_context
def group(
    ctx: click.Context,
    wallet: str | None,
    from_file: str | None,
    start_time: int | None,
    end_time: int | None,
    symbol: str | None,
    allow_direction_conflicts: bool,
    output_format: str | None,
    output_dir: str | None,
) -> None:
    """Group fills into trades and trades into entry-to-exit positions.

    Positions are inferred from open_/close_ sides, not exchange position ids.
    When history starts mid-position the first close opens a position with no
    entry price, so treat the output as best effort.
    """
    cfg = _load(ctx)

    from cli.output import format_positions
    from cli.structured_log import StructuredEventLogger
    from export import HistoryWriter
    from history_core import (
        DirectionConflictError,
        MalformedFillError,
        PositionStatus,
        RawFill,
        UnrecognizedSideError,
        group_by_order,
        group_by_position,
    )

    writer = HistoryWriter(output_dir or cfg.output.dir)
    fmt = output_format or cfg.output.format

    if from_file:
        file_wallet, records = HistoryWriter.read_records(from_file)
        wallet = wallet or file_wallet or cfg.wallet
        events = StructuredEventLogger(wallet, enabled=cfg.logging.structured_logs)
        click.echo(f"Loaded {len(records)} fills from {from_file}")
    else:
        wallet = wallet or cfg.wallet
        if not wallet:
            raise click.UsageError("--wallet or --from-file is required")
        from data import PacificaAPIError, build_client
        from data.endpoints import POSITIONS_HISTORY, fetch_positions_history

        events = StructuredEventLogger(wallet, enabled=cfg.logging.structured_logs)
        click.echo("Fetching Position History...")
        events.fetch_start(POSITIONS_HISTORY, {"limit": cfg.api.page_limit})
        try:
            with build_client(cfg, on_event=events.on_event) as client:
                records = fetch_positions_history(
                    client, wallet, limit=cfg.api.page_limit,
                    start_time=start_time, end_time=end_time, symbol=symbol,
                )
        except PacificaAPIError as exc:
            events.error(message=str(exc), detail=type(exc).__name__)
            raise click.ClickException(str(exc)) from exc
        click.echo(f"  Completed: {len(records)} total records")

    try:
        fills = [RawFill.from_api(r) for r in records]
        if from_file:
            # the API applies these filters server-side on a live fetch
            fills = [
                f for f in fills
                if (not symbol or f.symbol == symbol)
                and (start_time is None or f.created_at >= start_time)
                and (end_time is None or f.created_at <= end_time)
            ]
        trades = group_by_order(fills)
        positions = group_by_position(trades, allow_direction_conflicts=allow_direction_conflicts)
    except (MalformedFillError, UnrecognizedSideError, DirectionConflictError) as exc:
        events.error(message=str(exc), detail=type(exc).__name__)
        raise click.ClickException(str(exc)) from exc

    open_count = sum(1 for p in positions if p.status is PositionStatus.OPEN)
    events.grouping_complete(fills=len(fills), trades=len(trades), positions=len(positions), open_positions=open_count)
    logger.info("Grouped %d fills into %d trades and %d positions", len(fills), len(trades), len(positions))

    if fmt == "json":
        trades_path = writer.write_json(wallet, "grouped_trades", trades)
        positions_path = writer.write_json(wallet, "grouped_positions", positions)
        click.echo(f"Saved {len(trades)} trades to: {trades_path}")
        click.echo(f"Saved {len(positions)} positions to: {positions_path}")
    else:
        click.echo(format_positions(positions, trade_count=len(trades), fill_count=len(fills)))


if __name__ == "__main__":
    cli()
