"""Tests for CLI commands using click CliRunner. No network; mocked transport."""

import json
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

import data
from cli.main import cli
from conftest import WALLET, envelope, fill_row
from data.client import PacificaClient
from data.rate_limiter import RateLimiter

FILLS = [
    fill_row(1, "open_long", "0.5", "100", 1000, order_id=1, fee="0.01"),
    fill_row(2, "open_long", "0.5", "102", 1001, order_id=1, fee="0.01"),
    fill_row(3, "close_long", "1", "110", 5000, order_id=2, fee="0.02", pnl="9"),
    fill_row(4, "open_short", "2", "20", 6000, symbol="SOL"),
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PACIFICA_WALLET", raising=False)
    monkeypatch.delenv("PACIFICA_API_URL", raising=False)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fills_file(tmp_path: Path) -> Path:
    path = tmp_path / "positions_history.json"
    path.write_text(
        json.dumps(
            {
                "wallet_address": WALLET,
                "fetch_timestamp": "2024-01-01T00:00:00.000Z",
                "endpoint": "positions_history",
                "total_records": len(FILLS),
                "data": FILLS,
            }
        )
    )
    return path


@pytest.fixture
def served(monkeypatch: pytest.MonkeyPatch) -> dict:
    """Route build_client to a mocked transport; map URL path -> list of bodies."""
    routes: dict[str, list] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v1")
        item = routes[path].pop(0)
        if isinstance(item, httpx.Response):
            return httpx.Response(item.status_code, content=item.content)
        return httpx.Response(200, content=json.dumps(item).encode())

    def fake_build_client(cfg, *, on_event=None) -> PacificaClient:
        return PacificaClient(
            "https://api.test/api/v1",
            transport=httpx.MockTransport(handler),
            rate_limiter=RateLimiter(delay_seconds=0, sleep=lambda s: None),
            sleep=lambda s: None,
            on_event=on_event,
        )

    monkeypatch.setattr(data, "build_client", fake_build_client)
    return routes


def _json_files(directory: Path) -> dict[str, dict]:
    return {p.name.split("-")[0]: json.loads(p.read_text()) for p in directory.glob("*.json")}


# ---------------------------------------------------------------------------
# group
# ---------------------------------------------------------------------------


def test_group_from_file_json(runner: CliRunner, fills_file: Path, tmp_path: Path) -> None:
    out_dir = tmp_path / "out"
    result = runner.invoke(cli, ["group", "--from-file", str(fills_file), "--output-dir", str(out_dir)])
    assert result.exit_code == 0, result.output
    assert "Loaded 4 fills" in result.output
    assert "Saved 3 trades" in result.output
    assert "Saved 2 positions" in result.output

    files = _json_files(out_dir)
    positions = files["grouped_positions"]
    assert positions["wallet_address"] == WALLET
    assert positions["total_records"] == 2
    sol, btc = positions["data"]
    assert sol["status"] == "open"
    assert sol["exit_price"] == "N/A"
    assert btc["status"] == "closed"
    assert btc["entry_price"] == "101.000000"
    assert btc["exit_price"] == "110.000000"
    assert btc["total_pnl"] == "9.000000"
    assert files["grouped_trades"]["total_records"] == 3


def test_group_from_file_console(runner: CliRunner, fills_file: Path) -> None:
    result = runner.invoke(cli, ["group", "--from-file", str(fills_file), "--output", "console"])
    assert result.exit_code == 0, result.output
    assert "Grouped Positions" in result.output
    assert "1 closed, 1 open" in result.output
    assert "Realized PnL (closed): +$9.00" in result.output


def test_group_symbol_filter(runner: CliRunner, fills_file: Path) -> None:
    result = runner.invoke(
        cli, ["group", "--from-file", str(fills_file), "--symbol", "SOL", "--output", "console"]
    )
    assert result.exit_code == 0, result.output
    assert "Positions: 1 (0 closed, 1 open)" in result.output


def test_group_time_filter_on_file(runner: CliRunner, fills_file: Path) -> None:
    late = runner.invoke(
        cli, ["group", "--from-file", str(fills_file), "--start-time", "5500", "--output", "console"]
    )
    assert late.exit_code == 0, late.output
    assert "Fills: 1 " in late.output
    assert "Positions: 1 (0 closed, 1 open)" in late.output

    early = runner.invoke(
        cli, ["group", "--from-file", str(fills_file), "--end-time", "5000", "--output", "console"]
    )
    assert early.exit_code == 0, early.output
    assert "Fills: 3 " in early.output
    assert "Positions: 1 (1 closed, 0 open)" in early.output


def test_group_malformed_fill_fails(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "bad_amount.json"
    path.write_text(json.dumps([fill_row(1, "open_long", "abc", "100", 1000, order_id=1)]))
    result = runner.invoke(cli, ["group", "--from-file", str(path), "--output", "console"])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "amount" in result.output
    assert "'abc'" in result.output


def test_group_direction_conflict_fails(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "hedge.json"
    path.write_text(
        json.dumps(
            [
                fill_row(1, "open_long", "1", "100", 1000, order_id=1),
                fill_row(2, "open_short", "1", "100", 2000, order_id=2),
            ]
        )
    )
    result = runner.invoke(cli, ["group", "--from-file", str(path), "--output", "console"])
    assert result.exit_code == 1
    assert "hedge mode" in result.output

    merged = runner.invoke(
        cli, ["group", "--from-file", str(path), "--output", "console", "--allow-direction-conflicts"]
    )
    assert merged.exit_code == 0, merged.output


def test_group_bad_side_fails(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(json.dumps([fill_row(1, "bid", "1", "100", 1000)]))
    result = runner.invoke(cli, ["group", "--from-file", str(path), "--output", "console"])
    assert result.exit_code == 1
    assert "Unrecognized side" in result.output


def test_group_requires_wallet_or_file(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["group"])
    assert result.exit_code == 2
    assert "--wallet or --from-file" in result.output


def test_group_fetches_live(runner: CliRunner, served: dict, tmp_path: Path) -> None:
    served["/positions/history"] = [envelope(FILLS[:2], next_cursor="c"), envelope(FILLS[2:])]
    result = runner.invoke(
        cli, ["group", "--wallet", WALLET, "--output", "console", "--output-dir", str(tmp_path)]
    )
    assert result.exit_code == 0, result.output
    assert "Completed: 4 total records" in result.output
    assert "Positions: 2" in result.output


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


def test_fetch_writes_one_file_per_endpoint(runner: CliRunner, served: dict, tmp_path: Path) -> None:
    served["/positions/history"] = [envelope(FILLS[:3], next_cursor="p2"), envelope(FILLS[3:])]
    served["/funding/history"] = [envelope([{"symbol": "BTC", "payout": "-0.5", "created_at": 1000}])]
    served["/portfolio"] = [envelope([{"account_equity": "1000", "pnl": "0", "timestamp": 1000}])]

    result = runner.invoke(cli, ["fetch", "--wallet", WALLET, "--output-dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Fetching Pacifica Historical Data" in result.output
    assert "[1/3] Fetching Position History..." in result.output
    assert "Total Records: 6" in result.output

    files = _json_files(tmp_path)
    assert set(files) == {"positions_history", "funding_history", "portfolio_history"}
    assert files["positions_history"]["total_records"] == 4
    assert [r["history_id"] for r in files["positions_history"]["data"]] == [1, 2, 3, 4]


def test_fetch_console_summary(runner: CliRunner, served: dict) -> None:
    served["/funding/history"] = [
        envelope(
            [
                {"symbol": "BTC", "payout": "-0.5", "created_at": 1000},
                {"symbol": "ETH", "payout": "0.25", "created_at": 2000},
            ]
        )
    ]
    result = runner.invoke(cli, ["fetch", "--wallet", WALLET, "--endpoints", "funding", "--output", "console"])
    assert result.exit_code == 0, result.output
    assert "Funding History Summary" in result.output
    assert "Symbols: BTC, ETH" in result.output
    assert "Total Funding Paid: $-0.25" in result.output


def test_fetch_empty_endpoint(runner: CliRunner, served: dict) -> None:
    served["/orders/history"] = [envelope([])]
    result = runner.invoke(cli, ["fetch", "--wallet", WALLET, "--endpoints", "orders", "--output", "console"])
    assert result.exit_code == 0, result.output
    assert "No data found." in result.output


def test_fetch_exhausted_retries_exit_nonzero(runner: CliRunner, served: dict) -> None:
    served["/positions/history"] = [httpx.Response(429)] * 3
    result = runner.invoke(cli, ["fetch", "--wallet", WALLET, "--endpoints", "positions", "--output", "console"])
    assert result.exit_code == 1
    assert "Rate limit exceeded after 3 attempts" in result.output


def test_fetch_api_rejection(runner: CliRunner, served: dict) -> None:
    served["/account/balance/history"] = [{"success": False, "data": [], "error": "unknown account", "code": 404}]
    result = runner.invoke(cli, ["fetch", "--wallet", WALLET, "--endpoints", "balance", "--output", "console"])
    assert result.exit_code == 1
    assert "unknown account" in result.output


def test_fetch_requires_wallet(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["fetch"])
    assert result.exit_code == 2
    assert "--wallet is required" in result.output


def test_fetch_unknown_endpoint(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["fetch", "--wallet", WALLET, "--endpoints", "trades"])
    assert result.exit_code == 2
    assert "unknown endpoint" in result.output


def test_missing_config_file(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["--config", "/nonexistent.yaml", "fetch", "--wallet", WALLET])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_wallet_from_config(runner: CliRunner, served: dict, tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"wallet: {WALLET}\noutput:\n  format: console\n")
    served["/portfolio"] = [envelope([])]
    result = runner.invoke(cli, ["--config", str(config_path), "fetch", "--endpoints", "portfolio"])
    assert result.exit_code == 0, result.output
    assert f"Wallet: {WALLET}" in result.output
