"""
History writer: one pretty-printed JSON document per endpoint per run.

File name: ``{endpoint}-{wallet[:8]}-{timestamp}.json``. The document wraps
the records with the wallet, fetch time, endpoint name and record count.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Sequence


def _serialize(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryWriter:
    """Write endpoint results under one output directory."""

    def __init__(self, output_dir: str | Path, *, now: Callable[[], datetime] = _utc_now) -> None:
        self._dir = Path(output_dir)
        self._now = now

    def write_json(self, wallet: str, endpoint: str, data: Sequence[Any]) -> Path:
        """Write *data* and return the path of the new file."""
        self._dir.mkdir(parents=True, exist_ok=True)
        ts = self._now()
        stamp = ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        filename = f"{endpoint}-{wallet[:8]}-{stamp.replace(':', '-').replace('.', '-')}.json"
        path = self._dir / filename

        document = {
            "wallet_address": wallet,
            "fetch_timestamp": stamp,
            "endpoint": endpoint,
            "total_records": len(data),
            "data": _serialize(list(data)),
        }
        with open(path, "w") as f:
            json.dump(document, f, indent=2)
            f.write("\n")
        return path

    @staticmethod
    def read_records(path: str | Path) -> tuple[str, list[Any]]:
        """Load a file written by ``write_json``; returns (wallet, records).

        A bare JSON array of records is accepted too, with an empty wallet.
        """
        with open(path) as f:
            document = json.load(f)
        if isinstance(document, list):
            return "", document
        if not isinstance(document, dict) or not isinstance(document.get("data"), list):
            raise ValueError(f"{path}: expected an export document with a 'data' array")
        return str(document.get("wallet_address", "")), document["data"]
