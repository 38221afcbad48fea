"""
Structured JSON event logger.

Emits one JSON object per line to stderr so fetch runs can be followed by a
log aggregator. Every record carries ``ts``, ``event`` and ``wallet``.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from typing import Any


class StructuredEventLogger:
    """Emit structured JSON events to a stream (stderr by default)."""

    def __init__(
        self,
        wallet: str,
        *,
        enabled: bool = True,
        stream: Any = None,
    ) -> None:
        self._wallet = wallet
        self._enabled = enabled
        self._stream = stream or sys.stderr

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "wallet": self._wallet,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record) + "\n")
            self._stream.flush()
        return record

    def on_event(self, event_type: str, payload: dict) -> dict:
        """Callback for PacificaClient progress events."""
        return self._emit(event_type, **payload)

    def fetch_start(self, endpoint: str, params: dict) -> dict:
        return self._emit("fetch_start", endpoint=endpoint, params=params)

    def grouping_complete(self, fills: int, trades: int, positions: int, open_positions: int) -> dict:
        return self._emit(
            "grouping_complete",
            fills=fills,
            trades=trades,
            positions=positions,
            open_positions=open_positions,
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
