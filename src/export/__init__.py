"""
JSON export of fetched and grouped history: one file per endpoint per run.
"""

from export.writer import HistoryWriter

__all__ = ["HistoryWriter"]
