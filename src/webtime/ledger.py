"""Day- and domain-keyed accumulator of tracked seconds."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any, Union

from .db import fetch_day, fetch_day_keys, fetch_range, increment_entry, open_database
from .models import LedgerEntry

logger = logging.getLogger(__name__)


class LedgerStore:
    """Append-only ledger backed by the ``tracking_data`` table.

    Every :meth:`commit` is a single UPSERT statement applied while holding
    the store lock, so interleaved commits from the tick thread and request
    handlers never lose an increment. Entries are never corrected or pruned.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = db_path
        self._conn = open_database(Path(db_path), check_same_thread=False)
        self._lock = threading.Lock()

    def commit(
        self, day_key: str, domain: str, delta_seconds: int, delta_visits: int = 1
    ) -> None:
        if delta_seconds < 0 or delta_visits < 0:
            raise ValueError("Ledger increments must be non-negative.")
        with self._lock:
            increment_entry(self._conn, day_key, domain, int(delta_seconds), int(delta_visits))
        logger.debug(
            "Committed %ss (+%d visits) to %s on %s",
            delta_seconds,
            delta_visits,
            domain,
            day_key,
        )

    def read(self, day_key: str) -> dict[str, LedgerEntry]:
        with self._lock:
            rows = fetch_day(self._conn, day_key)
        return {
            row["domain"]: LedgerEntry(seconds=row["seconds"], visits=row["visits"])
            for row in rows
        }

    def read_range(self, start_key: str, end_key: str) -> dict[str, dict[str, LedgerEntry]]:
        with self._lock:
            rows = fetch_range(self._conn, start_key, end_key)
        days: dict[str, dict[str, LedgerEntry]] = defaultdict(dict)
        for row in rows:
            days[row["day_key"]][row["domain"]] = LedgerEntry(
                seconds=row["seconds"], visits=row["visits"]
            )
        return dict(days)

    def days(self) -> list[str]:
        with self._lock:
            return fetch_day_keys(self._conn)

    def snapshot(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Export the whole ledger as ``{day: {domain: {time, visits}}}``."""
        with self._lock:
            rows = list(
                self._conn.execute(
                    "SELECT day_key, domain, seconds, visits FROM tracking_data "
                    "ORDER BY day_key, domain;"
                )
            )
        data: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        for row in rows:
            data[row["day_key"]][row["domain"]] = {
                "time": row["seconds"],
                "visits": row["visits"],
            }
        return dict(data)

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error:
                logger.exception("Failed to close ledger database %s", self.db_path)
