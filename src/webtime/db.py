"""SQLite database layer for the ledger, category cache and settings."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS tracking_data (
            day_key TEXT NOT NULL,
            domain TEXT NOT NULL,
            seconds INTEGER NOT NULL DEFAULT 0 CHECK (seconds >= 0),
            visits INTEGER NOT NULL DEFAULT 0 CHECK (visits >= 0),
            PRIMARY KEY (day_key, domain)
        );

        CREATE TABLE IF NOT EXISTS domain_categories (
            domain TEXT PRIMARY KEY,
            category TEXT NOT NULL,
            source TEXT NOT NULL DEFAULT 'auto',
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        );

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def increment_entry(
    conn: sqlite3.Connection,
    day_key: str,
    domain: str,
    seconds: int,
    visits: int,
) -> None:
    """Add to a ledger entry in a single statement, creating it if absent."""
    conn.execute(
        """
        INSERT INTO tracking_data (day_key, domain, seconds, visits)
        VALUES (?, ?, ?, ?)
        ON CONFLICT (day_key, domain) DO UPDATE SET
            seconds = seconds + excluded.seconds,
            visits = visits + excluded.visits
        """,
        (day_key, domain, seconds, visits),
    )


def fetch_day(conn: sqlite3.Connection, day_key: str) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT domain, seconds, visits
            FROM tracking_data
            WHERE day_key = ?
            ORDER BY seconds DESC, domain;
            """,
            (day_key,),
        )
    )


def fetch_range(
    conn: sqlite3.Connection, start_key: str, end_key: str
) -> list[sqlite3.Row]:
    """Fetch ledger rows for days between the two keys (inclusive)."""
    return list(
        conn.execute(
            """
            SELECT day_key, domain, seconds, visits
            FROM tracking_data
            WHERE day_key >= ? AND day_key <= ?
            ORDER BY day_key, seconds DESC, domain;
            """,
            (start_key, end_key),
        )
    )


def fetch_day_keys(conn: sqlite3.Connection) -> list[str]:
    return [
        row["day_key"]
        for row in conn.execute(
            "SELECT DISTINCT day_key FROM tracking_data ORDER BY day_key;"
        )
    ]


def fetch_categories(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            "SELECT domain, category, source, updated_at FROM domain_categories ORDER BY domain;"
        )
    )


def upsert_category(
    conn: sqlite3.Connection, domain: str, category: str, *, source: str = "auto"
) -> None:
    conn.execute(
        """
        INSERT INTO domain_categories (domain, category, source)
        VALUES (?, ?, ?)
        ON CONFLICT (domain) DO UPDATE SET
            category = excluded.category,
            source = excluded.source,
            updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
        """,
        (domain, category, source),
    )


def load_setting(conn: sqlite3.Connection, key: str) -> Optional[Any]:
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return json.loads(row["value"])


def save_setting(conn: sqlite3.Connection, key: str, value: Any) -> None:
    conn.execute(
        """
        INSERT INTO settings (key, value) VALUES (?, ?)
        ON CONFLICT (key) DO UPDATE SET value = excluded.value
        """,
        (key, json.dumps(value)),
    )
