"""
SQLite persistence for coffee entries and schedule settings.
Schema: coffee_entries, settings.

Entries are stored with ISO-8601 timestamps and come back as CoffeeEntry
objects with real datetimes. Every write runs in its own transaction, so
concurrent "add entry" calls cannot lose each other's rows.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterable, Optional

from kaffa import config
from kaffa.core.entries import CoffeeEntry, entry_from_record, entry_to_record

log = logging.getLogger("kaffa.db")

_local = threading.local()

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS coffee_entries (
    id                    TEXT    PRIMARY KEY,
    consumed_at           TEXT    NOT NULL,
    date_key              TEXT    NOT NULL,
    drink_type            TEXT    NOT NULL,
    volume_ml             REAL    NOT NULL,
    caffeine_mg           REAL    NOT NULL,
    effective_caffeine_mg REAL    NOT NULL,
    milk_type             TEXT    DEFAULT 'No Milk'
);

CREATE INDEX IF NOT EXISTS idx_coffee_date ON coffee_entries(date_key);
CREATE INDEX IF NOT EXISTS idx_coffee_ts ON coffee_entries(consumed_at);

CREATE TABLE IF NOT EXISTS settings (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);
"""

_COLUMNS = (
    "id", "consumed_at", "date_key", "drink_type", "volume_ml",
    "caffeine_mg", "effective_caffeine_mg", "milk_type",
)
_INSERT_SQL = (
    f"INSERT INTO coffee_entries ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)


def get_connection() -> sqlite3.Connection:
    """Thread-local SQLite connection with WAL mode."""
    conn = getattr(_local, "conn", None)
    if conn is None or getattr(_local, "path", None) != config.DB_PATH:
        if conn is not None:
            conn.close()
        config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(config.DB_PATH), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        _local.conn = conn
        _local.path = config.DB_PATH
    return conn


@contextmanager
def db_cursor():
    """Yield a cursor, auto-commit on success, rollback on error."""
    conn = get_connection()
    cur = conn.cursor()
    try:
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db():
    """Create tables if they don't exist."""
    with db_cursor() as cur:
        cur.executescript(SCHEMA_SQL)
    log.info("Database initialized at %s", config.DB_PATH)


def _row_values(entry: CoffeeEntry) -> tuple:
    record = entry_to_record(entry)
    return tuple(record[c] for c in _COLUMNS)


# --- Entries ---

def load_entries() -> list[CoffeeEntry]:
    """Full history, oldest first."""
    with db_cursor() as cur:
        cur.execute("SELECT * FROM coffee_entries ORDER BY consumed_at, id")
        return [entry_from_record(dict(r)) for r in cur.fetchall()]


def save_entries(entries: Iterable[CoffeeEntry]) -> int:
    """Replace the stored list with entries. Returns the number saved."""
    rows = [_row_values(e) for e in entries]
    with db_cursor() as cur:
        cur.execute("DELETE FROM coffee_entries")
        cur.executemany(_INSERT_SQL, rows)
    log.info("Saved %d coffee entries", len(rows))
    return len(rows)


def add_entry(entry: CoffeeEntry) -> CoffeeEntry:
    with db_cursor() as cur:
        cur.execute(_INSERT_SQL, _row_values(entry))
    log.info(
        "Coffee entry saved: %s (%s, %.1f mg)",
        entry.drink_type, entry.milk_type, entry.caffeine_mg,
    )
    return entry


def get_entry(entry_id: str) -> Optional[CoffeeEntry]:
    with db_cursor() as cur:
        cur.execute("SELECT * FROM coffee_entries WHERE id=?", (entry_id,))
        row = cur.fetchone()
        return entry_from_record(dict(row)) if row else None


def query_entries(date_key: str) -> list[CoffeeEntry]:
    with db_cursor() as cur:
        cur.execute(
            "SELECT * FROM coffee_entries WHERE date_key=? ORDER BY consumed_at, id",
            (date_key,),
        )
        return [entry_from_record(dict(r)) for r in cur.fetchall()]


def delete_entry(entry_id: str) -> bool:
    with db_cursor() as cur:
        cur.execute("DELETE FROM coffee_entries WHERE id=?", (entry_id,))
        deleted = cur.rowcount > 0
    if deleted:
        log.info("Deleted coffee entry %s", entry_id)
    return deleted


def delete_entries_for_day(date_key: str) -> int:
    """Explicit day reset. Returns count of deleted rows."""
    with db_cursor() as cur:
        cur.execute("DELETE FROM coffee_entries WHERE date_key=?", (date_key,))
        count = cur.rowcount
    log.info("Reset %s: %d entries removed", date_key, count)
    return count


# --- Schedule ---

def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    with db_cursor() as cur:
        cur.execute("SELECT value FROM settings WHERE key=?", (key,))
        row = cur.fetchone()
        return row["value"] if row else default


def get_schedule() -> dict:
    return {
        "wake_up_time": get_setting("wake_up_time", config.DEFAULT_WAKE_UP_TIME),
        "bed_time": get_setting("bed_time", config.DEFAULT_BED_TIME),
    }


def set_schedule(wake_up_time: str, bed_time: str) -> dict:
    with db_cursor() as cur:
        for key, value in (("wake_up_time", wake_up_time), ("bed_time", bed_time)):
            cur.execute(
                """INSERT INTO settings (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value""",
                (key, value),
            )
    log.info("Schedule updated: wake %s, bed %s", wake_up_time, bed_time)
    return get_schedule()
