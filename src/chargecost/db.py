"""Database connection and schema management."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "chargecost" / "chargecost.db"

SCHEMA = """
-- Locations charging sessions are recorded against
CREATE TABLE IF NOT EXISTS geofences (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    cost_per_unit REAL
);

-- Charging processes (one per session), cost set once reconciled
CREATE TABLE IF NOT EXISTS charging_processes (
    id INTEGER PRIMARY KEY,
    geofence_id INTEGER,
    start_date TEXT NOT NULL,
    end_date TEXT,
    charge_energy_used REAL,
    cost REAL,
    FOREIGN KEY (geofence_id) REFERENCES geofences(id)
);

-- Charging telemetry samples
CREATE TABLE IF NOT EXISTS charges (
    id INTEGER PRIMARY KEY,
    charging_process_id INTEGER NOT NULL,
    date TEXT NOT NULL,
    charge_energy_added REAL NOT NULL,
    charger_power REAL NOT NULL,
    charger_phases INTEGER,
    charger_actual_current REAL,
    charger_voltage REAL,
    UNIQUE(charging_process_id, date),
    FOREIGN KEY (charging_process_id) REFERENCES charging_processes(id)
);

CREATE INDEX IF NOT EXISTS idx_process_geofence ON charging_processes(geofence_id, start_date);
CREATE INDEX IF NOT EXISTS idx_charges_process ON charges(charging_process_id, date);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO timestamp; naive values are UTC."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute("SELECT COUNT(*) as count FROM geofences").fetchone()
        stats["geofences"] = {"count": row["count"]}

        row = conn.execute(
            """SELECT COUNT(*) as count,
                      SUM(CASE WHEN cost IS NULL AND end_date IS NOT NULL THEN 1 ELSE 0 END) as pending,
                      MIN(start_date) as earliest,
                      MAX(start_date) as latest
               FROM charging_processes"""
        ).fetchone()
        stats["charging_processes"] = {
            "count": row["count"],
            "pending": row["pending"] or 0,
            "earliest": row["earliest"],
            "latest": row["latest"],
        }

        row = conn.execute("SELECT COUNT(*) as count FROM charges").fetchone()
        stats["charges"] = {"count": row["count"]}

        return stats
