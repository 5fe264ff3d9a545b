"""SQLite database connection management and schema initialization.

Provides a single-file database at ~/.household/household.db.
Every public function that needs a connection should call get_connection(),
use it, and close it in a finally block.
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)


def get_db_path() -> Path:
    """Return the active DB path.

    Priority order:
    1. DB_PATH environment variable (used by Docker / tests)
    2. Default ~/.household/household.db
    """
    env_path = os.environ.get("DB_PATH")
    if env_path:
        p = Path(env_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    db_dir = Path.home() / ".household"
    db_dir.mkdir(exist_ok=True)
    return db_dir / "household.db"


def get_connection(db_path: Path = None) -> sqlite3.Connection:
    """Return a new SQLite connection with Row factory and foreign keys enabled.

    Callers are responsible for closing the connection when done.
    """
    if db_path is None:
        db_path = get_db_path()
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path = None) -> None:
    """Create all tables if they don't already exist.

    Called once at application startup from main.py.
    Tables: categories, cosmetics, cosmetic_reminders, cosmetic_events, settings.
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    cursor.executescript("""
        CREATE TABLE IF NOT EXISTS categories (
            id           INTEGER PRIMARY KEY AUTOINCREMENT,
            name         TEXT NOT NULL UNIQUE,
            display_name TEXT NOT NULL,
            created_at   TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS cosmetics (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            name          TEXT NOT NULL,
            brand         TEXT,
            category_id   INTEGER REFERENCES categories(id) ON DELETE SET NULL,
            size          REAL,
            unit          TEXT,
            batch_code    TEXT,
            purchase_date TEXT,
            opened_at     TEXT,
            expiry_date   TEXT,
            pao_months    INTEGER,
            dispose_at    TEXT,
            status        TEXT NOT NULL DEFAULT 'active',
            notes         TEXT,
            image_url     TEXT,
            last_usage_at TEXT,
            created_at    TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at    TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS cosmetic_reminders (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            cosmetic_id   INTEGER NOT NULL REFERENCES cosmetics(id) ON DELETE CASCADE,
            remind_at     TEXT NOT NULL,
            status        TEXT NOT NULL DEFAULT 'pending',
            snoozed_until TEXT,
            metadata      TEXT DEFAULT '{}',
            created_at    TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at    TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS cosmetic_events (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            cosmetic_id INTEGER NOT NULL REFERENCES cosmetics(id) ON DELETE CASCADE,
            event_type  TEXT NOT NULL,
            payload     TEXT DEFAULT '{}',
            occurred_at TEXT NOT NULL,
            created_at  TEXT DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS settings (
            key   TEXT PRIMARY KEY,
            value TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_reminders_remind_at
            ON cosmetic_reminders (status, remind_at);
    """)

    conn.commit()
    conn.close()
    logger.info("Database ready at %s", db_path or get_db_path())
