"""Key-value settings storage backed by the SQLite settings table.

Known keys:
    claude_api_key     — Anthropic API key for AI features (stored as-is, never exported).
    claude_model       — model id used for photo analysis.
    default_lead_days  — reminder lead time pre-filled on new cosmetics.
"""

from household.core.lifecycle import DEFAULT_LEAD_DAYS, clamp_lead_days
from household.db.database import get_connection

DEFAULT_MODEL = "claude-sonnet-4-5"


def get_setting(key: str, default: str = None) -> str:
    """Return the value for a settings key, or default if not found."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default
    finally:
        conn.close()


def set_setting(key: str, value: str) -> None:
    """Insert or update a settings key-value pair (upsert)."""
    conn = get_connection()
    try:
        conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )
        conn.commit()
    finally:
        conn.close()


def get_default_lead_days() -> int:
    """Return the configured reminder lead time, clamped to 0-60 days."""
    return clamp_lead_days(get_setting("default_lead_days", DEFAULT_LEAD_DAYS))


def get_model() -> str:
    """Return the model id used for AI photo analysis."""
    return get_setting("claude_model") or DEFAULT_MODEL
