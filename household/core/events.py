"""Cosmetic history — an append-only log of what happened to each product."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from household.db.database import get_connection
from household.db.models import EVENT_TYPES, CosmeticEvent

logger = logging.getLogger(__name__)


def _from_row(row) -> CosmeticEvent:
    data = dict(row)
    data["payload"] = json.loads(data.get("payload") or "{}")
    return CosmeticEvent(**data)


def log_event(cosmetic_id: int, event_type: str, payload: Optional[dict] = None,
              occurred_at: Optional[str] = None) -> int:
    """Record an event for a cosmetic and return its ID."""
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type!r}")
    occurred_at = occurred_at or datetime.now(timezone.utc).isoformat()
    conn = get_connection()
    try:
        cursor = conn.execute(
            "INSERT INTO cosmetic_events (cosmetic_id, event_type, payload, occurred_at) VALUES (?, ?, ?, ?)",
            (cosmetic_id, event_type, json.dumps(payload or {}), occurred_at),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Cosmetic %s: %s", cosmetic_id, event_type)
    return cursor.lastrowid


def get_for_cosmetic(cosmetic_id: int) -> list[CosmeticEvent]:
    """Return a cosmetic's events, newest first."""
    conn = get_connection()
    try:
        rows = conn.execute(
            "SELECT * FROM cosmetic_events WHERE cosmetic_id = ? ORDER BY occurred_at DESC, id DESC",
            (cosmetic_id,),
        ).fetchall()
        return [_from_row(row) for row in rows]
    finally:
        conn.close()


def delete(event_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute("DELETE FROM cosmetic_events WHERE id = ?", (event_id,))
        conn.commit()
    finally:
        conn.close()
