"""Cosmetics inventory — CRUD, lifecycle enrichment and quick actions.

dispose_at and status are recomputed from opened_at / pao_months / expiry_date
before every write and again on every read, so a product drifts from active
to warning to expired without anyone touching it.  Items the user marked
discarded or archived keep their stored values.

Quick actions (open, use, discard, restock) also append a CosmeticEvent.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from household.core import events, reminders
from household.core.lifecycle import compute_dispose_date, derive_status, normalize_date, TERMINAL_STATUSES
from household.db.database import get_connection
from household.db.models import COSMETIC_STATUSES, Cosmetic

logger = logging.getLogger(__name__)

_SELECT = """
    SELECT c.*, cat.display_name AS category_name
    FROM cosmetics c
    LEFT JOIN categories cat ON cat.id = c.category_id
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _today(today=None) -> str:
    return (normalize_date(today) or date.today()).isoformat()


def enrich(cosmetic: Cosmetic, today=None, keep_stored: bool = True) -> Cosmetic:
    """Recompute dispose_at and status in place and return the cosmetic.

    With keep_stored, the stored dispose_at survives when the inputs give no
    date. Writes pass keep_stored=False so clearing the dates clears it too.
    """
    if cosmetic.status not in TERMINAL_STATUSES:
        dispose = compute_dispose_date(cosmetic.opened_at, cosmetic.pao_months, cosmetic.expiry_date)
        if dispose:
            cosmetic.dispose_at = dispose.isoformat()
        elif not keep_stored:
            cosmetic.dispose_at = None
    cosmetic.status = derive_status(cosmetic.dispose_at, cosmetic.expiry_date, cosmetic.status, today=today)
    return cosmetic


def _validate(cosmetic: Cosmetic) -> None:
    if not (cosmetic.name or "").strip():
        raise ValueError("Cosmetic name is required")
    if cosmetic.status not in COSMETIC_STATUSES:
        raise ValueError(f"Unknown status: {cosmetic.status!r}")


def get_all(status: Optional[str] = None, category_id: Optional[int] = None,
            search: Optional[str] = None) -> list[Cosmetic]:
    """Return cosmetics newest first, optionally filtered.

    search matches name, brand and notes.  The status filter runs after
    enrichment so it sees today's derived status, not the stored one.
    """
    conn = get_connection()
    try:
        query = _SELECT + " WHERE 1=1"
        params = []
        if category_id:
            query += " AND c.category_id = ?"
            params.append(category_id)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            query += " AND (LOWER(c.name) LIKE ? OR LOWER(c.brand) LIKE ? OR LOWER(c.notes) LIKE ?)"
            params.extend([term, term, term])
        query += " ORDER BY c.created_at DESC, c.id DESC"
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()

    items = [enrich(Cosmetic(**dict(row))) for row in rows]
    if status:
        items = [c for c in items if c.status == status]
    return items


def get(cosmetic_id: int) -> Optional[Cosmetic]:
    """Return a single cosmetic with its reminders attached, or None."""
    conn = get_connection()
    try:
        row = conn.execute(_SELECT + " WHERE c.id = ?", (cosmetic_id,)).fetchone()
    finally:
        conn.close()
    if row is None:
        return None
    cosmetic = enrich(Cosmetic(**dict(row)))
    cosmetic.reminders = reminders.get_all(cosmetic_id)
    return cosmetic


def _require(cosmetic_id: int) -> Cosmetic:
    cosmetic = get(cosmetic_id)
    if cosmetic is None:
        raise LookupError(f"Cosmetic {cosmetic_id} not found")
    return cosmetic


def add(cosmetic: Cosmetic) -> int:
    """Insert a new cosmetic and return its ID."""
    _validate(cosmetic)
    enrich(cosmetic, keep_stored=False)
    stamp = _now()
    conn = get_connection()
    try:
        cursor = conn.execute(
            """INSERT INTO cosmetics (name, brand, category_id, size, unit, batch_code,
               purchase_date, opened_at, expiry_date, pao_months, dispose_at, status,
               notes, image_url, last_usage_at, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cosmetic.name.strip(), cosmetic.brand, cosmetic.category_id,
                cosmetic.size, cosmetic.unit, cosmetic.batch_code,
                cosmetic.purchase_date, cosmetic.opened_at, cosmetic.expiry_date,
                cosmetic.pao_months, cosmetic.dispose_at, cosmetic.status,
                cosmetic.notes, cosmetic.image_url, cosmetic.last_usage_at,
                stamp, stamp,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Added cosmetic %r (dispose_at=%s, status=%s)", cosmetic.name, cosmetic.dispose_at, cosmetic.status)
    return cursor.lastrowid


def update(cosmetic: Cosmetic) -> None:
    """Update an existing cosmetic by its ID, re-deriving its lifecycle fields."""
    _validate(cosmetic)
    enrich(cosmetic, keep_stored=False)
    cosmetic.updated_at = _now()
    conn = get_connection()
    try:
        conn.execute(
            """UPDATE cosmetics SET name=?, brand=?, category_id=?, size=?, unit=?,
               batch_code=?, purchase_date=?, opened_at=?, expiry_date=?, pao_months=?,
               dispose_at=?, status=?, notes=?, image_url=?, last_usage_at=?, updated_at=?
               WHERE id=?""",
            (
                cosmetic.name.strip(), cosmetic.brand, cosmetic.category_id,
                cosmetic.size, cosmetic.unit, cosmetic.batch_code,
                cosmetic.purchase_date, cosmetic.opened_at, cosmetic.expiry_date,
                cosmetic.pao_months, cosmetic.dispose_at, cosmetic.status,
                cosmetic.notes, cosmetic.image_url, cosmetic.last_usage_at,
                cosmetic.updated_at, cosmetic.id,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Updated cosmetic %s (dispose_at=%s, status=%s)", cosmetic.id, cosmetic.dispose_at, cosmetic.status)


def delete(cosmetic_id: int) -> None:
    """Delete a cosmetic by ID. Its reminders and events go with it."""
    conn = get_connection()
    try:
        conn.execute("DELETE FROM cosmetics WHERE id = ?", (cosmetic_id,))
        conn.commit()
    finally:
        conn.close()
    logger.info("Deleted cosmetic %s", cosmetic_id)


def overview(items: list[Cosmetic]) -> dict:
    """Summary counts for the cosmetics page header."""
    return {
        "total": len(items),
        "due_soon": sum(1 for c in items if c.status == "warning"),
        "expired": sum(1 for c in items if c.status == "expired"),
        "unopened": sum(1 for c in items if not c.opened_at),
    }


def duplicate_snapshot(cosmetic: Cosmetic) -> Cosmetic:
    """Return an unsaved, unopened copy of a cosmetic (for buying the same product again)."""
    return Cosmetic(
        id=None,
        name=cosmetic.name,
        brand=cosmetic.brand,
        category_id=cosmetic.category_id,
        size=cosmetic.size,
        unit=cosmetic.unit,
        batch_code=cosmetic.batch_code,
        purchase_date=cosmetic.purchase_date,
        opened_at=None,
        expiry_date=cosmetic.expiry_date,
        pao_months=cosmetic.pao_months,
        dispose_at=None,
        status="active",
        notes=cosmetic.notes,
        image_url=cosmetic.image_url,
    )


# ── Quick actions ─────────────────────────────────────────────────────────────

def mark_opened(cosmetic_id: int, today=None) -> Cosmetic:
    """Set opened_at to today, restart the PAO clock and move any reminder."""
    cosmetic = _require(cosmetic_id)
    day = _today(today)
    cosmetic.opened_at = day
    cosmetic.status = "active"
    update(cosmetic)
    reminders.reschedule(cosmetic)
    events.log_event(cosmetic_id, "opened", {"opened_at": day})
    return cosmetic


def record_usage(cosmetic_id: int, now: Optional[str] = None) -> Cosmetic:
    cosmetic = _require(cosmetic_id)
    used_at = now or _now()
    cosmetic.last_usage_at = used_at
    update(cosmetic)
    events.log_event(cosmetic_id, "usage", {"used_at": used_at})
    return cosmetic


def discard(cosmetic_id: int, today=None) -> Cosmetic:
    """Mark a cosmetic discarded as of today and dismiss its open reminders."""
    cosmetic = _require(cosmetic_id)
    day = _today(today)
    cosmetic.status = "discarded"
    cosmetic.dispose_at = day
    update(cosmetic)
    reminders.dismiss_for(cosmetic_id)
    events.log_event(cosmetic_id, "discarded", {"discarded_at": day})
    return cosmetic


def restock(cosmetic_id: int) -> int:
    """Add a fresh unopened copy of a cosmetic and return the new ID."""
    cosmetic = _require(cosmetic_id)
    new_id = add(duplicate_snapshot(cosmetic))
    events.log_event(cosmetic_id, "restocked", {"new_cosmetic_id": new_id})
    return new_id
