"""Disposal reminders — CRUD plus the scheduling rules used when a cosmetic is saved.

A cosmetic has at most one *active* reminder (pending or snoozed).  Saving a
cosmetic with reminders enabled moves that reminder to the new time or
creates one; saving with reminders disabled deletes it.  The reminder and the
cosmetic are written separately: a failure here leaves the cosmetic saved.

lead_days is kept in the reminder's metadata so an edit form can show the
lead time the user chose rather than reverse-engineering it from remind_at.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from household.core.lifecycle import (
    DEFAULT_LEAD_DAYS, clamp_lead_days, compute_reminder_timestamp, infer_lead_days, parse_timestamp,
)
from household.db.database import get_connection
from household.db.models import REMINDER_STATUSES, CosmeticReminder

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "snoozed")
MAX_SNOOZE_DAYS = 365


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _from_row(row) -> CosmeticReminder:
    data = dict(row)
    data["metadata"] = json.loads(data.get("metadata") or "{}")
    return CosmeticReminder(**data)


def get_all(cosmetic_id: Optional[int] = None) -> list[CosmeticReminder]:
    """Return reminders ordered by remind_at, optionally for one cosmetic."""
    conn = get_connection()
    try:
        query = "SELECT * FROM cosmetic_reminders"
        params = []
        if cosmetic_id is not None:
            query += " WHERE cosmetic_id = ?"
            params.append(cosmetic_id)
        query += " ORDER BY remind_at, id"
        rows = conn.execute(query, params).fetchall()
        return [_from_row(row) for row in rows]
    finally:
        conn.close()


def get(reminder_id: int) -> Optional[CosmeticReminder]:
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM cosmetic_reminders WHERE id = ?", (reminder_id,)).fetchone()
        return _from_row(row) if row else None
    finally:
        conn.close()


def add(reminder: CosmeticReminder) -> int:
    """Insert a new reminder and return its ID."""
    if reminder.status not in REMINDER_STATUSES:
        raise ValueError(f"Unknown reminder status: {reminder.status!r}")
    stamp = _now().isoformat()
    conn = get_connection()
    try:
        cursor = conn.execute(
            """INSERT INTO cosmetic_reminders (cosmetic_id, remind_at, status, snoozed_until,
               metadata, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                reminder.cosmetic_id, reminder.remind_at, reminder.status,
                reminder.snoozed_until, json.dumps(reminder.metadata or {}),
                stamp, stamp,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    logger.info("Scheduled reminder for cosmetic %s at %s", reminder.cosmetic_id, reminder.remind_at)
    return cursor.lastrowid


def update(reminder: CosmeticReminder) -> None:
    """Update an existing reminder by its ID."""
    if reminder.status not in REMINDER_STATUSES:
        raise ValueError(f"Unknown reminder status: {reminder.status!r}")
    reminder.updated_at = _now().isoformat()
    conn = get_connection()
    try:
        conn.execute(
            """UPDATE cosmetic_reminders SET remind_at=?, status=?, snoozed_until=?,
               metadata=?, updated_at=? WHERE id=?""",
            (
                reminder.remind_at, reminder.status, reminder.snoozed_until,
                json.dumps(reminder.metadata or {}), reminder.updated_at, reminder.id,
            ),
        )
        conn.commit()
    finally:
        conn.close()


def delete(reminder_id: int) -> None:
    conn = get_connection()
    try:
        conn.execute("DELETE FROM cosmetic_reminders WHERE id = ?", (reminder_id,))
        conn.commit()
    finally:
        conn.close()


def active_for(cosmetic_id: int) -> Optional[CosmeticReminder]:
    """Return the cosmetic's pending or snoozed reminder, if any."""
    return next(
        (r for r in get_all(cosmetic_id) if r.status in ACTIVE_STATUSES),
        None,
    )


def lead_days_for(cosmetic, default: int = DEFAULT_LEAD_DAYS) -> int:
    """Lead time to show when editing a cosmetic that may already have a reminder."""
    if cosmetic.id is None:
        return default
    reminder = active_for(cosmetic.id)
    if reminder is None:
        return default
    return infer_lead_days(reminder.metadata, cosmetic.dispose_at, reminder.remind_at)


def sync_for_cosmetic(cosmetic, enabled: bool, lead_days, note: str = "Scheduled on edit",
                      now=None) -> Optional[CosmeticReminder]:
    """Bring the cosmetic's reminder in line with its form settings.

    Returns the active reminder after the change, or None when there is none.
    Without a dispose date nothing is scheduled and an existing reminder is
    left alone.
    """
    existing = active_for(cosmetic.id)

    if not enabled:
        if existing:
            delete(existing.id)
            logger.info("Removed reminder %s for cosmetic %s", existing.id, cosmetic.id)
        return None

    lead = clamp_lead_days(lead_days)
    remind_at = compute_reminder_timestamp(cosmetic.dispose_at, lead, now=now)
    if remind_at is None:
        return existing

    if existing:
        existing.remind_at = remind_at
        existing.status = "pending"
        existing.snoozed_until = None
        existing.metadata = {**existing.metadata, "lead_days": lead}
        update(existing)
        logger.info("Moved reminder %s for cosmetic %s to %s", existing.id, cosmetic.id, remind_at)
        return existing

    reminder = CosmeticReminder(
        id=None,
        cosmetic_id=cosmetic.id,
        remind_at=remind_at,
        status="pending",
        metadata={"note": note, "lead_days": lead},
    )
    reminder.id = add(reminder)
    return reminder


def reschedule(cosmetic, now=None) -> Optional[CosmeticReminder]:
    """Move an existing reminder after the dispose date changed, keeping its lead time."""
    if active_for(cosmetic.id) is None:
        return None
    return sync_for_cosmetic(cosmetic, True, lead_days_for(cosmetic), now=now)


def dismiss_for(cosmetic_id: int) -> int:
    """Dismiss every active reminder for a cosmetic. Return count dismissed."""
    conn = get_connection()
    try:
        cursor = conn.execute(
            """UPDATE cosmetic_reminders SET status='dismissed', snoozed_until=NULL, updated_at=?
               WHERE cosmetic_id=? AND status IN ('pending', 'snoozed')""",
            (_now().isoformat(), cosmetic_id),
        )
        conn.commit()
        return cursor.rowcount
    finally:
        conn.close()


def get_due(now=None) -> list[CosmeticReminder]:
    """Return reminders that should fire at or before now.

    Pending reminders are due at remind_at; snoozed ones at snoozed_until.
    """
    current = parse_timestamp(now) or _now()
    due = []
    for reminder in get_all():
        if reminder.status == "pending":
            fire_at = parse_timestamp(reminder.remind_at)
        elif reminder.status == "snoozed":
            fire_at = parse_timestamp(reminder.snoozed_until)
        else:
            continue
        if fire_at is not None and fire_at <= current:
            due.append(reminder)
    return due


def get_upcoming() -> list[CosmeticReminder]:
    """Return all pending and snoozed reminders, soonest first."""
    return [r for r in get_all() if r.status in ACTIVE_STATUSES]


def _set_status(reminder_id: int, status: str, snoozed_until: Optional[str] = None) -> CosmeticReminder:
    reminder = get(reminder_id)
    if reminder is None:
        raise LookupError(f"Reminder {reminder_id} not found")
    reminder.status = status
    reminder.snoozed_until = snoozed_until
    update(reminder)
    logger.info("Reminder %s marked %s", reminder_id, status)
    return reminder


def mark_sent(reminder_id: int) -> CosmeticReminder:
    return _set_status(reminder_id, "sent")


def dismiss(reminder_id: int) -> CosmeticReminder:
    return _set_status(reminder_id, "dismissed")


def clamp_snooze_days(days) -> int:
    return max(1, min(MAX_SNOOZE_DAYS, int(days)))


def snooze(reminder_id: int, days: int = 1, now=None) -> CosmeticReminder:
    """Push a reminder back by 1 to MAX_SNOOZE_DAYS days from now."""
    current = parse_timestamp(now) or _now()
    until = current + timedelta(days=clamp_snooze_days(days))
    return _set_status(reminder_id, "snoozed", snoozed_until=until.isoformat())
