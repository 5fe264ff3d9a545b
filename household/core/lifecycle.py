"""Cosmetic lifecycle rules — dispose dates, status derivation and reminder timing.

Pure functions over dates: no I/O and no shared state, so forms can call them
on every keystroke and the write path can call them before saving.  Every
function is total over its documented input types: unparseable dates become
None and bad numbers fall back to defaults instead of raising.

Dates are handled at calendar-day granularity.  Aware datetimes are converted
to UTC before the time of day is dropped; reminder timestamps are UTC.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

WARNING_WINDOW_DAYS = 14
DEFAULT_LEAD_DAYS = 14
MAX_LEAD_DAYS = 60

TERMINAL_STATUSES = ("discarded", "archived")


def _as_number(value) -> Optional[float]:
    """Return value as a finite float, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def normalize_date(value) -> Optional[date]:
    """Reduce a date, datetime or ISO string to a calendar day.

    Returns None for None, empty or unparseable strings, unsupported types,
    and aware times whose UTC date falls outside the calendar.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            try:
                value = value.astimezone(timezone.utc)
            except OverflowError:
                return None
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return normalize_date(parsed)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an instant; naive values are taken to be UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _midnight_utc(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _earlier(first: Optional[date], second: Optional[date]) -> Optional[date]:
    if first and second:
        return min(first, second)
    return first or second


def add_months(day: date, months: int) -> date:
    """Add calendar months, letting a day past the target month's end roll over.

    2025-01-31 + 1 month is 2025-03-03 (February has no 31st, so the three
    surplus days spill into March).
    """
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1) + timedelta(days=day.day - 1)


def compute_dispose_date(opened_at, pao_months, expiry_date) -> Optional[date]:
    """Return the day a cosmetic should be thrown away.

    That is the earlier of opened_at + pao_months and the printed expiry date.
    PAO only counts once the product is open and the month count is positive.
    """
    opened = normalize_date(opened_at)
    expiry = normalize_date(expiry_date)

    pao_date = None
    months = _as_number(pao_months)
    if opened and months is not None and months > 0:
        try:
            pao_date = add_months(opened, int(months))
        except (ValueError, OverflowError):
            pao_date = None

    return _earlier(pao_date, expiry)


def derive_status(dispose_at, expiry_date, current_status: Optional[str] = None,
                  today=None) -> str:
    """Classify a cosmetic as active, warning or expired.

    discarded and archived are set by the user and are returned untouched.
    The expiry date is re-checked alongside dispose_at because callers may
    hand in a stale dispose_at next to a freshly edited expiry date.
    """
    if current_status in TERMINAL_STATUSES:
        return current_status

    target = _earlier(normalize_date(dispose_at), normalize_date(expiry_date))
    if target is None:
        return "active"

    reference = normalize_date(today) or date.today()
    diff_days = (target - reference).days
    if diff_days < 0:
        return "expired"
    if diff_days <= WARNING_WINDOW_DAYS:
        return "warning"
    return "active"


def clamp_lead_days(value) -> int:
    """Round a reminder lead time to whole days within [0, MAX_LEAD_DAYS]."""
    number = _as_number(value)
    if number is None:
        return DEFAULT_LEAD_DAYS
    rounded = math.floor(number + 0.5)
    return max(0, min(MAX_LEAD_DAYS, rounded))


def compute_reminder_timestamp(dispose_at, lead_days, now=None) -> Optional[str]:
    """Return the ISO UTC instant a disposal reminder should fire.

    The reminder is lead_days before midnight (UTC) of the dispose date.  If
    that moment has already passed the reminder fires now instead.
    """
    day = normalize_date(dispose_at)
    if day is None:
        return None

    current = parse_timestamp(now) or datetime.now(timezone.utc)
    try:
        candidate = _midnight_utc(day) - timedelta(days=clamp_lead_days(lead_days))
    except OverflowError:
        return current.isoformat()
    if candidate < current:
        return current.isoformat()
    return candidate.isoformat()


def infer_lead_days(metadata, dispose_at, remind_at) -> int:
    """Recover the lead time a stored reminder was scheduled with.

    Prefers metadata["lead_days"]; otherwise measures the gap between the
    dispose date and remind_at.  The gap is only an approximation: a reminder
    that was pulled forward to "now" reports a shorter lead than was asked for.
    """
    if isinstance(metadata, dict):
        stored = _as_number(metadata.get("lead_days"))
        if stored is not None:
            return clamp_lead_days(stored)

    day = normalize_date(dispose_at)
    reminder_time = parse_timestamp(remind_at)
    if day and reminder_time:
        gap = (_midnight_utc(day) - reminder_time) / timedelta(days=1)
        return clamp_lead_days(gap)

    return DEFAULT_LEAD_DAYS


@dataclass
class LifecyclePreview:
    """Derived lifecycle fields shown next to a cosmetic form before saving."""
    dispose_at: Optional[date]
    status: str
    remind_at: Optional[str]


def preview(opened_at, pao_months, expiry_date, current_status: Optional[str] = None,
            lead_days=DEFAULT_LEAD_DAYS, reminder_enabled: bool = True,
            today=None, now=None) -> LifecyclePreview:
    """Run the full lifecycle calculation for an in-progress form."""
    dispose_at = compute_dispose_date(opened_at, pao_months, expiry_date)
    status = derive_status(dispose_at, expiry_date, current_status, today=today)
    remind_at = compute_reminder_timestamp(dispose_at, lead_days, now=now) if reminder_enabled else None
    return LifecyclePreview(dispose_at=dispose_at, status=status, remind_at=remind_at)
