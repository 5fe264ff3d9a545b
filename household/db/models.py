"""Dataclass models for all database entities.

Each class maps 1:1 to a database table. Fields use Optional types for
nullable columns. Dates are stored as ISO YYYY-MM-DD strings and instants
as ISO timestamps. These are plain data containers with no business logic;
lifecycle rules live in core/lifecycle.py.
"""

from dataclasses import dataclass, field
from typing import Optional

COSMETIC_STATUSES = ("active", "warning", "expired", "discarded", "archived")
REMINDER_STATUSES = ("pending", "sent", "dismissed", "snoozed")
EVENT_TYPES = ("opened", "usage", "discarded", "restocked", "note")


@dataclass
class Category:
    """A cosmetic category (e.g. 'skincare' / 'Skincare')."""
    id: Optional[int]
    name: str
    display_name: str
    created_at: Optional[str] = None


@dataclass
class CosmeticReminder:
    """A disposal reminder for one cosmetic.

    metadata is a JSON object; lead_days is recorded there when the reminder
    is scheduled so edits can show the lead time the user picked.
    """
    id: Optional[int]
    cosmetic_id: int
    remind_at: str
    status: str = "pending"  # pending, sent, dismissed, snoozed
    snoozed_until: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class CosmeticEvent:
    """A history entry for a cosmetic (opened, usage, discarded, ...)."""
    id: Optional[int]
    cosmetic_id: int
    event_type: str
    payload: dict = field(default_factory=dict)
    occurred_at: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Cosmetic:
    """A cosmetic product being tracked from purchase to disposal.

    dispose_at and status are derived from opened_at, pao_months and
    expiry_date on every write and read. category_name is joined from the
    categories table and reminders is populated by core/cosmetics.py; neither
    is written back to the database.
    """

    id: Optional[int]
    name: str
    brand: Optional[str] = None
    category_id: Optional[int] = None
    size: Optional[float] = None
    unit: Optional[str] = None
    batch_code: Optional[str] = None
    purchase_date: Optional[str] = None
    opened_at: Optional[str] = None
    expiry_date: Optional[str] = None
    pao_months: Optional[int] = None
    dispose_at: Optional[str] = None
    status: str = "active"
    notes: Optional[str] = None
    image_url: Optional[str] = None
    last_usage_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    category_name: Optional[str] = None  # Joined from categories for display
    reminders: list = field(default_factory=list)  # list[CosmeticReminder]
