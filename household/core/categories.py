"""Cosmetic category management — CRUD for the categories table.

name is the lowercase lookup key; display_name is what the user typed.
Deleting a category leaves its cosmetics uncategorised.
"""

import logging
import sqlite3
from typing import Optional

from household.db.database import get_connection
from household.db.models import Category

logger = logging.getLogger(__name__)


def _key(text: str) -> str:
    return (text or "").strip().lower()


def get_all() -> list[Category]:
    """Return all categories sorted by display name."""
    conn = get_connection()
    try:
        rows = conn.execute("SELECT * FROM categories ORDER BY display_name").fetchall()
        return [Category(**dict(row)) for row in rows]
    finally:
        conn.close()


def get(category_id: int) -> Optional[Category]:
    """Return a single category by ID, or None if not found."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT * FROM categories WHERE id = ?", (category_id,)).fetchone()
        return Category(**dict(row)) if row else None
    finally:
        conn.close()


def find_by_name(name: str) -> Optional[Category]:
    """Case-insensitive lookup on either name or display name."""
    key = _key(name)
    if not key:
        return None
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT * FROM categories WHERE name = ? OR LOWER(display_name) = ?",
            (key, key),
        ).fetchone()
        return Category(**dict(row)) if row else None
    finally:
        conn.close()


def add(category: Category) -> int:
    """Insert a new category and return its ID. Raises ValueError on duplicates."""
    name = _key(category.name or category.display_name)
    display_name = (category.display_name or category.name or "").strip()
    if not name:
        raise ValueError("Category name is required")
    conn = get_connection()
    try:
        cursor = conn.execute(
            "INSERT INTO categories (name, display_name) VALUES (?, ?)",
            (name, display_name),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        raise ValueError(f"Category '{display_name}' already exists")
    finally:
        conn.close()
    logger.info("Added category %r", display_name)
    return cursor.lastrowid


def get_or_create(display_name: str) -> Optional[int]:
    """Return the ID of the matching category, creating it if needed."""
    if not _key(display_name):
        return None
    existing = find_by_name(display_name)
    if existing:
        return existing.id
    return add(Category(id=None, name=display_name, display_name=display_name.strip()))


def delete(category_id: int) -> None:
    """Delete a category by ID. Nullifies cosmetics that reference it first."""
    conn = get_connection()
    try:
        conn.execute(
            "UPDATE cosmetics SET category_id = NULL WHERE category_id = ?",
            (category_id,),
        )
        conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        conn.commit()
    finally:
        conn.close()
