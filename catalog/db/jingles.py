"""CRUD operations for the ``jingles`` table.

Jingle lifecycle belongs to the surrounding catalog; these helpers exist so
the REPEATS engine, the API and the tests have real rows to work with.
"""

from __future__ import annotations

import secrets
import sqlite3
import string
from datetime import datetime
from typing import Optional

from catalog.db.models import Jingle, publication_from, from_iso, to_iso, utcnow

_ID_ALPHABET = string.digits + string.ascii_lowercase


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_jingle(row: sqlite3.Row) -> Jingle:
    return Jingle(
        id=row["id"],
        title=row["title"],
        publication=publication_from(from_iso(row["publication_date"])),
        created_at=from_iso(row["created_at"]),
        fabrica_id=row["fabrica_id"],
        updated_at=from_iso(row["updated_at"]),
    )


def generate_jingle_id() -> str:
    """Return a fresh id in the catalog format ``j`` + 8 base36 characters."""
    return "j" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_jingle(
    conn: sqlite3.Connection,
    title: str = "",
    publication_date: Optional[datetime] = None,
    fabrica_id: Optional[str] = None,
    jingle_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Jingle:
    """Insert a new jingle and return it.

    Args:
        conn: Open DB connection.
        title: Human-readable display name.
        publication_date: Date of the Fabrica the jingle aired in.  ``None``
            makes it an Inedito.
        fabrica_id: Optional id of that Fabrica.
        jingle_id: Explicit id override (auto-generated when omitted).
        created_at: Explicit creation time (defaults to now).

    Returns:
        The newly created :class:`~catalog.db.models.Jingle`.
    """
    jid = jingle_id or generate_jingle_id()
    now = utcnow()
    conn.execute(
        """
        INSERT INTO jingles (id, title, fabrica_id, publication_date, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (jid, title, fabrica_id, to_iso(publication_date), to_iso(created_at or now), to_iso(now)),
    )
    return get_jingle(conn, jid)  # type: ignore[return-value]


def get_jingle(conn: sqlite3.Connection, jingle_id: str) -> Optional[Jingle]:
    """Fetch a single jingle by id.  Returns ``None`` if not found."""
    row = conn.execute("SELECT * FROM jingles WHERE id = ?", (jingle_id,)).fetchone()
    return _row_to_jingle(row) if row else None


def list_jingles(conn: sqlite3.Connection, inedito: Optional[bool] = None) -> list[Jingle]:
    """Return all jingles, optionally only Ineditos (``True``) or only published."""
    if inedito is None:
        rows = conn.execute("SELECT * FROM jingles ORDER BY created_at").fetchall()
    elif inedito:
        rows = conn.execute(
            "SELECT * FROM jingles WHERE publication_date IS NULL ORDER BY created_at"
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM jingles WHERE publication_date IS NOT NULL ORDER BY publication_date"
        ).fetchall()
    return [_row_to_jingle(r) for r in rows]
