"""Operations on the ``edges`` table.

None of these helpers commit on their own: the connection runs in autocommit
mode, and multi-step sequences are grouped by the caller's transaction.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from catalog.db.jingles import _row_to_jingle
from catalog.db.models import (
    REPEATS,
    EdgeRef,
    GraphPayload,
    RepeatEdge,
    RepeatStatus,
    from_iso,
    to_iso,
    utcnow,
)

_EDGE_COLUMNS = "source_id, target_id, relation_type, status, created_at"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_edge(row: sqlite3.Row) -> RepeatEdge:
    return RepeatEdge(
        source_id=row["source_id"],
        target_id=row["target_id"],
        relation_type=row["relation_type"],
        status=RepeatStatus(row["status"]),
        created_at=from_iso(row["created_at"]),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_edge(
    conn: sqlite3.Connection,
    source_id: str,
    target_id: str,
    relation_type: str = REPEATS,
    status: RepeatStatus = RepeatStatus.DRAFT,
    created_at: Optional[datetime] = None,
) -> RepeatEdge:
    """Create a directed edge from *source* to *target* and return it.

    Raises:
        sqlite3.IntegrityError: If the edge already exists, either endpoint is
            missing, or ``source_id == target_id``.
    """
    conn.execute(
        f"INSERT INTO edges ({_EDGE_COLUMNS}) VALUES (?, ?, ?, ?, ?)",  # noqa: S608
        (source_id, target_id, relation_type, RepeatStatus(status).value, to_iso(created_at or utcnow())),
    )
    return get_edge(conn, source_id, target_id, relation_type)  # type: ignore[return-value]


def delete_edge(
    conn: sqlite3.Connection,
    source_id: str,
    target_id: str,
    relation_type: str = REPEATS,
) -> bool:
    """Delete the edge *source* → *target*.  Returns ``False`` if it did not exist."""
    cur = conn.execute(
        "DELETE FROM edges WHERE source_id = ? AND target_id = ? AND relation_type = ?",
        (source_id, target_id, relation_type),
    )
    return cur.rowcount > 0


def set_edge_status(
    conn: sqlite3.Connection,
    source_id: str,
    target_id: str,
    status: RepeatStatus,
    relation_type: str = REPEATS,
) -> Optional[RepeatEdge]:
    """Change the workflow status of an edge.  Returns ``None`` if it does not exist."""
    conn.execute(
        "UPDATE edges SET status = ? WHERE source_id = ? AND target_id = ? AND relation_type = ?",
        (RepeatStatus(status).value, source_id, target_id, relation_type),
    )
    return get_edge(conn, source_id, target_id, relation_type)


def get_edge(
    conn: sqlite3.Connection,
    source_id: str,
    target_id: str,
    relation_type: str = REPEATS,
) -> Optional[RepeatEdge]:
    row = conn.execute(
        f"""
        SELECT {_EDGE_COLUMNS} FROM edges
        WHERE  source_id = ? AND target_id = ? AND relation_type = ?
        """,  # noqa: S608
        (source_id, target_id, relation_type),
    ).fetchone()
    return _row_to_edge(row) if row else None


def get_outgoing_edge(
    conn: sqlite3.Connection,
    node_id: str,
    relation_type: str = REPEATS,
) -> Optional[RepeatEdge]:
    """Return the oldest edge leaving *node_id*, or ``None``."""
    row = conn.execute(
        f"""
        SELECT {_EDGE_COLUMNS} FROM edges
        WHERE  source_id = ? AND relation_type = ?
        ORDER  BY created_at, target_id
        LIMIT  1
        """,  # noqa: S608
        (node_id, relation_type),
    ).fetchone()
    return _row_to_edge(row) if row else None


def get_incoming_edges(
    conn: sqlite3.Connection,
    node_id: str,
    relation_type: str = REPEATS,
) -> list[RepeatEdge]:
    """Return every edge pointing at *node_id*, oldest first."""
    rows = conn.execute(
        f"""
        SELECT {_EDGE_COLUMNS} FROM edges
        WHERE  target_id = ? AND relation_type = ?
        ORDER  BY created_at, source_id
        """,  # noqa: S608
        (node_id, relation_type),
    ).fetchall()
    return [_row_to_edge(r) for r in rows]


def list_edges(conn: sqlite3.Connection, relation_type: str = REPEATS) -> list[EdgeRef]:
    """Return every ``(source, target)`` pair of the given kind, sorted."""
    rows = conn.execute(
        "SELECT source_id, target_id FROM edges WHERE relation_type = ? ORDER BY source_id, target_id",
        (relation_type,),
    ).fetchall()
    return [EdgeRef(r["source_id"], r["target_id"]) for r in rows]


def path_exists(
    conn: sqlite3.Connection,
    from_id: str,
    to_id: str,
    relation_type: str = REPEATS,
) -> bool:
    """Return ``True`` if a directed path of one or more edges leads from *from_id* to *to_id*.

    Uses a recursive Common Table Expression; ``UNION`` (not ``UNION ALL``)
    keeps the walk finite even if the stored graph already contains a cycle.
    """
    query = """
    WITH RECURSIVE reachable(id) AS (
        SELECT target_id FROM edges WHERE source_id = ? AND relation_type = ?
        UNION
        SELECT e.target_id
        FROM   edges e
        JOIN   reachable r ON e.source_id = r.id
        WHERE  e.relation_type = ?
    )
    SELECT 1 FROM reachable WHERE id = ? LIMIT 1
    """
    row = conn.execute(query, (from_id, relation_type, relation_type, to_id)).fetchone()
    return row is not None


def list_violating_nodes(conn: sqlite3.Connection, relation_type: str = REPEATS) -> list[str]:
    """Return ids of nodes that currently hold both an inbound and an outbound edge."""
    rows = conn.execute(
        """
        SELECT DISTINCT o.source_id AS id
        FROM   edges o
        JOIN   edges i ON i.target_id = o.source_id AND i.relation_type = o.relation_type
        WHERE  o.relation_type = ?
        ORDER  BY id
        """,
        (relation_type,),
    ).fetchall()
    return [r["id"] for r in rows]


def get_graph_data(conn: sqlite3.Connection) -> GraphPayload:
    """Return **all** jingles and edges, for audits and visualisation."""
    jingle_rows = conn.execute("SELECT * FROM jingles ORDER BY created_at").fetchall()
    edge_rows = conn.execute(f"SELECT {_EDGE_COLUMNS} FROM edges").fetchall()  # noqa: S608
    return GraphPayload(
        jingles=[_row_to_jingle(r) for r in jingle_rows],
        edges=[_row_to_edge(r) for r in edge_rows],
    )
