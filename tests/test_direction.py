"""Tests for REPEATS direction resolution."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Generator, Optional

import pytest

from catalog.db.connection import get_connection
from catalog.db.jingles import create_jingle
from catalog.db.migrations import init_db
from catalog.db.models import Jingle, publication_from
from catalog.errors import NotFound, SelfRepeat
from catalog.repeats.direction import (
    RULE_BOTH_INEDITO,
    RULE_BOTH_PUBLISHED,
    RULE_ONE_INEDITO,
    decide_direction,
    resolve_direction,
)
from catalog.store import SqliteGraphStore


def _dt(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def _jingle(jid: str, published: Optional[str] = None, created: Optional[str] = "2023-06-01") -> Jingle:
    return Jingle(
        id=jid,
        title=jid,
        publication=publication_from(_dt(published) if published else None),
        created_at=_dt(created) if created else None,
    )


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def store(conn: sqlite3.Connection) -> SqliteGraphStore:
    return SqliteGraphStore(conn)


# ---------------------------------------------------------------------------
# Rule 1: both published
# ---------------------------------------------------------------------------

class TestBothPublished:
    def test_later_publication_is_source(self) -> None:
        res = decide_direction(_jingle("J2", "2024-02-01"), _jingle("J1", "2024-01-01"))
        assert (res.source, res.target) == ("J2", "J1")
        assert res.corrected is False
        assert res.rule == RULE_BOTH_PUBLISHED

    def test_proposal_reversed_when_target_is_later(self) -> None:
        res = decide_direction(_jingle("J1", "2024-01-01"), _jingle("J2", "2024-02-01"))
        assert (res.source, res.target) == ("J2", "J1")
        assert res.corrected is True

    def test_created_at_is_ignored(self) -> None:
        res = decide_direction(
            _jingle("J1", "2024-01-01", created="2025-01-01"),
            _jingle("J2", "2024-02-01", created="2020-01-01"),
        )
        assert res.source == "J2"

    def test_equal_dates_keep_proposal_and_flag(self) -> None:
        res = decide_direction(_jingle("J1", "2024-01-01"), _jingle("J2", "2024-01-01"))
        assert (res.source, res.target) == ("J1", "J2")
        assert res.corrected is False
        assert res.ambiguous is True
        assert "equal publication_date" in res.reason

    def test_reason_names_ids_and_dates(self) -> None:
        res = decide_direction(_jingle("J1", "2024-01-01"), _jingle("J2", "2024-02-01"))
        assert "Both published" in res.reason
        assert "J1" in res.reason and "J2" in res.reason
        assert "2024-01-01" in res.reason and "2024-02-01" in res.reason


# ---------------------------------------------------------------------------
# Rule 2: exactly one published
# ---------------------------------------------------------------------------

class TestOneInedito:
    def test_inedito_is_source(self) -> None:
        res = decide_direction(_jingle("J3"), _jingle("J4", "2024-01-01"))
        assert (res.source, res.target) == ("J3", "J4")
        assert res.corrected is False
        assert res.rule == RULE_ONE_INEDITO

    def test_inedito_wins_even_when_created_earlier(self) -> None:
        res = decide_direction(
            _jingle("J4", "2024-01-01", created="2024-01-01"),
            _jingle("J3", None, created="2000-01-01"),
        )
        assert (res.source, res.target) == ("J3", "J4")
        assert res.corrected is True
        assert res.ambiguous is False


# ---------------------------------------------------------------------------
# Rule 3: neither published
# ---------------------------------------------------------------------------

class TestBothInedito:
    def test_later_created_is_source(self) -> None:
        res = decide_direction(_jingle("A", created="2024-01-01"), _jingle("B", created="2024-02-01"))
        assert (res.source, res.target) == ("B", "A")
        assert res.corrected is True
        assert res.rule == RULE_BOTH_INEDITO

    def test_missing_created_at_keeps_proposal_and_flags(self) -> None:
        res = decide_direction(_jingle("A", created=None), _jingle("B", created="2024-02-01"))
        assert (res.source, res.target) == ("A", "B")
        assert res.corrected is False
        assert res.ambiguous is True
        assert "missing created_at" in res.reason
        assert "A (proposed source)" in res.reason

    def test_equal_created_at_flags(self) -> None:
        res = decide_direction(_jingle("A"), _jingle("B"))
        assert res.ambiguous is True
        assert (res.source, res.target) == ("A", "B")


# ---------------------------------------------------------------------------
# Determinism / errors
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "a,b",
    [
        (_jingle("X", "2024-01-01"), _jingle("Y", "2024-03-01")),
        (_jingle("X"), _jingle("Y", "2024-03-01")),
        (_jingle("X", created="2024-01-01"), _jingle("Y", created="2023-01-01")),
    ],
)
def test_argument_order_does_not_change_outcome(a: Jingle, b: Jingle) -> None:
    forward = decide_direction(a, b)
    backward = decide_direction(b, a)
    assert (forward.source, forward.target) == (backward.source, backward.target)
    assert forward.corrected != backward.corrected


def test_self_repeat_rejected() -> None:
    with pytest.raises(SelfRepeat):
        decide_direction(_jingle("X"), _jingle("X"))


class TestResolveFromStore:
    async def test_both_published_from_store(self, conn: sqlite3.Connection, store: SqliteGraphStore) -> None:
        create_jingle(conn, jingle_id="J1", publication_date=_dt("2024-01-01"))
        create_jingle(conn, jingle_id="J2", publication_date=_dt("2024-02-01"))
        res = await resolve_direction(store, "J1", "J2")
        assert (res.source, res.target, res.corrected) == ("J2", "J1", True)

    async def test_one_inedito_from_store(self, conn: sqlite3.Connection, store: SqliteGraphStore) -> None:
        create_jingle(conn, jingle_id="J3")
        create_jingle(conn, jingle_id="J4", publication_date=_dt("2024-01-01"))
        res = await resolve_direction(store, "J4", "J3")
        assert (res.source, res.target, res.corrected) == ("J3", "J4", True)

    async def test_missing_jingle(self, conn: sqlite3.Connection, store: SqliteGraphStore) -> None:
        create_jingle(conn, jingle_id="J1")
        with pytest.raises(NotFound) as excinfo:
            await resolve_direction(store, "J1", "ghost")
        assert excinfo.value.node_ids == ["ghost"]

    async def test_self_repeat(self, store: SqliteGraphStore) -> None:
        with pytest.raises(SelfRepeat):
            await resolve_direction(store, "J1", "J1")

    async def test_null_created_at_on_legacy_row(self, conn: sqlite3.Connection, store: SqliteGraphStore) -> None:
        create_jingle(conn, jingle_id="old")
        create_jingle(conn, jingle_id="new")
        conn.execute("UPDATE jingles SET created_at = NULL WHERE id = 'old'")
        res = await resolve_direction(store, "new", "old")
        assert res.ambiguous is True
        assert (res.source, res.target) == ("new", "old")
