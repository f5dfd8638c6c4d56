"""Tests for the /jingles and /repeats API endpoints.

All tests use an in-memory SQLite database via the FastAPI TestClient.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from catalog.api.app import create_app
from catalog.db.connection import get_connection
from catalog.db.edges import create_edge, list_edges
from catalog.db.migrations import init_db
from catalog.repeats import RepeatsEngine
from catalog.store import SqliteGraphStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn():
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def client(conn, tmp_path, monkeypatch):
    """Return a TestClient backed by an isolated in-memory DB.

    The lifespan opens the workspace DB (redirected to ``tmp_path``); we
    replace it and the engine built on it with the in-memory connection.
    """
    monkeypatch.setattr("catalog.config.settings.workspace_dir", tmp_path)
    app = create_app()

    with TestClient(app, raise_server_exceptions=True) as c:
        c.app.state.db = conn
        c.app.state.engine = RepeatsEngine(SqliteGraphStore(conn), strict_direction=False)
        yield c


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _jingle(client, jid: str, published: str | None = None) -> dict:
    body = {"id": jid, "title": jid.upper()}
    if published:
        body["publication_date"] = f"{published}T00:00:00+00:00"
    resp = client.post("/jingles", json=body)
    assert resp.status_code == 201
    return resp.json()


# ---------------------------------------------------------------------------
# /jingles
# ---------------------------------------------------------------------------

class TestJingles:
    def test_create_and_fetch(self, client):
        created = _jingle(client, "j1", "2024-01-01")
        assert created["inedito"] is False

        resp = client.get("/jingles/j1")
        assert resp.status_code == 200
        assert resp.json()["title"] == "J1"

    def test_duplicate_id_conflicts(self, client):
        _jingle(client, "j1")
        resp = client.post("/jingles", json={"id": "j1"})
        assert resp.status_code == 409

    def test_unknown_jingle_404(self, client):
        assert client.get("/jingles/ghost").status_code == 404

    def test_list_filters_inedito(self, client):
        _jingle(client, "pub", "2024-01-01")
        _jingle(client, "draft")
        resp = client.get("/jingles", params={"inedito": True})
        assert [j["id"] for j in resp.json()] == ["draft"]

    def test_family(self, client):
        _jingle(client, "j1", "2024-01-01")
        _jingle(client, "j2", "2024-02-01")
        _jingle(client, "j3")
        client.post("/repeats", json={"a": "j1", "b": "j2"})
        client.post("/repeats", json={"a": "j3", "b": "j1"})

        resp = client.get("/jingles/j2/repeats")

        assert resp.status_code == 200
        assert [j["id"] for j in resp.json()] == ["j1", "j2", "j3"]

    def test_family_unknown_jingle(self, client):
        resp = client.get("/jingles/ghost/repeats")
        assert resp.status_code == 404
        assert resp.json()["detail"]["node_ids"] == ["ghost"]


# ---------------------------------------------------------------------------
# /repeats
# ---------------------------------------------------------------------------

class TestPropose:
    def test_direction_is_corrected(self, client, conn):
        _jingle(client, "j1", "2024-01-01")
        _jingle(client, "j2", "2024-02-01")

        resp = client.post("/repeats", json={"a": "j1", "b": "j2"})

        assert resp.status_code == 201
        data = resp.json()
        assert (data["source"], data["target"]) == ("j2", "j1")
        assert data["corrected"] is True
        assert data["created"] is True
        assert data["rule"] == "both_published"
        assert list_edges(conn) == [("j2", "j1")]

    def test_chain_collapse_is_reported(self, client, conn):
        _jingle(client, "j4", "2024-01-01")
        _jingle(client, "j5", "2024-02-01")
        _jingle(client, "j6", "2024-03-01")
        create_edge(conn, "j5", "j4")

        data = client.post("/repeats", json={"a": "j6", "b": "j5"}).json()

        assert data["deleted_edges"] == [{"source": "j6", "target": "j5"}]
        assert data["updated_edges"] == [{"source": "j6", "target": "j4"}]

    def test_cycle_conflict_409(self, client, conn):
        _jingle(client, "j7", "2024-05-01")
        _jingle(client, "j8", "2024-06-01")
        create_edge(conn, "j7", "j8")

        resp = client.post("/repeats", json={"a": "j8", "b": "j7"})

        assert resp.status_code == 409
        assert resp.json()["detail"]["error"] == "CycleConflict"
        assert list_edges(conn) == [("j7", "j8")]

    def test_unknown_jingle_404(self, client):
        _jingle(client, "j1")
        resp = client.post("/repeats", json={"a": "j1", "b": "ghost"})
        assert resp.status_code == 404

    def test_self_repeat_422(self, client):
        _jingle(client, "j1")
        resp = client.post("/repeats", json={"a": "j1", "b": "j1"})
        assert resp.status_code == 422
        assert resp.json()["detail"]["error"] == "SelfRepeat"

    def test_strict_ambiguity_409(self, client, conn):
        client.app.state.engine = RepeatsEngine(SqliteGraphStore(conn), strict_direction=True)
        _jingle(client, "a", "2024-01-01")
        _jingle(client, "b", "2024-01-01")

        resp = client.post("/repeats", json={"a": "a", "b": "b"})

        assert resp.status_code == 409
        assert resp.json()["detail"]["error"] == "AmbiguousDirection"

    def test_repeated_proposal_answers_200(self, client, conn):
        _jingle(client, "j1", "2024-01-01")
        _jingle(client, "j2", "2024-02-01")
        assert client.post("/repeats", json={"a": "j2", "b": "j1"}).status_code == 201

        resp = client.post("/repeats", json={"a": "j2", "b": "j1"})

        assert resp.status_code == 200
        assert resp.json()["created"] is False
        assert list_edges(conn) == [("j2", "j1")]

    def test_second_original_merges_families(self, client, conn):
        _jingle(client, "p1", "2024-01-01")
        _jingle(client, "p2", "2024-03-01")
        _jingle(client, "i")
        client.post("/repeats", json={"a": "i", "b": "p1"})

        resp = client.post("/repeats", json={"a": "i", "b": "p2"})

        assert resp.status_code == 201
        assert resp.json()["updated_edges"] == [{"source": "p2", "target": "p1"}]
        assert list_edges(conn) == [("i", "p1"), ("p2", "p1")]


class TestGraphExport:
    def test_export_lists_jingles_and_edges(self, client):
        _jingle(client, "j1", "2024-01-01")
        _jingle(client, "j2", "2024-02-01")
        _jingle(client, "solo")
        client.post("/repeats", json={"a": "j2", "b": "j1"})

        resp = client.get("/repeats/graph")

        assert resp.status_code == 200
        data = resp.json()
        assert sorted(j["id"] for j in data["jingles"]) == ["j1", "j2", "solo"]
        assert [(e["source_id"], e["target_id"], e["status"]) for e in data["edges"]] == [
            ("j2", "j1", "DRAFT")
        ]

    def test_export_empty_catalog(self, client):
        assert client.get("/repeats/graph").json() == {"jingles": [], "edges": []}


class TestStatus:
    def test_confirm_edge(self, client):
        _jingle(client, "j1", "2024-01-01")
        _jingle(client, "j2", "2024-02-01")
        client.post("/repeats", json={"a": "j2", "b": "j1"})

        resp = client.patch("/repeats/j2/j1", json={"status": "CONFIRMED"})

        assert resp.status_code == 200
        assert resp.json()["status"] == "CONFIRMED"

    def test_missing_edge_404(self, client):
        _jingle(client, "j1")
        _jingle(client, "j2")
        resp = client.patch("/repeats/j1/j2", json={"status": "CONFIRMED"})
        assert resp.status_code == 404

    def test_invalid_status_422(self, client):
        resp = client.patch("/repeats/j1/j2", json={"status": "MAYBE"})
        assert resp.status_code == 422


class TestSweepAndRepair:
    def test_sweep_one(self, client, conn):
        for jid in ("a", "b", "c"):
            _jingle(client, jid)
        create_edge(conn, "a", "b")
        create_edge(conn, "b", "c")

        resp = client.post("/repeats/sweep/b")

        assert resp.json() == {"jingle_id": "b", "violating": True}
        assert list_edges(conn) == [("a", "c"), ("b", "c")]

    def test_sweep_unknown_404(self, client):
        assert client.post("/repeats/sweep/ghost").status_code == 404

    def test_sweep_all(self, client, conn):
        for jid in ("a", "b", "c"):
            _jingle(client, jid)
        create_edge(conn, "a", "b")
        create_edge(conn, "b", "c")

        resp = client.post("/repeats/sweep")

        assert resp.status_code == 200
        assert resp.json() == ["b"]

    def test_repair(self, client, conn):
        ids = ["a", "b", "c", "d"]
        for jid in ids:
            _jingle(client, jid)
        for src, dst in zip(ids, ids[1:]):
            create_edge(conn, src, dst)

        resp = client.post("/repeats/repair", params={"max_passes": 10})

        data = resp.json()
        assert resp.status_code == 200
        assert data["converged"] is True
        assert data["remaining"] == []
        assert list_edges(conn) == [("a", "d"), ("b", "d"), ("c", "d")]
