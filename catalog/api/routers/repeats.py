"""Endpoints for REPEATS relationships.

Edges are never written directly: every proposal goes through the
consistency engine, which may flip the requested orientation and rewrite
neighbouring edges.  The response lists every such side effect.

Routes
------
POST  /repeats                      Propose "a repeats b"
PATCH /repeats/{source}/{target}    Change the workflow status of an edge
GET   /repeats/graph                Export every jingle and edge
POST  /repeats/sweep/{jingle_id}    Normalise around one jingle if needed
POST  /repeats/sweep                Sweep every violating jingle
POST  /repeats/repair               Collapse deep chains until a fixed point
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel

from catalog.api.routers.jingles import JingleResponse, jingle_response
from catalog.db.edges import get_graph_data
from catalog.db.models import EdgeRef, RepeatEdge, RepeatStatus
from catalog.errors import (
    AmbiguousDirection,
    CycleConflict,
    NotFound,
    RepeatsError,
    SelfRepeat,
    StoreUnavailable,
)

router = APIRouter()

_STATUS_CODES: dict[type[RepeatsError], int] = {
    NotFound: 404,
    SelfRepeat: 422,
    CycleConflict: 409,
    AmbiguousDirection: 409,
    StoreUnavailable: 503,
}


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class RepeatProposal(BaseModel):
    a: str
    b: str


class StatusUpdate(BaseModel):
    status: RepeatStatus


class EdgeRefResponse(BaseModel):
    source: str
    target: str


class ProposalResponse(BaseModel):
    source: str
    target: str
    corrected: bool
    ambiguous: bool
    created: bool
    rule: str
    reason: str
    deleted_edges: list[EdgeRefResponse]
    updated_edges: list[EdgeRefResponse]


class EdgeResponse(BaseModel):
    source_id: str
    target_id: str
    relation_type: str
    status: RepeatStatus
    created_at: Optional[str]


class GraphResponse(BaseModel):
    jingles: list[JingleResponse]
    edges: list[EdgeResponse]


class SweepResponse(BaseModel):
    jingle_id: str
    violating: bool


class RepairResponse(BaseModel):
    passes: int
    converged: bool
    swept: list[str]
    remaining: list[str]
    deleted_edges: list[EdgeRefResponse]
    updated_edges: list[EdgeRefResponse]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _http_error(exc: RepeatsError) -> HTTPException:
    return HTTPException(status_code=_STATUS_CODES.get(type(exc), 400), detail=exc.to_dict())


def _refs(edges: list[EdgeRef]) -> list[dict[str, str]]:
    return [{"source": e.source, "target": e.target} for e in edges]


def _edge_response(edge: RepeatEdge) -> dict[str, Any]:
    return {
        "source_id": edge.source_id,
        "target_id": edge.target_id,
        "relation_type": edge.relation_type,
        "status": edge.status,
        "created_at": edge.created_at.isoformat() if edge.created_at else None,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=ProposalResponse, status_code=201)
async def propose(body: RepeatProposal, request: Request, response: Response) -> dict[str, Any]:
    """Record that *a* repeats *b* (the engine decides the final orientation).

    Answers 201 when the edge is new and 200 when it already existed.
    """
    engine = request.app.state.engine
    try:
        result = await engine.propose_repeat(body.a, body.b)
    except RepeatsError as exc:
        raise _http_error(exc) from exc
    if not result.created:
        response.status_code = 200
    return {
        "source": result.source,
        "target": result.target,
        "corrected": result.corrected,
        "ambiguous": result.ambiguous,
        "created": result.created,
        "rule": result.rule,
        "reason": result.reason,
        "deleted_edges": _refs(result.deleted_edges),
        "updated_edges": _refs(result.updated_edges),
    }


@router.patch("/{source}/{target}", response_model=EdgeResponse)
async def update_status(source: str, target: str, body: StatusUpdate, request: Request) -> dict[str, Any]:
    """Move an edge between DRAFT and CONFIRMED."""
    engine = request.app.state.engine
    try:
        edge = await engine.set_status(source, target, body.status)
    except RepeatsError as exc:
        raise _http_error(exc) from exc
    return _edge_response(edge)


@router.get("/graph", response_model=GraphResponse)
async def export_graph(request: Request) -> dict[str, Any]:
    """Dump every jingle and REPEATS edge, for audits and offline fix-up."""
    graph = get_graph_data(request.app.state.db)
    return {
        "jingles": [jingle_response(j) for j in graph.jingles],
        "edges": [_edge_response(e) for e in graph.edges],
    }


@router.post("/sweep/{jingle_id}", response_model=SweepResponse)
async def sweep_one(jingle_id: str, request: Request) -> dict[str, Any]:
    """Normalise around *jingle_id* if it sits in the middle of a chain."""
    engine = request.app.state.engine
    try:
        violating = await engine.sweep_node(jingle_id)
    except RepeatsError as exc:
        raise _http_error(exc) from exc
    return {"jingle_id": jingle_id, "violating": violating}


@router.post("/sweep", response_model=list[str])
async def sweep_all(request: Request) -> list[str]:
    """Sweep every jingle that currently violates the depth-1 shape."""
    engine = request.app.state.engine
    try:
        return await engine.sweep_all()
    except RepeatsError as exc:
        raise _http_error(exc) from exc


@router.post("/repair", response_model=RepairResponse)
async def repair(request: Request, max_passes: Optional[int] = None) -> dict[str, Any]:
    """Collapse arbitrarily deep chains (for backfills and imports)."""
    engine = request.app.state.engine
    try:
        report = await engine.repair_graph(max_passes=max_passes)
    except RepeatsError as exc:
        raise _http_error(exc) from exc
    return {
        "passes": report.passes,
        "converged": report.converged,
        "swept": report.swept,
        "remaining": report.remaining,
        "deleted_edges": _refs(report.deleted_edges),
        "updated_edges": _refs(report.updated_edges),
    }
