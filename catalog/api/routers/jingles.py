"""Endpoints for jingles.

Routes
------
POST   /jingles                     Create a new jingle
GET    /jingles                     List jingles (optional ?inedito= filter)
GET    /jingles/{jingle_id}         Fetch a single jingle
GET    /jingles/{jingle_id}/repeats The jingle's repeat family, original first
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from catalog.db.jingles import get_jingle, list_jingles
from catalog.db.models import Jingle
from catalog.errors import NotFound, StoreUnavailable

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class JingleCreate(BaseModel):
    title: str = ""
    publication_date: Optional[datetime] = None
    fabrica_id: Optional[str] = None
    id: Optional[str] = None


class JingleResponse(BaseModel):
    id: str
    title: str
    fabrica_id: Optional[str]
    publication_date: Optional[datetime]
    inedito: bool
    created_at: Optional[datetime]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def jingle_response(jingle: Jingle) -> dict[str, Any]:
    return {
        "id": jingle.id,
        "title": jingle.title,
        "fabrica_id": jingle.fabrica_id,
        "publication_date": jingle.publication_date,
        "inedito": jingle.is_inedito,
        "created_at": jingle.created_at,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
# Handlers stay async: the shared connection is never touched from the
# threadpool, and writes go through the engine store transaction.

@router.post("", response_model=JingleResponse, status_code=201)
async def create(body: JingleCreate, request: Request) -> dict[str, Any]:
    """Create a new jingle."""
    store = request.app.state.engine.store
    try:
        async with store.transaction():
            if body.id and await store.get_node(body.id) is not None:
                raise HTTPException(status_code=409, detail=f"Jingle already exists: {body.id!r}")
            jingle = await store.create_node(
                node_id=body.id,
                title=body.title,
                publication_date=body.publication_date,
                fabrica_id=body.fabrica_id,
            )
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=exc.to_dict()) from exc
    return jingle_response(jingle)


@router.get("", response_model=list[JingleResponse])
async def list_all(request: Request, inedito: Optional[bool] = None) -> list[dict[str, Any]]:
    """Return all jingles, optionally only Ineditos or only published ones."""
    conn = request.app.state.db
    return [jingle_response(j) for j in list_jingles(conn, inedito=inedito)]


@router.get("/{jingle_id}", response_model=JingleResponse)
async def get_one(jingle_id: str, request: Request) -> dict[str, Any]:
    """Fetch a single jingle by id."""
    conn = request.app.state.db
    jingle = get_jingle(conn, jingle_id)
    if jingle is None:
        raise HTTPException(status_code=404, detail=f"Jingle not found: {jingle_id!r}")
    return jingle_response(jingle)


@router.get("/{jingle_id}/repeats", response_model=list[JingleResponse])
async def family(jingle_id: str, request: Request) -> list[dict[str, Any]]:
    """Return the original of *jingle_id* and every repeat of it."""
    engine = request.app.state.engine
    try:
        members = await engine.list_family(jingle_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=exc.to_dict()) from exc
    return [jingle_response(j) for j in members]
