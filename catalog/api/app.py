"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection, initialises the schema
and builds the :class:`~catalog.repeats.RepeatsEngine` on top of it.  Both are
shared across requests via ``request.app.state.db`` and
``request.app.state.engine``.  On shutdown the connection is closed cleanly.

Routers
-------
    /jingles   create / fetch jingles and list their repeat family
    /repeats   propose REPEATS relationships, change status, sweep, repair
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from catalog.db import get_connection, init_db
from catalog.logging import configure_logging
from catalog.repeats import RepeatsEngine
from catalog.store import SqliteGraphStore

from catalog.api.routers import jingles as jingles_router
from catalog.api.routers import repeats as repeats_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB on startup and close it on shutdown."""
    configure_logging()
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    app.state.engine = RepeatsEngine(SqliteGraphStore(conn))
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Jingle Catalog API",
        description=(
            "REST interface for the jingle catalog. Records REPEATS "
            "relationships between jingles and keeps them acyclic and "
            "collapsed to a single hop from every repeat to its original."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(jingles_router.router, prefix="/jingles", tags=["jingles"])
    app.include_router(repeats_router.router, prefix="/repeats", tags=["repeats"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn catalog.api.app:app --reload
app = create_app()
