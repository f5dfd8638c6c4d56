"""Graph store used by the REPEATS consistency engine.

:class:`GraphStore` is the asynchronous interface the engine consumes: node
lookup and creation, reachability, per-node edge queries and edge writes, plus a
``transaction()`` scope.  Every call may suspend, so a remote store can be
dropped in without touching the engine.

:class:`SqliteGraphStore` is the bundled implementation on top of the
``catalog.db`` helpers.  Its ``transaction()`` serialises engine operations
through an :class:`asyncio.Lock` and wraps them in ``BEGIN IMMEDIATE`` …
``COMMIT``; any exception rolls the whole sequence back, so a failure never
leaves a deleted edge without its replacement.
"""

from __future__ import annotations

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncContextManager, AsyncIterator, Callable, Optional, Protocol, TypeVar

from catalog.db import edges as edge_db
from catalog.db.jingles import create_jingle, get_jingle
from catalog.db.models import REPEATS, Jingle, RepeatEdge, RepeatStatus
from catalog.errors import StoreUnavailable
from catalog.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class GraphStore(Protocol):
    async def get_node(self, node_id: str) -> Optional[Jingle]: ...

    async def path_exists(self, from_id: str, to_id: str, kind: str = REPEATS) -> bool: ...

    async def get_edge(self, source_id: str, target_id: str, kind: str = REPEATS) -> Optional[RepeatEdge]: ...

    async def get_outgoing_edge(self, node_id: str, kind: str = REPEATS) -> Optional[RepeatEdge]: ...

    async def get_incoming_edges(self, node_id: str, kind: str = REPEATS) -> list[RepeatEdge]: ...

    async def create_node(
        self,
        node_id: Optional[str] = None,
        title: str = "",
        publication_date: Optional[datetime] = None,
        fabrica_id: Optional[str] = None,
    ) -> Jingle: ...

    async def create_edge(
        self,
        source_id: str,
        target_id: str,
        kind: str = REPEATS,
        status: RepeatStatus = RepeatStatus.DRAFT,
    ) -> RepeatEdge: ...

    async def delete_edge(self, source_id: str, target_id: str, kind: str = REPEATS) -> bool: ...

    async def set_edge_status(
        self, source_id: str, target_id: str, status: RepeatStatus, kind: str = REPEATS
    ) -> Optional[RepeatEdge]: ...

    async def list_violating_nodes(self, kind: str = REPEATS) -> list[str]: ...

    def transaction(self) -> AsyncContextManager[None]: ...


class SqliteGraphStore:
    """:class:`GraphStore` backed by a single SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _call(self, operation: str, fn: Callable[..., T], *args: object) -> T:
        try:
            return fn(self.conn, *args)
        except sqlite3.Error as exc:
            logger.error("store_call_failed", operation=operation, error=str(exc))
            raise StoreUnavailable(operation, exc) from exc

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed store calls as one serialised, atomic unit."""
        async with self._lock:
            self._call("begin", lambda conn: conn.execute("BEGIN IMMEDIATE"))
            try:
                yield
                self._call("commit", lambda conn: conn.execute("COMMIT"))
            except BaseException as exc:
                if self.conn.in_transaction:
                    self.conn.execute("ROLLBACK")
                logger.warning("store_transaction_rolled_back", error=type(exc).__name__)
                raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_node(self, node_id: str) -> Optional[Jingle]:
        return self._call("get_node", get_jingle, node_id)

    async def path_exists(self, from_id: str, to_id: str, kind: str = REPEATS) -> bool:
        return self._call("path_exists", edge_db.path_exists, from_id, to_id, kind)

    async def get_edge(self, source_id: str, target_id: str, kind: str = REPEATS) -> Optional[RepeatEdge]:
        return self._call("get_edge", edge_db.get_edge, source_id, target_id, kind)

    async def get_outgoing_edge(self, node_id: str, kind: str = REPEATS) -> Optional[RepeatEdge]:
        return self._call("get_outgoing_edge", edge_db.get_outgoing_edge, node_id, kind)

    async def get_incoming_edges(self, node_id: str, kind: str = REPEATS) -> list[RepeatEdge]:
        return self._call("get_incoming_edges", edge_db.get_incoming_edges, node_id, kind)

    async def list_violating_nodes(self, kind: str = REPEATS) -> list[str]:
        return self._call("list_violating_nodes", edge_db.list_violating_nodes, kind)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_node(
        self,
        node_id: Optional[str] = None,
        title: str = "",
        publication_date: Optional[datetime] = None,
        fabrica_id: Optional[str] = None,
    ) -> Jingle:
        return self._call(
            "create_node",
            lambda conn: create_jingle(
                conn,
                title=title,
                publication_date=publication_date,
                fabrica_id=fabrica_id,
                jingle_id=node_id,
            ),
        )

    async def create_edge(
        self,
        source_id: str,
        target_id: str,
        kind: str = REPEATS,
        status: RepeatStatus = RepeatStatus.DRAFT,
    ) -> RepeatEdge:
        return self._call("create_edge", edge_db.create_edge, source_id, target_id, kind, status)

    async def delete_edge(self, source_id: str, target_id: str, kind: str = REPEATS) -> bool:
        return self._call("delete_edge", edge_db.delete_edge, source_id, target_id, kind)

    async def set_edge_status(
        self, source_id: str, target_id: str, status: RepeatStatus, kind: str = REPEATS
    ) -> Optional[RepeatEdge]:
        return self._call("set_edge_status", edge_db.set_edge_status, source_id, target_id, status, kind)
