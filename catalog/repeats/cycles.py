"""Cycle guard for REPEATS edges."""

from __future__ import annotations

from catalog.db.models import REPEATS
from catalog.store import GraphStore


async def would_create_cycle(store: GraphStore, source: str, target: str) -> bool:
    """Return ``True`` if adding ``source -> target`` would close a cycle.

    That is the case when *target* already reaches *source* through existing
    REPEATS edges (or when both ids are the same).  Must be called against the
    graph as it is *before* the new edge is written.
    """
    if source == target:
        return True
    return await store.path_exists(target, source, REPEATS)
