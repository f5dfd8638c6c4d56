"""Node-local detection of depth-1 violations."""

from __future__ import annotations

from catalog.db.models import REPEATS
from catalog.store import GraphStore


async def is_violating(store: GraphStore, node_id: str) -> bool:
    """True iff *node_id* currently has an inbound **and** an outbound REPEATS edge.

    A node in that state sits in the middle of a chain, which is what happens
    when two edge-creating operations interleave.  Only the node's own edges
    are read.
    """
    if await store.get_outgoing_edge(node_id, REPEATS) is None:
        return False
    return bool(await store.get_incoming_edges(node_id, REPEATS))
