"""Chain normalisation for REPEATS edges.

Every family of repeats must stay a star: one original (the root, with no
outgoing edge) and every repeat pointing straight at it.  After an edge
``source -> target`` is created or confirmed, :func:`normalize_chains`
collapses the at most one-hop chains that edge can introduce:

* **Target side**: ``target`` is itself a repeat of a root ``final``.  The
  edge ``source -> target`` is replaced by ``source -> final`` (or simply
  deleted when ``source -> final`` already exists).
* **Source side**: leaves already pointing at ``source`` are re-pointed to
  the effective root (``final`` if the target side fired, else ``target``),
  or their edge is deleted when the replacement already exists.

Rewrites only ever point at a root and only ever start at a leaf, so they
cannot introduce a self-loop or a cycle.  Deeper chains (from out-of-band
imports) are left for :meth:`~catalog.repeats.engine.RepeatsEngine.repair_graph`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from catalog.db.models import REPEATS, EdgeRef
from catalog.logging import get_logger
from catalog.store import GraphStore

logger = get_logger(__name__)


@dataclass
class NormalizationResult:
    deleted_edges: list[EdgeRef] = field(default_factory=list)
    updated_edges: list[EdgeRef] = field(default_factory=list)

    @property
    def normalized(self) -> bool:
        return bool(self.deleted_edges or self.updated_edges)

    def merge(self, other: NormalizationResult) -> None:
        self.deleted_edges.extend(other.deleted_edges)
        self.updated_edges.extend(other.updated_edges)


async def _is_root(store: GraphStore, node_id: str) -> bool:
    return await store.get_outgoing_edge(node_id, REPEATS) is None


async def _is_leaf(store: GraphStore, node_id: str) -> bool:
    return not await store.get_incoming_edges(node_id, REPEATS)


async def _repoint(
    store: GraphStore,
    result: NormalizationResult,
    source: str,
    old_target: str,
    new_target: str,
) -> None:
    """Replace ``source -> old_target`` with ``source -> new_target``."""
    await store.delete_edge(source, old_target, REPEATS)
    result.deleted_edges.append(EdgeRef(source, old_target))

    if await store.get_edge(source, new_target, REPEATS) is not None:
        logger.info(
            "repeat_edge_redundant_deleted",
            source=source,
            target=old_target,
            implied_by=new_target,
        )
        return

    # Replacement edges start over as DRAFT with a fresh created_at.
    await store.create_edge(source, new_target, REPEATS)
    result.updated_edges.append(EdgeRef(source, new_target))
    logger.info(
        "repeat_edge_rewritten",
        source=source,
        old_target=old_target,
        new_target=new_target,
    )


async def normalize_chains(store: GraphStore, source: str, target: str) -> NormalizationResult:
    """Restore the depth-1 shape around a just-created ``source -> target`` edge.

    Safe to call repeatedly: once the chains are collapsed a second call finds
    nothing to do and returns an empty result.

    Returns:
        The edges deleted and the edges created in their place.
    """
    result = NormalizationResult()
    root: Optional[str]

    if await store.get_edge(source, target, REPEATS) is not None:
        root = target
        onward = await store.get_outgoing_edge(target, REPEATS)
        if onward is not None and await _is_root(store, onward.target_id):
            await _repoint(store, result, source, target, onward.target_id)
            root = onward.target_id
    else:
        current = await store.get_outgoing_edge(source, REPEATS)
        root = current.target_id if current is not None else None

    if root is None:
        return result

    for inbound in await store.get_incoming_edges(source, REPEATS):
        origin = inbound.source_id
        if origin == root:
            logger.warning("repeat_two_cycle_detected", source=source, origin=origin)
            continue
        if not await _is_leaf(store, origin):
            logger.warning("repeat_chain_origin_not_leaf", source=source, origin=origin)
            continue
        await _repoint(store, result, origin, source, root)

    return result
