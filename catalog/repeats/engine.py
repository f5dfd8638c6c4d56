"""The REPEATS consistency engine.

:class:`RepeatsEngine` is the single entry point the CRUD layer uses to record
that one jingle is a rerun of another.  ``propose_repeat`` runs the whole
pipeline (resolve the direction, refuse cycles, create the edge and
normalise chains) inside one store transaction, so either every change
lands or none does.  Callers that hit :class:`~catalog.errors.StoreUnavailable`
should retry the whole call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from catalog.config import settings
from catalog.db.models import REPEATS, EdgeRef, Jingle, RepeatEdge, RepeatStatus
from catalog.errors import AmbiguousDirection, CycleConflict, NotFound
from catalog.logging import get_logger
from catalog.repeats.cycles import would_create_cycle
from catalog.repeats.direction import decide_direction, resolve_direction
from catalog.repeats.family import sort_family
from catalog.repeats.normalize import NormalizationResult, normalize_chains
from catalog.repeats.sentinel import is_violating
from catalog.store import GraphStore

logger = get_logger(__name__)


@dataclass
class ProposalResult:
    source: str
    target: str
    corrected: bool
    reason: str
    rule: str
    ambiguous: bool
    created: bool
    deleted_edges: list[EdgeRef] = field(default_factory=list)
    updated_edges: list[EdgeRef] = field(default_factory=list)


@dataclass
class RepairReport:
    passes: int = 0
    swept: list[str] = field(default_factory=list)
    deleted_edges: list[EdgeRef] = field(default_factory=list)
    updated_edges: list[EdgeRef] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.remaining


class RepeatsEngine:
    """Maintains the REPEATS graph invariants on top of a :class:`GraphStore`.

    Invariants kept after every successful call:

    * no edge from a jingle to itself;
    * no directed cycle;
    * depth 1: if ``x -> y`` exists, ``y`` has no outgoing edge;
    * one original: a jingle has at most one outgoing edge.
    """

    def __init__(self, store: GraphStore, strict_direction: Optional[bool] = None) -> None:
        self.store = store
        self.strict_direction = (
            settings.strict_direction if strict_direction is None else strict_direction
        )

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    async def propose_repeat(self, a: str, b: str) -> ProposalResult:
        """Record that *a* repeats *b*, in whichever orientation the dates dictate.

        Raises:
            SelfRepeat: If ``a == b``.
            NotFound: If either jingle does not exist.
            AmbiguousDirection: If the direction is undecidable and the engine
                runs with ``strict_direction``.
            CycleConflict: If the resolved edge would close a cycle.
            StoreUnavailable: If any store call fails; nothing is written.
        """
        async with self.store.transaction():
            resolution = await resolve_direction(self.store, a, b)
            source, target = resolution.source, resolution.target

            if resolution.ambiguous:
                logger.warning(
                    "repeat_direction_ambiguous",
                    proposed_source=a,
                    proposed_target=b,
                    rule=resolution.rule,
                    reason=resolution.reason,
                )
                if self.strict_direction:
                    raise AmbiguousDirection(source, target, resolution.rule, resolution.reason)
            elif resolution.corrected:
                logger.info(
                    "repeat_direction_corrected",
                    proposed_source=a,
                    proposed_target=b,
                    source=source,
                    target=target,
                    rule=resolution.rule,
                    reason=resolution.reason,
                )

            created = False
            normalization = NormalizationResult()
            if await self.store.get_edge(source, target, REPEATS) is None:
                if await would_create_cycle(self.store, source, target):
                    logger.warning("repeat_cycle_rejected", source=source, target=target)
                    raise CycleConflict(source, target, resolution.reason)
                created = True
                normalization = await self._merge_roots(source, target)
                # The merge may already have pointed source at target.
                if await self.store.get_edge(source, target, REPEATS) is None:
                    await self.store.create_edge(source, target, REPEATS)
                logger.info("repeat_created", source=source, target=target, rule=resolution.rule)

            normalization.merge(await normalize_chains(self.store, source, target))

        return ProposalResult(
            source=source,
            target=target,
            corrected=resolution.corrected,
            reason=resolution.reason,
            rule=resolution.rule,
            ambiguous=resolution.ambiguous,
            created=created,
            deleted_edges=normalization.deleted_edges,
            updated_edges=normalization.updated_edges,
        )

    async def _merge_roots(self, source: str, target: str) -> NormalizationResult:
        """Join two families when *source* already repeats a different root.

        The roots are ordered with the same rules as any proposal: the later
        root becomes a repeat of the earlier one and its repeats are re-pointed,
        so *source* keeps a single outgoing edge.
        """
        result = NormalizationResult()
        current = await self.store.get_outgoing_edge(source, REPEATS)
        if current is None:
            return result

        onward = await self.store.get_outgoing_edge(target, REPEATS)
        source_root = current.target_id
        target_root = onward.target_id if onward is not None else target
        if source_root == target_root:
            return result

        first = await self.store.get_node(source_root)
        second = await self.store.get_node(target_root)
        missing = [n for n, j in ((source_root, first), (target_root, second)) if j is None]
        if missing:
            raise NotFound(*missing)

        roots = decide_direction(first, second)  # type: ignore[arg-type]
        if roots.ambiguous:
            logger.warning(
                "repeat_root_order_ambiguous",
                first=source_root,
                second=target_root,
                rule=roots.rule,
                reason=roots.reason,
            )
            if self.strict_direction:
                raise AmbiguousDirection(roots.source, roots.target, roots.rule, roots.reason)
        if await would_create_cycle(self.store, roots.source, roots.target):
            logger.warning("repeat_cycle_rejected", source=roots.source, target=roots.target)
            raise CycleConflict(roots.source, roots.target, roots.reason)

        await self.store.create_edge(roots.source, roots.target, REPEATS)
        result.updated_edges.append(EdgeRef(roots.source, roots.target))
        result.merge(await normalize_chains(self.store, roots.source, roots.target))
        logger.info(
            "repeat_families_merged",
            via=source,
            root=roots.target,
            absorbed=roots.source,
            reason=roots.reason,
        )
        return result

    # ------------------------------------------------------------------
    # Sweeps and repair
    # ------------------------------------------------------------------

    async def _sweep(self, node_id: str) -> Optional[NormalizationResult]:
        if not await is_violating(self.store, node_id):
            return None
        outgoing = await self.store.get_outgoing_edge(node_id, REPEATS)
        result = await normalize_chains(self.store, node_id, outgoing.target_id)  # type: ignore[union-attr]
        logger.info(
            "repeat_node_swept",
            node=node_id,
            deleted=[list(e) for e in result.deleted_edges],
            updated=[list(e) for e in result.updated_edges],
        )
        return result

    async def sweep_node(self, node_id: str) -> bool:
        """Normalise around *node_id* if it holds both inbound and outbound edges.

        Returns:
            ``True`` if the node was violating (and normalisation ran).
        """
        async with self.store.transaction():
            if await self.store.get_node(node_id) is None:
                raise NotFound(node_id)
            return await self._sweep(node_id) is not None

    async def sweep_all(self) -> list[str]:
        """Sweep every node the store currently reports as violating."""
        swept: list[str] = []
        async with self.store.transaction():
            for node_id in await self.store.list_violating_nodes(REPEATS):
                if await self._sweep(node_id) is not None:
                    swept.append(node_id)
        logger.info("repeat_sweep_finished", swept=swept)
        return swept

    async def repair_graph(self, max_passes: Optional[int] = None) -> RepairReport:
        """Collapse arbitrarily deep chains by sweeping until a fixed point.

        Intended for backfills and imports, where the graph may hold chains
        longer than one hop.  Stops early when a pass changes nothing (for
        instance when the imported data contains a cycle); whatever is still
        violating is listed in ``RepairReport.remaining``.
        """
        limit = max_passes if max_passes is not None else settings.repair_max_passes
        report = RepairReport()

        async with self.store.transaction():
            for _ in range(limit):
                violating = await self.store.list_violating_nodes(REPEATS)
                if not violating:
                    break
                report.passes += 1
                changed = False
                for node_id in violating:
                    result = await self._sweep(node_id)
                    if result is None:
                        continue
                    report.swept.append(node_id)
                    report.deleted_edges.extend(result.deleted_edges)
                    report.updated_edges.extend(result.updated_edges)
                    changed = changed or result.normalized
                if not changed:
                    logger.warning("repeat_repair_stalled", violating=violating)
                    break
            report.remaining = await self.store.list_violating_nodes(REPEATS)

        logger.info(
            "repeat_repair_finished",
            passes=report.passes,
            deleted=len(report.deleted_edges),
            updated=len(report.updated_edges),
            remaining=report.remaining,
        )
        return report

    # ------------------------------------------------------------------
    # Queries and status
    # ------------------------------------------------------------------

    async def list_family(self, jingle_id: str) -> list[Jingle]:
        """Return the original of *jingle_id* and all of its repeats, ordered.

        Empty when the jingle takes part in no REPEATS edge.
        """
        if await self.store.get_node(jingle_id) is None:
            raise NotFound(jingle_id)
        outgoing = await self.store.get_outgoing_edge(jingle_id, REPEATS)
        root_id = outgoing.target_id if outgoing is not None else jingle_id
        inbound = await self.store.get_incoming_edges(root_id, REPEATS)
        if outgoing is None and not inbound:
            return []

        members: list[Jingle] = []
        for member_id in [root_id] + [e.source_id for e in inbound]:
            node = await self.store.get_node(member_id)
            if node is not None:
                members.append(node)
        return sort_family(members)

    async def set_status(self, source: str, target: str, status: RepeatStatus) -> RepeatEdge:
        """Move the edge ``source -> target`` to *status*."""
        async with self.store.transaction():
            edge = await self.store.set_edge_status(source, target, RepeatStatus(status), REPEATS)
            if edge is None:
                raise NotFound(source, target, what="REPEATS edge")
        logger.info("repeat_status_changed", source=source, target=target, status=edge.status.value)
        return edge
