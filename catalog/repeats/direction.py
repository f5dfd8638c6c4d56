"""Direction resolution for REPEATS edges.

Given two jingles proposed as "*a* repeats *b*", decide which one is the rerun
(``source``) and which is the original (``target``):

1. **Both published**: the later ``publication_date`` is the source.
2. **Exactly one published**: the Inedito is always the source.
3. **Neither published**: the later ``created_at`` is the source.

When the comparison cannot decide (a missing ``created_at`` under rule 3, or
equal dates under rules 1 and 3) the caller's proposed orientation is kept
and the result is flagged ``ambiguous``.  Resolution is otherwise independent
of argument order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from catalog.db.models import Inedito, Jingle, Published
from catalog.errors import NotFound, SelfRepeat
from catalog.store import GraphStore

RULE_BOTH_PUBLISHED = "both_published"
RULE_ONE_INEDITO = "one_inedito"
RULE_BOTH_INEDITO = "both_inedito"


@dataclass(frozen=True)
class Resolution:
    source: str
    target: str
    corrected: bool
    reason: str
    rule: str
    ambiguous: bool = False


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value is not None else "missing"


def _field_name(rule: str) -> str:
    return "publication_date" if rule == RULE_BOTH_PUBLISHED else "created_at"


def _by_date(
    a: Jingle,
    b: Jingle,
    a_date: Optional[datetime],
    b_date: Optional[datetime],
    rule: str,
    label: str,
) -> Resolution:
    """Orient so that the node with the later date is the source."""
    if a_date is None or b_date is None:
        missing = []
        if a_date is None:
            missing.append(f"{a.id} (proposed source)")
        if b_date is None:
            missing.append(f"{b.id} (proposed target)")
        return Resolution(
            source=a.id,
            target=b.id,
            corrected=False,
            reason=(
                f"{label}: cannot determine direction (missing {_field_name(rule)} on "
                f"{', '.join(missing)}), using proposed direction"
            ),
            rule=rule,
            ambiguous=True,
        )
    if a_date == b_date:
        return Resolution(
            source=a.id,
            target=b.id,
            corrected=False,
            reason=(
                f"{label}: equal {_field_name(rule)} ({a.id}, {b.id}: {_iso(a_date)}), "
                f"using proposed direction"
            ),
            rule=rule,
            ambiguous=True,
        )
    if a_date > b_date:
        return Resolution(
            source=a.id,
            target=b.id,
            corrected=False,
            reason=f"{label}: later ({a.id}, {_iso(a_date)}) -> earlier ({b.id}, {_iso(b_date)})",
            rule=rule,
        )
    return Resolution(
        source=b.id,
        target=a.id,
        corrected=True,
        reason=(
            f"{label}: corrected direction - later ({b.id}, {_iso(b_date)}) "
            f"-> earlier ({a.id}, {_iso(a_date)})"
        ),
        rule=rule,
    )


def decide_direction(a: Jingle, b: Jingle) -> Resolution:
    """Pure form of :func:`resolve_direction` for already-loaded jingles."""
    if a.id == b.id:
        raise SelfRepeat(a.id)

    pa, pb = a.publication, b.publication
    if isinstance(pa, Published) and isinstance(pb, Published):
        return _by_date(a, b, pa.date, pb.date, RULE_BOTH_PUBLISHED, "Both published")

    if isinstance(pa, Inedito) and isinstance(pb, Published):
        return Resolution(
            source=a.id,
            target=b.id,
            corrected=False,
            reason=f"One Inedito: Inedito ({a.id}) -> published ({b.id}, {_iso(pb.date)})",
            rule=RULE_ONE_INEDITO,
        )

    if isinstance(pa, Published) and isinstance(pb, Inedito):
        return Resolution(
            source=b.id,
            target=a.id,
            corrected=True,
            reason=(
                f"One Inedito: corrected direction - Inedito ({b.id}) "
                f"-> published ({a.id}, {_iso(pa.date)})"
            ),
            rule=RULE_ONE_INEDITO,
        )

    return _by_date(a, b, a.created_at, b.created_at, RULE_BOTH_INEDITO, "Both Inedito")


async def resolve_direction(store: GraphStore, a: str, b: str) -> Resolution:
    """Load *a* and *b* from *store* and decide which one repeats the other.

    Raises:
        SelfRepeat: If ``a == b``.
        NotFound: If either jingle does not exist.
    """
    if a == b:
        raise SelfRepeat(a)
    node_a = await store.get_node(a)
    node_b = await store.get_node(b)
    missing = [nid for nid, node in ((a, node_a), (b, node_b)) if node is None]
    if missing:
        raise NotFound(*missing)
    return decide_direction(node_a, node_b)  # type: ignore[arg-type]
