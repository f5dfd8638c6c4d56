"""REPEATS relationship consistency engine.

Public re-exports so callers can write::

    from catalog.repeats import RepeatsEngine
"""

from catalog.repeats.cycles import would_create_cycle
from catalog.repeats.direction import Resolution, decide_direction, resolve_direction
from catalog.repeats.engine import ProposalResult, RepairReport, RepeatsEngine
from catalog.repeats.normalize import NormalizationResult, normalize_chains
from catalog.repeats.sentinel import is_violating

__all__ = [
    "NormalizationResult",
    "ProposalResult",
    "RepairReport",
    "RepeatsEngine",
    "Resolution",
    "decide_direction",
    "is_violating",
    "normalize_chains",
    "resolve_direction",
    "would_create_cycle",
]
