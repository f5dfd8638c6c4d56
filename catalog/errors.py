"""Error kinds raised by the REPEATS consistency engine.

Every error carries a ``details`` dict with the node ids, comparison values
and rule involved so that automated fix-up tooling (and the HTTP layer) can
report it without parsing the message.
"""

from __future__ import annotations

from typing import Any


class RepeatsError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, **self.details}


class NotFound(RepeatsError):
    """One or more jingles (or an edge between them) do not exist."""

    def __init__(self, *node_ids: str, what: str = "Jingle") -> None:
        ids = ", ".join(node_ids)
        super().__init__(f"{what} not found: {ids}", node_ids=list(node_ids))
        self.node_ids = list(node_ids)


class SelfRepeat(RepeatsError):
    """A jingle was proposed as a repeat of itself."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"A jingle cannot repeat itself: {node_id}", node_id=node_id)


class CycleConflict(RepeatsError):
    """Creating ``source -> target`` would close a cycle of REPEATS edges."""

    def __init__(self, source: str, target: str, reason: str = "") -> None:
        super().__init__(
            f"REPEATS {source} -> {target} would create a cycle "
            f"({target} already reaches {source})",
            source=source,
            target=target,
            reason=reason,
        )
        self.source = source
        self.target = target


class AmbiguousDirection(RepeatsError):
    """The timestamps needed to orient an edge are missing or tied.

    Only raised when ``settings.strict_direction`` is enabled; otherwise the
    ambiguity is reported on the resolution result.
    """

    def __init__(self, source: str, target: str, rule: str, reason: str) -> None:
        super().__init__(reason, source=source, target=target, rule=rule)
        self.source = source
        self.target = target
        self.rule = rule


class StoreUnavailable(RepeatsError):
    """An underlying graph-store call failed; the whole operation was aborted."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        super().__init__(
            f"Graph store call failed during {operation}: {cause}",
            operation=operation,
            cause=repr(cause) if cause is not None else None,
        )
        self.operation = operation
