"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.

A jingle's publication state is a small tagged union: it is either
:class:`Published` (it aired in a Fabrica on a known date) or :class:`Inedito`
(not yet tied to any broadcast).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional, Union

REPEATS = "REPEATS"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


# ---------------------------------------------------------------------------
# Publication state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Published:
    date: datetime


@dataclass(frozen=True)
class Inedito:
    pass


PublicationState = Union[Published, Inedito]


def publication_from(date: Optional[datetime]) -> PublicationState:
    return Published(as_utc(date)) if date is not None else Inedito()  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

@dataclass
class Jingle:
    id: str
    title: str
    publication: PublicationState
    created_at: Optional[datetime]
    fabrica_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def publication_date(self) -> Optional[datetime]:
        if isinstance(self.publication, Published):
            return self.publication.date
        return None

    @property
    def is_inedito(self) -> bool:
        return isinstance(self.publication, Inedito)


class RepeatStatus(str, Enum):
    DRAFT = "DRAFT"
    CONFIRMED = "CONFIRMED"


@dataclass
class RepeatEdge:
    source_id: str
    target_id: str
    relation_type: str = REPEATS
    status: RepeatStatus = RepeatStatus.DRAFT
    created_at: Optional[datetime] = None


class EdgeRef(NamedTuple):
    """An edge identified by its ordered ``(source, target)`` pair."""

    source: str
    target: str


@dataclass
class GraphPayload:
    jingles: list[Jingle] = field(default_factory=list)
    edges: list[RepeatEdge] = field(default_factory=list)
