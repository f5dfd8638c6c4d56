"""Ordering of a repeat family for display and audits."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from catalog.db.models import Jingle, Published

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _family_key(jingle: Jingle) -> tuple[int, datetime, str]:
    if isinstance(jingle.publication, Published):
        return (0, jingle.publication.date, jingle.id)
    return (1, jingle.created_at or _EPOCH, jingle.id)


def sort_family(jingles: Iterable[Jingle]) -> list[Jingle]:
    """Published jingles first by publication date, then Ineditos by creation time."""
    return sorted(jingles, key=_family_key)
