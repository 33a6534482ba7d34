"""
modules/schedule/default_seeder.py
------------------------------------
DefaultSeeder — fallback per-day overlay values computed from a
destination's aggregate fields.

    sightseeing → auto_sightseeing + manual_sightseeing
    dining      → dining
    lodging     → lodging_name
    notes       → notes

The seed is consulted only for days with no explicit entry.  Once a day
holds an explicit value (an empty tuple included) the seed is never read
again for that day.

Aggregate fields are persisted as one comma-joined string per field;
split_aggregate / join_aggregate are the codec for that form.
"""

from __future__ import annotations

from typing import Iterable, Optional

import config
from schemas.itinerary import Destination, OverlayKind, OverlayValue


# ── Aggregate codec ────────────────────────────────────────────────────────────

def split_aggregate(text: Optional[str], separator: Optional[str] = None) -> tuple[str, ...]:
    """'Colosseum, , Trevi ' → ('Colosseum', 'Trevi')."""
    if not text:
        return ()
    sep = separator or config.AGGREGATE_SEPARATOR
    return tuple(tok.strip() for tok in text.split(sep) if tok.strip())


def join_aggregate(tokens: Iterable[str], separator: Optional[str] = None) -> str:
    sep = separator or config.AGGREGATE_SEPARATOR
    return f"{sep} ".join(t.strip() for t in tokens if t and t.strip())


def dedupe(tokens: Iterable[str]) -> tuple[str, ...]:
    """Drop repeats and blank tokens, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for tok in tokens:
        tok = tok.strip()
        if tok and tok not in seen:
            seen.add(tok)
            out.append(tok)
    return tuple(out)


# ── DefaultSeeder ──────────────────────────────────────────────────────────────

class DefaultSeeder:
    """Stateless; one instance is shared by the editor and the aggregator."""

    def seed(self, destination: Destination, kind: OverlayKind) -> OverlayValue:
        if kind is OverlayKind.SIGHTSEEING:
            return dedupe((*destination.auto_sightseeing, *destination.manual_sightseeing))
        if kind is OverlayKind.DINING:
            return dedupe(destination.dining)
        if kind is OverlayKind.LODGING:
            return destination.lodging_name
        if kind is OverlayKind.NOTES:
            return destination.notes
        raise ValueError(f"Unknown overlay kind: {kind!r}")
