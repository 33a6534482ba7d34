"""
modules/schedule/aggregation.py
---------------------------------
Save-time aggregation: fold the per-day overlays of each destination back
into its destination-level aggregate fields before the batch write.

For each destination, over the days it owns (explicit value, else seed):
  sightseeing  union in day order; tokens already automatic, or placed by
               the search provider, go to auto_sightseeing, every other
               token lands in manual_sightseeing
  dining       union in day order
  lodging      first day's effective lodging (and its manual flag)
A destination that owns no day keeps its aggregates unchanged.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from schemas.itinerary import Destination, OverlayKind
from modules.schedule.default_seeder import DefaultSeeder, dedupe
from modules.schedule.snapshot import ItinerarySnapshot


def effective_value(
    snapshot: ItinerarySnapshot,
    kind: OverlayKind,
    day_index: int,
    seeder: Optional[DefaultSeeder] = None,
):
    """Explicit per-day value, or the owning destination's seed."""
    store = snapshot.store(kind)
    if store.has(day_index):
        return store.get(day_index)
    owner = snapshot.owner_of(day_index)
    if owner is None:
        raise IndexError(f"day_index {day_index} outside the trip")
    return (seeder or DefaultSeeder()).seed(owner, kind)


def fold_destination(
    snapshot: ItinerarySnapshot,
    position: int,
    seeder: Optional[DefaultSeeder] = None,
) -> Destination:
    seeder = seeder or DefaultSeeder()
    dest = snapshot.destinations[position]
    start, end = snapshot.day_range(position)
    if start == end:
        return dest

    days = range(start, end)
    sights = dedupe(
        tok for day in days for tok in effective_value(snapshot, OverlayKind.SIGHTSEEING, day, seeder)
    )
    dining = dedupe(
        tok for day in days for tok in effective_value(snapshot, OverlayKind.DINING, day, seeder)
    )

    automatic = set(dest.auto_sightseeing)
    for entry in snapshot.store(OverlayKind.SIGHTSEEING).entries():
        if entry.automatic and start <= entry.day_index < end:
            automatic.update(entry.value)
    lodging_entry = snapshot.store(OverlayKind.LODGING).entry(start)
    if lodging_entry is not None:
        lodging_name, lodging_manual = lodging_entry.value, lodging_entry.is_manual
    else:
        lodging_name, lodging_manual = dest.lodging_name, dest.lodging_is_manual

    return replace(
        dest,
        auto_sightseeing=tuple(t for t in sights if t in automatic),
        manual_sightseeing=tuple(t for t in sights if t not in automatic),
        dining=dining,
        lodging_name=lodging_name,
        lodging_is_manual=lodging_manual,
    )


def fold_overlays(
    snapshot: ItinerarySnapshot,
    seeder: Optional[DefaultSeeder] = None,
) -> tuple[Destination, ...]:
    """Destinations with aggregate fields recomputed from their day ranges."""
    seeder = seeder or DefaultSeeder()
    return tuple(fold_destination(snapshot, pos, seeder) for pos in range(len(snapshot.destinations)))
