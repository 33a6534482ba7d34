"""
modules/schedule/snapshot.py
------------------------------
ItinerarySnapshot — one immutable state of an itinerary being edited:
the destination sequence plus the four overlay stores, always published
together.

`edit_count` counts applied local edits.  Background loads compare it with
the value captured when the load was issued (see modules/session/editor.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Mapping, Optional

from schemas.itinerary import Destination, OverlayKind
from modules.schedule.day_projector import (
    destination_day_range,
    owner_position,
    total_days,
)
from modules.schedule.overlay_store import OverlayStore


def empty_overlays() -> dict[OverlayKind, OverlayStore]:
    return {kind: OverlayStore(kind) for kind in OverlayKind}


@dataclass(frozen=True, eq=False)
class ItinerarySnapshot:
    itinerary_id: str
    start_date:   date
    destinations: tuple[Destination, ...] = ()
    overlays:     Mapping[OverlayKind, OverlayStore] = field(default_factory=empty_overlays)
    edit_count:   int = 0
    user_id:      Optional[str] = None
    title:        str = ""

    # ── derived queries ───────────────────────────────────────────────────

    @property
    def total_days(self) -> int:
        return total_days(self.destinations)

    def day_range(self, position: int) -> tuple[int, int]:
        return destination_day_range(self.destinations, position)

    def owner_of(self, day_index: int) -> Optional[Destination]:
        pos = owner_position(self.destinations, day_index)
        return self.destinations[pos] if pos is not None else None

    def position_of(self, destination_id: str) -> int:
        """Translate a stable destination id into its current position."""
        for pos, dest in enumerate(self.destinations):
            if dest.destination_id == destination_id:
                return pos
        raise KeyError(f"Unknown destination_id {destination_id!r}")

    def store(self, kind: OverlayKind) -> OverlayStore:
        return self.overlays[kind]

    # ── building the next snapshot ────────────────────────────────────────

    def copy_overlays(self) -> dict[OverlayKind, OverlayStore]:
        """Working copies for a reconciliation pass."""
        return {kind: store.copy() for kind, store in self.overlays.items()}

    def evolve(
        self,
        *,
        destinations: Optional[tuple[Destination, ...]] = None,
        overlays: Optional[Mapping[OverlayKind, OverlayStore]] = None,
        bump: bool = True,
    ) -> "ItinerarySnapshot":
        return replace(
            self,
            destinations=self.destinations if destinations is None else tuple(destinations),
            overlays=self.overlays if overlays is None else dict(overlays),
            edit_count=self.edit_count + 1 if bump else self.edit_count,
        )

    def same_state(self, other: "ItinerarySnapshot") -> bool:
        """Equal content, ignoring edit_count."""
        return (
            self.itinerary_id == other.itinerary_id
            and self.user_id == other.user_id
            and self.title == other.title
            and self.start_date == other.start_date
            and self.destinations == other.destinations
            and all(self.overlays[k] == other.overlays[k] for k in OverlayKind)
        )
