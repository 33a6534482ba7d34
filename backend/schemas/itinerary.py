"""
schemas/itinerary.py
--------------------
Dataclass definitions for the multi-stop itinerary structures.

Destination   — one stop of the trip (persisted, ordered by position)
Day           — one calendar day of the trip (derived, never persisted)
OverlayKind   — the four per-day customization dimensions
OverlayEntry  — one explicit per-day customization value

All types are frozen: an editing step never mutates them in place, it
builds replacements with dataclasses.replace().
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Union

import config


class OverlayKind(Enum):
    """Per-day customization dimensions, one OverlayStore each."""

    SIGHTSEEING = "sightseeing"
    LODGING     = "lodging"
    DINING      = "dining"
    NOTES       = "notes"

    @property
    def is_list(self) -> bool:
        """Sightseeing and dining hold a list of picks; lodging and notes one string."""
        return self in (OverlayKind.SIGHTSEEING, OverlayKind.DINING)


# tuple[str, ...] for list kinds, str for lodging / notes
OverlayValue = Union[tuple, str]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Destination:
    """
    A named stop of the trip with a duration in nights.

    Aggregate fields (persisted as comma-joined strings):
      auto_sightseeing   — picks that came from the search provider
      manual_sightseeing — picks the traveller typed in
      dining             — restaurants / food picks
    """
    destination_id:     str = field(default_factory=_new_id)
    name:               str = ""
    nights:             int = 1
    auto_sightseeing:   tuple[str, ...] = ()
    manual_sightseeing: tuple[str, ...] = ()
    lodging_name:       str = ""
    lodging_is_manual:  bool = False
    dining:             tuple[str, ...] = ()
    transport_to_next:  str = ""
    notes:              str = ""

    @classmethod
    def create(cls, name: str = "", nights: int | None = None) -> "Destination":
        """Empty skeleton used by the "add destination" action."""
        return cls(name=name, nights=config.DEFAULT_NIGHTS if nights is None else nights)


# Fields EditDestination may touch; nights and destination_id are structural.
EDITABLE_DESTINATION_FIELDS: frozenset[str] = frozenset({
    "name",
    "auto_sightseeing",
    "manual_sightseeing",
    "lodging_name",
    "lodging_is_manual",
    "dining",
    "transport_to_next",
    "notes",
})


@dataclass(frozen=True)
class Day:
    """One calendar day of the trip, derived from the destination sequence."""
    day_index:             int
    date:                  date
    owner_position:        int
    owner_id:              str
    is_first_day_of_owner: bool = False
    is_last_day_of_owner:  bool = False


@dataclass(frozen=True)
class OverlayEntry:
    """
    An explicit per-day value.

    Presence of an entry means "explicitly set" — even an empty tuple.
    Absence means "unset": readers fall back to the destination's seed.

    `automatic` marks picks placed by the search provider rather than typed
    by the traveller; save-time aggregation files them as automatic.
    """
    day_index: int
    value:     OverlayValue
    is_manual: bool = False
    automatic: bool = False
