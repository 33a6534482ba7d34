"""
modules/schedule/day_projector.py
-----------------------------------
DayProjector — projects the ordered destination sequence onto a contiguous,
dated sequence of days.

    Rome(3) + Venice(2), start 2025-06-01
      → day 0..2 owned by Rome   (06-01 .. 06-03)
      → day 3..4 owned by Venice (06-04 .. 06-05)

Pure functions, O(total_days).  Zero-night destinations own no day but do
not disturb the indexing of later destinations.  Negative nights never reach
this module: the reconciliation engine rejects them and the row codec clamps
them on load.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional, Sequence

from schemas.itinerary import Day, Destination


def total_days(destinations: Sequence[Destination]) -> int:
    """Number of days in the trip (one per night)."""
    return sum(d.nights for d in destinations)


def destination_day_range(
    destinations: Sequence[Destination],
    position: int,
) -> tuple[int, int]:
    """
    Half-open [start, end) day-index range owned by the destination at
    `position`.  Raises IndexError for a position outside the sequence.
    """
    if position < 0 or position >= len(destinations):
        raise IndexError(f"destination position {position} out of range")
    start = sum(d.nights for d in destinations[:position])
    return start, start + destinations[position].nights


def owner_position(
    destinations: Sequence[Destination],
    day_index: int,
) -> Optional[int]:
    """Position of the destination that owns `day_index`, or None if outside the trip."""
    if day_index < 0:
        return None
    cursor = 0
    for position, dest in enumerate(destinations):
        if cursor <= day_index < cursor + dest.nights:
            return position
        cursor += dest.nights
    return None


def project_days(
    destinations: Sequence[Destination],
    start_date: date,
) -> list[Day]:
    """Expand the destination sequence into one Day record per night."""
    days: list[Day] = []
    cursor = start_date
    for position, dest in enumerate(destinations):
        for offset in range(dest.nights):
            days.append(Day(
                day_index=len(days),
                date=cursor,
                owner_position=position,
                owner_id=dest.destination_id,
                is_first_day_of_owner=offset == 0,
                is_last_day_of_owner=offset == dest.nights - 1,
            ))
            cursor += timedelta(days=1)
    return days
