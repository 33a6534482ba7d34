"""
modules/schedule/overlay_store.py
-----------------------------------
OverlayStore — sparse day_index → OverlayEntry map for one overlay kind.

Only explicit values are stored.  A missing key is the "unset" state and
readers fall back to the destination seed (see default_seeder.py).

Re-keying operations used by the reconciliation engine:

    drop_range(start, end)        remove every entry in [start, end)
    shift_range(from_index, delta) move every entry ≥ from_index by delta
    bulk_replace(entries)          overwrite everything at once

A published ItinerarySnapshot never has its stores mutated: the engine
works on copy()s and publishes the copies together.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Iterator

from schemas.itinerary import OverlayEntry, OverlayKind, OverlayValue


class OverlayShiftError(ValueError):
    """Raised when a shift would collide with, or pass below, a surviving entry."""


class OverlayStore:
    """Sparse per-day overlay values for one OverlayKind."""

    __slots__ = ("kind", "_entries")

    def __init__(
        self,
        kind: OverlayKind,
        entries: Iterable[OverlayEntry] = (),
    ) -> None:
        self.kind = kind
        self._entries: dict[int, OverlayEntry] = {}
        for entry in entries:
            self._entries[entry.day_index] = entry

    # ── reads ─────────────────────────────────────────────────────────────

    def get(self, day_index: int, default: Any = None) -> Any:
        """Explicit value for `day_index`, or `default` when unset."""
        entry = self._entries.get(day_index)
        return entry.value if entry is not None else default

    def entry(self, day_index: int) -> OverlayEntry | None:
        return self._entries.get(day_index)

    def has(self, day_index: int) -> bool:
        return day_index in self._entries

    def entries(self) -> list[OverlayEntry]:
        """All explicit entries in day order."""
        return [self._entries[k] for k in sorted(self._entries)]

    def day_indices(self) -> list[int]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[OverlayEntry]:
        return iter(self.entries())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OverlayStore):
            return NotImplemented
        return self.kind == other.kind and self._entries == other._entries

    def __repr__(self) -> str:  # pragma: no cover
        return f"OverlayStore({self.kind.value}, {len(self._entries)} entries)"

    # ── writes ────────────────────────────────────────────────────────────

    def copy(self) -> "OverlayStore":
        return OverlayStore(self.kind, self._entries.values())

    def set(
        self,
        day_index: int,
        value: OverlayValue,
        is_manual: bool = False,
        automatic: bool = False,
    ) -> None:
        """Create or replace exactly one entry; neighbours are untouched."""
        if day_index < 0:
            raise ValueError(f"day_index must be >= 0 (got {day_index})")
        self._entries[day_index] = OverlayEntry(day_index, value, is_manual, automatic)

    def clear(self, day_index: int) -> None:
        """Return one day to the unset state."""
        self._entries.pop(day_index, None)

    def drop_range(self, start: int, end: int) -> list[OverlayEntry]:
        """Remove every entry in [start, end); returns the removed entries."""
        dropped = [e for k, e in sorted(self._entries.items()) if start <= k < end]
        for e in dropped:
            del self._entries[e.day_index]
        return dropped

    def shift_range(self, from_index: int, delta: int) -> None:
        """
        Re-key every entry with day_index ≥ from_index by `delta`.

        For a negative delta the caller drops [from_index + delta, from_index)
        first; anything still in that window is a collision and raises.
        """
        if delta == 0:
            return
        moving = {k: e for k, e in self._entries.items() if k >= from_index}
        staying = {k: e for k, e in self._entries.items() if k < from_index}
        shifted: dict[int, OverlayEntry] = {}
        for k, e in moving.items():
            new_k = k + delta
            if new_k < 0 or new_k in staying:
                raise OverlayShiftError(
                    f"{self.kind.value}: shifting day {k} by {delta} lands on "
                    f"day {new_k}, which is occupied or negative"
                )
            shifted[new_k] = replace(e, day_index=new_k)
        staying.update(shifted)
        self._entries = staying

    def bulk_replace(self, entries: Iterable[OverlayEntry]) -> None:
        """Full overwrite; the previous contents are discarded."""
        self._entries = {e.day_index: e for e in entries}
