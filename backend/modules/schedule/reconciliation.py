"""
modules/schedule/reconciliation.py
------------------------------------
ReconciliationEngine — applies one Mutation to an ItinerarySnapshot and
returns the next snapshot, re-indexing all four overlay stores so they stay
aligned with the destination sequence.

Contract
────────
§1  VALIDATION FIRST
     Bad position, negative nights, deleting the last destination, a day
     index outside the trip or a malformed value raise MutationRejected
     before anything is copied.  The input snapshot is never touched.

§2  WORKING COPIES
     Every store is copied, re-keyed, then published together with the new
     destination tuple in one ItinerarySnapshot.  A reader holding the old
     snapshot never sees a half-shifted state.

§3  DAY ARITHMETIC  (destination at position p owns [start, end))
     ChangeNights grow   shift_range(end, +delta); seed lodging on [end, end+delta)
     ChangeNights shrink drop_range(start+new, end); shift_range(end, delta)
     InsertDestination   shift_range(insert_start, skeleton.nights)
     DeleteDestination   drop_range(start, end);    shift_range(end, -(end-start))
     MoveDestination     carry [start, end) out, close the gap, open the gap at
                         the target, re-insert at the same offsets

§4  POST-CONDITIONS
     check_invariants() runs on every new snapshot; any violation rejects
     the mutation and the previous snapshot stays current.

§5  IDEMPOTENCE
     A mutation that produces no change returns the input snapshot itself
     (same edit_count), so re-applying ChangeNights(i, n) is a no-op.
"""

from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import Any, Iterable, Optional

from schemas.itinerary import (
    EDITABLE_DESTINATION_FIELDS,
    Destination,
    OverlayEntry,
    OverlayKind,
    OverlayValue,
)
from modules.schedule.day_projector import project_days
from modules.schedule.mutations import (
    ChangeNights,
    ClearOverlay,
    DeleteDestination,
    EditDestination,
    InsertDestination,
    LodgingPropagation,
    MoveDestination,
    Mutation,
    MutationKind,
    SetOverlay,
)
from modules.schedule.overlay_store import OverlayShiftError
from modules.schedule.snapshot import ItinerarySnapshot


# ── Rejections ─────────────────────────────────────────────────────────────────

class RejectReason(Enum):
    POSITION_OUT_OF_RANGE = "POSITION_OUT_OF_RANGE"
    NEGATIVE_NIGHTS       = "NEGATIVE_NIGHTS"
    LAST_DESTINATION      = "LAST_DESTINATION"
    DAY_OUT_OF_RANGE      = "DAY_OUT_OF_RANGE"
    INVALID_VALUE         = "INVALID_VALUE"
    UNKNOWN_FIELD         = "UNKNOWN_FIELD"
    INVARIANT_VIOLATION   = "INVARIANT_VIOLATION"
    UNKNOWN_MUTATION      = "UNKNOWN_MUTATION"


class MutationRejected(ValueError):
    """Raised before any state change when a mutation cannot be applied."""

    def __init__(self, reason: RejectReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)

    def to_dict(self) -> dict:
        return {"reason": self.reason.value, "detail": self.detail}


# ── Value shapes ───────────────────────────────────────────────────────────────

_LIST_FIELDS = frozenset({"auto_sightseeing", "manual_sightseeing", "dining"})
_BOOL_FIELDS = frozenset({"lodging_is_manual"})


def normalize_value(kind: OverlayKind, value: Any) -> OverlayValue:
    """
    Coerce a per-day value into its stored shape.

    List kinds accept any list/tuple of strings and store a tuple; lodging
    and notes must be a string.  Raises MutationRejected(INVALID_VALUE).
    """
    if kind.is_list:
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise MutationRejected(
                RejectReason.INVALID_VALUE,
                f"{kind.value} expects a list of strings (got {type(value).__name__})",
            )
        if not all(isinstance(v, str) for v in value):
            raise MutationRejected(
                RejectReason.INVALID_VALUE, f"{kind.value} items must be strings",
            )
        return tuple(value)
    if not isinstance(value, str):
        raise MutationRejected(
            RejectReason.INVALID_VALUE,
            f"{kind.value} expects a string (got {type(value).__name__})",
        )
    return value


# ── Invariants ─────────────────────────────────────────────────────────────────

def check_invariants(snapshot: ItinerarySnapshot) -> list[str]:
    """
    All violations of the snapshot invariants; an empty list means valid.

      - no negative nights, no duplicate destination ids
      - projected day count == sum(nights), indices contiguous from 0
      - every overlay entry inside [0, total_days)
      - every overlay value has the shape of its kind
    """
    issues: list[str] = []

    negative = [d.name or d.destination_id for d in snapshot.destinations if d.nights < 0]
    if negative:
        issues.append(f"negative nights on {negative}")
        return issues

    ids = [d.destination_id for d in snapshot.destinations]
    if len(ids) != len(set(ids)):
        issues.append("duplicate destination_id in sequence")

    days = project_days(snapshot.destinations, snapshot.start_date)
    total = sum(d.nights for d in snapshot.destinations)
    if len(days) != total:
        issues.append(f"projected {len(days)} days but nights sum to {total}")
    if [d.day_index for d in days] != list(range(len(days))):
        issues.append("day indices are not contiguous from 0")

    for kind, store in snapshot.overlays.items():
        orphans = [i for i in store.day_indices() if not 0 <= i < total]
        if orphans:
            issues.append(f"{kind.value} entries outside [0, {total}): {orphans}")
        for entry in store.entries():
            if kind.is_list and not isinstance(entry.value, tuple):
                issues.append(f"{kind.value} day {entry.day_index} is not a tuple")
            elif not kind.is_list and not isinstance(entry.value, str):
                issues.append(f"{kind.value} day {entry.day_index} is not a string")

    return issues


# ── ReconciliationEngine ───────────────────────────────────────────────────────

class ReconciliationEngine:
    """
    Stateless.  apply(snapshot, mutation) ⇒ next snapshot.

    The editor (modules/session/editor.py) owns the current snapshot; this
    class only computes transitions.
    """

    def apply(self, snapshot: ItinerarySnapshot, mutation: Mutation) -> ItinerarySnapshot:
        dispatch = {
            MutationKind.CHANGE_NIGHTS:       self._change_nights,
            MutationKind.INSERT_DESTINATION:  self._insert_destination,
            MutationKind.DELETE_DESTINATION:  self._delete_destination,
            MutationKind.LODGING_PROPAGATION: self._propagate_lodging,
            MutationKind.MOVE_DESTINATION:    self._move_destination,
            MutationKind.EDIT_DESTINATION:    self._edit_destination,
            MutationKind.SET_OVERLAY:         self._set_overlay,
            MutationKind.CLEAR_OVERLAY:       self._clear_overlay,
        }
        handler = dispatch.get(getattr(mutation, "kind", None))
        if handler is None:
            raise MutationRejected(RejectReason.UNKNOWN_MUTATION, repr(mutation))

        try:
            new = handler(snapshot, mutation)
        except OverlayShiftError as exc:
            raise MutationRejected(RejectReason.INVARIANT_VIOLATION, str(exc)) from exc

        if new is snapshot or new.same_state(snapshot):
            return snapshot

        issues = check_invariants(new)
        if issues:
            raise MutationRejected(RejectReason.INVARIANT_VIOLATION, "; ".join(issues))
        return new

    def load_overlay(
        self,
        snapshot: ItinerarySnapshot,
        kind: OverlayKind,
        entries: Iterable[OverlayEntry],
    ) -> tuple[ItinerarySnapshot, list[OverlayEntry]]:
        """
        Bulk-replace one overlay store with externally loaded entries.

        Entries outside the trip or with a malformed value are dropped and
        returned as the second element.  Not a local edit: edit_count is
        left unchanged.
        """
        total = snapshot.total_days
        kept: list[OverlayEntry] = []
        dropped: list[OverlayEntry] = []
        for e in entries:
            if not 0 <= e.day_index < total:
                dropped.append(e)
                continue
            try:
                value = normalize_value(kind, e.value)
            except MutationRejected:
                dropped.append(e)
                continue
            kept.append(OverlayEntry(e.day_index, value, e.is_manual, e.automatic))

        stores = dict(snapshot.overlays)
        stores[kind] = snapshot.overlays[kind].copy()
        stores[kind].bulk_replace(kept)
        return snapshot.evolve(overlays=stores, bump=False), dropped

    # ── validation helpers ────────────────────────────────────────────────

    @staticmethod
    def _require_position(snapshot: ItinerarySnapshot, position: int) -> Destination:
        if not isinstance(position, int) or not 0 <= position < len(snapshot.destinations):
            raise MutationRejected(
                RejectReason.POSITION_OUT_OF_RANGE,
                f"position {position} not in [0, {len(snapshot.destinations)})",
            )
        return snapshot.destinations[position]

    @staticmethod
    def _require_day(snapshot: ItinerarySnapshot, day_index: int) -> None:
        total = snapshot.total_days
        if not isinstance(day_index, int) or not 0 <= day_index < total:
            raise MutationRejected(
                RejectReason.DAY_OUT_OF_RANGE,
                f"day_index {day_index} not in [0, {total})",
            )

    @staticmethod
    def _require_nights(nights: int) -> None:
        if not isinstance(nights, int) or nights < 0:
            raise MutationRejected(
                RejectReason.NEGATIVE_NIGHTS, f"nights must be an int >= 0 (got {nights!r})",
            )

    # ── structural mutations ──────────────────────────────────────────────

    def _change_nights(self, snapshot: ItinerarySnapshot, m: ChangeNights) -> ItinerarySnapshot:
        dest = self._require_position(snapshot, m.position)
        self._require_nights(m.nights)

        delta = m.nights - dest.nights
        if delta == 0:
            return snapshot

        old_start, old_end = snapshot.day_range(m.position)
        stores = snapshot.copy_overlays()

        if delta > 0:
            seed = self._growth_lodging(snapshot, dest, old_start, old_end)
            for store in stores.values():
                store.shift_range(old_end, delta)
            if seed is not None:
                name, is_manual = seed
                for day in range(old_end, old_end + delta):
                    stores[OverlayKind.LODGING].set(day, name, is_manual)
        else:
            new_end = old_start + m.nights
            for store in stores.values():
                store.drop_range(new_end, old_end)
                store.shift_range(old_end, delta)

        destinations = list(snapshot.destinations)
        destinations[m.position] = replace(dest, nights=m.nights)
        return snapshot.evolve(destinations=tuple(destinations), overlays=stores)

    @staticmethod
    def _growth_lodging(
        snapshot: ItinerarySnapshot,
        dest: Destination,
        start: int,
        end: int,
    ) -> Optional[tuple[str, bool]]:
        """
        Lodging to propagate onto newly opened days: the destination's own
        lodging, else the explicit lodging of its last existing day.
        """
        if dest.lodging_name:
            return dest.lodging_name, dest.lodging_is_manual
        lodging = snapshot.store(OverlayKind.LODGING)
        for day in range(end - 1, start - 1, -1):
            entry = lodging.entry(day)
            if entry is not None and entry.value:
                return entry.value, entry.is_manual
        return None

    def _insert_destination(
        self, snapshot: ItinerarySnapshot, m: InsertDestination,
    ) -> ItinerarySnapshot:
        count = len(snapshot.destinations)
        if not isinstance(m.position, int) or not 0 <= m.position <= count:
            raise MutationRejected(
                RejectReason.POSITION_OUT_OF_RANGE, f"position {m.position} not in [0, {count}]",
            )
        skeleton = m.skeleton if m.skeleton is not None else Destination.create()
        self._require_nights(skeleton.nights)
        if any(d.destination_id == skeleton.destination_id for d in snapshot.destinations):
            raise MutationRejected(
                RejectReason.INVALID_VALUE,
                f"destination_id {skeleton.destination_id} already in itinerary",
            )

        insert_start = sum(d.nights for d in snapshot.destinations[:m.position])
        stores = snapshot.copy_overlays()
        for store in stores.values():
            store.shift_range(insert_start, skeleton.nights)

        destinations = list(snapshot.destinations)
        destinations.insert(m.position, skeleton)
        return snapshot.evolve(destinations=tuple(destinations), overlays=stores)

    def _delete_destination(
        self, snapshot: ItinerarySnapshot, m: DeleteDestination,
    ) -> ItinerarySnapshot:
        if len(snapshot.destinations) <= 1:
            raise MutationRejected(
                RejectReason.LAST_DESTINATION, "an itinerary keeps at least one destination",
            )
        self._require_position(snapshot, m.position)

        start, end = snapshot.day_range(m.position)
        stores = snapshot.copy_overlays()
        for store in stores.values():
            store.drop_range(start, end)
            store.shift_range(end, -(end - start))

        destinations = list(snapshot.destinations)
        del destinations[m.position]
        return snapshot.evolve(destinations=tuple(destinations), overlays=stores)

    def _move_destination(
        self, snapshot: ItinerarySnapshot, m: MoveDestination,
    ) -> ItinerarySnapshot:
        moved = self._require_position(snapshot, m.from_position)
        self._require_position(snapshot, m.to_position)
        if m.from_position == m.to_position:
            return snapshot

        start, end = snapshot.day_range(m.from_position)
        width = end - start
        stores = snapshot.copy_overlays()

        carried = {kind: store.drop_range(start, end) for kind, store in stores.items()}
        for store in stores.values():
            store.shift_range(end, -width)

        destinations = list(snapshot.destinations)
        del destinations[m.from_position]
        destinations.insert(m.to_position, moved)

        new_start = sum(d.nights for d in destinations[:m.to_position])
        for kind, store in stores.items():
            store.shift_range(new_start, width)
            for e in carried[kind]:
                store.set(new_start + (e.day_index - start), e.value, e.is_manual, e.automatic)

        return snapshot.evolve(destinations=tuple(destinations), overlays=stores)

    # ── content mutations ─────────────────────────────────────────────────

    def _propagate_lodging(
        self, snapshot: ItinerarySnapshot, m: LodgingPropagation,
    ) -> ItinerarySnapshot:
        dest = self._require_position(snapshot, m.position)
        name = normalize_value(OverlayKind.LODGING, m.name)

        start, end = snapshot.day_range(m.position)
        stores = dict(snapshot.overlays)
        lodging = stores[OverlayKind.LODGING].copy()
        for day in range(start, end):
            lodging.set(day, name, m.is_manual)
        stores[OverlayKind.LODGING] = lodging

        destinations = list(snapshot.destinations)
        destinations[m.position] = replace(
            dest, lodging_name=name, lodging_is_manual=bool(m.is_manual),
        )
        return snapshot.evolve(destinations=tuple(destinations), overlays=stores)

    def _edit_destination(
        self, snapshot: ItinerarySnapshot, m: EditDestination,
    ) -> ItinerarySnapshot:
        dest = self._require_position(snapshot, m.position)
        unknown = set(m.changes) - EDITABLE_DESTINATION_FIELDS
        if unknown:
            raise MutationRejected(
                RejectReason.UNKNOWN_FIELD,
                f"not editable here: {sorted(unknown)} (nights → ChangeNights)",
            )

        clean: dict[str, Any] = {}
        for name, value in m.changes.items():
            if name in _LIST_FIELDS:
                clean[name] = normalize_value(OverlayKind.SIGHTSEEING, value)
            elif name in _BOOL_FIELDS:
                if not isinstance(value, bool):
                    raise MutationRejected(RejectReason.INVALID_VALUE, f"{name} expects a bool")
                clean[name] = value
            else:
                if not isinstance(value, str):
                    raise MutationRejected(RejectReason.INVALID_VALUE, f"{name} expects a string")
                clean[name] = value

        edited = replace(dest, **clean)
        if edited == dest:
            return snapshot
        destinations = list(snapshot.destinations)
        destinations[m.position] = edited
        return snapshot.evolve(destinations=tuple(destinations))

    def _set_overlay(self, snapshot: ItinerarySnapshot, m: SetOverlay) -> ItinerarySnapshot:
        if not isinstance(m.overlay, OverlayKind):
            raise MutationRejected(RejectReason.INVALID_VALUE, f"unknown overlay {m.overlay!r}")
        self._require_day(snapshot, m.day_index)
        value = normalize_value(m.overlay, m.value)

        current = snapshot.store(m.overlay).entry(m.day_index)
        if current is not None and current.value == value and current.is_manual == m.is_manual:
            return snapshot

        stores = dict(snapshot.overlays)
        store = stores[m.overlay].copy()
        store.set(m.day_index, value, m.is_manual)
        stores[m.overlay] = store
        return snapshot.evolve(overlays=stores)

    def _clear_overlay(self, snapshot: ItinerarySnapshot, m: ClearOverlay) -> ItinerarySnapshot:
        if not isinstance(m.overlay, OverlayKind):
            raise MutationRejected(RejectReason.INVALID_VALUE, f"unknown overlay {m.overlay!r}")
        self._require_day(snapshot, m.day_index)
        if not snapshot.store(m.overlay).has(m.day_index):
            return snapshot

        stores = dict(snapshot.overlays)
        store = stores[m.overlay].copy()
        store.clear(m.day_index)
        stores[m.overlay] = store
        return snapshot.evolve(overlays=stores)
