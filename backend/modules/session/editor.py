"""
modules/session/editor.py
---------------------------
ItineraryEditor — one editing session over one itinerary.

Wraps the current ItinerarySnapshot, the ReconciliationEngine and the
DefaultSeeder into the single interface the presentation layer (API routes)
drives.

Lifecycle:
    editor = ItineraryEditor.new_trip(date(2025, 6, 1), "Rome")
    editor.change_nights(0, 3)
    editor.append_destination("Venice")
    editor.propagate_lodging(0, "Hotel A")

    # Read side, recomputed on demand
    days = editor.project_days()
    editor.get_overlay(OverlayKind.LODGING, 2)        # "Hotel A"

    # Background load (see background_loader.py)
    ticket = editor.issue_load()
    ...fetch...
    editor.apply_load(ticket, OverlayKind.SIGHTSEEING, entries)   # False if stale

    # Explicit save, a full replacement
    with get_conn() as conn:
        editor.save(conn)

Single writer: every mutation swaps the whole snapshot under one lock, so
readers see either the old or the new snapshot, never a mix.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional

from schemas.itinerary import Day, Destination, OverlayEntry, OverlayKind
from modules.observability.logger import StructuredLogger
from modules.persistence.row_codec import (
    compute_snapshot_hash,
    overlay_entry_to_row,
    snapshot_from_rows,
    snapshot_to_dict,
    snapshot_to_rows,
)
from modules.schedule.aggregation import effective_value
from modules.schedule.day_projector import project_days
from modules.schedule.default_seeder import DefaultSeeder
from modules.schedule.mutations import (
    ChangeNights,
    ClearOverlay,
    DeleteDestination,
    EditDestination,
    InsertDestination,
    LodgingPropagation,
    MoveDestination,
    Mutation,
    SetOverlay,
)
from modules.schedule.reconciliation import MutationRejected, ReconciliationEngine
from modules.schedule.snapshot import ItinerarySnapshot, empty_overlays
from modules.validation.row_validator import ValidationResult, validate_itinerary_rows

_logger = StructuredLogger()


class PersistenceValidationError(ValueError):
    """Raised by save() when the rows to be written fail validation."""

    def __init__(self, results: list[ValidationResult]) -> None:
        self.results = results
        self.errors = [e for r in results if not r.valid for e in r.errors]
        super().__init__("; ".join(self.errors))


@dataclass(frozen=True)
class LoadTicket:
    """Identity a background load was issued for."""
    itinerary_id: str
    generation:   int
    edit_count:   int
    snapshot:     ItinerarySnapshot = field(compare=False, repr=False)


class ItineraryEditor:
    """
    Single source of truth for:
      - the current ItinerarySnapshot
      - the load generation (bumped whenever another itinerary is opened)
      - the mutation history of this session
    """

    def __init__(
        self,
        snapshot: ItinerarySnapshot,
        *,
        session_id: Optional[str] = None,
        engine: Optional[ReconciliationEngine] = None,
        seeder: Optional[DefaultSeeder] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.session_id = session_id or f"edit_{uuid.uuid4().hex[:12]}"
        self._engine = engine or ReconciliationEngine()
        self._seeder = seeder or DefaultSeeder()
        self._log = logger or _logger
        self._lock = threading.Lock()
        self._snapshot = snapshot
        self._generation = 0
        self.history: list[dict] = []
        self._log_open(snapshot)

    # ── Factories ─────────────────────────────────────────────────────────────

    @classmethod
    def new_trip(
        cls,
        start_date: date,
        first_destination: str = "",
        *,
        itinerary_id: Optional[str] = None,
        user_id: Optional[str] = None,
        title: str = "",
        **kwargs: Any,
    ) -> "ItineraryEditor":
        """A fresh trip with one empty destination, owned by `user_id`."""
        snapshot = ItinerarySnapshot(
            itinerary_id=itinerary_id or uuid.uuid4().hex,
            start_date=start_date,
            destinations=(Destination.create(first_destination),),
            overlays=empty_overlays(),
            user_id=user_id,
            title=title,
        )
        return cls(snapshot, **kwargs)

    @classmethod
    def from_rows(
        cls,
        header: dict,
        destination_rows: Iterable[dict],
        overlay_rows: Optional[dict] = None,
        **kwargs: Any,
    ) -> "ItineraryEditor":
        return cls(snapshot_from_rows(header, destination_rows, overlay_rows), **kwargs)

    # ── Read side ─────────────────────────────────────────────────────────────

    @property
    def snapshot(self) -> ItinerarySnapshot:
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def destinations(self) -> tuple[Destination, ...]:
        return self._snapshot.destinations

    @property
    def total_days(self) -> int:
        return self._snapshot.total_days

    def project_days(self) -> list[Day]:
        snap = self._snapshot
        return project_days(snap.destinations, snap.start_date)

    def get_overlay(self, kind: OverlayKind, day_index: int):
        """Explicit value for the day, else the owning destination's seed."""
        return effective_value(self._snapshot, kind, day_index, self._seeder)

    def is_explicit(self, kind: OverlayKind, day_index: int) -> bool:
        return self._snapshot.store(kind).has(day_index)

    def get_destination_day_range(self, position: int) -> tuple[int, int]:
        return self._snapshot.day_range(position)

    def day_view(self, day_index: int) -> dict:
        """Everything the calendar shows for one day."""
        snap = self._snapshot
        days = project_days(snap.destinations, snap.start_date)
        if not 0 <= day_index < len(days):
            raise IndexError(f"day_index {day_index} outside the {len(days)}-day trip")
        day = days[day_index]
        owner = snap.destinations[day.owner_position]
        view: dict[str, Any] = {
            "day_index":      day.day_index,
            "date":           day.date.isoformat(),
            "destination":    owner.name,
            "destination_id": owner.destination_id,
            "position":       day.owner_position,
            "is_first_day":   day.is_first_day_of_owner,
            "is_last_day":    day.is_last_day_of_owner,
            "transport_to_next": owner.transport_to_next if day.is_last_day_of_owner else "",
        }
        for kind in OverlayKind:
            value = effective_value(snap, kind, day_index, self._seeder)
            view[kind.value] = list(value) if kind.is_list else value
            view[f"{kind.value}_explicit"] = snap.store(kind).has(day_index)
        lodging = snap.store(OverlayKind.LODGING).entry(day_index)
        view["lodging_is_manual"] = lodging.is_manual if lodging else owner.lodging_is_manual
        return view

    # ── Write side ────────────────────────────────────────────────────────────

    def apply(self, mutation: Mutation) -> ItinerarySnapshot:
        """
        Apply one mutation and publish the resulting snapshot.

        Raises MutationRejected (state unchanged) on validation failure.
        """
        with self._lock:
            before = self._snapshot
            try:
                after = self._engine.apply(before, mutation)
            except MutationRejected as exc:
                self._log.log(self.session_id, "MUTATION_REJECTED", {
                    "mutation": mutation.to_dict(),
                    **exc.to_dict(),
                })
                raise
            self._snapshot = after

            record = {
                "mutation":    mutation.to_dict(),
                "before_hash": compute_snapshot_hash(before),
                "after_hash":  compute_snapshot_hash(after),
                "edit_count":  after.edit_count,
                "changed":     after is not before,
            }
            self.history.append(record)
            self._log.log(self.session_id, "STATE_MUTATION", record)
            return after

    def change_nights(self, position: int, nights: int) -> ItinerarySnapshot:
        return self.apply(ChangeNights(position, nights))

    def insert_destination(
        self, position: int, skeleton: Optional[Destination] = None,
    ) -> ItinerarySnapshot:
        return self.apply(InsertDestination(position, skeleton))

    def append_destination(self, name: str = "", nights: Optional[int] = None) -> ItinerarySnapshot:
        """The "add destination" action: an empty skeleton at the end."""
        return self.apply(InsertDestination(
            len(self._snapshot.destinations), Destination.create(name, nights),
        ))

    def delete_destination(self, position: int) -> ItinerarySnapshot:
        return self.apply(DeleteDestination(position))

    def move_destination(self, from_position: int, to_position: int) -> ItinerarySnapshot:
        return self.apply(MoveDestination(from_position, to_position))

    def propagate_lodging(self, position: int, name: str, is_manual: bool = False) -> ItinerarySnapshot:
        return self.apply(LodgingPropagation(position, name, is_manual))

    def edit_destination(self, position: int, **changes: Any) -> ItinerarySnapshot:
        return self.apply(EditDestination(position, changes))

    def set_overlay(
        self, kind: OverlayKind, day_index: int, value, is_manual: bool = False,
    ) -> ItinerarySnapshot:
        return self.apply(SetOverlay(kind, day_index, value, is_manual))

    def clear_overlay(self, kind: OverlayKind, day_index: int) -> ItinerarySnapshot:
        return self.apply(ClearOverlay(kind, day_index))

    # ── Navigation / background loads ────────────────────────────────────────

    def open(self, snapshot: ItinerarySnapshot) -> None:
        """Switch the session to another itinerary; in-flight loads become stale."""
        with self._lock:
            self._snapshot = snapshot
            self._generation += 1
            self.history.clear()
        self._log_open(snapshot)

    def issue_load(self) -> LoadTicket:
        with self._lock:
            snap = self._snapshot
            return LoadTicket(snap.itinerary_id, self._generation, snap.edit_count, snap)

    def apply_load(
        self,
        ticket: LoadTicket,
        kind: OverlayKind,
        entries: Iterable[OverlayEntry],
    ) -> bool:
        """
        Bulk-replace one overlay store with a load result.

        Returns False (and logs LOAD_DISCARDED) when the result belongs to
        another itinerary / generation, or when local edits happened since
        the ticket was issued.
        """
        entries = list(entries)
        with self._lock:
            current = self._snapshot
            why = None
            if ticket.generation != self._generation or ticket.itinerary_id != current.itinerary_id:
                why = "superseded"
            elif ticket.edit_count != current.edit_count:
                why = "local_edits_since_issue"
            if why is not None:
                self._log.log(self.session_id, "LOAD_DISCARDED", {
                    "overlay": kind.value,
                    "why": why,
                    "ticket": {"itinerary_id": ticket.itinerary_id,
                               "generation": ticket.generation,
                               "edit_count": ticket.edit_count},
                })
                return False

            after, dropped = self._engine.load_overlay(current, kind, entries)
            self._snapshot = after
            self._log.log(self.session_id, "LOAD_APPLIED", {
                "overlay":    kind.value,
                "entries":    [overlay_entry_to_row(kind, e) for e in after.store(kind).entries()],
                "dropped":    [e.day_index for e in dropped],
                "after_hash": compute_snapshot_hash(after),
            })
            return True

    # ── Persistence ──────────────────────────────────────────────────────────

    def to_rows(self) -> dict:
        return snapshot_to_rows(self._snapshot)

    def save(self, conn, repo=None) -> dict:
        """
        Validate and write the full itinerary in one batch.

        `repo` defaults to db.repositories.itinerary_repo.  Errors from the
        store propagate; in-memory state is kept, and a retry is safe since
        the write is a full replacement.
        """
        if repo is None:
            from db.repositories import itinerary_repo as repo

        snap = self._snapshot
        rows = snapshot_to_rows(snap)
        results = validate_itinerary_rows(rows)
        if not all(results):
            raise PersistenceValidationError(results)

        repo.save_itinerary(conn, snap.itinerary_id, rows)
        summary = {
            "itinerary_id": snap.itinerary_id,
            "destinations": len(rows["destinations"]),
            "overlay_rows": {k: len(v) for k, v in rows["overlays"].items()},
            "hash":         compute_snapshot_hash(snap),
        }
        self._log.log(self.session_id, "SAVE", summary)
        return summary

    def to_draft(self) -> dict:
        return snapshot_to_dict(self._snapshot)

    # ── internals ────────────────────────────────────────────────────────────

    def _log_open(self, snapshot: ItinerarySnapshot) -> None:
        self._log.log(self.session_id, "SESSION_OPEN", {
            "snapshot":   snapshot_to_dict(snapshot),
            "after_hash": compute_snapshot_hash(snapshot),
        })
