"""
modules/session/background_loader.py
--------------------------------------
Debounced background loads into an ItineraryEditor.

Rapid triggers (e.g. typing a destination name) collapse into one fetch that
fires LOAD_DEBOUNCE_SECONDS after the last trigger.  The fetch runs on a
timer thread; its results go through ItineraryEditor.apply_load(), which
drops them if the user navigated away or edited in the meantime.

A fetch is any callable  ticket -> {OverlayKind: [OverlayEntry, ...]}.
Two are provided:
    repository_fetch(conn_factory)   overlay rows of the saved itinerary
    suggestion_fetch(places_tool)    provider suggestions for unset days
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

import config
from schemas.itinerary import OverlayEntry, OverlayKind
from modules.persistence.row_codec import overlay_entry_from_row
from modules.schedule.default_seeder import DefaultSeeder
from modules.session.editor import ItineraryEditor, LoadTicket
from modules.validation.row_validator import filter_valid, validate_overlay_row

logger = logging.getLogger(__name__)

Fetch = Callable[[LoadTicket], dict]


class DebouncedLoader:

    def __init__(
        self,
        editor: ItineraryEditor,
        fetch: Fetch,
        delay: Optional[float] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ) -> None:
        self._editor = editor
        self._fetch = fetch
        self._delay = config.LOAD_DEBOUNCE_SECONDS if delay is None else delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self.last_error: Optional[BaseException] = None
        self.applied: list[OverlayKind] = []

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        """(Re)start the debounce window."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self._delay, self._fire)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def flush(self) -> list[OverlayKind]:
        """Run a pending load now, on the calling thread."""
        with self._lock:
            if self._timer is None:
                return []
            self._timer.cancel()
            self._timer = None
        return self.run_once()

    def run_once(self) -> list[OverlayKind]:
        """Issue a ticket, fetch, apply.  Returns the overlay kinds applied."""
        ticket = self._editor.issue_load()
        try:
            results = self._fetch(ticket)
        except Exception as exc:  # noqa: BLE001
            # Timer thread boundary: record and log, the editor state is untouched.
            self.last_error = exc
            logger.exception("Background load for %s failed", ticket.itinerary_id)
            return []

        applied = [
            kind for kind, entries in results.items()
            if self._editor.apply_load(ticket, kind, entries)
        ]
        self.applied.extend(applied)
        return applied

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.run_once()


# ── Fetch builders ───────────────────────────────────────────────────────────

def repository_fetch(conn_factory, repo=None) -> Fetch:
    """
    Reload overlay rows of the saved itinerary.

    `conn_factory` is a context-manager factory such as db.connection.get_conn.
    """
    if repo is None:
        from db.repositories import itinerary_repo as repo

    def _fetch(ticket: LoadTicket) -> dict:
        with conn_factory() as conn:
            loaded = repo.load_itinerary(conn, ticket.itinerary_id)
        if loaded is None:
            return {}
        overlays = loaded.get("overlays", {})
        total = ticket.snapshot.total_days
        results: dict[OverlayKind, list[OverlayEntry]] = {}
        for kind in OverlayKind:
            if kind.value not in overlays:
                continue
            kept, rejected = filter_valid(
                overlays[kind.value], lambda r, k=kind: validate_overlay_row(r, k, total),
            )
            if rejected:
                logger.warning(
                    "Skipping %d malformed %s row(s) for %s: %s",
                    len(rejected), kind.value, ticket.itinerary_id,
                    [e for r in rejected for e in r.errors],
                )
            results[kind] = [overlay_entry_from_row(kind, r) for r in kept]
        return results

    return _fetch


def suggestion_fetch(
    places_tool,
    kinds: Iterable[OverlayKind] = (OverlayKind.SIGHTSEEING, OverlayKind.DINING),
    seeder: Optional[DefaultSeeder] = None,
) -> Fetch:
    """
    Fill unset days whose destination has nothing to seed from with
    provider suggestions.  Explicit entries are carried through unchanged,
    so the bulk replace never clobbers a user value.
    """
    seeder = seeder or DefaultSeeder()
    kinds = tuple(kinds)

    def _fetch(ticket: LoadTicket) -> dict:
        snap = ticket.snapshot
        results: dict[OverlayKind, list[OverlayEntry]] = {}
        for kind in kinds:
            store = snap.store(kind)
            entries = list(store.entries())
            added = 0
            for position, dest in enumerate(snap.destinations):
                if not dest.name or seeder.seed(dest, kind):
                    continue
                start, end = snap.day_range(position)
                missing = [d for d in range(start, end) if not store.has(d)]
                if not missing:
                    continue
                names = tuple(places_tool.suggest(dest.name, kind))
                if not names:
                    continue
                entries.extend(OverlayEntry(d, names, automatic=True) for d in missing)
                added += len(missing)
            if added:
                results[kind] = entries
        return results

    return _fetch
