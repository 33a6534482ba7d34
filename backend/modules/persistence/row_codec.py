"""
modules/persistence/row_codec.py
----------------------------------
Converts between ItinerarySnapshot and the flat row dicts exchanged with
the persistence adapter (db/repositories/itinerary_repo.py) and the draft
cache (db/redis_client.py).

Row shapes
──────────
  destination row : destination_id, order_index, destination, nights,
                    discover, manual_discover, food, hotel, hotel_is_manual,
                    transport, notes
                    (discover / manual_discover / food are comma-joined)
  overlay rows    : sightseeing {day_index, items}
                    lodging     {day_index, lodging, is_manual}
                    dining      {day_index, items}
                    notes       {day_index, notes}

Load rules: destinations ordered by order_index, negative nights clamped
to 0, overlay rows outside the projected trip dropped (and logged).

Save rules: snapshot_to_rows() folds the overlays back into destination
aggregates first (modules/schedule/aggregation.py); the result is a full
replacement of every row of the itinerary.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from schemas.itinerary import Destination, OverlayEntry, OverlayKind
from modules.schedule.aggregation import fold_overlays
from modules.schedule.default_seeder import join_aggregate, split_aggregate
from modules.schedule.reconciliation import ReconciliationEngine
from modules.schedule.snapshot import ItinerarySnapshot, empty_overlays

logger = logging.getLogger(__name__)

# overlay kind → column holding the per-day value
VALUE_COLUMNS: dict[OverlayKind, str] = {
    OverlayKind.SIGHTSEEING: "items",
    OverlayKind.LODGING:     "lodging",
    OverlayKind.DINING:      "items",
    OverlayKind.NOTES:       "notes",
}


def _as_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


# ── Destinations ───────────────────────────────────────────────────────────────

def destination_from_row(row: Mapping[str, Any]) -> Destination:
    nights = int(row.get("nights") or 0)
    if nights < 0:
        logger.warning("Clamping negative nights (%s) on destination %s", nights, row.get("destination"))
        nights = 0
    kwargs: dict[str, Any] = {}
    if row.get("destination_id"):
        kwargs["destination_id"] = str(row["destination_id"])
    return Destination(
        name=row.get("destination") or "",
        nights=nights,
        auto_sightseeing=split_aggregate(row.get("discover")),
        manual_sightseeing=split_aggregate(row.get("manual_discover")),
        lodging_name=row.get("hotel") or "",
        lodging_is_manual=bool(row.get("hotel_is_manual")),
        dining=split_aggregate(row.get("food")),
        transport_to_next=row.get("transport") or "",
        notes=row.get("notes") or "",
        **kwargs,
    )


def destination_to_row(dest: Destination, order_index: int) -> dict[str, Any]:
    return {
        "destination_id":  dest.destination_id,
        "order_index":     order_index,
        "destination":     dest.name,
        "nights":          dest.nights,
        "discover":        join_aggregate(dest.auto_sightseeing),
        "manual_discover": join_aggregate(dest.manual_sightseeing),
        "food":            join_aggregate(dest.dining),
        "hotel":           dest.lodging_name,
        "hotel_is_manual": dest.lodging_is_manual,
        "transport":       dest.transport_to_next,
        "notes":           dest.notes,
    }


# ── Overlays ───────────────────────────────────────────────────────────────────

def overlay_entry_from_row(kind: OverlayKind, row: Mapping[str, Any]) -> OverlayEntry:
    raw = row.get(VALUE_COLUMNS[kind])
    if kind.is_list:
        value: Any = tuple(raw or ())
    else:
        value = raw or ""
    return OverlayEntry(
        int(row["day_index"]),
        value,
        bool(row.get("is_manual", False)),
        bool(row.get("automatic", False)),
    )


def overlay_entry_to_row(kind: OverlayKind, entry: OverlayEntry) -> dict[str, Any]:
    row: dict[str, Any] = {"day_index": entry.day_index}
    if kind.is_list:
        row[VALUE_COLUMNS[kind]] = list(entry.value)
    else:
        row[VALUE_COLUMNS[kind]] = entry.value
    if kind is OverlayKind.LODGING:
        row["is_manual"] = entry.is_manual
    if entry.automatic:
        row["automatic"] = True
    return row


# ── Snapshot ⇄ rows ────────────────────────────────────────────────────────────

def snapshot_from_rows(
    header: Mapping[str, Any],
    destination_rows: Iterable[Mapping[str, Any]],
    overlay_rows: Optional[Mapping[str, Iterable[Mapping[str, Any]]]] = None,
) -> ItinerarySnapshot:
    """Build the initial snapshot of an itinerary read from the store."""
    ordered = sorted(destination_rows, key=lambda r: r.get("order_index", 0))
    snapshot = ItinerarySnapshot(
        itinerary_id=str(header["itinerary_id"]),
        start_date=_as_date(header["start_date"]),
        destinations=tuple(destination_from_row(r) for r in ordered),
        overlays=empty_overlays(),
        user_id=header.get("user_id"),
        title=header.get("title") or "",
    )
    overlays = overlay_rows or {}
    return _load_overlays(snapshot, {
        kind: [overlay_entry_from_row(kind, r) for r in overlays.get(kind.value) or []]
        for kind in OverlayKind
    })


def _load_overlays(
    snapshot: ItinerarySnapshot,
    entries: Mapping[OverlayKind, list[OverlayEntry]],
) -> ItinerarySnapshot:
    """Publish loaded entries through the engine; out-of-range or malformed ones are dropped."""
    engine = ReconciliationEngine()
    for kind in OverlayKind:
        snapshot, dropped = engine.load_overlay(snapshot, kind, entries.get(kind, []))
        if dropped:
            logger.warning(
                "Dropped %d %s entr(ies) outside the %d-day trip or malformed, %s: days %s",
                len(dropped), kind.value, snapshot.total_days, snapshot.itinerary_id,
                [e.day_index for e in dropped],
            )
    return snapshot


def snapshot_to_rows(snapshot: ItinerarySnapshot) -> dict[str, Any]:
    """
    Rows for a full-replacement save.

    Destination aggregates are recomputed from the overlays; overlay rows
    carry only explicit entries.
    """
    folded = fold_overlays(snapshot)
    return {
        "header": {
            "itinerary_id": snapshot.itinerary_id,
            "user_id":      snapshot.user_id,
            "title":        snapshot.title,
            "start_date":   snapshot.start_date.isoformat(),
            "duration":     snapshot.total_days,
        },
        "destinations": [destination_to_row(d, i) for i, d in enumerate(folded)],
        "overlays": {
            kind.value: [overlay_entry_to_row(kind, e) for e in snapshot.store(kind).entries()]
            for kind in OverlayKind
        },
    }


# ── Raw (unfolded) form: drafts and state hashing ─────────────────────────────

def snapshot_to_dict(snapshot: ItinerarySnapshot) -> dict[str, Any]:
    """Lossless JSON-safe form of a snapshot, no aggregation applied."""
    return {
        "itinerary_id": snapshot.itinerary_id,
        "user_id":      snapshot.user_id,
        "title":        snapshot.title,
        "start_date":   snapshot.start_date.isoformat(),
        "edit_count":   snapshot.edit_count,
        "destinations": [
            {k: list(v) if isinstance(v, tuple) else v for k, v in asdict(d).items()}
            for d in snapshot.destinations
        ],
        "overlays": {
            kind.value: [
                _entry_to_dict(e) for e in snapshot.store(kind).entries()
            ]
            for kind in OverlayKind
        },
    }


def _entry_to_dict(e: OverlayEntry) -> dict[str, Any]:
    out = {
        "day_index": e.day_index,
        "value": list(e.value) if isinstance(e.value, tuple) else e.value,
        "is_manual": e.is_manual,
    }
    if e.automatic:
        out["automatic"] = True
    return out


def snapshot_from_dict(data: Mapping[str, Any]) -> ItinerarySnapshot:
    """
    Rebuild a snapshot from its raw form (a Redis draft or a log record).

    Overlay entries go through the same range and shape checks as rows
    loaded from the store, so a corrupted draft cannot publish days
    outside the trip.
    """
    destinations = tuple(
        Destination(**{k: tuple(v) if isinstance(v, list) else v for k, v in d.items()})
        for d in data.get("destinations", [])
    )
    snapshot = ItinerarySnapshot(
        itinerary_id=str(data["itinerary_id"]),
        start_date=_as_date(data["start_date"]),
        destinations=destinations,
        overlays=empty_overlays(),
        edit_count=int(data.get("edit_count", 0)),
        user_id=data.get("user_id"),
        title=data.get("title") or "",
    )
    overlays = data.get("overlays", {})
    return _load_overlays(snapshot, {
        kind: [
            OverlayEntry(
                int(e["day_index"]),
                e["value"],
                bool(e.get("is_manual", False)),
                bool(e.get("automatic", False)),
            )
            for e in overlays.get(kind.value, [])
        ]
        for kind in OverlayKind
    })


def compute_snapshot_hash(snapshot: ItinerarySnapshot) -> str:
    """Deterministic SHA-256 of the snapshot content (edit_count excluded)."""
    data = snapshot_to_dict(snapshot)
    data.pop("edit_count", None)
    raw = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()
