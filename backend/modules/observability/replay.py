"""
modules/observability/replay.py
---------------------------------
Deterministic replay of a recorded editing session from its JSONL log.

Usage:
    python main.py --replay <session_id>

Rebuilds the SESSION_OPEN snapshot, then re-applies every STATE_MUTATION
(through ReconciliationEngine) and LOAD_APPLIED record in order.  After each
step the recomputed hash must equal the logged after_hash; otherwise
RuntimeError("REPLAY_DIVERGENCE") is raised.

No store, cache or search provider is touched — this is a pure log replay.
"""

from __future__ import annotations

from pathlib import Path

from schemas.itinerary import OverlayKind
from modules.observability.logger import StructuredLogger
from modules.persistence.row_codec import (
    compute_snapshot_hash,
    overlay_entry_from_row,
    snapshot_from_dict,
)
from modules.schedule.mutations import mutation_from_dict
from modules.schedule.reconciliation import ReconciliationEngine
from modules.schedule.snapshot import ItinerarySnapshot

_REPLAY_EVENT_TYPES = frozenset({"SESSION_OPEN", "STATE_MUTATION", "LOAD_APPLIED"})


def replay_session(
    session_id: str,
    *,
    logs_dir: Path | str | None = None,
    verbose: bool = True,
) -> ItinerarySnapshot | None:
    """Replay a recorded session; returns the final snapshot (None if never opened)."""
    records = StructuredLogger(logs_dir).read(session_id)
    if not records:
        raise FileNotFoundError(f"No log records for session {session_id}")

    engine = ReconciliationEngine()
    snapshot: ItinerarySnapshot | None = None
    step = 0

    def _say(msg: str) -> None:
        if verbose:
            print(msg)

    _say(f"\n{'=' * 60}\n  REPLAY — session {session_id}  ({len(records)} records)\n{'=' * 60}")

    for rec in records:
        event_type = rec.get("event_type", "")
        if event_type not in _REPLAY_EVENT_TYPES:
            continue
        step += 1
        payload = rec.get("payload", {})

        if event_type == "SESSION_OPEN":
            snapshot = snapshot_from_dict(payload["snapshot"])
            label = f"open itinerary={snapshot.itinerary_id}"
        elif snapshot is None:
            raise RuntimeError(f"REPLAY_DIVERGENCE: {event_type} before SESSION_OPEN")
        elif event_type == "STATE_MUTATION":
            mutation = mutation_from_dict(payload["mutation"])
            snapshot = engine.apply(snapshot, mutation)
            label = f"mutation={mutation.kind.value}"
        else:
            kind = OverlayKind(payload["overlay"])
            entries = [overlay_entry_from_row(kind, r) for r in payload.get("entries", [])]
            snapshot, _ = engine.load_overlay(snapshot, kind, entries)
            label = f"load={kind.value} ({len(entries)} rows)"

        actual = compute_snapshot_hash(snapshot)
        expected = payload.get("after_hash", actual)
        if actual != expected:
            raise RuntimeError(
                f"REPLAY_DIVERGENCE at step {step} ({event_type}): "
                f"replayed {actual[:16]} != logged {expected[:16]}"
            )
        _say(f"  [{step:>4}] {rec.get('timestamp', '')}  {label:<40} hash={actual[:12]}  ✓")

    _say(f"\n  Replayed {step} event(s).  REPLAY COMPLETE\n{'=' * 60}\n")
    return snapshot
