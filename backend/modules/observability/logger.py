"""
Structured JSON logger — append-only, one object per line (.jsonl).

Usage:
    from modules.observability.logger import StructuredLogger

    logger = StructuredLogger()
    logger.log("sess_abc123", "STATE_MUTATION", {"mutation": {...}})
    records = logger.read("sess_abc123")

Logs are written to  <LOGS_DIR>/<session_id>.jsonl  (config.LOGS_DIR).

Event types written by the itinerary editor:
    SESSION_OPEN       initial snapshot (raw form) + hash
    STATE_MUTATION     mutation dict, before_hash, after_hash, edit_count
    MUTATION_REJECTED  mutation dict, reason, detail
    LOAD_APPLIED       overlay kind, entries, after_hash
    LOAD_DISCARDED     overlay kind, why
    SAVE               itinerary_id, row counts, hash
"""

from __future__ import annotations

import json
import os
import threading
from datetime import datetime, timezone
from pathlib import Path

import config


class StructuredLogger:
    """Thread-safe, append-only JSONL logger."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        # None: follow config.LOGS_DIR at write time
        self._logs_dir = Path(logs_dir) if logs_dir else None
        self._lock = threading.Lock()
        self._handles: dict[str, object] = {}  # session_id -> file handle

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir or Path(config.LOGS_DIR)

    # ── public API ────────────────────────────────────────────────────────

    def log(self, session_id: str, event_type: str, payload: dict) -> None:
        """Append one structured JSON record to ``<session_id>.jsonl``."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, default=str, ensure_ascii=False) + "\n"

        with self._lock:
            fh = self._handles.get(session_id)
            if fh is None:
                fh = self._open(session_id)
            fh.write(line)  # type: ignore[union-attr]
            fh.flush()  # type: ignore[union-attr]

    def read(self, session_id: str) -> list[dict]:
        """All records of one session, in write order ([] if none)."""
        path = self.logs_dir / f"{session_id}.jsonl"
        if not path.exists():
            return []
        with self._lock, open(path, "r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]

    def close(self, session_id: str | None = None) -> None:
        """Close one or all open file handles."""
        with self._lock:
            if session_id:
                fh = self._handles.pop(session_id, None)
                if fh:
                    fh.close()  # type: ignore[union-attr]
            else:
                for fh in self._handles.values():
                    fh.close()  # type: ignore[union-attr]
                self._handles.clear()

    # ── internals ─────────────────────────────────────────────────────────

    def _open(self, session_id: str):  # noqa: ANN202
        os.makedirs(self.logs_dir, exist_ok=True)
        path = self.logs_dir / f"{session_id}.jsonl"
        fh = open(path, "a", encoding="utf-8")  # noqa: SIM115
        self._handles[session_id] = fh
        return fh
