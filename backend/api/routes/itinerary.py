"""
api/routes/itinerary.py
------------------------
Editing sessions over one itinerary.

    POST   /v1/itineraries/sessions                          open (new / stored / draft)
    GET    /v1/itineraries/sessions/{session_id}             destinations + day calendar
    GET    /v1/itineraries/sessions/{session_id}/days/{i}    all four overlays for day i
    POST   /v1/itineraries/sessions/{session_id}/open        switch the session to another itinerary
    POST   /v1/itineraries/sessions/{session_id}/save        full-replacement save
    PUT    /v1/itineraries/sessions/{session_id}/draft       stash unsaved state in Redis
    POST   /v1/itineraries/sessions/{session_id}/suggestions debounced provider lookup
    POST   /v1/itineraries/sessions/{session_id}/reload      debounced reload of saved overlays
    GET    /v1/itineraries                                   list a user's itineraries
    DELETE /v1/itineraries/{itinerary_id}                    delete a saved itinerary

Sessions live in an in-memory store keyed by session_id.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import date as date_type
from typing import Optional

import psycopg2
import redis
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from db.connection import get_conn
from db.redis_client import delete_draft, get_draft, set_draft
from db.repositories import itinerary_repo
from modules.persistence.row_codec import snapshot_from_dict, snapshot_from_rows
from modules.schedule.snapshot import ItinerarySnapshot
from modules.session.background_loader import DebouncedLoader, repository_fetch, suggestion_fetch
from modules.session.editor import ItineraryEditor, PersistenceValidationError
from modules.tool_usage.places_tool import PlacesTool

logger = logging.getLogger(__name__)

router = APIRouter()

# ── In-memory session store ────────────────────────────────────────────────────
# key: session_id
# value: {
#   "editor":  ItineraryEditor,
#   "loaders": {"suggestions" | "reload": DebouncedLoader},   created on first use
# }
_store: dict[str, dict] = {}

# Debounce timers for background loads
_timer_factory = threading.Timer


# ── Request schemas ────────────────────────────────────────────────────────────

class OpenSessionRequest(BaseModel):
    itinerary_id: Optional[str] = Field(None, description="Load this itinerary; omit for a new trip")
    start_date: Optional[str] = Field(None, description="ISO-8601 date YYYY-MM-DD (new trips)")
    first_destination: str = ""
    user_id: Optional[str] = Field(None, description="Owner of a new trip; saved with it")
    title: str = ""
    from_draft: bool = Field(False, description="Resume the Redis draft instead of the saved copy")


class SwitchItineraryRequest(BaseModel):
    itinerary_id: str
    from_draft: bool = False


# ── Serialisers ────────────────────────────────────────────────────────────────

def ser_session(session_id: str, editor: ItineraryEditor) -> dict:
    snap = editor.snapshot
    destinations = []
    for position, dest in enumerate(snap.destinations):
        start, end = snap.day_range(position)
        destinations.append({
            "position":           position,
            "destination_id":     dest.destination_id,
            "name":               dest.name,
            "nights":             dest.nights,
            "first_day":          start,
            "last_day":           end - 1,
            "lodging":            dest.lodging_name,
            "lodging_is_manual":  dest.lodging_is_manual,
            "sightseeing":        list(dest.auto_sightseeing),
            "manual_sightseeing": list(dest.manual_sightseeing),
            "dining":             list(dest.dining),
            "transport_to_next":  dest.transport_to_next,
            "notes":              dest.notes,
        })
    return {
        "session_id":   session_id,
        "itinerary_id": snap.itinerary_id,
        "user_id":      snap.user_id,
        "title":        snap.title,
        "start_date":   snap.start_date.isoformat(),
        "total_days":   snap.total_days,
        "edit_count":   snap.edit_count,
        "generation":   editor.generation,
        "destinations": destinations,
        "days": [
            {
                "day_index":    d.day_index,
                "date":         d.date.isoformat(),
                "position":     d.owner_position,
                "destination":  snap.destinations[d.owner_position].name,
                "is_first_day": d.is_first_day_of_owner,
                "is_last_day":  d.is_last_day_of_owner,
            }
            for d in editor.project_days()
        ],
    }


# ── Loading a stored itinerary ─────────────────────────────────────────────────

def load_snapshot(itinerary_id: str, from_draft: bool = False) -> ItinerarySnapshot:
    """Saved copy from Postgres, or the Redis draft; HTTPException on failure."""
    if from_draft:
        try:
            draft = get_draft(itinerary_id)
        except redis.RedisError as exc:
            raise HTTPException(status_code=503, detail=f"Draft cache unavailable: {exc}") from exc
        if draft is None:
            raise HTTPException(status_code=404, detail=f"No draft for itinerary '{itinerary_id}'")
        return snapshot_from_dict(draft)

    try:
        with get_conn() as conn:
            loaded = itinerary_repo.load_itinerary(conn, itinerary_id)
    except psycopg2.Error as exc:
        raise HTTPException(status_code=500, detail=f"Store error: {exc}") from exc
    if loaded is None:
        raise HTTPException(status_code=404, detail=f"Itinerary '{itinerary_id}' not found")
    return snapshot_from_rows(loaded["header"], loaded["destinations"], loaded["overlays"])


def _conn():
    # get_conn looked up per call, not bound at loader creation
    return get_conn()


def _loader(entry: dict, name: str, build_fetch) -> DebouncedLoader:
    loaders = entry.setdefault("loaders", {})
    if name not in loaders:
        loaders[name] = DebouncedLoader(entry["editor"], build_fetch(), timer_factory=_timer_factory)
    return loaders[name]


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/sessions", summary="Open an editing session")
def open_session(req: OpenSessionRequest) -> dict:
    session_id = str(uuid.uuid4())

    if req.itinerary_id:
        editor = ItineraryEditor(load_snapshot(req.itinerary_id, req.from_draft), session_id=session_id)
    else:
        if not req.start_date:
            raise HTTPException(status_code=422, detail="start_date is required for a new trip")
        try:
            start = date_type.fromisoformat(req.start_date)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid date format: {exc}") from exc
        editor = ItineraryEditor.new_trip(
            start, req.first_destination,
            user_id=req.user_id, title=req.title, session_id=session_id,
        )

    _store[session_id] = {"editor": editor, "loaders": {}}
    return ser_session(session_id, editor)


@router.get("/sessions/{session_id}", summary="Destinations and day calendar")
def get_itinerary(session_id: str) -> dict:
    return ser_session(session_id, get_editor(session_id))


@router.get("/sessions/{session_id}/days/{day_index}", summary="One day with all overlays")
def get_day(session_id: str, day_index: int) -> dict:
    editor = get_editor(session_id)
    try:
        return editor.day_view(day_index)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("/sessions/{session_id}/open", summary="Switch the session to another itinerary")
def switch_itinerary(session_id: str, req: SwitchItineraryRequest) -> dict:
    """
    Navigate away: the session now edits `itinerary_id`.  Pending loads are
    cancelled and any fetch already running for the previous itinerary is
    discarded when it returns.
    """
    entry = get_session(session_id)
    snapshot = load_snapshot(req.itinerary_id, req.from_draft)
    for loader in entry.get("loaders", {}).values():
        loader.cancel()
    entry["editor"].open(snapshot)
    return ser_session(session_id, entry["editor"])


@router.post("/sessions/{session_id}/save", summary="Persist the itinerary (full replacement)")
def save(session_id: str) -> dict:
    editor = get_editor(session_id)
    try:
        with get_conn() as conn:
            summary = editor.save(conn)
    except PersistenceValidationError as exc:
        raise HTTPException(status_code=422, detail={"errors": exc.errors}) from exc
    except psycopg2.Error as exc:
        raise HTTPException(status_code=500, detail=f"Store error: {exc}") from exc
    return {"session_id": session_id, "saved": summary}


@router.put("/sessions/{session_id}/draft", summary="Stash unsaved state")
def put_draft(session_id: str) -> dict:
    editor = get_editor(session_id)
    try:
        set_draft(editor.snapshot.itinerary_id, editor.to_draft())
    except redis.RedisError as exc:
        raise HTTPException(status_code=503, detail=f"Draft cache unavailable: {exc}") from exc
    return {"session_id": session_id, "itinerary_id": editor.snapshot.itinerary_id, "draft": True}


@router.delete("/sessions/{session_id}/draft", summary="Discard the stashed draft")
def discard_draft(session_id: str) -> dict:
    editor = get_editor(session_id)
    try:
        deleted = delete_draft(editor.snapshot.itinerary_id)
    except redis.RedisError as exc:
        raise HTTPException(status_code=503, detail=f"Draft cache unavailable: {exc}") from exc
    return {"session_id": session_id, "deleted": deleted}


@router.post("/sessions/{session_id}/suggestions", summary="Queue a provider lookup")
def request_suggestions(session_id: str) -> dict:
    """
    Debounced: repeated calls within LOAD_DEBOUNCE_SECONDS collapse into one
    lookup.  Results land asynchronously and are dropped if the itinerary is
    edited before they arrive.
    """
    entry = get_session(session_id)
    _loader(entry, "suggestions", lambda: suggestion_fetch(PlacesTool())).trigger()
    return {"session_id": session_id, "pending": True}


@router.post("/sessions/{session_id}/reload", summary="Queue a reload of saved per-day data")
def request_reload(session_id: str) -> dict:
    """
    Debounced reload of the saved overlay rows of the session's itinerary.
    Dropped on arrival if the session was edited or switched meanwhile.
    """
    entry = get_session(session_id)
    _loader(entry, "reload", lambda: repository_fetch(_conn, repo=itinerary_repo)).trigger()
    return {"session_id": session_id, "pending": True}


@router.get("", summary="List a user's saved itineraries")
def list_itineraries(user_id: str) -> dict:
    try:
        with get_conn() as conn:
            rows = itinerary_repo.list_itineraries(conn, user_id)
    except psycopg2.Error as exc:
        raise HTTPException(status_code=500, detail=f"Store error: {exc}") from exc
    return {
        "user_id": user_id,
        "itineraries": [
            {**r, "start_date": str(r.get("start_date")), "updated_at": str(r.get("updated_at"))}
            for r in rows
        ],
    }


@router.delete("/{itinerary_id}", summary="Delete a saved itinerary")
def delete_itinerary(itinerary_id: str) -> dict:
    try:
        with get_conn() as conn:
            deleted = itinerary_repo.delete_itinerary(conn, itinerary_id)
    except psycopg2.Error as exc:
        raise HTTPException(status_code=500, detail=f"Store error: {exc}") from exc
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Itinerary '{itinerary_id}' not found")
    return {"itinerary_id": itinerary_id, "deleted": True}


# ── Utility: expose store to other routes ─────────────────────────────────────

def get_session(session_id: str) -> dict:
    """Retrieve a stored session or raise 404."""
    entry = _store.get(session_id)
    if not entry:
        raise HTTPException(
            status_code=404,
            detail=f"Session '{session_id}' not found. Call /v1/itineraries/sessions first.",
        )
    return entry


def get_editor(session_id: str) -> ItineraryEditor:
    return get_session(session_id)["editor"]
