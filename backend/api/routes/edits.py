"""
api/routes/edits.py
--------------------
One endpoint per itinerary mutation.  Every endpoint returns the full
session view after the edit (same shape as GET /v1/itineraries/sessions/{id}).

    POST /v1/edits/{session_id}/nights         change a destination's nights
    POST /v1/edits/{session_id}/destinations   insert / append a destination
    POST /v1/edits/{session_id}/delete         delete a destination
    POST /v1/edits/{session_id}/move           reorder destinations
    POST /v1/edits/{session_id}/lodging        lodging for every day of a destination
    POST /v1/edits/{session_id}/content        edit destination fields (name, notes, ...)
    POST /v1/edits/{session_id}/overlay        explicit per-day value
    POST /v1/edits/{session_id}/overlay/clear  back to the destination default

Rejected edits → 422 with {"reason", "detail"}; the itinerary is unchanged.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Union

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from schemas.itinerary import Destination, OverlayKind
from modules.schedule.mutations import EditDestination
from modules.schedule.reconciliation import MutationRejected
from modules.session.editor import ItineraryEditor
from api.routes.itinerary import get_editor, ser_session

router = APIRouter()


# ── Request schemas ────────────────────────────────────────────────────────────

class NightsRequest(BaseModel):
    position: int
    nights: int


class InsertRequest(BaseModel):
    position: Optional[int] = Field(None, description="Omit to append at the end")
    name: str = ""
    nights: Optional[int] = None


class PositionRequest(BaseModel):
    position: int


class MoveRequest(BaseModel):
    from_position: int
    to_position: int


class LodgingRequest(BaseModel):
    position: int
    name: str
    is_manual: bool = True


class ContentRequest(BaseModel):
    position: int
    changes: dict[str, Any]


class OverlayRequest(BaseModel):
    overlay: str                             # sightseeing | lodging | dining | notes
    day_index: int
    value: Union[list[str], str]
    is_manual: bool = False


class ClearRequest(BaseModel):
    overlay: str
    day_index: int


# ── Helpers ────────────────────────────────────────────────────────────────────

def _overlay_kind(value: str) -> OverlayKind:
    try:
        return OverlayKind(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=422,
            detail=f"Unknown overlay '{value}'. Expected one of {[k.value for k in OverlayKind]}",
        ) from exc


def _edit(session_id: str, action: Callable[[ItineraryEditor], Any]) -> dict:
    editor = get_editor(session_id)
    try:
        action(editor)
    except MutationRejected as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict()) from exc
    return ser_session(session_id, editor)


# ── Endpoints ──────────────────────────────────────────────────────────────────

@router.post("/{session_id}/nights", summary="Change nights of one destination")
def change_nights(session_id: str, req: NightsRequest) -> dict:
    return _edit(session_id, lambda e: e.change_nights(req.position, req.nights))


@router.post("/{session_id}/destinations", summary="Insert or append a destination")
def insert_destination(session_id: str, req: InsertRequest) -> dict:
    def _apply(e: ItineraryEditor) -> None:
        if req.position is None:
            e.append_destination(req.name, req.nights)
        else:
            e.insert_destination(req.position, Destination.create(req.name, req.nights))
    return _edit(session_id, _apply)


@router.post("/{session_id}/delete", summary="Delete a destination")
def delete_destination(session_id: str, req: PositionRequest) -> dict:
    return _edit(session_id, lambda e: e.delete_destination(req.position))


@router.post("/{session_id}/move", summary="Move a destination to another position")
def move_destination(session_id: str, req: MoveRequest) -> dict:
    return _edit(session_id, lambda e: e.move_destination(req.from_position, req.to_position))


@router.post("/{session_id}/lodging", summary="Assign lodging to every day of a destination")
def propagate_lodging(session_id: str, req: LodgingRequest) -> dict:
    return _edit(session_id, lambda e: e.propagate_lodging(req.position, req.name, req.is_manual))


@router.post("/{session_id}/content", summary="Edit destination fields")
def edit_destination(session_id: str, req: ContentRequest) -> dict:
    return _edit(session_id, lambda e: e.apply(EditDestination(req.position, req.changes)))


@router.post("/{session_id}/overlay", summary="Set an explicit per-day value")
def set_overlay(session_id: str, req: OverlayRequest) -> dict:
    kind = _overlay_kind(req.overlay)
    value = tuple(req.value) if isinstance(req.value, list) else req.value
    return _edit(session_id, lambda e: e.set_overlay(kind, req.day_index, value, req.is_manual))


@router.post("/{session_id}/overlay/clear", summary="Clear a per-day value")
def clear_overlay(session_id: str, req: ClearRequest) -> dict:
    kind = _overlay_kind(req.overlay)
    return _edit(session_id, lambda e: e.clear_overlay(kind, req.day_index))
