"""
modules/schedule/mutations.py
-------------------------------
Structured mutation descriptions consumed by ReconciliationEngine.

The presentation layer never edits a snapshot directly.  It emits exactly
one Mutation whose ``kind`` is drawn from the closed ``MutationKind`` enum,
and the engine is the only component that turns it into a new snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional

from schemas.itinerary import Destination, OverlayKind, OverlayValue


class MutationKind(Enum):
    """Closed set of edits the engine accepts."""

    CHANGE_NIGHTS        = "change_nights"
    INSERT_DESTINATION   = "insert_destination"
    DELETE_DESTINATION   = "delete_destination"
    LODGING_PROPAGATION  = "lodging_propagation"
    MOVE_DESTINATION     = "move_destination"
    EDIT_DESTINATION     = "edit_destination"
    SET_OVERLAY          = "set_overlay"
    CLEAR_OVERLAY        = "clear_overlay"


class Mutation:
    """Base class; subclasses are frozen dataclasses."""

    kind: MutationKind

    @property
    def structural(self) -> bool:
        """True when the day layout (and so every overlay index) may move."""
        return self.kind in _STRUCTURAL

    def to_dict(self) -> dict:
        payload = {k: _plain(v) for k, v in asdict(self).items()}  # type: ignore[call-overload]
        payload["kind"] = self.kind.value
        return payload


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


@dataclass(frozen=True)
class ChangeNights(Mutation):
    position: int
    nights:   int
    kind: MutationKind = field(default=MutationKind.CHANGE_NIGHTS, init=False, repr=False)


@dataclass(frozen=True)
class InsertDestination(Mutation):
    """Insert `skeleton` (default: empty, DEFAULT_NIGHTS) at `position`; len() appends."""
    position: int
    skeleton: Optional[Destination] = None
    kind: MutationKind = field(default=MutationKind.INSERT_DESTINATION, init=False, repr=False)


@dataclass(frozen=True)
class DeleteDestination(Mutation):
    position: int
    kind: MutationKind = field(default=MutationKind.DELETE_DESTINATION, init=False, repr=False)


@dataclass(frozen=True)
class LodgingPropagation(Mutation):
    """Assign lodging to every day of one destination."""
    position:  int
    name:      str
    is_manual: bool = False
    kind: MutationKind = field(default=MutationKind.LODGING_PROPAGATION, init=False, repr=False)


@dataclass(frozen=True)
class MoveDestination(Mutation):
    """Reorder: the destination keeps its per-day values at the same offsets."""
    from_position: int
    to_position:   int
    kind: MutationKind = field(default=MutationKind.MOVE_DESTINATION, init=False, repr=False)


@dataclass(frozen=True)
class EditDestination(Mutation):
    """Replace non-structural destination fields, e.g. {"name": "Rome"}."""
    position: int
    changes:  dict = field(default_factory=dict)
    kind: MutationKind = field(default=MutationKind.EDIT_DESTINATION, init=False, repr=False)


@dataclass(frozen=True)
class SetOverlay(Mutation):
    overlay:   OverlayKind
    day_index: int
    value:     OverlayValue
    is_manual: bool = False
    kind: MutationKind = field(default=MutationKind.SET_OVERLAY, init=False, repr=False)


@dataclass(frozen=True)
class ClearOverlay(Mutation):
    overlay:   OverlayKind
    day_index: int
    kind: MutationKind = field(default=MutationKind.CLEAR_OVERLAY, init=False, repr=False)


_STRUCTURAL = frozenset({
    MutationKind.CHANGE_NIGHTS,
    MutationKind.INSERT_DESTINATION,
    MutationKind.DELETE_DESTINATION,
    MutationKind.MOVE_DESTINATION,
})

_CLASSES: dict[MutationKind, type] = {
    MutationKind.CHANGE_NIGHTS:       ChangeNights,
    MutationKind.INSERT_DESTINATION:  InsertDestination,
    MutationKind.DELETE_DESTINATION:  DeleteDestination,
    MutationKind.LODGING_PROPAGATION: LodgingPropagation,
    MutationKind.MOVE_DESTINATION:    MoveDestination,
    MutationKind.EDIT_DESTINATION:    EditDestination,
    MutationKind.SET_OVERLAY:         SetOverlay,
    MutationKind.CLEAR_OVERLAY:       ClearOverlay,
}


def mutation_from_dict(data: dict) -> Mutation:
    """Inverse of Mutation.to_dict(); used by log replay."""
    kind = MutationKind(data["kind"])
    kwargs = {k: v for k, v in data.items() if k != "kind"}
    if kwargs.get("skeleton") is not None:
        kwargs["skeleton"] = Destination(**{
            k: tuple(v) if isinstance(v, list) else v
            for k, v in kwargs["skeleton"].items()
        })
    if "overlay" in kwargs:
        kwargs["overlay"] = OverlayKind(kwargs["overlay"])
    if isinstance(kwargs.get("value"), list):
        kwargs["value"] = tuple(kwargs["value"])
    return _CLASSES[kind](**kwargs)
