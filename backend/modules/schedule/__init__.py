"""modules/schedule — day projection and overlay reconciliation."""

from modules.schedule.day_projector import (
    destination_day_range,
    owner_position,
    project_days,
    total_days,
)
from modules.schedule.overlay_store import OverlayShiftError, OverlayStore
from modules.schedule.default_seeder import (
    DefaultSeeder,
    dedupe,
    join_aggregate,
    split_aggregate,
)
from modules.schedule.snapshot import ItinerarySnapshot, empty_overlays
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
from modules.schedule.reconciliation import (
    MutationRejected,
    ReconciliationEngine,
    RejectReason,
    check_invariants,
    normalize_value,
)
from modules.schedule.aggregation import effective_value, fold_overlays

__all__ = [
    "destination_day_range",
    "owner_position",
    "project_days",
    "total_days",
    "OverlayShiftError",
    "OverlayStore",
    "DefaultSeeder",
    "dedupe",
    "join_aggregate",
    "split_aggregate",
    "ItinerarySnapshot",
    "empty_overlays",
    "ChangeNights",
    "ClearOverlay",
    "DeleteDestination",
    "EditDestination",
    "InsertDestination",
    "LodgingPropagation",
    "MoveDestination",
    "Mutation",
    "MutationKind",
    "SetOverlay",
    "MutationRejected",
    "ReconciliationEngine",
    "RejectReason",
    "check_invariants",
    "normalize_value",
    "effective_value",
    "fold_overlays",
]
