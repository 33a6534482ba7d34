"""modules/persistence — snapshot ⇄ row conversion for the store and draft cache."""

from modules.persistence.row_codec import (
    compute_snapshot_hash,
    destination_from_row,
    destination_to_row,
    snapshot_from_dict,
    snapshot_from_rows,
    snapshot_to_dict,
    snapshot_to_rows,
)

__all__ = [
    "compute_snapshot_hash",
    "destination_from_row",
    "destination_to_row",
    "snapshot_from_dict",
    "snapshot_from_rows",
    "snapshot_to_dict",
    "snapshot_to_rows",
]
