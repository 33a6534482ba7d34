"""
modules/validation package — data quality guards before any DB/cache write.
"""
from modules.validation.row_validator import (
    ValidationResult,
    validate_header,
    validate_destination_row,
    validate_overlay_row,
    validate_itinerary_rows,
    filter_valid,
)

__all__ = [
    "ValidationResult",
    "validate_header",
    "validate_destination_row",
    "validate_overlay_row",
    "validate_itinerary_rows",
    "filter_valid",
]
